# Copyright (C) 2018 Henrique Pereira Coutada Miranda
# All rights reserved.
#
# This file is part of wannbse
#
# Author: Riccardo Reho
"""
submodule to build and solve the Bethe-Salpeter equation of Wannier tight-binding models.
"""

from .wann_utils import *
from .wann_config import *
from .wann_lattice import *
from .wann_mpgrid import *
from .wann_io import *
from .coulombpot import *
from .wann_model import *
from .wann_rho import *
from .wann_dielectric import *
from .wann_bse import *
from .wann_solvers import *
from .wann_spectra import *
