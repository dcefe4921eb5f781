# Copyright (C) 2018 Henrique Pereira Coutada Miranda
# All rights reserved.
#
# This file is part of wannbse
#
# Author: Riccardo Reho 2023
"""
Compute the excitonic dielectric tensor of a Wannier tight-binding model.

Example
    wannbse LiF_hr.dat LiF_centres.xyz LiF.win lattice.dat --nv 3 --nc 1 --kgrid 6 6 6 --fermie 1.0
"""
import argparse
import numpy as np
from time import time
from .wann_config import BSEConfig, SOLVER_NAMES
from .wann_lattice import CrystalLattice, GPointList
from .wann_mpgrid import tb_Monkhorst_Pack
from .wann_io import read_kpoints_file
from .coulombpot import CoulombPotentials
from .wann_model import TBMODEL
from .wann_rho import TransitionDensityEngine
from .wann_dielectric import DielectricFunction
from .wann_bse import ExcitonicHamiltonian
from .wann_spectra import BSESpectrum


def build_parser():
    parser = argparse.ArgumentParser(description='BSE dielectric tensor of a Wannier tight-binding model')
    parser.add_argument('hr_file', help='seedname_hr.dat file')
    parser.add_argument('xyz_file', help='seedname_centres.xyz file')
    parser.add_argument('win_file', help='seedname.win file')
    parser.add_argument('lattice_file', help='3x3 lattice vectors in Angstrom, one per row')
    parser.add_argument('--hr-down', default=None, help='spin-down seedname_hr.dat, enables the spin-polarized BSE')
    parser.add_argument('--xyz-down', default=None, help='spin-down seedname_centres.xyz')
    parser.add_argument('--fermie', type=float, default=0.0, help='Fermi energy (eV)')
    parser.add_argument('--scissor', type=float, default=0.0, help='Scissor shift of the conduction bands (eV)')
    parser.add_argument('--nv', type=int, default=1, help='Number of valence bands')
    parser.add_argument('--nc', type=int, default=1, help='Number of conduction bands')
    kgroup = parser.add_mutually_exclusive_group()
    kgroup.add_argument('--kgrid', nargs=3, type=int, default=None, help='Monkhorst-Pack grid. Use as --kgrid N1 N2 N3')
    kgroup.add_argument('--kfile', default=None, help='File with Cartesian k-points (1/Angstrom)')
    parser.add_argument('--gcutoff', type=float, default=0.0, help='G vectors cutoff (mRy), 0 keeps only G=0')
    parser.add_argument('--dimension', type=int, choices=(2, 3), default=3, help='3 for bulk, 2 for slab truncated Coulomb')
    parser.add_argument('--cutting-direction', nargs=3, type=int, default=[1,1,0], help='0 marks the non-periodic direction of a slab')
    parser.add_argument('--eta', type=float, default=None, help='Broadening of the dielectric response (eV)')
    parser.add_argument('--lorentzian', type=float, default=None, help='Broadening of the dielectric tensor (eV)')
    parser.add_argument('--ppa', type=float, default=None, help='Imaginary probe frequency of the plasmon-pole model (eV)')
    parser.add_argument('--no-screening', action='store_true', help='Use the bare Coulomb interaction in the kernel')
    parser.add_argument('--tamm-dancoff', action='store_true', help='Neglect the coupling block')
    parser.add_argument('--solver', choices=SOLVER_NAMES, default=None, help='BSE eigensolver')
    parser.add_argument('--omega-min', type=float, default=0.0, help='Lowest frequency (eV)')
    parser.add_argument('--omega-max', type=float, default=20.0, help='Highest frequency (eV)')
    parser.add_argument('--nomega', type=int, default=2000, help='Number of frequencies')
    parser.add_argument('--threads', type=int, default=None, help='BLAS threads used by the eigensolver')
    parser.add_argument('--config', default=None, help='JSON file with BSEConfig fields, command line flags take precedence')
    parser.add_argument('--output', default='./eps_tensor.dat', help='Output file. If not specified, ./eps_tensor.dat is created')
    parser.add_argument('--exc-output', default=None, help='Write exciton energies and oscillator strengths to this file')
    parser.add_argument('--exc-weights', default=None, help='Write the (sector, c, v, k) weights of the excitons to this file')
    parser.add_argument('--nexc', type=int, default=None, help='Number of excitons in the weights file, all if not given')
    return parser

def config_from_args(args):
    config = BSEConfig.from_json(args.config) if args.config else BSEConfig()
    changes = {'spin_polarized': args.hr_down is not None}
    if args.no_screening:
        changes['screening'] = False
    if args.tamm_dancoff:
        changes['tamm_dancoff'] = True
    for key, value in (('eta', args.eta), ('lorentzian', args.lorentzian), ('ppa', args.ppa),
                       ('solver', args.solver), ('n_threads', args.threads)):
        if value is not None:
            changes[key] = value
    return config.replace(**changes)

def load_model(args):
    model = TBMODEL.from_wannier_files(hr_file=args.hr_file, xyz_file=args.xyz_file, win_file=args.win_file)
    model.set_fermi(args.fermie, args.scissor)
    if args.hr_down is not None:
        xyz_down = args.xyz_down if args.xyz_down is not None else args.xyz_file
        model_down = TBMODEL.from_wannier_files(hr_file=args.hr_down, xyz_file=xyz_down, win_file=args.win_file)
        model.set_spin_partner(model_down)
    return model

def load_kpoints(args, lattice):
    if args.kfile is not None:
        return read_kpoints_file(args.kfile)
    grid = tb_Monkhorst_Pack(args.kgrid if args.kgrid is not None else [1,1,1], lattice)
    return grid.generate()

def main(argv=None):
    t0 = time()
    args = build_parser().parse_args(argv)
    config = config_from_args(args)

    lattice = CrystalLattice.from_file(args.lattice_file)
    print(lattice)
    cutting_direction = args.cutting_direction if args.dimension == 2 else (1,1,1)
    gpoints = GPointList(lattice, args.gcutoff, dimension=args.dimension, cutting_direction=cutting_direction)
    coulomb = CoulombPotentials(lattice, dimension=args.dimension, cutting_direction=args.cutting_direction)
    model = load_model(args)
    kpoints = load_kpoints(args, lattice)
    print(f'{len(kpoints)} k-points, {gpoints.ng} G vectors, nv={args.nv}, nc={args.nc}')

    engine = TransitionDensityEngine(model, kpoints, gpoints.gvectors, args.nv, args.nc, config)
    dielectric = DielectricFunction(engine, coulomb, config)
    hamiltonian = ExcitonicHamiltonian(engine, dielectric, coulomb, config)
    spectrum = BSESpectrum(hamiltonian, lattice.lat_vol, config)

    omegas = np.linspace(args.omega_min, args.omega_max, args.nomega)
    spectrum.write_dielectric_tensor(args.output, omegas)
    if args.exc_output is not None:
        spectrum.write_excitons(args.exc_output, args.exc_weights, args.nexc)
        print(f'Exciton energies written to {args.exc_output}')
    print(f'Dielectric tensor written to {args.output}, total time {time()-t0:.3f} s')
    return spectrum


if __name__ == '__main__':
    main()
