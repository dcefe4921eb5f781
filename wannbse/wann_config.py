"""
Run parameters of a BSE calculation.

Only dataclasses and light validation live here, the physics is computed elsewhere.
Energies are in eV and momenta in 1/Angstrom.
"""
from dataclasses import dataclass, asdict, replace as dc_replace
from typing import Any, Dict, Optional
import json

from .wann_utils import MINVAL

SOLVER_NAMES = ("direct", "cholesky")


@dataclass(frozen=True)
class BSEConfig:
    """
    Immutable set of switches shared by the BSE components.

    spin_polarized : collinear spin, four exciton spin sectors instead of one
    screening      : use the RPA inverse dielectric matrix, identity otherwise
    tamm_dancoff   : drop the resonant/anti-resonant coupling block
    eta            : broadening of the dielectric response and of the Cholesky
                     eigenvector rescaling
    lorentzian     : broadening of the excitonic dielectric tensor
    ppa            : imaginary probe frequency of the plasmon-pole model,
                     None means static RPA
    q_min          : length of the small momenta probing the optical limit
    solver         : 'direct' or 'cholesky'
    fallback       : retry with the direct solver if the Cholesky factorization fails
    n_threads      : BLAS threads used around the diagonalization, None leaves them as is
    """
    spin_polarized: bool = False
    screening: bool = True
    tamm_dancoff: bool = False
    eta: float = 1.0e-3
    lorentzian: float = 1.0e-1
    ppa: Optional[float] = None
    q_min: float = MINVAL
    solver: str = 'direct'
    fallback: bool = True
    n_threads: Optional[int] = None

    def __post_init__(self):
        if self.eta < 0:
            raise ValueError(f"eta must be non-negative, got {self.eta}")
        if self.lorentzian < 0:
            raise ValueError(f"lorentzian must be non-negative, got {self.lorentzian}")
        if self.q_min <= 0:
            raise ValueError(f"q_min must be positive, got {self.q_min}")
        if self.ppa is not None and self.ppa <= 0:
            raise ValueError(f"ppa probe frequency must be positive, got {self.ppa}")
        if self.solver not in SOLVER_NAMES:
            raise ValueError(f"Unknown solver '{self.solver}'. Choose one of {SOLVER_NAMES}")
        if self.n_threads is not None and self.n_threads < 1:
            raise ValueError(f"n_threads must be a positive integer, got {self.n_threads}")

    @property
    def nspin(self) -> int:
        return 2 if self.spin_polarized else 1

    @property
    def nsectors(self) -> int:
        return 4 if self.spin_polarized else 1

    @property
    def spin_degeneracy(self) -> int:
        return 1 if self.spin_polarized else 2

    def replace(self, **changes) -> "BSEConfig":
        return dc_replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def to_json(self, path: str) -> None:
        with open(path, "w") as f:
            json.dump(self.to_dict(), f, indent=2, sort_keys=True)

    @classmethod
    def from_json(cls, path: str) -> "BSEConfig":
        with open(path, "r") as f:
            data = json.load(f)
        unknown = set(data) - set(cls.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")
        return cls(**data)
