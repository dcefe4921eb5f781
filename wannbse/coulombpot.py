import numpy as np
from .wann_utils import COULOMB_PREFACTOR


class CoulombPotentials:
    '''
    Bare Coulomb kernel v(q) for bulk (dimension=3) and slab truncated (dimension=2) systems.
    Momenta in 1/Angstrom, values in eV.
    Example usage
        cpot = CoulombPotentials(lattice, dimension=2, cutting_direction=[1,1,0])
        v = cpot(qpoints)      # qpoints with shape (3,) or (N,3)
    '''
    pi = np.pi

    def __init__(self, lattice, dimension=3, cutting_direction=(1,1,0), min_modulus=1.0e-14,
                 prefactor=COULOMB_PREFACTOR, tolr=1.0e-8):
        print('''Warning! CoulombPotentials works with lattice in angstrom and kpoints in 1/angstroms.
              ''')
        if dimension not in (2, 3):
            raise ValueError(f"dimension must be 2 or 3, got {dimension}")
        self.lattice = lattice
        self.dimension = dimension
        self.cutting_direction = np.array(cutting_direction, dtype=int)
        self.min_modulus = min_modulus
        self.prefactor = prefactor
        self.tolr = tolr
        self.dir_vol = lattice.lat_vol
        if dimension == 2:
            cut = np.where(self.cutting_direction == 0)[0]
            if len(cut) != 1:
                raise ValueError("The truncated potential needs exactly one non-periodic direction.")
            bcut = lattice.rlat[cut[0]]
            # normal to the periodic plane and half height of the cell along it
            self.normal = bcut/np.linalg.norm(bcut)
            self.rc = 0.5*abs(np.dot(lattice.lat[cut[0]], self.normal))

    def __call__(self, q):
        q = np.asarray(q, dtype=np.float64)
        single = q.ndim == 1
        q = np.atleast_2d(q)
        if self.dimension == 3:
            v = self.v3d(q)
        else:
            v = self.v2dt(q)
        return v[0] if single else v

    def v3d(self, q):
        modk2 = np.sum(q**2, axis=-1)
        safe_modk2 = np.where(modk2 < self.min_modulus, np.inf, modk2)
        return np.where(modk2 < self.min_modulus, 0.0, self.prefactor*4*self.pi/safe_modk2)

    def v2dt(self, q):
        modk2 = np.sum(q**2, axis=-1)
        gz = np.abs(q @ self.normal)
        gpar = np.linalg.norm(q - np.outer(q @ self.normal, self.normal), axis=-1)
        rc = self.rc

        safe_modk2 = np.where(modk2 < self.min_modulus, np.inf, modk2)
        safe_gpar = np.where(gpar < self.tolr, 1.0, gpar)

        mask0 = modk2 < self.min_modulus
        mask1 = gpar < self.tolr

        aux1 = gz/safe_gpar
        aux2 = gpar*rc
        aux3 = gz*rc
        v2dt = np.where(mask1,
            (self.prefactor*4*self.pi/safe_modk2)*(1.0 - np.cos(aux3) - aux3*np.sin(aux3)),
            (self.prefactor*4*self.pi/safe_modk2)*(1.0 + np.exp(-aux2)*(aux1*np.sin(aux3) - np.cos(aux3))))
        return np.where(mask0, 0.0, v2dt)

    def write_profile(self, filename, nq, qmax, direction=0):
        """ Write `i q v(q)` lines for nq momenta along one Cartesian axis. """
        qpoints = np.zeros((nq, 3))
        qpoints[:, direction] = np.arange(nq)/nq*qmax
        values = self(qpoints)
        with open(filename, 'w') as f_out:
            for i in range(nq):
                f_out.write(f'{i} {qpoints[i, direction]:.12e} {values[i]:.12e}\n')
