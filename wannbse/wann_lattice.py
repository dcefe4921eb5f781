import numpy as np
from scipy.spatial import cKDTree
from .wann_utils import HC


class CrystalLattice():
    '''
    Direct and reciprocal lattice of the crystal.
    The rows of `lat` are the lattice vectors in Angstrom, the rows of `rlat`
    are the reciprocal vectors in 1/Angstrom (a_i.b_j = 2 pi delta_ij).
    '''
    def __init__(self, lat):
        self.lat = np.array(lat, dtype=np.float64)
        if self.lat.shape != (3,3):
            raise ValueError(f"The lattice must be a 3x3 matrix, got shape {self.lat.shape}.")
        self.lat_vol = abs(np.linalg.det(self.lat))
        if self.lat_vol < 1e-12:
            raise ValueError("The lattice vectors are linearly dependent.")
        self.rlat = 2*np.pi*np.linalg.inv(self.lat).T
        self.alat = np.linalg.norm(self.lat, axis=1)

    @classmethod
    def from_file(cls, filename):
        """ Read a 3x3 table, one lattice vector (Angstrom) per row. """
        return cls(np.loadtxt(filename, dtype=np.float64, ndmin=2))

    def car_red(self, k):
        """ Cartesian (1/Angstrom) to reduced coordinates, in units of rlat. """
        return np.asarray(k) @ self.lat.T/(2*np.pi)

    def red_car(self, k):
        return np.asarray(k) @ self.rlat

    def __str__(self):
        lines = ['lattice (Angstrom):']
        lines += ['  '+' '.join(f'{x:12.6f}' for x in row) for row in self.lat]
        lines += [f'volume: {self.lat_vol:.6f} Angstrom^3']
        return '\n'.join(lines)


class GPointList():
    '''
    Reciprocal lattice vectors inside a cutoff.

    The maximum momentum is cutoff*1000/HC and along each periodic direction i
    the integer coefficient runs over -n_i..n_i with n_i = int(Gmax/|b_i|).
    For slabs (dimension=2) the direction with cutting_direction[i] == 0 is not
    sampled. A zero cutoff keeps only G = 0.
    '''
    def __init__(self, lattice, cutoff, dimension=3, cutting_direction=(1,1,1), tol=1e-8):
        if dimension not in (2, 3):
            raise ValueError(f"dimension must be 2 or 3, got {dimension}")
        self.lattice = lattice
        self.cutoff = cutoff
        self.dimension = dimension
        self.cutting_direction = np.array(cutting_direction, dtype=int)
        self.tol = tol
        if dimension == 2 and np.count_nonzero(self.cutting_direction == 0) != 1:
            raise ValueError("A slab needs exactly one non-periodic direction in cutting_direction.")
        self.generate()

    def generate(self):
        if self.cutoff == 0:
            nmax = np.zeros(3, dtype=int)
        else:
            max_g = self.cutoff*1000/HC
            periodic = self.cutting_direction != 0 if self.dimension == 2 else np.ones(3, dtype=bool)
            nmax = np.array([int(max_g/np.linalg.norm(b)) if periodic[i] else 0
                             for i, b in enumerate(self.lattice.rlat)], dtype=int)
        n1, n2, n3 = np.meshgrid(*[np.arange(-n, n+1) for n in nmax], indexing='ij')
        self.nmax = nmax
        self.int_gvectors = np.stack([n1, n2, n3], axis=-1).reshape(-1, 3)
        self.gvectors = self.int_gvectors @ self.lattice.rlat
        self.ng = len(self.gvectors)
        self.g_tree = cKDTree(self.gvectors)
        self.zero_index = self.find(np.zeros(3))

    def find(self, g):
        """ Index of the G vector closest to `g`, ValueError if none is within tolerance. """
        dist, idx = self.g_tree.query(np.asarray(g, dtype=np.float64))
        if np.any(dist > self.tol):
            raise ValueError(f"G vector {g} is not in the list.")
        return idx

    def minus_index(self):
        """ Index of -G for every G in the list. """
        return self.find(-self.gvectors)


def zero_gvector_index(gvectors, tol=1e-8):
    """ Index of G = 0 in a list of G vectors. """
    norms = np.linalg.norm(np.asarray(gvectors).reshape(-1, 3), axis=1)
    idx = int(np.argmin(norms))
    if norms[idx] > tol:
        raise ValueError("The G vector list does not contain G = 0.")
    return idx
