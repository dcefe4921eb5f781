import numpy as np
from scipy.spatial import cKDTree


class tb_Monkhorst_Pack():
    '''
    Regular grid of k-points spanning the reciprocal cell.
    `k` holds the Cartesian points (1/Angstrom), which is what the BSE engine consumes.
    '''
    def __init__(self, grid_shape, lattice, shift=np.array([0.0,0.0,0.0])):
        self.grid_shape = grid_shape
        self.lattice = lattice
        self.rlat = lattice.rlat
        self.shift = np.array(shift, dtype=np.float64)
        self.k = None
        self.nkpoints = None
        self.red_kpoints = None
        self.car_kpoints = None
        self.k_tree = None

    def generate(self):
        NGX, NGY, NGZ = self.grid_shape
        n1 = np.arange(NGX)
        n2 = np.arange(NGY)
        n3 = np.arange(NGZ)
        n1, n2, n3 = np.meshgrid(n1, n2, n3, indexing='ij')
        red_points = np.stack([n1/NGX, n2/NGY, n3/NGZ], axis=-1).reshape(-1, 3) + self.shift
        self.red_kpoints = red_points
        self.car_kpoints = red_points @ self.rlat
        self.k = self.car_kpoints
        self.nkpoints = len(self.k)
        self.k_tree = cKDTree(self.k)
        return self.k

    def find_closest_kpoint(self, points):
        if self.k_tree is None:
            raise ValueError("k-points have not been generated.")
        distances, indices = self.k_tree.query(points)
        return indices

    def export(self, filename):
        """Export the Cartesian k-points to a file."""
        np.savetxt(filename, self.car_kpoints, header="k-points (1/Angstrom)")
