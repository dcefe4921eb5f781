import numpy as np
import pytest
from wannbse import CrystalLattice, GPointList, zero_gvector_index, HC
from toy_models import cubic_lattice


def hexagonal_lattice():
    a, c = 2.5, 15.0
    return CrystalLattice([[a, 0, 0], [-a/2, a*np.sqrt(3)/2, 0], [0, 0, c]])

def test_reciprocal_lattice():
    lat = hexagonal_lattice()
    assert np.allclose(lat.lat @ lat.rlat.T, 2*np.pi*np.identity(3))
    assert np.isclose(lat.lat_vol, 2.5**2*np.sqrt(3)/2*15.0)
    assert np.allclose(lat.alat, [2.5, 2.5, 15.0])
    k = np.array([[0.1, -0.2, 0.05], [0.3, 0.0, 0.1]])
    assert np.allclose(lat.red_car(lat.car_red(k)), k)

def test_lattice_from_file(tmp_path):
    path = tmp_path/'lattice.dat'
    np.savetxt(path, hexagonal_lattice().lat)
    lat = CrystalLattice.from_file(path)
    assert np.allclose(lat.lat, hexagonal_lattice().lat)

def test_lattice_errors():
    with pytest.raises(ValueError):
        CrystalLattice(np.identity(2))
    with pytest.raises(ValueError):
        CrystalLattice([[1, 0, 0], [2, 0, 0], [0, 0, 1]])

def test_gpoints_zero_cutoff():
    gpoints = GPointList(cubic_lattice(), 0.0)
    assert gpoints.ng == 1
    assert np.allclose(gpoints.gvectors, 0.0)
    assert gpoints.zero_index == 0

def test_gpoints_bulk():
    lattice = cubic_lattice()
    cutoff = 1.1*np.linalg.norm(lattice.rlat[0])*HC/1000
    gpoints = GPointList(lattice, cutoff)
    assert gpoints.ng == 27
    assert np.allclose(gpoints.gvectors[gpoints.zero_index], 0.0)
    assert gpoints.zero_index == zero_gvector_index(gpoints.gvectors)
    minus = gpoints.minus_index()
    assert np.allclose(gpoints.gvectors[minus], -gpoints.gvectors)
    assert sorted(minus) == list(range(gpoints.ng))

def test_gpoints_slab():
    lattice = hexagonal_lattice()
    cutoff = 1.1*np.linalg.norm(lattice.rlat[0])*HC/1000
    gpoints = GPointList(lattice, cutoff, dimension=2, cutting_direction=[1, 1, 0])
    assert gpoints.ng == 9
    assert np.all(gpoints.int_gvectors[:, 2] == 0)
    with pytest.raises(ValueError):
        GPointList(lattice, cutoff, dimension=2, cutting_direction=[1, 1, 1])

def test_gpoints_find():
    gpoints = GPointList(cubic_lattice(), 0.0)
    with pytest.raises(ValueError):
        gpoints.find([1.0, 0.0, 0.0])
    with pytest.raises(ValueError):
        zero_gvector_index(np.ones((2, 3)))
