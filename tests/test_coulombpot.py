import numpy as np
import pytest
from wannbse import CrystalLattice, CoulombPotentials, COULOMB_PREFACTOR
from toy_models import cubic_lattice


def slab_lattice():
    return CrystalLattice([[3.0, 0, 0], [0, 3.0, 0], [0, 0, 20.0]])

def test_v3d():
    cpot = CoulombPotentials(cubic_lattice(), dimension=3)
    q = np.array([[0.0, 0.0, 0.0], [1e-8, 0.0, 0.0], [0.5, 0.0, 0.0], [0.0, 0.3, 0.4]])
    v = cpot(q)
    assert v[0] == 0.0 and v[1] == 0.0
    assert np.isclose(v[2], COULOMB_PREFACTOR*4*np.pi/0.25)
    assert np.isclose(v[3], COULOMB_PREFACTOR*4*np.pi/0.25)
    assert np.isclose(cpot(np.array([0.5, 0.0, 0.0])), v[2])

def test_v2dt():
    cpot = CoulombPotentials(slab_lattice(), dimension=2, cutting_direction=[1, 1, 0], prefactor=1.0)
    assert np.allclose(cpot.normal, [0, 0, 1])
    assert np.isclose(cpot.rc, 10.0)
    q = np.array([[0.0, 0.0, 0.0], [0.2, 0.0, 0.0], [0.2, 0.0, 0.1], [0.0, 0.0, 0.1]])
    v = cpot(q)
    assert v[0] == 0.0
    qpar, rc = 0.2, 10.0
    assert np.isclose(v[1], 4*np.pi/qpar**2*(1.0 - np.exp(-qpar*rc)))
    qz = 0.1
    ref = 4*np.pi/(qpar**2 + qz**2)*(1.0 + np.exp(-qpar*rc)*(qz/qpar*np.sin(qz*rc) - np.cos(qz*rc)))
    assert np.isclose(v[2], ref)
    ref = 4*np.pi/qz**2*(1.0 - np.cos(qz*rc) - qz*rc*np.sin(qz*rc))
    assert np.isclose(v[3], ref)
    assert np.all(np.isfinite(v))

def test_errors():
    with pytest.raises(ValueError):
        CoulombPotentials(cubic_lattice(), dimension=1)
    with pytest.raises(ValueError):
        CoulombPotentials(slab_lattice(), dimension=2, cutting_direction=[1, 1, 1])

def test_write_profile(tmp_path):
    cpot = CoulombPotentials(cubic_lattice())
    path = tmp_path/'vq.dat'
    cpot.write_profile(path, 10, 1.0, direction=1)
    data = np.loadtxt(path)
    assert data.shape == (10, 3)
    assert np.allclose(data[:, 1], np.arange(10)/10)
    assert data[0, 2] == 0.0
    assert np.allclose(data[1:, 2], COULOMB_PREFACTOR*4*np.pi/data[1:, 1]**2, rtol=1e-10)
