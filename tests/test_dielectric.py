import numpy as np
from wannbse import HC
from toy_models import two_band_model, build_chain, Q0

ZERO = np.zeros(3)
CUTOFF = 1.1*2*np.pi/3*HC/1000


def rpa_reference(chain, omega, eta):
    """ 1 + v(Q) sum_t |rho_t|^2 F_t for a single G vector. """
    td = chain['engine'].pull_values(Q0, Q0, ZERO)
    rho = td.cv()[0, ..., 0].reshape(-1)
    de = -td.energies_cv().reshape(-1)
    factor = 1.0/(omega + de + 1j*eta) - 1.0/(omega - de - 1j*eta)
    return 1.0 + chain['cpot'](Q0)*np.sum(np.abs(rho)**2*factor)

def test_rpa_single_g():
    chain = build_chain(two_band_model(), prefactor=1.0)
    epsinv = chain['dielectric'].pull_values(Q0, 0.5, 0.1)
    ref = rpa_reference(chain, 0.5, 0.1)
    assert epsinv.shape == (1, 1)
    assert abs(ref - 1.0) > 1e-6
    assert np.isclose(epsinv[0, 0] - 1.0, ref - 1.0, rtol=1e-8)

def test_static_screening():
    chain = build_chain(two_band_model(), prefactor=0.1)
    epsinv = chain['dielectric'].pull_values(Q0, 0.0, 0.0)
    assert np.isclose(epsinv[0, 0].imag, 0.0)
    assert 0.0 < epsinv[0, 0].real < 1.0

def test_zero_kernel_gives_identity():
    chain = build_chain(two_band_model(), cutoff=CUTOFF, prefactor=0.0)
    ng = chain['gpoints'].ng
    assert np.allclose(chain['dielectric'].pull_values(Q0, 0.3, 0.1), np.identity(ng))
    assert np.allclose(chain['dielectric'].pull_values_ppa(Q0, 0.3, 0.1, 27.0), np.identity(ng))

def test_no_screening():
    chain = build_chain(two_band_model(), cutoff=CUTOFF, prefactor=1.0, screening=False)
    assert np.array_equal(chain['dielectric'].inverse(Q0), np.identity(chain['gpoints'].ng))

def test_inverse_is_repeatable():
    chain = build_chain(two_band_model(), cutoff=CUTOFF)
    dielectric = chain['dielectric']
    assert np.array_equal(dielectric.inverse(Q0), dielectric.inverse(Q0))
    assert dielectric.inverse(Q0).shape == (27, 27)

def test_ppa_matches_rpa_at_fitting_frequencies():
    chain = build_chain(two_band_model(), prefactor=1.0, ppa=20.0, eta=0.0)
    dielectric = chain['dielectric']
    for omega in (0.0, 20.0j):
        assert np.allclose(dielectric.pull_values_ppa(Q0, omega, 0.0, 20.0), dielectric.pull_values(Q0, omega, 0.0))
    assert np.allclose(dielectric.inverse(Q0, 0.0, 0.0), dielectric.pull_values(Q0, 0.0, 0.0))

def test_macroscopic_value(tmp_path):
    chain = build_chain(two_band_model(), prefactor=0.1)
    omegas = np.linspace(0.0, 15.0, 6)
    path = tmp_path/'eps_rpa.dat'
    values = chain['dielectric'].write_macroscopic_value(path, omegas, eta=0.1)
    assert values.shape == (6,)
    data = np.loadtxt(path)
    assert data.shape == (6, 4)
    assert np.allclose(data[:, 0], np.arange(6))
    assert np.allclose(data[:, 1], omegas)
    assert np.allclose(data[:, 2] + 1j*data[:, 3], values)
    # single G: the macroscopic function is the inverse of eps^-1
    assert np.isclose(values[0], 1.0/rpa_reference(chain, 0.0, 0.1))
