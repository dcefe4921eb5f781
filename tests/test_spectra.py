import matplotlib
matplotlib.use('Agg')
import numpy as np
import pytest
from wannbse import (BSESpectrum, oscillator_strengths, sum_rule, solve_exciton, read_dielectric_tensor,
                     write_dielectric_tensor, TENSOR_HEADER, read_exciton_energies,
                     write_exciton_weights, EXCITON_HEADER, WEIGHTS_HEADER)
from toy_models import three_band_model, spin_model, build_chain, Q0


def load_spectrum(model=None, **kwargs):
    model = three_band_model() if model is None else model
    kwargs.setdefault('nv', 1)
    kwargs.setdefault('nc', 2)
    chain = build_chain(model, kgrid=(1, 1, 1), tamm_dancoff=True, **kwargs)
    return chain, BSESpectrum(chain['h2p'], chain['lattice'].lat_vol)

def test_sum_rule():
    chain, spectrum = load_spectrum()
    energies, vectors, rho_cv = solve_exciton(chain['h2p'], Q0)
    strengths = oscillator_strengths(vectors, rho_cv, spectrum.g0)
    assert strengths.shape == (2,)
    norm = np.sum(np.abs(rho_cv[:, spectrum.g0])**2)
    assert norm > 0
    assert np.isclose(sum_rule(strengths), norm, rtol=1e-4, atol=0.0)
    assert sum_rule(strengths) <= 2*norm

def test_spin_flip_sectors_are_dark():
    chain = build_chain(spin_model(), kgrid=(1, 1, 1), tamm_dancoff=True)
    h2p = chain['h2p']
    energies, vectors, rho_cv = solve_exciton(h2p, Q0)
    strengths = oscillator_strengths(vectors, rho_cv, 0, nspin=2, nsectors=4)
    d = h2p.dim
    flip = np.abs(vectors[d:3*d]).sum(axis=0) > 0.5
    assert np.any(flip)
    assert np.allclose(strengths[flip], 0.0)
    assert np.all(np.abs(strengths[~flip]) > 0)

def test_dielectric_tensor():
    chain, spectrum = load_spectrum()
    omegas = np.linspace(0.0, 1000.0, 11)
    eps = spectrum.dielectric_tensor(omegas)
    assert eps.shape == (11, 3, 3)
    # far above the resonances the tensor goes back to the identity
    assert np.allclose(eps[-1], np.identity(3), atol=1e-2)
    # absorption peaks have positive imaginary part along the diagonal
    energies = spectrum.exc_energies.real
    peak = spectrum.dielectric_tensor(np.array([energies[0], energies[1]]))
    assert np.all(peak[:, 0, 0].imag >= 0)
    assert np.any(peak[:, 0, 0].imag > 0)

def test_write_dielectric_tensor(tmp_path):
    chain, spectrum = load_spectrum()
    omegas = np.linspace(0.0, 20.0, 5)
    path = tmp_path/'eps.dat'
    eps = spectrum.write_dielectric_tensor(path, omegas)
    lines = path.read_text().splitlines()
    assert lines[0] == TENSOR_HEADER
    assert len(lines) == 6
    assert all(len(line.split()) == 19 for line in lines[1:])
    w, eps_read = read_dielectric_tensor(path)
    assert np.allclose(w, omegas)
    assert np.allclose(eps_read, eps, rtol=1e-10)

def test_write_bad_shape(tmp_path):
    with pytest.raises(ValueError):
        write_dielectric_tensor(tmp_path/'eps.dat', np.zeros(3), np.zeros((3, 2, 3)))

def test_plot():
    chain, spectrum = load_spectrum()
    omegas = np.linspace(0.0, 20.0, 50)
    spectrum.dielectric_tensor(omegas)
    fig, ax = spectrum.plot_dielectric_tensor(components=('xx', 'yy'))
    assert len(ax.lines) == 2
    assert np.allclose(ax.lines[0].get_xdata(), omegas)
    assert np.allclose(ax.lines[1].get_ydata(), spectrum.eps[:, 1, 1].imag)

def test_write_excitons(tmp_path):
    chain, spectrum = load_spectrum()
    with pytest.raises(ValueError):
        spectrum.write_excitons(tmp_path/'exc.dat')
    spectrum.dielectric_tensor(np.linspace(0.0, 20.0, 5))
    spectrum.write_excitons(tmp_path/'exc.dat', tmp_path/'weights.dat')
    assert (tmp_path/'exc.dat').read_text().splitlines()[0] == EXCITON_HEADER
    energies, f2 = read_exciton_energies(tmp_path/'exc.dat')
    assert np.allclose(energies, spectrum.exc_energies, atol=1e-10)
    assert np.allclose(f2, np.abs(spectrum.exc_strengths)**2)
    weights = np.loadtxt(tmp_path/'weights.dat', comments='#', ndmin=2)
    assert weights.shape == (4, 6)
    # nv=1, nc=2, nk=1: columns exciton, sector, c, v, k, |X|^2
    assert np.allclose(weights[:, 0], [1, 1, 2, 2])
    assert np.allclose(weights[:, 2], [0, 1, 0, 1])
    for l in (1, 2):
        assert np.isclose(weights[weights[:, 0] == l, 5].sum(), 1.0)

def test_exciton_weights_layout(tmp_path):
    # two sectors, nc=1, nv=2, nk=2: a single exciton sitting on t = 1*4 + (0*2 + 1)*2 + 0
    vectors = np.zeros((8, 1))
    vectors[6, 0] = 1.0
    path = tmp_path/'weights.dat'
    write_exciton_weights(path, vectors, nv=2, nc=1, nk=2, threshold=0.5)
    lines = path.read_text().splitlines()
    assert lines[0] == WEIGHTS_HEADER
    assert np.allclose(np.loadtxt(path, comments='#'), [1, 1, 0, 1, 0, 1.0])
    with pytest.raises(ValueError):
        write_exciton_weights(path, np.zeros((5, 1)), nv=2, nc=1, nk=2)
