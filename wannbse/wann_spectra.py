import numpy as np
import matplotlib.pyplot as plt
from time import time
from .wann_solvers import solve_exciton
from .wann_lattice import zero_gvector_index
from .wann_io import write_dielectric_tensor, write_exciton_energies, write_exciton_weights

CARTESIAN = {'x': 0, 'y': 1, 'z': 2}


def oscillator_strengths(vectors, rho_cv, g0, nspin=1, nsectors=1):
    """
    f_l = sum_t conj(rho_cv[t, G=0]) X[t, l]

    With four spin sectors the density of spin s pairs with the sector (s, s),
    spin-flip sectors carry no oscillator strength.
    """
    dim = rho_cv.shape[0]//nspin
    rho0 = rho_cv[:, g0].reshape(nspin, dim)
    strengths = np.zeros(vectors.shape[1], dtype=np.complex128)
    for s in range(nspin):
        sector = 3*s if nsectors == 4 else 0
        strengths += rho0[s].conj() @ vectors[sector*dim:(sector+1)*dim]
    return strengths

def sum_rule(strengths):
    return np.sum(np.abs(strengths)**2)


class BSESpectrum():
    '''
    Macroscopic dielectric tensor from the BSE eigenstates

        eps_ij(w) = delta_ij - 8 pi/(q^2 V) sum_l f_l^(i) conj(f_l^(j)) / (w - E_l + i Gamma)

    probed with three small momenta q e_i. The eigenstates of the probe along i
    are used for the whole row i, the strengths f^(j) combine them with the
    density computed along j.
    '''
    def __init__(self, hamiltonian_builder, volume, config=None):
        self.builder = hamiltonian_builder
        self.config = hamiltonian_builder.config if config is None else config
        self.volume = volume
        self.g0 = zero_gvector_index(hamiltonian_builder.gvectors)

    def probe(self, direction):
        q = np.zeros(3)
        q[direction] = self.config.q_min
        return solve_exciton(self.builder, q, self.config)

    def dielectric_tensor(self, omegas):
        t0 = time()
        omegas = np.asarray(omegas)
        nspin, nsectors = self.builder.nspin, self.builder.nsectors
        probes = [self.probe(i) for i in range(3)]
        factor = 8*np.pi/(self.config.q_min**2*self.volume)
        eps = np.zeros((len(omegas), 3, 3), dtype=np.complex128)
        strengths = []
        for i in range(3):
            energies, vectors, rho_i = probes[i]
            f_i = oscillator_strengths(vectors, rho_i, self.g0, nspin, nsectors)
            strengths.append(f_i)
            denominator = omegas[:, np.newaxis] - energies[np.newaxis, :] + 1j*self.config.lorentzian
            for j in range(3):
                f_j = f_i if i == j else oscillator_strengths(vectors, probes[j][2], self.g0, nspin, nsectors)
                eps[:, i, j] = float(i == j) - factor*np.sum(f_i*f_j.conj()/denominator, axis=1)
        self.omegas = omegas
        self.eps = eps
        self.exc_energies = probes[0][0]
        self.exc_vectors = probes[0][1]
        self.exc_strengths = strengths[0]
        print('Excitonic ground state: ', np.min(np.real(probes[0][0])), ' [eV]')
        print(f'Dielectric tensor on {len(omegas)} frequencies in {time()-t0:.3f} s')
        return eps

    def write_dielectric_tensor(self, filename, omegas):
        eps = self.dielectric_tensor(omegas)
        write_dielectric_tensor(filename, omegas, eps)
        return eps

    def write_excitons(self, filename, weights_filename=None, nexc=None):
        """
        Write the exciton energies and oscillator strengths of the probe along x
        and, optionally, the transition weights of the first nexc excitons.
        Call dielectric_tensor first.
        """
        if not hasattr(self, 'exc_energies'):
            raise ValueError('No excitons available, call dielectric_tensor first.')
        write_exciton_energies(filename, self.exc_energies, self.exc_strengths)
        if weights_filename is not None:
            b = self.builder
            write_exciton_weights(weights_filename, self.exc_vectors, b.nv, b.nc, b.nk, nexc)

    def plot_dielectric_tensor(self, omegas=None, eps=None, components=('xx',), ax=None):
        """ Plot Im eps_ij(w) of the requested components, e.g. ('xx', 'yy'). """
        omegas = self.omegas if omegas is None else omegas
        eps = self.eps if eps is None else eps
        if ax is None:
            fig, ax = plt.subplots()
        else:
            fig = ax.figure
        for comp in components:
            i, j = CARTESIAN[comp[0]], CARTESIAN[comp[1]]
            ax.plot(np.real(omegas), eps[:, i, j].imag, label=rf'Im $\epsilon_{{{comp}}}$')
        ax.set_xlabel('Energy [eV]')
        ax.set_ylabel(r'Im $\epsilon(\omega)$')
        ax.legend()
        return fig, ax
