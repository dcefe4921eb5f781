import numpy as np
from time import time
from .wann_lattice import zero_gvector_index
from .wann_io import write_macroscopic_dielectric


class DielectricFunction():
    '''
    Static and dynamic inverse dielectric matrix eps^-1_{GG'}(Q, omega) in the
    random phase approximation, with an optional plasmon-pole model.

    Parameters:
        engine: TransitionDensityEngine
        coulomb: bare Coulomb kernel, called on an (N,3) array of momenta
        config: BSEConfig
    '''
    def __init__(self, engine, coulomb, config):
        self.engine = engine
        self.coulomb = coulomb
        self.config = config
        self.gvectors = engine.gvectors
        self.ng = engine.ng
        self.g0 = zero_gvector_index(self.gvectors)

    def pull_values(self, momentum, omega, eta):
        """
        eps^-1_{GG'} = delta_{GG'} + v(Q+G) sum_t conj(rho_t(G)) rho_t(G') F_t(omega)
        F_t = 1/(omega+dE_t+i eta) - 1/(omega-dE_t-i eta), dE_t = e_v - e_c
        """
        momentum = np.asarray(momentum, dtype=np.float64)
        td = self.engine.pull_values(momentum, momentum, np.zeros(3), diagonal=True)
        rho = td.flat(td.cv())
        de = -np.stack([td.energies_cv(sc=s, sv=s) for s in range(td.nspin)]).reshape(-1)
        factor = 1.0/(omega + de + 1j*eta) - 1.0/(omega - de - 1j*eta)
        vq = self.coulomb(self.gvectors + momentum)
        epsinv = vq[:, np.newaxis]*(rho.conj().T @ (rho*factor[:, np.newaxis]))
        epsinv[np.diag_indices(self.ng)] += 1.0
        return epsinv

    def pull_values_ppa(self, momentum, omega, eta, ppa, tol=1e-14):
        """
        Godby-Needs plasmon-pole model of X = eps^-1 - 1 fitted on omega = 0 and
        on the imaginary frequency i*ppa:
            Omega = ppa sqrt(X_P/(X_0-X_P)),  R = -X_0 Omega/2
            eps^-1 = delta + R (1/(omega-Omega+i eta) - 1/(omega+Omega-i eta))
        With eta = 0 the model reproduces X_0 and X_P at the two fitting frequencies.
        Matrix elements without any frequency dependence carry no pole.
        """
        identity = np.identity(self.ng)
        x_0 = self.pull_values(momentum, 0.0, eta) - identity
        x_p = self.pull_values(momentum, 1j*ppa, eta) - identity
        diff = x_0 - x_p
        active = np.abs(diff) > tol
        ratio = np.divide(x_p, diff, out=np.zeros_like(x_p), where=active)
        ogg = ppa*np.sqrt(ratio)
        active &= np.abs(ogg) > tol
        rgg = -x_0*ogg/2
        safe_ogg = np.where(active, ogg, 1.0)
        poles = 1.0/(omega - safe_ogg + 1j*eta) - 1.0/(omega + safe_ogg - 1j*eta)
        epsinv = np.where(active, rgg*poles, 0.0)
        epsinv[np.diag_indices(self.ng)] += 1.0
        return epsinv

    def inverse(self, momentum, omega=0.0, eta=None):
        """ Inverse dielectric matrix used to screen the BSE kernel. """
        if not self.config.screening:
            return np.identity(self.ng, dtype=np.complex128)
        eta = self.config.eta if eta is None else eta
        if self.config.ppa is not None:
            return self.pull_values_ppa(momentum, omega, eta, self.config.ppa)
        return self.pull_values(momentum, omega, eta)

    def pull_macroscopic_value(self, omegas, eta=None):
        """ [eps^-1(q0, omega)]^-1 at G = G' = 0 with q0 = (q_min, 0, 0), one value per frequency. """
        t0 = time()
        eta = self.config.eta if eta is None else eta
        q0 = np.array([self.config.q_min, 0.0, 0.0])
        values = np.zeros(len(omegas), dtype=np.complex128)
        for i, w in enumerate(omegas):
            values[i] = np.linalg.inv(self.pull_values(q0, w, eta))[self.g0, self.g0]
        print(f'Macroscopic dielectric function on {len(omegas)} frequencies in {time()-t0:.3f} s')
        return values

    def write_macroscopic_value(self, filename, omegas, eta=None):
        values = self.pull_macroscopic_value(omegas, eta)
        write_macroscopic_dielectric(filename, omegas, values)
        return values
