import numpy as np
from time import time

# exciton spin sectors as (valence spin, conduction spin)
SECTORS = ((0, 0), (0, 1), (1, 0), (1, 1))


def swapped_sector(sector):
    """ Sector with valence and conduction spins exchanged: 0->0, 1->2, 2->1, 3->3. """
    sv, sc = SECTORS[sector]
    return SECTORS.index((sc, sv))

def pair_transpose(nk):
    """ perm[k1*nk+k2] = k2*nk+k1 """
    k1, k2 = np.indices((nk, nk))
    return (k2*nk + k1).reshape(-1)

def screened_exchange_index_map(nc, nv, nk, nspin=1, sc=0, sv=0):
    """
    Positions in the flattened pair-resolved kernel

        T[sc', ca, cb, sv', va, vb, p],  shape (nspin, nc, nc, nspin, nv, nv, nk*nk)

    of the screened exchange of one spin sector:

        w[(c1,v1,k1), (c2,v2,k2)] = T[sc, c2, c1, sv, v2, v1, k2*nk+k1]

    Returns an integer array of shape (D, D), D = nc*nv*nk, rows and columns
    ordered as (c*nv + v)*nk + k.
    """
    dim = nc*nv*nk
    c1, v1, k1, c2, v2, k2 = np.indices((nc, nv, nk, nc, nv, nk))
    index = np.ravel_multi_index(
        (np.full_like(c1, sc), c2, c1, np.full_like(c1, sv), v2, v1, k2*nk + k1),
        (nspin, nc, nc, nspin, nv, nv, nk*nk))
    return index.reshape(dim, dim)

def coupling_index_map(nc, nv, nk, nspin=1, sc=0, sv=0):
    """
    Positions in the flattened pair-resolved coupling kernel

        T'[sc', c, v, sv', c', v', p],  shape (nspin, nc, nv, nspin, nc, nv, nk*nk)

    where p = k1*nk+k2 labels the cv density and the vc density is taken at the
    transposed pair k2*nk+k1, of the coupling exchange of the sector (sv, sc):

        w_c[(c1,v1,k1), (c2,v2,k2)] = T'[sc, c1, v2, sv, c2, v1, k1*nk+k2]
    """
    dim = nc*nv*nk
    c1, v1, k1, c2, v2, k2 = np.indices((nc, nv, nk, nc, nv, nk))
    index = np.ravel_multi_index(
        (np.full_like(c1, sc), c1, v2, np.full_like(c1, sv), c2, v1, k1*nk + k2),
        (nspin, nc, nv, nspin, nc, nv, nk*nk))
    return index.reshape(dim, dim)


class ExcitonicHamiltonian():
    '''
    Bethe-Salpeter Hamiltonian in the basis of (spin sector, c, v, k) transitions.

        A = deg*v - w + diag(e_c - e_v)       resonant block
        B = deg*v_c - w_c                      coupling block (zero in Tamm-Dancoff)

    combined layout:  [[A, B], [-B*, -A*]]
    separated layout: [[A, B], [ B*,  A*]]

    Parameters:
        engine: TransitionDensityEngine
        dielectric: DielectricFunction
        coulomb: bare Coulomb kernel
        config: BSEConfig
    '''
    def __init__(self, engine, dielectric, coulomb, config):
        self.engine = engine
        self.dielectric = dielectric
        self.coulomb = coulomb
        self.config = config
        self.nv = engine.nv
        self.nc = engine.nc
        self.nk = engine.nk
        self.ng = engine.ng
        self.nspin = engine.nspin
        self.gvectors = engine.gvectors
        self.sectors = SECTORS if config.spin_polarized else SECTORS[:1]
        self.nsectors = len(self.sectors)
        self.dim = self.nk*self.nv*self.nc
        self.dimbse = self.nsectors*self.dim
        self.deg = config.spin_degeneracy
        self.w_index = [screened_exchange_index_map(self.nc, self.nv, self.nk, self.nspin, sc, sv)
                        for sv, sc in self.sectors]
        self.wc_index = [coupling_index_map(self.nc, self.nv, self.nk, self.nspin, sc, sv)
                         for sv, sc in self.sectors]
        self.ktranspose = pair_transpose(self.nk)

    def _block(self, sector):
        return slice(sector*self.dim, (sector+1)*self.dim)

    def _same_spin_sector(self, s):
        return self.sectors.index((s, s))

    def screened_potential(self, momentum, eta=None):
        """ W[G,G'] = eps^-1[G,G'] v(-(Q+G')) and the bare v(G). """
        epsinv = self.dielectric.inverse(momentum, 0.0, eta)
        vqg = epsinv*self.coulomb(-(momentum + self.gvectors))[np.newaxis, :]
        vg = self.coulomb(self.gvectors)
        return vqg, vg

    def direct_term(self, rho_left, rho_right, vg):
        """
        Exchange-like term conj(rho_left) v(G) rho_right^T between equal-spin sectors.
        rho_left, rho_right: (nspin, D, Ng)
        """
        v = np.zeros((self.dimbse, self.dimbse), dtype=np.complex128)
        for i in range(self.nspin):
            bi = self._block(self._same_spin_sector(i))
            for j in range(self.nspin):
                bj = self._block(self._same_spin_sector(j))
                v[bi, bj] = rho_left[i].conj() @ (rho_right[j]*vg[np.newaxis, :]).T
        return v

    def screened_exchange(self, td_cc, td_vv, vqg):
        """ w from the full-k conduction-conduction and valence-valence densities. """
        kernel = np.einsum('sabpg,gh,tcdph->sabtcdp', td_cc.cc().conj(), vqg, td_vv.vv(), optimize=True)
        kernel = kernel.reshape(-1)
        w = np.zeros((self.dimbse, self.dimbse), dtype=np.complex128)
        for sector in range(self.nsectors):
            b = self._block(sector)
            w[b, b] = kernel[self.w_index[sector]]
        return w

    def coupling_exchange(self, td_cv, td_vc, vqg):
        """ w_c from the full-k cv density and the momentum-reversed vc density. """
        vc = td_vc.vc()[:, :, :, self.ktranspose]
        kernel = np.einsum('sabpg,gh,tcdph->sabtcdp', td_cv.cv().conj(), vqg, vc, optimize=True)
        kernel = kernel.reshape(-1)
        wc = np.zeros((self.dimbse, self.dimbse), dtype=np.complex128)
        for sector in range(self.nsectors):
            wc[self._block(sector), self._block(swapped_sector(sector))] = kernel[self.wc_index[sector]]
        return wc

    def transition_energies(self, td_q):
        """ e_c(k, sc) - e_v(k-Q, sv) for every sector, in the Hamiltonian ordering. """
        return np.concatenate([td_q.energies_cv(sc=sc, sv=sv).reshape(-1) for sv, sc in self.sectors])

    def build(self, momentum, eta=None, separated=False, tamm_dancoff=None):
        """
        Assemble the BSE Hamiltonian at the excitonic momentum Q.

        Returns:
            H: (2*dimbse, 2*dimbse) matrix in the combined or separated layout
            rho_cv: (nspin*D, Ng) diagonal-k cv densities <c,k|e^{i(Q+G)r}|v,k-Q>
        """
        t0 = time()
        tamm_dancoff = self.config.tamm_dancoff if tamm_dancoff is None else tamm_dancoff
        Q = np.asarray(momentum, dtype=np.float64)
        zero = np.zeros(3)
        nspin, dim = self.nspin, self.dim

        vqg, vg = self.screened_potential(Q, eta)

        td_q = self.engine.pull_values(Q, zero, Q, diagonal=True)
        rho_cv = td_q.flat(td_q.cv())
        rho_q = rho_cv.reshape(nspin, dim, self.ng)

        v = self.direct_term(rho_q, rho_q, vg)
        td_cc = self.engine.pull_values(Q, zero, zero, diagonal=False)
        td_vv = self.engine.pull_values(Q, Q, Q, diagonal=False)
        w = self.screened_exchange(td_cc, td_vv, vqg)
        A = (self.deg*v - w)/self.nk + np.diag(self.transition_energies(td_q))

        B = np.zeros_like(A)
        if not tamm_dancoff:
            td_vc = self.engine.pull_values(Q, -Q, zero, diagonal=True)
            rho_vc = td_vc.flat(td_vc.vc()).reshape(nspin, dim, self.ng)
            v_c = self.direct_term(rho_vc, rho_q, vg)
            td_cv_full = self.engine.pull_values(Q, zero, Q, diagonal=False)
            td_vc_full = self.engine.pull_values(Q, -Q, zero, diagonal=False)
            w_c = self.coupling_exchange(td_cv_full, td_vc_full, vqg)
            B = (self.deg*v_c - w_c)/self.nk

        if separated:
            H = np.block([[A, B], [B.conj(), A.conj()]])
        else:
            H = np.block([[A, B], [-B.conj(), -A.conj()]])
        print(f'BSE Hamiltonian ({H.shape[0]}x{H.shape[1]}) built in {time()-t0:.3f} s')
        return H, rho_cv
