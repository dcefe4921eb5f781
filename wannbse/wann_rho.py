import numpy as np
from time import time


class TransitionDensity():
    '''
    Generalized dipoles

        rho[s,m,n,p,G] = < m, k1-p_bra | e^{i(Q+G).r} | n, k2-p_ket >

    for the band subset (nv valence then nc conduction) of spin channel s and
    the k-pair p (p = k1*Nk + k2 in full mode, p = k in diagonal mode).
    The vc, cv, cc and vv blocks are views on the same storage.
    '''
    def __init__(self, rho, energies_bra, energies_ket, nv, nc, nk, diagonal):
        self.rho = rho
        self.energies_bra = energies_bra   # (2, nv+nc, npairs)
        self.energies_ket = energies_ket   # (2, nv+nc, npairs)
        self.nv = nv
        self.nc = nc
        self.nk = nk
        self.diagonal = diagonal
        self.nspin = rho.shape[0]
        self.npairs = rho.shape[3]
        self.ng = rho.shape[4]

    def cv(self):
        """ [s,c,v,p,G] = rho[s, nv+c, v] """
        return self.rho[:, self.nv:, :self.nv]

    def vc(self):
        """ [s,c,v,p,G] = rho[s, v, nv+c] """
        return self.rho[:, :self.nv, self.nv:].transpose(0, 2, 1, 3, 4)

    def cc(self):
        return self.rho[:, self.nv:, self.nv:]

    def vv(self):
        return self.rho[:, :self.nv, :self.nv]

    def flat(self, block):
        """ Rows ordered as (s, band1, band2, pair), one column per G vector. """
        return block.reshape(-1, self.ng)

    def transition_energies(self):
        """ e_bra[s,m,p] - e_ket[s,n,p] with shape (nspin, nv+nc, nv+nc, npairs). """
        ebra = self.energies_bra[:self.nspin]
        eket = self.energies_ket[:self.nspin]
        return ebra[:, :, np.newaxis, :] - eket[:, np.newaxis, :, :]

    def energies_cv(self, sc=0, sv=0):
        """
        Transition energies e_c(bra, spin sc) - e_v(ket, spin sv) with shape (nc, nv, npairs).
        Different spin channels give the energies of the spin-flip transitions.
        """
        ec = self.energies_bra[sc, self.nv:]
        ev = self.energies_ket[sv, :self.nv]
        return ec[:, np.newaxis, :] - ev[np.newaxis, :, :]


class TransitionDensityEngine():
    '''
    Computes TransitionDensity objects for a fixed list of k-points and G vectors.

    Parameters:
        model: band structure provider (see TBMODEL)
        kpoints: (Nk,3) Cartesian k-points
        gvectors: (Ng,3) Cartesian G vectors
        nv, nc: number of valence and conduction bands
        config: BSEConfig
    '''
    def __init__(self, model, kpoints, gvectors, nv, nc, config):
        self.model = model
        self.config = config
        self.kpoints = np.array(kpoints, dtype=np.float64).reshape(-1, 3)
        self.gvectors = np.array(gvectors, dtype=np.float64).reshape(-1, 3)
        self.kpoints.setflags(write=False)
        self.gvectors.setflags(write=False)
        self.nv = nv
        self.nc = nc
        self.nb = nv + nc
        self.nk = len(self.kpoints)
        self.ng = len(self.gvectors)
        self.nspin = model.num_spin()
        if self.nspin != config.nspin:
            raise ValueError(f"The model has {self.nspin} spin channels but spin_polarized={config.spin_polarized}.")
        self.nw = model.basis_dimension()//self.nspin
        self.centers = model.wannier_centers()

    def _phase(self, momentum):
        """ exp(i tau_{s,b}.(G+Q)) with shape (nspin, nw, ng). """
        qg = self.gvectors + momentum
        return np.exp(1j*np.einsum('sbx,gx->sbg', self.centers, qg))

    def _states(self, shift):
        energies, eigvec = self.model.bandstates_subset_list(self.kpoints - shift, self.nv, self.nc)
        return energies, eigvec.reshape(self.nk, self.nspin, self.nw, self.nb)

    def pull_values(self, momentum, bra_shift, ket_shift, diagonal=True):
        """
        Transition densities with bra states at k1-bra_shift and ket states at k2-ket_shift.
        diagonal=True keeps only k1 == k2 (Nk pairs), otherwise all Nk^2 pairs.
        """
        t0 = time()
        momentum = np.asarray(momentum, dtype=np.float64)
        bra_shift = np.asarray(bra_shift, dtype=np.float64)
        ket_shift = np.asarray(ket_shift, dtype=np.float64)

        e_bra, u_bra = self._states(bra_shift)
        if np.array_equal(bra_shift, ket_shift):
            e_ket, u_ket = e_bra, u_bra
        else:
            e_ket, u_ket = self._states(ket_shift)
        phase = self._phase(momentum)

        e_bra = e_bra.transpose(1, 2, 0)
        e_ket = e_ket.transpose(1, 2, 0)
        if diagonal:
            rho = np.einsum('ksbm,sbg,ksbn->smnkg', u_bra.conj(), phase, u_ket, optimize=True)
        else:
            rho = np.einsum('asbm,sbg,csbn->smnacg', u_bra.conj(), phase, u_ket, optimize=True)
            rho = rho.reshape(self.nspin, self.nb, self.nb, self.nk*self.nk, self.ng)
            e_bra = np.repeat(e_bra, self.nk, axis=2)
            e_ket = np.tile(e_ket, (1, 1, self.nk))
        mode = 'diagonal' if diagonal else 'full'
        print(f'Transition densities ({mode}, {rho.shape[3]} k-pairs, {self.ng} G) in {time()-t0:.3f} s')
        return TransitionDensity(rho, e_bra, e_ket, self.nv, self.nc, self.nk, diagonal)
