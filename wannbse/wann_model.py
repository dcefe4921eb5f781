# Copyright (C) 2018 Henrique Pereira Coutada Miranda
# All rights reserved.
#
# This file is part of wannbse
#
# Author: Riccardo Reho 2023

import numpy as np
import tbmodels
import scipy
import scipy.linalg
from .wann_utils import fix_gauge, check_hermitian


class TBMODEL(tbmodels.Model):
    """
    Class that inherits from tbmodels.Model for TB-model Hamiltonians and
    provides the band states used by the BSE engine.

    k-points are Cartesian (1/Angstrom). A collinear spin-polarized model is
    obtained by attaching the spin-down Hamiltonian with set_spin_partner, the
    model itself is then the spin-up channel.
    """
    fermie = 0.0
    scissor = 0.0
    spin_down = None

    def set_fermi(self, fermie, scissor=0.0):
        """
        Parameters:
            fermie: Fermi energy (eV) separating valence and conduction bands.
            scissor: rigid shift (eV) added to the conduction energies.
        """
        self.fermie = fermie
        self.scissor = scissor

    def set_spin_partner(self, model_down):
        if model_down.size != self.size:
            raise ValueError(f"Spin-down model has {model_down.size} orbitals, spin-up has {self.size}.")
        if not np.allclose(model_down.uc, self.uc):
            raise ValueError("Spin-up and spin-down models have different unit cells.")
        self.spin_down = model_down

    def num_spin(self):
        return 1 if self.spin_down is None else 2

    def basis_dimension(self):
        return self.num_spin()*self.size

    def fermi_energy(self):
        return self.fermie

    def _k_reduced(self, k):
        return np.asarray(k, dtype=np.float64) @ self.uc.T/(2*np.pi)

    def hamiltonian(self, k, spin=0):
        """ H(k) of one spin channel at the Cartesian k-point k. """
        model = self if spin == 0 else self.spin_down
        if model is None:
            raise ValueError(f"Spin channel {spin} requested on a spin-unpolarized model.")
        k = np.asarray(k, dtype=np.float64)
        if k.shape != (3,):
            raise ValueError(f"k must be a single 3D point, got shape {k.shape}")
        hk = model.hamilton(self._k_reduced(k), convention=2)
        check_hermitian(hk, label=f"Hamiltonian matrix at k-point {k}")
        return hk

    def bandstates(self, k):
        """
        Band energies and eigenvectors at k.

        Returns:
            energies: (2, N) ascending energies, one row per spin (equal rows without spin).
            eigvec: (basis_dim, N), column i holds band i; with spin the column is
                    [u_up_i; u_down_i] and each half has unit norm.
        """
        nspin = self.num_spin()
        nb = self.size
        energies = np.zeros((2, nb), dtype=np.float64)
        eigvec = np.zeros((nspin*nb, nb), dtype=np.complex128)
        for s in range(nspin):
            e, u = scipy.linalg.eigh(self.hamiltonian(k, spin=s))
            energies[s] = e
            eigvec[s*nb:(s+1)*nb] = fix_gauge(u)
        if nspin == 1:
            energies[1] = energies[0]
        return energies, eigvec

    def bandstates_subset(self, k, nv, nc):
        """
        The nv highest valence bands (descending) followed by the nc lowest
        conduction bands (ascending, scissor applied).
        A band is a valence band when its energy is below the Fermi level in both spin channels.
        """
        energies, eigvec = self.bandstates(k)
        nv_total = int(np.count_nonzero(np.all(energies <= self.fermie, axis=0)))
        if nv > nv_total:
            raise ValueError(f"Requested {nv} valence bands but only {nv_total} lie below the Fermi level.")
        if nv_total + nc > self.size:
            raise ValueError(f"Requested {nc} conduction bands but only {self.size-nv_total} lie above the Fermi level.")
        index = [nv_total-1-i for i in range(nv)] + [nv_total+c for c in range(nc)]
        sub_energies = energies[:, index]
        sub_energies[:, nv:] += self.scissor
        return sub_energies, eigvec[:, index]

    def bandstates_subset_list(self, kpoints, nv, nc):
        """ bandstates_subset for a list of k-points: (Nk, 2, nv+nc) and (Nk, basis_dim, nv+nc). """
        kpoints = np.atleast_2d(kpoints)
        nk = len(kpoints)
        energies = np.zeros((nk, 2, nv+nc), dtype=np.float64)
        eigvec = np.zeros((nk, self.basis_dimension(), nv+nc), dtype=np.complex128)
        for ik in range(nk):
            energies[ik], eigvec[ik] = self.bandstates_subset(kpoints[ik], nv, nc)
        return energies, eigvec

    def wannier_centers(self):
        """ Cartesian Wannier centers (Angstrom) with shape (nspin, N, 3). """
        models = [self] if self.spin_down is None else [self, self.spin_down]
        return np.array([np.asarray(m.pos) @ m.uc for m in models])
