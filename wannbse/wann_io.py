# Copyright (C) 2018 Henrique Pereira Coutada Miranda
# All rights reserved.
#
# This file is part of wannbse
#
# Author: Riccardo Reho 2023

import numpy as np
from time import time

TENSOR_HEADER = '### omega xx xy xz yx yy yz zx zy zz'
EXCITON_HEADER = '### exciton Re(E) Im(E) |f|^2'
WEIGHTS_HEADER = '### exciton sector c v k |X|^2'


def read_kpoints_file(filename, nkpoints=None):
    """
    Read a list of Cartesian k-points (1/Angstrom), one point per line.
    Lines starting with '#' and blank lines are skipped.
    If nkpoints is given only the first nkpoints rows are kept.
    """
    t0 = time()
    kpoints = np.loadtxt(filename, dtype=np.float64, ndmin=2, comments='#')
    if kpoints.shape[1] != 3:
        raise ValueError(f"Expected 3 columns in {filename}, found {kpoints.shape[1]}.")
    if nkpoints is not None:
        if nkpoints > len(kpoints):
            raise ValueError(f"Requested {nkpoints} k-points but {filename} contains {len(kpoints)}.")
        kpoints = kpoints[:nkpoints]
    print(f'Read {len(kpoints)} k-points from {filename} in {time()-t0:.3f} s')
    return kpoints

def write_dielectric_tensor(filename, omegas, eps):
    """
    Write the macroscopic dielectric tensor eps[iw, 3, 3].
    Each row holds the frequency followed by the real and imaginary part of
    the nine components in the order of the header.
    """
    omegas = np.asarray(omegas)
    eps = np.asarray(eps)
    if eps.shape != (len(omegas), 3, 3):
        raise ValueError(f"eps must have shape ({len(omegas)}, 3, 3), got {eps.shape}")
    with open(filename, 'w') as f_out:
        f_out.write(TENSOR_HEADER+'\n')
        for iw, w in enumerate(omegas):
            line = f'{np.real(w):.8f}'
            for value in eps[iw].reshape(-1):
                line += f' {np.real(value):.12e} {np.imag(value):.12e}'
            f_out.write(line+'\n')

def read_dielectric_tensor(filename):
    """ Inverse of write_dielectric_tensor, returns (omegas, eps[iw,3,3]). """
    data = np.loadtxt(filename, comments='#', ndmin=2)
    omegas = data[:,0]
    eps = (data[:,1::2] + 1j*data[:,2::2]).reshape(-1, 3, 3)
    return omegas, eps

def write_macroscopic_dielectric(filename, omegas, values):
    """ Write `index omega Re Im` lines of the RPA macroscopic dielectric function. """
    with open(filename, 'w') as f_out:
        for i, (w, value) in enumerate(zip(omegas, values)):
            f_out.write(f'{i} {np.real(w):.8f} {np.real(value):.12e} {np.imag(value):.12e}\n')

def write_exciton_energies(filename, energies, strengths=None):
    """
    Write one line per exciton: index (from 1), real and imaginary part of the
    energy (eV) and the squared oscillator strength (0 when not given).
    """
    energies = np.asarray(energies)
    strengths = np.zeros(len(energies)) if strengths is None else np.abs(np.asarray(strengths))**2
    if strengths.shape != energies.shape:
        raise ValueError(f"Expected {len(energies)} oscillator strengths, got {strengths.shape}")
    with open(filename, 'w') as f_out:
        f_out.write(EXCITON_HEADER+'\n')
        for l, (e, f2) in enumerate(zip(energies, strengths)):
            f_out.write(f'\t{l+1}\t{np.real(e):.12f}\t{np.imag(e):.12f}\t{f2:.12e}\n')

def read_exciton_energies(filename):
    """ Returns (energies, |f|^2) as written by write_exciton_energies. """
    data = np.loadtxt(filename, comments='#', ndmin=2)
    return data[:,1] + 1j*data[:,2], data[:,3]

def write_exciton_weights(filename, vectors, nv, nc, nk, nexc=None, threshold=0.0):
    """
    Weights |X[t, l]|^2 of the transitions t = sector*D + (c*nv + v)*nk + k,
    D = nc*nv*nk, in the first nexc excitons. Weights below threshold are skipped.
    """
    vectors = np.asarray(vectors)
    dim = nc*nv*nk
    if vectors.shape[0] % dim != 0:
        raise ValueError(f"Eigenvectors of length {vectors.shape[0]} do not match nc*nv*nk = {dim}")
    nexc = vectors.shape[1] if nexc is None else min(nexc, vectors.shape[1])
    weights = np.abs(vectors[:, :nexc])**2
    sector, c, v, k = np.unravel_index(np.arange(vectors.shape[0]), (vectors.shape[0]//dim, nc, nv, nk))
    with open(filename, 'w') as f_out:
        f_out.write(WEIGHTS_HEADER+'\n')
        for l in range(nexc):
            for t in np.flatnonzero(weights[:, l] >= threshold):
                f_out.write(f'\t{l+1}\t{sector[t]}\t{c[t]}\t{v[t]}\t{k[t]}\t{weights[t, l]:.12e}\n')
