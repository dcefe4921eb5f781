import numpy as np

MINVAL = 1.0e-6                # small momentum used for the optical limit (1/Angstrom)
HC = 911.38246268              # Ry*Angstrom, converts the G cutoff into a momentum
COULOMB_PREFACTOR = 1.0e-12    # scale of the bare Coulomb kernel (eV, Angstrom units)


def sort_eig(eigv,eigvec=None):
    "Sort eigenvalues by real part and, if given, the eigenvector columns accordingly"
    tmpeigv=np.array(eigv.real,dtype=np.float64)
    args=tmpeigv.argsort(kind='stable')
    eigv=eigv[args]
    if not (eigvec is None):
        eigvec=eigvec[:,args]
        return (eigv,eigvec)
    return eigv

def normalize_columns(vectors):
    """ Return a copy of `vectors` with every column scaled to unit 2-norm. """
    norms = np.linalg.norm(vectors, axis=0)
    norms = np.where(norms == 0.0, 1.0, norms)
    return vectors/norms[np.newaxis,:]

def fix_gauge(eigvec):
    """
    Rotate the phase of each eigenvector (columns) so that its largest component
    is real and positive.
    """
    idx = np.argmax(np.abs(eigvec), axis=0)
    pivot = eigvec[idx, np.arange(eigvec.shape[1])]
    phase = np.where(np.abs(pivot) > 0, np.conj(pivot)/np.abs(pivot), 1.0)
    return eigvec*phase[np.newaxis,:]

def check_hermitian(mat, atol=1e-9, label='matrix'):
    if not np.allclose(mat, mat.T.conj(), atol=atol):
        raise ValueError(f"Warning! {label} is not hermitian.")

