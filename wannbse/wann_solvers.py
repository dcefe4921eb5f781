import contextlib
import numpy as np
import scipy
import scipy.linalg
from threadpoolctl import threadpool_limits
from time import time
from .wann_utils import sort_eig, normalize_columns


class DiagonalizationError(np.linalg.LinAlgError):
    """ A decomposition of the BSE matrix did not converge. """
    def __init__(self, momentum, mode, reason='the decomposition did not converge'):
        self.momentum = np.zeros(3) if momentum is None else np.asarray(momentum)
        self.mode = mode
        self.reason = reason
        super().__init__(f"{mode} diagonalization failed at momentum {self.momentum}: {reason}.")


class CholeskyFactorizationError(DiagonalizationError):
    """ The BSE matrix could not be reduced with the Cholesky/SVD scheme. """
    def __init__(self, momentum, mode, reason='the matrix is not positive definite'):
        super().__init__(momentum, mode, reason)


class EigenSolver():
    '''
    Common interface of the BSE eigensolvers.
    solve() returns the excitation energies in ascending order of their real
    part and the resonant components of the eigenvectors, one unit-norm column each.
    '''
    name = None
    layout = 'combined'

    def solve(self, hamiltonian, momentum=None, eta=0.0, nsectors=1):
        raise NotImplementedError

    @staticmethod
    def _finalize(energies, vectors):
        energies, vectors = sort_eig(energies, vectors)
        return energies, normalize_columns(vectors)


class DirectSolver(EigenSolver):
    '''
    General complex eigensolver on [[A, B], [-B*, -A*]].
    With four spin sectors the pairs {0,3} and {1,2} do not interact and are
    diagonalized separately.
    '''
    name = 'direct'
    layout = 'combined'

    def solve(self, hamiltonian, momentum=None, eta=0.0, nsectors=1):
        n = hamiltonian.shape[0]//2
        if nsectors != 4:
            energies, vectors = self._diagonalize(hamiltonian, momentum)
            return self._finalize(energies, vectors)

        dim = n//4
        energies = []
        vectors = np.zeros((n, n), dtype=np.complex128)
        col = 0
        for group in ((0, 3), (1, 2)):
            idx = np.concatenate([half*n + s*dim + np.arange(dim) for half in (0, 1) for s in group])
            e, x = self._diagonalize(hamiltonian[np.ix_(idx, idx)], momentum)
            for i, s in enumerate(group):
                vectors[s*dim:(s+1)*dim, col:col+len(e)] = x[i*dim:(i+1)*dim]
            energies.append(e)
            col += len(e)
        return self._finalize(np.concatenate(energies), vectors)

    def _diagonalize(self, hamiltonian, momentum=None):
        """ Positive half of the spectrum and the resonant part of its eigenvectors. """
        n = hamiltonian.shape[0]//2
        try:
            w, v = scipy.linalg.eig(hamiltonian)
        except np.linalg.LinAlgError as err:
            raise DiagonalizationError(momentum, self.name, err) from err
        w, v = sort_eig(w, v)
        return w[n:], v[:n, n:]


class CholeskySolver(EigenSolver):
    '''
    Structure preserving solver for the separated layout [[A, B], [B*, A*]].

    M = [[Re(A+B), -Im(A-B)], [Im(A+B), Re(A-B)]] = L L^T
    W = L^T J L,  J = [[0, 1], [-1, 0]]

    The singular values of the real antisymmetric W come in equal pairs, one
    of each pair is an excitation energy. For a singular triple (s, u, v) the
    vector z = v + i u satisfies W z = -i s z and x = J L z gives the
    eigenvector X = (x1 + i x2)/2 of the resonant components.
    '''
    name = 'cholesky'
    layout = 'separated'

    def __init__(self, tol=1e-8):
        self.tol = tol

    def solve(self, hamiltonian, momentum=None, eta=0.0, nsectors=1):
        momentum = np.zeros(3) if momentum is None else momentum
        n = hamiltonian.shape[0]//2
        A = hamiltonian[:n, :n]
        B = hamiltonian[:n, n:]
        M = np.block([[(A+B).real, -(A-B).imag],
                      [(A+B).imag,  (A-B).real]])
        M = (M + M.T)/2
        try:
            L = scipy.linalg.cholesky(M, lower=True)
        except np.linalg.LinAlgError as err:
            raise CholeskyFactorizationError(momentum, self.name) from err

        identity = np.identity(n)
        zeros = np.zeros((n, n))
        J = np.block([[zeros, identity], [-identity, zeros]])
        W = L.T @ J @ L
        try:
            U, s, Vh = scipy.linalg.svd(W)
            order = np.argsort(s, kind='stable')
            s, U, V = s[order], U[:, order], Vh.T[:, order]
            energies, z = self._pair_singular_vectors(s, U, V)
        except np.linalg.LinAlgError as err:
            raise DiagonalizationError(momentum, self.name, err) from err
        if len(energies) != n:
            raise CholeskyFactorizationError(momentum, self.name, 'the singular values are not paired')
        x = (J @ L @ z)/(np.sqrt(energies) + 1j*eta)[np.newaxis, :]
        X = (x[:n] + 1j*x[n:])/2
        return self._finalize(energies, X)

    def _pair_singular_vectors(self, s, U, V):
        """
        Group equal singular values and keep an orthonormal basis of half of
        each group of vectors z = v + i u.
        """
        energies = []
        vectors = []
        i = 0
        while i < len(s):
            j = i + 1
            while j < len(s) and abs(s[j] - s[i]) <= self.tol*max(1.0, abs(s[i])):
                j += 1
            keep = (j - i + 1)//2
            z = V[:, i:j] + 1j*U[:, i:j]
            basis = scipy.linalg.svd(z, full_matrices=False)[0][:, :keep]
            energies += [s[i:j].mean()]*keep
            vectors.append(basis)
            i = j
        return np.array(energies), np.hstack(vectors)


SOLVERS = {
    'direct': DirectSolver,
    'cholesky': CholeskySolver,
}

def get_solver(name):
    if name not in SOLVERS:
        raise ValueError(f"Unknown solver '{name}'. Choose one of {tuple(SOLVERS)}")
    return SOLVERS[name]()

def _run_solver(solver, hamiltonian_builder, momentum, config):
    H, rho_cv = hamiltonian_builder.build(momentum, config.eta, separated=(solver.layout == 'separated'))
    ctx = threadpool_limits(limits=config.n_threads, user_api='blas') if config.n_threads else contextlib.nullcontext()
    t0 = time()
    with ctx:
        energies, vectors = solver.solve(H, momentum, config.eta, hamiltonian_builder.nsectors)
    print(f'Diagonalization ({solver.name}) of the BSE matrix {H.shape} in {time()-t0:.3f} s (threads={config.n_threads or "default"})')
    return energies, vectors, rho_cv

def solve_exciton(hamiltonian_builder, momentum, config=None):
    """
    Build and diagonalize the BSE Hamiltonian at `momentum` with the solver
    chosen in the configuration.

    Returns:
        energies, vectors (resonant components, one column per exciton), rho_cv
    """
    config = hamiltonian_builder.config if config is None else config
    solver = get_solver(config.solver)
    try:
        return _run_solver(solver, hamiltonian_builder, momentum, config)
    except CholeskyFactorizationError as err:
        if not config.fallback:
            raise
        print(f'Warning! {err} Falling back to the direct solver.')
        return _run_solver(DirectSolver(), hamiltonian_builder, momentum, config)
