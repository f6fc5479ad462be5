# struct_core/kernel/solve.py
"""Linear static solver: penalty-free reduction, SPD factorization, reactions."""

import logging
from typing import Callable, Optional, Sequence, Tuple

import numpy as np
import scipy.linalg
import scipy.sparse as sp
import scipy.sparse.linalg as spla

from ..config import CONFIG
from ..errors import NonConvergentSolveError, SingularStiffnessError
from .assemble import MatrixLike, partition_dofs, reduce_matrix

_logger = logging.getLogger(__name__)

SOLVER_METHODS = ('cholesky', 'sparse', 'cg')


class ReducedSystem:
    """
    K with restrained and inactive DOFs removed, factorized once.

    Every load vector solved against the same structure reuses the
    factorization, so one instance is built before the combination solves
    start and then shared read-only between them.

    Args:
        K: Global stiffness (dense or sparse), unreduced
        fixed_dofs: Restrained DOF indices (displacement = 0)
        method: 'cholesky' (dense), 'sparse' (sparse LDL^T via SuperLU) or
            'cg' (Jacobi-preconditioned conjugate gradient)
        free: Explicit free-DOF set; default drops restrained and inactive DOFs
        describe: Optional callable turning a DOF index into readable text

    Raises:
        SingularStiffnessError: no restraints at all, or the reduced matrix is
            not positive-definite within ``pd_tolerance``
    """

    def __init__(
        self,
        K: MatrixLike,
        fixed_dofs: Sequence[int],
        method: str = 'cholesky',
        free: Optional[np.ndarray] = None,
        pd_tolerance: Optional[float] = None,
        describe: Optional[Callable[[int], str]] = None,
    ):
        if method not in SOLVER_METHODS:
            raise ValueError(f"Unknown solver method {method!r}, expected one of {SOLVER_METHODS}")
        self.K = K
        self.method = method
        self.ndof = K.shape[0]
        self.pd_tolerance = CONFIG.pd_tolerance if pd_tolerance is None else pd_tolerance
        self._describe = describe or (lambda i: f"DOF {i}")

        part_free, self.fixed, self.inactive = partition_dofs(K, fixed_dofs)
        if free is not None:
            self.free = np.asarray(free, dtype=int)
            self.inactive = np.setdiff1d(part_free, self.free)
        else:
            self.free = part_free

        if len(self.fixed) == 0:
            raise SingularStiffnessError(
                "Structure has no restrained DOFs: rigid-body motion is unconstrained. Check supports."
            )
        if len(self.free) == 0:
            raise SingularStiffnessError("No free DOFs left after applying supports")

        self.Kff = reduce_matrix(K, self.free)
        self._factor = None
        self._factorize()

    # ------------------------------------------------------------------

    def _factorize(self) -> None:
        if self.method == 'cholesky':
            Kff = self.Kff.toarray() if sp.issparse(self.Kff) else np.asarray(self.Kff)
            try:
                c, lower = scipy.linalg.cho_factor(Kff, lower=True, check_finite=True)
            except (np.linalg.LinAlgError, ValueError) as e:
                raise SingularStiffnessError(
                    f"Reduced stiffness is not positive-definite ({e}). "
                    f"Structure is unstable or under-constrained. Check supports."
                )
            pivots = np.diag(c) ** 2
            self._check_pivots(pivots, np.diag(Kff))
            self._factor = (c, lower)

        elif self.method == 'sparse':
            Kff = sp.csc_matrix(self.Kff)
            try:
                lu = spla.splu(
                    Kff, permc_spec='MMD_AT_PLUS_A', diag_pivot_thresh=0.0,
                    options=dict(SymmetricMode=True),
                )
            except RuntimeError as e:
                raise SingularStiffnessError(f"Reduced stiffness is singular ({e}). Check supports.")
            pivots = lu.U.diagonal()
            scale = np.full(pivots.shape, np.abs(Kff.diagonal()).max())
            self._check_pivots(pivots, scale, ordered=False)
            self._factor = lu

        else:
            diag = np.asarray(self.Kff.diagonal(), dtype=float)
            if np.any(diag <= 0.0):
                bad = self.free[np.argmin(diag)]
                raise SingularStiffnessError(
                    f"Non-positive stiffness on {self._describe(int(bad))}. Check supports."
                )
            self._factor = sp.diags(1.0 / diag)

    def _check_pivots(self, pivots: np.ndarray, diag: np.ndarray, ordered: bool = True) -> None:
        ratio = pivots / diag
        worst = int(np.argmin(ratio))
        if not np.isfinite(ratio[worst]) or ratio[worst] < self.pd_tolerance:
            where = f" at {self._describe(int(self.free[worst]))}" if ordered else ""
            raise SingularStiffnessError(
                f"Reduced stiffness is not positive-definite (relative pivot {ratio[worst]:.2e} "
                f"< {self.pd_tolerance:.0e}){where}. Structure is a mechanism; check supports."
            )

    # ------------------------------------------------------------------

    def solve_reduced(self, Ff: np.ndarray) -> np.ndarray:
        """Displacements on the free DOFs for a reduced load vector."""
        if self.method == 'cholesky':
            return scipy.linalg.cho_solve(self._factor, Ff)
        if self.method == 'sparse':
            return self._factor.solve(Ff)

        x, info = spla.cg(
            sp.csr_matrix(self.Kff), Ff,
            rtol=CONFIG.cg_tolerance, maxiter=CONFIG.cg_max_iterations, M=self._factor,
        )
        if info != 0:
            raise NonConvergentSolveError(
                f"Conjugate gradient did not reach rtol={CONFIG.cg_tolerance:.0e} "
                f"within {CONFIG.cg_max_iterations} iterations (info={info})",
                iterations=CONFIG.cg_max_iterations if info > 0 else 0,
            )
        return x

    def solve(self, F: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Full displacement and reaction vectors for a global load vector.

        Returns:
            d: Displacements (ndof,), zero on restrained and inactive DOFs
            R: Reactions R = K·d - F (ndof,), non-zero only at restrained DOFs

        Raises:
            SingularStiffnessError: load on a DOF that has no stiffness
        """
        F = np.asarray(F, dtype=float)
        if len(self.inactive):
            loaded = self.inactive[np.abs(F[self.inactive]) > 0.0]
            if len(loaded):
                raise SingularStiffnessError(
                    f"Load applied to {self._describe(int(loaded[0]))}, which nothing resists"
                )

        d = np.zeros(self.ndof, dtype=float)
        d[self.free] = self.solve_reduced(F[self.free])
        R = self.K @ d - F
        return d, R


def solve_linear(
    K: MatrixLike,
    F: np.ndarray,
    fixed_dofs: Sequence[int],
    method: str = 'cholesky',
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Solve K·d = F with fixed boundary conditions via partitioning.

    Args:
        K: Global stiffness matrix (ndof x ndof)
        F: Global load vector (ndof,)
        fixed_dofs: Constrained DOF indices (displacement = 0)
        method: 'cholesky', 'sparse' or 'cg'

    Returns:
        d: Displacement vector (ndof,)
        R: Reaction vector (ndof,)
        free: Array of free DOF indices

    Raises:
        SingularStiffnessError: structure is unstable (not positive-definite)
        NonConvergentSolveError: 'cg' ran out of iterations
    """
    system = ReducedSystem(K, fixed_dofs, method=method)
    d, R = system.solve(F)
    return d, R, system.free
