# struct_core/kernel/modal.py
"""
MODAL ANALYSIS: Natural frequencies, mode shapes, participation
===============================================================

Solves the generalized eigenproblem on the free DOFs:

    K·φ = ω²·M·φ

Small models go through scipy.linalg.eigh. Models above
``CONFIG.sparse_threshold`` free DOFs use ARPACK Lanczos (eigsh) in
shift-invert mode around zero, which returns the lowest modes directly.

A lumped mass matrix has no rotational inertia, so M is singular on those
DOFs. For the dense path they are condensed out statically (Guyan) before
the eigen solve and recovered afterwards:

    K* = Kmm - Kms Kss^-1 Ksm,     φs = -Kss^-1 Ksm φm

Mode shapes are returned full-length (ndof) and mass-normalized
(φᵀ M φ = 1). Modes are ordered by ascending frequency; equal frequencies
keep the order the solver produced them in (stable sort).
"""

import logging
import math
from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np
import scipy.linalg
import scipy.sparse as sp
import scipy.sparse.linalg as spla

from ..config import CONFIG
from ..errors import EigenSolverDivergedError, SingularStiffnessError
from .assemble import MatrixLike, partition_dofs, reduce_matrix

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModalResult:
    """
    Lowest modes of a structure.

    Attributes:
        omega: Circular frequencies (rad/s), ascending
        frequencies_hz: omega / 2π
        periods: 2π / omega (inf for a zero frequency)
        shapes: (ndof, n_modes) mass-normalized mode shapes
        free: Free DOF indices used for the solve
        participation: (n_modes, 3) participation factors Γ for X, Y, Z
        effective_mass: (n_modes, 3) effective modal mass (kg)
        total_mass: (3,) unrestrained mass per direction (kg)
    """
    omega: np.ndarray
    frequencies_hz: np.ndarray
    periods: np.ndarray
    shapes: np.ndarray
    free: np.ndarray
    participation: np.ndarray
    effective_mass: np.ndarray
    total_mass: np.ndarray

    @property
    def n_modes(self) -> int:
        return len(self.omega)

    def mass_ratio(self, direction: int) -> np.ndarray:
        """Effective mass of each mode as a fraction of the total."""
        total = self.total_mass[direction]
        if total <= 0.0:
            return np.zeros(self.n_modes)
        return self.effective_mass[:, direction] / total

    def cumulative_mass_ratio(self, direction: int) -> float:
        return float(np.sum(self.mass_ratio(direction)))


def influence_vector(ndof: int, direction: int, dof_per_node: int = 6) -> np.ndarray:
    """Unit rigid-body translation along ``direction`` (0=X, 1=Y, 2=Z)."""
    r = np.zeros(ndof, dtype=float)
    r[direction::dof_per_node] = 1.0
    return r


def massless_dofs(Mff: MatrixLike, tol: float = 1e-14) -> np.ndarray:
    """Boolean mask of reduced DOFs with no mass in their row."""
    if sp.issparse(Mff):
        row_norm = np.asarray(abs(Mff).sum(axis=1)).ravel()
    else:
        row_norm = np.abs(Mff).sum(axis=1)
    scale = row_norm.max() if row_norm.size else 0.0
    if scale <= 0.0:
        return np.ones(row_norm.shape, dtype=bool)
    return row_norm <= tol * scale


def _dense_modes(Kff: np.ndarray, Mff: np.ndarray, n_modes: int) -> Tuple[np.ndarray, np.ndarray]:
    massless = massless_dofs(Mff)
    m = np.flatnonzero(~massless)
    s = np.flatnonzero(massless)
    n = min(n_modes, len(m))

    if len(s):
        Kss = Kff[np.ix_(s, s)]
        Ksm = Kff[np.ix_(s, m)]
        try:
            factor = scipy.linalg.cho_factor(Kss, lower=True)
        except np.linalg.LinAlgError:
            raise SingularStiffnessError(
                "Stiffness on massless DOFs is not positive-definite; cannot condense them out"
            )
        X = scipy.linalg.cho_solve(factor, Ksm)  # Kss^-1 Ksm
        K_star = Kff[np.ix_(m, m)] - Ksm.T @ X
        K_star = 0.5 * (K_star + K_star.T)
    else:
        K_star = Kff

    M_mm = Mff[np.ix_(m, m)]
    try:
        eigenvalues, phi_m = scipy.linalg.eigh(K_star, M_mm, subset_by_index=[0, n - 1])
    except (np.linalg.LinAlgError, ValueError) as e:
        raise EigenSolverDivergedError(f"Generalized eigen solve failed: {e}")

    shapes = np.zeros((Kff.shape[0], n), dtype=float)
    shapes[m] = phi_m
    if len(s):
        shapes[s] = -X @ phi_m
    return eigenvalues, shapes


def _lanczos_modes(Kff: MatrixLike, Mff: MatrixLike, n_modes: int) -> Tuple[np.ndarray, np.ndarray]:
    n_mass = int(np.sum(~massless_dofs(Mff)))
    n = min(n_modes, n_mass, Kff.shape[0] - 1)
    try:
        eigenvalues, shapes = spla.eigsh(
            sp.csc_matrix(Kff), k=n, M=sp.csc_matrix(Mff), sigma=0.0, which='LM',
            maxiter=CONFIG.eigen_max_iterations,
        )
    except spla.ArpackNoConvergence as e:
        raise EigenSolverDivergedError(
            f"Lanczos did not converge within {CONFIG.eigen_max_iterations} iterations "
            f"({len(e.eigenvalues)} of {n} modes found)"
        )
    except (RuntimeError, np.linalg.LinAlgError) as e:
        raise EigenSolverDivergedError(f"Lanczos eigen solve failed: {e}")

    for i in range(shapes.shape[1]):
        phi = shapes[:, i]
        m_star = float(phi @ (Mff @ phi))
        if m_star > 0.0:
            shapes[:, i] = phi / math.sqrt(m_star)
    return eigenvalues, shapes


def natural_frequencies(
    K: MatrixLike,
    M: MatrixLike,
    fixed_dofs: Sequence[int],
    n_modes: int = 6,
    method: str = 'auto',
) -> ModalResult:
    """
    Compute the lowest natural frequencies and mode shapes.

    Args:
        K: Global stiffness matrix
        M: Global mass matrix (lumped or consistent)
        fixed_dofs: Constrained DOF indices
        n_modes: Number of modes requested (>= 1)
        method: 'dense', 'lanczos' or 'auto' (by size)

    Returns:
        ModalResult with at most ``n_modes`` modes (fewer when the model
        has fewer DOFs carrying mass)

    Raises:
        SingularStiffnessError: reduced K is singular
        EigenSolverDivergedError: the eigen solver failed or found no mass
    """
    if n_modes < 1:
        raise ValueError(f"n_modes must be >= 1, got {n_modes}")

    ndof = K.shape[0]
    free, fixed, _ = partition_dofs(K, fixed_dofs)
    if len(fixed) == 0:
        raise SingularStiffnessError("Structure has no restrained DOFs; modal analysis needs supports")
    if len(free) == 0:
        raise EigenSolverDivergedError("No free DOFs - cannot compute modes")

    Kff = reduce_matrix(K, free)
    Mff = reduce_matrix(M, free)
    if np.all(massless_dofs(Mff)):
        raise EigenSolverDivergedError("Mass matrix is zero on every free DOF - cannot compute modes")

    if method == 'auto':
        method = 'lanczos' if len(free) > CONFIG.sparse_threshold else 'dense'

    if method == 'dense':
        dense_K = Kff.toarray() if sp.issparse(Kff) else np.asarray(Kff)
        dense_M = Mff.toarray() if sp.issparse(Mff) else np.asarray(Mff)
        eigenvalues, shapes_ff = _dense_modes(dense_K, dense_M, n_modes)
    else:
        eigenvalues, shapes_ff = _lanczos_modes(Kff, Mff, n_modes)

    # ascending, ties keep solver order
    order = np.argsort(eigenvalues, kind='stable')
    eigenvalues = eigenvalues[order]
    shapes_ff = shapes_ff[:, order]

    # sign convention: largest component positive
    for i in range(shapes_ff.shape[1]):
        k = int(np.argmax(np.abs(shapes_ff[:, i])))
        if shapes_ff[k, i] < 0.0:
            shapes_ff[:, i] *= -1.0

    omega = np.sqrt(np.maximum(eigenvalues, 0.0))  # clamp round-off negatives
    frequencies_hz = omega / (2.0 * np.pi)
    with np.errstate(divide='ignore'):
        periods = np.where(omega > 0.0, 2.0 * np.pi / np.where(omega > 0.0, omega, 1.0), np.inf)

    shapes = np.zeros((ndof, shapes_ff.shape[1]), dtype=float)
    shapes[free] = shapes_ff

    participation, effective, total = _participation(shapes_ff, Mff, free, ndof)

    if len(omega) < n_modes:
        _logger.warning("Only %d of %d requested modes available", len(omega), n_modes)
    _logger.info("Modal solve: %d modes, f1 = %.4g Hz", len(omega), frequencies_hz[0])

    for arr in (omega, frequencies_hz, periods, shapes, free, participation, effective, total):
        arr.setflags(write=False)
    return ModalResult(
        omega=omega,
        frequencies_hz=frequencies_hz,
        periods=periods,
        shapes=shapes,
        free=free,
        participation=participation,
        effective_mass=effective,
        total_mass=total,
    )


def _participation(shapes_ff: np.ndarray, Mff: MatrixLike, free: np.ndarray, ndof: int):
    n = shapes_ff.shape[1]
    participation = np.zeros((n, 3))
    effective = np.zeros((n, 3))
    total = np.zeros(3)
    for direction in range(3):
        r = influence_vector(ndof, direction)[free]
        Mr = Mff @ r
        total[direction] = float(r @ Mr)
        for i in range(n):
            phi = shapes_ff[:, i]
            m_star = float(phi @ (Mff @ phi))
            if m_star > 0.0:
                L = float(phi @ Mr)
                participation[i, direction] = L / m_star
                effective[i, direction] = L * L / m_star
    return participation, effective, total
