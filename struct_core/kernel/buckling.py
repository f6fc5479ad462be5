# struct_core/kernel/buckling.py
"""Linearized buckling: critical load factor of a reference axial state."""

import logging
from typing import Mapping, Optional

import numpy as np
import scipy.linalg
import scipy.sparse as sp
import scipy.sparse.linalg as spla

from ..config import CONFIG
from ..errors import EigenSolverDivergedError
from ..model import ElementId
from .assemble import AssembledSystem, reduce_matrix

_logger = logging.getLogger(__name__)


def critical_buckling_factor(
    system: AssembledSystem,
    axial_forces: Mapping[ElementId, float],
    free: np.ndarray,
) -> Optional[float]:
    """
    Solve the eigenvalue buckling problem (K + λ·Kg)·φ = 0.

    The critical buckling factor λ_cr is the smallest positive eigenvalue:
    the multiple of the reference loads at which the structure buckles.

    Args:
        system: Assembled elastic stiffness
        axial_forces: Reference axial forces per element (tension +)
        free: Free DOF indices (same set the static solve used)

    Returns:
        λ_cr, or None when nothing is in compression (no buckling)

    Raises:
        EigenSolverDivergedError: the eigen solve failed
    """
    if not any(N < 0.0 for N in axial_forces.values()):
        return None

    Kg = system.geometric_stiffness(axial_forces)
    Kff = reduce_matrix(system.K, free)
    Kgff = reduce_matrix(Kg, free)

    try:
        if len(free) <= CONFIG.sparse_threshold:
            A = Kff.toarray() if sp.issparse(Kff) else np.asarray(Kff)
            B = Kgff.toarray() if sp.issparse(Kgff) else np.asarray(Kgff)
            # K·φ = λ·(-Kg)·φ
            eigenvalues = scipy.linalg.eigvals(A, -B)
        else:
            # largest 1/λ of -K^-1·Kg gives the smallest λ
            lu = spla.splu(sp.csc_matrix(Kff))
            Kg_csr = sp.csr_matrix(Kgff)
            op = spla.LinearOperator(Kff.shape, matvec=lambda x: -lu.solve(Kg_csr @ x), dtype=float)
            mu = spla.eigs(op, k=min(6, len(free) - 2), which='LR',
                           maxiter=CONFIG.eigen_max_iterations, return_eigenvectors=False)
            with np.errstate(divide='ignore', invalid='ignore'):
                eigenvalues = np.where(np.abs(mu) > 0.0, 1.0 / mu, np.inf)
    except (np.linalg.LinAlgError, spla.ArpackNoConvergence, RuntimeError) as e:
        raise EigenSolverDivergedError(f"Buckling eigen solve failed: {e}")

    positive = [
        ev.real for ev in eigenvalues
        if np.isfinite(ev) and abs(ev.imag) < 1e-6 * max(1.0, abs(ev.real)) and ev.real > 1e-10
    ]
    if not positive:
        return None
    factor = float(min(positive))
    _logger.info("Critical buckling factor = %.4g", factor)
    return factor
