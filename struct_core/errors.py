# struct_core/errors.py
"""
Error taxonomy for the analysis core.

Every error raised by struct_core derives from ``StructCoreError`` so callers
can catch the whole family at one seam. The orchestrator uses the class
hierarchy to decide how far a failure propagates:

    ModelIntegrityError      fatal, raised by validate() before any solve
    SingularStiffnessError   fatal for every combination sharing K
    NonConvergentSolveError  per combination
    DivergedIterationError   per combination
    EigenSolverDivergedError modal / response-spectrum only
    SpectrumDomainError      response-spectrum only
    UnknownLoadCaseError     per combination
    ModelLockedError         caller-correctable, retry after the run ends
"""

from typing import List, Optional, Tuple


class StructCoreError(RuntimeError):
    """Base class for all analysis-core errors."""
    pass


# =============================================================================
# Model integrity
# =============================================================================

class ModelIntegrityError(StructCoreError):
    """Raised when the structural model is not referentially sound."""

    def __init__(self, message: str, element_id=None, node_id=None):
        super().__init__(message)
        self.element_id = element_id
        self.node_id = node_id


class DuplicateIdError(ModelIntegrityError):
    """Two nodes, elements, materials or sections share an identifier."""
    pass


class DanglingReferenceError(ModelIntegrityError):
    """An element (or load) references a node/material/section that does not exist."""
    pass


class DegenerateElementError(ModelIntegrityError):
    """An element's start and end node coincide (same id or same location)."""
    pass


class ModelLockedError(StructCoreError):
    """The model is being analysed and cannot be mutated."""
    pass


# =============================================================================
# Solver errors
# =============================================================================

class SingularStiffnessError(StructCoreError):
    """
    Raised when the reduced stiffness matrix is not positive-definite.

    Usually an unrestrained rigid-body mode (under-constrained model) or a
    load applied to a degree of freedom nothing resists.
    """
    pass


# Kept under the name the frame kernel has always used for unstable systems
MechanismError = SingularStiffnessError


class NonConvergentSolveError(StructCoreError):
    """An iterative linear solver exceeded its tolerance/iteration budget."""

    def __init__(self, message: str, iterations: int = 0):
        super().__init__(message)
        self.iterations = iterations


class DivergedIterationError(StructCoreError):
    """Newton-Raphson did not converge, or the tangent stiffness lost definiteness."""

    def __init__(self, message: str, iterations: int = 0, history: Optional[List[float]] = None):
        super().__init__(message)
        self.iterations = iterations
        self.history = list(history or [])


class EigenSolverDivergedError(StructCoreError):
    """The generalized eigensolver failed to converge."""
    pass


class SpectrumDomainError(StructCoreError):
    """A modal period falls outside the design spectrum's defined domain."""

    def __init__(self, message: str, period: float = float('nan'),
                 domain: Tuple[float, float] = (0.0, 0.0), mode: Optional[int] = None):
        super().__init__(message)
        self.period = period
        self.domain = domain
        self.mode = mode


class UnknownLoadCaseError(StructCoreError):
    """A load combination references a case that is not in the model."""

    def __init__(self, message: str, case: str = "", combination: str = ""):
        super().__init__(message)
        self.case = case
        self.combination = combination


class AnalysisCancelledError(StructCoreError):
    """The run was cancelled (explicitly or by the advisory timeout)."""
    pass
