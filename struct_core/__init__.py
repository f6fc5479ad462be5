# struct_core - Structural analysis core for building frames
"""
STRUCT-CORE: Finite-Element Analysis and Code Checks for Building Frames
========================================================================

This package provides:
- A model repository with referential-integrity validation
- Load cases and factored combinations (SNI 1727 basic set)
- 3D frame / truss stiffness, mass and geometric stiffness
- Linear static, modal, response-spectrum, time-history and P-Delta solvers
- Compliance rules (stress, drift, deflection, capacity, stability)
- A background orchestrator with progress and cancellation

ARCHITECTURE:
-------------
    model.py          value types (Node, Element, Load, ...)
    repository.py     ModelRepository -> StructuralModel snapshot
    catalog.py        SNI materials and rectangular sections
    elements.py       element matrices and stiffness cache
    loads.py          load combination engine
    kernel/           DOFs, assembly, linear / modal / nonlinear solvers
    seismic.py        design spectrum, SRSS / CQC, equivalent lateral force
    post.py           member forces, reactions, drift, deflection
    checks/           compliance rules and capacity checks
    results.py        AnalysisResults value
    orchestrator.py   start() -> handle, run registry
    generative/       parametric frame generator
"""

from .config import CONFIG, AnalysisConfiguration, AnalysisType, SpectrumParameters, TimeHistoryParameters
from .errors import (
    StructCoreError,
    ModelIntegrityError,
    DuplicateIdError,
    DanglingReferenceError,
    DegenerateElementError,
    ModelLockedError,
    SingularStiffnessError,
    MechanismError,
    NonConvergentSolveError,
    DivergedIterationError,
    EigenSolverDivergedError,
    SpectrumDomainError,
    UnknownLoadCaseError,
    AnalysisCancelledError,
)
from .model import (
    FIXED,
    FREE,
    PINNED,
    ROLLER,
    Direction,
    Element,
    ElementType,
    Load,
    LoadCase,
    LoadCombination,
    LoadType,
    Material,
    MaterialClass,
    Node,
    Section,
    Support,
)
from .repository import ModelRepository, StructuralModel
from .loads import LoadCombinationEngine, parse_combination, standard_combinations
from .results import AnalysisResults, CombinationResult, ResultError
from .orchestrator import AnalysisHandle, AnalysisOrchestrator, RunRegistry, REGISTRY, run_analysis, start

__version__ = "0.1.0"
