# struct_core/kernel - Matrix-level structural analysis core
"""
KERNEL: ASSEMBLY AND SOLVERS
============================

Everything here works on global matrices and DOF indices only:

- dof.py        node id -> global DOF index (6 per node)
- assemble.py   scatter-add of K, M and Kg, DOF partitioning
- solve.py      reduced linear solve (Cholesky / sparse LU / CG)
- modal.py      generalized eigenproblem, participation, effective mass
- nonlinear.py  Newton-Raphson with P-Delta geometric stiffness
- dynamics.py   Newmark-β time history with Rayleigh damping
- buckling.py   linearized buckling factor
"""

from .dof import DOFManager
from .assemble import AssembledSystem, assemble_system
from .solve import ReducedSystem, solve_linear
from .modal import ModalResult, natural_frequencies
from .nonlinear import NewtonRaphsonSolver, NonlinearResult, SolverState
from .buckling import critical_buckling_factor
from .dynamics import NewmarkIntegrator, TimeHistoryResult, rayleigh_coefficients

__all__ = [
    'DOFManager',
    'AssembledSystem',
    'assemble_system',
    'ReducedSystem',
    'solve_linear',
    'ModalResult',
    'natural_frequencies',
    'NewtonRaphsonSolver',
    'NonlinearResult',
    'SolverState',
    'critical_buckling_factor',
    'NewmarkIntegrator',
    'TimeHistoryResult',
    'rayleigh_coefficients',
]
