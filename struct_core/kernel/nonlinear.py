# struct_core/kernel/nonlinear.py
"""
NONLINEAR SOLVER: Newton-Raphson with P-Delta geometric stiffness
=================================================================

PURPOSE:
--------
Second-order static solution. Axial forces soften (compression) or stiffen
(tension) the lateral response through the geometric stiffness Kg(N):

    F_int(u) = K·u + Kg(N(u))·u
    R        = F_ext - F_int(u)
    K_t      = K + Kg(N(u))

Each iteration assembles K_t, solves K_t·Δu = R and updates u. Converged
when ‖R‖/‖F_ext‖ < tolerance on two consecutive iterations. A tangent that
stops being positive-definite means the structure has buckled; that is
reported as DivergedIterationError, never retried.

Axial forces:
- p_delta: from the small-displacement member end forces
- geometric_nonlinearity: from the change in chord length of the deformed
  member (large-displacement axial strain)

With neither flag set F_int is linear, so the loop reproduces the linear
static solution after one correction.

STATE MACHINE:
--------------
    INITIALIZING -> ASSEMBLING -> SOLVING -> CHECKING -> CONVERGED
                        ^                       |
                        +------ ITERATING <-----+-----> DIVERGED
                                   |                    ^
                                   +--------------------+  (iteration cap)

USAGE:
------
    solver = NewtonRaphsonSolver(system, linear, tolerance=1e-6, p_delta=True)
    result = solver.solve(F, member_loads)
    result.iterations, result.history, result.amplification
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Mapping, Optional, Tuple

import numpy as np

from ..errors import (
    AnalysisCancelledError,
    DivergedIterationError,
    NonConvergentSolveError,
    SingularStiffnessError,
)
from ..model import ElementId
from .assemble import AssembledSystem
from .solve import ReducedSystem

_logger = logging.getLogger(__name__)

CONSECUTIVE_CONVERGED = 2


class SolverState(str, Enum):
    INITIALIZING = "initializing"
    ASSEMBLING = "assembling"
    SOLVING = "solving"
    CHECKING = "checking"
    CONVERGED = "converged"
    ITERATING = "iterating"
    DIVERGED = "diverged"


_TRANSITIONS = {
    SolverState.INITIALIZING: {SolverState.ASSEMBLING, SolverState.CONVERGED},
    SolverState.ASSEMBLING: {SolverState.SOLVING, SolverState.DIVERGED},
    SolverState.SOLVING: {SolverState.CHECKING, SolverState.DIVERGED},
    SolverState.CHECKING: {SolverState.CONVERGED, SolverState.ITERATING, SolverState.DIVERGED},
    SolverState.ITERATING: {SolverState.ASSEMBLING, SolverState.DIVERGED},
    SolverState.CONVERGED: {SolverState.ASSEMBLING},  # next load step
    SolverState.DIVERGED: set(),
}


@dataclass(frozen=True)
class NonlinearResult:
    """Converged second-order state of one load vector."""
    d: np.ndarray
    R: np.ndarray
    iterations: int
    history: Tuple[float, ...]
    states: Tuple[SolverState, ...]
    axial_forces: Mapping[ElementId, float]
    amplification: float


def member_axial_forces(
    system: AssembledSystem,
    d: np.ndarray,
    member_f_equiv: Optional[Mapping[ElementId, np.ndarray]] = None,
    large_displacement: bool = False,
) -> Dict[ElementId, float]:
    """
    Axial force per element (tension positive).

    Small-displacement: mean of the local end forces k·T·d - f_equiv.
    Large-displacement: EA·(L' - L)/L from the deformed chord, plus the
    member-load part of the end forces.
    """
    member_f_equiv = member_f_equiv or {}
    forces = {}
    for r in system.records:
        d_e = d[r.dof_map]
        f_eq = member_f_equiv.get(r.id)
        if large_displacement:
            EA = r.material.E * r.section.A
            chord = r.matrices.R[0] * r.L + d_e[6:9] - d_e[0:3]
            N = EA * (np.linalg.norm(chord) - r.L) / r.L
            if f_eq is not None:
                N += (f_eq[0] - f_eq[6]) / 2.0
        else:
            f_end = r.matrices.k_local @ (r.matrices.T @ d_e)
            if f_eq is not None:
                f_end = f_end - f_eq
            N = (f_end[6] - f_end[0]) / 2.0
        forces[r.id] = float(N)
    return forces


class NewtonRaphsonSolver:
    """
    Load-controlled Newton-Raphson on a shared assembled system.

    Args:
        system: Assembled K (shared, read-only)
        linear: Factorized linear system of K; fixes the free-DOF set and
            supplies the first-order reference solution
        tolerance: Relative residual norm for convergence
        max_iterations: Iteration cap per load step
        load_steps: Number of equal load increments
        p_delta: Include Kg from axial forces
        geometric_nonlinearity: Axial forces from deformed geometry
        should_cancel: Polled between iterations; True aborts the solve
    """

    def __init__(
        self,
        system: AssembledSystem,
        linear: ReducedSystem,
        tolerance: float = 1e-6,
        max_iterations: int = 50,
        load_steps: int = 1,
        p_delta: bool = False,
        geometric_nonlinearity: bool = False,
        should_cancel: Optional[Callable[[], bool]] = None,
    ):
        self.system = system
        self.linear = linear
        self.tolerance = tolerance
        self.max_iterations = max_iterations
        self.load_steps = load_steps
        self.p_delta = p_delta or geometric_nonlinearity
        self.geometric_nonlinearity = geometric_nonlinearity
        self.should_cancel = should_cancel
        self.state = SolverState.INITIALIZING
        self.trace: List[SolverState] = [self.state]

    def _enter(self, state: SolverState) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal solver transition {self.state.value} -> {state.value}")
        self.state = state
        self.trace.append(state)

    def _axial(self, d, member_f_equiv) -> Dict[ElementId, float]:
        return member_axial_forces(self.system, d, member_f_equiv, self.geometric_nonlinearity)

    def _internal_force(self, d, axial) -> np.ndarray:
        F_int = self.system.K @ d
        if self.p_delta:
            F_int = F_int + self.system.geometric_stiffness(axial) @ d
        return F_int

    def _tangent(self, axial) -> ReducedSystem:
        if not self.p_delta:
            return self.linear
        K_t = self.system.K + self.system.geometric_stiffness(axial)
        return ReducedSystem(K_t, self.system.fixed, method=self.linear.method, free=self.linear.free)

    def solve(self, F: np.ndarray, member_f_equiv: Optional[Mapping[ElementId, np.ndarray]] = None
              ) -> NonlinearResult:
        """
        Solve F_int(u) = F.

        Raises:
            DivergedIterationError: iteration cap reached, or the tangent is
                not positive-definite (buckling), which for the cg solver shows
                as a tangent solve that does not converge
            AnalysisCancelledError: ``should_cancel`` returned True
        """
        self.state = SolverState.INITIALIZING
        self.trace = [self.state]
        free = self.linear.free
        F = np.asarray(F, dtype=float)
        F_norm = float(np.linalg.norm(F[free]))
        d_linear, _ = self.linear.solve(F)

        d = np.zeros(self.system.ndof, dtype=float)
        history: List[float] = []
        total_iterations = 0

        if F_norm == 0.0:
            self._enter(SolverState.CONVERGED)
            return self._result(d, F, 0, history, d_linear, member_f_equiv)

        for step in range(1, self.load_steps + 1):
            F_step = F * (step / self.load_steps)
            F_step_norm = float(np.linalg.norm(F_step[free]))
            consecutive = 0

            for iteration in range(1, self.max_iterations + 1):
                if self.should_cancel is not None and self.should_cancel():
                    raise AnalysisCancelledError("Nonlinear solve cancelled")
                total_iterations += 1

                self._enter(SolverState.ASSEMBLING)
                axial = self._axial(d, member_f_equiv)
                residual = F_step - self._internal_force(d, axial)
                try:
                    tangent = self._tangent(axial)
                except SingularStiffnessError as e:
                    self._enter(SolverState.DIVERGED)
                    raise DivergedIterationError(
                        f"Tangent stiffness lost positive-definiteness at load step {step}, "
                        f"iteration {iteration}: structure is unstable (buckling). {e}",
                        iterations=total_iterations, history=history,
                    )

                self._enter(SolverState.SOLVING)
                delta = np.zeros_like(d)
                try:
                    delta[free] = tangent.solve_reduced(residual[free])
                except NonConvergentSolveError as e:
                    self._enter(SolverState.DIVERGED)
                    raise DivergedIterationError(
                        f"Tangent solve did not converge at load step {step}, iteration {iteration}: "
                        f"tangent stiffness is not positive-definite (buckling). {e}",
                        iterations=total_iterations, history=history,
                    )
                if not np.all(np.isfinite(delta)):
                    self._enter(SolverState.DIVERGED)
                    raise DivergedIterationError(
                        f"Non-finite displacement increment at load step {step}, iteration {iteration}",
                        iterations=total_iterations, history=history,
                    )
                d = d + delta

                self._enter(SolverState.CHECKING)
                axial = self._axial(d, member_f_equiv)
                residual = F_step - self._internal_force(d, axial)
                ratio = float(np.linalg.norm(residual[free])) / F_step_norm
                history.append(ratio)
                _logger.debug("NR step %d iteration %d: |R|/|F| = %.3e", step, iteration, ratio)

                if not np.isfinite(ratio):
                    self._enter(SolverState.DIVERGED)
                    raise DivergedIterationError(
                        f"Residual became non-finite at load step {step}, iteration {iteration}",
                        iterations=total_iterations, history=history,
                    )

                consecutive = consecutive + 1 if ratio < self.tolerance else 0
                if consecutive >= CONSECUTIVE_CONVERGED:
                    self._enter(SolverState.CONVERGED)
                    break
                self._enter(SolverState.ITERATING)
            else:
                self._enter(SolverState.DIVERGED)
                raise DivergedIterationError(
                    f"Newton-Raphson did not converge in {self.max_iterations} iterations "
                    f"at load step {step}/{self.load_steps} (last |R|/|F| = {history[-1]:.3e}, "
                    f"tolerance {self.tolerance:.1e})",
                    iterations=total_iterations, history=history,
                )

        _logger.info("Newton-Raphson converged in %d iterations", total_iterations)
        return self._result(d, F, total_iterations, history, d_linear, member_f_equiv)

    def _result(self, d, F, iterations, history, d_linear, member_f_equiv) -> NonlinearResult:
        axial = self._axial(d, member_f_equiv)
        R = self._internal_force(d, axial) - F
        linear_max = float(np.max(np.abs(d_linear))) if d_linear.size else 0.0
        amplification = float(np.max(np.abs(d))) / linear_max if linear_max > 1e-12 else 1.0
        for arr in (d, R):
            arr.setflags(write=False)
        return NonlinearResult(
            d=d,
            R=R,
            iterations=iterations,
            history=tuple(history),
            states=tuple(self.trace),
            axial_forces=axial,
            amplification=amplification,
        )
