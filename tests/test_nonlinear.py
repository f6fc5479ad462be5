# File: tests/test_nonlinear.py
"""
TEST: NEWTON-RAPHSON, P-DELTA AND LINEARIZED BUCKLING
=====================================================

PURPOSE:
--------
A fixed-base cantilever column carries a large axial load P and a small
lateral load H at the top. Second-order theory amplifies the lateral
deflection:

    δ = δ₀ · 3(tan(kL) - kL) / (kL)³,    k = sqrt(P / EI)

and the column buckles at

    P_cr = π²EI / (4L²)

The tests check that:
1. Without geometric stiffness the iteration reproduces the linear solve
2. With P-Delta the amplification matches the closed form
3. An iteration cap too small to converge raises DivergedIterationError
4. The buckling factor matches P_cr / P
"""

import numpy as np
import pytest

from struct_core.errors import AnalysisCancelledError, DivergedIterationError, NonConvergentSolveError
from struct_core.kernel.assemble import assemble_system
from struct_core.kernel.buckling import critical_buckling_factor
from struct_core.kernel.nonlinear import NewtonRaphsonSolver, SolverState, member_axial_forces
from struct_core.kernel.solve import ReducedSystem
from struct_core.loads import LoadCombinationEngine
from struct_core.model import FIXED, FREE, Element, Load, LoadCombination, Material, Node, Section
from struct_core.repository import ModelRepository

E = 25e9
WIDTH, HEIGHT = 0.3, 0.5
IZ = HEIGHT * WIDTH ** 3 / 12.0   # weak axis: sway along global Y
L = 4.0
P = 1.0e6      # axial compression (N)
H = 10e3       # lateral load along Y (N)
N_ELEM = 4


def _column(P=P, H=H):
    repo = ModelRepository()
    repo.add_material(Material('C25', 'concrete', 25e6, E, 0.2, 0.0))
    repo.add_section(Section('R30x50', width=WIDTH, height=HEIGHT))
    for i in range(N_ELEM + 1):
        repo.add_node(Node(i, 0.0, 0.0, i * L / N_ELEM, FIXED if i == 0 else FREE))
    for i in range(N_ELEM):
        repo.add_element(Element(f"c{i}", 'column', i, i + 1, 'C25', 'R30x50'))
    repo.add_load('gravity', Load(-P, 'FZ', node_id=N_ELEM), load_type='dead')
    repo.add_load('lateral', Load(H, 'FY', node_id=N_ELEM), load_type='wind')
    repo.add_combination(LoadCombination('D+W', (('gravity', 1.0), ('lateral', 1.0))))
    return repo


def _setup(P=P, H=H):
    model = _column(P, H).snapshot()
    system = assemble_system(model)
    linear = ReducedSystem(system.K, system.fixed)
    F = LoadCombinationEngine(model, system.dof).combine('D+W').F
    return system, linear, F


def test_without_geometric_stiffness_matches_linear():
    """
    WHY DOES THIS MATTER?
    ---------------------
    With no P-Delta the internal force is K·u, so one Newton step lands on
    the linear solution and the second confirms it.
    """
    system, linear, F = _setup()
    d_linear, R_linear = linear.solve(F)

    result = NewtonRaphsonSolver(system, linear).solve(F)

    np.testing.assert_allclose(result.d, d_linear, rtol=1e-9, atol=1e-15)
    np.testing.assert_allclose(result.R[system.fixed], R_linear[system.fixed], rtol=1e-6, atol=1e-6)
    assert result.iterations == 2
    assert np.isclose(result.amplification, 1.0)
    assert result.states[0] is SolverState.INITIALIZING
    assert result.states[-1] is SolverState.CONVERGED


def test_p_delta_amplification():
    """
    THEORETICAL SOLUTION:
    ---------------------
    kL = 0.754 for this column, so the top sway is amplified by ≈ 1.295
    over the first-order value. Four elements with the consistent
    geometric stiffness land within a few percent.
    """
    system, linear, F = _setup()
    result = NewtonRaphsonSolver(system, linear, p_delta=True).solve(F)

    EI = E * IZ
    kL = np.sqrt(P / EI) * L
    exact = 3.0 * (np.tan(kL) - kL) / kL ** 3

    top_y = system.dof.idx(N_ELEM, 1)
    d_linear, _ = linear.solve(F)
    assert np.isclose(result.d[top_y] / d_linear[top_y], exact, rtol=0.03)
    assert np.isclose(result.amplification, exact, rtol=0.03)
    assert result.history[-1] < 1e-6
    assert result.history[0] > result.history[-1]

    # the column is in compression everywhere
    assert all(np.isclose(N, -P, rtol=1e-4) for N in result.axial_forces.values())

    print(f"✓ P-Delta amplification {result.amplification:.3f} (theory {exact:.3f}) "
          f"in {result.iterations} iterations")


def test_load_steps_reach_same_state():
    system, linear, F = _setup()
    one = NewtonRaphsonSolver(system, linear, p_delta=True).solve(F)
    four = NewtonRaphsonSolver(system, linear, p_delta=True, load_steps=4).solve(F)
    np.testing.assert_allclose(four.d, one.d, rtol=1e-5, atol=1e-12)
    assert four.iterations > one.iterations


def test_iteration_cap_diverges():
    """
    Convergence needs two consecutive iterations under tolerance, so a cap
    of one iteration can never converge on a loaded structure.
    """
    system, linear, F = _setup()
    solver = NewtonRaphsonSolver(system, linear, p_delta=True, max_iterations=1)

    with pytest.raises(DivergedIterationError) as info:
        solver.solve(F)
    assert info.value.iterations == 1
    assert len(info.value.history) == 1
    assert solver.state is SolverState.DIVERGED


def test_beyond_buckling_load_diverges():
    """Above P_cr the tangent stops being positive-definite."""
    P_cr = np.pi ** 2 * E * IZ / (4.0 * L ** 2)
    system, linear, F = _setup(P=1.5 * P_cr)

    with pytest.raises(DivergedIterationError):
        NewtonRaphsonSolver(system, linear, p_delta=True).solve(F)


def test_cg_tangent_failure_reported_as_divergence(monkeypatch):
    """
    WHAT IS THIS TEST?
    ------------------
    The cg solver has no factorization to reject an indefinite tangent; it
    just stops converging. That must reach the caller as the same
    DivergedIterationError a Cholesky tangent raises, not as a linear
    solver error.
    """
    system, linear, F = _setup()
    solver = NewtonRaphsonSolver(system, linear, p_delta=True)

    def not_converging(Ff):
        raise NonConvergentSolveError("Conjugate gradient did not reach rtol", iterations=10000)

    tangent = ReducedSystem(system.K, system.fixed, method='cg')
    monkeypatch.setattr(tangent, 'solve_reduced', not_converging)
    monkeypatch.setattr(solver, '_tangent', lambda axial: tangent)

    with pytest.raises(DivergedIterationError, match="not positive-definite") as info:
        solver.solve(F)
    assert info.value.iterations == 1
    assert solver.state is SolverState.DIVERGED


def test_zero_load_converges_immediately():
    system, linear, F = _setup()
    result = NewtonRaphsonSolver(system, linear, p_delta=True).solve(np.zeros_like(F))
    assert result.iterations == 0
    assert np.allclose(result.d, 0.0)


def test_cancel_between_iterations():
    system, linear, F = _setup()
    solver = NewtonRaphsonSolver(system, linear, p_delta=True, should_cancel=lambda: True)
    with pytest.raises(AnalysisCancelledError):
        solver.solve(F)


def test_critical_buckling_factor():
    """
    λ_cr · P = π²EI / (4L²) for the weak axis, within 1% on four elements.
    """
    system, linear, F = _setup(H=0.0)
    d, _ = linear.solve(F)
    axial = member_axial_forces(system, d)

    factor = critical_buckling_factor(system, axial, linear.free)
    P_cr = np.pi ** 2 * E * IZ / (4.0 * L ** 2)
    assert np.isclose(factor, P_cr / P, rtol=0.01)

    print(f"✓ λ_cr = {factor:.3f} (theory {P_cr / P:.3f})")


def test_no_compression_no_buckling():
    system, linear, _ = _setup()
    assert critical_buckling_factor(system, {'c0': 5e5, 'c1': 5e5}, linear.free) is None
