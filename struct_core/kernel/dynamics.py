# struct_core/kernel/dynamics.py
"""
TIME HISTORY: Newmark-β direct integration
==========================================

Integrates the equations of motion on the free DOFs

    M·ü + C·u̇ + K·u = P(t)

step by step with Newmark's method. The default β = 1/4, γ = 1/2 is the
average-acceleration rule: unconditionally stable, no numerical damping.

Per step (constant Δt, so K̂ is factorized once):

    a0 = 1/(βΔt²)   a1 = γ/(βΔt)   a2 = 1/(βΔt)
    a3 = 1/(2β)-1   a4 = γ/β-1     a5 = Δt·(γ/(2β)-1)

    K̂ = K + a0·M + a1·C
    P̂ = P(t+Δt) + M·(a0·u + a2·u̇ + a3·ü) + C·(a1·u + a4·u̇ + a5·ü)
    u' = K̂⁻¹·P̂
    ü' = a0·(u' - u) - a2·u̇ - a3·ü
    u̇' = u̇ + Δt·((1-γ)·ü + γ·ü')

Damping is Rayleigh, C = αM·M + αK·K, with the two coefficients chosen to
give the target ratio ζ at two anchor frequencies:

    αM = 2ζ·ωi·ωj / (ωi + ωj)        αK = 2ζ / (ωi + ωj)

Ground motion enters as the effective load P(t) = -M·ι·a_g(t); the
displacements are then relative to the moving base.

The structure starts from rest. The initial acceleration is solved on the
DOFs that carry mass; massless DOFs (rotations under a lumped mass) start
at zero.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple

import numpy as np
import scipy.linalg
import scipy.sparse as sp

from ..errors import AnalysisCancelledError, DivergedIterationError
from .assemble import MatrixLike, reduce_matrix
from .modal import massless_dofs
from .solve import ReducedSystem

_logger = logging.getLogger(__name__)

LoadFunction = Callable[[float], np.ndarray]


def rayleigh_coefficients(omega_i: float, omega_j: float, damping: float) -> Tuple[float, float]:
    """
    (αM, αK) giving ``damping`` at both anchor frequencies (rad/s).

    Equal anchors give αM = ζω, αK = ζ/ω, exact at that one frequency.
    """
    if omega_i <= 0.0 or omega_j <= 0.0:
        raise ValueError(f"Anchor frequencies must be positive, got {omega_i}, {omega_j}")
    total = omega_i + omega_j
    return 2.0 * damping * omega_i * omega_j / total, 2.0 * damping / total


def _like(reference: MatrixLike, A: MatrixLike) -> MatrixLike:
    if sp.issparse(reference):
        return sp.csr_matrix(A)
    return A.toarray() if sp.issparse(A) else np.asarray(A, dtype=float)


def rayleigh_damping(K: MatrixLike, M: MatrixLike, alpha_m: float, alpha_k: float) -> MatrixLike:
    """C = αM·M + αK·K, stored like K."""
    C = alpha_m * _like(K, M) + alpha_k * K
    return C.tocsr() if sp.issparse(C) else C


def history_function(times: Sequence[float], values: Sequence[float]) -> Callable[[float], float]:
    """Piecewise-linear f(t) through the points, zero outside them."""
    t = np.asarray(times, dtype=float)
    f = np.asarray(values, dtype=float)
    if t.ndim != 1 or t.shape != f.shape or len(t) < 2:
        raise ValueError("Load history needs matching time/value lists (>= 2 points)")
    if np.any(np.diff(t) <= 0.0):
        raise ValueError("Load history times must be strictly increasing")
    return lambda time: float(np.interp(time, t, f, left=0.0, right=0.0))


def step_count(dt: float, duration: float) -> int:
    """Number of Δt steps covering ``duration`` (at least one)."""
    if dt <= 0.0 or duration <= 0.0:
        raise ValueError(f"Time step and duration must be positive, got {dt}, {duration}")
    return max(1, int(round(duration / dt)))


@dataclass(frozen=True)
class TimeHistoryResult:
    """
    Response of one direct integration.

    Peaks are taken over the tracked DOFs. The state vectors (full length,
    ndof) are those of ``peak_step``, the step with the largest tracked
    displacement.

    Attributes:
        dt: Time step (s)
        n_steps: Steps integrated
        rayleigh: (αM, αK) damping coefficients
        recorded_times: Times of the stored snapshots (s)
        recorded_displacements: (n_records, ndof) displacement snapshots
        envelope: (ndof,) max |u| of every DOF over the whole run
        max_displacement, max_velocity, max_acceleration: tracked peaks
        peak_time, peak_step: when the displacement peak occurred
        displacement, velocity, acceleration, load: state at ``peak_step``
        final_displacement: state at the last step
    """
    dt: float
    n_steps: int
    rayleigh: Tuple[float, float]
    recorded_times: np.ndarray
    recorded_displacements: np.ndarray
    envelope: np.ndarray
    max_displacement: float
    max_velocity: float
    max_acceleration: float
    peak_time: float
    peak_step: int
    displacement: np.ndarray
    velocity: np.ndarray
    acceleration: np.ndarray
    load: np.ndarray
    final_displacement: np.ndarray

    @property
    def duration(self) -> float:
        return self.n_steps * self.dt

    def history(self, dof: int) -> Tuple[np.ndarray, np.ndarray]:
        """(times, displacement) of one global DOF from the stored snapshots."""
        return self.recorded_times, self.recorded_displacements[:, dof]


class NewmarkIntegrator:
    """
    Newmark-β integrator for one structure and one time step.

    K̂ is reduced and factorized at construction through ReducedSystem, so
    its 'cholesky' / 'sparse' / 'cg' choice applies here as well.

    Args:
        K, M: Global stiffness and mass (dense or sparse)
        fixed_dofs: Restrained DOF indices
        dt: Time step (s)
        rayleigh: (αM, αK); (0, 0) for an undamped run
        beta, gamma: Newmark parameters
        method: Linear solver for K̂
        free: Explicit free-DOF set (default: as ReducedSystem decides)

    Raises:
        SingularStiffnessError: K̂ is not positive-definite
    """

    def __init__(
        self,
        K: MatrixLike,
        M: MatrixLike,
        fixed_dofs: Sequence[int],
        dt: float,
        rayleigh: Tuple[float, float] = (0.0, 0.0),
        beta: float = 0.25,
        gamma: float = 0.5,
        method: str = 'cholesky',
        free: Optional[np.ndarray] = None,
        describe: Optional[Callable[[int], str]] = None,
    ):
        if dt <= 0.0:
            raise ValueError(f"Time step must be positive, got {dt}")
        if beta <= 0.0 or gamma < 0.5:
            raise ValueError(f"Newmark parameters need beta > 0 and gamma >= 0.5, got {beta}, {gamma}")
        self.dt = dt
        self.beta = beta
        self.gamma = gamma
        self.rayleigh = (float(rayleigh[0]), float(rayleigh[1]))

        self.K = K
        self.M = _like(K, M)
        self.C = rayleigh_damping(K, self.M, *self.rayleigh)
        self.ndof = K.shape[0]

        self.a0 = 1.0 / (beta * dt * dt)
        self.a1 = gamma / (beta * dt)
        self.a2 = 1.0 / (beta * dt)
        self.a3 = 1.0 / (2.0 * beta) - 1.0
        self.a4 = gamma / beta - 1.0
        self.a5 = dt * (gamma / (2.0 * beta) - 1.0)

        K_hat = K + self.a0 * self.M + self.a1 * self.C
        self.system = ReducedSystem(K_hat, fixed_dofs, method=method, free=free, describe=describe)
        self.free = self.system.free
        self.Mff = reduce_matrix(self.M, self.free)
        self.Cff = reduce_matrix(self.C, self.free)

    def _full(self, x: np.ndarray) -> np.ndarray:
        out = np.zeros(self.ndof, dtype=float)
        out[self.free] = x
        return out

    def _initial_acceleration(self, P_f: np.ndarray) -> np.ndarray:
        a = np.zeros(len(self.free), dtype=float)
        massed = np.flatnonzero(~massless_dofs(self.Mff))
        if len(massed) == 0 or not np.any(P_f[massed]):
            return a
        Mmm = reduce_matrix(self.Mff, massed)
        Mmm = Mmm.toarray() if sp.issparse(Mmm) else np.asarray(Mmm)
        try:
            a[massed] = scipy.linalg.solve(Mmm, P_f[massed], assume_a='sym')
        except (np.linalg.LinAlgError, ValueError) as e:
            raise DivergedIterationError(f"Initial acceleration solve failed: {e}")
        return a

    def resisting_force(self, u: np.ndarray, v: np.ndarray, a: np.ndarray) -> np.ndarray:
        """K·u + C·u̇ + M·ü for full-length state vectors."""
        return self.K @ u + self.C @ v + self.M @ a

    def integrate(
        self,
        load: LoadFunction,
        n_steps: int,
        record_every: int = 10,
        track: Optional[Sequence[int]] = None,
        should_cancel: Optional[Callable[[], bool]] = None,
    ) -> TimeHistoryResult:
        """
        Step from rest through ``n_steps`` increments of ``dt``.

        Args:
            load: t -> full-length load vector P(t)
            n_steps: Number of steps
            record_every: Store a displacement snapshot every this many steps
                (the first and last step are always stored)
            track: Global DOFs whose peaks are reported (default: all free)
            should_cancel: Polled once per step

        Raises:
            DivergedIterationError: the load or the response became non-finite
            NonConvergentSolveError: the 'cg' solve of K̂ did not converge
            AnalysisCancelledError: ``should_cancel`` returned True
        """
        if n_steps < 1:
            raise ValueError(f"n_steps must be >= 1, got {n_steps}")
        record_every = max(1, int(record_every))
        free, dt, gamma = self.free, self.dt, self.gamma
        if track is None:
            watch = np.arange(len(free))
        else:
            watch = np.flatnonzero(np.isin(free, np.asarray(track, dtype=int)))

        u = np.zeros(len(free), dtype=float)
        v = np.zeros_like(u)
        P = np.asarray(load(0.0), dtype=float)
        a = self._initial_acceleration(P[free])

        envelope = np.zeros(len(free), dtype=float)
        peak = dict(value=0.0, step=0, u=u, v=v, a=a, P=P)
        max_velocity = float(np.max(np.abs(v[watch]), initial=0.0))
        max_acceleration = float(np.max(np.abs(a[watch]), initial=0.0))
        times, snapshots = [0.0], [self._full(u)]

        for step in range(1, n_steps + 1):
            if should_cancel is not None and should_cancel():
                raise AnalysisCancelledError(f"Time history cancelled at step {step} of {n_steps}")
            t = step * dt
            P = np.asarray(load(t), dtype=float)
            if not np.all(np.isfinite(P)):
                raise DivergedIterationError(f"Non-finite load at t = {t:.4g} s (step {step})", iterations=step)
            rhs = (P[free]
                   + self.Mff @ (self.a0 * u + self.a2 * v + self.a3 * a)
                   + self.Cff @ (self.a1 * u + self.a4 * v + self.a5 * a))
            u_next = self.system.solve_reduced(rhs)
            a_next = self.a0 * (u_next - u) - self.a2 * v - self.a3 * a
            v_next = v + dt * ((1.0 - gamma) * a + gamma * a_next)
            if not (np.all(np.isfinite(u_next)) and np.all(np.isfinite(v_next))):
                raise DivergedIterationError(
                    f"Non-finite response at t = {t:.4g} s (step {step})", iterations=step,
                )
            u, v, a = u_next, v_next, a_next

            np.maximum(envelope, np.abs(u), out=envelope)
            if len(watch):
                value = float(np.max(np.abs(u[watch])))
                if value > peak['value']:
                    peak = dict(value=value, step=step, u=u, v=v, a=a, P=P)
                max_velocity = max(max_velocity, float(np.max(np.abs(v[watch]))))
                max_acceleration = max(max_acceleration, float(np.max(np.abs(a[watch]))))

            if step % record_every == 0 or step == n_steps:
                times.append(t)
                snapshots.append(self._full(u))

        _logger.info("Newmark: %d steps of %.4g s, peak |u| = %.4g m at t = %.4g s",
                     n_steps, dt, peak['value'], peak['step'] * dt)
        return TimeHistoryResult(
            dt=dt,
            n_steps=n_steps,
            rayleigh=self.rayleigh,
            recorded_times=np.array(times),
            recorded_displacements=np.array(snapshots),
            envelope=self._full(envelope),
            max_displacement=peak['value'],
            max_velocity=max_velocity,
            max_acceleration=max_acceleration,
            peak_time=peak['step'] * dt,
            peak_step=peak['step'],
            displacement=self._full(peak['u']),
            velocity=self._full(peak['v']),
            acceleration=self._full(peak['a']),
            load=peak['P'],
            final_displacement=self._full(u),
        )
