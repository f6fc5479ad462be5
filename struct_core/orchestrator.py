# struct_core/orchestrator.py
"""
ANALYSIS ORCHESTRATOR: One call from model to results
=====================================================

PURPOSE:
--------
Runs a complete analysis off the caller's thread and hands back a handle:

    orchestrator = AnalysisOrchestrator()
    handle = orchestrator.start(repo, AnalysisConfiguration())
    handle.on_progress(lambda stage, fraction: print(stage, fraction))
    results = handle.result()          # blocks; or handle.cancel()

RUN SEQUENCE:
-------------
    validate     snapshot the repository (integrity errors abort the run)
    assembly     K (and M) built once, reduced system factorized once
    solve        one task per combination on a bounded thread pool, or
                 the modal / response-spectrum / time-history path
    compliance   rules over whatever solved successfully
    complete

Progress fires at the end of each stage and after every combination.
Cancellation is polled between those checkpoints (and between Newton
iterations or time steps), never inside assembly or a factorization.
The advisory ``timeout`` requests the same cooperative cancellation.

The repository stays locked from start() until the run finishes, so any
``add_*`` on it meanwhile raises ModelLockedError.

Failures:
- integrity or singular stiffness: the run returns ``status='error'``
  with no displacement or force output
- a failing combination gets an error entry; its siblings are unaffected
"""

import logging
import math
import threading
import uuid
from concurrent.futures import CancelledError, Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Callable, Dict, List, Optional, Tuple, Union

import numpy as np

from .checks.rules import ComplianceEvaluator, ComplianceInput, ComplianceRule
from .checks.steel import slenderness_advisories
from .config import CONFIG, AnalysisConfiguration, AnalysisType
from .errors import (
    AnalysisCancelledError,
    EigenSolverDivergedError,
    ModelIntegrityError,
    StructCoreError,
    UnknownLoadCaseError,
)
from .kernel.assemble import AssembledSystem, assemble_system
from .kernel.buckling import critical_buckling_factor
from .kernel.dynamics import (
    NewmarkIntegrator,
    TimeHistoryResult,
    history_function,
    rayleigh_coefficients,
    step_count,
)
from .kernel.modal import ModalResult, influence_vector, natural_frequencies
from .kernel.nonlinear import NewtonRaphsonSolver
from .kernel.solve import ReducedSystem
from .loads import FactoredLoads, LoadCombinationEngine, gravity_weights, missing_standard_combinations
from .model import LoadCombination
from .post import (
    beam_deflections,
    element_end_forces,
    envelope_forces,
    node_displacements,
    node_reactions,
    recover_element_forces,
    story_drifts,
)
from .repository import ModelRepository, StructuralModel
from .results import ERROR, SUCCESS, AnalysisResults, CombinationResult, ResultError
from .seismic import DesignSpectrum, ResponseSpectrumCombiner

_logger = logging.getLogger(__name__)

STAGES = ('validate', 'assembly', 'solve', 'compliance', 'complete')

DYNAMIC_ANALYSES = (AnalysisType.MODAL, AnalysisType.RESPONSE_SPECTRUM, AnalysisType.TIME_HISTORY)

ProgressCallback = Callable[[str, float], None]


# =============================================================================
# Run registry
# =============================================================================

class RunRegistry:
    """
    Process-wide map of run id -> live handle.

    A run is registered by start() and removed once its result has been
    consumed or it has been cancelled.
    """

    def __init__(self):
        self._runs: Dict[str, 'AnalysisHandle'] = {}
        self._lock = threading.Lock()

    def register(self, handle: 'AnalysisHandle') -> None:
        with self._lock:
            self._runs[handle.run_id] = handle

    def get(self, run_id: str) -> Optional['AnalysisHandle']:
        with self._lock:
            return self._runs.get(run_id)

    def remove(self, run_id: str) -> None:
        with self._lock:
            self._runs.pop(run_id, None)

    def active(self) -> List[str]:
        with self._lock:
            return list(self._runs)

    def __contains__(self, run_id: str) -> bool:
        with self._lock:
            return run_id in self._runs

    def __len__(self) -> int:
        with self._lock:
            return len(self._runs)


REGISTRY = RunRegistry()


# =============================================================================
# Handle
# =============================================================================

class AnalysisHandle:
    """Caller-side view of one running analysis."""

    def __init__(self, run_id: str, registry: RunRegistry):
        self.run_id = run_id
        self._registry = registry
        self._future: Optional[Future] = None
        self._cancel = threading.Event()
        self._cancel_reason = "cancelled by caller"
        self._callbacks: List[ProgressCallback] = []
        self._events: List[Tuple[str, float]] = []
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------

    def on_progress(self, callback: ProgressCallback) -> 'AnalysisHandle':
        """
        Subscribe to (stage, fraction) checkpoints.

        Checkpoints that already fired are replayed to the new subscriber
        first, so subscribing right after start() never misses one.
        Callbacks run on the analysis thread.
        """
        with self._lock:
            self._callbacks.append(callback)
            past = list(self._events)
        for stage, fraction in past:
            self._notify(callback, stage, fraction)
        return self

    @property
    def progress(self) -> Tuple[str, float]:
        with self._lock:
            return self._events[-1] if self._events else ('pending', 0.0)

    def _report(self, stage: str, fraction: float) -> None:
        with self._lock:
            self._events.append((stage, fraction))
            callbacks = list(self._callbacks)
        _logger.debug("Run %s: %s %.0f%%", self.run_id, stage, 100.0 * fraction)
        for callback in callbacks:
            self._notify(callback, stage, fraction)

    def _notify(self, callback: ProgressCallback, stage: str, fraction: float) -> None:
        try:
            callback(stage, fraction)
        except Exception:
            _logger.exception("Progress callback failed at %s (run %s)", stage, self.run_id)

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    def cancel(self) -> None:
        """Request cooperative cancellation; result() then raises AnalysisCancelledError."""
        self._cancel.set()
        if self._future is not None:
            self._future.cancel()
        self._registry.remove(self.run_id)
        _logger.info("Run %s: cancellation requested", self.run_id)

    def _expire(self) -> None:
        self._cancel_reason = "advisory timeout expired"
        self._cancel.set()
        _logger.warning("Run %s: timeout expired, cancelling", self.run_id)

    @property
    def cancel_requested(self) -> bool:
        return self._cancel.is_set()

    def check_cancelled(self) -> None:
        if self._cancel.is_set():
            raise AnalysisCancelledError(f"Analysis {self.run_id} {self._cancel_reason}")

    # ------------------------------------------------------------------
    # Result
    # ------------------------------------------------------------------

    def done(self) -> bool:
        return self._future is not None and self._future.done()

    def result(self, timeout: Optional[float] = None) -> AnalysisResults:
        """
        Block until the run finishes.

        Raises:
            AnalysisCancelledError: the run was cancelled or timed out
            concurrent.futures.TimeoutError: ``timeout`` elapsed first
                (the run keeps going and result() can be called again)
        """
        try:
            return self._future.result(timeout)
        except FutureTimeout:
            raise
        except CancelledError:
            raise AnalysisCancelledError(f"Analysis {self.run_id} {self._cancel_reason}")
        finally:
            if self._future.done():
                self._registry.remove(self.run_id)


# =============================================================================
# Orchestrator
# =============================================================================

class AnalysisOrchestrator:
    """
    Starts analyses on a background pool.

    Args:
        registry: Run registry (process-wide by default)
        rules: Compliance rule set (built-in rules by default)
        max_runs: How many analyses may run at the same time
    """

    def __init__(self, registry: RunRegistry = REGISTRY,
                 rules: Optional[List[ComplianceRule]] = None, max_runs: int = 4):
        self.registry = registry
        self.evaluator = ComplianceEvaluator(rules)
        self._executor = ThreadPoolExecutor(max_workers=max_runs, thread_name_prefix="struct-run")

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def start(self, source: Union[ModelRepository, StructuralModel],
              config: Optional[AnalysisConfiguration] = None,
              on_progress: Optional[ProgressCallback] = None) -> AnalysisHandle:
        """
        Launch an analysis and return immediately.

        ``source`` is a ModelRepository (locked and validated here) or an
        already validated StructuralModel snapshot. ``on_progress`` is
        subscribed before any work is queued.
        """
        config = config or AnalysisConfiguration()
        handle = AnalysisHandle(uuid.uuid4().hex[:12], self.registry)
        if on_progress is not None:
            handle.on_progress(on_progress)
        self.registry.register(handle)
        _logger.info("Run %s: %s analysis requested", handle.run_id, config.analysis_type.value)

        repo = source if isinstance(source, ModelRepository) else None
        if repo is not None:
            repo.acquire()
        try:
            model = repo.snapshot() if repo is not None else source
        except ModelIntegrityError as e:
            if repo is not None:
                repo.release()
            _logger.error("Run %s: model integrity check failed: %s", handle.run_id, e)
            handle._report('validate', 1.0)
            future = Future()
            future.set_result(_failed(handle.run_id, config, e, []))
            handle._future = future
            return handle
        handle._report('validate', 1.0)

        timer = None
        if config.timeout is not None:
            timer = threading.Timer(config.timeout, handle._expire)
            timer.daemon = True

        released = threading.Event()

        def _finished(*_):
            if timer is not None:
                timer.cancel()
            if repo is not None and not released.is_set():
                released.set()
                repo.release()

        future = self._executor.submit(self._execute, handle, model, config, timer, _finished)
        handle._future = future
        future.add_done_callback(_finished)
        return handle

    def run(self, source: Union[ModelRepository, StructuralModel],
            config: Optional[AnalysisConfiguration] = None) -> AnalysisResults:
        """Synchronous convenience: start() and wait for the result."""
        return self.start(source, config).result()

    # ------------------------------------------------------------------
    # Worker side
    # ------------------------------------------------------------------

    def _execute(self, handle: AnalysisHandle, model: StructuralModel, config: AnalysisConfiguration,
                 timer: Optional[threading.Timer], finished: Callable[[], None]) -> AnalysisResults:
        if timer is not None:
            timer.start()
        try:
            return _Run(handle, model, config, self.evaluator).execute()
        finally:
            finished()


def _failed(run_id: str, config: AnalysisConfiguration, exc: BaseException,
            warnings: List[str]) -> AnalysisResults:
    return AnalysisResults(
        run_id=run_id,
        analysis_type=config.analysis_type.value,
        status=ERROR,
        warnings=tuple(warnings),
        errors=(ResultError.from_exception(exc),),
    )


class _Run:
    """State of one analysis on the worker thread."""

    def __init__(self, handle: AnalysisHandle, model: StructuralModel,
                 config: AnalysisConfiguration, evaluator: ComplianceEvaluator):
        self.handle = handle
        self.model = model
        self.config = config
        self.evaluator = evaluator
        self.warnings: List[str] = []
        self.errors: List[ResultError] = []

    def warn(self, message: str) -> None:
        _logger.warning("Run %s: %s", self.handle.run_id, message)
        self.warnings.append(message)

    def execute(self) -> AnalysisResults:
        config = self.config
        for note in self.model.advisories() + slenderness_advisories(self.model):
            self.warn(note)

        try:
            self.handle.check_cancelled()
            system, linear = self.assemble()
            self.handle._report('assembly', 1.0)
            self.handle.check_cancelled()

            modal = None
            buckling = None
            history = None
            if config.analysis_type in (AnalysisType.STATIC, AnalysisType.NONLINEAR):
                entries = self.solve_combinations(system, linear)
                if config.analysis_type is AnalysisType.NONLINEAR and config.pdelta_active:
                    try:
                        buckling = self.buckling_factor(system, linear, entries)
                    except EigenSolverDivergedError as e:
                        self.warn(f"Buckling factor not available: {e}")
            else:
                modal = self.modal(system)
                entries = []
                if config.analysis_type is AnalysisType.RESPONSE_SPECTRUM:
                    entries = [self.response_spectrum(system, modal)]
                elif config.analysis_type is AnalysisType.TIME_HISTORY:
                    entry, history = self.time_history(system, linear, modal)
                    entries = [entry]
                self.handle._report('solve', 1.0)
        except AnalysisCancelledError:
            raise
        except StructCoreError as e:
            _logger.error("Run %s failed: %s", self.handle.run_id, e)
            return _failed(self.handle.run_id, config, e, self.warnings)

        self.handle.check_cancelled()
        report = self.evaluator.evaluate(ComplianceInput(
            analysis_type=config.analysis_type,
            model=self.model,
            element_forces={c.name: c.element_forces for c in entries if c.succeeded},
            drifts={c.name: c.drifts for c in entries if c.succeeded},
            deflections={c.name: c.deflections for c in entries if c.succeeded},
            modal=modal,
            excitation_direction=config.excitation_direction,
            buckling_factor=buckling,
            p_delta=config.pdelta_active,
        ), config)
        for finding in report.findings:
            if finding.passed and finding.utilization >= CONFIG.high_utilization_warning:
                self.warn(f"High utilization {finding.utilization:.2f} on {finding.rule_id}"
                          f"{' at ' + finding.location if finding.location else ''}")
        self.handle._report('compliance', 1.0)

        solved = bool(modal is not None and not entries) or any(c.succeeded for c in entries)
        status = SUCCESS if solved else ERROR
        results = AnalysisResults(
            run_id=self.handle.run_id,
            analysis_type=config.analysis_type.value,
            status=status,
            combinations=tuple(entries),
            modal=modal,
            compliance=report,
            buckling_factor=buckling,
            time_history=history,
            warnings=tuple(self.warnings),
            errors=tuple(self.errors),
        )
        self.handle._report('complete', 1.0)
        _logger.info("Run %s finished: %s, compliance %s", self.handle.run_id, status,
                     report.overall_status.value)
        return results

    # ------------------------------------------------------------------
    # Assembly
    # ------------------------------------------------------------------

    def assemble(self) -> Tuple[AssembledSystem, ReducedSystem]:
        """K (and M) plus the factorized reduced system, built exactly once."""
        config = self.config
        dynamic = config.analysis_type in DYNAMIC_ANALYSES
        nodal_masses = None
        if dynamic:
            nodal_masses = {nid: w / CONFIG.gravity for nid, w in gravity_weights(self.model).items() if w > 0.0}
        system = assemble_system(
            self.model,
            mass_type=config.mass_type if dynamic else None,
            sparse=True if config.solver in ('sparse', 'cg') else None,
            nodal_masses=nodal_masses,
        )
        linear = ReducedSystem(system.K, system.fixed, method=config.solver, describe=system.dof.describe)
        _logger.info("Run %s: %d free DOFs, %s solver", self.handle.run_id, len(linear.free), linear.method)
        return system, linear

    # ------------------------------------------------------------------
    # Static / nonlinear
    # ------------------------------------------------------------------

    def solve_combinations(self, system: AssembledSystem, linear: ReducedSystem) -> List[CombinationResult]:
        config = self.config
        names = list(config.combinations) if config.combinations else [c.name for c in self.model.combinations]
        if not names:
            raise UnknownLoadCaseError("Model defines no load combinations to solve")

        missing = missing_standard_combinations(self.model)
        if missing:
            self.warn(f"Standard combinations not defined: {', '.join(missing)}")

        engine = LoadCombinationEngine(self.model, system.dof)
        for case in self.model.load_cases:
            engine.case_vector(case)

        pool = ThreadPoolExecutor(max_workers=min(config.max_workers, len(names)),
                                  thread_name_prefix=f"struct-{self.handle.run_id}")
        entries: List[CombinationResult] = []
        try:
            futures = {name: pool.submit(self.solve_one, name, engine, system, linear) for name in names}
            for k, (name, future) in enumerate(futures.items(), start=1):
                try:
                    entry = future.result()
                except AnalysisCancelledError:
                    raise
                except StructCoreError as e:
                    _logger.error("Combination %r failed: %s", name, e)
                    error = ResultError.from_exception(e, combination=name)
                    self.errors.append(error)
                    entry = CombinationResult(name=name, error=error)
                entries.append(entry)
                self.handle._report('solve', k / len(names))
        finally:
            pool.shutdown(wait=True, cancel_futures=True)
        return entries

    def solve_one(self, name: str, engine: LoadCombinationEngine, system: AssembledSystem,
                  linear: ReducedSystem) -> CombinationResult:
        self.handle.check_cancelled()
        config = self.config
        factored = engine.combine(name)

        iterations, history, amplification = 0, (), None
        if config.analysis_type is AnalysisType.NONLINEAR:
            solver = NewtonRaphsonSolver(
                system, linear,
                tolerance=config.tolerance,
                max_iterations=config.max_iterations,
                load_steps=config.load_steps,
                p_delta=config.p_delta,
                geometric_nonlinearity=config.geometric_nonlinearity,
                should_cancel=lambda: self.handle.cancel_requested,
            )
            f_equiv = {eid: ml.f_equiv for eid, ml in factored.member_loads.items()}
            state = solver.solve(factored.F, f_equiv)
            d, R = state.d, state.R
            iterations, history, amplification = state.iterations, state.history, state.amplification
            if config.pdelta_active and amplification > CONFIG.pdelta_amplification_warning:
                self.warn(f"P-Delta amplification {amplification:.2f} in combination {name!r}")
        else:
            d, R = linear.solve(factored.F)

        _logger.info("Combination %r solved: max |d| = %.4g m", name, float(np.max(np.abs(d))))
        return CombinationResult(
            name=name,
            displacements=node_displacements(system.dof, d),
            reactions=node_reactions(system.dof, R, system.fixed),
            element_forces=tuple(recover_element_forces(system, d, factored)),
            drifts=tuple(story_drifts(self.model, system.dof, d)),
            deflections=beam_deflections(system, d, factored),
            iterations=iterations,
            history=tuple(history),
            amplification=amplification,
        )

    def buckling_factor(self, system: AssembledSystem, linear: ReducedSystem,
                        entries: List[CombinationResult]) -> Optional[float]:
        """λcr of the combination carrying the most compression."""
        best, best_compression = None, 0.0
        for entry in entries:
            if not entry.succeeded:
                continue
            compression = sum(-f.axial for f in entry.element_forces if f.axial < 0.0)
            if compression > best_compression:
                best, best_compression = entry, compression
        if best is None:
            return None
        factor = critical_buckling_factor(system, {f.element_id: f.axial for f in best.element_forces},
                                          linear.free)
        if factor is not None and factor < 1.0:
            self.warn(f"Critical buckling factor {factor:.3f} < 1.0 in combination {best.name!r}")
        return factor

    # ------------------------------------------------------------------
    # Modal / response spectrum
    # ------------------------------------------------------------------

    def modal(self, system: AssembledSystem) -> ModalResult:
        config = self.config
        modal = natural_frequencies(system.K, system.M, system.fixed, config.n_modes)
        direction = config.excitation_direction
        captured = modal.cumulative_mass_ratio(direction)
        if modal.total_mass[direction] > 0.0 and captured < CONFIG.mass_participation_target:
            self.warn(f"Modal mass participation {captured:.1%} along {'XYZ'[direction]} is below "
                      f"{CONFIG.mass_participation_target:.0%}; request more modes")
        return modal

    def response_spectrum(self, system: AssembledSystem, modal: ModalResult) -> CombinationResult:
        config = self.config
        direction = config.excitation_direction
        name = f"RS-{'XYZ'[direction]}"
        try:
            spectrum = DesignSpectrum.from_parameters(config.spectrum)
            combiner = ResponseSpectrumCombiner(spectrum, config.damping_ratio,
                                                config.combination_rule, config.cqc_period_ratio)
            rs = combiner.analyze(modal, direction)
        except StructCoreError as e:
            _logger.error("Response spectrum %s failed: %s", name, e)
            error = ResultError.from_exception(e, combination=name)
            self.errors.append(error)
            return CombinationResult(name=name, error=error)

        if rs.rule == 'cqc' and config.combination_rule == 'auto':
            self.warn(f"Closely spaced modes (period ratio >= {config.cqc_period_ratio:.2f}): "
                      f"{name} combined by CQC")

        forces = []
        for record in system.records:
            per_mode = np.array([element_end_forces(record, u) for u in rs.modal_displacements])
            forces.append(envelope_forces(record, rs.combine(per_mode)))

        return CombinationResult(
            name=name,
            displacements=node_displacements(system.dof, rs.displacement),
            element_forces=tuple(forces),
            drifts=tuple(story_drifts(self.model, system.dof, rs.modal_displacements, combine=rs.combine)),
            base_shear=rs.base_shear if math.isfinite(rs.base_shear) else None,
        )


    # ------------------------------------------------------------------
    # Time history
    # ------------------------------------------------------------------

    def load_pattern(self, system: AssembledSystem, pattern: str) -> FactoredLoads:
        """A combination by name, or a single load case at factor 1."""
        engine = LoadCombinationEngine(self.model, system.dof)
        is_combination = any(c.name == pattern for c in self.model.combinations)
        if not is_combination and pattern in self.model.load_cases:
            return engine.combine(LoadCombination(pattern, ((pattern, 1.0),)))
        return engine.combine(pattern)

    def time_history(self, system: AssembledSystem, linear: ReducedSystem,
                     modal: ModalResult) -> Tuple[CombinationResult, Optional[TimeHistoryResult]]:
        """
        Newmark integration of the configured excitation.

        Ground motion: P(t) = -M·ι·a_g(t)·g along the excitation direction,
        displacements relative to the base. Load excitation: P(t) = f(t)·F
        of the named pattern. Outputs are the state at the step of largest
        translational displacement.
        """
        config = self.config
        params = config.time_history
        direction = config.excitation_direction
        ground = params.excitation == 'ground'
        name = f"TH-{'XYZ'[direction]}" if ground else f"TH-{params.load_pattern}"

        anchors = [min(m, modal.n_modes) for m in params.damping_modes]
        if anchors != list(params.damping_modes):
            self.warn(f"Only {modal.n_modes} modes available; Rayleigh damping anchored on modes "
                      f"{anchors[0]} and {anchors[1]}")
        omega_i, omega_j = (float(modal.omega[m - 1]) for m in anchors)
        if params.time_step > modal.periods[0] / 20.0:
            self.warn(f"Time step {params.time_step:g} s is coarse for the fundamental period "
                      f"{modal.periods[0]:.3g} s (T1/20 = {modal.periods[0] / 20.0:.3g} s)")

        history = history_function(params.times, params.values)
        factored = None
        try:
            if ground:
                pattern = -CONFIG.gravity * (system.M @ influence_vector(system.ndof, direction))
            else:
                factored = self.load_pattern(system, params.load_pattern)
                pattern = np.asarray(factored.F)
            integrator = NewmarkIntegrator(
                system.K, system.M, system.fixed, params.time_step,
                rayleigh=rayleigh_coefficients(omega_i, omega_j, config.damping_ratio),
                beta=params.beta, gamma=params.gamma,
                method=config.solver, free=linear.free, describe=system.dof.describe,
            )
            translations = np.concatenate([system.dof.direction_dofs(k) for k in range(3)])
            th = integrator.integrate(
                lambda t: history(t) * pattern,
                step_count(params.time_step, params.duration),
                record_every=params.record_every,
                track=translations,
                should_cancel=lambda: self.handle.cancel_requested,
            )
        except AnalysisCancelledError:
            raise
        except StructCoreError as e:
            _logger.error("Time history %s failed: %s", name, e)
            error = ResultError.from_exception(e, combination=name)
            self.errors.append(error)
            return CombinationResult(name=name, error=error), None

        d = th.displacement
        R = integrator.resisting_force(d, th.velocity, th.acceleration) - th.load
        reactions = node_reactions(system.dof, R, system.fixed)
        loads = None
        if factored is not None:
            scale = history(th.peak_time)
            loads = FactoredLoads(name=factored.name, F=factored.F * scale,
                                  member_loads={eid: ml.scaled(scale) for eid, ml in factored.member_loads.items()})
        base_shear = None
        if ground:
            base_shear = abs(sum(float(r[direction]) for r in reactions.values()))

        _logger.info("Time history %s: peak |u| = %.4g m at t = %.4g s", name, th.max_displacement, th.peak_time)
        return CombinationResult(
            name=name,
            displacements=node_displacements(system.dof, d),
            reactions=reactions,
            element_forces=tuple(recover_element_forces(system, d, loads)),
            drifts=tuple(story_drifts(self.model, system.dof, d)),
            base_shear=base_shear,
        ), th


# =============================================================================
# Module-level convenience
# =============================================================================

_DEFAULT: Optional[AnalysisOrchestrator] = None
_DEFAULT_LOCK = threading.Lock()


def default_orchestrator() -> AnalysisOrchestrator:
    global _DEFAULT
    with _DEFAULT_LOCK:
        if _DEFAULT is None:
            _DEFAULT = AnalysisOrchestrator()
        return _DEFAULT


def start(source, config: Optional[AnalysisConfiguration] = None) -> AnalysisHandle:
    return default_orchestrator().start(source, config)


def run_analysis(source, config: Optional[AnalysisConfiguration] = None) -> AnalysisResults:
    return default_orchestrator().run(source, config)
