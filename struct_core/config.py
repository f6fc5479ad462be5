# struct_core/config.py
"""
Analysis configuration and library-wide defaults.

Two layers:

- ``SolverDefaults`` / ``CONFIG``: numeric knobs shared by every run
  (tolerances, thresholds, gravity). Plain dataclass, one global instance.
- ``AnalysisConfiguration``: the validated per-run request handed in by
  the caller, a pydantic model so range checks happen at the boundary.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


@dataclass
class SolverDefaults:
    """Global numeric defaults for the solver kernel."""

    # Relative pivot below which the reduced K is treated as not positive-definite
    pd_tolerance: float = 1e-12

    # Iterative (CG) solver
    cg_tolerance: float = 1e-10
    cg_max_iterations: int = 10000

    # Above this many free DOFs the 'sparse' and 'cg' paths assemble in CSR
    sparse_threshold: int = 3000

    # Eigen solver
    eigen_max_iterations: int = 5000
    frequency_tie_tolerance: float = 1e-9

    # Physical constants
    gravity: float = 9.81  # m/s^2

    # Mass source factors by load type (gravity loads converted to mass)
    mass_source_factors: Dict[str, float] = None

    # Advisory thresholds
    high_utilization_warning: float = 0.9
    mass_participation_target: float = 0.90
    pdelta_amplification_warning: float = 1.5
    grid_irregularity_ratio: float = 2.0

    def __post_init__(self):
        if self.mass_source_factors is None:
            self.mass_source_factors = {'dead': 1.0, 'live': 0.25}


# Global defaults instance
CONFIG = SolverDefaults()


SITE_CLASSES = ('SA', 'SB', 'SC', 'SD', 'SE')


class AnalysisType(str, Enum):
    STATIC = "static"
    MODAL = "modal"
    RESPONSE_SPECTRUM = "response_spectrum"
    TIME_HISTORY = "time_history"
    NONLINEAR = "nonlinear"


class SpectrumParameters(BaseModel):
    """Design spectrum definition (SNI 1726 / ASCE 7 shape, or tabulated)."""

    model_config = ConfigDict(frozen=True)

    ss: Optional[float] = Field(None, gt=0.0, description="Short-period mapped acceleration (g)")
    s1: Optional[float] = Field(None, gt=0.0, description="1-second mapped acceleration (g)")
    site_class: str = Field("SD", description="Site class SA..SE")
    sds: Optional[float] = Field(None, gt=0.0, description="Design short-period acceleration (g)")
    sd1: Optional[float] = Field(None, gt=0.0, description="Design 1-second acceleration (g)")
    tl: float = Field(12.0, gt=0.0, description="Long-period transition (s)")
    t_max: float = Field(10.0, gt=0.0, description="Upper end of the spectrum domain (s)")
    response_modification: float = Field(1.0, gt=0.0, description="R factor applied to Sa")
    importance: float = Field(1.0, gt=0.0, description="Importance factor Ie")
    periods: Optional[List[float]] = Field(None, description="Tabulated periods (s)")
    accelerations: Optional[List[float]] = Field(None, description="Tabulated Sa (g)")

    @field_validator('site_class')
    @classmethod
    def _known_site_class(cls, value):
        key = value.upper()
        if key == 'SF':
            raise ValueError("site class SF requires a site-specific response analysis")
        if key not in SITE_CLASSES:
            raise ValueError(f"unknown site class {value!r}, expected one of {SITE_CLASSES}")
        return key

    @model_validator(mode="after")
    def _complete_definition(self):
        if self.periods is not None or self.accelerations is not None:
            if self.periods is None or self.accelerations is None:
                raise ValueError("a tabulated spectrum needs both periods and accelerations")
            if len(self.periods) != len(self.accelerations) or len(self.periods) < 2:
                raise ValueError("tabulated periods and accelerations must be equal-length, >= 2 points")
            if any(b <= a for a, b in zip(self.periods, self.periods[1:])):
                raise ValueError("tabulated periods must be strictly increasing")
            if any(sa < 0.0 for sa in self.accelerations):
                raise ValueError("tabulated accelerations cannot be negative")
            return self
        if (self.sds is None) != (self.sd1 is None):
            raise ValueError("sds and sd1 must be given together")
        if self.sds is None and (self.ss is None or self.s1 is None):
            raise ValueError("spectrum needs (ss, s1), (sds, sd1) or tabulated periods/accelerations")
        return self


class TimeHistoryParameters(BaseModel):
    """
    Direct-integration request: time stepping, excitation and load history.

    ``excitation='ground'`` reads ``values`` as ground acceleration in g
    along the run's excitation direction. ``excitation='load'`` reads them
    as a multiplier on ``load_pattern`` (a combination or load case name).
    """

    model_config = ConfigDict(frozen=True)

    time_step: float = Field(..., gt=0.0, description="Integration step Δt (s)")
    duration: float = Field(..., gt=0.0, description="Integrated time span (s)")
    times: List[float] = Field(..., min_length=2, description="Load history times (s)")
    values: List[float] = Field(..., min_length=2, description="Load history ordinates")
    excitation: Literal['ground', 'load'] = Field('ground')
    load_pattern: Optional[str] = Field(None, description="Combination or load case scaled by the history")
    beta: float = Field(0.25, gt=0.0, description="Newmark β")
    gamma: float = Field(0.5, ge=0.5, description="Newmark γ")
    damping_modes: Tuple[int, int] = Field((1, 2), description="Modes anchoring Rayleigh damping")
    record_every: int = Field(10, ge=1, description="Store a displacement snapshot every N steps")

    @field_validator('damping_modes')
    @classmethod
    def _positive_modes(cls, value):
        if min(value) < 1:
            raise ValueError("damping modes are numbered from 1")
        return value

    @model_validator(mode="after")
    def _consistent_history(self):
        if len(self.times) != len(self.values):
            raise ValueError("load history times and values must be equal-length")
        if any(b <= a for a, b in zip(self.times, self.times[1:])):
            raise ValueError("load history times must be strictly increasing")
        if self.time_step > self.duration:
            raise ValueError("time_step cannot exceed duration")
        if self.excitation == 'load' and not self.load_pattern:
            raise ValueError("load excitation needs a load_pattern")
        return self


class AnalysisConfiguration(BaseModel):
    """Per-run analysis request."""

    model_config = ConfigDict(frozen=True)

    analysis_type: AnalysisType = Field(AnalysisType.STATIC, description="Solver path")
    tolerance: float = Field(1e-6, gt=0.0, description="Relative residual tolerance")
    max_iterations: int = Field(50, ge=1, description="Newton-Raphson iteration cap per load step")
    load_steps: int = Field(1, ge=1, description="Newton-Raphson load increments")
    damping_ratio: float = Field(0.05, ge=0.0, lt=1.0, description="Modal damping ratio")
    n_modes: int = Field(6, ge=1, description="Number of modes to extract")
    p_delta: bool = Field(False, description="Include geometric stiffness from axial forces")
    geometric_nonlinearity: bool = Field(False, description="Axial forces from deformed geometry")

    combinations: Optional[List[str]] = Field(None, description="Subset of combinations to solve")
    mass_type: Literal['lumped', 'consistent'] = Field('lumped')
    solver: Literal['cholesky', 'sparse', 'cg'] = Field('cholesky')

    spectrum: Optional[SpectrumParameters] = Field(None)
    excitation_direction: int = Field(0, ge=0, le=2, description="0=X, 1=Y, 2=Z")
    combination_rule: Literal['auto', 'srss', 'cqc'] = Field('auto')
    cqc_period_ratio: float = Field(0.90, gt=0.0, le=1.0,
                                    description="Adjacent period ratio at or above which modes are closely spaced")

    time_history: Optional[TimeHistoryParameters] = Field(None)

    stress_ratio_limit: float = Field(0.80, gt=0.0, description="Allowable stress / strength")
    drift_ratio_limit: float = Field(0.020, gt=0.0, description="Story drift / story height")
    deflection_limit_ratio: float = Field(240.0, gt=0.0, description="Span / deflection denominator")

    timeout: Optional[float] = Field(None, gt=0.0, description="Advisory wall-clock limit (s)")
    max_workers: int = Field(4, ge=1, le=64, description="Combination worker pool size")

    @field_validator('combinations')
    @classmethod
    def _no_duplicate_combinations(cls, value):
        if value is not None and len(set(value)) != len(value):
            raise ValueError("combination names must be unique")
        return value

    @model_validator(mode="after")
    def _parameters_for_analysis_type(self):
        if self.analysis_type is AnalysisType.RESPONSE_SPECTRUM and self.spectrum is None:
            raise ValueError("response_spectrum analysis needs spectrum parameters")
        if self.analysis_type is AnalysisType.TIME_HISTORY and self.time_history is None:
            raise ValueError("time_history analysis needs time_history parameters")
        return self

    @property
    def pdelta_active(self) -> bool:
        return self.p_delta or self.geometric_nonlinearity
