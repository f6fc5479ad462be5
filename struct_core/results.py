# struct_core/results.py
"""
ANALYSIS RESULTS: The immutable value one run produces
======================================================

PURPOSE:
--------
Collects everything a run computed into one frozen object:

    status        'success' or 'error'
    combinations  one CombinationResult per solved entry, insertion order
    modal         ModalResult (modal / response-spectrum / time-history runs)
    time_history  TimeHistoryResult (time-history runs)
    compliance    ComplianceReport
    warnings      non-fatal advisories
    errors        every failure, with enough context to locate it

A failed combination still gets an entry (with its error attached) so the
sequence always mirrors what was requested. ``to_dict()`` produces the
camelCase layout UI and report collaborators consume; ``element_table()``
and ``node_table()`` give the same data as pandas DataFrames.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

import numpy as np
import pandas as pd

from .checks.rules import ComplianceReport
from .errors import StructCoreError
from .kernel.dynamics import TimeHistoryResult
from .kernel.modal import ModalResult
from .model import ElementId, NodeId
from .post import ElementForces, StoryDrift

SUCCESS = "success"
ERROR = "error"


@dataclass(frozen=True)
class ResultError:
    """
    One failure, located as precisely as the raising code allowed.

    ``kind`` is the exception class name (e.g. 'SingularStiffnessError').
    """
    kind: str
    message: str
    combination: Optional[str] = None
    element_id: Optional[ElementId] = None
    node_id: Optional[NodeId] = None
    mode: Optional[int] = None
    exception: Optional[BaseException] = field(default=None, repr=False, compare=False)

    @classmethod
    def from_exception(cls, exc: BaseException, combination: Optional[str] = None) -> 'ResultError':
        return cls(
            kind=type(exc).__name__,
            message=str(exc),
            combination=combination or getattr(exc, 'combination', None) or None,
            element_id=getattr(exc, 'element_id', None),
            node_id=getattr(exc, 'node_id', None),
            mode=getattr(exc, 'mode', None),
            exception=exc,
        )

    def to_dict(self) -> dict:
        out = {'kind': self.kind, 'message': self.message}
        for key, value in (('combination', self.combination), ('elementId', self.element_id),
                           ('nodeId', self.node_id), ('mode', self.mode)):
            if value is not None:
                out[key] = value
        return out


@dataclass(frozen=True)
class CombinationResult:
    """
    Outputs of one load combination (or one response-spectrum direction).

    For a failed entry every output mapping is empty and ``error`` is set.
    """
    name: str
    displacements: Mapping[NodeId, np.ndarray] = field(default_factory=dict)
    reactions: Mapping[NodeId, np.ndarray] = field(default_factory=dict)
    element_forces: Tuple[ElementForces, ...] = ()
    drifts: Tuple[StoryDrift, ...] = ()
    deflections: Mapping[ElementId, float] = field(default_factory=dict)
    iterations: int = 0
    history: Tuple[float, ...] = ()
    amplification: Optional[float] = None
    base_shear: Optional[float] = None
    error: Optional[ResultError] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None

    @property
    def max_displacement(self) -> float:
        """Largest translational displacement magnitude (m)."""
        if not self.displacements:
            return 0.0
        return max(float(np.linalg.norm(u[:3])) for u in self.displacements.values())

    @property
    def max_stress(self) -> float:
        return max((f.max_stress for f in self.element_forces), default=0.0)

    @property
    def max_reaction(self) -> float:
        if not self.reactions:
            return 0.0
        return max(float(np.linalg.norm(r[:3])) for r in self.reactions.values())

    def to_dict(self) -> dict:
        out: Dict[str, Any] = {
            'name': self.name,
            'status': SUCCESS if self.succeeded else ERROR,
            'maxDisplacement': self.max_displacement,
            'maxStress': self.max_stress,
            'maxReaction': self.max_reaction,
            'drifts': [d.to_dict() for d in self.drifts],
        }
        if self.iterations:
            out['iterations'] = self.iterations
            out['residualHistory'] = list(self.history)
        if self.amplification is not None:
            out['amplification'] = self.amplification
        if self.base_shear is not None:
            out['baseShear'] = self.base_shear
        if self.error is not None:
            out['error'] = self.error.to_dict()
        return out


def modal_table(modal: ModalResult) -> List[dict]:
    """One dict per mode: frequency, period, participation and mass ratios."""
    rows = []
    ratios = [modal.mass_ratio(k) for k in range(3)]
    for i in range(modal.n_modes):
        rows.append({
            'mode': i + 1,
            'omega': float(modal.omega[i]),
            'frequency': float(modal.frequencies_hz[i]),
            'period': float(modal.periods[i]),
            'participationX': float(modal.participation[i, 0]),
            'participationY': float(modal.participation[i, 1]),
            'participationZ': float(modal.participation[i, 2]),
            'massRatioX': float(ratios[0][i]),
            'massRatioY': float(ratios[1][i]),
            'massRatioZ': float(ratios[2][i]),
        })
    return rows


def time_history_summary(th: TimeHistoryResult) -> dict:
    """Peak response, integration settings and the stored snapshot times."""
    return {
        'timeStep': th.dt,
        'steps': th.n_steps,
        'duration': th.duration,
        'rayleigh': {'alpha': th.rayleigh[0], 'beta': th.rayleigh[1]},
        'maxResponse': {
            'displacement': th.max_displacement,
            'velocity': th.max_velocity,
            'acceleration': th.max_acceleration,
            'time': th.peak_time,
        },
        'recordedTimes': [float(t) for t in th.recorded_times],
    }


@dataclass(frozen=True)
class AnalysisResults:
    run_id: str
    analysis_type: str
    status: str
    combinations: Tuple[CombinationResult, ...] = ()
    modal: Optional[ModalResult] = None
    compliance: Optional[ComplianceReport] = None
    buckling_factor: Optional[float] = None
    time_history: Optional[TimeHistoryResult] = None
    warnings: Tuple[str, ...] = ()
    errors: Tuple[ResultError, ...] = ()

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    @property
    def succeeded(self) -> List[CombinationResult]:
        return [c for c in self.combinations if c.succeeded]

    @property
    def combination_names(self) -> List[str]:
        return [c.name for c in self.combinations]

    def combination(self, name: str) -> CombinationResult:
        for c in self.combinations:
            if c.name == name:
                return c
        raise KeyError(name)

    def raise_for_status(self) -> None:
        """Re-raise the first fatal error of a failed run."""
        if self.status != ERROR:
            return
        for e in self.errors:
            if isinstance(e.exception, StructCoreError):
                raise e.exception
        raise StructCoreError(self.errors[0].message if self.errors else "Analysis failed")

    # ------------------------------------------------------------------
    # Summary
    # ------------------------------------------------------------------

    @property
    def max_displacement(self) -> float:
        return max((c.max_displacement for c in self.succeeded), default=0.0)

    @property
    def max_stress(self) -> float:
        return max((c.max_stress for c in self.succeeded), default=0.0)

    @property
    def max_reaction(self) -> float:
        return max((c.max_reaction for c in self.succeeded), default=0.0)

    @property
    def safety_factor(self) -> float:
        """1 / governing utilization over the applicable compliance findings."""
        if self.compliance is None:
            return math.inf
        util = self.compliance.max_utilization
        if util is None or util <= 0.0:
            return math.inf
        return 1.0 / util

    @property
    def summary(self) -> dict:
        return {
            'maxDisplacement': self.max_displacement,
            'maxStress': self.max_stress,
            'maxReaction': self.max_reaction,
            'safetyFactor': self.safety_factor,
        }

    # ------------------------------------------------------------------
    # Per element / per node
    # ------------------------------------------------------------------

    def per_element(self) -> List[dict]:
        rows = []
        for c in self.succeeded:
            for f in c.element_forces:
                row = f.to_dict()
                row['combination'] = c.name
                if f.element_id in c.deflections:
                    row['deflection'] = c.deflections[f.element_id]
                rows.append(row)
        return rows

    def per_node(self) -> List[dict]:
        rows = []
        for c in self.succeeded:
            for nid, u in c.displacements.items():
                row = {
                    'nodeId': nid,
                    'combination': c.name,
                    'displacement': [float(v) for v in u],
                }
                if nid in c.reactions:
                    row['reaction'] = [float(v) for v in c.reactions[nid]]
                rows.append(row)
        return rows

    def element_table(self) -> pd.DataFrame:
        """Element forces of every successful combination, one row per (combination, element)."""
        rows = self.per_element()
        for row in rows:
            row.pop('endForces', None)
        return pd.DataFrame(rows)

    def node_table(self) -> pd.DataFrame:
        """Displacements and reactions, columns ux..rz and Rx..Mz."""
        rows = []
        for c in self.succeeded:
            for nid, u in c.displacements.items():
                row = {'combination': c.name, 'nodeId': nid}
                row.update(zip(('ux', 'uy', 'uz', 'rx', 'ry', 'rz'), (float(v) for v in u)))
                r = c.reactions.get(nid)
                if r is not None:
                    row.update(zip(('Rx', 'Ry', 'Rz', 'Mx', 'My', 'Mz'), (float(v) for v in r)))
                rows.append(row)
        return pd.DataFrame(rows)

    def to_dict(self) -> dict:
        out: Dict[str, Any] = {
            'runId': self.run_id,
            'analysisType': self.analysis_type,
            'status': self.status,
            'summary': self.summary,
            'combinations': [c.to_dict() for c in self.combinations],
            'perElement': self.per_element(),
            'perNode': self.per_node(),
            'compliance': self.compliance.to_dict() if self.compliance is not None else None,
            'warnings': list(self.warnings),
            'errors': [e.to_dict() for e in self.errors],
        }
        if self.modal is not None:
            out['modal'] = modal_table(self.modal)
        if self.buckling_factor is not None:
            out['bucklingFactor'] = self.buckling_factor
        if self.time_history is not None:
            out['timeHistory'] = time_history_summary(self.time_history)
        return out
