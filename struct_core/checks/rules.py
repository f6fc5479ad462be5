# struct_core/checks/rules.py
"""
COMPLIANCE EVALUATOR: Named rules -> pass/fail findings
=======================================================

PURPOSE:
--------
A rule is a small object with four parts:

    applies_to   analysis types the rule is meaningful for
    extract()    pulls one governing demand out of the solver outputs
                 (None when the required input is missing)
    threshold()  the limit, usually from the AnalysisConfiguration
    comparator   '<=', '<', '>=' or '>'

``ComplianceEvaluator.evaluate`` runs every rule and returns exactly one
Finding per rule. A rule that does not apply to the analysis type, or
whose input is missing, yields a ``notApplicable`` finding instead of
being dropped, so len(findings) == len(rules) always.

Utilization is demand over limit: value/threshold for upper bounds and
threshold/value for lower bounds, so <= 1.0 means the rule passed.

The overall status is ``compliant`` iff every applicable finding passed.

EXTENDING:
----------
    class MyRule(ComplianceRule):
        rule_id = 'my-rule'
        applies_to = frozenset({AnalysisType.STATIC})
        comparator = '<='

        def threshold(self, config):
            return 1.0

        def extract(self, data):
            return Demand(value=..., location='B12 / 1.2D+1.6L')
"""

import math
import operator
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, List, Mapping, Optional, Sequence, Tuple

from ..config import CONFIG, AnalysisConfiguration, AnalysisType
from ..kernel.modal import ModalResult
from ..model import ElementId, ElementType, MaterialClass
from ..post import ElementForces, StoryDrift
from . import concrete, steel

COMPARATORS = {
    '<=': operator.le,
    '<': operator.lt,
    '>=': operator.ge,
    '>': operator.gt,
}

FORCE_TYPES = frozenset({
    AnalysisType.STATIC, AnalysisType.NONLINEAR, AnalysisType.RESPONSE_SPECTRUM, AnalysisType.TIME_HISTORY,
})
STATIC_TYPES = frozenset({AnalysisType.STATIC, AnalysisType.NONLINEAR})
DYNAMIC_TYPES = frozenset({AnalysisType.MODAL, AnalysisType.RESPONSE_SPECTRUM})


class FindingStatus(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    NOT_APPLICABLE = "notApplicable"


class OverallStatus(str, Enum):
    COMPLIANT = "compliant"
    NON_COMPLIANT = "nonCompliant"


@dataclass(frozen=True)
class ComplianceInput:
    """
    Everything the rules may read, gathered from successful solves only.

    Per-combination mappings are keyed by combination name.
    """
    analysis_type: AnalysisType
    model: object
    element_forces: Mapping[str, Sequence[ElementForces]] = field(default_factory=dict)
    drifts: Mapping[str, Sequence[StoryDrift]] = field(default_factory=dict)
    deflections: Mapping[str, Mapping[ElementId, float]] = field(default_factory=dict)
    modal: Optional[ModalResult] = None
    excitation_direction: int = 0
    buckling_factor: Optional[float] = None
    p_delta: bool = False


@dataclass(frozen=True)
class Demand:
    """Governing value a rule extracted, with where it occurred."""
    value: float
    location: str = ""


@dataclass(frozen=True)
class Finding:
    rule_id: str
    status: FindingStatus
    message: str
    value: Optional[float] = None
    threshold: Optional[float] = None
    comparator: str = '<='
    utilization: Optional[float] = None
    location: str = ""

    @property
    def passed(self) -> bool:
        return self.status is FindingStatus.PASSED

    @property
    def applicable(self) -> bool:
        return self.status is not FindingStatus.NOT_APPLICABLE

    def to_dict(self) -> dict:
        return {
            'ruleId': self.rule_id,
            'status': self.status.value,
            'passed': self.passed,
            'utilization': self.utilization,
            'value': self.value,
            'threshold': self.threshold,
            'comparator': self.comparator,
            'location': self.location,
            'message': self.message,
        }


@dataclass(frozen=True)
class ComplianceReport:
    findings: Tuple[Finding, ...]

    @property
    def overall_status(self) -> OverallStatus:
        if all(f.passed for f in self.findings if f.applicable):
            return OverallStatus.COMPLIANT
        return OverallStatus.NON_COMPLIANT

    @property
    def failed_rules(self) -> List[str]:
        return [f.rule_id for f in self.findings if f.status is FindingStatus.FAILED]

    @property
    def max_utilization(self) -> Optional[float]:
        values = [f.utilization for f in self.findings if f.applicable and f.utilization is not None]
        return max(values) if values else None

    def finding(self, rule_id: str) -> Finding:
        for f in self.findings:
            if f.rule_id == rule_id:
                return f
        raise KeyError(rule_id)

    def to_dict(self) -> dict:
        return {
            'perRule': [f.to_dict() for f in self.findings],
            'overallStatus': self.overall_status.value,
            'failedRules': self.failed_rules,
        }


# =============================================================================
# Rule interface
# =============================================================================

class ComplianceRule(ABC):
    """One named check. Subclasses set the class attributes and implement extract()."""

    rule_id: str = ""
    description: str = ""
    applies_to: FrozenSet[AnalysisType] = FORCE_TYPES
    comparator: str = '<='

    @abstractmethod
    def threshold(self, config: AnalysisConfiguration) -> float:
        """Limit the governing value is compared against."""

    @abstractmethod
    def extract(self, data: ComplianceInput) -> Optional[Demand]:
        """Governing demand, or None when the required input is missing."""

    def utilization(self, value: float, limit: float) -> float:
        if self.comparator in ('<=', '<'):
            return value / limit if limit != 0.0 else math.inf
        return limit / value if value != 0.0 else math.inf

    def evaluate(self, data: ComplianceInput, config: AnalysisConfiguration) -> Finding:
        if data.analysis_type not in self.applies_to:
            return Finding(
                self.rule_id, FindingStatus.NOT_APPLICABLE,
                f"{self.description}: not applicable to {data.analysis_type.value} analysis",
                comparator=self.comparator,
            )
        demand = self.extract(data)
        if demand is None:
            return Finding(
                self.rule_id, FindingStatus.NOT_APPLICABLE,
                f"{self.description}: required results not available",
                comparator=self.comparator,
            )
        limit = self.threshold(config)
        passed = COMPARATORS[self.comparator](demand.value, limit)
        status = FindingStatus.PASSED if passed else FindingStatus.FAILED
        where = f" at {demand.location}" if demand.location else ""
        return Finding(
            rule_id=self.rule_id,
            status=status,
            message=(f"{self.description}: {demand.value:.4g} {self.comparator} {limit:.4g}{where}"
                     f" -> {'OK' if passed else 'NOT OK'}"),
            value=float(demand.value),
            threshold=float(limit),
            comparator=self.comparator,
            utilization=float(self.utilization(demand.value, limit)),
            location=demand.location,
        )


def _governing(candidates) -> Optional[Demand]:
    best = None
    for value, location in candidates:
        if best is None or value > best.value:
            best = Demand(float(value), location)
    return best


# =============================================================================
# Built-in rules
# =============================================================================

class StressRatioRule(ComplianceRule):
    """Peak combined stress over material strength."""
    rule_id = 'stress-ratio'
    description = 'Maximum stress ratio'
    applies_to = FORCE_TYPES

    def threshold(self, config):
        return config.stress_ratio_limit

    def extract(self, data):
        return _governing(
            (f.stress_ratio, f"element {f.element_id} / {combo}")
            for combo, forces in data.element_forces.items() for f in forces
        )


class StoryDriftRule(ComplianceRule):
    """Inter-storey drift ratio (SNI 1726: 0.020·hsx)."""
    rule_id = 'story-drift'
    description = 'Story drift ratio'
    applies_to = FORCE_TYPES

    def threshold(self, config):
        return config.drift_ratio_limit

    def extract(self, data):
        return _governing(
            (s.ratio, f"level {s.level:g} m ({'XY'[s.direction]}) / {combo}")
            for combo, drifts in data.drifts.items() for s in drifts
        )


class SteelUtilizationRule(ComplianceRule):
    """AISC 360 combined axial + bending utilization of steel members."""
    rule_id = 'steel-member-utilization'
    description = 'Steel member utilization'
    applies_to = FORCE_TYPES

    def threshold(self, config):
        return 1.0

    def extract(self, data):
        candidates = []
        for combo, forces in data.element_forces.items():
            eid, check = steel.governing_member(steel.check_all_steel_members(forces, data.model))
            if check is not None:
                candidates.append((check.combined, f"element {eid} / {combo}"))
        return _governing(candidates)


class ConcreteAxialRule(ComplianceRule):
    """Column compression against φPn,max of a tied column (concrete only)."""
    rule_id = 'concrete-axial-capacity'
    description = 'Concrete column axial utilization'
    applies_to = STATIC_TYPES

    def threshold(self, config):
        return 1.0

    def extract(self, data):
        model = data.model
        candidates = []
        for combo, forces in data.element_forces.items():
            for f in forces:
                if f.element_type is not ElementType.COLUMN:
                    continue
                material = model.materials[f.material]
                if material.material_class is not MaterialClass.CONCRETE:
                    continue
                section = model.sections[model.element(f.element_id).section]
                candidates.append((concrete.axial_utilization(f.axial, section, material),
                                   f"element {f.element_id} / {combo}"))
        return _governing(candidates)


class DeflectionRule(ComplianceRule):
    """Beam midspan deflection over span (span/240 by default)."""
    rule_id = 'beam-deflection'
    description = 'Beam deflection / span'
    applies_to = STATIC_TYPES

    def threshold(self, config):
        return 1.0 / config.deflection_limit_ratio

    def extract(self, data):
        lengths = {}
        for forces in data.element_forces.values():
            for f in forces:
                lengths[f.element_id] = f.length
        return _governing(
            (delta / lengths[eid], f"element {eid} / {combo}")
            for combo, values in data.deflections.items()
            for eid, delta in values.items() if lengths.get(eid, 0.0) > 0.0
        )


class ModalMassRule(ComplianceRule):
    """Cumulative effective mass captured along the excitation direction."""
    rule_id = 'modal-mass-participation'
    description = 'Modal mass participation'
    applies_to = DYNAMIC_TYPES
    comparator = '>='

    def threshold(self, config):
        return CONFIG.mass_participation_target

    def extract(self, data):
        if data.modal is None or data.modal.total_mass[data.excitation_direction] <= 0.0:
            return None
        direction = data.excitation_direction
        return Demand(data.modal.cumulative_mass_ratio(direction),
                      f"{data.modal.n_modes} modes, direction {'XYZ'[direction]}")


class BucklingFactorRule(ComplianceRule):
    """Linearized buckling load factor of the gravity state (P-Delta runs)."""
    rule_id = 'buckling-factor'
    description = 'Critical buckling factor'
    applies_to = frozenset({AnalysisType.NONLINEAR})
    comparator = '>='

    def threshold(self, config):
        return 1.0

    def extract(self, data):
        if not data.p_delta or data.buckling_factor is None:
            return None
        return Demand(data.buckling_factor)


def default_rules() -> List[ComplianceRule]:
    return [
        StressRatioRule(),
        StoryDriftRule(),
        SteelUtilizationRule(),
        ConcreteAxialRule(),
        DeflectionRule(),
        ModalMassRule(),
        BucklingFactorRule(),
    ]


class ComplianceEvaluator:
    """Runs a rule set over solver outputs. Pure: same input, same findings."""

    def __init__(self, rules: Optional[Sequence[ComplianceRule]] = None):
        self.rules = list(default_rules() if rules is None else rules)
        ids = [r.rule_id for r in self.rules]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Duplicate rule ids in {ids}")

    def evaluate(self, data: ComplianceInput, config: AnalysisConfiguration) -> ComplianceReport:
        return ComplianceReport(tuple(rule.evaluate(data, config) for rule in self.rules))
