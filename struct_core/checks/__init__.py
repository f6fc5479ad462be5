# struct_core/checks - Code compliance checks
"""Compliance rules plus steel (AISC 360 / SNI 1729) and concrete (SNI 2847) capacity helpers."""

from .rules import (
    ComplianceEvaluator,
    ComplianceInput,
    ComplianceReport,
    ComplianceRule,
    Demand,
    Finding,
    FindingStatus,
    OverallStatus,
    default_rules,
)

from .steel import (
    compression_capacity,
    tension_capacity,
    bending_capacity,
    check_steel_member,
    check_all_steel_members,
    SteelCheck,
    governing_member,
    slenderness_check,
    slenderness_advisories,
)

from .concrete import axial_capacity, axial_utilization

__all__ = [
    # Rules
    'ComplianceEvaluator',
    'ComplianceInput',
    'ComplianceReport',
    'ComplianceRule',
    'Demand',
    'Finding',
    'FindingStatus',
    'OverallStatus',
    'default_rules',
    # Steel
    'compression_capacity',
    'tension_capacity',
    'bending_capacity',
    'check_steel_member',
    'check_all_steel_members',
    'SteelCheck',
    'governing_member',
    'slenderness_check',
    'slenderness_advisories',
    # Concrete
    'axial_capacity',
    'axial_utilization',
]
