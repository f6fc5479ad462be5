# struct_core/checks/concrete.py
"""Reinforced concrete member checks per SNI 2847 / ACI 318 (strength design)."""

from ..model import Material, Section

PHI_TIED = 0.65      # strength reduction, tied compression members
ALPHA_TIED = 0.80    # accidental eccentricity factor, tied columns


def axial_capacity(section: Section, material: Material,
                   rebar_ratio: float = 0.0, fy: float = 0.0) -> float:
    """
    Design axial capacity φPn,max of a tied column (N).

    φPn,max = 0.80·φ·[0.85·f'c·(Ag - Ast) + fy·Ast]

    With ``rebar_ratio`` = 0 only the concrete is counted.
    """
    Ag = section.A
    Ast = rebar_ratio * Ag
    Pn = 0.85 * material.strength * (Ag - Ast) + fy * Ast
    return ALPHA_TIED * PHI_TIED * Pn


def axial_utilization(Pu: float, section: Section, material: Material,
                      rebar_ratio: float = 0.0, fy: float = 0.0) -> float:
    """Compression demand over capacity. Tension (Pu >= 0) gives 0."""
    if Pu >= 0.0:
        return 0.0
    return -Pu / axial_capacity(section, material, rebar_ratio, fy)
