# struct_core/checks/steel.py
"""
STEEL MEMBER CHECKS: AISC 360 / SNI 1729 (LRFD)
===============================================

    Chapter D   tension yielding          φt·Pn = 0.9·Fy·Ag
    Chapter E   flexural buckling         φc·Pn = 0.9·Fcr·Ag
    Chapter F   elastic bending           φb·Mn = 0.9·Fy·S
    Chapter H   axial + biaxial bending   H1-1a / H1-1b

Moments are about the member's local axes (see model.Section).
"""

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from ..model import ElementId, Material, MaterialClass, Section

PHI_TENSION = 0.9
PHI_COMPRESSION = 0.9
PHI_BENDING = 0.9

# E3: inelastic / elastic buckling boundary at Fy/Fe = 2.25 (KL/r = 4.71·sqrt(E/Fy))
INELASTIC_LIMIT = 2.25


@dataclass(frozen=True)
class SteelCheck:
    """
    Demand/capacity ratios of one member.

    ``mode`` is 'tension' or 'compression' (sign of the axial force);
    ``combined`` is the H1-1 interaction value that the compliance rule reads.
    """
    mode: str
    axial: float
    bending: float
    combined: float
    Pn: float
    Mny: float
    Mnz: float

    @property
    def passed(self) -> bool:
        return self.combined <= 1.0 and self.axial <= 1.0

    @property
    def governing(self) -> str:
        return 'bending' if self.bending > self.axial else self.mode


def radius_of_gyration(section: Section) -> float:
    """Least radius of gyration sqrt(min(Iy, Iz) / A)."""
    return math.sqrt(min(section.Iy, section.Iz) / section.A)


def euler_stress(E: float, slenderness: float) -> float:
    """Fe = π²E / (KL/r)², infinite for a zero-length member."""
    if slenderness <= 1e-6:
        return math.inf
    return math.pi ** 2 * E / (slenderness * slenderness)


def compression_capacity(section: Section, material: Material, L: float, K: float = 1.0) -> float:
    """
    Nominal compression strength Pn (N) on the unified column curve.

        Fy/Fe <= 2.25:  Fcr = 0.658^(Fy/Fe) · Fy
        otherwise:      Fcr = 0.877 · Fe
    """
    Fy = material.strength
    Fe = euler_stress(material.E, K * L / radius_of_gyration(section))
    if Fy / Fe > INELASTIC_LIMIT:
        return 0.877 * Fe * section.A
    return 0.658 ** (Fy / Fe) * Fy * section.A


def tension_capacity(section: Section, material: Material) -> float:
    """Gross-section yielding Pn = Fy·Ag (N)."""
    return material.strength * section.A


def bending_capacity(section: Section, material: Material) -> Tuple[float, float]:
    """(Mny, Mnz) = Fy·(Iy/cz, Iz/cy), first yield about local y and z (N·m)."""
    return (material.strength * section.Iy / section.cz,
            material.strength * section.Iz / section.cy)


def check_steel_member(N: float, section: Section, material: Material, L: float,
                       K: float = 1.0, My: float = 0.0, Mz: float = 0.0) -> SteelCheck:
    """
    Axial force (tension +) plus biaxial bending on one member.

    Pr/Pc >= 0.2:  Pr/Pc + 8/9·(Mry/Mcy + Mrz/Mcz)      (H1-1a)
    Pr/Pc <  0.2:  Pr/(2Pc) + (Mry/Mcy + Mrz/Mcz)       (H1-1b)
    """
    if N < 0.0:
        mode = 'compression'
        Pn = compression_capacity(section, material, L, K)
        Pc = PHI_COMPRESSION * Pn
    else:
        mode = 'tension'
        Pn = tension_capacity(section, material)
        Pc = PHI_TENSION * Pn
    axial = abs(N) / Pc if Pc > 0.0 else 0.0

    Mny, Mnz = bending_capacity(section, material)
    bending = abs(My) / (PHI_BENDING * Mny) + abs(Mz) / (PHI_BENDING * Mnz)

    if axial >= 0.2:
        combined = axial + 8.0 / 9.0 * bending
    else:
        combined = 0.5 * axial + bending

    return SteelCheck(mode, axial, bending, combined, Pn, Mny, Mnz)


def check_all_steel_members(forces: Iterable, model, K: float = 1.0) -> Dict[ElementId, SteelCheck]:
    """SteelCheck of every steel member in one combination's ElementForces."""
    checks: Dict[ElementId, SteelCheck] = {}
    for f in forces:
        material = model.materials[f.material]
        if material.material_class is not MaterialClass.STEEL:
            continue
        section = model.sections[model.element(f.element_id).section]
        checks[f.element_id] = check_steel_member(
            f.axial, section, material, f.length, K, My=f.max_moment_y, Mz=f.max_moment_z,
        )
    return checks


def governing_member(checks: Mapping[ElementId, SteelCheck]) -> Tuple[Optional[ElementId], Optional[SteelCheck]]:
    if not checks:
        return None, None
    element_id = max(checks, key=lambda eid: checks[eid].combined)
    return element_id, checks[element_id]


def slenderness_check(section: Section, L: float, K: float = 1.0) -> Tuple[float, str]:
    """
    KL/r against the recommended limits: 200 for compression members,
    300 for tension-only members.

    Returns (KL/r, 'PASS' | 'WARNING' | 'FAIL'); WARNING means acceptable
    only if the member never goes into compression.
    """
    kl_r = K * L / radius_of_gyration(section)
    for limit, status in ((200.0, 'PASS'), (300.0, 'WARNING')):
        if kl_r <= limit:
            return kl_r, status
    return kl_r, 'FAIL'


def slenderness_advisories(model, K: float = 1.0) -> List[str]:
    """Remarks for steel members past the KL/r = 200 compression limit."""
    notes = []
    for element in model.elements:
        material = model.materials[element.material]
        if material.material_class is not MaterialClass.STEEL:
            continue
        ni, nj = model.nodes[element.ni], model.nodes[element.nj]
        L = math.dist(ni.coords, nj.coords)
        kl_r, status = slenderness_check(model.sections[element.section], L, K)
        if status == 'WARNING':
            notes.append(f"Steel member {element.id}: KL/r = {kl_r:.0f} > 200, "
                         f"acceptable only as a tension-only member")
        elif status == 'FAIL':
            notes.append(f"Steel member {element.id}: KL/r = {kl_r:.0f} exceeds the 300 limit")
    return notes
