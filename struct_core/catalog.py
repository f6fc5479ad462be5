# struct_core/catalog.py
"""
CATALOG: MATERIAL AND SECTION PROPERTIES
========================================

PURPOSE:
--------
Standard Indonesian (SNI) materials and rectangular RC section sizes, so a
model can say ``concrete('K-25')`` instead of repeating E, f'c and density
everywhere.

ENGINEERING CONTEXT:
--------------------
- Concrete grades are named by characteristic strength (K-25 ~ f'c 25 MPa).
  Modulus from SNI 2847: Ec = 4700·sqrt(f'c) (MPa).
- Structural steel grades BJ-37/41/50 (SNI 1729), E = 200 GPa.
- Reinforcing bar BJTD-40 (deformed bar, fy = 400 MPa).

Units are SI: Pa, kg/m^3, m.
"""

import math
from typing import Dict, List

from .model import Material, MaterialClass, Section


def concrete_modulus(fc: float) -> float:
    """SNI 2847 / ACI 318 normal-weight concrete modulus Ec = 4700·sqrt(f'c) (Pa in, Pa out)."""
    return 4700.0 * math.sqrt(fc / 1e6) * 1e6


def _concrete(grade: str, fc_mpa: float) -> Material:
    fc = fc_mpa * 1e6
    return Material(
        id=grade,
        material_class=MaterialClass.CONCRETE,
        strength=fc,
        E=concrete_modulus(fc),
        nu=0.2,
        density=2400.0,
    )


def _steel(grade: str, fy_mpa: float, material_class=MaterialClass.STEEL) -> Material:
    return Material(
        id=grade,
        material_class=material_class,
        strength=fy_mpa * 1e6,
        E=200e9,
        nu=0.3,
        density=7850.0,
    )


# ============================================================================
# MATERIAL DEFINITIONS
# ============================================================================

CONCRETE_GRADES: Dict[str, Material] = {
    'K-20': _concrete('K-20', 20.0),
    'K-25': _concrete('K-25', 25.0),
    'K-30': _concrete('K-30', 30.0),
    'K-35': _concrete('K-35', 35.0),
}

STEEL_GRADES: Dict[str, Material] = {
    'BJ-37': _steel('BJ-37', 240.0),
    'BJ-41': _steel('BJ-41', 250.0),
    'BJ-50': _steel('BJ-50', 290.0),
}

# Ultimate tensile strength (Pa), kept beside the grade since Material has one strength
STEEL_ULTIMATE = {
    'BJ-37': 370e6,
    'BJ-41': 410e6,
    'BJ-50': 500e6,
}

REBAR_GRADES: Dict[str, Material] = {
    'BJTD-40': _steel('BJTD-40', 400.0, MaterialClass.REBAR),
}

MATERIALS: Dict[str, Material] = {**CONCRETE_GRADES, **STEEL_GRADES, **REBAR_GRADES}

# Default for building frames
DEFAULT_MATERIAL = CONCRETE_GRADES['K-25']


def material(grade: str) -> Material:
    """Look up any catalog material by grade name."""
    try:
        return MATERIALS[grade]
    except KeyError:
        raise KeyError(f"Unknown material grade {grade!r}. Available: {sorted(MATERIALS)}")


def concrete(grade: str = 'K-25') -> Material:
    return CONCRETE_GRADES[grade]


def steel(grade: str = 'BJ-37') -> Material:
    return STEEL_GRADES[grade]


# ============================================================================
# SECTION DEFINITIONS (rectangular RC members)
# ============================================================================

def rectangular_section(width: float, height: float, name: str = None) -> Section:
    """
    Solid rectangle, ``width`` along local y and ``height`` along local z.

    >>> s = rectangular_section(0.3, 0.5)
    >>> s.id
    'R300x500'
    """
    if name is None:
        name = f"R{round(width * 1000):d}x{round(height * 1000):d}"
    return Section(id=name, width=width, height=height)


# Beam sizes (width x depth, m), smallest to largest
BEAM_SECTIONS: List[Section] = [
    rectangular_section(0.20, 0.30),
    rectangular_section(0.25, 0.40),
    rectangular_section(0.30, 0.50),
    rectangular_section(0.30, 0.60),
    rectangular_section(0.35, 0.70),
    rectangular_section(0.40, 0.80),
]

# Square column sizes (m)
COLUMN_SECTIONS: List[Section] = [
    rectangular_section(b, b, name=f"C{round(b * 1000):d}")
    for b in (0.30, 0.35, 0.40, 0.45, 0.50, 0.60, 0.70)
]


def section_by_name(name: str) -> Section:
    for section in BEAM_SECTIONS + COLUMN_SECTIONS:
        if section.id == name:
            return section
    raise KeyError(f"Unknown section {name!r}")
