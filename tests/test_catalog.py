# File: tests/test_catalog.py
"""
Test the catalog and the capacity helpers built on top of it.
"""

import dataclasses

import numpy as np
import pytest

from struct_core.catalog import (
    BEAM_SECTIONS,
    COLUMN_SECTIONS,
    CONCRETE_GRADES,
    DEFAULT_MATERIAL,
    STEEL_ULTIMATE,
    concrete,
    concrete_modulus,
    material,
    rectangular_section,
    section_by_name,
    steel,
)
from struct_core.checks.concrete import axial_utilization
from struct_core.checks.steel import (
    bending_capacity,
    check_steel_member,
    compression_capacity,
    governing_member,
    slenderness_advisories,
    slenderness_check,
    tension_capacity,
)
from struct_core.model import FIXED, Element, MaterialClass, Node, Section
from struct_core.repository import ModelRepository


def test_concrete_grades():
    """
    Ec = 4700·sqrt(f'c) in MPa: K-25 -> 23500 MPa.
    """
    k25 = concrete('K-25')
    assert k25.material_class is MaterialClass.CONCRETE
    assert np.isclose(k25.strength, 25e6)
    assert np.isclose(k25.E, 23.5e9)
    assert np.isclose(concrete_modulus(36e6), 28.2e9)
    assert DEFAULT_MATERIAL is k25

    # grades get stiffer with strength
    moduli = [m.E for m in CONCRETE_GRADES.values()]
    assert moduli == sorted(moduli)

    print("✓ Concrete grades follow Ec = 4700·sqrt(f'c)")


def test_material_lookup():
    assert material('BJ-37') is steel('BJ-37')
    assert material('BJTD-40').material_class is MaterialClass.REBAR
    assert STEEL_ULTIMATE['BJ-41'] > steel('BJ-41').strength
    with pytest.raises(KeyError):
        material('K-99')

    # frozen
    with pytest.raises(dataclasses.FrozenInstanceError):
        concrete().E = 1.0


def test_rectangular_section_properties():
    """
    width along local y, height along local z:
        Iy = w·h³/12 (strong axis for a deep beam), Iz = h·w³/12
    """
    s = rectangular_section(0.3, 0.5)
    assert s.id == 'R300x500'
    assert np.isclose(s.A, 0.15)
    assert np.isclose(s.Iy, 0.3 * 0.5 ** 3 / 12.0)
    assert np.isclose(s.Iz, 0.5 * 0.3 ** 3 / 12.0)
    assert s.Iy > s.Iz
    assert np.isclose(s.cy, 0.15) and np.isclose(s.cz, 0.25)

    square = section_by_name('C500')
    assert np.isclose(square.J, 0.1408 * 0.5 ** 4, rtol=1e-3)


def test_section_lists_ordered():
    areas = [s.A for s in BEAM_SECTIONS]
    assert areas == sorted(areas)
    assert [s.id for s in COLUMN_SECTIONS][0] == 'C300'
    with pytest.raises(KeyError):
        section_by_name('W14x90')


def test_section_validation():
    with pytest.raises(ValueError):
        Section('bad', width=0.3, height=-0.5)
    with pytest.raises(ValueError):
        Section('mismatch', A=1.0, width=0.3, height=0.5)
    with pytest.raises(ValueError):
        Section('incomplete', A=0.1, Iy=1e-3)
    # explicit properties without dimensions: extreme fibers from the equivalent rectangle
    s = Section('box', A=5e-3, Iy=8e-5, Iz=2e-5, J=1e-6)
    assert np.isclose(s.cz, np.sqrt(3.0 * 8e-5 / 5e-3))


# =============================================================================
# Capacity helpers
# =============================================================================

def test_concrete_helpers():
    k25 = concrete('K-25')
    col = section_by_name('C500')
    assert axial_utilization(1e5, col, k25) == 0.0
    assert axial_utilization(-1e6, col, k25) > 0.0


def test_steel_capacities():
    """
    A stocky member reaches almost Fy·A in compression; a long slender one
    falls onto the 0.877·Fe branch.
    """
    bj37 = steel('BJ-37')
    box = Section('box', A=5e-3, Iy=8e-5, Iz=2e-5, J=1e-6)

    assert np.isclose(tension_capacity(box, bj37), 240e6 * 5e-3)

    stocky = compression_capacity(box, bj37, L=0.1)
    assert stocky < tension_capacity(box, bj37)
    assert stocky > 0.99 * tension_capacity(box, bj37)

    r = np.sqrt(2e-5 / 5e-3)
    L = 250 * r
    Fe = np.pi ** 2 * bj37.E / 250 ** 2
    assert np.isclose(compression_capacity(box, bj37, L), 0.877 * Fe * box.A)

    Mny, Mnz = bending_capacity(box, bj37)
    assert Mny > Mnz

    assert slenderness_check(box, L)[1] == 'WARNING'
    assert slenderness_check(box, 0.5 * L)[1] == 'PASS'


def test_slenderness_advisories():
    """
    Only steel members are screened; a member between KL/r 200 and 300 is
    flagged as tension-only, one beyond 300 as over the limit.
    """
    bj37 = steel('BJ-37')
    k25 = concrete('K-25')
    r = np.sqrt(2e-5 / 5e-3)

    repo = ModelRepository()
    repo.add_material(bj37)
    repo.add_material(k25)
    repo.add_section(Section('box', A=5e-3, Iy=8e-5, Iz=2e-5, J=1e-6))
    repo.add_node(Node(0, 0.0, 0.0, 0.0, FIXED))
    repo.add_node(Node(1, 0.0, 0.0, 3.0))
    repo.add_node(Node(2, 250 * r, 0.0, 3.0))
    repo.add_node(Node(3, 250 * r + 320 * r, 0.0, 3.0))
    repo.add_node(Node(4, 0.0, 0.0, 3.0 + 400 * r))
    repo.add_element(Element('col', 'column', 0, 1, bj37.id, 'box'))
    repo.add_element(Element('tie', 'beam', 1, 2, bj37.id, 'box'))
    repo.add_element(Element('long', 'beam', 2, 3, bj37.id, 'box'))
    repo.add_element(Element('pier', 'column', 1, 4, k25.id, 'box'))

    notes = slenderness_advisories(repo.snapshot())
    assert len(notes) == 2
    assert 'tie' in notes[0] and 'tension-only' in notes[0]
    assert 'long' in notes[1] and '300' in notes[1]


def test_steel_interaction():
    """AISC H1-1a above Pr/Pc = 0.2, H1-1b below."""
    bj37 = steel('BJ-37')
    box = Section('box', A=5e-3, Iy=8e-5, Iz=2e-5, J=1e-6)

    light = check_steel_member(1e5, box, bj37, 3.0, My=5e3)
    assert light.mode == 'tension'
    assert light.axial < 0.2
    assert np.isclose(light.combined, light.axial / 2.0 + light.bending)

    heavy = check_steel_member(-6e5, box, bj37, 3.0, My=5e3)
    assert heavy.mode == 'compression'
    assert heavy.axial >= 0.2
    assert np.isclose(heavy.combined, heavy.axial + 8.0 / 9.0 * heavy.bending)
    assert heavy.passed

    overloaded = check_steel_member(-2e6, box, bj37, 3.0)
    assert not overloaded.passed
    assert overloaded.governing == 'compression'

    worst_id, worst = governing_member({'a': light, 'b': heavy})
    assert worst_id == 'b' and worst is heavy
    assert governing_member({}) == (None, None)
