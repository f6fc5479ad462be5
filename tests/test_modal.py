# File: tests/test_modal.py
"""
TEST: MODAL ANALYSIS
====================

PURPOSE:
--------
Checks the generalized eigen solve K·φ = ω²·M·φ:

1. A massless cantilever with a tip mass has ω = sqrt(3EI / (m·L³))
   in each bending plane and sqrt(EA / (m·L)) axially
2. Frequencies come back ascending and non-negative
3. Shapes are mass-normalized: φᵢᵀ·M·φⱼ = δᵢⱼ
4. Effective masses never exceed the total mass
5. Ill-posed problems raise instead of returning nonsense
"""

import numpy as np
import pytest

from struct_core.config import CONFIG
from struct_core.errors import EigenSolverDivergedError, SingularStiffnessError
from struct_core.generative.frame_grid import FrameGridParams, generate_frame_grid
from struct_core.kernel.assemble import assemble_system
from struct_core.kernel.modal import natural_frequencies
from struct_core.loads import gravity_weights
from struct_core.model import FIXED, FREE, Element, Material, Node, Section
from struct_core.repository import ModelRepository

E = 25e9
WIDTH, HEIGHT = 0.3, 0.5
H = 4.0            # column height (m)
MASS = 20e3        # tip mass (kg)


def _tip_mass_column(support=FIXED):
    repo = ModelRepository()
    repo.add_material(Material('C25', 'concrete', 25e6, E, 0.2, 0.0))
    repo.add_section(Section('R30x50', width=WIDTH, height=HEIGHT))
    repo.add_node(Node('base', 0.0, 0.0, 0.0, support))
    repo.add_node(Node('top', 0.0, 0.0, H))
    repo.add_element(Element('col', 'column', 'base', 'top', 'C25', 'R30x50'))
    return repo


def test_tip_mass_cantilever_frequencies():
    """
    THEORY:
    -------
    Vertical column: local y = global Y, local z = -global X.

        sway along X bends about local y:  k = 3·E·Iy / H³
        sway along Y bends about local z:  k = 3·E·Iz / H³
        axial:                             k = E·A / H

    Only the top translations carry mass; the rotations are condensed out,
    which is exact here, so three modes come back.
    """
    model = _tip_mass_column().snapshot()
    system = assemble_system(model, mass_type='lumped', nodal_masses={'top': MASS})
    modal = natural_frequencies(system.K, system.M, system.fixed, n_modes=6)

    Iy = WIDTH * HEIGHT ** 3 / 12.0
    Iz = HEIGHT * WIDTH ** 3 / 12.0
    A = WIDTH * HEIGHT
    expected = sorted([
        np.sqrt(3.0 * E * Iz / (MASS * H ** 3)),
        np.sqrt(3.0 * E * Iy / (MASS * H ** 3)),
        np.sqrt(E * A / (MASS * H)),
    ])

    assert modal.n_modes == 3
    np.testing.assert_allclose(modal.omega, expected, rtol=1e-8)
    np.testing.assert_allclose(modal.periods, 2.0 * np.pi / np.asarray(expected), rtol=1e-8)
    np.testing.assert_allclose(modal.frequencies_hz, np.asarray(expected) / (2.0 * np.pi), rtol=1e-8)

    # first mode sways along Y and captures all the Y mass
    assert np.isclose(modal.mass_ratio(1)[0], 1.0)
    assert np.isclose(modal.cumulative_mass_ratio(0), 1.0)
    assert np.isclose(modal.total_mass[0], MASS)

    print(f"✓ Tip-mass column: T1 = {modal.periods[0]:.4f} s")


def _frame_system(mass_type='lumped'):
    repo = generate_frame_grid(FrameGridParams(nx=1, ny=1, stories=2))
    model = repo.snapshot()
    masses = {nid: w / CONFIG.gravity for nid, w in gravity_weights(model).items() if w > 0.0}
    return assemble_system(model, mass_type=mass_type, nodal_masses=masses)


@pytest.mark.parametrize('mass_type', ['lumped', 'consistent'])
def test_modes_ascending_and_mass_normalized(mass_type):
    """
    WHY DOES THIS MATTER?
    ---------------------
    Response-spectrum scaling uses Γ = φᵀMr / φᵀMφ and assumes unit modal
    mass. Non-normalized or unordered modes silently corrupt every RS result.
    """
    system = _frame_system(mass_type)
    modal = natural_frequencies(system.K, system.M, system.fixed, n_modes=6)

    assert modal.n_modes == 6
    assert np.all(modal.omega >= 0.0)
    assert np.all(np.diff(modal.omega) >= 0.0)

    M = system.M
    gram = modal.shapes.T @ M @ modal.shapes
    np.testing.assert_allclose(gram, np.eye(modal.n_modes), atol=1e-8)

    # K-orthogonality gives ω² on the diagonal
    stiffness = modal.shapes.T @ system.K @ modal.shapes
    np.testing.assert_allclose(np.diag(stiffness), modal.omega ** 2, rtol=1e-6)

    for direction in range(3):
        assert modal.cumulative_mass_ratio(direction) <= 1.0 + 1e-9

    # restrained DOFs stay at zero in every shape
    assert np.allclose(modal.shapes[system.fixed], 0.0)


def test_lanczos_matches_dense():
    system = _frame_system()
    dense = natural_frequencies(system.K, system.M, system.fixed, n_modes=4, method='dense')
    lanczos = natural_frequencies(system.K, system.M, system.fixed, n_modes=4, method='lanczos')
    np.testing.assert_allclose(lanczos.omega, dense.omega, rtol=1e-6)


def test_results_are_read_only():
    system = _frame_system()
    modal = natural_frequencies(system.K, system.M, system.fixed, n_modes=2)
    with pytest.raises(ValueError):
        modal.omega[0] = 0.0


def test_unsupported_structure_is_singular():
    model = _tip_mass_column(support=FREE).snapshot()
    system = assemble_system(model, mass_type='lumped', nodal_masses={'top': MASS})

    with pytest.raises(SingularStiffnessError):
        natural_frequencies(system.K, system.M, system.fixed)


def test_massless_structure_rejected():
    """Element density 0 and no nodal masses: nothing to vibrate."""
    model = _tip_mass_column().snapshot()
    system = assemble_system(model, mass_type='lumped')

    with pytest.raises(EigenSolverDivergedError):
        natural_frequencies(system.K, system.M, system.fixed)


def test_invalid_mode_count():
    model = _tip_mass_column().snapshot()
    system = assemble_system(model, mass_type='lumped', nodal_masses={'top': MASS})
    with pytest.raises(ValueError):
        natural_frequencies(system.K, system.M, system.fixed, n_modes=0)
