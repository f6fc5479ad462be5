# File: tests/test_elements.py
"""
TEST: ELEMENT MATRICES AND THE STIFFNESS CACHE
==============================================

PURPOSE:
--------
Element matrices feed everything downstream, so their basic physics is
checked directly:

1. Symmetry: k = kᵀ (Maxwell-Betti reciprocity)
2. Rigid-body motion produces no force: k · u_rigid = 0
3. Local axes follow the documented convention
4. The global K assembled from them is symmetric
5. The stiffness cache returns the same matrices for the same inputs and
   a fresh entry when any input changes
"""

import numpy as np
import pytest

from struct_core.elements import (
    StiffnessCache,
    frame3d_geometric_stiffness,
    frame3d_local_stiffness,
    rotation_matrix,
    transformation_matrix,
    truss3d_local_stiffness,
)
from struct_core.kernel.assemble import assemble_system
from struct_core.model import FIXED, Element, Material, Node, Section
from struct_core.repository import ModelRepository

E, G = 200e9, 77e9
A, Iy, Iz, J = 5e-3, 8e-5, 2e-5, 1e-6


def test_frame_local_stiffness_symmetry():
    """k_local is symmetric and has the textbook axial and bending terms."""
    L = 3.0
    k = frame3d_local_stiffness(E, G, A, Iy, Iz, J, L)

    assert k.shape == (12, 12)
    assert np.allclose(k, k.T)
    assert np.isclose(k[0, 0], E * A / L)
    assert np.isclose(k[3, 3], G * J / L)
    assert np.isclose(k[2, 2], 12 * E * Iy / L ** 3)
    assert np.isclose(k[1, 1], 12 * E * Iz / L ** 3)

    print("✓ Frame stiffness is symmetric with EA/L, GJ/L, 12EI/L³ terms")


def test_rigid_body_translation_is_force_free():
    """
    WHY DOES THIS MATTER?
    ---------------------
    Moving an unrestrained member without deforming it must not produce
    any end force. A non-zero result means a wrong coefficient.
    """
    L = 4.0
    k = frame3d_local_stiffness(E, G, A, Iy, Iz, J, L)
    for direction in range(3):
        u = np.zeros(12)
        u[direction] = u[direction + 6] = 1.0
        assert np.allclose(k @ u, 0.0, atol=1e-6 * np.abs(k).max())

    # rigid rotation about local z: v = θ·x, rz = θ at both ends
    u = np.zeros(12)
    u[5] = u[11] = 1.0
    u[7] = L
    assert np.allclose(k @ u, 0.0, atol=1e-6 * np.abs(k).max())


def test_truss_stiffness_axial_only():
    k = truss3d_local_stiffness(E, A, 2.0)
    assert np.allclose(k, k.T)
    assert np.isclose(k[0, 0], E * A / 2.0)
    assert np.isclose(k[0, 6], -E * A / 2.0)
    assert np.count_nonzero(k) == 4


def test_geometric_stiffness_symmetric_and_scales_with_axial_force():
    kg1 = frame3d_geometric_stiffness(-1e5, A, Iy, Iz, 3.0)
    kg2 = frame3d_geometric_stiffness(-2e5, A, Iy, Iz, 3.0)
    assert np.allclose(kg1, kg1.T)
    assert np.allclose(kg2, 2.0 * kg1)


def test_local_axes_convention():
    """
    Horizontal member along X: y = global Y, z = global Z.
    Vertical member: x = global Z, y = global Y, z = -global X.
    """
    L, R = rotation_matrix((0.0, 0.0, 0.0), (5.0, 0.0, 0.0))
    assert np.isclose(L, 5.0)
    np.testing.assert_allclose(R, np.eye(3), atol=1e-12)

    L, R = rotation_matrix((0.0, 0.0, 0.0), (0.0, 0.0, 3.0))
    np.testing.assert_allclose(R[0], [0.0, 0.0, 1.0], atol=1e-12)
    np.testing.assert_allclose(R[1], [0.0, 1.0, 0.0], atol=1e-12)
    np.testing.assert_allclose(R[2], [-1.0, 0.0, 0.0], atol=1e-12)

    # orthonormal for an arbitrary skew member with roll
    L, R = rotation_matrix((1.0, 2.0, 0.5), (4.0, -1.0, 3.0), roll=30.0)
    np.testing.assert_allclose(R @ R.T, np.eye(3), atol=1e-12)
    assert np.isclose(np.linalg.det(R), 1.0)

    T = transformation_matrix(R)
    np.testing.assert_allclose(T @ T.T, np.eye(12), atol=1e-12)


def _frame_repo():
    repo = ModelRepository()
    repo.add_material(Material('S275', 'steel', 275e6, E, 0.3, 7850.0))
    repo.add_section(Section('box', A=A, Iy=Iy, Iz=Iz, J=J))
    repo.add_node(Node(0, 0.0, 0.0, 0.0, FIXED))
    repo.add_node(Node(1, 0.0, 0.0, 3.0))
    repo.add_node(Node(2, 4.0, 1.0, 3.0))
    repo.add_node(Node(3, 4.0, 1.0, 0.0, FIXED))
    repo.add_element(Element('c1', 'column', 0, 1, 'S275', 'box'))
    repo.add_element(Element('b1', 'beam', 1, 2, 'S275', 'box'))
    repo.add_element(Element('c2', 'column', 3, 2, 'S275', 'box', roll=90.0))
    return repo


def test_global_stiffness_symmetry():
    """Assembled K of a skewed portal is symmetric and sized 6 x n_nodes."""
    system = assemble_system(_frame_repo().snapshot(), cache=StiffnessCache())

    assert system.K.shape == (24, 24)
    assert np.allclose(system.K, system.K.T)
    assert len(system.fixed) == 12

    print("✓ Global K symmetric")


def test_stiffness_cache_hits_and_misses():
    """
    The two columns have identical type, material and section but different
    coordinates, so three elements give three misses. Assembling again hits
    for all three. Changing the section produces a new entry.
    """
    cache = StiffnessCache()
    model = _frame_repo().snapshot()

    first = assemble_system(model, cache=cache)
    assert cache.misses == 3
    assert cache.hits == 0
    assert len(cache) == 3

    second = assemble_system(model, cache=cache)
    assert cache.hits == 3
    assert second.record('b1').matrices is first.record('b1').matrices
    np.testing.assert_array_equal(second.K, first.K)

    # same geometry, stiffer section: must not reuse the cached entry
    repo = ModelRepository()
    repo.add_material(Material('S275', 'steel', 275e6, E, 0.3, 7850.0))
    repo.add_section(Section('box', A=A, Iy=2 * Iy, Iz=Iz, J=J))
    repo.add_node(Node(0, 0.0, 0.0, 0.0, FIXED))
    repo.add_node(Node(1, 0.0, 0.0, 3.0))
    repo.add_element(Element('c1', 'column', 0, 1, 'S275', 'box'))
    third = assemble_system(repo.snapshot(), cache=cache)
    assert cache.misses == 4
    assert not np.allclose(third.record('c1').matrices.k_local, first.record('c1').matrices.k_local)

    # cached matrices are read-only
    assert not first.record('c1').matrices.k_global.flags.writeable


def test_stiffness_cache_is_bounded():
    """
    A long-lived process assembles many models through the shared cache;
    past ``maxsize`` the least recently used entry goes first.
    """
    cache = StiffnessCache(maxsize=2)
    model = _frame_repo().snapshot()

    def fetch(element_id):
        element = model.element(element_id)
        return cache.get(
            element,
            model.materials[element.material],
            model.sections[element.section],
            model.nodes[element.ni].coords,
            model.nodes[element.nj].coords,
        )

    fetch('c1')
    fetch('b1')
    fetch('c1')                 # hit, c1 becomes most recent
    fetch('c2')                 # evicts b1
    assert len(cache) == 2
    assert (cache.hits, cache.misses) == (1, 3)

    fetch('c1')
    assert cache.hits == 2
    fetch('b1')
    assert cache.misses == 4
    assert len(cache) == 2

    with pytest.raises(ValueError):
        StiffnessCache(maxsize=0)
    print("✓ Stiffness cache evicts least recently used entries")
