# struct_core/elements.py
"""
3D ELEMENT FORMULATIONS: Frame and Truss
========================================

PURPOSE:
--------
Everything that turns (material, section, geometry) into element matrices:

- local stiffness (12x12, DOF order [u v w rx ry rz] at i then j)
- the direction-cosine rotation and its 12x12 block transformation
- consistent and lumped mass
- geometric stiffness for P-Delta

ELEMENT KINDS:
--------------
The element type is a closed set. ``FORMULATIONS`` maps each ElementType to
one formulation object; adding a kind means adding an entry here and the
matching functions, nothing else in the kernel changes.

    FRAME  Euler-Bernoulli beam-column: axial, torsion, bending about y and z
    TRUSS  axial-only bar; rotational rows stay empty

LOCAL AXES:
-----------
    x  from node i to node j
    y  horizontal for non-vertical members (Z cross x)
    z  completes the right-handed set; points up for horizontal members

Vertical members use global X as the reference instead (y = x cross X).
``Element.roll`` rotates y and z about x.

CACHING:
--------
Element matrices are derived artifacts keyed by (type, material, section,
end coordinates, roll). A changed material, section or node position
produces a different key, so stale entries are never returned. The cache
is bounded: past ``maxsize`` entries the least recently used one is dropped.
"""

import logging
import math
import threading
from collections import OrderedDict
from dataclasses import dataclass
from typing import Mapping, Tuple

import numpy as np

from .model import Element, ElementType, Material, Node, NodeId, Section

_logger = logging.getLogger(__name__)

VERTICAL_TOLERANCE = 1e-6


# =============================================================================
# Geometry
# =============================================================================

@dataclass(frozen=True)
class ElementGeometry:
    """Length and orientation of a member."""
    L: float
    R: np.ndarray  # 3x3, rows are local x, y, z in global components

    @property
    def direction(self) -> np.ndarray:
        return self.R[0]


def rotation_matrix(
    start: Tuple[float, float, float],
    end: Tuple[float, float, float],
    roll: float = 0.0,
) -> Tuple[float, np.ndarray]:
    """
    Direction-cosine matrix of a member.

    Args:
        start, end: Global coordinates of node i and node j
        roll: Rotation of local y/z about local x (degrees)

    Returns:
        (L, R) with R @ v_global = v_local

    Raises:
        ValueError: zero-length member
    """
    delta = np.asarray(end, dtype=float) - np.asarray(start, dtype=float)
    L = float(np.linalg.norm(delta))
    if L <= 0.0:
        raise ValueError(f"Zero-length member between {start} and {end}")
    x = delta / L

    horizontal_extent = math.hypot(x[0], x[1])
    if horizontal_extent < VERTICAL_TOLERANCE:
        y = np.cross(x, np.array([1.0, 0.0, 0.0]))
    else:
        y = np.cross(np.array([0.0, 0.0, 1.0]), x)
    y /= np.linalg.norm(y)
    z = np.cross(x, y)

    if roll:
        a = math.radians(roll)
        y, z = math.cos(a) * y + math.sin(a) * z, -math.sin(a) * y + math.cos(a) * z

    return L, np.vstack([x, y, z])


def element_geometry(nodes: Mapping[NodeId, Node], element: Element) -> ElementGeometry:
    ni = nodes[element.ni]
    nj = nodes[element.nj]
    try:
        L, R = rotation_matrix(ni.coords, nj.coords, element.roll)
    except ValueError:
        raise ValueError(
            f"Element {element.id} has zero length (nodes {element.ni} and {element.nj} "
            f"at same location: {ni.coords})"
        )
    return ElementGeometry(L=L, R=R)


def transformation_matrix(R: np.ndarray) -> np.ndarray:
    """12x12 block-diagonal transform from global DOFs to local DOFs."""
    T = np.zeros((12, 12), dtype=float)
    for block in range(4):
        s = 3 * block
        T[s:s + 3, s:s + 3] = R
    return T


# =============================================================================
# Frame (Euler-Bernoulli) matrices
# =============================================================================

def frame3d_local_stiffness(
    E: float, G: float, A: float, Iy: float, Iz: float, J: float, L: float
) -> np.ndarray:
    """
    Local stiffness matrix of a 3D beam-column.

    DOF order: [ui, vi, wi, rxi, ryi, rzi, uj, vj, wj, rxj, ryj, rzj]
    """
    k = np.zeros((12, 12), dtype=float)
    L2 = L * L
    L3 = L2 * L

    EA_L = E * A / L
    GJ_L = G * J / L
    k[0, 0] = k[6, 6] = EA_L
    k[0, 6] = -EA_L
    k[3, 3] = k[9, 9] = GJ_L
    k[3, 9] = -GJ_L

    # Bending in the local x-y plane (about z): v, rz
    EIz = E * Iz
    k[1, 1] = k[7, 7] = 12 * EIz / L3
    k[1, 7] = -12 * EIz / L3
    k[1, 5] = k[1, 11] = 6 * EIz / L2
    k[5, 7] = k[7, 11] = -6 * EIz / L2
    k[5, 5] = k[11, 11] = 4 * EIz / L
    k[5, 11] = 2 * EIz / L

    # Bending in the local x-z plane (about y): w, ry
    EIy = E * Iy
    k[2, 2] = k[8, 8] = 12 * EIy / L3
    k[2, 8] = -12 * EIy / L3
    k[2, 4] = k[2, 10] = -6 * EIy / L2
    k[4, 8] = k[8, 10] = 6 * EIy / L2
    k[4, 4] = k[10, 10] = 4 * EIy / L
    k[4, 10] = 2 * EIy / L

    return _symmetrize_upper(k)


def frame3d_consistent_mass(rho: float, A: float, Iy: float, Iz: float, L: float) -> np.ndarray:
    """Consistent mass matrix of a 3D beam-column (local axes)."""
    m = np.zeros((12, 12), dtype=float)
    Ip_A = (Iy + Iz) / A
    L2 = L * L

    m[0, 0] = m[6, 6] = 140.0
    m[0, 6] = 70.0
    m[3, 3] = m[9, 9] = 140.0 * Ip_A
    m[3, 9] = 70.0 * Ip_A

    m[1, 1] = m[7, 7] = 156.0
    m[1, 5] = 22.0 * L
    m[1, 7] = 54.0
    m[1, 11] = -13.0 * L
    m[5, 5] = m[11, 11] = 4.0 * L2
    m[5, 7] = 13.0 * L
    m[5, 11] = -3.0 * L2
    m[7, 11] = -22.0 * L

    m[2, 2] = m[8, 8] = 156.0
    m[2, 4] = -22.0 * L
    m[2, 8] = 54.0
    m[2, 10] = 13.0 * L
    m[4, 4] = m[10, 10] = 4.0 * L2
    m[4, 8] = -13.0 * L
    m[4, 10] = -3.0 * L2
    m[8, 10] = 22.0 * L

    return _symmetrize_upper(m) * (rho * A * L / 420.0)


def frame3d_geometric_stiffness(N: float, A: float, Iy: float, Iz: float, L: float) -> np.ndarray:
    """
    Geometric stiffness of a 3D beam-column under axial force N.

    N > 0 is tension (stiffening), N < 0 compression (softening).
    """
    kg = np.zeros((12, 12), dtype=float)
    L2 = L * L
    Ip_A = (Iy + Iz) / A

    kg[0, 0] = kg[6, 6] = 0.0
    kg[3, 3] = kg[9, 9] = Ip_A
    kg[3, 9] = -Ip_A

    kg[1, 1] = kg[7, 7] = 6.0 / 5.0
    kg[1, 7] = -6.0 / 5.0
    kg[1, 5] = kg[1, 11] = L / 10.0
    kg[5, 7] = kg[7, 11] = -L / 10.0
    kg[5, 5] = kg[11, 11] = 2.0 * L2 / 15.0
    kg[5, 11] = -L2 / 30.0

    kg[2, 2] = kg[8, 8] = 6.0 / 5.0
    kg[2, 8] = -6.0 / 5.0
    kg[2, 4] = kg[2, 10] = -L / 10.0
    kg[4, 8] = kg[8, 10] = L / 10.0
    kg[4, 4] = kg[10, 10] = 2.0 * L2 / 15.0
    kg[4, 10] = -L2 / 30.0

    return _symmetrize_upper(kg) * (N / L)


# =============================================================================
# Truss (axial-only) matrices
# =============================================================================

def truss3d_local_stiffness(E: float, A: float, L: float) -> np.ndarray:
    """Axial bar in local axes, embedded in the 12-DOF layout."""
    k = np.zeros((12, 12), dtype=float)
    EA_L = E * A / L
    k[0, 0] = k[6, 6] = EA_L
    k[0, 6] = k[6, 0] = -EA_L
    return k


def truss3d_consistent_mass(rho: float, A: float, L: float) -> np.ndarray:
    """Translational consistent mass (rho*A*L/6)*[[2, 1], [1, 2]] per direction."""
    m = np.zeros((12, 12), dtype=float)
    for d in range(3):
        i1, i2 = d, 6 + d
        m[i1, i1] = m[i2, i2] = 2.0
        m[i1, i2] = m[i2, i1] = 1.0
    return m * (rho * A * L / 6.0)


def truss3d_geometric_stiffness(N: float, L: float) -> np.ndarray:
    """Lateral stiffening/softening of a bar: (N/L) on the transverse translations."""
    kg = np.zeros((12, 12), dtype=float)
    for d in (1, 2):
        kg[d, d] = kg[6 + d, 6 + d] = 1.0
        kg[d, 6 + d] = kg[6 + d, d] = -1.0
    return kg * (N / L)


def lumped_mass(rho: float, A: float, L: float) -> np.ndarray:
    """Half the member mass on each node's translations, nothing on rotations."""
    m = np.zeros((12, 12), dtype=float)
    half = rho * A * L / 2.0
    for d in (0, 1, 2, 6, 7, 8):
        m[d, d] = half
    return m


def _symmetrize_upper(a: np.ndarray) -> np.ndarray:
    """Mirror the upper triangle into the lower one."""
    return np.triu(a) + np.triu(a, 1).T


# =============================================================================
# Closed set of formulations
# =============================================================================

class FrameFormulation:
    name = 'frame'
    axial_only = False

    def local_stiffness(self, material: Material, section: Section, L: float) -> np.ndarray:
        return frame3d_local_stiffness(
            material.E, material.G, section.A, section.Iy, section.Iz, section.J, L
        )

    def consistent_mass(self, material: Material, section: Section, L: float) -> np.ndarray:
        return frame3d_consistent_mass(material.density, section.A, section.Iy, section.Iz, L)

    def geometric_stiffness(self, N: float, section: Section, L: float) -> np.ndarray:
        return frame3d_geometric_stiffness(N, section.A, section.Iy, section.Iz, L)


class TrussFormulation:
    name = 'truss'
    axial_only = True

    def local_stiffness(self, material: Material, section: Section, L: float) -> np.ndarray:
        return truss3d_local_stiffness(material.E, section.A, L)

    def consistent_mass(self, material: Material, section: Section, L: float) -> np.ndarray:
        return truss3d_consistent_mass(material.density, section.A, L)

    def geometric_stiffness(self, N: float, section: Section, L: float) -> np.ndarray:
        return truss3d_geometric_stiffness(N, L)


FRAME = FrameFormulation()
TRUSS = TrussFormulation()

FORMULATIONS = {
    ElementType.BEAM: FRAME,
    ElementType.COLUMN: FRAME,
    ElementType.BRACE: FRAME,
    ElementType.SLAB: FRAME,
    ElementType.WALL: FRAME,
    ElementType.TRUSS: TRUSS,
}


def formulation_for(element_type: ElementType):
    return FORMULATIONS[ElementType(element_type)]


# =============================================================================
# Element matrices + cache
# =============================================================================

@dataclass(frozen=True)
class ElementMatrices:
    """Stiffness artifacts of one member, in local and global axes."""
    L: float
    R: np.ndarray
    T: np.ndarray
    k_local: np.ndarray
    k_global: np.ndarray


class StiffnessCache:
    """
    Thread-safe memo of ElementMatrices keyed by everything they depend on.

    Keys hold the material and section values (frozen dataclasses) plus the
    member's end coordinates, so editing any of them is an automatic miss.
    Holds at most ``maxsize`` entries, evicting the least recently used.
    """

    def __init__(self, maxsize: int = 20000):
        if maxsize < 1:
            raise ValueError(f"maxsize must be >= 1, got {maxsize}")
        self.maxsize = maxsize
        self._entries: "OrderedDict[tuple, ElementMatrices]" = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = self.misses = 0

    def get(
        self,
        element: Element,
        material: Material,
        section: Section,
        start: Tuple[float, float, float],
        end: Tuple[float, float, float],
    ) -> ElementMatrices:
        key = (element.element_type, material, section, tuple(start), tuple(end), element.roll)
        with self._lock:
            cached = self._entries.get(key)
            if cached is not None:
                self._entries.move_to_end(key)
                self.hits += 1
                return cached
            self.misses += 1

        L, R = rotation_matrix(start, end, element.roll)
        T = transformation_matrix(R)
        k_local = formulation_for(element.element_type).local_stiffness(material, section, L)
        k_global = T.T @ k_local @ T
        for arr in (R, T, k_local, k_global):
            arr.setflags(write=False)
        matrices = ElementMatrices(L=L, R=R, T=T, k_local=k_local, k_global=k_global)

        with self._lock:
            matrices = self._entries.setdefault(key, matrices)
            while len(self._entries) > self.maxsize:
                self._entries.popitem(last=False)
        return matrices


# Process-wide default cache
STIFFNESS_CACHE = StiffnessCache()
