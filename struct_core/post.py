# struct_core/post.py
"""
POST-PROCESSING: Member forces, stresses, reactions, drift, deflection
======================================================================

PURPOSE:
--------
Turn a displacement vector back into engineering quantities.

Local end forces of a member (forces the nodes exert on the member):

    f = k_local · T · d_e - f_equiv

    f = [N_i, Vy_i, Vz_i, T_i, My_i, Mz_i,  N_j, Vy_j, Vz_j, T_j, My_j, Mz_j]

Internal moments at a station x from node i, for a member carrying uniform
load (wx, wy, wz) and point loads (a, p):

    Mz(x) = -Mz_i + x·Vy_i + wy·x²/2 + Σ(x - a)·py       (a < x)
    My(x) = -My_i - x·Vz_i - wz·x²/2 - Σ(x - a)·pz

so Mz(0) = -Mz_i and Mz(L) = Mz_j. Signs matter for locating maxima, the
checks only use magnitudes.

Combined normal stress of a rectangle at the worst corner:

    σ = |N|/A + |My|·cz/Iy + |Mz|·cy/Iz
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

import numpy as np

from .kernel.assemble import AssembledSystem, ElementRecord
from .kernel.dof import DOFManager
from .loads import FactoredLoads, MemberLoad
from .model import ElementId, ElementType, NodeId

_logger = logging.getLogger(__name__)

STATIONS = (0.0, 0.25, 0.5, 0.75, 1.0)


@dataclass(frozen=True)
class ElementForces:
    """
    Force and stress summary of one member for one load combination.

    Attributes:
    -----------
    end_forces : np.ndarray
        (12,) local end forces, see module docstring
    axial : float
        Axial force at node i (tension +)
    max_moment_y, max_moment_z : float
        Largest |My|, |Mz| along the member (N·m)
    max_shear : float
        Largest resultant shear at the ends (N)
    torsion : float
        |T| (N·m)
    max_stress : float
        Largest combined normal stress along the member (Pa)
    stress_ratio : float
        max_stress / material strength
    """
    element_id: ElementId
    element_type: ElementType
    material: str
    length: float
    end_forces: np.ndarray
    axial: float
    max_moment_y: float
    max_moment_z: float
    max_shear: float
    torsion: float
    max_stress: float
    stress_ratio: float

    def to_dict(self) -> dict:
        return {
            'elementId': self.element_id,
            'type': self.element_type.value,
            'material': self.material,
            'length': self.length,
            'axialForce': self.axial,
            'shearForce': self.max_shear,
            'momentY': self.max_moment_y,
            'momentZ': self.max_moment_z,
            'torsion': self.torsion,
            'stress': self.max_stress,
            'stressRatio': self.stress_ratio,
            'endForces': [float(v) for v in self.end_forces],
        }


# =============================================================================
# Member forces
# =============================================================================

def element_end_forces(record: ElementRecord, d: np.ndarray,
                       member_load: Optional[MemberLoad] = None) -> np.ndarray:
    """Local end forces k·T·d_e - f_equiv (12,)."""
    d_local = record.matrices.T @ d[record.dof_map]
    f = record.matrices.k_local @ d_local
    if member_load is not None:
        f = f - member_load.f_equiv
    return f


def station_actions(record: ElementRecord, f: np.ndarray, member_load: Optional[MemberLoad],
                    x: float) -> np.ndarray:
    """[N, Vy, Vz, T, My, Mz] at distance x from node i (N tension +)."""
    w = member_load.w if member_load is not None else np.zeros(3)
    N = -f[0] - w[0] * x
    Vy = f[1] + w[1] * x
    Vz = f[2] + w[2] * x
    Mz = -f[5] + x * f[1] + w[1] * x * x / 2.0
    My = -f[4] - x * f[2] - w[2] * x * x / 2.0
    if member_load is not None:
        for position, p in member_load.points:
            a = position * record.L
            if a < x:
                N -= p[0]
                Vy += p[1]
                Vz += p[2]
                Mz += (x - a) * p[1]
                My -= (x - a) * p[2]
    return np.array([N, Vy, Vz, -f[3], My, Mz])


def _stations(record: ElementRecord, f: np.ndarray, member_load: Optional[MemberLoad]) -> List[float]:
    L = record.L
    xs = [s * L for s in STATIONS]
    if member_load is not None:
        xs.extend(position * L for position, _ in member_load.points)
        # zero-shear points of the uniform load are moment extrema
        for shear, w in ((f[1], member_load.w[1]), (f[2], member_load.w[2])):
            if w != 0.0:
                x0 = -shear / w
                if 0.0 < x0 < L:
                    xs.append(x0)
    return sorted(set(xs))


def section_stress(record: ElementRecord, N: float, My: float, Mz: float) -> float:
    s = record.section
    if record.element.element_type.is_axial_only:
        return abs(N) / s.A
    return abs(N) / s.A + abs(My) * s.cz / s.Iy + abs(Mz) * s.cy / s.Iz


def element_forces(record: ElementRecord, d: np.ndarray,
                   member_load: Optional[MemberLoad] = None) -> ElementForces:
    """Member forces and peak stress from a displacement vector."""
    f = element_end_forces(record, d, member_load)
    actions = np.array([station_actions(record, f, member_load, x)
                        for x in _stations(record, f, member_load)])
    if record.element.element_type.is_axial_only:
        actions[:, 1:] = 0.0
    stresses = [section_stress(record, a[0], a[4], a[5]) for a in actions]
    return _summary(record, f, actions, max(stresses))


def envelope_forces(record: ElementRecord, end_force_magnitudes: np.ndarray) -> ElementForces:
    """
    Summary from combined peak end-force magnitudes (response spectrum).

    Combined peaks have no sign, so actions are evaluated at the ends only.
    """
    f = np.abs(np.asarray(end_force_magnitudes, dtype=float))
    actions = np.array([
        [f[0], f[1], f[2], f[3], f[4], f[5]],
        [f[6], f[7], f[8], f[9], f[10], f[11]],
    ])
    stress = max(section_stress(record, a[0], a[4], a[5]) for a in actions)
    return _summary(record, f, actions, stress, axial=float(f[0]))


def _summary(record: ElementRecord, f, actions, stress, axial=None) -> ElementForces:
    shear = max(float(np.hypot(f[1], f[2])), float(np.hypot(f[7], f[8])))
    f = np.array(f, dtype=float)
    f.setflags(write=False)
    return ElementForces(
        element_id=record.id,
        element_type=record.element.element_type,
        material=record.material.id,
        length=record.L,
        end_forces=f,
        axial=float(-f[0]) if axial is None else axial,
        max_moment_y=float(np.max(np.abs(actions[:, 4]))),
        max_moment_z=float(np.max(np.abs(actions[:, 5]))),
        max_shear=0.0 if record.element.element_type.is_axial_only else shear,
        torsion=float(abs(f[3])),
        max_stress=float(stress),
        stress_ratio=float(stress / record.material.strength),
    )


def recover_element_forces(system: AssembledSystem, d: np.ndarray,
                           loads: Optional[FactoredLoads] = None) -> List[ElementForces]:
    """Member forces of every element, in model order."""
    out = []
    for record in system.records:
        member_load = loads.member_loads.get(record.id) if loads is not None else None
        out.append(element_forces(record, d, member_load))
    return out


# =============================================================================
# Nodes
# =============================================================================

def node_displacements(dof: DOFManager, d: np.ndarray) -> Dict[NodeId, np.ndarray]:
    return {nid: np.array(dof.node_vector(d, nid)) for nid in dof.node_ids}


def node_reactions(dof: DOFManager, R: np.ndarray, fixed: Sequence[int]) -> Dict[NodeId, np.ndarray]:
    """6-component reaction of every node with at least one restrained DOF."""
    fixed_set = set(int(i) for i in fixed)
    reactions = {}
    for nid in dof.node_ids:
        dofs = dof.node_dofs(nid)
        if not fixed_set.intersection(dofs):
            continue
        r = np.zeros(6)
        for k, g in enumerate(dofs):
            if g in fixed_set:
                r[k] = R[g]
        reactions[nid] = r
    return reactions


# =============================================================================
# Storey drift
# =============================================================================

@dataclass(frozen=True)
class StoryDrift:
    level: float
    height: float
    drift: float
    ratio: float
    direction: int

    def to_dict(self) -> dict:
        return {
            'level': self.level,
            'storyHeight': self.height,
            'drift': self.drift,
            'driftRatio': self.ratio,
            'direction': 'XY'[self.direction],
        }


def story_drifts(model, dof: DOFManager, d: np.ndarray, tol: float = 1e-6,
                 combine: Optional[Callable[[np.ndarray], np.ndarray]] = None) -> List[StoryDrift]:
    """
    Governing inter-storey drift per storey, over X and Y.

    Nodes stacked at the same plan position on adjacent levels are compared
    directly; a storey with no stacked pair falls back to the difference of
    the level-average displacements.

    With ``combine`` given, ``d`` holds one displacement vector per mode
    (n_modes, ndof): the drift is formed in every mode and then combined.
    """
    levels = model.story_levels(tol)
    if len(levels) < 2:
        return []

    d = np.asarray(d, dtype=float)

    def magnitude(delta) -> float:
        if combine is None:
            return abs(float(delta))
        return float(combine(np.asarray(delta, dtype=float)))

    by_level: Dict[int, Dict[tuple, NodeId]] = {k: {} for k in range(len(levels))}
    for node in model.nodes.values():
        k = min(range(len(levels)), key=lambda i: abs(levels[i] - node.z))
        by_level[k][(round(node.x, 6), round(node.y, 6))] = node.id

    drifts = []
    for k in range(1, len(levels)):
        height = levels[k] - levels[k - 1]
        upper, lower = by_level[k], by_level[k - 1]
        worst = (0.0, 0)
        for direction in (0, 1):
            pairs = [(upper[p], lower[p]) for p in upper if p in lower]
            if pairs:
                delta = max(magnitude(d[..., dof.idx(a, direction)] - d[..., dof.idx(b, direction)])
                            for a, b in pairs)
            elif upper and lower:
                mean_up = np.mean([d[..., dof.idx(n, direction)] for n in upper.values()], axis=0)
                mean_low = np.mean([d[..., dof.idx(n, direction)] for n in lower.values()], axis=0)
                delta = magnitude(mean_up - mean_low)
            else:
                delta = 0.0
            if delta > worst[0]:
                worst = (float(delta), direction)
        drifts.append(StoryDrift(
            level=levels[k], height=height, drift=worst[0],
            ratio=worst[0] / height if height > 0 else 0.0, direction=worst[1],
        ))
    return drifts


# =============================================================================
# Beam deflection
# =============================================================================

def _fixed_fixed_point_deflection(P: float, a: float, L: float, EI: float, x: float) -> float:
    b = L - a
    if x > a:
        a, b, x = b, a, L - x
    return P * b * b * x * x * (3 * a * L - 3 * a * x - b * x) / (6.0 * L ** 3 * EI)


def midspan_deflection(record: ElementRecord, d: np.ndarray,
                       member_load: Optional[MemberLoad] = None) -> float:
    """
    Midspan deflection relative to the member chord (m).

    Hermite interpolation of the end rotations gives the chord-relative
    part L/8·(θ1 - θ2); the span loads add the clamped-clamped solution
    (w·L⁴/384EI for a uniform load).
    """
    L = record.L
    E = record.material.E
    Iy, Iz = record.section.Iy, record.section.Iz
    d_local = record.matrices.T @ d[record.dof_map]

    v = L / 8.0 * (d_local[5] - d_local[11])
    w = -L / 8.0 * (d_local[4] - d_local[10])
    if member_load is not None:
        v += member_load.w[1] * L ** 4 / (384.0 * E * Iz)
        w += member_load.w[2] * L ** 4 / (384.0 * E * Iy)
        for position, p in member_load.points:
            v += _fixed_fixed_point_deflection(p[1], position * L, L, E * Iz, L / 2.0)
            w += _fixed_fixed_point_deflection(p[2], position * L, L, E * Iy, L / 2.0)
    return float(np.hypot(v, w))


def beam_deflections(system: AssembledSystem, d: np.ndarray,
                     loads: Optional[FactoredLoads] = None) -> Dict[ElementId, float]:
    """Chord-relative midspan deflection of every beam."""
    out = {}
    for record in system.records:
        if record.element.element_type is not ElementType.BEAM:
            continue
        member_load = loads.member_loads.get(record.id) if loads is not None else None
        out[record.id] = midspan_deflection(record, d, member_load)
    return out
