# struct_core/loads.py
"""
LOAD COMBINATION ENGINE: Cases -> factored global load vectors
==============================================================

PURPOSE:
--------
Turns named load cases into one global load vector per combination
(length 6 x n_nodes) and keeps, alongside it, the member-level loads the
post-processor needs to recover end forces and span moments.

Element loads are converted to equivalent nodal loads (fixed-end actions):

    UDL w (local y):   Fy = wL/2 each end,  Mz = +wL^2/12, -wL^2/12
    UDL w (local z):   Fz = wL/2 each end,  My = -wL^2/12, +wL^2/12
    Point P at a:      Fy_i = P b^2 (3a+b)/L^3,  Mz_i = P a b^2 / L^2, ...

(My carries the opposite sign because a positive ry tilts the axis toward -z.)

Truss members have no rotational stiffness, so their loads are shared by
statics only.

Combining is plain vector addition of factor x case vector, so the result
does not depend on the order of the (case, factor) pairs.

USAGE:
------
    engine = LoadCombinationEngine(model)
    factored = engine.combine('1.2D+1.6L')
    factored.F                     # global load vector
    factored.member_loads['B12']   # MemberLoad in local axes
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from .config import CONFIG
from .elements import STIFFNESS_CACHE, StiffnessCache
from .errors import UnknownLoadCaseError
from .kernel.dof import DOFManager
from .model import Direction, ElementId, Load, LoadCombination, LoadType, NodeId

_logger = logging.getLogger(__name__)


# =============================================================================
# Fixed-end actions (local axes)
# =============================================================================

def frame3d_equiv_nodal_load_udl(L: float, w_local: Sequence[float]) -> np.ndarray:
    """
    Equivalent nodal loads of a uniform load over the full length.

    Args:
        L: Element length (m)
        w_local: (wx, wy, wz) load per unit length in local axes (N/m)

    Returns:
        (12,) vector [Fx Fy Fz Mx My Mz]_i + [...]_j in local axes
    """
    wx, wy, wz = w_local
    f = np.zeros(12, dtype=float)
    f[0] = f[6] = wx * L / 2.0
    f[1] = f[7] = wy * L / 2.0
    f[2] = f[8] = wz * L / 2.0
    f[5] = wy * L * L / 12.0
    f[11] = -wy * L * L / 12.0
    f[4] = -wz * L * L / 12.0
    f[10] = wz * L * L / 12.0
    return f


def frame3d_equiv_nodal_load_point(L: float, position: float, p_local: Sequence[float]) -> np.ndarray:
    """Equivalent nodal loads of a concentrated force at ``position`` x L from node i."""
    px, py, pz = p_local
    a = position * L
    b = L - a
    L2, L3 = L * L, L ** 3
    f = np.zeros(12, dtype=float)
    f[0] = px * b / L
    f[6] = px * a / L
    f[1] = py * b * b * (3 * a + b) / L3
    f[7] = py * a * a * (a + 3 * b) / L3
    f[5] = py * a * b * b / L2
    f[11] = -py * a * a * b / L2
    f[2] = pz * b * b * (3 * a + b) / L3
    f[8] = pz * a * a * (a + 3 * b) / L3
    f[4] = -pz * a * b * b / L2
    f[10] = pz * a * a * b / L2
    return f


def truss3d_equiv_nodal_load(L: float, position: Optional[float], load_local: Sequence[float]) -> np.ndarray:
    """Statically shared end forces for a bar (no end moments)."""
    f = np.zeros(12, dtype=float)
    load = np.asarray(load_local, dtype=float)
    if position is None:
        f[0:3] = f[6:9] = load * L / 2.0
    else:
        f[0:3] = load * (1.0 - position)
        f[6:9] = load * position
    return f


# =============================================================================
# Member loads
# =============================================================================

@dataclass(frozen=True)
class MemberLoad:
    """
    Everything applied along one member, in its local axes.

    f_equiv : (12,) equivalent nodal loads
    w : (3,) uniform intensity (N/m)
    points : ((position, (px, py, pz)), ...) concentrated forces
    """
    f_equiv: np.ndarray
    w: np.ndarray
    points: Tuple[Tuple[float, np.ndarray], ...] = ()

    @classmethod
    def empty(cls) -> 'MemberLoad':
        return cls(np.zeros(12), np.zeros(3), ())

    def scaled(self, factor: float) -> 'MemberLoad':
        return MemberLoad(
            self.f_equiv * factor,
            self.w * factor,
            tuple((a, p * factor) for a, p in self.points),
        )

    def __add__(self, other: 'MemberLoad') -> 'MemberLoad':
        return MemberLoad(self.f_equiv + other.f_equiv, self.w + other.w, self.points + other.points)


@dataclass(frozen=True)
class FactoredLoads:
    """One combination's global load vector plus its member loads."""
    name: str
    F: np.ndarray
    member_loads: Mapping[ElementId, MemberLoad] = field(default_factory=dict)

    def member_load(self, element_id: ElementId) -> MemberLoad:
        return self.member_loads.get(element_id) or MemberLoad.empty()


# =============================================================================
# Engine
# =============================================================================

class LoadCombinationEngine:
    """
    Builds per-case load vectors once and combines them on demand.

    Case vectors are cached and read-only, so one engine can be shared by
    the workers solving different combinations.
    """

    def __init__(self, model, dof: Optional[DOFManager] = None,
                 cache: StiffnessCache = STIFFNESS_CACHE):
        self.model = model
        self.dof = dof or DOFManager.for_model(model)
        self.cache = cache
        self._case_vectors: Dict[str, np.ndarray] = {}
        self._case_members: Dict[str, Dict[ElementId, MemberLoad]] = {}
        self._elements = {e.id: e for e in model.elements}

    @property
    def ndof(self) -> int:
        return self.dof.ndof

    # ------------------------------------------------------------------
    # Cases
    # ------------------------------------------------------------------

    def _require_case(self, case: str, combination: str = "") -> None:
        if case not in self.model.load_cases:
            where = f" in combination {combination!r}" if combination else ""
            raise UnknownLoadCaseError(
                f"Unknown load case {case!r}{where}; defined cases: {sorted(self.model.load_cases)}",
                case=case, combination=combination,
            )

    def case_vector(self, case: str) -> np.ndarray:
        """Unfactored global load vector of one case."""
        self._require_case(case)
        if case not in self._case_vectors:
            self._build_case(case)
        return self._case_vectors[case]

    def case_member_loads(self, case: str) -> Mapping[ElementId, MemberLoad]:
        self._require_case(case)
        if case not in self._case_members:
            self._build_case(case)
        return self._case_members[case]

    def _build_case(self, case: str) -> None:
        F = np.zeros(self.ndof, dtype=float)
        members: Dict[ElementId, MemberLoad] = {}

        for load in self.model.load_cases[case].loads:
            if load.on_node:
                F[self.dof.idx(load.node_id, load.direction.dof)] += load.magnitude
                continue

            element = self._elements[load.element_id]
            member = self.member_load(load)
            dof_map = self.dof.element_dof_map([element.ni, element.nj])
            T = self._matrices(element).T
            F[dof_map] += T.T @ member.f_equiv
            previous = members.get(element.id)
            members[element.id] = member if previous is None else previous + member

        F.setflags(write=False)
        self._case_vectors[case] = F
        self._case_members[case] = members
        _logger.debug("Load case %r: %d loads, |F| = %.4g", case,
                      len(self.model.load_cases[case].loads), float(np.linalg.norm(F)))

    def _matrices(self, element):
        nodes = self.model.nodes
        return self.cache.get(
            element,
            self.model.materials[element.material],
            self.model.sections[element.section],
            nodes[element.ni].coords,
            nodes[element.nj].coords,
        )

    def member_load(self, load: Load) -> MemberLoad:
        """Convert one element load to local axes and fixed-end actions."""
        element = self._elements[load.element_id]
        matrices = self._matrices(element)
        global_vector = np.zeros(3)
        global_vector[load.direction.dof] = load.magnitude
        local = matrices.R @ global_vector

        if element.element_type.is_axial_only:
            position = None if load.is_distributed else load.position
            f = truss3d_equiv_nodal_load(matrices.L, position, local)
        elif load.is_distributed:
            f = frame3d_equiv_nodal_load_udl(matrices.L, local)
        else:
            f = frame3d_equiv_nodal_load_point(matrices.L, load.position, local)

        if load.is_distributed:
            return MemberLoad(f, local, ())
        return MemberLoad(f, np.zeros(3), ((load.position, local),))

    # ------------------------------------------------------------------
    # Combinations
    # ------------------------------------------------------------------

    def resolve(self, combination: Union[str, LoadCombination]) -> LoadCombination:
        if isinstance(combination, LoadCombination):
            return combination
        try:
            return self.model.combination(combination)
        except KeyError:
            raise UnknownLoadCaseError(
                f"Unknown load combination {combination!r}", combination=combination
            )

    def check(self, combination: Union[str, LoadCombination]) -> LoadCombination:
        """Raise UnknownLoadCaseError unless every referenced case exists."""
        combo = self.resolve(combination)
        for case in combo.cases:
            self._require_case(case, combo.name)
        return combo

    def combine(self, combination: Union[str, LoadCombination]) -> FactoredLoads:
        """
        Factored load vector of one combination.

        F = sum(factor_k * F_case_k), accumulated in the listed order.
        """
        combo = self.check(combination)
        F = np.zeros(self.ndof, dtype=float)
        members: Dict[ElementId, MemberLoad] = {}
        for case, factor in combo.factors:
            F += factor * self.case_vector(case)
            for eid, member in self.case_member_loads(case).items():
                scaled = member.scaled(factor)
                members[eid] = scaled if eid not in members else members[eid] + scaled
        F.setflags(write=False)
        return FactoredLoads(name=combo.name, F=F, member_loads=members)

    def combine_all(self, names: Optional[Iterable[str]] = None) -> List[FactoredLoads]:
        """Every requested combination, in the model's (or the given) order."""
        if names is None:
            names = [c.name for c in self.model.combinations]
        return [self.combine(name) for name in names]


# =============================================================================
# Gravity weights (mass source, seismic weight)
# =============================================================================

def gravity_weights(model, factors: Optional[Mapping[str, float]] = None,
                    dof: Optional[DOFManager] = None,
                    cache: StiffnessCache = STIFFNESS_CACHE) -> Dict[NodeId, float]:
    """
    Downward weight (N, positive) lumped to nodes from gravity load cases.

    Each case of type t contributes factors[t] x its -FZ loads. Nodal loads
    go straight to their node, element loads are shared between the ends
    by statics.
    """
    factors = CONFIG.mass_source_factors if factors is None else factors
    weights: Dict[NodeId, float] = {nid: 0.0 for nid in model.nodes}
    elements = {e.id: e for e in model.elements}

    for case in model.load_cases.values():
        factor = factors.get(case.load_type.value, 0.0)
        if factor == 0.0:
            continue
        for load in case.loads:
            if load.direction is not Direction.FZ or load.magnitude >= 0.0:
                continue
            w = -load.magnitude * factor
            if load.on_node:
                weights[load.node_id] += w
                continue
            element = elements[load.element_id]
            ni, nj = model.nodes[element.ni], model.nodes[element.nj]
            if load.is_distributed:
                L = float(np.linalg.norm(np.subtract(nj.coords, ni.coords)))
                weights[element.ni] += w * L / 2.0
                weights[element.nj] += w * L / 2.0
            else:
                weights[element.ni] += w * (1.0 - load.position)
                weights[element.nj] += w * load.position
    return weights


# =============================================================================
# Standard combinations (SNI 1727:2020 basic strength set)
# =============================================================================

SYMBOLS = {
    'D': LoadType.DEAD,
    'L': LoadType.LIVE,
    'W': LoadType.WIND,
    'E': LoadType.SEISMIC,
}

STANDARD_COMBINATIONS = (
    '1.4D',
    '1.2D+1.6L',
    '1.2D+1.0L+1.0E',
    '1.2D+1.0L+1.0W',
    '0.9D+1.0E',
    '0.9D+1.0W',
)

_TERM = re.compile(r'\s*([+-]?)\s*(\d+(?:\.\d*)?|\.\d+)?\s*([A-Za-z]+)\s*')


def parse_combination(expression: str, case_map: Mapping[str, str],
                      name: Optional[str] = None) -> LoadCombination:
    """
    Parse '1.2D+1.6L' style text into a LoadCombination.

    Args:
        expression: Sum of <factor><symbol> terms; factor defaults to 1
        case_map: Symbol -> load case name, e.g. {'D': 'dead', 'L': 'live'}
        name: Combination name (defaults to the expression)

    Raises:
        ValueError: malformed expression
        UnknownLoadCaseError: symbol missing from case_map
    """
    text = expression.replace(' ', '')
    pos = 0
    factors = []
    while pos < len(text):
        match = _TERM.match(text, pos)
        if match is None or match.end() == pos:
            raise ValueError(f"Cannot parse load combination {expression!r} at position {pos}")
        sign, number, symbol = match.groups()
        if pos > 0 and not sign:
            raise ValueError(f"Missing operator in {expression!r} before {symbol!r}")
        if symbol not in case_map:
            raise UnknownLoadCaseError(
                f"Symbol {symbol!r} in {expression!r} does not map to a load case",
                case=symbol, combination=name or expression,
            )
        factor = float(number) if number else 1.0
        factors.append((case_map[symbol], -factor if sign == '-' else factor))
        pos = match.end()
    return LoadCombination(name or expression, tuple(factors))


def symbol_map(load_cases: Mapping[str, object]) -> Dict[str, str]:
    """First case of each load type, keyed by its code symbol (D, L, W, E)."""
    mapping: Dict[str, str] = {}
    for symbol, load_type in SYMBOLS.items():
        for name, case in load_cases.items():
            if case.load_type is load_type:
                mapping[symbol] = name
                break
    return mapping


def standard_combinations(load_cases: Mapping[str, object]) -> List[LoadCombination]:
    """The standard combinations whose load types all exist in ``load_cases``."""
    mapping = symbol_map(load_cases)
    combos = []
    for expression in STANDARD_COMBINATIONS:
        symbols = re.findall(r'[A-Za-z]+', expression)
        if all(s in mapping for s in symbols):
            combos.append(parse_combination(expression, mapping))
    return combos


def missing_standard_combinations(model) -> List[str]:
    """Names of applicable standard combinations the model does not define."""
    defined = {_signature(c) for c in model.combinations}
    return [c.name for c in standard_combinations(model.load_cases) if _signature(c) not in defined]


def _signature(combination: LoadCombination) -> frozenset:
    totals: Dict[str, float] = {}
    for case, factor in combination.factors:
        totals[case] = totals.get(case, 0.0) + factor
    return frozenset((case, round(f, 6)) for case, f in totals.items() if f != 0.0)
