# struct_core/repository.py
"""
MODEL REPOSITORY: Canonical owner of the structural model
=========================================================

The repository collects nodes, elements, materials, sections, load cases and
combinations while a model is being built, then hands solvers an immutable
``StructuralModel`` snapshot.

Rules:
- ``add_*`` never rejects duplicates; ``validate()`` reports them. This keeps
  building cheap and puts every integrity check in one pure function.
- ``validate()`` has no side effects. Callers must run it before any solve.
- While an analysis holds the lock, every ``add_*`` raises ModelLockedError.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterator, List, Mapping, Optional, Tuple, Union

from .config import CONFIG
from .errors import (
    DanglingReferenceError,
    DegenerateElementError,
    DuplicateIdError,
    ModelLockedError,
)
from .model import (
    Element,
    ElementId,
    Load,
    LoadCase,
    LoadCombination,
    LoadType,
    Material,
    Node,
    NodeId,
    Section,
)

_logger = logging.getLogger(__name__)

COINCIDENT_TOLERANCE = 1e-9  # m


@dataclass(frozen=True)
class StructuralModel:
    """Read-only view of a validated model. Node order defines DOF numbering."""
    nodes: Mapping[NodeId, Node]
    elements: Tuple[Element, ...]
    materials: Mapping[str, Material]
    sections: Mapping[str, Section]
    load_cases: Mapping[str, LoadCase]
    combinations: Tuple[LoadCombination, ...]

    @property
    def node_ids(self) -> List[NodeId]:
        return list(self.nodes.keys())

    def element(self, element_id: ElementId) -> Element:
        for e in self.elements:
            if e.id == element_id:
                return e
        raise KeyError(element_id)

    def combination(self, name: str) -> LoadCombination:
        for combo in self.combinations:
            if combo.name == name:
                return combo
        raise KeyError(name)

    @property
    def restrained_node_ids(self) -> List[NodeId]:
        return [n.id for n in self.nodes.values() if not n.support.is_free]

    def story_levels(self, tol: float = 1e-6) -> List[float]:
        """Distinct node elevations, ascending."""
        levels: List[float] = []
        for z in sorted(n.z for n in self.nodes.values()):
            if not levels or z - levels[-1] > tol:
                levels.append(z)
        return levels

    def advisories(self) -> List[str]:
        """Non-fatal geometry remarks (irregular grid spacing)."""
        notes = []
        for axis in ('x', 'y', 'z'):
            coords = sorted({round(getattr(n, axis), 6) for n in self.nodes.values()})
            spacings = [b - a for a, b in zip(coords, coords[1:])]
            if len(spacings) >= 2 and min(spacings) > 0:
                ratio = max(spacings) / min(spacings)
                if ratio > CONFIG.grid_irregularity_ratio:
                    notes.append(
                        f"Irregular grid spacing along {axis}: largest/smallest = {ratio:.2f}"
                    )
        return notes


class ModelRepository:
    """
    Mutable builder and owner of the model topology.

    Usage:
        repo = ModelRepository()
        repo.add_material(Material('K-25', 'concrete', 25e6, 23.5e9, 0.2, 2400))
        repo.add_section(Section('C40', width=0.4, height=0.4))
        repo.add_node(Node(0, 0, 0, 0, FIXED))
        repo.add_node(Node(1, 0, 0, 3.5))
        repo.add_element(Element('c1', 'column', 0, 1, 'K-25', 'C40'))
        repo.add_load('dead', Load(-10e3, 'FZ', node_id=1), load_type='dead')
        repo.add_combination(LoadCombination('1.4D', (('dead', 1.4),)))
        repo.validate()
        model = repo.snapshot()
    """

    def __init__(self):
        self._nodes: List[Node] = []
        self._elements: List[Element] = []
        self._materials: List[Material] = []
        self._sections: List[Section] = []
        self._case_types: Dict[str, LoadType] = {}
        self._case_loads: Dict[str, List[Load]] = {}
        self._combinations: List[LoadCombination] = []

        self._lock = threading.Lock()
        self._active_runs = 0

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    @property
    def locked(self) -> bool:
        with self._lock:
            return self._active_runs > 0

    def acquire(self) -> None:
        with self._lock:
            self._active_runs += 1

    def release(self) -> None:
        with self._lock:
            self._active_runs = max(0, self._active_runs - 1)

    @contextmanager
    def locked_for_analysis(self) -> Iterator['ModelRepository']:
        self.acquire()
        try:
            yield self
        finally:
            self.release()

    def _check_unlocked(self, what: str) -> None:
        if self.locked:
            raise ModelLockedError(f"Cannot {what}: an analysis is running on this model")

    # ------------------------------------------------------------------
    # Building
    # ------------------------------------------------------------------

    def add_node(self, node: Node) -> Node:
        self._check_unlocked(f"add node {node.id!r}")
        self._nodes.append(node)
        return node

    def add_element(self, element: Element) -> Element:
        self._check_unlocked(f"add element {element.id!r}")
        self._elements.append(element)
        return element

    def add_material(self, material: Material) -> Material:
        self._check_unlocked(f"add material {material.id!r}")
        self._materials.append(material)
        return material

    def add_section(self, section: Section) -> Section:
        self._check_unlocked(f"add section {section.id!r}")
        self._sections.append(section)
        return section

    def add_load_case(self, name: str, load_type: Union[str, LoadType]) -> None:
        self._check_unlocked(f"add load case {name!r}")
        self._case_types[name] = LoadType(load_type)
        self._case_loads.setdefault(name, [])

    def add_load(self, case: str, load: Load, load_type: Union[str, LoadType, None] = None) -> Load:
        """
        Add a load to ``case``, creating the case on first use.

        The case type defaults to the load's own type.
        """
        self._check_unlocked(f"add load to case {case!r}")
        if case not in self._case_types:
            self._case_types[case] = LoadType(load_type) if load_type is not None else load.load_type
            self._case_loads[case] = []
        self._case_loads[case].append(load)
        return load

    def add_combination(self, combination: LoadCombination) -> LoadCombination:
        self._check_unlocked(f"add combination {combination.name!r}")
        self._combinations.append(combination)
        return combination

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self) -> None:
        """
        Check referential integrity. Pure: never changes the repository.

        Raises:
            DuplicateIdError: two nodes/elements/materials/sections/combinations share an id
            DanglingReferenceError: element or load points at something missing
            DegenerateElementError: element start and end node coincide
        """
        _raise_on_duplicates('node', [n.id for n in self._nodes])
        _raise_on_duplicates('element', [e.id for e in self._elements])
        _raise_on_duplicates('material', [m.id for m in self._materials])
        _raise_on_duplicates('section', [s.id for s in self._sections])
        _raise_on_duplicates('combination', [c.name for c in self._combinations])

        nodes = {n.id: n for n in self._nodes}
        materials = {m.id for m in self._materials}
        sections = {s.id for s in self._sections}

        for e in self._elements:
            for end in (e.ni, e.nj):
                if end not in nodes:
                    raise DanglingReferenceError(
                        f"Element {e.id!r} references missing node {end!r}",
                        element_id=e.id, node_id=end,
                    )
            if e.material not in materials:
                raise DanglingReferenceError(
                    f"Element {e.id!r} references missing material {e.material!r}",
                    element_id=e.id,
                )
            if e.section not in sections:
                raise DanglingReferenceError(
                    f"Element {e.id!r} references missing section {e.section!r}",
                    element_id=e.id,
                )

        for e in self._elements:
            if e.ni == e.nj:
                raise DegenerateElementError(
                    f"Element {e.id!r} starts and ends at node {e.ni!r}", element_id=e.id
                )
            a, b = nodes[e.ni], nodes[e.nj]
            gap = sum((p - q) ** 2 for p, q in zip(a.coords, b.coords)) ** 0.5
            if gap <= COINCIDENT_TOLERANCE:
                raise DegenerateElementError(
                    f"Element {e.id!r} has zero length: nodes {e.ni!r} and {e.nj!r} coincide",
                    element_id=e.id,
                )

        element_ids = {e.id for e in self._elements}
        for case, loads in self._case_loads.items():
            for load in loads:
                if load.node_id is not None and load.node_id not in nodes:
                    raise DanglingReferenceError(
                        f"Load in case {case!r} targets missing node {load.node_id!r}",
                        node_id=load.node_id,
                    )
                if load.node_id is None and load.element_id not in element_ids:
                    raise DanglingReferenceError(
                        f"Load in case {case!r} targets missing element {load.element_id!r}",
                        element_id=load.element_id,
                    )

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def snapshot(self) -> StructuralModel:
        """Validate and return an immutable view for the solvers."""
        self.validate()
        model = StructuralModel(
            nodes=MappingProxyType({n.id: n for n in self._nodes}),
            elements=tuple(self._elements),
            materials=MappingProxyType({m.id: m for m in self._materials}),
            sections=MappingProxyType({s.id: s for s in self._sections}),
            load_cases=MappingProxyType({
                name: LoadCase(name, self._case_types[name], tuple(self._case_loads[name]))
                for name in self._case_types
            }),
            combinations=tuple(self._combinations),
        )
        _logger.debug(
            "Model snapshot: %d nodes, %d elements, %d cases, %d combinations",
            len(model.nodes), len(model.elements), len(model.load_cases), len(model.combinations),
        )
        return model

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    @property
    def element_count(self) -> int:
        return len(self._elements)

    def get_node(self, node_id: NodeId) -> Optional[Node]:
        for n in self._nodes:
            if n.id == node_id:
                return n
        return None


def _raise_on_duplicates(kind: str, ids: list) -> None:
    seen = set()
    for item in ids:
        if item in seen:
            where = {'node': {'node_id': item}, 'element': {'element_id': item}}.get(kind, {})
            raise DuplicateIdError(f"Duplicate {kind} id {item!r}", **where)
        seen.add(item)
