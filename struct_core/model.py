# struct_core/model.py
"""
MODEL DEFINITIONS: Nodes, Materials, Sections, Elements, Loads
==============================================================

PURPOSE:
--------
Plain, immutable value types that describe a building model. They carry no
solver logic; the repository owns them and the kernel reads them.

DEGREES OF FREEDOM:
-------------------
Every node has 6 DOFs in the global right-handed system (z up):

    0=ux, 1=uy, 2=uz, 3=rx, 4=ry, 5=rz

A support is a 6-entry restraint mask over those DOFs.

ELEMENT KINDS:
--------------
Element ``type`` is a closed set. Each type maps onto one stiffness
formulation (see elements.py):

    beam, column, brace, slab, wall  ->  3D frame (Euler-Bernoulli, 12x12)
    truss                            ->  axial-only bar (12x12, translations)

Slabs and walls enter as frame members with their equivalent section; no
plate/shell element is provided.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple, Union

NodeId = Union[int, str]
ElementId = Union[int, str]

DOF_NAMES = ('ux', 'uy', 'uz', 'rx', 'ry', 'rz')


class SupportType(str, Enum):
    FREE = "free"
    FIXED = "fixed"
    PINNED = "pinned"
    ROLLER = "roller"


_SUPPORT_MASKS = {
    SupportType.FREE: (False,) * 6,
    SupportType.FIXED: (True,) * 6,
    SupportType.PINNED: (True, True, True, False, False, False),
    SupportType.ROLLER: (False, False, True, False, False, False),
}


@dataclass(frozen=True)
class Support:
    """
    Restraint mask over the 6 nodal DOFs (True = restrained).

    Build from a named condition with ``Support.of('pinned')`` or pass an
    explicit mask for anything else.
    """
    mask: Tuple[bool, bool, bool, bool, bool, bool] = (False,) * 6

    def __post_init__(self):
        if len(self.mask) != 6:
            raise ValueError(f"Support mask needs 6 entries, got {len(self.mask)}")
        object.__setattr__(self, 'mask', tuple(bool(m) for m in self.mask))

    @classmethod
    def of(cls, condition: Union[str, SupportType]) -> 'Support':
        return cls(_SUPPORT_MASKS[SupportType(condition)])

    @property
    def is_free(self) -> bool:
        return not any(self.mask)

    @property
    def restrained_dofs(self) -> Tuple[int, ...]:
        return tuple(i for i, m in enumerate(self.mask) if m)


FREE = Support.of(SupportType.FREE)
FIXED = Support.of(SupportType.FIXED)
PINNED = Support.of(SupportType.PINNED)
ROLLER = Support.of(SupportType.ROLLER)


@dataclass(frozen=True)
class Node:
    """
    A joint in 3D space.

    Parameters:
    -----------
    id : int or str
        Unique identifier
    x, y, z : float
        Global coordinates (m), z is vertical
    support : Support
        Restraint mask, FREE by default
    """
    id: NodeId
    x: float
    y: float
    z: float
    support: Support = FREE

    @property
    def coords(self) -> Tuple[float, float, float]:
        return (self.x, self.y, self.z)


class MaterialClass(str, Enum):
    CONCRETE = "concrete"
    STEEL = "steel"
    REBAR = "rebar"


@dataclass(frozen=True)
class Material:
    """
    Isotropic elastic material.

    Parameters:
    -----------
    id : str
        Identifier
    material_class : MaterialClass
        concrete, steel or rebar
    strength : float
        Compressive strength f'c for concrete, yield strength fy otherwise (Pa)
    E : float
        Elastic modulus (Pa)
    nu : float
        Poisson ratio
    density : float
        Mass density (kg/m^3)
    """
    id: str
    material_class: MaterialClass
    strength: float
    E: float
    nu: float = 0.2
    density: float = 0.0

    def __post_init__(self):
        object.__setattr__(self, 'material_class', MaterialClass(self.material_class))
        if not (self.E > 0.0 and math.isfinite(self.E)):
            raise ValueError(f"Material {self.id}: elastic modulus must be positive, got {self.E}")
        if not (self.strength > 0.0 and math.isfinite(self.strength)):
            raise ValueError(f"Material {self.id}: strength must be positive, got {self.strength}")
        if not (0.0 <= self.nu < 0.5):
            raise ValueError(f"Material {self.id}: Poisson ratio must be in [0, 0.5), got {self.nu}")
        if self.density < 0.0:
            raise ValueError(f"Material {self.id}: density cannot be negative")
        if self.strength >= self.E:
            raise ValueError(f"Material {self.id}: strength {self.strength} exceeds modulus {self.E}")

    @property
    def G(self) -> float:
        """Shear modulus from E and nu."""
        return self.E / (2.0 * (1.0 + self.nu))


@dataclass(frozen=True)
class Section:
    """
    Cross-section properties in the element's local axes.

    Iy bends about local y (deflection along local z), Iz about local z
    (deflection along local y). For a rectangle, ``width`` runs along local
    y and ``height`` along local z.

    Any of A, Iy, Iz, J left as None is derived from width x height. When
    A is given together with width and height it must match their product.
    """
    id: str
    A: Optional[float] = None
    Iy: Optional[float] = None
    Iz: Optional[float] = None
    J: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None

    def __post_init__(self):
        w, h = self.width, self.height
        has_rect = w is not None and h is not None
        if has_rect and (w <= 0.0 or h <= 0.0):
            raise ValueError(f"Section {self.id}: width and height must be positive")

        if has_rect:
            area = w * h
            if self.A is None:
                object.__setattr__(self, 'A', area)
            elif not math.isclose(self.A, area, rel_tol=1e-6, abs_tol=1e-12):
                raise ValueError(
                    f"Section {self.id}: area {self.A} does not equal width x height = {area}"
                )
            if self.Iy is None:
                object.__setattr__(self, 'Iy', w * h ** 3 / 12.0)
            if self.Iz is None:
                object.__setattr__(self, 'Iz', h * w ** 3 / 12.0)
            if self.J is None:
                object.__setattr__(self, 'J', rectangular_torsion_constant(w, h))

        for name in ('A', 'Iy', 'Iz', 'J'):
            value = getattr(self, name)
            if value is None:
                raise ValueError(f"Section {self.id}: {name} missing and no width/height to derive it")
            if not (value > 0.0 and math.isfinite(value)):
                raise ValueError(f"Section {self.id}: {name} must be positive, got {value}")

    @property
    def cy(self) -> float:
        """Extreme fiber distance along local y."""
        if self.width is not None:
            return self.width / 2.0
        return math.sqrt(3.0 * self.Iz / self.A)

    @property
    def cz(self) -> float:
        """Extreme fiber distance along local z."""
        if self.height is not None:
            return self.height / 2.0
        return math.sqrt(3.0 * self.Iy / self.A)


def rectangular_torsion_constant(b: float, h: float) -> float:
    """Saint-Venant torsion constant of a solid rectangle (Roark approximation)."""
    a, c = max(b, h), min(b, h)
    return a * c ** 3 * (1.0 / 3.0 - 0.21 * (c / a) * (1.0 - c ** 4 / (12.0 * a ** 4)))


class ElementType(str, Enum):
    BEAM = "beam"
    COLUMN = "column"
    BRACE = "brace"
    TRUSS = "truss"
    SLAB = "slab"
    WALL = "wall"

    @property
    def is_axial_only(self) -> bool:
        return self is ElementType.TRUSS


@dataclass(frozen=True)
class Element:
    """
    Two-node structural member.

    Parameters:
    -----------
    id : int or str
        Unique identifier
    element_type : ElementType
        Member kind, selects the stiffness formulation
    ni, nj : node ids
        Start and end node (must differ)
    material, section : str
        Material and section identifiers
    roll : float
        Rotation of the local y/z axes about the member axis (degrees)
    """
    id: ElementId
    element_type: ElementType
    ni: NodeId
    nj: NodeId
    material: str
    section: str
    roll: float = 0.0

    def __post_init__(self):
        object.__setattr__(self, 'element_type', ElementType(self.element_type))


class LoadType(str, Enum):
    DEAD = "dead"
    LIVE = "live"
    WIND = "wind"
    SEISMIC = "seismic"
    POINT = "point"
    DISTRIBUTED = "distributed"


class Direction(str, Enum):
    FX = "FX"
    FY = "FY"
    FZ = "FZ"
    MX = "MX"
    MY = "MY"
    MZ = "MZ"

    @property
    def dof(self) -> int:
        return ('FX', 'FY', 'FZ', 'MX', 'MY', 'MZ').index(self.value)

    @property
    def is_moment(self) -> bool:
        return self.dof >= 3


@dataclass(frozen=True)
class Load:
    """
    A single load inside a load case, in global directions.

    Target rules:
    - ``node_id`` set: nodal force or moment.
    - ``element_id`` set with ``load_type`` POINT: concentrated force at
      ``position`` (fraction of length from ni).
    - ``element_id`` set otherwise: uniform load per unit length over the
      whole element.

    Magnitudes are in N, N*m or N/m.
    """
    magnitude: float
    direction: Direction
    node_id: Optional[NodeId] = None
    element_id: Optional[ElementId] = None
    load_type: LoadType = LoadType.POINT
    position: float = 0.5

    def __post_init__(self):
        object.__setattr__(self, 'direction', Direction(self.direction))
        object.__setattr__(self, 'load_type', LoadType(self.load_type))
        if self.node_id is None and self.element_id is None:
            raise ValueError("Load needs a target: node_id or element_id")
        if not math.isfinite(self.magnitude):
            raise ValueError(f"Load magnitude must be finite, got {self.magnitude}")
        if self.node_id is None:
            if self.direction.is_moment:
                raise ValueError("Element loads must be forces (FX, FY, FZ)")
            if not (0.0 <= self.position <= 1.0):
                raise ValueError(f"Load position must be within [0, 1], got {self.position}")

    @property
    def on_node(self) -> bool:
        return self.node_id is not None

    @property
    def is_distributed(self) -> bool:
        return not self.on_node and self.load_type is not LoadType.POINT


@dataclass(frozen=True)
class LoadCase:
    """Named set of loads of one type (dead, live, wind, seismic, ...)."""
    name: str
    load_type: LoadType
    loads: Tuple[Load, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'load_type', LoadType(self.load_type))
        object.__setattr__(self, 'loads', tuple(self.loads))


@dataclass(frozen=True)
class LoadCombination:
    """
    Ordered list of (case name, factor) pairs.

    Example: LoadCombination('1.2D+1.6L', (('dead', 1.2), ('live', 1.6)))
    """
    name: str
    factors: Tuple[Tuple[str, float], ...]

    def __post_init__(self):
        factors = tuple((str(case), float(f)) for case, f in self.factors)
        if not factors:
            raise ValueError(f"Load combination {self.name!r} has no entries")
        for case, f in factors:
            if not math.isfinite(f):
                raise ValueError(f"Load combination {self.name!r}: factor for {case!r} is not finite")
        object.__setattr__(self, 'factors', factors)

    @property
    def cases(self) -> Tuple[str, ...]:
        return tuple(case for case, _ in self.factors)
