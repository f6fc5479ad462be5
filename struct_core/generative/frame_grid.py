# struct_core/generative/frame_grid.py
"""
FRAME GRID GENERATOR: Parametric rectangular moment frames
==========================================================

PURPOSE:
--------
Generate a regular multi-storey RC moment frame from a handful of design
parameters, ready for analysis:

1. Nodes on an (nx+1) x (ny+1) plan grid at every floor level
2. Columns between levels, beams along X and Y at every floor
3. Fixed supports at the base level
4. Floor area loads (dead, live) converted to uniform beam loads
5. Load combinations from code expressions ('1.2D+1.6L', ...)

AREA LOAD DISTRIBUTION:
-----------------------
Each panel of a x b (a <= b) sheds load to its four edge beams by the
45-degree yield-line pattern:

    short edges (length a): triangle,  area a²/4
    long edges  (length b): trapezoid, area a·b/2 - a²/4

Each beam takes its tributary area x q as a uniform load over its span.
Square panels split the load equally between the four edges.

NODE NUMBERING:
---------------
    node id = level·(nx+1)·(ny+1) + iy·(nx+1) + ix

Element ids: 'C{level}-{ix}-{iy}' (column below that node),
'BX{level}-{ix}-{iy}' (beam from (ix, iy) to (ix+1, iy)),
'BY{level}-{ix}-{iy}' (beam from (ix, iy) to (ix, iy+1)).
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from ..catalog import material, section_by_name
from ..config import CONFIG
from ..model import FIXED, FREE, Element, ElementType, Load, LoadCase, LoadType, Node
from ..loads import parse_combination, symbol_map
from ..repository import ModelRepository


@dataclass
class FrameGridParams:
    """
    Parameters of a rectangular moment frame.

    Geometry:
    ---------
    nx, ny : int
        Number of bays along X and Y
    stories : int
        Number of storeys above the base
    bay_x, bay_y : float
        Bay widths (m)
    story_height : float
        Typical storey height (m)
    first_story_height : float, optional
        Height of the lowest storey (defaults to story_height)

    Members:
    --------
    material : str
        Catalog grade for beams and columns
    beam_section, column_section : str
        Catalog section names ('R300x500', 'C500', ...)

    Loading:
    --------
    dead_load, live_load : float
        Floor area loads (Pa = N/m²), applied at every floor level
    self_weight : bool
        Add member self-weight (ρ·A·g) to the dead case. Element density
        already supplies mass for dynamic runs, so leave this off there.
    combinations : tuple of str
        Code expressions over D (dead) and L (live)
    """
    # Geometry
    nx: int = 6
    ny: int = 4
    stories: int = 5
    bay_x: float = 6.0
    bay_y: float = 6.0
    story_height: float = 3.5
    first_story_height: Optional[float] = None

    # Members
    material: str = 'K-25'
    beam_section: str = 'R300x500'
    column_section: str = 'C500'

    # Loading
    dead_load: float = 5.0e3
    live_load: float = 2.5e3
    self_weight: bool = False
    combinations: Tuple[str, ...] = ('1.2D+1.6L',)

    def __post_init__(self):
        if self.nx < 1 or self.ny < 1 or self.stories < 1:
            raise ValueError("Frame grid needs at least one bay in each direction and one storey")
        for name in ('bay_x', 'bay_y', 'story_height'):
            if getattr(self, name) <= 0.0:
                raise ValueError(f"{name} must be positive")


def node_id(ix: int, iy: int, level: int, params: FrameGridParams) -> int:
    """Grid indices -> node id."""
    return level * (params.nx + 1) * (params.ny + 1) + iy * (params.nx + 1) + ix


def level_elevations(params: FrameGridParams) -> List[float]:
    """Elevation of every level, base (0.0) first."""
    first = params.first_story_height or params.story_height
    levels = [0.0]
    for k in range(1, params.stories + 1):
        levels.append(levels[-1] + (first if k == 1 else params.story_height))
    return levels


def panel_tributary_areas(a: float, b: float) -> Tuple[float, float]:
    """
    Tributary area of one X-edge and one Y-edge of an a x b panel.

    ``a`` is the panel length along X, ``b`` along Y. Returns
    (area per X-direction edge beam, area per Y-direction edge beam).
    """
    short, long_ = min(a, b), max(a, b)
    triangle = short * short / 4.0
    trapezoid = short * long_ / 2.0 - triangle
    if a <= b:
        # X-edges are the short sides
        return triangle, trapezoid
    return trapezoid, triangle


def beam_line_loads(params: FrameGridParams, q: float) -> Dict[str, float]:
    """
    Uniform load (N/m, positive down) on every beam of one floor from area load ``q``.

    Keys are the beam ids without the level prefix: 'BX-{ix}-{iy}', 'BY-{ix}-{iy}'.
    """
    ax, ay = panel_tributary_areas(params.bay_x, params.bay_y)
    w: Dict[str, float] = {}
    for iy in range(params.ny):
        for ix in range(params.nx):
            # X-direction edges at iy and iy+1, Y-direction edges at ix and ix+1
            for jy in (iy, iy + 1):
                key = f"BX-{ix}-{jy}"
                w[key] = w.get(key, 0.0) + q * ax / params.bay_x
            for jx in (ix, ix + 1):
                key = f"BY-{jx}-{iy}"
                w[key] = w.get(key, 0.0) + q * ay / params.bay_y
    return w


def generate_frame_grid(params: Optional[FrameGridParams] = None) -> ModelRepository:
    """
    Build a repository holding a complete rectangular moment frame.

    Example:
    --------
    >>> repo = generate_frame_grid(FrameGridParams(nx=2, ny=2, stories=1))
    >>> repo.node_count, repo.element_count
    (18, 21)
    """
    params = params or FrameGridParams()
    repo = ModelRepository()

    mat = material(params.material)
    beam = section_by_name(params.beam_section)
    column = section_by_name(params.column_section)
    repo.add_material(mat)
    repo.add_section(beam)
    if column.id != beam.id:
        repo.add_section(column)

    # Nodes
    levels = level_elevations(params)
    for level, z in enumerate(levels):
        for iy in range(params.ny + 1):
            for ix in range(params.nx + 1):
                repo.add_node(Node(
                    id=node_id(ix, iy, level, params),
                    x=ix * params.bay_x,
                    y=iy * params.bay_y,
                    z=z,
                    support=FIXED if level == 0 else FREE,
                ))

    # Members
    columns, beams = [], []
    for level in range(1, params.stories + 1):
        for iy in range(params.ny + 1):
            for ix in range(params.nx + 1):
                columns.append(repo.add_element(Element(
                    f"C{level}-{ix}-{iy}", ElementType.COLUMN,
                    node_id(ix, iy, level - 1, params), node_id(ix, iy, level, params),
                    mat.id, column.id,
                )))
        for iy in range(params.ny + 1):
            for ix in range(params.nx):
                beams.append(repo.add_element(Element(
                    f"BX{level}-{ix}-{iy}", ElementType.BEAM,
                    node_id(ix, iy, level, params), node_id(ix + 1, iy, level, params),
                    mat.id, beam.id,
                )))
        for iy in range(params.ny):
            for ix in range(params.nx + 1):
                beams.append(repo.add_element(Element(
                    f"BY{level}-{ix}-{iy}", ElementType.BEAM,
                    node_id(ix, iy, level, params), node_id(ix, iy + 1, level, params),
                    mat.id, beam.id,
                )))

    # Floor loads
    repo.add_load_case('dead', LoadType.DEAD)
    repo.add_load_case('live', LoadType.LIVE)
    for case, q in (('dead', params.dead_load), ('live', params.live_load)):
        if q == 0.0:
            continue
        line_loads = beam_line_loads(params, q)
        for element in beams:
            prefix, ix, iy = element.id.split('-')
            w = line_loads[f"{prefix[:2]}-{ix}-{iy}"]
            repo.add_load(case, Load(-w, 'FZ', element_id=element.id, load_type=LoadType.DISTRIBUTED))

    if params.self_weight:
        for element in columns + beams:
            section = column if element.element_type is ElementType.COLUMN else beam
            w = mat.density * section.A * CONFIG.gravity
            repo.add_load('dead', Load(-w, 'FZ', element_id=element.id, load_type=LoadType.DISTRIBUTED))

    # Combinations
    mapping = symbol_map({name: LoadCase(name, t) for name, t in (('dead', LoadType.DEAD), ('live', LoadType.LIVE))})
    for expression in params.combinations:
        repo.add_combination(parse_combination(expression, mapping))

    return repo

