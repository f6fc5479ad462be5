# struct_core/kernel/assemble.py
"""
ASSEMBLY: Global K, M and Kg from element contributions
=======================================================

PURPOSE:
--------
Scatter-add of element matrices into global matrices. Assembly does not
care about element TYPE: it needs each element's DOF map and its matrix in
global coordinates, nothing else.

    K[dof_map[a], dof_map[b]] += ke[a, b]

Dense arrays are used for small models; above ``CONFIG.sparse_threshold``
DOFs (or on request) the same triplets are collected into a CSR matrix.

The assembled system also records which DOFs are restrained (from node
supports) and which are inactive (no stiffness at all, e.g. the rotations
of a node that only trusses connect to). Both are removed by the
penalty-free reduction in solve.py.

USAGE:
------
    system = assemble_system(model, mass_type='lumped')
    system.K, system.fixed, system.M
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import scipy.sparse as sp

from ..config import CONFIG
from ..elements import STIFFNESS_CACHE, ElementMatrices, StiffnessCache, formulation_for, lumped_mass
from ..model import Element, ElementId, Material, Section
from .dof import DOFManager

_logger = logging.getLogger(__name__)

MatrixLike = Union[np.ndarray, sp.spmatrix]


@dataclass(frozen=True)
class ElementRecord:
    """An element with its resolved material, section, matrices and DOF map."""
    element: Element
    material: Material
    section: Section
    matrices: ElementMatrices
    dof_map: np.ndarray

    @property
    def id(self) -> ElementId:
        return self.element.id

    @property
    def L(self) -> float:
        return self.matrices.L

    @property
    def formulation(self):
        return formulation_for(self.element.element_type)


def prepare_elements(model, dof: DOFManager,
                     cache: StiffnessCache = STIFFNESS_CACHE) -> List[ElementRecord]:
    """Resolve references and fetch (cached) element matrices for every element."""
    records = []
    for element in model.elements:
        material = model.materials[element.material]
        section = model.sections[element.section]
        ni, nj = model.nodes[element.ni], model.nodes[element.nj]
        matrices = cache.get(element, material, section, ni.coords, nj.coords)
        dof_map = np.asarray(dof.element_dof_map([element.ni, element.nj]), dtype=int)
        records.append(ElementRecord(element, material, section, matrices, dof_map))
    return records


# =============================================================================
# Scatter-add
# =============================================================================

def assemble_global_K(
    ndof: int,
    contributions: Sequence[Tuple[Sequence[int], np.ndarray]],
    sparse: bool = False,
) -> MatrixLike:
    """
    Assemble a global matrix from (dof_map, ke) pairs.

    Parameters:
    -----------
    ndof : int
        Size of the global matrix (6 x n_nodes)
    contributions : list of (dof_map, ke)
        ke is the element matrix in global coordinates, shape
        (len(dof_map), len(dof_map))
    sparse : bool
        Return a scipy CSR matrix instead of a dense array

    Returns:
    --------
    Global matrix, symmetric whenever every ke is.
    """
    if not sparse:
        K = np.zeros((ndof, ndof), dtype=float)
        for dof_map, ke in contributions:
            dof_map = np.asarray(dof_map, dtype=int)
            assert ke.shape == (len(dof_map), len(dof_map)), \
                f"Element matrix shape {ke.shape} doesn't match dof_map length {len(dof_map)}"
            K[np.ix_(dof_map, dof_map)] += ke
        return K

    rows, cols, vals = [], [], []
    for dof_map, ke in contributions:
        dof_map = np.asarray(dof_map, dtype=int)
        n = len(dof_map)
        rows.append(np.repeat(dof_map, n))
        cols.append(np.tile(dof_map, n))
        vals.append(np.asarray(ke, dtype=float).ravel())
    if not rows:
        return sp.csr_matrix((ndof, ndof), dtype=float)
    # duplicate (row, col) triplets are summed on conversion
    return sp.coo_matrix(
        (np.concatenate(vals), (np.concatenate(rows), np.concatenate(cols))),
        shape=(ndof, ndof),
    ).tocsr()


def assemble_stiffness(records: Sequence[ElementRecord], ndof: int, sparse: bool = False) -> MatrixLike:
    return assemble_global_K(ndof, [(r.dof_map, r.matrices.k_global) for r in records], sparse)


def assemble_geometric_stiffness(
    records: Sequence[ElementRecord],
    axial_forces: Mapping[ElementId, float],
    ndof: int,
    sparse: bool = False,
) -> MatrixLike:
    """
    Global geometric stiffness Kg for the given axial forces (tension +).

    Elements missing from ``axial_forces`` contribute nothing.
    """
    contributions = []
    for r in records:
        N = axial_forces.get(r.id, 0.0)
        if N == 0.0:
            continue
        kg_local = r.formulation.geometric_stiffness(N, r.section, r.L)
        T = r.matrices.T
        contributions.append((r.dof_map, T.T @ kg_local @ T))
    return assemble_global_K(ndof, contributions, sparse)


def assemble_mass(
    records: Sequence[ElementRecord],
    ndof: int,
    mass_type: str = 'lumped',
    nodal_masses: Optional[Mapping] = None,
    dof: Optional[DOFManager] = None,
    sparse: bool = False,
) -> MatrixLike:
    """
    Global mass matrix.

    Args:
        records: Prepared elements (density x A x L gives member mass)
        ndof: Global size
        mass_type: 'lumped' (diagonal, translations only) or 'consistent'
        nodal_masses: Extra translational mass per node id (kg), e.g. from
            gravity load cases
        dof: Needed when ``nodal_masses`` is given
    """
    contributions = []
    for r in records:
        rho = r.material.density
        if rho <= 0.0:
            continue
        if mass_type == 'consistent':
            me_local = r.formulation.consistent_mass(r.material, r.section, r.L)
        else:
            me_local = lumped_mass(rho, r.section.A, r.L)
        T = r.matrices.T
        contributions.append((r.dof_map, T.T @ me_local @ T))

    M = assemble_global_K(ndof, contributions, sparse)

    if nodal_masses:
        extra = np.zeros(ndof, dtype=float)
        for node_id, mass in nodal_masses.items():
            if mass <= 0.0:
                continue
            for d in range(3):
                extra[dof.idx(node_id, d)] += mass
        M = M + (sp.diags(extra, format='csr') if sparse else np.diag(extra))
    return M


# =============================================================================
# Assembled system
# =============================================================================

@dataclass
class AssembledSystem:
    """
    Global matrices of one model plus its DOF bookkeeping.

    ``K`` is built once per run and shared read-only by every combination.
    ``M`` is only assembled for dynamic analyses.
    """
    dof: DOFManager
    records: List[ElementRecord]
    K: MatrixLike
    fixed: np.ndarray
    sparse: bool = False
    M: Optional[MatrixLike] = None
    _records_by_id: Dict[ElementId, ElementRecord] = field(default=None, repr=False)

    def __post_init__(self):
        self._records_by_id = {r.id: r for r in self.records}

    @property
    def ndof(self) -> int:
        return self.dof.ndof

    def record(self, element_id: ElementId) -> ElementRecord:
        return self._records_by_id[element_id]

    def geometric_stiffness(self, axial_forces: Mapping[ElementId, float]) -> MatrixLike:
        return assemble_geometric_stiffness(self.records, axial_forces, self.ndof, self.sparse)


def assemble_system(
    model,
    mass_type: Optional[str] = None,
    sparse: Optional[bool] = None,
    nodal_masses: Optional[Mapping] = None,
    cache: StiffnessCache = STIFFNESS_CACHE,
) -> AssembledSystem:
    """
    Build K (and M when ``mass_type`` is given) for a validated model.

    Args:
        model: StructuralModel snapshot
        mass_type: None (no mass), 'lumped' or 'consistent'
        sparse: Force CSR storage; default decides by model size
        nodal_masses: Extra translational mass per node id (kg)
    """
    dof = DOFManager.for_model(model)
    if sparse is None:
        sparse = dof.ndof > CONFIG.sparse_threshold

    records = prepare_elements(model, dof, cache)
    K = assemble_stiffness(records, dof.ndof, sparse)
    fixed = np.asarray(dof.restrained_dofs(model.nodes.values()), dtype=int)

    M = None
    if mass_type is not None:
        M = assemble_mass(records, dof.ndof, mass_type, nodal_masses, dof, sparse)

    _logger.info(
        "Assembled %d elements: ndof=%d, restrained=%d, %s storage",
        len(records), dof.ndof, len(fixed), 'sparse' if sparse else 'dense',
    )
    return AssembledSystem(dof=dof, records=records, K=K, fixed=fixed, sparse=sparse, M=M)


def active_dofs(K: MatrixLike, tol: float = 1e-14) -> np.ndarray:
    """Boolean mask of DOFs carrying any stiffness (non-zero diagonal)."""
    diag = np.abs(np.asarray(K.diagonal(), dtype=float))
    if diag.size == 0:
        return np.zeros(0, dtype=bool)
    scale = diag.max()
    if scale <= 0.0:
        return np.zeros(diag.shape, dtype=bool)
    return diag > tol * scale


def partition_dofs(K: MatrixLike, fixed_dofs: Sequence[int]) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Split DOFs into (free, fixed, inactive) index arrays.

    Restrained DOFs are fixed. Unrestrained DOFs without stiffness are
    inactive: dropped from the system and held at zero displacement.
    """
    ndof = K.shape[0]
    fixed = np.array(sorted(set(int(i) for i in fixed_dofs)), dtype=int)
    is_fixed = np.zeros(ndof, dtype=bool)
    is_fixed[fixed] = True
    active = active_dofs(K)
    free = np.flatnonzero(~is_fixed & active)
    inactive = np.flatnonzero(~is_fixed & ~active)
    return free, fixed, inactive


def reduce_matrix(A: MatrixLike, rows: np.ndarray, cols: Optional[np.ndarray] = None) -> MatrixLike:
    """A[rows][:, cols] for dense or sparse storage."""
    cols = rows if cols is None else cols
    if sp.issparse(A):
        return A.tocsr()[rows][:, cols]
    return A[np.ix_(rows, cols)]
