# struct_core/kernel/dof.py
"""
DOF MANAGER: Node-id to Global DOF Indexing
===========================================

PURPOSE:
--------
Maps (node_id, local_dof) to a row/column of the global matrices. Node ids
in a building model are arbitrary (ints or strings), so the manager keeps an
explicit ordering: the i-th node of the model owns rows 6i .. 6i+5.

    local dof:  0=ux, 1=uy, 2=uz, 3=rx, 4=ry, 5=rz

It also turns node supports into the restrained-DOF list used by the
penalty-free reduction in solve.py.

USAGE:
------
    dof = DOFManager.for_model(model)
    dof.idx('N12', 2)          # global row of node N12, uz
    dof.element_dof_map(['N1', 'N2'])
    dof.restrained_dofs(model.nodes.values())
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence

import numpy as np

from ..model import DOF_NAMES, Node, NodeId

DOF_PER_NODE = 6


@dataclass
class DOFManager:
    """
    Manages degree-of-freedom indexing for a fixed node ordering.

    Attributes:
    -----------
    node_ids : List
        Node identifiers in DOF order
    dof_per_node : int
        6 for the 3D frame formulation

    Examples:
    ---------
    >>> dof = DOFManager(['a', 'b'])
    >>> dof.idx('b', 0)
    6
    >>> dof.ndof
    12
    """
    node_ids: List[NodeId]
    dof_per_node: int = DOF_PER_NODE
    _index: Dict[NodeId, int] = field(init=False, repr=False)

    def __post_init__(self):
        self.node_ids = list(self.node_ids)
        self._index = {nid: i for i, nid in enumerate(self.node_ids)}

    @classmethod
    def for_model(cls, model) -> 'DOFManager':
        return cls(model.node_ids)

    @property
    def n_nodes(self) -> int:
        return len(self.node_ids)

    @property
    def ndof(self) -> int:
        """Total DOFs (size of K)."""
        return self.dof_per_node * len(self.node_ids)

    def position(self, node_id: NodeId) -> int:
        return self._index[node_id]

    def idx(self, node_id: NodeId, local_dof: int) -> int:
        """Global DOF index for a node's local DOF."""
        return self.dof_per_node * self._index[node_id] + local_dof

    def node_dofs(self, node_id: NodeId) -> List[int]:
        """
        All global DOF indices of one node.

        >>> DOFManager([0, 1, 2]).node_dofs(2)
        [12, 13, 14, 15, 16, 17]
        """
        base = self.dof_per_node * self._index[node_id]
        return list(range(base, base + self.dof_per_node))

    def describe(self, index: int) -> str:
        """Readable name of a global DOF, e.g. "node 12 uz"."""
        node, local = divmod(int(index), self.dof_per_node)
        return f"node {self.node_ids[node]!r} {DOF_NAMES[local]}"

    def element_dof_map(self, node_ids: Sequence[NodeId]) -> List[int]:
        """Flattened DOF indices for an element connecting ``node_ids``."""
        result = []
        for node_id in node_ids:
            result.extend(self.node_dofs(node_id))
        return result

    def restrained_dofs(self, nodes: Iterable[Node]) -> List[int]:
        """Global indices of every DOF restrained by a node support."""
        fixed = []
        for node in nodes:
            for local in node.support.restrained_dofs:
                fixed.append(self.idx(node.id, local))
        return sorted(fixed)

    def node_vector(self, vector: np.ndarray, node_id: NodeId) -> np.ndarray:
        """The 6 entries of a global vector that belong to ``node_id``."""
        base = self.dof_per_node * self._index[node_id]
        return vector[base:base + self.dof_per_node]

    def direction_dofs(self, direction: int) -> np.ndarray:
        """Every global index for one local DOF (e.g. all ux rows)."""
        return np.arange(direction, self.ndof, self.dof_per_node, dtype=int)
