"""
Neighbor Graph
==============

Nonlocal neighbourhoods of integration points.

For every integration point k the graph stores the points l with
|x_k - x_l|² < L² together with the normalized averaging weights α_kl·w_l.
Tables hold indices into the integration point arena, never references to
other elements, so they can be rebuilt at any time.
"""

import logging
import numpy as np
from dataclasses import dataclass
from scipy.sparse import csr_matrix
from typing import List, Optional, TYPE_CHECKING

from physics.errors import DegenerateNeighborhood
from physics.nonlocal_averaging import normalized_weights
from .spatial_query import IntegrationPointIndex

if TYPE_CHECKING:
    from elements.nonlocal_element import SmallDeformationNonlocalElement

logger = logging.getLogger(__name__)


@dataclass
class NeighborTable:
    """
    Neighbours of one integration point.

    All arrays have length n_neighbors and are sorted by
    (element id, ip id).

    Attributes:
        element_ids: element of each neighbour
        ip_ids: local ip index of each neighbour
        global_ids: arena index of each neighbour
        distances2: squared distances
        alpha_kl_times_w_l: normalized averaging weights
    """
    element_ids: np.ndarray
    ip_ids: np.ndarray
    global_ids: np.ndarray
    distances2: np.ndarray
    alpha_kl_times_w_l: np.ndarray

    def __len__(self) -> int:
        return len(self.global_ids)


def build_neighbor_table(position: np.ndarray, index: IntegrationPointIndex,
                         internal_length: float,
                         element_id: Optional[int] = None,
                         ip: Optional[int] = None) -> NeighborTable:
    """
    Build the neighbour table of one point.

    Args:
        position: point position
        index: integration point arena
        internal_length: nonlocal radius L (> 0)
        element_id, ip: location for error messages

    Returns:
        NeighborTable

    Raises:
        DegenerateNeighborhood: no point within L
    """
    if internal_length <= 0:
        raise ValueError(f"internal_length must be positive, got {internal_length}")

    global_ids, d2 = index.query(position, internal_length)
    if len(global_ids) == 0:
        raise DegenerateNeighborhood(element_id, ip, internal_length)

    weights = normalized_weights(d2, index.weights[global_ids], internal_length ** 2)
    return NeighborTable(
        element_ids=index.element_ids[global_ids],
        ip_ids=index.ip_ids[global_ids],
        global_ids=global_ids,
        distances2=d2,
        alpha_kl_times_w_l=weights,
    )


class NeighborGraph:
    """
    Neighbour tables of every point in an arena.

    Attributes:
        index: IntegrationPointIndex
        internal_length: nonlocal radius L
        tables: one NeighborTable per global id
    """

    def __init__(self, index: IntegrationPointIndex, internal_length: float,
                 tables: List[NeighborTable]):
        self.index = index
        self.internal_length = internal_length
        self.tables = tables

    @classmethod
    def from_index(cls, index: IntegrationPointIndex, internal_length: float) -> 'NeighborGraph':
        """Build tables for every point of an arena."""
        tables = [
            build_neighbor_table(index.positions[gid], index, internal_length,
                                 int(index.element_ids[gid]), int(index.ip_ids[gid]))
            for gid in range(index.n_points)
        ]
        return cls(index, internal_length, tables)

    @classmethod
    def build(cls, elements: List['SmallDeformationNonlocalElement'],
              internal_length: float,
              index: Optional[IntegrationPointIndex] = None) -> 'NeighborGraph':
        """
        Build the graph and attach each table to its integration point.

        Previous tables on the elements are replaced.

        Args:
            elements: element arena
            internal_length: nonlocal radius L
            index: existing arena index (built from elements if omitted)

        Returns:
            NeighborGraph
        """
        if index is None:
            index = IntegrationPointIndex.from_elements(elements)

        graph = cls.from_index(index, internal_length)
        for elem in elements:
            for ip, qp in enumerate(elem.ip_data):
                qp.neighbors = graph.tables[index.global_id(elem.element_id, ip)]

        counts = graph.neighbor_counts()
        logger.info("Neighbor graph: %d points, L = %g, neighbours min/mean/max = %d/%.1f/%d",
                    index.n_points, internal_length, counts.min(), counts.mean(), counts.max())
        return graph

    @property
    def n_points(self) -> int:
        return len(self.tables)

    def neighbor_counts(self) -> np.ndarray:
        """Number of neighbours of each point (self included)."""
        return np.array([len(table) for table in self.tables], dtype=np.int64)

    def averaging_matrix(self) -> csr_matrix:
        """
        Sparse averaging operator A with κ̄ = A κ.

        Row k holds the weights α_kl·w_l of point k.

        Returns:
            A: csr_matrix, shape (n_points, n_points)
        """
        rows = np.concatenate([np.full(len(t), k) for k, t in enumerate(self.tables)])
        cols = np.concatenate([t.global_ids for t in self.tables])
        vals = np.concatenate([t.alpha_kl_times_w_l for t in self.tables])
        return csr_matrix((vals, (rows, cols)), shape=(self.n_points, self.n_points))

    def partition_of_unity(self) -> np.ndarray:
        """Σ_l α_kl w_l for every point k (ideally all ones)."""
        return np.array([np.sum(t.alpha_kl_times_w_l) for t in self.tables])
