"""
Integration Point Index
=======================

Arena of all integration points of a mesh with a radius query.

Every integration point gets a global id. The id maps to the pair
(element index, local ip index); positions and integration weights are
stored per global id. Radius queries are served by a scipy cKDTree.
"""

import numpy as np
from scipy.spatial import cKDTree
from typing import List, Sequence, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    from elements.nonlocal_element import SmallDeformationNonlocalElement


class IntegrationPointIndex:
    """
    Spatial index over integration points.

    Attributes:
        positions: shape (n_points, 3)
        weights: integration weights, shape (n_points,)
        element_ids: element index of each point, shape (n_points,)
        ip_ids: local ip index of each point, shape (n_points,)
    """

    def __init__(self, positions: np.ndarray, weights: np.ndarray,
                 element_ids: Sequence[int], ip_ids: Sequence[int]):
        """
        Build the index from flat arrays.

        Args:
            positions: shape (n_points, 2) or (n_points, 3); 2D positions
                are padded with z = 0
            weights: shape (n_points,)
            element_ids: shape (n_points,)
            ip_ids: shape (n_points,)
        """
        positions = np.asarray(positions, dtype=np.float64)
        if positions.ndim != 2 or positions.shape[1] not in (2, 3):
            raise ValueError("positions must have shape (n_points, 2) or (n_points, 3)")
        if positions.shape[1] == 2:
            positions = np.column_stack([positions, np.zeros(len(positions))])

        self.positions = positions
        self.weights = np.asarray(weights, dtype=np.float64)
        self.element_ids = np.asarray(element_ids, dtype=np.int64)
        self.ip_ids = np.asarray(ip_ids, dtype=np.int64)

        n = len(positions)
        if not (len(self.weights) == len(self.element_ids) == len(self.ip_ids) == n):
            raise ValueError("positions, weights, element_ids and ip_ids differ in length")
        if np.any(self.weights <= 0):
            raise ValueError("Integration weights must be positive")

        self._global_ids = {}
        for gid, (e, ip) in enumerate(zip(self.element_ids, self.ip_ids)):
            key = (int(e), int(ip))
            if key in self._global_ids:
                raise ValueError(f"Duplicate integration point {key}")
            self._global_ids[key] = gid

        self._tree = cKDTree(self.positions)

    @classmethod
    def from_elements(cls, elements: List['SmallDeformationNonlocalElement']) -> 'IntegrationPointIndex':
        """
        Collect the integration points of all elements.

        Global ids follow element order, then local ip order.
        """
        positions, weights, element_ids, ip_ids = [], [], [], []
        for elem in elements:
            coords = elem.integration_point_coordinates()
            positions.append(coords)
            weights.append(elem.integration_weights())
            element_ids.append(np.full(len(coords), elem.element_id))
            ip_ids.append(np.arange(len(coords)))

        return cls(np.vstack(positions), np.concatenate(weights),
                   np.concatenate(element_ids), np.concatenate(ip_ids))

    @property
    def n_points(self) -> int:
        """Number of integration points in the arena."""
        return len(self.positions)

    def global_id(self, element_id: int, ip: int) -> int:
        """Global id of (element, ip)."""
        return self._global_ids[(int(element_id), int(ip))]

    def query(self, point: np.ndarray, radius: float) -> Tuple[np.ndarray, np.ndarray]:
        """
        All points strictly inside a sphere.

        A point at exactly `radius` is excluded (d² < r²). The result is
        sorted by (element index, ip index).

        Args:
            point: query position, 2 or 3 components
            radius: search radius (> 0)

        Returns:
            (global_ids, squared distances)
        """
        if radius <= 0:
            raise ValueError(f"Search radius must be positive, got {radius}")

        point = np.asarray(point, dtype=np.float64)
        if len(point) == 2:
            point = np.append(point, 0.0)

        candidates = np.asarray(self._tree.query_ball_point(point, radius), dtype=np.int64)
        if len(candidates) == 0:
            return candidates, np.zeros(0)

        diff = self.positions[candidates] - point
        d2 = np.einsum('ij,ij->i', diff, diff)
        inside = d2 < radius * radius
        candidates = candidates[inside]
        d2 = d2[inside]

        order = np.lexsort((self.ip_ids[candidates], self.element_ids[candidates]))
        return candidates[order], d2[order]
