"""
Finite Element Mesh
===================

Node/connectivity container for 2D (plane strain) and 3D meshes.
"""

import numpy as np
from typing import Tuple

# meshio cell type -> (spatial dimension, nodes per element)
CELL_TYPES = {
    "triangle": (2, 3),
    "quad": (2, 4),
    "hexahedron": (3, 8),
}


class FEMesh:
    """
    Unstructured mesh of a single cell type.

    Attributes:
        nodes: np.ndarray, shape (n_nodes, dim)
            Node coordinates
        elements: np.ndarray, shape (n_elements, nodes_per_element)
            Node indices for each element (counterclockwise in 2D)
        cell_type: str
            'triangle', 'quad' or 'hexahedron'
        thickness: float
            Out-of-plane thickness for 2D problems
    """

    def __init__(self, nodes: np.ndarray, elements: np.ndarray,
                 cell_type: str, thickness: float = 1.0):
        """
        Initialize and validate mesh.

        Args:
            nodes: shape (n_nodes, dim), node coordinates
            elements: shape (n_elements, nodes_per_element), connectivity
            cell_type: meshio cell type name
            thickness: element thickness for plane problems
        """
        if cell_type not in CELL_TYPES:
            raise ValueError(f"Unknown cell type: {cell_type}")

        self.nodes = np.asarray(nodes, dtype=np.float64)
        self.elements = np.asarray(elements, dtype=np.int64)
        self.cell_type = cell_type
        self.thickness = thickness

        dim, n_elem_nodes = CELL_TYPES[cell_type]
        if self.nodes.ndim != 2 or self.nodes.shape[1] != dim:
            raise ValueError(f"nodes must have shape (n_nodes, {dim}) for {cell_type}")
        if self.elements.ndim != 2 or self.elements.shape[1] != n_elem_nodes:
            raise ValueError(f"elements must have shape (n_elements, {n_elem_nodes}) for {cell_type}")
        if self.elements.size and (self.elements.min() < 0 or self.elements.max() >= len(self.nodes)):
            raise ValueError("element connectivity references unknown nodes")
        if thickness <= 0:
            raise ValueError(f"thickness must be positive, got {thickness}")

    @property
    def dim(self) -> int:
        """Spatial (and displacement) dimension."""
        return self.nodes.shape[1]

    @property
    def n_nodes(self) -> int:
        """Number of nodes in the mesh."""
        return len(self.nodes)

    @property
    def n_elements(self) -> int:
        """Number of elements in the mesh."""
        return len(self.elements)

    @property
    def n_dofs(self) -> int:
        """Number of displacement degrees of freedom."""
        return self.n_nodes * self.dim

    def element_coordinates(self, elem_idx: int) -> np.ndarray:
        """
        Return coordinates of element nodes.

        Args:
            elem_idx: element index

        Returns:
            coordinates: shape (nodes_per_element, dim)
        """
        return self.nodes[self.elements[elem_idx]]

    def element_dofs(self, elem_idx: int) -> np.ndarray:
        """
        Global DOF indices of an element, node-major.

        For node n and component c the DOF is dim*n + c.
        """
        nodes = self.elements[elem_idx]
        return (self.dim * nodes[:, None] + np.arange(self.dim)[None, :]).ravel()

    def bounding_box(self) -> Tuple[np.ndarray, np.ndarray]:
        """Return (min corner, max corner)."""
        return self.nodes.min(axis=0), self.nodes.max(axis=0)

    def get_nodes_in_region(self, region_func) -> np.ndarray:
        """
        Get indices of nodes satisfying a condition.

        Args:
            region_func: function(x, y) -> bool in 2D, function(x, y, z) in 3D

        Returns:
            node_indices: array of node indices
        """
        indices = []
        for i, coords in enumerate(self.nodes):
            if region_func(*coords):
                indices.append(i)
        return np.array(indices, dtype=np.int64)

    def __repr__(self) -> str:
        return (f"FEMesh(cell_type='{self.cell_type}', n_nodes={self.n_nodes}, "
                f"n_elements={self.n_elements})")
