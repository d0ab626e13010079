"""
Mesh Module
===========

Finite element mesh, generators, I/O and the integration point neighbourhoods
used for nonlocal averaging.
"""

from .fe_mesh import FEMesh
from .spatial_query import IntegrationPointIndex
from .neighbor_graph import NeighborTable, NeighborGraph, build_neighbor_table
from .mesh_io import read_mesh, write_vtu
from .mesh_generators import (
    create_rectangle_mesh,
    create_box_mesh,
    create_bar_mesh,
    create_single_element,
    perturb_interior_nodes,
)

__all__ = [
    "FEMesh",
    "IntegrationPointIndex",
    "NeighborTable",
    "NeighborGraph",
    "build_neighbor_table",
    "read_mesh",
    "write_vtu",
    "create_rectangle_mesh",
    "create_box_mesh",
    "create_bar_mesh",
    "create_single_element",
    "perturb_interior_nodes",
]
