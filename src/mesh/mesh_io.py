"""
Mesh I/O Functions
==================

Read meshes and write results through meshio.
"""

import meshio
import numpy as np
from typing import Dict, Optional
from .fe_mesh import FEMesh, CELL_TYPES


def read_mesh(filename: str, cell_type: Optional[str] = None,
              thickness: float = 1.0) -> FEMesh:
    """
    Read any meshio-supported file (Gmsh .msh, .vtu, ...) and return FEMesh.

    Only one cell block type is used. Lower-dimensional cells (boundary
    lines, faces) are ignored.

    Args:
        filename: path to mesh file
        cell_type: cell type to extract; default is the first supported
            type found ('hexahedron' preferred over 2D cells)
        thickness: element thickness for plane problems

    Returns:
        FEMesh instance
    """
    mesh_data = meshio.read(filename)

    available = [block.type for block in mesh_data.cells]
    if cell_type is None:
        for candidate in ("hexahedron", "quad", "triangle"):
            if candidate in available:
                cell_type = candidate
                break
        else:
            raise ValueError(f"No supported cells in {filename}: {available}")
    elif cell_type not in CELL_TYPES:
        raise ValueError(f"Unknown cell type: {cell_type}")

    blocks = [block.data for block in mesh_data.cells if block.type == cell_type]
    if not blocks:
        raise ValueError(f"No {cell_type} elements found in mesh file")
    elements = np.vstack(blocks)

    dim = CELL_TYPES[cell_type][0]
    nodes = mesh_data.points[:, :dim]
    return FEMesh(nodes, elements, cell_type, thickness=thickness)


def write_vtu(filename: str, mesh: FEMesh,
              point_data: Optional[Dict[str, np.ndarray]] = None,
              cell_data: Optional[Dict[str, np.ndarray]] = None) -> None:
    """
    Write VTU file for ParaView visualization.

    2D displacement-like point data (n_nodes, 2) is padded to 3 components.

    Args:
        filename: output filename (.vtu)
        mesh: FEMesh instance
        point_data: dict of nodal scalar/vector fields
        cell_data: dict of element scalar/vector fields, first axis n_elements
    """
    points = mesh.nodes
    if mesh.dim == 2:
        points = np.column_stack([mesh.nodes, np.zeros(mesh.n_nodes)])

    point_data_dict = {}
    for name, data in (point_data or {}).items():
        data = np.asarray(data)
        if data.ndim == 2 and data.shape[1] == 2:
            data = np.column_stack([data, np.zeros(len(data))])
        point_data_dict[name] = data

    cell_data_dict = {}
    for name, data in (cell_data or {}).items():
        cell_data_dict[name] = [np.asarray(data)]

    meshio_mesh = meshio.Mesh(
        points=points,
        cells=[(mesh.cell_type, mesh.elements)],
        point_data=point_data_dict,
        cell_data=cell_data_dict,
    )
    meshio.write(filename, meshio_mesh)
