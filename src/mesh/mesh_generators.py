"""
Mesh Generators
===============

Structured mesh generators for tests and examples.
"""

import numpy as np
from typing import Optional
from .fe_mesh import FEMesh


def create_rectangle_mesh(Lx: float, Ly: float, nx: int, ny: int,
                          cell_type: str = 'quad',
                          pattern: str = 'right',
                          thickness: float = 1.0) -> FEMesh:
    """
    Create structured mesh on rectangle [0, Lx] × [0, Ly].

    Args:
        Lx, Ly: domain dimensions
        nx, ny: number of divisions in x and y
        cell_type: 'quad' or 'triangle'
        pattern: diagonal pattern for triangles
            'right': diagonals go from lower-left to upper-right
            'left': diagonals go from lower-right to upper-left
        thickness: element thickness

    Returns:
        FEMesh instance
    """
    if nx < 1 or ny < 1:
        raise ValueError(f"Need at least one division, got nx={nx}, ny={ny}")

    n_nodes_x = nx + 1
    n_nodes_y = ny + 1

    nodes = np.zeros((n_nodes_x * n_nodes_y, 2))
    for j in range(n_nodes_y):
        for i in range(n_nodes_x):
            idx = j * n_nodes_x + i
            nodes[idx, 0] = i * Lx / nx
            nodes[idx, 1] = j * Ly / ny

    def node_idx(i, j):
        return j * n_nodes_x + i

    elements = []
    if cell_type == 'quad':
        for j in range(ny):
            for i in range(nx):
                elements.append([node_idx(i, j), node_idx(i + 1, j),
                                 node_idx(i + 1, j + 1), node_idx(i, j + 1)])

    elif cell_type == 'triangle':
        for j in range(ny):
            for i in range(nx):
                if pattern == 'right':
                    elements.append([node_idx(i, j), node_idx(i + 1, j),
                                     node_idx(i + 1, j + 1)])
                    elements.append([node_idx(i, j), node_idx(i + 1, j + 1),
                                     node_idx(i, j + 1)])
                elif pattern == 'left':
                    elements.append([node_idx(i, j), node_idx(i + 1, j),
                                     node_idx(i, j + 1)])
                    elements.append([node_idx(i + 1, j), node_idx(i + 1, j + 1),
                                     node_idx(i, j + 1)])
                else:
                    raise ValueError(f"Unknown pattern: {pattern}")
    else:
        raise ValueError(f"Unsupported cell type for rectangle: {cell_type}")

    return FEMesh(nodes, np.array(elements), cell_type, thickness=thickness)


def create_box_mesh(Lx: float, Ly: float, Lz: float,
                    nx: int, ny: int, nz: int) -> FEMesh:
    """
    Create structured hexahedral mesh on [0, Lx] × [0, Ly] × [0, Lz].

    Node ordering per element follows the VTK/meshio hexahedron convention
    (bottom face counterclockwise, then top face).

    Args:
        Lx, Ly, Lz: domain dimensions
        nx, ny, nz: number of divisions

    Returns:
        FEMesh instance
    """
    if min(nx, ny, nz) < 1:
        raise ValueError(f"Need at least one division, got {nx}, {ny}, {nz}")

    xs = np.linspace(0.0, Lx, nx + 1)
    ys = np.linspace(0.0, Ly, ny + 1)
    zs = np.linspace(0.0, Lz, nz + 1)

    def node_idx(i, j, k):
        return (k * (ny + 1) + j) * (nx + 1) + i

    nodes = np.zeros(((nx + 1) * (ny + 1) * (nz + 1), 3))
    for k, z in enumerate(zs):
        for j, y in enumerate(ys):
            for i, x in enumerate(xs):
                nodes[node_idx(i, j, k)] = [x, y, z]

    elements = []
    for k in range(nz):
        for j in range(ny):
            for i in range(nx):
                elements.append([
                    node_idx(i, j, k), node_idx(i + 1, j, k),
                    node_idx(i + 1, j + 1, k), node_idx(i, j + 1, k),
                    node_idx(i, j, k + 1), node_idx(i + 1, j, k + 1),
                    node_idx(i + 1, j + 1, k + 1), node_idx(i, j + 1, k + 1),
                ])

    return FEMesh(nodes, np.array(elements), 'hexahedron')


def create_bar_mesh(length: float, height: float, n_elements: int,
                    cell_type: str = 'quad', thickness: float = 1.0) -> FEMesh:
    """
    Create a one-element-thick bar along x.

    Convenience function that calls create_rectangle_mesh with ny=1.

    Args:
        length: bar length
        height: bar height
        n_elements: number of divisions along the bar
        cell_type: 'quad' or 'triangle'
        thickness: element thickness

    Returns:
        FEMesh instance
    """
    return create_rectangle_mesh(length, height, n_elements, 1,
                                 cell_type=cell_type, thickness=thickness)


def create_single_element(cell_type: str = 'quad',
                          node_coords: Optional[np.ndarray] = None,
                          thickness: float = 1.0) -> FEMesh:
    """
    Create mesh with a single element.

    Useful for unit testing.

    Args:
        cell_type: 'triangle', 'quad' or 'hexahedron'
        node_coords: node coordinates; default is the unit reference cell
        thickness: element thickness

    Returns:
        FEMesh instance
    """
    if node_coords is None:
        if cell_type == 'triangle':
            node_coords = np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]])
        elif cell_type == 'quad':
            node_coords = np.array([[0.0, 0.0], [1.0, 0.0], [1.0, 1.0], [0.0, 1.0]])
        elif cell_type == 'hexahedron':
            return create_box_mesh(1.0, 1.0, 1.0, 1, 1, 1)
        else:
            raise ValueError(f"Unknown cell type: {cell_type}")

    elements = np.arange(len(node_coords))[None, :]
    return FEMesh(node_coords, elements, cell_type, thickness=thickness)


def perturb_interior_nodes(mesh: FEMesh, magnitude: float = 0.1,
                           seed: Optional[int] = None) -> FEMesh:
    """
    Randomly perturb interior nodes for patch test verification.

    Args:
        mesh: input mesh
        magnitude: perturbation magnitude as fraction of the smallest
            bounding-box cell size
        seed: random seed for reproducibility

    Returns:
        New FEMesh with perturbed nodes
    """
    rng = np.random.default_rng(seed)

    lo, hi = mesh.bounding_box()
    tol = 1e-10 * max(np.max(hi - lo), 1.0)
    on_boundary = np.any((np.abs(mesh.nodes - lo) < tol) |
                         (np.abs(mesh.nodes - hi) < tol), axis=1)

    # Minimum element edge length from the first two nodes of each element
    first_edges = mesh.nodes[mesh.elements[:, 1]] - mesh.nodes[mesh.elements[:, 0]]
    pert = magnitude * np.min(np.linalg.norm(first_edges, axis=1))

    new_nodes = mesh.nodes.copy()
    interior = np.where(~on_boundary)[0]
    new_nodes[interior] += rng.uniform(-pert, pert, (len(interior), mesh.dim))

    return FEMesh(new_nodes, mesh.elements.copy(), mesh.cell_type,
                  thickness=mesh.thickness)
