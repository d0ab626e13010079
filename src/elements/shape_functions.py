"""
Shape Functions
===============

Isoparametric shape functions, Gauss rules and Kelvin B-matrices.

Supported cells:
    - Tri3: linear triangle, 1-point rule
    - Quad4: bilinear quadrilateral, 2×2 rule by default
    - Hex8: trilinear hexahedron, 2×2×2 rule by default
"""

import numpy as np
from typing import Optional, Tuple

from physics.kelvin import SQRT2, kelvin_size


class ShapeFunction:
    """
    Base class for isoparametric shape functions.

    Attributes:
        cell_type: meshio cell type name
        dim: reference dimension
        n_nodes: nodes per element
    """
    cell_type = None
    dim = None
    n_nodes = None

    def N(self, xi: np.ndarray) -> np.ndarray:
        """Shape function values at reference point xi, shape (n_nodes,)."""
        raise NotImplementedError

    def dN_dxi(self, xi: np.ndarray) -> np.ndarray:
        """Reference gradients at xi, shape (n_nodes, dim)."""
        raise NotImplementedError

    def gauss_points(self) -> Tuple[np.ndarray, np.ndarray]:
        """Return (points, weights) of the quadrature rule."""
        raise NotImplementedError

    @property
    def n_integration_points(self) -> int:
        return len(self.gauss_points()[1])


def _tensor_gauss_rule(order: int, dim: int) -> Tuple[np.ndarray, np.ndarray]:
    """Tensor-product Gauss-Legendre rule on [-1, 1]^dim."""
    pts, wts = np.polynomial.legendre.leggauss(order)
    grids = np.meshgrid(*([pts] * dim), indexing='ij')
    wgrids = np.meshgrid(*([wts] * dim), indexing='ij')
    # x varies fastest
    points = np.column_stack([g.ravel(order='F') for g in grids])
    weights = np.prod(np.column_stack([w.ravel(order='F') for w in wgrids]), axis=1)
    return points, weights


class Tri3(ShapeFunction):
    """
    Linear triangle.

    N = [1 - ξ - η, ξ, η] on the reference triangle (0,0), (1,0), (0,1).
    """
    cell_type = 'triangle'
    dim = 2
    n_nodes = 3

    def N(self, xi):
        return np.array([1.0 - xi[0] - xi[1], xi[0], xi[1]])

    def dN_dxi(self, xi):
        return np.array([[-1.0, -1.0],
                         [1.0, 0.0],
                         [0.0, 1.0]])

    def gauss_points(self):
        return np.array([[1.0 / 3.0, 1.0 / 3.0]]), np.array([0.5])


class Quad4(ShapeFunction):
    """
    Bilinear quadrilateral on [-1, 1]².

    Node order: (-1,-1), (1,-1), (1,1), (-1,1).
    """
    cell_type = 'quad'
    dim = 2
    n_nodes = 4
    _corners = np.array([[-1.0, -1.0], [1.0, -1.0], [1.0, 1.0], [-1.0, 1.0]])

    def __init__(self, order: int = 2):
        if order < 1:
            raise ValueError(f"Quadrature order must be >= 1, got {order}")
        self.order = order

    def N(self, xi):
        c = self._corners
        return 0.25 * (1 + c[:, 0] * xi[0]) * (1 + c[:, 1] * xi[1])

    def dN_dxi(self, xi):
        c = self._corners
        return 0.25 * np.column_stack([
            c[:, 0] * (1 + c[:, 1] * xi[1]),
            c[:, 1] * (1 + c[:, 0] * xi[0]),
        ])

    def gauss_points(self):
        return _tensor_gauss_rule(self.order, 2)


class Hex8(ShapeFunction):
    """
    Trilinear hexahedron on [-1, 1]³.

    Node order follows VTK: bottom face (ζ = -1) counterclockwise, then top.
    """
    cell_type = 'hexahedron'
    dim = 3
    n_nodes = 8
    _corners = np.array([
        [-1.0, -1.0, -1.0], [1.0, -1.0, -1.0], [1.0, 1.0, -1.0], [-1.0, 1.0, -1.0],
        [-1.0, -1.0, 1.0], [1.0, -1.0, 1.0], [1.0, 1.0, 1.0], [-1.0, 1.0, 1.0],
    ])

    def __init__(self, order: int = 2):
        if order < 1:
            raise ValueError(f"Quadrature order must be >= 1, got {order}")
        self.order = order

    def N(self, xi):
        c = self._corners
        return 0.125 * np.prod(1 + c * np.asarray(xi)[None, :], axis=1)

    def dN_dxi(self, xi):
        c = self._corners
        f = 1 + c * np.asarray(xi)[None, :]
        grad = np.zeros((8, 3))
        grad[:, 0] = 0.125 * c[:, 0] * f[:, 1] * f[:, 2]
        grad[:, 1] = 0.125 * c[:, 1] * f[:, 0] * f[:, 2]
        grad[:, 2] = 0.125 * c[:, 2] * f[:, 0] * f[:, 1]
        return grad

    def gauss_points(self):
        return _tensor_gauss_rule(self.order, 3)


def shape_for_cell_type(cell_type: str, order: Optional[int] = None) -> ShapeFunction:
    """
    Shape function family for a meshio cell type.

    Args:
        cell_type: 'triangle', 'quad' or 'hexahedron'
        order: Gauss order per direction (quad/hex only)
    """
    if cell_type == 'triangle':
        if order not in (None, 1):
            raise ValueError("Tri3 supports only the 1-point rule")
        return Tri3()
    elif cell_type == 'quad':
        return Quad4(order or 2)
    elif cell_type == 'hexahedron':
        return Hex8(order or 2)
    raise ValueError(f"Unknown cell type: {cell_type}")


def compute_b_matrix(dNdx: np.ndarray) -> np.ndarray:
    """
    Strain-displacement matrix in Kelvin form.

    DOFs are node-major: [u_0x, u_0y, (u_0z,) u_1x, ...]. Rows are
    [xx, yy, zz, √2 xy] in 2D (plane strain, zz row zero) and
    [xx, yy, zz, √2 xy, √2 yz, √2 xz] in 3D.

    Args:
        dNdx: physical gradients, shape (n_nodes, dim)

    Returns:
        B: shape (kelvin_size, dim * n_nodes)
    """
    n_nodes, dim = dNdx.shape
    B = np.zeros((kelvin_size(dim), dim * n_nodes))
    inv_sqrt2 = 1.0 / SQRT2

    for a in range(n_nodes):
        col = dim * a
        dx = dNdx[a, 0]
        dy = dNdx[a, 1]
        B[0, col] = dx
        B[1, col + 1] = dy
        B[3, col] = dy * inv_sqrt2
        B[3, col + 1] = dx * inv_sqrt2
        if dim == 3:
            dz = dNdx[a, 2]
            B[2, col + 2] = dz
            B[4, col + 1] = dz * inv_sqrt2
            B[4, col + 2] = dy * inv_sqrt2
            B[5, col] = dz * inv_sqrt2
            B[5, col + 2] = dx * inv_sqrt2

    return B
