"""
Elements Module
===============

Isoparametric shape functions and the nonlocal small-deformation element.
"""

from .shape_functions import Tri3, Quad4, Hex8, shape_for_cell_type, compute_b_matrix
from .integration_point import QuadraturePoint
from .nonlocal_element import SmallDeformationNonlocalElement

__all__ = [
    "Tri3",
    "Quad4",
    "Hex8",
    "shape_for_cell_type",
    "compute_b_matrix",
    "QuadraturePoint",
    "SmallDeformationNonlocalElement",
]
