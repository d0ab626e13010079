"""
Assembly Module
===============

Two-phase nonlocal process, global scatter and boundary condition application.
"""

from .global_assembly import (
    element_dof_indices,
    scatter_matrices,
    scatter_vectors,
    compute_reaction_forces,
    compute_element_average,
)
from .boundary_conditions import (
    apply_dirichlet_bc,
    create_bc_from_region,
    create_fixed_bc,
    merge_bcs,
    get_free_dofs,
    BoundaryConditionManager,
)
from .nonlocal_process import ProcessData, SmallDeformationNonlocalProcess

__all__ = [
    "element_dof_indices",
    "scatter_matrices",
    "scatter_vectors",
    "compute_reaction_forces",
    "compute_element_average",
    "apply_dirichlet_bc",
    "create_bc_from_region",
    "create_fixed_bc",
    "merge_bcs",
    "get_free_dofs",
    "BoundaryConditionManager",
    "ProcessData",
    "SmallDeformationNonlocalProcess",
]
