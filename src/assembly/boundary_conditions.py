"""
Boundary Conditions
===================

Dirichlet boundary conditions for 2D and 3D displacement fields.
"""

import numpy as np
from scipy.sparse import csr_matrix, diags
from typing import Callable, Dict, Optional, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    from mesh.fe_mesh import FEMesh

COMPONENTS = {'x': 0, 'y': 1, 'z': 2}


def _component_indices(component: str, dim: int):
    """Map 'x' | 'y' | 'z' | 'all' to component offsets."""
    if component in ('all', 'both'):
        return list(range(dim))
    if component not in COMPONENTS or COMPONENTS[component] >= dim:
        raise ValueError(f"Unknown component for {dim}D: {component}")
    return [COMPONENTS[component]]


def apply_dirichlet_bc(K: csr_matrix, F: np.ndarray,
                       bc_dofs: np.ndarray, bc_values: np.ndarray,
                       method: str = 'elimination') -> Tuple[csr_matrix, np.ndarray]:
    """
    Apply Dirichlet boundary conditions to the system K x = F.

    Args:
        K: system matrix, shape (n_dof, n_dof)
        F: right-hand side, shape (n_dof,)
        bc_dofs: indices of constrained DOFs
        bc_values: prescribed values at bc_dofs
        method: 'elimination' or 'penalty'

    Returns:
        K_bc, F_bc: modified system with BCs applied
    """
    if len(bc_dofs) != len(bc_values):
        raise ValueError("bc_dofs and bc_values must have same length")

    if method == 'elimination':
        return _apply_bc_elimination(K, F, bc_dofs, bc_values)
    elif method == 'penalty':
        return _apply_bc_penalty(K, F, bc_dofs, bc_values)
    else:
        raise ValueError(f"Unknown method: {method}")


def _apply_bc_elimination(K: csr_matrix, F: np.ndarray,
                          bc_dofs: np.ndarray, bc_values: np.ndarray
                          ) -> Tuple[csr_matrix, np.ndarray]:
    """
    Apply BCs by row/column elimination.

    For each constrained DOF i: K[i,i] = 1, K[i,j] = K[j,i] = 0 and
    F[i] = value. Known values are moved to the right-hand side first,
    F_free -= K_free,constrained · x_constrained, so symmetry is kept.
    """
    K = csr_matrix(K)
    F = np.asarray(F, dtype=np.float64).copy()
    n_dof = K.shape[0]

    bc_dofs = np.asarray(bc_dofs, dtype=np.int64)
    bc_values = np.asarray(bc_values, dtype=np.float64)

    x_bc = np.zeros(n_dof)
    x_bc[bc_dofs] = bc_values
    F -= K @ x_bc

    keep = np.ones(n_dof)
    keep[bc_dofs] = 0.0
    mask = diags(keep)
    fixed = np.zeros(n_dof)
    fixed[bc_dofs] = 1.0

    K_bc = (mask @ K @ mask + diags(fixed)).tocsr()
    F[bc_dofs] = bc_values
    return K_bc, F


def _apply_bc_penalty(K: csr_matrix, F: np.ndarray,
                      bc_dofs: np.ndarray, bc_values: np.ndarray,
                      penalty: float = 1e20) -> Tuple[csr_matrix, np.ndarray]:
    """
    Apply BCs using penalty method.

        K[i,i] += penalty
        F[i] += penalty * bc_value

    Less accurate than elimination but simpler.
    """
    K = K.tolil()
    F = np.asarray(F, dtype=np.float64).copy()

    for dof, val in zip(bc_dofs, bc_values):
        K[dof, dof] += penalty
        F[dof] += penalty * val

    return K.tocsr(), F


def create_bc_from_region(mesh: 'FEMesh',
                          region_func: Callable[..., bool],
                          component: str,
                          value: float) -> Tuple[np.ndarray, np.ndarray]:
    """
    Create boundary conditions from a region function.

    Args:
        mesh: FEMesh instance
        region_func: function(x, y[, z]) -> bool, True for nodes in the region
        component: 'x', 'y', 'z' or 'all'
        value: prescribed value

    Returns:
        bc_dofs: DOF indices
        bc_values: prescribed values
    """
    offsets = _component_indices(component, mesh.dim)
    nodes = mesh.get_nodes_in_region(region_func)

    bc_dofs = [mesh.dim * n + c for n in nodes for c in offsets]
    return np.array(bc_dofs, dtype=np.int64), np.full(len(bc_dofs), float(value))


def create_fixed_bc(mesh: 'FEMesh',
                    node_indices: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Create fully fixed (u = 0) boundary conditions.

    Args:
        mesh: FEMesh instance
        node_indices: indices of nodes to fix

    Returns:
        bc_dofs: DOF indices
        bc_values: zeros
    """
    bc_dofs = [mesh.dim * n + c for n in node_indices for c in range(mesh.dim)]
    return np.array(bc_dofs, dtype=np.int64), np.zeros(len(bc_dofs))


def merge_bcs(*bc_pairs) -> Tuple[np.ndarray, np.ndarray]:
    """
    Merge multiple boundary condition specifications.

    Later pairs override earlier ones on shared DOFs.

    Args:
        *bc_pairs: tuples of (bc_dofs, bc_values)

    Returns:
        merged_dofs: sorted DOF indices
        merged_values: combined values
    """
    dof_to_value = {}
    for dofs, values in bc_pairs:
        for dof, val in zip(dofs, values):
            dof_to_value[int(dof)] = float(val)

    merged_dofs = np.array(sorted(dof_to_value.keys()), dtype=np.int64)
    merged_values = np.array([dof_to_value[d] for d in merged_dofs], dtype=np.float64)
    return merged_dofs, merged_values


def get_free_dofs(n_dof: int, bc_dofs: np.ndarray) -> np.ndarray:
    """
    Get indices of free (unconstrained) DOFs.

    Args:
        n_dof: total number of DOFs
        bc_dofs: constrained DOF indices

    Returns:
        free_dofs: indices of free DOFs
    """
    free = np.ones(n_dof, dtype=bool)
    free[np.asarray(bc_dofs, dtype=np.int64)] = False
    return np.where(free)[0]


class BoundaryConditionManager:
    """
    Collects Dirichlet conditions and evaluates them over time.

    Each condition has a reference value; prescribed_values(load_factor)
    scales the non-zero ones, which gives the usual proportional loading.
    """

    def __init__(self, mesh: 'FEMesh'):
        """
        Initialize BC manager.

        Args:
            mesh: FEMesh instance
        """
        self.mesh = mesh
        self.n_dof = mesh.n_dofs
        self.bc_dofs = np.array([], dtype=np.int64)
        self.bc_values = np.array([], dtype=np.float64)
        self._bc_sources = []

    def fix_region(self, region_func: Callable[..., bool],
                   component: str = 'all', name: Optional[str] = None) -> None:
        """
        Fix nodes in a region.

        Args:
            region_func: function(x, y[, z]) -> bool
            component: 'x', 'y', 'z' or 'all'
            name: optional name for summary()
        """
        dofs, values = create_bc_from_region(self.mesh, region_func, component, 0.0)
        self._add_bc(dofs, values, name or "fix_region")

    def prescribe_displacement(self, region_func: Callable[..., bool],
                               component: str, value: float,
                               name: Optional[str] = None) -> None:
        """
        Prescribe displacement in a region.

        Args:
            region_func: function(x, y[, z]) -> bool
            component: 'x', 'y' or 'z'
            value: reference displacement (at load factor 1)
            name: optional name
        """
        dofs, values = create_bc_from_region(self.mesh, region_func, component, value)
        self._add_bc(dofs, values, name or "prescribed_disp")

    def fix_nodes(self, node_indices: np.ndarray, name: Optional[str] = None) -> None:
        """Fully fix specific nodes."""
        dofs, values = create_fixed_bc(self.mesh, node_indices)
        self._add_bc(dofs, values, name or "fix_nodes")

    def _add_bc(self, dofs: np.ndarray, values: np.ndarray, source: str) -> None:
        if len(dofs) == 0:
            raise ValueError(f"Boundary condition '{source}' selects no nodes")
        self.bc_dofs, self.bc_values = merge_bcs(
            (self.bc_dofs, self.bc_values),
            (dofs, values)
        )
        self._bc_sources.append((source, len(dofs)))

    def prescribed_values(self, load_factor: float) -> np.ndarray:
        """Values at all constrained DOFs for a load factor."""
        return load_factor * self.bc_values

    def apply(self, K: csr_matrix, F: np.ndarray,
              method: str = 'elimination') -> Tuple[csr_matrix, np.ndarray]:
        """Apply all boundary conditions at their reference values."""
        return apply_dirichlet_bc(K, F, self.bc_dofs, self.bc_values, method)

    def get_free_dofs(self) -> np.ndarray:
        """Get indices of unconstrained DOFs."""
        return get_free_dofs(self.n_dof, self.bc_dofs)

    def summary(self) -> str:
        """Return summary of boundary conditions."""
        lines = [f"Boundary Conditions Summary ({len(self.bc_dofs)} constrained DOFs):"]
        for source, count in self._bc_sources:
            lines.append(f"  - {source}: {count} DOFs")
        return "\n".join(lines)

    def as_dict(self) -> Dict[int, float]:
        """Reference values keyed by DOF."""
        return dict(zip(self.bc_dofs.tolist(), self.bc_values.tolist()))
