"""
Global Assembly
===============

Scatter of element contributions into global sparse matrices and vectors.
"""

import numpy as np
from scipy.sparse import coo_matrix, csr_matrix
from typing import List, Sequence, TYPE_CHECKING

if TYPE_CHECKING:
    from mesh.fe_mesh import FEMesh


def element_dof_indices(mesh: 'FEMesh') -> List[np.ndarray]:
    """
    Global DOF indices of every element.

    DOF ordering per node: [u_x, u_y(, u_z)].

    Args:
        mesh: FEMesh instance

    Returns:
        list of arrays, one per element
    """
    return [mesh.element_dofs(e) for e in range(mesh.n_elements)]


def scatter_matrices(element_matrices: Sequence[np.ndarray],
                     dof_indices: Sequence[np.ndarray],
                     n_dof: int) -> csr_matrix:
    """
    Assemble global matrix K = Σ_e Aᵀ K^e A.

    Entries are summed in element order, so the result does not depend on
    how the element matrices were computed.

    Args:
        element_matrices: one (n_e, n_e) matrix per element
        dof_indices: one DOF index array per element
        n_dof: global system size

    Returns:
        K: sparse matrix, shape (n_dof, n_dof)
    """
    rows, cols, vals = [], [], []
    for K_e, dofs in zip(element_matrices, dof_indices):
        rows.append(np.repeat(dofs, len(dofs)))
        cols.append(np.tile(dofs, len(dofs)))
        vals.append(np.asarray(K_e).ravel())

    if not rows:
        return csr_matrix((n_dof, n_dof))

    K = coo_matrix((np.concatenate(vals), (np.concatenate(rows), np.concatenate(cols))),
                   shape=(n_dof, n_dof))
    return K.tocsr()


def scatter_vectors(element_vectors: Sequence[np.ndarray],
                    dof_indices: Sequence[np.ndarray],
                    n_dof: int) -> np.ndarray:
    """
    Assemble global vector F = Σ_e Aᵀ F^e.

    Args:
        element_vectors: one vector per element
        dof_indices: one DOF index array per element
        n_dof: global system size

    Returns:
        F: shape (n_dof,)
    """
    F = np.zeros(n_dof)
    for F_e, dofs in zip(element_vectors, dof_indices):
        np.add.at(F, dofs, F_e)
    return F


def compute_reaction_forces(internal_forces: np.ndarray,
                            bc_dofs: np.ndarray) -> np.ndarray:
    """
    Reaction forces at constrained DOFs.

    At equilibrium the reaction equals the internal force F_int = Σ Bᵀσ w.

    Args:
        internal_forces: global internal force vector
        bc_dofs: indices of constrained DOFs

    Returns:
        reactions at bc_dofs
    """
    return np.asarray(internal_forces)[np.asarray(bc_dofs, dtype=np.int64)]


def compute_element_average(values: np.ndarray, weights: np.ndarray,
                            ip_offsets: np.ndarray) -> np.ndarray:
    """
    Weighted average of an integration point field per element.

    Used to map integration point damage to cells for visualization.

    Args:
        values: scalar per integration point, global id order
        weights: integration weights, global id order
        ip_offsets: start index of each element's points, length
            n_elements + 1

    Returns:
        element_values: shape (n_elements,)
    """
    values = np.asarray(values, dtype=np.float64)
    weights = np.asarray(weights, dtype=np.float64)
    n_elements = len(ip_offsets) - 1
    out = np.zeros(n_elements)
    for e in range(n_elements):
        sl = slice(ip_offsets[e], ip_offsets[e + 1])
        out[e] = np.sum(values[sl] * weights[sl]) / np.sum(weights[sl])
    return out
