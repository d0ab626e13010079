"""
Visualization
=============

Plotting functions for meshes, integration point fields and load curves.
"""

import numpy as np
import matplotlib.pyplot as plt
from matplotlib.collections import PolyCollection
from typing import Optional, List, TYPE_CHECKING

if TYPE_CHECKING:
    from mesh.fe_mesh import FEMesh
    from solvers.newton_solver import LoadStep


def _require_2d(mesh: 'FEMesh'):
    if mesh.dim != 2:
        raise ValueError("Plotting supports 2D meshes only")


def plot_mesh(mesh: 'FEMesh',
              ax: Optional[plt.Axes] = None,
              show_nodes: bool = False,
              node_labels: bool = False,
              u: Optional[np.ndarray] = None,
              scale: float = 1.0,
              **kwargs) -> plt.Axes:
    """
    Plot mesh outline, optionally deformed.

    Args:
        mesh: FEMesh instance (2D)
        ax: matplotlib axes (created if None)
        show_nodes: whether to show node points
        node_labels: whether to label nodes with indices
        u: displacement vector to plot the deformed configuration
        scale: displacement magnification factor
        **kwargs: passed to PolyCollection

    Returns:
        ax: matplotlib axes
    """
    _require_2d(mesh)

    if ax is None:
        fig, ax = plt.subplots(figsize=(8, 8))

    nodes = mesh.nodes
    if u is not None:
        nodes = nodes + scale * np.asarray(u).reshape(-1, 2)

    kwargs.setdefault('facecolors', 'none')
    kwargs.setdefault('edgecolors', 'k')
    kwargs.setdefault('linewidths', 0.5)
    ax.add_collection(PolyCollection(nodes[mesh.elements], **kwargs))

    if show_nodes:
        ax.plot(nodes[:, 0], nodes[:, 1], 'ko', ms=3)

    if node_labels:
        for i, (x, y) in enumerate(nodes):
            ax.annotate(str(i), (x, y), fontsize=8)

    ax.autoscale()
    ax.set_aspect('equal')
    ax.set_xlabel('x')
    ax.set_ylabel('y')

    return ax


def plot_integration_point_field(coordinates: np.ndarray,
                                 values: np.ndarray,
                                 mesh: Optional['FEMesh'] = None,
                                 ax: Optional[plt.Axes] = None,
                                 cmap: str = 'hot_r',
                                 vmin: Optional[float] = None,
                                 vmax: Optional[float] = None,
                                 label: str = '',
                                 colorbar: bool = True,
                                 **kwargs) -> plt.Axes:
    """
    Scatter plot of an integration point field.

    Args:
        coordinates: integration point positions, shape (n_ip, 2 or 3)
        values: scalar per point, shape (n_ip,)
        mesh: optional mesh drawn underneath
        ax: matplotlib axes
        cmap: colormap name
        vmin, vmax: color scale limits
        label: colorbar label
        colorbar: whether to show colorbar
        **kwargs: passed to scatter

    Returns:
        ax: matplotlib axes
    """
    if ax is None:
        fig, ax = plt.subplots(figsize=(10, 8))

    if mesh is not None:
        plot_mesh(mesh, ax=ax, edgecolors='0.7')

    coordinates = np.asarray(coordinates)
    kwargs.setdefault('s', 12)
    sc = ax.scatter(coordinates[:, 0], coordinates[:, 1], c=values, cmap=cmap,
                    vmin=vmin, vmax=vmax, **kwargs)

    if colorbar:
        plt.colorbar(sc, ax=ax, label=label)

    ax.set_aspect('equal')
    ax.set_xlabel('x')
    ax.set_ylabel('y')

    return ax


def plot_load_displacement(results: List['LoadStep'],
                           dof: int,
                           reaction_index: Optional[np.ndarray] = None,
                           ax: Optional[plt.Axes] = None,
                           **kwargs) -> plt.Axes:
    """
    Plot reaction force against the displacement of one DOF.

    The force is the sum of the selected reactions stored with each step.

    Args:
        results: list of LoadStep instances
        dof: global DOF for the displacement axis
        reaction_index: positions in LoadStep.reaction to sum (all if None)
        ax: matplotlib axes
        **kwargs: passed to plot

    Returns:
        ax: matplotlib axes
    """
    if ax is None:
        fig, ax = plt.subplots(figsize=(8, 6))

    displacements = [0.0] + [r.displacement[dof] for r in results]
    if reaction_index is None:
        forces = [0.0] + [np.sum(r.reaction) for r in results]
    else:
        forces = [0.0] + [np.sum(r.reaction[reaction_index]) for r in results]

    ax.plot(displacements, forces, 'b-o', ms=3, **kwargs)
    ax.set_xlabel('Displacement')
    ax.set_ylabel('Reaction force')
    ax.grid(True, alpha=0.3)

    return ax


def plot_damage_profile(coordinates: np.ndarray,
                        damage: np.ndarray,
                        axis: int = 0,
                        ax: Optional[plt.Axes] = None,
                        **kwargs) -> plt.Axes:
    """
    Damage along one coordinate axis (e.g. along a bar).

    Args:
        coordinates: integration point positions
        damage: damage per point
        axis: coordinate used for the abscissa (0 = x)
        ax: matplotlib axes
        **kwargs: passed to plot

    Returns:
        ax: matplotlib axes
    """
    if ax is None:
        fig, ax = plt.subplots(figsize=(8, 4))

    coordinates = np.asarray(coordinates)
    order = np.argsort(coordinates[:, axis], kind='stable')

    ax.plot(coordinates[order, axis], np.asarray(damage)[order], 'r.-', **kwargs)
    ax.set_xlabel('xyz'[axis])
    ax.set_ylabel('Damage')
    ax.set_ylim(-0.05, 1.05)
    ax.grid(True, alpha=0.3)

    return ax
