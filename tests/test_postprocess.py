"""
Tests for Postprocess Module
============================
"""

import numpy as np
import pytest
import sys
import os

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from mesh.mesh_generators import create_rectangle_mesh, create_box_mesh
from postprocess.visualization import (
    plot_mesh, plot_integration_point_field, plot_load_displacement, plot_damage_profile,
)
from solvers.newton_solver import LoadStep


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close('all')


class TestVisualization:
    """Smoke tests for plotting functions."""

    def test_plot_mesh(self):
        mesh = create_rectangle_mesh(1.0, 1.0, 2, 2)
        ax = plot_mesh(mesh, show_nodes=True, node_labels=True)
        assert len(ax.collections) == 1

        u = np.full(mesh.n_dofs, 0.01)
        ax = plot_mesh(mesh, u=u, scale=10.0)
        assert len(ax.collections) == 1

    def test_plot_mesh_3d_rejected(self):
        with pytest.raises(ValueError):
            plot_mesh(create_box_mesh(1.0, 1.0, 1.0, 1, 1, 1))

    def test_plot_integration_point_field(self):
        mesh = create_rectangle_mesh(1.0, 1.0, 2, 2)
        coords = np.random.default_rng(0).uniform(0, 1, (16, 3))
        ax = plot_integration_point_field(coords, np.linspace(0, 1, 16), mesh=mesh,
                                          label='Damage')
        assert len(ax.collections) == 2

    def test_plot_load_displacement(self):
        results = [
            LoadStep(step=i, time=0.1 * (i + 1), dt=0.1, displacement=np.array([0.0, 0.1 * (i + 1)]),
                     damage=np.zeros(1), reaction=np.array([-1.0 * (i + 1), 1.0 * (i + 1)]),
                     converged=True, n_iterations=1)
            for i in range(3)
        ]
        ax = plot_load_displacement(results, dof=1, reaction_index=np.array([1]))
        line = ax.get_lines()[0]
        assert np.allclose(line.get_xdata(), [0.0, 0.1, 0.2, 0.3])
        assert np.allclose(line.get_ydata(), [0.0, 1.0, 2.0, 3.0])

    def test_plot_damage_profile(self):
        coords = np.array([[0.3, 0.0, 0.0], [0.1, 0.0, 0.0], [0.2, 0.0, 0.0]])
        ax = plot_damage_profile(coords, np.array([0.3, 0.1, 0.2]))
        line = ax.get_lines()[0]
        assert np.allclose(line.get_xdata(), [0.1, 0.2, 0.3])
        assert np.allclose(line.get_ydata(), [0.1, 0.2, 0.3])
