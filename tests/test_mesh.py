"""
Tests for Mesh Module
=====================
"""

import numpy as np
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from mesh.fe_mesh import FEMesh
from mesh.mesh_generators import (
    create_rectangle_mesh, create_box_mesh, create_bar_mesh,
    create_single_element, perturb_interior_nodes,
)
from mesh.mesh_io import read_mesh, write_vtu


def signed_area(mesh, e):
    """Shoelace area of a 2D element."""
    xy = mesh.element_coordinates(e)
    x, y = xy[:, 0], xy[:, 1]
    return 0.5 * np.sum(x * np.roll(y, -1) - np.roll(x, -1) * y)


class TestMeshGenerators:
    """Tests for mesh generation."""

    def test_rectangle_quad(self):
        mesh = create_rectangle_mesh(2.0, 1.0, 4, 2)
        assert mesh.cell_type == 'quad'
        assert mesh.n_nodes == 15
        assert mesh.n_elements == 8
        assert mesh.n_dofs == 30
        lo, hi = mesh.bounding_box()
        assert np.allclose(lo, [0.0, 0.0])
        assert np.allclose(hi, [2.0, 1.0])

    @pytest.mark.parametrize("pattern", ['right', 'left'])
    def test_rectangle_triangle_counterclockwise(self, pattern):
        mesh = create_rectangle_mesh(1.0, 1.0, 3, 3, cell_type='triangle', pattern=pattern)
        assert mesh.n_elements == 18
        areas = [signed_area(mesh, e) for e in range(mesh.n_elements)]
        assert np.all(np.array(areas) > 0)
        assert np.isclose(np.sum(areas), 1.0)

    def test_rectangle_invalid(self):
        with pytest.raises(ValueError):
            create_rectangle_mesh(1.0, 1.0, 0, 1)
        with pytest.raises(ValueError):
            create_rectangle_mesh(1.0, 1.0, 1, 1, cell_type='hexahedron')
        with pytest.raises(ValueError):
            create_rectangle_mesh(1.0, 1.0, 1, 1, cell_type='triangle', pattern='up')

    def test_box_mesh(self):
        mesh = create_box_mesh(1.0, 2.0, 3.0, 2, 2, 3)
        assert mesh.dim == 3
        assert mesh.n_nodes == 3 * 3 * 4
        assert mesh.n_elements == 12
        assert mesh.n_dofs == 3 * mesh.n_nodes

    def test_bar_mesh(self):
        mesh = create_bar_mesh(10.0, 1.0, 5)
        assert mesh.n_elements == 5
        assert np.isclose(mesh.nodes[:, 0].max(), 10.0)

    def test_single_elements(self):
        assert create_single_element('triangle').n_nodes == 3
        assert create_single_element('quad').n_nodes == 4
        assert create_single_element('hexahedron').n_nodes == 8
        with pytest.raises(ValueError):
            create_single_element('tetra')

    def test_perturb_keeps_boundary(self):
        mesh = create_rectangle_mesh(1.0, 1.0, 4, 4)
        perturbed = perturb_interior_nodes(mesh, magnitude=0.1, seed=42)
        on_boundary = ((np.isclose(mesh.nodes, 0.0) | np.isclose(mesh.nodes, 1.0))
                       .any(axis=1))
        assert np.allclose(perturbed.nodes[on_boundary], mesh.nodes[on_boundary])
        assert not np.allclose(perturbed.nodes[~on_boundary], mesh.nodes[~on_boundary])
        # Reproducible
        again = perturb_interior_nodes(mesh, magnitude=0.1, seed=42)
        assert np.allclose(perturbed.nodes, again.nodes)


class TestFEMesh:
    """Tests for the FEMesh container."""

    def test_validation(self):
        nodes = np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]])
        with pytest.raises(ValueError):
            FEMesh(nodes, [[0, 1, 2]], 'tetra')
        with pytest.raises(ValueError):
            FEMesh(nodes, [[0, 1, 3]], 'triangle')
        with pytest.raises(ValueError):
            FEMesh(nodes, [[0, 1, 2, 0]], 'triangle')
        with pytest.raises(ValueError):
            FEMesh(nodes, [[0, 1, 2]], 'triangle', thickness=0.0)

    def test_element_dofs_node_major(self):
        mesh = create_rectangle_mesh(1.0, 1.0, 1, 1)
        assert np.array_equal(mesh.element_dofs(0), [0, 1, 2, 3, 6, 7, 4, 5])

        mesh3d = create_single_element('hexahedron')
        dofs = mesh3d.element_dofs(0)
        assert len(dofs) == 24
        assert np.array_equal(dofs[:6], [0, 1, 2, 3, 4, 5])

    def test_nodes_in_region(self):
        mesh = create_rectangle_mesh(2.0, 1.0, 4, 2)
        left = mesh.get_nodes_in_region(lambda x, y: x < 1e-10)
        assert len(left) == 3
        assert np.allclose(mesh.nodes[left, 0], 0.0)

        mesh3d = create_box_mesh(1.0, 1.0, 1.0, 2, 2, 2)
        top = mesh3d.get_nodes_in_region(lambda x, y, z: z > 1 - 1e-10)
        assert len(top) == 9

    def test_repr(self):
        assert "quad" in repr(create_single_element('quad'))


class TestMeshIO:
    """Tests for meshio based I/O."""

    def test_vtu_roundtrip_2d(self, tmp_path):
        mesh = create_rectangle_mesh(1.0, 0.5, 3, 2)
        filename = str(tmp_path / "mesh.vtu")
        write_vtu(filename, mesh,
                  point_data={"displacement": np.zeros((mesh.n_nodes, 2))},
                  cell_data={"damage": np.linspace(0, 1, mesh.n_elements)})

        restored = read_mesh(filename)
        assert restored.cell_type == 'quad'
        assert restored.dim == 2
        assert np.allclose(restored.nodes, mesh.nodes)
        assert np.array_equal(restored.elements, mesh.elements)

    def test_vtu_roundtrip_3d(self, tmp_path):
        mesh = create_box_mesh(1.0, 1.0, 2.0, 1, 1, 2)
        filename = str(tmp_path / "box.vtu")
        write_vtu(filename, mesh)

        restored = read_mesh(filename, cell_type='hexahedron')
        assert restored.dim == 3
        assert np.array_equal(restored.elements, mesh.elements)

    def test_missing_cell_type(self, tmp_path):
        mesh = create_rectangle_mesh(1.0, 1.0, 1, 1)
        filename = str(tmp_path / "quad.vtu")
        write_vtu(filename, mesh)
        with pytest.raises(ValueError):
            read_mesh(filename, cell_type='triangle')
        with pytest.raises(ValueError):
            read_mesh(filename, cell_type='wedge')
