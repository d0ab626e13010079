"""
Tests for Elements Module
=========================
"""

import numpy as np
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from elements.shape_functions import (
    Tri3, Quad4, Hex8, shape_for_cell_type, compute_b_matrix,
)
from elements.integration_point import QuadraturePoint
from elements.nonlocal_element import SmallDeformationNonlocalElement
from physics.kelvin import SQRT2, tensor_to_kelvin
from physics.material import ElasticProperties
from physics.damage import DamageProperties
from physics.constitutive import (
    LinearElasticIsotropic, DruckerPragerParameters, DruckerPragerDamage,
)
from assembly.nonlocal_process import ProcessData


@pytest.fixture
def material():
    return DruckerPragerDamage(
        elastic=ElasticProperties(E=1000.0, nu=0.25),
        plastic=DruckerPragerParameters(yield_stress=1.0, hardening_modulus=100.0),
        damage=DamageProperties(alpha_d=0.01, beta_d=0.0),
    )


SHAPES = [Tri3(), Quad4(), Quad4(order=3), Hex8()]


class TestShapeFunctions:
    """Tests for isoparametric shape functions."""

    @pytest.mark.parametrize("shape", SHAPES)
    def test_partition_of_unity(self, shape):
        points, _ = shape.gauss_points()
        for xi in points:
            assert np.isclose(np.sum(shape.N(xi)), 1.0)
            assert np.allclose(np.sum(shape.dN_dxi(xi), axis=0), 0.0)

    @pytest.mark.parametrize("shape,volume", [
        (Tri3(), 0.5), (Quad4(), 4.0), (Quad4(order=1), 4.0), (Hex8(), 8.0),
    ])
    def test_gauss_weights(self, shape, volume):
        _, weights = shape.gauss_points()
        assert np.isclose(np.sum(weights), volume)

    def test_quad_rule_ordering(self):
        """x varies fastest."""
        points, _ = Quad4().gauss_points()
        assert points[0, 0] < points[1, 0]
        assert np.isclose(points[0, 1], points[1, 1])

    def test_kronecker_property(self):
        for shape in (Quad4(), Hex8()):
            for a, corner in enumerate(shape._corners):
                N = shape.N(corner)
                assert np.isclose(N[a], 1.0)
                assert np.isclose(np.sum(np.abs(N)), 1.0)

    def test_shape_for_cell_type(self):
        assert isinstance(shape_for_cell_type('triangle'), Tri3)
        assert shape_for_cell_type('quad', 3).n_integration_points == 9
        assert shape_for_cell_type('hexahedron').n_integration_points == 8
        with pytest.raises(ValueError):
            shape_for_cell_type('triangle', 2)
        with pytest.raises(ValueError):
            shape_for_cell_type('tetra')
        with pytest.raises(ValueError):
            Quad4(order=0)


class TestBMatrix:
    """Tests for the Kelvin strain-displacement matrix."""

    def test_linear_field_2d(self):
        """B u reproduces a homogeneous strain in Kelvin form."""
        grad = np.array([[1e-3, 4e-4], [2e-4, -5e-4]])
        eps_tensor = np.zeros((3, 3))
        eps_tensor[:2, :2] = 0.5 * (grad + grad.T)

        nodes = np.array([[0.0, 0.0], [2.0, 0.1], [1.8, 1.5], [-0.2, 1.2]])
        u = (nodes @ grad.T).ravel()

        shape = Quad4()
        xi = np.array([0.3, -0.2])
        dN_dxi = shape.dN_dxi(xi)
        dNdx = dN_dxi @ np.linalg.inv(nodes.T @ dN_dxi)
        B = compute_b_matrix(dNdx)

        assert B.shape == (4, 8)
        assert np.allclose(B @ u, tensor_to_kelvin(eps_tensor, 2))

    def test_linear_field_3d(self):
        rng = np.random.default_rng(1)
        grad = rng.uniform(-1e-3, 1e-3, (3, 3))
        eps_tensor = 0.5 * (grad + grad.T)

        shape = Hex8()
        nodes = 0.5 * shape._corners + 0.5
        u = (nodes @ grad.T).ravel()
        dN_dxi = shape.dN_dxi(np.zeros(3))
        dNdx = dN_dxi @ np.linalg.inv(nodes.T @ dN_dxi)
        B = compute_b_matrix(dNdx)

        assert B.shape == (6, 24)
        assert np.allclose(B @ u, tensor_to_kelvin(eps_tensor, 3))

    def test_shear_scaling(self):
        """Pure shear u_x = γ y gives Kelvin shear √2·γ/2."""
        dNdx = Tri3().dN_dxi(np.zeros(2))
        nodes = np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]])
        gamma = 0.01
        u = np.array([gamma * y if c == 0 else 0.0 for x, y in nodes for c in range(2)])
        assert np.allclose(compute_b_matrix(dNdx) @ u, [0, 0, 0, SQRT2 * gamma / 2])


class TestQuadraturePoint:
    """Tests for integration point data."""

    def test_create_and_commit(self, material):
        shape = Quad4()
        qp = QuadraturePoint.create([0.5, 0.5], shape.N(np.zeros(2)),
                                    np.zeros((4, 2)), np.zeros((4, 8)), 1.0, material)
        assert qp.position.shape == (3,)
        assert qp.material_state is not qp.material_state_prev

        qp.eps = np.array([1.0, 0.0, 0.0, 0.0])
        qp.sigma = np.array([2.0, 0.0, 0.0, 0.0])
        qp.damage = 0.3
        qp.material_state.kappa_d = 0.1

        qp.push_back_state()
        assert np.allclose(qp.eps_prev, qp.eps)
        assert qp.damage_prev == 0.3
        assert qp.material_state_prev.kappa_d == 0.1
        assert qp.material_state_prev is not qp.material_state

        # Idempotent
        qp.push_back_state()
        assert qp.material_state_prev.kappa_d == 0.1
        assert np.allclose(qp.sigma_prev, [2.0, 0.0, 0.0, 0.0])

    def test_invalid_weight(self, material):
        with pytest.raises(ValueError):
            QuadraturePoint.create([0.0, 0.0], np.ones(4) / 4, np.zeros((4, 2)),
                                   np.zeros((4, 8)), 0.0, material)


class TestElementConstruction:
    """Tests for element wiring."""

    def test_integration_points(self, material):
        coords = np.array([[0.0, 0.0], [2.0, 0.0], [2.0, 1.0], [0.0, 1.0]])
        elem = SmallDeformationNonlocalElement(3, coords, Quad4(), material,
                                               ProcessData(internal_length=1.0, thickness=0.5))
        assert elem.n_integration_points == 4
        assert elem.n_dofs == 8
        assert np.isclose(np.sum(elem.integration_weights()), 2.0 * 0.5)

        positions = elem.integration_point_coordinates()
        assert positions.shape == (4, 3)
        assert np.allclose(positions[:, 2], 0.0)
        assert np.allclose(positions.mean(axis=0), [1.0, 0.5, 0.0])

    def test_hex_weights_ignore_thickness(self, material):
        coords = 0.5 * Hex8()._corners + 0.5
        elem = SmallDeformationNonlocalElement(0, coords, Hex8(), material,
                                               ProcessData(internal_length=1.0, thickness=0.5))
        assert np.isclose(np.sum(elem.integration_weights()), 1.0)

    def test_material_without_damage_rejected(self):
        elastic = LinearElasticIsotropic(ElasticProperties(E=1.0, nu=0.2))
        coords = np.array([[0.0, 0.0], [1.0, 0.0], [0.0, 1.0]])
        with pytest.raises(TypeError):
            SmallDeformationNonlocalElement(0, coords, Tri3(), elastic,
                                            ProcessData(internal_length=1.0))

    def test_inverted_element_rejected(self, material):
        coords = np.array([[0.0, 0.0], [0.0, 1.0], [1.0, 0.0]])
        with pytest.raises(ValueError):
            SmallDeformationNonlocalElement(0, coords, Tri3(), material,
                                            ProcessData(internal_length=1.0))

    def test_wrong_coordinate_shape(self, material):
        with pytest.raises(ValueError):
            SmallDeformationNonlocalElement(0, np.zeros((3, 2)), Quad4(), material,
                                            ProcessData(internal_length=1.0))
