"""
Nonlocal Small-Deformation Element
==================================

Element-local assembly for small-strain mechanics with nonlocal damage.

Assembly of one global iterate runs in two phases:

    1. pre_assemble: strain and local stress integration at every point,
       yielding the local damage-driving variable κ_d
    2. assemble_with_jacobian: after ALL elements finished phase 1, κ_d is
       averaged over each point's neighbourhood, damage is updated and the
       residual and Jacobian are formed

Phase 2 reads neighbour values only from the κ_d snapshot passed in, never
from other elements directly.
"""

import logging
import numpy as np
from typing import Dict, List, Optional, TYPE_CHECKING

from physics.constitutive import ConstitutiveModel, require_nonlocal_damage
from physics.damage import enforce_damage_bounds
from physics.errors import ConstitutiveIntegrationFailure
from physics.kelvin import components_to_kelvin, kelvin_size, kelvin_to_components
from physics.nonlocal_averaging import (
    check_partition_of_unity,
    nonlocal_average,
    overnonlocal_blend,
)
from mesh.neighbor_graph import build_neighbor_table
from mesh.spatial_query import IntegrationPointIndex
from .integration_point import QuadraturePoint
from .shape_functions import ShapeFunction, compute_b_matrix

if TYPE_CHECKING:
    from assembly.nonlocal_process import ProcessData

logger = logging.getLogger(__name__)

SCALAR_OUTPUTS = ("damage", "kappa_d", "nonlocal_kappa_d")


class SmallDeformationNonlocalElement:
    """
    Isoparametric element with nonlocal integral-type damage.

    Attributes:
        element_id: index of the element in the arena
        node_coords: shape (n_nodes, dim)
        shape: ShapeFunction family
        material: constitutive model with the damage capability
        process_data: ProcessData (shared configuration)
        dim: displacement dimension
        ip_data: list of QuadraturePoint
    """

    def __init__(self, element_id: int, node_coords: np.ndarray,
                 shape: ShapeFunction, material: ConstitutiveModel,
                 process_data: 'ProcessData'):
        """
        Initialize element and its integration points.

        Args:
            element_id: element index
            node_coords: shape (n_nodes, dim), node coordinates
            shape: shape function family matching the cell
            material: constitutive model offering NonlocalDamageCapability
            process_data: ProcessData

        Raises:
            TypeError: material lacks the damage capability
            ValueError: bad geometry (non-positive Jacobian)
        """
        self.element_id = element_id
        self.node_coords = np.asarray(node_coords, dtype=np.float64)
        self.shape = shape
        self.material = material
        self.damage_model = require_nonlocal_damage(material)
        self.process_data = process_data
        self.has_committed = False

        if self.node_coords.shape != (shape.n_nodes, shape.dim):
            raise ValueError(
                f"node_coords must have shape ({shape.n_nodes}, {shape.dim}), "
                f"got {self.node_coords.shape}"
            )
        self.dim = shape.dim
        self.n_dofs = self.dim * shape.n_nodes
        self.ip_data = self._create_integration_points()

    def _create_integration_points(self) -> List[QuadraturePoint]:
        """Evaluate kinematics at every Gauss point."""
        points, weights = self.shape.gauss_points()
        thickness = self.process_data.thickness if self.dim == 2 else 1.0

        ip_data = []
        for ip, (xi, w) in enumerate(zip(points, weights)):
            N = self.shape.N(xi)
            dN_dxi = self.shape.dN_dxi(xi)
            # J_ij = ∂x_i/∂ξ_j
            J = self.node_coords.T @ dN_dxi
            detJ = np.linalg.det(J)
            if detJ <= 0:
                raise ValueError(
                    f"Element {self.element_id} has non-positive Jacobian "
                    f"determinant {detJ:g} at integration point {ip}"
                )
            dNdx = dN_dxi @ np.linalg.inv(J)
            ip_data.append(QuadraturePoint.create(
                position=N @ self.node_coords,
                N=N,
                dNdx=dNdx,
                B=compute_b_matrix(dNdx),
                integration_weight=w * detJ * thickness,
                material=self.material,
            ))
        return ip_data

    @property
    def n_integration_points(self) -> int:
        return len(self.ip_data)

    # =========================================================================
    # Phase 1: local constitutive update
    # =========================================================================

    def pre_assemble(self, t: float, local_x: np.ndarray) -> None:
        """
        Local stress integration at every integration point.

        Writes eps, sigma, C, the trial material state and κ_d. Committed
        values are left untouched.

        Args:
            t: current time
            local_x: element displacement vector, shape (n_dofs,)

        Raises:
            ConstitutiveIntegrationFailure: with element/ip context
            ValueError: wrong local vector size, or dt == 0 after a committed step
        """
        local_x = np.asarray(local_x, dtype=np.float64)
        if len(local_x) != self.n_dofs:
            raise ValueError(f"local_x must have {self.n_dofs} components, got {len(local_x)}")

        dt = self.process_data.dt
        if dt == 0 and self.has_committed:
            raise ValueError("dt must be positive once a step has been committed")
        for ip, qp in enumerate(self.ip_data):
            eps = qp.B @ local_x
            try:
                result = self.material.integrate_stress(
                    t, qp.position, dt, qp.eps_prev, eps, qp.sigma_prev,
                    qp.material_state_prev)
            except ConstitutiveIntegrationFailure as exc:
                raise ConstitutiveIntegrationFailure(
                    element_id=self.element_id, ip=ip) from exc

            qp.eps = eps
            qp.sigma = result.sigma
            qp.C = result.C
            qp.material_state = result.state
            qp.kappa_d = self.damage_model.damage_driving_variable(result.state)

    # =========================================================================
    # Neighbourhood
    # =========================================================================

    def build_nonlocal_neighbors(self, elements: List['SmallDeformationNonlocalElement'],
                                 index: Optional[IntegrationPointIndex] = None) -> None:
        """
        Build the neighbour table of every integration point.

        Args:
            elements: full element arena
            index: arena index (built from elements if omitted)

        Raises:
            DegenerateNeighborhood: a point has no neighbours
        """
        if index is None:
            index = IntegrationPointIndex.from_elements(elements)

        L = self.process_data.internal_length
        for ip, qp in enumerate(self.ip_data):
            qp.neighbors = build_neighbor_table(qp.position, index, L,
                                                self.element_id, ip)

    # =========================================================================
    # Phase 2: nonlocal damage, residual and Jacobian
    # =========================================================================

    def assemble_with_jacobian(self, t: float, local_x: np.ndarray,
                               local_xdot: np.ndarray, dxdot_dx: float,
                               dx_dx: float, kappa_d_field: np.ndarray):
        """
        Element residual and Jacobian.

        local_xdot, dxdot_dx and dx_dx are part of the assembler interface
        and do not enter the quasi-static equations.

        Args:
            t: current time
            local_x: element displacement vector
            local_xdot: element velocity vector
            dxdot_dx, dx_dx: time discretization factors
            kappa_d_field: κ_d of every arena point from the current
                iterate, indexed by global id

        Returns:
            (local_b, local_Jac): shapes (n_dofs,) and (n_dofs, n_dofs)
        """
        pd = self.process_data
        kappa_d_field = np.asarray(kappa_d_field, dtype=np.float64)

        b_contributions = np.zeros((self.n_integration_points, self.n_dofs))
        J_contributions = np.zeros((self.n_integration_points, self.n_dofs, self.n_dofs))

        for ip, qp in enumerate(self.ip_data):
            table = qp.neighbors
            if table is None:
                raise RuntimeError(
                    f"Element {self.element_id}: neighbour tables missing, "
                    f"build the neighbor graph before assembly"
                )
            context = f"element {self.element_id}, integration point {ip}"

            weights = table.alpha_kl_times_w_l
            check_partition_of_unity(weights, pd.pou_tolerance, pd.pou_policy, context)

            neighbor_kappa = kappa_d_field[table.global_ids]
            if not qp.active:
                qp.active = qp.kappa_d != 0 or bool(np.any(neighbor_kappa != 0))

            if qp.active:
                kappa_avg = nonlocal_average(weights, neighbor_kappa)
                gamma = self.damage_model.overnonlocal_gamma(t, qp.position)
                kappa = overnonlocal_blend(qp.kappa_d, kappa_avg, gamma)
                if kappa < 0:
                    logger.warning("Nonlocal kappa_d %g set to zero (%s)", kappa, context)
                    kappa = 0.0
            else:
                kappa = 0.0
            qp.nonlocal_kappa_d = kappa

            damage = self.damage_model.update_damage(t, qp.position, kappa,
                                                     qp.material_state)
            qp.damage = enforce_damage_bounds(damage, pd.damage_policy, context)

            qp.sigma_damaged = (1.0 - qp.damage) * qp.sigma
            w = qp.integration_weight
            C = (1.0 - qp.damage) * qp.C if pd.damaged_tangent else qp.C

            b_contributions[ip] = -(qp.B.T @ qp.sigma_damaged) * w
            J_contributions[ip] = qp.B.T @ C @ qp.B * w

        return b_contributions.sum(axis=0), J_contributions.sum(axis=0)

    # =========================================================================
    # State handling
    # =========================================================================

    def push_back_state(self) -> None:
        """Commit the current iterate at every integration point."""
        for qp in self.ip_data:
            qp.push_back_state()
        self.has_committed = True

    def set_initial_conditions(self, name: str, values) -> int:
        """
        Set integration point initial conditions.

        Args:
            name: 'kappa_d_ip' (one value per point, or a single cell value)
                or 'sigma_ip' (stress components xx, yy, zz, xy[, xz, yz]
                per point, flattened)
            values: array-like

        Returns:
            number of integration points written
        """
        values = np.atleast_1d(np.asarray(values, dtype=np.float64))
        n_ip = self.n_integration_points

        if name == "kappa_d_ip":
            if len(values) == 1:
                values = np.full(n_ip, values[0])
            elif len(values) != n_ip:
                raise ValueError(
                    f"kappa_d initial condition has wrong number of values: "
                    f"{len(values)} != {n_ip}"
                )
            for qp, kappa in zip(self.ip_data, values):
                qp.kappa_d = kappa
                self.damage_model.set_damage_driving_variable(qp.material_state_prev, kappa)
                self.damage_model.set_damage_driving_variable(qp.material_state, kappa)
            return n_ip

        elif name == "sigma_ip":
            n = kelvin_size(self.dim)
            if len(values) != n_ip * n:
                raise ValueError(
                    f"sigma initial condition has wrong number of values: "
                    f"{len(values)} != {n_ip * n}"
                )
            for qp, components in zip(self.ip_data, values.reshape(n_ip, n)):
                sigma = components_to_kelvin(components)
                qp.sigma = sigma.copy()
                qp.sigma_prev = sigma.copy()
                qp.sigma_damaged = (1.0 - qp.damage) * sigma
            return n_ip

        raise ValueError(f"Unknown integration point initial condition: {name}")

    def get_kappa_d(self) -> np.ndarray:
        """Local κ_d of every integration point, shape (n_ip,)."""
        return np.array([qp.kappa_d for qp in self.ip_data])

    def write_integration_point_data(self) -> Dict[str, np.ndarray]:
        """
        Committed integration point data for checkpoints.

        Returns:
            dict of arrays with first axis n_ip
        """
        return {
            "eps_prev": np.array([qp.eps_prev for qp in self.ip_data]),
            "sigma_prev": np.array([qp.sigma_prev for qp in self.ip_data]),
            "damage_prev": np.array([qp.damage_prev for qp in self.ip_data]),
            "kappa_d": np.array([
                self.damage_model.damage_driving_variable(qp.material_state_prev)
                for qp in self.ip_data
            ]),
            "nonlocal_kappa_d": np.array([qp.nonlocal_kappa_d for qp in self.ip_data]),
            "material_state": np.array([
                self.material.pack_state(qp.material_state_prev) for qp in self.ip_data
            ]),
        }

    def read_integration_point_data(self, data: Dict[str, np.ndarray]) -> None:
        """
        Restore committed data written by write_integration_point_data.

        Trial values are reset to the committed ones.
        """
        n_ip = self.n_integration_points
        for key in ("eps_prev", "sigma_prev", "damage_prev", "kappa_d",
                    "nonlocal_kappa_d", "material_state"):
            if key not in data:
                raise KeyError(f"Integration point data lacks '{key}'")
            if len(data[key]) != n_ip:
                raise ValueError(
                    f"Integration point data '{key}' has {len(data[key])} "
                    f"entries, element has {n_ip}"
                )

        for ip, qp in enumerate(self.ip_data):
            qp.eps_prev = np.array(data["eps_prev"][ip], dtype=np.float64)
            qp.eps = qp.eps_prev.copy()
            qp.sigma_prev = np.array(data["sigma_prev"][ip], dtype=np.float64)
            qp.sigma = qp.sigma_prev.copy()
            qp.damage_prev = float(data["damage_prev"][ip])
            qp.damage = qp.damage_prev
            qp.sigma_damaged = (1.0 - qp.damage) * qp.sigma
            qp.kappa_d = float(data["kappa_d"][ip])
            qp.nonlocal_kappa_d = float(data["nonlocal_kappa_d"][ip])
            qp.material_state_prev = self.material.unpack_state(data["material_state"][ip], self.dim)
            qp.material_state = self.material.unpack_state(data["material_state"][ip], self.dim)
            qp.active = qp.kappa_d != 0
        self.has_committed = True

    # =========================================================================
    # Output
    # =========================================================================

    def integration_point_values(self, name: str) -> np.ndarray:
        """
        Integration point output, flattened per point.

        Tensors are returned as components xx, yy, zz, xy[, xz, yz]
        (shear as tensor component, not Kelvin).

        Args:
            name: 'sigma' (damaged stress), 'sigma_effective' (undamaged),
                'epsilon', 'damage', 'kappa_d' or 'nonlocal_kappa_d'

        Returns:
            values: shape (n_ip * n_components,)
        """
        if name == "sigma":
            return np.concatenate([kelvin_to_components(qp.sigma_damaged) for qp in self.ip_data])
        elif name == "sigma_effective":
            return np.concatenate([kelvin_to_components(qp.sigma) for qp in self.ip_data])
        elif name == "epsilon":
            return np.concatenate([kelvin_to_components(qp.eps) for qp in self.ip_data])
        elif name in SCALAR_OUTPUTS:
            return np.array([getattr(qp, name) for qp in self.ip_data])
        raise ValueError(f"Unknown integration point output: {name}")

    def integration_point_coordinates(self) -> np.ndarray:
        """Positions of the integration points, shape (n_ip, 3)."""
        return np.array([qp.position for qp in self.ip_data])

    def integration_weights(self) -> np.ndarray:
        """Integration weights, shape (n_ip,)."""
        return np.array([qp.integration_weight for qp in self.ip_data])

    def nodal_forces(self, local_x: np.ndarray) -> np.ndarray:
        """
        Internal nodal forces Σ Bᵀ σ_d w from the last assembly.

        Args:
            local_x: element displacement vector (sets the output size)

        Returns:
            forces: shape (n_dofs,)
        """
        forces = np.zeros_like(np.asarray(local_x, dtype=np.float64))
        for qp in self.ip_data:
            forces += qp.B.T @ qp.sigma_damaged * qp.integration_weight
        return forces
