"""
Nonlocal Process
================

Orchestration of the two-phase nonlocal assembly over the element arena.

One global iterate:

    pre_assemble(t, u)   local stress integration in every element
    --- barrier ---      κ_d of all integration points is snapshotted,
                         stamped with the iterate number
    assemble(t, u)       nonlocal averaging, damage update, global
                         residual and Jacobian
"""

import logging
import numpy as np
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from scipy.sparse import csr_matrix
from typing import Callable, List, Optional, Tuple, TYPE_CHECKING

from elements.nonlocal_element import SmallDeformationNonlocalElement
from elements.shape_functions import shape_for_cell_type
from mesh.neighbor_graph import NeighborGraph
from mesh.spatial_query import IntegrationPointIndex
from physics.damage import DAMAGE_POLICIES
from physics.nonlocal_averaging import POU_POLICIES
from .global_assembly import (
    compute_element_average,
    element_dof_indices,
    scatter_matrices,
    scatter_vectors,
)

if TYPE_CHECKING:
    from mesh.fe_mesh import FEMesh
    from physics.constitutive import ConstitutiveModel

logger = logging.getLogger(__name__)


@dataclass
class ProcessData:
    """
    Configuration of the nonlocal process.

    Attributes:
        internal_length: nonlocal radius L (> 0)
        dt: current time increment (>= 0, zero only before the first commit)
        thickness: out-of-plane thickness for 2D meshes
        pou_tolerance: allowed deviation of Σ α_kl w_l from one
        pou_policy: 'raise', 'log' or 'off'
        damage_policy: 'clamp', 'raise' or 'log' for damage outside [0, 1]
        damaged_tangent: use (1 - d)·C in the Jacobian instead of C
        n_workers: threads for element loops (1 = serial)
    """
    internal_length: float
    dt: float = 0.0
    thickness: float = 1.0
    pou_tolerance: float = 1e-12
    pou_policy: str = "raise"
    damage_policy: str = "clamp"
    damaged_tangent: bool = False
    n_workers: int = 1

    def __post_init__(self):
        """Validate configuration."""
        if self.internal_length <= 0:
            raise ValueError(f"internal_length must be positive, got {self.internal_length}")
        if self.dt < 0:
            raise ValueError(f"dt must be non-negative, got {self.dt}")
        if self.thickness <= 0:
            raise ValueError(f"thickness must be positive, got {self.thickness}")
        if self.pou_tolerance < 0:
            raise ValueError(f"pou_tolerance must be non-negative, got {self.pou_tolerance}")
        if self.pou_policy not in POU_POLICIES:
            raise ValueError(f"pou_policy must be one of {POU_POLICIES}, got {self.pou_policy}")
        if self.damage_policy not in DAMAGE_POLICIES:
            raise ValueError(f"damage_policy must be one of {DAMAGE_POLICIES}, got {self.damage_policy}")
        if self.n_workers < 1:
            raise ValueError(f"n_workers must be >= 1, got {self.n_workers}")


class SmallDeformationNonlocalProcess:
    """
    Small-deformation mechanics with nonlocal damage on a whole mesh.

    Attributes:
        mesh: FEMesh instance
        material: constitutive model shared by all elements
        process_data: ProcessData
        elements: element arena, element_id == position in the list
        index: IntegrationPointIndex (after initialize())
        graph: NeighborGraph (after initialize())
    """

    def __init__(self, mesh: 'FEMesh', material: 'ConstitutiveModel',
                 process_data: ProcessData,
                 quadrature_order: Optional[int] = None):
        """
        Create elements for every mesh cell.

        Args:
            mesh: FEMesh instance
            material: constitutive model with the nonlocal damage capability
            process_data: ProcessData
            quadrature_order: Gauss order per direction (quad/hex)
        """
        if mesh.dim == 2 and mesh.thickness != process_data.thickness:
            logger.warning("Mesh thickness %g differs from process thickness %g; "
                           "using the process value", mesh.thickness, process_data.thickness)

        self.mesh = mesh
        self.material = material
        self.process_data = process_data

        shape = shape_for_cell_type(mesh.cell_type, quadrature_order)
        self.elements: List[SmallDeformationNonlocalElement] = [
            SmallDeformationNonlocalElement(e, mesh.element_coordinates(e), shape,
                                            material, process_data)
            for e in range(mesh.n_elements)
        ]
        self.dof_indices = element_dof_indices(mesh)

        self.index: Optional[IntegrationPointIndex] = None
        self.graph: Optional[NeighborGraph] = None

        self._iterate = 0
        self._kappa_snapshot: Optional[np.ndarray] = None
        self._snapshot_iterate = -1

        counts = np.array([e.n_integration_points for e in self.elements])
        self.ip_offsets = np.concatenate([[0], np.cumsum(counts)])

    @property
    def n_dofs(self) -> int:
        return self.mesh.n_dofs

    @property
    def n_integration_points(self) -> int:
        return int(self.ip_offsets[-1])

    @property
    def iterate(self) -> int:
        """Number of pre-assembly passes so far."""
        return self._iterate

    @property
    def kappa_d_snapshot(self) -> Optional[np.ndarray]:
        """κ_d per global id taken at the last barrier."""
        return self._kappa_snapshot

    # =========================================================================
    # Setup
    # =========================================================================

    def initialize(self) -> NeighborGraph:
        """
        Build the integration point index and the neighbour graph.

        Replaces any previous graph.

        Raises:
            DegenerateNeighborhood: a point has no neighbours
        """
        self.index = IntegrationPointIndex.from_elements(self.elements)
        self.graph = NeighborGraph.build(self.elements, self.process_data.internal_length,
                                         self.index)
        return self.graph

    def _require_initialized(self):
        if self.graph is None:
            raise RuntimeError("Process not initialized, call initialize() first")

    def _map(self, func: Callable, items: list) -> list:
        """Apply func to every item, in order, optionally threaded."""
        n_workers = self.process_data.n_workers
        if n_workers == 1:
            return [func(item) for item in items]
        with ThreadPoolExecutor(max_workers=n_workers) as pool:
            return list(pool.map(func, items))

    def _local(self, x: np.ndarray, elem: SmallDeformationNonlocalElement) -> np.ndarray:
        return x[self.dof_indices[elem.element_id]]

    # =========================================================================
    # Two-phase assembly
    # =========================================================================

    def pre_assemble(self, t: float, u: np.ndarray) -> None:
        """
        Phase 1 for all elements, followed by the κ_d snapshot.

        Args:
            t: current time
            u: global displacement vector

        Raises:
            ConstitutiveIntegrationFailure: from any element
        """
        self._require_initialized()
        u = np.asarray(u, dtype=np.float64)
        if len(u) != self.n_dofs:
            raise ValueError(f"u must have {self.n_dofs} components, got {len(u)}")

        self._iterate += 1
        self._kappa_snapshot = None

        self._map(lambda elem: elem.pre_assemble(t, self._local(u, elem)), self.elements)

        self._kappa_snapshot = np.concatenate([elem.get_kappa_d() for elem in self.elements])
        self._snapshot_iterate = self._iterate
        logger.debug("Iterate %d: pre-assembly done, max kappa_d = %g",
                     self._iterate, self._kappa_snapshot.max())

    def assemble(self, t: float, u: np.ndarray,
                 u_dot: Optional[np.ndarray] = None,
                 dxdot_dx: float = 0.0,
                 dx_dx: float = 1.0) -> Tuple[csr_matrix, np.ndarray]:
        """
        Phase 2 for all elements and global scatter.

        Args:
            t: current time
            u: global displacement vector (same as in pre_assemble)
            u_dot: global velocity vector (zeros if omitted)
            dxdot_dx, dx_dx: time discretization factors

        Returns:
            (J, b): global Jacobian (CSR) and residual vector b = -F_int
        """
        self._require_initialized()
        if self._kappa_snapshot is None or self._snapshot_iterate != self._iterate:
            raise RuntimeError("assemble() requires pre_assemble() of the same iterate")

        u = np.asarray(u, dtype=np.float64)
        if u_dot is None:
            u_dot = np.zeros_like(u)
        snapshot = self._kappa_snapshot

        results = self._map(
            lambda elem: elem.assemble_with_jacobian(
                t, self._local(u, elem), self._local(u_dot, elem),
                dxdot_dx, dx_dx, snapshot),
            self.elements,
        )

        b = scatter_vectors([r[0] for r in results], self.dof_indices, self.n_dofs)
        J = scatter_matrices([r[1] for r in results], self.dof_indices, self.n_dofs)
        return J, b

    def push_back_state(self) -> None:
        """Commit the current iterate in all elements."""
        for elem in self.elements:
            elem.push_back_state()

    # =========================================================================
    # Initial conditions and output
    # =========================================================================

    def set_initial_conditions(self, name: str, values: np.ndarray) -> None:
        """
        Integration point initial conditions for the whole mesh.

        Args:
            name: 'kappa_d_ip' (one value per integration point, global id
                order) or 'sigma_ip' (components per point, flattened)
            values: array-like
        """
        values = np.asarray(values, dtype=np.float64).ravel()
        n_per_point = len(values) // max(self.n_integration_points, 1)
        if n_per_point * self.n_integration_points != len(values):
            raise ValueError(
                f"{name} has {len(values)} values for {self.n_integration_points} "
                f"integration points"
            )
        for elem in self.elements:
            start, stop = self.ip_offsets[elem.element_id], self.ip_offsets[elem.element_id + 1]
            elem.set_initial_conditions(name, values[start * n_per_point:stop * n_per_point])

    def integration_point_field(self, name: str) -> np.ndarray:
        """
        Integration point output of all elements.

        Scalars have shape (n_ip,), tensors (n_ip, n_components).
        """
        values = np.concatenate([elem.integration_point_values(name) for elem in self.elements])
        n_per_point = len(values) // self.n_integration_points
        if n_per_point == 1:
            return values
        return values.reshape(self.n_integration_points, n_per_point)

    def integration_point_coordinates(self) -> np.ndarray:
        """Positions of all integration points, shape (n_ip, 3)."""
        return np.vstack([elem.integration_point_coordinates() for elem in self.elements])

    def element_field(self, name: str) -> np.ndarray:
        """Integration-weighted element average of a scalar output."""
        weights = np.concatenate([elem.integration_weights() for elem in self.elements])
        return compute_element_average(self.integration_point_field(name), weights,
                                       self.ip_offsets)

    def nodal_forces(self, u: np.ndarray) -> np.ndarray:
        """Global internal force vector Σ Bᵀ σ_d w from the last assembly."""
        u = np.asarray(u, dtype=np.float64)
        forces = [elem.nodal_forces(self._local(u, elem)) for elem in self.elements]
        return scatter_vectors(forces, self.dof_indices, self.n_dofs)

    # =========================================================================
    # Checkpoints
    # =========================================================================

    def save_checkpoint(self, filename: str, t: float = 0.0,
                        u: Optional[np.ndarray] = None) -> None:
        """
        Write committed integration point data to a .npz file.

        Args:
            filename: output path
            t: time of the committed state
            u: committed displacement vector
        """
        per_element = [elem.write_integration_point_data() for elem in self.elements]
        arrays = {key: np.concatenate([d[key] for d in per_element])
                  for key in per_element[0]}
        np.savez(
            filename,
            t=np.float64(t),
            u=np.zeros(self.n_dofs) if u is None else np.asarray(u, dtype=np.float64),
            ip_offsets=self.ip_offsets,
            **arrays,
        )
        logger.info("Checkpoint written to %s (t = %g)", filename, t)

    def load_checkpoint(self, filename: str) -> Tuple[float, np.ndarray]:
        """
        Restore committed state written by save_checkpoint.

        The neighbour graph is rebuilt from the mesh.

        Returns:
            (t, u) stored with the checkpoint
        """
        with np.load(filename) as data:
            if not np.array_equal(data["ip_offsets"], self.ip_offsets):
                raise ValueError(f"Checkpoint {filename} does not match the mesh")

            for elem in self.elements:
                sl = slice(self.ip_offsets[elem.element_id],
                           self.ip_offsets[elem.element_id + 1])
                elem.read_integration_point_data({
                    key: data[key][sl]
                    for key in ("eps_prev", "sigma_prev", "damage_prev", "kappa_d",
                                "nonlocal_kappa_d", "material_state")
                })
            t = float(data["t"])
            u = np.array(data["u"])

        self.initialize()
        self._kappa_snapshot = None
        logger.info("Checkpoint read from %s (t = %g)", filename, t)
        return t, u
