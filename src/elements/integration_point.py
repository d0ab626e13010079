"""
Integration Point Data
======================

Per-integration-point kinematics, stresses and history.
"""

import copy
import numpy as np
from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

from physics.kelvin import kelvin_size

if TYPE_CHECKING:
    from mesh.neighbor_graph import NeighborTable


@dataclass
class QuadraturePoint:
    """
    State of one integration point.

    Stresses come in two flavours: sigma is the undamaged stress returned
    by the constitutive model, sigma_damaged = (1 - damage)·sigma is the
    stress entering the residual. Committed values (*_prev) are written only
    by push_back_state().

    Attributes:
        position: physical position, shape (3,)
        N: shape function values, shape (n_nodes,)
        dNdx: physical gradients, shape (n_nodes, dim)
        B: Kelvin strain-displacement matrix
        integration_weight: w_gauss · detJ · thickness (> 0)
        eps, eps_prev: strain (Kelvin)
        sigma, sigma_prev: undamaged stress (Kelvin)
        sigma_damaged: damaged stress (Kelvin)
        C: consistent tangent
        damage, damage_prev: scalar damage
        kappa_d: local damage-driving variable
        nonlocal_kappa_d: blended nonlocal κ used for the damage update
        material_state: trial state of the current iterate
        material_state_prev: committed state
        neighbors: NeighborTable (set by the neighbor graph)
        active: κ is non-zero somewhere in the neighbourhood
    """
    position: np.ndarray
    N: np.ndarray
    dNdx: np.ndarray
    B: np.ndarray
    integration_weight: float
    eps: np.ndarray
    eps_prev: np.ndarray
    sigma: np.ndarray
    sigma_prev: np.ndarray
    sigma_damaged: np.ndarray
    C: np.ndarray
    damage: float = 0.0
    damage_prev: float = 0.0
    kappa_d: float = 0.0
    nonlocal_kappa_d: float = 0.0
    material_state: object = None
    material_state_prev: object = None
    neighbors: Optional['NeighborTable'] = None
    active: bool = False

    def __post_init__(self):
        if not self.integration_weight > 0:
            raise ValueError(f"Integration weight must be positive, got {self.integration_weight}")

    @classmethod
    def create(cls, position: np.ndarray, N: np.ndarray, dNdx: np.ndarray,
               B: np.ndarray, integration_weight: float, material) -> 'QuadraturePoint':
        """
        Zero-initialized point with a fresh material state.

        Args:
            position: physical position, 2 or 3 components
            N, dNdx, B: kinematics at the point
            integration_weight: quadrature weight
            material: ConstitutiveModel creating the state

        Returns:
            QuadraturePoint
        """
        dim = dNdx.shape[1]
        n = kelvin_size(dim)
        position = np.asarray(position, dtype=np.float64)
        if len(position) == 2:
            position = np.append(position, 0.0)

        state = material.create_state(dim)
        return cls(
            position=position, N=N, dNdx=dNdx, B=B,
            integration_weight=float(integration_weight),
            eps=np.zeros(n), eps_prev=np.zeros(n),
            sigma=np.zeros(n), sigma_prev=np.zeros(n),
            sigma_damaged=np.zeros(n),
            C=np.zeros((n, n)),
            material_state=copy.deepcopy(state),
            material_state_prev=state,
        )

    def push_back_state(self) -> None:
        """Commit the current iterate."""
        self.eps_prev = self.eps.copy()
        self.sigma_prev = self.sigma.copy()
        self.damage_prev = self.damage
        self.material_state_prev = copy.deepcopy(self.material_state)
