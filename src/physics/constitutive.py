"""
Constitutive Models
===================

Stress integration at a material point and the damage capability used by
the nonlocal assembly.

A model instance is shared by many integration points. All per-point
history lives in a state object created by the model; integrate_stress
never mutates the state it receives and returns a new one instead.

Shipped models:
    - LinearElasticIsotropic: Hooke's law, no damage
    - DruckerPragerDamage: pressure-dependent plasticity with linear
      hardening and non-associative flow, plus an exponential damage law
      driven by the effective plastic strain
"""

import logging
import numpy as np
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from .damage import DamageProperties, damage_from_kappa, update_kappa_d
from .errors import ConstitutiveIntegrationFailure
from .kelvin import (
    deviatoric,
    deviatoric_projection,
    equivalent_stress,
    identity2,
    trace,
)
from .material import ElasticProperties
from solvers.local_newton import NewtonRaphsonParameters, newton_raphson

logger = logging.getLogger(__name__)


@dataclass
class StressIntegrationResult:
    """
    Output of one stress integration.

    Attributes:
        sigma: stress Kelvin vector
        state: new material state
        C: consistent tangent dσ/dε, Kelvin matrix
    """
    sigma: np.ndarray
    state: object
    C: np.ndarray


class ConstitutiveModel(ABC):
    """Stress integration interface."""

    @abstractmethod
    def create_state(self, dim: int):
        """Fresh state for one integration point."""

    @abstractmethod
    def integrate_stress(self, t: float, x: np.ndarray, dt: float,
                         eps_prev: np.ndarray, eps: np.ndarray,
                         sigma_prev: np.ndarray, state) -> StressIntegrationResult:
        """
        Integrate the stress over one increment.

        Args:
            t: current time
            x: integration point position
            dt: time increment (>= 0)
            eps_prev: strain at the last committed state
            eps: trial strain
            sigma_prev: stress at the last committed state
            state: committed material state (not modified)

        Returns:
            StressIntegrationResult

        Raises:
            ConstitutiveIntegrationFailure: local solver failed
        """

    @abstractmethod
    def pack_state(self, state) -> np.ndarray:
        """Flatten a state for checkpoints."""

    @abstractmethod
    def unpack_state(self, data: np.ndarray, dim: int):
        """Inverse of pack_state."""


class NonlocalDamageCapability(ABC):
    """Damage interface required by the nonlocal element."""

    @abstractmethod
    def damage_driving_variable(self, state) -> float:
        """Local damage-driving variable κ_d stored in the state."""

    @abstractmethod
    def update_damage(self, t: float, x: np.ndarray, kappa: float, state) -> float:
        """
        Damage for a given (nonlocal) κ.

        Records the value in the trial state and returns it.
        """

    @abstractmethod
    def overnonlocal_gamma(self, t: float, x: np.ndarray) -> float:
        """Overnonlocal blending factor γ in [0, 1]."""

    @abstractmethod
    def set_damage_driving_variable(self, state, kappa: float) -> None:
        """Overwrite κ_d in a state (initial conditions, restarts)."""


def require_nonlocal_damage(model) -> NonlocalDamageCapability:
    """Return model if it offers the damage capability, raise TypeError otherwise."""
    if not isinstance(model, NonlocalDamageCapability):
        raise TypeError(
            f"{type(model).__name__} does not provide the nonlocal damage "
            f"capability required by the nonlocal element"
        )
    return model


def _check_dt(dt: float):
    """Reject negative increments. Zero after the first commit is rejected by the element."""
    if dt < 0:
        raise ValueError(f"Time increment must be non-negative, got {dt}")


# =============================================================================
# Linear elasticity
# =============================================================================

@dataclass
class ElasticState:
    """Linear elasticity carries no history."""

    def copy(self) -> 'ElasticState':
        return ElasticState()


class LinearElasticIsotropic(ConstitutiveModel):
    """
    Hooke's law in incremental form.

        σ = σ_prev + C (ε - ε_prev)
    """

    def __init__(self, elastic: ElasticProperties):
        self.elastic = elastic

    def create_state(self, dim: int) -> ElasticState:
        return ElasticState()

    def integrate_stress(self, t, x, dt, eps_prev, eps, sigma_prev, state):
        _check_dt(dt)
        dim = 2 if len(eps) == 4 else 3
        C = self.elastic.elasticity_matrix(dim)
        sigma = sigma_prev + C @ (eps - eps_prev)
        return StressIntegrationResult(sigma=sigma, state=state.copy(), C=C)

    def pack_state(self, state) -> np.ndarray:
        return np.zeros(0)

    def unpack_state(self, data, dim):
        return ElasticState()


# =============================================================================
# Drucker-Prager plasticity with damage
# =============================================================================

@dataclass
class DruckerPragerParameters:
    """
    Pressure-dependent yield surface with linear hardening.

        F = q + α I1 - (σ_y0 + H ε_p,eff)
        Q = q + β I1            (plastic potential)

    Attributes:
        yield_stress: initial yield stress σ_y0 (> 0)
        hardening_modulus: H (>= 0)
        alpha: friction parameter α (>= 0)
        beta: dilatancy parameter β (>= 0)
    """
    yield_stress: float
    hardening_modulus: float = 0.0
    alpha: float = 0.0
    beta: float = 0.0

    def __post_init__(self):
        if self.yield_stress <= 0:
            raise ValueError(f"yield_stress must be positive, got {self.yield_stress}")
        if self.hardening_modulus < 0:
            raise ValueError(f"hardening_modulus must be non-negative, got {self.hardening_modulus}")
        if self.alpha < 0 or self.beta < 0:
            raise ValueError(f"alpha and beta must be non-negative, got {self.alpha}, {self.beta}")


@dataclass
class PlasticDamageState:
    """
    History of a Drucker-Prager damage point.

    Attributes:
        eps_p_D: deviatoric plastic strain (Kelvin)
        eps_p_V: volumetric plastic strain tr(ε_p)
        eps_p_eff: effective plastic strain
        kappa_d: damage-driving variable
        damage: last damage computed for this state
    """
    eps_p_D: np.ndarray
    eps_p_V: float = 0.0
    eps_p_eff: float = 0.0
    kappa_d: float = 0.0
    damage: float = 0.0

    def copy(self) -> 'PlasticDamageState':
        return PlasticDamageState(
            eps_p_D=self.eps_p_D.copy(),
            eps_p_V=self.eps_p_V,
            eps_p_eff=self.eps_p_eff,
            kappa_d=self.kappa_d,
            damage=self.damage,
        )


class DruckerPragerDamage(ConstitutiveModel, NonlocalDamageCapability):
    """
    Drucker-Prager plasticity with exponential damage.

    The return mapping is solved for the unknowns

        x = [σ/G, ε_p^D, ε_p^V, ε_p^eff, Δλ]      (size 2n + 3)

    with the residuals

        R_σ   = σ/G - σ_prev/G - 2(P Δε - Δε_p^D) - K/G (tr Δε - Δε_p^V) I
        R_D   = Δε_p^D - Δλ n,        n = 3/2 s / q
        R_V   = Δε_p^V - 3 β Δλ
        R_eff = Δε_p^eff - Δλ
        R_F   = (q + α I1 - σ_y0 - H ε_p^eff) / G

    The consistent tangent is G (-J⁻¹ ∂R/∂ε)[:n].

    Attributes:
        elastic: ElasticProperties
        plastic: DruckerPragerParameters
        damage: DamageProperties
        newton: NewtonRaphsonParameters
    """

    def __init__(self, elastic: ElasticProperties,
                 plastic: DruckerPragerParameters,
                 damage: DamageProperties,
                 newton: Optional[NewtonRaphsonParameters] = None):
        self.elastic = elastic
        self.plastic = plastic
        self.damage = damage
        self.newton = newton if newton is not None else NewtonRaphsonParameters()

    # ---------------------------------------------------------------------
    # State handling
    # ---------------------------------------------------------------------

    def create_state(self, dim: int) -> PlasticDamageState:
        n = 4 if dim == 2 else 6
        return PlasticDamageState(eps_p_D=np.zeros(n))

    def pack_state(self, state: PlasticDamageState) -> np.ndarray:
        return np.concatenate([
            state.eps_p_D,
            [state.eps_p_V, state.eps_p_eff, state.kappa_d, state.damage],
        ])

    def unpack_state(self, data: np.ndarray, dim: int) -> PlasticDamageState:
        data = np.asarray(data, dtype=np.float64)
        n = 4 if dim == 2 else 6
        if len(data) != n + 4:
            raise ValueError(f"Packed state has wrong size: {len(data)} != {n + 4}")
        return PlasticDamageState(
            eps_p_D=data[:n].copy(),
            eps_p_V=float(data[n]),
            eps_p_eff=float(data[n + 1]),
            kappa_d=float(data[n + 2]),
            damage=float(data[n + 3]),
        )

    # ---------------------------------------------------------------------
    # Plasticity
    # ---------------------------------------------------------------------

    def yield_function(self, sigma: np.ndarray, eps_p_eff: float) -> float:
        """F = q + α I1 - (σ_y0 + H ε_p,eff)."""
        p = self.plastic
        return (equivalent_stress(sigma) + p.alpha * trace(sigma)
                - (p.yield_stress + p.hardening_modulus * eps_p_eff))

    def integrate_stress(self, t, x, dt, eps_prev, eps, sigma_prev, state):
        _check_dt(dt)
        eps = np.asarray(eps, dtype=np.float64)
        eps_prev = np.asarray(eps_prev, dtype=np.float64)
        sigma_prev = np.asarray(sigma_prev, dtype=np.float64)

        n = len(eps)
        dim = 2 if n == 4 else 3
        G = self.elastic.shear_modulus
        K = self.elastic.bulk_modulus
        P = deviatoric_projection(dim)
        I = identity2(dim)

        deps = eps - eps_prev
        sigma_trial = sigma_prev + 2 * G * (P @ deps) + K * trace(deps) * I

        if self.yield_function(sigma_trial, state.eps_p_eff) / G <= self.newton.residual_tol:
            return StressIntegrationResult(
                sigma=sigma_trial,
                state=state.copy(),
                C=self.elastic.elasticity_matrix(dim),
            )

        if equivalent_stress(sigma_trial) < self.newton.residual_tol * G:
            raise ConstitutiveIntegrationFailure(
                "Plastic step with vanishing deviatoric stress"
            )

        solution, jacobian = self._return_mapping(
            sigma_prev, sigma_trial, deps, state, G, K, P, I)

        # dR/dε is non-zero only in the stress block
        dR_deps = np.zeros((2 * n + 3, n))
        dR_deps[:n, :] = -2 * P - (K / G) * np.outer(I, I)
        dx_deps = np.linalg.solve(jacobian, -dR_deps)
        C = G * dx_deps[:n, :]

        sigma = G * solution[:n]
        new_state = PlasticDamageState(
            eps_p_D=solution[n:2 * n].copy(),
            eps_p_V=float(solution[2 * n]),
            eps_p_eff=float(solution[2 * n + 1]),
            damage=state.damage,
        )
        new_state.kappa_d = update_kappa_d(
            state.kappa_d, new_state.eps_p_eff - state.eps_p_eff, sigma, self.damage)

        return StressIntegrationResult(sigma=sigma, state=new_state, C=C)

    def _return_mapping(self, sigma_prev, sigma_trial, deps, state, G, K, P, I):
        """Local Newton iteration; returns converged unknowns and Jacobian."""
        n = len(deps)
        size = 2 * n + 3
        p = self.plastic
        ratio = K / G

        solution = np.zeros(size)
        solution[:n] = sigma_trial / G
        solution[n:2 * n] = state.eps_p_D
        solution[2 * n] = state.eps_p_V
        solution[2 * n + 1] = state.eps_p_eff

        y_prev = sigma_prev / G
        deps_D = P @ deps
        deps_V = trace(deps)

        def flow_direction(sigma):
            q = equivalent_stress(sigma)
            if q < self.newton.residual_tol * G:
                raise ConstitutiveIntegrationFailure(
                    "Plastic step with vanishing deviatoric stress"
                )
            return 1.5 * deviatoric(sigma) / q, q

        def update_residual(residual):
            y = solution[:n]
            eps_p_D = solution[n:2 * n]
            eps_p_V = solution[2 * n]
            eps_p_eff = solution[2 * n + 1]
            d_lambda = solution[2 * n + 2]
            sigma = G * y
            flow, q = flow_direction(sigma)

            residual[:n] = (y - y_prev
                            - 2 * (deps_D - (eps_p_D - state.eps_p_D))
                            - ratio * (deps_V - (eps_p_V - state.eps_p_V)) * I)
            residual[n:2 * n] = eps_p_D - state.eps_p_D - d_lambda * flow
            residual[2 * n] = eps_p_V - state.eps_p_V - 3 * p.beta * d_lambda
            residual[2 * n + 1] = eps_p_eff - state.eps_p_eff - d_lambda
            residual[2 * n + 2] = (q + p.alpha * trace(sigma) - p.yield_stress
                                   - p.hardening_modulus * eps_p_eff) / G

        def update_jacobian(jacobian):
            sigma = G * solution[:n]
            d_lambda = solution[2 * n + 2]
            flow, q = flow_direction(sigma)
            dflow_dsigma = (1.5 / q) * (P - (2.0 / 3.0) * np.outer(flow, flow))

            # R_σ
            jacobian[:n, :n] = np.eye(n)
            jacobian[:n, n:2 * n] = 2 * np.eye(n)
            jacobian[:n, 2 * n] = ratio * I
            # R_D
            jacobian[n:2 * n, :n] = -d_lambda * G * dflow_dsigma
            jacobian[n:2 * n, n:2 * n] = np.eye(n)
            jacobian[n:2 * n, 2 * n + 2] = -flow
            # R_V
            jacobian[2 * n, 2 * n] = 1.0
            jacobian[2 * n, 2 * n + 2] = -3 * p.beta
            # R_eff
            jacobian[2 * n + 1, 2 * n + 1] = 1.0
            jacobian[2 * n + 1, 2 * n + 2] = -1.0
            # R_F
            jacobian[2 * n + 2, :n] = flow + p.alpha * I
            jacobian[2 * n + 2, 2 * n + 1] = -p.hardening_modulus / G

        def update_solution(increment):
            solution[:] += increment

        iterations = newton_raphson(update_jacobian, update_residual,
                                    update_solution, size, self.newton)
        if iterations is None:
            raise ConstitutiveIntegrationFailure()

        logger.debug("Return mapping converged in %d iterations", iterations)

        jacobian = np.zeros((size, size))
        update_jacobian(jacobian)
        return solution, jacobian

    # ---------------------------------------------------------------------
    # Damage capability
    # ---------------------------------------------------------------------

    def damage_driving_variable(self, state: PlasticDamageState) -> float:
        return state.kappa_d

    def update_damage(self, t, x, kappa, state: PlasticDamageState) -> float:
        d = float(damage_from_kappa(kappa, self.damage.alpha_d, self.damage.beta_d))
        state.damage = d
        return d

    def overnonlocal_gamma(self, t, x) -> float:
        return self.damage.m_d

    def set_damage_driving_variable(self, state: PlasticDamageState, kappa: float) -> None:
        state.kappa_d = float(kappa)
