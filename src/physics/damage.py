"""
Damage Model
============

Damage law, damage-driving variable and damage range policy for the
nonlocal plastic-damage models.
"""

import logging
import numpy as np
from dataclasses import dataclass

from .errors import DamageOutOfRange
from .kelvin import kelvin_to_tensor

logger = logging.getLogger(__name__)

DAMAGE_POLICIES = ("clamp", "raise", "log")


@dataclass
class DamageProperties:
    """
    Parameters of the exponential damage law.

    Attributes:
        alpha_d: damage-driving scale α_d (> 0)
        beta_d: residual integrity β_d in [0, 1); d saturates at 1 - β_d
        h_d: brittleness reduction with confinement (≥ 0)
        m_d: overnonlocal factor γ in [0, 1]
        f_c: reference strength for the confinement ratio (> 0)
    """
    alpha_d: float
    beta_d: float
    h_d: float = 0.0
    m_d: float = 1.0
    f_c: float = 1.0

    def __post_init__(self):
        if self.alpha_d <= 0:
            raise ValueError(f"alpha_d must be positive, got {self.alpha_d}")
        if not 0 <= self.beta_d < 1:
            raise ValueError(f"beta_d must be in [0, 1), got {self.beta_d}")
        if self.h_d < 0:
            raise ValueError(f"h_d must be non-negative, got {self.h_d}")
        if not 0 <= self.m_d <= 1:
            raise ValueError(f"m_d (overnonlocal gamma) must be in [0, 1], got {self.m_d}")
        if self.f_c <= 0:
            raise ValueError(f"f_c must be positive, got {self.f_c}")


def damage_from_kappa(kappa_d, alpha_d: float, beta_d: float):
    """
    Exponential damage law.

        d = (1 - β_d) · (1 - exp(-κ_d / α_d))

    Args:
        kappa_d: damage-driving variable, scalar or array
        alpha_d: scale parameter
        beta_d: residual integrity

    Returns:
        d: damage, same shape as kappa_d
    """
    return (1.0 - beta_d) * (1.0 - np.exp(-np.asarray(kappa_d) / alpha_d))


def confinement_factor(sigma: np.ndarray, h_d: float, f_c: float) -> float:
    """
    Brittleness factor x_s from the confinement ratio.

    r_s = |principal stresses| / f_c, and

        x_s = 1                            r_s < 1
        x_s = 1 + h_d (r_s - 1)²           1 ≤ r_s ≤ 2
        x_s = 1 - 3 h_d + 4 h_d √(r_s - 1) r_s > 2

    Args:
        sigma: stress Kelvin vector
        h_d: brittleness reduction parameter
        f_c: reference strength

    Returns:
        x_s ≥ 1
    """
    principal = np.linalg.eigvalsh(kelvin_to_tensor(sigma))
    r_s = np.sqrt(np.sum(principal ** 2)) / f_c

    if r_s < 1:
        return 1.0
    if r_s <= 2:
        return 1.0 + h_d * (r_s - 1) ** 2
    return 1.0 - 3 * h_d + 4 * h_d * np.sqrt(r_s - 1)


def update_kappa_d(kappa_d_prev: float, eps_p_eff_increment: float,
                   sigma: np.ndarray, props: DamageProperties) -> float:
    """
    Damage-driving variable after a plastic increment.

        κ_d = κ_d,prev + Δε_p,eff / x_s
    """
    x_s = confinement_factor(sigma, props.h_d, props.f_c)
    return kappa_d_prev + eps_p_eff_increment / x_s


def enforce_damage_bounds(d: float, policy: str = "clamp", context: str = "") -> float:
    """
    Apply the damage range policy.

    Args:
        d: computed damage
        policy: 'clamp' (clip to [0, 1] and warn), 'raise' (DamageOutOfRange)
            or 'log' (report and keep the value)
        context: location string for messages

    Returns:
        damage to use
    """
    if 0.0 <= d <= 1.0:
        return d

    if policy == "clamp":
        clamped = min(max(d, 0.0), 1.0)
        logger.warning("Damage %g outside [0, 1] clamped to %g %s", d, clamped, context)
        return clamped
    elif policy == "raise":
        raise DamageOutOfRange(d, context)
    elif policy == "log":
        logger.error("Damage value %g outside of [0, 1] interval %s", d, context)
        return d
    else:
        raise ValueError(f"Unknown damage policy: {policy}")
