"""
Nonlocal Averaging
==================

Quartic averaging kernel, normalized weights and the overnonlocal blend.

For an integration point k with neighbours l inside the internal length L:

    α_0(d²)  = (1 - d²/L²)²     for d² ≤ L², else 0
    α_kl     = α_0(d²_kl) / Σ_m α_0(d²_km) w_m
    κ̄_k      = Σ_l α_kl w_l κ_l

The stored weights are α_kl·w_l, which sum to one (partition of unity).
"""

import logging
import numpy as np

from .errors import PartitionOfUnityViolation

logger = logging.getLogger(__name__)

POU_POLICIES = ("raise", "log", "off")


def alpha_0(d2, L2: float):
    """
    Quartic bell-shaped kernel.

    Args:
        d2: squared distance(s), scalar or array
        L2: squared internal length

    Returns:
        kernel values, same shape as d2
    """
    d2 = np.asarray(d2, dtype=np.float64)
    return np.where(d2 <= L2, (1.0 - d2 / L2) ** 2, 0.0)


def normalized_weights(d2: np.ndarray, w: np.ndarray, L2: float) -> np.ndarray:
    """
    Normalized averaging weights α_kl·w_l for one point k.

    Args:
        d2: squared distances to the neighbours, shape (n_neighbors,)
        w: integration weights of the neighbours, shape (n_neighbors,)
        L2: squared internal length

    Returns:
        alpha_kl_times_w_l, shape (n_neighbors,)
    """
    d2 = np.asarray(d2, dtype=np.float64)
    w = np.asarray(w, dtype=np.float64)
    if d2.shape != w.shape:
        raise ValueError(f"Distance and weight arrays differ in shape: {d2.shape} != {w.shape}")

    a0 = alpha_0(d2, L2)
    denominator = float(np.sum(a0 * w))
    if denominator <= 0:
        raise ValueError("Kernel normalization is zero; the point has no effective neighbours")
    return a0 * w / denominator


def nonlocal_average(weights: np.ndarray, values: np.ndarray) -> float:
    """κ̄ = Σ_l (α_kl w_l) κ_l."""
    return float(np.dot(weights, values))


def overnonlocal_blend(local: float, nonlocal_value: float, gamma: float) -> float:
    """
    Overnonlocal combination.

        κ = (1 - γ) κ_local + γ κ_nonlocal

    Args:
        local: local value
        nonlocal_value: averaged value
        gamma: overnonlocal factor in [0, 1]
    """
    if not 0.0 <= gamma <= 1.0:
        raise ValueError(f"Overnonlocal gamma must be in [0, 1], got {gamma}")
    return (1.0 - gamma) * local + gamma * nonlocal_value


def check_partition_of_unity(weights: np.ndarray, tol: float = 1e-12,
                             policy: str = "raise", context: str = "") -> float:
    """
    Verify Σ α_kl w_l = 1.

    Args:
        weights: normalized weights of one point
        tol: allowed absolute deviation from one
        policy: 'raise', 'log' or 'off'
        context: location string for messages

    Returns:
        the computed sum
    """
    if policy not in POU_POLICIES:
        raise ValueError(f"Unknown partition-of-unity policy: {policy}")

    total = float(np.sum(weights))
    if policy == "off" or abs(total - 1.0) <= tol:
        return total

    if policy == "raise":
        raise PartitionOfUnityViolation(total, context)
    logger.error("Partition of unity violated: sum %.17g, diff %.3e %s", total, total - 1.0, context)
    return total
