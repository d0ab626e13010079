"""
Local Newton-Raphson
====================

Small dense Newton-Raphson solver used inside constitutive models.
"""

import numpy as np
from dataclasses import dataclass
from typing import Callable, Optional


@dataclass
class NewtonRaphsonParameters:
    """
    Local Newton settings.

    Attributes:
        max_iter: maximum number of iterations
        residual_tol: absolute tolerance on ||R||
    """
    max_iter: int = 100
    residual_tol: float = 1e-10

    def __post_init__(self):
        if self.max_iter < 1:
            raise ValueError(f"max_iter must be >= 1, got {self.max_iter}")
        if self.residual_tol <= 0:
            raise ValueError(f"residual_tol must be positive, got {self.residual_tol}")


def newton_raphson(update_jacobian: Callable[[np.ndarray], None],
                   update_residual: Callable[[np.ndarray], None],
                   update_solution: Callable[[np.ndarray], None],
                   size: int,
                   params: Optional[NewtonRaphsonParameters] = None) -> Optional[int]:
    """
    Solve R(x) = 0 by Newton-Raphson.

    The callables own the unknowns. update_residual and update_jacobian fill
    the passed arrays in place for the current x; update_solution receives
    the increment δx = -J⁻¹R and applies it.

    Args:
        update_jacobian: fills J, shape (size, size)
        update_residual: fills R, shape (size,)
        update_solution: applies δx
        size: number of unknowns
        params: NewtonRaphsonParameters

    Returns:
        number of iterations on convergence, None otherwise
    """
    if params is None:
        params = NewtonRaphsonParameters()

    jacobian = np.zeros((size, size))
    residual = np.zeros(size)

    for iteration in range(params.max_iter):
        residual[:] = 0.0
        update_residual(residual)
        if np.linalg.norm(residual) < params.residual_tol:
            return iteration

        jacobian[:] = 0.0
        update_jacobian(jacobian)
        try:
            increment = np.linalg.solve(jacobian, -residual)
        except np.linalg.LinAlgError:
            return None
        if not np.all(np.isfinite(increment)):
            return None
        update_solution(increment)

    residual[:] = 0.0
    update_residual(residual)
    if np.linalg.norm(residual) < params.residual_tol:
        return params.max_iter
    return None
