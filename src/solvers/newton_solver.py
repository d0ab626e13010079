"""
Nonlocal Newton Solver
======================

Incremental-iterative solution of the quasi-static nonlocal damage problem.

Per time step:
    Until the residual is small:
        1. pre_assemble all elements (local stress integration)
        2. barrier: snapshot κ_d
        3. assemble residual and Jacobian with nonlocal damage
        4. apply Dirichlet conditions, solve for the increment
    Commit the state.

A failed local integration or a non-converging Newton loop halves the time
step and restarts from the last committed state.
"""

import logging
import numpy as np
from dataclasses import dataclass
from scipy.sparse.linalg import spsolve
from typing import Callable, List, Optional, Tuple, TYPE_CHECKING

from physics.errors import ConstitutiveIntegrationFailure, NonlocalDamageError

if TYPE_CHECKING:
    from assembly.nonlocal_process import SmallDeformationNonlocalProcess

logger = logging.getLogger(__name__)


@dataclass
class SolverConfig:
    """Configuration for the global Newton solver."""
    tol_residual: float = 1e-8   # Residual norm relative to force scale
    atol_residual: float = 1e-10  # Absolute residual floor
    tol_du: float = 1e-12        # Increment norm relative to |u|
    max_iter: int = 25           # Newton iterations per step
    min_dt: float = 1e-8         # Smallest admissible time step
    max_dt_halvings: int = 12    # Halvings before giving up on a step
    verbose: bool = True         # Print convergence info

    def __post_init__(self):
        if self.max_iter < 1:
            raise ValueError(f"max_iter must be >= 1, got {self.max_iter}")
        if self.tol_residual <= 0 or self.atol_residual < 0 or self.tol_du < 0:
            raise ValueError("Tolerances must be non-negative (tol_residual positive)")
        if self.min_dt <= 0:
            raise ValueError(f"min_dt must be positive, got {self.min_dt}")


@dataclass
class LoadStep:
    """Result for a single converged time step."""
    step: int
    time: float
    dt: float
    displacement: np.ndarray
    damage: np.ndarray
    reaction: np.ndarray
    converged: bool
    n_iterations: int
    residual_norm: float = 0.0
    n_halvings: int = 0


class NonlocalNewtonSolver:
    """
    Global Newton-Raphson driver for SmallDeformationNonlocalProcess.

    Attributes:
        process: SmallDeformationNonlocalProcess
        config: SolverConfig
        t: time of the committed state
        displacement: committed displacement vector
        results: list of LoadStep results
    """

    def __init__(self, process: 'SmallDeformationNonlocalProcess',
                 config: Optional[SolverConfig] = None):
        """
        Initialize solver.

        Args:
            process: nonlocal process (initialized on first solve if needed)
            config: SolverConfig (optional)
        """
        self.process = process
        self.config = config or SolverConfig()
        self.n_dof = process.n_dofs
        self.t = 0.0
        self.displacement = np.zeros(self.n_dof)
        self.results: List[LoadStep] = []

    def solve(self, times: np.ndarray,
              bc_dofs: np.ndarray,
              bc_values_func: Callable[[float], np.ndarray],
              external_force_func: Optional[Callable[[float], np.ndarray]] = None
              ) -> List[LoadStep]:
        """
        Advance through the given output times.

        Args:
            times: increasing array; times[0] is the committed start time
            bc_dofs: DOF indices with Dirichlet BCs
            bc_values_func: function(t) -> values at bc_dofs
            external_force_func: function(t) -> force vector (optional)

        Returns:
            List of LoadStep results (one per committed step, including
            sub-steps created by time step halving)

        Raises:
            NonlocalDamageError: the time step dropped below min_dt
        """
        times = np.asarray(times, dtype=np.float64)
        if len(times) < 2 or np.any(np.diff(times) <= 0):
            raise ValueError("times must be strictly increasing with at least two entries")

        if self.process.graph is None:
            self.process.initialize()

        bc_dofs = np.asarray(bc_dofs, dtype=np.int64)
        self.t = float(times[0])

        for step, t_target in enumerate(times[1:]):
            if self.config.verbose:
                print(f"\n=== Step {step + 1}/{len(times) - 1}: t = {t_target:.6g} ===")
            self._advance_to(float(t_target), bc_dofs, bc_values_func, external_force_func)

        return self.results

    def _advance_to(self, t_target: float, bc_dofs: np.ndarray,
                    bc_values_func, external_force_func) -> None:
        """Reach t_target with as many (halved) sub-steps as needed."""
        dt = t_target - self.t
        n_halvings = 0

        while self.t < t_target - 1e-14 * max(abs(t_target), 1.0):
            dt = min(dt, t_target - self.t)
            t_new = self.t + dt

            bc_values = np.asarray(bc_values_func(t_new), dtype=np.float64)
            F_ext = (np.zeros(self.n_dof) if external_force_func is None
                     else np.asarray(external_force_func(t_new), dtype=np.float64))

            outcome = self._newton(t_new, dt, bc_dofs, bc_values, F_ext)
            if outcome is None:
                n_halvings += 1
                dt *= 0.5
                if dt < self.config.min_dt or n_halvings > self.config.max_dt_halvings:
                    raise NonlocalDamageError(
                        f"Time step reduction failed at t = {self.t:g}: "
                        f"dt = {dt:g} after {n_halvings} halvings"
                    )
                logger.warning("Step to t = %g failed, halving dt to %g", t_new, dt)
                if self.config.verbose:
                    print(f"  Step failed, retrying with dt = {dt:.3e}")
                continue

            u, n_iter, r_norm, b = outcome
            self.process.push_back_state()
            self.displacement = u
            self.t = t_new

            damage = self.process.integration_point_field("damage")
            self.results.append(LoadStep(
                step=len(self.results),
                time=t_new,
                dt=dt,
                displacement=u.copy(),
                damage=damage,
                reaction=-b[bc_dofs],
                converged=True,
                n_iterations=n_iter,
                residual_norm=r_norm,
                n_halvings=n_halvings,
            ))
            if self.config.verbose:
                print(f"  Converged in {n_iter} iterations, max(d) = {damage.max():.4f}")

    def _newton(self, t: float, dt: float, bc_dofs: np.ndarray,
                bc_values: np.ndarray, F_ext: np.ndarray
                ) -> Optional[Tuple[np.ndarray, int, float, np.ndarray]]:
        """
        Newton iteration for one step from the committed state.

        Returns:
            (u, iterations, residual norm, b) or None on failure
        """
        from assembly.boundary_conditions import apply_dirichlet_bc, get_free_dofs

        self.process.process_data.dt = dt
        free = get_free_dofs(self.n_dof, bc_dofs)

        u = self.displacement.copy()
        u[bc_dofs] = bc_values
        du_norm = np.inf

        for iteration in range(self.config.max_iter + 1):
            try:
                self.process.pre_assemble(t, u)
                J, b = self.process.assemble(t, u)
            except ConstitutiveIntegrationFailure as exc:
                logger.warning("Local integration failed at t = %g: %s", t, exc)
                return None

            residual = b + F_ext
            r_norm = np.linalg.norm(residual[free])
            scale = max(np.linalg.norm(b), np.linalg.norm(F_ext))

            if self.config.verbose:
                print(f"  Iter {iteration}: |R| = {r_norm:.3e}")

            if (r_norm <= self.config.tol_residual * scale
                    or r_norm <= self.config.atol_residual
                    or du_norm <= self.config.tol_du * max(np.linalg.norm(u), 1e-300)):
                return u, iteration, r_norm, b

            if iteration == self.config.max_iter:
                break

            J_bc, rhs = apply_dirichlet_bc(J, residual, bc_dofs, np.zeros(len(bc_dofs)))
            du = spsolve(J_bc, rhs)
            if not np.all(np.isfinite(du)):
                logger.warning("Singular Jacobian at t = %g", t)
                return None
            u += du
            du_norm = np.linalg.norm(du)

        logger.warning("Newton did not converge at t = %g (|R| = %g)", t, r_norm)
        return None

    def reset(self) -> None:
        """Reset displacement and results; element state is not touched."""
        self.t = 0.0
        self.displacement = np.zeros(self.n_dof)
        self.results = []

    def get_results_summary(self) -> dict:
        """
        Get summary statistics from results.

        Returns:
            Dictionary with summary statistics
        """
        if not self.results:
            return {}

        return {
            'n_steps': len(self.results),
            'max_damage': max(np.max(r.damage) for r in self.results),
            'total_iterations': sum(r.n_iterations for r in self.results),
            'total_halvings': sum(r.n_halvings for r in self.results),
            'final_time': self.results[-1].time,
        }


def create_time_stepping(t_end: float, n_steps: int,
                         stepping: str = 'linear') -> np.ndarray:
    """
    Create output times from 0 to t_end.

    Args:
        t_end: final time
        n_steps: number of steps
        stepping: 'linear', 'quadratic' (denser at start) or 'sqrt'
            (denser at end)

    Returns:
        times: array of n_steps + 1 times starting at 0
    """
    s = np.linspace(0, 1, n_steps + 1)
    if stepping == 'linear':
        return t_end * s
    elif stepping == 'quadratic':
        return t_end * s ** 2
    elif stepping == 'sqrt':
        return t_end * np.sqrt(s)
    else:
        raise ValueError(f"Unknown stepping: {stepping}")
