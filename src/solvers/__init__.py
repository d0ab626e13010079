"""
Solvers Module
==============

Local Newton-Raphson for constitutive updates and the global Newton driver.
"""

from .local_newton import NewtonRaphsonParameters, newton_raphson
from .newton_solver import NonlocalNewtonSolver, SolverConfig, LoadStep, create_time_stepping

__all__ = [
    "NewtonRaphsonParameters",
    "newton_raphson",
    "NonlocalNewtonSolver",
    "SolverConfig",
    "LoadStep",
    "create_time_stepping",
]
