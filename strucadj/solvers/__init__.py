"""Nonlinear solvers for the implicit step equations."""

from strucadj.solvers.newton import NewtonSolver

__all__ = [
    "NewtonSolver",
]
