"""Forward and adjoint stepping algorithms."""

from strucadj.stepping.trajectory import StepRecord, Trajectory
from strucadj.stepping.forward import forward_solve
from strucadj.stepping.adjoint import AdjointTrajectory, adjoint_solve

__all__ = [
    "StepRecord",
    "Trajectory",
    "forward_solve",
    "AdjointTrajectory",
    "adjoint_solve",
]
