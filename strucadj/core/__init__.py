"""Core abstractions: scheme, contracts, configuration and errors."""

from strucadj.core.method import BDFMethod, StepCoefficients
from strucadj.core.problem import StateProvider
from strucadj.core.objective import Function, IntegratedFunction
from strucadj.core.config import IntegratorConfig, VerificationConfig, PerturbationMode
from strucadj.core.comm import SerialComm, comm_context
from strucadj.core.errors import (
    StrucAdjError,
    NewtonConvergenceError,
    AdjointSolveError,
    TrajectoryStateError,
    UnsupportedElementError,
)

__all__ = [
    "BDFMethod",
    "StepCoefficients",
    "StateProvider",
    "Function",
    "IntegratedFunction",
    "IntegratorConfig",
    "VerificationConfig",
    "PerturbationMode",
    "SerialComm",
    "comm_context",
    "StrucAdjError",
    "NewtonConvergenceError",
    "AdjointSolveError",
    "TrajectoryStateError",
    "UnsupportedElementError",
]
