"""
strucadj: adjoint gradients for BDF-integrated structural dynamics.

This library provides:
- Forward BDF integration of R(t, q, q̇, q̈, x) = 0 with Newton stepping
- A discrete adjoint sweep consistent with the forward scheme
- Design-variable gradients of time-integrated responses
- Finite-difference and complex-step verification of those gradients
"""

__version__ = "0.1.0"

from strucadj.core.config import IntegratorConfig, VerificationConfig, PerturbationMode
from strucadj.core.method import BDFMethod
from strucadj.optimization.interface import BDFIntegrator

__all__ = [
    "IntegratorConfig",
    "VerificationConfig",
    "PerturbationMode",
    "BDFMethod",
    "BDFIntegrator",
]
