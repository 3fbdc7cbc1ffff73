"""Gradient assembly, verification and the driver-facing integrator."""

from strucadj.optimization.interface import BDFIntegrator
from strucadj.optimization.gradient import assemble_gradient
from strucadj.optimization.verification import (
    GradientReport,
    approximate_gradient,
    check_design_jacobian,
    check_jacobian,
)

__all__ = [
    "BDFIntegrator",
    "assemble_gradient",
    "GradientReport",
    "approximate_gradient",
    "check_jacobian",
    "check_design_jacobian",
]
