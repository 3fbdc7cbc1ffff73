"""Structural response functions."""

from strucadj.functions.compliance import Compliance, DisplacementNorm

__all__ = [
    "Compliance",
    "DisplacementNorm",
]
