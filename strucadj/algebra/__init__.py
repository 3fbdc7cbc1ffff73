"""Linear algebra backend abstractions."""

from strucadj.algebra.protocols import LinearAlgebraBackend
from strucadj.algebra.dense import DenseBackend

__all__ = [
    "LinearAlgebraBackend",
    "DenseBackend",
]
