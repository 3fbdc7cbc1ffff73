"""Linear algebra backend protocol."""

from typing import Protocol, Any
from numpy.typing import NDArray


class LinearAlgebraBackend(Protocol):
    """
    Protocol for the factor/solve operations used by Newton and adjoint.
    Backends must accept complex matrices and signal singularity by
    raising numpy.linalg.LinAlgError from ``lu_factor``.
    """

    def lu_factor(self, A: NDArray) -> Any:
        """
        Compute LU factorization of A.

        Args:
            A: Matrix to factor

        Returns:
            Factorization object (implementation-specific)
        """
        ...

    def lu_solve(
        self, factorization: Any, b: NDArray, trans: int = 0
    ) -> NDArray:
        """
        Solve using precomputed LU factorization.

        Args:
            factorization: Precomputed factorization
            b: Right-hand side
            trans: 0 for Ax=b, 1 for A^T x=b (plain transpose, no conjugate)

        Returns:
            Solution x
        """
        ...

    def norm(self, x: NDArray) -> float:
        """Vector 2-norm (real for complex input)."""
        ...
