"""Dense linear algebra backend using NumPy/SciPy."""

import warnings
from typing import Tuple
import numpy as np
import scipy.linalg
from numpy.typing import NDArray


class DenseBackend:
    """NumPy/SciPy implementation of linear algebra operations."""

    def lu_factor(self, A: NDArray) -> Tuple[NDArray, NDArray]:
        """
        Compute LU factorization using scipy.

        Returns:
            (lu, piv) tuple from scipy.linalg.lu_factor

        Raises:
            numpy.linalg.LinAlgError: A is singular or not finite
        """
        if not np.all(np.isfinite(A)):
            raise np.linalg.LinAlgError("matrix has non-finite entries")
        with warnings.catch_warnings():
            # exact zero pivots are reported below as an error
            warnings.simplefilter("ignore", scipy.linalg.LinAlgWarning)
            lu, piv = scipy.linalg.lu_factor(A, check_finite=False)
        zero_pivots = np.flatnonzero(np.diag(lu) == 0)
        if zero_pivots.size:
            raise np.linalg.LinAlgError(
                f"singular matrix (zero pivot at row {zero_pivots[0]})"
            )
        return lu, piv

    def lu_solve(
        self,
        factorization: Tuple[NDArray, NDArray],
        b: NDArray,
        trans: int = 0,
    ) -> NDArray:
        """
        Solve using precomputed LU factorization.

        Args:
            factorization: (lu, piv) from lu_factor
            b: Right-hand side, (n,) or (n, k)
            trans: 0 for Ax=b, 1 for A^T x=b

        Returns:
            Solution x
        """
        return scipy.linalg.lu_solve(factorization, b, trans=trans, check_finite=False)

    def norm(self, x: NDArray) -> float:
        """Compute L2 norm."""
        return float(np.linalg.norm(x))
