"""Newton solver for the implicit step equations."""

import logging
from typing import Any, Callable, Hashable, Optional
import numpy as np
from numpy.typing import NDArray

from strucadj.algebra.dense import DenseBackend
from strucadj.algebra.protocols import LinearAlgebraBackend
from strucadj.core.errors import NewtonConvergenceError

logger = logging.getLogger(__name__)


class NewtonSolver:
    """
    Newton iteration with controlled Jacobian reuse.

    A complex residual converges only once its real and imaginary parts
    have each dropped below the tolerance relative to their own initial
    norms; the imaginary part carries the complex-step derivative.

    The factorised Jacobian is rebuilt on the first iteration of every
    ``jac_assembly_freq``-th step, or when the Jacobian coefficients
    change; between rebuilds the stale factorisation is reused (modified
    Newton). ``jac_assembly_freq = 0`` rebuilds at every iteration.
    """

    def __init__(
        self,
        backend: Optional[LinearAlgebraBackend] = None,
        rtol: float = 1e-9,
        atol: float = 1e-30,
        max_iter: int = 25,
        jac_assembly_freq: int = 1,
    ) -> None:
        self.backend = backend if backend is not None else DenseBackend()
        self.rtol = rtol
        self.atol = atol
        self.max_iter = max_iter
        self.jac_assembly_freq = jac_assembly_freq

        self._factorization: Optional[Any] = None
        self._key: Optional[Hashable] = None
        self.num_assemblies = 0

    def reset(self) -> None:
        """Drop the cached factorisation."""
        self._factorization = None
        self._key = None

    def needs_assembly(self, step: int, key: Hashable) -> bool:
        """Whether step ``step`` must start from a fresh Jacobian."""
        if self._factorization is None or key != self._key:
            return True
        if self.jac_assembly_freq == 0:
            return True
        return (step - 1) % self.jac_assembly_freq == 0

    def _part_norms(self, r: NDArray) -> tuple[float, ...]:
        """Norms tested for convergence: real and imaginary parts separately."""
        if np.iscomplexobj(r):
            return self.backend.norm(r.real), self.backend.norm(r.imag)
        return (self.backend.norm(r),)

    def solve(
        self,
        residual_fn: Callable[[NDArray], NDArray],
        jacobian_fn: Callable[[NDArray], NDArray],
        z0: NDArray,
        step: int,
        key: Hashable = None,
    ) -> tuple[NDArray, int]:
        """
        Solve r(z) = 0 starting from z0.

        Args:
            residual_fn: Function computing residual r(z)
            jacobian_fn: Function computing Jacobian dr/dz
            z0: Initial guess
            step: Time step index (for reuse policy and error reporting)
            key: Identifies the Jacobian coefficients; a change forces
                reassembly

        Returns:
            z: Converged solution
            iterations: Number of Newton updates applied

        Raises:
            NewtonConvergenceError: no convergence within max_iter, a
                singular Jacobian, or a non-finite residual
        """
        z = z0.copy()
        rebuild = self.needs_assembly(step, key)
        tolerances = None
        rnorm = np.inf

        for iteration in range(self.max_iter + 1):
            r = residual_fn(z)
            rnorm = self.backend.norm(r)
            if not np.isfinite(rnorm):
                raise NewtonConvergenceError(
                    step, iteration, rnorm, "produced a non-finite residual"
                )
            parts = self._part_norms(r)
            if tolerances is None:
                tolerances = [
                    max(self.atol, self.rtol * (p if p > 0.0 else rnorm)) for p in parts
                ]
            logger.debug("step %d newton %d |R| = %.6e", step, iteration, rnorm)

            if rnorm <= self.atol or all(p <= tol for p, tol in zip(parts, tolerances)):
                return z, iteration
            if iteration == self.max_iter:
                break

            if rebuild or self.jac_assembly_freq == 0:
                try:
                    self._factorization = self.backend.lu_factor(jacobian_fn(z))
                except np.linalg.LinAlgError as exc:
                    self.reset()
                    raise NewtonConvergenceError(
                        step, iteration, rnorm, f"hit a singular Jacobian ({exc})"
                    ) from exc
                self._key = key
                self.num_assemblies += 1
                rebuild = False

            z = z + self.backend.lu_solve(self._factorization, -r)

        raise NewtonConvergenceError(step, self.max_iter, rnorm)
