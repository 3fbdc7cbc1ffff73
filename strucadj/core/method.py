"""Backward differentiation formula coefficients and order ramp."""

from dataclasses import dataclass
import numpy as np
from numpy.typing import NDArray


# First-derivative BDF weights, newest state first: h q̇_k ≈ Σ_i a_i q_{k-i}
_BDF_COEFFS = {
    1: np.array([1.0, -1.0]),
    2: np.array([1.5, -2.0, 0.5]),
    3: np.array([11.0/6.0, -3.0, 1.5, -1.0/3.0]),
}

MAX_SUPPORTED_ORDER = max(_BDF_COEFFS)


@dataclass(frozen=True)
class StepCoefficients:
    """Scheme data for a single time step."""

    order: int
    a: NDArray      # (order + 1,) first-derivative weights
    h: float

    @property
    def alpha(self) -> float:
        """Jacobian weight on ∂R/∂q."""
        return 1.0

    @property
    def beta(self) -> float:
        """Jacobian weight on ∂R/∂q̇ (∂q̇_k/∂q_k)."""
        return self.a[0] / self.h

    @property
    def gamma(self) -> float:
        """Jacobian weight on ∂R/∂q̈ (∂q̈_k/∂q_k)."""
        return (self.a[0] / self.h) ** 2


@dataclass(frozen=True)
class BDFMethod:
    """
    BDF scheme for second-order systems with order ramp-up.

    Step k uses order min(k, max_order). Velocities are the BDF derivative
    of displacements, accelerations the BDF derivative of velocities, so
    the scheme is BDF applied to the first-order form (q, q̇).
    """

    max_order: int = 2

    def __post_init__(self) -> None:
        if self.max_order not in _BDF_COEFFS:
            raise ValueError(
                f"max_order must be in 1..{MAX_SUPPORTED_ORDER}, "
                f"got {self.max_order}"
            )

    def order_at(self, step: int) -> int:
        """Formula order used at step k (k >= 1)."""
        if step < 1:
            raise ValueError("step 0 is the initial condition")
        return min(step, self.max_order)

    def coefficients(self, step: int, h: float) -> StepCoefficients:
        order = self.order_at(step)
        return StepCoefficients(order=order, a=_BDF_COEFFS[order], h=h)


def bdf_weights(order: int) -> NDArray:
    """Return a copy of the first-derivative BDF weights for ``order``."""
    return _BDF_COEFFS[order].copy()
