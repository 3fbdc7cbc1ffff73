"""State provider protocol."""

from typing import Protocol
from numpy.typing import NDArray


class StateProvider(Protocol):
    """
    Residual R(t, q, q̇, q̈, x) = 0 and its derivatives.

    Every method must accept complex-valued q and x so the complex-step
    verifier can drive the same code path as the real solve.
    """

    @property
    def num_states(self) -> int:
        """Number of degrees of freedom n."""
        ...

    @property
    def num_design_vars(self) -> int:
        """Number of design variables."""
        ...

    def initial_conditions(self, x: NDArray) -> tuple[NDArray, NDArray, NDArray]:
        """Return (q0, q̇0, q̈0), each shape (n,)."""
        ...

    def residual(
        self, t: float, q: NDArray, qdot: NDArray, qddot: NDArray, x: NDArray
    ) -> NDArray:
        """Residual vector, shape (n,)."""
        ...

    def jacobian(
        self,
        t: float,
        q: NDArray,
        qdot: NDArray,
        qddot: NDArray,
        x: NDArray,
        alpha: float,
        beta: float,
        gamma: float,
    ) -> NDArray:
        """α ∂R/∂q + β ∂R/∂q̇ + γ ∂R/∂q̈, shape (n, n)."""
        ...

    def design_jacobian(
        self, t: float, q: NDArray, qdot: NDArray, qddot: NDArray, x: NDArray
    ) -> NDArray:
        """∂R/∂x, shape (n, num_design_vars)."""
        ...
