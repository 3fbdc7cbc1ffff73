"""Function evaluator protocol and time-integrated base class."""

from abc import ABC, abstractmethod
from typing import Any, Optional, Protocol
from numpy.typing import NDArray

from strucadj.core.comm import default_comm


class Function(Protocol):
    """Scalar response F(x) = Σ_k w_k f(t_k, q_k, x) over a trajectory."""

    def evaluate(self, trajectory: "Trajectory", x: NDArray) -> Any:
        """
        Evaluate the response over a complete trajectory.

        Args:
            trajectory: Forward solution
            x: Design vector

        Returns:
            Function value (complex when x is complex)
        """
        ...

    def value_at(self, t: float, q: NDArray, x: NDArray) -> Any:
        """Integrand f(t, q, x) at one time instant."""
        ...

    def state_derivative(self, t: float, q: NDArray, x: NDArray) -> NDArray:
        """∂f/∂q, shape (n,)."""
        ...

    def design_derivative(self, t: float, q: NDArray, x: NDArray) -> NDArray:
        """∂f/∂x, shape (num_design_vars,)."""
        ...


class IntegratedFunction(ABC):
    """
    Base for responses integrated along the trajectory.

    Subclasses provide the integrand and its partial derivatives; the
    quadrature uses the trajectory's weights so the adjoint and the
    forward evaluation agree exactly.
    """

    name = "function"

    def __init__(self, comm: Optional[Any] = None):
        self.comm = default_comm(comm)

    def evaluate(self, trajectory: "Trajectory", x: NDArray) -> Any:
        total = 0.0
        for record, w in zip(trajectory.steps, trajectory.weights):
            if w != 0.0:
                total = total + w * self.value_at(record.t, record.q, x)
        return self.comm.allreduce(total)

    @abstractmethod
    def value_at(self, t: float, q: NDArray, x: NDArray) -> Any:
        ...

    @abstractmethod
    def state_derivative(self, t: float, q: NDArray, x: NDArray) -> NDArray:
        ...

    @abstractmethod
    def design_derivative(self, t: float, q: NDArray, x: NDArray) -> NDArray:
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"
