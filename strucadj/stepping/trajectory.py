"""Trajectory storage for the adjoint sweep."""

from dataclasses import dataclass, field
import numpy as np
from numpy.typing import NDArray

from strucadj.core.errors import TrajectoryStateError


@dataclass
class StepRecord:
    """Committed state at one time step."""

    t: float
    q: NDArray          # (n,) displacements
    qdot: NDArray       # (n,) velocities
    qddot: NDArray      # (n,) accelerations
    order: int = 0      # BDF order used (0 for the initial condition)
    dqdot: dict[int, float] = field(default_factory=dict)   # ∂q̇_k/∂q_j
    dqddot: dict[int, float] = field(default_factory=dict)  # ∂q̈_k/∂q_j
    newton_iters: int = 0


@dataclass
class Trajectory:
    """Full forward solution, steps 0..N, committed in order."""

    t_init: float
    h: float
    num_steps: int
    steps: list[StepRecord] = field(default_factory=list)
    jac_assemblies: int = 0     # Newton Jacobian factorisations in the forward pass

    def commit(self, record: StepRecord) -> None:
        """Append the next finalised step."""
        if self.complete:
            raise TrajectoryStateError(
                f"trajectory already holds all {self.num_steps + 1} states"
            )
        expected = self.t_init + len(self.steps) * self.h
        if not np.isclose(record.t, expected):
            raise TrajectoryStateError(
                f"step committed out of order: t = {record.t}, expected {expected}"
            )
        self.steps.append(record)

    @property
    def complete(self) -> bool:
        """True once every step 0..N is committed."""
        return len(self.steps) == self.num_steps + 1

    @property
    def max_order(self) -> int:
        """Highest BDF order used by any committed step."""
        return max((record.order for record in self.steps), default=0)

    @property
    def N(self) -> int:
        """Number of time steps."""
        return self.num_steps

    @property
    def n(self) -> int:
        """State dimension."""
        return self.steps[0].q.shape[0]

    @property
    def weights(self) -> NDArray:
        """Quadrature weights for time-integrated responses."""
        w = np.full(self.num_steps + 1, self.h)
        w[0] = 0.0
        return w

    @property
    def times(self) -> NDArray:
        return np.array([record.t for record in self.steps])

    @property
    def Q(self) -> NDArray:
        """(N+1, n) displacements."""
        return np.array([record.q for record in self.steps])

    @property
    def Qdot(self) -> NDArray:
        """(N+1, n) velocities."""
        return np.array([record.qdot for record in self.steps])

    @property
    def Qddot(self) -> NDArray:
        """(N+1, n) accelerations."""
        return np.array([record.qddot for record in self.steps])
