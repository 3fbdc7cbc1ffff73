"""Exception hierarchy for forward, adjoint and setup failures."""

from typing import Optional


class StrucAdjError(Exception):
    """Base class for all strucadj failures."""


class NewtonConvergenceError(StrucAdjError):
    """Forward Newton solve failed at a time step."""

    def __init__(
        self,
        step: int,
        iteration: int,
        residual_norm: float,
        reason: str = "did not converge",
    ):
        self.step = step
        self.iteration = iteration
        self.residual_norm = residual_norm
        self.reason = reason
        super().__init__(
            f"Newton solve at step {step} {reason} "
            f"(iteration {iteration}, |R| = {residual_norm:.3e})"
        )


class AdjointSolveError(StrucAdjError):
    """Backward linear solve failed during the adjoint sweep."""

    def __init__(self, step: int, reason: str = "singular adjoint system"):
        self.step = step
        self.reason = reason
        super().__init__(f"Adjoint solve at step {step}: {reason}")


class TrajectoryStateError(StrucAdjError):
    """Trajectory is not in the state the requested operation needs."""


class UnsupportedElementError(StrucAdjError):
    """A model component was left without a usable element."""

    def __init__(self, component: int, descriptor: Optional[str] = None):
        self.component = component
        self.descriptor = descriptor
        super().__init__(
            f"Component {component} has no element "
            f"(descriptor {descriptor!r} is not supported)"
        )
