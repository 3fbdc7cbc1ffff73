"""Run configuration for the integrator and the gradient verifier."""

from dataclasses import dataclass
from enum import Enum

from strucadj.core.method import MAX_SUPPORTED_ORDER


class PerturbationMode(Enum):
    """How the verifier perturbs a design variable."""
    REAL = "real"          # forward difference
    COMPLEX = "complex"    # complex step
    CENTRAL = "central"    # central difference


@dataclass
class IntegratorConfig:
    """
    Time integration settings.

    Attributes:
        t_init: Initial time
        t_final: Final time
        steps_per_unit_time: Number of steps per unit of time (sets h)
        max_order: Maximum BDF order, reached by ramping up from 1
        jac_assembly_freq: Rebuild the Jacobian every this many steps
            (0 rebuilds at every Newton iteration)
        rtol: Relative Newton tolerance on the residual norm
        atol: Absolute Newton tolerance on the residual norm
        max_newton_iters: Newton iterations allowed per step
    """
    t_init: float = 0.0
    t_final: float = 0.01
    steps_per_unit_time: float = 10000.0
    max_order: int = 2
    jac_assembly_freq: int = 1
    rtol: float = 1e-9
    atol: float = 1e-30
    max_newton_iters: int = 25

    def __post_init__(self):
        if self.t_final <= self.t_init:
            raise ValueError("t_final must be greater than t_init")
        if self.steps_per_unit_time <= 0:
            raise ValueError("steps_per_unit_time must be positive")
        if not 1 <= self.max_order <= MAX_SUPPORTED_ORDER:
            raise ValueError(
                f"max_order must be in 1..{MAX_SUPPORTED_ORDER}"
            )
        if self.jac_assembly_freq < 0:
            raise ValueError("jac_assembly_freq must be non-negative")
        if self.max_newton_iters < 1:
            raise ValueError("max_newton_iters must be at least 1")

    @property
    def num_steps(self) -> int:
        """Number of time steps N (states 0..N)."""
        span = self.t_final - self.t_init
        return max(1, int(round(self.steps_per_unit_time * span)))

    @property
    def h(self) -> float:
        """Fixed step size."""
        return (self.t_final - self.t_init) / self.num_steps


@dataclass
class VerificationConfig:
    """Settings for the perturbation-based reference gradient."""
    step_size: float = 1e-30
    mode: PerturbationMode = PerturbationMode.COMPLEX

    def __post_init__(self):
        if isinstance(self.mode, str):
            self.mode = PerturbationMode(self.mode)
        if self.step_size <= 0:
            raise ValueError("step_size must be positive")
        if self.mode is not PerturbationMode.COMPLEX and self.step_size < 1e-14:
            raise ValueError(
                f"step_size {self.step_size:g} is below round-off for "
                f"{self.mode.value} differences"
            )
