"""
Perturbation-based reference derivatives.

Provides the finite-difference / complex-step reference gradient used to
check the adjoint, the text report comparing the two, and residual
Jacobian checks for a state provider at a single state.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Sequence
import numpy as np
from numpy.typing import NDArray

from strucadj.core.config import PerturbationMode
from strucadj.core.problem import StateProvider

logger = logging.getLogger(__name__)


def directional_derivative(
    fn: Callable[[complex], NDArray],
    step: float,
    mode: PerturbationMode,
    f0: Optional[NDArray] = None,
) -> NDArray:
    """
    Approximate d fn(eps)/d eps at eps = 0.

    Args:
        fn: Function of the scalar perturbation
        step: Perturbation size h
        mode: REAL (forward), CENTRAL, or COMPLEX (fn called with i h)
        f0: fn(0) for forward differences, evaluated if not given

    Returns:
        Real-valued derivative estimate
    """
    if mode is PerturbationMode.COMPLEX:
        return np.imag(fn(1j * step)) / step
    if mode is PerturbationMode.CENTRAL:
        return (np.real(fn(step)) - np.real(fn(-step))) / (2.0 * step)
    if f0 is None:
        f0 = np.real(fn(0.0))
    return (np.real(fn(step)) - f0) / step


def approximate_gradient(
    evaluate: Callable[[NDArray], NDArray],
    x: NDArray,
    step: float,
    mode: PerturbationMode = PerturbationMode.COMPLEX,
    f0: Optional[NDArray] = None,
) -> NDArray:
    """
    Reference gradient by perturbing one design variable at a time.

    Each perturbation is applied to a fresh copy of x; x itself is never
    modified.

    Args:
        evaluate: Maps a design vector to function values (F,)
        x: Real design vector
        step: Perturbation size
        mode: Perturbation mode
        f0: evaluate(x) if already known (saves a call for forward
            differences)

    Returns:
        Gradient estimate (F, len(x))
    """
    x = np.asarray(x)
    if np.iscomplexobj(x):
        raise ValueError("reference gradient needs a real design vector")

    if mode is PerturbationMode.REAL:
        if f0 is None:
            f0 = evaluate(x.copy())
        f0 = np.real(np.atleast_1d(f0))

    columns = []
    for i in range(x.shape[0]):
        unit = np.zeros(x.shape[0])
        unit[i] = 1.0
        column = directional_derivative(
            lambda eps: np.atleast_1d(evaluate(x + eps * unit)), step, mode, f0
        )
        logger.debug("design variable %d: %s derivative %s", i, mode.value, column)
        columns.append(column)

    return np.array(columns).T


@dataclass
class GradientReport:
    """Analytic versus approximate gradient, per function and variable."""

    names: list[str]
    values: NDArray          # (F,)
    analytic: NDArray        # (F, ndv)
    approximate: NDArray     # (F, ndv)
    mode: PerturbationMode = PerturbationMode.COMPLEX

    @property
    def error(self) -> NDArray:
        """Raw difference analytic - approximate."""
        return np.real(self.analytic) - np.real(self.approximate)

    @property
    def max_abs_error(self) -> float:
        return float(np.max(np.abs(self.error))) if self.error.size else 0.0

    def format(self) -> str:
        lines = []
        for f, name in enumerate(self.names):
            lines.append(f"{name} = {np.real(self.values[f]):15.9e}")
            lines.append(f"dfdx[   ]: {'Analytic':>15s} {'FD/CS':>15s} {'Error':>15s}")
            for i in range(self.analytic.shape[1]):
                lines.append(
                    f"dfdx[{i:3d}]: {np.real(self.analytic[f, i]):15.8e} "
                    f"{np.real(self.approximate[f, i]):15.8e} "
                    f"{self.error[f, i]:15.8e}"
                )
        return "\n".join(lines)


@dataclass
class JacobianCheck:
    """Result of comparing an analytic Jacobian with a perturbation estimate."""

    label: str
    analytic: NDArray
    approximate: NDArray
    max_abs_error: float = field(init=False)
    max_rel_error: float = field(init=False)

    def __post_init__(self):
        diff = np.abs(np.real(self.analytic) - self.approximate)
        scale = np.maximum(np.abs(np.real(self.analytic)), 1e-30)
        self.max_abs_error = float(diff.max()) if diff.size else 0.0
        self.max_rel_error = float((diff / scale).max()) if diff.size else 0.0

    def passed(self, rtol: float = 1e-5, atol: float = 1e-8) -> bool:
        return bool(np.allclose(np.real(self.analytic), self.approximate, rtol=rtol, atol=atol))

    def format(self) -> str:
        return (
            f"{self.label}: max abs error {self.max_abs_error:.3e}, "
            f"max rel error {self.max_rel_error:.3e}"
        )


def check_jacobian(
    provider: StateProvider,
    t: float,
    q: NDArray,
    qdot: NDArray,
    qddot: NDArray,
    x: NDArray,
    alpha: float = 1.0,
    beta: float = 1.0,
    gamma: float = 1.0,
    step: float = 1e-6,
    mode: PerturbationMode = PerturbationMode.CENTRAL,
) -> JacobianCheck:
    """
    Compare α ∂R/∂q + β ∂R/∂q̇ + γ ∂R/∂q̈ with a perturbation of the residual.

    Column c perturbs (q, q̇, q̈) along (α, β, γ) e_c.
    """
    analytic = provider.jacobian(t, q, qdot, qddot, x, alpha, beta, gamma)
    n = q.shape[0]
    approx = np.zeros((n, n))
    for c in range(n):
        unit = np.zeros(n)
        unit[c] = 1.0
        approx[:, c] = directional_derivative(
            lambda eps: provider.residual(
                t,
                q + alpha * eps * unit,
                qdot + beta * eps * unit,
                qddot + gamma * eps * unit,
                x,
            ),
            step,
            mode,
        )
    return JacobianCheck(
        label=f"jacobian(alpha={alpha:g}, beta={beta:g}, gamma={gamma:g})",
        analytic=analytic,
        approximate=approx,
    )


def check_design_jacobian(
    provider: StateProvider,
    t: float,
    q: NDArray,
    qdot: NDArray,
    qddot: NDArray,
    x: NDArray,
    step: float = 1e-6,
    mode: PerturbationMode = PerturbationMode.CENTRAL,
) -> JacobianCheck:
    """Compare ∂R/∂x with a perturbation of the residual in each x_i."""
    x = np.asarray(x)
    analytic = provider.design_jacobian(t, q, qdot, qddot, x)
    approx = np.zeros(analytic.shape)
    for i in range(x.shape[0]):
        unit = np.zeros(x.shape[0])
        unit[i] = 1.0
        approx[:, i] = directional_derivative(
            lambda eps: provider.residual(t, q, qdot, qddot, x + eps * unit),
            step,
            mode,
        )
    return JacobianCheck(label="design jacobian", analytic=analytic, approximate=approx)


def run_element_checks(
    provider: StateProvider,
    t: float,
    q: NDArray,
    qdot: NDArray,
    qddot: NDArray,
    x: NDArray,
    step: float = 1e-6,
    mode: PerturbationMode = PerturbationMode.CENTRAL,
) -> list[JacobianCheck]:
    """Residual derivative checks for each state derivative and for x."""
    checks: Sequence[tuple[float, float, float]] = (
        (1.0, 0.0, 0.0),
        (0.0, 1.0, 0.0),
        (0.0, 0.0, 1.0),
    )
    results = [
        check_jacobian(provider, t, q, qdot, qddot, x, a, b, g, step, mode)
        for a, b, g in checks
    ]
    results.append(check_design_jacobian(provider, t, q, qdot, qddot, x, step, mode))
    for check in results:
        logger.info(check.format())
    return results
