"""Forward BDF time integration."""

import logging
from typing import Any, Callable, Optional, Sequence
import numpy as np
from numpy.typing import NDArray

from strucadj.algebra.protocols import LinearAlgebraBackend
from strucadj.core.comm import default_comm
from strucadj.core.config import IntegratorConfig
from strucadj.core.method import BDFMethod, StepCoefficients
from strucadj.core.objective import Function
from strucadj.core.problem import StateProvider
from strucadj.solvers.newton import NewtonSolver
from strucadj.stepping.trajectory import StepRecord, Trajectory

logger = logging.getLogger(__name__)


def forward_solve(
    provider: StateProvider,
    x: NDArray,
    config: IntegratorConfig,
    functions: Sequence[Function] = (),
    method: Optional[BDFMethod] = None,
    backend: Optional[LinearAlgebraBackend] = None,
    comm: Optional[Any] = None,
) -> tuple[Trajectory, NDArray]:
    """
    Integrate R(t, q, q̇, q̈, x) = 0 from t_init to t_final.

    For k = 1, ..., N:
        1. Form q̇_k, q̈_k as affine functions of q_k from the history
        2. Newton-solve R_k(q_k) = 0 with J = ∂R/∂q + β ∂R/∂q̇ + γ ∂R/∂q̈
        3. Commit the step and accumulate w_k f(t_k, q_k, x)

    The working dtype follows x, so a complex design vector runs the
    whole pass in complex arithmetic.

    Args:
        provider: Residual and Jacobian callbacks
        x: Design vector
        config: Time span, step count, order and Newton settings
        functions: Responses accumulated while stepping
        method: BDF scheme (defaults to one with config.max_order)
        backend: Linear algebra backend for the Newton solves
        comm: Communicator used to reduce function values

    Returns:
        trajectory: Committed states 0..N
        fvals: Function values, shape (len(functions),)

    Raises:
        NewtonConvergenceError: a step failed to converge
    """
    if method is None:
        method = BDFMethod(config.max_order)
    comm = default_comm(comm)
    x = np.asarray(x)
    N, h = config.num_steps, config.h

    q0, qdot0, qddot0 = provider.initial_conditions(x)
    dtype = np.result_type(x, q0, qdot0, qddot0, float)

    trajectory = Trajectory(t_init=config.t_init, h=h, num_steps=N)
    trajectory.commit(
        StepRecord(
            t=config.t_init,
            q=np.array(q0, dtype=dtype),
            qdot=np.array(qdot0, dtype=dtype),
            qddot=np.array(qddot0, dtype=dtype),
        )
    )

    newton = NewtonSolver(
        backend=backend,
        rtol=config.rtol,
        atol=config.atol,
        max_iter=config.max_newton_iters,
        jac_assembly_freq=config.jac_assembly_freq,
    )
    fvals = np.zeros(len(functions), dtype=dtype)
    total_iters = 0

    for step in range(1, N + 1):
        t = config.t_init + step * h
        coeffs = method.coefficients(step, h)
        states, residual_fn, jacobian_fn = _step_system(
            provider, trajectory, step, t, x, coeffs
        )

        prev = trajectory.steps[step - 1]
        q, iters = newton.solve(
            residual_fn, jacobian_fn, prev.q + h * prev.qdot, step, key=coeffs.order
        )
        qdot, qddot = states(q)
        dqdot, dqddot = _derivative_coupling(trajectory, step, coeffs)

        trajectory.commit(
            StepRecord(
                t=t,
                q=q,
                qdot=qdot,
                qddot=qddot,
                order=coeffs.order,
                dqdot=dqdot,
                dqddot=dqddot,
                newton_iters=iters,
            )
        )
        total_iters += iters

        for i, func in enumerate(functions):
            fvals[i] += h * func.value_at(t, q, x)

    trajectory.jac_assemblies = newton.num_assemblies
    fvals = comm.allreduce(fvals)
    logger.info(
        "forward pass: %d steps, h = %.3e, %d Newton iterations, %d Jacobian assemblies",
        N, h, total_iters, newton.num_assemblies,
    )
    return trajectory, fvals


def _step_system(
    provider: StateProvider,
    trajectory: Trajectory,
    step: int,
    t: float,
    x: NDArray,
    coeffs: StepCoefficients,
) -> tuple[Callable, Callable, Callable]:
    """Build the step's state map, residual and Jacobian as functions of q_k."""
    a, h = coeffs.a, coeffs.h
    history = trajectory.steps
    qdot_hist = sum(a[i] * history[step - i].q for i in range(1, coeffs.order + 1)) / h
    qddot_hist = sum(a[i] * history[step - i].qdot for i in range(1, coeffs.order + 1)) / h

    def states(q: NDArray) -> tuple[NDArray, NDArray]:
        qdot = (a[0] / h) * q + qdot_hist
        qddot = (a[0] / h) * qdot + qddot_hist
        return qdot, qddot

    def residual_fn(q: NDArray) -> NDArray:
        qdot, qddot = states(q)
        return provider.residual(t, q, qdot, qddot, x)

    def jacobian_fn(q: NDArray) -> NDArray:
        qdot, qddot = states(q)
        return provider.jacobian(
            t, q, qdot, qddot, x, coeffs.alpha, coeffs.beta, coeffs.gamma
        )

    return states, residual_fn, jacobian_fn


def _derivative_coupling(
    trajectory: Trajectory, step: int, coeffs: StepCoefficients
) -> tuple[dict[int, float], dict[int, float]]:
    """
    Sensitivities of q̇_k and q̈_k to earlier unknown states q_j (j >= 1).

    q_0 and q̇_0 are initial conditions, so they carry no entry.
    """
    a, h = coeffs.a, coeffs.h
    dqdot = {
        step - i: a[i] / h for i in range(coeffs.order + 1) if step - i >= 1
    }

    dqddot: dict[int, float] = {}
    for i in range(coeffs.order + 1):
        m = step - i
        if m < 1:
            continue
        source = dqdot if m == step else trajectory.steps[m].dqdot
        for j, c in source.items():
            dqddot[j] = dqddot.get(j, 0.0) + a[i] * c / h

    return dqdot, dqddot
