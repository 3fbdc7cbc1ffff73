"""Backward adjoint propagation."""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence
import numpy as np
from numpy.typing import NDArray

from strucadj.algebra.dense import DenseBackend
from strucadj.algebra.protocols import LinearAlgebraBackend
from strucadj.core.errors import AdjointSolveError, TrajectoryStateError
from strucadj.core.objective import Function
from strucadj.core.problem import StateProvider
from strucadj.stepping.trajectory import Trajectory

logger = logging.getLogger(__name__)


@dataclass
class AdjointTrajectory:
    """Adjoint variables for all steps and functions."""

    psi: NDArray         # (F, N+1, n) residual adjoints, row 0 unused
    psi_qdot: NDArray    # (F, N+1, n) (∂R_k/∂q̇)^T ψ_k
    psi_qddot: NDArray   # (F, N+1, n) (∂R_k/∂q̈)^T ψ_k

    @property
    def num_functions(self) -> int:
        return self.psi.shape[0]


def adjoint_solve(
    trajectory: Trajectory,
    provider: StateProvider,
    x: NDArray,
    functions: Sequence[Function],
    backend: Optional[LinearAlgebraBackend] = None,
) -> AdjointTrajectory:
    """
    Discrete adjoint of the BDF forward scheme.

    For j = N, ..., 1:
        J_j^T ψ_j = -w_j ∂f/∂q(t_j, q_j)
                    - Σ_{k>j} [c1_kj (∂R_k/∂q̇)^T ψ_k + c2_kj (∂R_k/∂q̈)^T ψ_k]

    where c1_kj = ∂q̇_k/∂q_j and c2_kj = ∂q̈_k/∂q_j come from the forward
    pass. J_j is assembled at the converged state and factorised once per
    step for all functions.

    Args:
        trajectory: Complete forward trajectory
        provider: Residual and Jacobian callbacks
        x: Design vector
        functions: Responses to differentiate
        backend: Linear algebra backend

    Returns:
        Adjoint trajectory

    Raises:
        TrajectoryStateError: forward pass has not committed every step
        AdjointSolveError: a backward solve was singular or non-finite
    """
    if not trajectory.complete:
        raise TrajectoryStateError(
            f"adjoint needs {trajectory.num_steps + 1} committed states, "
            f"trajectory has {len(trajectory.steps)}"
        )
    if backend is None:
        backend = DenseBackend()

    N, n = trajectory.N, trajectory.n
    num_funcs = len(functions)
    steps = trajectory.steps
    weights = trajectory.weights
    dtype = np.result_type(x, steps[-1].q, float)

    psi = np.zeros((num_funcs, N + 1, n), dtype=dtype)
    psi_qdot = np.zeros_like(psi)
    psi_qddot = np.zeros_like(psi)
    # a q̈ stencil reaches back two BDF stencils
    reach = 2 * trajectory.max_order

    for j in range(N, 0, -1):
        rec = steps[j]

        rhs = np.zeros((n, num_funcs), dtype=dtype)
        for i, func in enumerate(functions):
            rhs[:, i] = -weights[j] * func.state_derivative(rec.t, rec.q, x)

        # Later steps whose BDF stencils referenced q_j
        for k in range(j + 1, min(N, j + reach) + 1):
            c1 = steps[k].dqdot.get(j, 0.0)
            c2 = steps[k].dqddot.get(j, 0.0)
            if c1 != 0.0:
                rhs -= c1 * psi_qdot[:, k].T
            if c2 != 0.0:
                rhs -= c2 * psi_qddot[:, k].T

        jac = provider.jacobian(
            rec.t, rec.q, rec.qdot, rec.qddot, x, 1.0, rec.dqdot[j], rec.dqddot[j]
        )
        try:
            factorization = backend.lu_factor(jac)
        except np.linalg.LinAlgError as exc:
            raise AdjointSolveError(j, str(exc)) from exc

        sol = backend.lu_solve(factorization, rhs, trans=1)
        if not np.all(np.isfinite(sol)):
            raise AdjointSolveError(j, "non-finite adjoint vector")
        psi[:, j] = sol.T

        dR_dqdot = provider.jacobian(rec.t, rec.q, rec.qdot, rec.qddot, x, 0.0, 1.0, 0.0)
        dR_dqddot = provider.jacobian(rec.t, rec.q, rec.qdot, rec.qddot, x, 0.0, 0.0, 1.0)
        psi_qdot[:, j] = (dR_dqdot.T @ sol).T
        psi_qddot[:, j] = (dR_dqddot.T @ sol).T

    logger.info("adjoint sweep: %d steps, %d functions", N, num_funcs)
    return AdjointTrajectory(psi=psi, psi_qdot=psi_qdot, psi_qddot=psi_qddot)
