"""Gradient assembly."""

from typing import Any, Optional, Sequence
import numpy as np
from numpy.typing import NDArray

from strucadj.core.comm import default_comm
from strucadj.core.objective import Function
from strucadj.core.problem import StateProvider
from strucadj.stepping.adjoint import AdjointTrajectory
from strucadj.stepping.trajectory import Trajectory


def assemble_gradient(
    trajectory: Trajectory,
    adjoint: AdjointTrajectory,
    provider: StateProvider,
    x: NDArray,
    functions: Sequence[Function],
    comm: Optional[Any] = None,
) -> NDArray:
    """
    Total derivative of each function with respect to x:

    dF/dx = Σ_k w_k ∂f/∂x(t_k, q_k, x) + Σ_{k>=1} (∂R_k/∂x)^T ψ_k

    Args:
        trajectory: Forward solution trajectory
        adjoint: Adjoint trajectory from adjoint_solve
        provider: Residual callbacks (for ∂R/∂x)
        x: Design vector
        functions: Responses, in the order used for the adjoint
        comm: Communicator used to sum contributions

    Returns:
        Gradient array (len(functions), len(x))
    """
    comm = default_comm(comm)
    x = np.asarray(x)
    dtype = np.result_type(x, adjoint.psi, float)
    dfdx = np.zeros((len(functions), x.shape[0]), dtype=dtype)
    weights = trajectory.weights

    for k, rec in enumerate(trajectory.steps):
        if weights[k] != 0.0:
            for i, func in enumerate(functions):
                dfdx[i] += weights[k] * func.design_derivative(rec.t, rec.q, x)
        if k == 0:
            continue
        dR_dx = provider.design_jacobian(rec.t, rec.q, rec.qdot, rec.qddot, x)
        dfdx += adjoint.psi[:, k] @ dR_dx

    return comm.allreduce(dfdx)
