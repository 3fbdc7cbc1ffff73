"""Driver-facing integrator: values, adjoint gradients, reference gradients."""

import dataclasses
import logging
from typing import Any, Optional, Sequence
import numpy as np
from numpy.typing import NDArray

from strucadj.algebra.dense import DenseBackend
from strucadj.algebra.protocols import LinearAlgebraBackend
from strucadj.core.comm import default_comm
from strucadj.core.config import IntegratorConfig, PerturbationMode, VerificationConfig
from strucadj.core.errors import TrajectoryStateError
from strucadj.core.method import BDFMethod
from strucadj.core.objective import Function
from strucadj.core.problem import StateProvider
from strucadj.optimization.gradient import assemble_gradient
from strucadj.optimization.verification import GradientReport, approximate_gradient
from strucadj.stepping.adjoint import AdjointTrajectory, adjoint_solve
from strucadj.stepping.forward import forward_solve
from strucadj.stepping.trajectory import Trajectory

logger = logging.getLogger(__name__)


class BDFIntegrator:
    """
    Provides F(x), dF/dx by adjoint, and a perturbation reference dF/dx.

    Owns the last forward trajectory and adjoint; use as a context manager
    to release them deterministically at the end of a run.
    """

    def __init__(
        self,
        provider: StateProvider,
        config: IntegratorConfig,
        backend: Optional[LinearAlgebraBackend] = None,
        comm: Optional[Any] = None,
    ):
        """
        Initialize the integrator.

        Args:
            provider: Residual and Jacobian callbacks
            config: Time span, step count, BDF order, Newton settings
            backend: Linear algebra backend (dense by default)
            comm: Communicator for reductions (serial by default)
        """
        self.provider = provider
        self.config = dataclasses.replace(config)
        self.method = BDFMethod(config.max_order)
        self.backend = backend if backend is not None else DenseBackend()
        self.comm = default_comm(comm)

        # Cached results (invalidated when x or the function set changes)
        self._trajectory: Optional[Trajectory] = None
        self._fvals: Optional[NDArray] = None
        self._adjoint: Optional[AdjointTrajectory] = None
        self._key: Optional[tuple] = None
        self._functions: tuple = ()
        self._x: Optional[NDArray] = None

    def __enter__(self) -> "BDFIntegrator":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def release(self) -> None:
        """Drop the stored trajectory and adjoint."""
        self._trajectory = None
        self._fvals = None
        self._adjoint = None
        self._key = None
        self._functions = ()
        self._x = None

    @property
    def trajectory(self) -> Trajectory:
        if self._trajectory is None:
            raise TrajectoryStateError("no forward solution; call forward() first")
        return self._trajectory

    def set_jac_assembly_freq(self, freq: int) -> None:
        """Change how often the Newton Jacobian is rebuilt."""
        if freq < 0:
            raise ValueError("jac_assembly_freq must be non-negative")
        self.config = dataclasses.replace(self.config, jac_assembly_freq=freq)
        self.release()

    def integrate(self, x: NDArray) -> Trajectory:
        """Forward solve without functions."""
        self._ensure_forward(x, ())
        return self.trajectory

    def forward(self, x: NDArray, function: Function) -> Any:
        """
        Integrate and return the value of a single function.

        The trajectory is kept for a subsequent reverse().
        """
        return self.objective_values(x, [function])[0]

    def reverse(self, function: Optional[Function] = None) -> NDArray:
        """
        Adjoint gradient of a function over the last forward trajectory.

        Args:
            function: One of the functions passed to the last forward run
                (defaults to the first)

        Returns:
            Gradient (num_design_vars,)
        """
        if self._trajectory is None or self._x is None:
            raise TrajectoryStateError("reverse() requires a completed forward()")
        if not self._functions:
            raise TrajectoryStateError("last forward run integrated no functions")
        if function is None:
            index = 0
        elif function in self._functions:
            index = self._functions.index(function)
        else:
            raise ValueError(f"{function!r} was not part of the last forward run")
        self._ensure_adjoint()
        assert self._adjoint is not None
        dfdx = assemble_gradient(
            self._trajectory, self._adjoint, self.provider, self._x,
            self._functions, self.comm,
        )
        return dfdx[index]

    def objective_values(self, x: NDArray, functions: Sequence[Function]) -> NDArray:
        """
        F(x) for each function - runs forward solve if needed.

        Args:
            x: Design vector
            functions: Responses to integrate

        Returns:
            Values (len(functions),)
        """
        self._ensure_forward(x, functions)
        assert self._fvals is not None
        return self._fvals.copy()

    def get_adjoint_gradient(
        self, functions: Sequence[Function], x: NDArray
    ) -> tuple[NDArray, NDArray]:
        """
        Function values and their adjoint gradients.

        Returns:
            fvals: (len(functions),)
            dfdx: (len(functions), num_design_vars)
        """
        fvals = self.objective_values(x, functions)
        self._ensure_adjoint()
        assert self._trajectory is not None and self._adjoint is not None
        dfdx = assemble_gradient(
            self._trajectory, self._adjoint, self.provider, self._x,
            self._functions, self.comm,
        )
        return fvals, dfdx

    def get_approx_gradient(
        self,
        functions: Sequence[Function],
        x: NDArray,
        dh: float = 1e-30,
        mode: PerturbationMode = PerturbationMode.COMPLEX,
    ) -> tuple[NDArray, NDArray]:
        """
        Function values and a perturbation estimate of their gradients.

        Each design variable is perturbed on a fresh copy of x and the full
        forward integration is repeated; the cached trajectory is untouched.

        Returns:
            fvals: (len(functions),) at the unperturbed x
            dfdx: (len(functions), num_design_vars)
        """
        x = np.asarray(x, dtype=float)
        functions = list(functions)

        def evaluate(xp: NDArray) -> NDArray:
            _, fvals = forward_solve(
                self.provider, xp, self.config, functions, self.method,
                self.backend, self.comm,
            )
            return fvals

        logger.info(
            "%s reference gradient over %d design variables, h = %g",
            mode.value, x.shape[0], dh,
        )
        fvals = np.real(evaluate(x.copy()))
        dfdx = approximate_gradient(evaluate, x, dh, mode, f0=fvals)
        return fvals, dfdx

    def verify(
        self,
        functions: Sequence[Function],
        x: NDArray,
        verification: Optional[VerificationConfig] = None,
    ) -> GradientReport:
        """Compare adjoint and perturbation gradients."""
        if verification is None:
            verification = VerificationConfig()
        fvals, analytic = self.get_adjoint_gradient(functions, x)
        _, approx = self.get_approx_gradient(
            functions, x, verification.step_size, verification.mode
        )
        return GradientReport(
            names=[getattr(f, "name", type(f).__name__) for f in functions],
            values=fvals,
            analytic=analytic,
            approximate=approx,
            mode=verification.mode,
        )

    def _ensure_forward(self, x: NDArray, functions: Sequence[Function]) -> None:
        """Run forward solve if not cached or x/functions changed."""
        x = np.asarray(x)
        functions = tuple(functions)
        key = (x.dtype.str, x.tobytes(), tuple(id(f) for f in functions))
        if self._trajectory is None or self._key != key:
            self._trajectory, self._fvals = forward_solve(
                self.provider, x, self.config, functions, self.method,
                self.backend, self.comm,
            )
            self._x = x.copy()
            self._functions = functions
            self._key = key
            self._adjoint = None  # Invalidate adjoint

    def _ensure_adjoint(self) -> None:
        """Run the adjoint sweep on the cached trajectory if needed."""
        if self._adjoint is None:
            assert self._trajectory is not None
            self._adjoint = adjoint_solve(
                self._trajectory, self.provider, self._x, self._functions, self.backend
            )
