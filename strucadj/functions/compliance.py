"""Time-integrated structural responses."""

from typing import Any, Optional, Sequence
import numpy as np
from numpy.typing import NDArray

from strucadj.core.objective import IntegratedFunction


class Compliance(IntegratedFunction):
    """
    Compliance integrated over time: F = Σ_k w_k q_k^T K(x) q_k.

    Needs a model exposing ``stiffness_matrix(x)`` and
    ``stiffness_design_product(x, u, v)``.
    """

    name = "Compliance"

    def __init__(self, model, comm: Optional[Any] = None):
        super().__init__(comm)
        self.model = model

    def value_at(self, t, q, x):
        return q @ self.model.stiffness_matrix(x) @ q

    def state_derivative(self, t, q, x):
        K = self.model.stiffness_matrix(x)
        return (K + K.T) @ q

    def design_derivative(self, t, q, x):
        return self.model.stiffness_design_product(x, q, q)


class DisplacementNorm(IntegratedFunction):
    """Weighted squared displacement of selected dofs: F = Σ_k w_k Σ_i c_i q_i^2."""

    name = "DisplacementNorm"

    def __init__(
        self,
        num_states: int,
        num_design_vars: int,
        dofs: Optional[Sequence[int]] = None,
        comm: Optional[Any] = None,
    ):
        super().__init__(comm)
        self.scale = np.zeros(num_states)
        self.scale[list(range(num_states)) if dofs is None else list(dofs)] = 1.0
        self.num_design_vars = num_design_vars

    def value_at(self, t, q, x):
        return np.sum(self.scale * q * q)

    def state_derivative(self, t, q, x):
        return 2.0 * self.scale * q

    def design_derivative(self, t, q, x) -> NDArray:
        return np.zeros(self.num_design_vars)
