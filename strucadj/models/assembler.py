"""Global assembly of lumped elements into a structural state provider."""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional
import numpy as np
from numpy.typing import NDArray

from strucadj.core.errors import UnsupportedElementError
from strucadj.models.elements import (
    Component,
    Element,
    ElementRegistry,
    MaterialProperties,
    default_registry,
)

logger = logging.getLogger(__name__)


def _no_load(t: float, num_nodes: int) -> NDArray:
    return np.zeros(num_nodes)


@dataclass
class ModelDefinition:
    """
    Everything needed to build an assembler.

    Attributes:
        num_nodes: Number of nodes (one degree of freedom each)
        components: Entities to turn into elements
        fixed_nodes: Nodes with zero displacement
        point_masses: Extra lumped masses {node: kg}
        rayleigh: (a, b) for damping C = a M + b K
        gravity: Body acceleration applied through the mass matrix
        initial_velocity: Uniform initial velocity of the free nodes
        load: External nodal load f(t, num_nodes) -> (num_nodes,)
        num_design_vars: Design vector length (inferred if None)
        t_init: Time at which the initial conditions hold
    """
    num_nodes: int
    components: list[Component]
    fixed_nodes: tuple[int, ...] = (0,)
    point_masses: dict[int, float] = field(default_factory=dict)
    rayleigh: tuple[float, float] = (0.0, 0.0)
    gravity: float = 0.0
    initial_velocity: float = 0.0
    load: Callable[[float, int], NDArray] = _no_load
    num_design_vars: Optional[int] = None
    t_init: float = 0.0


class Assembler:
    """
    Structural state provider R = M(x)(q̈ - g) + C(x) q̇ + K(x) q + f_nl(q) - f(t).

    Built once from a model definition; components whose descriptor has no
    registered element make construction fail.
    """

    def __init__(
        self,
        definition: ModelDefinition,
        registry: Optional[ElementRegistry] = None,
        material: Optional[MaterialProperties] = None,
    ):
        self.definition = definition
        self.material = material if material is not None else MaterialProperties()
        registry = registry if registry is not None else default_registry()

        built = [
            registry.build(i, comp, self.material)
            for i, comp in enumerate(definition.components)
        ]
        for i, element in enumerate(built):
            if element is None:
                raise UnsupportedElementError(i, definition.components[i].descriptor)
        self.elements: list[Element] = built

        fixed = set(definition.fixed_nodes)
        self._dof = {}
        for node in range(definition.num_nodes):
            if node not in fixed:
                self._dof[node] = len(self._dof)

        if definition.num_design_vars is not None:
            self._num_dvs = definition.num_design_vars
        else:
            self._num_dvs = 1 + max(e.dv_index for e in self.elements)

        logger.info(
            "assembled %d elements, %d dofs, %d design variables",
            len(self.elements), self.num_states, self._num_dvs,
        )

    @property
    def num_states(self) -> int:
        return len(self._dof)

    @property
    def num_design_vars(self) -> int:
        return self._num_dvs

    def thickness_bounds(self) -> tuple[NDArray, NDArray]:
        """Lower/upper thickness per design variable."""
        lower = np.zeros(self._num_dvs)
        upper = np.full(self._num_dvs, np.inf)
        for e in self.elements:
            lower[e.dv_index] = max(lower[e.dv_index], e.min_thickness)
            upper[e.dv_index] = min(upper[e.dv_index], e.max_thickness)
        return lower, upper

    # Global matrices

    def _scatter(self, out: NDArray, element: Element, value) -> None:
        """Add value * [[1, -1], [-1, 1]] on the element's free dofs."""
        a, b = (self._dof.get(node) for node in element.nodes)
        if a is not None:
            out[a, a] += value
        if b is not None:
            out[b, b] += value
        if a is not None and b is not None:
            out[a, b] -= value
            out[b, a] -= value

    def _lumped(self, out: NDArray, element: Element, value) -> None:
        for node in element.nodes:
            dof = self._dof.get(node)
            if dof is not None:
                out[dof, dof] += 0.5 * value

    def _dtype(self, x: NDArray):
        return np.result_type(np.asarray(x), float)

    def stiffness_matrix(self, x: NDArray) -> NDArray:
        K = np.zeros((self.num_states, self.num_states), dtype=self._dtype(x))
        for e in self.elements:
            self._scatter(K, e, e.stiffness(x[e.dv_index]))
        return K

    def mass_matrix(self, x: NDArray) -> NDArray:
        M = np.zeros((self.num_states, self.num_states), dtype=self._dtype(x))
        for e in self.elements:
            self._lumped(M, e, e.mass(x[e.dv_index]))
        for node, m in self.definition.point_masses.items():
            dof = self._dof.get(node)
            if dof is not None:
                M[dof, dof] += m
        return M

    def damping_matrix(self, x: NDArray) -> NDArray:
        a, b = self.definition.rayleigh
        return a * self.mass_matrix(x) + b * self.stiffness_matrix(x)

    def stiffness_matrix_derivative(self, x: NDArray, i: int) -> NDArray:
        """dK/dx_i."""
        dK = np.zeros((self.num_states, self.num_states), dtype=self._dtype(x))
        for e in self.elements:
            if e.dv_index == i:
                self._scatter(dK, e, e.stiffness_derivative(x[i]))
        return dK

    def mass_matrix_derivative(self, x: NDArray, i: int) -> NDArray:
        """dM/dx_i."""
        dM = np.zeros((self.num_states, self.num_states), dtype=self._dtype(x))
        for e in self.elements:
            if e.dv_index == i:
                self._lumped(dM, e, e.mass_derivative(x[i]))
        return dM

    def stiffness_design_product(self, x: NDArray, u: NDArray, v: NDArray) -> NDArray:
        """Vector of u^T (dK/dx_i) v over all design variables."""
        dtype = np.result_type(self._dtype(x), u, v)
        out = np.zeros(self._num_dvs, dtype=dtype)
        for e in self.elements:
            a, b = (self._dof.get(node) for node in e.nodes)
            du = (u[a] if a is not None else 0.0) - (u[b] if b is not None else 0.0)
            dv = (v[a] if a is not None else 0.0) - (v[b] if b is not None else 0.0)
            out[e.dv_index] += e.stiffness_derivative(x[e.dv_index]) * du * dv
        return out

    # Nonlinear terms

    def _elongation(self, element: Element, q: NDArray):
        a, b = (self._dof.get(node) for node in element.nodes)
        qa = q[a] if a is not None else 0.0
        qb = q[b] if b is not None else 0.0
        return qb - qa, a, b

    def nonlinear_force(self, q: NDArray) -> NDArray:
        f = np.zeros(self.num_states, dtype=q.dtype)
        for e in self.elements:
            delta, a, b = self._elongation(e, q)
            force = e.nonlinear_force(delta)
            if a is not None:
                f[a] -= force
            if b is not None:
                f[b] += force
        return f

    def nonlinear_stiffness(self, q: NDArray) -> NDArray:
        K = np.zeros((self.num_states, self.num_states), dtype=q.dtype)
        for e in self.elements:
            delta, _, _ = self._elongation(e, q)
            self._scatter(K, e, e.nonlinear_stiffness(delta))
        return K

    def load(self, t: float) -> NDArray:
        nodal = self.definition.load(t, self.definition.num_nodes)
        f = np.zeros(self.num_states)
        for node, dof in self._dof.items():
            f[dof] = nodal[node]
        return f

    # State provider

    def initial_conditions(self, x: NDArray) -> tuple[NDArray, NDArray, NDArray]:
        """Zero displacement, uniform velocity, consistent acceleration."""
        n = self.num_states
        q0 = np.zeros(n)
        qdot0 = np.full(n, self.definition.initial_velocity)
        r0 = self.residual(self.definition.t_init, q0, qdot0, np.zeros(n), x)
        qddot0 = np.linalg.solve(self.mass_matrix(x), -r0)
        return q0, qdot0, qddot0

    def residual(self, t, q, qdot, qddot, x) -> NDArray:
        g = self.definition.gravity
        M = self.mass_matrix(x)
        return (
            M @ (qddot - g)
            + self.damping_matrix(x) @ qdot
            + self.stiffness_matrix(x) @ q
            + self.nonlinear_force(q)
            - self.load(t)
        )

    def jacobian(self, t, q, qdot, qddot, x, alpha, beta, gamma) -> NDArray:
        J = np.zeros((self.num_states, self.num_states), dtype=np.result_type(self._dtype(x), q))
        if alpha != 0.0:
            J += alpha * (self.stiffness_matrix(x) + self.nonlinear_stiffness(q))
        if beta != 0.0:
            J += beta * self.damping_matrix(x)
        if gamma != 0.0:
            J += gamma * self.mass_matrix(x)
        return J

    def design_jacobian(self, t, q, qdot, qddot, x) -> NDArray:
        a, b = self.definition.rayleigh
        g = self.definition.gravity
        dtype = np.result_type(self._dtype(x), q, qdot, qddot)
        dR = np.zeros((self.num_states, self._num_dvs), dtype=dtype)
        for i in range(self._num_dvs):
            dM = self.mass_matrix_derivative(x, i)
            dK = self.stiffness_matrix_derivative(x, i)
            dR[:, i] = dM @ (qddot - g) + (a * dM + b * dK) @ qdot + dK @ q
        return dR
