"""Tests for forward and adjoint stepping algorithms."""

import numpy as np
import pytest

from strucadj.core.config import IntegratorConfig
from strucadj.core.errors import (
    AdjointSolveError,
    NewtonConvergenceError,
    TrajectoryStateError,
)
from strucadj.core.objective import IntegratedFunction
from strucadj.stepping.adjoint import adjoint_solve
from strucadj.stepping.forward import forward_solve
from strucadj.stepping.trajectory import StepRecord, Trajectory


class Oscillator:
    """Undamped oscillator q̈ + ω² x q = 0 with q(0) = 1, q̇(0) = 0."""

    num_states = 1
    num_design_vars = 1

    def __init__(self, omega=1.0):
        self.omega = omega

    def initial_conditions(self, x):
        return np.array([1.0]), np.array([0.0]), -self.omega**2 * x[0] * np.ones(1)

    def residual(self, t, q, qdot, qddot, x):
        return qddot + self.omega**2 * x[0] * q

    def jacobian(self, t, q, qdot, qddot, x, alpha, beta, gamma):
        return np.array([[alpha * self.omega**2 * x[0] + gamma]])

    def design_jacobian(self, t, q, qdot, qddot, x):
        return np.array([[self.omega**2 * q[0]]])


class Energy(IntegratedFunction):
    """Integrated potential energy 0.5 x q^2."""

    name = "Energy"

    def value_at(self, t, q, x):
        return 0.5 * x[0] * q[0] ** 2

    def state_derivative(self, t, q, x):
        return np.array([x[0] * q[0]])

    def design_derivative(self, t, q, x):
        return np.array([0.5 * q[0] ** 2])


def max_error(max_order, steps):
    config = IntegratorConfig(
        t_init=0.0, t_final=2.0, steps_per_unit_time=steps / 2.0, max_order=max_order
    )
    trajectory, _ = forward_solve(Oscillator(), np.array([1.0]), config)
    return np.max(np.abs(trajectory.Q[:, 0] - np.cos(trajectory.times)))


def test_forward_shapes_and_orders():
    config = IntegratorConfig(t_final=1.0, steps_per_unit_time=10, max_order=3)

    trajectory, fvals = forward_solve(
        Oscillator(), np.array([1.0]), config, [Energy()]
    )

    assert trajectory.complete
    assert trajectory.N == 10
    assert trajectory.Q.shape == (11, 1)
    assert trajectory.Qdot.shape == (11, 1)
    assert trajectory.Qddot.shape == (11, 1)
    assert fvals.shape == (1,)
    assert [rec.order for rec in trajectory.steps[:5]] == [0, 1, 2, 3, 3]
    assert trajectory.max_order == 3
    assert all(rec.newton_iters >= 1 for rec in trajectory.steps[1:])
    assert np.allclose(trajectory.times, np.linspace(0.0, 1.0, 11))


def test_quadrature_weights():
    config = IntegratorConfig(t_final=1.0, steps_per_unit_time=4)
    trajectory, _ = forward_solve(Oscillator(), np.array([1.0]), config)

    assert np.allclose(trajectory.weights, [0.0, 0.25, 0.25, 0.25, 0.25])


def test_forward_is_deterministic():
    config = IntegratorConfig(t_final=1.0, steps_per_unit_time=20)
    x = np.array([1.3])

    first, f1 = forward_solve(Oscillator(), x, config, [Energy()])
    second, f2 = forward_solve(Oscillator(), x, config, [Energy()])

    assert np.array_equal(first.Q, second.Q)
    assert np.array_equal(first.Qdot, second.Qdot)
    assert np.array_equal(f1, f2)


def test_running_values_match_evaluate():
    config = IntegratorConfig(t_final=1.0, steps_per_unit_time=20, max_order=2)
    x = np.array([0.8])
    energy = Energy()

    trajectory, fvals = forward_solve(Oscillator(), x, config, [energy])

    assert np.isclose(fvals[0], energy.evaluate(trajectory, x), rtol=1e-14)


def test_velocity_is_bdf_of_displacement():
    config = IntegratorConfig(t_final=1.0, steps_per_unit_time=10, max_order=2)
    trajectory, _ = forward_solve(Oscillator(), np.array([1.0]), config)
    Q, Qdot, h = trajectory.Q, trajectory.Qdot, trajectory.h

    assert np.allclose(Qdot[1], (Q[1] - Q[0]) / h)
    assert np.allclose(Qdot[5], (1.5 * Q[5] - 2.0 * Q[4] + 0.5 * Q[3]) / h)
    assert np.allclose(
        trajectory.Qddot[5], (1.5 * Qdot[5] - 2.0 * Qdot[4] + 0.5 * Qdot[3]) / h
    )


@pytest.mark.parametrize("max_order,expected_ratio", [(1, 2.0), (2, 4.0)])
def test_convergence_order(max_order, expected_ratio):
    """Halving h cuts the error by 2^p."""
    coarse = max_error(max_order, 200)
    fine = max_error(max_order, 400)

    assert coarse / fine == pytest.approx(expected_ratio, rel=0.2)


def test_higher_order_is_more_accurate():
    assert max_error(2, 200) < max_error(1, 200)


def test_adjoint_requires_complete_trajectory():
    trajectory = Trajectory(t_init=0.0, h=0.1, num_steps=3)
    trajectory.commit(
        StepRecord(t=0.0, q=np.ones(1), qdot=np.zeros(1), qddot=np.zeros(1))
    )

    with pytest.raises(TrajectoryStateError):
        adjoint_solve(trajectory, Oscillator(), np.array([1.0]), [Energy()])


def test_commit_rejects_out_of_order_and_overflow():
    trajectory = Trajectory(t_init=0.0, h=0.5, num_steps=1)
    record = StepRecord(t=0.0, q=np.ones(1), qdot=np.zeros(1), qddot=np.zeros(1))
    trajectory.commit(record)

    with pytest.raises(TrajectoryStateError):
        trajectory.commit(
            StepRecord(t=1.0, q=np.ones(1), qdot=np.zeros(1), qddot=np.zeros(1))
        )

    trajectory.commit(
        StepRecord(t=0.5, q=np.ones(1), qdot=np.zeros(1), qddot=np.zeros(1))
    )
    assert trajectory.complete

    with pytest.raises(TrajectoryStateError):
        trajectory.commit(
            StepRecord(t=1.0, q=np.ones(1), qdot=np.zeros(1), qddot=np.zeros(1))
        )


def test_adjoint_shapes():
    config = IntegratorConfig(t_final=1.0, steps_per_unit_time=10)
    x = np.array([1.0])
    trajectory, _ = forward_solve(Oscillator(), x, config)

    adjoint = adjoint_solve(trajectory, Oscillator(), x, [Energy(), Energy()])

    assert adjoint.num_functions == 2
    assert adjoint.psi.shape == (2, 11, 1)
    assert np.all(adjoint.psi[:, 0] == 0.0)
    assert np.allclose(adjoint.psi[0], adjoint.psi[1])


def test_complex_design_propagates():
    config = IntegratorConfig(t_final=1.0, steps_per_unit_time=10)
    trajectory, fvals = forward_solve(
        Oscillator(), np.array([1.0 + 1e-30j]), config, [Energy()]
    )

    assert np.iscomplexobj(trajectory.Q)
    assert np.iscomplexobj(fvals)


class StaticProvider:
    """R = 0 everywhere with a zero Jacobian: any state is a solution."""

    num_states = 2
    num_design_vars = 1

    def initial_conditions(self, x):
        return np.zeros(2), np.zeros(2), np.zeros(2)

    def residual(self, t, q, qdot, qddot, x):
        return np.zeros(2)

    def jacobian(self, t, q, qdot, qddot, x, alpha, beta, gamma):
        return np.zeros((2, 2))

    def design_jacobian(self, t, q, qdot, qddot, x):
        return np.zeros((2, 1))


class ConstantForceProvider(StaticProvider):
    """R = 1 with a zero Jacobian: no step can be solved."""

    def residual(self, t, q, qdot, qddot, x):
        return np.ones(2)


def test_singular_adjoint_raises():
    config = IntegratorConfig(t_final=1.0, steps_per_unit_time=4)
    x = np.array([1.0])

    trajectory, _ = forward_solve(StaticProvider(), x, config)
    assert trajectory.complete

    with pytest.raises(AdjointSolveError) as info:
        adjoint_solve(trajectory, StaticProvider(), x, [Energy()])

    assert info.value.step == 4


def test_singular_forward_jacobian_raises():
    config = IntegratorConfig(t_final=1.0, steps_per_unit_time=4)

    with pytest.raises(NewtonConvergenceError) as info:
        forward_solve(ConstantForceProvider(), np.array([1.0]), config)

    assert info.value.step == 1
    assert "singular" in info.value.reason
