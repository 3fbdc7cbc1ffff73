"""Tests for perturbation references, reports and configuration checks."""

import numpy as np
import pytest

from strucadj.core.comm import SerialComm, comm_context
from strucadj.core.config import IntegratorConfig, PerturbationMode, VerificationConfig
from strucadj.optimization.verification import (
    GradientReport,
    approximate_gradient,
    check_design_jacobian,
    check_jacobian,
    directional_derivative,
)


class QuadraticResidual:
    """R = q̈ + 2 q̇ + x0 q^2 with a deliberately wrong Jacobian option."""

    num_states = 2
    num_design_vars = 1

    def __init__(self, broken=False):
        self.broken = broken

    def residual(self, t, q, qdot, qddot, x):
        return qddot + 2.0 * qdot + x[0] * q**2

    def jacobian(self, t, q, qdot, qddot, x, alpha, beta, gamma):
        dq = np.diag(x[0] * q) if self.broken else np.diag(2.0 * x[0] * q)
        return alpha * dq + beta * 2.0 * np.eye(2) + gamma * np.eye(2)

    def design_jacobian(self, t, q, qdot, qddot, x):
        return (q**2).reshape(2, 1)


def cubic(x):
    return np.array([x[0] ** 3 + x[1], x[0] * x[1]])


@pytest.mark.parametrize(
    "mode,step,rtol",
    [
        (PerturbationMode.COMPLEX, 1e-30, 1e-14),
        (PerturbationMode.CENTRAL, 1e-6, 1e-8),
        (PerturbationMode.REAL, 1e-7, 1e-5),
    ],
)
def test_approximate_gradient(mode, step, rtol):
    x = np.array([1.5, -0.5])
    exact = np.array([[3.0 * 1.5**2, 1.0], [-0.5, 1.5]])

    approx = approximate_gradient(cubic, x, step, mode)

    assert approx.shape == (2, 2)
    assert np.allclose(approx, exact, rtol=rtol)


def test_approximate_gradient_does_not_mutate():
    x = np.array([1.5, -0.5])
    seen = []

    def record(xp):
        seen.append(xp)
        return cubic(xp)

    approximate_gradient(record, x, 1e-30)

    assert np.array_equal(x, [1.5, -0.5])
    assert all(xp is not x for xp in seen)


def test_approximate_gradient_rejects_complex_design():
    with pytest.raises(ValueError):
        approximate_gradient(cubic, np.array([1.0 + 0j, 2.0]), 1e-30)


def test_directional_derivative_forward_uses_f0():
    calls = []

    def fn(eps):
        calls.append(eps)
        return np.array([np.real(eps) ** 2])

    value = directional_derivative(fn, 1e-3, PerturbationMode.REAL, f0=np.array([0.0]))

    assert calls == [1e-3]
    assert np.isclose(value[0], 1e-3)


def test_report_format():
    report = GradientReport(
        names=["Compliance"],
        values=np.array([1.25e-3]),
        analytic=np.array([[2.0, -1.0]]),
        approximate=np.array([[2.0, -1.5]]),
        mode=PerturbationMode.COMPLEX,
    )

    text = report.format()
    lines = text.splitlines()

    assert lines[0] == f"Compliance = {1.25e-3:15.9e}"
    assert lines[1].startswith("dfdx[   ]:")
    assert "Analytic" in lines[1] and "FD/CS" in lines[1] and "Error" in lines[1]
    assert lines[2].startswith("dfdx[  0]:")
    assert lines[3].startswith("dfdx[  1]:")
    assert np.allclose(report.error, [[0.0, 0.5]])
    assert report.max_abs_error == 0.5


def test_jacobian_check_detects_error():
    q = np.array([0.5, -1.0])
    qdot = np.array([0.1, 0.2])
    qddot = np.zeros(2)
    x = np.array([3.0])

    good = check_jacobian(QuadraticResidual(), 0.0, q, qdot, qddot, x, 1.0, 0.5, 0.25)
    bad = check_jacobian(QuadraticResidual(broken=True), 0.0, q, qdot, qddot, x)

    assert good.passed()
    assert not bad.passed()
    assert bad.max_abs_error > 0.1
    assert "alpha=1" in bad.format()


def test_design_jacobian_check():
    q = np.array([0.5, -1.0])
    check = check_design_jacobian(
        QuadraticResidual(), 0.0, q, np.zeros(2), np.zeros(2), np.array([3.0]),
        step=1e-30, mode=PerturbationMode.COMPLEX,
    )

    assert check.passed(rtol=1e-14)
    assert check.approximate.shape == (2, 1)


def test_integrator_config():
    config = IntegratorConfig(t_init=0.0, t_final=0.001, steps_per_unit_time=1000.0)
    assert config.num_steps == 1
    assert np.isclose(config.h, 0.001)

    default = IntegratorConfig()
    assert default.num_steps == 100
    assert np.isclose(default.h, 1e-4)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"t_final": 0.0},
        {"steps_per_unit_time": 0.0},
        {"max_order": 4},
        {"jac_assembly_freq": -1},
        {"max_newton_iters": 0},
    ],
)
def test_integrator_config_rejects(kwargs):
    with pytest.raises(ValueError):
        IntegratorConfig(**kwargs)


def test_verification_config():
    assert VerificationConfig(mode="central", step_size=1e-6).mode is PerturbationMode.CENTRAL

    with pytest.raises(ValueError):
        VerificationConfig(mode=PerturbationMode.REAL, step_size=1e-30)
    with pytest.raises(ValueError):
        VerificationConfig(step_size=-1.0)
    with pytest.raises(ValueError):
        VerificationConfig(mode="backward")


def test_serial_comm_context():
    with comm_context() as comm:
        assert isinstance(comm, SerialComm)
        assert comm.allreduce(3.0) == 3.0
        assert (comm.rank, comm.size) == (0, 1)
