"""Tests for the command-line driver."""

import logging

import pytest

from strucadj.cli import build_parser, main
from strucadj.core.errors import NewtonConvergenceError
from strucadj.optimization.interface import BDFIntegrator


@pytest.fixture(autouse=True)
def restore_package_logger():
    logger = logging.getLogger("strucadj")
    handlers, level, propagate = logger.handlers[:], logger.level, logger.propagate
    yield
    logger.handlers[:] = handlers
    logger.setLevel(level)
    logger.propagate = propagate


def test_parser_defaults():
    args = build_parser().parse_args([])

    assert args.mode == "complex"
    assert args.max_order == 2
    assert args.jac_freq == 1
    assert args.step_size is None
    assert args.thickness == 0.03


def test_main_prints_report(capsys):
    code = main(["--t-final", "0.001", "--num-panels", "2"])
    out = capsys.readouterr().out

    assert code == 0
    assert "Compliance =" in out
    assert "dfdx[   ]:" in out
    assert "dfdx[  1]:" in out


def test_main_element_checks(capsys):
    code = main(
        ["--t-final", "0.0005", "--num-panels", "2", "--tip-spring",
         "--test-element", "--mode", "central"]
    )
    out = capsys.readouterr().out

    assert code == 0
    assert "design jacobian" in out
    assert "Compliance =" in out


def test_main_reports_newton_failure(capsys, monkeypatch):
    def fail(self, functions, x, verification=None):
        raise NewtonConvergenceError(4, 25, 1.0e3)

    monkeypatch.setattr(BDFIntegrator, "verify", fail)
    code = main(["--t-final", "0.001", "--num-panels", "2"])
    err = capsys.readouterr().err

    assert code == 1
    assert "error: Newton solve at step 4" in err


def test_main_rejects_thickness_out_of_bounds():
    with pytest.raises(SystemExit):
        main(["--thickness", "0.5"])


def test_main_rejects_bad_config():
    with pytest.raises(SystemExit):
        main(["--max-order", "5"])


def test_setup_logging_writes_file(tmp_path):
    from strucadj.utils.logging import setup_logging

    log_file = tmp_path / "run.log"
    logger = setup_logging(logging.INFO, str(log_file))
    logging.getLogger("strucadj.stepping.forward").info("forward pass done")
    for handler in logger.handlers:
        handler.flush()

    assert "forward pass done" in log_file.read_text()
    assert len(logger.handlers) == 2
