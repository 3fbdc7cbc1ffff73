"""
Command-line driver: integrate the plate model, compute the compliance
gradient by adjoint, and compare it with a finite-difference or
complex-step reference.

Usage:
    strucadj [--mode complex|real|central] [--step-size H] [--max-order P]
             [--t-final T] [--steps-per-unit-time S] [--jac-freq F]
             [--thickness X] [--num-panels N] [--tip-spring]
             [--test-element] [-v]
"""

import argparse
import logging
import sys
from typing import Optional, Sequence

import numpy as np

from strucadj.core.comm import comm_context
from strucadj.core.config import IntegratorConfig, PerturbationMode, VerificationConfig
from strucadj.core.errors import StrucAdjError
from strucadj.functions.compliance import Compliance
from strucadj.models.plate import initial_design, plate_model
from strucadj.optimization.interface import BDFIntegrator
from strucadj.optimization.verification import run_element_checks
from strucadj.utils.logging import setup_logging

logger = logging.getLogger(__name__)

DEFAULT_STEP = {
    PerturbationMode.COMPLEX: 1e-30,
    PerturbationMode.REAL: 1e-6,
    PerturbationMode.CENTRAL: 1e-6,
}


def build_parser() -> argparse.ArgumentParser:
    defaults = IntegratorConfig()
    parser = argparse.ArgumentParser(
        prog="strucadj",
        description="Adjoint compliance gradient of a BDF-integrated plate strip",
    )
    parser.add_argument("--t-init", type=float, default=defaults.t_init)
    parser.add_argument("--t-final", type=float, default=defaults.t_final)
    parser.add_argument(
        "--steps-per-unit-time", type=float, default=defaults.steps_per_unit_time
    )
    parser.add_argument("--max-order", type=int, default=defaults.max_order)
    parser.add_argument(
        "--jac-freq", type=int, default=defaults.jac_assembly_freq,
        help="rebuild the Newton Jacobian every F steps (0: every iteration)",
    )
    parser.add_argument(
        "--mode", choices=[m.value for m in PerturbationMode],
        default=PerturbationMode.COMPLEX.value,
        help="reference gradient perturbation",
    )
    parser.add_argument(
        "--step-size", type=float, default=None,
        help="perturbation size (default 1e-30 complex, 1e-6 otherwise)",
    )
    parser.add_argument("--thickness", type=float, default=0.03)
    parser.add_argument("--num-panels", type=int, default=4)
    parser.add_argument(
        "--tip-spring", action="store_true",
        help="ground the tip through a hardening spring (nonlinear)",
    )
    parser.add_argument(
        "--test-element", action="store_true",
        help="check residual derivatives against perturbations first",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose > 1:
        level = logging.DEBUG
    setup_logging(level)

    mode = PerturbationMode(args.mode)
    try:
        config = IntegratorConfig(
            t_init=args.t_init,
            t_final=args.t_final,
            steps_per_unit_time=args.steps_per_unit_time,
            max_order=args.max_order,
            jac_assembly_freq=args.jac_freq,
        )
        verification = VerificationConfig(
            step_size=args.step_size if args.step_size is not None else DEFAULT_STEP[mode],
            mode=mode,
        )
    except ValueError as exc:
        parser.error(str(exc))

    with comm_context() as comm:
        try:
            model = plate_model(
                args.num_panels, tip_spring=args.tip_spring, t_init=args.t_init
            )
            x = initial_design(model, args.thickness)
            lower, upper = model.thickness_bounds()
            if np.any(x < lower) or np.any(x > upper):
                parser.error(
                    f"thickness {args.thickness:g} outside bounds "
                    f"[{lower.min():g}, {upper.max():g}]"
                )

            if args.test_element:
                n = model.num_states
                q = 1.0e-4 * np.linspace(1.0, 2.0, n)
                qdot = np.full(n, 0.25)
                qddot = np.linspace(-1.0, 1.0, n)
                for check in run_element_checks(model, config.t_init, q, qdot, qddot, x):
                    print(check.format())

            with BDFIntegrator(model, config, comm=comm) as integrator:
                compliance = Compliance(model, comm)
                report = integrator.verify([compliance], x, verification)
        except StrucAdjError as exc:
            logger.error("run aborted: %s", exc)
            print(f"error: {exc}", file=sys.stderr)
            return 1

    print(report.format())
    return 0


if __name__ == "__main__":
    sys.exit(main())
