"""Command line interface for exprcalc."""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any

from .bigmath import format_decimal
from .calculus import Differentiator
from .config import ANGLE_UNITS, DEFAULT_ANGLE_UNIT, VERSION
from .evaluator import Evaluator
from .logging_config import get_logger, setup_logging
from .parser import parse_bindings
from .types import DiffResult, EvalResult, ExpressionError

logger = get_logger("cli")

HELP_TEXT = """\
Enter an expression to evaluate it, for example 2(3+x) or sin(pi/2).
Commands:
  let NAME=VALUE[;NAME=VALUE]  bind variables for this session
  diff EXPR [wrt x;y]         differentiate EXPR
  angle rad|deg|grad          select the angle unit
  vars                        show bound variables
  help                        show this text
  quit                        leave"""


def print_result(res: EvalResult | DiffResult, output_format: str = "human") -> None:
    """Print an evaluation or differentiation result."""
    if output_format == "json":
        print(json.dumps(res.to_dict()))
        return
    if not res.ok:
        print(f"Error: {res.error}")
        return
    if isinstance(res, EvalResult):
        print(res.result)
        return
    names = res.variables or []
    for i, derivative in enumerate(res.derivatives or []):
        label = f"d/d{names[i]}: " if i < len(names) else ""
        print(f"{label}{derivative}")


def run_evaluation(
    evaluator: Evaluator, expression: str, bindings: dict[str, Any] | None = None
) -> EvalResult:
    try:
        value = evaluator.evaluate(expression, bindings)
    except ExpressionError as e:
        return EvalResult(ok=False, error=str(e), error_code=e.code)
    return EvalResult(ok=True, value=value, result=format_decimal(value))


def run_differentiation(
    differentiator: Differentiator, expression: str, variables: str | None = None
) -> DiffResult:
    try:
        pairs = differentiator.derivatives(expression, variables)
    except ExpressionError as e:
        return DiffResult(ok=False, error=str(e), error_code=e.code)
    return DiffResult(
        ok=True,
        derivatives=[derivative for _, derivative in pairs],
        variables=[name for name, _ in pairs],
    )


def repl_loop(evaluator: Evaluator, output_format: str = "human") -> None:
    """Interactive read-eval-print loop."""
    differentiator = Differentiator()
    bindings: dict[str, str] = {}
    print("exprcalc - type 'help' for commands, 'quit' to exit.")

    while True:
        try:
            raw = input(">>> ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\nGoodbye.")
            break
        if not raw:
            continue

        command, _, rest = raw.partition(" ")
        command = command.lower()
        rest = rest.strip()

        if command in ("quit", "exit"):
            break
        if command == "help":
            print(HELP_TEXT)
        elif command == "vars":
            for name, value in bindings.items():
                print(f"{name} = {value}")
        elif command == "angle" and rest:
            try:
                evaluator.set_angle_unit(rest)
            except ValueError as e:
                print(f"Error: {e}")
        elif command == "let" and rest:
            try:
                bindings.update(parse_bindings(rest))
            except ExpressionError as e:
                print(f"Error: {e}")
        elif command == "diff" and rest:
            expression, _, variables = rest.partition(" wrt ")
            print_result(
                run_differentiation(differentiator, expression, variables or None),
                output_format,
            )
        else:
            print_result(run_evaluation(evaluator, raw, bindings), output_format)


def main_entry(argv: list[str] | None = None) -> int:
    """
    Main entry point for the exprcalc CLI.

    Args:
        argv: Optional command-line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, 1 for errors)
    """
    parser = argparse.ArgumentParser(prog="exprcalc")
    parser.add_argument(
        "-e",
        "--eval",
        type=str,
        help="Evaluate one expression and exit (non-interactive)",
        dest="eval_expr",
    )
    parser.add_argument(
        "--vars",
        type=str,
        help='Variable bindings for --eval, e.g. "x=pi;y=2.34"',
    )
    parser.add_argument(
        "-d",
        "--diff",
        type=str,
        help="Differentiate one expression and exit",
        dest="diff_expr",
    )
    parser.add_argument(
        "--wrt",
        type=str,
        help='Variables to differentiate with respect to, e.g. "x;y"',
    )
    parser.add_argument(
        "--angle",
        type=str,
        choices=list(ANGLE_UNITS),
        default=DEFAULT_ANGLE_UNIT,
        help="Angle unit for trigonometric functions",
    )
    parser.add_argument(
        "-j", "--json", action="store_true", help="Emit JSON for machine parsing"
    )
    parser.add_argument(
        "-v", "--version", action="store_true", help="Show program version"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Set logging level",
    )
    parser.add_argument("--log-file", type=str, help="Write logs to file")
    args = parser.parse_args(argv)

    setup_logging(level=args.log_level, log_file=args.log_file)
    output_format = "json" if args.json else "human"

    if args.version:
        print(VERSION)
        return 0

    evaluator = Evaluator(angle_unit=args.angle)

    if args.eval_expr is not None:
        try:
            bindings = parse_bindings(args.vars or "")
        except ExpressionError as e:
            res = EvalResult(ok=False, error=str(e), error_code=e.code)
        else:
            res = run_evaluation(evaluator, args.eval_expr, bindings)
        print_result(res, output_format)
        return 0 if res.ok else 1

    if args.diff_expr is not None:
        res = run_differentiation(Differentiator(), args.diff_expr, args.wrt)
        print_result(res, output_format)
        return 0 if res.ok else 1

    logger.debug("Starting interactive session")
    repl_loop(evaluator, output_format)
    return 0


if __name__ == "__main__":
    sys.exit(main_entry())
