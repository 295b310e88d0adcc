"""Public API for exprcalc - returns structured objects instead of raising."""

from __future__ import annotations

import threading
from typing import Iterable, Mapping

from .bigmath import format_decimal
from .calculus import Differentiator
from .evaluator import Evaluator
from .logging_config import get_logger
from .types import DiffResult, EvalResult, ExpressionError

logger = get_logger("api")

_engine_lock = threading.Lock()
_default_evaluator: Evaluator | None = None
_default_differentiator: Differentiator | None = None


def default_evaluator() -> Evaluator:
    """Return the shared Evaluator, creating it on first use."""
    global _default_evaluator
    with _engine_lock:
        if _default_evaluator is None:
            _default_evaluator = Evaluator()
        return _default_evaluator


def default_differentiator() -> Differentiator:
    """Return the shared Differentiator, creating it on first use."""
    global _default_differentiator
    with _engine_lock:
        if _default_differentiator is None:
            _default_differentiator = Differentiator()
        return _default_differentiator


def evaluate(
    expression: str,
    bindings: Mapping[str, object] | None = None,
    angle_unit: str | None = None,
) -> EvalResult:
    """Evaluate a mathematical expression.

    Args:
        expression: Expression string (e.g., "2+3*4", "sin(pi/2)")
        bindings: Optional variable values, numbers or expression text
        angle_unit: Optional "rad", "deg" or "grad". When given, a private
            Evaluator is used so the shared one keeps its unit.

    Returns:
        EvalResult with the value, or the error message and code

    Example:
        >>> from exprcalc_pkg.api import evaluate
        >>> evaluate("2(3+x)", {"x": "1"}).result
        '8'
        >>> evaluate("1/0").error_code
        'DIVISION_BY_ZERO'
    """
    try:
        engine = default_evaluator() if angle_unit is None else Evaluator(angle_unit)
        value = engine.evaluate(expression, bindings)
    except ExpressionError as e:
        return EvalResult(ok=False, error=str(e), error_code=e.code)
    except ValueError as e:
        return EvalResult(ok=False, error=str(e), error_code="INVALID_INPUT")
    except Exception as e:
        logger.warning(f"Unexpected evaluation error: {e}", exc_info=True)
        return EvalResult(ok=False, error="Unexpected evaluation error", error_code="INTERNAL")
    return EvalResult(ok=True, value=value, result=format_decimal(value))


def differentiate(
    expression: str, variables: str | Iterable[str] | None = None
) -> DiffResult:
    """Differentiate an expression.

    Args:
        expression: Expression to differentiate (e.g., "x^2")
        variables: Semicolon delimited variable names ("x;y"); all variables
            of the expression when omitted

    Returns:
        DiffResult with one derivative per variable

    Example:
        >>> from exprcalc_pkg.api import differentiate
        >>> differentiate("cos(x-y)").derivatives
        ['-1*sin(x-y)', 'sin(x-y)']
    """
    engine = default_differentiator()
    try:
        pairs = engine.derivatives(expression, variables)
    except ExpressionError as e:
        return DiffResult(ok=False, error=str(e), error_code=e.code)
    except Exception as e:
        logger.warning(f"Unexpected differentiation error: {e}", exc_info=True)
        return DiffResult(
            ok=False, error="Unexpected differentiation error", error_code="INTERNAL"
        )
    return DiffResult(
        ok=True,
        derivatives=[derivative for _, derivative in pairs],
        variables=[name for name, _ in pairs],
    )


def validate_expression(expression: str) -> tuple[bool, str | None]:
    """Check whether an expression is syntactically valid.

    Args:
        expression: Expression string to validate

    Returns:
        Tuple of (is_valid, error_message)

    Example:
        >>> from exprcalc_pkg.api import validate_expression
        >>> validate_expression("2 + 2")
        (True, None)
        >>> validate_expression("(2+3")
        (False, 'Non matching brackets')
    """
    try:
        default_evaluator().parse(expression)
        return True, None
    except ExpressionError as e:
        return False, str(e)
    except Exception as e:
        logger.warning(f"Unexpected validation error: {e}", exc_info=True)
        return False, "Unexpected validation error"
