"""Error taxonomy and result dataclasses for consistent API responses."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any


class ExpressionError(Exception):
    """Base class for every error raised by the engine."""

    default_code = "EXPRESSION_ERROR"

    def __init__(self, message: str, code: str | None = None):
        self.message = message
        self.code = code or self.default_code
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


class ExpressionSyntaxError(ExpressionError):
    """Raised when the input text is malformed."""

    default_code = "SYNTAX_ERROR"


class EmptyExpression(ExpressionSyntaxError):
    default_code = "EMPTY_EXPRESSION"


class UnbalancedParentheses(ExpressionSyntaxError):
    default_code = "UNBALANCED_PARENTHESES"


class IllegalAdjacentOperators(ExpressionSyntaxError):
    default_code = "ILLEGAL_ADJACENT_OPERATORS"


class IllegalCharacter(ExpressionSyntaxError):
    default_code = "ILLEGAL_CHARACTER"


class MissingOperator(ExpressionSyntaxError):
    default_code = "MISSING_OPERATOR"


class ArityMismatch(ExpressionSyntaxError):
    default_code = "ARITY_MISMATCH"


class InvalidVariable(ExpressionSyntaxError):
    default_code = "INVALID_VARIABLE"


class EvalError(ExpressionError):
    """Raised when a well-formed expression cannot be reduced to a value."""

    default_code = "EVAL_ERROR"


class UnboundVariable(EvalError):
    default_code = "UNBOUND_VARIABLE"

    def __init__(self, variable: str):
        self.variable = variable
        super().__init__(f"No value associated with {variable}")


class CyclicBinding(EvalError):
    default_code = "CYCLIC_BINDING"

    def __init__(self, variable: str):
        self.variable = variable
        super().__init__(f"Variable {variable} is defined in terms of itself")


class DivisionByZero(EvalError):
    default_code = "DIVISION_BY_ZERO"

    def __init__(self, operator: str = "/"):
        self.operator = operator
        super().__init__(f"Division by zero in operator {operator}")


class DomainError(EvalError):
    """Argument outside the mathematical domain of the operator."""

    default_code = "DOMAIN_ERROR"

    def __init__(self, operator: str, value: Any, expected: str = ""):
        self.operator = operator
        self.value = value
        message = f"{operator} argument ({value}) is outside its domain"
        if expected:
            message += f": must be {expected}"
        super().__init__(message)


class InvalidArgument(EvalError):
    default_code = "INVALID_ARGUMENT"

    def __init__(self, operator: str, value: Any, expected: str):
        self.operator = operator
        self.value = value
        super().__init__(f"{operator} argument ({value}) must be {expected}")


class UnknownOperator(EvalError):
    default_code = "UNKNOWN_OPERATOR"

    def __init__(self, operator: str):
        self.operator = operator
        super().__init__(f"Unknown operator {operator}")


class NumericOverflow(EvalError):
    default_code = "NUMERIC_OVERFLOW"

    def __init__(self, operator: str):
        self.operator = operator
        super().__init__(f"Result of {operator} is too large to represent")


class RecursionLimitExceeded(ExpressionError):
    """Raised when an expression nests deeper than MAX_EXPRESSION_DEPTH."""

    default_code = "TOO_DEEP"


@dataclass
class EvalResult:
    """Result of evaluating an expression."""

    ok: bool
    value: Decimal | None = None
    result: str | None = None
    error: str | None = None
    error_code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result_dict: dict[str, Any] = {"ok": self.ok}
        if self.result is not None:
            result_dict["result"] = self.result
        if self.error is not None:
            result_dict["error"] = self.error
        if self.error_code is not None:
            result_dict["error_code"] = self.error_code
        return result_dict

    def __repr__(self) -> str:
        if not self.ok:
            return f"EvalResult(ok=False, error={self.error!r}, error_code={self.error_code!r})"
        return f"EvalResult(ok=True, result={self.result!r})"


@dataclass
class DiffResult:
    """Result of differentiating an expression."""

    ok: bool
    derivatives: list[str] | None = None
    variables: list[str] | None = None
    error: str | None = None
    error_code: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result_dict: dict[str, Any] = {"ok": self.ok}
        if self.derivatives is not None:
            result_dict["derivatives"] = self.derivatives
        if self.variables is not None:
            result_dict["variables"] = self.variables
        if self.error is not None:
            result_dict["error"] = self.error
        if self.error_code is not None:
            result_dict["error_code"] = self.error_code
        return result_dict

    def __repr__(self) -> str:
        if not self.ok:
            return f"DiffResult(ok=False, error={self.error!r}, error_code={self.error_code!r})"
        parts = [f"ok={self.ok}", f"derivatives={self.derivatives!r}"]
        if self.variables is not None:
            parts.append(f"variables={self.variables!r}")
        return f"DiffResult({', '.join(parts)})"
