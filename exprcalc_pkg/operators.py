"""Operator table shared by both parsers.

Every operator is described by its symbol, arity, precedence and whether it
is a trigonometric function. Lower precedence values bind tighter.
"""

from __future__ import annotations

from dataclasses import dataclass

from .config import MAX_OPERATOR_LENGTH


@dataclass(frozen=True)
class Operator:
    """Immutable operator descriptor."""

    symbol: str
    arity: int
    precedence: int
    trigonometric: bool = False


def _unary(symbol: str, trigonometric: bool = False) -> Operator:
    return Operator(symbol, 1, 2, trigonometric)


_OPERATORS = [
    Operator("!", 1, 1),
    Operator("^", 2, 3),
    Operator("*", 2, 4),
    Operator("/", 2, 4),
    Operator("%", 2, 4),
    Operator("log", 2, 5),
    Operator("+", 2, 6),
    Operator("-", 2, 6),
    Operator(">", 2, 7),
    Operator("<", 2, 7),
    Operator(">=", 2, 7),
    Operator("<=", 2, 7),
    Operator("==", 2, 8),
    Operator("!=", 2, 8),
    Operator("||", 2, 9),
    Operator("&&", 2, 10),
    # circular functions and their inverses
    _unary("sin", True),
    _unary("cos", True),
    _unary("tan", True),
    _unary("cotan", True),
    _unary("sec", True),
    _unary("csc", True),
    _unary("exsec", True),
    _unary("vers", True),
    _unary("covers", True),
    _unary("hav", True),
    _unary("sinc", True),
    _unary("asin", True),
    _unary("acos", True),
    _unary("atan", True),
    _unary("acotan", True),
    _unary("asec", True),
    _unary("acsc", True),
    _unary("aexsec", True),
    _unary("avers", True),
    _unary("acovers", True),
    _unary("ahav", True),
    # hyperbolic functions and their inverses
    _unary("sinh"),
    _unary("cosh"),
    _unary("tanh"),
    _unary("cotanh"),
    _unary("sech"),
    _unary("csch"),
    _unary("asinh"),
    _unary("acosh"),
    _unary("atanh"),
    _unary("acoth"),
    _unary("asech"),
    _unary("acsch"),
    # exponential, logarithm, roots
    _unary("exp"),
    _unary("ln"),
    _unary("sqrt"),
    # rounding and integer functions
    _unary("abs"),
    _unary("fpart"),
    _unary("round"),
    _unary("ceil"),
    _unary("floor"),
    _unary("fac"),
    _unary("sfac"),
    # angle conversions
    _unary("deg2rad"),
    _unary("deg2grad"),
    _unary("rad2deg"),
    _unary("rad2grad"),
    _unary("grad2deg"),
    _unary("grad2rad"),
]

OPERATORS: dict[str, Operator] = {op.symbol: op for op in _OPERATORS}

INVERSE_TRIGONOMETRIC = frozenset(
    ("asin", "acos", "atan", "acotan", "asec", "acsc", "aexsec", "avers", "acovers", "ahav")
)


def lookup(symbol: str | None) -> Operator | None:
    """Return the descriptor for symbol, or None if it is not an operator."""
    if symbol is None:
        return None
    return OPERATORS.get(symbol)


def longest_match(text: str, index: int) -> str | None:
    """Return the longest operator symbol starting at index, or None.

    Symbols are tried from MAX_OPERATOR_LENGTH characters down to one, so
    "<=" wins over "<" and "acosh" over "acos".

    Examples:
        >>> longest_match("34+cos(2*x)", 2)
        '+'
        >>> longest_match("34+cos(2*x)", 3)
        'cos'
        >>> longest_match("34+cos(2*x)", 0) is None
        True
    """
    if index < 0:
        return None
    for length in range(MAX_OPERATOR_LENGTH, 0, -1):
        end = index + length
        if end > len(text):
            continue
        candidate = text[index:end]
        if candidate in OPERATORS:
            return candidate
    return None


def is_binary(symbol: str | None) -> bool:
    """True if symbol is an operator taking two arguments."""
    op = lookup(symbol)
    return op is not None and op.arity == 2


def precedence(symbol: str) -> int:
    return OPERATORS[symbol].precedence
