"""Input preprocessing, syntax validation and the evaluator's parser.

This module handles:
- Input normalization (whitespace, case)
- Scientific notation rewriting (1e-3 -> 1*10^-3)
- Implicit multiplication (2x -> 2*x, (a)(b) -> (a)*(b))
- Syntax validation (brackets, adjacent operators, illegal characters)
- Parsing preprocessed text into a tree of nodes

The parser works directly on the text. Argument boundaries are found by
scanning forward for an operator whose precedence is not tighter than the
operator being parsed, so no token stream is ever built.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation

from .config import ALLOWED_SYMBOLS, MAX_EXPRESSION_DEPTH, MAX_INPUT_LENGTH, MAX_OPERATOR_LENGTH
from .nodes import Constant, Expression, Node, Variable
from .operators import is_binary, longest_match, precedence
from .types import (
    ArityMismatch,
    EmptyExpression,
    ExpressionSyntaxError,
    IllegalAdjacentOperators,
    IllegalCharacter,
    MissingOperator,
    RecursionLimitExceeded,
    UnbalancedParentheses,
)

NUMBER_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)$")
LITERAL_RE = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")
IDENTIFIER_RE = re.compile(r"^[A-Za-z][A-Za-z0-9]*$")
SCIENTIFIC_E_REGEX = re.compile(r"(?<=\d)e(?=[+-]?\d)")


def _is_alpha(ch: str) -> bool:
    return ("a" <= ch <= "z") or ("A" <= ch <= "Z")


def _is_digit(ch: str) -> bool:
    return "0" <= ch <= "9"


def is_all_numbers(text: str) -> bool:
    """True if text is a plain decimal literal with an optional sign."""
    return bool(NUMBER_RE.match(text))


def is_numeric_literal(text: str) -> bool:
    """True if text is a decimal literal, optionally in E notation."""
    return bool(LITERAL_RE.match(text))


def is_variable(text: str) -> bool:
    """True if text is a legal identifier that contains no operator name.

    Note that names such as "cosmos" are not variables: "cos" is found inside
    them by the longest-match lookup.
    """
    if not IDENTIFIER_RE.match(text):
        return False
    return all(longest_match(text, i) is None for i in range(len(text)))


def match_paren(text: str, index: int) -> int:
    """Return the index of the ')' matching the '(' at index.

    If no matching bracket exists, index itself is returned.
    """
    count = 0
    for i in range(index, len(text)):
        if text[i] == "(":
            count += 1
        elif text[i] == ")":
            count -= 1
        if count == 0:
            return i
    return index


def back_track(text: str) -> str | None:
    """Return the operator that ends text, if any.

    Examples:
        >>> back_track("5+x") is None
        True
        >>> back_track("5^")
        '^'
    """
    for start in range(max(0, len(text) - MAX_OPERATOR_LENGTH), len(text)):
        op = longest_match(text, start)
        if op is not None and start + len(op) == len(text):
            return op
    return None


def normalize(input_str: str) -> str:
    """Remove all whitespace and lower-case the input."""
    return "".join(input_str.split()).lower()


def rewrite_scientific(expr: str) -> str:
    """Rewrite E notation into an explicit power of ten.

    A digit followed by "e" and a (signed) digit becomes "*10^", so 1e-3 is
    parsed as 1*10^-3. An "e" at the end of the text is left alone.
    """
    return SCIENTIFIC_E_REGEX.sub("*10^", expr)


def insert_implicit_multiplication(expr: str) -> str:
    """Insert '*' where juxtaposition means multiplication.

    Supported cases:
    - variable followed by a one-argument operator: xcos(x)
    - constant followed by a variable or operator name: 2x, 2tan(x)
    - constant followed by '(': 2(3+x)
    - ')' followed by a variable or operator name: (2-x)x, (2-x)sin(x)
    - ')' followed by '(': (2-x)(x+1), sin(x)(2-x)
    - variable followed by '(': x(x+1), x(1-sin(x))

    A constant or ')' followed by a two-argument operator name (8log2) gets
    no '*'. Variable names therefore may contain digits only at the end.
    """
    out: list[str] = []
    i = 0
    length = len(expr)
    while i < length:
        ch = expr[i]
        prev = expr[i - 1] if i > 0 else ""
        op = longest_match(expr, i)

        if op is not None and not is_binary(op) and _is_alpha(prev):
            out.append("*")
        elif _is_alpha(ch) and _is_digit(prev) and not is_binary(op):
            out.append("*")
        elif ch == "(" and _is_digit(prev):
            out.append("*")
        elif _is_alpha(ch) and prev == ")" and not is_binary(op):
            out.append("*")
        elif ch == "(" and prev == ")":
            out.append("*")
        elif ch == "(" and _is_alpha(prev) and back_track(expr[:i]) is None:
            out.append("*")

        if op is not None:
            out.append(op)
            i += len(op)
        else:
            out.append(ch)
            i += 1

    return "".join(out)


def preprocess(input_str: str) -> str:
    """Preprocess raw input for parsing.

    Applies, in order: whitespace removal, lower-casing, scientific notation
    rewriting and implicit multiplication.

    Args:
        input_str: Raw expression text

    Returns:
        Text ready for validate() and the parsers

    Raises:
        EmptyExpression: if the input is empty or only whitespace
        ExpressionSyntaxError: if the input exceeds MAX_INPUT_LENGTH
    """
    if input_str is None:
        raise EmptyExpression("Expression is null or empty string")
    if len(input_str) > MAX_INPUT_LENGTH:
        raise ExpressionSyntaxError(
            f"Input too long (max {MAX_INPUT_LENGTH} characters)", "TOO_LONG"
        )
    expr = normalize(input_str)
    if not expr:
        raise EmptyExpression("Expression is null or empty string")
    return insert_implicit_multiplication(rewrite_scientific(expr))


def is_balanced(expr: str) -> bool:
    """True if '(' and ')' occur equally often."""
    return expr.count("(") == expr.count(")")


def validate(expr: str) -> None:
    """Check the syntax of preprocessed text.

    Only letters, digits, operator symbols and the characters ( ) . > < & = |
    are allowed. A two-argument operator may not directly follow another
    operator unless it is '+' or '-' (those denote signed literals), which
    rejects input such as 3**x.

    Raises:
        UnbalancedParentheses, IllegalAdjacentOperators, IllegalCharacter
    """
    if not is_balanced(expr):
        raise UnbalancedParentheses("Non matching brackets")

    for i, ch in enumerate(expr):
        op = longest_match(expr, i)
        if op is not None:
            following = longest_match(expr, i + len(op))
            if is_binary(following) and following not in ("+", "-"):
                raise IllegalAdjacentOperators(f"Syntax error near -> {expr[i:]}")
        elif not (_is_alpha(ch) or _is_digit(ch) or ch in ALLOWED_SYMBOLS):
            raise IllegalCharacter(f"Syntax error near -> {expr[i:]}")


def _argument(operator: str | None, expr: str, index: int) -> str:
    """Return the argument of operator that starts at index.

    The argument ends in front of the first operator whose precedence is not
    tighter than the precedence of operator, unless the text collected so far
    ends with a two-argument operator (so "-" in "2^-1" stays a sign).
    Parenthesized groups are taken whole.
    """
    limit = -1 if operator is None else precedence(operator)
    i = index
    length = len(expr)
    while i < length:
        if expr[i] == "(":
            i = match_paren(expr, i) + 1
            continue
        op = longest_match(expr, i)
        if op is None:
            i += 1
            continue
        current = expr[index:i]
        if current and not is_binary(back_track(current)) and precedence(op) >= limit:
            return current
        i += len(op)
    return expr[index:]


def _constant(text: str) -> Constant:
    try:
        return Constant(Decimal(text))
    except InvalidOperation as e:
        raise ExpressionSyntaxError(f"Invalid number {text}") from e


def parse(expr: str, depth: int = 0) -> Node:
    """Parse preprocessed, validated text into a tree.

    Args:
        expr: Output of preprocess() that passed validate()
        depth: Current nesting depth

    Returns:
        Root node of the parse tree

    Raises:
        ArityMismatch: an operator is missing an argument
        MissingOperator: two operands follow each other without an operator
        RecursionLimitExceeded: nesting deeper than MAX_EXPRESSION_DEPTH
    """
    if depth > MAX_EXPRESSION_DEPTH:
        raise RecursionLimitExceeded(
            f"Expression too deeply nested (>{MAX_EXPRESSION_DEPTH} levels)"
        )

    length = len(expr)
    if length == 0:
        raise ArityMismatch("Wrong number of arguments to operator")
    if expr[0] == "(" and match_paren(expr, 0) == length - 1:
        return parse(expr[1:-1], depth + 1)
    if is_variable(expr):
        return Variable(expr)
    if is_all_numbers(expr):
        return _constant(expr)

    tree: Node | None = None
    i = 0
    while i < length:
        op = longest_match(expr, i)
        if op is None:
            if tree is not None:
                raise MissingOperator(f"Missing operator near -> {expr[i:]}")
            first = _argument(None, expr, i)
            op = longest_match(expr, i + len(first))
            if op is None:
                raise MissingOperator(f"Missing operator in {expr}")
            if not is_binary(op):
                raise ArityMismatch(
                    f"Operator {op} takes a single argument and cannot follow {first}"
                )
            second = _argument(op, expr, i + len(first) + len(op))
            if not second:
                raise ArityMismatch(f"Wrong number of arguments to operator {op}")
            tree = Expression(op, parse(first, depth + 1), parse(second, depth + 1))
            i += len(first) + len(op) + len(second)
            continue

        operand = _argument(op, expr, i + len(op))
        if not operand:
            raise ArityMismatch(f"Wrong number of arguments to operator {op}")
        if is_binary(op):
            if tree is None:
                if op not in ("+", "-"):
                    raise ArityMismatch(f"Wrong number of arguments to operator {op}")
                tree = Constant(Decimal(0))
            tree = Expression(op, tree, parse(operand, depth + 1))
        else:
            if tree is not None:
                raise MissingOperator(f"Missing operator before {op}")
            tree = Expression(op, parse(operand, depth + 1))
        i += len(op) + len(operand)

    return tree


def parse_bindings(variables: str) -> dict[str, str]:
    """Split semicolon delimited "name=value" pairs into a mapping.

    Example:
        >>> parse_bindings("x=pi; y=2.34")
        {'x': 'pi', 'y': '2.34'}
    """
    bindings: dict[str, str] = {}
    if not variables:
        return bindings
    for pair in normalize(variables).split(";"):
        if not pair:
            continue
        name, sep, value = pair.partition("=")
        if not sep or not name:
            raise ExpressionSyntaxError(f"Syntax error -> {pair}")
        bindings[name] = value
    return bindings
