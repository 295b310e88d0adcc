"""Symbolic differentiation by term rewriting.

The differentiator turns infix text into a tree, applies the rules of
differentiation recursively and then re-simplifies the result until a full
pass changes nothing. Simplification happens in the node constructors
(make_sum, make_product, ...): each constructor applies a fixed set of
algebraic identities before building a node.

Example:
    >>> Differentiator().differentiate("cos(x-y)", "x;y")
    ['-1*sin(x-y)', 'sin(x-y)']
"""

from __future__ import annotations

import threading
from decimal import Decimal
from typing import Callable, Iterable

from . import bigmath
from .config import (
    DEFAULT_VARIABLE,
    MAX_EXPRESSION_DEPTH,
    MAX_SIMPLIFY_PASSES,
    NAMED_CONSTANTS,
    WORKING_CONTEXT,
)
from .logging_config import get_logger
from .nodes import Constant, Expression, Node, Variable
from .operators import precedence
from .parser import is_all_numbers, is_variable, normalize, parse, preprocess, validate
from .types import (
    ArityMismatch,
    EvalError,
    ExpressionSyntaxError,
    InvalidVariable,
    RecursionLimitExceeded,
    UnknownOperator,
)

logger = get_logger("calculus")

ZERO = Constant(Decimal(0))
ONE = Constant(Decimal(1))
TWO = Constant(Decimal(2))
MINUS_ONE = Constant(Decimal(-1))


def _too_deep(depth: int) -> None:
    if depth > MAX_EXPRESSION_DEPTH:
        raise RecursionLimitExceeded(
            f"Expression too deeply nested (>{MAX_EXPRESSION_DEPTH} levels)"
        )


# ---------------------------------------------------------------------------
# infix text -> tree
# ---------------------------------------------------------------------------


def _collect_variables(tree: Node) -> list[str]:
    """Variable names in tree, in order of first occurrence in the text."""
    found: list[str] = []
    stack = [tree]
    while stack:
        node = stack.pop()
        if isinstance(node, Variable):
            if node.name not in found and node.name not in NAMED_CONSTANTS:
                found.append(node.name)
        elif isinstance(node, Expression):
            if node.right is not None:
                stack.append(node.right)
            stack.append(node.left)
    return found


# ---------------------------------------------------------------------------
# prefix notation
# ---------------------------------------------------------------------------


def _atom_text(node: Node) -> str:
    if isinstance(node, Constant):
        return bigmath.format_decimal(node.value)
    return node.name


def to_prefix(node: Node) -> str:
    """Render node as a prefix expression such as "( + 2 x )"."""
    if not isinstance(node, Expression):
        return _atom_text(node)
    if node.right is None:
        return f"( {node.operator} {to_prefix(node.left)} )"
    return f"( {node.operator} {to_prefix(node.left)} {to_prefix(node.right)} )"


def parse_prefix(text: str) -> Node:
    """Parse a prefix expression produced by to_prefix().

    Raises:
        ExpressionSyntaxError: if text is not a well-formed prefix expression
    """
    tokens = text.split()
    if not tokens:
        raise ExpressionSyntaxError("Empty prefix expression", "EMPTY_EXPRESSION")
    node, position = _read_prefix(tokens, 0, 0)
    if position != len(tokens):
        raise ExpressionSyntaxError(f"Trailing tokens in {text}")
    return node


def _read_prefix(tokens: list[str], position: int, depth: int) -> tuple[Node, int]:
    _too_deep(depth)
    if position >= len(tokens):
        raise ArityMismatch("Unexpected end of prefix expression")
    token = tokens[position]
    if token != "(":
        if is_all_numbers(token):
            return Constant(Decimal(token)), position + 1
        if is_variable(token):
            return Variable(token), position + 1
        raise ExpressionSyntaxError(f"Unexpected token {token}")

    if position + 1 >= len(tokens):
        raise ArityMismatch("Unexpected end of prefix expression")
    op = tokens[position + 1]
    arguments: list[Node] = []
    position += 2
    while position < len(tokens) and tokens[position] != ")":
        argument, position = _read_prefix(tokens, position, depth + 1)
        arguments.append(argument)
    if position >= len(tokens):
        raise ExpressionSyntaxError("Non matching brackets", "UNBALANCED_PARENTHESES")
    if not 1 <= len(arguments) <= 2:
        raise ArityMismatch(f"Wrong number of arguments to operator {op}")
    try:
        return Expression(op, *arguments), position + 1
    except UnknownOperator as e:
        raise ExpressionSyntaxError(f"Unknown operator {op}") from e


# ---------------------------------------------------------------------------
# tree -> infix text
# ---------------------------------------------------------------------------


def _is_atom(node: Node) -> bool:
    return not isinstance(node, Expression)


def _is_binary_node(node: Node) -> bool:
    return isinstance(node, Expression) and node.right is not None


def _is(node: Node, op: str) -> bool:
    return isinstance(node, Expression) and node.operator == op


def _parenthesized(node: Node) -> str:
    return "(" + to_infix(node) + ")"


def _operand(node: Node, op: str) -> str:
    """Infix text of an operand of op, parenthesized if it binds looser than op."""
    if _is_binary_node(node) and precedence(node.operator) > precedence(op):
        return _parenthesized(node)
    return to_infix(node)


def to_infix(node: Node) -> str:
    """Render node as infix text with the parentheses it needs."""
    if _is_atom(node):
        return _atom_text(node)
    op = node.operator
    if node.right is None:
        return f"{op}({to_infix(node.left)})"

    a, b = node.left, node.right
    if _is_atom(a):
        left = _atom_text(a)
        if op == "^" and isinstance(a, Constant) and a.value < 0:
            left = "(" + left + ")"
        if _is_atom(b):
            return left + op + _atom_text(b)
        if op == "+":
            return left + op + _operand(b, op)
        if op == "-" and (_is(b, "/") or _is(b, "*")):
            return left + op + to_infix(b)
        if op == "*" and (_is(b, "^") or _is(b, "*") or not _is_binary_node(b)):
            return left + op + to_infix(b)
        if _is_binary_node(b):
            return left + op + _parenthesized(b)
        return left + op + to_infix(b)

    if _is_atom(b):
        if op in ("+", "-") or not _is_binary_node(a):
            return _operand(a, op) + op + _atom_text(b)
        return _parenthesized(a) + op + _atom_text(b)

    if op == "+":
        return _operand(a, op) + op + _operand(b, op)
    if op == "-":
        if _is(b, "*") or _is(b, "/"):
            return _operand(a, op) + op + to_infix(b)
        return _operand(a, op) + op + _parenthesized(b)
    left = _parenthesized(a) if _is_binary_node(a) else to_infix(a)
    right = _parenthesized(b) if _is_binary_node(b) else to_infix(b)
    return left + op + right


def collapse_signs(text: str) -> str:
    """Collapse doubled signs: ++ and -- become +, +- and -+ become -."""
    out: list[str] = []
    i = 0
    while i < len(text):
        pair = text[i : i + 2]
        if pair in ("++", "--"):
            out.append("+")
            i += 2
        elif pair in ("+-", "-+"):
            out.append("-")
            i += 2
        else:
            out.append(text[i])
            i += 1
    return "".join(out)


# ---------------------------------------------------------------------------
# simplifying constructors
# ---------------------------------------------------------------------------


def _const(value: Decimal) -> Constant:
    return Constant(WORKING_CONTEXT.plus(value))


def _is_const(node: Node) -> bool:
    return isinstance(node, Constant)


def _is_var(node: Node) -> bool:
    return isinstance(node, Variable)


def _compound(node: Node) -> bool:
    return isinstance(node, Expression)


def _is_zero(node: Node) -> bool:
    return isinstance(node, Constant) and node.value == 0


def _is_one(node: Node) -> bool:
    return isinstance(node, Constant) and node.value == 1


def _signed_sum(value: Decimal, term: Node) -> Node:
    if value >= 0:
        return make_sum(_const(value), term)
    return make_subtraction(term, _const(-value))


def make_sum(a: Node, b: Node) -> Node:
    """Build a + b."""
    if _is_const(a) and _is_const(b):
        return _const(WORKING_CONTEXT.add(a.value, b.value))
    if _is_zero(a):
        return b
    if _is_zero(b):
        return a
    if a == b:
        return make_product(TWO, a)
    if _compound(a):
        if _is_const(b):
            return _sum_with_constant(a, b)
        if _is_var(b):
            return _sum_with_variable(a, b)
        return _sum_of_expressions(a, b)
    if _compound(b):
        if _is_const(a):
            return _sum_with_constant(b, a)
        return _sum_with_variable(b, a)
    return Expression("+", a, b)


def _sum_with_constant(a: Expression, b: Constant) -> Node:
    # ( + 5 ( + 3 x ) ) => ( + 8 x )
    c = b.value
    if _is(a, "+"):
        if _is_const(a.left):
            return _signed_sum(WORKING_CONTEXT.add(c, a.left.value), a.right)
        if _is_const(a.right):
            return _signed_sum(WORKING_CONTEXT.add(c, a.right.value), a.left)
    elif _is(a, "-"):
        if _is_const(a.left):
            return make_subtraction(_const(WORKING_CONTEXT.add(c, a.left.value)), a.right)
        if _is_const(a.right):
            return _signed_sum(WORKING_CONTEXT.subtract(c, a.right.value), a.left)
    return Expression("+", a, b)


def _sum_with_variable(a: Expression, b: Variable) -> Node:
    if _is(a, "+"):
        if a.left == b:
            return make_sum(make_product(TWO, b), a.right)
        if a.right == b:
            return make_sum(make_product(TWO, b), a.left)
    elif _is(a, "-"):
        if a.left == b:
            return make_subtraction(make_product(TWO, b), a.right)
        if a.right == b:
            return a.left
    elif _is(a, "*"):
        if _is_const(a.left) and a.right == b:
            return make_product(make_sum(ONE, a.left), b)
        if _is_const(a.right) and a.left == b:
            return make_product(make_sum(ONE, a.right), b)
    return Expression("+", a, b)


def _sum_of_expressions(a: Expression, b: Expression) -> Node:
    p, q = a.left, a.right
    if _is(a, "+") and _is(b, "+"):
        if p == b.left:
            return make_sum(make_product(TWO, p), make_sum(q, b.right))
        if q == b.right:
            return make_sum(make_product(TWO, q), make_sum(p, b.left))
        if p == b.right:
            return make_sum(make_product(TWO, p), make_sum(q, b.left))
        if q == b.left:
            return make_sum(make_product(TWO, q), make_sum(p, b.right))
    elif _is(a, "+") and _is(b, "-"):
        if p == b.left:
            return make_sum(make_product(TWO, p), make_subtraction(q, b.right))
        if p == b.right:
            return make_sum(q, b.left)
        if q == b.left:
            return make_sum(make_product(TWO, q), make_subtraction(p, b.right))
        if q == b.right:
            return make_sum(p, b.left)
    elif _is(a, "+") and _is(b, "*"):
        if _is_const(b.left):
            if p == b.right:
                return make_sum(q, make_product(make_sum(ONE, b.left), p))
            if q == b.right:
                return make_sum(p, make_product(make_sum(ONE, b.left), q))
        elif _is_const(b.right):
            if p == b.left:
                return make_sum(q, make_product(make_sum(ONE, b.right), p))
            if q == b.left:
                return make_sum(p, make_product(make_sum(ONE, b.right), q))
    elif _is(a, "-") and _is(b, "+"):
        return _sum_of_expressions(b, a)
    elif _is(a, "-") and _is(b, "-"):
        if p == b.left:
            return make_subtraction(make_product(TWO, p), make_sum(q, b.right))
        if p == b.right:
            return make_subtraction(b.left, q)
        if q == b.left:
            return make_subtraction(p, b.right)
        if q == b.right:
            return make_subtraction(make_sum(p, b.left), make_product(TWO, q))
    elif _is(a, "-") and _is(b, "*"):
        if _is_const(b.left):
            if p == b.right:
                return make_subtraction(make_product(make_sum(ONE, b.left), p), q)
            if q == b.right:
                return make_sum(make_product(make_subtraction(b.left, ONE), q), p)
        elif _is_const(b.right):
            if p == b.left:
                return make_subtraction(make_product(make_sum(ONE, b.right), p), q)
            if q == b.left:
                return make_sum(make_product(make_subtraction(b.right, ONE), q), p)
    return Expression("+", a, b)


def make_product(a: Node, b: Node) -> Node:
    """Build a * b."""
    if _is_const(a) and _is_const(b):
        return _const(WORKING_CONTEXT.multiply(a.value, b.value))
    if _is_zero(a) or _is_zero(b):
        return ZERO
    if _is_one(a):
        return b
    if _is_one(b):
        return a
    if a == b:
        return make_power(a, TWO)
    if _compound(a) and _compound(b):
        return _product_of_expressions(a, b)
    if _compound(a):
        if _is_const(b):
            return _product_with_constant(a, b)
        return _product_with_variable(a, b)
    if _compound(b):
        if _is_const(a):
            return _product_with_constant(b, a)
        return _product_with_variable(b, a)
    return Expression("*", a, b)


def _product_with_variable(a: Expression, b: Variable) -> Node:
    if _is(a, "+"):
        return make_sum(make_product(b, a.left), make_product(b, a.right))
    if _is(a, "-"):
        return make_subtraction(make_product(b, a.left), make_product(b, a.right))
    if _is(a, "^") and a.left == b:
        return make_power(b, make_sum(ONE, a.right))
    return Expression("*", b, a)


def _product_of_expressions(a: Expression, b: Expression) -> Node:
    # (p+q)*(p-q) => p^2-q^2
    if _is(a, "+") and _is(b, "-"):
        if a.left == b.left and a.right == b.right:
            return make_subtraction(make_power(a.left, TWO), make_power(a.right, TWO))
        if a.left == b.right and a.right == b.left:
            return make_subtraction(make_power(a.right, TWO), make_power(a.left, TWO))
    elif _is(a, "-") and _is(b, "+"):
        if (a.left == b.left and a.right == b.right) or (
            a.left == b.right and a.right == b.left
        ):
            return make_subtraction(make_power(a.left, TWO), make_power(a.right, TWO))
    return Expression("*", a, b)


def _product_with_constant(a: Expression, b: Constant) -> Node:
    c = b.value
    if _is(a, "+"):
        if c < 0:
            return make_subtraction(make_product(b, a.left), make_product(_const(-c), a.right))
        return make_sum(make_product(b, a.left), make_product(b, a.right))
    if _is(a, "-"):
        if c > 0:
            return make_subtraction(make_product(b, a.left), make_product(b, a.right))
        return make_sum(make_product(b, a.left), make_product(_const(-c), a.right))
    if _is(a, "*"):
        if _is_const(a.left):
            return make_product(_const(WORKING_CONTEXT.multiply(c, a.left.value)), a.right)
        if _is_const(a.right):
            return make_product(_const(WORKING_CONTEXT.multiply(c, a.right.value)), a.left)
    return Expression("*", b, a)


def make_division(a: Node, b: Node) -> Node:
    """Build a / b."""
    if _is_const(a) and _is_const(b):
        if b.value != 0:
            quotient = WORKING_CONTEXT.divide(a.value, b.value)
            if bigmath.is_integer(quotient):
                return _const(quotient)
        return Expression("/", a, b)
    if _is_zero(a):
        return ZERO
    if _is_one(b):
        return a
    if a == b:
        return ONE
    if _is(a, "+") or _is(a, "-") or _is(a, "*"):
        return _divide_through(a, b)
    if _is(a, "/"):
        if not _compound(b):
            return make_division(a.left, make_product(b, a.right))
        if _is(b, "/"):
            return make_division(make_product(a.left, b.right), make_product(a.right, b.left))
    return Expression("/", a, b)


def _divide_through(a: Expression, b: Node) -> Node:
    if b == a.left:
        if _is(a, "+"):
            return make_sum(ONE, make_division(a.right, b))
        if _is(a, "-"):
            return make_subtraction(ONE, make_division(a.right, b))
        return a.right
    if b == a.right:
        if _is(a, "+"):
            return make_sum(make_division(a.left, b), ONE)
        if _is(a, "-"):
            return make_subtraction(make_division(a.left, b), ONE)
        return a.left
    return Expression("/", a, b)


def make_subtraction(a: Node, b: Node) -> Node:
    """Build a - b."""
    if _is_const(a) and _is_const(b):
        return _const(WORKING_CONTEXT.subtract(a.value, b.value))
    if _is_zero(a):
        return make_product(MINUS_ONE, b)
    if _is_zero(b):
        return a
    if a == b:
        return ZERO
    if _compound(b) and not _compound(a):
        return _subtract_expression_from_atom(a, b)
    if _compound(a) and not _compound(b):
        return _subtract_atom_from_expression(a, b)
    if _compound(a) and _compound(b):
        return _subtract_expressions(a, b)
    return Expression("-", a, b)


def _subtract_atom_from_expression(a: Expression, b: Node) -> Node:
    if _is_const(b):
        c = b.value
        if _is(a, "+"):
            if _is_const(a.left):
                return make_sum(_const(WORKING_CONTEXT.subtract(a.left.value, c)), a.right)
            if _is_const(a.right):
                return make_sum(_const(WORKING_CONTEXT.subtract(a.right.value, c)), a.left)
        elif _is(a, "-"):
            if _is_const(a.left):
                return make_subtraction(
                    _const(WORKING_CONTEXT.subtract(a.left.value, c)), a.right
                )
            if _is_const(a.right):
                return make_subtraction(a.left, _const(WORKING_CONTEXT.add(a.right.value, c)))
    else:
        if _is(a, "+"):
            if a.left == b:
                return a.right
            if a.right == b:
                return a.left
        elif _is(a, "-"):
            if a.left == b:
                return make_product(MINUS_ONE, a.right)
            if a.right == b:
                return make_subtraction(a.left, make_product(TWO, b))
        elif _is(a, "*"):
            if _is_const(a.left) and a.right == b:
                return make_product(make_subtraction(a.left, ONE), b)
            if _is_const(a.right) and a.left == b:
                return make_product(make_subtraction(a.right, ONE), b)
    return Expression("-", a, b)


def _subtract_expression_from_atom(a: Node, b: Expression) -> Node:
    if _is_const(a):
        c = a.value
        if _is(b, "+"):
            if _is_const(b.left):
                return make_subtraction(_const(WORKING_CONTEXT.subtract(c, b.left.value)), b.right)
            if _is_const(b.right):
                return make_subtraction(_const(WORKING_CONTEXT.subtract(c, b.right.value)), b.left)
        elif _is(b, "-"):
            if _is_const(b.left):
                return make_sum(_const(WORKING_CONTEXT.subtract(c, b.left.value)), b.right)
            if _is_const(b.right):
                return make_subtraction(_const(WORKING_CONTEXT.add(c, b.right.value)), b.left)
    else:
        if _is(b, "+"):
            if b.left == a:
                return make_product(MINUS_ONE, b.right)
            if b.right == a:
                return make_product(MINUS_ONE, b.left)
        elif _is(b, "-"):
            if b.left == a:
                return b.right
            if b.right == a:
                return make_subtraction(make_product(TWO, a), b.left)
        elif _is(b, "*"):
            if _is_const(b.left) and b.right == a:
                return make_product(make_subtraction(ONE, b.left), a)
            if _is_const(b.right) and b.left == a:
                return make_product(make_subtraction(ONE, b.right), a)
    return Expression("-", a, b)


def _subtract_expressions(a: Expression, b: Expression) -> Node:
    p, q = a.left, a.right
    if _is(a, "+") and _is(b, "+"):
        if p == b.left:
            return make_subtraction(q, b.right)
        if p == b.right:
            return make_subtraction(q, b.left)
        if q == b.left:
            return make_subtraction(p, b.right)
        if q == b.right:
            return make_subtraction(p, b.left)
    elif _is(a, "+") and _is(b, "-"):
        if p == b.left:
            return make_sum(q, b.right)
        if p == b.right:
            return make_sum(make_product(TWO, p), make_subtraction(q, b.left))
        if q == b.left:
            return make_sum(p, b.right)
        if q == b.right:
            return make_sum(make_product(TWO, q), make_subtraction(p, b.left))
    elif _is(a, "+") and _is(b, "*"):
        if _is_const(b.left):
            if p == b.right:
                return make_sum(make_product(make_subtraction(ONE, b.left), p), q)
            if q == b.right:
                return make_sum(make_product(make_subtraction(ONE, b.left), q), p)
        elif _is_const(b.right):
            if p == b.left:
                return make_sum(make_product(make_subtraction(ONE, b.right), p), q)
            if q == b.left:
                return make_sum(make_product(make_subtraction(ONE, b.right), q), p)
    elif _is(a, "-") and _is(b, "+"):
        if p == b.left:
            return make_subtraction(make_product(MINUS_ONE, q), b.right)
        if p == b.right:
            return make_subtraction(make_product(MINUS_ONE, q), b.left)
        if q == b.left:
            return make_subtraction(make_subtraction(p, b.right), make_product(TWO, q))
        if q == b.right:
            return make_subtraction(make_subtraction(p, b.left), make_product(TWO, q))
    elif _is(a, "-") and _is(b, "-"):
        if p == b.left:
            return make_subtraction(b.right, q)
        if p == b.right:
            return make_subtraction(make_product(TWO, p), make_sum(q, b.left))
        if q == b.left:
            return make_subtraction(make_sum(p, b.right), make_product(TWO, q))
        if q == b.right:
            return make_subtraction(p, b.left)
    elif _is(a, "-") and _is(b, "*"):
        if _is_const(b.left):
            if p == b.right:
                return make_subtraction(make_product(make_subtraction(ONE, b.left), p), q)
            if q == b.right:
                return make_sum(make_product(make_subtraction(MINUS_ONE, b.left), q), p)
        elif _is_const(b.right):
            if p == b.left:
                return make_subtraction(make_product(make_subtraction(ONE, b.right), p), q)
            if q == b.left:
                return make_sum(make_product(make_subtraction(MINUS_ONE, b.right), q), p)
    return Expression("-", a, b)


def make_power(a: Node, b: Node) -> Node:
    """Build a ^ b."""
    if _is_const(a) and _is_const(b):
        if _is_one(a) or _is_zero(b):
            return ONE
        if _is_one(b):
            return a
        try:
            value = bigmath.power(a.value, b.value)
        except EvalError:
            return Expression("^", a, b)
        if bigmath.is_integer(value):
            return _const(value)
        return Expression("^", a, b)
    if _is_zero(b):
        return ONE
    if _is_one(b):
        return a
    if _is(a, "^") and _is_const(b) and _is_const(a.right):
        return make_power(a.left, make_product(a.right, b))
    return Expression("^", a, b)


def make_sqrt(a: Node) -> Node:
    if _is_const(a) and a.value >= 0:
        root = bigmath.sqrt(a.value)
        if bigmath.is_integer(root):
            return _const(root)
    elif _is(a, "^") and _is_const(a.right) and bigmath.is_integer(a.right.value / 2):
        return make_power(a.left, _const(a.right.value / 2))
    return Expression("sqrt", a)


def make_sin(a: Node) -> Node:
    if _is(a, "asin"):
        return a.left
    if _is(a, "acos"):
        return make_sqrt(make_subtraction(ONE, make_power(a.left, TWO)))
    return Expression("sin", a)


def make_cos(a: Node) -> Node:
    if _is(a, "acos"):
        return a.left
    if _is(a, "asin"):
        return make_sqrt(make_subtraction(ONE, make_power(a.left, TWO)))
    return Expression("cos", a)


def make_tan(a: Node) -> Node:
    if _is(a, "atan"):
        return a.left
    if _is(a, "acotan"):
        return make_division(ONE, a.left)
    return Expression("tan", a)


def make_cotan(a: Node) -> Node:
    if _is(a, "acotan"):
        return a.left
    return Expression("cotan", a)


def make_acotan(a: Node) -> Node:
    if _is(a, "cotan"):
        return a.left
    return Expression("acotan", a)


def make_ln(a: Node) -> Node:
    if _is(a, "exp"):
        return a.left
    return Expression("ln", a)


def make_exp(a: Node) -> Node:
    if _is(a, "ln"):
        return a.left
    if _is_zero(a):
        return ONE
    return Expression("exp", a)


_BINARY_CONSTRUCTORS: dict[str, Callable[[Node, Node], Node]] = {
    "+": make_sum,
    "-": make_subtraction,
    "*": make_product,
    "/": make_division,
    "^": make_power,
}

_UNARY_CONSTRUCTORS: dict[str, Callable[[Node], Node]] = {
    "sqrt": make_sqrt,
    "sin": make_sin,
    "cos": make_cos,
    "tan": make_tan,
    "cotan": make_cotan,
    "acotan": make_acotan,
    "ln": make_ln,
    "exp": make_exp,
}


def _left_chain(node: Expression) -> tuple[list[Expression], Node]:
    """Split a left-leaning run of binary nodes into its nodes and innermost operand."""
    chain = []
    while isinstance(node, Expression) and node.right is not None:
        chain.append(node)
        node = node.left
    chain.reverse()
    return chain, node


def simplify(node: Node, depth: int = 0) -> Node:
    """One simplification pass: rebuild node bottom-up through the constructors.

    Only nesting counts toward the depth limit; the left operands of a chain
    such as a+b+c are walked in a loop.
    """
    _too_deep(depth)
    if not isinstance(node, Expression):
        return node
    if node.right is None:
        left = simplify(node.left, depth + 1)
        build = _UNARY_CONSTRUCTORS.get(node.operator)
        return build(left) if build else Expression(node.operator, left)

    chain, innermost = _left_chain(node)
    result = simplify(innermost, depth + 1)
    for parent in chain:
        right = simplify(parent.right, depth + 1)
        build = _BINARY_CONSTRUCTORS.get(parent.operator)
        result = build(result, right) if build else Expression(parent.operator, result, right)
    return result


def simplify_fully(node: Node) -> Node:
    """Simplify until a pass changes nothing, at most MAX_SIMPLIFY_PASSES times."""
    for passes in range(1, MAX_SIMPLIFY_PASSES + 1):
        simplified = simplify(node)
        if simplified == node:
            logger.debug(f"Simplification reached a fixed point after {passes} passes")
            return simplified
        node = simplified
    logger.debug(f"Simplification stopped after {MAX_SIMPLIFY_PASSES} passes")
    return node


# ---------------------------------------------------------------------------
# rules of differentiation
# ---------------------------------------------------------------------------


def _call(op: str, a: Node) -> Expression:
    return Expression(op, a)


def _negate(a: Node) -> Node:
    return make_product(MINUS_ONE, a)


def _one_minus_square(u: Node) -> Node:
    return make_subtraction(ONE, make_power(u, TWO))


def _square_minus_one(u: Node) -> Node:
    return make_subtraction(make_power(u, TWO), ONE)


# f'(u) for functions differentiated with the plain chain rule u' * f'(u)
_OUTER_DERIVATIVES: dict[str, Callable[[Node], Node]] = {
    "sin": make_cos,
    "cos": lambda u: _negate(make_sin(u)),
    "tan": lambda u: make_sum(ONE, make_power(make_tan(u), TWO)),
    "cotan": lambda u: make_subtraction(MINUS_ONE, make_power(make_cotan(u), TWO)),
    "sec": lambda u: make_product(_call("sec", u), make_tan(u)),
    "exsec": lambda u: make_product(_call("sec", u), make_tan(u)),
    "csc": lambda u: _negate(make_product(_call("csc", u), make_cotan(u))),
    "vers": make_sin,
    "covers": lambda u: _negate(make_cos(u)),
    "hav": lambda u: make_division(make_sin(u), TWO),
    "sinc": lambda u: make_division(
        make_subtraction(make_product(u, make_cos(u)), make_sin(u)), make_power(u, TWO)
    ),
    "sinh": lambda u: _call("cosh", u),
    "cosh": lambda u: _call("sinh", u),
    "tanh": lambda u: make_subtraction(ONE, make_power(_call("tanh", u), TWO)),
    "cotanh": lambda u: make_subtraction(ONE, make_power(_call("cotanh", u), TWO)),
    "sech": lambda u: _negate(make_product(_call("sech", u), _call("tanh", u))),
    "csch": lambda u: _negate(make_product(_call("csch", u), _call("cotanh", u))),
    "exp": make_exp,
    "ln": lambda u: make_division(ONE, u),
    "abs": lambda u: make_division(u, _call("abs", u)),
}

# functions whose derivative is u' / g(u)
_QUOTIENT_DERIVATIVES: dict[str, Callable[[Node], Node]] = {
    "sqrt": lambda u: make_product(TWO, make_sqrt(u)),
    "asin": lambda u: make_sqrt(_one_minus_square(u)),
    "atan": lambda u: make_sum(ONE, make_power(u, TWO)),
    "asec": lambda u: make_product(_call("abs", u), make_sqrt(_square_minus_one(u))),
    "aexsec": lambda u: make_product(
        _call("abs", make_sum(u, ONE)), make_sqrt(_square_minus_one(make_sum(u, ONE)))
    ),
    "avers": lambda u: make_sqrt(_one_minus_square(make_subtraction(ONE, u))),
    "ahav": lambda u: make_sqrt(make_subtraction(u, make_power(u, TWO))),
    "asinh": lambda u: make_sqrt(make_sum(make_power(u, TWO), ONE)),
    "acosh": lambda u: make_sqrt(_square_minus_one(u)),
    "atanh": _one_minus_square,
    "acoth": _one_minus_square,
}

# functions whose derivative is -u' / g(u)
_NEGATED_QUOTIENT_DERIVATIVES: dict[str, Callable[[Node], Node]] = {
    "acotan": lambda u: make_sum(ONE, make_power(u, TWO)),
    "acsc": lambda u: make_product(_call("abs", u), make_sqrt(_square_minus_one(u))),
    "acovers": lambda u: make_sqrt(_one_minus_square(make_subtraction(ONE, u))),
    "asech": lambda u: make_product(u, make_sqrt(_one_minus_square(u))),
    "acsch": lambda u: make_product(
        _call("abs", u), make_sqrt(make_sum(ONE, make_power(u, TWO)))
    ),
}

_LINEAR = frozenset(
    ("deg2rad", "deg2grad", "rad2deg", "rad2grad", "grad2deg", "grad2rad")
)
_STEP = frozenset(("floor", "ceil", "round"))


def derive(node: Node, variable: str, depth: int = 0) -> Node:
    """Derivative of node with respect to variable, before simplification.

    Raises:
        ExpressionSyntaxError: code NOT_DIFFERENTIABLE for factorials,
            comparison and boolean operators
    """
    _too_deep(depth)
    if isinstance(node, Constant):
        return ZERO
    if isinstance(node, Variable):
        return ONE if node.name.lower() == variable.lower() else ZERO

    op = node.operator
    depth += 1
    a, b = node.left, node.right

    if op in ("+", "-"):
        return _derive_sum(node, variable, depth)
    if op == "*":
        return make_sum(
            make_product(a, derive(b, variable, depth)),
            make_product(derive(a, variable, depth), b),
        )
    if op == "/":
        return make_division(
            make_subtraction(
                make_product(b, derive(a, variable, depth)),
                make_product(a, derive(b, variable, depth)),
            ),
            make_power(b, TWO),
        )
    if op == "^":
        return _derive_power(node, variable, depth)
    if op == "log":
        return derive(make_division(make_ln(a), make_ln(b)), variable, depth)
    if op == "%":
        return make_subtraction(
            derive(a, variable, depth),
            make_product(derive(b, variable, depth), _call("floor", make_division(a, b))),
        )
    if b is not None:
        raise ExpressionSyntaxError(
            f"Operator {op} is not differentiable", "NOT_DIFFERENTIABLE"
        )

    if op in _STEP:
        return ZERO
    du = derive(a, variable, depth)
    if op in _OUTER_DERIVATIVES:
        return make_product(du, _OUTER_DERIVATIVES[op](a))
    if op in _QUOTIENT_DERIVATIVES:
        return make_division(du, _QUOTIENT_DERIVATIVES[op](a))
    if op in _NEGATED_QUOTIENT_DERIVATIVES:
        return make_division(_negate(du), _NEGATED_QUOTIENT_DERIVATIVES[op](a))
    if op == "acos":
        return _negate(make_division(du, make_sqrt(_one_minus_square(a))))
    if op == "fpart":
        return du
    if op in _LINEAR:
        return _call(op, du)
    raise ExpressionSyntaxError(f"Operator {op} is not differentiable", "NOT_DIFFERENTIABLE")


def _derive_sum(node: Expression, variable: str, depth: int) -> Node:
    # (u + v - w)' = u' + v' - w', walked without recursing down the left side
    terms = []
    while _is(node, "+") or _is(node, "-"):
        terms.append(node)
        node = node.left
    result = derive(node, variable, depth)
    for parent in reversed(terms):
        build = make_sum if parent.operator == "+" else make_subtraction
        result = build(result, derive(parent.right, variable, depth))
    return result


def _derive_power(node: Expression, variable: str, depth: int) -> Node:
    a, b = node.left, node.right
    if not _is_const(a):
        if _is_const(b):
            # u^c => u' * c * u^(c-1)
            return make_product(
                derive(a, variable, depth),
                make_product(b, make_power(a, make_subtraction(b, ONE))),
            )
        # u^v => u^v * (v' * ln(u) + (ln u)' * v)
        ln_a = make_ln(a)
        return make_product(
            node,
            make_sum(
                make_product(derive(b, variable, depth), ln_a),
                make_product(derive(ln_a, variable, depth), b),
            ),
        )
    # c^v => ln(c) * v' * c^v
    return make_product(make_product(make_ln(a), derive(b, variable, depth)), node)


# ---------------------------------------------------------------------------
# engine
# ---------------------------------------------------------------------------


class Differentiator:
    """Differentiates infix expressions with respect to one or more variables.

    One instance may be shared between threads; derivatives() holds a lock
    for its whole duration. variables() reports the variable names found in
    the last expression, in first-occurrence order.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._variables: list[str] = []

    def variables(self) -> list[str]:
        with self._lock:
            return list(self._variables)

    def to_tree(self, expression: str) -> Node:
        """Parse expression into a tree and record its variables.

        Raises:
            ExpressionSyntaxError: if expression is malformed
        """
        with self._lock:
            text = preprocess(expression)
            validate(text)
            try:
                tree = parse(text)
            except RecursionError as e:
                raise RecursionLimitExceeded("Expression too complex") from e
            self._variables = _collect_variables(tree)
            return tree

    def differentiate(
        self, expression: str, variables: str | Iterable[str] | None = None
    ) -> list[str]:
        """Differentiate expression.

        Args:
            expression: Infix expression text
            variables: Semicolon delimited names ("x;y") or a list of names.
                When empty, every variable of the expression is used in order
                of first occurrence, or DEFAULT_VARIABLE if there is none.

        Returns:
            One simplified derivative per variable, in the order requested

        Raises:
            ExpressionSyntaxError: malformed expression, invalid variable or
                operator that cannot be differentiated
            RecursionLimitExceeded: expression too deeply nested
        """
        return [derivative for _, derivative in self.derivatives(expression, variables)]

    def derivatives(
        self, expression: str, variables: str | Iterable[str] | None = None
    ) -> list[tuple[str, str]]:
        """Like differentiate(), but pairs each derivative with its variable.

        The names are the resolved targets, so an empty request yields the
        variables found in expression.
        """
        with self._lock:
            tree = self.to_tree(expression)
            try:
                tree = simplify_fully(tree)
                results = []
                for name in self._targets(variables):
                    derivative = collapse_signs(to_infix(simplify_fully(derive(tree, name))))
                    logger.debug(f"d/d{name} {expression} = {derivative}")
                    results.append((name, derivative))
                return results
            except RecursionError as e:
                raise RecursionLimitExceeded("Expression too complex") from e

    def _targets(self, variables: str | Iterable[str] | None) -> list[str]:
        if variables is None or variables == "":
            names = list(self._variables) or [DEFAULT_VARIABLE]
        elif isinstance(variables, str):
            names = normalize(variables).split(";")
            if names[-1] == "":
                names.pop()
        else:
            names = [normalize(name) for name in variables]

        for name in names:
            if not name:
                raise InvalidVariable("Not a valid variable: empty name")
            validate(name)
            if not is_variable(name):
                raise InvalidVariable(f"Not a valid variable {name}")
        return names
