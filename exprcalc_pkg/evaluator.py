"""Tree evaluator with a per-instance parse cache.

Example:
    >>> ev = Evaluator()
    >>> ev.evaluate("2+3*4")
    Decimal('14')
    >>> ev.evaluate("2(3+x)", {"x": "1"})
    Decimal('8')
"""

from __future__ import annotations

import decimal
import threading
from decimal import Decimal
from typing import Callable, Mapping

from . import bigmath
from .config import (
    ANGLE_UNITS,
    DEFAULT_ANGLE_UNIT,
    FALSE,
    MAX_EXPRESSION_DEPTH,
    NAMED_CONSTANTS,
    TRUE,
    WORKING_CONTEXT,
)
from .logging_config import get_logger
from .nodes import Constant, Expression, Node, Variable
from .operators import INVERSE_TRIGONOMETRIC, lookup
from .parser import is_numeric_literal, normalize, parse, preprocess, validate
from .types import (
    CyclicBinding,
    EvalError,
    NumericOverflow,
    RecursionLimitExceeded,
    UnboundVariable,
    UnknownOperator,
)

logger = get_logger("evaluator")

Bindings = Mapping[str, object]


def _truth(value: bool) -> Decimal:
    return TRUE if value else FALSE


_BINARY: dict[str, Callable[[Decimal, Decimal], Decimal]] = {
    "+": WORKING_CONTEXT.add,
    "-": WORKING_CONTEXT.subtract,
    "*": WORKING_CONTEXT.multiply,
    "/": bigmath.divide,
    "%": bigmath.remainder,
    "^": bigmath.power,
    "log": bigmath.log,
    ">": lambda a, b: _truth(a > b),
    "<": lambda a, b: _truth(a < b),
    ">=": lambda a, b: _truth(a >= b),
    "<=": lambda a, b: _truth(a <= b),
    "==": lambda a, b: _truth(a == b),
    "!=": lambda a, b: _truth(a != b),
    "&&": lambda a, b: _truth(a == TRUE and b == TRUE),
    "||": lambda a, b: _truth(a == TRUE or b == TRUE),
}


class Evaluator:
    """Evaluates infix expressions to Decimal values.

    Parsed trees are cached by their preprocessed text for the lifetime of
    the instance, so evaluating the same expression with other bindings does
    not parse it again. The cache is never evicted.

    One instance may be shared between threads; evaluate() holds a lock for
    its whole duration.

    Args:
        angle_unit: "rad", "deg" or "grad"
        on_parse: Optional callback invoked with the preprocessed text every
            time a parse actually happens (cache miss)
    """

    def __init__(
        self,
        angle_unit: str = DEFAULT_ANGLE_UNIT,
        on_parse: Callable[[str], None] | None = None,
    ):
        self._lock = threading.RLock()
        self._cache: dict[str, Node] = {}
        self.parse_count = 0
        self.on_parse = on_parse
        self.angle_unit = DEFAULT_ANGLE_UNIT
        self.set_angle_unit(angle_unit)

    def set_angle_unit(self, unit: str) -> None:
        """Select the unit trigonometric operators work in."""
        unit = unit.lower()
        if unit not in ANGLE_UNITS:
            raise ValueError(
                f"Unknown angle unit {unit!r}, expected one of {', '.join(ANGLE_UNITS)}"
            )
        with self._lock:
            self.angle_unit = unit

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

    def parse(self, expression: str) -> Node:
        """Return the tree for expression, parsing it only on a cache miss.

        Raises:
            ExpressionSyntaxError: if expression is malformed
            RecursionLimitExceeded: if expression is nested too deeply
        """
        with self._lock:
            try:
                return self._tree(expression)
            except RecursionError as e:
                raise RecursionLimitExceeded("Expression too complex") from e

    def evaluate(self, expression: str, bindings: Bindings | None = None) -> Decimal:
        """Evaluate expression.

        Args:
            expression: Infix expression text
            bindings: Variable name to value. Values may be numbers or
                expression text; text is evaluated with the same bindings.

        Returns:
            The value as a Decimal

        Raises:
            ExpressionSyntaxError: malformed expression or bound text
            EvalError: unbound variable, division by zero, domain errors
            RecursionLimitExceeded: expression or bindings nested too deeply
        """
        table = {normalize(name): value for name, value in (bindings or {}).items()}
        with self._lock:
            try:
                return self._evaluate_text(expression, table, frozenset(), 0)
            except RecursionError as e:
                raise RecursionLimitExceeded("Expression too complex") from e

    def _tree(self, expression: str) -> Node:
        key = preprocess(expression)
        tree = self._cache.get(key)
        if tree is not None:
            logger.debug(f"Cache hit for {key!r}")
            return tree

        logger.debug(f"Cache miss for {key!r}, parsing")
        validate(key)
        tree = parse(key)
        self.parse_count += 1
        if self.on_parse is not None:
            self.on_parse(key)
        self._cache[key] = tree
        return tree

    def _evaluate_text(
        self,
        expression: str,
        bindings: dict[str, object],
        resolving: frozenset[str],
        depth: int,
    ) -> Decimal:
        return self._value(self._tree(expression), bindings, resolving, depth)

    def _value(
        self,
        node: Node,
        bindings: dict[str, object],
        resolving: frozenset[str],
        depth: int,
    ) -> Decimal:
        if depth > MAX_EXPRESSION_DEPTH:
            raise RecursionLimitExceeded(
                f"Expression too deeply nested (>{MAX_EXPRESSION_DEPTH} levels)"
            )
        if isinstance(node, Constant):
            return node.value
        if isinstance(node, Variable):
            return self._resolve(node.name, bindings, resolving, depth)

        if node.right is None:
            left = self._value(node.left, bindings, resolving, depth + 1)
            return self._apply_unary(node.operator, left)

        # a left-associative chain such as 1+2+3 is flat, not nested
        chain = []
        while isinstance(node, Expression) and node.right is not None:
            chain.append(node)
            node = node.left
        value = self._value(node, bindings, resolving, depth + 1)
        for parent in reversed(chain):
            right = self._value(parent.right, bindings, resolving, depth + 1)
            value = self._apply_binary(parent.operator, value, right)
        return value

    def _resolve(
        self,
        name: str,
        bindings: dict[str, object],
        resolving: frozenset[str],
        depth: int,
    ) -> Decimal:
        constant = NAMED_CONSTANTS.get(name)
        if constant is not None:
            return constant
        if name not in bindings:
            raise UnboundVariable(name)
        if name in resolving:
            raise CyclicBinding(name)

        value = bindings[name]
        if isinstance(value, Decimal):
            return value
        text = str(value).strip()
        if is_numeric_literal(text):
            return Decimal(text)
        return self._evaluate_text(text, bindings, resolving | {name}, depth + 1)

    def _apply_binary(self, operator: str, a: Decimal, b: Decimal) -> Decimal:
        fn = _BINARY.get(operator)
        if fn is None:
            raise UnknownOperator(operator)
        try:
            return fn(a, b)
        except decimal.Overflow as e:
            raise NumericOverflow(operator) from e
        except decimal.DecimalException as e:
            raise EvalError(f"Arithmetic error in {operator}: {e}") from e

    def _apply_unary(self, operator: str, a: Decimal) -> Decimal:
        if operator == "!":
            return _truth(a != TRUE)
        fn = bigmath.UNARY_FUNCTIONS.get(operator)
        if fn is None:
            raise UnknownOperator(operator)

        trigonometric = lookup(operator).trigonometric
        inverse = operator in INVERSE_TRIGONOMETRIC
        try:
            if trigonometric and not inverse:
                a = bigmath.to_radians(a, self.angle_unit)
            result = fn(a)
            if inverse:
                result = bigmath.from_radians(result, self.angle_unit)
            return result
        except decimal.Overflow as e:
            raise NumericOverflow(operator) from e
        except decimal.DecimalException as e:
            raise EvalError(f"Arithmetic error in {operator}: {e}") from e
