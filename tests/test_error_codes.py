"""Test error codes carried by the exception taxonomy."""

import unittest

from exprcalc_pkg.evaluator import Evaluator
from exprcalc_pkg.nodes import Constant, Expression
from exprcalc_pkg.parser import preprocess, validate
from exprcalc_pkg.types import (
    ArityMismatch,
    CyclicBinding,
    DivisionByZero,
    DomainError,
    EmptyExpression,
    EvalError,
    ExpressionError,
    ExpressionSyntaxError,
    IllegalAdjacentOperators,
    IllegalCharacter,
    InvalidArgument,
    InvalidVariable,
    MissingOperator,
    NumericOverflow,
    RecursionLimitExceeded,
    UnbalancedParentheses,
    UnboundVariable,
    UnknownOperator,
)


class TestErrorCodes(unittest.TestCase):
    """Test that each failure carries the expected code."""

    def assertCode(self, callable_, code):
        with self.assertRaises(ExpressionError) as ctx:
            callable_()
        self.assertEqual(ctx.exception.code, code, f"Expected {code}, got {ctx.exception.code}")

    def test_syntax_codes(self):
        self.assertCode(lambda: preprocess(""), "EMPTY_EXPRESSION")
        self.assertCode(lambda: preprocess("x" * 10001), "TOO_LONG")
        self.assertCode(lambda: validate("(1"), "UNBALANCED_PARENTHESES")
        self.assertCode(lambda: validate("1*/2"), "ILLEGAL_ADJACENT_OPERATORS")
        self.assertCode(lambda: validate("1$2"), "ILLEGAL_CHARACTER")

    def test_evaluation_codes(self):
        ev = Evaluator()
        self.assertCode(lambda: ev.evaluate("x"), "UNBOUND_VARIABLE")
        self.assertCode(lambda: ev.evaluate("x", {"x": "x"}), "CYCLIC_BINDING")
        self.assertCode(lambda: ev.evaluate("2/0"), "DIVISION_BY_ZERO")
        self.assertCode(lambda: ev.evaluate("ln(0)"), "DOMAIN_ERROR")
        self.assertCode(lambda: ev.evaluate("fac(-1)"), "INVALID_ARGUMENT")
        self.assertCode(lambda: ev.evaluate("exp(1000)"), "NUMERIC_OVERFLOW")
        self.assertCode(lambda: ev.evaluate("2*"), "ARITY_MISMATCH")

    def test_unknown_operator_node(self):
        with self.assertRaises(UnknownOperator) as ctx:
            Expression("$", Constant(1), Constant(2))
        self.assertEqual(ctx.exception.code, "UNKNOWN_OPERATOR")

    def test_wrong_arity_node(self):
        with self.assertRaises(ArityMismatch):
            Expression("sin", Constant(1), Constant(2))
        with self.assertRaises(ArityMismatch):
            Expression("+", Constant(1))

    def test_hierarchy(self):
        for cls in (
            EmptyExpression,
            UnbalancedParentheses,
            IllegalAdjacentOperators,
            IllegalCharacter,
            MissingOperator,
            ArityMismatch,
            InvalidVariable,
        ):
            self.assertTrue(issubclass(cls, ExpressionSyntaxError), cls)
        for cls in (
            UnboundVariable,
            CyclicBinding,
            DivisionByZero,
            DomainError,
            InvalidArgument,
            UnknownOperator,
            NumericOverflow,
        ):
            self.assertTrue(issubclass(cls, EvalError), cls)
        self.assertFalse(issubclass(RecursionLimitExceeded, EvalError))
        self.assertTrue(issubclass(RecursionLimitExceeded, ExpressionError))

    def test_explicit_code_overrides_default(self):
        error = ExpressionSyntaxError("Operator fac is not differentiable", "NOT_DIFFERENTIABLE")
        self.assertEqual(error.code, "NOT_DIFFERENTIABLE")
        self.assertEqual(str(error), "Operator fac is not differentiable")

    def test_messages(self):
        self.assertEqual(str(UnboundVariable("x")), "No value associated with x")
        self.assertIn("/", str(DivisionByZero()))
        self.assertIn("must be > 0", str(DomainError("ln", 0, "> 0")))
        self.assertEqual(DomainError("ln", 0).operator, "ln")


if __name__ == "__main__":
    unittest.main()
