"""Tests for preprocessing, validation and the evaluator's parser."""

import unittest
from decimal import Decimal

import pytest

from exprcalc_pkg.nodes import Constant, Expression, Variable
from exprcalc_pkg.operators import longest_match
from exprcalc_pkg.parser import (
    back_track,
    insert_implicit_multiplication,
    is_variable,
    match_paren,
    parse,
    parse_bindings,
    preprocess,
    validate,
)
from exprcalc_pkg.types import (
    ArityMismatch,
    EmptyExpression,
    ExpressionSyntaxError,
    IllegalAdjacentOperators,
    IllegalCharacter,
    MissingOperator,
    UnbalancedParentheses,
)


class TestPreprocess(unittest.TestCase):
    def test_whitespace_and_case(self):
        self.assertEqual(preprocess(" 2 X + 1 "), "2*x+1")

    def test_scientific_notation(self):
        self.assertEqual(preprocess("1e-3"), "1*10^-3")
        self.assertEqual(preprocess("2.5E3"), "2.5*10^3")

    def test_trailing_e_is_left_alone(self):
        self.assertEqual(preprocess("2e"), "2*e")

    def test_empty_input(self):
        with self.assertRaises(EmptyExpression):
            preprocess("   ")

    def test_too_long(self):
        with self.assertRaises(ExpressionSyntaxError) as ctx:
            preprocess("1+" * 6000)
        self.assertEqual(ctx.exception.code, "TOO_LONG")


class TestImplicitMultiplication:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("2(3+x)", "2*(3+x)"),
            ("(2-x)(x+1)", "(2-x)*(x+1)"),
            ("(2-x)x", "(2-x)*x"),
            ("xcos(x)", "x*cos(x)"),
            ("x(x+1)", "x*(x+1)"),
            ("2x", "2*x"),
            ("2sin(x)", "2*sin(x)"),
            ("2pi", "2*pi"),
            ("sin(x)(2-x)", "sin(x)*(2-x)"),
        ],
    )
    def test_inserts_star(self, text, expected):
        assert insert_implicit_multiplication(text) == expected

    def test_binary_operator_name_gets_no_star(self):
        assert insert_implicit_multiplication("8log2") == "8log2"

    def test_operator_call_is_not_a_product(self):
        assert insert_implicit_multiplication("cos(x)") == "cos(x)"


class TestValidate(unittest.TestCase):
    def test_unbalanced(self):
        with self.assertRaises(UnbalancedParentheses) as ctx:
            validate("(2+3")
        self.assertEqual(str(ctx.exception), "Non matching brackets")

    def test_adjacent_operators(self):
        with self.assertRaises(IllegalAdjacentOperators) as ctx:
            validate("3**x")
        self.assertIn("Syntax error near", str(ctx.exception))

    def test_illegal_character(self):
        with self.assertRaises(IllegalCharacter):
            validate("2#3")

    def test_signed_argument_is_allowed(self):
        validate("2*-3")
        validate("2^-1")

    def test_comparisons_are_allowed(self):
        validate("x>=2&&y!=3")


class TestHelpers:
    def test_longest_match(self):
        assert longest_match("x<=2", 1) == "<="
        assert longest_match("acosh(x)", 0) == "acosh"
        assert longest_match("x<=2", 0) is None

    def test_back_track(self):
        assert back_track("5^") == "^"
        assert back_track("5+x") is None

    def test_match_paren(self):
        assert match_paren("(a(b))c", 0) == 5
        assert match_paren("(a(b))c", 2) == 4
        assert match_paren("(ab", 0) == 0

    @pytest.mark.parametrize("name", ["x", "x1", "alpha", "e"])
    def test_variables(self, name):
        assert is_variable(name)

    @pytest.mark.parametrize("name", ["1x", "cosmos", "sin", "x_1", ""])
    def test_not_variables(self, name):
        assert not is_variable(name)


class TestParse:
    def test_precedence(self):
        tree = parse("2+3*4")
        assert tree == Expression(
            "+",
            Constant(Decimal(2)),
            Expression("*", Constant(Decimal(3)), Constant(Decimal(4))),
        )

    def test_leading_sign(self):
        assert parse("-x") == Expression("-", Constant(Decimal(0)), Variable("x"))

    def test_power_groups_left_to_right(self):
        inner = Expression("^", Constant(Decimal(2)), Constant(Decimal(3)))
        assert parse("2^3^2") == Expression("^", inner, Constant(Decimal(2)))

    def test_signed_exponent(self):
        assert parse("2^-1") == Expression("^", Constant(Decimal(2)), Constant(Decimal(-1)))

    def test_unary_operator(self):
        assert parse("sin(x)") == Expression("sin", Variable("x"))

    def test_redundant_parentheses(self):
        assert parse("((x))") == Variable("x")

    def test_missing_operator(self):
        with pytest.raises(MissingOperator):
            parse("(2)3")

    def test_missing_argument(self):
        with pytest.raises(ArityMismatch):
            parse("2*")
        with pytest.raises(ArityMismatch):
            parse("*2")


class TestParseBindings(unittest.TestCase):
    def test_pairs(self):
        self.assertEqual(parse_bindings("x=pi; y=2.34"), {"x": "pi", "y": "2.34"})

    def test_case_folded(self):
        self.assertEqual(parse_bindings("X=1"), {"x": "1"})

    def test_empty(self):
        self.assertEqual(parse_bindings(""), {})

    def test_trailing_separator(self):
        self.assertEqual(parse_bindings("x=1;"), {"x": "1"})

    def test_missing_value_separator(self):
        with self.assertRaises(ExpressionSyntaxError):
            parse_bindings("x")
