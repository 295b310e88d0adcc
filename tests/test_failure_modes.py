"""Tests for failure modes: deep nesting, huge input, overflow, bad bindings."""

import pytest

from exprcalc_pkg.api import differentiate, evaluate
from exprcalc_pkg.calculus import Differentiator
from exprcalc_pkg.evaluator import Evaluator
from exprcalc_pkg.types import (
    CyclicBinding,
    ExpressionSyntaxError,
    InvalidArgument,
    NumericOverflow,
    RecursionLimitExceeded,
)


class TestDepthLimits:
    def test_deep_parentheses(self):
        expression = "(" * 400 + "1" + ")" * 400
        with pytest.raises(RecursionLimitExceeded):
            Evaluator().evaluate(expression)

    def test_long_operator_chain_is_not_nesting(self):
        assert Evaluator().evaluate("+".join(["1"] * 400)) == 400
        assert Evaluator().evaluate("-".join(["1"] * 400)) == -398
        assert evaluate("*".join(["x"] * 400), {"x": "1"}).result == "1"

    def test_nested_group_in_long_chain(self):
        expression = "+".join(["1"] * 350) + "+" + "(" * 400 + "1" + ")" * 400
        with pytest.raises(RecursionLimitExceeded):
            Evaluator().evaluate(expression)

    def test_moderate_nesting_is_fine(self):
        expression = "(" * 50 + "1" + ")" * 50
        assert Evaluator().evaluate(expression) == 1

    def test_deep_differentiation(self):
        expression = "sin(" * 400 + "x" + ")" * 400
        with pytest.raises(RecursionLimitExceeded):
            Differentiator().differentiate(expression)

    def test_api_reports_too_deep(self):
        result = evaluate("(" * 400 + "1" + ")" * 400)
        assert result.ok is False
        assert result.error_code == "TOO_DEEP"
        assert differentiate("sin(" * 400 + "x" + ")" * 400).error_code == "TOO_DEEP"


class TestInputLimits:
    def test_too_long(self):
        with pytest.raises(ExpressionSyntaxError) as exc_info:
            Evaluator().evaluate("1+" * 6000 + "1")
        assert exc_info.value.code == "TOO_LONG"

    def test_whitespace_only(self):
        assert evaluate("  \t ").error_code == "EMPTY_EXPRESSION"


class TestNumericLimits:
    def test_power_overflow(self):
        with pytest.raises(NumericOverflow):
            Evaluator().evaluate("10^100000")

    def test_exp_overflow(self):
        with pytest.raises(NumericOverflow):
            Evaluator().evaluate("exp(1000)")

    def test_factorial_limit(self):
        with pytest.raises(InvalidArgument):
            Evaluator().evaluate("fac(5000)")

    def test_large_exact_power(self):
        assert Evaluator().evaluate("2^100") == 2**100


class TestBindingFailures:
    def test_long_cycle(self):
        bindings = {"a": "b", "b": "c", "c": "a+1"}
        with pytest.raises(CyclicBinding):
            Evaluator().evaluate("a", bindings)

    def test_malformed_bound_text(self):
        result = evaluate("x+1", {"x": "(2"})
        assert result.error_code == "UNBALANCED_PARENTHESES"

    def test_evaluator_recovers_after_error(self):
        ev = Evaluator()
        with pytest.raises(CyclicBinding):
            ev.evaluate("x", {"x": "x"})
        assert ev.evaluate("x", {"x": "2"}) == 2
