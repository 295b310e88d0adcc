"""Test that API functions return typed dataclasses."""

from decimal import Decimal

from exprcalc_pkg.api import differentiate, evaluate, validate_expression
from exprcalc_pkg.types import DiffResult, EvalResult


class TestEvaluate:
    def test_returns_eval_result(self):
        result = evaluate("2 + 3*4")
        assert isinstance(result, EvalResult)
        assert result.ok is True
        assert result.result == "14"
        assert result.value == Decimal(14)

    def test_bindings(self):
        result = evaluate("2(3+x)", {"x": "1"})
        assert result.ok
        assert result.result == "8"

    def test_fraction_is_printed_plainly(self):
        assert evaluate("1e-3").result == "0.001"

    def test_division_by_zero(self):
        result = evaluate("1/0")
        assert result.ok is False
        assert result.error_code == "DIVISION_BY_ZERO"
        assert result.value is None

    def test_domain_error(self):
        assert evaluate("asin(2)").error_code == "DOMAIN_ERROR"

    def test_unbalanced(self):
        result = evaluate("(2+3")
        assert result.error_code == "UNBALANCED_PARENTHESES"
        assert "brackets" in result.error

    def test_unbound_variable(self):
        result = evaluate("x", {})
        assert result.error_code == "UNBOUND_VARIABLE"
        assert result.error == "No value associated with x"

    def test_angle_unit(self):
        result = evaluate("sin(90)", angle_unit="deg")
        assert abs(result.value - 1) < Decimal("1e-12")
        # the shared evaluator keeps radians
        assert abs(evaluate("sin(pi/2)").value - 1) < Decimal("1e-12")

    def test_unknown_angle_unit(self):
        result = evaluate("2+2", angle_unit="turns")
        assert result.ok is False
        assert result.error_code == "INVALID_INPUT"

    def test_to_dict(self):
        assert evaluate("2+2").to_dict() == {"ok": True, "result": "4"}
        failed = evaluate("1/0").to_dict()
        assert failed["ok"] is False
        assert failed["error_code"] == "DIVISION_BY_ZERO"
        assert "result" not in failed

    def test_repr(self):
        assert repr(evaluate("2+2")) == "EvalResult(ok=True, result='4')"


class TestDifferentiate:
    def test_returns_diff_result(self):
        result = differentiate("cos(x-y)")
        assert isinstance(result, DiffResult)
        assert result.ok is True
        assert result.derivatives == ["-1*sin(x-y)", "sin(x-y)"]
        assert result.variables == ["x", "y"]

    def test_explicit_variables(self):
        result = differentiate("x^2*y", "y")
        assert result.ok
        assert result.derivatives == ["x^2"]
        assert result.variables == ["y"]

    def test_variables_label_the_derivatives(self):
        result = differentiate("x*y", "y;x")
        assert list(zip(result.variables, result.derivatives)) == [("y", "x"), ("x", "y")]

    def test_default_variable_when_none_found(self):
        result = differentiate("5")
        assert result.derivatives == ["0"]
        assert result.variables == ["x"]

    def test_invalid_variable(self):
        result = differentiate("x^2", "2x")
        assert result.ok is False
        assert result.error_code == "INVALID_VARIABLE"

    def test_not_differentiable(self):
        assert differentiate("fac(x)").error_code == "NOT_DIFFERENTIABLE"

    def test_to_dict(self):
        data = differentiate("x^2").to_dict()
        assert data == {"ok": True, "derivatives": ["2*x"], "variables": ["x"]}


class TestValidateExpression:
    def test_valid(self):
        assert validate_expression("2 + 2") == (True, None)
        assert validate_expression("x*sin(y)") == (True, None)

    def test_unbalanced(self):
        assert validate_expression("(2+3") == (False, "Non matching brackets")

    def test_adjacent_operators(self):
        ok, error = validate_expression("3**x")
        assert ok is False
        assert error.startswith("Syntax error near")

    def test_missing_argument(self):
        ok, error = validate_expression("2*")
        assert ok is False
        assert error is not None
