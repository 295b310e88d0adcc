"""Tests for the decimal math library."""

from decimal import Context, Decimal

import pytest

from exprcalc_pkg import bigmath
from exprcalc_pkg.config import PI
from exprcalc_pkg.types import DivisionByZero, DomainError, InvalidArgument, NumericOverflow


def close(a, b, tolerance="1e-12"):
    return abs(Decimal(a) - Decimal(b)) < Decimal(tolerance)


class TestSqrt:
    def test_perfect_square(self):
        assert close(bigmath.sqrt(Decimal(4)), 2, "1e-45")
        assert close(bigmath.sqrt(Decimal(144)), 12, "1e-45")

    def test_irrational(self):
        expected = Decimal(2).sqrt(Context(prec=50))
        assert close(bigmath.sqrt(Decimal(2)), expected, "1e-45")

    def test_fraction(self):
        assert close(bigmath.sqrt(Decimal("0.25")), "0.5", "1e-45")

    def test_large(self):
        assert close(bigmath.sqrt(Decimal("1e30")), Decimal("1e15"), "1e-30")

    def test_tiny(self):
        assert bigmath.sqrt(Decimal("1e-40")) == Decimal("1e-20")
        expected = Decimal("2e-100").sqrt(Context(prec=50))
        got = bigmath.sqrt(Decimal("2e-100"))
        assert abs(got - expected) / expected < Decimal("1e-40")

    def test_reciprocal_of_tiny_root(self):
        got = bigmath.divide(Decimal(1), bigmath.sqrt(Decimal("1e-120")))
        assert got == Decimal("1e60")

    def test_odd_exponents(self):
        for text in ("0.5", "5e-7", "3e21"):
            expected = Decimal(text).sqrt(Context(prec=50))
            got = bigmath.sqrt(Decimal(text))
            assert abs(got - expected) / expected < Decimal("1e-40"), text

    def test_zero(self):
        assert bigmath.sqrt(Decimal(0)) == 0

    def test_negative(self):
        with pytest.raises(DomainError):
            bigmath.sqrt(Decimal(-1))


class TestFactorials:
    def test_fac(self):
        assert bigmath.fac(Decimal(5)) == 120
        assert bigmath.fac(Decimal(0)) == 1
        assert bigmath.factorial is bigmath.fac

    def test_sfac(self):
        assert bigmath.sfac(Decimal(7)) == 105
        assert bigmath.sfac(Decimal(8)) == 384
        assert bigmath.sfac(Decimal(0)) == 1

    @pytest.mark.parametrize("value", ["5.5", "-1", "1001"])
    def test_invalid_arguments(self, value):
        with pytest.raises(InvalidArgument):
            bigmath.fac(Decimal(value))

    def test_log_factorial(self):
        assert close(bigmath.log_factorial(Decimal(5)), "4.787491742782046")


class TestArithmetic:
    def test_divide_by_zero(self):
        with pytest.raises(DivisionByZero):
            bigmath.divide(Decimal(1), Decimal(0))

    def test_remainder_keeps_dividend_sign(self):
        assert bigmath.remainder(Decimal(7), Decimal(3)) == 1
        assert bigmath.remainder(Decimal(-7), Decimal(3)) == -1

    def test_remainder_by_zero(self):
        with pytest.raises(DivisionByZero) as exc_info:
            bigmath.remainder(Decimal(7), Decimal(0))
        assert "%" in str(exc_info.value)

    def test_power(self):
        assert bigmath.power(Decimal(2), Decimal(10)) == 1024
        assert bigmath.power(Decimal(2), Decimal(-1)) == Decimal("0.5")
        assert bigmath.power(Decimal(5), Decimal(0)) == 1
        assert close(bigmath.power(Decimal(2), Decimal("0.5")), "1.4142135623730951")

    def test_zero_to_negative_power(self):
        with pytest.raises(DivisionByZero):
            bigmath.power(Decimal(0), Decimal(-1))

    def test_power_overflow(self):
        with pytest.raises(NumericOverflow):
            bigmath.power(Decimal(10), Decimal(100000))

    def test_fractional_power_of_negative(self):
        with pytest.raises(DomainError):
            bigmath.power(Decimal(-8), Decimal("0.5"))

    def test_exp_overflow(self):
        with pytest.raises(NumericOverflow):
            bigmath.exp(Decimal(1000))

    @pytest.mark.parametrize("value", ["0", "-1"])
    def test_ln_domain(self, value):
        with pytest.raises(DomainError):
            bigmath.ln(Decimal(value))

    def test_log_base(self):
        assert close(bigmath.log(Decimal(8), Decimal(2)), 3)


class TestRounding:
    def test_fpart(self):
        assert bigmath.fpart(Decimal("-2.75")) == Decimal("-0.75")
        assert bigmath.fpart(Decimal("3.25")) == Decimal("0.25")

    def test_round_half_up(self):
        assert bigmath.round_half_up(Decimal("2.5")) == 3
        assert bigmath.round_half_up(Decimal("-2.5")) == -2
        assert bigmath.round_half_up(Decimal("2.49")) == 2

    def test_ceil_floor(self):
        assert bigmath.ceil(Decimal("2.1")) == 3
        assert bigmath.floor(Decimal("-2.1")) == -3


class TestTrigonometry:
    def test_reciprocal_at_zero(self):
        with pytest.raises(DivisionByZero):
            bigmath.cotan(Decimal(0))
        with pytest.raises(DivisionByZero):
            bigmath.csc(Decimal(0))

    def test_sinc(self):
        assert bigmath.sinc(Decimal(0)) == 1
        assert close(bigmath.sinc(Decimal(1)), "0.8414709848078965")

    def test_acotan_zero(self):
        assert close(bigmath.acotan(Decimal(0)), PI / 2, "1e-18")

    def test_asec_edges(self):
        assert bigmath.asec(Decimal(1)) == 0
        assert close(bigmath.asec(Decimal(-1)), PI, "1e-15")

    @pytest.mark.parametrize(
        "fn,value",
        [
            (bigmath.asin, "2"),
            (bigmath.acos, "-1.5"),
            (bigmath.asec, "2"),
            (bigmath.acsc, "0.5"),
            (bigmath.aexsec, "1"),
            (bigmath.avers, "3"),
            (bigmath.acovers, "-1"),
            (bigmath.ahav, "2"),
            (bigmath.acosh, "0.5"),
            (bigmath.atanh, "1"),
            (bigmath.acoth, "0.5"),
            (bigmath.asech, "0"),
            (bigmath.acsch, "0"),
        ],
    )
    def test_domains(self, fn, value):
        with pytest.raises(DomainError):
            fn(Decimal(value))

    def test_ahav(self):
        # hav(pi/2) = 1/2
        assert close(bigmath.ahav(Decimal("0.5")), PI / 2, "1e-15")


class TestAngleConversions:
    def test_degrees(self):
        assert close(bigmath.degrees_to_radians(Decimal(180)), PI, "1e-15")
        assert close(bigmath.radians_to_degrees(PI), 180, "1e-15")

    def test_gradians(self):
        assert close(bigmath.radians_to_gradians(PI), 200, "1e-15")
        assert close(bigmath.gradians_to_degrees(Decimal(200)), 180, "1e-15")
        assert close(bigmath.degrees_to_gradians(Decimal(90)), 100, "1e-15")

    def test_round_trip_units(self):
        for unit in ("rad", "deg", "grad"):
            angle = Decimal("1.25")
            back = bigmath.from_radians(bigmath.to_radians(angle, unit), unit)
            assert close(back, angle, "1e-15")


class TestFormatDecimal:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("14.000", "14"),
            ("1E-3", "0.001"),
            ("-0.50", "-0.5"),
            ("1E+3", "1000"),
            ("0", "0"),
        ],
    )
    def test_format(self, value, expected):
        assert bigmath.format_decimal(Decimal(value)) == expected
