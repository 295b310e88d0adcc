"""Math functions on Decimal values.

Transcendental functions are computed with the float functions of the math
module and widened to Decimal; Decimal(repr(x)) keeps exactly the digits of
the shortest float representation. Arithmetic that Decimal can do directly
(square root by Newton's method, factorials, rounding, angle conversions) is
done in Decimal.

Every function raises a subclass of EvalError instead of returning NaN:
DomainError for arguments outside the domain, InvalidArgument for
factorials of non-integers, DivisionByZero and NumericOverflow.
"""

from __future__ import annotations

import math
from decimal import (
    ROUND_CEILING,
    ROUND_DOWN,
    ROUND_FLOOR,
    ROUND_HALF_UP,
    Context,
    Decimal,
    localcontext,
)
from typing import Callable

from .config import (
    DIVISION_CONTEXT,
    MAX_EXACT_EXPONENT,
    MAX_FACTORIAL,
    PI,
    SQRT_MAX_ITERATIONS,
    SQRT_SCALE,
    WORKING_CONTEXT,
)
from .types import DivisionByZero, DomainError, InvalidArgument, NumericOverflow

ZERO = Decimal(0)
ONE = Decimal(1)
TWO = Decimal(2)
MINUS_ONE = Decimal(-1)
MINUS_TWO = Decimal(-2)
ONE_HALF = Decimal("0.5")
ONE_EIGHTY = Decimal(180)
TWO_HUNDRED = Decimal(200)


def widen(value: float, operator: str) -> Decimal:
    """Convert a float result to Decimal, rejecting inf and nan."""
    if math.isinf(value) or math.isnan(value):
        raise NumericOverflow(operator)
    return Decimal(repr(value))


def _float_call(fn: Callable[[float], float], a: Decimal, operator: str) -> Decimal:
    try:
        return widen(fn(float(a)), operator)
    except OverflowError as e:
        raise NumericOverflow(operator) from e
    except ValueError as e:
        raise DomainError(operator, a) from e


def _reciprocal(a: Decimal, operator: str) -> Decimal:
    if a == ZERO:
        raise DivisionByZero(operator)
    return DIVISION_CONTEXT.divide(ONE, a)


def _check_range(operator: str, a: Decimal, low: Decimal, high: Decimal) -> None:
    if a < low or a > high:
        raise DomainError(operator, a, f">= {low} and <= {high}")


def is_integer(a: Decimal) -> bool:
    return a.is_finite() and a == a.to_integral_value()


# ---------------------------------------------------------------------------
# arithmetic
# ---------------------------------------------------------------------------


def divide(a: Decimal, b: Decimal, operator: str = "/") -> Decimal:
    if b == ZERO:
        raise DivisionByZero(operator)
    return DIVISION_CONTEXT.divide(a, b)


def remainder(a: Decimal, b: Decimal) -> Decimal:
    """Remainder with the sign of the dividend, like BigDecimal.remainder."""
    if b == ZERO:
        raise DivisionByZero("%")
    return WORKING_CONTEXT.remainder(a, b)


def power(a: Decimal, b: Decimal) -> Decimal:
    """a raised to b.

    Integral exponents up to MAX_EXACT_EXPONENT use Decimal arithmetic,
    anything else goes through float pow.
    """
    if b == ZERO:
        return ONE
    if a == ZERO and b < ZERO:
        raise DivisionByZero("^")
    if is_integer(b) and abs(b) <= MAX_EXACT_EXPONENT:
        result = WORKING_CONTEXT.power(a, int(b))
        if result.is_infinite():
            raise NumericOverflow("^")
        return result
    try:
        return widen(math.pow(float(a), float(b)), "^")
    except OverflowError as e:
        raise NumericOverflow("^") from e
    except ValueError as e:
        raise DomainError("^", a, "non-negative for a fractional exponent") from e


# ---------------------------------------------------------------------------
# exponential and logarithms
# ---------------------------------------------------------------------------


def exp(a: Decimal) -> Decimal:
    return _float_call(math.exp, a, "exp")


def ln(a: Decimal) -> Decimal:
    if a <= ZERO:
        raise DomainError("ln", a, "> 0")
    return _float_call(math.log, a, "ln")


def log(a: Decimal, b: Decimal) -> Decimal:
    """Logarithm of a to base b."""
    if a <= ZERO:
        raise DomainError("log", a, "> 0")
    if b <= ZERO:
        raise DomainError("log", b, "> 0")
    return divide(ln(a), ln(b), "log")


def log_factorial(a: Decimal) -> Decimal:
    """Natural logarithm of a!."""
    _check_factorial_argument("log_factorial", a)
    total = ZERO
    for i in range(2, int(a) + 1):
        total = WORKING_CONTEXT.add(total, ln(Decimal(i)))
    return total


# ---------------------------------------------------------------------------
# square root
# ---------------------------------------------------------------------------


def _initial_approximation(a: Decimal) -> Decimal:
    length = len(str(int(a)))
    if length % 2 == 0:
        length -= 1
    return ONE.scaleb(length // 2)


def sqrt(a: Decimal) -> Decimal:
    """Square root by Newton's method.

    The input is first scaled by an even power of ten into [1, 100), so every
    magnitude gets SQRT_SCALE fractional digits of the scaled root. Guesses
    are rounded half-up to that quantum. The loop stops when two successive
    guesses are equal and |m - g^2| < 1, or after SQRT_MAX_ITERATIONS rounds.
    The result is an approximation rounded to the working precision.
    """
    if a < ZERO:
        raise DomainError("sqrt", a, ">= 0")
    if a == ZERO:
        return ZERO

    shift = a.adjusted() // 2
    quantum = ONE.scaleb(-SQRT_SCALE)
    ctx = Context(prec=SQRT_SCALE + 12, rounding=ROUND_HALF_UP)
    mantissa = a.scaleb(-2 * shift, ctx)

    guess = _initial_approximation(mantissa)
    with localcontext(ctx):
        for _ in range(SQRT_MAX_ITERATIONS):
            last_guess = guess
            guess = (mantissa / guess).quantize(quantum)
            guess = ((guess + last_guess) / TWO).quantize(quantum)
            error = mantissa - guess * guess
            if last_guess == guess and abs(error) < ONE:
                break
    return WORKING_CONTEXT.plus(guess.scaleb(shift, ctx))


# ---------------------------------------------------------------------------
# factorials and integer functions
# ---------------------------------------------------------------------------


def _check_factorial_argument(operator: str, a: Decimal) -> None:
    if not is_integer(a) or a < ZERO:
        raise InvalidArgument(operator, a, "a non-negative integer")
    if a > MAX_FACTORIAL:
        raise InvalidArgument(operator, a, f"at most {MAX_FACTORIAL}")


def fac(a: Decimal) -> Decimal:
    """a! for a non-negative integer a."""
    _check_factorial_argument("fac", a)
    return Decimal(math.factorial(int(a)))


factorial = fac


def sfac(a: Decimal) -> Decimal:
    """Semi factorial a!! = a * (a-2) * (a-4) * ..."""
    _check_factorial_argument("sfac", a)
    result = 1
    for i in range(int(a), 1, -2):
        result *= i
    return Decimal(result)


def fpart(a: Decimal) -> Decimal:
    """Fractional part of a, keeping the sign of a."""
    return a - a.to_integral_value(rounding=ROUND_DOWN)


def round_half_up(a: Decimal) -> Decimal:
    """Round to the nearest integer, halves towards positive infinity."""
    return (a + ONE_HALF).to_integral_value(rounding=ROUND_FLOOR)


def ceil(a: Decimal) -> Decimal:
    return a.to_integral_value(rounding=ROUND_CEILING)


def floor(a: Decimal) -> Decimal:
    return a.to_integral_value(rounding=ROUND_FLOOR)


# ---------------------------------------------------------------------------
# circular functions
# ---------------------------------------------------------------------------


def sin(a: Decimal) -> Decimal:
    return _float_call(math.sin, a, "sin")


def cos(a: Decimal) -> Decimal:
    return _float_call(math.cos, a, "cos")


def tan(a: Decimal) -> Decimal:
    return _float_call(math.tan, a, "tan")


def cotan(a: Decimal) -> Decimal:
    return _reciprocal(tan(a), "cotan")


def sec(a: Decimal) -> Decimal:
    return _reciprocal(cos(a), "sec")


def csc(a: Decimal) -> Decimal:
    return _reciprocal(sin(a), "csc")


def exsec(a: Decimal) -> Decimal:
    return WORKING_CONTEXT.subtract(sec(a), ONE)


def vers(a: Decimal) -> Decimal:
    return WORKING_CONTEXT.subtract(ONE, cos(a))


def covers(a: Decimal) -> Decimal:
    return WORKING_CONTEXT.subtract(ONE, sin(a))


def hav(a: Decimal) -> Decimal:
    return WORKING_CONTEXT.multiply(ONE_HALF, vers(a))


def sinc(a: Decimal) -> Decimal:
    """sin(a)/a, continuous at zero."""
    if a == ZERO:
        return ONE
    return divide(sin(a), a, "sinc")


def asin(a: Decimal) -> Decimal:
    _check_range("asin", a, MINUS_ONE, ONE)
    return _float_call(math.asin, a, "asin")


def acos(a: Decimal) -> Decimal:
    _check_range("acos", a, MINUS_ONE, ONE)
    return _float_call(math.acos, a, "acos")


def atan(a: Decimal) -> Decimal:
    return _float_call(math.atan, a, "atan")


def acotan(a: Decimal) -> Decimal:
    if a == ZERO:
        return DIVISION_CONTEXT.divide(PI, TWO)
    return atan(DIVISION_CONTEXT.divide(ONE, a))


def asec(a: Decimal) -> Decimal:
    _check_range("asec", a, MINUS_ONE, ONE)
    inverse = _reciprocal(a, "asec")
    _check_range("asec", inverse, MINUS_ONE, ONE)
    return _float_call(math.acos, inverse, "asec")


def acsc(a: Decimal) -> Decimal:
    _check_range("acsc", a, MINUS_ONE, ONE)
    inverse = _reciprocal(a, "acsc")
    _check_range("acsc", inverse, MINUS_ONE, ONE)
    return _float_call(math.asin, inverse, "acsc")


def aexsec(a: Decimal) -> Decimal:
    _check_range("aexsec", a, MINUS_TWO, ZERO)
    inverse = _reciprocal(WORKING_CONTEXT.add(ONE, a), "aexsec")
    _check_range("aexsec", inverse, MINUS_ONE, ONE)
    return _float_call(math.acos, inverse, "aexsec")


def avers(a: Decimal) -> Decimal:
    _check_range("avers", a, ZERO, TWO)
    return acos(WORKING_CONTEXT.subtract(ONE, a))


def acovers(a: Decimal) -> Decimal:
    _check_range("acovers", a, ZERO, TWO)
    return asin(WORKING_CONTEXT.subtract(ONE, a))


def ahav(a: Decimal) -> Decimal:
    _check_range("ahav", a, ZERO, ONE)
    return acos(WORKING_CONTEXT.subtract(ONE, WORKING_CONTEXT.multiply(TWO, a)))


# ---------------------------------------------------------------------------
# hyperbolic functions
# ---------------------------------------------------------------------------


def sinh(a: Decimal) -> Decimal:
    return _float_call(math.sinh, a, "sinh")


def cosh(a: Decimal) -> Decimal:
    return _float_call(math.cosh, a, "cosh")


def tanh(a: Decimal) -> Decimal:
    return _float_call(math.tanh, a, "tanh")


def cotanh(a: Decimal) -> Decimal:
    return _reciprocal(tanh(a), "cotanh")


def sech(a: Decimal) -> Decimal:
    return _reciprocal(cosh(a), "sech")


def csch(a: Decimal) -> Decimal:
    return _reciprocal(sinh(a), "csch")


def asinh(a: Decimal) -> Decimal:
    return _float_call(math.asinh, a, "asinh")


def acosh(a: Decimal) -> Decimal:
    if a < ONE:
        raise DomainError("acosh", a, ">= 1")
    return _float_call(math.acosh, a, "acosh")


def atanh(a: Decimal) -> Decimal:
    if a <= MINUS_ONE or a >= ONE:
        raise DomainError("atanh", a, "> -1 and < 1")
    return _float_call(math.atanh, a, "atanh")


def acoth(a: Decimal) -> Decimal:
    if MINUS_ONE <= a <= ONE:
        raise DomainError("acoth", a, "< -1 or > 1")
    return _float_call(math.atanh, DIVISION_CONTEXT.divide(ONE, a), "acoth")


def asech(a: Decimal) -> Decimal:
    if a <= ZERO or a > ONE:
        raise DomainError("asech", a, "> 0 and <= 1")
    return _float_call(math.acosh, DIVISION_CONTEXT.divide(ONE, a), "asech")


def acsch(a: Decimal) -> Decimal:
    if a == ZERO:
        raise DomainError("acsch", a, "!= 0")
    return _float_call(math.asinh, DIVISION_CONTEXT.divide(ONE, a), "acsch")


# ---------------------------------------------------------------------------
# angle conversions
# ---------------------------------------------------------------------------


def degrees_to_radians(a: Decimal) -> Decimal:
    return DIVISION_CONTEXT.divide(WORKING_CONTEXT.multiply(a, PI), ONE_EIGHTY)


def degrees_to_gradians(a: Decimal) -> Decimal:
    return DIVISION_CONTEXT.divide(WORKING_CONTEXT.multiply(a, TWO_HUNDRED), ONE_EIGHTY)


def radians_to_degrees(a: Decimal) -> Decimal:
    return DIVISION_CONTEXT.divide(WORKING_CONTEXT.multiply(a, ONE_EIGHTY), PI)


def radians_to_gradians(a: Decimal) -> Decimal:
    return DIVISION_CONTEXT.divide(WORKING_CONTEXT.multiply(a, TWO_HUNDRED), PI)


def gradians_to_degrees(a: Decimal) -> Decimal:
    return DIVISION_CONTEXT.divide(WORKING_CONTEXT.multiply(a, ONE_EIGHTY), TWO_HUNDRED)


def gradians_to_radians(a: Decimal) -> Decimal:
    return DIVISION_CONTEXT.divide(WORKING_CONTEXT.multiply(a, PI), TWO_HUNDRED)


def to_radians(a: Decimal, unit: str) -> Decimal:
    """Convert an angle in unit ("rad", "deg", "grad") to radians."""
    if unit == "deg":
        return degrees_to_radians(a)
    if unit == "grad":
        return gradians_to_radians(a)
    return a


def from_radians(a: Decimal, unit: str) -> Decimal:
    """Convert an angle in radians to unit ("rad", "deg", "grad")."""
    if unit == "deg":
        return radians_to_degrees(a)
    if unit == "grad":
        return radians_to_gradians(a)
    return a


UNARY_FUNCTIONS: dict[str, Callable[[Decimal], Decimal]] = {
    "sqrt": sqrt,
    "exp": exp,
    "ln": ln,
    "sin": sin,
    "cos": cos,
    "tan": tan,
    "cotan": cotan,
    "sec": sec,
    "csc": csc,
    "exsec": exsec,
    "vers": vers,
    "covers": covers,
    "hav": hav,
    "sinc": sinc,
    "asin": asin,
    "acos": acos,
    "atan": atan,
    "acotan": acotan,
    "asec": asec,
    "acsc": acsc,
    "aexsec": aexsec,
    "avers": avers,
    "acovers": acovers,
    "ahav": ahav,
    "sinh": sinh,
    "cosh": cosh,
    "tanh": tanh,
    "cotanh": cotanh,
    "sech": sech,
    "csch": csch,
    "asinh": asinh,
    "acosh": acosh,
    "atanh": atanh,
    "acoth": acoth,
    "asech": asech,
    "acsch": acsch,
    "abs": abs,
    "fpart": fpart,
    "round": round_half_up,
    "ceil": ceil,
    "floor": floor,
    "fac": fac,
    "sfac": sfac,
    "deg2rad": degrees_to_radians,
    "deg2grad": degrees_to_gradians,
    "rad2deg": radians_to_degrees,
    "rad2grad": radians_to_gradians,
    "grad2deg": gradians_to_degrees,
    "grad2rad": gradians_to_radians,
}


def format_decimal(value: Decimal) -> str:
    """Plain text for value: integral values without a fraction, no exponent.

    Examples:
        >>> format_decimal(Decimal("14.000"))
        '14'
        >>> format_decimal(Decimal("1E-3"))
        '0.001'
    """
    if is_integer(value):
        return str(int(value))
    return format(value.normalize(), "f")
