"""Centralized configuration for exprcalc.

This module defines:
- Input validation limits (length, recursion depth)
- Decimal precision used by the evaluator and the math library
- Newton square-root iteration contract
- Differentiator defaults (synthetic variable, simplification passes)
- High-precision constants (pi, Euler's number)

Configuration can be overridden via environment variables prefixed with
EXPRCALC_.
"""

import os
from decimal import ROUND_HALF_EVEN, Context, Decimal

import sympy as sp

try:
    import importlib.metadata

    VERSION = importlib.metadata.version("exprcalc")
except Exception:
    # Fallback if package not installed
    VERSION = "1.0.0"

# Input validation limits
MAX_INPUT_LENGTH = int(os.getenv("EXPRCALC_MAX_INPUT_LENGTH", "10000"))  # characters
MAX_EXPRESSION_DEPTH = int(
    os.getenv("EXPRCALC_MAX_EXPRESSION_DEPTH", "300")
)  # nesting depth for parse, evaluate and derive

# Decimal arithmetic
WORKING_PRECISION = int(
    os.getenv("EXPRCALC_WORKING_PRECISION", "50")
)  # significant digits for + - * and the math library
DIVISION_PRECISION = int(
    os.getenv("EXPRCALC_DIVISION_PRECISION", "20")
)  # significant digits for / and logarithm quotients

WORKING_CONTEXT = Context(prec=WORKING_PRECISION, rounding=ROUND_HALF_EVEN)
DIVISION_CONTEXT = Context(prec=DIVISION_PRECISION, rounding=ROUND_HALF_EVEN)

# Newton square root
SQRT_MAX_ITERATIONS = int(os.getenv("EXPRCALC_SQRT_MAX_ITERATIONS", "50"))
SQRT_SCALE = int(os.getenv("EXPRCALC_SQRT_SCALE", "50"))  # fractional digits

# Largest integral exponent evaluated with exact decimal power
MAX_EXACT_EXPONENT = int(os.getenv("EXPRCALC_MAX_EXACT_EXPONENT", "1000"))

# Largest argument accepted by fac, sfac and log_factorial
MAX_FACTORIAL = int(os.getenv("EXPRCALC_MAX_FACTORIAL", "1000"))

# Longest operator symbol tried by the longest-match lookup
MAX_OPERATOR_LENGTH = 8

# Differentiator
DEFAULT_VARIABLE = os.getenv("EXPRCALC_DEFAULT_VARIABLE", "x")
MAX_SIMPLIFY_PASSES = int(os.getenv("EXPRCALC_MAX_SIMPLIFY_PASSES", "100"))

# Angle unit for trigonometric operators: "rad", "deg" or "grad"
DEFAULT_ANGLE_UNIT = os.getenv("EXPRCALC_DEFAULT_ANGLE_UNIT", "rad").lower()
ANGLE_UNITS = ("rad", "deg", "grad")

# High-precision constants, computed once
PI = Decimal(str(sp.N(sp.pi, 60)))
EULER = Decimal(str(sp.N(sp.E, 60)))

TRUE = Decimal(1)
FALSE = Decimal(0)

NAMED_CONSTANTS = {
    "pi": PI,
    "euler": EULER,
    "true": TRUE,
    "false": FALSE,
}

# Characters allowed besides letters, digits and operator symbols
ALLOWED_SYMBOLS = frozenset("().><&=|")
