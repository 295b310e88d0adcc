"""exprcalc package: expression evaluator and symbolic differentiator."""

__all__ = [
    "config",
    "operators",
    "nodes",
    "parser",
    "bigmath",
    "evaluator",
    "calculus",
    "cli",
    "types",
    "api",
    "logging_config",
]

# Public API exports

__api_exports__ = [
    "evaluate",
    "differentiate",
    "validate_expression",
]
