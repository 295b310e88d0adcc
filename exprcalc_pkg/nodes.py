"""Immutable parse-tree nodes.

A tree is built from three node kinds:

- Constant: a decimal literal
- Variable: an identifier resolved at evaluation time
- Expression: an operator applied to one or two child nodes

The evaluator and the differentiator both work on these trees. Nodes are
hashable and compare structurally, which the differentiator relies on for
its like-term rules.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Union

from .operators import lookup
from .types import ArityMismatch, UnknownOperator


@dataclass(frozen=True)
class Constant:
    value: Decimal


@dataclass(frozen=True)
class Variable:
    name: str


@dataclass(frozen=True)
class Expression:
    operator: str
    left: "Node"
    right: "Node | None" = None

    def __post_init__(self) -> None:
        descriptor = lookup(self.operator)
        if descriptor is None:
            raise UnknownOperator(self.operator)
        arguments = 1 if self.right is None else 2
        if descriptor.arity != arguments:
            raise ArityMismatch(
                f"Wrong number of arguments to operator {self.operator}"
            )


Node = Union[Constant, Variable, Expression]
