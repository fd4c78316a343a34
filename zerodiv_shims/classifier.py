"""
zerodiv_shims/classifier.py
═══════════════════════════

Expression classifier: maps a divisor sub-expression onto the closed set of
shapes the zero-divisor evaluator can reason about.

    literal        0   0.0   0x0   0.0dd
    identifier     b
    subtraction    x - x
    multiplication a * 0
    call           foo(a)
    unclassified   everything else

Grouping parentheses are transparent and stripped before classification.
``classify`` is total: anything it does not recognise is
``UnclassifiedShape``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Tuple, Union

from zerodiv_shims.program_model import Node, NodeKind, ProgramModel


@dataclass(frozen=True)
class LiteralShape:
    node: Node


@dataclass(frozen=True)
class IdentifierShape:
    node: Node


@dataclass(frozen=True)
class SubtractionShape:
    node: Node
    left: Node
    right: Node


@dataclass(frozen=True)
class MultiplicationShape:
    node: Node
    left: Node
    right: Node


@dataclass(frozen=True)
class CallShape:
    node: Node
    args: Tuple[Any, ...] = ()


@dataclass(frozen=True)
class UnclassifiedShape:
    node: Node


Shape = Union[
    LiteralShape,
    IdentifierShape,
    SubtractionShape,
    MultiplicationShape,
    CallShape,
    UnclassifiedShape,
]


def classify(node: Node, model: ProgramModel) -> Shape:
    """
    Classify an expression node.

    Args:
        node: Expression node owned by ``model``
        model: The program model that can answer shape queries

    Returns:
        The shape of ``node`` after stripping grouping parentheses
    """
    node = model.strip_parentheses(node)
    kind = model.node_kind(node)

    if kind is NodeKind.LITERAL:
        return LiteralShape(node)
    if kind is NodeKind.IDENTIFIER:
        return IdentifierShape(node)
    if kind is NodeKind.CALL:
        return CallShape(node, tuple(model.call_arguments(node)))
    if kind is NodeKind.BINARY:
        op = model.binary_operator(node)
        left, right = model.operands(node)
        if op == "-":
            return SubtractionShape(node, left, right)
        if op == "*":
            return MultiplicationShape(node, left, right)
    return UnclassifiedShape(node)


__all__ = [
    "Shape",
    "LiteralShape",
    "IdentifierShape",
    "SubtractionShape",
    "MultiplicationShape",
    "CallShape",
    "UnclassifiedShape",
    "classify",
]
