"""
zerodiv_shims/program_model.py
══════════════════════════════

The contract between the zero-divisor evaluator and the host that owns the
parsed program.

The evaluator never walks tokens, scopes or symbol tables itself. It asks a
``ProgramModel`` five kinds of question:

  ┌──────────────────────┬──────────────────────────────────────────────┐
  │ shape                │ node_kind, strip_parentheses, operands       │
  │ symbol resolution    │ resolve_symbol, initializer                  │
  │ constant folding     │ fold_constant                                │
  │ callables            │ resolve_call_target, return_expressions      │
  │ dataflow             │ symbols_written_between                      │
  └──────────────────────┴──────────────────────────────────────────────┘

plus ``render`` / ``location`` / ``node_key`` for reporting and the cycle
guard. Implementations must be read-only: the evaluator is run
concurrently over many division sites of the same program.

License: MIT
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum, auto
from typing import Any, FrozenSet, Hashable, Optional, Sequence, Tuple, Union


Node = Any
Number = Union[int, float, Decimal]


class NodeKind(Enum):
    """Syntactic categories the evaluator distinguishes."""
    LITERAL = auto()
    IDENTIFIER = auto()
    BINARY = auto()
    CALL = auto()
    PARENTHESIZED = auto()
    OTHER = auto()


class NumericDomain(Enum):
    INTEGER = "integer"
    FLOATING = "floating"
    DECIMAL = "decimal"


class SymbolKind(Enum):
    LOCAL = "local"
    PARAMETER = "parameter"
    FIELD = "field"
    GLOBAL = "global"
    UNKNOWN = "unknown"


# Kinds for which ``x - x`` is zero whatever x holds
SELF_SUBTRACTION_KINDS: FrozenSet[SymbolKind] = frozenset({
    SymbolKind.LOCAL, SymbolKind.PARAMETER, SymbolKind.FIELD,
})


@dataclass(frozen=True)
class ConstantValue:
    """A folded compile-time constant and the domain it lives in."""
    value: Number
    domain: NumericDomain

    @property
    def is_zero(self) -> bool:
        if self.domain is NumericDomain.INTEGER:
            return int(self.value) == 0
        if self.domain is NumericDomain.DECIMAL:
            return Decimal(self.value).is_zero()
        return float(self.value) == 0.0

    def same_constant(self, other: "ConstantValue") -> bool:
        return self.domain is other.domain and self.value == other.value


@dataclass(frozen=True)
class Symbol:
    """
    Opaque identity of a declared variable, parameter or field.

    Equality and hashing use ``key`` only: two handles are equal iff they
    denote the same declaration, whatever object produced them.
    """
    key: Hashable
    name: str = field(default="", compare=False)
    kind: SymbolKind = field(default=SymbolKind.UNKNOWN, compare=False)


@dataclass(frozen=True)
class CallTarget:
    """Opaque identity of a callable declaration."""
    key: Hashable
    name: str = field(default="", compare=False)


@dataclass(frozen=True)
class SourceLocation:
    """A specific point in source code."""
    file: str = ""
    line: int = 0
    column: int = 0

    def __str__(self) -> str:
        if self.column:
            return f"{self.file}:{self.line}:{self.column}"
        return f"{self.file}:{self.line}"


class ProgramModel(ABC):
    """
    Read-only view of a parsed program.

    Subclass Contract
    ─────────────────
      - Every query is total: unknown answers are ``None`` / empty /
        ``NodeKind.OTHER``, never an exception.
      - The single exception is ``symbols_written_between``, which raises
        ``DataflowRangeError`` for ranges it cannot order.
      - ``node_key`` must be stable for the lifetime of the model.
    """

    # ── shape ────────────────────────────────────────────────────────

    @abstractmethod
    def node_kind(self, node: Node) -> NodeKind:
        ...

    @abstractmethod
    def strip_parentheses(self, node: Node) -> Node:
        """Remove every level of grouping around ``node``."""
        ...

    @abstractmethod
    def binary_operator(self, node: Node) -> str:
        ...

    @abstractmethod
    def operands(self, node: Node) -> Tuple[Node, Node]:
        ...

    @abstractmethod
    def call_arguments(self, node: Node) -> Sequence[Node]:
        ...

    # ── symbols and constants ────────────────────────────────────────

    @abstractmethod
    def resolve_symbol(self, node: Node) -> Optional[Symbol]:
        ...

    @abstractmethod
    def initializer(self, symbol: Symbol) -> Optional[Node]:
        """
        Expression that initialises ``symbol`` at its declaration.

        ``None`` for parameters, fields without a visible initializer and
        symbols the model cannot locate.
        """
        ...

    @abstractmethod
    def fold_constant(self, node: Node) -> Optional[ConstantValue]:
        ...

    # ── callables ────────────────────────────────────────────────────

    @abstractmethod
    def resolve_call_target(self, node: Node) -> Optional[CallTarget]:
        ...

    @abstractmethod
    def return_expressions(self, target: CallTarget) -> Sequence[Node]:
        """Returned expressions of ``target`` in source order."""
        ...

    # ── dataflow ─────────────────────────────────────────────────────

    @abstractmethod
    def symbols_written_between(self, symbol: Symbol, use: Node) -> FrozenSet[Symbol]:
        """
        Symbols written between the declaration of ``symbol`` and ``use``.

        Raises:
            DataflowRangeError: the declaration and the use are not
                comparably ordered in one function body.
        """
        ...

    # ── reporting ────────────────────────────────────────────────────

    @abstractmethod
    def render(self, node: Node) -> str:
        ...

    @abstractmethod
    def location(self, node: Node) -> SourceLocation:
        ...

    def node_key(self, node: Node) -> Hashable:
        """Identity of a node for the cycle guard."""
        return id(node)


__all__ = [
    "Node",
    "NodeKind",
    "NumericDomain",
    "SymbolKind",
    "SELF_SUBTRACTION_KINDS",
    "ConstantValue",
    "Symbol",
    "CallTarget",
    "SourceLocation",
    "ProgramModel",
]
