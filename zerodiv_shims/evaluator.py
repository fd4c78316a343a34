"""
zerodiv_shims/evaluator.py
══════════════════════════

Static zero-divisor evaluator.

Given a division expression, decide without running the program whether
its divisor is zero on every path that reaches the division. The decision
is a depth-first walk over the divisor with five proof rules:

  ┌────────────────┬───────────────────────────────────────────────────┐
  │ literal        │ folds to zero in its own domain (0, 0.0, 0.0dd)   │
  │ identifier     │ initializer is provably zero AND no write to the  │
  │                │ variable between its declaration and this use     │
  │ x - y          │ x and y are the same literal or the same          │
  │                │ local / parameter / field                         │
  │ x * y          │ either factor is provably zero                    │
  │ f(...)         │ a return expression of f is provably zero         │
  │                │ (all of them under CallReturnPolicy.ALL)          │
  └────────────────┴───────────────────────────────────────────────────┘

Anything else, and any question the program model cannot answer, is
"not provably zero". The only deliberate over-approximation is the call
rule under the default ``CallReturnPolicy.ANY``: a function that can
return zero on some path is treated as returning zero.

Cycle guard
───────────
A ``VisitedSet`` is created per top-level check and threaded through the
recursion. Nodes are inserted before their operands are explored and are
never removed, so self-referential initializers (``int x = x * 0;``) and
recursive functions terminate: every node is evaluated at most once per
check.

Evaluator instances hold configuration only. Concurrent checks on the same
model are safe.

License: MIT
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Hashable, Iterator, List, Optional, Set

from zerodiv_shims.classifier import (
    CallShape,
    IdentifierShape,
    LiteralShape,
    MultiplicationShape,
    SubtractionShape,
    classify,
)
from zerodiv_shims.errors import ConfigurationError, DataflowRangeError
from zerodiv_shims.program_model import (
    SELF_SUBTRACTION_KINDS,
    Node,
    NodeKind,
    ProgramModel,
    SourceLocation,
)

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════════
#  PART 1: RESULTS AND CONFIGURATION
# ═════════════════════════════════════════════════════════════════════════

class EvaluationResult(Enum):
    PROVABLY_ZERO = "provably-zero"
    NOT_PROVABLY_ZERO = "not-provably-zero"

    def __bool__(self) -> bool:
        return self is EvaluationResult.PROVABLY_ZERO


class CallReturnPolicy(Enum):
    """
    How return expressions of a called function prove the call is zero.

    ANY : one provably-zero return suffices (path-insensitive, may flag a
          call whose zero-returning path is never taken)
    ALL : every return must be provably zero and at least one must exist
    """
    ANY = "any"
    ALL = "all"


@dataclass
class EvaluatorConfig:
    """Tuning knobs for the zero-divisor evaluator and its checker."""
    call_policy: CallReturnPolicy = CallReturnPolicy.ANY
    include_modulo: bool = True
    max_workers: int = 1

    def validate(self) -> List[str]:
        """Return a list of validation warnings (empty if valid)."""
        warnings: List[str] = []
        if self.max_workers <= 0:
            warnings.append("max_workers must be positive")
        if not isinstance(self.call_policy, CallReturnPolicy):
            warnings.append(f"unknown call_policy {self.call_policy!r}")
        return warnings

    @classmethod
    def from_options(cls, options: Dict[str, Any]) -> "EvaluatorConfig":
        """
        Build a config from a checker options dict.

        Recognised keys: ``call_policy`` ("any" / "all"),
        ``include_modulo`` (bool), ``max_workers`` (int).

        Raises:
            ConfigurationError: an option has a value that cannot be used
        """
        config = cls()
        if "call_policy" in options:
            raw = options["call_policy"]
            try:
                config.call_policy = (
                    raw if isinstance(raw, CallReturnPolicy)
                    else CallReturnPolicy(str(raw).lower())
                )
            except ValueError:
                raise ConfigurationError(
                    "call_policy", raw, "expected 'any' or 'all'"
                ) from None
        if "include_modulo" in options:
            config.include_modulo = bool(options["include_modulo"])
        if "max_workers" in options:
            raw = options["max_workers"]
            try:
                config.max_workers = int(raw)
            except (TypeError, ValueError):
                raise ConfigurationError("max_workers", raw, "expected an integer") from None
        if config.max_workers <= 0:
            raise ConfigurationError("max_workers", config.max_workers, "must be positive")
        return config


@dataclass(frozen=True)
class DivisionCheck:
    """
    Outcome of checking one division expression.

    Attributes
    ----------
    result         : PROVABLY_ZERO or NOT_PROVABLY_ZERO
    division       : the division expression node
    divisor        : its right operand (None if the node has none)
    divisor_text   : rendering of the divisor, for diagnostic messages
    location       : source location of the division
    call_rule_only : the proof holds under CallReturnPolicy.ANY but not ALL
    """
    result: EvaluationResult
    division: Any
    divisor: Any
    divisor_text: str = ""
    location: SourceLocation = field(default_factory=SourceLocation)
    call_rule_only: bool = False

    @property
    def is_zero(self) -> bool:
        return self.result is EvaluationResult.PROVABLY_ZERO


# ═════════════════════════════════════════════════════════════════════════
#  PART 2: CYCLE GUARD
# ═════════════════════════════════════════════════════════════════════════

class VisitedSet:
    """
    Node identities entered during one top-level check.

    Insert-only: membership persists until the check completes.
    """

    __slots__ = ("_keys",)

    def __init__(self) -> None:
        self._keys: Set[Hashable] = set()

    def add(self, key: Hashable) -> None:
        self._keys.add(key)

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self._keys)


# ═════════════════════════════════════════════════════════════════════════
#  PART 3: THE EVALUATOR
# ═════════════════════════════════════════════════════════════════════════

class ZeroDivisorEvaluator:
    """
    Decides whether division divisors are provably zero.

    Usage
    -----
    >>> evaluator = ZeroDivisorEvaluator(CppcheckProgramModel(cfg))
    >>> for tok in cfg.tokenlist:
    ...     if tok.str == '/' and evaluator.check_division(tok):
    ...         report(tok)
    """

    def __init__(self, model: ProgramModel, config: Optional[EvaluatorConfig] = None) -> None:
        self.model = model
        self.config = config or EvaluatorConfig()
        for w in self.config.validate():
            logger.warning("EvaluatorConfig: %s", w)

    # ── entry points ─────────────────────────────────────────────────

    def check_division(self, division: Node) -> EvaluationResult:
        """Check one division expression with a fresh cycle guard."""
        _, divisor = self.model.operands(division)
        if divisor is None:
            return EvaluationResult.NOT_PROVABLY_ZERO
        if self.is_provably_zero(divisor, VisitedSet()):
            return EvaluationResult.PROVABLY_ZERO
        return EvaluationResult.NOT_PROVABLY_ZERO

    def inspect_division(self, division: Node) -> DivisionCheck:
        """Like :meth:`check_division`, packaged for diagnostic reporting."""
        result = self.check_division(division)
        _, divisor = self.model.operands(division)
        text = ""
        call_rule_only = False
        if result is EvaluationResult.PROVABLY_ZERO:
            text = self.model.render(self.model.strip_parentheses(divisor))
            if self.config.call_policy is CallReturnPolicy.ANY:
                strict = ZeroDivisorEvaluator(
                    self.model, replace(self.config, call_policy=CallReturnPolicy.ALL)
                )
                call_rule_only = not strict.check_division(division)
        return DivisionCheck(
            result=result,
            division=division,
            divisor=divisor,
            divisor_text=text,
            location=self.model.location(division),
            call_rule_only=call_rule_only,
        )

    # ── recursive decision procedure ─────────────────────────────────

    def is_provably_zero(self, node: Node, visited: VisitedSet) -> bool:
        """
        True iff ``node`` evaluates to zero on every path reaching it.

        ``visited`` is shared by every recursive call of one top-level
        check; a node found there is already being evaluated higher up
        and counts as not provably zero.
        """
        if node is None:
            return False
        node = self.model.strip_parentheses(node)
        key = self.model.node_key(node)
        if key in visited:
            logger.debug("cycle guard: '%s' already visited", self.model.render(node))
            return False
        visited.add(key)

        shape = classify(node, self.model)
        if isinstance(shape, LiteralShape):
            return self._literal_is_zero(shape.node)
        if isinstance(shape, IdentifierShape):
            return self._identifier_is_zero(shape.node, visited)
        if isinstance(shape, SubtractionShape):
            return self._same_operand(shape.left, shape.right)
        if isinstance(shape, MultiplicationShape):
            return (self.is_provably_zero(shape.left, visited)
                    or self.is_provably_zero(shape.right, visited))
        if isinstance(shape, CallShape):
            return self._call_is_zero(shape.node, visited)
        return False

    def _literal_is_zero(self, node: Node) -> bool:
        value = self.model.fold_constant(node)
        return value is not None and value.is_zero

    def _identifier_is_zero(self, node: Node, visited: VisitedSet) -> bool:
        symbol = self.model.resolve_symbol(node)
        if symbol is None:
            return False
        init = self.model.initializer(symbol)
        if init is None:
            return False
        if not self.is_provably_zero(init, visited):
            return False
        try:
            written = self.model.symbols_written_between(symbol, node)
        except DataflowRangeError as exc:
            logger.debug("dataflow range for '%s' not comparable: %s", symbol.name, exc)
            return False
        return symbol not in written

    def _same_operand(self, left: Node, right: Node) -> bool:
        """Identity, not value: ``5 - 5`` and ``x - x`` are zero."""
        model = self.model
        left = model.strip_parentheses(left)
        right = model.strip_parentheses(right)
        lk = model.node_kind(left)
        rk = model.node_kind(right)

        if lk is NodeKind.LITERAL and rk is NodeKind.LITERAL:
            if model.render(left) == model.render(right):
                return True
            lv = model.fold_constant(left)
            rv = model.fold_constant(right)
            return lv is not None and rv is not None and lv.same_constant(rv)

        if lk is NodeKind.IDENTIFIER and rk is NodeKind.IDENTIFIER:
            ls = model.resolve_symbol(left)
            rs = model.resolve_symbol(right)
            return ls is not None and ls == rs and ls.kind in SELF_SUBTRACTION_KINDS

        return False

    def _call_is_zero(self, node: Node, visited: VisitedSet) -> bool:
        target = self.model.resolve_call_target(node)
        if target is None:
            logger.debug("unresolved call '%s'", self.model.render(node))
            return False
        returns = self.model.return_expressions(target)

        if self.config.call_policy is CallReturnPolicy.ALL:
            if not returns:
                return False
            return all(self.is_provably_zero(expr, visited) for expr in returns)

        for expr in returns:
            if self.is_provably_zero(expr, visited):
                return True
        return False


def check_division(
    model: ProgramModel,
    division: Node,
    config: Optional[EvaluatorConfig] = None,
) -> EvaluationResult:
    """One-shot convenience wrapper around :class:`ZeroDivisorEvaluator`."""
    return ZeroDivisorEvaluator(model, config).check_division(division)


__all__ = [
    "EvaluationResult",
    "CallReturnPolicy",
    "EvaluatorConfig",
    "DivisionCheck",
    "VisitedSet",
    "ZeroDivisorEvaluator",
    "check_division",
]
