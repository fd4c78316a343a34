"""
zerodiv_shims/cppcheck_model.py
═══════════════════════════════

``ProgramModel`` over a Cppcheck dump configuration.

A ``cppcheckdata.Configuration`` already carries everything the evaluator
needs: the token list in source order, AST links, ``varId``/``variable``
bindings, ``function`` bindings at call sites, the scope tree and ValueFlow
values. This adapter indexes it once at construction and then answers
queries without touching the dump again, so one model can be shared by
many concurrent checks.

Dataflow range
──────────────
``symbols_written_between(symbol, use)`` scans the token list between the
end of the symbol's initializing statement and the use:

    int b = 0 ;   x = a + 1 ;   b = foo ( ) ;   y = a / b ;
            └──────────── scanned ───────────────────┘ ^use

If the use sits inside a loop (its body or its ``for``/``while`` header)
that does not also contain the declaration, the scan continues to the end
of the outermost such loop: a write later in the body reaches the use on
the next iteration. A ``static`` local is scanned to the end of its
declaring block, since it keeps its value from one call to the next.

License: MIT
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, FrozenSet, Hashable, List, Optional, Sequence, Set, Tuple

from zerodiv_shims.ast_helper import (
    RECORD_SCOPE_TYPES,
    enclosing_loops,
    expr_to_string,
    find_return_values,
    get_call_arguments,
    get_callee_token,
    get_enclosing_scope,
    is_binary_op,
    is_cast,
    is_function_call,
    is_grouping_paren,
    is_identifier,
    is_member_access,
    is_number,
    is_variable_write,
    iter_ast_preorder,
    loop_of_header,
    scope_encloses,
    tok_column,
    tok_file,
    tok_function,
    tok_line,
    tok_link,
    tok_next,
    tok_op1,
    tok_op2,
    tok_parent,
    tok_scope,
    tok_str,
    tok_values,
    tok_var_id,
    tok_variable,
)
from zerodiv_shims.errors import DataflowRangeError
from zerodiv_shims.program_model import (
    CallTarget,
    ConstantValue,
    NodeKind,
    NumericDomain,
    ProgramModel,
    SourceLocation,
    Symbol,
    SymbolKind,
)

logger = logging.getLogger(__name__)

Token = Any

# Binary tokens that are not arithmetic on two values
_NON_ARITHMETIC_BINARY = frozenset({'[', ',', '::', '(', '{', '<<=', '>>='})


# ═════════════════════════════════════════════════════════════════════════
#  PART 1: C NUMERIC LITERALS
# ═════════════════════════════════════════════════════════════════════════

def parse_c_number(text: str) -> Optional[ConstantValue]:
    """
    Fold the text of a C/C++ numeric literal.

    Handles decimal, octal, hex and binary integers with ``u``/``l``
    suffixes, digit separators (``1'000``), decimal and hex floating
    literals with ``f``/``l`` suffixes, and the ``df``/``dd``/``dl``
    decimal floating suffixes.

    Returns:
        The folded constant, or None if the text is not a number
    """
    t = text.replace("'", "").strip()
    low = t.lower()
    if not low:
        return None
    try:
        if low.startswith("0x"):
            if "p" in low:
                return ConstantValue(float.fromhex(low.rstrip("fl")), NumericDomain.FLOATING)
            return ConstantValue(int(low.rstrip("ul"), 16), NumericDomain.INTEGER)
        if low.startswith("0b"):
            return ConstantValue(int(low.rstrip("ul"), 2), NumericDomain.INTEGER)
        if low.endswith(("df", "dd", "dl")):
            return ConstantValue(Decimal(t[:-2]), NumericDomain.DECIMAL)
        if "." in low or "e" in low:
            return ConstantValue(float(low.rstrip("fl")), NumericDomain.FLOATING)
        digits = low.rstrip("ul")
        if len(digits) > 1 and digits.startswith("0"):
            return ConstantValue(int(digits, 8), NumericDomain.INTEGER)
        return ConstantValue(int(digits), NumericDomain.INTEGER)
    except (ValueError, InvalidOperation):
        return None


def _known_value(tok: Token, text: str) -> Optional[ConstantValue]:
    """Known ValueFlow value of a literal token, if cppcheck computed one."""
    floating = any(c in text.lower() for c in ".ep") and not text.lower().startswith("0x")
    for v in tok_values(tok):
        if getattr(v, "valueKind", "") != "known":
            continue
        fv = getattr(v, "floatvalue", None)
        if fv is not None and floating:
            return ConstantValue(float(fv), NumericDomain.FLOATING)
        iv = getattr(v, "intvalue", None)
        if iv is not None and not floating:
            return ConstantValue(int(iv), NumericDomain.INTEGER)
    return None


# ═════════════════════════════════════════════════════════════════════════
#  PART 2: THE ADAPTER
# ═════════════════════════════════════════════════════════════════════════

def _function_key(func: Any) -> Hashable:
    fid = getattr(func, "Id", None)
    return fid if fid else id(func)


def _function_name(func: Any) -> str:
    td = getattr(func, "tokenDef", None)
    if td is not None:
        return tok_str(td)
    return getattr(func, "name", "") or "?"


class CppcheckProgramModel(ProgramModel):
    """
    Program model backed by one ``cppcheckdata.Configuration``.

    Usage
    -----
    >>> data = cppcheckdata.parsedump("main.c.dump")
    >>> model = CppcheckProgramModel(data.configurations[0])
    >>> ZeroDivisorEvaluator(model).check_division(div_tok)
    """

    def __init__(self, cfg: Any) -> None:
        self.cfg = cfg
        self._tokens: List[Token] = list(getattr(cfg, "tokenlist", None) or [])
        self._order: Dict[int, int] = {id(t): i for i, t in enumerate(self._tokens)}
        self._variables: Dict[int, Any] = {}
        self._function_scopes: Dict[Hashable, Any] = {}

        for var in getattr(cfg, "variables", None) or []:
            vid = tok_var_id(getattr(var, "nameToken", None))
            if vid:
                self._variables[vid] = var
        for tok in self._tokens:
            vid = tok_var_id(tok)
            var = tok_variable(tok)
            if vid and var is not None:
                self._variables.setdefault(vid, var)

        for scope in getattr(cfg, "scopes", None) or []:
            func = getattr(scope, "function", None)
            if getattr(scope, "type", "") == "Function" and func is not None:
                self._function_scopes[_function_key(func)] = scope

        logger.debug(
            "indexed %d tokens, %d variables, %d function bodies",
            len(self._tokens), len(self._variables), len(self._function_scopes),
        )

    # ── shape ────────────────────────────────────────────────────────

    def node_kind(self, node: Token) -> NodeKind:
        if node is None:
            return NodeKind.OTHER
        if is_grouping_paren(node):
            return NodeKind.PARENTHESIZED
        if is_number(node):
            return NodeKind.LITERAL
        if is_function_call(node):
            return NodeKind.CALL
        if is_identifier(node) and tok_var_id(node):
            return NodeKind.IDENTIFIER
        if (
            is_binary_op(node)
            and not is_cast(node)
            and not is_member_access(node)
            and tok_str(node) not in _NON_ARITHMETIC_BINARY
        ):
            return NodeKind.BINARY
        return NodeKind.OTHER

    def strip_parentheses(self, node: Token) -> Token:
        while is_grouping_paren(node):
            node = tok_op1(node)
        return node

    def binary_operator(self, node: Token) -> str:
        return tok_str(node)

    def operands(self, node: Token) -> Tuple[Token, Token]:
        return tok_op1(node), tok_op2(node)

    def call_arguments(self, node: Token) -> Sequence[Token]:
        return get_call_arguments(node)

    # ── symbols and constants ────────────────────────────────────────

    def resolve_symbol(self, node: Token) -> Optional[Symbol]:
        vid = tok_var_id(node)
        if not vid:
            return None
        var = tok_variable(node) or self._variables.get(vid)
        return Symbol(key=vid, name=tok_str(node), kind=self._symbol_kind(var))

    @staticmethod
    def _symbol_kind(var: Any) -> SymbolKind:
        if var is None:
            return SymbolKind.UNKNOWN
        if getattr(var, "isArgument", False):
            return SymbolKind.PARAMETER
        if getattr(var, "isLocal", False):
            return SymbolKind.LOCAL
        if getattr(getattr(var, "scope", None), "type", "") in RECORD_SCOPE_TYPES:
            return SymbolKind.FIELD
        if getattr(var, "isGlobal", False) or getattr(var, "isStatic", False):
            return SymbolKind.GLOBAL
        return SymbolKind.UNKNOWN

    def _initializing_assignment(self, symbol: Symbol) -> Optional[Token]:
        """The '=' token that gives ``symbol`` its declared value."""
        var = self._variables.get(symbol.key)
        if var is None or getattr(var, "isArgument", False):
            return None
        name_tok = getattr(var, "nameToken", None)
        if name_tok is None:
            return None

        parent = tok_parent(name_tok)
        if tok_str(parent) == "=" and tok_op1(parent) is name_tok:
            return parent

        # Split form emitted by the simplifier:  int b ; b = 0 ;
        semicolon = tok_next(name_tok)
        if tok_str(semicolon) != ";":
            return None
        lhs = tok_next(semicolon)
        assign = tok_parent(lhs)
        if (
            tok_var_id(lhs) == symbol.key
            and tok_str(assign) == "="
            and tok_op1(assign) is lhs
            and tok_parent(assign) is None
        ):
            return assign
        return None

    def initializer(self, symbol: Symbol) -> Optional[Token]:
        return tok_op2(self._initializing_assignment(symbol))

    def fold_constant(self, node: Token) -> Optional[ConstantValue]:
        if not is_number(node):
            return None
        text = tok_str(node)
        return _known_value(node, text) or parse_c_number(text)

    # ── callables ────────────────────────────────────────────────────

    def resolve_call_target(self, node: Token) -> Optional[CallTarget]:
        func = tok_function(get_callee_token(node))
        if func is None:
            return None
        return CallTarget(key=_function_key(func), name=_function_name(func))

    def return_expressions(self, target: CallTarget) -> Sequence[Token]:
        scope = self._function_scopes.get(target.key)
        if scope is None:
            logger.debug("no body for function '%s'", target.name)
            return []
        return list(find_return_values(scope))

    # ── dataflow ─────────────────────────────────────────────────────

    def _position(self, tok: Token) -> int:
        pos = self._order.get(id(tok))
        if pos is None:
            raise DataflowRangeError(f"token '{tok_str(tok)}' is not in the token list")
        return pos

    def _range_end(self, use: Token, decl_scope: Any) -> int:
        end = self._position(use)
        loops = enclosing_loops(use)
        header_loop = loop_of_header(use)
        if header_loop is not None:
            loops.insert(0, header_loop)
        for loop in loops:
            if scope_encloses(loop, decl_scope):
                break
            body_end = getattr(loop, "bodyEnd", None)
            if body_end is None:
                continue
            last = body_end
            # do { ... } while ( cond ) ;
            if getattr(loop, "type", "") == "Do" and tok_str(tok_next(body_end)) == "while":
                cond_close = tok_link(tok_next(tok_next(body_end)))
                if cond_close is not None:
                    last = cond_close
            end = max(end, self._position(last))
        return end

    def symbols_written_between(self, symbol: Symbol, use: Token) -> FrozenSet[Symbol]:
        assign = self._initializing_assignment(symbol)
        if assign is None:
            raise DataflowRangeError(f"'{symbol.name}' has no initializing statement", end=use)
        var = self._variables[symbol.key]
        name_tok = getattr(var, "nameToken", None)

        decl_function = get_enclosing_scope(name_tok, "Function")
        use_function = get_enclosing_scope(use, "Function")
        if decl_function is None or decl_function is not use_function:
            raise DataflowRangeError(
                f"'{symbol.name}' is not declared in the function that uses it",
                start=assign, end=use,
            )
        decl_scope = tok_scope(name_tok)
        if not scope_encloses(decl_scope, tok_scope(use)):
            raise DataflowRangeError(
                f"scope of '{symbol.name}' does not enclose the use",
                start=assign, end=use,
            )

        start = max(self._position(t) for t in iter_ast_preorder(assign))
        use_pos = self._position(use)
        if start >= use_pos:
            raise DataflowRangeError(
                f"use of '{symbol.name}' is not after its initializer",
                start=assign, end=use,
            )
        end = self._range_end(use, decl_scope)
        if getattr(var, "isStatic", False):
            # Keeps its value between calls: a later write reaches the next call
            end = max(end, self._position(getattr(decl_scope, "bodyEnd", None)))

        written: Set[Symbol] = set()
        for pos in range(start + 1, end + 1):
            tok = self._tokens[pos]
            if tok is use or not tok_var_id(tok):
                continue
            if is_variable_write(tok):
                sym = self.resolve_symbol(tok)
                if sym is not None:
                    written.add(sym)
        return frozenset(written)

    # ── reporting ────────────────────────────────────────────────────

    def render(self, node: Token) -> str:
        return expr_to_string(node)

    def location(self, node: Token) -> SourceLocation:
        return SourceLocation(file=tok_file(node), line=tok_line(node), column=tok_column(node))

    def node_key(self, node: Token) -> Hashable:
        tid = getattr(node, "Id", None)
        return tid if tid else id(node)


__all__ = [
    "CppcheckProgramModel",
    "parse_c_number",
]
