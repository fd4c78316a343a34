#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
zerodiv_shims/ast_helper.py
═══════════════════════════

Token and AST utilities used by the Cppcheck program model.

Cppcheck dump files expose every token of a translation unit as a
``cppcheckdata.Token`` with AST links, symbol bindings and a scope. The
helpers here cover what the zero-divisor analysis reads from them:

  * accessors (``tok_str``, ``tok_op1``, ``tok_variable`` ...)
  * call / cast / grouping-paren recognition
  * variable writes and return expressions
  * scope nesting and loop lookup
  * rendering an expression back to source-like text

All of them are read-only and accept ``None`` where a token is expected,
answering with an empty / false / ``None`` result.

License: MIT
"""

from __future__ import annotations

from typing import Any, FrozenSet, Iterator, List, Optional

# Any keeps cppcheckdata an optional import; test doubles work as well.
Token = Any
Scope = Any


# ═══════════════════════════════════════════════════════════════════════════
#  CONSTANTS
# ═══════════════════════════════════════════════════════════════════════════

# Operators whose right operand is a divisor
DIVISION_OPS: FrozenSet[str] = frozenset({'/', '/='})
MODULO_OPS: FrozenSet[str] = frozenset({'%', '%='})

ASSIGNMENT_OPS: FrozenSet[str] = frozenset({
    '=', '+=', '-=', '*=', '/=', '%=',
    '&=', '|=', '^=', '<<=', '>>=',
})

LOOP_SCOPE_TYPES: FrozenSet[str] = frozenset({'For', 'While', 'Do'})

RECORD_SCOPE_TYPES: FrozenSet[str] = frozenset({'Class', 'Struct', 'Union'})

_MEMBER_OPS: FrozenSet[str] = frozenset({'.', '->', '::'})

# Tokens after which a '(' opens a grouping rather than a call or cast
_GROUPING_PREDECESSORS: FrozenSet[str] = frozenset({
    '(', ',', '=', 'return', '?', ':', '[', '{', ';',
    '+', '-', '*', '/', '%', '&', '|', '^', '~', '!',
    '<', '>', '<=', '>=', '==', '!=', '<<', '>>', '&&', '||',
}) | ASSIGNMENT_OPS


# ═══════════════════════════════════════════════════════════════════════════
#  PART 1: ACCESSORS
# ═══════════════════════════════════════════════════════════════════════════
#
# getattr(None, name, default) answers the default, so none of these need
# an explicit None check.

def tok_str(tok: Token) -> str:
    return getattr(tok, "str", "") or ""


def tok_op1(tok: Token) -> Optional[Token]:
    return getattr(tok, "astOperand1", None)


def tok_op2(tok: Token) -> Optional[Token]:
    return getattr(tok, "astOperand2", None)


def tok_parent(tok: Token) -> Optional[Token]:
    return getattr(tok, "astParent", None)


def tok_var_id(tok: Token) -> int:
    """Variable ID of a token, ``0`` when it is not a variable reference."""
    vid = getattr(tok, "varId", 0)
    return int(vid) if vid else 0


def tok_variable(tok: Token) -> Optional[Any]:
    return getattr(tok, "variable", None)


def tok_function(tok: Token) -> Optional[Any]:
    return getattr(tok, "function", None)


def tok_scope(tok: Token) -> Optional[Scope]:
    return getattr(tok, "scope", None)


def tok_values(tok: Token) -> List[Any]:
    """ValueFlow values attached to a token."""
    return list(getattr(tok, "values", None) or ())


def tok_next(tok: Token) -> Optional[Token]:
    return getattr(tok, "next", None)


def tok_previous(tok: Token) -> Optional[Token]:
    return getattr(tok, "previous", None)


def tok_link(tok: Token) -> Optional[Token]:
    return getattr(tok, "link", None)


def tok_file(tok: Token) -> str:
    return getattr(tok, "file", None) or "<unknown>"


def tok_line(tok: Token) -> int:
    return int(getattr(tok, "linenr", 0) or 0)


def tok_column(tok: Token) -> int:
    return int(getattr(tok, "column", 0) or 0)


def iter_ast_preorder(root: Token) -> Iterator[Token]:
    """Root, then left subtree, then right subtree. Each node once."""
    stack: List[Token] = [root] if root is not None else []
    seen = set()
    while stack:
        node = stack.pop()
        if id(node) in seen:
            continue
        seen.add(id(node))
        yield node
        for child in (tok_op2(node), tok_op1(node)):
            if child is not None:
                stack.append(child)


# ═══════════════════════════════════════════════════════════════════════════
#  PART 2: PREDICATES
# ═══════════════════════════════════════════════════════════════════════════

def is_binary_op(tok: Token) -> bool:
    return tok_op1(tok) is not None and tok_op2(tok) is not None


def is_identifier(tok: Token) -> bool:
    return bool(getattr(tok, "isName", False))


def is_number(tok: Token) -> bool:
    return bool(getattr(tok, "isNumber", False))


def is_cast(tok: Token) -> bool:
    return bool(getattr(tok, "isCast", False))


def is_assignment(tok: Token) -> bool:
    return bool(getattr(tok, "isAssignmentOp", False)) or tok_str(tok) in ASSIGNMENT_OPS


def is_member_access(tok: Token) -> bool:
    return tok_str(tok) in ('.', '->') or getattr(tok, "originalName", "") == "->"


def is_grouping_paren(tok: Token) -> bool:
    """
    A '(' that only groups a sub-expression.

    Cppcheck usually leaves grouping parentheses out of the AST. When a
    host keeps them, the '(' has a single operand and follows an operator,
    an opening bracket or ``return`` rather than a callee.
    """
    if tok_str(tok) != '(' or is_cast(tok):
        return False
    if tok_op1(tok) is None or tok_op2(tok) is not None:
        return False
    prev = tok_previous(tok)
    return prev is None or tok_str(prev) in _GROUPING_PREDECESSORS


def is_function_call(tok: Token) -> bool:
    """
    In the Cppcheck AST a call is the '(' token: astOperand1 is the callee
    expression and astOperand2 the comma-joined arguments.
    """
    if tok_str(tok) != '(' or tok_op1(tok) is None or is_cast(tok):
        return False
    return not is_grouping_paren(tok)


def get_callee_token(call_tok: Token) -> Optional[Token]:
    """
    Name token of the called function.

    Handles ``f(...)``, ``obj.f(...)``, ``ptr->f(...)`` and ``Ns::f(...)``.
    Calls through expressions such as ``(*pfn)(...)`` have no callee name.
    """
    if not is_function_call(call_tok):
        return None
    callee = tok_op1(call_tok)
    if tok_str(callee) in _MEMBER_OPS or is_member_access(callee):
        callee = tok_op2(callee)
    return callee if is_identifier(callee) else None


def get_call_arguments(call_tok: Token) -> List[Token]:
    """Argument expression roots of a call, in source order."""
    if not is_function_call(call_tok):
        return []
    args: List[Token] = []
    # f(a, b, c) has astOperand2 = ,(,(a, b), c)
    pending = [tok_op2(call_tok)]
    while pending:
        tok = pending.pop()
        if tok is None:
            continue
        if tok_str(tok) == ',':
            pending.extend((tok_op2(tok), tok_op1(tok)))
        else:
            args.append(tok)
    return args


# ═══════════════════════════════════════════════════════════════════════════
#  PART 3: WRITES AND RETURNS
# ═══════════════════════════════════════════════════════════════════════════

def is_variable_write(tok: Token) -> bool:
    """
    True if the variable reference ``tok`` is written at this point: as the
    target of an (compound) assignment, as the operand of ``++``/``--``, or
    by having its address taken.
    """
    parent = tok_parent(tok)
    if parent is None:
        return False
    if is_assignment(parent):
        return tok_op1(parent) is tok
    op = tok_str(parent)
    if op in ('++', '--'):
        return True
    return op == '&' and tok_op2(parent) is None


def find_return_values(function_scope: Scope) -> Iterator[Token]:
    """
    Returned expressions of a function body, in source order.

    Returns of nested function scopes (lambdas, local classes) belong to
    another callable and are skipped; so is a bare ``return;``.
    """
    tok = getattr(function_scope, "bodyStart", None)
    end = getattr(function_scope, "bodyEnd", None)
    if end is None:
        return
    while tok is not None:
        if (
            tok_str(tok) == "return"
            and tok_op1(tok) is not None
            and get_enclosing_scope(tok, "Function") is function_scope
        ):
            yield tok_op1(tok)
        if tok is end:
            break
        tok = tok_next(tok)


# ═══════════════════════════════════════════════════════════════════════════
#  PART 4: SCOPES
# ═══════════════════════════════════════════════════════════════════════════

def iter_scope_chain(scope: Scope) -> Iterator[Scope]:
    """Yield scope, then each ``nestedIn`` parent up to the global scope."""
    while scope is not None:
        yield scope
        scope = getattr(scope, "nestedIn", None)


def get_enclosing_scope(tok: Token, scope_type: Optional[str] = None) -> Optional[Scope]:
    """Innermost scope around ``tok``, optionally of a given type ('Function', 'For' ...)."""
    for scope in iter_scope_chain(tok_scope(tok)):
        if scope_type is None or getattr(scope, "type", "") == scope_type:
            return scope
    return None


def scope_encloses(outer: Scope, inner: Scope) -> bool:
    """True if ``outer`` is ``inner`` or one of its ancestors."""
    return outer is not None and any(s is outer for s in iter_scope_chain(inner))


def enclosing_loops(tok: Token) -> List[Scope]:
    """Loop scopes around a token, innermost first."""
    return [
        s for s in iter_scope_chain(tok_scope(tok))
        if getattr(s, "type", "") in LOOP_SCOPE_TYPES
    ]


def loop_of_header(tok: Token) -> Optional[Scope]:
    """
    Loop scope whose ``for`` / ``while`` header contains ``tok``.

    Header tokens sit before the loop's ``bodyStart`` and so are not in
    the loop scope, yet they are evaluated on every iteration. The
    condition of a ``do ... while`` follows its body and is not a header.
    """
    cur = tok_previous(tok)
    while cur is not None and tok_str(cur) not in ('{', '}'):
        if tok_str(cur) == ')' and tok_link(cur) is not None:
            cur = tok_previous(tok_link(cur))
            continue
        if tok_str(cur) == '(' and tok_str(tok_previous(cur)) in ('for', 'while'):
            body = tok_next(tok_link(cur))
            scope = tok_scope(body)
            if tok_str(body) == '{' and getattr(scope, "type", "") in LOOP_SCOPE_TYPES:
                return scope
            return None
        cur = tok_previous(cur)
    return None


# ═══════════════════════════════════════════════════════════════════════════
#  PART 5: RENDERING
# ═══════════════════════════════════════════════════════════════════════════

def expr_to_string(tok: Token, max_depth: int = 50) -> str:
    """
    Render an AST expression as source-like text.

    Used for the divisor text in diagnostics, so the outermost operator is
    left unparenthesised: ``5 - 5``, ``b * a``, ``Program.foo(a)``. Deeper
    binary operands are parenthesised; past ``max_depth`` the rest is
    elided as ``...``.
    """
    if tok is None:
        return ""
    if max_depth <= 0:
        return "..."

    def sub(node: Token) -> str:
        return expr_to_string(node, max_depth - 1)

    s = tok_str(tok)
    op1, op2 = tok_op1(tok), tok_op2(tok)

    if op1 is None and op2 is None:
        return s
    if is_grouping_paren(tok):
        return f"({sub(op1)})"
    if is_function_call(tok):
        return f"{sub(op1)}({', '.join(sub(a) for a in get_call_arguments(tok))})"

    if op2 is None:
        if is_cast(tok):
            return f"({getattr(tok, 'castType', '') or '?'}){sub(op1)}"
        if s in ('++', '--'):
            return f"{sub(op1)}{s}"
        return f"{s}{sub(op1)}"

    if s == '[':
        return f"{sub(op1)}[{sub(op2)}]"
    if s in _MEMBER_OPS or is_member_access(tok):
        return f"{sub(op1)}{s}{sub(op2)}"
    if s == ',':
        return f"{sub(op1)}, {sub(op2)}"

    def operand(node: Token) -> str:
        text = sub(node)
        nested = (
            is_binary_op(node)
            and not is_function_call(node)
            and tok_str(node) != '['
            and tok_str(node) not in _MEMBER_OPS
        )
        return f"({text})" if nested else text

    return f"{operand(op1)} {s} {operand(op2)}"
