# tests/conftest.py
"""
Shared test doubles for the zero-divisor analysis.

``MockToken`` / ``MockScope`` / ``MockVariable`` / ``MockFunction`` mirror
the attribute names of ``cppcheckdata`` objects, so the analysis runs on
them exactly as it runs on a real dump.

``build_cfg(source)`` is a small C front end producing a
``MockConfiguration`` the way ``cppcheck --dump`` would: a linked token
list, AST links on the tokens, varId/variable bindings, function bindings
at call sites and a scope tree. It understands the subset the tests use:

    struct/class bodies with fields and methods, functions, prototypes,
    globals, locals (several declarators per statement), if/else, while,
    do-while, for, return, expression statements, casts, calls
    (``f(x)``, ``Program.foo(x)``, ``Ns::f()``), ``[]``, ``?:``,
    unary and compound-assignment operators, numeric literals.

Loop and ``if`` bodies must be braced, as after cppcheck's simplifier.
"""

import re

import pytest


# ── Mock cppcheckdata objects ────────────────────────────────────

class MockToken:
    def __init__(self, str="", **kwargs):
        self.str = str
        self.next = None
        self.previous = None
        self.link = None
        self.astOperand1 = None
        self.astOperand2 = None
        self.astParent = None
        self.varId = 0
        self.variable = None
        self.function = None
        self.scope = None
        self.values = []
        self.isName = bool(re.match(r"[A-Za-z_]", str))
        self.isNumber = bool(re.match(r"\.?[0-9]", str))
        self.isOp = False
        self.isCast = False
        self.file = "test.c"
        self.linenr = 1
        self.column = 1
        self.Id = None
        for key, value in kwargs.items():
            setattr(self, key, value)

    def __repr__(self):
        return f"<MockToken {self.str!r} {self.linenr}:{self.column}>"


class MockValue:
    def __init__(self, intvalue=None, floatvalue=None, valueKind="known"):
        self.intvalue = intvalue
        self.floatvalue = floatvalue
        self.valueKind = valueKind


class MockVariable:
    def __init__(self, nameToken=None, scope=None, isArgument=False,
                 isLocal=False, isGlobal=False, isStatic=False, Id=None):
        self.nameToken = nameToken
        self.scope = scope
        self.isArgument = isArgument
        self.isLocal = isLocal
        self.isGlobal = isGlobal
        self.isStatic = isStatic
        self.Id = Id

    def __repr__(self):
        name = self.nameToken.str if self.nameToken is not None else "?"
        return f"<MockVariable {name}>"


class MockFunction:
    def __init__(self, name="", Id=None, tokenDef=None):
        self.name = name
        self.Id = Id
        self.tokenDef = tokenDef
        self.argument = {}


class MockScope:
    def __init__(self, type="Global", className="", nestedIn=None, function=None):
        self.type = type
        self.className = className
        self.nestedIn = nestedIn
        self.function = function
        self.bodyStart = None
        self.bodyEnd = None

    def __repr__(self):
        return f"<MockScope {self.type} {self.className}>"


class MockSuppression:
    def __init__(self, errorId, fileName="", lineNumber=0):
        self.errorId = errorId
        self.fileName = fileName
        self.lineNumber = lineNumber


class MockConfiguration:
    def __init__(self, tokenlist=None, scopes=None, variables=None,
                 functions=None, suppressions=None, name=""):
        self.name = name
        self.tokenlist = tokenlist or []
        self.scopes = scopes or []
        self.variables = variables or []
        self.functions = functions or []
        self.suppressions = suppressions or []


class MockCppcheckData:
    def __init__(self, configurations=None, suppressions=None):
        self.configurations = configurations or []
        self.suppressions = suppressions or []


def make_token_chain(specs):
    """Build linked tokens from a list of attribute dicts."""
    tokens = [MockToken(**spec) for spec in specs]
    for i, tok in enumerate(tokens):
        tok.Id = tok.Id or str(i + 1)
        if i > 0:
            tok.previous = tokens[i - 1]
            tokens[i - 1].next = tok
    return tokens


def make_cfg(tokens=None, **kwargs):
    return MockConfiguration(tokenlist=tokens, **kwargs)


def make_data(configurations=None, suppressions=None):
    return MockCppcheckData(configurations, suppressions)


# ── Tokenizer ────────────────────────────────────────────────────

_TOKEN_RE = re.compile(r"""
    (?P<skip>\s+|//[^\n]*|/\*.*?\*/)
  | (?P<number>(?:0[xX][0-9a-fA-F.]+(?:[pP][+-]?\d+)?
               |\d[\d']*\.?\d*(?:[eE][+-]?\d+)?
               |\.\d+(?:[eE][+-]?\d+)?)[A-Za-z]*)
  | (?P<name>[A-Za-z_]\w*)
  | (?P<op><<=|>>=|->|\+\+|--|&&|\|\||<<|>>|<=|>=|==|!=
           |\+=|-=|\*=|/=|%=|&=|\|=|\^=|::
           |[-+*/%&|^~!<>=?:;,.(){}\[\]])
""", re.VERBOSE | re.DOTALL)


def tokenize(source, file="test.c"):
    tokens = []
    line, line_start = 1, 0
    pos = 0
    while pos < len(source):
        m = _TOKEN_RE.match(source, pos)
        if m is None:
            raise SyntaxError(f"{file}:{line}: cannot tokenize {source[pos:pos + 10]!r}")
        text = m.group()
        if m.lastgroup != "skip":
            tokens.append(MockToken(
                text,
                file=file,
                linenr=line,
                column=m.start() - line_start + 1,
                isOp=m.lastgroup == "op",
            ))
        newlines = text.count("\n")
        if newlines:
            line += newlines
            line_start = m.start() + text.rindex("\n") + 1
        pos = m.end()
    for i, tok in enumerate(tokens):
        tok.Id = str(i + 1)
        if i > 0:
            tok.previous = tokens[i - 1]
            tokens[i - 1].next = tok
    return tokens


# ── Parser ───────────────────────────────────────────────────────

TYPE_KEYWORDS = frozenset({
    "void", "char", "short", "int", "long", "float", "double", "signed",
    "unsigned", "bool", "_Bool", "const", "static", "volatile", "extern",
    "_Decimal32", "_Decimal64", "_Decimal128",
})

KEYWORDS = TYPE_KEYWORDS | frozenset({
    "if", "else", "while", "do", "for", "return", "break", "continue",
    "struct", "class", "union", "sizeof",
})

ASSIGNMENT_OPS = frozenset({
    "=", "+=", "-=", "*=", "/=", "%=", "&=", "|=", "^=", "<<=", ">>=",
})

BINARY_PRECEDENCE = {
    "*": 10, "/": 10, "%": 10,
    "+": 9, "-": 9,
    "<<": 8, ">>": 8,
    "<": 7, ">": 7, "<=": 7, ">=": 7,
    "==": 6, "!=": 6,
    "&": 5, "^": 4, "|": 3, "&&": 2, "||": 1,
}

UNARY_OPS = frozenset({"-", "+", "!", "~", "&", "*", "++", "--"})

ACCESS_LABELS = frozenset({"public", "private", "protected"})


def _link(op, operand1, operand2=None):
    op.astOperand1 = operand1
    operand1.astParent = op
    if operand2 is not None:
        op.astOperand2 = operand2
        operand2.astParent = op
    return op


def _pair(opening, closing):
    opening.link = closing
    closing.link = opening


class _MiniCParser:
    def __init__(self, tokens, cfg, keep_parens):
        self.toks = tokens
        self.pos = 0
        self.cfg = cfg
        self.keep_parens = keep_parens
        self.scope = MockScope("Global")
        cfg.scopes.append(self.scope)
        self.frames = [{}]
        self.records = set()
        self.functions = {}
        self._scope_stack = []
        self._grouping = set()
        self._next_var_id = 1

    # token stream

    def peek(self, offset=0):
        i = self.pos + offset
        return self.toks[i] if i < len(self.toks) else None

    def peek_str(self, offset=0):
        tok = self.peek(offset)
        return tok.str if tok is not None else ""

    def advance(self):
        tok = self.peek()
        if tok is None:
            raise SyntaxError("unexpected end of input")
        tok.scope = self.scope
        self.pos += 1
        return tok

    def expect(self, text):
        tok = self.advance()
        if tok.str != text:
            raise SyntaxError(f"line {tok.linenr}: expected {text!r}, got {tok.str!r}")
        return tok

    def expect_name(self):
        tok = self.advance()
        if not tok.isName or tok.str in KEYWORDS:
            raise SyntaxError(f"line {tok.linenr}: expected a name, got {tok.str!r}")
        return tok

    # scopes and symbols

    def _scope(self, type, className=""):
        return MockScope(type, className, nestedIn=self.scope)

    def _enter(self, scope):
        self._scope_stack.append(self.scope)
        self.scope = scope
        self.frames.append({})

    def _leave(self):
        self.frames.pop()
        self.scope = self._scope_stack.pop()

    def _declare(self, name_tok, var):
        var.Id = f"var{self._next_var_id}"
        name_tok.varId = self._next_var_id
        name_tok.variable = var
        self._next_var_id += 1
        self.frames[-1][name_tok.str] = var
        self.cfg.variables.append(var)

    def _lookup(self, name):
        for frame in reversed(self.frames):
            if name in frame:
                return frame[name]
        return None

    def _is_type_word(self, offset):
        s = self.peek_str(offset)
        return s in TYPE_KEYWORDS or s in self.records

    def _at_declaration(self):
        i = 0
        count = 0
        while True:
            s = self.peek_str(i)
            if self._is_type_word(i):
                i += 1
                count += 1
            elif s in ("struct", "class", "union") and self.peek(i + 1) is not None:
                i += 2
                count += 1
            elif s == "*" and count:
                i += 1
            else:
                break
        tok = self.peek(i)
        return count > 0 and tok is not None and tok.isName and tok.str not in KEYWORDS

    def _type_words(self):
        words = []
        while True:
            if self._is_type_word(0) or (self.peek_str() == "*" and words):
                words.append(self.advance().str)
            elif self.peek_str() in ("struct", "class", "union"):
                words.append(self.advance().str)
                words.append(self.advance().str)
            else:
                return words

    # declarations

    def parse(self):
        while self.peek() is not None:
            if self.peek_str() in ("struct", "class", "union") and self.peek_str(2) == "{":
                self.record()
            else:
                self.declaration("global")
        self._bind_calls()

    def record(self):
        keyword = self.advance()
        name = self.expect_name()
        self.records.add(name.str)
        scope = self._scope(keyword.str.capitalize(), name.str)
        self.cfg.scopes.append(scope)
        self._enter(scope)
        scope.bodyStart = self.expect("{")
        while self.peek_str() != "}":
            if self.peek_str() in ACCESS_LABELS and self.peek_str(1) == ":":
                self.advance()
                self.advance()
                continue
            self.declaration("field")
        scope.bodyEnd = self.expect("}")
        _pair(scope.bodyStart, scope.bodyEnd)
        self._leave()
        self.expect(";")

    def declaration(self, kind):
        words = self._type_words()
        if not words:
            tok = self.peek()
            raise SyntaxError(f"line {tok.linenr}: expected a declaration at {tok.str!r}")
        while True:
            name = self.expect_name()
            if self.peek_str() == "(" and kind in ("global", "field"):
                self._function(name)
                return
            var = MockVariable(
                nameToken=name,
                scope=self.scope,
                isLocal=kind == "local",
                isGlobal=kind == "global",
                isStatic="static" in words,
            )
            self._declare(name, var)
            if self.peek_str() == "=":
                op = self.advance()
                _link(op, name, self.assignment())
            if self.peek_str() != ",":
                break
            self.advance()
        self.expect(";")

    def _function(self, name):
        func = self.functions.get(name.str)
        if func is None:
            func = MockFunction(name.str, Id=f"func{len(self.functions) + 1}")
            self.functions[name.str] = func
            self.cfg.functions.append(func)
        if func.tokenDef is None:
            func.tokenDef = name
        name.function = func
        scope = self._scope("Function", name.str)
        scope.function = func

        self.frames.append({})
        opening = self.expect("(")
        if self.peek_str() == "void" and self.peek_str(1) == ")":
            self.advance()
        args = []
        while self.peek_str() != ")":
            self._type_words()
            pname = self.expect_name()
            var = MockVariable(nameToken=pname, scope=scope, isArgument=True)
            self._declare(pname, var)
            args.append(var)
            if self.peek_str() == ",":
                self.advance()
        _pair(opening, self.expect(")"))
        func.argument = {i + 1: var for i, var in enumerate(args)}

        if self.peek_str() == ";":
            self.advance()
        else:
            func.tokenDef = name
            self.block(scope)
        self.frames.pop()

    # statements

    def block(self, scope):
        self.cfg.scopes.append(scope)
        self._enter(scope)
        scope.bodyStart = self.expect("{")
        while self.peek_str() != "}":
            self.statement()
        scope.bodyEnd = self.expect("}")
        _pair(scope.bodyStart, scope.bodyEnd)
        self._leave()
        return scope

    def statement(self):
        s = self.peek_str()
        if s == "{":
            self.block(self._scope("Unconditional"))
        elif s == "if":
            self.advance()
            self._condition()
            self.block(self._scope("If"))
            if self.peek_str() == "else":
                self.advance()
                if self.peek_str() == "if":
                    self.statement()
                else:
                    self.block(self._scope("Else"))
        elif s == "while":
            self.advance()
            self._condition()
            self.block(self._scope("While"))
        elif s == "do":
            self.advance()
            self.block(self._scope("Do"))
            self.expect("while")
            self._condition()
            self.expect(";")
        elif s == "for":
            self._for()
        elif s == "return":
            ret = self.advance()
            if self.peek_str() != ";":
                _link(ret, self.expression())
            self.expect(";")
        elif s in ("break", "continue"):
            self.advance()
            self.expect(";")
        elif s == ";":
            self.advance()
        elif self._at_declaration():
            self.declaration("local")
        else:
            self.expression()
            self.expect(";")

    def _condition(self):
        opening = self.expect("(")
        self.expression()
        _pair(opening, self.expect(")"))

    def _for(self):
        self.advance()
        opening = self.expect("(")
        self.frames.append({})
        if self.peek_str() == ";":
            self.advance()
        elif self._at_declaration():
            self.declaration("local")
        else:
            self.expression()
            self.expect(";")
        if self.peek_str() != ";":
            self.expression()
        self.expect(";")
        if self.peek_str() != ")":
            self.expression()
        _pair(opening, self.expect(")"))
        self.block(self._scope("For"))
        self.frames.pop()

    # expressions

    def expression(self):
        return self.assignment()

    def assignment(self):
        left = self.ternary()
        if self.peek_str() in ASSIGNMENT_OPS:
            op = self.advance()
            return _link(op, left, self.assignment())
        return left

    def ternary(self):
        cond = self.binary(1)
        if self.peek_str() != "?":
            return cond
        question = self.advance()
        if_true = self.assignment()
        colon = self.expect(":")
        if_false = self.ternary()
        return _link(question, cond, _link(colon, if_true, if_false))

    def binary(self, min_prec):
        left = self.unary()
        while True:
            prec = BINARY_PRECEDENCE.get(self.peek_str())
            if prec is None or prec < min_prec:
                return left
            op = self.advance()
            left = _link(op, left, self.binary(prec + 1))

    def unary(self):
        s = self.peek_str()
        if s in UNARY_OPS:
            op = self.advance()
            return _link(op, self.unary())
        if s == "(" and self._at_cast():
            paren = self.advance()
            words = []
            while self.peek_str() != ")":
                words.append(self.advance().str)
            _pair(paren, self.expect(")"))
            paren.isCast = True
            paren.castType = " ".join(words)
            return _link(paren, self.unary())
        return self.postfix(self.primary())

    def _at_cast(self):
        i = 1
        while self._is_type_word(i) or (i > 1 and self.peek_str(i) == "*"):
            i += 1
        return i > 1 and self.peek_str(i) == ")"

    def postfix(self, node):
        while True:
            s = self.peek_str()
            if s == "(":
                paren = self.advance()
                args = self._arguments() if self.peek_str() != ")" else None
                _pair(paren, self.expect(")"))
                node = _link(paren, node, args)
            elif s == "[":
                bracket = self.advance()
                index = self.expression()
                _pair(bracket, self.expect("]"))
                node = _link(bracket, node, index)
            elif s in (".", "->", "::"):
                op = self.advance()
                node = _link(op, node, self.expect_name())
            elif s in ("++", "--"):
                node = _link(self.advance(), node)
            else:
                return node

    def _arguments(self):
        node = self.assignment()
        while self.peek_str() == ",":
            comma = self.advance()
            node = _link(comma, node, self.assignment())
        return node

    def primary(self):
        tok = self.advance()
        if tok.isNumber:
            return tok
        if tok.isName:
            if self.peek_str() != "(":
                var = self._lookup(tok.str)
                if var is not None:
                    tok.varId = var.nameToken.varId
                    tok.variable = var
            return tok
        if tok.str == "(":
            inner = self.expression()
            _pair(tok, self.expect(")"))
            if self.keep_parens:
                self._grouping.add(id(tok))
                return _link(tok, inner)
            return inner
        raise SyntaxError(f"line {tok.linenr}: unexpected {tok.str!r}")

    def _bind_calls(self):
        for tok in self.toks:
            if tok.str != "(" or tok.astOperand1 is None or tok.isCast:
                continue
            if id(tok) in self._grouping:
                continue
            callee = tok.astOperand1
            if callee.str in (".", "->", "::"):
                callee = callee.astOperand2
            if callee is not None and callee.isName:
                func = self.functions.get(callee.str)
                if func is not None:
                    callee.function = func


def build_cfg(source, file="test.c", keep_parens=False):
    """
    Tokenize and parse C source into a ``MockConfiguration``.

    Grouping parentheses are dropped from the AST like cppcheck does,
    unless ``keep_parens`` is set.
    """
    cfg = MockConfiguration(name="")
    cfg.tokenlist = tokenize(source, file)
    _MiniCParser(cfg.tokenlist, cfg, keep_parens).parse()
    return cfg


# ── Lookup helpers ───────────────────────────────────────────────

def find_token(cfg, text, occurrence=0):
    """The ``occurrence``-th token (0-based) whose text is ``text``."""
    matches = [t for t in cfg.tokenlist if t.str == text]
    if occurrence >= len(matches):
        raise LookupError(f"no occurrence {occurrence} of {text!r}")
    return matches[occurrence]


def find_divisions(cfg):
    """Every '/', '/=', '%' and '%=' token that has a divisor operand."""
    return [
        t for t in cfg.tokenlist
        if t.str in ("/", "/=", "%", "%=") and t.astOperand2 is not None
    ]


# ── Fixtures ─────────────────────────────────────────────────────

@pytest.fixture
def cfg_factory():
    return build_cfg
