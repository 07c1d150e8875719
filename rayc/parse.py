"""Ray parser — recursive descent with identifiers resolved while parsing.

A pre-scan collects every `func` and `extern` name before the main pass, so a
function may call another one defined later in the file. Inside a function
body, bare identifiers resolve to parameter/local slots (see layout.SlotTable)
or to external symbols; the AST never carries unresolved variable names.
"""

from __future__ import annotations

import logging

from .ast import (
    BOGUS,
    Arg,
    AutoVar,
    DataOffset,
    Deref,
    Exit,
    External,
    Extern,
    Function,
    FunctionCall,
    FunctionCallAssign,
    Literal,
    MultiVariableDef,
    Node,
    Pos,
    RefExternal,
    Return,
    StaticData,
    VariableAssign,
    VariableDef,
)
from .errors import (
    DefinitionError,
    RaySyntaxError,
    UnresolvedNameError,
    VariableDefinitionError,
)
from .layout import SlotTable
from .tokens import (
    TK_COMMENT,
    TK_ENDL,
    TK_EOF,
    TK_IDENT,
    TK_KEYWORD,
    TK_NUMBER,
    TK_OP,
    TK_OPEN_COMMENT,
    TK_SEP,
    TK_STRING,
    TK_TEXT,
    Token,
)

LOGGER = logging.getLogger("rayc.parse")

# Tokens that end a statement without being part of it
LINE_END_TYPES: set[str] = {TK_ENDL, TK_EOF, TK_COMMENT, TK_OPEN_COMMENT}

# Tokens with no meaning between statements
BLANK_TYPES: set[str] = {TK_ENDL, TK_COMMENT, TK_OPEN_COMMENT, TK_TEXT}

# Literals are unsigned digit runs, so only the upper bound can be exceeded
INT64_MAX = 2**63 - 1


def collect_known_names(tokens: list[Token]) -> tuple[frozenset[str], frozenset[str]]:
    """Pre-scan for names introduced by `func` and `extern`. Returns (functions, externs)."""
    functions: set[str] = set()
    externs: set[str] = set()
    i = 0
    while i < len(tokens):
        tok = tokens[i]
        if tok.type == TK_KEYWORD and tok.value == "func":
            if i + 1 < len(tokens) and tokens[i + 1].type == TK_IDENT:
                functions.add(tokens[i + 1].value)
        elif tok.type == TK_KEYWORD and tok.value == "extern":
            j = i + 1
            while j < len(tokens) and tokens[j].type == TK_IDENT:
                externs.add(tokens[j].value)
                if j + 2 < len(tokens) and tokens[j + 1].type == TK_SEP and tokens[j + 1].value == ",":
                    j += 2
                else:
                    break
        i += 1
    return frozenset(functions), frozenset(externs)


class ParseContext:
    """Names visible inside the body of one function."""

    def __init__(self, function_name: str, params: list[str]):
        self.function_name: str = function_name
        self.parameters: list[str] = params
        self.slots: SlotTable = SlotTable(params)

    def resolve(self, name: str) -> int | None:
        """Slot index of a parameter or local, parameters first."""
        if name in self.parameters:
            return self.parameters.index(name)
        local_vars = self.slots.locals
        if name in local_vars:
            return local_vars.index(name) + len(self.parameters)
        return None


class Parser:
    """Recursive descent parser for Ray."""

    def __init__(self, tokens: list[Token]):
        self.tokens: list[Token] = tokens
        self.pos: int = 0
        self.functions, self.externs = collect_known_names(tokens)
        self.known: frozenset[str] = self.functions | self.externs
        self.defined: set[str] = set()
        self.open_functions: list[str] = []
        self.data: bytearray = bytearray()
        self.strings: dict[str, int] = {}

    # ── Helpers ──────────────────────────────────────────────

    def current(self) -> Token:
        return self.tokens[self.pos]

    def peek(self, offset: int) -> Token:
        idx = self.pos + offset
        if idx >= len(self.tokens):
            return self.tokens[len(self.tokens) - 1]
        return self.tokens[idx]

    def advance(self) -> Token:
        tok = self.tokens[self.pos]
        if tok.type != TK_EOF:
            self.pos += 1
        return tok

    def at(self, value: str) -> bool:
        tok = self.current()
        return tok.value == value and tok.type in (TK_SEP, TK_OP, TK_KEYWORD)

    def at_type(self, type_: str) -> bool:
        return self.current().type == type_

    def at_ident(self) -> bool:
        return self.current().type == TK_IDENT

    def at_call(self) -> bool:
        nxt = self.peek(1)
        return self.at_ident() and nxt.type == TK_SEP and nxt.value == "("

    def at_statement_end(self) -> bool:
        tok = self.current()
        if tok.type in LINE_END_TYPES:
            return True
        return tok.type == TK_SEP and (tok.value == ";" or tok.value == "}")

    def expect(self, value: str) -> Token:
        if not self.at(value):
            raise self.error("expected '" + value + "', got '" + self.current().value + "'")
        return self.advance()

    def expect_ident(self) -> Token:
        tok = self.current()
        if tok.type != TK_IDENT:
            raise self.error("expected identifier, got '" + tok.value + "'")
        return self.advance()

    def expect_statement_end(self) -> None:
        if not self.at_statement_end():
            raise self.error(
                "expected line break or ';' before '" + self.current().value + "'"
            )

    def skip_blank(self) -> None:
        while self.current().type in BLANK_TYPES or self.at(";"):
            self.advance()

    def error(self, msg: str) -> RaySyntaxError:
        tok = self.current()
        return RaySyntaxError(msg, tok.line, tok.col)

    def _pos(self) -> Pos:
        tok = self.current()
        return Pos(tok.line, tok.col)

    # ── Top Level ────────────────────────────────────────────

    def parse(self) -> list[Node]:
        nodes: list[Node] = []
        while True:
            self.skip_blank()
            if self.at_type(TK_EOF):
                break
            if self.at("extern"):
                nodes.append(self.parse_extern())
            elif self.at("func"):
                nodes.append(self.parse_function())
            else:
                raise self.error(
                    "expected 'func' or 'extern' at top level, got '" + self.current().value + "'"
                )
        if self.data:
            nodes.append(StaticData(bytes(self.data)))
        LOGGER.debug("parsed %d top-level nodes", len(nodes))
        return nodes

    def parse_extern(self) -> Extern:
        pos = self._pos()
        self.expect("extern")
        names = [self.expect_ident().value]
        while self.at(","):
            self.advance()
            names.append(self.expect_ident().value)
        self.expect_statement_end()
        return Extern(names, pos)

    def parse_function(self) -> Function:
        pos = self._pos()
        self.expect("func")
        name_tok = self.expect_ident()
        name = name_tok.value
        if name in self.defined or name in self.open_functions:
            raise DefinitionError(
                "function '" + name + "' is already defined", name_tok.line, name_tok.col
            )
        if not self.at("("):
            raise self.error("expected '(' after function name")
        self.advance()
        params = self.parse_param_list()
        if not self.at(")"):
            raise self.error("expected ')' after function parameters")
        self.advance()
        ctx = ParseContext(name, params)
        self.open_functions.append(name)
        if self.at("=>"):
            self.advance()
            body = self.parse_arrow_body(ctx)
        elif self.at("{"):
            self.advance()
            body = self.parse_block_body(ctx)
        else:
            raise self.error("expected '{' or '=>' after function parameters")
        self.open_functions.pop()
        self.defined.add(name)
        LOGGER.debug(
            "parsed function %s: %d params, %d slots, %d statements",
            name,
            len(params),
            len(ctx.slots),
            len(body),
        )
        return Function(name, params, body, pos)

    def parse_param_list(self) -> list[str]:
        params: list[str] = []
        if self.at(")"):
            return params
        while True:
            tok = self.expect_ident()
            if tok.value in params:
                raise VariableDefinitionError(
                    "parameter '" + tok.value + "' declared twice", tok.line, tok.col
                )
            params.append(tok.value)
            if not self.at(","):
                return params
            self.advance()

    def parse_block_body(self, ctx: ParseContext) -> list[Node]:
        body: list[Node] = []
        while True:
            self.skip_blank()
            if self.at("}"):
                self.advance()
                return body
            if self.at_type(TK_EOF):
                raise self.error("missing '}' at end of function '" + ctx.function_name + "'")
            body.append(self.parse_statement(ctx))

    def parse_arrow_body(self, ctx: ParseContext) -> list[Node]:
        body: list[Node] = []
        while True:
            if self.current().type in LINE_END_TYPES:
                return body
            if self.at(";"):
                self.advance()
                continue
            if self.at("}"):
                raise self.error("unexpected '}' in '=>' body of '" + ctx.function_name + "'")
            body.append(self.parse_statement(ctx))

    # ── Statements ───────────────────────────────────────────

    def parse_statement(self, ctx: ParseContext) -> Node:
        if self.at("extern"):
            return self.parse_extern()
        if self.at("func"):
            return self.parse_function()
        if self.at("return"):
            return self.parse_return(ctx)
        if self.at("exit"):
            return self.parse_exit(ctx)
        if self.at("var"):
            return self.parse_var(ctx)
        if self.at_ident():
            nxt = self.peek(1)
            if nxt.type == TK_OP and nxt.value == "=":
                return self.parse_assign(ctx)
            if nxt.type == TK_SEP and nxt.value == "(":
                call = self.parse_call(ctx)
                ctx.slots.record(call)
                return call
            raise self.error("expected '(' or '=' after '" + self.current().value + "'")
        raise self.error("unexpected '" + self.current().value + "'")

    def parse_return(self, ctx: ParseContext) -> Return:
        pos = self._pos()
        self.expect("return")
        return Return(ctx.function_name, self.parse_optional_arg(ctx, "return"), pos)

    def parse_exit(self, ctx: ParseContext) -> Exit:
        pos = self._pos()
        self.expect("exit")
        return Exit(ctx.function_name, self.parse_optional_arg(ctx, "exit"), pos)

    def parse_var(self, ctx: ParseContext) -> Node:
        pos = self._pos()
        self.expect("var")
        names: list[str] = []
        while True:
            tok = self.expect_ident()
            if tok.value in names or ctx.resolve(tok.value) is not None:
                raise VariableDefinitionError(
                    "'" + tok.value + "' is already declared in '" + ctx.function_name + "'",
                    tok.line,
                    tok.col,
                )
            names.append(tok.value)
            if not self.at(","):
                break
            self.advance()
        node: Node
        if self.at("="):
            if len(names) > 1:
                raise self.error("only one variable can be initialized per 'var'")
            self.advance()
            if self.at_call():
                call = self.parse_call(ctx)
                node = FunctionCallAssign(ctx.function_name, names[0], call, True, pos)
            else:
                value = self.parse_arg(ctx)
                self.expect_statement_end()
                node = VariableDef(ctx.function_name, names[0], value, pos)
        else:
            self.expect_statement_end()
            node = MultiVariableDef(ctx.function_name, names, pos)
        ctx.slots.record(node)
        return node

    def parse_assign(self, ctx: ParseContext) -> Node:
        pos = self._pos()
        name_tok = self.expect_ident()
        if ctx.resolve(name_tok.value) is None:
            raise UnresolvedNameError(
                "cannot assign to undeclared variable '" + name_tok.value + "'",
                name_tok.line,
                name_tok.col,
            )
        self.expect("=")
        node: Node
        if self.at_call():
            call = self.parse_call(ctx)
            node = FunctionCallAssign(ctx.function_name, name_tok.value, call, False, pos)
        else:
            value = self.parse_arg(ctx)
            self.expect_statement_end()
            node = VariableAssign(ctx.function_name, name_tok.value, value, pos)
        ctx.slots.record(node)
        return node

    def parse_call(self, ctx: ParseContext) -> FunctionCall:
        """name(args): direct when name is a known function/extern, else through a slot."""
        pos = self._pos()
        name_tok = self.expect_ident()
        name = name_tok.value
        target: AutoVar | None = None
        if name not in self.known:
            index = ctx.resolve(name)
            if index is None:
                raise DefinitionError(
                    "function '" + name + "' is not defined", name_tok.line, name_tok.col
                )
            target = AutoVar(index)
        args = self.parse_arguments_in_parens(ctx, name)
        return FunctionCall(name, ctx.function_name, args, target, pos)

    # ── Arguments ────────────────────────────────────────────

    def parse_optional_arg(self, ctx: ParseContext, construct: str) -> Arg:
        if not self.at("("):
            raise self.error("expected '(' after '" + construct + "'")
        args = self.parse_arguments_in_parens(ctx, construct, 1)
        if not args:
            return BOGUS
        return args[0]

    def parse_arguments_in_parens(
        self, ctx: ParseContext, construct: str, max_count: int | None = None
    ) -> list[Arg]:
        open_tok = self.expect("(")
        args: list[Arg] = []
        if not self.at(")"):
            args.append(self.parse_arg(ctx))
            while self.at(","):
                self.advance()
                args.append(self.parse_arg(ctx))
        if not self.at(")"):
            raise self.error("expected ',' or ')' in arguments of '" + construct + "'")
        self.advance()
        if max_count is not None and len(args) > max_count:
            raise DefinitionError(
                "'"
                + construct
                + "' takes at most "
                + str(max_count)
                + " argument(s), got "
                + str(len(args)),
                open_tok.line,
                open_tok.col,
            )
        self.expect_statement_end()
        return args

    def parse_arg(self, ctx: ParseContext) -> Arg:
        tok = self.current()
        if tok.type == TK_NUMBER:
            value = int(tok.value)
            if value > INT64_MAX:
                raise self.error("integer literal " + tok.value + " does not fit in 64 bits")
            self.advance()
            return Literal(value)
        if tok.type == TK_STRING:
            self.advance()
            return DataOffset(self.intern_string(tok.value))
        if self.at("*"):
            self.advance()
            name_tok = self.expect_ident()
            index = ctx.resolve(name_tok.value)
            if index is None:
                raise UnresolvedNameError(
                    "cannot dereference '"
                    + name_tok.value
                    + "': not a parameter or local variable",
                    name_tok.line,
                    name_tok.col,
                )
            return Deref(index)
        if tok.type == TK_IDENT:
            self.advance()
            return self.resolve_variable(ctx, tok)
        raise self.error("expected number, string or identifier, got '" + tok.value + "'")

    def resolve_variable(self, ctx: ParseContext, tok: Token) -> Arg:
        index = ctx.resolve(tok.value)
        if index is not None:
            return AutoVar(index)
        if tok.value in self.externs:
            return External(tok.value)
        if tok.value in self.functions:
            return RefExternal(tok.value)
        raise UnresolvedNameError(
            "'" + tok.value + "' is not a parameter, local variable or external symbol",
            tok.line,
            tok.col,
        )

    def intern_string(self, text: str) -> int:
        """Offset of a NUL-terminated copy of text in the static-data blob."""
        if text in self.strings:
            return self.strings[text]
        offset = len(self.data)
        self.strings[text] = offset
        self.data += text.encode("utf-8") + b"\0"
        return offset


def parse(tokens: list[Token]) -> list[Node]:
    """Parse a token list into top-level nodes."""
    return Parser(tokens).parse()
