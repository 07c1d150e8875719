"""Ray AST — parse-time node and operand definitions.

Identifiers are resolved while parsing: operands carry slot indices or
external symbol names, never raw variable names.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields


# ============================================================
# POSITION
# ============================================================


@dataclass(frozen=True)
class Pos:
    """Source position, 1-indexed."""

    line: int
    col: int


# ============================================================
# OPERANDS
# ============================================================


@dataclass(frozen=True)
class Literal:
    """Immediate integer value."""

    value: int


@dataclass(frozen=True)
class AutoVar:
    """Value held in a parameter/local slot."""

    index: int


@dataclass(frozen=True)
class RefAutoVar:
    """Address of a parameter/local slot."""

    index: int


@dataclass(frozen=True)
class Deref:
    """Value pointed to by the pointer held in a slot."""

    index: int


@dataclass(frozen=True)
class External:
    """Value stored at an imported symbol."""

    name: str


@dataclass(frozen=True)
class RefExternal:
    """Address of a symbol."""

    name: str


@dataclass(frozen=True)
class DataOffset:
    """Address inside the static-data region."""

    offset: int


@dataclass(frozen=True)
class Bogus:
    """Explicit absence of a value, e.g. `return()`."""


BOGUS = Bogus()

Arg = Literal | AutoVar | RefAutoVar | Deref | External | RefExternal | DataOffset | Bogus


# ============================================================
# DECLARATIONS
# ============================================================


@dataclass(frozen=True)
class Extern:
    """extern a, b, c."""

    functions: list[str]
    pos: Pos | None = field(default=None, compare=False)


@dataclass(frozen=True)
class Function:
    """func name(params) { body } or func name(params) => body."""

    name: str
    params: list[str]
    body: list[Node]
    pos: Pos | None = field(default=None, compare=False)


@dataclass(frozen=True)
class StaticData:
    """NUL-terminated string literals, addressed by DataOffset."""

    blob: bytes


# ============================================================
# STATEMENTS
# ============================================================


@dataclass(frozen=True)
class VariableDef:
    """var name = value."""

    scope: str
    name: str
    value: Arg
    pos: Pos | None = field(default=None, compare=False)


@dataclass(frozen=True)
class MultiVariableDef:
    """var a, b, c — zero-initialized."""

    scope: str
    names: list[str]
    pos: Pos | None = field(default=None, compare=False)


@dataclass(frozen=True)
class VariableAssign:
    """name = value, name already declared."""

    scope: str
    name: str
    value: Arg
    pos: Pos | None = field(default=None, compare=False)


@dataclass(frozen=True)
class FunctionCall:
    """name(args) with the result discarded.

    target is None for a direct call by symbol name, or the slot operand
    holding the callee address for an indirect call.
    """

    name: str
    scope: str
    args: list[Arg]
    target: AutoVar | None = None
    pos: Pos | None = field(default=None, compare=False)


@dataclass(frozen=True)
class FunctionCallAssign:
    """var_name = call(...); declares is True for `var name = call(...)`."""

    scope: str
    var_name: str
    call: FunctionCall
    declares: bool = False
    pos: Pos | None = field(default=None, compare=False)


@dataclass(frozen=True)
class Return:
    """return(arg)."""

    scope: str
    arg: Arg
    pos: Pos | None = field(default=None, compare=False)


@dataclass(frozen=True)
class Exit:
    """exit(arg)."""

    scope: str
    arg: Arg
    pos: Pos | None = field(default=None, compare=False)


Node = (
    Extern
    | Function
    | StaticData
    | VariableDef
    | MultiVariableDef
    | VariableAssign
    | FunctionCall
    | FunctionCallAssign
    | Return
    | Exit
)


# ============================================================
# SERIALIZATION
# ============================================================


def to_dict(obj: object) -> object:
    """Convert a node or operand to JSON-compatible data, tagged with "kind"."""
    if isinstance(obj, list):
        return [to_dict(item) for item in obj]
    if isinstance(obj, bytes):
        return obj.decode("latin-1")
    if isinstance(obj, Pos):
        return {"line": obj.line, "col": obj.col}
    if obj is None or isinstance(obj, (bool, int, str)):
        return obj
    d: dict[str, object] = {"kind": type(obj).__name__}
    for f in fields(obj):  # type: ignore[arg-type]
        value = getattr(obj, f.name)
        if f.name == "pos" and value is None:
            continue
        d[f.name] = to_dict(value)
    return d
