"""FASM backend: AST → x86-64 assembly for `format ELF64` objects.

Calls follow the System V AMD64 convention: integer arguments in
rdi, rsi, rdx, rcx, r8, r9, the rest on the stack, result in rax.
Every parameter and local lives in an 8-byte slot below rbp.
"""

from __future__ import annotations

import logging

from .ast import (
    Arg,
    AutoVar,
    Bogus,
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
    RefAutoVar,
    RefExternal,
    Return,
    StaticData,
    VariableAssign,
    VariableDef,
)
from .errors import CodegenError, DefinitionError, MissingEntryPointError
from .layout import SLOT_SIZE, STACK_ALIGNMENT, SlotTable

LOGGER = logging.getLogger("rayc.codegen")

ARG_REGS: list[str] = ["rdi", "rsi", "rdx", "rcx", "r8", "r9"]
RETURN_REG = "rax"
SCRATCH_REG = "rax"
SYSCALL_ARG_REG = "rdi"
SYS_EXIT = 60

# Saved rbp plus return address sit between rbp and the caller's stack arguments
STACK_PARAMS_OFFSET = 16

ENTRY_POINT = "main"
DATA_LABEL = "rayc_data"


def _slot_ref(index: int) -> str:
    return "[rbp" + str(SlotTable.offset(index)) + "]"


def _summary(node: Node) -> str:
    """Short description of a statement for its marker comment."""
    if isinstance(node, FunctionCallAssign):
        return node.var_name + " = call " + node.call.name
    if isinstance(node, FunctionCall):
        return "call " + node.name
    if isinstance(node, VariableDef):
        return "var " + node.name
    if isinstance(node, MultiVariableDef):
        return "var " + ", ".join(node.names)
    if isinstance(node, VariableAssign):
        return node.name + " ="
    if isinstance(node, Return):
        return "return"
    if isinstance(node, Exit):
        return "exit"
    if isinstance(node, Function):
        return "func " + node.name
    if isinstance(node, Extern):
        return "extern " + ", ".join(node.functions)
    return type(node).__name__


def always_returns(stmts: list[Node]) -> bool:
    """Straight-line bodies return on every path once any Return is reached."""
    for stmt in stmts:
        if isinstance(stmt, Return):
            return True
    return False


def collect_functions(nodes: list[Node]) -> list[Function]:
    """All functions in encounter order, nested definitions after their parent."""
    result: list[Function] = []
    for node in nodes:
        if isinstance(node, Function):
            result.append(node)
            result.extend(collect_functions(node.body))
    return result


def collect_externs(nodes: list[Node]) -> list[Extern]:
    """All extern declarations in encounter order, including nested ones."""
    result: list[Extern] = []
    for node in nodes:
        if isinstance(node, Extern):
            result.append(node)
        elif isinstance(node, Function):
            result.extend(collect_externs(node.body))
    return result


class FasmBackend:
    """Emit FASM source from a parsed module. One instance per compilation."""

    def __init__(self) -> None:
        self.lines: list[str] = []
        self.imports: list[str] = []
        self.function_names: set[str] = set()
        self.data: bytes = b""
        self.slots: SlotTable = SlotTable([])
        self.function_name: str = ""

    def emit(self, nodes: list[Node]) -> str:
        """Emit the assembly listing for a whole module."""
        self.lines = []
        self.imports = self._import_table(nodes)
        functions = collect_functions(nodes)
        self.function_names = set()
        for fn in functions:
            if fn.name in self.function_names:
                raise DefinitionError("function '" + fn.name + "' is already defined")
            self.function_names.add(fn.name)
        for name in self.imports:
            if name in self.function_names:
                raise DefinitionError("'" + name + "' is both defined and declared extern")
        if ENTRY_POINT not in self.function_names:
            raise MissingEntryPointError("no '" + ENTRY_POINT + "' function defined")
        self.data = b""
        for node in nodes:
            if isinstance(node, StaticData):
                self.data += node.blob
        self._line("format ELF64")
        if self.imports:
            self._line()
            for name in self.imports:
                self._line("extrn " + name)
        self._line()
        self._line("section '.text' executable")
        for fn in functions:
            self._emit_function(fn)
        if self.data:
            self._emit_data()
        return "\n".join(self.lines) + "\n"

    def _line(self, text: str = "") -> None:
        self.lines.append(text)

    def _ins(self, text: str) -> None:
        self.lines.append("    " + text)

    def _import_table(self, nodes: list[Node]) -> list[str]:
        imports: list[str] = []
        for ext in collect_externs(nodes):
            for name in ext.functions:
                if name in imports:
                    line = ext.pos.line if ext.pos is not None else 0
                    col = ext.pos.col if ext.pos is not None else 0
                    raise DefinitionError("extern '" + name + "' is already declared", line, col)
                imports.append(name)
        return imports

    # ── Functions ────────────────────────────────────────────

    def _emit_function(self, fn: Function) -> None:
        self.slots = SlotTable.for_function(fn)
        self.function_name = fn.name
        frame = self.slots.frame_size
        LOGGER.debug("function %s: %d slots, frame %d bytes", fn.name, len(self.slots), frame)
        self._line()
        self._line("; --- " + fn.name + " ---")
        self._line("public " + fn.name)
        self._line(fn.name + ":")
        self._ins("push rbp")
        self._ins("mov rbp, rsp")
        self._ins("sub rsp, " + str(frame))
        for i in range(len(fn.params)):
            if i < len(ARG_REGS):
                self._ins("mov " + _slot_ref(i) + ", " + ARG_REGS[i])
            else:
                disp = STACK_PARAMS_OFFSET + SLOT_SIZE * (i - len(ARG_REGS))
                self._ins("mov " + SCRATCH_REG + ", [rbp+" + str(disp) + "]")
                self._ins("mov " + _slot_ref(i) + ", " + SCRATCH_REG)
        for i, stmt in enumerate(fn.body):
            self._emit_stmt(i, stmt)
        if not always_returns(fn.body):
            self._ins("xor eax, eax")
            self._emit_epilogue()

    def _emit_epilogue(self) -> None:
        self._ins("mov rsp, rbp")
        self._ins("pop rbp")
        self._ins("ret")

    def _emit_data(self) -> None:
        self._line()
        self._line("section '.data' writeable")
        self._line(DATA_LABEL + " db " + ", ".join(str(b) for b in self.data))

    # ── Statements ───────────────────────────────────────────

    def _emit_stmt(self, index: int, stmt: Node) -> None:
        marker = "; " + self.function_name + "#" + str(index) + " " + _summary(stmt)
        pos = getattr(stmt, "pos", None)
        if pos is not None:
            marker += " (line " + str(pos.line) + ")"
        self._ins(marker)
        if isinstance(stmt, Exit):
            if isinstance(stmt.arg, Bogus):
                # exit() has status 0, unlike return() which leaves rax untouched
                self._ins("xor edi, edi")
            else:
                self._load(stmt.arg, SYSCALL_ARG_REG)
            self._ins("mov rax, " + str(SYS_EXIT))
            self._ins("syscall")
        elif isinstance(stmt, FunctionCallAssign):
            self._emit_call(stmt.call)
            self._ins("mov " + self._named_slot(stmt.var_name) + ", " + RETURN_REG)
        elif isinstance(stmt, FunctionCall):
            self._emit_call(stmt)
        elif isinstance(stmt, Return):
            self._load(stmt.arg, RETURN_REG)
            self._emit_epilogue()
        elif isinstance(stmt, (VariableDef, VariableAssign)):
            self._load(stmt.value, SCRATCH_REG)
            self._ins("mov " + self._named_slot(stmt.name) + ", " + SCRATCH_REG)
        elif isinstance(stmt, MultiVariableDef):
            for name in stmt.names:
                self._ins("mov qword " + self._named_slot(name) + ", 0")
        # Nested functions and externs are emitted at module level; the marker is all

    def _emit_call(self, call: FunctionCall) -> None:
        if call.target is None and call.name not in self.function_names and call.name not in self.imports:
            raise CodegenError("call to unknown function '" + call.name + "'")
        stack_args = call.args[len(ARG_REGS) :]
        cleanup = SLOT_SIZE * len(stack_args)
        if cleanup % STACK_ALIGNMENT != 0:
            self._ins("sub rsp, " + str(SLOT_SIZE))
            cleanup += SLOT_SIZE
        for arg in reversed(stack_args):
            self._load(arg, SCRATCH_REG)
            self._ins("push " + SCRATCH_REG)
        for reg, arg in zip(ARG_REGS, call.args):
            self._load(arg, reg)
        self._ins("xor eax, eax")
        if call.target is None:
            self._ins("call " + call.name)
        else:
            self._ins("call qword " + self._slot(call.target.index))
        if cleanup:
            self._ins("add rsp, " + str(cleanup))

    # ── Operands ─────────────────────────────────────────────

    def _slot(self, index: int) -> str:
        if index < 0 or index >= len(self.slots):
            raise CodegenError(
                "slot " + str(index) + " out of range in '" + self.function_name + "'"
            )
        return _slot_ref(index)

    def _named_slot(self, name: str) -> str:
        index = self.slots.index(name)
        if index is None:
            raise CodegenError("no slot for '" + name + "' in '" + self.function_name + "'")
        return _slot_ref(index)

    def _load(self, arg: Arg, reg: str) -> None:
        """Load an operand into reg. Bogus loads nothing."""
        if isinstance(arg, Literal):
            self._ins("mov " + reg + ", " + str(arg.value))
        elif isinstance(arg, AutoVar):
            self._ins("mov " + reg + ", " + self._slot(arg.index))
        elif isinstance(arg, RefAutoVar):
            self._ins("lea " + reg + ", " + self._slot(arg.index))
        elif isinstance(arg, Deref):
            self._ins("mov " + reg + ", " + self._slot(arg.index))
            self._ins("mov " + reg + ", [" + reg + "]")
        elif isinstance(arg, External):
            self._require_symbol(arg.name)
            self._ins("mov " + reg + ", [" + arg.name + "]")
        elif isinstance(arg, RefExternal):
            self._require_symbol(arg.name)
            self._ins("lea " + reg + ", [" + arg.name + "]")
        elif isinstance(arg, DataOffset):
            if arg.offset < 0 or arg.offset >= len(self.data):
                raise CodegenError("data offset " + str(arg.offset) + " out of range")
            self._ins("lea " + reg + ", [" + DATA_LABEL + "+" + str(arg.offset) + "]")
        elif isinstance(arg, Bogus):
            return
        else:
            raise CodegenError("unknown operand " + repr(arg))

    def _require_symbol(self, name: str) -> None:
        if name not in self.imports and name not in self.function_names:
            raise CodegenError("unknown symbol '" + name + "'")


def generate(nodes: list[Node]) -> str:
    """Generate the assembly listing for a parsed module."""
    return FasmBackend().emit(nodes)
