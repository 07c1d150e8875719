"""Compiler errors. Every error aborts the run at the point it is raised."""

from __future__ import annotations


class CompileError(Exception):
    """Base for all rayc errors, with optional source location."""

    def __init__(self, msg: str, line: int = 0, col: int = 0):
        self.msg: str = msg
        self.line: int = line
        self.col: int = col
        if line > 0:
            super().__init__(msg + " at line " + str(line) + " col " + str(col))
        else:
            super().__init__(msg)


class TokenizeError(CompileError):
    """Error during tokenization."""


class RaySyntaxError(CompileError):
    """Malformed token sequence."""


class DefinitionError(CompileError):
    """Duplicate extern/function/local declaration, or call to an unknown name."""


class VariableDefinitionError(DefinitionError):
    """A name declared twice in the same function scope."""


class UnresolvedNameError(CompileError):
    """Identifier not resolvable to a parameter, local, or external symbol."""


class MissingEntryPointError(CompileError):
    """The module defines no `main` function."""


class CodegenError(CompileError):
    """AST inconsistent with the layout the code generator computed."""
