"""Ray compiler — public API."""

from __future__ import annotations

from .ast import Node as Node
from .codegen import generate
from .errors import (
    CodegenError as CodegenError,
    CompileError as CompileError,
    DefinitionError as DefinitionError,
    MissingEntryPointError as MissingEntryPointError,
    RaySyntaxError as RaySyntaxError,
    TokenizeError as TokenizeError,
    UnresolvedNameError as UnresolvedNameError,
    VariableDefinitionError as VariableDefinitionError,
)
from .parse import parse
from .tokens import Token as Token, tokenize


def compile_source(source: str) -> str:
    """Compile Ray source text to a FASM listing."""
    return generate(parse(tokenize(source)))
