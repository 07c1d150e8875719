"""Per-function stack slot layout.

One builder serves both the parser, which records statements as it builds
them so later identifiers resolve against earlier declarations, and the
code generator, which replays a finished function body to lay out its frame.
"""

from __future__ import annotations

from .ast import Function, FunctionCall, FunctionCallAssign, MultiVariableDef, Node, VariableDef
from .errors import CodegenError

SLOT_SIZE = 8
STACK_ALIGNMENT = 16

# Synthetic slots start with a character no identifier can contain
RESULT_SLOT_PREFIX = "%ret"


class SlotTable:
    """Ordered slot names of one function: parameters first, then locals."""

    def __init__(self, params: list[str]):
        self.slots: list[str] = []
        self.param_count: int = len(params)
        self._results: int = 0
        for name in params:
            self.declare(name)

    @classmethod
    def for_function(cls, fn: Function) -> SlotTable:
        table = cls(fn.params)
        for stmt in fn.body:
            table.record(stmt)
        return table

    def __contains__(self, name: str) -> bool:
        return name in self.slots

    def __len__(self) -> int:
        return len(self.slots)

    @property
    def locals(self) -> list[str]:
        return self.slots[self.param_count :]

    def declare(self, name: str) -> int:
        if name in self.slots:
            raise CodegenError("slot '" + name + "' declared twice")
        self.slots.append(name)
        return len(self.slots) - 1

    def reserve_result(self) -> int:
        name = RESULT_SLOT_PREFIX + str(self._results)
        self._results += 1
        return self.declare(name)

    def record(self, node: Node) -> None:
        """Apply the slot effect of one statement."""
        if isinstance(node, VariableDef):
            self.declare(node.name)
        elif isinstance(node, MultiVariableDef):
            for name in node.names:
                self.declare(name)
        elif isinstance(node, FunctionCallAssign):
            if node.declares:
                self.declare(node.var_name)
            else:
                self.reserve_result()
        elif isinstance(node, FunctionCall):
            self.reserve_result()

    def index(self, name: str) -> int | None:
        if name in self.slots:
            return self.slots.index(name)
        return None

    @staticmethod
    def offset(index: int) -> int:
        """rbp-relative displacement of a slot (negative)."""
        return -SLOT_SIZE * (index + 1)

    @property
    def frame_size(self) -> int:
        return frame_size(len(self.slots))


def frame_size(slot_count: int) -> int:
    """Smallest multiple of the stack alignment holding slot_count slots."""
    raw = slot_count * SLOT_SIZE
    return (raw + STACK_ALIGNMENT - 1) // STACK_ALIGNMENT * STACK_ALIGNMENT
