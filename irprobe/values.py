"""
irprobe.values
==============

Value model for the IR object graph: programs, functions, parameters, basic
blocks, instructions and constants.

The inspector treats every object here as a borrowed, read-only view.  The
mutating helpers (``append``, ``add_param``, ``append_block``, ...) exist for
whoever *provides* the IR -- :mod:`irprobe.builder` and
:mod:`irprobe.ll_parser` -- and are never called while a report is produced.

Textual forms
-------------
Every value has two renderings:

``value.ref``
    the short reference used inside other instructions: ``%x``, ``%3``,
    ``@main``, ``42``, ``null``.
``str(value)``
    the canonical form printed in reports.  Parameters and constants print
    as ``<type> <ref>`` (``i32 %a``, ``i32 42``), instructions print their
    full instruction text, blocks print as ``label %bb``, functions used as
    operands print as ``ptr @name`` and global variables print their
    definition line.

Values with neither a name nor a slot number print as ``<badref>``.
"""

from __future__ import annotations

from typing import Iterator, List, Optional, Sequence

from .irtypes import (
    FunctionType,
    IntType,
    LABEL,
    MetadataType,
    PTR,
    Type,
    VOID,
)
from .opcodes import OpcodeTrait, opcode_traits


# ═════════════════════════════════════════════════════════════════════════
#  BASE VALUE
# ═════════════════════════════════════════════════════════════════════════

class Value:
    """Anything that can be used as an instruction operand."""

    __slots__ = ("type", "name", "slot")

    def __init__(self, type: Type, name: Optional[str] = None) -> None:
        self.type = type
        self.name = name or None
        self.slot: Optional[int] = None

    @property
    def has_name(self) -> bool:
        return self.name is not None

    @property
    def display_name(self) -> str:
        """The name, or ``"unnamed"`` when none is attached."""
        return self.name if self.name is not None else "unnamed"

    @property
    def ref(self) -> str:
        if self.name is not None:
            return f"%{self.name}"
        if self.slot is not None:
            return f"%{self.slot}"
        return "<badref>"

    def typed_ref(self) -> str:
        return f"{self.type} {self.ref}"

    def __str__(self) -> str:
        return self.typed_ref()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.typed_ref()!r})"


# ═════════════════════════════════════════════════════════════════════════
#  CONSTANTS
# ═════════════════════════════════════════════════════════════════════════

class Constant(Value):
    """A constant whose literal text is kept verbatim (aggregates, exprs, ...)."""

    __slots__ = ("text",)

    def __init__(self, type: Type, text: str) -> None:
        super().__init__(type)
        self.text = text

    @property
    def ref(self) -> str:
        return self.text


class ConstantInt(Constant):
    """Integer literal.  ``value`` holds the literal as written."""

    __slots__ = ("value",)

    def __init__(self, type: IntType, value: int) -> None:
        super().__init__(type, "")
        self.value = int(value)
        self.text = self._literal()

    @property
    def width(self) -> int:
        return self.type.width

    @property
    def zext_value(self) -> int:
        return self.value & ((1 << self.width) - 1)

    @property
    def sext_value(self) -> int:
        """The value's bits sign-extended from the type width."""
        bits = self.zext_value
        if bits >> (self.width - 1):
            return bits - (1 << self.width)
        return bits

    def _literal(self) -> str:
        if self.width == 1:
            return "true" if self.zext_value else "false"
        return str(self.sext_value)


class ConstantFP(Constant):
    """Floating point literal, kept in its textual form."""

    __slots__ = ()


class ConstantPointerNull(Constant):
    __slots__ = ()

    def __init__(self, type: Type = PTR) -> None:
        super().__init__(type, "null")


class UndefValue(Constant):
    __slots__ = ()

    def __init__(self, type: Type, poison: bool = False) -> None:
        super().__init__(type, "poison" if poison else "undef")


# ═════════════════════════════════════════════════════════════════════════
#  GLOBALS
# ═════════════════════════════════════════════════════════════════════════

class GlobalVariable(Value):
    """Module-level variable.  As a value it is a pointer to its storage."""

    __slots__ = ("value_type", "initializer", "is_constant", "text")

    def __init__(
        self,
        name: str,
        value_type: Type,
        initializer: Optional[str] = None,
        is_constant: bool = False,
        text: Optional[str] = None,
        type: Type = PTR,
    ) -> None:
        super().__init__(type, name)
        self.value_type = value_type
        self.initializer = initializer
        self.is_constant = is_constant
        self.text = text

    @property
    def ref(self) -> str:
        return f"@{self.name}"

    def __str__(self) -> str:
        if self.text:
            return self.text
        kind = "constant" if self.is_constant else "global"
        init = f" {self.initializer}" if self.initializer is not None else ""
        return f"@{self.name} = {kind} {self.value_type}{init}"


class Parameter(Value):
    """A formal parameter of a :class:`Function`."""

    __slots__ = ("parent", "index")

    def __init__(self, type: Type, name: Optional[str] = None) -> None:
        super().__init__(type, name)
        self.parent: Optional[Function] = None
        self.index = 0


class MetadataAsValue(Value):
    """A value passed as a metadata operand, printed as ``metadata <ty> <ref>``."""

    __slots__ = ("value",)

    def __init__(self, value: Value) -> None:
        super().__init__(MetadataType())
        self.value = value

    @property
    def ref(self) -> str:
        return self.value.typed_ref()


# ═════════════════════════════════════════════════════════════════════════
#  INSTRUCTIONS
# ═════════════════════════════════════════════════════════════════════════

class Instruction(Value):
    """
    One instruction of a basic block.

    Attributes
    ----------
    opcode : str
        Textual opcode (``add``, ``load``, ``call``, ...).
    operands : list[Value]
        Ordered operands.  Conventions per opcode: ``store`` is
        ``[value, address]``; ``call`` is ``[args..., callee]``; ``br`` is
        ``[dest]`` or ``[cond, true_dest, false_dest]``; ``alloca`` holds
        the element count when one was given.
    type : Type
        Result type (``void`` when the instruction produces no value).
    traits : OpcodeTrait
        Structural capabilities; derived from the opcode unless given.
    alignment : int or None
        Explicit ``align`` of memory instructions.
    allocated_type : Type or None
        Element type of an ``alloca``.
    predicate : str or None
        Comparison predicate mnemonic (``eq``, ``slt``, ``olt``, ...).
    """

    __slots__ = (
        "opcode",
        "operands",
        "traits",
        "alignment",
        "allocated_type",
        "predicate",
        "parent",
        "_text",
    )

    def __init__(
        self,
        opcode: str,
        operands: Sequence[Value] = (),
        type: Type = VOID,
        name: Optional[str] = None,
        *,
        traits: Optional[OpcodeTrait] = None,
        alignment: Optional[int] = None,
        allocated_type: Optional[Type] = None,
        predicate: Optional[str] = None,
        text: Optional[str] = None,
    ) -> None:
        super().__init__(type, name)
        self.opcode = opcode
        self.operands: List[Value] = list(operands)
        self.traits = traits if traits is not None else opcode_traits(opcode)
        self.alignment = alignment
        self.allocated_type = allocated_type
        self.predicate = predicate
        self.parent: Optional[BasicBlock] = None
        self._text = text

    @property
    def num_operands(self) -> int:
        return len(self.operands)

    def operand(self, index: int) -> Value:
        return self.operands[index]

    def has_trait(self, trait: OpcodeTrait) -> bool:
        return bool(self.traits & trait)

    @property
    def produces_value(self) -> bool:
        return not self.type.is_void

    @property
    def text(self) -> str:
        """Canonical instruction text (without leading indentation)."""
        if self._text is not None:
            return self._text
        ops = ", ".join(op.typed_ref() for op in self.operands)
        body = f"{self.opcode} {ops}" if ops else self.opcode
        if self.produces_value:
            return f"{self.ref} = {body}"
        return body

    @text.setter
    def text(self, value: Optional[str]) -> None:
        self._text = value

    def __str__(self) -> str:
        return self.text

    def __repr__(self) -> str:
        return f"Instruction({self.text!r})"


# ═════════════════════════════════════════════════════════════════════════
#  BASIC BLOCKS & FUNCTIONS
# ═════════════════════════════════════════════════════════════════════════

class BasicBlock(Value):
    """Straight-line sequence of instructions inside one function."""

    __slots__ = ("instructions", "parent")

    def __init__(self, name: Optional[str] = None) -> None:
        super().__init__(LABEL, name)
        self.instructions: List[Instruction] = []
        self.parent: Optional[Function] = None

    def append(self, inst: Instruction) -> Instruction:
        inst.parent = self
        self.instructions.append(inst)
        return inst

    def __iter__(self) -> Iterator[Instruction]:
        return iter(self.instructions)

    def __len__(self) -> int:
        return len(self.instructions)

    @property
    def terminator(self) -> Optional[Instruction]:
        if self.instructions and self.instructions[-1].has_trait(OpcodeTrait.TERMINATOR):
            return self.instructions[-1]
        return None

    @property
    def is_first(self) -> bool:
        return self.parent is not None and self.parent.blocks[0] is self

    @property
    def is_last(self) -> bool:
        return self.parent is not None and self.parent.blocks[-1] is self

    def __str__(self) -> str:
        return f"label {self.ref}"


class Function(Value):
    """A function declaration (no blocks) or definition (one or more blocks)."""

    __slots__ = ("return_type", "params", "blocks", "var_arg", "_next_slot")

    def __init__(
        self,
        name: str,
        return_type: Type = VOID,
        params: Sequence[Parameter] = (),
        var_arg: bool = False,
    ) -> None:
        super().__init__(PTR, name)
        self.return_type = return_type
        self.params: List[Parameter] = []
        self.blocks: List[BasicBlock] = []
        self.var_arg = var_arg
        self._next_slot = 0
        for p in params:
            self.add_param(p)

    # ----- construction ----------------------------------------------------

    def add_param(self, param: Parameter) -> Parameter:
        param.parent = self
        param.index = len(self.params)
        self.params.append(param)
        return param

    def append_block(self, block: BasicBlock) -> BasicBlock:
        block.parent = self
        self.blocks.append(block)
        return block

    def next_slot(self) -> int:
        """Hand out the next number for an unnamed local value."""
        slot = self._next_slot
        self._next_slot += 1
        return slot

    def reserve_slot(self, slot: int) -> None:
        self._next_slot = max(self._next_slot, slot + 1)

    # ----- queries ---------------------------------------------------------

    @property
    def is_declaration(self) -> bool:
        return not self.blocks

    @property
    def arg_size(self) -> int:
        return len(self.params)

    @property
    def function_type(self) -> FunctionType:
        return FunctionType(
            self.return_type, tuple(p.type for p in self.params), self.var_arg
        )

    @property
    def entry_block(self) -> Optional[BasicBlock]:
        return self.blocks[0] if self.blocks else None

    def instructions(self) -> Iterator[Instruction]:
        for block in self.blocks:
            yield from block.instructions

    @property
    def ref(self) -> str:
        return f"@{self.name}"

    def __repr__(self) -> str:
        kind = "declare" if self.is_declaration else "define"
        return f"Function({kind} {self.return_type} @{self.name})"


# ═════════════════════════════════════════════════════════════════════════
#  PROGRAM
# ═════════════════════════════════════════════════════════════════════════

class Program:
    """A module: named, ordered collection of functions and globals."""

    def __init__(
        self,
        name: str = "",
        data_layout: str = "",
        triple: str = "",
        source_filename: str = "",
    ) -> None:
        self.name = name
        self.data_layout = data_layout
        self.triple = triple
        self.source_filename = source_filename
        self.functions: List[Function] = []
        self.globals: List[GlobalVariable] = []

    def add_function(self, fn: Function) -> Function:
        self.functions.append(fn)
        return fn

    def add_global(self, gv: GlobalVariable) -> GlobalVariable:
        self.globals.append(gv)
        return gv

    def get_function(self, name: str) -> Optional[Function]:
        for fn in self.functions:
            if fn.name == name:
                return fn
        return None

    def get_global(self, name: str) -> Optional[GlobalVariable]:
        for gv in self.globals:
            if gv.name == name:
                return gv
        return None

    def __iter__(self) -> Iterator[Function]:
        return iter(self.functions)

    def __len__(self) -> int:
        return len(self.functions)

    def __repr__(self) -> str:
        return f"Program({self.name!r}, functions={len(self.functions)})"


__all__ = [
    "Value",
    "Constant",
    "ConstantInt",
    "ConstantFP",
    "ConstantPointerNull",
    "UndefValue",
    "GlobalVariable",
    "Parameter",
    "MetadataAsValue",
    "Instruction",
    "BasicBlock",
    "Function",
    "Program",
]
