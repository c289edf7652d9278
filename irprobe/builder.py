"""
irprobe.builder
===============

Programmatic construction of IR programs.

:class:`IRBuilder` appends instructions to the end of a basic block and
synthesises the canonical instruction text for each of them, numbering
unnamed values per function the same way the textual IR does (parameters,
then blocks and instructions, in creation order).

Typical usage::

    prog = Program("demo")
    add = add_function(prog, "add", I32, [I32, I32], ["a", "b"])
    b = IRBuilder(append_basic_block(add, "entry"))
    s = b.add(add.params[0], add.params[1], name="sum")
    b.ret(s)
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Sequence, Tuple

from .irtypes import I1, PTR, FunctionType, Type, VectorType, VOID
from .opcodes import OpcodeTrait
from .values import (
    BasicBlock,
    Function,
    Instruction,
    Parameter,
    Program,
    Value,
)


# ---------------------------------------------------------------------------
# Module / function helpers
# ---------------------------------------------------------------------------


def add_function(
    program: Program,
    name: str,
    return_type: Type = VOID,
    param_types: Sequence[Type] = (),
    param_names: Optional[Sequence[Optional[str]]] = None,
    var_arg: bool = False,
) -> Function:
    """Create a function (a declaration until blocks are appended)."""
    fn = Function(name, return_type, var_arg=var_arg)
    names = list(param_names) if param_names is not None else [None] * len(param_types)
    if len(names) != len(param_types):
        raise ValueError("param_names must match param_types in length")
    for ty, pname in zip(param_types, names):
        param = fn.add_param(Parameter(ty, pname))
        if param.name is None:
            param.slot = fn.next_slot()
    program.add_function(fn)
    return fn


def append_basic_block(function: Function, name: Optional[str] = None) -> BasicBlock:
    block = function.append_block(BasicBlock(name))
    if block.name is None:
        block.slot = function.next_slot()
    return block


def _flags(flags: Iterable[str]) -> str:
    return "".join(f" {f}" for f in flags)


def _align(align: Optional[int]) -> str:
    return f", align {align}" if align is not None else ""


# ---------------------------------------------------------------------------
# IRBuilder
# ---------------------------------------------------------------------------


class IRBuilder:
    """Append instructions at the end of a basic block."""

    def __init__(self, block: Optional[BasicBlock] = None) -> None:
        self._block = block

    @property
    def block(self) -> BasicBlock:
        if self._block is None:
            raise RuntimeError("IRBuilder is not positioned in a block")
        return self._block

    @property
    def function(self) -> Optional[Function]:
        return self.block.parent

    def position_at_end(self, block: BasicBlock) -> None:
        self._block = block

    # ----- core insertion --------------------------------------------------

    def _insert(self, inst: Instruction, body: str) -> Instruction:
        if inst.produces_value and inst.name is None and self.function is not None:
            inst.slot = self.function.next_slot()
        self.block.append(inst)
        inst.text = f"{inst.ref} = {body}" if inst.produces_value else body
        return inst

    def instruction(
        self,
        opcode: str,
        operands: Sequence[Value] = (),
        type: Type = VOID,
        name: Optional[str] = None,
        traits: Optional[OpcodeTrait] = None,
    ) -> Instruction:
        """Append an arbitrary instruction rendered as ``opcode <typed operands>``."""
        inst = Instruction(opcode, operands, type, name, traits=traits)
        ops = ", ".join(op.typed_ref() for op in operands)
        return self._insert(inst, f"{opcode} {ops}" if ops else opcode)

    # ----- arithmetic ------------------------------------------------------

    def binop(
        self,
        opcode: str,
        lhs: Value,
        rhs: Value,
        name: Optional[str] = None,
        flags: Sequence[str] = (),
    ) -> Instruction:
        inst = Instruction(opcode, [lhs, rhs], lhs.type, name)
        return self._insert(inst, f"{opcode}{_flags(flags)} {lhs.type} {lhs.ref}, {rhs.ref}")

    def add(self, lhs: Value, rhs: Value, name: Optional[str] = None, flags=()) -> Instruction:
        return self.binop("add", lhs, rhs, name, flags)

    def sub(self, lhs: Value, rhs: Value, name: Optional[str] = None, flags=()) -> Instruction:
        return self.binop("sub", lhs, rhs, name, flags)

    def mul(self, lhs: Value, rhs: Value, name: Optional[str] = None, flags=()) -> Instruction:
        return self.binop("mul", lhs, rhs, name, flags)

    def sdiv(self, lhs: Value, rhs: Value, name: Optional[str] = None) -> Instruction:
        return self.binop("sdiv", lhs, rhs, name)

    # ----- memory ----------------------------------------------------------

    def alloca(
        self,
        ty: Type,
        count: Optional[Value] = None,
        align: Optional[int] = None,
        name: Optional[str] = None,
    ) -> Instruction:
        operands = [count] if count is not None else []
        inst = Instruction("alloca", operands, PTR, name, alignment=align, allocated_type=ty)
        body = f"alloca {ty}"
        if count is not None:
            body += f", {count.typed_ref()}"
        return self._insert(inst, body + _align(align))

    def load(
        self,
        ptr: Value,
        ty: Type,
        align: Optional[int] = None,
        name: Optional[str] = None,
    ) -> Instruction:
        inst = Instruction("load", [ptr], ty, name, alignment=align)
        return self._insert(inst, f"load {ty}, {ptr.typed_ref()}{_align(align)}")

    def store(self, value: Value, ptr: Value, align: Optional[int] = None) -> Instruction:
        inst = Instruction("store", [value, ptr], VOID, alignment=align)
        return self._insert(inst, f"store {value.typed_ref()}, {ptr.typed_ref()}{_align(align)}")

    def gep(
        self,
        source_type: Type,
        ptr: Value,
        indices: Sequence[Value],
        name: Optional[str] = None,
        inbounds: bool = False,
    ) -> Instruction:
        inst = Instruction("getelementptr", [ptr, *indices], PTR, name)
        idx = "".join(f", {i.typed_ref()}" for i in indices)
        kw = "getelementptr inbounds" if inbounds else "getelementptr"
        return self._insert(inst, f"{kw} {source_type}, {ptr.typed_ref()}{idx}")

    # ----- calls -----------------------------------------------------------

    def call(
        self,
        callee: Value,
        args: Sequence[Value] = (),
        name: Optional[str] = None,
        function_type: Optional[FunctionType] = None,
    ) -> Instruction:
        """Call *callee*; a non-:class:`Function` callee needs *function_type*."""
        if isinstance(callee, Function):
            fnty = callee.function_type
        elif function_type is not None:
            fnty = function_type
        else:
            raise ValueError("indirect calls need an explicit function_type")
        inst = Instruction("call", [*args, callee], fnty.return_type, name)
        shown = str(fnty) if fnty.var_arg else str(fnty.return_type)
        arg_text = ", ".join(a.typed_ref() for a in args)
        return self._insert(inst, f"call {shown} {callee.ref}({arg_text})")

    # ----- control flow ----------------------------------------------------

    def branch(self, target: BasicBlock) -> Instruction:
        inst = Instruction("br", [target])
        return self._insert(inst, f"br label {target.ref}")

    def cbranch(self, cond: Value, if_true: BasicBlock, if_false: BasicBlock) -> Instruction:
        inst = Instruction("br", [cond, if_true, if_false])
        return self._insert(
            inst,
            f"br {cond.typed_ref()}, label {if_true.ref}, label {if_false.ref}",
        )

    def ret(self, value: Value) -> Instruction:
        inst = Instruction("ret", [value])
        return self._insert(inst, f"ret {value.typed_ref()}")

    def ret_void(self) -> Instruction:
        return self._insert(Instruction("ret", []), "ret void")

    def unreachable(self) -> Instruction:
        return self._insert(Instruction("unreachable", []), "unreachable")

    # ----- comparisons, casts, misc ----------------------------------------

    def _cmp(self, opcode: str, predicate: str, lhs: Value, rhs: Value, name) -> Instruction:
        rtype: Type = I1
        if isinstance(lhs.type, VectorType):
            rtype = VectorType(lhs.type.count, I1, lhs.type.scalable)
        inst = Instruction(opcode, [lhs, rhs], rtype, name, predicate=predicate)
        return self._insert(inst, f"{opcode} {predicate} {lhs.type} {lhs.ref}, {rhs.ref}")

    def icmp(self, predicate: str, lhs: Value, rhs: Value, name: Optional[str] = None) -> Instruction:
        return self._cmp("icmp", predicate, lhs, rhs, name)

    def fcmp(self, predicate: str, lhs: Value, rhs: Value, name: Optional[str] = None) -> Instruction:
        return self._cmp("fcmp", predicate, lhs, rhs, name)

    def cast(self, opcode: str, value: Value, dest_type: Type, name: Optional[str] = None) -> Instruction:
        inst = Instruction(opcode, [value], dest_type, name)
        return self._insert(inst, f"{opcode} {value.typed_ref()} to {dest_type}")

    def select(self, cond: Value, lhs: Value, rhs: Value, name: Optional[str] = None) -> Instruction:
        inst = Instruction("select", [cond, lhs, rhs], lhs.type, name)
        return self._insert(
            inst, f"select {cond.typed_ref()}, {lhs.typed_ref()}, {rhs.typed_ref()}"
        )

    def phi(
        self,
        ty: Type,
        incoming: Sequence[Tuple[Value, BasicBlock]],
        name: Optional[str] = None,
    ) -> Instruction:
        operands: List[Value] = []
        for value, block in incoming:
            operands.extend((value, block))
        inst = Instruction("phi", operands, ty, name)
        pairs = ", ".join(f"[ {v.ref}, {b.ref} ]" for v, b in incoming)
        return self._insert(inst, f"phi {ty} {pairs}")


__all__ = [
    "IRBuilder",
    "add_function",
    "append_basic_block",
]
