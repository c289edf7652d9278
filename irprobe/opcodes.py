"""
irprobe.opcodes
===============

Opcode capability table.

Each opcode maps to a set of :class:`OpcodeTrait` flags describing the
structural capabilities an instruction with that opcode exposes.  The
classifier tests these capabilities (together with the operand shape) in a
fixed precedence order, so the table is the single place where "what an
opcode is" is decided.

Every known opcode carries :attr:`OpcodeTrait.OPERATOR`; an opcode outside
the table carries no traits at all, which is what routes it to the
``Unknown`` kind.
"""

from __future__ import annotations

import enum
from typing import Dict, FrozenSet


class OpcodeTrait(enum.Flag):
    """Structural capabilities of an instruction opcode."""

    NONE = 0
    BINARY = enum.auto()
    ALLOCA = enum.auto()
    LOAD = enum.auto()
    STORE = enum.auto()
    CALL = enum.auto()
    BRANCH = enum.auto()
    RETURN = enum.auto()
    COMPARE = enum.auto()
    CAST = enum.auto()
    TERMINATOR = enum.auto()
    OPERATOR = enum.auto()


BINARY_OPCODES: FrozenSet[str] = frozenset({
    "add", "fadd", "sub", "fsub", "mul", "fmul",
    "udiv", "sdiv", "fdiv", "urem", "srem", "frem",
    "shl", "lshr", "ashr", "and", "or", "xor",
})

CAST_OPCODES: FrozenSet[str] = frozenset({
    "trunc", "zext", "sext", "fptrunc", "fpext",
    "fptoui", "fptosi", "uitofp", "sitofp",
    "ptrtoint", "inttoptr", "bitcast", "addrspacecast",
})

COMPARE_OPCODES: FrozenSet[str] = frozenset({"icmp", "fcmp"})

# Known opcodes that only expose the generic operator capability.
OTHER_OPCODES: FrozenSet[str] = frozenset({
    "fneg", "freeze", "getelementptr", "select", "phi",
    "extractelement", "insertelement", "shufflevector",
    "extractvalue", "insertvalue", "va_arg", "landingpad",
    "fence", "cmpxchg", "atomicrmw", "catchpad", "cleanuppad",
})

OTHER_TERMINATORS: FrozenSet[str] = frozenset({
    "switch", "indirectbr", "invoke", "callbr", "resume",
    "unreachable", "cleanupret", "catchret", "catchswitch",
})

_O = OpcodeTrait


def _build_table() -> Dict[str, OpcodeTrait]:
    table: Dict[str, OpcodeTrait] = {}
    for op in BINARY_OPCODES:
        table[op] = _O.BINARY | _O.OPERATOR
    for op in CAST_OPCODES:
        table[op] = _O.CAST | _O.OPERATOR
    for op in COMPARE_OPCODES:
        table[op] = _O.COMPARE | _O.OPERATOR
    for op in OTHER_OPCODES:
        table[op] = _O.OPERATOR
    for op in OTHER_TERMINATORS:
        table[op] = _O.TERMINATOR | _O.OPERATOR
    table["alloca"] = _O.ALLOCA | _O.OPERATOR
    table["load"] = _O.LOAD | _O.OPERATOR
    table["store"] = _O.STORE | _O.OPERATOR
    table["call"] = _O.CALL | _O.OPERATOR
    table["br"] = _O.BRANCH | _O.TERMINATOR | _O.OPERATOR
    table["ret"] = _O.RETURN | _O.TERMINATOR | _O.OPERATOR
    return table


OPCODE_TRAITS: Dict[str, OpcodeTrait] = _build_table()


def opcode_traits(opcode: str) -> OpcodeTrait:
    """Return the traits of *opcode*; unknown opcodes have none."""
    return OPCODE_TRAITS.get(opcode, OpcodeTrait.NONE)


def is_known_opcode(opcode: str) -> bool:
    return opcode in OPCODE_TRAITS


__all__ = [
    "OpcodeTrait",
    "BINARY_OPCODES",
    "CAST_OPCODES",
    "COMPARE_OPCODES",
    "OTHER_OPCODES",
    "OTHER_TERMINATORS",
    "OPCODE_TRAITS",
    "opcode_traits",
    "is_known_opcode",
]
