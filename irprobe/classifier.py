"""
irprobe.classifier
==================

Maps every instruction to exactly one :class:`InstKind` variant.

Classification is a pure function of an instruction's structural shape: its
opcode traits (see :mod:`irprobe.opcodes`) and its operands.  Rules are
tested in a fixed precedence order and the first match wins; several
predicates overlap (every known opcode is also a generic operator, and a
synthetic instruction may carry more than one trait), so the order is part
of the contract and is exposed as :data:`CLASSIFICATION_ORDER`.

The result is a frozen dataclass per kind carrying the fields the renderer
needs.  Nothing here consults the data layout or can fail: byte sizes are
resolved when rendering, and any instruction that matches no other rule is
classified as :class:`Unknown`.

Precedence
----------
 1. BINARY_ARITHMETIC   two operands + arithmetic opcode
 2. STACK_ALLOCATION    alloca with an allocated type
 3. LOAD
 4. STORE
 5. CALL                direct (callee is a function) or indirect
 6. BRANCH              conditional or unconditional
 7. RETURN              void or value-carrying
 8. COMPARE             integer (named predicate) or other
 9. CAST
10. GENERIC_OPERATOR    any other operator-like instruction
11. UNKNOWN             fallback
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Callable, ClassVar, List, Optional, Tuple

from .irtypes import Type
from .opcodes import OpcodeTrait
from .values import (
    BasicBlock,
    ConstantInt,
    Function,
    Instruction,
    Parameter,
    Value,
)

_log = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════════
#  KINDS
# ═════════════════════════════════════════════════════════════════════════

class InstKind(enum.Enum):
    """The fixed set of instruction kinds, in precedence order."""

    BINARY_ARITHMETIC = "binary-arithmetic"
    STACK_ALLOCATION = "stack-allocation"
    LOAD = "load"
    STORE = "store"
    CALL = "call"
    BRANCH = "branch"
    RETURN = "return"
    COMPARE = "compare"
    CAST = "cast"
    GENERIC_OPERATOR = "generic-operator"
    UNKNOWN = "unknown"


class CompareCategory(enum.Enum):
    INTEGER = "Integer Comparison"
    OTHER = "Other Comparison"


class IntPredicate(enum.Enum):
    """Integer comparison predicates.  Each member carries its display name."""

    EQ = ("eq", "Equal (==)")
    NE = ("ne", "Not Equal (!=)")
    UGT = ("ugt", "Other")
    UGE = ("uge", "Other")
    ULT = ("ult", "Other")
    ULE = ("ule", "Other")
    SGT = ("sgt", "Signed Greater Than (>)")
    SGE = ("sge", "Signed Greater or Equal (>=)")
    SLT = ("slt", "Signed Less Than (<)")
    SLE = ("sle", "Signed Less or Equal (<=)")

    def __init__(self, mnemonic: str, display: str) -> None:
        self.mnemonic = mnemonic
        self.display = display

    @classmethod
    def from_mnemonic(cls, mnemonic: Optional[str]) -> Optional[IntPredicate]:
        for member in cls:
            if member.mnemonic == mnemonic:
                return member
        return None


def predicate_display(predicate: Optional[IntPredicate]) -> str:
    """Human readable predicate name; anything not explicitly named is ``Other``."""
    if predicate is None:
        return "Other"
    return predicate.display


# ═════════════════════════════════════════════════════════════════════════
#  VARIANTS
# ═════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class Classified:
    """Base of all classification results."""

    kind: ClassVar[InstKind]
    instruction: Instruction

    @property
    def opcode(self) -> str:
        return self.instruction.opcode


@dataclass(frozen=True)
class BinaryArithmetic(Classified):
    kind: ClassVar[InstKind] = InstKind.BINARY_ARITHMETIC
    lhs: Value
    rhs: Value


@dataclass(frozen=True)
class StackAllocation(Classified):
    kind: ClassVar[InstKind] = InstKind.STACK_ALLOCATION
    allocated_type: Type
    array_size: Optional[Value] = None
    alignment: Optional[int] = None

    @property
    def element_count(self) -> Optional[int]:
        """Constant element count, ``1`` when absent, ``None`` when dynamic."""
        if self.array_size is None:
            return 1
        if isinstance(self.array_size, ConstantInt):
            return self.array_size.zext_value
        return None


@dataclass(frozen=True)
class Load(Classified):
    kind: ClassVar[InstKind] = InstKind.LOAD
    address: Value
    result_type: Type
    alignment: Optional[int] = None


@dataclass(frozen=True)
class Store(Classified):
    kind: ClassVar[InstKind] = InstKind.STORE
    value: Value
    destination: Value
    alignment: Optional[int] = None


@dataclass(frozen=True)
class Call(Classified):
    """A call.  ``callee`` is set for direct calls, ``target`` for indirect ones."""

    kind: ClassVar[InstKind] = InstKind.CALL
    arguments: Tuple[Value, ...]
    callee: Optional[Function] = None
    target: Optional[Value] = None

    @property
    def is_direct(self) -> bool:
        return self.callee is not None

    @property
    def callee_name(self) -> Optional[str]:
        return self.callee.name if self.callee is not None else None

    @property
    def parameters(self) -> Tuple[Parameter, ...]:
        if self.callee is None:
            return ()
        return tuple(self.callee.params)


@dataclass(frozen=True)
class Branch(Classified):
    kind: ClassVar[InstKind] = InstKind.BRANCH
    true_target: BasicBlock
    condition: Optional[Value] = None
    false_target: Optional[BasicBlock] = None

    @property
    def is_conditional(self) -> bool:
        return self.condition is not None


@dataclass(frozen=True)
class Return(Classified):
    """
    A return.  For value returns exactly one description applies:
    ``value_name`` (named value), ``source`` (unnamed instruction result),
    ``constant`` (integer literal, sign-extended), or none of them
    (some other unnamed temporary).
    """

    kind: ClassVar[InstKind] = InstKind.RETURN
    value: Optional[Value] = None
    value_name: Optional[str] = None
    source: Optional[Instruction] = None
    constant: Optional[int] = None

    @property
    def is_void(self) -> bool:
        return self.value is None

    @property
    def result_type(self) -> Optional[Type]:
        return self.value.type if self.value is not None else None


@dataclass(frozen=True)
class Compare(Classified):
    kind: ClassVar[InstKind] = InstKind.COMPARE
    category: CompareCategory
    lhs: Value
    rhs: Value
    predicate: Optional[IntPredicate] = None

    @property
    def predicate_name(self) -> str:
        return predicate_display(self.predicate)


@dataclass(frozen=True)
class Cast(Classified):
    kind: ClassVar[InstKind] = InstKind.CAST
    source: Value
    source_type: Type
    dest_type: Type


@dataclass(frozen=True)
class GenericOperator(Classified):
    kind: ClassVar[InstKind] = InstKind.GENERIC_OPERATOR
    operands: Tuple[Value, ...]


@dataclass(frozen=True)
class Unknown(Classified):
    kind: ClassVar[InstKind] = InstKind.UNKNOWN


# ═════════════════════════════════════════════════════════════════════════
#  RULES
# ═════════════════════════════════════════════════════════════════════════

# A rule returns a variant when the instruction matches it, ``None`` otherwise.
Rule = Callable[[Instruction], Optional[Classified]]

_RULES: List[Tuple[InstKind, Rule]] = []


def _rule(kind: InstKind):
    """Decorator: append a rule for *kind*; registration order is precedence."""
    def deco(fn: Rule) -> Rule:
        _RULES.append((kind, fn))
        return fn
    return deco


@_rule(InstKind.BINARY_ARITHMETIC)
def _binary(inst: Instruction) -> Optional[Classified]:
    if inst.has_trait(OpcodeTrait.BINARY) and inst.num_operands == 2:
        return BinaryArithmetic(inst, inst.operands[0], inst.operands[1])
    return None


@_rule(InstKind.STACK_ALLOCATION)
def _alloca(inst: Instruction) -> Optional[Classified]:
    if inst.has_trait(OpcodeTrait.ALLOCA) and inst.allocated_type is not None:
        count = inst.operands[0] if inst.operands else None
        return StackAllocation(inst, inst.allocated_type, count, inst.alignment)
    return None


@_rule(InstKind.LOAD)
def _load(inst: Instruction) -> Optional[Classified]:
    if inst.has_trait(OpcodeTrait.LOAD) and inst.num_operands >= 1:
        return Load(inst, inst.operands[0], inst.type, inst.alignment)
    return None


@_rule(InstKind.STORE)
def _store(inst: Instruction) -> Optional[Classified]:
    if inst.has_trait(OpcodeTrait.STORE) and inst.num_operands >= 2:
        return Store(inst, inst.operands[0], inst.operands[1], inst.alignment)
    return None


@_rule(InstKind.CALL)
def _call(inst: Instruction) -> Optional[Classified]:
    if not inst.has_trait(OpcodeTrait.CALL) or inst.num_operands < 1:
        return None
    callee = inst.operands[-1]
    args = tuple(inst.operands[:-1])
    if isinstance(callee, Function):
        return Call(inst, args, callee=callee)
    return Call(inst, args, target=callee)


@_rule(InstKind.BRANCH)
def _branch(inst: Instruction) -> Optional[Classified]:
    if not inst.has_trait(OpcodeTrait.BRANCH):
        return None
    ops = inst.operands
    if len(ops) == 1 and isinstance(ops[0], BasicBlock):
        return Branch(inst, ops[0])
    if (
        len(ops) == 3
        and isinstance(ops[1], BasicBlock)
        and isinstance(ops[2], BasicBlock)
    ):
        return Branch(inst, ops[1], condition=ops[0], false_target=ops[2])
    return None


@_rule(InstKind.RETURN)
def _return(inst: Instruction) -> Optional[Classified]:
    if not inst.has_trait(OpcodeTrait.RETURN):
        return None
    if not inst.operands:
        return Return(inst)
    value = inst.operands[0]
    if value.has_name:
        return Return(inst, value, value_name=value.name)
    if isinstance(value, Instruction):
        return Return(inst, value, source=value)
    if isinstance(value, ConstantInt):
        return Return(inst, value, constant=value.sext_value)
    return Return(inst, value)


@_rule(InstKind.COMPARE)
def _compare(inst: Instruction) -> Optional[Classified]:
    if not inst.has_trait(OpcodeTrait.COMPARE) or inst.num_operands != 2:
        return None
    lhs, rhs = inst.operands
    if inst.opcode == "icmp":
        return Compare(
            inst,
            CompareCategory.INTEGER,
            lhs,
            rhs,
            IntPredicate.from_mnemonic(inst.predicate),
        )
    return Compare(inst, CompareCategory.OTHER, lhs, rhs)


@_rule(InstKind.CAST)
def _cast(inst: Instruction) -> Optional[Classified]:
    if inst.has_trait(OpcodeTrait.CAST) and inst.num_operands >= 1:
        source = inst.operands[0]
        return Cast(inst, source, source.type, inst.type)
    return None


@_rule(InstKind.GENERIC_OPERATOR)
def _operator(inst: Instruction) -> Optional[Classified]:
    if inst.has_trait(OpcodeTrait.OPERATOR):
        return GenericOperator(inst, tuple(inst.operands))
    return None


# Precedence as an explicit, inspectable list (UNKNOWN is the implicit tail).
CLASSIFICATION_ORDER: Tuple[InstKind, ...] = tuple(k for k, _ in _RULES) + (
    InstKind.UNKNOWN,
)


def classify(inst: Instruction) -> Classified:
    """Classify *inst*; always returns exactly one variant."""
    for kind, rule in _RULES:
        result = rule(inst)
        if result is not None:
            return result
    _log.debug("no rule matched %r; classified as unknown", inst.opcode)
    return Unknown(inst)


def kind_of(inst: Instruction) -> InstKind:
    return classify(inst).kind


__all__ = [
    "InstKind",
    "CompareCategory",
    "IntPredicate",
    "predicate_display",
    "Classified",
    "BinaryArithmetic",
    "StackAllocation",
    "Load",
    "Store",
    "Call",
    "Branch",
    "Return",
    "Compare",
    "Cast",
    "GenericOperator",
    "Unknown",
    "CLASSIFICATION_ORDER",
    "classify",
    "kind_of",
]
