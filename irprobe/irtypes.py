"""
irprobe.irtypes
===============

Structural type model attached to every IR value.

Types are immutable descriptions with a canonical textual form
(``str(ty)``) that matches the textual IR syntax, e.g. ``i32``, ``ptr``,
``[4 x i8]``, ``<vscale x 2 x i64>``, ``{ i32, ptr }``, ``%struct.S``.
The inspector never parses this text back; it only prints it.

Identified (named) structs are the one mutable exception: like in the
textual IR they can be referenced before their body is known, so the body
is attached once with :meth:`IdentifiedStructType.set_body`.

Public API
----------
    Type                  - abstract base
    VoidType, LabelType, MetadataType, TokenType, UnknownType
    IntType               - ``iN``
    FloatType             - half / bfloat / float / double / fp128 / ...
    PointerType           - opaque ``ptr`` (optionally typed ``T*``)
    ArrayType, VectorType
    StructType            - literal ``{ ... }`` / packed ``<{ ... }>``
    IdentifiedStructType  - ``%name``
    FunctionType          - ``R (P, ...)``
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------


class Type:
    """Abstract IR type."""

    def is_sized(self) -> bool:
        """Whether values of this type occupy a fixed number of bytes."""
        return True

    @property
    def is_integer(self) -> bool:
        return False

    @property
    def is_pointer(self) -> bool:
        return False

    @property
    def is_void(self) -> bool:
        return False


# ---------------------------------------------------------------------------
# Primitive types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VoidType(Type):
    def __str__(self) -> str:
        return "void"

    def is_sized(self) -> bool:
        return False

    @property
    def is_void(self) -> bool:
        return True


@dataclass(frozen=True)
class LabelType(Type):
    def __str__(self) -> str:
        return "label"

    def is_sized(self) -> bool:
        return False


@dataclass(frozen=True)
class MetadataType(Type):
    def __str__(self) -> str:
        return "metadata"

    def is_sized(self) -> bool:
        return False


@dataclass(frozen=True)
class TokenType(Type):
    def __str__(self) -> str:
        return "token"

    def is_sized(self) -> bool:
        return False


@dataclass(frozen=True)
class UnknownType(Type):
    """Placeholder for results of instructions that were only partially read."""

    def __str__(self) -> str:
        return "<unknown>"

    def is_sized(self) -> bool:
        return False


@dataclass(frozen=True)
class IntType(Type):
    width: int

    def __post_init__(self) -> None:
        if self.width <= 0:
            raise ValueError(f"integer width must be positive, got {self.width}")

    def __str__(self) -> str:
        return f"i{self.width}"

    @property
    def is_integer(self) -> bool:
        return True


# name -> bit width
FLOAT_KINDS: Dict[str, int] = {
    "half": 16,
    "bfloat": 16,
    "float": 32,
    "double": 64,
    "x86_fp80": 80,
    "fp128": 128,
    "ppc_fp128": 128,
}


@dataclass(frozen=True)
class FloatType(Type):
    kind: str = "double"

    def __post_init__(self) -> None:
        if self.kind not in FLOAT_KINDS:
            raise ValueError(f"unknown floating point kind {self.kind!r}")

    @property
    def width(self) -> int:
        return FLOAT_KINDS[self.kind]

    def __str__(self) -> str:
        return self.kind


@dataclass(frozen=True)
class PointerType(Type):
    """Pointer type.

    ``pointee`` is only set for legacy typed pointers (``i32*``); opaque
    pointers print as ``ptr`` / ``ptr addrspace(N)``.
    """

    address_space: int = 0
    pointee: Optional[Type] = None

    def __str__(self) -> str:
        if self.pointee is not None:
            if self.address_space:
                return f"{self.pointee} addrspace({self.address_space})*"
            return f"{self.pointee}*"
        if self.address_space:
            return f"ptr addrspace({self.address_space})"
        return "ptr"

    @property
    def is_pointer(self) -> bool:
        return True


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ArrayType(Type):
    count: int
    element: Type

    def __str__(self) -> str:
        return f"[{self.count} x {self.element}]"

    def is_sized(self) -> bool:
        return self.element.is_sized()


@dataclass(frozen=True)
class VectorType(Type):
    count: int
    element: Type
    scalable: bool = False

    def __str__(self) -> str:
        if self.scalable:
            return f"<vscale x {self.count} x {self.element}>"
        return f"<{self.count} x {self.element}>"


def _body_text(elements: Tuple[Type, ...], packed: bool) -> str:
    if not elements:
        return "<{}>" if packed else "{}"
    inner = ", ".join(str(e) for e in elements)
    if packed:
        return f"<{{ {inner} }}>"
    return f"{{ {inner} }}"


@dataclass(frozen=True)
class StructType(Type):
    """Literal (anonymous) struct type."""

    elements: Tuple[Type, ...] = ()
    packed: bool = False

    def __str__(self) -> str:
        return _body_text(self.elements, self.packed)

    def is_sized(self) -> bool:
        return all(e.is_sized() for e in self.elements)


class IdentifiedStructType(Type):
    """Named struct type (``%struct.S``); opaque until a body is set."""

    __slots__ = ("name", "elements", "packed")

    def __init__(self, name: str) -> None:
        self.name = name
        self.elements: Optional[Tuple[Type, ...]] = None
        self.packed = False

    def set_body(self, elements, packed: bool = False) -> None:
        self.elements = tuple(elements)
        self.packed = packed

    @property
    def is_opaque(self) -> bool:
        return self.elements is None

    def body_text(self) -> str:
        if self.elements is None:
            return "opaque"
        return _body_text(self.elements, self.packed)

    def is_sized(self) -> bool:
        if self.elements is None:
            return False
        return all(e.is_sized() for e in self.elements)

    def __str__(self) -> str:
        return f"%{self.name}"

    def __repr__(self) -> str:
        return f"IdentifiedStructType({self.name!r})"

    def __eq__(self, other) -> bool:
        return isinstance(other, IdentifiedStructType) and other.name == self.name

    def __hash__(self) -> int:
        return hash(("struct", self.name))


@dataclass(frozen=True)
class FunctionType(Type):
    return_type: Type
    params: Tuple[Type, ...] = field(default_factory=tuple)
    var_arg: bool = False

    def __str__(self) -> str:
        parts = [str(p) for p in self.params]
        if self.var_arg:
            parts.append("...")
        return f"{self.return_type} ({', '.join(parts)})"

    def is_sized(self) -> bool:
        return False


# ---------------------------------------------------------------------------
# Shared instances
# ---------------------------------------------------------------------------

VOID = VoidType()
LABEL = LabelType()
PTR = PointerType()
I1 = IntType(1)
I8 = IntType(8)
I16 = IntType(16)
I32 = IntType(32)
I64 = IntType(64)
FLOAT = FloatType("float")
DOUBLE = FloatType("double")


__all__ = [
    "Type",
    "VoidType",
    "LabelType",
    "MetadataType",
    "TokenType",
    "UnknownType",
    "IntType",
    "FloatType",
    "FLOAT_KINDS",
    "PointerType",
    "ArrayType",
    "VectorType",
    "StructType",
    "IdentifiedStructType",
    "FunctionType",
    "VOID",
    "LABEL",
    "PTR",
    "I1",
    "I8",
    "I16",
    "I32",
    "I64",
    "FLOAT",
    "DOUBLE",
]
