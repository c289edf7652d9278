"""
irprobe.datalayout
==================

Target data layout: sizes and alignments of IR types.

The layout is parsed from the textual data layout string a module carries
(``target datalayout = "e-m:e-p:64:64-i64:64-n8:16:32:64-S128"``).  Entries
a string does not mention take the defaults documented for the IR:

=============  ============
component      default
=============  ============
``p``          64:64:64
``i1``         8:8
``i8``         8:8
``i16``        16:16
``i32``        32:32
``i64``        32:64
``f16``        16:16
``f32``        32:32
``f64``        64:64
``f128``       128:128
``v64``        64:64
``v128``       128:128
``a``          0:64
=============  ============

Sizing rules
------------
* store size  = bits rounded up to whole bytes
* alloc size  = store size rounded up to the ABI alignment
* integers without an entry use the next larger listed width (or the
  largest one); vectors without an entry are aligned to their size rounded
  up to a power of two
* struct fields are laid out in order with padding; packed structs are
  byte aligned; arrays are ``count * alloc_size(element)``

Types without a fixed size (void, label, function, opaque structs, scalable
vectors) raise :class:`~irprobe.errors.MalformedIRError` when a size is
requested.

Usage::

    dl = DataLayout.parse(program.data_layout)
    dl.alloc_size(ArrayType(4, I32))   # 16
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from .errors import DataLayoutError, MalformedIRError
from .irtypes import (
    ArrayType,
    FloatType,
    FunctionType,
    IdentifiedStructType,
    IntType,
    PointerType,
    StructType,
    Type,
    VectorType,
)

_log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Layout entries
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AlignSpec:
    """ABI and preferred alignment, in bytes."""

    abi: int
    pref: int


@dataclass(frozen=True)
class PointerSpec:
    """Pointer size and alignments for one address space, in bytes."""

    size: int
    abi: int
    pref: int
    index_size: int


def _bytes(bits: int, what: str) -> int:
    if bits % 8:
        raise DataLayoutError(f"{what}: {bits} is not a multiple of 8 bits")
    return bits // 8


def _align_to(value: int, align: int) -> int:
    if align <= 1:
        return value
    return (value + align - 1) // align * align


def _next_pow2(value: int) -> int:
    p = 1
    while p < value:
        p <<= 1
    return p


# ---------------------------------------------------------------------------
# DataLayout
# ---------------------------------------------------------------------------


@dataclass
class DataLayout:
    """Parsed target data layout."""

    big_endian: bool = False
    pointers: Dict[int, PointerSpec] = field(default_factory=dict)
    int_aligns: Dict[int, AlignSpec] = field(default_factory=dict)
    float_aligns: Dict[int, AlignSpec] = field(default_factory=dict)
    vector_aligns: Dict[int, AlignSpec] = field(default_factory=dict)
    aggregate_align: AlignSpec = AlignSpec(1, 8)
    stack_align: Optional[int] = None
    text: str = ""

    # ----- construction ----------------------------------------------------

    @classmethod
    def default(cls) -> DataLayout:
        dl = cls()
        dl.pointers[0] = PointerSpec(8, 8, 8, 8)
        dl.int_aligns.update({
            1: AlignSpec(1, 1),
            8: AlignSpec(1, 1),
            16: AlignSpec(2, 2),
            32: AlignSpec(4, 4),
            64: AlignSpec(4, 8),
        })
        dl.float_aligns.update({
            16: AlignSpec(2, 2),
            32: AlignSpec(4, 4),
            64: AlignSpec(8, 8),
            128: AlignSpec(16, 16),
        })
        dl.vector_aligns.update({
            64: AlignSpec(8, 8),
            128: AlignSpec(16, 16),
        })
        return dl

    @classmethod
    def parse(cls, spec: Optional[str]) -> DataLayout:
        """Parse a data layout string; an empty string yields the defaults."""
        dl = cls.default()
        dl.text = spec or ""
        if not spec:
            return dl
        for component in spec.split("-"):
            if component:
                dl._apply(component)
        return dl

    def _apply(self, component: str) -> None:
        head = component[0]
        try:
            if head == "e":
                self.big_endian = False
            elif head == "E":
                self.big_endian = True
            elif head == "p":
                self._apply_pointer(component)
            elif head in "ifv" and component[1:2].isdigit():
                self._apply_align(head, component)
            elif head == "a":
                parts = component.split(":")
                abi = _bytes(int(parts[1]), component) if len(parts) > 1 and parts[1] else 0
                pref = _bytes(int(parts[2]), component) if len(parts) > 2 else abi
                self.aggregate_align = AlignSpec(max(abi, 1), max(pref, abi, 1))
            elif head == "S":
                self.stack_align = _bytes(int(component[1:]), component)
            else:
                # m:, n, F, A, P, G, ni: ... do not affect sizes
                _log.debug("ignoring data layout component %r", component)
        except (ValueError, IndexError) as exc:
            raise DataLayoutError(f"malformed data layout component {component!r}: {exc}") from exc

    def _apply_pointer(self, component: str) -> None:
        parts = component.split(":")
        head = parts[0][1:]
        if head and not head.isdigit():
            # e.g. "p270" variants with non numeric suffix are not sizes
            raise ValueError(f"bad address space {head!r}")
        addrspace = int(head) if head else 0
        if len(parts) < 3:
            raise ValueError("pointer spec needs size and abi alignment")
        size = _bytes(int(parts[1]), component)
        abi = _bytes(int(parts[2]), component)
        pref = _bytes(int(parts[3]), component) if len(parts) > 3 else abi
        index = _bytes(int(parts[4]), component) if len(parts) > 4 else size
        self.pointers[addrspace] = PointerSpec(size, abi, pref, index)

    def _apply_align(self, head: str, component: str) -> None:
        parts = component.split(":")
        bits = int(parts[0][1:])
        abi = _bytes(int(parts[1]), component)
        pref = _bytes(int(parts[2]), component) if len(parts) > 2 else abi
        table = {"i": self.int_aligns, "f": self.float_aligns, "v": self.vector_aligns}[head]
        table[bits] = AlignSpec(abi, pref)

    # ----- pointers --------------------------------------------------------

    def pointer_spec(self, address_space: int = 0) -> PointerSpec:
        spec = self.pointers.get(address_space)
        if spec is None:
            spec = self.pointers[0]
        return spec

    def pointer_size(self, address_space: int = 0) -> int:
        return self.pointer_spec(address_space).size

    # ----- alignment -------------------------------------------------------

    def _int_align(self, width: int) -> AlignSpec:
        if width in self.int_aligns:
            return self.int_aligns[width]
        larger = sorted(w for w in self.int_aligns if w > width)
        if larger:
            return self.int_aligns[larger[0]]
        return self.int_aligns[max(self.int_aligns)]

    def _alignments(self, ty: Type) -> AlignSpec:
        if isinstance(ty, IntType):
            return self._int_align(ty.width)
        if isinstance(ty, FloatType):
            spec = self.float_aligns.get(ty.width)
            if spec is None:
                natural = _next_pow2(self.store_size(ty))
                spec = AlignSpec(natural, natural)
            return spec
        if isinstance(ty, PointerType):
            p = self.pointer_spec(ty.address_space)
            return AlignSpec(p.abi, p.pref)
        if isinstance(ty, ArrayType):
            return self._alignments(ty.element)
        if isinstance(ty, VectorType):
            if ty.scalable:
                raise MalformedIRError(f"type '{ty}' has no fixed size")
            bits = self.type_size_in_bits(ty)
            spec = self.vector_aligns.get(bits)
            if spec is None:
                natural = _next_pow2(max((bits + 7) // 8, 1))
                spec = AlignSpec(natural, natural)
            return spec
        if isinstance(ty, (StructType, IdentifiedStructType)):
            elements, packed = self._struct_body(ty)
            if packed:
                abi = 1
            else:
                abi = max([self.abi_alignment(e) for e in elements] or [1])
            abi = max(abi, self.aggregate_align.abi)
            return AlignSpec(abi, max(abi, self.aggregate_align.pref))
        raise MalformedIRError(f"type '{ty}' has no fixed size")

    def abi_alignment(self, ty: Type) -> int:
        return self._alignments(ty).abi

    def pref_alignment(self, ty: Type) -> int:
        return self._alignments(ty).pref

    # ----- sizes -----------------------------------------------------------

    @staticmethod
    def _struct_body(ty: Type) -> Tuple[Tuple[Type, ...], bool]:
        if isinstance(ty, IdentifiedStructType):
            if ty.elements is None:
                raise MalformedIRError(f"opaque struct '{ty}' has no size")
            return ty.elements, ty.packed
        return ty.elements, ty.packed

    def type_size_in_bits(self, ty: Type) -> int:
        if isinstance(ty, IntType):
            return ty.width
        if isinstance(ty, FloatType):
            return ty.width
        if isinstance(ty, PointerType):
            return self.pointer_size(ty.address_space) * 8
        if isinstance(ty, ArrayType):
            return ty.count * self.alloc_size(ty.element) * 8
        if isinstance(ty, VectorType):
            if ty.scalable:
                raise MalformedIRError(f"scalable vector '{ty}' has no fixed size")
            return ty.count * self.type_size_in_bits(ty.element)
        if isinstance(ty, (StructType, IdentifiedStructType)):
            return self.struct_layout(ty)[0] * 8
        if isinstance(ty, FunctionType):
            raise MalformedIRError(f"function type '{ty}' has no size")
        raise MalformedIRError(f"type '{ty}' has no size")

    def store_size(self, ty: Type) -> int:
        return (self.type_size_in_bits(ty) + 7) // 8

    def alloc_size(self, ty: Type) -> int:
        return _align_to(self.store_size(ty), self.abi_alignment(ty))

    def struct_layout(self, ty: Type) -> Tuple[int, Tuple[int, ...]]:
        """Return ``(size_in_bytes, field_offsets)`` of a struct type."""
        elements, packed = self._struct_body(ty)
        offset = 0
        offsets = []
        for element in elements:
            if not packed:
                offset = _align_to(offset, self.abi_alignment(element))
            offsets.append(offset)
            offset += self.alloc_size(element)
        if not packed:
            struct_align = max([self.abi_alignment(e) for e in elements] or [1])
            offset = _align_to(offset, struct_align)
        return offset, tuple(offsets)

    def allocation_size(self, ty: Type, count: Optional[int] = 1) -> int:
        """Bytes reserved by a stack allocation of *count* elements of *ty*.

        ``count=None`` stands for a non-constant element count.
        """
        if count is None:
            raise MalformedIRError(
                f"allocation of '{ty}' has a non-constant element count"
            )
        if not ty.is_sized():
            raise MalformedIRError(f"allocated type '{ty}' has no computable size")
        return self.alloc_size(ty) * count

    def __str__(self) -> str:
        return self.text


__all__ = [
    "AlignSpec",
    "PointerSpec",
    "DataLayout",
]
