"""irprobe/ll_parser.py – textual IR (``.ll``) → value model loader.

Reads the textual form of an IR module and builds a
:class:`~irprobe.values.Program` the inspector can walk.

Design principles
-----------------
* **Line-oriented driver, PEG for the pieces** – the module is split into
  top-level items (type definitions, globals, function headers, function
  bodies) by a small line scanner; every piece is then parsed with one entry
  rule of :data:`LL_GRAMMAR`, a parsimonious PEG grammar.
* **Typed visitor results** – :class:`_LLVisitor` turns parse trees into
  small marker objects (``_Operand``, ``_BlockRef``, ``_Draft``, ...) and
  every ``visit_*`` method picks what it needs by type with :func:`_collect`
  instead of unpacking children positionally.
* **Two-phase functions** – instructions of a function body are read first
  and their operand references resolved afterwards, so forward references
  (phi nodes, branches to later blocks) work.
* **Total on instructions** – an instruction line the grammar cannot read
  becomes an opaque instruction (opcode and text only) so that the report
  still lists it; everything else that cannot be read is an
  :class:`~irprobe.errors.IRParseError`.

Supported surface
-----------------
::

    ; ModuleID = 'name'
    source_filename = "..."
    target datalayout = "..."
    target triple = "..."
    %T = type { ... } | <{ ... }> | opaque
    @g = [linkage ...] global|constant <type> [<init>] [, align N ...]
    declare [attrs] <type> @f(<type> [attrs] [%name], ..., ...) [...]
    define  [attrs] <type> @f(<type> [attrs] [%name], ...) [...] {
    label:
      [%r =] ret | br | switch | alloca | load | store | call | icmp | fcmp
             | <cast> | <binop> | phi | select | getelementptr | <opcode> ...
    }

Public API
----------
``parse_assembly(text, name=None) -> Program``
``parse_file(path) -> Program``
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from parsimonious.exceptions import ParseError, VisitationError
from parsimonious.grammar import Grammar
from parsimonious.nodes import NodeVisitor

from .errors import IRParseError
from .irtypes import (
    ArrayType,
    FloatType,
    FunctionType,
    I1,
    IdentifiedStructType,
    IntType,
    LabelType,
    MetadataType,
    PTR,
    PointerType,
    StructType,
    TokenType,
    Type,
    UnknownType,
    VectorType,
    VOID,
)
from .values import (
    BasicBlock,
    Constant,
    ConstantFP,
    ConstantInt,
    ConstantPointerNull,
    Function,
    GlobalVariable,
    Instruction,
    MetadataAsValue,
    Parameter,
    Program,
    UndefValue,
    Value,
)

_log = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════
#  Grammar
# ═══════════════════════════════════════════════════════════════════════

LL_GRAMMAR = Grammar(r'''
    # ─────────────────────────────────────────────────────────────
    # Entry rules
    # ─────────────────────────────────────────────────────────────

    function_header  = fn_keyword hdr_words __ type __ global_name _ "(" _ params _ ")" tail
    type_def         = local_name _ "=" _ ~r"type\b" __ type_body tail
    global_def       = global_name _ "=" hdr_words __ global_kind __ type init? tail
    instruction      = _ assignment? inst_body _

    # ─────────────────────────────────────────────────────────────
    # Module-level pieces
    # ─────────────────────────────────────────────────────────────

    fn_keyword       = ~r"(define|declare)\b"
    hdr_words        = (__ !type !global_kind hdr_word)*
    hdr_word         = align_clause / attr_call / attr_word
    global_kind      = ~r"(global|constant)\b"
    init             = __ !align_clause value
    type_body        = opaque_kw / type
    opaque_kw        = ~r"opaque\b"
    params           = (param_list (_ "," _ ellipsis)?) / ellipsis?
    param_list       = param (_ "," _ param)*
    param            = type param_attrs (__ local_name)?
    ellipsis         = "..."
    tail             = ~r".*"

    # ─────────────────────────────────────────────────────────────
    # Types
    # ─────────────────────────────────────────────────────────────

    type             = base_type type_suffix*
    type_suffix      = ptr_star / fn_suffix
    ptr_star         = (__ addrspace)? _ "*"
    fn_suffix        = _ "(" _ fn_param_types _ ")"
    fn_param_types   = (type_list (_ "," _ ellipsis)?) / ellipsis?
    base_type        = packed_struct / vector_type / array_type / struct_type
                     / named_type / ptr_type / int_type / float_type
                     / void_type / label_type / metadata_type / token_type
    packed_struct    = "<{" _ type_list? _ "}>"
    vector_type      = "<" _ vscale? integer __ "x" __ type _ ">"
    vscale           = ~r"vscale\b" __ "x" __
    array_type       = "[" _ integer __ "x" __ type _ "]"
    struct_type      = "{" _ type_list? _ "}"
    type_list        = type (_ "," _ type)*
    named_type       = ~r'%(?:[-a-zA-Z$._][-a-zA-Z$._0-9]*|[0-9]+|"[^"]*")'
    ptr_type         = ~r"ptr\b" (__ addrspace)?
    addrspace        = "addrspace" _ "(" _ integer _ ")"
    int_type         = ~r"i[0-9]+\b"
    float_type       = ~r"(half|bfloat|float|double|fp128|x86_fp80|ppc_fp128)\b"
    void_type        = ~r"void\b"
    label_type       = ~r"label\b"
    metadata_type    = ~r"metadata\b"
    token_type       = ~r"token\b"

    # ─────────────────────────────────────────────────────────────
    # Values
    # ─────────────────────────────────────────────────────────────

    typed_value      = metadata_arg / plain_typed_value
    metadata_arg     = ~r"metadata\b" __ (plain_typed_value / metadata_ref)
    plain_typed_value = type param_attrs __ value
    param_attrs      = (__ param_attr)*
    param_attr       = align_clause / attr_call / attr_word
    attr_call        = ~r"[a-z_][a-z_0-9]*\([^)]*\)"
    attr_word        = !keyword_const !const_expr_head ~r"[a-z_][a-z_0-9]*(?=[\s,)])"
    align_clause     = ~r"align\b" __ integer

    value            = local_name / global_name / const_expr / constant
    local_name       = ~r'%(?:[-a-zA-Z$._][-a-zA-Z$._0-9]*|[0-9]+|"[^"]*")'
    global_name      = ~r'@(?:[-a-zA-Z$._][-a-zA-Z$._0-9]*|[0-9]+|"[^"]*")'
    constant         = float_lit / int_lit / keyword_const / string_const
                     / aggregate_const / metadata_ref
    float_lit        = ~r"-?[0-9]+\.[0-9]+(?:[eE][-+]?[0-9]+)?" / ~r"0x[KLMHR]?[0-9A-Fa-f]+"
    int_lit          = ~r"-?[0-9]+\b"
    keyword_const    = ~r"(true|false|null|undef|poison|zeroinitializer|none)\b"
    string_const     = ~r'c"[^"]*"'
    aggregate_const  = agg_packed / agg_struct / agg_array / agg_vector
    agg_packed       = "<{" _ typed_value_list? _ "}>"
    agg_struct       = "{" _ typed_value_list? _ "}"
    agg_array        = "[" _ typed_value_list? _ "]"
    agg_vector       = "<" _ typed_value_list? _ ">"
    typed_value_list = typed_value (_ "," _ typed_value)*
    const_expr       = const_expr_head (__ cexpr_word)* _ paren_group
    const_expr_head  = ~r"(getelementptr|bitcast|inttoptr|ptrtoint|addrspacecast|trunc|zext|sext|fptrunc|fpext|fptoui|fptosi|uitofp|sitofp|add|sub|mul|shl|xor|and|or|icmp|fcmp|select|extractelement|insertelement|shufflevector|blockaddress|dso_local_equivalent|no_cfi)\b"
    cexpr_word       = ~r"[a-z_]+\b"
    paren_group      = ~r"\((?:[^()]|\((?:[^()]|\([^()]*\))*\))*\)"
    metadata_ref     = ~r'!(?:"[^"]*"|[-a-zA-Z0-9_.]+(?:\([^()]*\))?|\{[^}]*\})'
    integer          = ~r"[0-9]+"

    # ─────────────────────────────────────────────────────────────
    # Instructions
    # ─────────────────────────────────────────────────────────────

    assignment       = local_name _ "=" _
    inst_body        = ret_inst / br_inst / switch_inst / alloca_inst
                     / load_inst / store_inst / call_inst / cmp_inst
                     / cast_inst / binary_inst / phi_inst / select_inst
                     / gep_inst / generic_inst

    ret_inst         = ~r"ret\b" __ (ret_void / typed_value)
    ret_void         = ~r"void\b"

    br_inst          = cond_br / uncond_br
    cond_br          = ~r"br\b" __ typed_value _ "," _ label_ref _ "," _ label_ref
    uncond_br        = ~r"br\b" __ label_ref
    label_ref        = ~r"label\b" __ local_name

    switch_inst      = ~r"switch\b" __ typed_value _ "," _ label_ref _ "[" _ switch_case* "]"
    switch_case      = typed_value _ "," _ label_ref _

    alloca_inst      = ~r"alloca\b" (__ ~r"inalloca\b")? __ type alloca_count? align_opt tail
    alloca_count     = _ "," _ typed_value
    align_opt        = (_ "," _ align_clause)?

    load_inst        = ~r"load\b" mem_flags __ type _ "," _ typed_value ordering? align_opt tail
    store_inst       = ~r"store\b" mem_flags __ typed_value _ "," _ typed_value ordering? align_opt tail
    mem_flags        = (__ ~r"(atomic|volatile)\b")*
    ordering         = __ (syncscope __)? ~r"(unordered|monotonic|acquire|release|acq_rel|seq_cst)\b"
    syncscope        = ~r'syncscope\("[^"]*"\)'

    call_inst        = tail_kind? ~r"call\b" call_words __ type __ callee _ "(" _ call_args? _ ")" tail
    tail_kind        = ~r"(tail|musttail|notail)\b" __
    call_words       = (__ !type call_word)*
    call_word        = align_clause / attr_call / attr_word
    callee           = local_name / global_name / const_expr
    call_args        = typed_value (_ "," _ typed_value)*

    cmp_inst         = cmp_op (__ flag)* __ cmp_pred __ typed_value _ "," _ value
    cmp_op           = ~r"(icmp|fcmp)\b"
    cmp_pred         = ~r"(eq|ne|ugt|uge|ult|ule|sgt|sge|slt|sle|false|oeq|ogt|oge|olt|ole|one|ord|ueq|une|uno|true)\b"

    cast_inst        = cast_op (__ flag)* __ typed_value __ ~r"to\b" __ type
    cast_op          = ~r"(trunc|zext|sext|fptrunc|fpext|fptoui|fptosi|uitofp|sitofp|ptrtoint|inttoptr|bitcast|addrspacecast)\b"

    binary_inst      = binop (__ flag)* __ typed_value _ "," _ value
    binop            = ~r"(add|fadd|sub|fsub|mul|fmul|udiv|sdiv|fdiv|urem|srem|frem|shl|lshr|ashr|and|or|xor)\b"
    flag             = ~r"(nuw|nsw|exact|disjoint|nneg|inbounds|nusw|samesign|fast|nnan|ninf|nsz|arcp|contract|afn|reassoc)\b"

    phi_inst         = ~r"phi\b" (__ flag)* __ type __ phi_pair (_ "," _ phi_pair)*
    phi_pair         = "[" _ value _ "," _ local_name _ "]"

    select_inst      = ~r"select\b" (__ flag)* __ typed_value _ "," _ typed_value _ "," _ typed_value

    gep_inst         = ~r"getelementptr\b" (__ flag)* __ type _ "," _ typed_value gep_index*
    gep_index        = _ "," _ (~r"inrange\b" __)? typed_value

    generic_inst     = opcode (__ flag)* generic_operands?
    opcode           = ~r"[a-z_][a-z_0-9]*\b"
    generic_operands = __ generic_operand (_ "," _ generic_operand)*
    generic_operand  = label_ref / typed_value / value

    _                = ~r"[ \t]*"
    __               = ~r"[ \t]+"
''')


# ═══════════════════════════════════════════════════════════════════════
#  Visitor result markers
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class _Ref:
    """An untyped value reference as written in the source."""

    text: str


class _Local(_Ref):
    pass


class _Global(_Ref):
    pass


@dataclass(frozen=True)
class _Literal(_Ref):
    kind: str = "expr"


@dataclass(frozen=True)
class _Operand:
    type: Type
    ref: Union[_Ref, _Operand]


@dataclass(frozen=True)
class _BlockRef:
    text: str


@dataclass(frozen=True)
class _Align:
    value: int


@dataclass(frozen=True)
class _AddrSpace:
    value: int


@dataclass(frozen=True)
class _PtrSuffix:
    address_space: int = 0


@dataclass(frozen=True)
class _FnParams:
    params: Tuple[Type, ...]
    var_arg: bool


@dataclass(frozen=True)
class _Marker:
    name: str


_ELLIPSIS = _Marker("...")
_VSCALE = _Marker("vscale")
_OPAQUE = _Marker("opaque")


@dataclass(frozen=True)
class _Word:
    text: str


@dataclass(frozen=True)
class _Callee:
    ref: _Ref


@dataclass(frozen=True)
class _PhiPair:
    ref: _Ref
    block: str


@dataclass(frozen=True)
class _Param:
    type: Type
    local: Optional[str]


@dataclass
class _Draft:
    """An instruction whose operands are not resolved yet."""

    opcode: str
    operands: List[Union[_Operand, _BlockRef]] = field(default_factory=list)
    type: Type = VOID
    alignment: Optional[int] = None
    allocated_type: Optional[Type] = None
    predicate: Optional[str] = None


@dataclass(frozen=True)
class _Assign:
    local: str


@dataclass(frozen=True)
class _Header:
    kind: str
    return_type: Type
    name: str
    params: Tuple[_Param, ...]
    var_arg: bool


@dataclass(frozen=True)
class _GlobalDef:
    name: str
    is_constant: bool
    value_type: Type
    initializer: Optional[str]


def _collect(children: Any, kinds) -> List[Any]:
    """Flatten visited children, keeping objects of *kinds* in source order."""
    found: List[Any] = []
    stack = [children]
    # explicit depth-first walk keeps textual order
    while stack:
        item = stack.pop()
        if isinstance(item, list):
            stack.extend(reversed(item))
        elif isinstance(item, kinds):
            found.append(item)
    return found


def _first(children: Any, kinds) -> Optional[Any]:
    found = _collect(children, kinds)
    return found[0] if found else None


def split_local(text: str) -> Tuple[Optional[str], Optional[int]]:
    """``%x`` → ``("x", None)``; ``%3`` → ``(None, 3)``; ``%"a b"`` → ``("a b", None)``."""
    body = text[1:] if text[:1] in "%@" else text
    if body.startswith('"') and body.endswith('"'):
        return body[1:-1], None
    if body.isdigit():
        return None, int(body)
    return body, None


def _local_key(text: str) -> str:
    name, slot = split_local(text)
    return f"%{name}" if name is not None else f"%{slot}"


# ═══════════════════════════════════════════════════════════════════════
#  Visitor
# ═══════════════════════════════════════════════════════════════════════

class _LLVisitor(NodeVisitor):
    """Turns parse trees of :data:`LL_GRAMMAR` into marker objects."""

    unwrapped_exceptions = (IRParseError,)

    def __init__(self, structs: Dict[str, IdentifiedStructType]) -> None:
        self.structs = structs

    def generic_visit(self, node, visited_children):
        return visited_children or node

    # ── types ────────────────────────────────────────────────────────

    def visit_type(self, node, children):
        base = _first(children[0], Type)
        for suffix in _collect(children[1], (_PtrSuffix, _FnParams)):
            if isinstance(suffix, _PtrSuffix):
                base = PointerType(suffix.address_space, pointee=base)
            else:
                base = FunctionType(base, suffix.params, suffix.var_arg)
        return base

    def visit_ptr_star(self, node, children):
        space = _first(children, _AddrSpace)
        return _PtrSuffix(space.value if space else 0)

    def visit_fn_param_types(self, node, children):
        return _FnParams(tuple(_collect(children, Type)), bool(_collect(children, _Marker)))

    def visit_packed_struct(self, node, children):
        return StructType(tuple(_collect(children, Type)), packed=True)

    def visit_struct_type(self, node, children):
        return StructType(tuple(_collect(children, Type)))

    def visit_vector_type(self, node, children):
        count = _first(children, int)
        element = _first(children, Type)
        scalable = _VSCALE in _collect(children, _Marker)
        return VectorType(count, element, scalable)

    def visit_vscale(self, node, children):
        return _VSCALE

    def visit_array_type(self, node, children):
        return ArrayType(_first(children, int), _first(children, Type))

    def visit_named_type(self, node, children):
        name, slot = split_local(node.text)
        key = name if name is not None else str(slot)
        if key not in self.structs:
            self.structs[key] = IdentifiedStructType(key)
        return self.structs[key]

    def visit_ptr_type(self, node, children):
        space = _first(children, _AddrSpace)
        return PointerType(space.value if space else 0)

    def visit_addrspace(self, node, children):
        return _AddrSpace(_first(children, int))

    def visit_int_type(self, node, children):
        return IntType(int(node.text[1:]))

    def visit_float_type(self, node, children):
        return FloatType(node.text)

    def visit_void_type(self, node, children):
        return VOID

    def visit_label_type(self, node, children):
        return LabelType()

    def visit_metadata_type(self, node, children):
        return MetadataType()

    def visit_token_type(self, node, children):
        return TokenType()

    def visit_integer(self, node, children):
        return int(node.text)

    def visit_ellipsis(self, node, children):
        return _ELLIPSIS

    def visit_opaque_kw(self, node, children):
        return _OPAQUE

    # ── values ───────────────────────────────────────────────────────

    def visit_local_name(self, node, children):
        return _Local(node.text)

    def visit_global_name(self, node, children):
        return _Global(node.text)

    def visit_float_lit(self, node, children):
        return _Literal(node.text, "float")

    def visit_int_lit(self, node, children):
        return _Literal(node.text, "int")

    def visit_keyword_const(self, node, children):
        return _Literal(node.text, "keyword")

    def visit_string_const(self, node, children):
        return _Literal(node.text, "string")

    def visit_aggregate_const(self, node, children):
        return _Literal(node.text, "aggregate")

    def visit_const_expr(self, node, children):
        return _Literal(node.text, "expr")

    def visit_metadata_ref(self, node, children):
        return _Literal(node.text, "metadata")

    def visit_value(self, node, children):
        return _first(children, _Ref)

    def visit_plain_typed_value(self, node, children):
        return _Operand(_first(children[0], Type), _first(children[3], _Ref))

    def visit_metadata_arg(self, node, children):
        inner = _first(children, _Operand)
        if inner is not None:
            return _Operand(MetadataType(), inner)
        return _Operand(MetadataType(), _first(children, _Ref))

    def visit_typed_value(self, node, children):
        return _first(children, _Operand)

    def visit_param_attrs(self, node, children):
        return node

    def visit_align_clause(self, node, children):
        return _Align(_first(children, int))

    def visit_label_ref(self, node, children):
        return _BlockRef(_first(children, _Local).text)

    # ── module-level pieces ──────────────────────────────────────────

    def visit_hdr_words(self, node, children):
        return node

    def visit_call_words(self, node, children):
        return node

    def visit_param(self, node, children):
        local = _first(children[2], _Local)
        return _Param(_first(children[0], Type), local.text if local else None)

    def visit_function_header(self, node, children):
        name = _first(children, _Global)
        params = tuple(_collect(children, _Param))
        return _Header(
            kind=node.text.split(None, 1)[0],
            return_type=_first(children[3], Type),
            name=split_local(name.text)[0] or name.text[1:],
            params=params,
            var_arg=_ELLIPSIS in _collect(children[9], _Marker),
        )

    def visit_type_def(self, node, children):
        name, slot = split_local(_first(children[0], _Local).text)
        key = name if name is not None else str(slot)
        struct = self.structs.setdefault(key, IdentifiedStructType(key))
        body = children[6]
        if _OPAQUE in _collect(body, _Marker):
            return struct
        ty = _first(body, Type)
        if not isinstance(ty, StructType):
            raise IRParseError(f"type definition of %{key} must be a struct, got '{ty}'")
        struct.set_body(ty.elements, ty.packed)
        return struct

    def visit_global_kind(self, node, children):
        return _Word(node.text)

    def visit_init(self, node, children):
        return _Word(node.text.strip())

    def visit_global_def(self, node, children):
        name = _first(children[0], _Global)
        kind = _first(children[5], _Word)
        init = _first(children[8], _Word)
        return _GlobalDef(
            name=split_local(name.text)[0] or name.text[1:],
            is_constant=kind.text == "constant",
            value_type=_first(children[7], Type),
            initializer=init.text if init else None,
        )

    # ── instructions ─────────────────────────────────────────────────

    def visit_assignment(self, node, children):
        return _Assign(_first(children, _Local).text)

    def visit_instruction(self, node, children):
        assign = _first(children, _Assign)
        draft = _first(children, _Draft)
        return (assign.local if assign else None), draft

    def visit_ret_inst(self, node, children):
        return _Draft("ret", _collect(children, _Operand))

    def visit_cond_br(self, node, children):
        cond = _first(children, _Operand)
        labels = _collect(children, _BlockRef)
        return _Draft("br", [cond, labels[0], labels[1]])

    def visit_uncond_br(self, node, children):
        return _Draft("br", _collect(children, _BlockRef))

    def visit_switch_inst(self, node, children):
        return _Draft("switch", _collect(children, (_Operand, _BlockRef)))

    def visit_alloca_inst(self, node, children):
        align = _first(children, _Align)
        return _Draft(
            "alloca",
            _collect(children, _Operand),
            PTR,
            alignment=align.value if align else None,
            allocated_type=_first(children, Type),
        )

    def visit_load_inst(self, node, children):
        align = _first(children, _Align)
        return _Draft(
            "load",
            _collect(children, _Operand),
            _first(children, Type),
            alignment=align.value if align else None,
        )

    def visit_store_inst(self, node, children):
        align = _first(children, _Align)
        return _Draft(
            "store",
            _collect(children, _Operand),
            VOID,
            alignment=align.value if align else None,
        )

    def visit_callee(self, node, children):
        return _Callee(_first(children, _Ref))

    def visit_call_inst(self, node, children):
        ty = _first(children, Type)
        callee = _first(children, _Callee)
        args = _collect(children, _Operand)
        ret = ty.return_type if isinstance(ty, FunctionType) else ty
        return _Draft("call", args + [_Operand(PTR, callee.ref)], ret)

    def visit_cmp_pred(self, node, children):
        return _Word(node.text)

    def visit_cmp_op(self, node, children):
        return _Marker(node.text)

    def visit_cmp_inst(self, node, children):
        lhs = _first(children, _Operand)
        rhs = _first(children, _Ref)
        result: Type = I1
        if isinstance(lhs.type, VectorType):
            result = VectorType(lhs.type.count, I1, lhs.type.scalable)
        return _Draft(
            _first(children, _Marker).name,
            [lhs, _Operand(lhs.type, rhs)],
            result,
            predicate=_first(children, _Word).text,
        )

    def visit_cast_op(self, node, children):
        return _Marker(node.text)

    def visit_cast_inst(self, node, children):
        return _Draft(
            _first(children, _Marker).name,
            _collect(children, _Operand),
            _first(children, Type),
        )

    def visit_binop(self, node, children):
        return _Marker(node.text)

    def visit_binary_inst(self, node, children):
        lhs = _first(children, _Operand)
        rhs = _first(children, _Ref)
        return _Draft(_first(children, _Marker).name, [lhs, _Operand(lhs.type, rhs)], lhs.type)

    def visit_phi_pair(self, node, children):
        return _PhiPair(_first(children, _Ref), _collect(children, _Local)[-1].text)

    def visit_phi_inst(self, node, children):
        ty = _first(children, Type)
        operands: List[Union[_Operand, _BlockRef]] = []
        for pair in _collect(children, _PhiPair):
            operands.append(_Operand(ty, pair.ref))
            operands.append(_BlockRef(pair.block))
        return _Draft("phi", operands, ty)

    def visit_select_inst(self, node, children):
        ops = _collect(children, _Operand)
        return _Draft("select", ops, ops[1].type)

    def visit_gep_inst(self, node, children):
        return _Draft("getelementptr", _collect(children, _Operand), PTR)

    def visit_opcode(self, node, children):
        return _Marker(node.text)

    def visit_generic_inst(self, node, children):
        opcode = _first(children, _Marker).name
        # untyped operands of the generic form are indices, not values
        operands = _collect(children, (_Operand, _BlockRef))
        ty: Type = UnknownType()
        if opcode in ("fneg", "freeze") and operands and isinstance(operands[0], _Operand):
            ty = operands[0].type
        return _Draft(opcode, operands, ty)

    def visit_generic_operand(self, node, children):
        return _first(children, (_BlockRef, _Operand))


# ═══════════════════════════════════════════════════════════════════════
#  Line scanning
# ═══════════════════════════════════════════════════════════════════════

_MODULE_ID_RE = re.compile(r"^;\s*ModuleID\s*=\s*'([^']*)'")
_SOURCE_RE = re.compile(r'^source_filename\s*=\s*"([^"]*)"')
_LAYOUT_RE = re.compile(r'^target\s+datalayout\s*=\s*"([^"]*)"')
_TRIPLE_RE = re.compile(r'^target\s+triple\s*=\s*"([^"]*)"')
_DIRECTIVES = (
    (_SOURCE_RE, "source_filename"),
    (_LAYOUT_RE, "data_layout"),
    (_TRIPLE_RE, "triple"),
)
_LABEL_RE = re.compile(r'^("[^"]*"|[-a-zA-Z$._0-9]+):\s*$')
_METADATA_TAIL_RE = re.compile(r"(?:,\s*![-a-zA-Z0-9_.]+\s+!\S+)+\s*$")
_FALLBACK_RE = re.compile(r"^\s*(?:(%\S+)\s*=\s*)?(?:(?:tail|musttail|notail)\s+)?([a-z_][a-z_0-9]*)")
_SKIPPED_PREFIXES = ("attributes ", "!", "$", "uselistorder", "module asm")
_ALIAS_RE = re.compile(r"^@\S+\s*=.*\b(alias|ifunc)\b")


def strip_comment(line: str) -> str:
    """Drop a ``;`` comment, ignoring semicolons inside string literals."""
    in_string = False
    for idx, ch in enumerate(line):
        if ch == '"':
            in_string = not in_string
        elif ch == ";" and not in_string:
            return line[:idx].rstrip()
    return line.rstrip()


def _depth(line: str) -> int:
    depth = 0
    in_string = False
    for ch in line:
        if ch == '"':
            in_string = not in_string
        elif not in_string:
            if ch in "[(":
                depth += 1
            elif ch in "])":
                depth -= 1
    return depth


@dataclass
class _Line:
    number: int
    text: str


def _logical_lines(text: str) -> Tuple[List[_Line], Optional[str]]:
    """Comment-free, non-empty logical lines (bracketed lists joined)."""
    module_id = None
    result: List[_Line] = []
    pending: Optional[_Line] = None
    for number, raw in enumerate(text.splitlines(), 1):
        if module_id is None:
            m = _MODULE_ID_RE.match(raw.strip())
            if m:
                module_id = m.group(1)
        line = strip_comment(raw).strip()
        if not line:
            continue
        if pending is not None:
            pending.text = f"{pending.text} {line}"
            if _depth(pending.text) <= 0:
                result.append(pending)
                pending = None
            continue
        if _depth(line) > 0:
            pending = _Line(number, line)
            continue
        result.append(_Line(number, line))
    if pending is not None:
        raise IRParseError("unterminated bracketed list", pending.number)
    return result, module_id


# ═══════════════════════════════════════════════════════════════════════
#  Loader
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class _FunctionItem:
    header_line: _Line
    body: Optional[List[_Line]] = None
    function: Optional[Function] = None


class _Loader:
    """Builds a :class:`Program` from logical lines."""

    def __init__(self, name: Optional[str]) -> None:
        self.name = name
        self.structs: Dict[str, IdentifiedStructType] = {}
        self.visitor = _LLVisitor(self.structs)
        self.program = Program()

    # ── parsing helpers ──────────────────────────────────────────────

    def _parse(self, rule: str, line: _Line, text: Optional[str] = None):
        source = text if text is not None else line.text
        try:
            tree = LL_GRAMMAR[rule].parse(source)
            return self.visitor.visit(tree)
        except IRParseError as exc:
            if not exc.line:
                exc.line = line.number
            raise
        except VisitationError as exc:
            raise IRParseError(f"cannot read {rule.replace('_', ' ')}: {exc}", line.number) from exc
        except ParseError as exc:
            raise IRParseError(
                f"cannot read {rule.replace('_', ' ')}: {source!r}",
                line.number,
                exc.column(),
            ) from exc

    # ── driver ───────────────────────────────────────────────────────

    def load(self, text: str) -> Program:
        lines, module_id = _logical_lines(text)
        items: List[Union[_Line, _FunctionItem]] = []
        type_defs: List[_Line] = []

        idx = 0
        while idx < len(lines):
            line = lines[idx]
            idx += 1
            t = line.text
            if self._directive(t):
                continue
            if t.startswith("%"):
                type_defs.append(line)
            elif t.startswith("@"):
                items.append(line)
            elif t.startswith("declare"):
                items.append(_FunctionItem(line))
            elif t.startswith("define"):
                item = _FunctionItem(line, body=[])
                while not item.header_line.text.endswith("{"):
                    if idx >= len(lines):
                        raise IRParseError("function header without body", line.number)
                    item.header_line = _Line(line.number, f"{item.header_line.text} {lines[idx].text}")
                    idx += 1
                while True:
                    if idx >= len(lines):
                        raise IRParseError("unterminated function body", line.number)
                    body_line = lines[idx]
                    idx += 1
                    if body_line.text == "}":
                        break
                    item.body.append(body_line)
                items.append(item)
            elif t.startswith(_SKIPPED_PREFIXES):
                _log.debug("line %d: skipping %r", line.number, t[:40])
            else:
                raise IRParseError(f"unexpected top-level text: {t!r}", line.number)

        self.program.name = module_id or self.program.source_filename or (self.name or "")

        for line in type_defs:
            self._parse("type_def", line)

        for item in items:
            if isinstance(item, _FunctionItem):
                item.function = self._declare(item)
            else:
                self._global(item)

        for item in items:
            if isinstance(item, _FunctionItem) and item.body is not None:
                _FunctionBodyReader(self, item.function).read(item.body)
        return self.program

    def _directive(self, text: str) -> bool:
        for pattern, attr in _DIRECTIVES:
            m = pattern.match(text)
            if m:
                setattr(self.program, attr, m.group(1))
                return True
        return False

    def _declare(self, item: _FunctionItem) -> Function:
        text = item.header_line.text
        if text.endswith("{"):
            text = text[:-1].rstrip()
        header: _Header = self._parse("function_header", item.header_line, text)
        if header.kind != "define" and item.body is not None:
            raise IRParseError("function body after a declaration", item.header_line.number)
        fn = Function(header.name, header.return_type, var_arg=header.var_arg)
        for p in header.params:
            name, slot = split_local(p.local) if p.local else (None, None)
            param = fn.add_param(Parameter(p.type, name))
            if slot is not None:
                param.slot = slot
                fn.reserve_slot(slot)
            elif name is None and item.body is not None:
                param.slot = fn.next_slot()
        return self.program.add_function(fn)

    def _global(self, line: _Line) -> None:
        if _ALIAS_RE.match(line.text):
            _log.debug("line %d: skipping alias %r", line.number, line.text[:40])
            return
        gdef: _GlobalDef = self._parse("global_def", line)
        self.program.add_global(GlobalVariable(
            gdef.name,
            gdef.value_type,
            initializer=gdef.initializer,
            is_constant=gdef.is_constant,
            text=line.text,
        ))


class _FunctionBodyReader:
    """Reads one function body, then resolves operand references."""

    def __init__(self, loader: _Loader, fn: Function) -> None:
        self.loader = loader
        self.program = loader.program
        self.fn = fn
        self.symbols: Dict[str, Value] = {}
        self.pending: List[Tuple[Instruction, _Draft, int]] = []
        for param in fn.params:
            self.symbols[param.ref] = param

    def _define(self, key: str, value: Value, line: int) -> None:
        if key in self.symbols:
            raise IRParseError(f"redefinition of '{key}'", line)
        self.symbols[key] = value

    def _new_block(self, label: Optional[str], line: int) -> BasicBlock:
        block = BasicBlock()
        if label is None:
            block.slot = self.fn.next_slot()
        else:
            name, slot = split_local("%" + label)
            block.name = name
            if slot is not None:
                block.slot = slot
                self.fn.reserve_slot(slot)
        self.fn.append_block(block)
        self._define(block.ref, block, line)
        return block

    def read(self, lines: List[_Line]) -> None:
        block: Optional[BasicBlock] = None
        for line in lines:
            m = _LABEL_RE.match(line.text)
            if m:
                block = self._new_block(m.group(1), line.number)
                continue
            if block is None:
                block = self._new_block(None, line.number)
            block.append(self._instruction(line))
        if not self.fn.blocks:
            raise IRParseError(f"function @{self.fn.name} has an empty body")
        for inst, draft, number in self.pending:
            inst.operands = [self._resolve(op, number) for op in draft.operands]

    def _instruction(self, line: _Line) -> Instruction:
        parse_text = _METADATA_TAIL_RE.sub("", line.text)
        try:
            local, draft = self.loader._parse("instruction", line, parse_text)
        except IRParseError as exc:
            _log.debug("line %d: keeping opaque instruction (%s)", line.number, exc)
            local, draft = self._opaque(line)
        name, slot = split_local(local) if local else (None, None)
        ty = draft.type if local else VOID
        if local and ty.is_void:
            ty = UnknownType()
        inst = Instruction(
            draft.opcode,
            (),
            ty,
            name,
            alignment=draft.alignment,
            allocated_type=draft.allocated_type,
            predicate=draft.predicate,
            text=line.text,
        )
        if slot is not None:
            inst.slot = slot
            self.fn.reserve_slot(slot)
        if local:
            self._define(inst.ref, inst, line.number)
        self.pending.append((inst, draft, line.number))
        return inst

    @staticmethod
    def _opaque(line: _Line) -> Tuple[Optional[str], _Draft]:
        m = _FALLBACK_RE.match(line.text)
        if not m:
            raise IRParseError(f"cannot read instruction: {line.text!r}", line.number)
        return m.group(1), _Draft(m.group(2), [], UnknownType())

    def _resolve(self, op: Union[_Operand, _BlockRef], line: int) -> Value:
        if isinstance(op, _BlockRef):
            target = self.symbols.get(_local_key(op.text))
            if not isinstance(target, BasicBlock):
                raise IRParseError(f"use of undefined label '{op.text}'", line)
            return target
        ref = op.ref
        if isinstance(ref, _Operand):
            return MetadataAsValue(self._resolve(ref, line))
        if isinstance(ref, _Local):
            value = self.symbols.get(_local_key(ref.text))
            if value is None:
                raise IRParseError(f"use of undefined value '{ref.text}'", line)
            if isinstance(value.type, UnknownType) and _is_value_type(op.type):
                # Opaque results take the type written at their first typed use.
                _log.debug("line %d: %s inferred as %s", line, ref.text, op.type)
                value.type = op.type
            return value
        if isinstance(ref, _Global):
            name = split_local(ref.text)[0] or ref.text[1:]
            value = self.program.get_function(name) or self.program.get_global(name)
            if value is None:
                raise IRParseError(f"use of undefined global '{ref.text}'", line)
            return value
        return _make_constant(op.type, ref)


def _is_value_type(ty: Optional[Type]) -> bool:
    return ty is not None and not isinstance(ty, (UnknownType, MetadataType)) and not ty.is_void


def _make_constant(ty: Type, lit: _Literal) -> Value:
    kind, text = lit.kind, lit.text
    if isinstance(ty, IntType) and kind == "int":
        return ConstantInt(ty, int(text))
    if isinstance(ty, IntType) and text in ("true", "false"):
        return ConstantInt(ty, 1 if text == "true" else 0)
    if text == "null":
        return ConstantPointerNull(ty)
    if text in ("undef", "poison"):
        return UndefValue(ty, poison=text == "poison")
    if kind == "float" or (isinstance(ty, FloatType) and kind == "int"):
        return ConstantFP(ty, text)
    return Constant(ty, text)


# ═══════════════════════════════════════════════════════════════════════
#  Public API
# ═══════════════════════════════════════════════════════════════════════

def parse_assembly(text: str, name: Optional[str] = None) -> Program:
    """Parse textual IR into a :class:`Program`.

    The module is named after its ``ModuleID`` comment, else its
    ``source_filename``, else *name*.
    """
    return _Loader(name).load(text)


def parse_file(path: Union[str, Path]) -> Program:
    p = Path(path)
    _log.info("reading %s", p)
    raw = p.read_bytes()
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        line = raw.count(b"\n", 0, exc.start) + 1
        raise IRParseError(f"{p}: invalid UTF-8 ({exc.reason})", line) from exc
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    return parse_assembly(text, name=str(p))


__all__ = [
    "LL_GRAMMAR",
    "parse_assembly",
    "parse_file",
    "split_local",
    "strip_comment",
]
