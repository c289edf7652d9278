"""
irprobe/renderer.py
═══════════════════

Text templates for the inspection report.

Each classified instruction is rendered by the template registered for its
:class:`~irprobe.classifier.InstKind`; the renderer also produces the
framing around instructions (module banner, function headers, block headers
and separators, completion banner).  Every method returns one *fragment*:
a block of complete lines ending in ``"\\n"``.  Given the same IR and data
layout the output is byte-for-byte reproducible.

Layout
──────
::

    ╔════════════════════════ ... ╗
    ║   🔍 LLVM MODULE ANALYSIS    ║
    ╚════════════════════════ ... ╝
    📁 Module: demo.c
    ══════════════════════════ ...

    🔧 Function Definition: main()
       ↳ Return Type: i32
       ...
       ┌─ Basic Block #1: entry
       │  Instructions: 1
       │
       │  [1] ret i32 0
       │      🔙 Return Statement
       │         Type: i32
       │         Constant: 0
       │
       └───────────────────── ...

    ══════════════════════════ ...

    ✅ Analysis Complete!
    ═══════════════════════════ ...
"""

from __future__ import annotations

from typing import Callable, Dict, List, Optional

from .classifier import (
    BinaryArithmetic,
    Branch,
    Call,
    Cast,
    Classified,
    Compare,
    CompareCategory,
    GenericOperator,
    InstKind,
    Load,
    Return,
    StackAllocation,
    Store,
    Unknown,
)
from .datalayout import DataLayout
from .errors import MalformedIRError
from .values import BasicBlock, Function, Parameter, Program

# ═════════════════════════════════════════════════════════════════════════
#  FRAMING CONSTANTS
# ═════════════════════════════════════════════════════════════════════════

BANNER_TITLE = "🔍 LLVM MODULE ANALYSIS"
BOX_TOP = "╔" + "═" * 78 + "╗"
BOX_TITLE = "║" + " " * 27 + BANNER_TITLE + " " * 28 + "║"
BOX_BOTTOM = "╚" + "═" * 78 + "╝"
MODULE_RULE = "═" * 78
CLOSING_RULE = "═" * 79
COMPLETION_MARK = "✅ Analysis Complete!"

INTERIOR_BLOCK_END = "   ├" + "─" * 53
FINAL_BLOCK_END = "   └" + "─" * 53

_GUTTER = "   │"
_HEAD = _GUTTER + "      "
_FIELD = _GUTTER + "         "
_SIG = _GUTTER + "           • "

UNNAMED_TEMPORARY = "(unnamed temporary)"


def _fragment(lines: List[str]) -> str:
    return "\n".join(lines) + "\n"


def _param_line(param: Parameter, indent: str = "     • ") -> str:
    return f"{indent}{param.display_name} : {param.type}"


# ═════════════════════════════════════════════════════════════════════════
#  TEMPLATE REGISTRY
# ═════════════════════════════════════════════════════════════════════════

Template = Callable[["Renderer", Classified], List[str]]

_TEMPLATES: Dict[InstKind, Template] = {}


def _template(kind: InstKind):
    """Decorator: register the detail template for *kind*."""
    def deco(fn: Template) -> Template:
        _TEMPLATES[kind] = fn
        return fn
    return deco


@_template(InstKind.BINARY_ARITHMETIC)
def _render_binary(r: Renderer, c: BinaryArithmetic) -> List[str]:
    return [
        f"{_HEAD}🔧 Binary Operation: {c.opcode}",
        f"{_FIELD}Operand 1: {c.lhs}",
        f"{_FIELD}Operand 2: {c.rhs}",
    ]


@_template(InstKind.STACK_ALLOCATION)
def _render_alloca(r: Renderer, c: StackAllocation) -> List[str]:
    dl = r.data_layout
    try:
        size = dl.allocation_size(c.allocated_type, c.element_count)
        align = c.alignment if c.alignment is not None else dl.pref_alignment(c.allocated_type)
    except MalformedIRError as exc:
        raise MalformedIRError(exc.message, c.instruction) from exc
    return [
        f"{_HEAD}📦 Stack Allocation (alloca)",
        f"{_FIELD}Type: {c.allocated_type}",
        f"{_FIELD}Size: {size} bytes",
        f"{_FIELD}Alignment: {align} bytes",
    ]


@_template(InstKind.LOAD)
def _render_load(r: Renderer, c: Load) -> List[str]:
    align = c.alignment if c.alignment is not None else r.data_layout.abi_alignment(c.result_type)
    return [
        f"{_HEAD}📥 Load from Memory",
        f"{_FIELD}Source: {c.address}",
        f"{_FIELD}Type: {c.result_type}",
        f"{_FIELD}Alignment: {align} bytes",
    ]


@_template(InstKind.STORE)
def _render_store(r: Renderer, c: Store) -> List[str]:
    align = c.alignment if c.alignment is not None else r.data_layout.abi_alignment(c.value.type)
    return [
        f"{_HEAD}📤 Store to Memory",
        f"{_FIELD}Value: {c.value}",
        f"{_FIELD}Destination: {c.destination}",
        f"{_FIELD}Alignment: {align} bytes",
    ]


@_template(InstKind.CALL)
def _render_call(r: Renderer, c: Call) -> List[str]:
    if not c.is_direct:
        return [
            f"{_HEAD}📞 Indirect Function Call",
            f"{_FIELD}Target: {c.target}",
        ]
    lines = [
        f"{_HEAD}📞 Function Call: {c.callee_name}()",
        f"{_FIELD}Arguments: {len(c.arguments)}",
    ]
    for num, arg in enumerate(c.arguments, 1):
        lines.append(f"{_FIELD}Arg {num}: {arg}")
    lines.append(f"{_FIELD}Target Function Signature:")
    lines.extend(_param_line(p, _SIG) for p in c.parameters)
    return lines


@_template(InstKind.BRANCH)
def _render_branch(r: Renderer, c: Branch) -> List[str]:
    if c.is_conditional:
        return [
            f"{_HEAD}🔀 Conditional Branch",
            f"{_FIELD}Condition: {c.condition}",
            f"{_FIELD}True Block: {c.true_target.display_name}",
            f"{_FIELD}False Block: {c.false_target.display_name}",
        ]
    return [
        f"{_HEAD}➡️  Unconditional Branch",
        f"{_FIELD}Target: {c.true_target.display_name}",
    ]


@_template(InstKind.RETURN)
def _render_return(r: Renderer, c: Return) -> List[str]:
    if c.is_void:
        return [f"{_HEAD}🔙 Return Statement (void)"]
    lines = [
        f"{_HEAD}🔙 Return Statement",
        f"{_FIELD}Type: {c.result_type}",
    ]
    if c.value_name is not None:
        lines.append(f"{_FIELD}Value: {c.value_name}")
    elif c.source is not None:
        lines.append(f"{_FIELD}Value: {UNNAMED_TEMPORARY}")
        lines.append(f"{_FIELD}Source: {c.source}")
    elif c.constant is not None:
        lines.append(f"{_FIELD}Constant: {c.constant}")
    else:
        lines.append(f"{_FIELD}Value: {UNNAMED_TEMPORARY}")
    return lines


@_template(InstKind.COMPARE)
def _render_compare(r: Renderer, c: Compare) -> List[str]:
    lines = [
        f"{_HEAD}⚖️  Comparison Instruction",
        f"{_FIELD}Type: {c.category.value}",
    ]
    if c.category is CompareCategory.INTEGER:
        lines.append(f"{_FIELD}Predicate: {c.predicate_name}")
    lines.append(f"{_FIELD}Left Operand: {c.lhs}")
    lines.append(f"{_FIELD}Right Operand: {c.rhs}")
    return lines


@_template(InstKind.CAST)
def _render_cast(r: Renderer, c: Cast) -> List[str]:
    return [
        f"{_HEAD}🔄 Cast Operation: {c.opcode}",
        f"{_FIELD}From: {c.source_type}",
        f"{_FIELD}To: {c.dest_type}",
        f"{_FIELD}Source: {c.source}",
    ]


@_template(InstKind.GENERIC_OPERATOR)
def _render_operator(r: Renderer, c: GenericOperator) -> List[str]:
    lines = [
        f"{_HEAD}⚙️  Other Operator: {c.opcode}",
        f"{_FIELD}Operands: {len(c.operands)}",
    ]
    for idx, op in enumerate(c.operands):
        lines.append(f"{_FIELD}Op[{idx}]: {op}")
    return lines


@_template(InstKind.UNKNOWN)
def _render_unknown(r: Renderer, c: Unknown) -> List[str]:
    return [
        f"{_HEAD}❓ Unknown Instruction Type",
        f"{_FIELD}Opcode: {c.opcode}",
    ]


# ═════════════════════════════════════════════════════════════════════════
#  RENDERER
# ═════════════════════════════════════════════════════════════════════════

class Renderer:
    """Produces report fragments.  Holds the data layout used for sizes."""

    def __init__(self, data_layout: Optional[DataLayout] = None) -> None:
        self.data_layout = data_layout if data_layout is not None else DataLayout.default()

    # ── module framing ───────────────────────────────────────────────

    def module_header(self, program: Program) -> str:
        return _fragment([
            "",
            BOX_TOP,
            BOX_TITLE,
            BOX_BOTTOM,
            f"📁 Module: {program.name}",
            MODULE_RULE,
            "",
        ])

    def module_footer(self, program: Program) -> str:
        return _fragment([COMPLETION_MARK, CLOSING_RULE, ""])

    # ── functions ────────────────────────────────────────────────────

    def function_declaration(self, fn: Function) -> str:
        lines = [
            f"📋 External Function Declaration: {fn.name}()",
            f"   ↳ Return Type: {fn.return_type}",
            f"   ↳ Parameters: {fn.arg_size}",
        ]
        lines.extend(_param_line(p) for p in fn.params)
        lines.append("")
        return _fragment(lines)

    def function_header(self, fn: Function) -> str:
        lines = [
            f"🔧 Function Definition: {fn.name}()",
            f"   ↳ Return Type: {fn.return_type}",
            f"   ↳ Parameters: {fn.arg_size}",
            f"   ↳ Basic Blocks: {len(fn.blocks)}",
        ]
        if fn.params:
            lines.append("   ↳ Function Arguments:")
            lines.extend(_param_line(p) for p in fn.params)
        lines.append("")
        return _fragment(lines)

    def function_footer(self, fn: Function) -> str:
        return _fragment(["", MODULE_RULE, ""])

    # ── blocks ───────────────────────────────────────────────────────

    def block_header(self, block: BasicBlock, index: int) -> str:
        return _fragment([
            f"   ┌─ Basic Block #{index}: {block.display_name}",
            f"{_GUTTER}  Instructions: {len(block)}",
            _GUTTER,
        ])

    def block_footer(self, block: BasicBlock, is_last: bool) -> str:
        return _fragment([FINAL_BLOCK_END if is_last else INTERIOR_BLOCK_END])

    # ── instructions ─────────────────────────────────────────────────

    def instruction(self, classified: Classified, index: int) -> str:
        template = _TEMPLATES[classified.kind]
        lines = [f"{_GUTTER}  [{index}] {classified.instruction.text}"]
        lines.extend(template(self, classified))
        lines.append(_GUTTER)
        return _fragment(lines)


__all__ = [
    "Renderer",
    "BANNER_TITLE",
    "BOX_TOP",
    "BOX_TITLE",
    "BOX_BOTTOM",
    "MODULE_RULE",
    "CLOSING_RULE",
    "COMPLETION_MARK",
    "INTERIOR_BLOCK_END",
    "FINAL_BLOCK_END",
    "UNNAMED_TEMPORARY",
]
