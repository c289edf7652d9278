# tests/test_renderer.py
"""
Tests for report templates and framing.
"""

import pytest

from irprobe.builder import IRBuilder, add_function, append_basic_block
from irprobe.classifier import classify
from irprobe.datalayout import DataLayout
from irprobe.errors import MalformedIRError
from irprobe.irtypes import (
    ArrayType,
    DOUBLE,
    FunctionType,
    I1,
    I8,
    I32,
    I64,
    IdentifiedStructType,
    PTR,
    VOID,
)
from irprobe.renderer import (
    BANNER_TITLE,
    BOX_BOTTOM,
    BOX_TITLE,
    BOX_TOP,
    CLOSING_RULE,
    COMPLETION_MARK,
    FINAL_BLOCK_END,
    INTERIOR_BLOCK_END,
    MODULE_RULE,
    UNNAMED_TEMPORARY,
    Renderer,
)
from irprobe.values import ConstantFP, ConstantInt, Instruction, Program
from irprobe.walker import inspect_program


def _render(inst, dl=None):
    return Renderer(dl).instruction(classify(inst), 1).splitlines()


@pytest.fixture
def fb():
    prog = Program("r")
    fn = add_function(prog, "f", I32, [I32, I32, PTR, I1], ["a", "b", "p", "c"])
    return fn, IRBuilder(append_basic_block(fn, "entry"))


class TestFraming:

    def test_banner_geometry(self):
        assert len(BOX_TOP) == 80
        assert len(BOX_BOTTOM) == 80
        assert BOX_TITLE.startswith("║" + " " * 27 + BANNER_TITLE)
        assert BOX_TITLE.endswith(" " * 28 + "║")
        assert MODULE_RULE == "═" * 78
        assert CLOSING_RULE == "═" * 79

    def test_block_separators(self):
        assert INTERIOR_BLOCK_END == "   ├" + "─" * 53
        assert FINAL_BLOCK_END == "   └" + "─" * 53

    def test_module_header(self):
        lines = Renderer().module_header(Program("demo.c")).split("\n")
        assert lines == ["", BOX_TOP, BOX_TITLE, BOX_BOTTOM, "📁 Module: demo.c", MODULE_RULE, "", ""]

    def test_module_footer(self):
        assert Renderer().module_footer(Program("x")) == f"{COMPLETION_MARK}\n{CLOSING_RULE}\n\n"

    def test_fragments_end_with_newline(self, fb):
        fn, b = fb
        r = Renderer()
        inst = b.ret(fn.params[0])
        for fragment in (
            r.function_header(fn),
            r.block_header(fn.blocks[0], 1),
            r.instruction(classify(inst), 1),
            r.block_footer(fn.blocks[0], True),
            r.function_footer(fn),
        ):
            assert fragment.endswith("\n")

    def test_function_declaration(self):
        prog = Program("d")
        fn = add_function(prog, "puts", I32, [PTR])
        assert Renderer().function_declaration(fn).splitlines() == [
            "📋 External Function Declaration: puts()",
            "   ↳ Return Type: i32",
            "   ↳ Parameters: 1",
            "     • unnamed : ptr",
            "",
        ]

    def test_function_header_lists_arguments(self, fb):
        fn, _ = fb
        lines = Renderer().function_header(fn).splitlines()
        assert lines[:5] == [
            "🔧 Function Definition: f()",
            "   ↳ Return Type: i32",
            "   ↳ Parameters: 4",
            "   ↳ Basic Blocks: 1",
            "   ↳ Function Arguments:",
        ]
        assert lines[5:9] == [
            "     • a : i32",
            "     • b : i32",
            "     • p : ptr",
            "     • c : i1",
        ]

    def test_unnamed_block_header(self):
        prog = Program("u")
        fn = add_function(prog, "g")
        block = append_basic_block(fn)
        assert Renderer().block_header(block, 1).splitlines()[0] == "   ┌─ Basic Block #1: unnamed"


class TestScenarios:

    def test_void_definition(self, void_main, sink):
        inspect_program(void_main, sink=sink)
        assert sink.lines() == [
            "",
            BOX_TOP,
            BOX_TITLE,
            BOX_BOTTOM,
            "📁 Module: scenario_a",
            MODULE_RULE,
            "",
            "🔧 Function Definition: main()",
            "   ↳ Return Type: void",
            "   ↳ Parameters: 0",
            "   ↳ Basic Blocks: 1",
            "",
            "   ┌─ Basic Block #1: entry",
            "   │  Instructions: 1",
            "   │",
            "   │  [1] ret void",
            "   │      🔙 Return Statement (void)",
            "   │",
            FINAL_BLOCK_END,
            "",
            MODULE_RULE,
            "",
            COMPLETION_MARK,
            CLOSING_RULE,
            "",
        ]

    def test_direct_call(self, call_program, sink):
        inspect_program(call_program, sink=sink)
        lines = sink.lines()
        start = lines.index("   │  [1] %r = call i32 @add(i32 1, i32 2)")
        assert lines[start + 1:start + 8] == [
            "   │      📞 Function Call: add()",
            "   │         Arguments: 2",
            "   │         Arg 1: i32 1",
            "   │         Arg 2: i32 2",
            "   │         Target Function Signature:",
            "   │           • a : i32",
            "   │           • b : i32",
        ]

    def test_conditional_branch(self, branch_program, sink):
        inspect_program(branch_program, sink=sink)
        lines = sink.lines()
        start = lines.index("   │  [1] br i1 %c, label %then, label %else")
        assert lines[start + 1:start + 5] == [
            "   │      🔀 Conditional Branch",
            "   │         Condition: i1 %c",
            "   │         True Block: then",
            "   │         False Block: else",
        ]

    def test_constant_return(self, const_return, sink):
        inspect_program(const_return, sink=sink)
        text = sink.getvalue()
        assert "   │         Constant: 42\n" in text
        assert UNNAMED_TEMPORARY not in text


class TestInstructionTemplates:

    def test_binary(self, fb):
        fn, b = fb
        assert _render(b.add(fn.params[0], fn.params[1], name="s")) == [
            "   │  [1] %s = add i32 %a, %b",
            "   │      🔧 Binary Operation: add",
            "   │         Operand 1: i32 %a",
            "   │         Operand 2: i32 %b",
            "   │",
        ]

    def test_alloca_explicit_alignment(self, fb):
        _, b = fb
        lines = _render(b.alloca(I32, align=4, name="x"))
        assert lines[1:5] == [
            "   │      📦 Stack Allocation (alloca)",
            "   │         Type: i32",
            "   │         Size: 4 bytes",
            "   │         Alignment: 4 bytes",
        ]

    def test_alloca_defaults_to_preferred_alignment(self, fb):
        _, b = fb
        lines = _render(b.alloca(I64, name="x"))
        assert "   │         Size: 8 bytes" in lines
        assert "   │         Alignment: 8 bytes" in lines

    def test_alloca_array_and_count(self, fb):
        _, b = fb
        assert "   │         Size: 16 bytes" in _render(b.alloca(ArrayType(4, I32)))
        assert "   │         Size: 12 bytes" in _render(b.alloca(I32, count=ConstantInt(I32, 3)))

    def test_alloca_size_follows_data_layout(self, fb):
        _, b = fb
        inst = b.alloca(PTR, name="pp")
        assert "   │         Size: 8 bytes" in _render(inst)
        assert "   │         Size: 4 bytes" in _render(inst, DataLayout.parse("p:32:32"))

    def test_alloca_of_opaque_struct_is_fatal(self, fb):
        _, b = fb
        inst = b.alloca(IdentifiedStructType("opaque.T"), name="o")
        with pytest.raises(MalformedIRError) as info:
            _render(inst)
        assert info.value.instruction is inst

    def test_alloca_with_dynamic_count_is_fatal(self, fb):
        fn, b = fb
        with pytest.raises(MalformedIRError):
            _render(b.alloca(I32, count=fn.params[0]))

    def test_load(self, fb):
        fn, b = fb
        assert _render(b.load(fn.params[2], I32, align=4, name="v"))[1:5] == [
            "   │      📥 Load from Memory",
            "   │         Source: ptr %p",
            "   │         Type: i32",
            "   │         Alignment: 4 bytes",
        ]

    def test_load_defaults_to_abi_alignment(self, fb):
        fn, b = fb
        assert "   │         Alignment: 4 bytes" in _render(b.load(fn.params[2], I64))

    def test_store(self, fb):
        fn, b = fb
        assert _render(b.store(fn.params[0], fn.params[2], align=4))[1:5] == [
            "   │      📤 Store to Memory",
            "   │         Value: i32 %a",
            "   │         Destination: ptr %p",
            "   │         Alignment: 4 bytes",
        ]

    def test_indirect_call(self, fb):
        fn, b = fb
        inst = b.call(fn.params[2], [fn.params[0]], function_type=FunctionType(VOID, (I32,)))
        assert _render(inst)[:4] == [
            "   │  [1] call void %p(i32 %a)",
            "   │      📞 Indirect Function Call",
            "   │         Target: ptr %p",
            "   │",
        ]

    def test_call_to_unnamed_parameters(self):
        prog = Program("c")
        callee = add_function(prog, "ext", VOID, [I32])
        main = add_function(prog, "main")
        b = IRBuilder(append_basic_block(main, "entry"))
        lines = _render(b.call(callee, [ConstantInt(I32, 5)]))
        assert "   │           • unnamed : i32" in lines

    def test_vararg_call_text(self):
        prog = Program("v")
        printf = add_function(prog, "printf", I32, [PTR], var_arg=True)
        main = add_function(prog, "main")
        b = IRBuilder(append_basic_block(main, "entry"))
        inst = b.call(printf, [printf], name="n")
        assert inst.text == "%n = call i32 (ptr, ...) @printf(ptr @printf)"

    def test_unconditional_branch(self, fb):
        fn, b = fb
        target = append_basic_block(fn, "next")
        assert _render(b.branch(target))[1:3] == [
            "   │      ➡️  Unconditional Branch",
            "   │         Target: next",
        ]

    def test_branch_to_unnamed_block(self, fb):
        fn, b = fb
        t = append_basic_block(fn)
        e = append_basic_block(fn, "e")
        lines = _render(b.cbranch(fn.params[3], t, e))
        assert "   │         True Block: unnamed" in lines
        assert "   │         False Block: e" in lines

    def test_return_named(self, fb):
        fn, b = fb
        assert _render(b.ret(fn.params[1]))[1:4] == [
            "   │      🔙 Return Statement",
            "   │         Type: i32",
            "   │         Value: b",
        ]

    def test_return_unnamed_temporary(self, fb):
        fn, b = fb
        tmp = b.add(fn.params[0], fn.params[1])
        assert _render(b.ret(tmp))[1:5] == [
            "   │      🔙 Return Statement",
            "   │         Type: i32",
            f"   │         Value: {UNNAMED_TEMPORARY}",
            "   │         Source: %0 = add i32 %a, %b",
        ]

    def test_return_negative_constant(self, fb):
        _, b = fb
        assert "   │         Constant: -1" in _render(b.ret(ConstantInt(I8, 255)))

    def test_integer_compare(self, fb):
        fn, b = fb
        assert _render(b.icmp("slt", fn.params[0], fn.params[1], name="lt"))[1:6] == [
            "   │      ⚖️  Comparison Instruction",
            "   │         Type: Integer Comparison",
            "   │         Predicate: Signed Less Than (<)",
            "   │         Left Operand: i32 %a",
            "   │         Right Operand: i32 %b",
        ]

    def test_float_compare_has_no_predicate_line(self, fb):
        _, b = fb
        lines = _render(b.fcmp("olt", ConstantFP(DOUBLE, "1.0"), ConstantFP(DOUBLE, "2.0")))
        assert "   │         Type: Other Comparison" in lines
        assert not any("Predicate:" in line for line in lines)

    def test_cast(self, fb):
        fn, b = fb
        assert _render(b.cast("zext", fn.params[3], I32, name="z"))[1:5] == [
            "   │      🔄 Cast Operation: zext",
            "   │         From: i1",
            "   │         To: i32",
            "   │         Source: i1 %c",
        ]

    def test_generic_operator(self, fb):
        fn, b = fb
        assert _render(b.select(fn.params[3], fn.params[0], fn.params[1], name="m"))[1:6] == [
            "   │      ⚙️  Other Operator: select",
            "   │         Operands: 3",
            "   │         Op[0]: i1 %c",
            "   │         Op[1]: i32 %a",
            "   │         Op[2]: i32 %b",
        ]

    def test_unknown(self):
        assert _render(Instruction("frobnicate", [], text="frobnicate"))[:3] == [
            "   │  [1] frobnicate",
            "   │      ❓ Unknown Instruction Type",
            "   │         Opcode: frobnicate",
        ]
