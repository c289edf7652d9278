# tests/test_ll_parser.py
"""
Tests for the textual IR loader.
"""

import textwrap

import pytest

from irprobe.classifier import Call, GenericOperator, InstKind, Unknown, classify, kind_of
from irprobe.errors import IRParseError, MalformedIRError
from irprobe.irtypes import (
    ArrayType,
    FunctionType,
    I8,
    I32,
    IdentifiedStructType,
    PTR,
    UnknownType,
)
from irprobe.ll_parser import parse_assembly, parse_file, split_local, strip_comment
from irprobe.renderer import COMPLETION_MARK
from irprobe.values import ConstantInt, GlobalVariable, MetadataAsValue
from irprobe.walker import inspect_program


def _ll(text):
    return textwrap.dedent(text).strip("\n") + "\n"


def _ops(fn, block=0):
    return [inst.opcode for inst in fn.blocks[block]]


# ---------------------------------------------------------------------------
# Module level
# ---------------------------------------------------------------------------

class TestModule:

    def test_directives(self, sample_ll):
        prog = parse_assembly(sample_ll)
        assert prog.name == "sample.c"
        assert prog.source_filename == "sample.c"
        assert prog.triple == "x86_64-pc-linux-gnu"
        assert prog.data_layout.startswith("e-m:e-p270:32:32")

    def test_function_order_and_kinds(self, sample_ll):
        prog = parse_assembly(sample_ll)
        assert [fn.name for fn in prog.functions] == ["add", "main", "printf"]
        printf = prog.get_function("printf")
        assert printf.is_declaration
        assert printf.var_arg
        assert [p.type for p in printf.params] == [PTR]
        assert printf.params[0].name is None

    def test_globals(self, sample_ll):
        prog = parse_assembly(sample_ll)
        text = prog.get_global(".str")
        assert text.is_constant
        assert text.value_type == ArrayType(4, I8)
        assert text.initializer == 'c"%d\\0A\\00"'
        counter = prog.get_global("counter")
        assert not counter.is_constant
        assert counter.value_type == I32
        assert counter.initializer == "0"

    def test_struct_definition(self, sample_ll):
        prog = parse_assembly(sample_ll)
        alloca = prog.get_function("main").blocks[0].instructions[1]
        point = alloca.allocated_type
        assert isinstance(point, IdentifiedStructType)
        assert point.name == "struct.Point"
        assert point.elements == (I32, I32)

    def test_opaque_struct(self):
        prog = parse_assembly(_ll("""
            %struct.Handle = type opaque
            define void @f() {
              %h = alloca %struct.Handle
              ret void
            }
        """))
        inst = prog.functions[0].blocks[0].instructions[0]
        assert inst.allocated_type.is_opaque

    def test_name_falls_back_to_source_filename(self):
        prog = parse_assembly('source_filename = "x.c"\n', name="ignored")
        assert prog.name == "x.c"

    def test_name_falls_back_to_argument(self):
        assert parse_assembly("", name="given").name == "given"
        assert parse_assembly("").name == ""

    def test_skipped_top_level_items(self):
        prog = parse_assembly(_ll("""
            $comdat = comdat any
            @a = alias i32, ptr @g
            @g = global i32 1
            attributes #0 = { nounwind }
            !0 = !{i32 1}
        """))
        assert [g.name for g in prog.globals] == ["g"]

    def test_top_level_garbage(self):
        with pytest.raises(IRParseError) as info:
            parse_assembly("target triple = \"x\"\nthis is not ir\n")
        assert info.value.line == 2

    def test_unterminated_body(self):
        with pytest.raises(IRParseError):
            parse_assembly("define void @f() {\n  ret void\n")

    def test_parse_file(self, sample_file):
        prog = parse_file(sample_file)
        assert prog.name == "sample.c"
        assert len(prog) == 3

    def test_parse_file_invalid_utf8(self, tmp_path):
        src = tmp_path / "bad.ll"
        src.write_bytes(b"; ModuleID = 'm'\n; \xff\xfe bad\n")
        with pytest.raises(IRParseError) as info:
            parse_file(src)
        assert info.value.line == 2
        assert "invalid UTF-8" in str(info.value)

    def test_parse_file_crlf(self, tmp_path):
        src = tmp_path / "crlf.ll"
        src.write_bytes(b"define void @f() {\r\n  ret void\r\n}\r\n")
        assert parse_file(src).get_function("f") is not None


# ---------------------------------------------------------------------------
# Function bodies
# ---------------------------------------------------------------------------

class TestBodies:

    def test_add_body(self, sample_ll):
        fn = parse_assembly(sample_ll).get_function("add")
        assert [b.name for b in fn.blocks] == ["entry"]
        assert _ops(fn) == [
            "alloca", "alloca", "store", "store", "load", "load", "add", "ret",
        ]
        entry = fn.blocks[0]
        first_load, second_load, add = entry.instructions[4:7]
        assert first_load.ref == "%0"
        assert add.operands == [first_load, second_load]
        assert add.text == "%add = add nsw i32 %0, %1"
        assert entry.instructions[2].operands == [fn.params[0], entry.instructions[0]]
        assert entry.instructions[0].alignment == 4

    def test_calls_resolve_to_functions(self, sample_ll):
        prog = parse_assembly(sample_ll)
        main = prog.get_function("main")
        call = main.blocks[0].instructions[3]
        c = classify(call)
        assert isinstance(c, Call)
        assert c.callee is prog.get_function("add")
        assert [a.value for a in c.arguments] == [1, 2]
        assert call.type == I32

    def test_vararg_call(self, sample_ll):
        prog = parse_assembly(sample_ll)
        call = prog.get_function("main").blocks[1].instructions[0]
        assert call.operands[-1] is prog.get_function("printf")
        assert isinstance(call.operands[0], GlobalVariable)
        assert call.type == I32

    def test_branch_targets(self, sample_ll):
        main = parse_assembly(sample_ll).get_function("main")
        entry, then, end = main.blocks
        br = entry.instructions[-1]
        assert br.operands[1:] == [then, end]
        assert then.instructions[-1].operands == [end]

    def test_unnamed_values_are_numbered(self):
        fn = parse_assembly(_ll("""
            define i32 @f(i32) {
              %2 = add i32 %0, 1
              ret i32 %2
            }
        """)).functions[0]
        assert fn.params[0].ref == "%0"
        assert fn.blocks[0].ref == "%1"
        add = fn.blocks[0].instructions[0]
        assert add.ref == "%2"
        assert add.operands[0] is fn.params[0]
        assert isinstance(add.operands[1], ConstantInt)
        assert fn.blocks[0].instructions[1].operands == [add]

    def test_phi_forward_reference(self):
        fn = parse_assembly(_ll("""
            define i32 @loop(i32 %n) {
            entry:
              br label %head
            head:
              %i = phi i32 [ 0, %entry ], [ %next, %head ]
              %next = add i32 %i, 1
              %done = icmp eq i32 %next, %n
              br i1 %done, label %exit, label %head
            exit:
              ret i32 %i
            }
        """)).functions[0]
        entry, head, _ = fn.blocks
        phi, nxt = head.instructions[:2]
        assert phi.operands[0].value == 0
        assert phi.operands[1] is entry
        assert phi.operands[2] is nxt
        assert phi.operands[3] is head
        assert kind_of(phi) is InstKind.GENERIC_OPERATOR

    def test_undefined_value(self):
        with pytest.raises(IRParseError) as info:
            parse_assembly(_ll("""
                define i32 @f() {
                entry:
                  ret i32 %missing
                }
            """))
        assert info.value.line == 3
        assert "%missing" in str(info.value)

    def test_undefined_label(self):
        with pytest.raises(IRParseError):
            parse_assembly("define void @f() {\n  br label %nowhere\n}\n")

    def test_redefinition(self):
        with pytest.raises(IRParseError):
            parse_assembly(_ll("""
                define void @f() {
                entry:
                  %x = alloca i32
                  %x = alloca i32
                  ret void
                }
            """))

    def test_metadata_attachments_are_ignored(self):
        fn = parse_assembly(_ll("""
            define i32 @f(ptr %p) {
              %x = load i32, ptr %p, align 4, !tbaa !5
              ret i32 %x, !dbg !7
            }
        """)).functions[0]
        load = fn.blocks[0].instructions[0]
        assert load.alignment == 4
        assert load.operands == [fn.params[0]]
        assert load.text == "%x = load i32, ptr %p, align 4, !tbaa !5"

    def test_metadata_wrapped_operands(self, sink):
        prog = parse_assembly(_ll("""
            %struct.S = type { i32 }
            declare void @llvm.dbg.declare(metadata, metadata, metadata)
            define void @f() {
              %s = alloca %struct.S, align 4
              call void @llvm.dbg.declare(metadata ptr %s, metadata !10, metadata !DIExpression())
              ret void
            }
        """))
        entry = prog.get_function("f").blocks[0]
        alloca, call = entry.instructions[:2]
        wrapped = call.operands[0]
        assert isinstance(wrapped, MetadataAsValue)
        assert wrapped.value is alloca
        assert str(wrapped) == "metadata ptr %s"
        inspect_program(prog, sink=sink)
        assert "   │         Arg 1: metadata ptr %s" in sink.lines()

    def test_metadata_wrapped_undefined_value(self):
        with pytest.raises(IRParseError):
            parse_assembly(_ll("""
                declare void @llvm.dbg.value(metadata, metadata, metadata)
                define void @f() {
                  call void @llvm.dbg.value(metadata i32 %nope, metadata !1, metadata !DIExpression())
                  ret void
                }
            """))

    def test_multi_line_switch(self):
        fn = parse_assembly(_ll("""
            define void @f(i32 %v) {
            entry:
              switch i32 %v, label %other [
                i32 0, label %zero
                i32 1, label %one
              ]
            zero:
              ret void
            one:
              ret void
            other:
              ret void
            }
        """)).functions[0]
        switch = fn.blocks[0].instructions[0]
        assert switch.opcode == "switch"
        assert len(switch.operands) == 6
        assert switch.operands[1] is fn.blocks[3]
        c = classify(switch)
        assert isinstance(c, GenericOperator)

    def test_unreadable_instruction_is_kept_opaque(self):
        fn = parse_assembly(_ll("""
            define i32 @f(ptr %ap) {
              %v = va_arg ptr %ap, i32
              ret i32 %v
            }
        """)).functions[0]
        va = fn.blocks[0].instructions[0]
        assert va.opcode == "va_arg"
        assert va.operands == []
        assert va.text == "%v = va_arg ptr %ap, i32"
        assert fn.blocks[0].instructions[1].operands == [va]
        assert va.type == I32

    def test_unused_opaque_result_type_stays_unknown(self):
        fn = parse_assembly(_ll("""
            define void @f(ptr %ap) {
              %v = va_arg ptr %ap, i32
              ret void
            }
        """)).functions[0]
        assert fn.blocks[0].instructions[0].type == UnknownType()

    def test_unknown_opcode(self):
        fn = parse_assembly(_ll("""
            define void @f(i32 %a) {
              frobnicate i32 %a
              ret void
            }
        """)).functions[0]
        c = classify(fn.blocks[0].instructions[0])
        assert isinstance(c, Unknown)
        assert c.opcode == "frobnicate"

    def test_casts_and_compares(self):
        fn = parse_assembly(_ll("""
            define i1 @f(i64 %a, double %x) {
              %t = trunc i64 %a to i32
              %c = fcmp olt double %x, 1.0
              ret i1 %c
            }
        """)).functions[0]
        trunc, fcmp, _ = fn.blocks[0].instructions
        assert trunc.type == I32
        assert kind_of(trunc) is InstKind.CAST
        assert fcmp.predicate == "olt"
        assert fcmp.operands[1].text == "1.0"

    def test_declared_function_type(self, sample_ll):
        fn = parse_assembly(sample_ll).get_function("printf")
        assert fn.function_type == FunctionType(I32, (PTR,), True)


# ---------------------------------------------------------------------------
# Reports of parsed modules
# ---------------------------------------------------------------------------

class TestReport:

    def test_sample_report(self, sample_ll, sink):
        inspect_program(parse_assembly(sample_ll), sink=sink)
        lines = sink.lines()
        assert "📁 Module: sample.c" in lines
        assert "🔧 Function Definition: add()" in lines
        assert "📋 External Function Declaration: printf()" in lines
        assert "   │      📞 Function Call: add()" in lines
        assert "   │           • a : i32" in lines
        assert "   │           • unnamed : ptr" in lines
        assert "   │         Predicate: Signed Greater Than (>)" in lines
        assert "   │         True Block: if.then" in lines
        assert "   │         Value: add" in lines
        assert lines[-2] == "═" * 79

    def test_store_of_opaque_result_uses_written_type(self, sink):
        prog = parse_assembly(_ll("""
            define void @f(ptr %p) {
              %x = atomicrmw add ptr %p, i32 1 seq_cst
              store i32 %x, ptr %p
              ret void
            }
        """))
        inspect_program(prog, sink=sink)
        lines = sink.lines()
        assert prog.functions[0].blocks[0].instructions[0].type == I32
        assert "   │      📤 Store to Memory" in lines
        assert "   │         Alignment: 4 bytes" in lines
        assert COMPLETION_MARK in sink.getvalue()

    def test_opaque_alloca_aborts(self, sink):
        prog = parse_assembly(_ll("""
            %struct.Handle = type opaque
            define void @f() {
              %h = alloca %struct.Handle
              ret void
            }
        """))
        with pytest.raises(MalformedIRError):
            inspect_program(prog, sink=sink)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class TestHelpers:

    @pytest.mark.parametrize("text, expected", [
        ("%x", ("x", None)),
        ("%3", (None, 3)),
        ('%"a b"', ("a b", None)),
        ("@main", ("main", None)),
    ])
    def test_split_local(self, text, expected):
        assert split_local(text) == expected

    def test_strip_comment(self):
        assert strip_comment("ret void ; done") == "ret void"
        assert strip_comment('@s = constant [2 x i8] c";\\00" ; x') == '@s = constant [2 x i8] c";\\00"'
