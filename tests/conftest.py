# tests/conftest.py
"""
Shared fixtures for the irprobe test-suite.
"""

import logging
import textwrap

import pytest

from irprobe.builder import IRBuilder, add_function, append_basic_block
from irprobe.datalayout import DataLayout
from irprobe.irtypes import I1, I32, PTR, VOID
from irprobe.sink import BufferSink
from irprobe.values import ConstantInt, Program


# ---------------------------------------------------------------------------
# Textual IR samples
# ---------------------------------------------------------------------------

SAMPLE_LL = textwrap.dedent("""\
    ; ModuleID = 'sample.c'
    source_filename = "sample.c"
    target datalayout = "e-m:e-p270:32:32-p271:32:32-p272:64:64-i64:64-i128:128-f80:128-n8:16:32:64-S128"
    target triple = "x86_64-pc-linux-gnu"

    %struct.Point = type { i32, i32 }

    @.str = private unnamed_addr constant [4 x i8] c"%d\\0A\\00", align 1
    @counter = dso_local global i32 0, align 4

    ; Function Attrs: noinline nounwind optnone uwtable
    define dso_local i32 @add(i32 noundef %a, i32 noundef %b) #0 {
    entry:
      %a.addr = alloca i32, align 4
      %b.addr = alloca i32, align 4
      store i32 %a, ptr %a.addr, align 4
      store i32 %b, ptr %b.addr, align 4
      %0 = load i32, ptr %a.addr, align 4
      %1 = load i32, ptr %b.addr, align 4
      %add = add nsw i32 %0, %1
      ret i32 %add
    }

    define dso_local i32 @main() #0 {
    entry:
      %retval = alloca i32, align 4
      %p = alloca %struct.Point, align 4
      store i32 0, ptr %retval, align 4
      %call = call i32 @add(i32 noundef 1, i32 noundef 2)
      %cmp = icmp sgt i32 %call, 2
      br i1 %cmp, label %if.then, label %if.end

    if.then:                                          ; preds = %entry
      %call1 = call i32 (ptr, ...) @printf(ptr noundef @.str, i32 noundef %call)
      br label %if.end

    if.end:                                           ; preds = %if.then, %entry
      ret i32 0
    }

    declare i32 @printf(ptr noundef, ...) #1

    attributes #0 = { noinline nounwind optnone uwtable "frame-pointer"="all" }
    attributes #1 = { "frame-pointer"="all" }

    !llvm.module.flags = !{!0}
    !0 = !{i32 1, !"wchar_size", i32 4}
""")


@pytest.fixture
def sample_ll():
    return SAMPLE_LL


@pytest.fixture
def sample_file(tmp_path):
    path = tmp_path / "sample.ll"
    path.write_text(SAMPLE_LL, encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Built programs
# ---------------------------------------------------------------------------

@pytest.fixture
def dl():
    return DataLayout.default()


@pytest.fixture
def sink():
    return BufferSink()


@pytest.fixture
def void_main():
    """``define void @main() { entry: ret void }``"""
    prog = Program("scenario_a")
    fn = add_function(prog, "main", VOID)
    IRBuilder(append_basic_block(fn, "entry")).ret_void()
    return prog


@pytest.fixture
def call_program():
    """``main`` calls the two-parameter declaration ``add(a, b)``."""
    prog = Program("scenario_b")
    callee = add_function(prog, "add", I32, [I32, I32], ["a", "b"])
    main = add_function(prog, "main", I32)
    b = IRBuilder(append_basic_block(main, "entry"))
    r = b.call(callee, [ConstantInt(I32, 1), ConstantInt(I32, 2)], name="r")
    b.ret(r)
    return prog


@pytest.fixture
def branch_program():
    """``f(i1 c)`` branching to ``then`` / ``else`` and joining in ``exit``."""
    prog = Program("scenario_c")
    fn = add_function(prog, "f", VOID, [I1], ["c"])
    entry = append_basic_block(fn, "entry")
    then = append_basic_block(fn, "then")
    other = append_basic_block(fn, "else")
    done = append_basic_block(fn, "exit")
    b = IRBuilder(entry)
    b.cbranch(fn.params[0], then, other)
    b.position_at_end(then)
    b.branch(done)
    b.position_at_end(other)
    b.branch(done)
    b.position_at_end(done)
    b.ret_void()
    return prog


@pytest.fixture
def const_return():
    """``define i32 @answer() { ret i32 42 }``"""
    prog = Program("scenario_d")
    fn = add_function(prog, "answer", I32)
    IRBuilder(append_basic_block(fn, "entry")).ret(ConstantInt(I32, 42))
    return prog


@pytest.fixture
def memory_program():
    """Allocas, loads and stores with and without explicit alignment."""
    prog = Program("memory")
    fn = add_function(prog, "mem", I32, [PTR], ["p"])
    b = IRBuilder(append_basic_block(fn, "entry"))
    slot = b.alloca(I32, align=4, name="x")
    b.store(ConstantInt(I32, 7), slot, align=4)
    v = b.load(slot, I32, align=4, name="v")
    b.store(v, fn.params[0])
    b.ret(v)
    return prog


@pytest.fixture(autouse=True)
def _reset_cli_logging():
    yield
    logger = logging.getLogger("irprobe")
    for handler in list(logger.handlers):
        if not isinstance(handler, logging.NullHandler):
            logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
