"""
irprobe - Read-only IR module inspector
=======================================

Walks an IR module (functions → basic blocks → instructions), classifies
every instruction into one of a closed set of kinds and writes a framed,
human-readable report to an injected sink (standard error by default).

Core modules
------------
irtypes, values
    Type and value model of the IR object graph.
builder
    Programmatic construction of IR with canonical instruction text.
ll_parser
    Loader for textual IR (``.ll``) files.
datalayout
    Data layout strings and size / alignment arithmetic.
classifier
    Instruction → tagged variant, with fixed precedence.
renderer, walker, sink
    Report templates, traversal and output sinks.
analysis_pass
    Module pass, pass pipeline plumbing and plugin descriptor.

Quick start
-----------
>>> from irprobe import parse_assembly, inspect_program, BufferSink
>>> program = parse_assembly("define i32 @main() {\\nentry:\\n  ret i32 0\\n}\\n")
>>> sink = BufferSink()
>>> _ = inspect_program(program, sink=sink)
>>> "Constant: 0" in sink.getvalue()
True
"""

from __future__ import annotations

import logging
from typing import List

__version__ = "2.0.0"

from .analysis_pass import (
    ModuleAnalysisManager,
    ModuleInspectionPass,
    OptimizationLevel,
    PassBuilder,
    PreservedAnalyses,
    get_plugin_info,
)
from .builder import IRBuilder, add_function, append_basic_block
from .classifier import InstKind, classify, kind_of
from .datalayout import DataLayout
from .errors import DataLayoutError, IRParseError, IRProbeError, MalformedIRError
from .ll_parser import parse_assembly, parse_file
from .renderer import Renderer
from .sink import BufferSink, OutputSink, StreamSink
from .values import BasicBlock, Function, Instruction, Program
from .walker import Walker, inspect_program

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__: List[str] = [
    "__version__",
    "ModuleAnalysisManager",
    "ModuleInspectionPass",
    "OptimizationLevel",
    "PassBuilder",
    "PreservedAnalyses",
    "get_plugin_info",
    "IRBuilder",
    "add_function",
    "append_basic_block",
    "InstKind",
    "classify",
    "kind_of",
    "DataLayout",
    "DataLayoutError",
    "IRParseError",
    "IRProbeError",
    "MalformedIRError",
    "parse_assembly",
    "parse_file",
    "Renderer",
    "BufferSink",
    "OutputSink",
    "StreamSink",
    "BasicBlock",
    "Function",
    "Instruction",
    "Program",
    "Walker",
    "inspect_program",
]
