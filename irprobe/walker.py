"""
irprobe.walker
==============

Depth-first, read-only traversal of a program:
program → function → basic block → instruction, in the provider's order.

For every instruction the walker classifies it, asks the renderer for its
fragment and appends the fragment to the sink before moving on, so the sink
always holds a prefix of the full report.  A fatal
:class:`~irprobe.errors.MalformedIRError` aborts the traversal immediately
and propagates; whatever was already written stays written.

Typical usage::

    from irprobe.walker import inspect_program
    fragments = inspect_program(program)          # report on stderr

    sink = BufferSink()
    inspect_program(program, sink=sink)
    print(sink.getvalue())
"""

from __future__ import annotations

import logging
from typing import List, Optional

from .classifier import classify
from .datalayout import DataLayout
from .renderer import Renderer
from .sink import OutputSink, StreamSink
from .values import BasicBlock, Function, Program

_log = logging.getLogger(__name__)


class Walker:
    """Drives classification and rendering over one program."""

    def __init__(self, renderer: Renderer, sink: OutputSink) -> None:
        self.renderer = renderer
        self.sink = sink
        self._fragments: List[str] = []

    def _emit(self, fragment: str) -> None:
        self._fragments.append(fragment)
        self.sink.write(fragment)

    def traverse(self, program: Program) -> List[str]:
        """Render *program* into the sink; return the fragments in order."""
        self._fragments = []
        _log.debug("inspecting module %r (%d functions)", program.name, len(program.functions))
        self._emit(self.renderer.module_header(program))
        for fn in program.functions:
            self._visit_function(fn)
        self._emit(self.renderer.module_footer(program))
        fragments, self._fragments = self._fragments, []
        return fragments

    def _visit_function(self, fn: Function) -> None:
        if fn.is_declaration:
            _log.debug("declaration %s", fn.name)
            self._emit(self.renderer.function_declaration(fn))
            return
        _log.debug("definition %s: %d blocks", fn.name, len(fn.blocks))
        self._emit(self.renderer.function_header(fn))
        last = len(fn.blocks)
        for index, block in enumerate(fn.blocks, 1):
            self._visit_block(block, index, index == last)
        self._emit(self.renderer.function_footer(fn))

    def _visit_block(self, block: BasicBlock, index: int, is_last: bool) -> None:
        self._emit(self.renderer.block_header(block, index))
        for num, inst in enumerate(block.instructions, 1):
            self._emit(self.renderer.instruction(classify(inst), num))
        self._emit(self.renderer.block_footer(block, is_last))


def inspect_program(
    program: Program,
    sink: Optional[OutputSink] = None,
    data_layout: Optional[DataLayout] = None,
) -> List[str]:
    """Render the full report for *program*.

    *sink* defaults to standard error; *data_layout* defaults to the layout
    the program declares.
    """
    if data_layout is None:
        data_layout = DataLayout.parse(program.data_layout)
    walker = Walker(Renderer(data_layout), sink if sink is not None else StreamSink())
    return walker.traverse(program)


__all__ = [
    "Walker",
    "inspect_program",
]
