"""
irprobe.sink
============

Output sinks: the "append text" abstraction the walker writes to.

The report engine never touches a process-global stream directly; whoever
invokes it injects a sink.  Two implementations are provided:

``StreamSink``
    forwards every fragment to a text stream (``sys.stderr`` by default),
    flushing after each write so the report interleaves correctly with
    other diagnostics.
``BufferSink``
    keeps fragments in memory; used by tests and by callers that post-process
    the report.
"""

from __future__ import annotations

import sys
from typing import List, Optional, Protocol, TextIO, runtime_checkable


@runtime_checkable
class OutputSink(Protocol):
    """Anything that accepts report text in order."""

    def write(self, text: str) -> None:
        ...


class StreamSink:
    """Append fragments to a text stream."""

    def __init__(self, stream: Optional[TextIO] = None, flush: bool = True) -> None:
        self._stream = stream
        self._flush = flush

    @property
    def stream(self) -> TextIO:
        # resolved lazily so that redirections of sys.stderr are honoured
        return self._stream if self._stream is not None else sys.stderr

    def write(self, text: str) -> None:
        self.stream.write(text)
        if self._flush:
            self.stream.flush()


class BufferSink:
    """Collect fragments in memory."""

    def __init__(self) -> None:
        self.fragments: List[str] = []

    def write(self, text: str) -> None:
        self.fragments.append(text)

    def getvalue(self) -> str:
        return "".join(self.fragments)

    def lines(self) -> List[str]:
        return self.getvalue().splitlines()

    def clear(self) -> None:
        self.fragments.clear()

    def __len__(self) -> int:
        return len(self.fragments)


__all__ = [
    "OutputSink",
    "StreamSink",
    "BufferSink",
]
