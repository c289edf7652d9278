"""
irprobe/errors.py
═════════════════

Exception hierarchy for the IR inspector.

Error Hierarchy
───────────────
    IRProbeError (base)
    ├── MalformedIRError   - IR violates a precondition the report relies on
    ├── IRParseError       - textual IR could not be read
    └── DataLayoutError    - a data layout string is malformed

Only ``MalformedIRError`` can be raised while a report is being produced;
it is fatal to that report and propagates to the caller unchanged.
Unrecognised instructions and missing names are never errors.
"""

from __future__ import annotations

from typing import Any, Optional


class IRProbeError(Exception):
    """Base class for every error raised by :mod:`irprobe`."""


class MalformedIRError(IRProbeError):
    """
    The IR handed to the inspector violates a structural precondition.

    Example: a stack allocation whose allocated type has no computable size
    under the active data layout.
    """

    def __init__(self, message: str, instruction: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.instruction = instruction

    def __str__(self) -> str:
        if self.instruction is not None:
            return f"{self.message} (in: {self.instruction})"
        return self.message


class IRParseError(IRProbeError):
    """Raised when textual IR cannot be mapped onto the value model."""

    def __init__(self, message: str, line: int = 0, column: int = 0) -> None:
        super().__init__(message)
        self.message = message
        self.line = line
        self.column = column

    def __str__(self) -> str:
        if self.line:
            return f"{self.line}:{self.column}: {self.message}"
        return self.message


class DataLayoutError(IRProbeError):
    """Raised for a data layout string that cannot be parsed."""


__all__ = [
    "IRProbeError",
    "MalformedIRError",
    "IRParseError",
    "DataLayoutError",
]
