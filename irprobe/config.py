"""
irprobe/config.py
═════════════════

Run-time configuration of the inspector.

Environment variables
─────────────────────
    IRPROBE_DATALAYOUT   fallback data layout string for modules that do
                         not declare ``target datalayout``
    IRPROBE_REPORT       write the report to this path instead of stderr
                         (``-`` means stdout)
    IRPROBE_VERBOSE      default verbosity (integer, 0-2)

Command-line flags override the environment.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from typing import Mapping, Optional

_log = logging.getLogger(__name__)

ENV_DATALAYOUT = "IRPROBE_DATALAYOUT"
ENV_REPORT = "IRPROBE_REPORT"
ENV_VERBOSE = "IRPROBE_VERBOSE"


@dataclass(frozen=True)
class InspectorConfig:
    data_layout: Optional[str] = None
    report_path: Optional[str] = None
    verbosity: int = 0

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> InspectorConfig:
        env = os.environ if environ is None else environ
        raw_verbosity = env.get(ENV_VERBOSE, "").strip()
        verbosity = 0
        if raw_verbosity:
            try:
                verbosity = max(0, int(raw_verbosity))
            except ValueError:
                _log.warning("ignoring non-integer %s=%r", ENV_VERBOSE, raw_verbosity)
        return cls(
            data_layout=env.get(ENV_DATALAYOUT) or None,
            report_path=env.get(ENV_REPORT) or None,
            verbosity=verbosity,
        )

    def override(
        self,
        data_layout: Optional[str] = None,
        report_path: Optional[str] = None,
        verbosity: Optional[int] = None,
    ) -> InspectorConfig:
        """Return a copy with every non-``None`` argument applied."""
        changes = {}
        if data_layout is not None:
            changes["data_layout"] = data_layout
        if report_path is not None:
            changes["report_path"] = report_path
        if verbosity:
            changes["verbosity"] = verbosity
        return replace(self, **changes)


__all__ = [
    "ENV_DATALAYOUT",
    "ENV_REPORT",
    "ENV_VERBOSE",
    "InspectorConfig",
]
