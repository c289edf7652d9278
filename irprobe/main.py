#!/usr/bin/env python3
"""irprobe/main.py - CLI entry-point for the IR inspector.

Usage examples
--------------
    # Report on a module (report goes to stderr)
    irprobe demo.ll

    # Several modules, report to a file, info-level logging
    irprobe -v -o report.txt a.ll b.ll

    # Report to stdout, with a fallback data layout
    irprobe -o - --datalayout "e-m:e-i64:64-n32:64-S128" demo.ll

Exit codes
----------
    0   Success.
    2   Infrastructure failure (unreadable file, malformed IR, bad layout).

The module doubles as ``python -m irprobe`` via ``irprobe/__main__.py``.
"""

from __future__ import annotations

import argparse
import logging
import sys
import textwrap
from pathlib import Path
from typing import List, Optional, Sequence, TextIO

from . import __version__
from .analysis_pass import (
    ModuleAnalysisManager,
    OptimizationLevel,
    PassBuilder,
    get_plugin_info,
)
from .config import InspectorConfig
from .errors import IRProbeError
from .ll_parser import parse_file
from .sink import StreamSink

_log = logging.getLogger("irprobe")

# Exit codes ----------------------------------------------------------------

EXIT_OK: int = 0
EXIT_INFRA: int = 2


# ===========================================================================
# Utility helpers
# ===========================================================================

def _configure_logging(verbosity: int) -> None:
    """Set up the ``irprobe`` logger: 0 → WARNING, 1 → INFO, 2+ → DEBUG."""
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    root = logging.getLogger("irprobe")
    root.setLevel(level)
    root.addHandler(handler)


def _open_output(dest: Optional[str]) -> TextIO:
    """``None`` → ``sys.stderr``; ``"-"`` → ``sys.stdout``; else open the path."""
    if dest is None:
        return sys.stderr
    if dest == "-":
        return sys.stdout
    p = Path(dest).expanduser().resolve()
    p.parent.mkdir(parents=True, exist_ok=True)
    return open(p, "w", encoding="utf-8")


# ===========================================================================
# Command
# ===========================================================================

def inspect_files(paths: Sequence[str], config: InspectorConfig, stream: TextIO) -> int:
    """Load every file and run the inspection pipeline over it."""
    pb = PassBuilder()
    get_plugin_info(StreamSink(stream)).register_pass_builder_callbacks(pb)
    mpm = pb.build_module_pipeline(OptimizationLevel.O0)
    am = ModuleAnalysisManager(config.data_layout)

    for raw in paths:
        program = parse_file(raw)
        _log.info("module %r: %d functions", program.name, len(program.functions))
        mpm.run(program, am)
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="irprobe",
        description=(
            "Print a structured, human-readable report of every function,\n"
            "basic block and instruction of textual IR modules."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            environment:
              IRPROBE_DATALAYOUT  fallback data layout string
              IRPROBE_REPORT      report destination (path or -)
              IRPROBE_VERBOSE     default verbosity
        """),
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v info, -vv debug).",
    )
    parser.add_argument(
        "-o", "--output",
        default=None,
        metavar="FILE",
        help='Report file ("-" for stdout; default: stderr).',
    )
    parser.add_argument(
        "--datalayout",
        default=None,
        metavar="STR",
        help="Data layout used for modules that do not declare one.",
    )
    parser.add_argument(
        "files",
        nargs="+",
        metavar="FILE",
        help="Textual IR (.ll) files to inspect.",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the CLI and return its exit code."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    config = InspectorConfig.from_env().override(
        data_layout=args.datalayout,
        report_path=args.output,
        verbosity=args.verbose,
    )
    _configure_logging(config.verbosity)

    stream: Optional[TextIO] = None
    try:
        stream = _open_output(config.report_path)
        return inspect_files(args.files, config, stream)
    except KeyboardInterrupt:
        _log.info("Interrupted by user.")
        return 130
    except (IRProbeError, OSError) as exc:
        _log.error("%s", exc)
        return EXIT_INFRA
    finally:
        if stream is not None and stream not in (sys.stdout, sys.stderr):
            stream.close()


# ---------------------------------------------------------------------------
# Module execution support
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    raise SystemExit(main())


__all__: List[str] = ["main", "inspect_files", "EXIT_OK", "EXIT_INFRA"]
