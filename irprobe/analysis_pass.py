"""
irprobe/analysis_pass.py
════════════════════════

Host boundary: the module pass that produces the inspection report, and the
minimal pass-pipeline plumbing needed to run it.

The inspector is invoked once per module at the pipeline-start extension
point.  It receives a borrowed module and an analysis manager, writes its
report to the injected sink and tells the host that every analysis is still
valid.

Usage
─────
    pb = PassBuilder()
    get_plugin_info().register_pass_builder_callbacks(pb)
    mpm = pb.build_module_pipeline(OptimizationLevel.O0)
    mpm.run(program, ModuleAnalysisManager())
"""

from __future__ import annotations

import enum
import logging
import weakref
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, List, Optional

from .datalayout import DataLayout
from .errors import MalformedIRError
from .renderer import Renderer
from .sink import OutputSink, StreamSink
from .values import Program
from .walker import Walker

_log = logging.getLogger(__name__)

PLUGIN_API_VERSION = 1
PLUGIN_NAME = "Enhanced Skeleton Pass"
PLUGIN_VERSION = "v2.0"

DATA_LAYOUT_ANALYSIS = "data-layout"


# ═════════════════════════════════════════════════════════════════════════
#  PRESERVED ANALYSES
# ═════════════════════════════════════════════════════════════════════════

_ALL = "*"


@dataclass(frozen=True)
class PreservedAnalyses:
    """The set of analyses a pass left valid (``"*"`` means all of them)."""

    preserved: FrozenSet[str] = frozenset()

    @classmethod
    def all(cls) -> PreservedAnalyses:
        return cls(frozenset({_ALL}))

    @classmethod
    def none(cls) -> PreservedAnalyses:
        return cls(frozenset())

    def are_all_preserved(self) -> bool:
        return _ALL in self.preserved

    def is_preserved(self, analysis: str) -> bool:
        return self.are_all_preserved() or analysis in self.preserved

    def preserve(self, analysis: str) -> PreservedAnalyses:
        return PreservedAnalyses(self.preserved | {analysis})

    def intersect(self, other: PreservedAnalyses) -> PreservedAnalyses:
        if self.are_all_preserved():
            return other
        if other.are_all_preserved():
            return self
        return PreservedAnalyses(self.preserved & other.preserved)


# ═════════════════════════════════════════════════════════════════════════
#  ANALYSIS MANAGER
# ═════════════════════════════════════════════════════════════════════════

class ModuleAnalysisManager:
    """Per-module cache of analysis results.

    The only analysis the inspector needs is the data layout; a fallback
    layout string is used for modules that do not declare one.  Results
    are keyed on the module object and dropped when the module is freed.
    """

    def __init__(self, fallback_data_layout: Optional[str] = None) -> None:
        self.fallback_data_layout = fallback_data_layout
        self._results: weakref.WeakKeyDictionary[Program, Dict[str, Any]] = (
            weakref.WeakKeyDictionary()
        )

    def get_cached_result(self, analysis: str, module: Program) -> Optional[Any]:
        return self._results.get(module, {}).get(analysis)

    def get_result(self, analysis: str, module: Program, compute: Callable[[Program], Any]) -> Any:
        cache = self._results.setdefault(module, {})
        if analysis not in cache:
            cache[analysis] = compute(module)
        return cache[analysis]

    def get_data_layout(self, module: Program) -> DataLayout:
        def compute(m: Program) -> DataLayout:
            spec = m.data_layout or self.fallback_data_layout or ""
            return DataLayout.parse(spec)
        return self.get_result(DATA_LAYOUT_ANALYSIS, module, compute)

    def invalidate(self, module: Program, preserved: PreservedAnalyses) -> None:
        if preserved.are_all_preserved():
            return
        cache = self._results.get(module)
        if not cache:
            return
        for name in list(cache):
            if not preserved.is_preserved(name):
                _log.debug("invalidating %s for module %r", name, module.name)
                del cache[name]

    def clear(self) -> None:
        self._results.clear()


# ═════════════════════════════════════════════════════════════════════════
#  THE INSPECTION PASS
# ═════════════════════════════════════════════════════════════════════════

class ModuleInspectionPass:
    """Write the inspection report for a module; preserve everything."""

    name = "module-inspection"

    def __init__(self, sink: Optional[OutputSink] = None) -> None:
        self.sink = sink if sink is not None else StreamSink()

    def run(self, module: Program, analysis_manager: ModuleAnalysisManager) -> PreservedAnalyses:
        data_layout = analysis_manager.get_data_layout(module)
        walker = Walker(Renderer(data_layout), self.sink)
        try:
            walker.traverse(module)
        except MalformedIRError as exc:
            _log.error("inspection of module %r aborted: %s", module.name, exc)
            raise
        return PreservedAnalyses.all()


# ═════════════════════════════════════════════════════════════════════════
#  PIPELINE PLUMBING
# ═════════════════════════════════════════════════════════════════════════

class OptimizationLevel(enum.Enum):
    O0 = "O0"
    O1 = "O1"
    O2 = "O2"
    O3 = "O3"
    Os = "Os"
    Oz = "Oz"


class ModulePassManager:
    """Runs module passes in order."""

    def __init__(self) -> None:
        self.passes: List[Any] = []

    def add_pass(self, module_pass: Any) -> None:
        self.passes.append(module_pass)

    def run(self, module: Program, analysis_manager: ModuleAnalysisManager) -> PreservedAnalyses:
        result = PreservedAnalyses.all()
        for module_pass in self.passes:
            _log.debug("running %s on %r", getattr(module_pass, "name", module_pass), module.name)
            preserved = module_pass.run(module, analysis_manager)
            analysis_manager.invalidate(module, preserved)
            result = result.intersect(preserved)
        return result

    def __len__(self) -> int:
        return len(self.passes)


PipelineStartCallback = Callable[[ModulePassManager, OptimizationLevel], None]


class PassBuilder:
    """Collects extension-point callbacks and builds module pipelines."""

    def __init__(self) -> None:
        self._pipeline_start: List[PipelineStartCallback] = []

    def register_pipeline_start_ep_callback(self, callback: PipelineStartCallback) -> None:
        self._pipeline_start.append(callback)

    def build_module_pipeline(self, level: OptimizationLevel = OptimizationLevel.O0) -> ModulePassManager:
        mpm = ModulePassManager()
        for callback in self._pipeline_start:
            callback(mpm, level)
        return mpm


@dataclass(frozen=True)
class PassPluginInfo:
    api_version: int
    plugin_name: str
    plugin_version: str
    register_pass_builder_callbacks: Callable[[PassBuilder], None] = field(compare=False)


def get_plugin_info(sink: Optional[OutputSink] = None) -> PassPluginInfo:
    """Plugin descriptor: installs the inspection pass at pipeline start."""

    def register(pb: PassBuilder) -> None:
        def at_pipeline_start(mpm: ModulePassManager, level: OptimizationLevel) -> None:
            mpm.add_pass(ModuleInspectionPass(sink))
        pb.register_pipeline_start_ep_callback(at_pipeline_start)

    return PassPluginInfo(
        api_version=PLUGIN_API_VERSION,
        plugin_name=PLUGIN_NAME,
        plugin_version=PLUGIN_VERSION,
        register_pass_builder_callbacks=register,
    )


__all__ = [
    "PLUGIN_API_VERSION",
    "PLUGIN_NAME",
    "PLUGIN_VERSION",
    "PreservedAnalyses",
    "ModuleAnalysisManager",
    "ModuleInspectionPass",
    "OptimizationLevel",
    "ModulePassManager",
    "PassBuilder",
    "PassPluginInfo",
    "get_plugin_info",
]
