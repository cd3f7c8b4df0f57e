"""
Preview Engine — compiles a snapshot of Expo / React Native source files into
a self-contained HTML preview document.
"""

from engine.preview.build import Build, build_preview, single_file_snapshot
from engine.preview.errors import (
    CompileError,
    EntryNotFound,
    InvalidEntryExport,
    ModuleNotFound,
    PreviewError,
    RuntimeExecutionError,
)
from engine.preview.sandbox import NodeSandbox
from engine.preview.types import BuildOptions, BuildResult, BuildState, SourceFile, TranspileMode

__all__ = [
    "Build",
    "BuildOptions",
    "BuildResult",
    "BuildState",
    "CompileError",
    "EntryNotFound",
    "InvalidEntryExport",
    "ModuleNotFound",
    "NodeSandbox",
    "PreviewError",
    "RuntimeExecutionError",
    "SourceFile",
    "TranspileMode",
    "build_preview",
    "single_file_snapshot",
]
