"""
Preview Engine — Build

One immutable snapshot of source files → one Build → one BuildResult.

State machine:

  idle → transpiling → loading → rendering → ready
                  └──────────┴──────────┴──→ errored

ready and errored are terminal; run() is idempotent. Every failure from any
stage is caught here, once, and turned into an error document. The module
table and compiled map live on the Build and are dropped with it.

Usage:
    result = Build(files, BuildOptions()).run()
    result.document   # HTML for iframe srcdoc, always renderable
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable

from engine.preview.document import render_document, render_error_document
from engine.preview.entry import ExportChoice, normalize_export, select_entry
from engine.preview.errors import PreviewError, RuntimeExecutionError, SandboxUnavailable
from engine.preview.loader import ModuleLoader
from engine.preview.resolver import ModuleResolver
from engine.preview.runtime import build_manifest
from engine.preview.sandbox import NodeSandbox
from engine.preview.transpiler import compile_snapshot
from engine.preview.types import (
    TERMINAL_STATES,
    BuildOptions,
    BuildResult,
    BuildState,
    ModuleGraph,
    SourceFile,
    StateTransition,
)

logger = logging.getLogger(__name__)


class Build:
    def __init__(
        self,
        files: Iterable[SourceFile],
        options: BuildOptions | None = None,
        sandbox: NodeSandbox | None = None,
    ) -> None:
        self.files = tuple(files)
        self.options = options or BuildOptions()
        self.sandbox = sandbox
        self.state = BuildState.IDLE
        self.history: list[StateTransition] = [StateTransition(BuildState.IDLE, 0.0)]
        self.graph: ModuleGraph | None = None
        self.loader: ModuleLoader | None = None
        self.entry: str | None = None
        self.choice: ExportChoice | None = None
        self._started = time.monotonic()
        self._result: BuildResult | None = None
        self._markup: str | None = None
        self._warnings: list[str] = []

    def _transition(self, state: BuildState) -> None:
        if self.state in TERMINAL_STATES:
            raise RuntimeError(f"Build already finished in state {self.state.value}")
        self.state = state
        self.history.append(StateTransition(state, time.monotonic() - self._started))
        logger.debug("build: -> %s", state.value)

    def run(self) -> BuildResult:
        """Drive the build to a terminal state. Repeated calls return the same result."""
        if self._result is not None:
            return self._result

        try:
            document = self._run_stages()
            self._transition(BuildState.READY)
            logger.info("build: ready, entry=%s, %d modules", self.entry, len(self.graph.modules))
            self._result = self._finish(document, None)
        except PreviewError as e:
            self._transition(BuildState.ERRORED)
            logger.warning("build: errored, %s", e)
            self._result = self._finish(render_error_document(e, self.options), e)
        except Exception as e:
            logger.exception("build: unexpected failure")
            error = RuntimeExecutionError(self.entry or "<build>", f"{type(e).__name__}: {e}")
            self._transition(BuildState.ERRORED)
            self._result = self._finish(render_error_document(error, self.options), error)
        return self._result

    def _run_stages(self) -> str:
        self._transition(BuildState.TRANSPILING)
        graph = compile_snapshot(self.files)
        self.graph = graph

        self._transition(BuildState.LOADING)
        resolver = ModuleResolver(graph.order)
        self.entry = select_entry(graph.order, self.options.entry_path, compiled=graph.compiled)
        self.loader = ModuleLoader(graph, resolver)
        record = self.loader.require(self.entry)

        self._transition(BuildState.RENDERING)
        self.choice = normalize_export(record.exports, self.entry)
        logger.debug("build: entry %s exports %s (certain=%s)", self.entry, self.choice.form.value, self.choice.certain)

        manifest = build_manifest(graph, resolver, self.entry, self.options.transpile_mode)
        if self.sandbox is not None:
            self._execute_headless(manifest)
        return render_document(manifest, self.options)

    def _execute_headless(self, manifest: dict) -> None:
        try:
            outcome = self.sandbox.execute(manifest)
        except SandboxUnavailable as e:
            logger.warning("sandbox: unavailable, %s", e)
            self._warnings.append(f"Headless render skipped: {e}")
            return
        if not outcome.ok:
            raise outcome.error
        self._markup = outcome.markup

    def _finish(self, document: str, error: PreviewError | None) -> BuildResult:
        graph = self.graph or ModuleGraph()
        return BuildResult(
            state=self.state,
            document=document,
            entry=self.entry,
            error=error,
            modules=list(graph.order),
            compile_errors=dict(graph.compile_errors),
            assets=list(graph.assets),
            history=list(self.history),
            markup=self._markup,
            warnings=list(self._warnings),
        )


def build_preview(files: Iterable[SourceFile], options: BuildOptions | None = None, sandbox: NodeSandbox | None = None) -> BuildResult:
    """Convenience wrapper: one Build, run to completion."""
    return Build(files, options, sandbox).run()


def single_file_snapshot(code: str, entry_path: str) -> list[SourceFile]:
    """Wrap a single source string as the canonical entry file."""
    return [SourceFile(path=entry_path, content=code)]
