"""
Preview Engine — Runtime Manifest

The JavaScript runtime (js/runtime.js) receives everything it needs about a
build as one JSON manifest:

  entry        canonical entry key
  mode         "server" (modules hold compiled code) or "browser" (raw source,
               compiled in-page by Babel)
  modules      key -> code
  failed       key -> CompileError report, raised when that key is required
  resolutions  importer -> {specifier -> key | null}
  reserved     reserved specifier -> built-in key (for non-literal requires)
"""

from __future__ import annotations

from typing import Any

from engine.preview.resolver import ModuleResolver
from engine.preview.shim import RESERVED_MODULES, read_script
from engine.preview.types import ModuleGraph, TranspileMode


def build_manifest(
    graph: ModuleGraph,
    resolver: ModuleResolver,
    entry: str | None,
    mode: TranspileMode = TranspileMode.SERVER,
) -> dict[str, Any]:
    if mode == TranspileMode.BROWSER:
        modules = {key: graph.modules[key].source for key in graph.order if key in graph.modules}
    else:
        modules = {key: graph.modules[key].code for key in graph.order if key in graph.modules}
    specifiers = {key: graph.modules[key].specifiers for key in graph.order if key in graph.modules}
    return {
        "entry": entry,
        "mode": mode.value,
        "modules": modules,
        "failed": {key: err.to_dict() for key, err in graph.compile_errors.items()},
        "resolutions": resolver.resolution_table(specifiers),
        "reserved": dict(RESERVED_MODULES),
    }


def browser_bootstrap() -> str:
    """Inline script for the preview document: runtime + shim + host, then boot."""
    return "\n".join([
        "(function () {",
        '"use strict";',
        read_script("shim.js"),
        read_script("runtime.js"),
        read_script("browser_host.js"),
        "var overlay = document.getElementById('preview-error');",
        "try {",
        "  var manifest = JSON.parse(document.getElementById('preview-manifest').textContent);",
        "  var host = createBrowserHost(window.React, window.ReactDOM, window.Babel, document);",
        "  createPreviewRuntime(manifest, host).boot();",
        "} catch (err) {",
        "  document.getElementById('preview-root').hidden = true;",
        "  overlay.textContent = 'Preview runtime failed to start: ' + (err && err.message ? err.message : err);",
        "  overlay.hidden = false;",
        "}",
        "})();",
    ])


def sandbox_scripts() -> dict[str, str]:
    return {
        "headless": read_script("headless.js"),
        "shim": read_script("shim.js"),
        "runtime": read_script("runtime.js"),
    }
