"""
Preview Engine — Headless Sandbox

Runs the preview runtime for one build in a short-lived Node process
(js/sandbox_host.js): a fresh `vm` context per build, the headless React
stand-in, and the same shim and CommonJS runtime the page uses. Lets the
server report runtime failures (a module body throwing, a render error, a
lazy require that resolves to nothing) instead of only the browser.

The Node process is infrastructure. If it is missing, crashes or answers
with garbage, SandboxUnavailable is raised and the build carries on without
a headless result.
"""

from __future__ import annotations

import json
import logging
import shutil
import subprocess
from dataclasses import dataclass, field
from typing import Any

from engine.preview.errors import PreviewError, RuntimeExecutionError, SandboxUnavailable, error_from_payload
from engine.preview.runtime import sandbox_scripts
from engine.preview.shim import SCRIPTS_DIR

logger = logging.getLogger(__name__)


@dataclass
class SandboxResult:
    state: str  # "ready" | "errored"
    markup: str | None = None
    error: PreviewError | None = None
    form: str | None = None
    states: list[str] = field(default_factory=list)
    loaded: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state == "ready"


class NodeSandbox:
    """One-shot `node sandbox_host.js` per execute() call."""

    def __init__(self, node_binary: str = "node", timeout_seconds: float = 5.0) -> None:
        self.node_binary = node_binary
        self.timeout_seconds = timeout_seconds

    def available(self) -> bool:
        return shutil.which(self.node_binary) is not None

    def execute(self, manifest: dict[str, Any]) -> SandboxResult:
        """
        Execute a build manifest headlessly.

        Returns:
            SandboxResult with the rendered markup or the runtime's error

        Raises:
            SandboxUnavailable: If node is missing or did not produce a result
        """
        if not self.available():
            raise SandboxUnavailable(f"node binary not found: {self.node_binary}")

        request = {
            "manifest": manifest,
            "scripts": sandbox_scripts(),
            # vm timeout fires before the process timeout so a runaway module
            # is reported as a build error rather than a sandbox fault
            "timeoutMs": int(self.timeout_seconds * 1000 * 0.8),
        }
        host_script = SCRIPTS_DIR / "sandbox_host.js"

        try:
            result = subprocess.run(  # noqa: S603
                [self.node_binary, str(host_script)],
                input=json.dumps(request),
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
                check=True,
            )
        except subprocess.CalledProcessError as e:
            raise SandboxUnavailable(f"Sandbox failed: {e.stderr.strip()}") from e
        except subprocess.TimeoutExpired as e:
            entry = manifest.get("entry") or "<entry>"
            raise RuntimeExecutionError(entry, f"Timed out after {self.timeout_seconds}s") from e
        except OSError as e:
            raise SandboxUnavailable(f"Sandbox error: {e}") from e

        try:
            payload = json.loads(result.stdout.strip().splitlines()[-1])
        except (IndexError, ValueError) as e:
            raise SandboxUnavailable(f"Sandbox returned no result: {result.stdout[:200]!r}") from e

        state = payload.get("state")
        if state not in ("ready", "errored"):
            raise SandboxUnavailable(f"Sandbox returned unknown state: {state!r}")

        logger.debug("sandbox: %s after states %s", state, payload.get("states"))
        return SandboxResult(
            state=state,
            markup=payload.get("markup"),
            error=error_from_payload(payload["error"]) if state == "errored" else None,
            form=payload.get("form"),
            states=list(payload.get("states") or []),
            loaded=list(payload.get("loaded") or []),
        )
