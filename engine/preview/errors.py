"""
Preview Engine — Error Taxonomy

Every failure a build can end in is one of these. Each carries the most
specific diagnostic available and knows how to describe itself for the
error overlay (`describe`) and for JSON reports (`to_dict`).

The JavaScript runtime reports the same kinds by name; `error_from_payload`
turns such a report back into the Python exception.
"""

from __future__ import annotations

import json
from typing import Any


class PreviewError(Exception):
    """Base class for build-fatal preview failures."""

    kind = "PreviewError"

    def describe(self) -> str:
        """Overlay text: kind, message, then any detail lines."""
        return f"{self.kind}: {self}"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": str(self)}


class CompileError(PreviewError):
    """A single file failed to transpile. Deferred until that module is required."""

    kind = "CompileError"

    def __init__(self, path: str, message: str, line: int | None = None, column: int | None = None) -> None:
        self.path = path
        self.message = message
        self.line = line
        self.column = column
        location = f"{path}:{line}:{column}" if line is not None else path
        super().__init__(f"Failed to compile {location}: {message}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "message": str(self),
            "path": self.path,
            "diagnostic": self.message,
            "line": self.line,
            "column": self.column,
        }


class ModuleNotFound(PreviewError):
    """A specifier resolved to nothing, or a key is neither compiled nor built-in."""

    kind = "ModuleNotFound"

    def __init__(self, specifier: str, importer: str | None = None) -> None:
        self.specifier = specifier
        self.importer = importer
        message = f"Module not found: {specifier!r}"
        if importer:
            message += f" (imported from {importer})"
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": str(self), "specifier": self.specifier, "importer": self.importer}


class EntryNotFound(PreviewError):
    """The snapshot holds no executable module to use as entry."""

    kind = "EntryNotFound"

    def __init__(self, message: str = "No entry file found. Add at least one .tsx, .ts, .jsx or .js file.") -> None:
        super().__init__(message)


class InvalidEntryExport(PreviewError):
    """The entry module exports nothing callable."""

    kind = "InvalidEntryExport"

    def __init__(self, entry: str, exported_keys: list[str]) -> None:
        self.entry = entry
        self.exported_keys = list(exported_keys)
        super().__init__(f"No valid component exported from {entry}.")

    def describe(self) -> str:
        return (
            f"{self.kind}: {self}\n\n"
            "Make sure to export default a component or export a component named 'App'.\n\n"
            f"Exported keys: {json.dumps(self.exported_keys)}"
        )

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": str(self), "entry": self.entry, "exported_keys": self.exported_keys}


class RuntimeExecutionError(PreviewError):
    """A module body (or the render of the entry component) threw."""

    kind = "RuntimeExecutionError"

    def __init__(self, key: str, message: str, stack: str | None = None) -> None:
        self.key = key
        self.message = message
        self.stack = stack
        super().__init__(f"Error while executing {key}: {message}")

    def describe(self) -> str:
        text = f"{self.kind}: {self}"
        if self.stack:
            text += f"\n\n{self.stack}"
        return text

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": str(self), "key": self.key, "error": self.message, "stack": self.stack}


class SandboxUnavailable(Exception):
    """The headless sandbox could not run (no node, crash, garbled output). Not a build failure."""

    pass


def error_from_payload(payload: dict[str, Any]) -> PreviewError:
    """Rebuild a PreviewError from a runtime error report."""
    kind = payload.get("kind")
    message = payload.get("message") or "Unknown error"
    if kind == "CompileError":
        return CompileError(
            payload.get("path") or payload.get("key") or "<unknown>",
            payload.get("diagnostic") or message,
            payload.get("line"),
            payload.get("column"),
        )
    if kind == "ModuleNotFound":
        return ModuleNotFound(payload.get("specifier") or "<unknown>", payload.get("importer"))
    if kind == "EntryNotFound":
        return EntryNotFound(message)
    if kind == "InvalidEntryExport":
        return InvalidEntryExport(payload.get("entry") or "<unknown>", payload.get("exportedKeys") or [])
    return RuntimeExecutionError(
        payload.get("key") or "<unknown>",
        payload.get("error") or message,
        payload.get("stack"),
    )
