"""
Preview Engine — Module Resolver

Maps (importer key, specifier) to one canonical module key. Pure: the answer
depends only on the static set of known keys, never on call order or I/O.

Priority:
  1. reserved runtime names  → built-in module (react, react-dom, the shim)
  2. "@/" project alias      → project-root-relative
  3. leading "."             → relative to the importer's directory
  4. anything else           → project-root-relative fallback

Cases 2–4 try the literal specifier, then each extension in RESOLVE_EXTENSIONS,
then a directory index. First match wins; no match raises ModuleNotFound.
"""

from __future__ import annotations

import posixpath
from collections.abc import Iterable

from engine.preview.errors import ModuleNotFound
from engine.preview.shim import RESERVED_MODULES

PROJECT_ALIAS = "@/"

RESOLVE_EXTENSIONS: tuple[str, ...] = ("", ".tsx", ".ts", ".jsx", ".js")

INDEX_EXTENSIONS: tuple[str, ...] = (".tsx", ".ts", ".jsx", ".js")


def normalize_path(path: str) -> str:
    """
    Canonical key form: forward slashes, no "./" or leading "/", "." and ".."
    collapsed. ".." above the project root is dropped.
    """
    parts: list[str] = []
    for part in path.replace("\\", "/").split("/"):
        if part in ("", "."):
            continue
        if part == "..":
            if parts:
                parts.pop()
            continue
        parts.append(part)
    return "/".join(parts)


def join_path(importer: str, specifier: str) -> str:
    """Resolve a relative specifier against the importer's directory."""
    return normalize_path(posixpath.join(posixpath.dirname(importer), specifier))


class ModuleResolver:
    """Resolution context for one build."""

    def __init__(self, keys: Iterable[str]) -> None:
        self._keys = frozenset(keys)

    @property
    def keys(self) -> frozenset[str]:
        return self._keys

    def resolve(self, importer: str | None, specifier: str) -> str:
        """Return the canonical key for `specifier` or raise ModuleNotFound."""
        key = self.lookup(importer, specifier)
        if key is None:
            raise ModuleNotFound(specifier, importer)
        return key

    def lookup(self, importer: str | None, specifier: str) -> str | None:
        builtin = RESERVED_MODULES.get(specifier)
        if builtin is not None:
            return builtin

        if specifier.startswith(PROJECT_ALIAS):
            base = normalize_path(specifier[len(PROJECT_ALIAS):])
        elif specifier.startswith("."):
            base = join_path(importer or "", specifier)
        else:
            base = normalize_path(specifier)

        if not base:
            return None
        return self._match(base)

    def _match(self, base: str) -> str | None:
        for ext in RESOLVE_EXTENSIONS:
            candidate = base + ext
            if candidate in self._keys:
                return candidate
        for ext in INDEX_EXTENSIONS:
            candidate = f"{base}/index{ext}"
            if candidate in self._keys:
                return candidate
        return None

    def resolution_table(self, specifiers: dict[str, list[str]]) -> dict[str, dict[str, str | None]]:
        """
        Precompute every importer's specifiers for the JS runtime.
        Unresolvable specifiers map to None so the runtime raises
        ModuleNotFound only if that require actually executes.
        """
        return {
            importer: {spec: self.lookup(importer, spec) for spec in specs}
            for importer, specs in specifiers.items()
        }
