"""
Preview Engine — Entry Point Resolver & Export Normaliser

select_entry picks the module to render. normalize_export decides which of
the entry's exports is the component, with a fixed priority:

  0. the exports value itself is callable (module.exports = App)
  a. ES-module marker set and `default` is callable
  b. `default` is callable
  c. `App` is callable
  d. first callable own property, in insertion order

Works on the statically detected ExportShape. Only raises when every
candidate is known not to be callable; anything unknown is left for the
runtime to decide (the runtime applies the same order to real values).
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum

from engine.preview.errors import EntryNotFound, InvalidEntryExport
from engine.preview.resolver import normalize_path
from engine.preview.types import DEFAULT_ENTRY_PATH, Callability, ExportShape


class ExportForm(str, Enum):
    MODULE_ITSELF = "module"
    ESM_DEFAULT = "esm-default"
    DEFAULT = "default"
    NAMED_APP = "named-app"
    FIRST_CALLABLE = "first-callable"
    DEFERRED = "deferred"


@dataclass(frozen=True)
class ExportChoice:
    form: ExportForm
    name: str | None = None
    certain: bool = True


def select_entry(keys: Sequence[str], preferred: str = DEFAULT_ENTRY_PATH, compiled: Sequence[str] | None = None) -> str:
    """
    Preferred path if present among `keys`, else the first key that
    compiled, else EntryNotFound.

    A preferred entry that failed to compile is still chosen so its
    CompileError is what the build reports.
    """
    wanted = normalize_path(preferred)
    if wanted in keys:
        return wanted
    candidates = keys if compiled is None else compiled
    if candidates:
        return candidates[0]
    raise EntryNotFound()


def normalize_export(shape: ExportShape, entry: str) -> ExportChoice:
    candidates: list[tuple[ExportForm, str | None, Callability]] = [
        (ExportForm.MODULE_ITSELF, None, Callability.UNKNOWN if shape.opaque else shape.value),
    ]
    default = shape.names.get("default")
    if default is not None:
        form = ExportForm.ESM_DEFAULT if shape.es_module else ExportForm.DEFAULT
        candidates.append((form, "default", default))
    app = shape.names.get("App")
    if app is not None:
        candidates.append((ExportForm.NAMED_APP, "App", app))
    for name, callability in shape.names.items():
        if name not in ("default", "App", "__esModule"):
            candidates.append((ExportForm.FIRST_CALLABLE, name, callability))

    for form, name, callability in candidates:
        if callability == Callability.CALLABLE:
            return ExportChoice(form, name, certain=True)
        if callability == Callability.UNKNOWN:
            return ExportChoice(form, name, certain=False)

    if shape.opaque:
        return ExportChoice(ExportForm.DEFERRED, certain=False)
    raise InvalidEntryExport(entry, [name for name in shape.keys() if name != "__esModule"])
