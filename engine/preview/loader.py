"""
Preview Engine — Module Loader

Static link pass over a compiled snapshot. Mirrors what the runtime's
requireModule does when the entry is executed, minus running any code:

  - a record is inserted into the cache *before* the module's eager
    dependencies are visited, so a cycle sees the in-progress record and
    terminates;
  - each module is visited at most once per loader (singleton semantics);
  - requiring a failed module raises its deferred CompileError, an
    unresolvable eager specifier raises ModuleNotFound.

Lazy dependencies (require(), import()) are not followed; the runtime
resolves them only if they execute.
"""

from __future__ import annotations

import logging

from engine.preview.errors import ModuleNotFound
from engine.preview.resolver import ModuleResolver
from engine.preview.shim import BUILTIN_KEYS, SHIM_EXPORTS
from engine.preview.types import Callability, ExportShape, ModuleGraph, ModuleRecord

logger = logging.getLogger(__name__)

_SHIM_VALUES = frozenset({"Alert", "StyleSheet", "Platform", "Dimensions"})


def _builtin_shape(key: str) -> ExportShape:
    if key == "react-native":
        shape = ExportShape()
        for name in SHIM_EXPORTS:
            shape.add(name, Callability.NOT_CALLABLE if name in _SHIM_VALUES else Callability.CALLABLE)
        return shape
    # react / react-dom: surface comes from the host page.
    return ExportShape(opaque=True, value=Callability.NOT_CALLABLE)


class ModuleLoader:
    """One build's module table. Never shared between builds."""

    def __init__(self, graph: ModuleGraph, resolver: ModuleResolver) -> None:
        self._graph = graph
        self._resolver = resolver
        self._records: dict[str, ModuleRecord] = {}

    @property
    def records(self) -> dict[str, ModuleRecord]:
        return dict(self._records)

    @property
    def load_order(self) -> list[str]:
        """Keys in the order their records were created (execution start order)."""
        return list(self._records)

    def require(self, key: str, importer: str | None = None) -> ModuleRecord:
        record = self._records.get(key)
        if record is not None:
            return record

        if key in BUILTIN_KEYS:
            record = ModuleRecord(key=key, exports=_builtin_shape(key), initialized=True, builtin=True)
            self._records[key] = record
            return record

        error = self._graph.compile_errors.get(key)
        if error is not None:
            raise error

        module = self._graph.modules.get(key)
        if module is None:
            raise ModuleNotFound(key, importer)

        static = module.exports
        shape = ExportShape(
            es_module=static.es_module,
            names=dict(static.names),
            star_sources=list(static.star_sources),
            opaque=static.opaque,
            value=static.value,
        )
        record = ModuleRecord(key=key, exports=shape)
        self._records[key] = record

        for dep in module.dependencies:
            if not dep.eager:
                continue
            target = self._resolver.resolve(key, dep.specifier)
            dependency = self.require(target, importer=key)
            if dep.specifier in static.star_sources:
                self._merge_star(shape, dependency)

        record.initialized = True
        logger.debug("loader: linked %s (%d exports)", key, len(shape.names))
        return record

    @staticmethod
    def _merge_star(shape: ExportShape, source: ModuleRecord) -> None:
        # export * copies whatever the source has at that moment; a cycle
        # participant may still be partial.
        for name, callability in source.exports.names.items():
            if name != "default" and name not in shape.names:
                shape.add(name, callability)
        if source.exports.opaque:
            shape.opaque = True
