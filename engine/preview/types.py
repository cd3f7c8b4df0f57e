"""
Preview Engine — Shared Types

Data classes used across the transpiler, resolver, loader, entry selection,
document assembly and the build pipeline. One immutable snapshot of source
files flows through these shapes into exactly one build.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EXECUTABLE_EXTENSIONS: tuple[str, ...] = (".js", ".jsx", ".ts", ".tsx")

DEFAULT_ENTRY_PATH = "app/index.tsx"

DEFAULT_REACT_VERSION = "18.3.1"

DEFAULT_CDN_BASE = "https://unpkg.com"


class Callability(str, Enum):
    """What static analysis knows about an exported value."""

    CALLABLE = "callable"
    NOT_CALLABLE = "not_callable"
    UNKNOWN = "unknown"


class BuildState(str, Enum):
    IDLE = "idle"
    TRANSPILING = "transpiling"
    LOADING = "loading"
    RENDERING = "rendering"
    READY = "ready"
    ERRORED = "errored"


TERMINAL_STATES: frozenset[BuildState] = frozenset({BuildState.READY, BuildState.ERRORED})


class TranspileMode(str, Enum):
    """Where module code is produced: here (tree-sitter) or in the page (Babel)."""

    SERVER = "server"
    BROWSER = "browser"


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SourceFile:
    """One file of a project snapshot. `path` is project-root-relative, POSIX-style."""

    path: str
    content: str

    @property
    def is_executable(self) -> bool:
        return self.path.lower().endswith(EXECUTABLE_EXTENSIONS)


@dataclass(frozen=True)
class Dependency:
    """
    A string-literal module specifier found in a source file.

    Import and re-export declarations are eager: they run whenever the module
    body runs. `require()` calls and dynamic `import()` are lazy.
    """

    specifier: str
    kind: str  # "import", "export", "require", "dynamic"
    eager: bool


@dataclass
class ExportShape:
    """
    Statically detected export surface of one module.

    `names` keeps declaration order, which is the order the runtime's
    exports object is populated in.
    """

    es_module: bool = False
    names: dict[str, Callability] = field(default_factory=dict)
    star_sources: list[str] = field(default_factory=list)
    opaque: bool = False  # CommonJS-authored: shape only known at runtime
    value: Callability = Callability.NOT_CALLABLE  # the exports object itself

    def add(self, name: str, callability: Callability) -> None:
        self.names[name] = callability

    def keys(self) -> list[str]:
        return list(self.names)


@dataclass
class CompiledModule:
    """Executable CommonJS-style code produced from one SourceFile."""

    key: str
    path: str
    code: str
    source: str
    dependencies: list[Dependency] = field(default_factory=list)
    exports: ExportShape = field(default_factory=ExportShape)

    @property
    def specifiers(self) -> list[str]:
        seen: dict[str, None] = {}
        for dep in self.dependencies:
            seen.setdefault(dep.specifier, None)
        return list(seen)


@dataclass
class ModuleGraph:
    """Output of the transpile stage for one snapshot."""

    modules: dict[str, CompiledModule] = field(default_factory=dict)
    compile_errors: dict[str, Any] = field(default_factory=dict)  # key -> CompileError
    assets: list[str] = field(default_factory=list)  # non-executable paths
    order: list[str] = field(default_factory=list)  # executable keys, snapshot order

    @property
    def compiled(self) -> list[str]:
        """Keys that compiled successfully, in snapshot order."""
        return [key for key in self.order if key in self.modules]


@dataclass
class ModuleRecord:
    """
    Loader cache entry. Created before the module's dependencies are
    visited, so a cycle participant sees the in-progress record.
    """

    key: str
    exports: ExportShape
    initialized: bool = False
    builtin: bool = False


@dataclass
class BuildOptions:
    """Options controlling how a build compiles and what the document loads."""

    entry_path: str = DEFAULT_ENTRY_PATH
    transpile_mode: TranspileMode = TranspileMode.SERVER
    title: str = "App Preview"
    react_version: str = DEFAULT_REACT_VERSION
    cdn_base: str = DEFAULT_CDN_BASE


@dataclass
class StateTransition:
    state: BuildState
    at: float  # time.monotonic() offset from build start, seconds


@dataclass
class BuildResult:
    """Terminal outcome of one build. `document` is always renderable."""

    state: BuildState
    document: str
    entry: str | None = None
    error: Any = None  # PreviewError | None
    modules: list[str] = field(default_factory=list)
    compile_errors: dict[str, Any] = field(default_factory=dict)  # key -> CompileError
    assets: list[str] = field(default_factory=list)
    history: list[StateTransition] = field(default_factory=list)
    markup: str | None = None  # headless render output, when a sandbox ran
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state == BuildState.READY

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "entry": self.entry,
            "modules": list(self.modules),
            "compile_errors": {key: err.to_dict() for key, err in self.compile_errors.items()},
            "assets": list(self.assets),
            "error": self.error.to_dict() if self.error is not None else None,
            "history": [{"state": t.state.value, "at": round(t.at, 6)} for t in self.history],
            "warnings": list(self.warnings),
            "markup": self.markup,
        }
