"""
Preview Resolver -- Resolution Tests

The resolver maps (importer, specifier) to exactly one canonical key or
raises ModuleNotFound. Pure function of the known key set.

Covers:
  - Path normalisation (./, .., backslashes, clamping at the root)
  - Reserved runtime names win over project files
  - "@/" alias, relative, and root-relative fallback
  - Fixed extension order, then directory index
  - Determinism and the precomputed resolution table
"""

import pytest

from engine.preview.errors import ModuleNotFound
from engine.preview.resolver import ModuleResolver, join_path, normalize_path


# ============================================================================
# Path normalisation
# ============================================================================


class TestNormalizePath:
    def test_strips_dot_segments_and_leading_slash(self):
        assert normalize_path("./app/./index.tsx") == "app/index.tsx"
        assert normalize_path("/app/index.tsx") == "app/index.tsx"

    def test_collapses_parent_segments(self):
        assert normalize_path("app/components/../index.tsx") == "app/index.tsx"

    def test_parent_above_root_is_clamped(self):
        assert normalize_path("../../index.tsx") == "index.tsx"

    def test_backslashes_become_forward_slashes(self):
        assert normalize_path("app\\components\\Button.tsx") == "app/components/Button.tsx"

    def test_join_is_relative_to_importer_directory(self):
        assert join_path("app/screens/Home.tsx", "../components/Button") == "app/components/Button"
        assert join_path("index.tsx", "./App") == "App"


# ============================================================================
# Priority order
# ============================================================================


KEYS = [
    "app/index.tsx",
    "app/App.tsx",
    "app/components/Button.tsx",
    "app/components/Button.ts",
    "app/utils.ts",
    "app/theme/index.ts",
    "lib/format.js",
    "react.tsx",
]


@pytest.fixture
def resolver():
    return ModuleResolver(KEYS)


class TestPriority:
    def test_reserved_names_resolve_to_builtins(self, resolver):
        assert resolver.resolve("app/index.tsx", "react") == "react"
        assert resolver.resolve("app/index.tsx", "react-native") == "react-native"
        assert resolver.resolve("app/index.tsx", "react-native-web") == "react-native"
        assert resolver.resolve("app/index.tsx", "react-dom/client") == "react-dom"

    def test_reserved_name_beats_project_file(self, resolver):
        # react.tsx exists at the root, but "react" is reserved
        assert resolver.resolve("app/index.tsx", "react") == "react"

    def test_alias_is_root_relative(self, resolver):
        assert resolver.resolve("app/components/Button.tsx", "@/lib/format") == "lib/format.js"

    def test_relative_specifier(self, resolver):
        assert resolver.resolve("app/index.tsx", "./App") == "app/App.tsx"
        assert resolver.resolve("app/components/Button.tsx", "../utils") == "app/utils.ts"

    def test_bare_specifier_falls_back_to_root(self, resolver):
        assert resolver.resolve("app/index.tsx", "lib/format") == "lib/format.js"

    def test_literal_specifier_with_extension(self, resolver):
        assert resolver.resolve("app/index.tsx", "./components/Button.ts") == "app/components/Button.ts"


class TestExtensions:
    def test_tsx_wins_over_ts(self, resolver):
        assert resolver.resolve("app/index.tsx", "./components/Button") == "app/components/Button.tsx"

    def test_directory_index_after_extensions(self, resolver):
        assert resolver.resolve("app/index.tsx", "./theme") == "app/theme/index.ts"

    def test_file_beats_directory_index(self):
        resolver = ModuleResolver(["app/theme.ts", "app/theme/index.ts"])
        assert resolver.resolve("app/index.tsx", "./theme") == "app/theme.ts"


# ============================================================================
# Failures
# ============================================================================


class TestModuleNotFound:
    def test_unknown_specifier_raises_with_context(self, resolver):
        with pytest.raises(ModuleNotFound) as exc:
            resolver.resolve("app/index.tsx", "./Missing")
        assert exc.value.specifier == "./Missing"
        assert exc.value.importer == "app/index.tsx"
        assert "./Missing" in str(exc.value)
        assert "app/index.tsx" in str(exc.value)

    def test_node_modules_package_is_not_found(self, resolver):
        with pytest.raises(ModuleNotFound):
            resolver.resolve("app/index.tsx", "expo-router")

    def test_non_executable_files_are_not_keys(self):
        resolver = ModuleResolver(["app/index.tsx"])
        assert resolver.lookup("app/index.tsx", "./logo.png") is None

    def test_lookup_returns_none_instead_of_raising(self, resolver):
        assert resolver.lookup("app/index.tsx", "./nope") is None


# ============================================================================
# Purity
# ============================================================================


class TestDeterminism:
    def test_same_question_same_answer(self, resolver):
        answers = {resolver.resolve("app/index.tsx", "./components/Button") for _ in range(50)}
        assert answers == {"app/components/Button.tsx"}

    def test_key_order_does_not_matter(self):
        forward = ModuleResolver(KEYS)
        backward = ModuleResolver(list(reversed(KEYS)))
        for spec in ("./App", "./components/Button", "./theme", "@/lib/format", "react"):
            assert forward.lookup("app/index.tsx", spec) == backward.lookup("app/index.tsx", spec)

    def test_resolution_table_marks_unresolved_as_none(self, resolver):
        table = resolver.resolution_table({"app/index.tsx": ["./App", "react", "./gone"]})
        assert table == {"app/index.tsx": {"./App": "app/App.tsx", "react": "react", "./gone": None}}

