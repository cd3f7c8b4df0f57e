"""
Preview Build -- State Machine & End-to-End Tests

Covers:
  - idle → transpiling → loading → rendering → ready
  - Every failure ends in errored with an error document
  - run() is idempotent, terminal states are final
  - Compile failures in modules that are never required are harmless
  - Headless sandbox missing degrades to a warning
  - Unexpected exceptions become RuntimeExecutionError
  - Browser transpile mode
"""

import json
import re

import pytest

from engine.preview.build import Build, build_preview, single_file_snapshot
from engine.preview.errors import EntryNotFound, InvalidEntryExport, ModuleNotFound, RuntimeExecutionError
from engine.preview.sandbox import NodeSandbox
from engine.preview.types import BuildOptions, BuildState, TranspileMode


APP = (
    "import { View, Text, StyleSheet } from 'react-native';\n"
    "\n"
    "export default function App() {\n"
    "  return (\n"
    "    <View style={styles.box}>\n"
    "      <Text>Hi</Text>\n"
    "    </View>\n"
    "  );\n"
    "}\n"
    "\n"
    "const styles = StyleSheet.create({ box: { padding: 4 } });\n"
)


def states(result):
    return [t.state for t in result.history]


# ============================================================================
# Happy path
# ============================================================================


class TestReady:
    def test_single_file_app(self):
        result = build_preview(single_file_snapshot(APP, "app/index.tsx"))
        assert result.ok
        assert result.entry == "app/index.tsx"
        assert states(result) == [
            BuildState.IDLE,
            BuildState.TRANSPILING,
            BuildState.LOADING,
            BuildState.RENDERING,
            BuildState.READY,
        ]
        assert 'data-preview-state="loading"' in result.document
        assert result.error is None

    def test_history_is_monotonic(self):
        result = build_preview(single_file_snapshot(APP, "app/index.tsx"))
        offsets = [t.at for t in result.history]
        assert offsets == sorted(offsets)

    def test_multi_file_with_assets(self, make_files):
        result = build_preview(make_files({
            "app/index.tsx": "import { Title } from '../components/Title';\nexport default () => <Title />;",
            "components/Title.tsx": "import { Text } from 'react-native';\nexport const Title = () => <Text>T</Text>;",
            "assets/icon.png": "...",
        }))
        assert result.ok
        assert result.modules == ["app/index.tsx", "components/Title.tsx"]
        assert result.assets == ["assets/icon.png"]

    def test_entry_falls_back_to_first_file(self, make_files):
        result = build_preview(make_files({"App.tsx": "export default function App() { return null; }"}))
        assert result.ok
        assert result.entry == "App.tsx"

    def test_fallback_entry_skips_broken_file(self, make_files):
        result = build_preview(make_files({
            "app/broken.tsx": "export default () => <",
            "app/home.tsx": "export default function Home() { return null; }",
        }))
        assert result.ok, result.error
        assert result.entry == "app/home.tsx"
        assert list(result.compile_errors) == ["app/broken.tsx"]

    def test_run_is_idempotent(self):
        build = Build(single_file_snapshot(APP, "app/index.tsx"))
        first = build.run()
        assert build.run() is first
        assert len(first.history) == 5

    def test_terminal_state_is_final(self):
        build = Build(single_file_snapshot(APP, "app/index.tsx"))
        build.run()
        with pytest.raises(RuntimeError):
            build._transition(BuildState.LOADING)


# ============================================================================
# Failures
# ============================================================================


class TestErrored:
    def test_string_default_export(self):
        result = build_preview(single_file_snapshot('export default "hello";', "app/index.tsx"))
        assert result.state == BuildState.ERRORED
        assert isinstance(result.error, InvalidEntryExport)
        assert result.error.exported_keys == ["default"]
        assert states(result)[-2:] == [BuildState.RENDERING, BuildState.ERRORED]
        assert "Exported keys: [&quot;default&quot;]" in result.document
        assert "<script" not in result.document

    def test_missing_import(self, make_files):
        result = build_preview(make_files({
            "app/index.tsx": "import { Header } from './Header';\nexport default () => <Header />;",
        }))
        assert isinstance(result.error, ModuleNotFound)
        assert result.error.specifier == "./Header"
        assert states(result)[-2:] == [BuildState.LOADING, BuildState.ERRORED]

    def test_compile_error_in_entry(self):
        result = build_preview(single_file_snapshot("export default () => <View", "app/index.tsx"))
        assert result.state == BuildState.ERRORED
        assert result.error.kind == "CompileError"
        assert "app/index.tsx" in result.compile_errors

    def test_unrequired_compile_error_is_harmless(self, make_files):
        result = build_preview(make_files({
            "app/index.tsx": APP,
            "app/scratch.tsx": "export const = ;",
        }))
        assert result.ok
        assert list(result.compile_errors) == ["app/scratch.tsx"]

    def test_empty_snapshot(self):
        result = build_preview([])
        assert isinstance(result.error, EntryNotFound)
        assert result.entry is None

    def test_only_assets(self, make_files):
        result = build_preview(make_files({"app.json": "{}"}))
        assert isinstance(result.error, EntryNotFound)

    def test_unexpected_exception_is_wrapped(self, monkeypatch):
        def explode(files):
            raise ValueError("parser exploded")

        monkeypatch.setattr("engine.preview.build.compile_snapshot", explode)
        result = build_preview(single_file_snapshot(APP, "app/index.tsx"))
        assert isinstance(result.error, RuntimeExecutionError)
        assert result.error.key == "<build>"
        assert "ValueError: parser exploded" in str(result.error)


# ============================================================================
# Options
# ============================================================================


class TestOptions:
    def test_custom_entry_path(self, make_files):
        result = build_preview(
            make_files({
                "app/index.tsx": 'export default "not me";',
                "src/main.tsx": "export default () => null;",
            }),
            BuildOptions(entry_path="src/main.tsx"),
        )
        assert result.ok
        assert result.entry == "src/main.tsx"

    def test_browser_mode_ships_source(self):
        result = build_preview(
            single_file_snapshot(APP, "app/index.tsx"),
            BuildOptions(transpile_mode=TranspileMode.BROWSER),
        )
        assert result.ok
        match = re.search(r'id="preview-manifest">(.*?)</script>', result.document, re.S)
        manifest = json.loads(match.group(1))
        assert manifest["mode"] == "browser"
        assert manifest["modules"]["app/index.tsx"] == APP
        assert "@babel/standalone" in result.document

    def test_missing_node_degrades_to_warning(self):
        sandbox = NodeSandbox(node_binary="definitely-not-node-xyz")
        result = build_preview(single_file_snapshot(APP, "app/index.tsx"), sandbox=sandbox)
        assert result.ok
        assert result.markup is None
        assert result.warnings and result.warnings[0].startswith("Headless render skipped:")


class TestReport:
    def test_to_dict(self):
        result = build_preview(single_file_snapshot('export default "hello";', "app/index.tsx"))
        report = result.to_dict()
        assert report["state"] == "errored"
        assert report["error"]["kind"] == "InvalidEntryExport"
        assert [h["state"] for h in report["history"]] == ["idle", "transpiling", "loading", "rendering", "errored"]
        json.dumps(report)


class TestScenarios:
    def test_inline_arrow_app(self):
        code = "import {View,Text} from 'react-native'; export default () => <View><Text>Hi</Text></View>;"
        result = build_preview(single_file_snapshot(code, "app/index.tsx"))
        assert result.state == BuildState.READY

    def test_numeric_default_export(self):
        result = build_preview(single_file_snapshot("export default 5;", "app/index.tsx"))
        assert result.state == BuildState.ERRORED
        assert isinstance(result.error, InvalidEntryExport)
        assert "app/index.tsx" in result.document
        assert "Exported keys: [&quot;default&quot;]" in result.document
