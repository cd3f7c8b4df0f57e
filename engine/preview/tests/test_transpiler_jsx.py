"""
Preview Transpiler -- JSX Tests

JSX lowers to classic-runtime React.createElement calls against a
module-local require("react").

Covers:
  - Intrinsic (lower-case) tags become strings, components stay references
  - Attributes: strings, expressions, booleans, spreads, hyphenated names
  - Children: text whitespace rules, entities, expressions, comments
  - Fragments, member-expression tags, JSX inside attributes
  - Imported components are read through the module object
"""

from engine.preview.transpiler import clean_jsx_text, compile_file
from engine.preview.types import Dependency, SourceFile


# ============================================================================
# Helpers
# ============================================================================


def compile_code(code, path="app/index.tsx"):
    return compile_file(SourceFile(path=path, content=code))


def assert_contains(code, *fragments):
    for fragment in fragments:
        assert fragment in code, f"Expected {fragment!r} in compiled output.\nGot:\n{code}"


# ============================================================================
# Elements
# ============================================================================


class TestElements:
    def test_intrinsic_tag_is_a_string(self):
        code = compile_code('export const el = <div className="box">hi</div>;').code
        assert_contains(code, '_react.createElement("div", { className: "box" }, "hi")')

    def test_component_tag_is_a_reference(self):
        code = compile_code('const Card = () => null;\nexport const el = <Card title="x" />;').code
        assert_contains(code, '_react.createElement(Card, { title: "x" })')

    def test_no_attributes_passes_null(self):
        code = compile_code("const Card = () => null;\nexport const el = <Card />;").code
        assert_contains(code, "_react.createElement(Card, null)")

    def test_member_expression_tag(self):
        code = compile_code("const UI = { Box: () => null };\nexport const el = <UI.Box />;").code
        assert_contains(code, "_react.createElement(UI.Box, null)")

    def test_react_is_required_once(self):
        module = compile_code("export const a = <div />;\nexport const b = <span />;")
        assert module.code.count('var _react = require("react");') == 1
        assert Dependency("react", "import", True) in module.dependencies

    def test_imported_component_is_a_live_read(self):
        code = compile_code('import { View } from "react-native";\nexport const el = <View />;').code
        assert_contains(
            code,
            'var _react_native = require("react-native");',
            "_react.createElement(_react_native.View, null)",
        )


# ============================================================================
# Attributes
# ============================================================================


class TestAttributes:
    def test_boolean_shorthand(self):
        code = compile_code("export const el = <input disabled />;").code
        assert_contains(code, '_react.createElement("input", { disabled: true })')

    def test_expression_value(self):
        code = compile_code("const n = 1;\nexport const el = <div tabIndex={n + 1} />;").code
        assert_contains(code, "{ tabIndex: n + 1 }")

    def test_spread_keeps_position(self):
        code = compile_code("const rest = {};\nexport const el = <div {...rest} id=\"a\" />;").code
        assert_contains(code, '{ ...rest, id: "a" }')

    def test_hyphenated_names_are_quoted(self):
        code = compile_code('export const el = <div data-id="x" aria-label="y" />;').code
        assert_contains(code, '{ "data-id": "x", "aria-label": "y" }')

    def test_entities_in_string_values_are_decoded(self):
        code = compile_code('export const el = <div title="a &lt; b" />;').code
        assert_contains(code, '{ title: "a < b" }')

    def test_jsx_as_attribute_value(self):
        code = compile_code("const Card = () => null;\nconst Icon = () => null;\nexport const el = <Card icon={<Icon />} />;").code
        assert_contains(code, "_react.createElement(Card, { icon: _react.createElement(Icon, null) })")


# ============================================================================
# Children
# ============================================================================


class TestChildren:
    def test_multiline_text_collapses_to_single_spaces(self):
        code = compile_code(
            "export const el = (\n"
            "  <p>\n"
            "    Hello\n"
            "    world\n"
            "  </p>\n"
            ");\n"
        ).code
        assert_contains(code, '_react.createElement("p", null, "Hello world")')

    def test_whitespace_between_elements_is_dropped(self):
        code = compile_code(
            "export const el = (\n"
            "  <ul>\n"
            "    <li />\n"
            "    <li />\n"
            "  </ul>\n"
            ");\n"
        ).code
        assert_contains(
            code,
            '_react.createElement("ul", null, _react.createElement("li", null), _react.createElement("li", null))',
        )

    def test_entities_in_text_are_decoded(self):
        code = compile_code("export const el = <p>Tom &amp; Jerry</p>;").code
        assert_contains(code, '"Tom & Jerry"')

    def test_expression_children_and_comments(self):
        code = compile_code('const name = "x";\nexport const el = <p>{/* note */}{name}</p>;').code
        assert_contains(code, '_react.createElement("p", null, name)')

    def test_text_around_expression_keeps_inline_spaces(self):
        code = compile_code("const n = 3;\nexport const el = <p>Count: {n} items</p>;").code
        assert_contains(code, '_react.createElement("p", null, "Count: ", n, " items")')

    def test_fragment(self):
        code = compile_code("export const el = <><br /><hr /></>;").code
        assert_contains(
            code,
            '_react.createElement(_react.Fragment, null, _react.createElement("br", null), _react.createElement("hr", null))',
        )


class TestCleanJsxText:
    def test_single_line_is_kept_verbatim(self):
        assert clean_jsx_text("  a  b  ") == "  a  b  "

    def test_whitespace_only_lines_vanish(self):
        assert clean_jsx_text("\n   \n  ") == ""

    def test_lines_are_trimmed_and_joined(self):
        assert clean_jsx_text("\n  first\n  second  \n") == "first second"
