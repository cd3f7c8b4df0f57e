"""
Preview Engine — Transpiler

Turns one TypeScript / JSX source file into CommonJS-style JavaScript that the
preview runtime executes with exactly three bindings: require, module, exports.

Uses tree-sitter (tree-sitter-typescript) for parsing. Output is produced by
re-emitting the concrete syntax tree: nodes that need no lowering are copied
verbatim from the source, so formatting and comments survive. Rewritten:

  JSX                 → React.createElement(...) against require("react")
  TypeScript syntax   → erased (annotations, interfaces, assertions, ...)
  enum                → reverse-mapped object IIFE
  import / export     → require() + exports.* with live bindings

Imported names are never copied into locals. Every reference is rewritten to
a property read on the required module object (`_Button.default`), so a cycle
participant sees the value once the other module has finished running.
"""

from __future__ import annotations

import html
import json
import logging
import posixpath
import re
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field

import tree_sitter_typescript
from tree_sitter import Language, Node, Parser

from engine.preview.errors import CompileError
from engine.preview.resolver import normalize_path
from engine.preview.types import (
    Callability,
    CompiledModule,
    Dependency,
    ExportShape,
    ModuleGraph,
    SourceFile,
)

logger = logging.getLogger(__name__)

TS_LANGUAGE = Language(tree_sitter_typescript.language_typescript())
TSX_LANGUAGE = Language(tree_sitter_typescript.language_tsx())

# ---------------------------------------------------------------------------
# Node classes
# ---------------------------------------------------------------------------

# Emitted as nothing.
_ERASED = frozenset({
    "type_annotation",
    "type_parameters",
    "type_arguments",
    "type_predicate_annotation",
    "asserts_annotation",
    "interface_declaration",
    "type_alias_declaration",
    "ambient_declaration",
    "function_signature",
    "abstract_method_signature",
    "method_signature",
    "index_signature",
    "implements_clause",
    "accessibility_modifier",
    "override_modifier",
})

# Emitted as their inner expression.
_UNWRAPPED = frozenset({"as_expression", "satisfies_expression", "non_null_expression", "type_assertion"})

_FUNCTION_SCOPES = frozenset({
    "function_declaration",
    "generator_function_declaration",
    "function_expression",
    "function",
    "generator_function",
    "arrow_function",
    "method_definition",
})

_BLOCK_SCOPES = frozenset({"statement_block", "for_statement", "for_in_statement", "catch_clause"})

_JSX_ELEMENTS = frozenset({"jsx_element", "jsx_self_closing_element", "jsx_fragment"})

_CALLABLE_EXPRESSIONS = frozenset({"arrow_function", "function_expression", "function", "generator_function", "class"})

_VALUE_EXPRESSIONS = frozenset({
    "number",
    "string",
    "template_string",
    "true",
    "false",
    "null",
    "undefined",
    "object",
    "array",
    "regex",
})

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_$][A-Za-z0-9_$]*$")

_HELPERS: dict[str, str] = {
    "__defaultExport": (
        "function __defaultExport(mod) {"
        " return mod && mod.__esModule ? mod.default : mod; }"
    ),
    "__importStar": (
        "function __importStar(mod) {"
        " if (mod && mod.__esModule) return mod;"
        " var ns = {};"
        " if (mod != null) for (var k in mod) if (Object.prototype.hasOwnProperty.call(mod, k)) ns[k] = mod[k];"
        " ns.default = mod; return ns; }"
    ),
    "__exportStar": (
        "function __exportStar(mod, target) {"
        " Object.keys(mod).forEach(function (k) {"
        " if (k === \"default\" || k === \"__esModule\" || Object.prototype.hasOwnProperty.call(target, k)) return;"
        " Object.defineProperty(target, k, { enumerable: true, get: function () { return mod[k]; } }); }); }"
    ),
}


# ---------------------------------------------------------------------------
# Small helpers
# ---------------------------------------------------------------------------


def _has_token(node: Node, *tokens: str) -> bool:
    """True if one of `node`'s direct anonymous children is one of `tokens`."""
    return any(not child.is_named and child.type in tokens for child in node.children)


def _child_of_type(node: Node, *types: str) -> Node | None:
    for child in node.named_children:
        if child.type in types:
            return child
    return None


def _first_expression(node: Node | None) -> Node | None:
    if node is None:
        return None
    for child in node.named_children:
        if child.type != "comment":
            return child
    return None


def _member(name: str) -> str:
    return f".{name}" if _IDENTIFIER_RE.match(name) else f"[{json.dumps(name)}]"


def _prop_key(name: str) -> str:
    return name if _IDENTIFIER_RE.match(name) else json.dumps(name)


def _walk(node: Node) -> Iterator[Node]:
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def clean_jsx_text(raw: str) -> str:
    """
    JSX whitespace rules: lines are trimmed (except the outer edges of the
    first and last line), whitespace-only lines vanish, and the remaining
    lines are joined with single spaces.
    """
    lines = re.split(r"\r\n|\n|\r", raw)
    last_non_empty = 0
    for i, line in enumerate(lines):
        if re.search(r"[^ \t]", line):
            last_non_empty = i

    out = ""
    for i, line in enumerate(lines):
        is_first = i == 0
        is_last = i == len(lines) - 1
        trimmed = line.replace("\t", " ")
        if not is_first:
            trimmed = trimmed.lstrip(" ")
        if not is_last:
            trimmed = trimmed.rstrip(" ")
        if trimmed:
            if i != last_non_empty:
                trimmed += " "
            out += trimmed
    return out


def _enum_number(text: str) -> int | float | None:
    text = text.replace(" ", "").replace("_", "")
    try:
        return int(text, 0)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        return None


def _first_error(root: Node, end: int) -> Node | None:
    """
    Innermost syntax error, or the last token read when the error runs to
    the end of input (truncated source).
    """
    found = next((n for n in _walk(root) if n.type == "ERROR" or n.is_missing), None)
    if found is None:
        return None
    while not found.is_missing:
        inner = next((c for c in found.children if c.is_missing or c.has_error), None)
        if inner is None:
            break
        found = inner
    if found.type == "ERROR" and found.child_count and found.end_byte >= end:
        leaf = found
        while leaf.child_count:
            leaf = leaf.children[-1]
        return leaf
    return found


# ---------------------------------------------------------------------------
# Emitter
# ---------------------------------------------------------------------------


@dataclass
class _ImportDecl:
    specifier: str
    kind: str = "import"
    locals: list[str] = field(default_factory=list)  # default + named bindings
    namespace: str | None = None  # import * as ns
    equals: str | None = None  # import x = require("...")
    side_effect: bool = False
    keep: bool = False  # re-exports, and every import of a plain JS file

    def used(self, referenced: set[str]) -> bool:
        if self.keep or self.side_effect:
            return True
        if self.namespace in referenced or self.equals in referenced:
            return True
        return any(name in referenced for name in self.locals)


class _ModuleEmitter:
    """Re-emits one parsed file as CommonJS. Single use."""

    def __init__(self, source: bytes, root: Node, key: str, typescript: bool) -> None:
        self._src = source
        self._root = root
        self._key = key
        self._typescript = typescript

        self._bindings: dict[str, str] = {}  # imported local -> property read
        self._namespaces: set[str] = set()  # import * as ns / import x = require()
        self._imports: list[_ImportDecl] = []
        self._module_vars: dict[str, str] = {}  # specifier -> module variable
        self._taken: set[str] = set()
        self._referenced: set[str] = set()
        self._locals: dict[str, tuple[str, Node | None]] = {}  # top-level name -> (kind, initializer)
        self._type_names: set[str] = set()
        self._helpers: dict[str, None] = {}
        self._hoisted: list[str] = []
        self._scope_cache: dict[tuple[int, int, str], frozenset[str]] = {}
        self._uses_jsx = False

        self.dependencies: list[Dependency] = []
        self.exports = ExportShape()

        self._handlers: dict[str, Callable[[Node], str]] = {
            "import_statement": lambda node: "",
            "export_statement": self._emit_export_statement,
            "identifier": self._emit_identifier,
            "shorthand_property_identifier": self._emit_shorthand_property,
            "jsx_element": self._emit_jsx,
            "jsx_self_closing_element": self._emit_jsx,
            "jsx_fragment": self._emit_jsx,
            "required_parameter": self._emit_parameter,
            "optional_parameter": self._emit_parameter,
            "public_field_definition": self._emit_field_definition,
            "method_definition": self._emit_method_definition,
            "abstract_class_declaration": self._emit_abstract_class,
            "variable_declarator": self._emit_variable_declarator,
            "enum_declaration": self._emit_enum,
            "call_expression": self._emit_call_expression,
        }
        for node_type in _UNWRAPPED:
            self._handlers[node_type] = self._emit_unwrapped

    # -- driver -----------------------------------------------------------

    def emit(self) -> str:
        self._taken = {
            self._text(n)
            for n in _walk(self._root)
            if n.type in ("identifier", "shorthand_property_identifier_pattern")
        }
        self._scan_module()
        body = self._emit_children(self._root)
        imports = self._import_lines()

        header: list[str] = []
        if self.exports.es_module:
            header.append('"use strict";')
            header.append('Object.defineProperty(exports, "__esModule", { value: true });')
        header.extend(_HELPERS[name] for name in self._helpers)
        header.extend(self._hoisted)
        header.extend(imports)
        return "\n".join(header + [body])

    # -- source access ----------------------------------------------------

    def _slice(self, start: int, end: int) -> str:
        return self._src[start:end].decode("utf-8")

    def _text(self, node: Node) -> str:
        return self._slice(node.start_byte, node.end_byte)

    def _string_value(self, node: Node | None) -> str:
        if node is None:
            return ""
        text = self._text(node)
        return text[1:-1] if len(text) >= 2 and text[0] in "'\"`" else text

    def _name_value(self, node: Node | None) -> str:
        if node is None:
            return ""
        return self._string_value(node) if node.type == "string" else self._text(node)

    # -- generic emission -------------------------------------------------

    def _emit(self, node: Node | None) -> str:
        if node is None:
            return ""
        if node.type in _ERASED:
            return ""
        handler = self._handlers.get(node.type)
        if handler is not None:
            return handler(node)
        if node.child_count == 0:
            return self._text(node)
        return self._emit_children(node)

    def _emit_children(self, node: Node, skip: Callable[[Node], bool] | None = None) -> str:
        parts: list[str] = []
        cursor = node.start_byte
        for child in node.children:
            parts.append(self._slice(cursor, child.start_byte))
            if skip is None or not skip(child):
                parts.append(self._emit(child))
            cursor = child.end_byte
        parts.append(self._slice(cursor, node.end_byte))
        return "".join(parts)

    def _helper(self, name: str) -> str:
        self._helpers.setdefault(name, None)
        return name

    def _module_var(self, specifier: str) -> str:
        var = self._module_vars.get(specifier)
        if var is not None:
            return var
        base = posixpath.basename(specifier.rstrip("/")) or "module"
        base = re.sub(r"[^A-Za-z0-9_$]", "_", base)
        candidate, n = f"_{base}", 1
        while candidate in self._taken:
            n += 1
            candidate = f"_{base}{n}"
        self._taken.add(candidate)
        self._module_vars[specifier] = candidate
        return candidate

    def _add_dependency(self, specifier: str, kind: str, eager: bool) -> None:
        self.dependencies.append(Dependency(specifier=specifier, kind=kind, eager=eager))

    # -- pre-pass over top-level statements -------------------------------

    def _scan_module(self) -> None:
        for node in self._root.named_children:
            if node.type == "import_statement":
                self.exports.es_module = True
                self._scan_import(node)
            elif node.type == "export_statement":
                self.exports.es_module = True
                self._scan_reexport(node)
                declaration = node.child_by_field_name("declaration")
                if declaration is not None:
                    self._record_local(declaration)
            else:
                self._record_local(node)
        if not self.exports.es_module:
            self.exports.opaque = True
            self.exports.value = Callability.UNKNOWN

    def _scan_import(self, node: Node) -> None:
        if _has_token(node, "type", "typeof"):
            for part in _walk(node):
                if part.type == "identifier":
                    self._type_names.add(self._text(part))
            return

        require_clause = _child_of_type(node, "import_require_clause")
        if require_clause is not None:
            local = _child_of_type(require_clause, "identifier")
            source = require_clause.child_by_field_name("source") or _child_of_type(require_clause, "string")
            decl = _ImportDecl(self._string_value(source), equals=self._text(local) if local else None)
            decl.keep = not self._typescript
            if decl.equals:
                self._namespaces.add(decl.equals)
            self._imports.append(decl)
            return

        specifier = self._string_value(node.child_by_field_name("source"))
        clause = _child_of_type(node, "import_clause")
        if clause is None:
            self._imports.append(_ImportDecl(specifier, side_effect=True))
            return

        decl = _ImportDecl(specifier, keep=not self._typescript)
        type_only = 0
        for part in clause.named_children:
            if part.type == "identifier":
                local = self._text(part)
                var = self._module_var(specifier)
                self._bindings[local] = f"{self._helper('__defaultExport')}({var})"
                decl.locals.append(local)
            elif part.type == "namespace_import":
                ident = _child_of_type(part, "identifier")
                if ident is not None:
                    decl.namespace = self._text(ident)
                    self._namespaces.add(decl.namespace)
            elif part.type == "named_imports":
                specs = [s for s in part.named_children if s.type == "import_specifier"]
                if not specs:
                    decl.side_effect = True
                for spec in specs:
                    name_node = spec.child_by_field_name("name")
                    alias_node = spec.child_by_field_name("alias")
                    local = self._text(alias_node or name_node)
                    if _has_token(spec, "type", "typeof"):
                        self._type_names.add(local)
                        type_only += 1
                        continue
                    imported = self._name_value(name_node)
                    var = self._module_var(specifier)
                    if imported == "default":
                        self._bindings[local] = f"{self._helper('__defaultExport')}({var})"
                    else:
                        self._bindings[local] = var + _member(imported)
                    decl.locals.append(local)

        if type_only and not decl.locals and decl.namespace is None:
            return
        self._imports.append(decl)

    def _scan_reexport(self, node: Node) -> None:
        source = node.child_by_field_name("source")
        if source is None or _has_token(node, "type"):
            return
        self._imports.append(_ImportDecl(self._string_value(source), kind="export", keep=True))

    def _record_local(self, node: Node) -> None:
        kind = node.type
        name = node.child_by_field_name("name")
        if kind in ("function_declaration", "generator_function_declaration", "class_declaration", "abstract_class_declaration"):
            if name is not None:
                self._locals[self._text(name)] = ("callable", None)
        elif kind == "enum_declaration":
            if name is not None:
                self._locals[self._text(name)] = ("value", None)
        elif kind in ("interface_declaration", "type_alias_declaration"):
            if name is not None:
                self._type_names.add(self._text(name))
        elif kind in ("lexical_declaration", "variable_declaration"):
            constant = bool(node.children) and node.children[0].type == "const"
            for declarator in node.named_children:
                if declarator.type != "variable_declarator":
                    continue
                target = declarator.child_by_field_name("name")
                if target is None:
                    continue
                if target.type == "identifier" and constant:
                    self._locals[self._text(target)] = ("const", declarator.child_by_field_name("value"))
                else:
                    for bound in self._pattern_names(target):
                        self._locals[bound] = ("mutable", None)

    def _import_lines(self) -> list[str]:
        lines: list[str] = []
        declared: set[str] = set()
        for decl in self._imports:
            if not decl.used(self._referenced):
                continue
            spec = json.dumps(decl.specifier)
            self._add_dependency(decl.specifier, decl.kind, eager=True)
            if decl.equals is not None:
                lines.append(f"var {decl.equals} = require({spec});")
                continue
            if decl.side_effect and not decl.locals and decl.namespace is None and not decl.keep:
                lines.append(f"require({spec});")
                continue
            var = self._module_var(decl.specifier)
            if var not in declared:
                lines.append(f"var {var} = require({spec});")
                declared.add(var)
            if decl.namespace is not None:
                lines.append(f"var {decl.namespace} = {self._helper('__importStar')}({var});")
        if self._uses_jsx:
            var = self._module_var("react")
            if var not in declared:
                self._add_dependency("react", "import", eager=True)
                lines.append(f'var {var} = require("react");')
        return lines

    # -- scopes -----------------------------------------------------------

    def _pattern_names(self, pattern: Node) -> list[str]:
        """Binding names introduced by a declaration target or parameter."""
        kind = pattern.type
        if kind in ("identifier", "shorthand_property_identifier_pattern"):
            return [self._text(pattern)]
        if kind in ("required_parameter", "optional_parameter"):
            inner = pattern.child_by_field_name("pattern")
            return self._pattern_names(inner) if inner is not None else []
        if kind == "assignment_pattern":
            left = pattern.child_by_field_name("left")
            return self._pattern_names(left) if left is not None else []
        if kind == "pair_pattern":
            value = pattern.child_by_field_name("value")
            return self._pattern_names(value) if value is not None else []
        if kind in ("object_pattern", "array_pattern", "rest_pattern", "object_assignment_pattern"):
            children = [c for c in pattern.named_children if c.type not in ("type_annotation", "comment")]
            if kind == "object_assignment_pattern":
                children = children[:1]  # left side; the rest is the default value
            names: list[str] = []
            for child in children:
                names.extend(self._pattern_names(child))
            return names
        return []

    def _statement_declares(self, statement: Node) -> list[str]:
        kind = statement.type
        if kind in ("lexical_declaration", "variable_declaration"):
            names: list[str] = []
            for declarator in statement.named_children:
                if declarator.type == "variable_declarator":
                    target = declarator.child_by_field_name("name")
                    if target is not None:
                        names.extend(self._pattern_names(target))
            return names
        if kind in (
            "function_declaration",
            "generator_function_declaration",
            "class_declaration",
            "abstract_class_declaration",
            "enum_declaration",
        ):
            name = statement.child_by_field_name("name")
            return [self._text(name)] if name is not None else []
        return []

    def _declared_in(self, scope: Node) -> frozenset[str]:
        cache_key = (scope.start_byte, scope.end_byte, scope.type)
        cached = self._scope_cache.get(cache_key)
        if cached is not None:
            return cached

        names: list[str] = []
        kind = scope.type
        if kind in _FUNCTION_SCOPES:
            params = scope.child_by_field_name("parameters")
            if params is not None:
                for param in params.named_children:
                    names.extend(self._pattern_names(param))
            single = scope.child_by_field_name("parameter")
            if single is not None:
                names.extend(self._pattern_names(single))
            if kind in ("function_expression", "function", "generator_function"):
                own = scope.child_by_field_name("name")
                if own is not None:
                    names.append(self._text(own))
        elif kind == "statement_block":
            for statement in scope.named_children:
                names.extend(self._statement_declares(statement))
        elif kind == "for_statement":
            init = scope.child_by_field_name("initializer")
            if init is not None:
                names.extend(self._statement_declares(init))
        elif kind == "for_in_statement":
            left = scope.child_by_field_name("left")
            if left is not None and _has_token(scope, "const", "let", "var"):
                names.extend(self._pattern_names(left))
        elif kind == "catch_clause":
            param = scope.child_by_field_name("parameter")
            if param is not None:
                names.extend(self._pattern_names(param))

        result = frozenset(names)
        self._scope_cache[cache_key] = result
        return result

    def _is_shadowed(self, node: Node, name: str) -> bool:
        scope = node.parent
        while scope is not None and scope.type != "program":
            if (scope.type in _FUNCTION_SCOPES or scope.type in _BLOCK_SCOPES) and name in self._declared_in(scope):
                return True
            scope = scope.parent
        return False

    # -- identifiers ------------------------------------------------------

    def _binding_for(self, node: Node) -> str | None:
        name = self._text(node)
        replacement = self._bindings.get(name)
        if replacement is None and name not in self._namespaces:
            return None
        if self._is_shadowed(node, name):
            return None
        self._referenced.add(name)
        return replacement

    def _emit_identifier(self, node: Node) -> str:
        return self._binding_for(node) or self._text(node)

    def _emit_shorthand_property(self, node: Node) -> str:
        name = self._text(node)
        replacement = self._binding_for(node)
        return f"{name}: {replacement}" if replacement else name

    # -- TypeScript -------------------------------------------------------

    def _emit_unwrapped(self, node: Node) -> str:
        if node.type == "type_assertion":
            inner = node.named_children[-1] if node.named_children else None
        else:
            inner = _first_expression(node)
        return self._emit(inner)

    def _emit_parameter(self, node: Node) -> str:
        pattern = node.child_by_field_name("pattern")
        if pattern is None:
            return ""
        code = self._emit(pattern)
        value = node.child_by_field_name("value")
        if value is not None:
            code += " = " + self._emit(value)
        return code

    def _emit_field_definition(self, node: Node) -> str:
        if _has_token(node, "declare", "abstract"):
            return ""
        name = node.child_by_field_name("name")
        if name is None:
            return self._emit_children(node)
        code = ("static " if _has_token(node, "static") else "") + self._emit(name)
        value = node.child_by_field_name("value")
        if value is not None:
            code += " = " + self._emit(value)
        return code

    def _emit_method_definition(self, node: Node) -> str:
        return self._emit_children(node, skip=lambda child: not child.is_named and child.type == "?")

    def _emit_abstract_class(self, node: Node) -> str:
        return self._emit_children(node, skip=lambda child: not child.is_named and child.type == "abstract")

    def _emit_variable_declarator(self, node: Node) -> str:
        return self._emit_children(node, skip=lambda child: not child.is_named and child.type == "!")

    def _emit_enum(self, node: Node) -> str:
        name = self._text(node.child_by_field_name("name"))
        body = node.child_by_field_name("body")
        lines = [f"var {name};", f"(function ({name}) {{"]
        next_value: int | float | None = 0
        for member in body.named_children if body is not None else []:
            if member.type == "comment":
                continue
            if member.type == "enum_assignment":
                key_node = member.child_by_field_name("name")
                value_node = member.child_by_field_name("value")
            else:
                key_node, value_node = member, None
            key = json.dumps(self._name_value(key_node))

            numeric = True
            if value_node is None:
                if next_value is None:
                    raise CompileError(self._key, f"Enum member {key} must have an initializer", *self._position(member))
                value_code = str(next_value)
                next_value += 1
            else:
                value_code = self._emit(value_node)
                numeric = value_node.type not in ("string", "template_string")
                next_value = _enum_number(value_code)
                if next_value is not None:
                    next_value += 1
            if numeric:
                lines.append(f"  {name}[{name}[{key}] = {value_code}] = {key};")
            else:
                lines.append(f"  {name}[{key}] = {value_code};")
        lines.append(f"}})({name} || ({name} = {{}}));")
        return "\n".join(lines)

    # -- calls ------------------------------------------------------------

    def _emit_call_expression(self, node: Node) -> str:
        function = node.child_by_field_name("function")
        arguments = node.child_by_field_name("arguments")
        if function is not None and function.type == "import":
            target = _first_expression(arguments)
            if target is not None and target.type == "string":
                specifier = self._string_value(target)
                self._add_dependency(specifier, "dynamic", eager=False)
                argument = json.dumps(specifier)
            else:
                argument = self._emit(target) if target is not None else "undefined"
            star = self._helper("__importStar")
            return f"Promise.resolve().then(function () {{ return {star}(require({argument})); }})"

        if (
            function is not None
            and function.type == "identifier"
            and self._text(function) == "require"
            and not self._is_shadowed(function, "require")
        ):
            args = [a for a in (arguments.named_children if arguments is not None else []) if a.type != "comment"]
            if len(args) == 1 and args[0].type == "string":
                self._add_dependency(self._string_value(args[0]), "require", eager=False)
        return self._emit_children(node)

    # -- JSX --------------------------------------------------------------

    def _emit_jsx(self, node: Node) -> str:
        self._uses_jsx = True
        react = self._module_var("react")

        if node.type == "jsx_self_closing_element":
            name, attributes, children = node.child_by_field_name("name"), self._jsx_attributes(node), []
        elif node.type == "jsx_fragment":
            tokens = [c for c in node.children if not c.is_named]
            start = tokens[1].end_byte if len(tokens) > 1 else node.start_byte
            end = tokens[-3].start_byte if len(tokens) > 3 else node.end_byte
            name, attributes = None, []
            children = self._jsx_children(start, end, node.named_children)
        else:
            opening = node.children[0]
            closing = node.children[-1]
            name, attributes = opening.child_by_field_name("name"), self._jsx_attributes(opening)
            children = self._jsx_children(opening.end_byte, closing.start_byte, node.named_children[1:-1])

        tag = f"{react}.Fragment" if name is None else self._jsx_tag(name)
        args = [tag, self._jsx_props(attributes), *children]
        return f"{react}.createElement({', '.join(args)})"

    @staticmethod
    def _jsx_attributes(node: Node) -> list[Node]:
        return [c for c in node.named_children if c.type in ("jsx_attribute", "jsx_expression")]

    def _jsx_tag(self, name: Node) -> str:
        text = self._text(name)
        if name.type == "identifier":
            if text[:1].islower() or "-" in text:
                return json.dumps(text)
            return self._emit(name)
        if name.type == "jsx_namespace_name":
            return json.dumps(text)
        if name.type == "nested_identifier":
            head, _, rest = text.partition(".")
            first = _child_of_type(name, "identifier", "nested_identifier")
            if first is not None and first.type == "identifier" and self._text(first) == head:
                return self._emit(first) + "." + rest
            return text
        return self._emit(name)

    def _jsx_props(self, attributes: list[Node]) -> str:
        if not attributes:
            return "null"
        entries: list[str] = []
        for attribute in attributes:
            if attribute.type == "jsx_expression":
                entries.append(self._emit(_first_expression(attribute)))
                continue
            name_node = attribute.named_children[0]
            key = _prop_key(self._text(name_node))
            value = attribute.named_children[1] if len(attribute.named_children) > 1 else None
            if value is None:
                entries.append(f"{key}: true")
            elif value.type == "string":
                entries.append(f"{key}: {json.dumps(html.unescape(self._text(value)[1:-1]))}")
            elif value.type == "jsx_expression":
                inner = _first_expression(value)
                entries.append(f"{key}: {self._emit(inner) if inner is not None else 'undefined'}")
            else:
                entries.append(f"{key}: {self._emit(value)}")
        return "{ " + ", ".join(entries) + " }"

    def _jsx_children(self, start: int, end: int, kids: Iterable[Node]) -> list[str]:
        out: list[str] = []
        cursor = start

        def push_text(raw: str) -> None:
            cleaned = clean_jsx_text(raw)
            if cleaned:
                out.append(json.dumps(html.unescape(cleaned)))

        for child in kids:
            if child.type not in _JSX_ELEMENTS and child.type != "jsx_expression":
                continue
            push_text(self._slice(cursor, child.start_byte))
            if child.type == "jsx_expression":
                inner = _first_expression(child)
                if inner is not None:
                    out.append(self._emit(inner))
            else:
                out.append(self._emit(child))
            cursor = child.end_byte
        push_text(self._slice(cursor, end))
        return out

    # -- exports ----------------------------------------------------------

    def _emit_export_statement(self, node: Node) -> str:
        if _has_token(node, "type"):
            return ""
        source = node.child_by_field_name("source")
        if source is not None:
            return self._emit_reexport(node, self._string_value(source))

        declaration = node.child_by_field_name("declaration")
        is_default = _has_token(node, "default")
        if declaration is not None:
            return self._emit_exported_declaration(declaration, is_default)

        value = node.child_by_field_name("value")
        if value is not None:
            self.exports.add("default", self._callability(value))
            return f"exports.default = {self._emit(value)};"

        if _has_token(node, "="):
            expression = _first_expression(node)
            self.exports.opaque = True
            self.exports.value = Callability.UNKNOWN
            return f"module.exports = {self._emit(expression)};" if expression is not None else ""

        clause = _child_of_type(node, "export_clause")
        if clause is not None:
            return self._emit_export_clause(clause)
        return ""

    def _emit_exported_declaration(self, declaration: Node, is_default: bool) -> str:
        kind = declaration.type
        if kind in _ERASED:
            return ""
        code = self._emit(declaration)

        if kind in ("function_declaration", "generator_function_declaration"):
            name = self._text(declaration.child_by_field_name("name"))
            exported = "default" if is_default else name
            self._hoisted.append(f"exports{_member(exported)} = {name};")
            self.exports.add(exported, Callability.CALLABLE)
            return code

        assignments: list[str] = []
        for name in self._statement_declares(declaration):
            exported = "default" if is_default else name
            self.exports.add(exported, self._local_callability(name))
            assignments.append(self._local_export(exported, name))
        if not assignments:
            return code
        return code + "\n" + "\n".join(assignments)

    def _emit_export_clause(self, clause: Node) -> str:
        lines: list[str] = []
        for spec in clause.named_children:
            if spec.type != "export_specifier" or _has_token(spec, "type"):
                continue
            local = self._name_value(spec.child_by_field_name("name"))
            alias = spec.child_by_field_name("alias")
            exported = self._name_value(alias) if alias is not None else local
            if local in self._type_names:
                continue
            binding = self._bindings.get(local)
            if binding is not None:
                self._referenced.add(local)
                lines.append(self._live_export(exported, binding))
                self.exports.add(exported, Callability.UNKNOWN)
                continue
            if local in self._namespaces:
                self._referenced.add(local)
            lines.append(self._local_export(exported, local))
            self.exports.add(exported, self._local_callability(local))
        return "\n".join(lines)

    def _emit_reexport(self, node: Node, specifier: str) -> str:
        var = self._module_var(specifier)
        clause = _child_of_type(node, "export_clause")
        namespace = _child_of_type(node, "namespace_export")
        if clause is not None:
            lines: list[str] = []
            for spec in clause.named_children:
                if spec.type != "export_specifier" or _has_token(spec, "type"):
                    continue
                name = self._name_value(spec.child_by_field_name("name"))
                alias = spec.child_by_field_name("alias")
                exported = self._name_value(alias) if alias is not None else name
                if name == "default":
                    target = f"{self._helper('__defaultExport')}({var})"
                else:
                    target = var + _member(name)
                lines.append(self._live_export(exported, target))
                self.exports.add(exported, Callability.UNKNOWN)
            return "\n".join(lines)
        if namespace is not None:
            exported = self._name_value(namespace.named_children[-1])
            self.exports.add(exported, Callability.NOT_CALLABLE)
            return f"exports{_member(exported)} = {self._helper('__importStar')}({var});"
        self.exports.star_sources.append(specifier)
        return f"{self._helper('__exportStar')}({var}, exports);"

    def _local_export(self, exported: str, local: str) -> str:
        # let/var bindings can be reassigned after export; importers must see it.
        kind, _ = self._locals.get(local, ("", None))
        if kind == "mutable":
            return self._live_export(exported, local)
        return f"exports{_member(exported)} = {local};"

    @staticmethod
    def _live_export(name: str, expression: str) -> str:
        return (
            f"Object.defineProperty(exports, {json.dumps(name)}, "
            f"{{ enumerable: true, get: function () {{ return {expression}; }} }});"
        )

    # -- export shape -----------------------------------------------------

    def _callability(self, node: Node | None, depth: int = 0) -> Callability:
        if node is None or depth > 8:
            return Callability.UNKNOWN
        kind = node.type
        if kind in _CALLABLE_EXPRESSIONS:
            return Callability.CALLABLE
        if kind in _VALUE_EXPRESSIONS:
            return Callability.NOT_CALLABLE
        if kind in ("parenthesized_expression", *_UNWRAPPED):
            inner = node.named_children[-1] if kind == "type_assertion" else _first_expression(node)
            return self._callability(inner, depth + 1)
        if kind == "identifier":
            return self._local_callability(self._text(node), depth + 1)
        return Callability.UNKNOWN

    def _local_callability(self, name: str, depth: int = 0) -> Callability:
        local = self._locals.get(name)
        if local is None or name in self._bindings:
            return Callability.UNKNOWN
        kind, value = local
        if kind == "callable":
            return Callability.CALLABLE
        if kind == "value":
            return Callability.NOT_CALLABLE
        if kind == "const":
            return self._callability(value, depth)
        return Callability.UNKNOWN

    def _position(self, node: Node) -> tuple[int, int]:
        row, column = node.start_point
        return row + 1, column + 1


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def _language_for(key: str) -> Language:
    return TS_LANGUAGE if key.lower().endswith(".ts") else TSX_LANGUAGE


def compile_file(file: SourceFile) -> CompiledModule:
    """Transpile one executable source file. Raises CompileError."""
    key = normalize_path(file.path)
    data = file.content.encode("utf-8")
    tree = Parser(_language_for(key)).parse(data)
    root = tree.root_node

    if root.has_error:
        bad = _first_error(root, len(data.rstrip())) or root
        row, column = bad.start_point
        if bad.is_missing:
            message = f"Missing {bad.type!r}"
        else:
            snippet = data[bad.start_byte:bad.end_byte].decode("utf-8", "replace").strip().splitlines()
            message = f"Unexpected {snippet[0][:40]!r}" if snippet else "Unexpected end of input"
        raise CompileError(key, message, row + 1, column + 1)

    emitter = _ModuleEmitter(data, root, key, typescript=key.lower().endswith((".ts", ".tsx")))
    try:
        code = emitter.emit()
    except RecursionError:
        raise CompileError(key, "Source is nested too deeply to compile") from None

    return CompiledModule(
        key=key,
        path=file.path,
        code=code,
        source=file.content,
        dependencies=emitter.dependencies,
        exports=emitter.exports,
    )


def compile_snapshot(files: Iterable[SourceFile]) -> ModuleGraph:
    """
    Compile every executable file of a snapshot. A per-file CompileError is
    recorded against its key and never stops the rest from compiling.
    """
    graph = ModuleGraph()
    for file in files:
        key = normalize_path(file.path)
        if not file.is_executable:
            graph.assets.append(key)
            continue
        if key in graph.modules or key in graph.compile_errors:
            logger.warning("transpile: duplicate module key %s (from %r), later file wins", key, file.path)
            graph.order.remove(key)
            graph.modules.pop(key, None)
            graph.compile_errors.pop(key, None)
        graph.order.append(key)
        try:
            graph.modules[key] = compile_file(file)
        except CompileError as e:
            logger.info("transpile: %s", e)
            graph.compile_errors[key] = e
    logger.debug(
        "transpile: %d modules compiled, %d failed, %d assets",
        len(graph.modules),
        len(graph.compile_errors),
        len(graph.assets),
    )
    return graph
