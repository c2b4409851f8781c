"""Tree-sitter parser that extracts functions, call sites and imports from
JavaScript / TypeScript sources.

Each file is parsed independently into a :class:`~sociograph.models.ParsedFile`.
Call targets are left unresolved here; the graph builder resolves them once
every file has been parsed.
"""

from __future__ import annotations

import importlib
import logging
import os
import re
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from .complexity import compute_complexity
from .imports import build_import_map, find_default_export_name
from .models import FunctionNode, ParsedFile, RawCall
from .syntax import SyntaxKind, has_token, kind_of, node_text, same_node

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Language <-> file-extension mapping
# ---------------------------------------------------------------------------
LANGUAGE_MAP: Dict[str, str] = {
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".ts": "typescript",
    ".tsx": "tsx",
}

# Path segments that never name a module on their own
MODULE_SKIP_SEGMENTS = {"src", "lib", "app", "source"}

_EXTENSION_RE = re.compile(r"\.[^.]+$")


def infer_module(rel_path: str) -> str:
    """First meaningful path segment, extension stripped.

    ``src/api/handlers/user.ts`` -> ``api``; ``utils/format.js`` -> ``utils``.
    """
    parts = rel_path.split("/")
    for part in parts:
        if part not in MODULE_SKIP_SEGMENTS:
            return _EXTENSION_RE.sub("", part)
    return _EXTENSION_RE.sub("", parts[-1])


class JavaScriptParser:
    """Error-tolerant JS/TS parser built on Tree-sitter.

    Grammars are loaded lazily from the per-language ``tree-sitter-*``
    packages. A missing grammar only disables the extensions it covers.
    """

    # language -> (grammar module, factory returning the Language capsule)
    _GRAMMAR_MODULES: Dict[str, Tuple[str, str]] = {
        "javascript": ("tree_sitter_javascript", "language"),
        "typescript": ("tree_sitter_typescript", "language_typescript"),
        "tsx": ("tree_sitter_typescript", "language_tsx"),
    }

    def __init__(self, project_root: Path) -> None:
        self.project_root = Path(os.path.abspath(project_root))
        self._parsers: Dict[str, Any] = {}
        self._init_parsers()

    def _init_parsers(self) -> None:
        from tree_sitter import Language, Parser as TSParser

        for lang, (mod_name, factory) in self._GRAMMAR_MODULES.items():
            try:
                mod = importlib.import_module(mod_name)
                self._parsers[lang] = TSParser(Language(getattr(mod, factory)()))
                logger.debug("Loaded tree-sitter parser for %s", lang)
            except ImportError:
                logger.warning(
                    "Grammar package '%s' not installed for language '%s'. "
                    "Install with: pip install %s",
                    mod_name, lang, mod_name.replace("_", "-"),
                )

    def supports_language(self, language: str) -> bool:
        return language in self._parsers

    def parse_file(self, file_path: Path, source: Optional[bytes] = None) -> ParsedFile:
        """Parse one file. Unreadable or unsupported files yield an empty result."""
        file_path = Path(os.path.abspath(file_path))
        lang = LANGUAGE_MAP.get(file_path.suffix)
        if lang is None or lang not in self._parsers:
            logger.debug("No parser for %s", file_path)
            return ParsedFile(path=file_path)

        if source is None:
            try:
                source = file_path.read_bytes()
            except OSError as exc:
                logger.debug("Skipping unreadable file %s: %s", file_path, exc)
                return ParsedFile(path=file_path)

        tree = self._parsers[lang].parse(source)
        root = tree.root_node
        rel_path = Path(os.path.relpath(file_path, self.project_root)).as_posix()

        walk = _FileWalk(file_path, rel_path, infer_module(rel_path))
        walk.visit(root)

        default_export = walk.default_export
        if default_export is None:
            exported = find_default_export_name(root)
            if exported is not None and any(fn.name == exported for fn in walk.functions):
                default_export = exported

        return ParsedFile(
            path=file_path,
            functions=walk.functions,
            calls=walk.calls,
            import_map=build_import_map(root, file_path),
            default_export=default_export,
        )


class _FileWalk:
    """Single-file traversal state: open function scopes and enclosing classes."""

    def __init__(self, file_path: Path, rel_path: str, module: str) -> None:
        self.file = str(file_path)
        self.rel_path = rel_path
        self.module = module
        self.functions: List[FunctionNode] = []
        self.calls: List[RawCall] = []
        self.default_export: Optional[str] = None
        self._scopes: List[str] = []
        self._classes: List[str] = []
        self._handlers: Dict[SyntaxKind, Callable[[Any], None]] = {
            SyntaxKind.FUNCTION_DECLARATION: self._visit_function,
            SyntaxKind.FUNCTION_EXPRESSION: self._visit_function,
            SyntaxKind.ARROW_FUNCTION: self._visit_function,
            SyntaxKind.METHOD_DEFINITION: self._visit_function,
            SyntaxKind.CLASS: self._visit_class,
            SyntaxKind.CALL: self._visit_call,
            SyntaxKind.IMPORT: self._visit_children,
            SyntaxKind.REQUIRE_DECLARATION: self._visit_children,
            SyntaxKind.EXPORT: self._visit_children,
            SyntaxKind.BRANCH: self._visit_children,
            SyntaxKind.BINARY: self._visit_children,
            SyntaxKind.OTHER: self._visit_children,
        }

    def visit(self, ts_node: Any) -> None:
        self._handlers[kind_of(ts_node)](ts_node)

    def _visit_children(self, ts_node: Any) -> None:
        for child in ts_node.named_children:
            self.visit(child)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _visit_function(self, ts_node: Any) -> None:
        fn = self._extract_function(ts_node)
        self.functions.append(fn)

        parent = ts_node.parent
        if parent is not None and kind_of(parent) is SyntaxKind.EXPORT and has_token(parent, "default"):
            self.default_export = fn.name

        self._scopes.append(fn.id)
        self._visit_children(ts_node)
        self._scopes.pop()

    def _visit_class(self, ts_node: Any) -> None:
        name_node = ts_node.child_by_field_name("name")
        self._classes.append(node_text(name_node) if name_node is not None else "<anonymous>")
        self._visit_children(ts_node)
        self._classes.pop()

    def _visit_call(self, ts_node: Any) -> None:
        callee = ts_node.child_by_field_name("function")
        callee_name = _callee_name(callee)
        if callee_name and self._scopes:
            self.calls.append(RawCall(
                from_id=self._scopes[-1],
                callee_name=callee_name,
                callee_object=_callee_object(callee),
                file=self.file,
                line=ts_node.start_point[0] + 1,
            ))
        self._visit_children(ts_node)

    # ------------------------------------------------------------------
    # Function extraction
    # ------------------------------------------------------------------

    def _extract_function(self, ts_node: Any) -> FunctionNode:
        name, kind, class_name = self._describe(ts_node)
        line = ts_node.start_point[0] + 1
        end_line = ts_node.end_point[0] + 1
        return FunctionNode(
            id=f"{self.rel_path}::{name}",
            name=name,
            file=self.file,
            rel_path=self.rel_path,
            module=self.module,
            line=line,
            end_line=end_line,
            params=_count_params(ts_node),
            complexity=compute_complexity(ts_node),
            lines_of_code=end_line - line + 1,
            kind=kind,
            class_name=class_name,
        )

    def _describe(self, ts_node: Any) -> Tuple[str, str, Optional[str]]:
        """Return ``(name, kind, class_name)`` for a function node."""
        node_kind = kind_of(ts_node)
        parent = ts_node.parent
        in_class_body = parent is not None and parent.type == "class_body"
        class_name = self._classes[-1] if in_class_body and self._classes else None

        if node_kind is SyntaxKind.METHOD_DEFINITION:
            name_node = ts_node.child_by_field_name("name")
            if name_node is not None:
                return node_text(name_node), "method", class_name

        own_name = ts_node.child_by_field_name("name")
        if own_name is not None:
            return node_text(own_name), "function", None

        name = _name_from_context(ts_node)
        if name is None:
            return f"<anonymous#{len(self.functions)}>", "anonymous", None

        # Class property arrows (``handle = () => {}``) belong to the class
        field_owner = _field_class_name(ts_node, self._classes)
        if node_kind is SyntaxKind.ARROW_FUNCTION:
            return name, "arrow", field_owner
        return name, "function", field_owner


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _name_from_context(ts_node: Any) -> Optional[str]:
    """Name an unnamed function expression from where it is bound."""
    parent = ts_node.parent
    if parent is None:
        return None

    if parent.type == "variable_declarator":
        # const foo = () => {}
        target = parent.child_by_field_name("name")
        if same_node(parent.child_by_field_name("value"), ts_node) and target is not None \
                and target.type == "identifier":
            return node_text(target)

    elif parent.type == "pair":
        # { foo: () => {} }
        key = parent.child_by_field_name("key")
        if same_node(parent.child_by_field_name("value"), ts_node) and key is not None \
                and key.type == "property_identifier":
            return node_text(key)

    elif parent.type == "assignment_expression":
        # foo = function () {} / exports.foo = () => {}
        if same_node(parent.child_by_field_name("right"), ts_node):
            return _callee_name(parent.child_by_field_name("left"))

    elif parent.type in ("field_definition", "public_field_definition"):
        # class Foo { handle = () => {} }
        prop = parent.child_by_field_name("property") or parent.child_by_field_name("name")
        if prop is not None and prop.type == "property_identifier":
            return node_text(prop)

    return None


def _field_class_name(ts_node: Any, classes: List[str]) -> Optional[str]:
    parent = ts_node.parent
    if parent is None or parent.type not in ("field_definition", "public_field_definition"):
        return None
    return classes[-1] if classes else None


def _callee_name(callee: Any) -> Optional[str]:
    if callee is None:
        return None
    if callee.type == "identifier":
        return node_text(callee)
    if callee.type == "member_expression":
        prop = callee.child_by_field_name("property")
        if prop is not None and prop.type == "property_identifier":
            return node_text(prop)
    return None


def _callee_object(callee: Any) -> Optional[str]:
    if callee is None or callee.type != "member_expression":
        return None
    obj = callee.child_by_field_name("object")
    if obj is None:
        return None
    if obj.type == "identifier":
        return node_text(obj)
    if obj.type == "this":
        return "this"
    return None


def _count_params(ts_node: Any) -> int:
    params = ts_node.child_by_field_name("parameters")
    if params is not None:
        return sum(1 for p in params.named_children if p.type != "comment")
    # Single unparenthesised arrow parameter: x => x + 1
    return 1 if ts_node.child_by_field_name("parameter") is not None else 0

