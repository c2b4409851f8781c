"""Import-map extraction and relative specifier resolution.

Handles ES modules (named, default, and namespace imports) and CommonJS
``require`` declarations. Only relative specifiers are resolved; package
imports are external and never produce a binding.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional

from .models import ImportBinding
from .syntax import SyntaxKind, has_token, kind_of, node_text, string_value

EXTENSIONS = (".ts", ".tsx", ".js", ".jsx", ".mjs", ".cjs")


def resolve_import_path(from_file: Path, specifier: str) -> Optional[Path]:
    """Return the file a relative specifier points at, or None."""
    if not specifier.startswith("."):
        return None

    base = Path(os.path.normpath(from_file.parent / specifier))
    if base.is_file():
        return base

    for ext in EXTENSIONS:
        candidate = Path(f"{base}{ext}")
        if candidate.is_file():
            return candidate

    for ext in EXTENSIONS:
        candidate = base / f"index{ext}"
        if candidate.is_file():
            return candidate

    return None


def build_import_map(root: Any, from_file: Path) -> Dict[str, ImportBinding]:
    """Map every locally bound import name in a program to its source."""
    bindings: Dict[str, ImportBinding] = {}

    for stmt in root.named_children:
        kind = kind_of(stmt)
        if kind is SyntaxKind.IMPORT:
            _collect_es_import(stmt, from_file, bindings)
        elif kind is SyntaxKind.REQUIRE_DECLARATION:
            _collect_require(stmt, from_file, bindings)

    return bindings


def find_default_export_name(root: Any) -> Optional[str]:
    """Name bound by ``export default someIdentifier``, if present."""
    for stmt in root.named_children:
        if kind_of(stmt) is not SyntaxKind.EXPORT or not has_token(stmt, "default"):
            continue
        value = stmt.child_by_field_name("value")
        if value is not None and value.type == "identifier":
            return node_text(value)
    return None


def _collect_es_import(stmt: Any, from_file: Path, bindings: Dict[str, ImportBinding]) -> None:
    source = stmt.child_by_field_name("source")
    if source is None:
        return
    resolved = resolve_import_path(from_file, string_value(source))
    if resolved is None:
        return
    resolved_file = str(resolved)

    for clause in stmt.named_children:
        if clause.type != "import_clause":
            continue
        for part in clause.named_children:
            if part.type == "identifier":
                # import Foo from './foo'
                bindings[node_text(part)] = ImportBinding(resolved_file, "default")
            elif part.type == "namespace_import":
                # import * as foo from './foo'
                for ident in part.named_children:
                    if ident.type == "identifier":
                        bindings[node_text(ident)] = ImportBinding(resolved_file, "*", is_namespace=True)
            elif part.type == "named_imports":
                # import { foo as bar } from './foo'
                for spec in part.named_children:
                    if spec.type != "import_specifier":
                        continue
                    name = spec.child_by_field_name("name")
                    alias = spec.child_by_field_name("alias")
                    if name is None:
                        continue
                    local = alias if alias is not None else name
                    bindings[node_text(local)] = ImportBinding(resolved_file, node_text(name))


def _collect_require(stmt: Any, from_file: Path, bindings: Dict[str, ImportBinding]) -> None:
    declarators = [c for c in stmt.named_children if c.type == "variable_declarator"]
    if not declarators:
        return
    decl = declarators[0]

    value = decl.child_by_field_name("value")
    if value is None or value.type != "call_expression":
        return
    callee = value.child_by_field_name("function")
    if callee is None or callee.type != "identifier" or node_text(callee) != "require":
        return
    args = value.child_by_field_name("arguments")
    first = args.named_children[0] if args is not None and args.named_children else None
    if first is None or first.type != "string":
        return
    resolved = resolve_import_path(from_file, string_value(first))
    if resolved is None:
        return
    resolved_file = str(resolved)

    target = decl.child_by_field_name("name")
    if target is None:
        return
    if target.type == "identifier":
        # const foo = require('./foo')
        bindings[node_text(target)] = ImportBinding(resolved_file, "*", is_namespace=True)
    elif target.type == "object_pattern":
        # const { foo, bar: baz } = require('./foo')
        for prop in target.named_children:
            if prop.type == "shorthand_property_identifier_pattern":
                name = node_text(prop)
                bindings[name] = ImportBinding(resolved_file, name)
            elif prop.type == "pair_pattern":
                key = prop.child_by_field_name("key")
                local = prop.child_by_field_name("value")
                if key is None or local is None or local.type != "identifier":
                    continue
                bindings[node_text(local)] = ImportBinding(resolved_file, node_text(key))
