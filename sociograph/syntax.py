"""Closed set of syntax constructs the analyzers care about.

Tree-sitter node types are mapped onto :class:`SyntaxKind` once, so every
walker dispatches over a fixed enumeration instead of raw type strings.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, FrozenSet


class SyntaxKind(Enum):
    FUNCTION_DECLARATION = "function_declaration"
    FUNCTION_EXPRESSION = "function_expression"
    ARROW_FUNCTION = "arrow_function"
    METHOD_DEFINITION = "method_definition"
    CLASS = "class"
    CALL = "call"
    IMPORT = "import"
    REQUIRE_DECLARATION = "require_declaration"
    EXPORT = "export"
    BRANCH = "branch"
    BINARY = "binary"
    OTHER = "other"


_KIND_BY_TYPE: Dict[str, SyntaxKind] = {
    "function_declaration": SyntaxKind.FUNCTION_DECLARATION,
    "generator_function_declaration": SyntaxKind.FUNCTION_DECLARATION,
    # ``function`` is the pre-0.21 name of ``function_expression``
    "function": SyntaxKind.FUNCTION_EXPRESSION,
    "function_expression": SyntaxKind.FUNCTION_EXPRESSION,
    "generator_function": SyntaxKind.FUNCTION_EXPRESSION,
    "arrow_function": SyntaxKind.ARROW_FUNCTION,
    "method_definition": SyntaxKind.METHOD_DEFINITION,
    "class_declaration": SyntaxKind.CLASS,
    "abstract_class_declaration": SyntaxKind.CLASS,
    "class": SyntaxKind.CLASS,
    "call_expression": SyntaxKind.CALL,
    "import_statement": SyntaxKind.IMPORT,
    "lexical_declaration": SyntaxKind.REQUIRE_DECLARATION,
    "variable_declaration": SyntaxKind.REQUIRE_DECLARATION,
    "export_statement": SyntaxKind.EXPORT,
    "if_statement": SyntaxKind.BRANCH,
    "ternary_expression": SyntaxKind.BRANCH,
    "switch_case": SyntaxKind.BRANCH,
    "catch_clause": SyntaxKind.BRANCH,
    "while_statement": SyntaxKind.BRANCH,
    "do_statement": SyntaxKind.BRANCH,
    "for_statement": SyntaxKind.BRANCH,
    "for_in_statement": SyntaxKind.BRANCH,
    "binary_expression": SyntaxKind.BINARY,
}

FUNCTION_KINDS: FrozenSet[SyntaxKind] = frozenset({
    SyntaxKind.FUNCTION_DECLARATION,
    SyntaxKind.FUNCTION_EXPRESSION,
    SyntaxKind.ARROW_FUNCTION,
    SyntaxKind.METHOD_DEFINITION,
})

LOGICAL_OPERATORS = frozenset({"&&", "||", "??"})


def kind_of(ts_node: Any) -> SyntaxKind:
    return _KIND_BY_TYPE.get(ts_node.type, SyntaxKind.OTHER)


def node_text(ts_node: Any) -> str:
    return ts_node.text.decode("utf-8", errors="replace")


def string_value(ts_node: Any) -> str:
    """Contents of a string literal node without its quotes."""
    raw = node_text(ts_node)
    if len(raw) >= 2 and raw[0] == raw[-1] and raw[0] in "'\"`":
        return raw[1:-1]
    return raw


def same_node(a: Any, b: Any) -> bool:
    if a is None or b is None:
        return False
    return a.start_byte == b.start_byte and a.end_byte == b.end_byte and a.type == b.type


def has_token(ts_node: Any, token: str) -> bool:
    return any(child.type == token for child in ts_node.children)
