"""Cyclomatic complexity of a single function node.

Base complexity is 1; each decision point adds 1: if, ternary, switch
case, catch, while/do/for/for-in/for-of loops, and the logical operators
``&&``, ``||`` and ``??``. Nested functions are scored on their own.
"""

from __future__ import annotations

from typing import Any

from .syntax import FUNCTION_KINDS, LOGICAL_OPERATORS, SyntaxKind, kind_of


def compute_complexity(func_node: Any) -> int:
    body = func_node.child_by_field_name("body")
    return 1 + _count_decisions(body if body is not None else func_node)


def _count_decisions(ts_node: Any) -> int:
    count = 0
    stack = [ts_node]
    while stack:
        current = stack.pop()
        kind = kind_of(current)
        if kind is SyntaxKind.BRANCH:
            count += 1
        elif kind is SyntaxKind.BINARY:
            operator = current.child_by_field_name("operator")
            if operator is not None and operator.type in LOGICAL_OPERATORS:
                count += 1

        for child in current.children:
            if kind_of(child) in FUNCTION_KINDS:
                continue
            stack.append(child)
    return count
