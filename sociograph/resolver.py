"""Call-site name resolution.

A raw call only carries the name written at the call site. The resolver
maps it to a concrete function id using, in order:

1. a named or default import binding in the caller's file,
2. a namespace import used as ``ns.member()``,
3. a single function with that name in the caller's own file,
4. a single function with that name anywhere in the project, unless the
   name is a common built-in method name.

Anything else becomes an unresolved (external) edge.
"""

from __future__ import annotations

import logging
import os
from typing import Dict, FrozenSet, List, Mapping, Optional

from .call_graph import CallGraph
from .models import CallEdge, ImportBinding, ParsedFile, RawCall

logger = logging.getLogger(__name__)

# Names that shadow native JS/DOM/Node methods. A call like ``.map()`` is
# almost always the built-in, so these never resolve via the global fallback.
NATIVE_METHOD_NAMES: FrozenSet[str] = frozenset({
    # Array
    "map", "filter", "reduce", "reduceRight", "forEach", "find", "findIndex",
    "findLast", "findLastIndex", "some", "every", "flat", "flatMap",
    "push", "pop", "shift", "unshift", "splice", "slice", "concat",
    "join", "reverse", "sort", "fill", "copyWithin", "includes", "indexOf",
    "lastIndexOf", "entries", "keys", "values", "at",
    # Object
    "assign", "create", "freeze", "seal", "fromEntries",
    "getOwnPropertyNames", "defineProperty", "hasOwn",
    # String
    "split", "match", "matchAll", "replace", "replaceAll", "search",
    "trim", "trimStart", "trimEnd", "padStart", "padEnd",
    "startsWith", "endsWith", "substring", "charAt", "charCodeAt",
    "toLowerCase", "toUpperCase", "repeat", "normalize",
    # Promise / async
    "then", "catch", "finally", "resolve", "reject", "all", "allSettled",
    "race", "any",
    # Math
    "round", "floor", "ceil", "abs", "min", "max", "pow", "sqrt", "random",
    "sign", "trunc", "log", "log2", "log10",
    # JSON / Date / general built-ins
    "parse", "stringify", "toString", "valueOf", "toJSON", "toISOString",
    "toLocaleDateString", "toLocaleString", "getTime", "getDate", "getDay",
    "getMonth", "getFullYear", "getHours", "getMinutes", "getSeconds",
    "setDate", "setMonth", "setFullYear",
    # EventEmitter / Node
    "emit", "on", "off", "once", "removeListener", "removeAllListeners",
    "addListener", "prependListener",
    # Generic names too short or common to trust
    "get", "set", "has", "add", "delete", "clear", "size",
    "call", "apply", "bind",
    "error", "warn", "info", "debug",
    "send", "write", "read", "end", "close", "open", "destroy",
    "next", "done", "return", "throw",
    "test", "exec", "compile",
})


def build_name_index(graph: CallGraph) -> Dict[str, List[str]]:
    """name -> ids of every function carrying that name."""
    index: Dict[str, List[str]] = {}
    for node in graph.nodes:
        index.setdefault(node.name, []).append(node.id)
    return index


def build_export_index(
    graph: CallGraph,
    default_exports: Optional[Mapping[str, str]] = None,
) -> Dict[str, str]:
    """``relPath::name`` -> id for every function, plus ``relPath::default``.

    Every named function is treated as exported (this is a responsibility
    graph, not a public-API graph). *default_exports* maps a rel path to the
    function name the parser saw explicitly default-exported; files without
    one fall back to their last function.
    """
    default_exports = default_exports or {}
    index: Dict[str, str] = {}
    per_file: Dict[str, List[str]] = {}

    for node in graph.nodes:
        index[f"{node.rel_path}::{node.name}"] = node.id
        per_file.setdefault(node.rel_path, []).append(node.id)

    for rel_path, ids in per_file.items():
        explicit = default_exports.get(rel_path)
        explicit_id = f"{rel_path}::{explicit}" if explicit else None
        if explicit_id is not None and explicit_id in graph:
            index[f"{rel_path}::default"] = explicit_id
            continue
        index[f"{rel_path}::default"] = ids[-1]
        if len(ids) > 1:
            logger.debug(
                "Ambiguous default export in %s: assuming last function %s",
                rel_path, ids[-1],
            )

    return index


class NameResolver:
    """Resolves raw calls against one frozen set of functions."""

    def __init__(
        self,
        graph: CallGraph,
        root: str,
        default_exports: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.graph = graph
        self.root = root
        self.name_index = build_name_index(graph)
        self.export_index = build_export_index(graph, default_exports)

    def _export_key(self, binding: ImportBinding, name: str) -> str:
        rel = os.path.relpath(binding.resolved_file, self.root).replace(os.sep, "/")
        return f"{rel}::{name}"

    def resolve(self, call: RawCall, import_map: Mapping[str, ImportBinding]) -> CallEdge:
        caller = self.graph.get_node(call.from_id)
        caller_module = caller.module if caller else None

        # 1. Locally imported name
        binding = import_map.get(call.callee_name)
        if binding is not None and not binding.is_namespace:
            target_id = self.export_index.get(self._export_key(binding, binding.exported_name))
            if target_id is not None:
                return self._edge(call, target_id, caller_module)

        # 2. Namespace member: ns.fn()
        if call.callee_object:
            ns = import_map.get(call.callee_object)
            if ns is not None and ns.is_namespace:
                target_id = self.export_index.get(self._export_key(ns, call.callee_name))
                if target_id is not None:
                    return self._edge(call, target_id, caller_module)

        candidates = self.name_index.get(call.callee_name, [])

        # 3. Same-file match
        caller_file = caller.rel_path if caller else None
        same_file = [i for i in candidates if self.graph.get_node(i).rel_path == caller_file]
        if len(same_file) == 1:
            return self._make_edge(call, same_file[0], cross_module=False)

        # 4. Unique project-wide match
        if len(candidates) == 1 and call.callee_name not in NATIVE_METHOD_NAMES:
            return self._edge(call, candidates[0], caller_module)

        return self._make_edge(call, None, cross_module=False)

    def _edge(self, call: RawCall, target_id: str, caller_module: Optional[str]) -> CallEdge:
        target = self.graph.get_node(target_id)
        cross = caller_module != (target.module if target else None)
        return self._make_edge(call, target_id, cross_module=cross)

    @staticmethod
    def _make_edge(call: RawCall, target_id: Optional[str], cross_module: bool) -> CallEdge:
        return CallEdge(
            from_id=call.from_id,
            to_id=target_id,
            callee_name=call.callee_name,
            resolved=target_id is not None,
            cross_module=cross_module,
            file=call.file,
            line=call.line,
        )


def resolve_calls(
    graph: CallGraph,
    parsed_files: List[ParsedFile],
    root: str,
) -> Dict[str, int]:
    """Resolve every raw call of *parsed_files* and add its edge to *graph*."""
    default_exports = {}
    for parsed in parsed_files:
        if parsed.default_export and parsed.functions:
            default_exports[parsed.functions[0].rel_path] = parsed.default_export

    resolver = NameResolver(graph, root, default_exports)
    resolved = unresolved = 0
    for parsed in parsed_files:
        for call in parsed.calls:
            edge = resolver.resolve(call, parsed.import_map)
            graph.add_edge(edge)
            if edge.resolved:
                resolved += 1
            else:
                unresolved += 1
    return {"resolved": resolved, "unresolved": unresolved}
