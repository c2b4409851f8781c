"""Bridge detection: functions that are the sole or dominant path from one
module to another.

A bridge has callers in module A and callees in module B and accounts for
at least half of all A -> B connectivity.

Pass 1 collects, per function, the external modules calling it and the
external modules it calls. Pass 2 builds ``bridgers[(A, B)]``, the set of
functions connecting A to B. Pass 3 scores each function by its best
exclusivity ``1 / |bridgers[(A, B)]|``.
"""

from __future__ import annotations

from typing import Dict, List, Set, Tuple

from .call_graph import CallGraph
from .models import BridgeInfo, BridgePair

MIN_EXCLUSIVITY = 0.5


def _module_sets(graph: CallGraph) -> Dict[str, Tuple[Set[str], Set[str]]]:
    sets: Dict[str, Tuple[Set[str], Set[str]]] = {}
    for node in graph.nodes:
        caller_mods: Set[str] = set()
        callee_mods: Set[str] = set()

        for edge in graph.callers(node.id):
            if not edge.resolved:
                continue
            caller = graph.get_node(edge.from_id)
            if caller is not None and caller.module != node.module:
                caller_mods.add(caller.module)

        for edge in graph.callees(node.id):
            if not edge.resolved:
                continue
            callee = graph.get_node(edge.to_id)
            if callee is not None and callee.module != node.module:
                callee_mods.add(callee.module)

        sets[node.id] = (caller_mods, callee_mods)
    return sets


def compute_bridge_scores(graph: CallGraph) -> Dict[str, BridgeInfo]:
    """Map each bridge function id to its score and bridged module pairs."""
    module_sets = _module_sets(graph)

    bridgers: Dict[Tuple[str, str], Set[str]] = {}
    for node_id, (caller_mods, callee_mods) in module_sets.items():
        for a in caller_mods:
            for b in callee_mods:
                if a != b:
                    bridgers.setdefault((a, b), set()).add(node_id)

    results: Dict[str, BridgeInfo] = {}
    for node_id, (caller_mods, callee_mods) in module_sets.items():
        if not caller_mods or not callee_mods:
            continue

        best = 0.0
        pairs: List[BridgePair] = []
        for a in sorted(caller_mods):
            for b in sorted(callee_mods):
                if a == b:
                    continue
                total = len(bridgers.get((a, b), ())) or 1
                exclusivity = 1 / total
                best = max(best, exclusivity)
                if exclusivity >= MIN_EXCLUSIVITY:
                    pairs.append(BridgePair(a, b, exclusivity, total))

        if best >= MIN_EXCLUSIVITY:
            pairs.sort(key=lambda p: p.exclusivity, reverse=True)
            results[node_id] = BridgeInfo(score=best, pairs=pairs)

    return results
