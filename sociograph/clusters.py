"""Community detection by label propagation on the undirected resolved
call graph.

Each function repeatedly adopts the most common label among its
neighbours; ties go to the lexicographically smallest label so the result
is deterministic. Clusters below ``min_size`` are dropped.
"""

from __future__ import annotations

from typing import Dict, List, Set

from .call_graph import CallGraph
from .models import Cluster

MAX_PASSES = 15


def build_adjacency(graph: CallGraph) -> Dict[str, Set[str]]:
    neighbors: Dict[str, Set[str]] = {node.id: set() for node in graph.nodes}
    for edge in graph.edges:
        if not edge.resolved or edge.to_id is None:
            continue
        if edge.from_id in neighbors:
            neighbors[edge.from_id].add(edge.to_id)
        if edge.to_id in neighbors:
            neighbors[edge.to_id].add(edge.from_id)
    return neighbors


def propagate_labels(neighbors: Dict[str, Set[str]], max_passes: int = MAX_PASSES) -> Dict[str, str]:
    """Run label propagation; labels update in place within a pass."""
    labels = {node_id: node_id for node_id in neighbors}

    for _ in range(max_passes):
        changed = False
        for node_id, nbrs in neighbors.items():
            if not nbrs:
                continue

            freq: Dict[str, int] = {}
            for nbr in nbrs:
                label = labels.get(nbr, nbr)
                freq[label] = freq.get(label, 0) + 1

            best = min(freq, key=lambda lbl: (-freq[lbl], lbl))
            if best != labels[node_id]:
                labels[node_id] = best
                changed = True

        if not changed:
            break

    return labels


def detect_clusters(graph: CallGraph, min_size: int = 3) -> List[Cluster]:
    """Clusters sorted multi-module first, then by size descending."""
    neighbors = build_adjacency(graph)
    labels = propagate_labels(neighbors)

    groups: Dict[str, List[str]] = {}
    for node_id, label in labels.items():
        groups.setdefault(label, []).append(node_id)

    clusters: List[Cluster] = []
    for node_ids in groups.values():
        if len(node_ids) < min_size:
            continue

        members = set(node_ids)
        modules: List[str] = []
        for node_id in node_ids:
            node = graph.get_node(node_id)
            if node is not None and node.module not in modules:
                modules.append(node.module)

        degree = {node_id: len(neighbors[node_id] & members) for node_id in node_ids}
        internal_edges = sum(degree.values()) / 2
        max_edges = len(node_ids) * (len(node_ids) - 1) / 2
        density = internal_edges / max_edges if max_edges else 0.0

        hubs = [node_id for node_id, _ in sorted(degree.items(), key=lambda item: -item[1])[:3]]
        clusters.append(Cluster(node_ids=node_ids, modules=modules, density=density, hubs=hubs))

    clusters.sort(key=lambda c: (not c.is_multi_module, -c.size))
    return clusters
