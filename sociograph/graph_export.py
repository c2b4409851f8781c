"""Graph export helpers for DOT and JSON outputs of a classified call graph."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, List, Optional

from .call_graph import CallGraph
from .classifier import Classifications
from .models import CallEdge, FunctionNode


def export_dot(
    graph: CallGraph,
    classifications: Classifications,
    output_file: Path,
    focus: str = "",
) -> None:
    selected = _focused_subgraph(graph, focus)
    nodes = {n.id: n for n in graph.nodes}

    lines = ["digraph Sociograph {"]
    lines.append("  rankdir=LR;")

    for node_id in selected["nodes"]:
        node = nodes[node_id]
        labels = [c.label for c in classifications.get(node_id, [])]
        label = f"{node.name}\\n{node.rel_path}:{node.line}"
        if labels:
            label += "\\n" + ", ".join(labels)
        lines.append(f'  "{_esc(node_id)}" [label="{_esc(label)}"];')

    for edge in selected["edges"]:
        style = ' [style=bold, color="red"]' if edge.cross_module else ""
        lines.append(f'  "{_esc(edge.from_id)}" -> "{_esc(edge.to_id)}"{style};')

    lines.append("}")
    output_file.write_text("\n".join(lines), encoding="utf-8")


def graph_to_dict(graph: CallGraph, classifications: Classifications, focus: str = "") -> dict:
    selected = _focused_subgraph(graph, focus)
    nodes = {n.id: n for n in graph.nodes}
    return {
        "nodes": [
            {
                "id": node_id,
                "name": nodes[node_id].name,
                "relPath": nodes[node_id].rel_path,
                "line": nodes[node_id].line,
                "module": nodes[node_id].module,
                "complexity": nodes[node_id].complexity,
                "fanIn": graph.fan_in(node_id),
                "fanOut": graph.fan_out(node_id),
                "archetypes": [c.label for c in classifications.get(node_id, [])],
            }
            for node_id in selected["nodes"]
        ],
        "edges": [
            {"from": e.from_id, "to": e.to_id, "line": e.line, "crossModule": e.cross_module}
            for e in selected["edges"]
        ],
    }


def export_json(
    graph: CallGraph,
    classifications: Classifications,
    output_file: Path,
    focus: str = "",
) -> None:
    payload = graph_to_dict(graph, classifications, focus)
    output_file.write_text(json.dumps(payload, indent=2), encoding="utf-8")


def _focused_subgraph(graph: CallGraph, focus: str) -> Dict[str, List]:
    nodes: Dict[str, FunctionNode] = {n.id: n for n in graph.nodes}
    edges: List[CallEdge] = [e for e in graph.edges if e.resolved and e.to_id in nodes]

    focus_ids = {
        node_id for node_id, node in nodes.items()
        if focus and (focus in node_id or focus == node.name)
    }
    if not focus_ids:
        return {"nodes": list(nodes.keys()), "edges": edges}

    edge_subset = [e for e in edges if e.from_id in focus_ids or e.to_id in focus_ids]
    node_subset = set(focus_ids)
    for e in edge_subset:
        node_subset.add(e.from_id)
        node_subset.add(e.to_id)
    return {"nodes": sorted(node_subset), "edges": edge_subset}


def _esc(text: Optional[str]) -> str:
    return (text or "").replace('"', '\\"')
