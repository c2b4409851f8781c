"""CallGraph: functions as nodes, call sites as edges.

The graph has two phases. While *building* it only accepts insertions.
The first query (or an explicit :meth:`CallGraph.freeze`) builds the
caller/callee indices once and the graph becomes read-only.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from .errors import GraphFrozenError
from .models import CallEdge, FunctionNode


class CallGraph:
    """Node/edge store for one snapshot of a source tree."""

    def __init__(self) -> None:
        self._nodes: Dict[str, FunctionNode] = {}
        self._edges: List[CallEdge] = []
        self._callers: Optional[Dict[str, List[CallEdge]]] = None
        self._callees: Optional[Dict[str, List[CallEdge]]] = None

    # ------------------------------------------------------------------
    # Building phase
    # ------------------------------------------------------------------

    def add_function(self, node: FunctionNode) -> None:
        self._ensure_building()
        self._nodes[node.id] = node

    def add_edge(self, edge: CallEdge) -> None:
        self._ensure_building()
        self._edges.append(edge)

    def _ensure_building(self) -> None:
        if self.frozen:
            raise GraphFrozenError("CallGraph is frozen; build a new graph instead")

    @property
    def frozen(self) -> bool:
        return self._callers is not None

    def freeze(self) -> "CallGraph":
        """Build the caller/callee indices and make the graph read-only."""
        if self.frozen:
            return self

        callers: Dict[str, List[CallEdge]] = {}
        callees: Dict[str, List[CallEdge]] = {}
        for edge in self._edges:
            callees.setdefault(edge.from_id, []).append(edge)
            if edge.to_id is not None:
                callers.setdefault(edge.to_id, []).append(edge)

        self._callers = callers
        self._callees = callees
        return self

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def nodes(self) -> List[FunctionNode]:
        return list(self._nodes.values())

    @property
    def edges(self) -> List[CallEdge]:
        return list(self._edges)

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def get_node(self, node_id: Optional[str]) -> Optional[FunctionNode]:
        if node_id is None:
            return None
        return self._nodes.get(node_id)

    def callers(self, node_id: str) -> List[CallEdge]:
        """Edges pointing at *node_id*, in insertion order."""
        self.freeze()
        return self._callers.get(node_id, [])

    def callees(self, node_id: str) -> List[CallEdge]:
        """Edges leaving *node_id*, in insertion order."""
        self.freeze()
        return self._callees.get(node_id, [])

    def fan_in(self, node_id: str) -> int:
        return len(self.callers(node_id))

    def fan_out(self, node_id: str) -> int:
        return len(self.callees(node_id))

    def cross_module_fan_out(self, node_id: str) -> int:
        node = self._nodes.get(node_id)
        if node is None:
            return 0
        count = 0
        for edge in self.callees(node_id):
            target = self._nodes.get(edge.to_id) if edge.to_id else None
            if target is not None and target.module != node.module:
                count += 1
        return count

    def cross_module_ratio(self, node_id: str) -> float:
        fo = self.fan_out(node_id)
        return self.cross_module_fan_out(node_id) / fo if fo else 0.0

    def edges_for(self, node_id: str) -> List[CallEdge]:
        return [e for e in self._edges if e.from_id == node_id or e.to_id == node_id]

    def summary(self) -> Dict[str, int]:
        return {
            "functions": len(self._nodes),
            "calls": len(self._edges),
            "resolved": sum(1 for e in self._edges if e.resolved),
            "cross_module": sum(1 for e in self._edges if e.cross_module),
            "external": sum(1 for e in self._edges if not e.resolved),
        }
