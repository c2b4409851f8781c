"""Percentile statistics over a CallGraph.

Every threshold the classifier uses is relative to the codebase under
analysis, so nothing needs tuning per project size.
"""

from __future__ import annotations

import bisect
import math
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Sequence

from .call_graph import CallGraph
from .models import FunctionNode

METRICS: Dict[str, Callable[[FunctionNode, CallGraph], float]] = {
    "fan_in": lambda n, g: g.fan_in(n.id),
    "fan_out": lambda n, g: g.fan_out(n.id),
    "complexity": lambda n, g: n.complexity,
    "lines_of_code": lambda n, g: n.lines_of_code,
    "params": lambda n, g: n.params,
    "cross_module_fan_out": lambda n, g: g.cross_module_fan_out(n.id),
    "cross_module_ratio": lambda n, g: g.cross_module_ratio(n.id),
}


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """Nearest-rank percentile: ``sorted[floor(p * (n - 1))]``."""
    if not sorted_values:
        return 0
    return sorted_values[int(p * (len(sorted_values) - 1))]


def round_half_up(value: float) -> int:
    """Nearest integer with halves rounded up (``2.5 -> 3``), unlike :func:`round`."""
    return math.floor(value + 0.5)


@dataclass
class MetricStats:
    """Distribution summary of one metric across all functions."""

    p50: float
    p75: float
    p85: float
    p90: float
    p95: float
    max: float
    mean: float
    values: List[float] = field(default_factory=list, repr=False)

    @classmethod
    def from_values(cls, values: Sequence[float]) -> "MetricStats":
        ordered = sorted(values)
        return cls(
            p50=percentile(ordered, 0.50),
            p75=percentile(ordered, 0.75),
            p85=percentile(ordered, 0.85),
            p90=percentile(ordered, 0.90),
            p95=percentile(ordered, 0.95),
            max=ordered[-1] if ordered else 0,
            mean=sum(ordered) / len(ordered) if ordered else 0.0,
            values=ordered,
        )

    def rank(self, value: float) -> int:
        """Percentage (0-100) of the sample strictly below *value*."""
        if not self.values:
            return 0
        below = bisect.bisect_left(self.values, value)
        return round_half_up(100 * below / len(self.values))


def compute_stats(graph: CallGraph) -> Dict[str, MetricStats]:
    """Summaries for every metric in :data:`METRICS`; empty for an empty graph."""
    nodes = graph.nodes
    if not nodes:
        return {}
    return {
        name: MetricStats.from_values([fn(node, graph) for node in nodes])
        for name, fn in METRICS.items()
    }
