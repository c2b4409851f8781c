"""Archetype classifier: runs every detector against every function."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from .archetypes import ALL_ARCHETYPES, ClassifierContext
from .bridges import compute_bridge_scores
from .call_graph import CallGraph
from .models import Classification, GitMetrics
from .stats import compute_stats

logger = logging.getLogger(__name__)

Classifications = Dict[str, List[Classification]]


def classify(
    graph: CallGraph,
    git_metrics: Optional[Dict[str, GitMetrics]] = None,
) -> Classifications:
    """Map every function id to its matching archetypes, most confident first.

    A function with no match gets an empty list: it is just normal. The graph
    itself is never modified.
    """
    stats = compute_stats(graph)
    context = ClassifierContext(git_metrics=git_metrics, bridges=compute_bridge_scores(graph))

    results: Classifications = {}
    for node in graph.nodes:
        matches: List[Classification] = []
        for archetype in ALL_ARCHETYPES:
            detection = archetype.detect(node, graph, stats, context)
            if detection is None:
                continue
            matches.append(Classification(
                archetype=archetype.key,
                label=archetype.label,
                emoji=archetype.emoji,
                description=archetype.description,
                confidence=detection.confidence,
                reasons=detection.reasons,
                detail=detection.detail,
            ))
        matches.sort(key=lambda c: c.confidence, reverse=True)
        results[node.id] = matches

    logger.debug("Classified %d functions", len(results))
    return results


def get_by_archetype(classifications: Classifications, label: str) -> List[Tuple[str, Classification]]:
    """``(node_id, classification)`` for every match of *label*, by confidence."""
    matches = []
    for node_id, found in classifications.items():
        match = next((c for c in found if c.label == label), None)
        if match is not None:
            matches.append((node_id, match))
    matches.sort(key=lambda item: item[1].confidence, reverse=True)
    return matches


def archetype_counts(classifications: Classifications) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for found in classifications.values():
        for c in found:
            counts[c.label] = counts.get(c.label, 0) + 1
    return counts
