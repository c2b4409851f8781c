"""Git analyzer: turns commit history into per-function GitMetrics.

Per function it counts touching commits and bug-fix commits, collects
authors, tracks first/last change, and counts how often every other
function changed in the same commit. Those co-change counts drive the
Codependent archetype; fix ratios drive the Crisis Point.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional

from .call_graph import CallGraph
from .git_cache import CommitCache
from .git_log import fetch_commits
from .line_mapper import build_file_index, map_to_functions
from .models import Commit, GitMetrics, Partner

logger = logging.getLogger(__name__)

# Commits touching more functions than this (bulk refactors, reformatting)
# still count toward per-function totals but not toward co-change pairs.
CO_COMMIT_CAP = 50


def compute_git_metrics(
    graph: CallGraph,
    commits: List[Commit],
    git_root: Path,
    root: Path,
) -> Dict[str, GitMetrics]:
    """Aggregate *commits* onto the functions of *graph*."""
    index = build_file_index(graph, git_root, root)
    metrics: Dict[str, GitMetrics] = {node.id: GitMetrics() for node in graph.nodes}

    for commit in commits:
        touched = set()
        for change in commit.changes:
            touched |= map_to_functions(change.file, change.ranges, index, git_root, root)

        track_pairs = len(touched) <= CO_COMMIT_CAP
        for node_id in touched:
            m = metrics.get(node_id)
            if m is None:
                continue

            m.commits += 1
            if commit.is_fix:
                m.fix_commits += 1
            m.authors.add(commit.author)
            if m.first_seen is None or commit.date < m.first_seen:
                m.first_seen = commit.date
            if m.last_seen is None or commit.date > m.last_seen:
                m.last_seen = commit.date

            if track_pairs:
                for other_id in touched:
                    if other_id != node_id:
                        m.co_commits[other_id] = m.co_commits.get(other_id, 0) + 1

    with_history = sum(1 for m in metrics.values() if m.commits > 0)
    logger.info("Mapped %d commits onto %d functions with history", len(commits), with_history)
    return metrics


def analyze_git(
    root: Path,
    graph: CallGraph,
    limit: int = 500,
    cache: Optional[CommitCache] = None,
) -> Optional[Dict[str, GitMetrics]]:
    """GitMetrics for every function, or None without usable history."""
    history = fetch_commits(root, limit=limit, cache=cache)
    if history is None or not history.commits:
        return None
    return compute_git_metrics(graph, history.commits, history.git_root, Path(root).resolve())


def co_commit_correlation(a: GitMetrics, b: GitMetrics, b_id: str) -> float:
    """Fraction of the less-changed function's commits shared with the other."""
    co_count = a.co_commits.get(b_id, 0)
    min_commits = min(a.commits, b.commits)
    if min_commits == 0:
        return 0.0
    return co_count / min_commits


def strongest_partner(
    node_id: str,
    metrics: Dict[str, GitMetrics],
    min_co_count: int = 3,
) -> Optional[Partner]:
    """The function *node_id* most often changes with, if any qualifies."""
    m = metrics.get(node_id)
    if m is None or not m.co_commits:
        return None

    best: Optional[Partner] = None
    best_corr = 0.0
    for other_id, co_count in m.co_commits.items():
        if co_count < min_co_count:
            continue
        other = metrics.get(other_id)
        if other is None:
            continue
        corr = co_commit_correlation(m, other, other_id)
        if corr > best_corr:
            best_corr = corr
            best = Partner(other_id, corr, co_count)
    return best
