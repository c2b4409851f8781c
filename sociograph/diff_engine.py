"""Diff engine: compares per-function snapshots taken at two git refs."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .errors import InvalidRefRangeError
from .models import DiffResult, DiffSummary, FunctionDiff, MetricDelta, NodeSnapshot
from .snapshot import snapshot_ref

logger = logging.getLogger(__name__)

# A delta must reach one of these to count as stress or improvement.
STRESS_THRESHOLDS = {"complexity": 3, "fan_out": 2, "fan_in": 5, "cross_module_fan_out": 2}
IMPROVE_THRESHOLDS = {key: -value for key, value in STRESS_THRESHOLDS.items()}

# Gaining one of these is a warning sign; losing one is good news.
CONCERNING = frozenset({
    "The Boss", "The Workhorse", "The Gossip", "The Overloaded",
    "The Crisis Point", "The Codependent", "The Stranger",
})

LINES_SIGNAL_MIN = 20

# (signal label, MetricDelta field)
_SIGNAL_FIELDS = [
    ("complexity", "complexity"),
    ("fan-out", "fan_out"),
    ("cross-module calls", "cross_module_fan_out"),
    ("fan-in", "fan_in"),
    ("lines", "lines_of_code"),
]

_VERDICT_ORDER = {"stressed": 0, "new": 1, "improved": 2, "gone": 3, "neutral": 4}


def parse_ref_range(ref_range: str) -> Tuple[str, str]:
    """Split ``before..after``; a missing after ref means ``HEAD``.

    Raises:
        InvalidRefRangeError: if there is no ``..`` or the before ref is empty.
    """
    before, sep, after = ref_range.partition("..")
    if not sep or not before:
        raise InvalidRefRangeError(ref_range)
    return before, after or "HEAD"


def compute_delta(before: NodeSnapshot, after: NodeSnapshot) -> MetricDelta:
    return MetricDelta(
        complexity=after.complexity - before.complexity,
        fan_in=after.fan_in - before.fan_in,
        fan_out=after.fan_out - before.fan_out,
        cross_module_fan_out=after.cross_module_fan_out - before.cross_module_fan_out,
        lines_of_code=after.lines_of_code - before.lines_of_code,
    )


def judge(delta: MetricDelta, gained: List[str], lost: List[str]) -> Tuple[str, List[str]]:
    """Return ``(verdict, signals)`` for a changed function."""
    signals: List[str] = []
    stressed = improved = False

    for label, attr in _SIGNAL_FIELDS:
        value = getattr(delta, attr)
        if value == 0:
            continue
        text = f"{label} {value:+d}"
        stress_at = STRESS_THRESHOLDS.get(attr)
        improve_at = IMPROVE_THRESHOLDS.get(attr)
        if stress_at is not None and value >= stress_at:
            stressed = True
            signals.append(text)
        elif improve_at is not None and value <= improve_at:
            improved = True
            signals.append(text)
        elif attr == "lines_of_code" and abs(value) >= LINES_SIGNAL_MIN:
            # informational only
            signals.append(text)

    for label in gained:
        if label in CONCERNING:
            stressed = True
        signals.append(f"gained: {label}")
    for label in lost:
        if label in CONCERNING:
            improved = True
        signals.append(f"lost: {label}")

    if stressed:
        return "stressed", signals
    if improved:
        return "improved", signals
    return "neutral", signals


def _added(key: str, after: NodeSnapshot) -> FunctionDiff:
    return FunctionDiff(
        kind="added", stable_key=key, name=after.name, rel_path=after.rel_path,
        module=after.module, delta=MetricDelta(), before=None, after=after,
        archetypes_before=[], archetypes_after=list(after.archetypes),
        archetypes_gained=list(after.archetypes), archetypes_lost=[],
        verdict="new", signals=list(after.archetypes),
    )


def _removed(key: str, before: NodeSnapshot) -> FunctionDiff:
    signals = [f"was: {', '.join(before.archetypes)}"] if before.archetypes else []
    return FunctionDiff(
        kind="removed", stable_key=key, name=before.name, rel_path=before.rel_path,
        module=before.module, delta=MetricDelta(), before=before, after=None,
        archetypes_before=list(before.archetypes), archetypes_after=[],
        archetypes_gained=[], archetypes_lost=list(before.archetypes),
        verdict="gone", signals=signals,
    )


def _changed(key: str, before: NodeSnapshot, after: NodeSnapshot) -> FunctionDiff:
    delta = compute_delta(before, after)
    gained = [a for a in after.archetypes if a not in before.archetypes]
    lost = [a for a in before.archetypes if a not in after.archetypes]
    verdict, signals = judge(delta, gained, lost)
    return FunctionDiff(
        kind="changed", stable_key=key, name=after.name, rel_path=after.rel_path,
        module=after.module, delta=delta, before=before, after=after,
        archetypes_before=list(before.archetypes), archetypes_after=list(after.archetypes),
        archetypes_gained=gained, archetypes_lost=lost,
        verdict=verdict, signals=signals,
    )


def severity(diff: FunctionDiff) -> float:
    d = diff.delta
    return abs(d.complexity) * 2 + abs(d.fan_out) + abs(d.cross_module_fan_out) + abs(d.fan_in) * 0.5


def _sort_key(diff: FunctionDiff) -> Tuple[int, float]:
    rank = _VERDICT_ORDER.get(diff.verdict, 5)
    if diff.verdict == "stressed":
        return rank, -severity(diff)
    if diff.verdict == "new":
        return rank, -sum(1 for a in diff.archetypes_gained if a in CONCERNING)
    return rank, 0


def compute_diff(
    before: Dict[str, NodeSnapshot],
    after: Dict[str, NodeSnapshot],
    before_ref: str,
    after_ref: str,
) -> DiffResult:
    """Compare two snapshot maps keyed by ``relPath::name``.

    Changed functions that stay neutral without any archetype change are
    only counted in ``summary.unchanged``.
    """
    diffs: List[FunctionDiff] = []
    unchanged = 0

    for key, snap in after.items():
        if key not in before:
            diffs.append(_added(key, snap))
    for key, snap in before.items():
        if key not in after:
            diffs.append(_removed(key, snap))
    for key, snap in before.items():
        if key not in after:
            continue
        diff = _changed(key, snap, after[key])
        if diff.verdict == "neutral" and not diff.archetypes_gained and not diff.archetypes_lost:
            unchanged += 1
        else:
            diffs.append(diff)

    # sorted() is stable, so ties keep discovery order
    diffs = sorted(diffs, key=_sort_key)

    summary = DiffSummary(
        added=sum(1 for d in diffs if d.kind == "added"),
        removed=sum(1 for d in diffs if d.kind == "removed"),
        stressed=sum(1 for d in diffs if d.verdict == "stressed"),
        improved=sum(1 for d in diffs if d.verdict == "improved"),
        unchanged=unchanged,
    )
    return DiffResult(before_ref=before_ref, after_ref=after_ref, diffs=diffs, summary=summary)


def run_diff(root: Path, ref_range: str, workers: Optional[int] = None) -> DiffResult:
    """Snapshot both ends of *ref_range* concurrently and diff them.

    Args:
        root: Analysis root; may be a sub-directory of the repository.
        ref_range: ``before..after``; ``after`` defaults to ``HEAD``.
        workers: Parse workers per snapshot.

    Returns:
        The sorted :class:`DiffResult`.
    """
    before_ref, after_ref = parse_ref_range(ref_range)
    logger.info("Snapshotting %s and %s in parallel", before_ref, after_ref)

    with ThreadPoolExecutor(max_workers=2) as pool:
        before_future = pool.submit(snapshot_ref, root, before_ref, workers)
        after_future = pool.submit(snapshot_ref, root, after_ref, workers)
        before = before_future.result()
        after = after_future.result()

    logger.info("Before: %d functions, after: %d functions", len(before), len(after))
    return compute_diff(before, after, before_ref, after_ref)
