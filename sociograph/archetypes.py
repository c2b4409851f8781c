"""Archetype detectors.

Each archetype is an independent detector::

    detect(node, graph, stats, context) -> Optional[Detection]

``confidence`` is in [0, 1] and ``reasons`` explains the match in plain
words. A function can match several archetypes; the classifier keeps them
all.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .call_graph import CallGraph
from .git_analyzer import strongest_partner
from .models import BridgeDetail, BridgeInfo, Detection, FunctionNode, GitMetrics, PartnerDetail
from .stats import MetricStats, round_half_up

Stats = Dict[str, MetricStats]


@dataclass
class ClassifierContext:
    """Inputs shared by all detectors beyond the graph itself."""

    git_metrics: Optional[Dict[str, GitMetrics]] = None
    bridges: Dict[str, BridgeInfo] = field(default_factory=dict)


Detector = Callable[[FunctionNode, CallGraph, Stats, ClassifierContext], Optional[Detection]]


@dataclass(frozen=True)
class Archetype:
    key: str
    label: str
    emoji: str
    description: str
    detect: Detector


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def clamp(value: float) -> float:
    return min(1.0, max(0.0, value))


def normalize(value: float, lo: float, hi: float) -> float:
    if hi == lo:
        return 0.0
    return clamp((value - lo) / (hi - lo))


def top_pct(value: float, stat: MetricStats) -> int:
    """How close to the top *value* sits: 1 means the very top."""
    return max(1, 100 - stat.rank(value))


# ---------------------------------------------------------------------------
# Graph-shape archetypes
# ---------------------------------------------------------------------------

def detect_boss(node: FunctionNode, graph: CallGraph, stats: Stats, context: ClassifierContext) -> Optional[Detection]:
    """High fan-in, relatively low fan-out: a single point of failure."""
    fi = graph.fan_in(node.id)
    fo = graph.fan_out(node.id)
    threshold = max(stats["fan_in"].p95, 5)
    if fi < threshold:
        return None

    dominance = 1.0 if fo == 0 else fi / (fi + fo)
    confidence = max(0.2, normalize(fi, threshold, stats["fan_in"].max))

    reasons = [f"{fi} functions depend on this (top {top_pct(fi, stats['fan_in'])}%)"]
    if dominance > 0.7:
        reasons.append("far more callers than callees, high single-point-of-failure risk")
    return Detection(confidence, reasons)


def detect_workhorse(node: FunctionNode, graph: CallGraph, stats: Stats, context: ClassifierContext) -> Optional[Detection]:
    """At least two of complexity, fan-out and length in the top 15%."""
    complexity = node.complexity
    fan_out = graph.fan_out(node.id)
    loc = node.lines_of_code

    complexity_high = complexity >= stats["complexity"].p85
    fan_out_high = fan_out >= stats["fan_out"].p85
    loc_high = loc >= stats["lines_of_code"].p85
    if sum((complexity_high, fan_out_high, loc_high)) < 2:
        return None

    confidence = clamp(
        0.4 * normalize(complexity, stats["complexity"].p85, stats["complexity"].max)
        + 0.3 * normalize(fan_out, stats["fan_out"].p85, stats["fan_out"].max)
        + 0.3 * normalize(loc, stats["lines_of_code"].p85, stats["lines_of_code"].max)
    )

    reasons = []
    if complexity_high:
        reasons.append(f"complexity {complexity} (top {top_pct(complexity, stats['complexity'])}%)")
    if fan_out_high:
        reasons.append(f"calls {fan_out} functions (top {top_pct(fan_out, stats['fan_out'])}%)")
    if loc_high:
        reasons.append(f"{loc} lines (top {top_pct(loc, stats['lines_of_code'])}%)")
    return Detection(confidence, reasons)


def detect_gossip(node: FunctionNode, graph: CallGraph, stats: Stats, context: ClassifierContext) -> Optional[Detection]:
    cmfo = graph.cross_module_fan_out(node.id)
    fo = graph.fan_out(node.id)
    ratio = cmfo / fo if fo else 0.0

    absolute_high = cmfo >= max(stats["cross_module_fan_out"].p90, 3)
    ratio_high = ratio >= 0.8 and fo >= 3
    if not absolute_high and not ratio_high:
        return None

    cm = stats["cross_module_fan_out"]
    confidence = clamp(0.6 * normalize(cmfo, cm.p75, cm.max) + 0.4 * ratio)

    reasons = [f"calls into {cmfo} different modules"]
    if ratio_high:
        reasons.append(f"{round_half_up(ratio * 100)}% of its calls cross module boundaries")
    return Detection(confidence, reasons)


ENTRY_POINT_NAMES = {
    "main", "index", "start", "init", "setup", "bootstrap",
    "default", "app", "server", "listen",
    "get", "post", "put", "patch", "delete",
}

ENTRY_POINT_PREFIXES = ("handle", "on", "route")


def detect_hermit(node: FunctionNode, graph: CallGraph, stats: Stats, context: ClassifierContext) -> Optional[Detection]:
    """Nobody calls this: dead code or an externally invoked entry point."""
    if graph.fan_in(node.id) > 0:
        return None

    likely_entry_point = node.name.lower() in ENTRY_POINT_NAMES or node.name.startswith(ENTRY_POINT_PREFIXES)
    fo = graph.fan_out(node.id)
    if likely_entry_point:
        confidence = 0.3
    else:
        confidence = clamp(0.5 + 0.5 * normalize(fo, 0, stats["fan_out"].max))

    reasons = ["no callers found in this codebase"]
    if likely_entry_point:
        reasons.append("name suggests entry point, may be called externally")
    if fo == 0:
        reasons.append("also calls nothing, likely truly isolated")
    return Detection(confidence, reasons)


def detect_stranger(node: FunctionNode, graph: CallGraph, stats: Stats, context: ClassifierContext) -> Optional[Detection]:
    fo = graph.fan_out(node.id)
    cmfo = graph.cross_module_fan_out(node.id)
    ratio = cmfo / fo if fo else 0.0

    # Needs meaningful fan-out to have an opinion about where it belongs
    if fo < 3 or ratio < 0.75:
        return None

    confidence = clamp(ratio * normalize(cmfo, 2, stats["cross_module_fan_out"].max))
    reasons = [
        f"{round_half_up(ratio * 100)}% of calls leave its own module",
        f"calls {cmfo} functions in other modules, {fo - cmfo} in its own",
    ]
    return Detection(confidence, reasons)


def detect_overloaded(node: FunctionNode, graph: CallGraph, stats: Stats, context: ClassifierContext) -> Optional[Detection]:
    params = node.params
    complexity = node.complexity
    fo = graph.fan_out(node.id)

    params_high = params >= max(stats["params"].p90, 4)
    complexity_high = complexity >= stats["complexity"].p75
    fan_out_high = fo >= stats["fan_out"].p75
    if not params_high or not (complexity_high or fan_out_high):
        return None

    confidence = clamp(
        0.5 * normalize(params, stats["params"].p75, stats["params"].max)
        + 0.3 * normalize(complexity, stats["complexity"].p50, stats["complexity"].max)
        + 0.2 * normalize(fo, stats["fan_out"].p50, stats["fan_out"].max)
    )

    reasons = [f"{params} parameters (top {top_pct(params, stats['params'])}%)"]
    if complexity_high:
        reasons.append(f"complexity {complexity}")
    if fan_out_high:
        reasons.append(f"calls {fo} other functions")
    return Detection(confidence, reasons)


def detect_ghost(node: FunctionNode, graph: CallGraph, stats: Stats, context: ClassifierContext) -> Optional[Detection]:
    """Has one or two callers but is not trivial."""
    fi = graph.fan_in(node.id)
    if fi == 0 or fi > 2:
        return None

    complexity = node.complexity
    non_trivial = complexity >= stats["complexity"].p50 or node.lines_of_code >= stats["lines_of_code"].p50
    if not non_trivial:
        return None

    confidence = 0.4 + 0.3 * normalize(complexity, stats["complexity"].p50, stats["complexity"].max)
    reasons = [
        f"only {fi} caller{'' if fi == 1 else 's'}",
        f"complexity {complexity} suggests it's not trivial",
    ]
    return Detection(confidence, reasons)


# ---------------------------------------------------------------------------
# History archetypes (need git metrics)
# ---------------------------------------------------------------------------

def detect_crisis_point(node: FunctionNode, graph: CallGraph, stats: Stats, context: ClassifierContext) -> Optional[Detection]:
    """A disproportionate share of bug-fix commits."""
    if not context.git_metrics:
        return None
    m = context.git_metrics.get(node.id)
    if m is None or m.commits < 5:
        return None

    fix_ratio = m.fix_ratio
    if fix_ratio < 0.4:
        return None

    confidence = max(0.2, normalize(fix_ratio, 0.4, 1.0))
    reasons = [f"{m.fix_commits} of {m.commits} commits were bug fixes ({round_half_up(fix_ratio * 100)}%)"]
    if len(m.authors) > 2:
        reasons.append(f"touched by {len(m.authors)} different authors, high turbulence")
    return Detection(confidence, reasons)


def detect_codependent(node: FunctionNode, graph: CallGraph, stats: Stats, context: ClassifierContext) -> Optional[Detection]:
    """Almost always changes together with one specific other function."""
    if not context.git_metrics:
        return None

    partner = strongest_partner(node.id, context.git_metrics)
    if partner is None or partner.correlation < 0.5 or partner.co_count < 3:
        return None

    partner_node = graph.get_node(partner.partner_id)
    partner_name = partner_node.name if partner_node else partner.partner_id
    confidence = normalize(partner.correlation, 0.5, 1.0)

    reasons = [
        f"{round_half_up(partner.correlation * 100)}% of changes also touch {partner_name}",
        f"co-changed {partner.co_count} times",
    ]
    if partner_node is not None and partner_node.module != node.module:
        reasons.append("partner lives in a different module, consider co-location")

    detail = PartnerDetail(
        partner_id=partner.partner_id,
        partner_name=partner_name,
        partner_module=partner_node.module if partner_node else None,
        correlation=partner.correlation,
        co_count=partner.co_count,
    )
    return Detection(confidence, reasons, detail)


# ---------------------------------------------------------------------------
# Topology archetypes (need bridge scores)
# ---------------------------------------------------------------------------

def detect_bridge(node: FunctionNode, graph: CallGraph, stats: Stats, context: ClassifierContext) -> Optional[Detection]:
    """The sole or dominant path between two modules."""
    info = context.bridges.get(node.id)
    if info is None:
        return None

    reasons = []
    for pair in info.pairs[:3]:
        if pair.total == 1:
            reasons.append(f"only link from {pair.from_module} to {pair.to_module}")
        else:
            reasons.append(f"one of {pair.total} links from {pair.from_module} to {pair.to_module}")
    return Detection(info.score, reasons, BridgeDetail(pairs=list(info.pairs)))


BOSS = Archetype("boss", "The Boss", "👔",
                 "Everything depends on this. High fan-in, single point of failure.", detect_boss)
WORKHORSE = Archetype("workhorse", "The Workhorse", "😰",
                      "High complexity, does too much, probably modified constantly.", detect_workhorse)
GOSSIP = Archetype("gossip", "The Gossip", "🗣️",
                   "Calls into many unrelated modules, spreading coupling everywhere.", detect_gossip)
HERMIT = Archetype("hermit", "The Hermit", "👻",
                   "No callers. Dead code candidate or forgotten entry point.", detect_hermit)
STRANGER = Archetype("stranger", "The Stranger", "🚶",
                     "Lives in the wrong module. Most of its relationships are elsewhere.", detect_stranger)
OVERLOADED = Archetype("overloaded", "The Overloaded", "🏋️",
                       "Too many responsibilities: high params, complexity and reach.", detect_overloaded)
GHOST = Archetype("ghost", "The Ghost", "💀",
                  "Barely called. Non-trivial code that has been largely forgotten.", detect_ghost)
CRISIS_POINT = Archetype("crisis_point", "The Crisis Point", "🔥",
                         "Disproportionate share of bug-fix commits. This is where fires start.",
                         detect_crisis_point)
CODEPENDENT = Archetype("codependent", "The Codependent", "🔗",
                        "Always changes with another function. They may need to be merged or co-located.",
                        detect_codependent)
BRIDGE = Archetype("bridge", "The Bridge", "🌉",
                   "Quietly carries the only path between two modules. Easy to miss until it breaks.",
                   detect_bridge)

ALL_ARCHETYPES: List[Archetype] = [
    BOSS, WORKHORSE, GOSSIP, HERMIT, STRANGER, OVERLOADED, GHOST,
    CRISIS_POINT, CODEPENDENT, BRIDGE,
]

ARCHETYPES_BY_LABEL: Dict[str, Archetype] = {a.label: a for a in ALL_ARCHETYPES}
