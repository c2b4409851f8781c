"""Terminal "society summary" for one analysed codebase."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .archetypes import ALL_ARCHETYPES
from .call_graph import CallGraph
from .classifier import Classifications, archetype_counts, get_by_archetype
from .models import Classification, PartnerDetail
from .stats import compute_stats, round_half_up

# Shown in their own compact sections instead
_COMPACT_LABELS = {"The Hermit", "The Ghost", "The Codependent"}

WIDTH = 72


@dataclass
class Risk:
    name: str
    location: str
    reason: str
    score: float


def _bar(value: float, maximum: float, width: int = 10) -> str:
    ratio = min(1.0, max(0.0, value / maximum)) if maximum else 0.0
    filled = round_half_up(ratio * width)
    if filled >= width * 0.8:
        color = "red"
    elif filled >= width * 0.5:
        color = "yellow"
    else:
        color = "green"
    return f"[{color}]{'█' * filled}[/{color}][dim]{'░' * (width - filled)}[/dim]"


def _truncate(text: str, length: int) -> str:
    return text[: length - 1] + "…" if len(text) > length else text


def _location(graph: CallGraph, node_id: str) -> str:
    node = graph.get_node(node_id)
    return f"{node.rel_path}:{node.line}" if node else node_id


def compute_risks(graph: CallGraph, classifications: Classifications) -> List[Risk]:
    """Top five concrete risks across bosses, complexity, gossip modules,
    crisis points and forgotten complex code."""
    risks: List[Risk] = []

    def listed(name: str) -> bool:
        return any(r.name == name for r in risks)

    for node_id, c in get_by_archetype(classifications, "The Boss")[:2]:
        node = graph.get_node(node_id)
        fi = graph.fan_in(node_id)
        risks.append(Risk(node.name, _location(graph, node_id),
                          f"{fi} dependents, removing or breaking this will cascade broadly",
                          c.confidence * fi))

    complex_targets = (
        get_by_archetype(classifications, "The Overloaded")
        + get_by_archetype(classifications, "The Workhorse")
    )
    complex_targets.sort(key=lambda item: graph.get_node(item[0]).complexity, reverse=True)
    for node_id, _ in complex_targets[:2]:
        node = graph.get_node(node_id)
        if listed(node.name):
            continue
        risks.append(Risk(node.name, _location(graph, node_id),
                          f"complexity {node.complexity}, {node.params} params, prime candidate for decomposition",
                          node.complexity * node.params))

    gossips = get_by_archetype(classifications, "The Gossip")
    if len(gossips) >= 2:
        per_module: Dict[str, int] = {}
        for node_id, _ in gossips:
            module = graph.get_node(node_id).module
            per_module[module] = per_module.get(module, 0) + 1
        worst_module, worst_count = max(per_module.items(), key=lambda item: item[1])
        if worst_count >= 2:
            risks.append(Risk(f"{worst_module}/", "module",
                              f"{worst_count} Gossips in one module, this module is spreading coupling everywhere",
                              worst_count * 10))

    for node_id, c in get_by_archetype(classifications, "The Crisis Point")[:2]:
        node = graph.get_node(node_id)
        if listed(node.name):
            continue
        risks.append(Risk(node.name, _location(graph, node_id), c.reasons[0], c.confidence * 100))

    ghosts = get_by_archetype(classifications, "The Ghost")
    if ghosts:
        ghost_id, _ = max(ghosts, key=lambda item: graph.get_node(item[0]).complexity)
        ghost = graph.get_node(ghost_id)
        if ghost.complexity >= 5 and not listed(ghost.name):
            risks.append(Risk(ghost.name, _location(graph, ghost_id),
                              f"complexity {ghost.complexity} but barely called, important logic may be rotting",
                              ghost.complexity))

    risks.sort(key=lambda r: r.score, reverse=True)
    return risks[:5]


def codependent_pairs(classifications: Classifications) -> List[Tuple[str, Classification, PartnerDetail]]:
    """Codependent matches with A<->B and B<->A collapsed into one pair."""
    seen = set()
    pairs = []
    for node_id, c in get_by_archetype(classifications, "The Codependent"):
        if not isinstance(c.detail, PartnerDetail):
            continue
        key = tuple(sorted((node_id, c.detail.partner_id)))
        if key in seen:
            continue
        seen.add(key)
        pairs.append((node_id, c, c.detail))
    return pairs


def _function_block(console: Console, graph: CallGraph, node_id: str, c: Classification) -> None:
    node = graph.get_node(node_id)
    if node is None:
        return
    console.print(f"     [bold white]{_truncate(node.name, 28):<28}[/bold white]  [dim]{node.rel_path}:{node.line}[/dim]")
    console.print(
        f"     [dim]fi={graph.fan_in(node_id)}  fo={graph.fan_out(node_id)}  cx={node.complexity}"
        f"  {round_half_up(c.confidence * 100)}%[/dim]"
    )
    for reason in c.reasons:
        console.print(f"     [dim]• {reason}[/dim]")


def _compact_section(console: Console, graph: CallGraph, classifications: Classifications,
                     label: str, emoji: str, description: str) -> None:
    matches = get_by_archetype(classifications, label)
    if not matches:
        return

    console.print()
    console.print(f"  [bold]{emoji}  {label.upper()}[/bold]  [dim]({len(matches)})[/dim]")
    console.print(f"  [dim]{description}[/dim]")

    interesting = [
        node_id for node_id, _ in matches
        if graph.get_node(node_id).complexity > 2 or graph.fan_out(node_id) > 2
    ][:5]
    for node_id in interesting:
        node = graph.get_node(node_id)
        console.print(
            f"     [dim]→[/dim] {_truncate(node.name, 28):<28}  [dim]{node.rel_path}:{node.line}"
            f"  cx={node.complexity} fo={graph.fan_out(node_id)}[/dim]"
        )
    trivial = len(matches) - len(interesting)
    if trivial > 0:
        console.print(f"     [dim]+ {trivial} trivial[/dim]")


def render_report(
    graph: CallGraph,
    classifications: Classifications,
    path: str = ".",
    top: int = 4,
    console: Optional[Console] = None,
) -> None:
    """Print the society summary for *graph* to *console*."""
    console = console or Console()
    summary = graph.summary()
    counts = archetype_counts(classifications)
    stats = compute_stats(graph)
    rule = "  [dim]" + "─" * (WIDTH - 2) + "[/dim]"

    console.print()
    console.print(Panel.fit(
        f"[dim]{summary['functions']} functions  ·  {summary['calls']} calls  ·  "
        f"{summary['resolved']} resolved  ·  {summary['cross_module']} cross-module[/dim]",
        title=f"[bold]THE SOCIETY OF [cyan]{path}[/cyan][/bold]",
        border_style="cyan",
    ))

    # -- Characters of note ----------------------------------------------
    notable = [a for a in ALL_ARCHETYPES if a.label not in _COMPACT_LABELS]
    if any(counts.get(a.label, 0) for a in notable):
        console.print()
        console.print("  [bold]CHARACTERS OF NOTE[/bold]")
        console.print(rule)
        for archetype in notable:
            matches = get_by_archetype(classifications, archetype.label)
            if not matches:
                continue
            console.print()
            console.print(f"  [bold]{archetype.emoji}  {archetype.label.upper()}[/bold]")
            for node_id, c in matches[:top]:
                _function_block(console, graph, node_id, c)
            if len(matches) > top:
                pct = round_half_up(len(matches) / summary["functions"] * 100)
                console.print(f"     [dim]… and {len(matches) - top} more  ({pct}% of codebase)[/dim]")
        console.print()
        console.print(rule)

    # -- Codependent pairs ------------------------------------------------
    pairs = codependent_pairs(classifications)
    if pairs:
        plural = "" if len(pairs) == 1 else "s"
        console.print()
        console.print(f"  [bold]🔗  THE CODEPENDENT[/bold]  [dim]({len(pairs)} pair{plural})[/dim]")
        console.print("  [dim]Always change together. May need to be merged or co-located.[/dim]")
        console.print()
        for node_id, c, partner in pairs[:top]:
            node = graph.get_node(node_id)
            console.print(
                f"     [bold white]{_truncate(node.name, 24):<24}[/bold white][dim]  ↔  [/dim]"
                f"[bold white]{_truncate(partner.partner_name, 24):<24}[/bold white]"
                f"  [dim]{round_half_up(partner.correlation * 100)}% co-change[/dim]"
            )
            for reason in c.reasons:
                console.print(f"     [dim]• {reason}[/dim]")
            if partner.partner_module is not None and partner.partner_module != node.module:
                console.print(f"     [dim]•[/dim] [yellow]different modules: {node.module} vs {partner.partner_module}[/yellow]")
        if len(pairs) > top:
            console.print(f"     [dim]… and {len(pairs) - top} more pairs[/dim]")

    # -- Hermits & ghosts -------------------------------------------------
    _compact_section(console, graph, classifications, "The Hermit", "👻",
                     "No callers found. Dead code candidates or external entry points.")
    _compact_section(console, graph, classifications, "The Ghost", "💀",
                     "Barely called. Non-trivial code that may be forgotten.")

    # -- Social health ----------------------------------------------------
    console.print()
    table = Table(title="SOCIAL HEALTH", title_justify="left", show_header=False, box=None, padding=(0, 2))
    table.add_column("Metric", style="cyan", width=16)
    table.add_column("Bar", width=10)
    table.add_column("Value", style="bold", justify="right")
    table.add_column("Verdict")

    total = summary["functions"]
    isolation = counts.get("The Hermit", 0) / total if total else 0.0
    if isolation > 0.5:
        verdict = "[red]high, check for dead code[/red]"
    elif isolation > 0.3:
        verdict = "[yellow]moderate[/yellow]"
    else:
        verdict = "[green]healthy[/green]"
    table.add_row("Isolation", _bar(isolation, 1), f"{round_half_up(isolation * 100)}%", verdict)

    bosses = get_by_archetype(classifications, "The Boss")
    if bosses:
        top_id = bosses[0][0]
        total_fan_in = sum(graph.fan_in(n.id) for n in graph.nodes)
        concentration = graph.fan_in(top_id) / total_fan_in if total_fan_in else 0.0
        if concentration > 0.3:
            verdict = (f"[red]{graph.get_node(top_id).name} carries "
                       f"{round_half_up(concentration * 100)}% of all traffic[/red]")
        else:
            verdict = "[green]distributed[/green]"
        table.add_row("Concentration", _bar(concentration, 1), f"{round_half_up(concentration * 100)}%", verdict)

    avg_cx = stats["complexity"].mean if stats else 0.0
    max_cx = stats["complexity"].max if stats else 1
    if avg_cx > 8:
        verdict = "[red]high, significant refactor opportunity[/red]"
    elif avg_cx > 4:
        verdict = "[yellow]moderate[/yellow]"
    else:
        verdict = "[green]manageable[/green]"
    table.add_row("Avg complexity", _bar(avg_cx, max_cx), f"{avg_cx:.1f}", verdict)

    coupling = summary["cross_module"] / summary["calls"] if summary["calls"] else 0.0
    if coupling > 0.5:
        verdict = "[red]high coupling across module boundaries[/red]"
    elif coupling > 0.25:
        verdict = "[yellow]moderate[/yellow]"
    else:
        verdict = "[green]well-contained[/green]"
    table.add_row("Cross-module", _bar(coupling, 1), f"{round_half_up(coupling * 100)}%", verdict)
    console.print(table)

    # -- Top risks --------------------------------------------------------
    risks = compute_risks(graph, classifications)
    if risks:
        console.print()
        console.print("  [bold]TOP RISKS[/bold]")
        console.print(rule)
        console.print()
        for i, risk in enumerate(risks, 1):
            console.print(f"  [bold]{i}.[/bold] [yellow]{risk.name}[/yellow]  [dim]{risk.location}[/dim]")
            console.print(f"     {risk.reason}")
            console.print()


def report_to_dict(graph: CallGraph, classifications: Classifications) -> dict:
    """JSON-friendly view of an analysis: summary, archetype counts, and
    every function that matched at least one archetype."""
    functions = []
    for node in graph.nodes:
        found = classifications.get(node.id, [])
        if not found:
            continue
        functions.append({
            "id": node.id,
            "name": node.name,
            "relPath": node.rel_path,
            "line": node.line,
            "module": node.module,
            "fanIn": graph.fan_in(node.id),
            "fanOut": graph.fan_out(node.id),
            "complexity": node.complexity,
            "archetypes": [
                {"label": c.label, "confidence": round(c.confidence, 3), "reasons": c.reasons}
                for c in found
            ],
        })
    return {
        "summary": graph.summary(),
        "archetypes": archetype_counts(classifications),
        "functions": functions,
    }
