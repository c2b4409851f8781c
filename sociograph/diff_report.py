"""Rich terminal and JSON renderings of a DiffResult."""

from __future__ import annotations

import json
import re
from dataclasses import asdict
from datetime import datetime, timezone
from typing import List, Optional

from rich.console import Console

from .models import DiffResult, FunctionDiff

WIDTH = 72

ARCHETYPE_STYLES = {
    "The Boss": "yellow",
    "The Workhorse": "red",
    "The Gossip": "magenta",
    "The Hermit": "bright_black",
    "The Stranger": "cyan",
    "The Overloaded": "yellow",
    "The Ghost": "bright_black",
    "The Crisis Point": "red",
    "The Codependent": "magenta",
    "The Bridge": "blue",
}

VERDICT_ICONS = {
    "stressed": "⚠️ ",
    "improved": "✅",
    "new": "🆕",
    "gone": "[dim]❌[/dim]",
}

_GROWTH_RE = re.compile(r"\+\d")
_SHRINK_RE = re.compile(r"-\d")


def _archetype(label: str) -> str:
    style = ARCHETYPE_STYLES.get(label, "blue")
    return f"[{style}]{label}[/{style}]"


def _format_signal(signal: str, verdict: str) -> str:
    if _GROWTH_RE.search(signal) and verdict == "stressed":
        return f"[red]{signal}[/red]"
    if _SHRINK_RE.search(signal) and verdict == "improved":
        return f"[green]{signal}[/green]"
    if signal.startswith("gained:"):
        return f"[red]{signal}[/red]"
    if signal.startswith("lost:"):
        return f"[green]{signal}[/green]"
    return f"[dim]{signal}[/dim]"


def _truncate(text: str, length: int) -> str:
    return text[: length - 1] + "…" if len(text) > length else text


def _print_diff(console: Console, diff: FunctionDiff) -> None:
    icon = VERDICT_ICONS.get(diff.verdict, "  ")
    console.print(
        f"  {icon}  [bold]{_truncate(diff.name, 28):<28}[/bold]  [dim]{_truncate(diff.rel_path, 38)}[/dim]"
    )
    for signal in diff.signals:
        console.print(f"       {_format_signal(signal, diff.verdict)}")

    if diff.kind == "changed" and diff.archetypes_before != diff.archetypes_after:
        before = ", ".join(map(_archetype, diff.archetypes_before)) or "[dim]normal[/dim]"
        after = ", ".join(map(_archetype, diff.archetypes_after)) or "[dim]normal[/dim]"
        console.print(f"       {before}  [dim]→[/dim]  {after}")


def notable_diffs(result: DiffResult, verbose: bool = False) -> List[FunctionDiff]:
    """Diffs worth showing; plain new functions and neutral changes only with *verbose*."""
    if verbose:
        return list(result.diffs)
    return [
        d for d in result.diffs
        if not (d.verdict == "new" and not d.archetypes_gained) and d.verdict != "neutral"
    ]


def render_diff(result: DiffResult, verbose: bool = False, console: Optional[Console] = None) -> None:
    console = console or Console()
    summary = result.summary
    rule = "  [dim]" + "─" * (WIDTH - 2) + "[/dim]"

    console.print()
    console.print(
        f"[bold]  SOCIOGRAPH DIFF  [/bold][cyan]{result.before_ref}[/cyan][dim] → [/dim][cyan]{result.after_ref}[/cyan]"
    )
    console.print(rule)

    parts = []
    if summary.stressed:
        parts.append(f"[red]{summary.stressed} stressed[/red]")
    if summary.improved:
        parts.append(f"[green]{summary.improved} improved[/green]")
    if summary.added:
        parts.append(f"[blue]{summary.added} new[/blue]")
    if summary.removed:
        parts.append(f"[dim]{summary.removed} removed[/dim]")
    if summary.unchanged:
        parts.append(f"[dim]{summary.unchanged} unchanged[/dim]")
    console.print("  " + ("[dim]  ·  [/dim]".join(parts) if parts else "[dim]no notable changes[/dim]"))
    console.print()

    notable = notable_diffs(result, verbose)
    if not notable:
        console.print("  [dim]No notable changes.[/dim]")
        console.print()
        return

    groups = [
        [d for d in notable if d.verdict == "stressed"],
        [d for d in notable if d.verdict == "new" and d.archetypes_gained],
        [d for d in notable if d.verdict == "improved"],
        [d for d in notable if d.verdict == "gone"],
    ]
    for group in groups:
        for diff in group:
            _print_diff(console, diff)
        if group:
            console.print()

    plain_new = [d for d in notable if d.verdict == "new" and not d.archetypes_gained]
    if verbose and plain_new:
        console.print(f"  [dim]{len(plain_new)} new functions with no archetypes[/dim]")
        console.print()

    console.print(rule)
    console.print()


def diff_to_dict(result: DiffResult, verbose: bool = False) -> dict:
    """JSON envelope for CI consumption; snapshots only with *verbose*."""
    entries = []
    for d in result.diffs:
        entry = {
            "kind": d.kind,
            "name": d.name,
            "relPath": d.rel_path,
            "module": d.module,
            "verdict": d.verdict,
            "signals": d.signals,
            "archetypesBefore": d.archetypes_before,
            "archetypesAfter": d.archetypes_after,
            "archetypesGained": d.archetypes_gained,
            "archetypesLost": d.archetypes_lost,
            "delta": {
                "complexity": d.delta.complexity,
                "fanIn": d.delta.fan_in,
                "fanOut": d.delta.fan_out,
                "crossModuleFanOut": d.delta.cross_module_fan_out,
                "linesOfCode": d.delta.lines_of_code,
            },
        }
        if verbose:
            entry["before"] = asdict(d.before) if d.before else None
            entry["after"] = asdict(d.after) if d.after else None
        entries.append(entry)

    return {
        "meta": {
            "tool": "sociograph",
            "beforeRef": result.before_ref,
            "afterRef": result.after_ref,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        },
        "summary": asdict(result.summary),
        "diffs": entries,
    }


def diff_to_json(result: DiffResult, verbose: bool = False) -> str:
    return json.dumps(diff_to_dict(result, verbose), indent=2)
