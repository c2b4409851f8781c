"""CI gate: threshold config, evaluation of a DiffResult, and the PR comment.

``.sociograph.yml`` schema::

    thresholds:
      max_stressed: 5            # fail at N or more stressed functions
      fail_on_new_bridge: false  # fail if any function gains The Bridge
    watch_archetypes:            # always highlighted in comments
      - The Bridge
      - The Boss
      - The Crisis Point
      - The Workhorse
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .models import DiffResult, FunctionDiff

logger = logging.getLogger(__name__)

SENTINEL = "<!-- sociograph-report -->"

DEFAULT_CI_CONFIG: Dict[str, Any] = {
    "thresholds": {
        "max_stressed": 5,
        "fail_on_new_bridge": False,
    },
    "watch_archetypes": [
        "The Bridge",
        "The Boss",
        "The Crisis Point",
        "The Workhorse",
    ],
}

BRIDGE_LABEL = "The Bridge"


def load_ci_config(config_path: Optional[Path]) -> Dict[str, Any]:
    """Read *config_path* and merge it over :data:`DEFAULT_CI_CONFIG`."""
    defaults = copy.deepcopy(DEFAULT_CI_CONFIG)
    if config_path is None or not Path(config_path).exists():
        return defaults

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("Ignoring unreadable CI config %s: %s", config_path, exc)
        return defaults

    if not isinstance(data, dict):
        logger.warning("Ignoring CI config %s: expected a mapping", config_path)
        return defaults

    thresholds = data.get("thresholds") or {}
    if isinstance(thresholds, dict):
        defaults["thresholds"].update(thresholds)
    watch = data.get("watch_archetypes")
    if isinstance(watch, list):
        defaults["watch_archetypes"] = [str(w) for w in watch]
    return defaults


@dataclass
class Evaluation:
    passed: bool
    violations: List[str] = field(default_factory=list)
    new_bridges: List[FunctionDiff] = field(default_factory=list)
    watched_gains: List[FunctionDiff] = field(default_factory=list)


def evaluate(diff_result: DiffResult, config: Dict[str, Any]) -> Evaluation:
    """Decide whether a diff passes the configured thresholds."""
    thresholds = config["thresholds"]
    summary = diff_result.summary
    violations: List[str] = []

    max_stressed = thresholds["max_stressed"]
    if summary.stressed >= max_stressed:
        violations.append(f"{summary.stressed} stressed functions ≥ threshold of {max_stressed}")

    new_bridges = [d for d in diff_result.diffs if BRIDGE_LABEL in d.archetypes_gained]
    if thresholds.get("fail_on_new_bridge") and new_bridges:
        plural = "s" if len(new_bridges) > 1 else ""
        violations.append(f"{len(new_bridges)} function{plural} gained The Bridge archetype")

    # Informational only, never a violation
    watched = set(config.get("watch_archetypes", []))
    watched_gains = [d for d in diff_result.diffs if any(a in watched for a in d.archetypes_gained)]

    return Evaluation(
        passed=not violations,
        violations=violations,
        new_bridges=new_bridges,
        watched_gains=watched_gains,
    )


def _short(ref: str) -> str:
    return ref[:8] + "…" if len(ref) > 12 else ref


def format_comment(diff_result: DiffResult, evaluation: Evaluation) -> str:
    """Markdown PR comment, tagged with :data:`SENTINEL` for in-place updates."""
    summary = diff_result.summary
    before, after = _short(diff_result.before_ref), _short(diff_result.after_ref)
    lines: List[str] = [SENTINEL, f"## 🔬 Sociograph: `{before} → {after}`", ""]

    parts = []
    if summary.stressed > 0:
        parts.append(f"⚠️ **{summary.stressed} stressed**")
    if summary.improved > 0:
        parts.append(f"✅ {summary.improved} improved")
    if summary.added > 0:
        parts.append(f"🆕 {summary.added} new")
    if summary.removed > 0:
        parts.append(f"🗑️ {summary.removed} removed")
    if summary.unchanged > 0:
        parts.append(f"{summary.unchanged} unchanged")

    separator = " &nbsp;·&nbsp; "
    if evaluation.passed and summary.stressed == 0:
        lines.append("✅ **No architectural regressions.** " + separator.join(parts[1:]))
    else:
        lines.append(separator.join(parts))

    if evaluation.violations:
        lines += ["", "> ❌ **Failed thresholds:**"]
        lines += [f"> - {v}" for v in evaluation.violations]

    stressed = [d for d in diff_result.diffs if d.verdict == "stressed"]
    if stressed:
        lines += ["", f"### ⚠️ Stressed ({len(stressed)})", "",
                  "| Function | Location | Signals |", "|---|---|---|"]
        for d in stressed[:10]:
            lines.append(f"| `{d.name}` | `{d.rel_path}` | {' · '.join(d.signals)} |")
        if len(stressed) > 10:
            lines.append(f"\n*…and {len(stressed) - 10} more*")

    if evaluation.new_bridges:
        lines += [
            "", f"### 🌉 New Bridges ({len(evaluation.new_bridges)})", "",
            "> Functions that became the primary or sole connection between two module clusters.",
            "> Removing or breaking them could silently sever those modules.",
            "", "| Function | Location | Module |", "|---|---|---|",
        ]
        for d in evaluation.new_bridges:
            lines.append(f"| `{d.name}` | `{d.rel_path}` | `{d.module}` |")

    # Bridges already have their own section
    other_watched = [d for d in evaluation.watched_gains if BRIDGE_LABEL not in d.archetypes_gained]
    if other_watched:
        lines += ["", "### 👀 Watched Archetypes Gained", "",
                  "| Function | Location | Gained |", "|---|---|---|"]
        for d in other_watched[:8]:
            lines.append(f"| `{d.name}` | `{d.rel_path}` | {', '.join(d.archetypes_gained)} |")

    improved = [d for d in diff_result.diffs if d.verdict == "improved"]
    new_notable = [d for d in diff_result.diffs if d.verdict == "new" and d.archetypes_gained]
    if improved or new_notable:
        details = []
        if improved:
            details.append(f"✅ {len(improved)} improved")
        if new_notable:
            details.append(f"🆕 {len(new_notable)} new with archetypes")
        lines += ["", "<details>", f"<summary>{' · '.join(details)}</summary>", ""]

        if improved:
            lines.append("**Improved:**")
            for d in improved[:8]:
                lines.append(f"- `{d.name}` (`{d.rel_path}`): {', '.join(d.signals)}")
        if new_notable:
            if improved:
                lines.append("")
            lines.append("**New with archetypes:**")
            for d in new_notable[:8]:
                lines.append(f"- `{d.name}` (`{d.rel_path}`): {', '.join(d.archetypes_gained)}")

        lines += ["", "</details>"]

    lines += ["", "---", f"*Sociograph · run locally: `sociograph diff {before}..{after}`*"]
    return "\n".join(lines)


def write_step_outputs(output_file: Path, diff_result: DiffResult, evaluation: Evaluation) -> None:
    """Append ``passed``, ``stressed`` and ``violations`` to ``$GITHUB_OUTPUT``."""
    with open(output_file, "a", encoding="utf-8") as f:
        f.write(f"passed={'true' if evaluation.passed else 'false'}\n")
        f.write(f"stressed={diff_result.summary.stressed}\n")
        f.write(f"violations={'; '.join(evaluation.violations)}\n")
