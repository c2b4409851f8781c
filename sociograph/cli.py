"""Typer-based CLI for Sociograph."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from . import __version__, config
from .ci import evaluate, format_comment, load_ci_config, write_step_outputs
from .classifier import classify
from .clusters import detect_clusters
from .diff_engine import run_diff
from .diff_report import diff_to_json, render_diff
from .errors import GitHubAPIError, InvalidRefRangeError, WorktreeError
from .git_analyzer import analyze_git
from .git_cache import CommitCache
from .github import upsert_comment
from .graph_builder import build_graph
from .graph_export import export_dot, export_json
from .terminal_report import render_report, report_to_dict

app = typer.Typer(
    help="🔬 Sociograph: social archetypes for the functions in a JS/TS codebase.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()
err_console = Console(stderr=True)


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        typer.echo(f"Sociograph v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    )
):
    """Sociograph: call-graph and git-history archetypes for JavaScript and TypeScript."""
    pass


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _display_path(root: Path) -> str:
    try:
        rel = os.path.relpath(root, Path.cwd())
    except ValueError:
        return str(root)
    return "." if rel == "." else rel


@app.command("analyze")
def analyze(
    path: Path = typer.Argument(Path("."), exists=True, file_okay=False, help="Directory to analyze."),
    top: Optional[int] = typer.Option(None, "--top", min=1, help="Functions shown per archetype."),
    no_git: bool = typer.Option(False, "--no-git", help="Skip git history analysis."),
    git_limit: Optional[int] = typer.Option(None, "--git-limit", min=1, help="Number of commits to scan."),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", min=1, help="Parallel parse workers."),
    no_cache: bool = typer.Option(False, "--no-cache", help="Ignore the on-disk commit cache."),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON instead of the terminal report."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log progress to stderr."),
):
    """Classify every function in PATH into social archetypes."""
    _setup_logging(verbose)
    settings = config.load_analysis_config()
    root = path.resolve()

    graph = build_graph(root, verbose=verbose, workers=workers or settings["workers"])

    git_metrics = None
    if not no_git:
        git_metrics = analyze_git(
            root,
            graph,
            limit=git_limit or settings["git_limit"],
            cache=CommitCache(enabled=not no_cache),
        )

    classifications = classify(graph, git_metrics)

    if as_json:
        typer.echo(json.dumps(report_to_dict(graph, classifications), indent=2))
        return
    render_report(graph, classifications, path=_display_path(root), top=top or settings["top"], console=console)


@app.command("diff")
def diff(
    ref_range: str = typer.Argument(..., help="Ref range such as main..HEAD or HEAD~5.."),
    path: Path = typer.Option(Path("."), "--path", "-p", exists=True, file_okay=False, help="Directory to analyze."),
    workers: Optional[int] = typer.Option(None, "--workers", "-w", min=1, help="Parallel parse workers."),
    as_json: bool = typer.Option(False, "--json", help="Emit JSON instead of the terminal report."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show every change and log progress."),
):
    """Compare function archetypes between two git refs."""
    _setup_logging(verbose)
    try:
        result = run_diff(path.resolve(), ref_range, workers=workers)
    except InvalidRefRangeError as exc:
        err_console.print(f"[red]❌ {exc}[/red]")
        raise typer.Exit(code=2)
    except WorktreeError as exc:
        err_console.print(f"[red]❌ {exc}[/red]")
        raise typer.Exit(code=1)

    if as_json:
        typer.echo(diff_to_json(result, verbose=verbose))
        return
    render_diff(result, verbose=verbose, console=console)


@app.command("clusters")
def clusters(
    path: Path = typer.Argument(Path("."), exists=True, file_okay=False, help="Directory to analyze."),
    min_size: Optional[int] = typer.Option(None, "--min-size", min=1, help="Smallest cluster to report."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log progress to stderr."),
):
    """Detect tightly-connected groups of functions."""
    _setup_logging(verbose)
    settings = config.load_analysis_config()
    graph = build_graph(path.resolve(), verbose=verbose)
    found = detect_clusters(graph, min_size=min_size or settings["cluster_min_size"])

    if not found:
        console.print("[dim]No clusters found.[/dim]")
        return

    nodes = {n.id: n for n in graph.nodes}
    table = Table(title=f"Clusters ({len(found)})")
    table.add_column("#", justify="right")
    table.add_column("Size", justify="right")
    table.add_column("Density", justify="right")
    table.add_column("Modules")
    table.add_column("Hubs")
    for i, cluster in enumerate(found, start=1):
        hubs = ", ".join(nodes[h].name for h in cluster.hubs if h in nodes)
        table.add_row(
            str(i),
            str(len(cluster.node_ids)),
            f"{cluster.density:.2f}",
            ", ".join(cluster.modules),
            hubs,
        )
    console.print(table)


@app.command("export")
def export(
    path: Path = typer.Argument(Path("."), exists=True, file_okay=False, help="Directory to analyze."),
    fmt: str = typer.Option("dot", "--format", "-f", help="Export format: dot or json."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output file path."),
    focus: str = typer.Option("", "--focus", help="Only export the neighbourhood of this function."),
    no_git: bool = typer.Option(False, "--no-git", help="Skip git history analysis."),
):
    """Export the classified call graph to Graphviz DOT or JSON."""
    fmt = fmt.lower()
    if fmt not in {"dot", "json"}:
        raise typer.BadParameter("Format must be one of: dot, json")

    _setup_logging(False)
    root = path.resolve()
    graph = build_graph(root)
    git_metrics = None if no_git else analyze_git(root, graph, cache=CommitCache())
    classifications = classify(graph, git_metrics)

    if output is None:
        output = Path.cwd() / f"{root.name}_sociograph.{fmt}"

    if fmt == "dot":
        export_dot(graph, classifications, output, focus=focus)
    else:
        export_json(graph, classifications, output, focus=focus)

    typer.echo(f"Exported graph to {output}")


def _ci_fail(message: str) -> None:
    typer.echo(f"::error::Sociograph: {message}", err=True)
    raise typer.Exit(code=1)


def _pr_number(event_path: str) -> Optional[int]:
    try:
        with open(event_path, "r", encoding="utf-8") as f:
            event = json.load(f)
    except (json.JSONDecodeError, OSError):
        return None
    number = (event.get("pull_request") or {}).get("number") or event.get("number")
    return int(number) if number else None


@app.command("ci")
def ci():
    """Run as a GitHub Action: diff the PR, comment, and gate on thresholds."""
    _setup_logging(True)

    token = os.environ.get("INPUT_TOKEN") or os.environ.get("GITHUB_TOKEN") or ""
    base_ref = os.environ.get("INPUT_BASE_REF") or ""
    head_ref = os.environ.get("INPUT_HEAD_REF") or "HEAD"
    working_dir = os.environ.get("INPUT_WORKING_DIRECTORY") or "."
    config_path = os.environ.get("INPUT_CONFIG_PATH") or config.CI_CONFIG_FILE
    fail_on_violations = os.environ.get("INPUT_FAIL_ON_VIOLATIONS") != "false"

    if not token:
        _ci_fail("INPUT_TOKEN or GITHUB_TOKEN is required")
    if not base_ref:
        _ci_fail("INPUT_BASE_REF is required")

    repository = os.environ.get("GITHUB_REPOSITORY", "")
    owner, _, repo = repository.partition("/")
    if not owner or not repo:
        _ci_fail(f'GITHUB_REPOSITORY is not set or invalid: "{repository}"')

    event_path = os.environ.get("GITHUB_EVENT_PATH")
    if not event_path:
        _ci_fail("GITHUB_EVENT_PATH is not set")
    pr_number = _pr_number(event_path)
    if not pr_number:
        _ci_fail("Could not determine PR number from event payload")

    ref_range = f"{base_ref}..{head_ref}"
    root = Path(working_dir).resolve()
    typer.echo(f"\n🔬 Sociograph: analyzing {ref_range} in {root}\n", err=True)

    try:
        result = run_diff(root, ref_range)
    except (InvalidRefRangeError, WorktreeError) as exc:
        _ci_fail(str(exc))

    ci_config = load_ci_config(Path(config_path).resolve())
    evaluation = evaluate(result, ci_config)
    body = format_comment(result, evaluation)

    try:
        upsert_comment(token, repository, pr_number, body)
    except GitHubAPIError as exc:
        _ci_fail(str(exc))

    output_file = os.environ.get("GITHUB_OUTPUT")
    if output_file:
        write_step_outputs(Path(output_file), result, evaluation)

    if fail_on_violations and not evaluation.passed:
        typer.echo("\n❌ Sociograph: threshold violations", err=True)
        for violation in evaluation.violations:
            typer.echo(f"   • {violation}", err=True)
        raise typer.Exit(code=1)

    typer.echo("\n✅ Sociograph: passed", err=True)


if __name__ == "__main__":
    app()
