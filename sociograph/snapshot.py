"""Per-ref snapshots for diff mode.

A ref is checked out with ``git worktree add --detach`` into a temporary
directory, so the user's working tree is never touched. The checkout is
analysed, classified, and flattened into :class:`NodeSnapshot` objects.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Optional

from git import Repo
from git.exc import GitCommandError

from .call_graph import CallGraph
from .classifier import Classifications, classify
from .errors import WorktreeError
from .git_log import analysis_scope, git_root_of, open_repo
from .graph_builder import build_graph
from .models import FunctionNode, NodeSnapshot

logger = logging.getLogger(__name__)


@contextmanager
def worktree(repo: Repo, ref: str) -> Iterator[Path]:
    """Check *ref* out into a temporary detached worktree.

    Creation failures raise :class:`WorktreeError`; removal is best-effort.
    """
    tmp_dir = Path(tempfile.mkdtemp(prefix="sociograph-"))
    logger.info("Checking out %s -> %s", ref, tmp_dir)
    try:
        repo.git.worktree("add", "--detach", str(tmp_dir), ref)
    except GitCommandError as exc:
        shutil.rmtree(tmp_dir, ignore_errors=True)
        detail = str(exc.stderr or exc).strip()
        raise WorktreeError(f"Could not check out {ref}: {detail}") from exc

    try:
        yield tmp_dir
    finally:
        _remove_worktree(repo, tmp_dir)


def _remove_worktree(repo: Repo, tmp_dir: Path) -> None:
    try:
        repo.git.worktree("remove", "--force", str(tmp_dir))
    except GitCommandError as exc:
        logger.warning("git worktree remove failed for %s: %s", tmp_dir, exc)
        shutil.rmtree(tmp_dir, ignore_errors=True)
        try:
            repo.git.worktree("prune")
        except GitCommandError as prune_exc:
            logger.debug("git worktree prune failed: %s", prune_exc)
    logger.debug("Cleaned up worktree %s", tmp_dir)


def to_snapshot(node: FunctionNode, graph: CallGraph, classifications: Classifications) -> NodeSnapshot:
    return NodeSnapshot(
        id=node.id,
        name=node.name,
        rel_path=node.rel_path,
        line=node.line,
        module=node.module,
        complexity=node.complexity,
        lines_of_code=node.lines_of_code,
        params=node.params,
        fan_in=graph.fan_in(node.id),
        fan_out=graph.fan_out(node.id),
        cross_module_fan_out=graph.cross_module_fan_out(node.id),
        archetypes=[c.label for c in classifications.get(node.id, [])],
    )


def snapshot_graph(graph: CallGraph) -> Dict[str, NodeSnapshot]:
    """Classify *graph* and key its snapshots by ``relPath::name``."""
    classifications = classify(graph)
    snapshots: Dict[str, NodeSnapshot] = {}
    for node in graph.nodes:
        snap = to_snapshot(node, graph, classifications)
        snapshots[snap.stable_key] = snap
    return snapshots


def snapshot_ref(root: Path, ref: str, workers: Optional[int] = None) -> Dict[str, NodeSnapshot]:
    """Snapshot every function under *root* as of *ref*.

    *root* may be a sub-directory of its repository; the same sub-path is
    analysed inside the checkout.
    """
    root = Path(root).resolve()
    repo = open_repo(root)
    if repo is None:
        raise WorktreeError(f"{root} is not inside a git repository")

    with repo:
        sub_path = analysis_scope(git_root_of(repo), root)
        with worktree(repo, ref) as checkout:
            target = checkout if sub_path == "." else checkout / sub_path
            graph = build_graph(target, workers=workers)
            logger.info("%s: %d functions", ref, len(graph))
            return snapshot_graph(graph)
