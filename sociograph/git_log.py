"""Git history reader.

Fetches commit history together with changed line ranges in a single
``git log`` call and parses it into :class:`~sociograph.models.Commit`
objects.
"""

from __future__ import annotations

import logging
import os
import re
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from git import Repo
from git.exc import GitCommandError, InvalidGitRepositoryError, NoSuchPathError

from .git_cache import CommitCache
from .models import Commit, FileChange, GitHistory, LineRange

logger = logging.getLogger(__name__)

FIX_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\bfix(es|ed|ing)?\b",
        r"\bbug\b",
        r"\bhotfix\b",
        r"\bpatch\b",
        r"\brevert\b",
        r"\bregression\b",
        r"\bcrash\b",
        r"\bbroken?\b",
    )
]

JS_PATHSPECS = ["*.js", "*.ts", "*.jsx", "*.tsx", "*.mjs", "*.cjs"]

COMMIT_PREFIX = "COMMIT:"
_DIFF_HEADER_RE = re.compile(r"diff --git a/.+ b/(.+)")
_HUNK_RE = re.compile(r"@@ -\d+(?:,\d+)? \+(\d+)(?:,(\d+))? @@")


def open_repo(directory: Path) -> Optional[Repo]:
    """Repository containing *directory*, or None outside a work tree."""
    try:
        repo = Repo(str(Path(directory).resolve()), search_parent_directories=True)
    except (InvalidGitRepositoryError, NoSuchPathError):
        return None
    if repo.working_tree_dir is None:
        # Bare repository
        repo.close()
        return None
    return repo


def git_root_of(repo: Repo) -> Path:
    return Path(repo.working_tree_dir)


def get_head_hash(repo: Repo) -> Optional[str]:
    try:
        return repo.head.commit.hexsha
    except ValueError:
        # No commits yet
        return None


def analysis_scope(git_root: Path, root: Path) -> str:
    """Path of *root* relative to the repository top, ``.`` for the top itself."""
    return os.path.relpath(Path(root).resolve(), git_root.resolve()).replace(os.sep, "/")


def scoped_pathspecs(scope: str) -> List[str]:
    """Source pathspecs limited to *scope*."""
    if scope == ".":
        return list(JS_PATHSPECS)
    return [f"{scope}/{spec}" for spec in JS_PATHSPECS]


def is_fix_message(message: str) -> bool:
    return any(p.search(message) for p in FIX_PATTERNS)


def parse_git_log(output: str) -> List[Commit]:
    """Parse ``git log --unified=0`` output produced with our ``COMMIT:`` format."""
    commits: List[Commit] = []
    current: Optional[Commit] = None
    current_file: Optional[str] = None

    for line in output.split("\n"):
        if line.startswith(COMMIT_PREFIX):
            if current is not None:
                commits.append(current)
            current = _parse_header(line[len(COMMIT_PREFIX):])
            current_file = None
            continue

        if current is None:
            continue

        if line.startswith("diff --git "):
            match = _DIFF_HEADER_RE.match(line)
            current_file = match.group(1) if match else None
            continue

        if line.startswith("@@ ") and current_file:
            match = _HUNK_RE.match(line)
            if not match:
                continue
            start = int(match.group(1))
            count = int(match.group(2)) if match.group(2) is not None else 1
            # A pure deletion has no new lines; keep its position
            end = start if count == 0 else start + count - 1

            entry = next((c for c in current.changes if c.file == current_file), None)
            if entry is None:
                entry = FileChange(file=current_file)
                current.changes.append(entry)
            entry.ranges.append(LineRange(start, end))

    if current is not None:
        commits.append(current)
    return commits


def _parse_header(rest: str) -> Commit:
    # hash|author|date|subject; the subject may itself contain pipes
    commit_hash, author, date, message = (rest.split("|", 3) + ["", "", ""])[:4]
    return Commit(
        hash=commit_hash,
        author=author,
        date=datetime.fromisoformat(date.strip()),
        message=message,
        is_fix=is_fix_message(message),
    )


def fetch_commits(
    root: Path,
    limit: int = 500,
    cache: Optional[CommitCache] = None,
) -> Optional[GitHistory]:
    """Commit history of the repository containing *root*.

    Returns None when *root* is not inside a git repository or the history
    call fails.
    """
    repo = open_repo(root)
    if repo is None:
        logger.debug("%s is not inside a git repository", root)
        return None

    with repo:
        git_root = git_root_of(repo)
        scope = analysis_scope(git_root, root)

        head = get_head_hash(repo) if cache is not None else None
        if cache is not None and head is not None:
            cached = cache.read(git_root, limit, head, scope)
            if cached is not None:
                logger.info("Using %d cached commits", len(cached))
                return GitHistory(commits=cached, git_root=git_root)

        logger.info("Reading git history (last %d commits)", limit)
        try:
            output = repo.git.log(
                "--format=COMMIT:%H|%ae|%aI|%s",
                "--unified=0",
                "--diff-filter=M",
                "--no-color",
                f"--max-count={limit}",
                "--",
                *scoped_pathspecs(scope),
            )
        except GitCommandError as exc:
            logger.warning("git log failed in %s: %s", root, exc)
            return None

        try:
            commits = parse_git_log(output)
        except ValueError as exc:
            logger.warning("Could not parse git log output: %s", exc)
            return None
        logger.info("Parsed %d commits", len(commits))

        if cache is not None and head is not None:
            cache.write(git_root, limit, head, commits, scope)
        return GitHistory(commits=commits, git_root=git_root)
