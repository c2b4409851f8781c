"""Exception types raised by the analysis pipeline."""

from __future__ import annotations


class SociographError(Exception):
    """Base class for all Sociograph failures."""


class GraphFrozenError(SociographError):
    """Raised when a frozen CallGraph receives a new node or edge."""


class InvalidRefRangeError(SociographError, ValueError):
    """Raised for a diff range that is not of the form ``before..after``."""

    def __init__(self, ref_range: str) -> None:
        super().__init__(f'Invalid ref range "{ref_range}": expected "before..after"')
        self.ref_range = ref_range


class WorktreeError(SociographError):
    """Raised when a git ref cannot be checked out into a temporary worktree."""


class GitHubAPIError(SociographError):
    """Raised when the GitHub REST API answers with a non-success status."""

    def __init__(self, method: str, path: str, status: int, body: str = "") -> None:
        super().__init__(f"GitHub API {method} {path} -> {status}: {body}")
        self.status = status
