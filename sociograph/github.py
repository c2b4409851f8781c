"""Minimal GitHub REST client for posting the sociograph PR comment."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

from .ci import SENTINEL
from .errors import GitHubAPIError

logger = logging.getLogger(__name__)

API_BASE = "https://api.github.com"
PAGE_SIZE = 100


class GitHubClient:
    def __init__(self, token: str, owner: str, repo: str, session: Optional[requests.Session] = None) -> None:
        self.owner = owner
        self.repo = repo
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        })

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        response = self.session.request(method, f"{API_BASE}{path}", timeout=30, **kwargs)
        if not response.ok:
            raise GitHubAPIError(method, path, response.status_code, response.text)
        if response.status_code == 204:
            return None
        return response.json()

    def find_comment(self, pr_number: int) -> Optional[Dict[str, Any]]:
        """First comment on the PR carrying :data:`SENTINEL`, if any."""
        page = 1
        while True:
            batch = self._request(
                "GET",
                f"/repos/{self.owner}/{self.repo}/issues/{pr_number}/comments",
                params={"per_page": PAGE_SIZE, "page": page},
            )
            if not batch:
                return None
            for comment in batch:
                if SENTINEL in (comment.get("body") or ""):
                    return comment
            if len(batch) < PAGE_SIZE:
                return None
            page += 1

    def upsert_comment(self, pr_number: int, body: str) -> Dict[str, Any]:
        """Update the existing sociograph comment, or post a new one."""
        existing = self.find_comment(pr_number)
        if existing is not None:
            logger.info("Updating existing PR comment #%s", existing["id"])
            return self._request(
                "PATCH",
                f"/repos/{self.owner}/{self.repo}/issues/comments/{existing['id']}",
                json={"body": body},
            )
        logger.info("Posting new PR comment on #%s", pr_number)
        return self._request(
            "POST",
            f"/repos/{self.owner}/{self.repo}/issues/{pr_number}/comments",
            json={"body": body},
        )


def upsert_comment(token: str, repository: str, pr_number: int, body: str) -> Dict[str, Any]:
    """Convenience wrapper taking ``owner/repo``."""
    owner, _, repo = repository.partition("/")
    if not owner or not repo:
        raise ValueError(f'Invalid repository "{repository}": expected "owner/repo"')
    return GitHubClient(token, owner, repo).upsert_comment(pr_number, body)
