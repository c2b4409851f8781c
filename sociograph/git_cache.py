"""On-disk cache of parsed commit history.

The cache file lives at ``<git root>/.sociograph/commits-cache.json`` and is
valid only for the HEAD hash, commit limit and analysis scope (the analysed
directory relative to the git root) it was written with. Only raw
commits are stored; per-function metrics are cheap to recompute.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional

from .config import CACHE_DIR_NAME
from .models import Commit

logger = logging.getLogger(__name__)

CACHE_VERSION = 2
CACHE_FILE_NAME = "commits-cache.json"


class CommitCache:
    """Best-effort reader/writer for one invocation's commit cache.

    Read and write failures are logged and treated as a cache miss.
    """

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled

    @staticmethod
    def path_for(git_root: Path) -> Path:
        return Path(git_root) / CACHE_DIR_NAME / CACHE_FILE_NAME

    def read(self, git_root: Path, limit: int, head_hash: str, scope: str = ".") -> Optional[List[Commit]]:
        if not self.enabled:
            return None
        cache_file = self.path_for(git_root)
        if not cache_file.exists():
            return None

        try:
            data = json.loads(cache_file.read_text(encoding="utf-8"))
            if (
                data.get("version") != CACHE_VERSION
                or data.get("limit") != limit
                or data.get("headHash") != head_hash
                or data.get("scope") != scope
            ):
                logger.debug("Commit cache %s is stale", cache_file)
                return None
            return [Commit.from_dict(c) for c in data["commits"]]
        except (OSError, ValueError, KeyError, TypeError) as exc:
            logger.debug("Ignoring unreadable commit cache %s: %s", cache_file, exc)
            return None

    def write(
        self,
        git_root: Path,
        limit: int,
        head_hash: str,
        commits: List[Commit],
        scope: str = ".",
    ) -> None:
        if not self.enabled:
            return
        cache_file = self.path_for(git_root)
        payload = {
            "version": CACHE_VERSION,
            "limit": limit,
            "headHash": head_hash,
            "scope": scope,
            "commits": [c.to_dict() for c in commits],
        }
        try:
            cache_file.parent.mkdir(parents=True, exist_ok=True)
            cache_file.write_text(json.dumps(payload), encoding="utf-8")
        except OSError as exc:
            logger.debug("Could not write commit cache %s: %s", cache_file, exc)
