"""Source-file discovery for an analysis root."""

from __future__ import annotations

import fnmatch
import logging
import os
from pathlib import Path
from typing import List

from .config import IGNORE_FILE_PATTERNS, SKIP_DIRS, SUPPORTED_EXTENSIONS

logger = logging.getLogger(__name__)


def is_ignored(file_name: str) -> bool:
    return any(fnmatch.fnmatch(file_name, pattern) for pattern in IGNORE_FILE_PATTERNS)


def discover_files(root: Path) -> List[Path]:
    """Return every analysable JS/TS file below *root*, sorted.

    Vendored and build directories are pruned during the walk; test,
    spec and declaration files are skipped.
    """
    root = Path(os.path.abspath(root))
    found: List[Path] = []

    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in SKIP_DIRS)
        for name in filenames:
            if os.path.splitext(name)[1] not in SUPPORTED_EXTENSIONS or is_ignored(name):
                continue
            found.append(Path(dirpath) / name)

    found.sort()
    logger.debug("Discovered %d files under %s", len(found), root)
    return found
