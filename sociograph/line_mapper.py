"""Maps changed line ranges from a diff onto the functions they touch.

A function is touched by a hunk when ``[start, end]`` overlaps
``[line, end_line]`` in the same file. Diff paths are relative to the git
root, which need not be the analysis root, so every function is indexed
under several path forms and lookups fall back to suffix matching.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set

from .call_graph import CallGraph
from .models import FunctionNode, LineRange

FileIndex = Dict[str, List[FunctionNode]]


def _posix(path: str) -> str:
    return path.replace(os.sep, "/")


def build_file_index(graph: CallGraph, git_root: Path, root: Path) -> FileIndex:
    """Index functions by absolute path, root-relative and git-relative path."""
    index: FileIndex = {}
    for node in graph.nodes:
        keys = {
            node.file,
            node.rel_path,
            _posix(os.path.relpath(node.file, git_root)),
        }
        for key in keys:
            if key:
                index.setdefault(key, []).append(node)
    return index


def _ends_with_segments(path: str, suffix: str) -> bool:
    # Whole path segments only: "src/a.js" must not match "lib/xsrc/a.js"
    return path == suffix or path.endswith("/" + suffix)


def _suffix_match(diff_file: str, index: FileIndex) -> Optional[List[FunctionNode]]:
    diff_file = _posix(diff_file)
    for key, functions in index.items():
        key = _posix(key)
        if _ends_with_segments(key, diff_file) or _ends_with_segments(diff_file, key):
            return functions
    return None


def lookup_file(diff_file: str, index: FileIndex, git_root: Path, root: Path) -> Optional[List[FunctionNode]]:
    """Functions in *diff_file*, trying progressively looser path matches."""
    absolute = os.path.normpath(os.path.join(str(git_root), diff_file))
    for key in (diff_file, absolute, _posix(os.path.relpath(absolute, root))):
        if key in index:
            return index[key]
    return _suffix_match(diff_file, index)


def map_to_functions(
    diff_file: str,
    ranges: Iterable[LineRange],
    index: FileIndex,
    git_root: Path,
    root: Path,
) -> Set[str]:
    """Ids of the functions in *diff_file* overlapped by any of *ranges*."""
    candidates = lookup_file(diff_file, index, git_root, root)
    if not candidates:
        return set()

    ranges = list(ranges)
    touched: Set[str] = set()
    for fn in candidates:
        if any(r.start <= fn.end_line and r.end >= fn.line for r in ranges):
            touched.add(fn.id)
    return touched
