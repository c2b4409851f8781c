"""Graph Builder: parse a project and assemble one resolved CallGraph."""

from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, List, Optional

from .call_graph import CallGraph
from .discovery import discover_files
from .models import ParsedFile
from .parser import JavaScriptParser
from .resolver import resolve_calls

logger = logging.getLogger(__name__)


def parse_files(
    files: Iterable[Path],
    parser: JavaScriptParser,
    workers: Optional[int] = None,
) -> List[ParsedFile]:
    """Parse *files*, optionally on a thread pool.

    Results always come back in the order of *files*, whatever order the
    workers finish in.
    """
    files = list(files)
    if workers is None or workers <= 1 or len(files) <= 1:
        return [parser.parse_file(f) for f in files]

    with ThreadPoolExecutor(max_workers=workers) as pool:
        return list(pool.map(parser.parse_file, files))


def assemble_graph(parsed_files: List[ParsedFile], root: Path) -> CallGraph:
    """Build a CallGraph from already-parsed files.

    Every function is inserted before any call is resolved, so resolution
    sees the full project regardless of file order.
    """
    root_str = os.path.abspath(root)
    parsed_files = sorted(parsed_files, key=lambda p: str(p.path))

    graph = CallGraph()
    for parsed in parsed_files:
        for fn in parsed.functions:
            graph.add_function(fn)
    logger.info("Parsed %d functions", len(graph))

    counts = resolve_calls(graph, parsed_files, root_str)
    logger.info(
        "Resolved %d calls, %d external/unresolved",
        counts["resolved"], counts["unresolved"],
    )
    return graph.freeze()


def build_graph(
    root: Path,
    verbose: bool = False,
    workers: Optional[int] = None,
    parser: Optional[JavaScriptParser] = None,
) -> CallGraph:
    """Discover, parse and resolve every JS/TS file below *root*."""
    root = Path(os.path.abspath(root))
    files = discover_files(root)
    if verbose:
        logger.info("Discovered %d files", len(files))

    parser = parser or JavaScriptParser(root)
    parsed = parse_files(files, parser, workers)
    return assemble_graph(parsed, root)
