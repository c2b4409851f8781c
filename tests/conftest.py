"""Pytest configuration and fixtures for Sociograph tests."""

import shutil
import tempfile
from pathlib import Path
from typing import Callable, Generator, Iterable, Optional, Tuple

import pytest
from git import Repo

from sociograph.call_graph import CallGraph
from sociograph.models import CallEdge, FunctionNode, NodeSnapshot


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def sample_project_path() -> Path:
    """Get path to sample JavaScript project."""
    return Path(__file__).parent / "fixtures" / "sample_project"


def make_node(
    node_id: str,
    module: Optional[str] = None,
    complexity: int = 1,
    lines: int = 5,
    params: int = 0,
    line: int = 1,
) -> FunctionNode:
    """Build a FunctionNode from an id of the form ``rel/path.js::name``."""
    rel_path, _, name = node_id.partition("::")
    return FunctionNode(
        id=node_id,
        name=name,
        file=f"/project/{rel_path}",
        rel_path=rel_path,
        module=module or rel_path.split("/")[0].split(".")[0],
        line=line,
        end_line=line + lines - 1,
        params=params,
        complexity=complexity,
        lines_of_code=lines,
        kind="function",
    )


EdgeSpec = Tuple[str, Optional[str]]


@pytest.fixture
def graph_factory() -> Callable[..., CallGraph]:
    """Build a frozen CallGraph without touching tree-sitter.

    ``nodes`` are FunctionNodes or ids; ``edges`` are ``(from_id, to_id)``
    pairs where a None target is an unresolved external call.
    """

    def build(nodes: Iterable, edges: Iterable[EdgeSpec] = (), freeze: bool = True) -> CallGraph:
        graph = CallGraph()
        for node in nodes:
            graph.add_function(node if isinstance(node, FunctionNode) else make_node(node))
        for i, (from_id, to_id) in enumerate(edges):
            caller = graph.get_node(from_id)
            target = graph.get_node(to_id)
            graph.add_edge(CallEdge(
                from_id=from_id,
                to_id=to_id,
                callee_name=target.name if target else "external",
                resolved=to_id is not None,
                cross_module=bool(caller and target and caller.module != target.module),
                file=caller.file if caller else "",
                line=i + 1,
            ))
        return graph.freeze() if freeze else graph

    return build


@pytest.fixture
def git_repo(temp_dir: Path) -> Callable[..., str]:
    """Initialise a repository in ``temp_dir`` and return a commit helper."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")

    repo = Repo.init(str(temp_dir))
    with repo.config_writer() as writer:
        writer.set_value("user", "email", "dev@example.com")
        writer.set_value("user", "name", "Dev")
        writer.set_value("commit", "gpgsign", "false")

    def commit(files: dict, message: str) -> str:
        for rel, content in files.items():
            target = temp_dir / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)
        repo.git.add("-A")
        repo.git.commit("-q", "-m", message)
        return repo.head.commit.hexsha

    return commit


def make_snapshot(key: str, complexity: int = 1, fan_in: int = 0, fan_out: int = 0,
                  cross: int = 0, lines: int = 5, archetypes=()) -> NodeSnapshot:
    """NodeSnapshot keyed ``rel/path.js::name`` with the module taken from the file stem."""
    rel_path, _, name = key.partition("::")
    return NodeSnapshot(
        id=key, name=name, rel_path=rel_path, line=1, module=rel_path.split(".")[0],
        complexity=complexity, lines_of_code=lines, params=0,
        fan_in=fan_in, fan_out=fan_out, cross_module_fan_out=cross,
        archetypes=list(archetypes),
    )
