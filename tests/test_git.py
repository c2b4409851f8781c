"""Tests for git log parsing, line mapping, metrics and the commit cache."""

import dataclasses
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from sociograph.classifier import classify
from sociograph.git_analyzer import (
    analyze_git,
    co_commit_correlation,
    compute_git_metrics,
    strongest_partner,
)
from sociograph.git_cache import CommitCache
from sociograph.git_log import fetch_commits, get_head_hash, is_fix_message, open_repo, parse_git_log
from sociograph.line_mapper import build_file_index, map_to_functions
from sociograph.models import Commit, FileChange, LineRange

from conftest import make_node

LOG_OUTPUT = """COMMIT:abc123|alice@example.com|2024-01-02T10:00:00+00:00|fix: crash in parser

diff --git a/src/a.js b/src/a.js
index 1111111..2222222 100644
--- a/src/a.js
+++ b/src/a.js
@@ -3,0 +4,2 @@ function parse
+  const x = 1
+  const y = 2
@@ -10 +12 @@ function other
-  return 1
+  return 2
COMMIT:def456|bob@example.com|2024-01-01T09:00:00+00:00|Add feature | with pipe

diff --git a/b.js b/b.js
index 3333333..4444444 100644
--- a/b.js
+++ b/b.js
@@ -5,2 +4,0 @@
-  gone()
-  gone()
"""


class TestParseGitLog:
    def test_commits_and_headers(self):
        commits = parse_git_log(LOG_OUTPUT)
        assert [c.hash for c in commits] == ["abc123", "def456"]

        first, second = commits
        assert first.author == "alice@example.com"
        assert first.date == datetime(2024, 1, 2, 10, tzinfo=timezone.utc)
        assert first.is_fix
        assert second.message == "Add feature | with pipe"
        assert not second.is_fix

    def test_hunk_ranges(self):
        first, second = parse_git_log(LOG_OUTPUT)
        assert first.changes == [FileChange("src/a.js", [LineRange(4, 5), LineRange(12, 12)])]
        # Pure deletion keeps its position as a one-line range
        assert second.changes == [FileChange("b.js", [LineRange(4, 4)])]

    def test_empty_output(self):
        assert parse_git_log("") == []

    @pytest.mark.parametrize(
        "message,expected",
        [
            ("Fix login redirect", True),
            ("fixes #12", True),
            ("Revert previous change", True),
            ("hotfix for prod", True),
            ("Add prefix option", False),
            ("Refactor debugger panel", False),
        ],
    )
    def test_fix_detection(self, message: str, expected: bool):
        assert is_fix_message(message) is expected


ROOT = Path("/project")


def _commit(n: int, files: dict, fix: bool = False, author: str = "dev@example.com") -> Commit:
    return Commit(
        hash=f"c{n}",
        author=author,
        date=datetime(2024, 1, 1, tzinfo=timezone.utc) + timedelta(days=n),
        message="fix bug" if fix else "change",
        is_fix=fix,
        changes=[FileChange(f, [LineRange(s, e) for s, e in ranges]) for f, ranges in files.items()],
    )


@pytest.fixture
def two_module_graph(graph_factory):
    return graph_factory([
        make_node("a.js::x", line=1, lines=5),
        make_node("a.js::y", line=10, lines=5),
        make_node("b.js::z", line=1, lines=5),
    ])


class TestLineMapper:
    def test_overlap_rule(self, two_module_graph):
        index = build_file_index(two_module_graph, ROOT, ROOT)

        assert map_to_functions("a.js", [LineRange(5, 10)], index, ROOT, ROOT) == {"a.js::x", "a.js::y"}
        assert map_to_functions("a.js", [LineRange(6, 9)], index, ROOT, ROOT) == set()
        assert map_to_functions("a.js", [LineRange(14, 20)], index, ROOT, ROOT) == {"a.js::y"}

    def test_git_root_above_analysis_root(self, graph_factory):
        node = dataclasses.replace(make_node("a.js::x"), file="/repo/web/a.js")
        graph = graph_factory([node])
        index = build_file_index(graph, Path("/repo"), Path("/repo/web"))

        touched = map_to_functions("web/a.js", [LineRange(1, 1)], index, Path("/repo"), Path("/repo/web"))
        assert touched == {"a.js::x"}

    def test_suffix_match_respects_path_segments(self, graph_factory):
        git_root, root = Path("/elsewhere"), Path("/elsewhere/lib")
        node = dataclasses.replace(make_node("xsrc/a.js::x"), file="/elsewhere/lib/xsrc/a.js")
        index = build_file_index(graph_factory([node]), git_root, root)

        def touched(diff_file):
            return map_to_functions(diff_file, [LineRange(1, 1)], index, git_root, root)

        assert touched("src/a.js") == set()
        assert touched("other/lib/xsrc/a.js") == {"xsrc/a.js::x"}

    def test_unknown_file(self, two_module_graph):
        index = build_file_index(two_module_graph, ROOT, ROOT)
        assert map_to_functions("zzz.js", [LineRange(1, 100)], index, ROOT, ROOT) == set()


class TestGitMetrics:
    def test_counts_authors_and_dates(self, two_module_graph):
        commits = [
            _commit(1, {"a.js": [(2, 2)]}, fix=True, author="a@x"),
            _commit(2, {"a.js": [(3, 3)]}, author="b@x"),
        ]
        metrics = compute_git_metrics(two_module_graph, commits, ROOT, ROOT)

        x = metrics["a.js::x"]
        assert x.commits == 2
        assert x.fix_commits == 1
        assert x.authors == {"a@x", "b@x"}
        assert x.first_seen < x.last_seen
        assert metrics["a.js::y"].commits == 0

    def test_four_of_five_shared_commits_is_codependent(self, two_module_graph):
        shared = [_commit(i, {"a.js": [(1, 1)], "b.js": [(1, 1)]}) for i in range(4)]
        commits = shared + [_commit(4, {"a.js": [(2, 2)]}), _commit(5, {"b.js": [(2, 2)]})]
        metrics = compute_git_metrics(two_module_graph, commits, ROOT, ROOT)

        x, z = metrics["a.js::x"], metrics["b.js::z"]
        assert x.co_commits == {"b.js::z": 4}
        assert co_commit_correlation(x, z, "b.js::z") == pytest.approx(0.8)

        partner = strongest_partner("a.js::x", metrics)
        assert partner.partner_id == "b.js::z"
        assert partner.co_count == 4

        labels = [c.label for c in classify(two_module_graph, metrics)["a.js::x"]]
        assert "The Codependent" in labels

    def test_bulk_commits_skip_pairs(self, graph_factory):
        nodes = [make_node(f"big.js::f{i}", line=i * 10 + 1, lines=5) for i in range(60)]
        graph = graph_factory(nodes)
        metrics = compute_git_metrics(graph, [_commit(1, {"big.js": [(1, 1000)]})], ROOT, ROOT)

        assert all(m.commits == 1 for m in metrics.values())
        assert all(not m.co_commits for m in metrics.values())

    def test_weak_partner_ignored(self, two_module_graph):
        commits = [_commit(i, {"a.js": [(1, 1)], "b.js": [(1, 1)]}) for i in range(2)]
        metrics = compute_git_metrics(two_module_graph, commits, ROOT, ROOT)
        assert strongest_partner("a.js::x", metrics) is None


class TestCommitCache:
    def test_round_trip(self, temp_dir: Path):
        commits = parse_git_log(LOG_OUTPUT)
        cache = CommitCache()
        cache.write(temp_dir, 500, "head1", commits)

        assert CommitCache.path_for(temp_dir).exists()
        assert cache.read(temp_dir, 500, "head1") == commits

    def test_stale_entries_are_misses(self, temp_dir: Path):
        cache = CommitCache()
        cache.write(temp_dir, 500, "head1", parse_git_log(LOG_OUTPUT))

        assert cache.read(temp_dir, 500, "head2") is None
        assert cache.read(temp_dir, 100, "head1") is None

    def test_disabled_cache(self, temp_dir: Path):
        cache = CommitCache(enabled=False)
        cache.write(temp_dir, 500, "head1", [])
        assert not CommitCache.path_for(temp_dir).exists()
        assert cache.read(temp_dir, 500, "head1") is None

    def test_scope_is_part_of_the_key(self, temp_dir: Path):
        commits = parse_git_log(LOG_OUTPUT)
        cache = CommitCache()
        cache.write(temp_dir, 500, "head1", commits, scope="web")

        assert cache.read(temp_dir, 500, "head1", scope="api") is None
        assert cache.read(temp_dir, 500, "head1") is None
        assert cache.read(temp_dir, 500, "head1", scope="web") == commits

    def test_corrupt_cache_is_a_miss(self, temp_dir: Path):
        path = CommitCache.path_for(temp_dir)
        path.parent.mkdir(parents=True)
        path.write_text("{not json")
        assert CommitCache().read(temp_dir, 500, "head1") is None


ALPHA_BETA = "function alpha(x) {{\n  return x + {n}\n}}\n\nfunction beta(y) {{\n  return y * 2\n}}\n"


def test_analyze_git_on_real_repository(git_repo, temp_dir: Path):
    pytest.importorskip("tree_sitter_javascript")
    from sociograph.graph_builder import build_graph

    git_repo({"a.js": ALPHA_BETA.format(n=0)}, "initial import")
    for n in range(1, 6):
        git_repo({"a.js": ALPHA_BETA.format(n=n)}, f"fix crash number {n}")

    graph = build_graph(temp_dir)
    metrics = analyze_git(temp_dir, graph, limit=50, cache=CommitCache())

    assert metrics["a.js::alpha"].commits == 5
    assert metrics["a.js::alpha"].fix_commits == 5
    assert metrics["a.js::beta"].commits == 0
    assert CommitCache.path_for(temp_dir).exists()

    labels = [c.label for c in classify(graph, metrics)["a.js::alpha"]]
    assert "The Crisis Point" in labels

    # Second run is served from the cache and agrees
    again = analyze_git(temp_dir, graph, limit=50, cache=CommitCache())
    assert again["a.js::alpha"].commits == 5


def test_analyze_git_outside_repository(temp_dir: Path, graph_factory):
    graph = graph_factory(["a.js::x"])
    assert analyze_git(temp_dir, graph) is None


def test_open_repo_outside_repository(temp_dir: Path):
    assert open_repo(temp_dir) is None
    assert fetch_commits(temp_dir) is None


def test_head_hash_of_empty_repository(git_repo, temp_dir: Path):
    repo = open_repo(temp_dir)
    assert repo is not None
    assert get_head_hash(repo) is None

    sha = git_repo({"a.js": "function a() {}\n"}, "initial")
    assert get_head_hash(repo) == sha


def test_history_is_scoped_to_the_analysed_directory(git_repo, temp_dir: Path):
    git_repo({"web/a.js": ALPHA_BETA.format(n=0), "api/b.js": ALPHA_BETA.format(n=0)}, "initial")
    git_repo({"web/a.js": ALPHA_BETA.format(n=1)}, "tweak web")
    git_repo({"web/a.js": ALPHA_BETA.format(n=2)}, "tweak web again")

    cache = CommitCache()
    web = fetch_commits(temp_dir / "web", cache=cache)
    api = fetch_commits(temp_dir / "api", cache=cache)

    assert [c.message for c in web.commits] == ["tweak web again", "tweak web"]
    assert api.commits == []
    assert web.git_root == api.git_root
