"""Tests for call resolution and end-to-end graph construction."""

from pathlib import Path

import pytest

pytest.importorskip("tree_sitter_javascript")

from sociograph.discovery import discover_files
from sociograph.graph_builder import assemble_graph, build_graph, parse_files
from sociograph.parser import JavaScriptParser
from sociograph.stats import compute_stats


def _write(root: Path, files: dict) -> None:
    for rel, content in files.items():
        target = root / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)


def _targets(graph, from_id):
    return [e.to_id for e in graph.callees(from_id)]


@pytest.fixture
def fixture_graph(sample_project_path: Path):
    return build_graph(sample_project_path)


class TestFixtureGraph:
    def test_imported_call_resolves_across_modules(self, fixture_graph):
        edges = fixture_graph.callees("api/handlers.js::processRequest")
        to_users = [e for e in edges if e.to_id == "db/users.js::getUserById"]
        assert len(to_users) == 1
        assert to_users[0].cross_module

    def test_import_beats_same_name_elsewhere(self, fixture_graph):
        # utils.js and utils/format.js both define formatDate
        assert "utils/format.js::formatDate" in _targets(fixture_graph, "services/email.js::renderTemplate")
        assert "utils.js::formatDate" in _targets(fixture_graph, "sample.js::processRequest")

    def test_same_file_match(self, fixture_graph):
        assert "sample.js::getUserById" in _targets(fixture_graph, "sample.js::processRequest")
        assert "sample.js::formatUser" in _targets(fixture_graph, "sample.js::getUser")

    def test_external_calls_stay_unresolved(self, fixture_graph):
        edges = fixture_graph.callees("api/handlers.js::listUsersHandler")
        names = {e.callee_name: e for e in edges}
        assert not names["map"].resolved
        assert not names["json"].resolved
        assert names["map"].to_id is None

    def test_fan_in_matches_callers(self, fixture_graph):
        assert fixture_graph.fan_in("db/users.js::getUserById") == 3
        assert fixture_graph.fan_in("utils/logger.js::logEvent") == 9
        assert fixture_graph.fan_in("utils/logger.js::exportEventsToCSV") == 0

    def test_summary_counts(self, fixture_graph):
        summary = fixture_graph.summary()
        assert summary["functions"] == len(fixture_graph)
        assert summary["calls"] == summary["resolved"] + summary["external"]
        assert summary["cross_module"] > 0


def test_deny_list_blocks_global_fallback_only(temp_dir: Path):
    _write(temp_dir, {
        "a.js": "function map(x) { return x }\nfunction transformUser(u) { return u }\n",
        "b.js": "function run(list) {\n  list.map(f)\n  transformUser(list)\n}\n",
    })
    graph = build_graph(temp_dir)

    edges = {e.callee_name: e for e in graph.callees("b.js::run")}
    assert not edges["map"].resolved
    assert edges["transformUser"].to_id == "a.js::transformUser"


def test_same_file_beats_global_for_denied_names(temp_dir: Path):
    _write(temp_dir, {
        "a.js": "function get(k) { return k }\nfunction read(k) { return get(k) }\n",
    })
    graph = build_graph(temp_dir)
    assert _targets(graph, "a.js::read") == ["a.js::get"]


def test_namespace_import_resolves_member(temp_dir: Path):
    _write(temp_dir, {
        "lib/math.js": "export function square(x) { return x * x }\n",
        "app/main.js": "import * as math from '../lib/math'\nfunction run() { return math.square(2) }\n",
    })
    graph = build_graph(temp_dir)
    edge = graph.callees("app/main.js::run")[0]
    assert edge.to_id == "lib/math.js::square"
    assert edge.cross_module


def test_aliased_import(temp_dir: Path):
    _write(temp_dir, {
        "lib/str.js": "export function slugify(s) { return s }\n",
        "app/main.js": "import { slugify as slug } from '../lib/str'\nfunction run() { return slug('x') }\n",
    })
    graph = build_graph(temp_dir)
    assert _targets(graph, "app/main.js::run") == ["lib/str.js::slugify"]


def test_explicit_default_export_wins(temp_dir: Path):
    _write(temp_dir, {
        "lib.js": "export default function main() { return helper() }\nfunction helper() {}\n",
        "app.js": "import run from './lib'\nfunction go() { return run() }\n",
    })
    graph = build_graph(temp_dir)
    assert _targets(graph, "app.js::go") == ["lib.js::main"]


def test_default_export_falls_back_to_last_function(temp_dir: Path):
    _write(temp_dir, {
        "lib.js": "function first() {}\nfunction second() {}\n",
        "app.js": "import thing from './lib'\nfunction go() { return thing() }\n",
    })
    graph = build_graph(temp_dir)
    assert _targets(graph, "app.js::go") == ["lib.js::second"]


def test_parallel_build_matches_serial(sample_project_path: Path):
    def signature(graph):
        return [(e.from_id, e.to_id, e.callee_name, e.line) for e in graph.edges]

    first = build_graph(sample_project_path)
    second = build_graph(sample_project_path, workers=4)
    assert signature(first) == signature(second)
    assert [n.id for n in first.nodes] == [n.id for n in second.nodes]


def test_graph_ignores_file_order(sample_project_path: Path):
    parser = JavaScriptParser(sample_project_path)
    parsed = parse_files(discover_files(sample_project_path), parser)

    forward = assemble_graph(parsed, sample_project_path)
    backward = assemble_graph(list(reversed(parsed)), sample_project_path)

    def edges(graph):
        return sorted((e.from_id, e.to_id or "", e.callee_name, e.line) for e in graph.edges)

    assert [n.id for n in forward.nodes] == [n.id for n in backward.nodes]
    assert edges(forward) == edges(backward)
    assert compute_stats(forward) == compute_stats(backward)


def test_discovery_skips_tests_and_vendor(temp_dir: Path):
    _write(temp_dir, {
        "src/app.ts": "",
        "src/app.test.ts": "",
        "src/types.d.ts": "",
        "node_modules/pkg/index.js": "",
        "dist/bundle.js": "",
        "README.md": "",
    })
    files = discover_files(temp_dir)
    assert [f.relative_to(temp_dir).as_posix() for f in files] == ["src/app.ts"]
