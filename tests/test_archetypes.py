"""Tests for archetype detection and classification."""

import pytest

from sociograph.archetypes import ALL_ARCHETYPES, ARCHETYPES_BY_LABEL
from sociograph.classifier import archetype_counts, classify, get_by_archetype
from sociograph.models import GitMetrics, PartnerDetail

from conftest import make_node


def _labels(classifications, node_id):
    return [c.label for c in classifications[node_id]]


@pytest.fixture
def hub_graph(graph_factory):
    """A complex, long function called from six other modules."""
    callers = [f"m{i}.js::caller{i}" for i in range(6)]
    hub = make_node("core.js::hub", complexity=20, lines=120)
    return graph_factory([hub, *callers], [(c, "core.js::hub") for c in callers])


def test_every_archetype_has_unique_label():
    assert len(ARCHETYPES_BY_LABEL) == len(ALL_ARCHETYPES) == 10


def test_boss_and_workhorse_can_coexist(hub_graph):
    result = classify(hub_graph)
    labels = _labels(result, "core.js::hub")

    assert "The Boss" in labels
    assert "The Workhorse" in labels
    confidences = [c.confidence for c in result["core.js::hub"]]
    assert confidences == sorted(confidences, reverse=True)


def test_boss_reason_mentions_dependents(hub_graph):
    boss = next(c for c in classify(hub_graph)["core.js::hub"] if c.label == "The Boss")
    assert boss.reasons[0].startswith("6 functions depend on this")
    assert "single-point-of-failure" in boss.reasons[1]
    assert 0.2 <= boss.confidence <= 1.0


def test_classification_does_not_mutate_graph(hub_graph):
    before = hub_graph.summary()
    classify(hub_graph)
    assert hub_graph.summary() == before


def test_hermit_entry_point_gets_low_confidence(graph_factory):
    graph = graph_factory(["ui.js::handleClick", "ui.js::orphan"])
    result = classify(graph)

    entry = next(c for c in result["ui.js::handleClick"] if c.label == "The Hermit")
    orphan = next(c for c in result["ui.js::orphan"] if c.label == "The Hermit")
    assert entry.confidence == 0.3
    assert any("entry point" in r for r in entry.reasons)
    assert orphan.confidence == 0.5
    assert "also calls nothing, likely truly isolated" in orphan.reasons


def test_ghost_needs_few_callers_and_substance(graph_factory):
    graph = graph_factory(
        [
            "a.js::main",
            make_node("a.js::forgotten", complexity=6, lines=40),
            "a.js::tiny",
            "a.js::other",
        ],
        [("a.js::main", "a.js::forgotten"), ("a.js::main", "a.js::tiny"), ("a.js::other", "a.js::tiny")],
    )
    result = classify(graph)

    ghost = next(c for c in result["a.js::forgotten"] if c.label == "The Ghost")
    assert ghost.reasons[0] == "only 1 caller"
    assert ghost.confidence == pytest.approx(0.7)


def test_stranger_and_gossip(graph_factory):
    targets = [f"mod{i}.js::t{i}" for i in range(4)]
    graph = graph_factory(["home.js::wanderer", *targets], [("home.js::wanderer", t) for t in targets])
    labels = _labels(classify(graph), "home.js::wanderer")

    assert "The Stranger" in labels
    assert "The Gossip" in labels


def test_bridge_is_only_path_between_modules(graph_factory):
    graph = graph_factory(
        ["api.js::handler", "svc.js::relay", "db.js::query"],
        [("api.js::handler", "svc.js::relay"), ("svc.js::relay", "db.js::query")],
    )
    bridge = next(c for c in classify(graph)["svc.js::relay"] if c.label == "The Bridge")

    assert bridge.confidence == 1.0
    assert bridge.reasons == ["only link from api to db"]
    assert bridge.detail.kind == "bridge"


def _metrics(commits, fixes=0, authors=("a@x",), co=None):
    return GitMetrics(commits=commits, fix_commits=fixes, authors=set(authors), co_commits=dict(co or {}))


def test_history_archetypes_need_git_metrics(graph_factory):
    graph = graph_factory(["a.js::x", "b.js::y"])
    labels = {c.label for cs in classify(graph).values() for c in cs}
    assert "The Crisis Point" not in labels
    assert "The Codependent" not in labels


def test_crisis_point(graph_factory):
    graph = graph_factory(["a.js::flaky", "a.js::calm"])
    metrics = {
        "a.js::flaky": _metrics(5, fixes=3, authors=("a@x", "b@x", "c@x")),
        "a.js::calm": _metrics(5, fixes=1),
    }
    result = classify(graph, metrics)

    crisis = next(c for c in result["a.js::flaky"] if c.label == "The Crisis Point")
    assert crisis.reasons[0] == "3 of 5 commits were bug fixes (60%)"
    assert "touched by 3 different authors, high turbulence" in crisis.reasons
    assert crisis.confidence == pytest.approx(1 / 3)
    assert "The Crisis Point" not in _labels(result, "a.js::calm")


def test_codependent_partner_detail(graph_factory):
    graph = graph_factory(["api.js::save", "db.js::write"])
    metrics = {
        "api.js::save": _metrics(5, co={"db.js::write": 4}),
        "db.js::write": _metrics(5, co={"api.js::save": 4}),
    }
    result = classify(graph, metrics)

    codep = next(c for c in result["api.js::save"] if c.label == "The Codependent")
    assert isinstance(codep.detail, PartnerDetail)
    assert codep.detail.partner_id == "db.js::write"
    assert codep.detail.correlation == pytest.approx(0.8)
    assert codep.confidence == pytest.approx(0.6)
    assert codep.reasons[0] == "80% of changes also touch write"
    assert "partner lives in a different module, consider co-location" in codep.reasons


def test_get_by_archetype_and_counts(hub_graph):
    result = classify(hub_graph)
    bosses = get_by_archetype(result, "The Boss")

    assert [node_id for node_id, _ in bosses] == ["core.js::hub"]
    counts = archetype_counts(result)
    assert counts["The Boss"] == 1
    assert counts["The Hermit"] == 6


def test_fixture_getuserbyid_is_not_a_boss(sample_project_path):
    pytest.importorskip("tree_sitter_javascript")
    from sociograph.graph_builder import build_graph

    graph = build_graph(sample_project_path)
    result = classify(graph)

    assert graph.fan_in("db/users.js::getUserById") == 3
    assert "The Boss" not in _labels(result, "db/users.js::getUserById")
    assert "The Boss" in _labels(result, "utils/logger.js::logEvent")
    assert "The Hermit" in _labels(result, "utils/logger.js::exportEventsToCSV")
