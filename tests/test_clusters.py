"""Tests for label-propagation clustering and bridge scoring."""

from sociograph.bridges import MIN_EXCLUSIVITY, compute_bridge_scores
from sociograph.clusters import build_adjacency, detect_clusters, propagate_labels


def _two_triangles(graph_factory):
    ids = ["api.js::a1", "api.js::a2", "api.js::a3", "db.js::d1", "db.js::d2", "db.js::d3"]
    edges = [
        ("api.js::a1", "api.js::a2"), ("api.js::a2", "api.js::a3"), ("api.js::a3", "api.js::a1"),
        ("db.js::d1", "db.js::d2"), ("db.js::d2", "db.js::d3"), ("db.js::d3", "db.js::d1"),
        ("api.js::a1", None),
    ]
    return graph_factory(ids, edges)


def test_adjacency_is_undirected_and_ignores_external(graph_factory):
    graph = _two_triangles(graph_factory)
    neighbors = build_adjacency(graph)
    assert neighbors["api.js::a1"] == {"api.js::a2", "api.js::a3"}
    assert "api.js::a1" in neighbors["api.js::a2"]


def test_disconnected_triangles_form_two_clusters(graph_factory):
    clusters = detect_clusters(_two_triangles(graph_factory), min_size=3)

    assert len(clusters) == 2
    assert sorted(c.modules[0] for c in clusters) == ["api", "db"]
    for cluster in clusters:
        assert cluster.size == 3
        assert cluster.density == 1.0
        assert len(cluster.hubs) == 3
        assert not cluster.is_multi_module


def test_min_size_drops_small_groups(graph_factory):
    graph = graph_factory(["a.js::x", "a.js::y"], [("a.js::x", "a.js::y")])
    assert detect_clusters(graph, min_size=3) == []
    assert len(detect_clusters(graph, min_size=2)) == 1


def test_isolated_nodes_keep_their_own_label(graph_factory):
    graph = graph_factory(["a.js::x", "a.js::y"])
    labels = propagate_labels(build_adjacency(graph))
    assert labels == {"a.js::x": "a.js::x", "a.js::y": "a.js::y"}


def test_propagation_is_stable_once_converged(graph_factory):
    neighbors = build_adjacency(_two_triangles(graph_factory))
    labels = propagate_labels(neighbors)
    again = propagate_labels(neighbors)
    assert labels == again

    # Every node already holds the majority label of its neighbours
    for node_id, nbrs in neighbors.items():
        if nbrs:
            counts = {}
            for nbr in nbrs:
                counts[labels[nbr]] = counts.get(labels[nbr], 0) + 1
            assert counts.get(labels[node_id], 0) == max(counts.values())


def test_multi_module_clusters_sort_first(graph_factory):
    ids = [f"solo.js::s{i}" for i in range(5)] + ["x.js::p", "y.js::q", "z.js::r"]
    edges = [(f"solo.js::s{i}", f"solo.js::s{i + 1}") for i in range(4)] + [("solo.js::s4", "solo.js::s0")]
    edges += [("x.js::p", "y.js::q"), ("y.js::q", "z.js::r"), ("z.js::r", "x.js::p")]
    clusters = detect_clusters(graph_factory(ids, edges), min_size=3)

    assert clusters[0].is_multi_module
    assert clusters[0].size == 3
    assert clusters[1].modules == ["solo"]


def test_bridge_scores_bounded(graph_factory):
    graph = graph_factory(
        ["api.js::h1", "api.js::h2", "svc.js::b1", "svc.js::b2", "db.js::q"],
        [
            ("api.js::h1", "svc.js::b1"), ("svc.js::b1", "db.js::q"),
            ("api.js::h2", "svc.js::b2"), ("svc.js::b2", "db.js::q"),
        ],
    )
    scores = compute_bridge_scores(graph)

    # Two functions share the api -> db path, so each holds half of it
    assert set(scores) == {"svc.js::b1", "svc.js::b2"}
    for info in scores.values():
        assert MIN_EXCLUSIVITY <= info.score <= 1.0
        assert info.pairs[0].total == 2
        assert (info.pairs[0].from_module, info.pairs[0].to_module) == ("api", "db")


def test_bridge_requires_both_sides(graph_factory):
    graph = graph_factory(["api.js::h", "db.js::q"], [("api.js::h", "db.js::q")])
    assert compute_bridge_scores(graph) == {}
