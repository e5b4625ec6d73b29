"""Tests for URL aggregation and edge scoring."""

import pytest

from history_tree.history.models import Visit
from history_tree.tree.config import ScoringParams
from history_tree.tree.models import DirectedEdge, EdgeEvidence
from history_tree.tree.scoring import EdgeScorer, aggregate_visits, collect_transitions, edge_rank


def _visit(visit_id, url, visit_time, ref=None, title=None):
    return Visit(visit_id=visit_id, url=url, title=title or url, visit_time=visit_time, referring_visit_id=ref)


VISITS = [
    _visit("1", "https://a.com/", 100, title="Old title"),
    _visit("2", "https://a.com/docs", 200, ref="1"),
    _visit("3", "https://a.com/", 300, title="New title"),
    _visit("4", "https://a.com/docs", 400, ref="3"),
    _visit("5", "https://a.com/docs", 500, ref="4"),
    _visit("6", "https://b.com/", 600, ref="missing"),
]


def test_aggregate_visits():
    aggregates = aggregate_visits(VISITS)
    root = aggregates["https://a.com/"]
    assert root.visit_count == 2
    assert root.first_visit_time == 100
    assert root.last_visit_time == 300
    assert root.title == "New title"
    assert aggregates["https://a.com/docs"].visit_count == 3


def test_collect_transitions_skips_self_and_missing():
    transitions = collect_transitions(VISITS)
    assert set(transitions) == {("https://a.com/", "https://a.com/docs")}
    evidence = transitions[("https://a.com/", "https://a.com/docs")]
    assert evidence.count == 2
    assert evidence.first_time == 200
    assert evidence.last_time == 400


def test_root_source_scores_higher():
    scorer = EdgeScorer(now=0)
    from_root = scorer.score("https://a.com/", "https://a.com/x", None, {})
    from_page = scorer.score("https://a.com/y", "https://a.com/x", None, {})
    assert from_root - from_page == pytest.approx(220 * 1.1)


def test_cross_host_gets_no_url_signals():
    scorer = EdgeScorer(now=0)
    same_host = scorer.score("https://a.com/p", "https://a.com/p/1", None, {})
    other_host = scorer.score("https://b.com/p", "https://a.com/p/1", None, {})
    assert other_host < same_host


def test_recency_decays():
    evidence = EdgeEvidence(count=1, first_time=0, last_time=0)
    params = ScoringParams()
    fresh = EdgeScorer(params, now=0).score("https://b.com/", "https://a.com/", evidence, {})
    stale = EdgeScorer(params, now=params.recency_half_life_ms * 10).score(
        "https://b.com/", "https://a.com/", evidence, {},
    )
    assert fresh > stale


def test_listing_and_id_patterns():
    scorer = EdgeScorer(now=0)
    plain = scorer.score("https://a.com/about", "https://a.com/about/team", None, {})
    listing = scorer.score("https://a.com/products", "https://a.com/products/12345", None, {})
    assert listing - plain == pytest.approx(0.6 * (25 + 30))


def test_hierarchy_edges():
    scorer = EdgeScorer()
    edges = scorer.hierarchy_edges([
        "https://a.com/",
        "https://a.com/docs",
        "https://a.com/docs/page",
        "https://a.com/blog/post",
        "https://b.com/docs/page",
    ])
    pairs = {(e.source, e.target): e.weight for e in edges}
    assert pairs[("https://a.com/", "https://a.com/docs")] == 220 + 40
    assert pairs[("https://a.com/", "https://a.com/blog/post")] == 220 + 40
    assert pairs[("https://a.com/docs", "https://a.com/docs/page")] == 40 + 80
    # A visited ancestor weakens the site-root edge below the ancestor edge.
    assert pairs[("https://a.com/", "https://a.com/docs/page")] == pytest.approx(260 * 0.35)
    assert ("https://a.com/docs", "https://a.com/blog/post") not in pairs
    assert not any(t == "https://b.com/docs/page" for _s, t in pairs)
    assert all(e.inferred for e in edges)


def test_site_root_edge_reaches_every_deeper_page():
    edges = EdgeScorer().hierarchy_edges([
        "https://shop.com/",
        "https://shop.com/products",
        "https://shop.com/products/123",
        "https://shop.com/products/123/reviews",
    ])
    pairs = {(e.source, e.target): e.weight for e in edges}
    assert ("https://shop.com/", "https://shop.com/products/123") in pairs
    assert pairs[("https://shop.com/", "https://shop.com/products/123/reviews")] == pytest.approx(260 * 0.35 ** 2)
    assert pairs[("https://shop.com/products", "https://shop.com/products/123/reviews")] == 120


def test_root_ancestor_decay_is_configurable():
    scorer = EdgeScorer(ScoringParams(root_ancestor_decay=1.0))
    pairs = {
        (e.source, e.target): e.weight
        for e in scorer.hierarchy_edges(["https://a.com/", "https://a.com/docs", "https://a.com/docs/page"])
    }
    assert pairs[("https://a.com/", "https://a.com/docs/page")] == 260


def test_incoming_edges_merge_duplicate_pairs():
    scorer = EdgeScorer(now=500)
    _aggregates, incoming = scorer.incoming_edges(VISITS)
    docs = incoming["https://a.com/docs"]
    assert [e.source for e in docs] == ["https://a.com/"]
    # The site-root hierarchy edge outweighs the scored transition.
    assert docs[0].weight == pytest.approx(260)
    assert docs[0].inferred


def test_incoming_edges_top_k():
    visits = [_visit("0", "https://a.com/p/q/r", 1000)]
    visits += [_visit(str(i), f"https://a.com/p{'/q' * (i % 2)}/{i}", i) for i in range(1, 8)]
    visits += [_visit(f"r{i}", "https://a.com/p/q/r", 1000 + i, ref=str(i)) for i in range(1, 8)]
    scorer = EdgeScorer(ScoringParams(top_k_incoming=3), now=2000)
    _aggregates, incoming = scorer.incoming_edges(visits)
    edges = incoming["https://a.com/p/q/r"]
    assert len(edges) == 3
    assert edges == sorted(edges, key=edge_rank)


def test_edge_rank_order():
    heavy = DirectedEdge("b", "t", 5.0)
    counted = DirectedEdge("c", "t", 3.0, evidence=EdgeEvidence(count=4))
    light = DirectedEdge("a", "t", 3.0)
    assert sorted([light, heavy, counted], key=edge_rank) == [heavy, counted, light]
