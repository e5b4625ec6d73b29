"""Tests for the direct-link (chronological) tree builder."""

from history_tree.history.models import Visit
from history_tree.tree.config import DirectLinkParams
from history_tree.tree.direct import DirectLinkTreeBuilder
from history_tree.tree.forest import count_nodes, parent_pointers


def _visit(visit_id, url, visit_time, ref=None, transition="link", title=None):
    return Visit(
        visit_id=visit_id,
        url=url,
        title=title or url.rsplit("/", 1)[-1] or url,
        visit_time=visit_time,
        referring_visit_id=ref,
        transition=transition,
    )


def test_referrer_builds_parent_child():
    forest = DirectLinkTreeBuilder().build([
        _visit("1", "https://a.com/A", 100),
        _visit("2", "https://a.com/B", 110, ref="1"),
    ])
    assert len(forest) == 1
    root = forest[0]
    assert root.visit_id == "1"
    assert root.visit_time == 100
    assert [c.visit_id for c in root.children] == ["2"]
    assert root.children[0].visit_time == 110


def test_unknown_referrer_makes_root():
    forest = DirectLinkTreeBuilder().build([_visit("1", "https://a.com/A", 100, ref="999")])
    assert [n.visit_id for n in forest] == ["1"]


def test_roots_and_children_newest_first():
    forest = DirectLinkTreeBuilder().build([
        _visit("1", "https://a.com/A", 100),
        _visit("2", "https://a.com/B", 200, ref="1"),
        _visit("3", "https://a.com/C", 300, ref="1"),
        _visit("4", "https://b.com/D", 400),
    ])
    assert [n.visit_id for n in forest] == ["4", "1"]
    assert [c.visit_id for c in forest[1].children] == ["3", "2"]


def test_typed_orphan_attaches_to_recent_visit():
    forest = DirectLinkTreeBuilder().build([
        _visit("1", "https://a.com/A", 0),
        _visit("2", "https://a.com/B", 30_000),
        _visit("3", "https://b.com/typed", 60_000, transition="typed"),
    ])
    pointers = parent_pointers(forest)
    assert pointers["3"] == "2"


def test_link_orphan_is_not_inferred():
    forest = DirectLinkTreeBuilder().build([
        _visit("1", "https://a.com/A", 0),
        _visit("2", "https://b.com/B", 30_000, transition="link"),
    ])
    assert len(forest) == 2


def test_orphan_outside_lookback_stays_root():
    forest = DirectLinkTreeBuilder().build([
        _visit("1", "https://a.com/A", 0),
        _visit("2", "https://b.com/B", 10 * 60_000, transition="auto_bookmark"),
    ])
    assert "2" not in parent_pointers(forest)


def test_custom_lookback():
    visits = [
        _visit("1", "https://a.com/A", 0),
        _visit("2", "https://b.com/B", 90_000, transition="typed"),
    ]
    short = DirectLinkTreeBuilder(DirectLinkParams(lookback_ms=60_000)).build(visits)
    assert len(short) == 2
    assert len(DirectLinkTreeBuilder().build(visits)) == 1


def test_referrer_cycle_is_broken():
    forest = DirectLinkTreeBuilder().build([
        _visit("1", "https://a.com/A", 100, ref="2"),
        _visit("2", "https://a.com/B", 200, ref="1"),
    ])
    assert count_nodes(forest) == 2
    assert len(forest) == 1


def test_every_visit_appears_once():
    visits = [_visit(str(i), f"https://a.com/p{i}", i * 1000, ref=str(i - 1) if i % 3 else None) for i in range(30)]
    forest = DirectLinkTreeBuilder().build(visits)
    assert count_nodes(forest) == 30


def test_duplicate_child_is_collapsed():
    forest = DirectLinkTreeBuilder().build([
        _visit("1", "https://x.com/", 50, title="https://x.com/"),
        _visit("2", "https://x.com/", 150, ref="1", title="https://x.com/"),
        _visit("3", "https://x.com/next", 200, ref="2"),
    ])
    assert len(forest) == 1
    root = forest[0]
    assert root.visit_id == "1"
    assert root.merged_visit_ids == ["2"]
    assert [c.visit_id for c in root.children] == ["3"]


def test_empty_input():
    assert DirectLinkTreeBuilder().build([]) == []
