"""Tests for parent maps and forest materialization."""

from history_tree.tree.forest import ParentAssignment, find_all_cycles, find_cycle, iter_nodes, materialize
from history_tree.tree.models import VIRTUAL_ROOT, TreeNode


def test_find_cycle():
    assert find_cycle({"a": "b", "b": "c"}, "abc") is None
    cycle = find_cycle({"a": "b", "b": "c", "c": "a"}, "abc")
    assert sorted(cycle) == ["a", "b", "c"]
    assert find_cycle({"a": VIRTUAL_ROOT}, "a") is None


def test_find_all_cycles():
    parents = {"a": "b", "b": "a", "c": "d", "d": "c", "e": "a"}
    cycles = find_all_cycles(parents, "abcde")
    assert sorted(sorted(c) for c in cycles) == [["a", "b"], ["c", "d"]]


def test_attach_refuses_cycles_and_unknown_keys():
    assignment = ParentAssignment("abc")
    assert assignment.attach("b", "a")
    assert assignment.attach("c", "b")
    assert not assignment.attach("a", "c")
    assert not assignment.attach("a", "a")
    assert not assignment.attach("a", "zzz")
    assert assignment.roots() == ["a"]
    assert assignment.as_dict() == {"a": VIRTUAL_ROOT, "b": "a", "c": "b"}


def test_detach_and_reattach():
    assignment = ParentAssignment("abc")
    assignment.attach("b", "a")
    assert assignment.detach("b") == "a"
    assert assignment.detach("b") is None
    assignment.add_key("d")
    assert assignment.attach("b", "d")
    assert assignment.children_of("d") == ["b"]
    assert assignment.child_counts() == {"d": 1}


def test_materialize_sorts_children_and_roots():
    parents = {"b": "a", "c": "a", "d": "missing"}
    times = {"a": 1, "b": 2, "c": 3, "d": 4}
    forest = materialize(
        parents,
        "abcd",
        make_node=lambda key: TreeNode(url=key, title=key, visit_time=times[key], visit_id=key),
        child_sort_key=lambda _parent, key: -times[key],
        root_sort_key=lambda key: -times[key],
    )
    assert [n.key for n in forest] == ["d", "a"]
    assert [c.key for c in forest[1].children] == ["c", "b"]
    assert [n.key for n in iter_nodes(forest)] == ["d", "a", "c", "b"]


def test_deep_chain_does_not_recurse():
    keys = [str(i) for i in range(2000)]
    assignment = ParentAssignment(keys)
    for child, parent in zip(keys[1:], keys):
        assignment.attach(child, parent)
    forest = assignment.materialize(
        make_node=lambda key: TreeNode(url=key, title=key, visit_time=int(key), visit_id=key),
        child_sort_key=lambda _parent, key: key,
        root_sort_key=lambda key: key,
    )
    assert sum(1 for _ in iter_nodes(forest)) == 2000
