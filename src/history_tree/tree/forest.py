"""Parent maps, cycle detection and forest materialization.

Builders resolve parents over an arena of keys first and only then
materialize TreeNode objects, so nodes never hold back-references and
acyclicity can be checked on plain mappings.
"""

from __future__ import annotations

from collections.abc import Callable, Hashable, Iterable, Iterator, Mapping

from history_tree.tree.models import VIRTUAL_ROOT, TreeNode


def find_cycle(parent_of: Mapping, keys: Iterable[Hashable]) -> list | None:
    """Return one cycle in a parent-pointer map, or None.

    The walk stops at any key without a parent entry (``VIRTUAL_ROOT``
    included). The cycle is returned child-to-parent in walk order.
    """
    done: set = set()
    for start in keys:
        if start in done:
            continue
        path: list = []
        on_path: dict = {}
        current = start
        while current in parent_of and current not in done:
            if current in on_path:
                return path[on_path[current]:]
            on_path[current] = len(path)
            path.append(current)
            current = parent_of[current]
        done.update(path)
    return None


def find_all_cycles(parent_of: Mapping, keys: Iterable[Hashable]) -> list[list]:
    """All disjoint cycles of a map where every key has at most one parent."""
    cycles = []
    done: set = set()
    for start in keys:
        if start in done:
            continue
        path: list = []
        on_path: dict = {}
        current = start
        while current in parent_of and current not in done:
            if current in on_path:
                cycles.append(path[on_path[current]:])
                break
            on_path[current] = len(path)
            path.append(current)
            current = parent_of[current]
        done.update(path)
    return cycles


class ParentAssignment:
    """Ownership-checked parent-pointer builder over a key arena.

    Every mutation keeps the map a forest: ``attach`` refuses unknown keys,
    self-parents and anything that would close a cycle.
    """

    def __init__(self, keys: Iterable[Hashable]):
        self._keys: dict = dict.fromkeys(keys)
        self._parent: dict = {}

    @property
    def keys(self) -> list:
        return list(self._keys)

    def add_key(self, key: Hashable) -> None:
        self._keys.setdefault(key, None)

    def parent_of(self, key):
        return self._parent.get(key)

    def has_parent(self, key) -> bool:
        return key in self._parent

    def would_create_cycle(self, child, parent) -> bool:
        current = parent
        steps = 0
        while current is not None:
            if current == child:
                return True
            current = self._parent.get(current)
            steps += 1
            if steps > len(self._keys):
                return True
        return False

    def attach(self, child, parent) -> bool:
        """Set ``parent`` as the parent of ``child``; False if refused."""
        if child not in self._keys or parent not in self._keys or child == parent:
            return False
        if self.would_create_cycle(child, parent):
            return False
        self._parent[child] = parent
        return True

    def detach(self, child):
        """Remove and return the parent of ``child``."""
        return self._parent.pop(child, None)

    def children_of(self, parent) -> list:
        return [child for child, p in self._parent.items() if p == parent]

    def child_counts(self) -> dict:
        counts: dict = {}
        for p in self._parent.values():
            counts[p] = counts.get(p, 0) + 1
        return counts

    def roots(self) -> list:
        return [key for key in self._keys if key not in self._parent]

    def as_dict(self) -> dict:
        """Parent map with every root pointing at ``VIRTUAL_ROOT``."""
        return {key: self._parent.get(key, VIRTUAL_ROOT) for key in self._keys}

    def materialize(
        self,
        make_node: Callable[[Hashable], TreeNode],
        child_sort_key: Callable[[Hashable, Hashable], object],
        root_sort_key: Callable[[Hashable], object],
    ) -> list[TreeNode]:
        """Build TreeNode objects; children sorted per parent, roots sorted."""
        return materialize(self.as_dict(), self.keys, make_node, child_sort_key, root_sort_key)


def materialize(
    parent_map: Mapping,
    keys: Iterable[Hashable],
    make_node: Callable[[Hashable], TreeNode],
    child_sort_key: Callable[[Hashable, Hashable], object],
    root_sort_key: Callable[[Hashable], object],
) -> list[TreeNode]:
    """Turn an acyclic parent map into a sorted forest of TreeNodes.

    Keys whose parent is missing, ``VIRTUAL_ROOT`` or unknown become roots.
    ``child_sort_key`` receives ``(parent_key, child_key)``.
    """
    keys = list(keys)
    nodes = {key: make_node(key) for key in keys}
    children: dict = {}
    roots = []
    for key in keys:
        parent = parent_map.get(key, VIRTUAL_ROOT)
        if parent == VIRTUAL_ROOT or parent not in nodes:
            roots.append(key)
        else:
            children.setdefault(parent, []).append(key)

    for parent, child_keys in children.items():
        child_keys.sort(key=lambda c, p=parent: child_sort_key(p, c))
        nodes[parent].children = [nodes[c] for c in child_keys]

    roots.sort(key=root_sort_key)
    return [nodes[key] for key in roots]


def iter_nodes(forest: Iterable[TreeNode]) -> Iterator[TreeNode]:
    """Depth-first pre-order over every node of a forest."""
    stack = list(reversed(list(forest)))
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def parent_pointers(forest: Iterable[TreeNode]) -> dict[str, str]:
    """Key -> parent key for every non-root node of a forest."""
    pointers: dict[str, str] = {}
    for node in iter_nodes(forest):
        for child in node.children:
            pointers[child.key] = node.key
    return pointers


def count_nodes(forest: Iterable[TreeNode]) -> int:
    return sum(1 for _ in iter_nodes(forest))


def newest_first(node: TreeNode) -> tuple:
    return (-node.visit_time, node.key)
