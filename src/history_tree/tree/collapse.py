"""Forest post-processing: duplicate collapse and consecutive-visit merge."""

from __future__ import annotations

import logging
from dataclasses import replace

from history_tree.tree.forest import newest_first
from history_tree.tree.models import TreeNode

logger = logging.getLogger(__name__)


def is_same_node(a: TreeNode, b: TreeNode) -> bool:
    """Same URL, and same title when both carry a real title.

    A title equal to its own URL counts as no title.
    """
    if a.url != b.url:
        return False
    title_a = "" if a.title == a.url else a.title
    title_b = "" if b.title == b.url else b.title
    if not title_a or not title_b:
        return True
    return title_a == title_b


def collapse_duplicates(forest: list[TreeNode]) -> list[TreeNode]:
    """Drop children identical to their parent, splicing grandchildren up.

    Works bottom-up and returns new node objects; the input is untouched.
    Idempotent: collapsing an already collapsed forest returns an equal
    forest.
    """
    removed = 0
    result = []
    for root in forest:
        collapsed, count = _collapse_tree(root)
        result.append(collapsed)
        removed += count
    if removed:
        logger.debug("Collapsed %d duplicate nodes", removed)
    return result


def _collapse_tree(root: TreeNode) -> tuple[TreeNode, int]:
    done: dict[int, TreeNode] = {}
    removed = 0
    stack: list[tuple[TreeNode, bool]] = [(root, False)]
    while stack:
        node, expanded = stack.pop()
        if not expanded:
            stack.append((node, True))
            stack.extend((child, False) for child in node.children)
            continue
        pending = [done.pop(id(child)) for child in node.children]
        kept: list[TreeNode] = []
        merged_ids = list(node.merged_visit_ids)
        while pending:
            child = pending.pop(0)
            if is_same_node(node, child):
                removed += 1
                if child.visit_id is not None:
                    merged_ids.append(child.visit_id)
                merged_ids.extend(child.merged_visit_ids)
                pending.extend(child.children)
            else:
                kept.append(child)
        kept.sort(key=newest_first)
        done[id(node)] = replace(node, children=kept, merged_visit_ids=merged_ids)
    return done[id(root)], removed


def merge_consecutive(forest: list[TreeNode]) -> list[TreeNode]:
    """Merge runs of adjacent childless siblings with the same URL and title.

    The merged node keeps the newest visit's fields and records the
    visit count, first/last visit times and the absorbed visit ids.
    Nodes with children break a run and are recursed into.
    """
    merged: list[TreeNode] = []
    group: list[TreeNode] = []

    def flush() -> None:
        if group:
            merged.append(_merge_group(group))
            group.clear()

    for node in forest:
        if node.children:
            flush()
            merged.append(replace(node, children=merge_consecutive(node.children)))
            continue
        if group and not _same_item(group[0], node):
            flush()
        group.append(node)
    flush()
    return merged


def _same_item(a: TreeNode, b: TreeNode) -> bool:
    return a.url == b.url and a.title == b.title


def _merge_group(group: list[TreeNode]) -> TreeNode:
    if len(group) == 1:
        return group[0]
    newest = max(group, key=lambda n: n.visit_time)
    times = [n.visit_time for n in group]
    absorbed = [n.visit_id for n in group if n is not newest and n.visit_id is not None]
    for n in group:
        absorbed.extend(n.merged_visit_ids)
    return replace(
        newest,
        visit_count=sum(n.visit_count for n in group),
        first_visit_time=min(times),
        last_visit_time=max(times),
        merged_visit_ids=absorbed,
    )
