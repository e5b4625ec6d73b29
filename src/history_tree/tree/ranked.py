"""URL-aggregated tree from ranked transitions plus URL-hierarchy merging."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from history_tree.history.models import Visit
from history_tree.tree.config import HierarchyMergeParams
from history_tree.tree.forest import ParentAssignment
from history_tree.tree.models import TreeNode
from history_tree.tree.scoring import aggregate_visits, collect_transitions
from history_tree.tree.urls import UrlParts, count_matching_parts, is_id_segment, split_url

logger = logging.getLogger(__name__)

_LISTING = frozenset({"category", "categories", "tag", "tags", "section"})
_CONTENT = frozenset({"products", "items", "posts", "articles", "blog"})
_PEOPLE = frozenset({"user", "users", "profile", "account"})


@dataclass(frozen=True)
class InferredRelation:
    parent: str
    child: str
    score: float


class TransitionRankedTreeBuilder:
    """Greedy transition tree, then hierarchy merge of leftover roots.

    Transitions are applied strongest first and never replace an earlier
    parent. Remaining roots are joined by URL-hierarchy inference, and
    parent/child pairs where the child is the more general page are
    swapped.
    """

    def __init__(self, params: HierarchyMergeParams | None = None):
        self.params = params or HierarchyMergeParams()

    def build(self, visits: list[Visit]) -> list[TreeNode]:
        aggregates = aggregate_visits(visits)
        transitions = collect_transitions(visits)
        assignment = ParentAssignment(aggregates)

        ranked = sorted(
            transitions.items(),
            key=lambda item: (-item[1].count, item[1].first_time, item[0]),
        )
        for (source, target), _evidence in ranked:
            if not assignment.has_parent(target):
                assignment.attach(target, source)

        roots = assignment.roots()
        if len(roots) > 1:
            self._merge_by_hierarchy(assignment, roots, list(aggregates))
        self._reverse_general_children(assignment)

        def child_key(parent: str, url: str) -> tuple:
            evidence = transitions.get((parent, url))
            if evidence is not None:
                return (0, -evidence.count, evidence.first_time, -aggregates[url].last_visit_time, url)
            return (1, 0, 0, -aggregates[url].last_visit_time, url)

        forest = assignment.materialize(
            make_node=lambda url: TreeNode.from_aggregate(aggregates[url]),
            child_sort_key=child_key,
            root_sort_key=lambda url: (-aggregates[url].last_visit_time, url),
        )
        logger.info("Ranked tree: %d URLs, %d roots", len(aggregates), len(forest))
        return forest

    # ---- Hierarchy merge ----

    def _merge_by_hierarchy(self, assignment: ParentAssignment, roots: list[str], urls: list[str]) -> None:
        p = self.params
        child_counts = assignment.child_counts()
        isolated = {url for url in roots if not child_counts.get(url)}
        relations = self.infer_parents(roots, urls)

        applied = 0
        for relation in relations[:p.max_relations]:
            current = assignment.parent_of(relation.child)
            if current is None:
                apply = True
            elif relation.score >= p.override_score:
                apply = True
            elif relation.score >= p.orphan_merge_score:
                apply = not assignment.children_of(relation.parent) or relation.child in isolated
            else:
                apply = False
            if not apply or assignment.would_create_cycle(relation.child, relation.parent):
                continue
            assignment.detach(relation.child)
            if assignment.attach(relation.child, relation.parent):
                applied += 1
            elif current is not None:
                assignment.attach(relation.child, current)
        logger.debug("Applied %d of %d URL-hierarchy relations", applied, len(relations))

    def infer_parents(self, children: list[str], urls: list[str]) -> list[InferredRelation]:
        """Best hierarchy parent for each child URL, highest score first."""
        parsed = {url: split_url(url) for url in urls}
        relations = []
        for child in children:
            child_parts = parsed.get(child) or split_url(child)
            if child_parts is None:
                continue
            best_url, best_score = None, 0.0
            for candidate in urls:
                candidate_parts = parsed[candidate]
                if candidate == child or candidate_parts is None:
                    continue
                score = self.parent_score(child_parts, candidate_parts)
                if score > best_score:
                    best_url, best_score = candidate, score
            if best_url is not None:
                relations.append(InferredRelation(best_url, child, best_score))
        relations.sort(key=lambda r: (-r.score, r.child))
        return relations

    def parent_score(self, child: UrlParts, parent: UrlParts) -> float:
        """How plausible ``parent`` is as the hierarchical parent of ``child``."""
        p = self.params
        if child.hostname != parent.hostname or child.depth <= parent.depth:
            return 0.0
        depth_diff = child.depth - parent.depth
        matching = count_matching_parts(parent.parts, child.parts)
        if parent.depth > 0 and matching == parent.depth:
            return (
                p.certain_prefix_score
                + max(0.0, 100 - depth_diff * p.depth_penalty)
                + pattern_bonus(parent.parts, child.parts)
            )
        if parent.depth == 0:
            return p.root_page_score
        if matching > 0:
            return matching * p.partial_match_score
        if depth_diff <= p.shallow_max_depth_diff:
            score = max(0.0, p.shallow_base_score - depth_diff * p.shallow_depth_penalty)
            if parent.depth <= 1:
                score += p.shallow_parent_bonus
            return score
        return 0.0

    # ---- Reversal ----

    def _reverse_general_children(self, assignment: ParentAssignment) -> None:
        pairs = [(child, assignment.parent_of(child)) for child in assignment.keys if assignment.has_parent(child)]
        reversed_count = 0
        for child, parent in pairs:
            if assignment.parent_of(child) != parent:
                continue
            if not self.should_reverse(child, parent):
                continue
            grandparent = assignment.detach(parent)
            assignment.detach(child)
            if grandparent is not None and not assignment.attach(child, grandparent):
                logger.debug("Could not lift %s under %s", child, grandparent)
            assignment.attach(parent, child)
            reversed_count += 1
        if reversed_count:
            logger.debug("Reversed %d parent/child pairs", reversed_count)

    def should_reverse(self, child_url: str, parent_url: str) -> bool:
        """True when the child is the more general page of the two."""
        child = split_url(child_url)
        parent = split_url(parent_url)
        if child is None or parent is None or child.hostname != parent.hostname:
            return False
        if child.depth < parent.depth:
            return True
        if child.depth == parent.depth and child.depth > 0:
            generic = self.params.generic_pages
            return child.last_segment.lower() in generic and parent.last_segment.lower() not in generic
        return False


def pattern_bonus(parent_parts, child_parts) -> float:
    """Bonus for listing-style parents and ID-style children."""
    bonus = 0.0
    if parent_parts:
        last = parent_parts[-1].lower()
        if last in _LISTING:
            bonus += 20
        if last in _CONTENT:
            bonus += 20
        if last in _PEOPLE:
            bonus += 15
    if child_parts and is_id_segment(child_parts[-1]):
        bonus += 25
    return bonus
