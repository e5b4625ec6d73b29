"""Multi-signal orphan resolution ("enhanced" tree mode)."""

from __future__ import annotations

import logging
from bisect import bisect_left, bisect_right
from collections import Counter
from dataclasses import dataclass, field

from history_tree.history.models import Visit
from history_tree.history.parser import favicon_url
from history_tree.tree.collapse import collapse_duplicates
from history_tree.tree.config import EnhancedParams
from history_tree.tree.forest import ParentAssignment, count_nodes, iter_nodes
from history_tree.tree.models import Relation, TreeNode
from history_tree.tree.signals import NavigationTracker, detect_hierarchy_navigation
from history_tree.tree.urls import domain_title, split_url

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignalMatch:
    """A candidate parent for an orphan, with the signal that proposed it."""

    parent: Visit
    confidence: float
    relation_type: str
    details: dict = field(default_factory=dict, compare=False)


class _Series:
    """Visits in time order, sliced by bisect."""

    def __init__(self):
        self.visits: list[Visit] = []
        self.times: list[int] = []

    def append(self, visit: Visit) -> None:
        self.visits.append(visit)
        self.times.append(visit.visit_time)

    def between(self, low: int, high: int) -> list[Visit]:
        """Visits with ``low <= visit_time <= high``."""
        return self.visits[bisect_left(self.times, low):bisect_right(self.times, high)]

    def inside(self, low: int, high: int) -> list[Visit]:
        """Visits with ``low < visit_time < high``."""
        return self.visits[bisect_right(self.times, low):bisect_left(self.times, high)]


_EMPTY = _Series()


class _Timeline:
    """Visits ordered by time, overall and per URL and host."""

    def __init__(self, visits: list[Visit]):
        self.all = _Series()
        self.by_url: dict[str, _Series] = {}
        self.by_host: dict[str, _Series] = {}
        for visit in sorted(visits, key=lambda v: (v.visit_time, v.visit_id)):
            self.all.append(visit)
            self.by_url.setdefault(visit.url, _Series()).append(visit)
            parts = split_url(visit.url)
            if parts is not None:
                self.by_host.setdefault(parts.hostname, _Series()).append(visit)

    def url_series(self, url: str) -> _Series:
        return self.by_url.get(url, _EMPTY)

    def host_series(self, url: str) -> _Series:
        parts = split_url(url)
        return self.by_host.get(parts.hostname, _EMPTY) if parts is not None else _EMPTY

    def before(self, visit: Visit, window_ms: int, url: str | None = None) -> list[Visit]:
        """Visits strictly before ``visit`` within the window, closest first."""
        series = self.url_series(url) if url is not None else self.all
        found = series.inside(visit.visit_time - window_ms, visit.visit_time)
        return sorted(found, key=lambda v: (-v.visit_time, v.visit_id))


class EnhancedTreeBuilder:
    """Resolve orphans from auxiliary signals, then group leftovers by domain.

    Explicit referrers always win. Every other orphan collects candidate
    parents from the new-tab, back/forward, hierarchy and time-pattern
    detectors; candidates are ranked by confidence, then relation
    priority, then time distance, and the first one that keeps the forest
    acyclic is used.

    Args:
        params: Windows, confidences and relation priority.
        tracker: Navigation events recorded alongside history, if any.
    """

    def __init__(self, params: EnhancedParams | None = None, tracker: NavigationTracker | None = None):
        self.params = params or EnhancedParams()
        self.tracker = tracker or NavigationTracker(self.params)

    def build(self, visits: list[Visit]) -> list[TreeNode]:
        ordered = sorted(visits, key=lambda v: (-v.visit_time, v.visit_id))
        by_id: dict[str, Visit] = {v.visit_id: v for v in ordered}
        timeline = _Timeline(ordered)
        assignment = ParentAssignment(by_id)
        relations: dict[str, Relation] = {}

        orphans = []
        for visit in ordered:
            ref = visit.referring_visit_id
            if ref is not None and ref in by_id and assignment.attach(visit.visit_id, ref):
                relations[visit.visit_id] = Relation("referring_visit", 1.0, ref)
            else:
                orphans.append(visit)

        for orphan in orphans:
            for match in self.candidate_matches(orphan, timeline):
                if assignment.attach(orphan.visit_id, match.parent.visit_id):
                    relations[orphan.visit_id] = Relation(
                        match.relation_type, match.confidence, match.parent.visit_id, match.details,
                    )
                    logger.debug(
                        "Signal %s (%.2f): %s -> %s",
                        match.relation_type, match.confidence, match.parent.url, orphan.url,
                    )
                    break

        generated: set[str] = set()
        if self.params.synthesize_domain_roots:
            generated = self._synthesize_domain_roots(assignment, by_id, relations)

        def make_node(key: str) -> TreeNode:
            node = TreeNode.from_visit(by_id[key])
            node.is_generated = key in generated
            if key in relations:
                node.relations = [relations[key]]
            return node

        forest = assignment.materialize(
            make_node=make_node,
            child_sort_key=lambda _parent, key: (-by_id[key].visit_time, key),
            root_sort_key=lambda key: (-by_id[key].visit_time, key),
        )
        logger.info(
            "Enhanced tree: %d roots, %d nodes, relations %s",
            len(forest), count_nodes(forest), dict(summarize_relations(forest)),
        )
        if self.params.collapse_duplicates:
            forest = collapse_duplicates(forest)
        return forest

    # ---- Signal cascade ----

    def candidate_matches(self, orphan: Visit, timeline: _Timeline) -> list[SignalMatch]:
        """All detector proposals above the confidence floor, best first."""
        matches: list[SignalMatch] = []
        matches.extend(self._new_tab_matches(orphan, timeline))
        matches.extend(self._back_forward_matches(orphan, timeline))
        matches.extend(self._hierarchy_matches(orphan, timeline))
        matches.extend(self._time_pattern_matches(orphan, timeline))

        matches = [
            m for m in matches
            if m.confidence >= self.params.min_confidence and m.parent.visit_id != orphan.visit_id
        ]
        matches.sort(key=lambda m: (
            -m.confidence,
            self._priority(m.relation_type),
            abs(orphan.visit_time - m.parent.visit_time),
            m.parent.visit_id,
        ))
        return matches

    def _priority(self, relation_type: str) -> int:
        order = self.params.relation_priority
        if relation_type.startswith("transition_"):
            relation_type = "transition"
        return order.index(relation_type) if relation_type in order else len(order)

    def _new_tab_matches(self, orphan: Visit, timeline: _Timeline) -> list[SignalMatch]:
        p = self.params
        hint = self.tracker.find_new_tab_parent(orphan.visit_time, orphan.tab_id)
        if hint is None or hint.confidence <= p.new_tab_min_accept or not hint.parent_url:
            return []
        window = p.parent_lookup_window_ms
        candidates = [
            v for v in timeline.url_series(hint.parent_url).inside(
                orphan.visit_time - window, orphan.visit_time + window,
            )
            if v.visit_id != orphan.visit_id
        ]
        if not candidates:
            return []
        parent = min(candidates, key=lambda v: (abs(v.visit_time - orphan.visit_time), v.visit_id))
        return [SignalMatch(parent, hint.confidence, hint.relation_type, hint.details)]

    def _back_forward_matches(self, orphan: Visit, timeline: _Timeline) -> list[SignalMatch]:
        hint = self.tracker.detect_back_navigation(orphan.url, orphan.visit_time, orphan.tab_id)
        if hint is None:
            return []
        previous = timeline.before(orphan, self.params.previous_visit_window_ms, url=orphan.url)
        if not previous:
            return []
        return [SignalMatch(previous[0], hint.confidence, hint.relation_type, hint.details)]

    def _hierarchy_matches(self, orphan: Visit, timeline: _Timeline) -> list[SignalMatch]:
        window = self.params.hierarchy_window_ms
        matches = []
        nearby = timeline.host_series(orphan.url).between(orphan.visit_time - window, orphan.visit_time + window)
        for candidate in nearby:
            if candidate.visit_id == orphan.visit_id:
                continue
            hint = detect_hierarchy_navigation(candidate.url, orphan.url)
            if hint is not None:
                matches.append(SignalMatch(candidate, hint.confidence, hint.relation_type, hint.details))
        return matches

    def _time_pattern_matches(self, orphan: Visit, timeline: _Timeline) -> list[SignalMatch]:
        p = self.params
        matches = []
        revisits = timeline.before(orphan, p.revisit_window_ms, url=orphan.url)
        if revisits:
            closest = revisits[0]
            elapsed = orphan.visit_time - closest.visit_time
            confidence = max(p.revisit_min_confidence, 1 - elapsed / p.revisit_window_ms)
            matches.append(SignalMatch(closest, confidence, "same_url_revisit", {"elapsed_ms": elapsed}))

        score = p.transition_confidence.get(orphan.transition)
        if score:
            recent = timeline.before(orphan, p.transition_window_ms)
            if recent:
                matches.append(SignalMatch(recent[0], score, f"transition_{orphan.transition}"))
        return matches

    # ---- Domain roots ----

    def _synthesize_domain_roots(
        self,
        assignment: ParentAssignment,
        by_id: dict[str, Visit],
        relations: dict[str, Relation],
    ) -> set[str]:
        """Group remaining orphans of each host under a domain root.

        Uses the host's existing site-root visit when there is one,
        otherwise fabricates a ``generated`` visit just before the
        earliest orphan. Returns the keys of fabricated visits.
        """
        groups: dict[str, list] = {}
        for visit in list(by_id.values()):
            parts = split_url(visit.url)
            if parts is not None:
                groups.setdefault(parts.hostname, []).append((visit, parts))

        child_counts = assignment.child_counts()
        generated: set[str] = set()
        for hostname, members in groups.items():
            orphans = [v for v, _ in members if not assignment.has_parent(v.visit_id)]
            if not orphans:
                continue
            site_roots = [v for v, parts in members if parts.is_site_root]
            existing = next(
                (v for v in site_roots if not assignment.has_parent(v.visit_id)),
                site_roots[0] if site_roots else None,
            )
            has_tree = any(child_counts.get(v.visit_id) for v in orphans)
            if not (len(orphans) > 1 or existing is None or has_tree):
                continue

            if existing is not None:
                root = existing
            else:
                earliest = min(orphans, key=lambda v: v.visit_time)
                scheme = split_url(earliest.url).scheme
                url = f"{scheme}://{hostname}/"
                root = Visit(
                    visit_id=f"generated_root:{hostname}",
                    url=url,
                    title=domain_title(hostname),
                    visit_time=earliest.visit_time - self.params.root_time_offset_ms,
                    transition="generated",
                    favicon=favicon_url(url),
                )
                by_id[root.visit_id] = root
                assignment.add_key(root.visit_id)
                generated.add(root.visit_id)
                logger.debug("Generated domain root %s for %d orphans", url, len(orphans))

            for orphan in orphans:
                if orphan.visit_id == root.visit_id:
                    continue
                if assignment.attach(orphan.visit_id, root.visit_id):
                    relations[orphan.visit_id] = Relation(
                        "generated_root_domain",
                        1.0,
                        root.visit_id,
                        {"domain": hostname, "is_generated": root.visit_id in generated},
                    )
        return generated


def summarize_relations(forest: list[TreeNode]) -> Counter:
    """Count relation types across a forest."""
    counts: Counter = Counter()
    for node in iter_nodes(forest):
        for relation in node.relations:
            counts[relation.relation_type] += 1
    return counts
