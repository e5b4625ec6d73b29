"""URL aggregation and candidate parent-edge scoring."""

from __future__ import annotations

import logging
import math
from collections import defaultdict

from history_tree.history.models import Visit
from history_tree.tree.config import ScoringParams
from history_tree.tree.models import DirectedEdge, EdgeEvidence, URLAggregate
from history_tree.tree.urls import count_matching_parts, is_id_segment, split_url

logger = logging.getLogger(__name__)


def aggregate_visits(visits: list[Visit]) -> dict[str, URLAggregate]:
    """Group visits by URL; title and favicon come from the newest visit."""
    aggregates: dict[str, URLAggregate] = {}
    for visit in sorted(visits, key=lambda v: (-v.visit_time, v.visit_id)):
        aggregate = aggregates.get(visit.url)
        if aggregate is None:
            aggregate = aggregates[visit.url] = URLAggregate(
                url=visit.url,
                title=visit.title or visit.url,
                favicon=visit.favicon,
            )
        aggregate.add(visit)
    return aggregates


def collect_transitions(visits: list[Visit]) -> dict[tuple[str, str], EdgeEvidence]:
    """Tally referrer transitions between distinct URLs.

    First/last times track the child visit's time.
    """
    by_id = {v.visit_id: v for v in visits}
    transitions: dict[tuple[str, str], EdgeEvidence] = {}
    for visit in visits:
        referrer = by_id.get(visit.referring_visit_id) if visit.referring_visit_id else None
        if referrer is None or referrer.url == visit.url:
            continue
        key = (referrer.url, visit.url)
        evidence = transitions.get(key)
        if evidence is None:
            evidence = transitions[key] = EdgeEvidence()
        evidence.observe(visit.visit_time)
    return transitions


class EdgeScorer:
    """Score candidate ``source -> target`` URL edges.

    Args:
        params: Weights, bonuses and pruning limits.
        now: Reference time (ms) for recency decay.
    """

    def __init__(self, params: ScoringParams | None = None, now: int = 0):
        self.params = params or ScoringParams()
        self.now = now

    def score(
        self,
        source: str,
        target: str,
        evidence: EdgeEvidence | None,
        aggregates: dict[str, URLAggregate],
    ) -> float:
        """Weighted sum of transition, recency, popularity and URL-shape signals."""
        p = self.params
        w = p.weights
        count = evidence.count if evidence and evidence.count else 1
        last_time = evidence.last_time if evidence else 0
        target_info = aggregates.get(target)
        visit_count_to = target_info.visit_count if target_info and target_info.visit_count else 1

        w_count = math.log1p(count)
        age = max(0, self.now - last_time)
        w_recency = math.exp(-age / p.recency_half_life_ms)
        w_freq = math.log1p(visit_count_to)

        w_path = w_root = w_pattern = w_domain = 0.0
        src = split_url(source)
        dst = split_url(target)
        if src and dst and src.hostname == dst.hostname:
            w_domain = p.domain_match_bonus
            matching = count_matching_parts(src.parts, dst.parts)
            if matching > 0:
                w_path = matching / max(1, src.depth) * p.path_weight
            if src.depth == 0:
                w_root = p.root_bonus
            if src.last_segment.lower() in p.listing_segments:
                w_pattern += p.pattern_bonus
            if dst.parts and is_id_segment(dst.last_segment):
                w_pattern += p.id_pattern_bonus

        return (
            w.count * w_count
            + w.recency * w_recency
            + w.freq * w_freq
            + w.path * w_path
            + w.root * w_root
            + w.pattern * w_pattern
            + w.domain * w_domain
        )

    def transition_edges(
        self,
        transitions: dict[tuple[str, str], EdgeEvidence],
        aggregates: dict[str, URLAggregate],
    ) -> list[DirectedEdge]:
        edges = []
        for (source, target), evidence in transitions.items():
            weight = self.score(source, target, evidence, aggregates)
            if weight < self.params.min_edge_score:
                continue
            edges.append(DirectedEdge(source, target, weight, evidence=evidence))
        return edges

    def hierarchy_edges(self, urls) -> list[DirectedEdge]:
        """Edges implied by URL structure alone, within each hostname.

        A source whose path is a strict prefix of the target's path gets
        an inferred edge, and so does every site-root page. The site-root
        weight decays by ``root_ancestor_decay`` per visited ancestor level
        of the target, so deeper sections keep their own parent unless
        transitions say otherwise.
        """
        p = self.params
        by_host: dict[str, list] = defaultdict(list)
        for url in urls:
            parts = split_url(url)
            if parts is not None:
                by_host[parts.hostname].append((url, parts))

        edges = []
        for members in by_host.values():
            site_roots = [url for url, parts in members if parts.depth == 0]
            for target, dst in members:
                if dst.depth == 0:
                    continue
                ancestors = {
                    source: src.depth for source, src in members
                    if 0 < src.depth < dst.depth and count_matching_parts(src.parts, dst.parts) == src.depth
                }
                weight = p.path_weight + p.hierarchy_score_bonus
                if weight >= p.min_edge_score:
                    edges.extend(DirectedEdge(source, target, weight, inferred=True) for source in ancestors)

                sections = len(set(ancestors.values()))
                weight = (p.root_bonus + p.hierarchy_score_bonus / 2) * p.root_ancestor_decay ** sections
                if weight >= p.min_edge_score:
                    edges.extend(DirectedEdge(source, target, weight, inferred=True) for source in site_roots)
        return edges

    def incoming_edges(self, visits: list[Visit]) -> tuple[dict[str, URLAggregate], dict[str, list[DirectedEdge]]]:
        """Aggregate visits and return the top-K scored incoming edges per URL."""
        aggregates = aggregate_visits(visits)
        transitions = collect_transitions(visits)
        candidates = self.transition_edges(transitions, aggregates) + self.hierarchy_edges(aggregates)

        best: dict[tuple[str, str], DirectedEdge] = {}
        for edge in candidates:
            key = (edge.source, edge.target)
            current = best.get(key)
            if current is None or edge.weight > current.weight:
                best[key] = edge

        incoming: dict[str, list[DirectedEdge]] = defaultdict(list)
        for edge in best.values():
            incoming[edge.target].append(edge)
        for target, edges in incoming.items():
            edges.sort(key=edge_rank)
            del edges[self.params.top_k_incoming:]

        logger.debug(
            "Scored %d candidate edges (%d transitions) over %d URLs",
            len(best), len(transitions), len(aggregates),
        )
        return aggregates, dict(incoming)


def edge_rank(edge: DirectedEdge) -> tuple:
    """Sort key: weight desc, transition count desc, source asc."""
    return (-edge.weight, -edge.count, edge.source)
