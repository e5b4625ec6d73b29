"""URL-aggregated tree via scored edges and a maximum arborescence."""

from __future__ import annotations

import logging

from history_tree.history.models import Visit
from history_tree.tree.arborescence import ArborescenceSolver, greedy_resolve
from history_tree.tree.config import ScoringParams
from history_tree.tree.forest import find_cycle, materialize
from history_tree.tree.models import VIRTUAL_ROOT, DirectedEdge, TreeNode
from history_tree.tree.scoring import EdgeScorer

logger = logging.getLogger(__name__)


class AggregatedTreeBuilder:
    """One node per distinct URL, parented by the best-scoring structure.

    Every URL also gets a low-weight edge from the virtual root so the
    arborescence spans all URLs.
    """

    def __init__(self, params: ScoringParams | None = None):
        self.params = params or ScoringParams()
        self.solver = ArborescenceSolver(contract_cycles=self.params.contract_cycles)

    def build(self, visits: list[Visit], now: int | None = None) -> list[TreeNode]:
        if now is None:
            now = max((v.visit_time for v in visits), default=0)
        scorer = EdgeScorer(self.params, now=now)
        aggregates, incoming = scorer.incoming_edges(visits)
        urls = sorted(aggregates)

        edges = [edge for url in urls for edge in incoming.get(url, [])]
        edges.extend(DirectedEdge(VIRTUAL_ROOT, url, self.params.virtual_root_weight) for url in urls)

        try:
            parent_map = self.solver.solve(VIRTUAL_ROOT, urls, edges)
        except RecursionError as e:
            logger.warning("Arborescence solver failed: %s", e)
            parent_map = None
        if parent_map is None or find_cycle(parent_map, urls) is not None:
            logger.warning("Falling back to greedy cycle breaking for %d URLs", len(urls))
            parent_map = greedy_resolve(urls, incoming)

        weights = {
            (edge.source, edge.target): edge.weight
            for candidates in incoming.values()
            for edge in candidates
        }

        def child_key(parent: str, url: str) -> tuple:
            info = aggregates[url]
            return (-weights.get((parent, url), 0.0), -info.last_visit_time, url)

        forest = materialize(
            parent_map,
            urls,
            make_node=lambda url: TreeNode.from_aggregate(aggregates[url]),
            child_sort_key=child_key,
            root_sort_key=lambda url: (-aggregates[url].last_visit_time, url),
        )
        logger.info("Aggregated tree: %d URLs, %d roots", len(urls), len(forest))
        return forest
