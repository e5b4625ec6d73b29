"""Chronological tree built from explicit referrer links."""

from __future__ import annotations

import logging
from bisect import bisect_left, bisect_right

from history_tree.history.models import Visit
from history_tree.tree.collapse import collapse_duplicates
from history_tree.tree.config import DirectLinkParams
from history_tree.tree.forest import ParentAssignment, count_nodes
from history_tree.tree.models import TreeNode

logger = logging.getLogger(__name__)


class DirectLinkTreeBuilder:
    """Build one node per visit, parented by ``referring_visit_id``.

    Orphans reached by typing, a bookmark or a generated suggestion are
    attached to the closest earlier visit inside the look-back window,
    on the assumption that the user continued from a recent tab.
    """

    def __init__(self, params: DirectLinkParams | None = None):
        self.params = params or DirectLinkParams()

    def build(self, visits: list[Visit]) -> list[TreeNode]:
        ordered = sorted(visits, key=lambda v: (-v.visit_time, v.visit_id))
        by_id = {v.visit_id: v for v in ordered}
        assignment = ParentAssignment(by_id)

        orphans: list[Visit] = []
        for visit in ordered:
            ref = visit.referring_visit_id
            if ref is not None and ref in by_id and assignment.attach(visit.visit_id, ref):
                continue
            orphans.append(visit)

        oldest_first = ordered[::-1]
        times = [v.visit_time for v in oldest_first]
        inferred = 0
        for orphan in orphans:
            if orphan.transition not in self.params.inferable_transitions:
                continue
            for candidate in self._predecessors(orphan, oldest_first, times):
                if assignment.attach(orphan.visit_id, candidate.visit_id):
                    inferred += 1
                    logger.debug(
                        "Inferred parent %s -> %s (%s)",
                        candidate.url, orphan.url, orphan.transition,
                    )
                    break

        forest = assignment.materialize(
            make_node=lambda key: TreeNode.from_visit(by_id[key]),
            child_sort_key=lambda _parent, key: _newest(by_id[key]),
            root_sort_key=lambda key: _newest(by_id[key]),
        )
        logger.info(
            "Direct-link tree: %d roots, %d visits, %d inferred parents",
            len(forest), count_nodes(forest), inferred,
        )
        return collapse_duplicates(forest)

    def _predecessors(self, orphan: Visit, oldest_first: list[Visit], times: list[int]) -> list[Visit]:
        """Visits strictly before the orphan within the window, closest first."""
        lo = bisect_right(times, orphan.visit_time - self.params.lookback_ms)
        hi = bisect_left(times, orphan.visit_time)
        return oldest_first[lo:hi][::-1]


def _newest(visit: Visit) -> tuple:
    return (-visit.visit_time, visit.visit_id)
