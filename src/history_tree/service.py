"""History tree service: view modes, debounced rebuilds, last-writer-wins."""

from __future__ import annotations

import asyncio
import logging
import os

from history_tree.exceptions import UnknownViewModeError
from history_tree.history.models import HistoryStats, Visit
from history_tree.history.source import HistorySource
from history_tree.history.store import DEFAULT_MAX_RESULTS, VisitStore, summarize_visits
from history_tree.tree.aggregated import AggregatedTreeBuilder
from history_tree.tree.collapse import merge_consecutive
from history_tree.tree.config import TreeConfig
from history_tree.tree.direct import DirectLinkTreeBuilder
from history_tree.tree.enhanced import EnhancedTreeBuilder
from history_tree.tree.models import TreeNode
from history_tree.tree.ranked import TransitionRankedTreeBuilder
from history_tree.tree.signals import NavigationTracker

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = float(os.environ.get("HISTORY_TREE_DEBOUNCE_SECONDS", "0.5"))

VIEW_MODES = ("chronological", "aggregated", "enhanced", "ranked")

# Modes with one node per visit, where consecutive-visit merging applies.
_PER_VISIT_MODES = frozenset({"chronological", "enhanced"})


class HistoryTreeService:
    """Fetch history and build trees in any view mode.

    The last fetched visits are retained so switching view modes does not
    refetch. ``request_rebuild`` coalesces bursts of requests and drops
    results that a newer request has superseded.

    Args:
        source: The history backend to query.
        config: Builder parameters.
        tracker: Navigation events for the enhanced mode.
        debounce_seconds: Quiet period before a rebuild starts.
    """

    def __init__(
        self,
        source: HistorySource,
        config: TreeConfig | None = None,
        tracker: NavigationTracker | None = None,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        max_results: int = DEFAULT_MAX_RESULTS,
    ):
        self.config = config or TreeConfig()
        self.store = VisitStore(source, max_results=max_results)
        self.tracker = tracker or NavigationTracker(self.config.enhanced)
        self.debounce_seconds = debounce_seconds
        self.latest_forest: list[TreeNode] | None = None
        self.latest_mode: str | None = None
        self._generation = 0

    # ---- Sync methods ----

    def refresh(self, start_time=None, end_time=None, now: int | None = None) -> list[Visit]:
        """Fetch visits for the window and retain them."""
        return self.store.ingest(start_time, end_time, now=now)

    def build(self, mode: str = "chronological", now: int | None = None) -> list[TreeNode]:
        """Build a forest from the retained visits."""
        return self._build(_check_mode(mode), list(self.store.visits), now)

    def stats(self, now: int | None = None) -> HistoryStats:
        return summarize_visits(self.store.visits, now=now)

    # ---- Async methods ----

    async def request_rebuild(self, mode: str = "chronological", start_time=None, end_time=None) -> list[TreeNode] | None:
        """Debounced fetch-and-build off the event loop.

        Returns None when a newer request superseded this one, either
        during the debounce period or while it was building.

        Raises:
            UnknownViewModeError: ``mode`` is not a known view mode.
            HistorySourceError: The fetch failed; the previous forest is kept.
        """
        mode = _check_mode(mode)
        self._generation += 1
        generation = self._generation

        if self.debounce_seconds > 0:
            await asyncio.sleep(self.debounce_seconds)
            if generation != self._generation:
                logger.debug("Rebuild %d superseded during debounce", generation)
                return None

        visits, window, forest = await asyncio.to_thread(self._fetch_and_build, mode, start_time, end_time)
        if generation != self._generation:
            logger.debug("Discarding stale rebuild %d (latest is %d)", generation, self._generation)
            return None

        self.store.load(visits, window)
        self.latest_forest = forest
        self.latest_mode = mode
        return forest

    # ---- Internal ----

    def _fetch_and_build(self, mode: str, start_time, end_time):
        visits, window = self.store.fetch(start_time, end_time)
        return visits, window, self._build(mode, visits, None)

    def _build(self, mode: str, visits: list[Visit], now: int | None) -> list[TreeNode]:
        config = self.config
        if mode == "chronological":
            forest = DirectLinkTreeBuilder(config.direct).build(visits)
        elif mode == "aggregated":
            forest = AggregatedTreeBuilder(config.scoring).build(visits, now=now)
        elif mode == "enhanced":
            forest = EnhancedTreeBuilder(config.enhanced, self.tracker).build(visits)
        else:
            forest = TransitionRankedTreeBuilder(config.hierarchy).build(visits)

        if config.merge_consecutive and mode in _PER_VISIT_MODES:
            forest = merge_consecutive(forest)
        return forest


def _check_mode(mode: str) -> str:
    if mode not in VIEW_MODES:
        raise UnknownViewModeError(f"Unknown view mode {mode!r}; expected one of {', '.join(VIEW_MODES)}")
    return mode
