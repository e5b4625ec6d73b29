"""Auxiliary navigation signals for the enhanced resolver.

The tracker consumes tab-lifecycle and navigation events recorded
alongside history and answers the questions the resolver asks about an
orphan visit: was it opened from another tab, was it a back/forward
step, and how do two URLs relate in the site hierarchy.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field

from history_tree.tree.config import EnhancedParams
from history_tree.tree.urls import count_matching_parts, split_url

logger = logging.getLogger(__name__)

MAX_TAB_HISTORY = 50


@dataclass(frozen=True)
class TabCreatedEvent:
    """A tab opened while another tab was active."""

    tab_id: int
    parent_tab_id: int
    parent_url: str
    created_time: int
    parent_title: str = ""


@dataclass(frozen=True)
class NavigationEvent:
    """A navigation starting in a tab's frame."""

    tab_id: int
    url: str
    timestamp: int
    transition_type: str = ""
    qualifiers: tuple[str, ...] = ()
    frame_id: int = 0

    @property
    def is_back_forward(self) -> bool:
        return "forward_back" in self.qualifiers

    @property
    def is_redirect(self) -> bool:
        return "client_redirect" in self.qualifiers or "server_redirect" in self.qualifiers


@dataclass
class NavigationHint:
    """Raw detector output before it is resolved to a parent visit."""

    relation_type: str
    confidence: float
    parent_url: str | None = None
    details: dict = field(default_factory=dict)


class NavigationTracker:
    """Keep per-tab navigation state and detect relations from it."""

    def __init__(self, params: EnhancedParams | None = None):
        self.params = params or EnhancedParams()
        self.tab_parents: dict[int, TabCreatedEvent] = {}
        self.tab_history: dict[int, deque[NavigationEvent]] = {}
        self.completed: dict[tuple[int, int], int] = {}

    # ---- Event intake ----

    def record_tab_created(self, event: TabCreatedEvent) -> None:
        if event.tab_id == event.parent_tab_id:
            return
        self.tab_parents[event.tab_id] = event
        logger.debug("Tab %s opened from tab %s (%s)", event.tab_id, event.parent_tab_id, event.parent_url)

    def record_tab_removed(self, tab_id: int) -> None:
        self.tab_parents.pop(tab_id, None)
        self.tab_history.pop(tab_id, None)
        self.completed = {key: t for key, t in self.completed.items() if key[0] != tab_id}

    def record_navigation(self, event: NavigationEvent) -> None:
        """Track main-frame navigations; subframes are ignored."""
        if event.frame_id != 0:
            return
        history = self.tab_history.setdefault(event.tab_id, deque(maxlen=MAX_TAB_HISTORY))
        history.append(event)

    def record_completed(self, tab_id: int, timestamp: int, completed_time: int) -> None:
        self.completed[(tab_id, timestamp)] = completed_time

    def navigation_history(self, tab_id: int) -> list[NavigationEvent]:
        return list(self.tab_history.get(tab_id, ()))

    # ---- Detectors ----

    def find_new_tab_parent(self, visit_time: int, tab_id: int | None = None) -> NavigationHint | None:
        """Parent page of a visit that opened in a fresh tab."""
        p = self.params
        if tab_id is not None and tab_id in self.tab_parents:
            event = self.tab_parents[tab_id]
            elapsed = abs(visit_time - event.created_time)
            if elapsed < p.new_tab_window_ms:
                return NavigationHint(
                    "new_tab",
                    max(0.5, 1 - elapsed / p.new_tab_window_ms),
                    parent_url=event.parent_url,
                    details={"parent_tab_id": event.parent_tab_id, "elapsed_ms": elapsed},
                )

        for event in self.tab_parents.values():
            elapsed = abs(visit_time - event.created_time)
            if elapsed < p.new_tab_any_tab_window_ms:
                return NavigationHint(
                    "new_tab_time_based",
                    max(0.3, 1 - elapsed / p.new_tab_any_tab_window_ms),
                    parent_url=event.parent_url,
                    details={"parent_tab_id": event.parent_tab_id, "elapsed_ms": elapsed},
                )
        return None

    def detect_back_navigation(self, url: str, visit_time: int, tab_id: int | None = None) -> NavigationHint | None:
        """Back/forward step to ``url`` in the same tab around ``visit_time``."""
        if tab_id is None:
            return None
        for event in reversed(self.tab_history.get(tab_id, ())):
            if not event.is_back_forward or event.url != url:
                continue
            if abs(visit_time - event.timestamp) < self.params.back_forward_window_ms:
                return NavigationHint(
                    "back_forward",
                    self.params.back_forward_confidence,
                    details={"navigation_time": event.timestamp},
                )
        return None


def detect_hierarchy_navigation(from_url: str, to_url: str) -> NavigationHint | None:
    """Relation between two same-host URLs whose paths nest."""
    src = split_url(from_url)
    dst = split_url(to_url)
    if src is None or dst is None or src.hostname != dst.hostname:
        return None

    if src.depth > dst.depth and count_matching_parts(dst.parts, src.parts) == dst.depth:
        diff = src.depth - dst.depth
        return NavigationHint(
            "hierarchy_up",
            min(0.9, 0.5 + diff * 0.2),
            parent_url=from_url,
            details={"hierarchy_diff": diff},
        )
    if dst.depth > src.depth and count_matching_parts(src.parts, dst.parts) == src.depth:
        diff = dst.depth - src.depth
        return NavigationHint(
            "hierarchy_down",
            min(0.8, 0.4 + diff * 0.15),
            parent_url=from_url,
            details={"hierarchy_diff": diff},
        )
    return None
