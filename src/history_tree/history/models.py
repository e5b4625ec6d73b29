"""Data models for the visit ingestion layer."""

from __future__ import annotations

from dataclasses import dataclass

# Chrome core transition types, indexed by ``transition & 0xFF``.
TRANSITION_TYPES = (
    "link",
    "typed",
    "auto_bookmark",
    "auto_subframe",
    "manual_subframe",
    "generated",
    "auto_toplevel",
    "form_submit",
    "reload",
    "keyword",
    "keyword_generated",
)


@dataclass(frozen=True)
class Visit:
    """One timestamped navigation to a URL."""

    visit_id: str
    url: str
    title: str
    visit_time: int  # ms since epoch
    referring_visit_id: str | None = None
    transition: str = ""
    favicon: str = ""
    tab_id: int | None = None


@dataclass(frozen=True)
class HistoryStats:
    """Counts over an ingested visit collection."""

    total_sites: int
    total_visits: int
    today_visits: int
