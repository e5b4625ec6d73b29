"""In-memory visit collection built from a history source."""

from __future__ import annotations

import logging
import os
import time
from datetime import datetime

from history_tree.exceptions import HistorySourceError, InvalidTimeWindowError
from history_tree.history.models import HistoryStats, Visit
from history_tree.history.parser import parse_visit, to_epoch_ms
from history_tree.history.source import HistorySource

logger = logging.getLogger(__name__)

DEFAULT_LOOKBACK_DAYS = int(os.environ.get("HISTORY_TREE_LOOKBACK_DAYS", "7"))
DEFAULT_MAX_RESULTS = int(os.environ.get("HISTORY_TREE_MAX_RESULTS", "10000"))

DAY_MS = 24 * 60 * 60 * 1000


def now_ms() -> int:
    return int(time.time() * 1000)


def resolve_window(
    start_time=None,
    end_time=None,
    days: int = DEFAULT_LOOKBACK_DAYS,
    now: int | None = None,
) -> tuple[int, int]:
    """Resolve optional bounds to an inclusive ``(start, end)`` ms window.

    Missing bounds default to a trailing ``days`` window ending now.
    """
    try:
        end = to_epoch_ms(end_time) if end_time is not None else (now if now is not None else now_ms())
        start = to_epoch_ms(start_time) if start_time is not None else end - days * DAY_MS
    except (TypeError, ValueError, OverflowError) as e:
        raise InvalidTimeWindowError(f"Invalid time window bound: {e}") from e
    if start > end:
        raise InvalidTimeWindowError(f"Window start {start} is after end {end}")
    return start, end


def ingest_records(records, start_time=None, end_time=None, now: int | None = None) -> list[Visit]:
    """Normalize flat visit records into a deduplicated, newest-first list.

    Malformed records are skipped. Records outside the inclusive window
    are dropped.
    """
    start, end = resolve_window(start_time, end_time, now=now)
    seen: set[str] = set()
    visits: list[Visit] = []
    skipped = 0

    for raw in records:
        visit = parse_visit(raw) if isinstance(raw, dict) else None
        if visit is None:
            skipped += 1
            logger.debug("Skipping malformed visit record: %r", raw)
            continue
        if not start <= visit.visit_time <= end:
            continue
        if visit.visit_id in seen:
            continue
        seen.add(visit.visit_id)
        visits.append(visit)

    visits.sort(key=lambda v: (-v.visit_time, v.visit_id))
    logger.info("Ingested %d visits, skipped %d malformed records", len(visits), skipped)
    return visits


def summarize_visits(visits, now: int | None = None) -> HistoryStats:
    """Distinct sites, total visits and visits since local midnight."""
    reference = datetime.fromtimestamp((now if now is not None else now_ms()) / 1000)
    midnight = int(reference.replace(hour=0, minute=0, second=0, microsecond=0).timestamp() * 1000)
    visits = list(visits)
    return HistoryStats(
        total_sites=len({v.url for v in visits}),
        total_visits=len(visits),
        today_visits=sum(1 for v in visits if v.visit_time >= midnight),
    )


class VisitStore:
    """Fetch visits from a history source and retain them for rebuilds.

    Args:
        source: The history backend to query.
        max_results: Maximum history items requested per search.
    """

    def __init__(self, source: HistorySource, max_results: int = DEFAULT_MAX_RESULTS) -> None:
        self.source = source
        self.max_results = max_results
        self._visits: tuple[Visit, ...] = ()
        self.window: tuple[int, int] | None = None

    @property
    def visits(self) -> tuple[Visit, ...]:
        """Immutable snapshot of the last ingestion, newest first."""
        return self._visits

    def fetch(self, start_time=None, end_time=None, now: int | None = None) -> tuple[list[Visit], tuple[int, int]]:
        """Fetch and normalize visits without retaining them.

        Returns the visits and the resolved window.

        Raises:
            HistorySourceError: The source failed.
        """
        start, end = resolve_window(start_time, end_time, now=now)
        records = self._fetch_records(start, end)
        return ingest_records(records, start, end), (start, end)

    def ingest(self, start_time=None, end_time=None, now: int | None = None) -> list[Visit]:
        """Fetch visits within the window and retain them.

        On failure the previously retained collection is kept.
        """
        visits, window = self.fetch(start_time, end_time, now=now)
        self.load(visits, window)
        return visits

    def load(self, visits, window: tuple[int, int] | None = None) -> None:
        """Replace the retained collection with already-parsed visits."""
        self._visits = tuple(sorted(visits, key=lambda v: (-v.visit_time, v.visit_id)))
        self.window = window
        logger.info("Visit store holds %d visits", len(self._visits))

    def _fetch_records(self, start: int, end: int) -> list[dict]:
        try:
            items = self.source.search(start, end, self.max_results)
            records = []
            for item in items:
                url = item.get("url")
                for detail in self.source.get_visits(url):
                    records.append({**detail, "url": url, "title": item.get("title")})
            return records
        except HistorySourceError:
            raise
        except Exception as e:
            logger.warning("History fetch failed: %s", e)
            raise HistorySourceError(f"History fetch failed: {e}") from e
