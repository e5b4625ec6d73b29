"""Abstract history data source and an in-memory implementation."""

from __future__ import annotations

from abc import ABC, abstractmethod

from history_tree.history.parser import to_epoch_ms


class HistorySource(ABC):
    """Abstract interface over a browser history backend.

    Mirrors the two browser primitives the visit store needs: a
    time-range search over history items and per-URL visit details.
    """

    @abstractmethod
    def search(self, start_time: int, end_time: int, max_results: int = 10000) -> list[dict]:
        """Return ``{url, title}`` items visited within the range."""
        ...

    @abstractmethod
    def get_visits(self, url: str) -> list[dict]:
        """Return visit details for a URL.

        Each detail carries ``visit_id``, ``visit_time``,
        ``referring_visit_id`` and ``transition``.
        """
        ...


class InMemoryHistorySource(HistorySource):
    """History source over a list of flat visit records.

    Records are dicts with ``url`` and ``title`` plus the visit detail keys.
    """

    def __init__(self, records: list[dict]):
        self._by_url: dict[str, list[dict]] = {}
        for record in records:
            url = record.get("url")
            if url:
                self._by_url.setdefault(url, []).append(record)

    def search(self, start_time: int, end_time: int, max_results: int = 10000) -> list[dict]:
        items = []
        for url, records in self._by_url.items():
            if len(items) >= max_results:
                break
            if any(start_time <= t <= end_time for t in self._times(records)):
                items.append({"url": url, "title": records[0].get("title") or ""})
        return items

    def get_visits(self, url: str) -> list[dict]:
        return [
            {k: v for k, v in record.items() if k not in ("url", "title")}
            for record in self._by_url.get(url, [])
        ]

    @staticmethod
    def _times(records: list[dict]):
        for record in records:
            raw_time = record.get("visit_time", record.get("visitTime"))
            try:
                yield to_epoch_ms(raw_time)
            except (TypeError, ValueError, OverflowError):
                continue
