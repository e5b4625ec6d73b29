"""Visit ingestion: history sources, record parsing and the visit store."""

from history_tree.history.models import HistoryStats, Visit
from history_tree.history.parser import parse_visit, to_epoch_ms
from history_tree.history.reader import ChromeHistoryReader
from history_tree.history.source import HistorySource, InMemoryHistorySource
from history_tree.history.store import VisitStore, ingest_records, summarize_visits

__all__ = [
    "Visit",
    "HistoryStats",
    "parse_visit",
    "to_epoch_ms",
    "HistorySource",
    "InMemoryHistorySource",
    "ChromeHistoryReader",
    "VisitStore",
    "ingest_records",
    "summarize_visits",
]
