"""Unified exception hierarchy for history-tree."""


class HistoryTreeError(Exception):
    """Base exception for all history-tree errors."""


# Data source
class HistorySourceError(HistoryTreeError):
    """The history data source was unreachable or failed mid-fetch."""


class HistoryReadError(HistorySourceError):
    """Failed to read a local browser history database."""


# Caller input
class UnknownViewModeError(HistoryTreeError, ValueError):
    """Requested tree view mode does not exist."""


class InvalidTimeWindowError(HistoryTreeError, ValueError):
    """Time window bounds are unparseable or out of order."""
