"""Parse raw history rows into normalized Visit records."""

from __future__ import annotations

import logging
from datetime import datetime
from urllib.parse import urlparse

import dateutil.parser as dateparser

from history_tree.history.models import TRANSITION_TYPES, Visit

logger = logging.getLogger(__name__)

FAVICON_SERVICE = "https://www.google.com/s2/favicons?domain={host}&sz=16"
PLACEHOLDER_FAVICON = (
    "data:image/svg+xml,<svg xmlns=\"http://www.w3.org/2000/svg\" viewBox=\"0 0 16 16\">"
    "<rect width=\"16\" height=\"16\" fill=\"%23f1f3f4\"/>"
    "<path d=\"M4 4h8v8H4z\" fill=\"%23666\"/></svg>"
)

_NO_REFERRER = {"", "0", "None", "null"}


def parse_visit(raw: dict) -> Visit | None:
    """Normalize one raw visit row; returns None for malformed rows.

    ``raw`` is a history item (``url``, ``title``) merged with one of its
    visit details. Both snake_case and camelCase detail keys are accepted.
    """
    url = (raw.get("url") or "").strip()
    if not url:
        return None
    try:
        urlparse(url)
    except ValueError:
        logger.debug("Skipping visit with unparseable URL %r", url)
        return None

    visit_id = _first(raw, "visit_id", "visitId")
    if visit_id is None or str(visit_id).strip() == "":
        return None

    try:
        visit_time = to_epoch_ms(_first(raw, "visit_time", "visitTime"))
    except (TypeError, ValueError, OverflowError):
        logger.debug("Skipping visit %s with bad timestamp", visit_id)
        return None

    referrer = _first(raw, "referring_visit_id", "referringVisitId")
    referrer = None if referrer is None or str(referrer).strip() in _NO_REFERRER else str(referrer).strip()

    tab_id = _first(raw, "tab_id", "tabId")
    try:
        tab_id = int(tab_id) if tab_id is not None else None
    except (TypeError, ValueError):
        tab_id = None

    title = (raw.get("title") or "").strip() or url

    return Visit(
        visit_id=str(visit_id).strip(),
        url=url,
        title=title,
        visit_time=visit_time,
        referring_visit_id=referrer,
        transition=normalize_transition(raw.get("transition")),
        favicon=raw.get("favicon") or favicon_url(url),
        tab_id=tab_id,
    )


def to_epoch_ms(value) -> int:
    """Convert ms-epoch numbers, datetimes and date strings to epoch ms."""
    if value is None or isinstance(value, bool):
        raise TypeError(f"Not a timestamp: {value!r}")
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, datetime):
        return int(value.timestamp() * 1000)
    text = str(value).strip()
    try:
        return int(float(text))
    except ValueError:
        pass
    return int(dateparser.parse(text).timestamp() * 1000)


def normalize_transition(value) -> str:
    """Map Chrome integer transitions or string tags to a lowercase tag."""
    if value is None:
        return ""
    if isinstance(value, int) and not isinstance(value, bool):
        core = value & 0xFF
        return TRANSITION_TYPES[core] if core < len(TRANSITION_TYPES) else ""
    text = str(value).strip().lower()
    if text.isdigit():
        return normalize_transition(int(text))
    return text


def favicon_url(url: str) -> str:
    try:
        host = urlparse(url).hostname
    except ValueError:
        host = None
    if not host:
        return PLACEHOLDER_FAVICON
    return FAVICON_SERVICE.format(host=host)


def _first(raw: dict, *keys: str):
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return None
