"""Read-only history source over a Chrome ``History`` database."""

from __future__ import annotations

import logging
import shutil
import sqlite3
import tempfile
from pathlib import Path

from history_tree.exceptions import HistoryReadError
from history_tree.history.source import HistorySource

logger = logging.getLogger(__name__)

CHROME_BASE_PATH = Path.home() / "Library" / "Application Support" / "Google" / "Chrome"
DEFAULT_HISTORY_PATH = CHROME_BASE_PATH / "Default" / "History"

# Seconds from 1601-01-01 to 1970-01-01 (Chrome epoch).
CHROME_EPOCH_OFFSET = 11644473600


class ChromeHistoryReader(HistorySource):
    """History source backed by a Chrome profile's SQLite history.

    ``search`` snapshots the database and caches visit details for the
    returned URLs; ``get_visits`` serves from that cache.

    Args:
        history_path: Path to the profile's ``History`` file.
    """

    def __init__(self, history_path: Path | str | None = None) -> None:
        self.history_path = Path(history_path) if history_path else DEFAULT_HISTORY_PATH
        self._visits_by_url: dict[str, list[dict]] = {}

    def search(self, start_time: int, end_time: int, max_results: int = 10000) -> list[dict]:
        if not self.history_path.exists():
            logger.warning("Chrome history DB not found at %s", self.history_path)
            raise HistoryReadError(f"Chrome history DB not found at {self.history_path}")

        db_copy = self._copy_db(self.history_path)
        conn: sqlite3.Connection | None = None
        try:
            conn = sqlite3.connect(str(db_copy))
            conn.row_factory = sqlite3.Row
            rows = conn.execute(
                """
                SELECT
                    v.id AS visit_id,
                    v.visit_time AS visit_time,
                    v.from_visit AS from_visit,
                    v.transition AS transition,
                    COALESCE(u.url, '') AS url,
                    COALESCE(u.title, '') AS title
                FROM visits v
                JOIN urls u ON u.id = v.url
                WHERE v.visit_time >= ? AND v.visit_time <= ?
                ORDER BY v.visit_time DESC
                """,
                (self.ms_to_chrome_ts(start_time), self.ms_to_chrome_ts(end_time)),
            ).fetchall()
        except sqlite3.Error as e:
            logger.warning("Failed querying Chrome history (%s): %s", self.history_path, e)
            raise HistoryReadError(f"Failed querying Chrome history: {e}") from e
        finally:
            if conn is not None:
                conn.close()
            db_copy.unlink(missing_ok=True)

        items: dict[str, dict] = {}
        self._visits_by_url = {}
        for row in rows:
            url = row["url"]
            if url not in items:
                if len(items) >= max_results:
                    continue
                items[url] = {"url": url, "title": row["title"]}
            visit_time = self.chrome_ts_to_ms(row["visit_time"])
            if visit_time is None:
                continue
            self._visits_by_url.setdefault(url, []).append({
                "visit_id": str(row["visit_id"]),
                "visit_time": visit_time,
                "referring_visit_id": str(row["from_visit"] or 0),
                "transition": int(row["transition"] or 0),
            })

        return list(items.values())

    def get_visits(self, url: str) -> list[dict]:
        return list(self._visits_by_url.get(url, []))

    @staticmethod
    def _copy_db(path: Path) -> Path:
        """Chrome locks History DB; query a temporary copy instead."""
        tmp_path = None
        try:
            with tempfile.NamedTemporaryFile(prefix="chrome-history-", suffix=".db", delete=False) as tmp:
                tmp_path = Path(tmp.name)
            shutil.copy2(path, tmp_path)
            return tmp_path
        except OSError as e:
            if tmp_path is not None:
                tmp_path.unlink(missing_ok=True)
            logger.warning("Failed to copy Chrome history DB %s: %s", path, e)
            raise HistoryReadError(f"Cannot copy Chrome history DB: {e}") from e

    @staticmethod
    def chrome_ts_to_ms(ts: int | None) -> int | None:
        if ts is None:
            return None
        try:
            return int(ts) // 1000 - CHROME_EPOCH_OFFSET * 1000
        except (TypeError, ValueError):
            return None

    @staticmethod
    def ms_to_chrome_ts(ms: int) -> int:
        return (int(ms) + CHROME_EPOCH_OFFSET * 1000) * 1000
