"""Tests for the Chrome history database reader."""

import shutil
import sqlite3
import tempfile
from unittest.mock import patch

import pytest

from history_tree.exceptions import HistoryReadError
from history_tree.history.reader import CHROME_EPOCH_OFFSET, ChromeHistoryReader
from history_tree.history.store import VisitStore

BASE_MS = 1_700_000_000_000


@pytest.fixture
def history_db(tmp_path):
    path = tmp_path / "History"
    conn = sqlite3.connect(str(path))
    conn.executescript(
        """
        CREATE TABLE urls (id INTEGER PRIMARY KEY, url TEXT, title TEXT);
        CREATE TABLE visits (
            id INTEGER PRIMARY KEY, url INTEGER, visit_time INTEGER,
            from_visit INTEGER, transition INTEGER
        );
        """
    )
    conn.executemany(
        "INSERT INTO urls (id, url, title) VALUES (?, ?, ?)",
        [
            (1, "https://example.com/", "Example"),
            (2, "https://example.com/docs", "Docs"),
            (3, "https://old.example.org/", "Old"),
        ],
    )
    ts = ChromeHistoryReader.ms_to_chrome_ts
    conn.executemany(
        "INSERT INTO visits (id, url, visit_time, from_visit, transition) VALUES (?, ?, ?, ?, ?)",
        [
            (10, 1, ts(BASE_MS), 0, 0x30000001),
            (11, 2, ts(BASE_MS + 5000), 10, 0),
            (12, 1, ts(BASE_MS + 9000), 0, 8),
            (13, 3, ts(BASE_MS - 10 * 86_400_000), 0, 0),
        ],
    )
    conn.commit()
    conn.close()
    return path


def test_timestamp_conversion():
    assert ChromeHistoryReader.ms_to_chrome_ts(0) == CHROME_EPOCH_OFFSET * 1_000_000
    assert ChromeHistoryReader.chrome_ts_to_ms(ChromeHistoryReader.ms_to_chrome_ts(BASE_MS)) == BASE_MS
    assert ChromeHistoryReader.chrome_ts_to_ms(None) is None


def test_search_returns_items_in_range(history_db):
    reader = ChromeHistoryReader(history_db)
    items = reader.search(BASE_MS, BASE_MS + 60_000)
    assert {item["url"] for item in items} == {"https://example.com/", "https://example.com/docs"}

    visits = reader.get_visits("https://example.com/docs")
    assert visits == [{
        "visit_id": "11",
        "visit_time": BASE_MS + 5000,
        "referring_visit_id": "10",
        "transition": 0,
    }]
    assert len(reader.get_visits("https://example.com/")) == 2


def test_search_removes_db_copy(history_db, tmp_path):
    copy = tmp_path / "copy.db"
    shutil.copy2(history_db, copy)
    with patch.object(ChromeHistoryReader, "_copy_db", return_value=copy):
        ChromeHistoryReader(history_db).search(BASE_MS, BASE_MS + 60_000)
    assert not copy.exists()
    assert history_db.exists()


def test_store_over_chrome_reader(history_db):
    store = VisitStore(ChromeHistoryReader(history_db))
    visits = store.ingest(BASE_MS, BASE_MS + 60_000)
    by_id = {v.visit_id: v for v in visits}
    assert [v.visit_id for v in visits] == ["12", "11", "10"]
    assert by_id["10"].transition == "typed"
    assert by_id["10"].referring_visit_id is None
    assert by_id["11"].referring_visit_id == "10"
    assert by_id["12"].transition == "reload"
    assert by_id["11"].title == "Docs"


def test_missing_database_raises(tmp_path):
    reader = ChromeHistoryReader(tmp_path / "nope" / "History")
    with pytest.raises(HistoryReadError, match="not found"):
        reader.search(0, BASE_MS)


def test_corrupt_database_raises(tmp_path):
    path = tmp_path / "History"
    path.write_bytes(b"this is not a sqlite database at all" * 100)
    with pytest.raises(HistoryReadError, match="Failed querying"):
        ChromeHistoryReader(path).search(0, BASE_MS)


def test_failed_copy_leaves_no_temp_file(history_db, tmp_path, monkeypatch):
    scratch = tmp_path / "scratch"
    scratch.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(scratch))
    with patch("history_tree.history.reader.shutil.copy2", side_effect=OSError("disk full")):
        with pytest.raises(HistoryReadError, match="disk full"):
            ChromeHistoryReader(history_db).search(0, BASE_MS)
    assert list(scratch.iterdir()) == []
