"""Tests for visit record parsing."""

from datetime import datetime, timezone

import pytest

from history_tree.history.parser import (
    PLACEHOLDER_FAVICON,
    favicon_url,
    normalize_transition,
    parse_visit,
    to_epoch_ms,
)


def test_parse_snake_case_record():
    visit = parse_visit({
        "url": "https://example.com/a",
        "title": "A page",
        "visit_id": 12,
        "visit_time": 1_700_000_000_000,
        "referring_visit_id": "0",
        "transition": 0,
    })
    assert visit.visit_id == "12"
    assert visit.title == "A page"
    assert visit.visit_time == 1_700_000_000_000
    assert visit.referring_visit_id is None
    assert visit.transition == "link"
    assert "example.com" in visit.favicon


def test_parse_camel_case_record():
    visit = parse_visit({
        "url": "https://example.com/b",
        "title": "B",
        "visitId": "7",
        "visitTime": 1500.0,
        "referringVisitId": 3,
        "transition": "Typed",
        "tabId": "4",
    })
    assert visit.visit_id == "7"
    assert visit.visit_time == 1500
    assert visit.referring_visit_id == "3"
    assert visit.transition == "typed"
    assert visit.tab_id == 4


@pytest.mark.parametrize("referrer", ["", "0", "None", "null", None])
def test_missing_referrer_markers(referrer):
    visit = parse_visit({
        "url": "https://example.com/",
        "visit_id": "1",
        "visit_time": 10,
        "referring_visit_id": referrer,
    })
    assert visit.referring_visit_id is None


def test_title_defaults_to_url():
    visit = parse_visit({"url": "https://example.com/x", "title": "  ", "visit_id": "1", "visit_time": 10})
    assert visit.title == "https://example.com/x"


def test_malformed_records_return_none():
    assert parse_visit({"visit_id": "1", "visit_time": 10}) is None
    assert parse_visit({"url": "https://example.com/", "visit_time": 10}) is None
    assert parse_visit({"url": "https://example.com/", "visit_id": "1"}) is None
    assert parse_visit({"url": "https://example.com/", "visit_id": "1", "visit_time": "not a date"}) is None
    assert parse_visit({"url": "http://[::1", "visit_id": "1", "visit_time": 10}) is None


def test_bad_tab_id_is_dropped():
    visit = parse_visit({"url": "https://example.com/", "visit_id": "1", "visit_time": 10, "tab_id": "abc"})
    assert visit.tab_id is None


def test_to_epoch_ms_accepts_common_forms():
    assert to_epoch_ms(1500) == 1500
    assert to_epoch_ms(1500.9) == 1500
    assert to_epoch_ms("1500") == 1500
    assert to_epoch_ms(datetime(2024, 1, 1, tzinfo=timezone.utc)) == 1_704_067_200_000
    assert to_epoch_ms("2024-01-01T00:00:00Z") == 1_704_067_200_000


def test_to_epoch_ms_rejects_none_and_bool():
    with pytest.raises(TypeError):
        to_epoch_ms(None)
    with pytest.raises(TypeError):
        to_epoch_ms(True)


def test_normalize_transition():
    # Qualifier bits above the core type are ignored.
    assert normalize_transition(0x30000001) == "typed"
    assert normalize_transition(8) == "reload"
    assert normalize_transition("7") == "form_submit"
    assert normalize_transition(" Reload ") == "reload"
    assert normalize_transition(99) == ""
    assert normalize_transition(None) == ""


def test_favicon_url():
    assert favicon_url("https://github.com/user/repo") == (
        "https://www.google.com/s2/favicons?domain=github.com&sz=16"
    )
    assert favicon_url("not a url") == PLACEHOLDER_FAVICON
