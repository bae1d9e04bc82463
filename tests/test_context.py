"""Tests for the recent-history prompt context."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import MagicMock

from screen_assistant.errors import StorageError
from screen_assistant.storage.context import (
    EMPTY_CONTEXT_TEXT,
    build_recent_summary_context,
)
from screen_assistant.storage.search import TRUNCATION_MARKER


def _fill(storage, make_record, now, count, seconds_apart=10):
    for i in range(count):
        when = now - timedelta(seconds=seconds_apart * (count - 1 - i))
        storage.save_summary(
            make_record(when=when, summary=f"step {i}", detail=f"detail {i}")
        )


def test_empty_when_no_records(storage, now):
    assert build_recent_summary_context(storage, 8, 3, 10_000, now) == EMPTY_CONTEXT_TEXT


def test_ignores_records_older_than_window(storage, make_record, now):
    storage.save_summary(make_record(when=now - timedelta(minutes=5)))
    assert build_recent_summary_context(storage, 8, 3, 10_000, now) == EMPTY_CONTEXT_TEXT


def test_latest_items_in_order_with_detail_on_newest(storage, make_record, now):
    _fill(storage, make_record, now, 5)
    text = build_recent_summary_context(storage, 3, 1, 10_000, now)
    assert text.splitlines() == [
        "- 10:29:40 [Visual Studio Code] step 2",
        "- 10:29:50 [Visual Studio Code] step 3",
        "- 10:30:00 [Visual Studio Code] step 4",
        "  细节: detail 4",
    ]


def test_unknown_app_omitted(storage, make_record, now):
    storage.save_summary(make_record(when=now, app="Unknown", summary="idle"))
    text = build_recent_summary_context(storage, 8, 0, 10_000, now)
    assert text == "- 10:30:00 idle"


def test_max_items_clamped_to_at_least_one(storage, make_record, now):
    _fill(storage, make_record, now, 3)
    text = build_recent_summary_context(storage, 0, 0, 10_000, now)
    assert text.splitlines() == ["- 10:30:00 [Visual Studio Code] step 2"]


def test_detail_limit_capped_by_max_items(storage, make_record, now):
    _fill(storage, make_record, now, 4)
    text = build_recent_summary_context(storage, 2, 10, 10_000, now)
    assert text.count("细节:") == 2


def test_bounded_by_max_chars(storage, make_record, now):
    _fill(storage, make_record, now, 10, seconds_apart=5)
    text = build_recent_summary_context(storage, 10, 10, 60, now)
    assert len(text) <= 60
    assert text.endswith(TRUNCATION_MARKER)


def test_storage_error_yields_empty_context(now):
    storage = MagicMock()
    storage.get_summaries.side_effect = StorageError("disk gone")
    assert build_recent_summary_context(storage, 8, 3, 10_000, now) == EMPTY_CONTEXT_TEXT
