"""Tests for the file-backed storage manager."""

from __future__ import annotations

import json
from datetime import timedelta

import pytest

from screen_assistant.errors import StorageError
from screen_assistant.storage.manager import StorageManager


def test_missing_day_is_empty(storage):
    assert storage.get_summaries("2024-01-01") == []
    daily = storage.load_daily("2024-01-01")
    assert daily.date == "2024-01-01"
    assert daily.aggregated == []
    assert daily.day_summary is None


def test_save_and_read_back(storage, make_record, now):
    record = make_record(when=now, keywords=[".py", "编辑"], detail="编辑器")
    storage.save_summary(record)

    records = storage.get_summaries("2024-05-14")
    assert records == [record]
    assert (storage.summaries_dir / "2024-05-14.json").exists()


def test_records_partitioned_by_date(storage, make_record, now):
    storage.save_summary(make_record(when=now))
    storage.save_summary(make_record(when=now + timedelta(days=1)))

    assert len(storage.get_summaries("2024-05-14")) == 1
    assert len(storage.get_summaries("2024-05-15")) == 1


def test_aggregates_every_full_batch(data_dir, make_record, now):
    storage = StorageManager(data_dir, batch_size=3)
    for i in range(7):
        storage.save_summary(make_record(when=now + timedelta(seconds=i)))

    daily = storage.load_daily("2024-05-14")
    assert len(daily.records) == 7
    assert [a.record_count for a in daily.aggregated] == [3, 3]
    assert daily.aggregated[1].start_time == daily.records[3].timestamp
    assert daily.aggregated[1].end_time == daily.records[5].timestamp


def test_default_batch_threshold(storage, make_record, now):
    for i in range(299):
        storage.save_summary(make_record(when=now + timedelta(seconds=i)))
    assert storage.load_daily("2024-05-14").aggregated == []

    storage.save_summary(make_record(when=now + timedelta(seconds=299)))
    aggregated = storage.load_daily("2024-05-14").aggregated
    assert len(aggregated) == 1
    assert aggregated[0].record_count == 300


def test_corrupt_day_replaced_on_save(storage, make_record, now):
    storage.summaries_dir.mkdir(parents=True)
    (storage.summaries_dir / "2024-05-14.json").write_text("{not json", encoding="utf-8")

    with pytest.raises(StorageError):
        storage.load_daily("2024-05-14")

    storage.save_summary(make_record(when=now))
    assert len(storage.get_summaries("2024-05-14")) == 1


def test_older_files_missing_optional_fields(storage):
    storage.summaries_dir.mkdir(parents=True)
    legacy = {
        "date": "2024-05-14",
        "records": [
            {
                "timestamp": "2024-05-14T08:00:00",
                "summary": "浏览网页",
                "app": "Chrome",
                "action": "active",
            }
        ],
    }
    (storage.summaries_dir / "2024-05-14.json").write_text(
        json.dumps(legacy, ensure_ascii=False), encoding="utf-8"
    )

    record = storage.get_summaries("2024-05-14")[0]
    assert record.keywords == []
    assert record.detail_ref == ""
    assert record.confidence == 0.0


def test_screenshot_path(storage, now):
    path = storage.screenshot_path(now.replace(microsecond=42_000))
    assert path.name == "20240514-103000-042.jpg"
    assert path.parent.is_dir()


def test_write_log_snapshot_sanitizes_prefix(storage, now):
    path = storage.write_log_snapshot("assistant alert/../x", "hello\n", now)
    assert path.name == "20240514-103000-000-assistantalertx.log"
    assert path.read_text(encoding="utf-8") == "hello\n"


def test_write_log_snapshot_empty_prefix(storage, now):
    path = storage.write_log_snapshot("***", "x", now)
    assert path.name.endswith("-log.log")
