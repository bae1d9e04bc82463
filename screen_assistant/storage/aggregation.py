"""Batch aggregation of raw summary records.

A day's raw records are rolled up every ``AGGREGATION_BATCH_SIZE`` appends
(roughly five minutes at a one-second interval). The rollup ranks apps and
keywords by frequency, keeps the first few distinct activities, and flags
batches that contained issues.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence

from screen_assistant.catalogs import ERROR_ACTIONS
from screen_assistant.storage.models import AggregatedRecord, SummaryRecord

AGGREGATION_BATCH_SIZE = 300
TOP_APPS_N = 3
TOP_KEYWORDS_N = 10
MAX_MAIN_ACTIVITIES = 5

_UNKNOWN_ACTIVITY = "未知"


def should_aggregate(record_count: int, batch_size: int = AGGREGATION_BATCH_SIZE) -> bool:
    """True when the day's record count has just completed a batch."""
    return record_count > 0 and record_count % batch_size == 0


def top_ranked(counts: Counter[str], n: int) -> list[str]:
    """Return the ``n`` most frequent keys.

    Ties keep first-seen order: ``Counter`` preserves insertion order and
    ``most_common`` sorts stably.
    """
    return [key for key, _ in counts.most_common(n)]


def aggregate_records(records: Sequence[SummaryRecord]) -> AggregatedRecord:
    """Roll a chronological batch of records up into one ``AggregatedRecord``."""
    app_counts: Counter[str] = Counter()
    keyword_counts: Counter[str] = Counter()
    activities: list[str] = []
    error_messages: list[str] = []

    for record in records:
        app_counts[record.app] += 1
        keyword_counts.update(record.keywords)

        if record.action in ERROR_ACTIONS:
            error_messages.append(record.summary)

        if len(activities) < MAX_MAIN_ACTIVITIES and record.summary not in activities:
            activities.append(record.summary)

    top_apps = top_ranked(app_counts, TOP_APPS_N)
    has_errors = bool(error_messages)
    first_activity = activities[0] if activities else _UNKNOWN_ACTIVITY

    return AggregatedRecord(
        start_time=records[0].timestamp if records else "",
        end_time=records[-1].timestamp if records else "",
        summary=f"使用 {'、'.join(top_apps)} 进行了 {first_activity} 等操作",
        apps=top_apps,
        main_activities=activities,
        keywords=top_ranked(keyword_counts, TOP_KEYWORDS_N),
        record_count=len(records),
        has_errors=has_errors,
        error_summary="; ".join(error_messages) if has_errors else None,
    )
