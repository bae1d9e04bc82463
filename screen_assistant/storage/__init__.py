"""Tiered, per-day history storage and context retrieval."""

from screen_assistant.storage.aggregation import AGGREGATION_BATCH_SIZE, aggregate_records
from screen_assistant.storage.context import build_recent_summary_context
from screen_assistant.storage.manager import StorageManager
from screen_assistant.storage.models import AggregatedRecord, DailySummary, SummaryRecord
from screen_assistant.storage.search import SearchQuery, SearchResult, TimeRange

__all__ = [
    "AGGREGATION_BATCH_SIZE",
    "AggregatedRecord",
    "DailySummary",
    "SearchQuery",
    "SearchResult",
    "StorageManager",
    "SummaryRecord",
    "TimeRange",
    "aggregate_records",
    "build_recent_summary_context",
]
