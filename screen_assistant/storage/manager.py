"""File-backed storage for analysed screen history.

Layout under the data directory::

    summaries/<YYYY-MM-DD>.json   one DailySummary per day
    screenshots/<stamp>.jpg       saved frames referenced by detail_ref
    logs/<stamp>-<prefix>.log     plain-text snapshots (e.g. emitted alerts)

Each day file is rewritten as a whole on every append. Aggregation runs
synchronously inside ``save_summary`` whenever the day's record count
completes a batch, so it depends only on how many records exist, never on
wall-clock time. The capture loop is the only writer.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from pathlib import Path

from pydantic import ValidationError

from screen_assistant.config.profiles import sanitize_log_prefix
from screen_assistant.errors import StorageError
from screen_assistant.storage.aggregation import (
    AGGREGATION_BATCH_SIZE,
    aggregate_records,
    should_aggregate,
)
from screen_assistant.storage.models import (
    DATE_FORMAT,
    TIMESTAMP_FORMAT,
    DailySummary,
    SummaryRecord,
)
from screen_assistant.storage.search import (
    TODAY_RECENT_RECORDS,
    RangeKind,
    ResultSource,
    SearchQuery,
    SearchResult,
)

logger = logging.getLogger(__name__)

SUMMARIES_DIRNAME = "summaries"
SCREENSHOTS_DIRNAME = "screenshots"
LOGS_DIRNAME = "logs"


class StorageManager:
    """Reads and writes the per-day summary files."""

    def __init__(
        self,
        data_dir: Path,
        batch_size: int = AGGREGATION_BATCH_SIZE,
    ) -> None:
        self.data_dir = Path(data_dir)
        self.batch_size = batch_size

    @property
    def summaries_dir(self) -> Path:
        return self.data_dir / SUMMARIES_DIRNAME

    def screenshots_dir(self) -> Path:
        return self._ensure_dir(SCREENSHOTS_DIRNAME)

    def logs_dir(self) -> Path:
        return self._ensure_dir(LOGS_DIRNAME)

    def _ensure_dir(self, name: str) -> Path:
        path = self.data_dir / name
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to create directory {path}: {e}") from e
        return path

    def _day_path(self, date: str) -> Path:
        return self.summaries_dir / f"{date}.json"

    # ------------------------------------------------------------------
    # Raw records
    # ------------------------------------------------------------------

    def get_summaries(self, date: str) -> list[SummaryRecord]:
        """Return the raw records of ``date`` in append order."""
        return self.load_daily(date).records

    def load_daily(self, date: str) -> DailySummary:
        """Load a day file. A missing file is an empty day, not an error."""
        path = self._day_path(date)
        if not path.exists():
            return DailySummary(date=date)
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}") from e
        try:
            return DailySummary.model_validate_json(content)
        except ValidationError as e:
            raise StorageError(f"Failed to parse {path}: {e}") from e

    def save_summary(self, record: SummaryRecord) -> None:
        """Append a record to its day file, aggregating when a batch completes."""
        date = record.date
        self._ensure_dir(SUMMARIES_DIRNAME)

        try:
            daily = self.load_daily(date)
        except StorageError:
            # A corrupt day file is replaced rather than blocking all writes
            logger.warning("Day file for %s is unreadable, starting a new one", date)
            daily = DailySummary(date=date)

        daily.records.append(record)

        if should_aggregate(len(daily.records), self.batch_size):
            batch = daily.records[-self.batch_size :]
            aggregated = aggregate_records(batch)
            daily.aggregated.append(aggregated)
            logger.info(
                "Aggregated %d records for %s (%s ~ %s)",
                aggregated.record_count,
                date,
                aggregated.start_time,
                aggregated.end_time,
            )

        path = self._day_path(date)
        try:
            path.write_text(daily.model_dump_json(indent=2), encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Failed to write {path}: {e}") from e

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def screenshot_path(self, now: datetime) -> Path:
        """Path for a frame captured at ``now`` (millisecond resolution)."""
        filename = f"{now:%Y%m%d-%H%M%S}-{now.microsecond // 1000:03d}.jpg"
        return self.screenshots_dir() / filename

    def write_log_snapshot(
        self, prefix: str, content: str, now: datetime | None = None
    ) -> Path:
        """Write ``content`` to a new timestamped file under ``logs/``."""
        now = now or datetime.now()
        filename = (
            f"{now:%Y%m%d-%H%M%S}-{now.microsecond // 1000:03d}-"
            f"{sanitize_log_prefix(prefix)}.log"
        )
        path = self.logs_dir() / filename
        try:
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Failed to write log {path}: {e}") from e
        return path

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def smart_search(
        self, query: SearchQuery, now: datetime | None = None
    ) -> SearchResult:
        """Answer ``query`` from the raw or aggregated tier.

        - recent N minutes: today's raw records newer than the cutoff
        - today with keywords: all of today's raw records that match
        - today without keywords: the latest raw records plus today's aggregates
        - last N days: aggregates of today and the N-1 days before it
        """
        now = now or datetime.now()
        today = now.strftime(DATE_FORMAT)
        time_range = query.time_range

        if time_range.kind == RangeKind.RECENT:
            cutoff = (now - timedelta(minutes=time_range.amount)).strftime(
                TIMESTAMP_FORMAT
            )
            records = [r for r in self.get_summaries(today) if r.timestamp >= cutoff]
            return SearchResult(
                records=query.filter(records),
                source=ResultSource.RAW,
                include_detail=query.include_detail,
            )

        if time_range.kind == RangeKind.TODAY:
            daily = self.load_daily(today)
            if query.keywords:
                return SearchResult(
                    records=query.filter(daily.records),
                    source=ResultSource.KEYWORD,
                    include_detail=query.include_detail,
                )
            return SearchResult(
                records=daily.records[-TODAY_RECENT_RECORDS:],
                aggregated=daily.aggregated,
                source=ResultSource.AGGREGATED,
                include_detail=query.include_detail,
            )

        aggregated = []
        for offset in range(time_range.amount):
            date = (now - timedelta(days=offset)).strftime(DATE_FORMAT)
            try:
                aggregated.extend(self.load_daily(date).aggregated)
            except StorageError as e:
                logger.warning("Skipping unreadable day %s: %s", date, e)
        return SearchResult(
            aggregated=aggregated,
            source=ResultSource.HISTORY,
            include_detail=query.include_detail,
        )
