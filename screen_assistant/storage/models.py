"""Persisted record types: raw summaries, batch aggregates, and the daily file."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S"
DATE_FORMAT = "%Y-%m-%d"


class SummaryRecord(BaseModel):
    """One analysed screen sample.

    ``timestamp`` is local time at second precision; its first ten
    characters are the date of the daily file that holds the record.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    timestamp: str
    summary: str
    app: str
    action: str
    keywords: list[str] = Field(default_factory=list)
    has_issue: bool = False
    issue_type: str = ""
    issue_summary: str = ""
    suggestion: str = ""
    confidence: float = 0.0
    detail: str = ""
    detail_ref: str = ""

    @property
    def date(self) -> str:
        return self.timestamp[:10]

    @property
    def time_of_day(self) -> str:
        """HH:MM:SS portion of the timestamp."""
        return self.timestamp[11:19] or self.timestamp


class AggregatedRecord(BaseModel):
    """Summary of one batch of raw records within a day."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    start_time: str
    end_time: str
    summary: str
    apps: list[str] = Field(default_factory=list)
    main_activities: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    record_count: int = 0
    has_errors: bool = False
    error_summary: str | None = None


class DailySummary(BaseModel):
    """Contents of ``summaries/<date>.json``."""

    model_config = ConfigDict(extra="ignore")

    date: str
    records: list[SummaryRecord] = Field(default_factory=list)
    aggregated: list[AggregatedRecord] = Field(default_factory=list)
    day_summary: str | None = None
