"""Search queries over stored history and character-budgeted context rendering.

A query picks a tier from its time range: recent minutes and keyword
searches read raw records, "today" mixes the latest raw records with the
day's aggregates, and multi-day ranges read aggregates only. The result is
rendered into a text block that never exceeds the caller's character budget;
when lines have to be dropped a truncation marker says so.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import StrEnum

from screen_assistant.storage.models import AggregatedRecord, SummaryRecord

NO_DATA_TEXT = "目前没有相关的操作记录。"
TRUNCATION_MARKER = "...(更多记录已省略)"
OVERVIEW_HEADER = "## 操作概要"
DETAIL_HEADER = "## 详细记录"

# Raw records returned alongside aggregates for an unfiltered "today" query
TODAY_RECENT_RECORDS = 20


class RangeKind(StrEnum):
    RECENT = "recent"
    TODAY = "today"
    DAYS = "days"


class ResultSource(StrEnum):
    """Which tier answered a query. Values are shown to the analyzer."""

    RAW = "原始记录"
    KEYWORD = "关键词搜索"
    AGGREGATED = "聚合记录"
    HISTORY = "历史聚合"


@dataclass(frozen=True)
class TimeRange:
    """Time window of a query.

    Use the constructors: ``TimeRange.recent(minutes)``, ``TimeRange.today()``,
    ``TimeRange.days(n)``.
    """

    kind: RangeKind
    amount: int = 0

    @classmethod
    def recent(cls, minutes: int) -> TimeRange:
        return cls(RangeKind.RECENT, max(minutes, 0))

    @classmethod
    def today(cls) -> TimeRange:
        return cls(RangeKind.TODAY)

    @classmethod
    def days(cls, days: int) -> TimeRange:
        return cls(RangeKind.DAYS, max(days, 0))


@dataclass
class SearchQuery:
    time_range: TimeRange
    keywords: list[str] = field(default_factory=list)
    include_detail: bool = False

    def matches_keywords(self, record: SummaryRecord) -> bool:
        """Case-insensitive substring match of any keyword.

        Searches summary, app, detail, and keyword tags. A query without
        keywords matches every record.
        """
        if not self.keywords:
            return True

        text = " ".join(
            [record.summary, record.app, record.detail, " ".join(record.keywords)]
        ).lower()
        return any(kw.lower() in text for kw in self.keywords)

    def filter(self, records: Iterable[SummaryRecord]) -> list[SummaryRecord]:
        return [r for r in records if self.matches_keywords(r)]


@dataclass
class SearchResult:
    records: list[SummaryRecord] = field(default_factory=list)
    aggregated: list[AggregatedRecord] = field(default_factory=list)
    source: str = ""
    include_detail: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.records and not self.aggregated

    def render_lines(self, include_detail: bool) -> list[str]:
        """Render the full, unbudgeted context as a list of lines."""
        lines: list[str] = []

        if self.aggregated:
            lines += [OVERVIEW_HEADER, ""]
            for agg in self.aggregated:
                lines.append(
                    f"- [{agg.start_time[11:16]} ~ {agg.end_time[11:16]}] {agg.summary}"
                )
                if agg.error_summary:
                    lines.append(f"  ⚠️ 错误: {agg.error_summary}")
            lines.append("")

        if self.records:
            lines += [DETAIL_HEADER, ""]
            for record in self.records:
                lines.append(f"- [{record.time_of_day}] {record.summary}")
                if include_detail and record.detail:
                    lines.append(f"  细节: {flatten(record.detail)}")

        return lines

    def build_context(self, max_chars: int, include_detail: bool | None = None) -> str:
        """Render the result within ``max_chars`` characters.

        ``include_detail`` defaults to the flag of the query that produced the
        result. An empty result renders as ``NO_DATA_TEXT``.
        """
        if self.is_empty:
            return NO_DATA_TEXT
        if include_detail is None:
            include_detail = self.include_detail
        return fit_lines(self.render_lines(include_detail), max_chars)


def flatten(text: str) -> str:
    """Collapse a multi-line text onto one line."""
    return text.replace("\r\n", " ").replace("\n", " ")


def fit_lines(lines: Sequence[str], max_chars: int) -> str:
    """Join ``lines`` with newlines, keeping the result within ``max_chars``.

    When everything fits the lines are returned unchanged. Otherwise whole
    lines are kept for as long as they, plus ``TRUNCATION_MARKER`` on its own
    line, still fit; the marker then closes the text. A line is never cut.
    If not even the marker fits, the result is empty.
    """
    full = "\n".join(lines)
    if len(full) <= max_chars:
        return full

    kept: list[str] = []
    used = 0
    for line in lines:
        sep = 1 if kept else 0
        if used + sep + len(line) + 1 + len(TRUNCATION_MARKER) > max_chars:
            break
        kept.append(line)
        used += sep + len(line)

    if not kept:
        return TRUNCATION_MARKER if len(TRUNCATION_MARKER) <= max_chars else ""
    kept.append(TRUNCATION_MARKER)
    return "\n".join(kept)
