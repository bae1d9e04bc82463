"""Short recent-history context used to prime the next analyzer prompt."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from screen_assistant.catalogs import UNKNOWN_APP
from screen_assistant.errors import StorageError
from screen_assistant.storage.manager import StorageManager
from screen_assistant.storage.models import DATE_FORMAT, TIMESTAMP_FORMAT
from screen_assistant.storage.search import fit_lines, flatten

logger = logging.getLogger(__name__)

RECENT_CONTEXT_MINUTES = 3
MAX_RECENT_ITEMS = 100
EMPTY_CONTEXT_TEXT = "（无）"


def build_recent_summary_context(
    storage: StorageManager,
    max_items: int,
    detail_limit: int,
    max_chars: int,
    now: datetime | None = None,
) -> str:
    """Render the last few minutes of records as prompt context.

    Keeps the newest ``max_items`` records (clamped to 1..100) from the last
    ``RECENT_CONTEXT_MINUTES`` minutes in chronological order. Only the
    newest ``detail_limit`` of them carry their detail text, so recent frames
    get the most weight without the prompt growing unbounded.
    """
    now = now or datetime.now()
    cutoff = (now - timedelta(minutes=RECENT_CONTEXT_MINUTES)).strftime(TIMESTAMP_FORMAT)

    try:
        records = storage.get_summaries(now.strftime(DATE_FORMAT))
    except StorageError as e:
        logger.warning("Recent context unavailable: %s", e)
        return EMPTY_CONTEXT_TEXT

    recent = [r for r in records if r.timestamp >= cutoff]
    if not recent:
        return EMPTY_CONTEXT_TEXT

    max_items = min(max(max_items, 1), MAX_RECENT_ITEMS)
    detail_limit = min(max(detail_limit, 0), max_items)
    recent = recent[-max_items:]
    detail_start = len(recent) - detail_limit

    lines: list[str] = []
    for idx, record in enumerate(recent):
        app = "" if record.app in ("", UNKNOWN_APP) else f" [{record.app}]"
        lines.append(f"- {record.time_of_day}{app} {record.summary}")
        if idx >= detail_start and record.detail:
            lines.append(f"  细节: {flatten(record.detail)}")

    return fit_lines(lines, max_chars) or EMPTY_CONTEXT_TEXT
