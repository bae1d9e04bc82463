"""Alert deduplication: stable issue keys, self-noise suppression, cooldowns.

The analyzer reports the same problem on every frame for as long as it is
on screen. The deduplicator turns that stream into occasional alerts:

  - issues below the confidence gate are ignored
  - issues about this tool's own window are suppressed unless they mention
    something worth showing (history, chat, alerts, settings)
  - an issue repeating the previous tick's key is not re-emitted
  - a key that fired less than ``cooldown`` seconds ago is not re-emitted

Cooldown state is a per-key last-emission timestamp; checking and updating
it happens under one lock acquisition.
"""

from __future__ import annotations

import logging
import re
import threading
from datetime import datetime, timedelta

from screen_assistant.analysis.parser import AnalysisResult
from screen_assistant.catalogs import SELF_ALERT_MARKERS, SELF_APP_NAME, UNKNOWN_APP

logger = logging.getLogger(__name__)

MIN_COOLDOWN_SECONDS = 5
# Map size above which keys past their cooldown are dropped
_PRUNE_THRESHOLD = 256

_DIGITS_OR_SPACE_RE = re.compile(r"[0-9\s]+")


def normalize_key(text: str) -> str:
    return text.strip().lower()


def normalize_issue_text(text: str) -> str:
    """Lower-case ``text`` and collapse digit and whitespace runs to one space.

    Messages that differ only in numbers (line numbers, counts, ports) map to
    the same key.
    """
    return _DIGITS_OR_SPACE_RE.sub(" ", text.strip()).strip().lower()


def build_alert_key(result: AnalysisResult, issue_message: str | None = None) -> str:
    """Derive the deduplication key for an issue.

    Prefers the normalized issue type and falls back to the normalized issue
    message.
    """
    issue_type = normalize_key(result.issue_type)
    if issue_type:
        return issue_type
    if issue_message is None:
        issue_message = result.issue_text
    return normalize_issue_text(issue_message)


def build_model_error_key(error_type: str, message: str) -> str:
    return f"model:{error_type}:{message}"


def should_suppress_alert(result: AnalysisResult) -> bool:
    """True when the issue is about this tool's own window and carries no marker."""
    app = result.app.lower()
    combined = " ".join(
        [result.app, result.summary, result.detail, result.issue_message]
    ).lower()

    about_self = SELF_APP_NAME in app or (
        app in ("", UNKNOWN_APP.lower()) and SELF_APP_NAME in combined
    )
    if not about_self:
        return False
    return not any(marker in combined for marker in SELF_ALERT_MARKERS)


def clamp_threshold(value: float) -> float:
    return max(0.0, min(1.0, value))


class AlertDeduplicator:
    """Tracks emitted alert keys and decides whether a new alert may fire."""

    def __init__(self) -> None:
        self._recent_alerts: dict[str, datetime] = {}
        self._alerts_lock = threading.Lock()
        self._last_issue_key: str | None = None
        self._last_issue_lock = threading.Lock()

    @property
    def last_issue_key(self) -> str | None:
        with self._last_issue_lock:
            return self._last_issue_key

    def set_last_issue_key(self, key: str | None) -> None:
        with self._last_issue_lock:
            self._last_issue_key = key

    def should_emit(self, key: str, now: datetime, cooldown_seconds: float) -> bool:
        """Check-and-set the cooldown for ``key``.

        Returns False if ``key`` fired less than ``cooldown_seconds`` (at least
        ``MIN_COOLDOWN_SECONDS``) before ``now``. Otherwise records ``now`` as
        the key's last emission and returns True.
        """
        cooldown = timedelta(seconds=max(cooldown_seconds, MIN_COOLDOWN_SECONDS))
        with self._alerts_lock:
            previous = self._recent_alerts.get(key)
            if previous is not None and now - previous < cooldown:
                return False
            self._recent_alerts[key] = now
            if len(self._recent_alerts) > _PRUNE_THRESHOLD:
                self._prune(now, cooldown)
            return True

    def _prune(self, now: datetime, cooldown: timedelta) -> None:
        """Drop keys whose cooldown has expired. Caller holds the lock."""
        expired = [k for k, ts in self._recent_alerts.items() if now - ts >= cooldown]
        for key in expired:
            del self._recent_alerts[key]
        logger.debug("Pruned %d expired alert keys", len(expired))

    def evaluate_issue(
        self,
        result: AnalysisResult,
        now: datetime,
        confidence_threshold: float,
        cooldown_seconds: float,
    ) -> bool:
        """Decide whether ``result`` should produce a user-facing alert.

        Updates the last-issue key on every call: it becomes the key of this
        issue, or None when the result does not qualify as an issue.
        """
        if (
            not result.has_issue
            or result.confidence < clamp_threshold(confidence_threshold)
            or should_suppress_alert(result)
        ):
            self.set_last_issue_key(None)
            return False

        key = build_alert_key(result)
        with self._last_issue_lock:
            repeated = self._last_issue_key == key
            self._last_issue_key = key

        if repeated:
            logger.debug("Issue %r repeats the previous tick, not alerting", key)
            return False

        emit = self.should_emit(key, now, cooldown_seconds)
        if not emit:
            logger.debug("Issue %r is cooling down", key)
        return emit
