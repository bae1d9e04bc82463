"""Alert deduplication and the events published to the UI."""

from screen_assistant.alerts.dedup import AlertDeduplicator, build_alert_key
from screen_assistant.alerts.protocol import AssistantAlert, EventType, ModelErrorAlert

__all__ = [
    "AlertDeduplicator",
    "AssistantAlert",
    "EventType",
    "ModelErrorAlert",
    "build_alert_key",
]
