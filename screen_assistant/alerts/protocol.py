"""Event names and payloads published to the presentation layer.

Payload field names are part of the UI contract; keep them stable.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import StrEnum
from typing import Any


class EventType(StrEnum):
    ASSISTANT_ALERT = "assistant-alert"
    MODEL_ERROR = "model-error"


@dataclass
class AssistantAlert:
    """An issue detected on screen, with a suggested fix."""

    timestamp: str
    issue_type: str
    message: str
    suggestion: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ModelErrorAlert:
    """A failed analyzer call, classified for the user."""

    timestamp: str
    error_type: str
    message: str
    suggestion: str
    detail: str
    source: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
