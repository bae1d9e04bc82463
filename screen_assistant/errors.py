"""Exception hierarchy shared across the agent."""

from __future__ import annotations


class ScreenAssistantError(Exception):
    """Base class for all screen assistant errors."""


class ConfigError(ScreenAssistantError):
    """Configuration could not be read, parsed, or written."""


class ProfileNameError(ConfigError):
    """A profile name failed validation."""


class StorageError(ScreenAssistantError):
    """A summary, screenshot, or log file could not be read or written."""


class CaptureError(ScreenAssistantError):
    """The screen could not be captured or encoded."""


class ModelError(ScreenAssistantError):
    """The analyzer call failed.

    ``detail`` keeps the raw error text (status code, response body, transport
    message) so it can be classified for the user.
    """

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail
