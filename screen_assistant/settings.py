"""Process settings using Pydantic Settings v2.

Loads settings from environment variables (prefix ``SCREEN_ASSISTANT_``) with
.env file support. These settings locate the data directory and control the
process itself; the user-editable capture/model configuration lives in
``config.json`` under the data directory (see ``screen_assistant.config``).
"""

from __future__ import annotations

import functools
import os
import sys
from pathlib import Path

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

APP_DIR_NAME = "screen-assistant"


def default_data_dir() -> Path:
    """Return the platform-appropriate data directory.

    macOS: ~/Library/Application Support/screen-assistant/data
    Windows: %LOCALAPPDATA%\\screen-assistant\\data
    Other: $XDG_DATA_HOME/screen-assistant/data (~/.local/share by default)
    """
    if sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    elif sys.platform == "win32":
        base = Path(os.environ.get("LOCALAPPDATA", Path.home() / "AppData" / "Local"))
    else:
        base = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))
    return base / APP_DIR_NAME / "data"


class AgentSettings(BaseSettings):
    """Screen assistant process settings."""

    model_config = SettingsConfigDict(
        env_prefix="SCREEN_ASSISTANT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    data_dir: Path = default_data_dir()
    log_level: str = "INFO"
    socket_path: Path | None = None
    status_interval_seconds: int = 300

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, v: str) -> str:
        return v.upper()

    @model_validator(mode="after")
    def build_derived_paths(self) -> AgentSettings:
        """Place the UI event socket inside the data directory unless overridden."""
        if self.socket_path is None:
            self.socket_path = self.data_dir / "events.sock"
        return self


@functools.lru_cache
def get_settings() -> AgentSettings:
    """Return cached settings instance."""
    return AgentSettings()
