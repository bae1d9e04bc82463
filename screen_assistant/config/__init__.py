"""User configuration: ``config.json`` schema, persistence, and profiles."""

from screen_assistant.config.manager import ConfigManager
from screen_assistant.config.models import (
    ApiConfig,
    AppConfig,
    CaptureConfig,
    ModelConfig,
    OllamaConfig,
    StorageConfig,
)
from screen_assistant.config.profiles import sanitize_log_prefix, sanitize_profile_name

__all__ = [
    "ApiConfig",
    "AppConfig",
    "CaptureConfig",
    "ConfigManager",
    "ModelConfig",
    "OllamaConfig",
    "StorageConfig",
    "sanitize_log_prefix",
    "sanitize_profile_name",
]
