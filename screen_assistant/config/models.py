"""Pydantic models for the user-editable ``config.json``.

Every field has a default so partial or older config files still load;
unknown keys are ignored.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class _ConfigSection(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ApiConfig(_ConfigSection):
    """OpenAI-compatible HTTP endpoint."""

    api_type: str = Field(default="openai", alias="type")
    endpoint: str = "https://api.openai.com/v1"
    api_key: str = ""
    model: str = "gpt-4-vision-preview"


class OllamaConfig(_ConfigSection):
    """Local Ollama endpoint."""

    endpoint: str = "http://localhost:11434"
    model: str = "llava"


class ModelConfig(_ConfigSection):
    """Analyzer backend selection. ``provider`` is "api" or "ollama"."""

    provider: str = "api"
    api: ApiConfig = Field(default_factory=ApiConfig)
    ollama: OllamaConfig = Field(default_factory=OllamaConfig)


class CaptureConfig(_ConfigSection):
    """Sampling loop and alerting behaviour."""

    enabled: bool = True
    interval_ms: int = Field(default=1000, ge=1)
    compress_quality: int = Field(default=80, ge=1, le=100)
    # Skip frames whose perceptual hash barely changed
    skip_unchanged: bool = True
    # Similarity at or above this value counts as "unchanged"
    change_threshold: float = Field(default=0.95, ge=0.0, le=1.0)
    recent_summary_limit: int = Field(default=8, ge=0)
    recent_detail_limit: int = Field(default=3, ge=0)
    alert_confidence_threshold: float = 0.6
    alert_cooldown_seconds: int = Field(default=120, ge=0)


class StorageConfig(_ConfigSection):
    """History retention and context budget."""

    retention_days: int = Field(default=7, ge=0)
    max_screenshots: int = Field(default=10000, ge=0)
    max_context_chars: int = Field(default=10000, ge=0)


class AppConfig(_ConfigSection):
    """Root of ``config.json`` and of every saved profile."""

    model: ModelConfig = Field(default_factory=ModelConfig)
    capture: CaptureConfig = Field(default_factory=CaptureConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)
