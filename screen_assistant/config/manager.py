"""Configuration manager: reads and writes ``config.json`` and named profiles.

The active configuration lives at ``<data_dir>/config.json``. Profiles are
complete snapshots of the same schema stored under ``<data_dir>/profiles``.
A missing ``config.json`` yields the defaults; a broken one is an error the
caller has to surface.
"""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import ValidationError

from screen_assistant.config.models import AppConfig
from screen_assistant.config.profiles import sanitize_profile_name
from screen_assistant.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.json"
PROFILES_DIRNAME = "profiles"


class ConfigManager:
    """Loads and persists the app configuration and its profiles."""

    def __init__(self, data_dir: Path) -> None:
        self.data_dir = Path(data_dir)
        self._config_path = self.data_dir / CONFIG_FILENAME
        self._profiles_dir = self.data_dir / PROFILES_DIRNAME

    @property
    def config_path(self) -> Path:
        return self._config_path

    def load_config(self) -> AppConfig:
        """Load ``config.json``, falling back to defaults when it does not exist."""
        if not self._config_path.exists():
            logger.info("No config at %s, using defaults", self._config_path)
            return AppConfig()
        return self._read(self._config_path, "config")

    def save_config(self, config: AppConfig) -> None:
        self._write(self._config_path, config, "config")

    def list_profiles(self) -> list[str]:
        """Return saved profile names, sorted."""
        self._ensure_dirs()
        try:
            names = [p.stem for p in self._profiles_dir.iterdir() if p.suffix == ".json"]
        except OSError as e:
            raise ConfigError(f"Failed to list profiles: {e}") from e
        return sorted(names)

    def save_profile(self, name: str, config: AppConfig) -> None:
        path = self._profile_path(name)
        self._write(path, config, "profile")
        logger.info("Saved profile %s", path.stem)

    def load_profile(self, name: str) -> AppConfig:
        path = self._profile_path(name)
        if not path.exists():
            raise ConfigError(f"Profile {path.stem!r} does not exist")
        return self._read(path, "profile")

    def delete_profile(self, name: str) -> None:
        """Delete a profile. Deleting a missing profile is not an error."""
        path = self._profile_path(name)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise ConfigError(f"Failed to delete profile {path.stem!r}: {e}") from e

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _ensure_dirs(self) -> None:
        try:
            self._profiles_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigError(f"Failed to create {self._profiles_dir}: {e}") from e

    def _profile_path(self, name: str) -> Path:
        safe_name = sanitize_profile_name(name)
        return self._profiles_dir / f"{safe_name}.json"

    def _read(self, path: Path, kind: str) -> AppConfig:
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Failed to read {kind} {path}: {e}") from e
        try:
            return AppConfig.model_validate_json(content)
        except ValidationError as e:
            raise ConfigError(f"Failed to parse {kind} {path}: {e}") from e

    def _write(self, path: Path, config: AppConfig, kind: str) -> None:
        self._ensure_dirs()
        try:
            path.write_text(config.to_json(), encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Failed to save {kind} {path}: {e}") from e
