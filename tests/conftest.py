"""Shared test fixtures for the screen assistant tests."""

from __future__ import annotations

from datetime import datetime

import pytest

from screen_assistant.storage.manager import StorageManager
from screen_assistant.storage.models import TIMESTAMP_FORMAT, SummaryRecord

# Fixed "now" used across tests so records land in a known day file
NOW = datetime(2024, 5, 14, 10, 30, 0)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def data_dir(tmp_path):
    """Provide an empty data directory."""
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def storage(data_dir):
    """Create a StorageManager rooted at the temp data directory."""
    return StorageManager(data_dir)


@pytest.fixture
def make_record():
    """Factory for SummaryRecord with sensible defaults."""

    def _make(
        when: datetime = NOW,
        summary: str = "在 VS Code 中编辑 main.py",
        app: str = "Visual Studio Code",
        action: str = "active",
        **kwargs,
    ) -> SummaryRecord:
        return SummaryRecord(
            timestamp=when.strftime(TIMESTAMP_FORMAT),
            summary=summary,
            app=app,
            action=action,
            **kwargs,
        )

    return _make
