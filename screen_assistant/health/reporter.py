"""Status reporter: periodic self-monitoring of the capture process.

Logs a status line every 5 minutes with loop counters, CPU and memory.
The same snapshot is available on demand through ``get_status``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import asdict, dataclass
from typing import Any

import psutil

from screen_assistant.capture.manager import CaptureManager

logger = logging.getLogger(__name__)

STATUS_INTERVAL_SECONDS = 300  # 5 minutes


@dataclass
class AssistantStatus:
    """Current capture and process status."""

    running: bool
    record_count: int
    skip_count: int
    cpu_percent: float
    memory_mb: float
    uptime_seconds: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class StatusReporter:
    """Reports capture loop counters and process resource usage."""

    def __init__(
        self,
        capture: CaptureManager,
        interval: int = STATUS_INTERVAL_SECONDS,
    ) -> None:
        self.capture = capture
        self.interval = interval
        self._start_time = time.time()
        self._process = psutil.Process()

    def get_status(self) -> AssistantStatus:
        cpu = self._process.cpu_percent(interval=None)
        memory = self._process.memory_info().rss / (1024 * 1024)
        return AssistantStatus(
            running=self.capture.is_running,
            record_count=self.capture.record_count,
            skip_count=self.capture.skip_count,
            cpu_percent=cpu,
            memory_mb=round(memory, 1),
            uptime_seconds=round(time.time() - self._start_time, 1),
        )

    async def run(self, shutdown_event: asyncio.Event) -> None:
        """Log status periodically until shutdown."""
        logger.info("Status reporter started (interval=%ds)", self.interval)
        while not shutdown_event.is_set():
            status = self.get_status()
            logger.info(
                "Status: running=%s records=%d skipped=%d cpu=%.1f%% mem=%.1fMB",
                status.running,
                status.record_count,
                status.skip_count,
                status.cpu_percent,
                status.memory_mb,
            )
            try:
                await asyncio.wait_for(shutdown_event.wait(), timeout=self.interval)
                break
            except asyncio.TimeoutError:
                pass
        logger.info("Status reporter stopped")
