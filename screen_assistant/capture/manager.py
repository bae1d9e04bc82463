"""Capture manager: the sample -> analyze -> store loop.

One background task runs ticks at a fixed interval. Each tick:
  1. Capture the screen
  2. Skip the frame if it is perceptually unchanged
  3. Save the frame and encode it
  4. Build recent-history context and call the analyzer
  5. Parse the response and run alert deduplication
  6. Persist a SummaryRecord (aggregation happens inside storage)
  7. Emit an alert and write an alert log snapshot if deduplication allowed it

Ticks never overlap: a slow analyzer call delays the next tick instead of
stacking requests. A failed tick is logged and the loop carries on; the
loop only exits when ``stop`` is called, and a tick already in flight
always completes first.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections.abc import Callable
from datetime import datetime

from PIL import Image

from screen_assistant.alerts.dedup import AlertDeduplicator, build_model_error_key
from screen_assistant.alerts.protocol import AssistantAlert, EventType
from screen_assistant.analysis.parser import AnalysisResult, extract_keywords, parse_analysis
from screen_assistant.capture.differ import FrameDiffer
from screen_assistant.capture.prompts import (
    SUGGESTION_FAILED_TEXT,
    SUGGESTION_QUESTION,
    build_analysis_prompt,
    build_suggestion_context,
)
from screen_assistant.capture.screen import ScreenCapture
from screen_assistant.config.models import AppConfig
from screen_assistant.errors import ModelError, ScreenAssistantError, StorageError
from screen_assistant.ipc.publisher import EventEmitter
from screen_assistant.model.errors import build_model_error_alert
from screen_assistant.model.manager import ModelManager
from screen_assistant.storage.context import build_recent_summary_context
from screen_assistant.storage.manager import StorageManager
from screen_assistant.storage.models import TIMESTAMP_FORMAT, SummaryRecord

logger = logging.getLogger(__name__)

ACTION_ACTIVE = "active"
ACTION_ISSUE = "issue"


class CaptureState:
    """Loop state shared with other threads; each field has its own lock."""

    def __init__(self) -> None:
        self._running = False
        self._running_lock = threading.Lock()
        self._record_count = 0
        self._record_lock = threading.Lock()
        self._skip_count = 0
        self._skip_lock = threading.Lock()

    @property
    def running(self) -> bool:
        with self._running_lock:
            return self._running

    def set_running(self, value: bool) -> None:
        with self._running_lock:
            self._running = value

    def claim_start(self) -> bool:
        """Set running and return True, unless already running."""
        with self._running_lock:
            if self._running:
                return False
            self._running = True
            return True

    @property
    def record_count(self) -> int:
        with self._record_lock:
            return self._record_count

    def add_record(self) -> None:
        with self._record_lock:
            self._record_count += 1

    @property
    def skip_count(self) -> int:
        with self._skip_lock:
            return self._skip_count

    def add_skip(self) -> None:
        with self._skip_lock:
            self._skip_count += 1


class CaptureManager:
    """Owns the capture loop task and its shared state."""

    def __init__(
        self,
        storage: StorageManager,
        model: ModelManager,
        emitter: EventEmitter,
        screen: ScreenCapture | None = None,
        deduplicator: AlertDeduplicator | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.storage = storage
        self.model = model
        self.emitter = emitter
        self.screen = screen or ScreenCapture()
        self.deduplicator = deduplicator or AlertDeduplicator()
        self.state = CaptureState()
        self._clock = clock
        self._stop_event: asyncio.Event | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self.state.running

    @property
    def record_count(self) -> int:
        return self.state.record_count

    @property
    def skip_count(self) -> int:
        return self.state.skip_count

    def start(self, config: AppConfig) -> None:
        """Start the loop on the running event loop. No-op if already running.

        The loop works on a copy of ``config``; later edits do not affect it.
        """
        if not self.state.claim_start():
            return
        # A stopped loop may still be finishing its last tick
        previous = self._task if self._task is not None and not self._task.done() else None
        self._stop_event = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(
            self._run(config.model_copy(deep=True), self._stop_event, previous)
        )

    def stop(self) -> None:
        """Request the loop to stop after the current tick.

        Must be called from the event loop thread.
        """
        self.state.set_running(False)
        if self._stop_event is not None:
            self._stop_event.set()

    async def wait_stopped(self) -> None:
        task = self._task
        if task is not None:
            await task
            if self._task is task:
                self._task = None

    async def _run(
        self,
        config: AppConfig,
        stop_event: asyncio.Event,
        previous: asyncio.Task[None] | None = None,
    ) -> None:
        if previous is not None:
            await previous

        interval = config.capture.interval_ms / 1000
        differ = FrameDiffer(config.capture.change_threshold)
        logger.info(
            "Capture loop started (interval=%dms skip_unchanged=%s threshold=%.2f)",
            config.capture.interval_ms,
            config.capture.skip_unchanged,
            config.capture.change_threshold,
        )
        try:
            while not stop_event.is_set():
                started = time.monotonic()
                try:
                    analyzed = await self.capture_and_analyze(config, differ)
                except ScreenAssistantError as e:
                    logger.warning("Capture tick failed: %s", e)
                except Exception:
                    logger.exception("Capture tick error")
                else:
                    if analyzed:
                        self.state.add_record()
                    else:
                        self.state.add_skip()

                remaining = max(0.0, interval - (time.monotonic() - started))
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=remaining)
                    break  # stop requested
                except asyncio.TimeoutError:
                    pass  # next tick
        finally:
            # A newer run owns the flag once start() has been called again
            if self._stop_event is stop_event:
                self.state.set_running(False)
            logger.info(
                "Capture loop stopped (records=%d skipped=%d)",
                self.state.record_count,
                self.state.skip_count,
            )

    async def capture_and_analyze(self, config: AppConfig, differ: FrameDiffer) -> bool:
        """Run one tick. Returns True if the frame was analysed, False if skipped.

        Raises:
            CaptureError: The screen could not be captured or encoded.
            ModelError: The analyzer call failed (a model-error event is emitted).
            StorageError: The record could not be persisted (a due alert is
                still emitted).
        """
        capture = config.capture
        image = await asyncio.to_thread(self.screen.capture_primary)
        now = self._clock()

        if capture.skip_unchanged and differ.should_skip(image):
            return False

        screenshot_ref = await asyncio.to_thread(
            self._save_screenshot, image, now, capture.compress_quality
        )
        image_base64 = await asyncio.to_thread(
            self.screen.image_to_base64, image, capture.compress_quality
        )

        recent_context = await asyncio.to_thread(
            build_recent_summary_context,
            self.storage,
            capture.recent_summary_limit,
            capture.recent_detail_limit,
            config.storage.max_context_chars,
            now,
        )

        try:
            raw = await self.model.analyze_image(
                config.model, image_base64, build_analysis_prompt(recent_context)
            )
        except ModelError as e:
            self._emit_model_error(e.detail, "capture", now, capture.alert_cooldown_seconds)
            raise

        result = parse_analysis(raw)
        should_alert = self.deduplicator.evaluate_issue(
            result,
            now,
            capture.alert_confidence_threshold,
            capture.alert_cooldown_seconds,
        )
        if should_alert and not result.suggestion.strip():
            result.suggestion = await self._generate_suggestion(config, result, recent_context)

        timestamp = now.strftime(TIMESTAMP_FORMAT)
        record = SummaryRecord(
            timestamp=timestamp,
            summary=result.summary,
            app=result.app,
            action=ACTION_ISSUE if result.has_issue else ACTION_ACTIVE,
            keywords=extract_keywords(result.summary),
            has_issue=result.has_issue,
            issue_type=result.issue_type,
            issue_summary=result.issue_text,
            suggestion=result.suggestion,
            confidence=result.confidence,
            detail=result.detail,
            detail_ref=screenshot_ref,
        )
        try:
            await asyncio.to_thread(self.storage.save_summary, record)
        except StorageError:
            # The cooldown is already recorded; a lost alert would stay silent
            if should_alert:
                await self._publish_alert(config, result, timestamp, now)
            raise

        if should_alert:
            await self._publish_alert(config, result, timestamp, now)

        return True

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _save_screenshot(self, image: Image.Image, now: datetime, quality: int) -> str:
        """Save the frame; returns its file name, or "" if it could not be saved."""
        try:
            path = self.storage.screenshot_path(now)
            self.screen.save_to_file(image, path, quality)
        except ScreenAssistantError as e:
            logger.warning("Screenshot not saved: %s", e)
            return ""
        return path.name

    async def _generate_suggestion(
        self, config: AppConfig, result: AnalysisResult, recent_context: str
    ) -> str:
        try:
            return await self.model.chat(
                config.model,
                build_suggestion_context(result, recent_context),
                SUGGESTION_QUESTION,
            )
        except ModelError as e:
            logger.warning("Suggestion generation failed: %s", e)
            return SUGGESTION_FAILED_TEXT

    async def _publish_alert(
        self,
        config: AppConfig,
        result: AnalysisResult,
        timestamp: str,
        now: datetime,
    ) -> None:
        alert = AssistantAlert(
            timestamp=timestamp,
            issue_type=result.issue_type,
            message=result.issue_text,
            suggestion=result.suggestion,
        )

        lines = [
            f"time: {timestamp}",
            f"issue_type: {alert.issue_type}",
            f"message: {alert.message}",
        ]
        if alert.suggestion:
            lines.append(f"suggestion: {alert.suggestion}")
        lines.append(f"confidence: {result.confidence:.2f}")
        lines.append(f"threshold: {config.capture.alert_confidence_threshold:.2f}")
        try:
            await asyncio.to_thread(
                self.storage.write_log_snapshot,
                EventType.ASSISTANT_ALERT,
                "\n".join(lines) + "\n",
                now,
            )
        except StorageError as e:
            logger.warning("Alert log not written: %s", e)

        self._emit(EventType.ASSISTANT_ALERT, alert.to_dict())
        logger.info("Alert emitted: %s", alert.issue_type or alert.message[:80])

    def _emit_model_error(
        self, detail: str, source: str, now: datetime, cooldown_seconds: float
    ) -> None:
        alert = build_model_error_alert(detail, source)
        key = build_model_error_key(alert.error_type, alert.message)
        if self.deduplicator.should_emit(key, now, cooldown_seconds):
            self._emit(EventType.MODEL_ERROR, alert.to_dict())

    def _emit(self, event: str, payload: dict) -> None:
        try:
            self.emitter.emit(event, payload)
        except Exception as e:
            logger.warning("Failed to emit %s: %s", event, e)
