"""Tests for the capture loop and its per-tick pipeline."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta

import pytest
from PIL import Image

from screen_assistant.alerts.protocol import EventType
from screen_assistant.capture.differ import FrameDiffer
from screen_assistant.capture.manager import CaptureManager, CaptureState
from screen_assistant.capture.prompts import SUGGESTION_FAILED_TEXT
from screen_assistant.capture.screen import ScreenCapture
from screen_assistant.config.models import AppConfig
from screen_assistant.errors import CaptureError, ModelError, StorageError
from screen_assistant.ipc.publisher import EventEmitter

NO_ISSUE = json.dumps(
    {"summary": "在 VS Code 中编辑 app.py", "app": "VS Code", "has_issue": False, "confidence": 0.9},
    ensure_ascii=False,
)
ISSUE = json.dumps(
    {
        "summary": "终端显示编译失败",
        "app": "Terminal",
        "has_issue": True,
        "issue_type": "编译错误",
        "issue_summary": "cannot find module 'foo'",
        "confidence": 0.9,
    },
    ensure_ascii=False,
)


class FakeScreen(ScreenCapture):
    """Serves frames from a list; the last frame repeats."""

    def __init__(self, frames):
        self.frames = list(frames)
        self.captures = 0

    def capture_primary(self) -> Image.Image:
        frame = self.frames[min(self.captures, len(self.frames) - 1)]
        self.captures += 1
        if isinstance(frame, Exception):
            raise frame
        return frame


class FakeModel:
    def __init__(self, replies, chat_reply="先检查依赖是否安装"):
        self.replies = list(replies)
        self.chat_reply = chat_reply
        self.prompts = []
        self.chats = []

    async def analyze_image(self, model, image_base64, prompt):
        self.prompts.append(prompt)
        reply = self.replies[min(len(self.prompts) - 1, len(self.replies) - 1)]
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def chat(self, model, context, question):
        self.chats.append((context, question))
        if isinstance(self.chat_reply, Exception):
            raise self.chat_reply
        return self.chat_reply


class RecordingEmitter(EventEmitter):
    def __init__(self):
        self.events = []

    def emit(self, event, payload):
        self.events.append((event, payload))


class StepClock:
    """Returns start, start+1s, start+2s, ... on successive calls."""

    def __init__(self, start: datetime, step: timedelta = timedelta(seconds=1)):
        self.current = start - step
        self.step = step

    def __call__(self) -> datetime:
        self.current += self.step
        return self.current


def _frame(color: str) -> Image.Image:
    image = Image.new("RGB", (64, 64), "black")
    if color == "left":
        image.paste((255, 255, 255), (0, 0, 32, 64))
    else:
        image.paste((255, 255, 255), (32, 0, 64, 64))
    return image


@pytest.fixture
def config():
    return AppConfig()


@pytest.fixture
def emitter():
    return RecordingEmitter()


def _manager(storage, emitter, frames, replies, now, **model_kwargs):
    return CaptureManager(
        storage=storage,
        model=FakeModel(replies, **model_kwargs),
        emitter=emitter,
        screen=FakeScreen(frames),
        clock=StepClock(now),
    )


class TestCaptureState:
    def test_claim_start_once(self):
        state = CaptureState()
        assert state.claim_start() is True
        assert state.claim_start() is False
        state.set_running(False)
        assert state.claim_start() is True

    def test_counters(self):
        state = CaptureState()
        state.add_record()
        state.add_skip()
        state.add_skip()
        assert (state.record_count, state.skip_count) == (1, 2)


class TestTick:
    @pytest.mark.asyncio
    async def test_analysed_frame_is_stored(self, storage, emitter, config, now):
        manager = _manager(storage, emitter, [_frame("left")], [NO_ISSUE], now)

        assert await manager.capture_and_analyze(config, FrameDiffer()) is True

        [record] = storage.get_summaries("2024-05-14")
        assert record.timestamp == "2024-05-14T10:30:00"
        assert record.summary == "在 VS Code 中编辑 app.py"
        assert record.app == "VS Code"
        assert record.action == "active"
        assert record.keywords == [".py", "编辑"]
        assert record.confidence == 0.9
        assert record.detail_ref == "20240514-103000-000.jpg"
        assert (storage.screenshots_dir() / record.detail_ref).exists()
        assert emitter.events == []

    @pytest.mark.asyncio
    async def test_prompt_includes_recent_context(self, storage, emitter, config, now):
        manager = _manager(
            storage, emitter, [_frame("left"), _frame("right")], [NO_ISSUE], now
        )
        differ = FrameDiffer()
        await manager.capture_and_analyze(config, differ)
        await manager.capture_and_analyze(config, differ)

        first, second = manager.model.prompts
        assert "（无）" in first
        assert "- 10:30:00 [VS Code] 在 VS Code 中编辑 app.py" in second

    @pytest.mark.asyncio
    async def test_unchanged_frame_skipped(self, storage, emitter, config, now):
        frame = _frame("left")
        manager = _manager(storage, emitter, [frame, frame.copy()], [NO_ISSUE], now)
        differ = FrameDiffer()

        assert await manager.capture_and_analyze(config, differ) is True
        assert await manager.capture_and_analyze(config, differ) is False
        assert len(manager.model.prompts) == 1
        assert len(storage.get_summaries("2024-05-14")) == 1

    @pytest.mark.asyncio
    async def test_skip_disabled(self, storage, emitter, config, now):
        config.capture.skip_unchanged = False
        frame = _frame("left")
        manager = _manager(storage, emitter, [frame, frame], [NO_ISSUE], now)
        differ = FrameDiffer()

        assert await manager.capture_and_analyze(config, differ) is True
        assert await manager.capture_and_analyze(config, differ) is True

    @pytest.mark.asyncio
    async def test_issue_emits_alert_with_generated_suggestion(
        self, storage, emitter, config, now
    ):
        manager = _manager(storage, emitter, [_frame("left")], [ISSUE], now)

        await manager.capture_and_analyze(config, FrameDiffer())

        [(event, payload)] = emitter.events
        assert event == EventType.ASSISTANT_ALERT
        assert payload == {
            "timestamp": "2024-05-14T10:30:00",
            "issue_type": "编译错误",
            "message": "cannot find module 'foo'",
            "suggestion": "先检查依赖是否安装",
        }
        [record] = storage.get_summaries("2024-05-14")
        assert record.action == "issue"
        assert record.has_issue is True
        assert record.issue_summary == "cannot find module 'foo'"
        assert record.suggestion == "先检查依赖是否安装"

        logs = list(storage.logs_dir().iterdir())
        assert len(logs) == 1
        assert logs[0].name.endswith("-assistant-alert.log")
        assert "issue_type: 编译错误" in logs[0].read_text(encoding="utf-8")

    @pytest.mark.asyncio
    async def test_analyzer_suggestion_used_without_follow_up(
        self, storage, emitter, config, now
    ):
        reply = json.loads(ISSUE)
        reply["suggestion"] = "安装 foo"
        manager = _manager(
            storage, emitter, [_frame("left")], [json.dumps(reply, ensure_ascii=False)], now
        )

        await manager.capture_and_analyze(config, FrameDiffer())

        assert manager.model.chats == []
        assert emitter.events[0][1]["suggestion"] == "安装 foo"

    @pytest.mark.asyncio
    async def test_failed_suggestion_uses_fallback(self, storage, emitter, config, now):
        manager = _manager(
            storage,
            emitter,
            [_frame("left")],
            [ISSUE],
            now,
            chat_reply=ModelError("HTTP 500: boom"),
        )

        await manager.capture_and_analyze(config, FrameDiffer())

        assert emitter.events[0][1]["suggestion"] == SUGGESTION_FAILED_TEXT

    @pytest.mark.asyncio
    async def test_repeated_issue_alerts_once(self, storage, emitter, config, now):
        config.capture.skip_unchanged = False
        manager = _manager(storage, emitter, [_frame("left")], [ISSUE], now)
        differ = FrameDiffer()

        for _ in range(3):
            await manager.capture_and_analyze(config, differ)

        assert len(emitter.events) == 1
        assert len(manager.model.chats) == 1
        assert len(storage.get_summaries("2024-05-14")) == 3

    @pytest.mark.asyncio
    async def test_low_confidence_issue_not_alerted(self, storage, emitter, config, now):
        config.capture.alert_confidence_threshold = 0.95
        manager = _manager(storage, emitter, [_frame("left")], [ISSUE], now)

        await manager.capture_and_analyze(config, FrameDiffer())

        assert emitter.events == []
        assert storage.get_summaries("2024-05-14")[0].has_issue is True

    @pytest.mark.asyncio
    async def test_model_error_emitted_once_within_cooldown(
        self, storage, emitter, config, now
    ):
        config.capture.skip_unchanged = False
        error = ModelError("HTTP 429: Too Many Requests")
        manager = _manager(storage, emitter, [_frame("left")], [error], now)
        differ = FrameDiffer()

        for _ in range(2):
            with pytest.raises(ModelError):
                await manager.capture_and_analyze(config, differ)

        [(event, payload)] = emitter.events
        assert event == EventType.MODEL_ERROR
        assert payload["error_type"] == "rate_limit"
        assert payload["source"] == "capture"
        assert payload["detail"] == "HTTP 429: Too Many Requests"
        assert storage.get_summaries("2024-05-14") == []

    @pytest.mark.asyncio
    async def test_capture_error_propagates(self, storage, emitter, config, now):
        manager = _manager(
            storage, emitter, [CaptureError("denied")], [NO_ISSUE], now
        )
        with pytest.raises(CaptureError):
            await manager.capture_and_analyze(config, FrameDiffer())
        assert manager.model.prompts == []

    @pytest.mark.asyncio
    async def test_storage_failure_still_emits_due_alert(
        self, storage, emitter, config, now, monkeypatch
    ):
        def broken_save(record):
            raise StorageError("disk full")

        monkeypatch.setattr(storage, "save_summary", broken_save)
        manager = _manager(storage, emitter, [_frame("left")], [ISSUE], now)

        with pytest.raises(StorageError):
            await manager.capture_and_analyze(config, FrameDiffer())

        [(event, payload)] = emitter.events
        assert event == EventType.ASSISTANT_ALERT
        assert payload["issue_type"] == "编译错误"

    @pytest.mark.asyncio
    async def test_emitter_failure_does_not_fail_tick(self, storage, config, now):
        class BrokenEmitter(EventEmitter):
            def emit(self, event, payload):
                raise RuntimeError("ui gone")

        manager = _manager(storage, BrokenEmitter(), [_frame("left")], [ISSUE], now)
        assert await manager.capture_and_analyze(config, FrameDiffer()) is True


async def _wait_until(predicate, timeout=5.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached")
        await asyncio.sleep(0.01)


class TestLoop:
    @pytest.mark.asyncio
    async def test_start_counts_and_stop(self, storage, emitter, config, now):
        config.capture.interval_ms = 10
        frame = _frame("left")
        manager = _manager(storage, emitter, [frame], [NO_ISSUE], now)

        manager.start(config)
        assert manager.is_running is True
        await _wait_until(lambda: manager.skip_count >= 2)
        manager.stop()
        await manager.wait_stopped()

        assert manager.is_running is False
        assert manager.record_count == 1
        assert manager.skip_count >= 2

    @pytest.mark.asyncio
    async def test_failed_ticks_are_not_counted(self, storage, emitter, config, now):
        config.capture.interval_ms = 10
        manager = _manager(
            storage, emitter, [CaptureError("denied")], [NO_ISSUE], now
        )

        manager.start(config)
        await _wait_until(lambda: manager.screen.captures >= 3)
        manager.stop()
        await manager.wait_stopped()

        assert (manager.record_count, manager.skip_count) == (0, 0)

    @pytest.mark.asyncio
    async def test_start_twice_is_noop(self, storage, emitter, config, now):
        config.capture.interval_ms = 60_000
        manager = _manager(storage, emitter, [_frame("left")], [NO_ISSUE], now)

        manager.start(config)
        task = manager._task
        manager.start(config)
        assert manager._task is task

        await _wait_until(lambda: manager.record_count == 1)
        manager.stop()
        await asyncio.wait_for(manager.wait_stopped(), timeout=5)

    @pytest.mark.asyncio
    async def test_loop_uses_config_snapshot(self, storage, emitter, config, now):
        config.capture.interval_ms = 10
        manager = _manager(storage, emitter, [_frame("left")], [NO_ISSUE], now)

        manager.start(config)
        config.capture.skip_unchanged = False
        await _wait_until(lambda: manager.skip_count >= 1)
        manager.stop()
        await manager.wait_stopped()

        assert manager.record_count == 1

    @pytest.mark.asyncio
    async def test_restart_while_tick_in_flight(self, storage, emitter, config, now):
        config.capture.interval_ms = 10
        config.capture.skip_unchanged = False
        manager = _manager(storage, emitter, [_frame("left")], [NO_ISSUE], now)

        entered = asyncio.Event()
        release = asyncio.Event()
        analyze = manager.model.analyze_image

        async def held_first_call(*args):
            if not entered.is_set():
                entered.set()
                await release.wait()
            return await analyze(*args)

        manager.model.analyze_image = held_first_call

        manager.start(config)
        old_task = manager._task
        await asyncio.wait_for(entered.wait(), timeout=5)

        manager.stop()
        manager.start(config)
        new_task = manager._task
        assert new_task is not old_task

        # The new loop waits for the old tick instead of writing alongside it
        await asyncio.sleep(0.05)
        assert manager.model.prompts == []

        release.set()
        await asyncio.wait_for(old_task, timeout=5)
        await asyncio.sleep(0.2)

        assert manager.is_running is True
        assert not new_task.done()
        assert manager.record_count >= 2

        manager.stop()
        await asyncio.wait_for(manager.wait_stopped(), timeout=5)
        assert manager.is_running is False
