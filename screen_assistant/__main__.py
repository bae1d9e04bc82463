"""Entry point for the screen assistant.

Starts all async services:
- Event publisher (Unix domain socket to the UI)
- Capture manager (sample -> analyze -> store loop)
- Status reporter (5-minute status log)
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys

from screen_assistant.capture.manager import CaptureManager
from screen_assistant.config.manager import ConfigManager
from screen_assistant.config.models import AppConfig
from screen_assistant.errors import ConfigError
from screen_assistant.health.reporter import StatusReporter
from screen_assistant.ipc.publisher import EventEmitter, EventPublisher, LoggingEmitter
from screen_assistant.model.manager import ModelManager
from screen_assistant.settings import get_settings
from screen_assistant.storage.manager import StorageManager

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("screen_assistant")


async def _run_capture(
    capture: CaptureManager, config: AppConfig, shutdown_event: asyncio.Event
) -> None:
    """Run the capture loop until shutdown."""
    if not config.capture.enabled:
        logger.info("Capture disabled in config, not starting the capture loop")
        return
    capture.start(config)
    await shutdown_event.wait()
    capture.stop()
    await capture.wait_stopped()


async def main() -> None:
    """Start all assistant services."""
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level)

    shutdown_event = asyncio.Event()

    def handle_signal() -> None:
        logger.info("Shutdown signal received")
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, handle_signal)

    config_manager = ConfigManager(settings.data_dir)
    try:
        config = config_manager.load_config()
    except ConfigError as e:
        logger.error("Cannot start: %s", e)
        return

    storage = StorageManager(settings.data_dir)
    model = ModelManager()

    services = []
    emitter: EventEmitter
    if sys.platform == "win32":
        logger.warning("Unix sockets unavailable, events will only be logged")
        emitter = LoggingEmitter()
    else:
        publisher = EventPublisher(settings.socket_path)
        services.append(publisher.serve(shutdown_event))
        emitter = publisher

    capture = CaptureManager(storage=storage, model=model, emitter=emitter)
    status = StatusReporter(capture, interval=settings.status_interval_seconds)

    logger.info(
        "Screen assistant starting (data_dir=%s, provider=%s)",
        settings.data_dir,
        config.model.provider,
    )

    # Run all services concurrently
    try:
        await asyncio.gather(
            *services,
            _run_capture(capture, config, shutdown_event),
            status.run(shutdown_event),
        )
    except Exception:
        logger.exception("Service error")
    finally:
        capture.stop()
        await capture.wait_stopped()
        await model.aclose()
        logger.info("Screen assistant stopped")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
