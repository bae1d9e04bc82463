"""Event delivery to the presentation layer.

``EventPublisher`` listens on a user-private Unix domain socket and
broadcasts each event to every connected UI client as one line of JSON::

    {"event": "assistant-alert", "payload": {...}}

Delivery is fire-and-forget: ``emit`` never blocks and never raises.
Clients that are not connected when an event is emitted miss it, and a
client whose connection fails is dropped.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import stat
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class EventEmitter(ABC):
    """Publishes named events to whoever is listening."""

    @abstractmethod
    def emit(self, event: str, payload: dict[str, Any]) -> None:
        """Publish ``event``. Must not block or raise."""


class LoggingEmitter(EventEmitter):
    """Writes events to the log. Used when no UI transport is running."""

    def emit(self, event: str, payload: dict[str, Any]) -> None:
        logger.info("Event %s: %s", event, json.dumps(payload, ensure_ascii=False))


def encode_event(event: str, payload: dict[str, Any]) -> bytes:
    message = {"event": event, "payload": payload}
    return (json.dumps(message, ensure_ascii=False) + "\n").encode("utf-8")


class EventPublisher(EventEmitter):
    """Async Unix domain socket server broadcasting events to UI clients."""

    def __init__(self, socket_path: Path) -> None:
        self.socket_path = Path(socket_path)
        self._clients: set[asyncio.StreamWriter] = set()
        self._emitted_count = 0
        self._dropped_count = 0

    @property
    def client_count(self) -> int:
        return len(self._clients)

    @property
    def emitted_count(self) -> int:
        return self._emitted_count

    async def serve(self, shutdown_event: asyncio.Event) -> None:
        """Accept UI connections until shutdown."""
        socket_dir = self.socket_path.parent
        os.makedirs(socket_dir, mode=0o700, exist_ok=True)

        # Remove stale socket file
        if self.socket_path.exists():
            self.socket_path.unlink()

        server = await asyncio.start_unix_server(
            self._handle_client, path=str(self.socket_path)
        )
        os.chmod(self.socket_path, stat.S_IRUSR | stat.S_IWUSR)  # 0o600
        logger.info("Event publisher listening on %s", self.socket_path)

        try:
            await shutdown_event.wait()
        finally:
            server.close()
            for writer in list(self._clients):
                writer.close()
            self._clients.clear()
            await server.wait_closed()
            if self.socket_path.exists():
                self.socket_path.unlink()
            logger.info(
                "Event publisher stopped (emitted=%d dropped=%d)",
                self._emitted_count,
                self._dropped_count,
            )

    async def _handle_client(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
    ) -> None:
        """Register a UI client and hold the connection until it closes."""
        self._clients.add(writer)
        logger.info("UI client connected (%d total)", len(self._clients))
        try:
            # Clients only listen; anything they send is ignored
            while await reader.readline():
                pass
        except (asyncio.CancelledError, ConnectionError):
            pass
        finally:
            self._clients.discard(writer)
            writer.close()
            logger.info("UI client disconnected (%d remaining)", len(self._clients))

    def emit(self, event: str, payload: dict[str, Any]) -> None:
        data = encode_event(event, payload)
        for writer in list(self._clients):
            if writer.is_closing():
                self._clients.discard(writer)
                continue
            try:
                writer.write(data)
            except (ConnectionError, RuntimeError) as e:
                logger.warning("Dropping UI client after write failure: %s", e)
                self._clients.discard(writer)
                self._dropped_count += 1
        self._emitted_count += 1
        logger.debug("Emitted %s to %d clients", event, len(self._clients))
