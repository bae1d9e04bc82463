"""Event transport from the capture loop to the UI."""

from screen_assistant.ipc.publisher import EventEmitter, EventPublisher, LoggingEmitter

__all__ = ["EventEmitter", "EventPublisher", "LoggingEmitter"]
