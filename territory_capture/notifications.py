"""Sinks for transient, user-facing messages."""

from __future__ import annotations

import logging
import threading
from typing import Callable, List

Notifier = Callable[[str], None]

_NOTIFY_LOGGER = logging.getLogger("territory_capture.notifications")


class LoggingNotifier:
    """Writes every message to the notifications logger."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or _NOTIFY_LOGGER

    def __call__(self, message: str) -> None:
        self._logger.info("%s", message)


class RecordingNotifier:
    """Keeps messages in memory; handy for tests and headless runs."""

    def __init__(self) -> None:
        self._messages: List[str] = []
        self._lock = threading.Lock()

    def __call__(self, message: str) -> None:
        with self._lock:
            self._messages.append(message)

    @property
    def messages(self) -> List[str]:
        with self._lock:
            return list(self._messages)


__all__ = ["Notifier", "LoggingNotifier", "RecordingNotifier"]
