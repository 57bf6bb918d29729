"""User-facing notifications.

Notifiers only observe: nothing in the engine branches on whether a
message was delivered.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from typing import Protocol

logger = logging.getLogger("stroke_routines.notify")


class Notifier(Protocol):
    def info(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def error(self, message: str) -> None: ...


class LogNotifier:
    """Sends notifications to the log."""

    def info(self, message: str) -> None:
        logger.info(message)

    def warning(self, message: str) -> None:
        logger.warning(message)

    def error(self, message: str) -> None:
        logger.error(message)


class RecordingNotifier(LogNotifier):
    """Logs notifications and keeps the most recent ones for display."""

    def __init__(self, maxlen: int = 50):
        self._messages: deque[dict] = deque(maxlen=maxlen)

    def _record(self, level: str, message: str):
        self._messages.append({"level": level, "message": message, "timestamp": time.time()})

    def info(self, message: str) -> None:
        self._record("info", message)
        super().info(message)

    def warning(self, message: str) -> None:
        self._record("warning", message)
        super().warning(message)

    def error(self, message: str) -> None:
        self._record("error", message)
        super().error(message)

    @property
    def messages(self) -> list[dict]:
        return list(self._messages)

    def levels(self, level: str) -> list[str]:
        return [m["message"] for m in self._messages if m["level"] == level]

    def clear(self):
        self._messages.clear()
