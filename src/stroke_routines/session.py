"""Drawing session — one recognition request in flight at a time.

A stroke completed while the previous one is still being recognized is
rejected with a "processing" notice instead of being queued. If no answer
arrives within the timeout the session frees itself and invites a retry;
the late request is left to finish in the background.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from stroke_routines.engine import RecognitionEngine, RecognitionResult
from stroke_routines.notify import LogNotifier, Notifier

logger = logging.getLogger("stroke_routines.session")

RECOGNITION_TIMEOUT = 5.0  # seconds

COMPLETED = "completed"
BUSY = "busy"
TIMEOUT = "timeout"


@dataclass(frozen=True)
class SessionReply:
    status: str
    result: Optional[RecognitionResult] = None

    def to_dict(self) -> dict:
        data = {"status": self.status}
        if self.result is not None:
            data.update(self.result.to_dict())
        return data


class DrawingSession:
    """Per-surface guard around ``RecognitionEngine.recognize_and_execute``."""

    def __init__(
        self,
        engine: RecognitionEngine,
        notifier: Optional[Notifier] = None,
        timeout: float = RECOGNITION_TIMEOUT,
    ):
        self.engine = engine
        self.notifier = notifier or LogNotifier()
        self.timeout = timeout
        self._pending: Optional[asyncio.Task] = None

    @property
    def busy(self) -> bool:
        return self._pending is not None

    async def submit(self, points) -> SessionReply:
        if self._pending is not None:
            self.notifier.info("Processing previous gesture...")
            return SessionReply(status=BUSY)

        task = asyncio.ensure_future(self.engine.recognize_and_execute(points))
        self._pending = task
        task.add_done_callback(self._release)

        done, _ = await asyncio.wait({task}, timeout=self.timeout)
        if task in done:
            return SessionReply(status=COMPLETED, result=task.result())

        logger.warning("Recognition did not answer within %.1fs", self.timeout)
        self._pending = None
        task.add_done_callback(self._report_late)
        self.notifier.warning("Recognition timed out, try again")
        return SessionReply(status=TIMEOUT)

    def _release(self, task: asyncio.Task):
        if self._pending is task:
            self._pending = None

    def _report_late(self, task: asyncio.Task):
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("Late recognition failed: %s", error)
        else:
            logger.info("Late recognition finished: %s", task.result().to_dict())
