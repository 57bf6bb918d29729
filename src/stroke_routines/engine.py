"""Recognition engine — decides which routine a live stroke should fire.

Matching runs on a worker thread so the event loop handling drawing input
stays responsive. The routine snapshot is taken on the calling thread
before the hand-off, so recognition always sees a consistent store state.

Usage:
    engine = RecognitionEngine(store, executor)
    result = await engine.recognize_and_execute(points)
    if not result.recognized:
        print(f"closest: {result.matched_name} ({result.score:.0%})")
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional

from stroke_routines.executor import ExecutionReport, RoutineExecutor
from stroke_routines.geometry import Stroke
from stroke_routines.metrics import MetricsCollector
from stroke_routines.recognizer import MIN_POINTS, DollarRecognizer, Template
from stroke_routines.store import Routine, RoutineStore

logger = logging.getLogger("stroke_routines.engine")

RECOGNITION_THRESHOLD = 0.80


@dataclass(frozen=True)
class RecognitionResult:
    """Recognition verdict plus the best guess, even when nothing qualified."""
    recognized: bool
    score: float = 0.0
    matched_name: Optional[str] = None
    routine: Optional[Routine] = None

    def to_dict(self) -> dict:
        return {
            "recognized": self.recognized,
            "matched_name": self.matched_name,
            "score": self.score,
        }


class RecognitionEngine:
    """Threshold decision over the enabled routines of a store."""

    def __init__(
        self,
        store: RoutineStore,
        executor: Optional[RoutineExecutor] = None,
        recognizer: Optional[DollarRecognizer] = None,
        threshold: float = RECOGNITION_THRESHOLD,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.store = store
        self.executor = executor or RoutineExecutor()
        self.recognizer = recognizer or DollarRecognizer()
        self.threshold = threshold
        self.metrics = metrics
        self.last_execution: Optional[ExecutionReport] = None

    def recognize(self, candidate) -> RecognitionResult:
        """Recognize synchronously against the current enabled routines."""
        return self._decide(candidate, self.store.get_enabled())

    async def recognize_async(self, candidate) -> RecognitionResult:
        """Recognize without blocking the event loop."""
        if len(candidate) < MIN_POINTS:
            return self._decide(candidate, {})
        enabled = self.store.get_enabled()
        stroke = Stroke.coerce(candidate)
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._decide, stroke, enabled)

    def _decide(self, candidate, enabled: dict[str, Routine]) -> RecognitionResult:
        started = time.perf_counter()

        if len(candidate) < MIN_POINTS:
            logger.info("Too few points: %d", len(candidate))
            self._record("too_short", started)
            return RecognitionResult(recognized=False)

        templates = [Template(name, routine.samples) for name, routine in enabled.items()]
        if not templates:
            logger.info("No enabled routines")
            self._record("no_routines", started)
            return RecognitionResult(recognized=False)

        match = self.recognizer.recognize(candidate, templates)
        logger.info("Best match: %r (%d%%)", match.name, round(match.score * 100))

        if match.score >= self.threshold:
            self._record("recognized", started, match.name)
            return RecognitionResult(
                recognized=True,
                score=match.score,
                matched_name=match.name,
                routine=enabled[match.name],
            )

        self._record("below_threshold", started)
        return RecognitionResult(
            recognized=False,
            score=match.score,
            matched_name=match.name or None,
        )

    def _record(self, outcome: str, started: float, name: str = ""):
        if self.metrics is not None:
            self.metrics.record_recognition(outcome, time.perf_counter() - started, name)

    async def recognize_and_execute(self, candidate) -> RecognitionResult:
        """Recognize and, on a match, run the routine.

        Execution failures are logged and reported by the executor; they never
        change the returned verdict.
        """
        result = await self.recognize_async(candidate)
        percent = round(result.score * 100)

        if result.recognized and result.routine is not None:
            logger.info("Running %r (%d%%)", result.matched_name, percent)
            report = await self.executor.execute_routine(result.routine)
            self.last_execution = report
            if report.failed_count > 0:
                logger.info("Completed with %d error(s)", report.failed_count)
        else:
            logger.info("Not recognized (%d%%)", percent)

        return result
