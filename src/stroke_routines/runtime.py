"""Wiring of store, recognizer, validator, executor and engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from stroke_routines.config import EngineConfig
from stroke_routines.engine import RecognitionEngine
from stroke_routines.executor import CommandRegistry, RoutineExecutor, SubprocessShell
from stroke_routines.metrics import MetricsCollector
from stroke_routines.notify import RecordingNotifier
from stroke_routines.recognizer import DollarRecognizer, NormalizationCache
from stroke_routines.session import DrawingSession
from stroke_routines.store import RoutinePersistence, RoutineStore, YamlPersistence
from stroke_routines.validator import GestureValidator


@dataclass
class Runtime:
    config: EngineConfig
    store: RoutineStore
    cache: NormalizationCache
    recognizer: DollarRecognizer
    validator: GestureValidator
    executor: RoutineExecutor
    engine: RecognitionEngine
    notifier: RecordingNotifier
    metrics: MetricsCollector

    @classmethod
    def build(
        cls,
        config: Optional[EngineConfig] = None,
        persistence: Optional[RoutinePersistence] = None,
        host=None,
        shell=None,
    ) -> Runtime:
        """Assemble the pipeline. Persistence defaults to the configured YAML file."""
        config = (config or EngineConfig()).validate()
        if persistence is None:
            persistence = YamlPersistence(config.routines_file)

        store = RoutineStore(persistence)
        cache = NormalizationCache()
        store.subscribe(cache.invalidate)

        notifier = RecordingNotifier()
        metrics = MetricsCollector()
        recognizer = DollarRecognizer(cache=cache)
        executor = RoutineExecutor(
            host=host if host is not None else CommandRegistry(),
            shell=shell if shell is not None else SubprocessShell(timeout=config.shell_timeout),
            notifier=notifier,
            metrics=metrics,
        )
        engine = RecognitionEngine(
            store,
            executor,
            recognizer=recognizer,
            threshold=config.recognition_threshold,
            metrics=metrics,
        )
        validator = GestureValidator(recognizer, threshold=config.similarity_threshold)

        return cls(
            config=config,
            store=store,
            cache=cache,
            recognizer=recognizer,
            validator=validator,
            executor=executor,
            engine=engine,
            notifier=notifier,
            metrics=metrics,
        )

    def new_session(self) -> DrawingSession:
        return DrawingSession(self.engine, self.notifier, timeout=self.config.recognition_timeout)
