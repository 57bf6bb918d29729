"""Registration-time gesture validation.

A new gesture is rejected when it scores above SIMILARITY_THRESHOLD against
any other routine's samples. The threshold sits below the recognition
threshold so that two gestures that nearly confuse each other can never
both be registered.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from stroke_routines.recognizer import MIN_POINTS, DollarRecognizer, Template

logger = logging.getLogger("stroke_routines.validator")

SIMILARITY_THRESHOLD = 0.78


@dataclass(frozen=True)
class ValidationResult:
    accepted: bool
    score: float
    conflicting_name: Optional[str] = None
    message: str = "OK"

    def to_dict(self) -> dict:
        return {
            "accepted": self.accepted,
            "score": self.score,
            "conflicting_name": self.conflicting_name,
            "message": self.message,
        }


class GestureValidator:
    """Checks candidate gestures against already registered ones."""

    def __init__(
        self,
        recognizer: Optional[DollarRecognizer] = None,
        threshold: float = SIMILARITY_THRESHOLD,
    ):
        self.recognizer = recognizer or DollarRecognizer()
        self.threshold = threshold

    def validate(
        self,
        candidate,
        existing_gestures: Mapping[str, Sequence],
        exclude_name: Optional[str] = None,
    ) -> ValidationResult:
        """Accept or reject ``candidate`` for registration.

        Args:
            candidate: The newly drawn stroke.
            existing_gestures: Routine name -> recorded samples.
            exclude_name: Routine being edited; its own samples are skipped.
        """
        if len(candidate) < MIN_POINTS:
            return ValidationResult(
                accepted=False,
                score=0.0,
                message=f"Too short (min {MIN_POINTS} points)",
            )

        templates = [
            Template.from_samples(name, samples)
            for name, samples in existing_gestures.items()
            if name != exclude_name
        ]
        if not templates:
            return ValidationResult(accepted=True, score=0.0)

        match = self.recognizer.recognize(candidate, templates)

        if match.score > self.threshold:
            logger.info("Gesture rejected: %.0f%% similar to %r", match.score * 100, match.name)
            return ValidationResult(
                accepted=False,
                score=match.score,
                conflicting_name=match.name,
                message=f'Too similar ({round(match.score * 100)}%) to "{match.name}"',
            )

        return ValidationResult(accepted=True, score=match.score)

    def similarity(self, candidate, samples: Sequence) -> float:
        """Score of ``candidate`` against one routine's samples."""
        if len(candidate) < MIN_POINTS or not samples:
            return 0.0
        match = self.recognizer.recognize(candidate, [Template.from_samples("target", samples)])
        return match.score
