"""$1 Unistroke recognizer.

Normalizes strokes (resample, rotate to indicative angle, scale to a
square, translate to origin) and scores a candidate against every sample
of every template using golden-section search over rotation.

Reference: Wobbrock, Wilson, Li. "Gestures without Libraries, Toolkits or
Training: A $1 Recognizer for User Interface Prototypes." UIST 2007.

Usage:
    recognizer = DollarRecognizer()
    match = recognizer.recognize(points, [Template("circle", [sample1, sample2])])
    print(match.name, match.score)
"""

from __future__ import annotations

import hashlib
import math
import threading
from dataclasses import dataclass, field
from typing import Iterable, Optional

import numpy as np

from stroke_routines.geometry import (
    Stroke,
    as_array,
    bounding_box,
    centroid,
    distance,
    path_length,
)

MIN_POINTS = 5
NUM_POINTS = 64
SQUARE_SIZE = 250.0
DIAGONAL = math.sqrt(SQUARE_SIZE * SQUARE_SIZE + SQUARE_SIZE * SQUARE_SIZE)
HALF_DIAGONAL = 0.5 * DIAGONAL
ANGLE_RANGE = math.radians(45.0)
ANGLE_PRECISION = math.radians(2.0)
PHI = 0.5 * (-1.0 + math.sqrt(5.0))  # golden ratio conjugate

# Bounding-box sides this small relative to the other side are left
# unscaled (straight lines have no height to stretch).
_DEGENERATE_RATIO = 1e-6


@dataclass(frozen=True)
class Template:
    """A named group of recorded samples for one gesture."""
    name: str
    samples: tuple[Stroke, ...] = field(default_factory=tuple)

    @classmethod
    def from_samples(cls, name: str, samples: Iterable) -> Template:
        return cls(name=name, samples=tuple(Stroke.coerce(s) for s in samples))


@dataclass(frozen=True)
class Match:
    """Best template match. ``score`` is 1.0 for identical shapes and is not clamped."""
    name: str
    score: float


# --- Normalization steps ---

def resample(points: np.ndarray, n: int = NUM_POINTS) -> np.ndarray:
    """Resample a path to ``n`` points spaced equally along its length."""
    if len(points) == 0:
        raise ValueError("Cannot resample an empty stroke")

    total = path_length(points)
    if total <= 0.0:
        return np.tile(points[0], (n, 1))

    interval = total / (n - 1)
    accumulated = 0.0
    src = [tuple(p) for p in points.tolist()]
    out = [src[0]]

    i = 1
    while i < len(src):
        prev, curr = src[i - 1], src[i]
        d = distance(prev, curr)
        if accumulated + d >= interval and d > 0.0:
            t = (interval - accumulated) / d
            q = (prev[0] + t * (curr[0] - prev[0]), prev[1] + t * (curr[1] - prev[1]))
            out.append(q)
            # q becomes the start of the next segment
            src.insert(i, q)
            accumulated = 0.0
        else:
            accumulated += d
        i += 1

    # Rounding can leave the last point unemitted
    if len(out) == n - 1:
        out.append(src[-1])
    return np.array(out[:n], dtype=np.float64)


def indicative_angle(points: np.ndarray) -> float:
    """Angle from the first point to the centroid, in radians."""
    c = centroid(points)
    return math.atan2(c[1] - points[0, 1], c[0] - points[0, 0])


def rotate_by(points: np.ndarray, radians: float) -> np.ndarray:
    """Rotate all points about the centroid."""
    c = centroid(points)
    cos, sin = math.cos(radians), math.sin(radians)
    dx = points[:, 0] - c[0]
    dy = points[:, 1] - c[1]
    return np.column_stack((
        dx * cos - dy * sin + c[0],
        dx * sin + dy * cos + c[1],
    ))


def scale_to_square(points: np.ndarray, size: float = SQUARE_SIZE) -> np.ndarray:
    """Scale x and y independently so the bounding box becomes a ``size`` square."""
    box = bounding_box(points)
    longest = max(box.width, box.height)
    sx = size / box.width if box.width > longest * _DEGENERATE_RATIO else 1.0
    sy = size / box.height if box.height > longest * _DEGENERATE_RATIO else 1.0
    return points * np.array([sx, sy])


def translate_to_origin(points: np.ndarray) -> np.ndarray:
    return points - centroid(points)


def normalize(
    points, num_points: int = NUM_POINTS, square_size: float = SQUARE_SIZE
) -> np.ndarray:
    """Run the full normalization pipeline. Returns a new (num_points, 2) array."""
    pts = resample(as_array(points), num_points)
    pts = rotate_by(pts, -indicative_angle(pts))
    pts = scale_to_square(pts, square_size)
    pts = translate_to_origin(pts)
    pts.flags.writeable = False
    return pts


# --- Matching ---

def path_distance(a: np.ndarray, b: np.ndarray) -> float:
    """Mean pointwise distance between two equally sampled paths."""
    n = min(len(a), len(b))
    return float(np.mean(np.linalg.norm(a[:n] - b[:n], axis=1)))


def distance_at_angle(points: np.ndarray, template: np.ndarray, radians: float) -> float:
    return path_distance(rotate_by(points, radians), template)


def distance_at_best_angle(
    points: np.ndarray,
    template: np.ndarray,
    a: float = -ANGLE_RANGE,
    b: float = ANGLE_RANGE,
    threshold: float = ANGLE_PRECISION,
) -> float:
    """Golden-section search for the rotation in [a, b] minimizing path distance."""
    x1 = PHI * a + (1.0 - PHI) * b
    f1 = distance_at_angle(points, template, x1)
    x2 = (1.0 - PHI) * a + PHI * b
    f2 = distance_at_angle(points, template, x2)

    while abs(b - a) > threshold:
        if f1 < f2:
            b = x2
            x2, f2 = x1, f1
            x1 = PHI * a + (1.0 - PHI) * b
            f1 = distance_at_angle(points, template, x1)
        else:
            a = x1
            x1, f1 = x2, f2
            x2 = (1.0 - PHI) * a + PHI * b
            f2 = distance_at_angle(points, template, x2)

    return min(f1, f2)


class NormalizationCache:
    """Memoizes normalized template samples.

    Entries are keyed by template name, sample index and a digest of the
    raw coordinates, so a stale entry can never be returned for changed
    samples. ``invalidate`` drops everything; the routine store calls it
    on every mutation.
    """

    def __init__(self, max_entries: int = 4096):
        self.max_entries = max_entries
        self._entries: dict[tuple[str, int, str], np.ndarray] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    @staticmethod
    def digest(points: np.ndarray) -> str:
        data = np.ascontiguousarray(points, dtype=np.float64)
        return hashlib.sha1(data.tobytes()).hexdigest()

    def get_or_compute(self, name: str, index: int, raw: np.ndarray, compute) -> np.ndarray:
        key = (name, index, self.digest(raw))
        with self._lock:
            cached = self._entries.get(key)
            if cached is not None:
                self.hits += 1
                return cached
            self.misses += 1

        normalized = compute(raw)

        with self._lock:
            if len(self._entries) >= self.max_entries:
                self._entries.clear()
            self._entries[key] = normalized
        return normalized

    def invalidate(self, *_args):
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class DollarRecognizer:
    """Scale, rotation and translation invariant unistroke matcher.

    Stateless apart from an optional normalization cache; identical inputs
    always give identical results, and the first template sample reaching
    the minimum distance wins ties.
    """

    def __init__(
        self,
        num_points: int = NUM_POINTS,
        square_size: float = SQUARE_SIZE,
        angle_range: float = ANGLE_RANGE,
        angle_precision: float = ANGLE_PRECISION,
        cache: Optional[NormalizationCache] = None,
    ):
        self.num_points = num_points
        self.square_size = square_size
        self.angle_range = angle_range
        self.angle_precision = angle_precision
        self.half_diagonal = 0.5 * math.sqrt(2.0) * square_size
        self.cache = cache

    def normalize(self, points) -> np.ndarray:
        return normalize(points, self.num_points, self.square_size)

    def _normalized_sample(self, name: str, index: int, sample) -> np.ndarray:
        raw = as_array(sample)
        if self.cache is None:
            return self.normalize(raw)
        return self.cache.get_or_compute(name, index, raw, self.normalize)

    def recognize(self, candidate, templates: Iterable[Template]) -> Match:
        """Return the best matching template name and its score.

        Candidates shorter than MIN_POINTS score 0 without being normalized.
        Empty samples are skipped. With no samples to compare against the
        result is ``Match("", 0.0)``.
        """
        if len(candidate) < MIN_POINTS:
            return Match(name="", score=0.0)

        points = self.normalize(candidate)

        best_distance = math.inf
        best_name = ""
        for template in templates:
            for index, sample in enumerate(template.samples):
                if len(sample) == 0:
                    continue
                normalized = self._normalized_sample(template.name, index, sample)
                d = distance_at_best_angle(
                    points, normalized,
                    -self.angle_range, self.angle_range, self.angle_precision,
                )
                if d < best_distance:
                    best_distance = d
                    best_name = template.name

        if math.isinf(best_distance):
            return Match(name="", score=0.0)

        return Match(name=best_name, score=1.0 - best_distance / self.half_diagonal)
