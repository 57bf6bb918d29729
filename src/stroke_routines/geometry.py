"""2D stroke geometry — points, strokes and the measurements used by matching.

Strokes are immutable once captured. Every helper that transforms points
returns a new array and never writes into its input.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Sequence

import numpy as np


@dataclass(frozen=True)
class Point:
    """A single captured pointer position."""
    x: float
    y: float

    def to_dict(self) -> dict:
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_value(cls, value: Any) -> Point:
        """Build a point from a Point, an ``{x, y}`` mapping or an ``(x, y)`` pair."""
        if isinstance(value, Point):
            return value
        if isinstance(value, dict):
            return cls(float(value["x"]), float(value["y"]))
        x, y = value
        return cls(float(x), float(y))


@dataclass(frozen=True)
class BoundingBox:
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class Stroke:
    """An ordered sequence of points from one continuous pointer drag."""
    points: tuple[Point, ...] = ()

    @classmethod
    def coerce(cls, value: Any) -> Stroke:
        """Accept a Stroke, an (N, 2) array, or any iterable of point-like values."""
        if isinstance(value, Stroke):
            return value
        if isinstance(value, np.ndarray):
            return cls.from_array(value)
        return cls(tuple(Point.from_value(p) for p in value))

    @classmethod
    def from_array(cls, points: np.ndarray) -> Stroke:
        return cls(tuple(Point(float(x), float(y)) for x, y in np.asarray(points)[:, :2]))

    def as_array(self) -> np.ndarray:
        """Return the points as a fresh float64 array of shape (N, 2)."""
        if not self.points:
            return np.zeros((0, 2), dtype=np.float64)
        return np.array([[p.x, p.y] for p in self.points], dtype=np.float64)

    def to_list(self) -> list[dict]:
        return [p.to_dict() for p in self.points]

    def __len__(self) -> int:
        return len(self.points)

    def __iter__(self) -> Iterator[Point]:
        return iter(self.points)


def as_array(points: Stroke | np.ndarray | Iterable) -> np.ndarray:
    """Coerce any stroke-like value to a float64 (N, 2) array."""
    if isinstance(points, np.ndarray):
        return np.asarray(points, dtype=np.float64)[:, :2]
    return Stroke.coerce(points).as_array()


def distance(a: Sequence[float], b: Sequence[float]) -> float:
    """Euclidean distance between two points given as (x, y) pairs."""
    return math.hypot(b[0] - a[0], b[1] - a[1])


def path_length(points: np.ndarray) -> float:
    """Sum of the segment lengths along the path."""
    if len(points) < 2:
        return 0.0
    return float(np.sum(np.linalg.norm(np.diff(points, axis=0), axis=1)))


def centroid(points: np.ndarray) -> np.ndarray:
    return points.mean(axis=0)


def bounding_box(points: np.ndarray) -> BoundingBox:
    lo = points.min(axis=0)
    hi = points.max(axis=0)
    return BoundingBox(
        x=float(lo[0]),
        y=float(lo[1]),
        width=float(hi[0] - lo[0]),
        height=float(hi[1] - lo[1]),
    )
