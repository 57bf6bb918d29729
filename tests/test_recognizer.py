"""Tests for the $1 unistroke recognizer and its normalization pipeline."""

import math

import numpy as np
import pytest

from stroke_routines.geometry import Stroke, bounding_box, centroid, path_length
from stroke_routines.recognizer import (
    ANGLE_PRECISION,
    ANGLE_RANGE,
    HALF_DIAGONAL,
    MIN_POINTS,
    NUM_POINTS,
    SQUARE_SIZE,
    DollarRecognizer,
    Match,
    NormalizationCache,
    Template,
    indicative_angle,
    normalize,
    resample,
    rotate_by,
    scale_to_square,
    translate_to_origin,
)


def make_circle(n=20, r=50.0, cx=100.0, cy=100.0, wobble=0.0):
    """Closed circle approximation; ``wobble`` adds a 3-lobed radius ripple."""
    pts = []
    for i in range(n + 1):
        t = 2 * math.pi * i / n
        radius = r + wobble * math.sin(3 * t)
        pts.append({"x": cx + radius * math.cos(t), "y": cy + radius * math.sin(t)})
    return pts


def make_line(n=21, length=200.0, y=100.0):
    return [{"x": length * i / (n - 1), "y": y} for i in range(n)]


def make_zigzag():
    return [{"x": i * 20.0, "y": 0.0 if i % 2 == 0 else 60.0} for i in range(9)]


def transform(points, scale=1.0, angle_deg=0.0):
    """Scale and rotate a point list about its centroid."""
    arr = Stroke.coerce(points).as_array()
    c = arr.mean(axis=0)
    a = math.radians(angle_deg)
    rot = np.array([[math.cos(a), -math.sin(a)], [math.sin(a), math.cos(a)]])
    out = (arr - c) @ rot.T * scale + c
    return [{"x": float(x), "y": float(y)} for x, y in out]


class TestConstants:
    def test_observable_constants(self):
        assert MIN_POINTS == 5
        assert NUM_POINTS == 64
        assert SQUARE_SIZE == 250.0
        assert ANGLE_RANGE == pytest.approx(math.radians(45))
        assert ANGLE_PRECISION == pytest.approx(math.radians(2))
        assert HALF_DIAGONAL == pytest.approx(0.5 * math.sqrt(2) * 250.0)


class TestNormalization:
    def test_resample_count(self):
        pts = Stroke.coerce(make_circle()).as_array()
        assert len(resample(pts, NUM_POINTS)) == NUM_POINTS

    def test_resample_equidistant(self):
        pts = Stroke.coerce(make_line()).as_array()
        out = resample(pts, 64)
        gaps = np.linalg.norm(np.diff(out, axis=0), axis=1)
        assert gaps == pytest.approx(np.full(63, 200.0 / 63), abs=1e-6)

    def test_resample_keeps_endpoints(self):
        pts = Stroke.coerce(make_line()).as_array()
        out = resample(pts, 64)
        np.testing.assert_allclose(out[0], [0.0, 100.0], atol=1e-9)
        np.testing.assert_allclose(out[-1], [200.0, 100.0], atol=1e-6)

    def test_resample_zero_length(self):
        pts = np.array([[3.0, 4.0]] * 6)
        out = resample(pts, 64)
        assert out.shape == (64, 2)
        assert np.all(out == [3.0, 4.0])

    def test_resample_covers_whole_circle(self):
        pts = Stroke.coerce(make_circle()).as_array()
        out = resample(pts, 64)
        gaps = np.linalg.norm(np.diff(out, axis=0), axis=1)
        interval = path_length(pts) / 63
        # Chords across polygon corners are slightly shorter than the arc step
        assert gaps == pytest.approx(np.full(63, interval), rel=0.02)
        assert gaps.min() > 0.0
        np.testing.assert_allclose(out[-1], pts[-1], atol=1e-6)

    def test_resample_zigzag_terminates_at_end(self):
        pts = Stroke.coerce(make_zigzag()).as_array()
        out = resample(pts, 64)
        assert out.shape == (64, 2)
        np.testing.assert_allclose(out[-1], pts[-1], atol=1e-6)

    def test_resample_empty_stroke_rejected(self):
        with pytest.raises(ValueError):
            resample(np.zeros((0, 2)), 64)

    def test_resample_does_not_mutate_input(self):
        pts = Stroke.coerce(make_circle()).as_array()
        before = pts.copy()
        resample(pts, 64)
        np.testing.assert_array_equal(pts, before)

    def test_indicative_angle(self):
        pts = np.array([[0.0, 0.0], [2.0, 2.0], [4.0, 4.0]])
        assert indicative_angle(pts) == pytest.approx(math.pi / 4)

    def test_rotate_keeps_centroid(self):
        pts = Stroke.coerce(make_zigzag()).as_array()
        rotated = rotate_by(pts, 0.7)
        np.testing.assert_allclose(centroid(rotated), centroid(pts), atol=1e-9)
        assert path_length(rotated) == pytest.approx(path_length(pts))

    def test_scale_to_square(self):
        pts = np.array([[0.0, 0.0], [10.0, 0.0], [10.0, 40.0], [0.0, 40.0]])
        box = bounding_box(scale_to_square(pts, 250.0))
        assert box.width == pytest.approx(250.0)
        assert box.height == pytest.approx(250.0)

    def test_scale_leaves_flat_axis(self):
        pts = Stroke.coerce(make_line()).as_array()
        scaled = scale_to_square(pts, 250.0)
        box = bounding_box(scaled)
        assert box.width == pytest.approx(250.0)
        assert box.height == 0.0
        assert np.all(np.isfinite(scaled))

    def test_translate_to_origin(self):
        pts = Stroke.coerce(make_circle()).as_array()
        np.testing.assert_allclose(centroid(translate_to_origin(pts)), [0.0, 0.0], atol=1e-9)

    def test_normalize_shape(self):
        out = normalize(make_circle())
        assert out.shape == (NUM_POINTS, 2)
        np.testing.assert_allclose(centroid(out), [0.0, 0.0], atol=1e-9)
        box = bounding_box(out)
        assert box.width == pytest.approx(SQUARE_SIZE)
        assert box.height == pytest.approx(SQUARE_SIZE)

    def test_normalize_returns_read_only_array(self):
        out = normalize(make_circle())
        with pytest.raises(ValueError):
            out[0, 0] = 1.0

    def test_normalization_is_idempotent(self):
        # Dense enough that chords and arcs nearly agree on the second pass
        once = normalize(make_circle(n=256))
        twice = normalize(once)
        assert np.max(np.abs(twice - once)) < 0.1

    def test_normalization_is_exact_fixed_point_for_line(self):
        once = normalize(make_line())
        twice = normalize(once)
        assert np.max(np.abs(twice - once)) < 1e-9


class TestRecognize:
    def test_too_few_points(self):
        recognizer = DollarRecognizer()
        short = make_line(n=4)
        result = recognizer.recognize(short, [Template.from_samples("line", [make_line()])])
        assert result == Match(name="", score=0.0)

    def test_no_templates(self):
        recognizer = DollarRecognizer()
        assert recognizer.recognize(make_circle(), []) == Match(name="", score=0.0)

    def test_empty_sample_skipped(self):
        recognizer = DollarRecognizer(cache=NormalizationCache())
        templates = [
            Template.from_samples("broken", [[]]),
            Template.from_samples("circle", [make_circle()]),
        ]
        result = recognizer.recognize(make_circle(wobble=1.0), templates)
        assert result.name == "circle"
        assert recognizer.recognize(make_circle(), templates[:1]) == Match(name="", score=0.0)

    def test_identical_stroke_scores_high(self):
        recognizer = DollarRecognizer()
        circle = make_circle()
        result = recognizer.recognize(circle, [Template.from_samples("circle", [circle])])
        assert result.name == "circle"
        assert result.score > 0.95
        assert result.score <= 1.0

    def test_picks_best_template(self):
        recognizer = DollarRecognizer()
        templates = [
            Template.from_samples("line", [make_line()]),
            Template.from_samples("circle", [make_circle()]),
            Template.from_samples("zigzag", [make_zigzag()]),
        ]
        result = recognizer.recognize(make_circle(wobble=1.5, r=60.0), templates)
        assert result.name == "circle"

    def test_matches_any_sample_of_group(self):
        recognizer = DollarRecognizer()
        templates = [
            Template.from_samples("line", [make_line()]),
            Template.from_samples("shapes", [make_zigzag(), make_circle()]),
        ]
        result = recognizer.recognize(make_circle(r=40.0), templates)
        assert result.name == "shapes"

    def test_dissimilar_shape_scores_low(self):
        recognizer = DollarRecognizer()
        result = recognizer.recognize(make_circle(), [Template.from_samples("line", [make_line()])])
        assert result.name == "line"
        assert result.score < 0.78

    def test_deterministic(self):
        recognizer = DollarRecognizer()
        templates = [
            Template.from_samples("a", [make_circle()]),
            Template.from_samples("b", [make_zigzag()]),
        ]
        candidate = make_circle(wobble=2.0)
        assert recognizer.recognize(candidate, templates) == recognizer.recognize(candidate, templates)

    def test_first_seen_wins_ties(self):
        recognizer = DollarRecognizer()
        circle = make_circle()
        templates = [
            Template.from_samples("first", [circle]),
            Template.from_samples("second", [circle]),
        ]
        assert recognizer.recognize(circle, templates).name == "first"

    def test_accepts_stroke_and_array_input(self):
        recognizer = DollarRecognizer()
        templates = [Template.from_samples("circle", [make_circle()])]
        as_dicts = recognizer.recognize(make_circle(wobble=1.0), templates)
        as_stroke = recognizer.recognize(Stroke.coerce(make_circle(wobble=1.0)), templates)
        as_array = recognizer.recognize(Stroke.coerce(make_circle(wobble=1.0)).as_array(), templates)
        assert as_dicts == as_stroke == as_array


class TestInvariance:
    @pytest.mark.parametrize("k", [0.25, 3.0, 10.0])
    def test_scale_invariance(self, k):
        recognizer = DollarRecognizer()
        templates = [Template.from_samples("circle", [make_circle()])]
        candidate = make_circle(wobble=2.0)
        base = recognizer.recognize(candidate, templates).score
        scaled = recognizer.recognize(transform(candidate, scale=k), templates).score
        assert scaled == pytest.approx(base, abs=1e-6)

    def test_scale_invariance_identical_sample(self):
        recognizer = DollarRecognizer()
        circle = make_circle()
        templates = [Template.from_samples("circle", [circle])]
        base = recognizer.recognize(circle, templates).score
        scaled = recognizer.recognize(transform(circle, scale=4.0), templates).score
        assert scaled == pytest.approx(base, abs=0.02)

    def test_translation_invariance(self):
        recognizer = DollarRecognizer()
        templates = [Template.from_samples("circle", [make_circle()])]
        here = recognizer.recognize(make_circle(wobble=2.0), templates).score
        there = recognizer.recognize(make_circle(wobble=2.0, cx=-400.0, cy=900.0), templates).score
        assert there == pytest.approx(here, abs=1e-6)

    def test_rotation_within_range_not_worse(self):
        recognizer = DollarRecognizer()
        templates = [Template.from_samples("zigzag", [make_zigzag()])]
        candidate = make_zigzag()
        candidate[3] = {"x": 60.0, "y": 55.0}
        inside = recognizer.recognize(transform(candidate, angle_deg=30.0), templates).score
        outside = recognizer.recognize(transform(candidate, angle_deg=120.0), templates).score
        assert inside >= outside - 1e-4
        assert inside > 0.9


class TestNormalizationCache:
    def test_cache_hits_on_repeat(self):
        cache = NormalizationCache()
        recognizer = DollarRecognizer(cache=cache)
        templates = [Template.from_samples("circle", [make_circle(), make_circle(r=30.0)])]
        recognizer.recognize(make_circle(wobble=1.0), templates)
        assert cache.misses == 2
        recognizer.recognize(make_circle(wobble=1.0), templates)
        assert cache.hits == 2
        assert len(cache) == 2

    def test_cached_result_matches_uncached(self):
        templates = [Template.from_samples("circle", [make_circle()])]
        candidate = make_circle(wobble=1.5)
        cached = DollarRecognizer(cache=NormalizationCache())
        plain = DollarRecognizer()
        cached.recognize(candidate, templates)
        assert cached.recognize(candidate, templates) == plain.recognize(candidate, templates)

    def test_changed_sample_is_recomputed(self):
        cache = NormalizationCache()
        recognizer = DollarRecognizer(cache=cache)
        recognizer.recognize(make_circle(), [Template.from_samples("g", [make_circle()])])
        recognizer.recognize(make_circle(), [Template.from_samples("g", [make_zigzag()])])
        assert cache.misses == 2

    def test_invalidate(self):
        cache = NormalizationCache()
        recognizer = DollarRecognizer(cache=cache)
        recognizer.recognize(make_circle(), [Template.from_samples("g", [make_circle()])])
        assert len(cache) == 1
        cache.invalidate()
        assert len(cache) == 0
