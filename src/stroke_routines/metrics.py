"""Prometheus-compatible metrics for recognition and routine execution.

Rendered in Prometheus text exposition format at /metrics.

Tracked metrics:
- stroke_routines_recognitions_total (counter, by outcome)
- stroke_routines_matches_total (counter, by routine name)
- stroke_routines_validations_total (counter, by outcome)
- stroke_routines_executions_total (counter, by routine name)
- stroke_routines_steps_total (counter, by result)
- stroke_routines_recognition_latency_seconds (histogram)
- stroke_routines_routines (gauge)
- stroke_routines_active_connections (gauge)
"""

from __future__ import annotations

import threading
import time
from collections import Counter


class _Histogram:
    """Simple histogram with configurable buckets."""

    def __init__(self, buckets: list[float]):
        self.buckets = sorted(buckets)
        self.bucket_counts = [0] * len(self.buckets)
        self.count = 0
        self.sum = 0.0
        self._lock = threading.Lock()

    def observe(self, value: float):
        with self._lock:
            self.count += 1
            self.sum += value
            for i, b in enumerate(self.buckets):
                if value <= b:
                    self.bucket_counts[i] += 1
                    break

    def render(self, name: str, help_text: str) -> str:
        lines = [
            f"# HELP {name} {help_text}",
            f"# TYPE {name} histogram",
        ]
        with self._lock:
            cumulative = 0
            for i, b in enumerate(self.buckets):
                cumulative += self.bucket_counts[i]
                lines.append(f'{name}_bucket{{le="{b}"}} {cumulative}')
            lines.append(f'{name}_bucket{{le="+Inf"}} {self.count}')
            lines.append(f"{name}_sum {self.sum:.6f}")
            lines.append(f"{name}_count {self.count}")
        return "\n".join(lines)


def _render_counter(lines: list[str], name: str, help_text: str, label: str, counts: Counter):
    lines.append(f"# HELP {name} {help_text}")
    lines.append(f"# TYPE {name} counter")
    for key, count in sorted(counts.items()):
        lines.append(f'{name}{{{label}="{key}"}} {count}')
    lines.append("")


class MetricsCollector:
    """Collects counters for the recognition and execution pipeline."""

    def __init__(self):
        self._recognitions: Counter = Counter()
        self._matches: Counter = Counter()
        self._validations: Counter = Counter()
        self._executions: Counter = Counter()
        self._steps: Counter = Counter()
        self._routines = 0
        self._active_connections = 0
        self._lock = threading.Lock()

        # Matching cost grows with template count; buckets from 1ms to 1s
        self._latency = _Histogram(
            [0.001, 0.005, 0.010, 0.025, 0.050, 0.100, 0.250, 0.500, 1.0]
        )

        self._start_time = time.time()

    def record_recognition(self, outcome: str, latency_seconds: float, name: str = ""):
        with self._lock:
            self._recognitions[outcome] += 1
            if outcome == "recognized" and name:
                self._matches[name] += 1
        self._latency.observe(latency_seconds)

    def record_validation(self, accepted: bool):
        with self._lock:
            self._validations["accepted" if accepted else "rejected"] += 1

    def record_execution(self, name: str, succeeded: int, failed: int):
        with self._lock:
            self._executions[name] += 1
            self._steps["success"] += succeeded
            self._steps["failed"] += failed

    def set_routines(self, count: int):
        self._routines = count

    def set_connections(self, count: int):
        self._active_connections = count

    def render(self) -> str:
        """Render all metrics in Prometheus text exposition format."""
        lines: list[str] = []

        uptime = time.time() - self._start_time
        lines.append("# HELP stroke_routines_uptime_seconds Time since server start")
        lines.append("# TYPE stroke_routines_uptime_seconds gauge")
        lines.append(f"stroke_routines_uptime_seconds {uptime:.1f}")
        lines.append("")

        with self._lock:
            _render_counter(
                lines, "stroke_routines_recognitions_total",
                "Recognition requests by outcome", "outcome", self._recognitions,
            )
            _render_counter(
                lines, "stroke_routines_matches_total",
                "Recognized gestures by routine", "routine", self._matches,
            )
            _render_counter(
                lines, "stroke_routines_validations_total",
                "Gesture validations by outcome", "outcome", self._validations,
            )
            _render_counter(
                lines, "stroke_routines_executions_total",
                "Routine executions by routine", "routine", self._executions,
            )
            _render_counter(
                lines, "stroke_routines_steps_total",
                "Executed routine steps by result", "result", self._steps,
            )

        lines.append(self._latency.render(
            "stroke_routines_recognition_latency_seconds",
            "Recognition latency in seconds",
        ))
        lines.append("")

        lines.append("# HELP stroke_routines_routines Registered routines")
        lines.append("# TYPE stroke_routines_routines gauge")
        lines.append(f"stroke_routines_routines {self._routines}")
        lines.append("")

        lines.append("# HELP stroke_routines_active_connections Current WebSocket connections")
        lines.append("# TYPE stroke_routines_active_connections gauge")
        lines.append(f"stroke_routines_active_connections {self._active_connections}")
        lines.append("")

        return "\n".join(lines) + "\n"

    @property
    def recognition_counts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._recognitions)

    @property
    def step_counts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._steps)
