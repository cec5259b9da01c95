"""Verification service counters with Prometheus text export.

Only the counters declared in :data:`COUNTERS` can be incremented;
each one carries its HELP text and the label names its series use.
Every declared counter is exported, including those never incremented,
so dashboards see a stable set of metric families from process start.
"""

from __future__ import annotations

import threading
import time

# name -> (help text, label names)
COUNTERS: dict[str, tuple[str, tuple[str, ...]]] = {
    "certverify_http_requests_total": (
        "HTTP requests served, by method and response status",
        ("method", "status"),
    ),
    "certverify_verifications_total": (
        "Completed verification attempts, by lookup method and outcome",
        ("method", "outcome"),
    ),
    "certverify_audit_write_failures_total": (
        "Verification log entries that could not be persisted",
        (),
    ),
    "certverify_cleanup_runs_total": (
        "Successful cleanup task runs",
        ("task",),
    ),
    "certverify_cleanup_errors_total": (
        "Failed cleanup task runs",
        ("task",),
    ),
}


def _escape(value: object) -> str:
    return str(value).replace("\\", "\\\\").replace("\n", "\\n").replace('"', '\\"')


class MetricsCollector:
    """Thread-safe store for the declared counters."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._series: dict[str, dict[tuple[str, ...], int]] = {name: {} for name in COUNTERS}
        self._started = time.time()

    @staticmethod
    def _label_values(name: str, labels: dict | None) -> tuple[str, ...]:
        try:
            _, label_names = COUNTERS[name]
        except KeyError:
            msg = f"Unknown counter {name!r}"
            raise KeyError(msg) from None
        given = labels or {}
        if set(given) != set(label_names):
            msg = f"Counter {name} takes labels {list(label_names)}, got {sorted(given)}"
            raise ValueError(msg)
        return tuple(str(given[label]) for label in label_names)

    def increment(self, name: str, amount: int = 1, labels: dict | None = None) -> None:
        values = self._label_values(name, labels)
        with self._lock:
            series = self._series[name]
            series[values] = series.get(values, 0) + amount

    def get(self, name: str, labels: dict | None = None) -> int:
        values = self._label_values(name, labels)
        with self._lock:
            return self._series[name].get(values, 0)

    def export(self) -> str:
        """Render the uptime gauge and every counter family."""
        with self._lock:
            snapshot = {name: dict(series) for name, series in self._series.items()}

        lines = [
            "# HELP certverify_uptime_seconds Seconds since the collector was created",
            "# TYPE certverify_uptime_seconds gauge",
            f"certverify_uptime_seconds {time.time() - self._started:.1f}",
        ]
        for name, (help_text, label_names) in COUNTERS.items():
            lines.append(f"# HELP {name} {help_text}")
            lines.append(f"# TYPE {name} counter")
            series = snapshot[name]
            if not label_names:
                lines.append(f"{name} {series.get((), 0)}")
                continue
            for values, count in sorted(series.items()):
                rendered = ",".join(
                    f'{label}="{_escape(v)}"' for label, v in zip(label_names, values, strict=True)
                )
                lines.append(f"{name}{{{rendered}}} {count}")
        return "\n".join(lines) + "\n"
