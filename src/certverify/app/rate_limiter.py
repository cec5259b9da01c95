"""In-memory request admission limits.

Thread-safe sliding-window counters keyed by (category, client_ip).
Raises :class:`~certverify.app.errors.Problem` (429) when a limit is
exceeded.  Categories match the rule names in
:class:`~certverify.config.settings.RateLimitSettings`: ``verify`` and
``bulk``.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import TYPE_CHECKING

from certverify.app.errors import RATE_LIMITED, Problem
from certverify.logging import security_events

if TYPE_CHECKING:
    from certverify.config.settings import RateLimitSettings

log = logging.getLogger(__name__)


class InMemoryRateLimiter:
    """Sliding-window counter rate limiter."""

    def __init__(self, settings: RateLimitSettings) -> None:
        self._settings = settings
        self._windows: dict[str, dict[str, list[float]]] = {}
        self._lock = threading.Lock()
        self._last_cleanup = time.monotonic()

    def check(self, key: str, category: str) -> None:
        """Count one request for *key* in *category*; raise 429 when over budget."""
        if not self._settings.enabled:
            return

        rule = getattr(self._settings, category, None)
        if rule is None:
            return

        now = time.monotonic()
        window_start = now - rule.window_seconds
        compound_key = f"{category}:{key}"

        with self._lock:
            self._maybe_cleanup(now)

            bucket = self._windows.setdefault(category, {})
            timestamps = bucket.setdefault(compound_key, [])
            timestamps[:] = [t for t in timestamps if t > window_start]

            if len(timestamps) >= rule.requests:
                oldest = min(timestamps)
                retry_after = int(oldest + rule.window_seconds - now) + 1
                security_events.rate_limit_exceeded(key, category, retry_after)
                raise Problem(
                    RATE_LIMITED,
                    f"Rate limit exceeded for {category}. Try again in {retry_after} seconds.",
                    status=429,
                    headers={"Retry-After": str(retry_after)},
                )

            timestamps.append(now)

    def gc(self) -> int:
        """Drop expired timestamps and empty keys; return keys removed."""
        with self._lock:
            return self._collect(time.monotonic())

    def _maybe_cleanup(self, now: float) -> None:
        if now - self._last_cleanup < self._settings.gc_interval_seconds:
            return
        self._collect(now)

    def _collect(self, now: float) -> int:
        self._last_cleanup = now
        removed = 0
        for category, bucket in self._windows.items():
            rule = getattr(self._settings, category, None)
            if rule is None:
                continue
            window_start = now - rule.window_seconds
            for compound_key in list(bucket):
                bucket[compound_key] = [t for t in bucket[compound_key] if t > window_start]
                if not bucket[compound_key]:
                    del bucket[compound_key]
                    removed += 1
        return removed


def create_rate_limiter(settings: RateLimitSettings) -> InMemoryRateLimiter:
    log.info(
        "Rate limits: verify=%d/%ds bulk=%d/%ds (enabled=%s)",
        settings.verify.requests,
        settings.verify.window_seconds,
        settings.bulk.requests,
        settings.bulk.window_seconds,
        settings.enabled,
    )
    return InMemoryRateLimiter(settings)
