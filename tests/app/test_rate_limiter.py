"""Tests for certverify.app.rate_limiter."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from certverify.app.errors import RATE_LIMITED, Problem
from certverify.app.rate_limiter import InMemoryRateLimiter
from certverify.config.settings import RateLimitRule, RateLimitSettings


def _settings(*, enabled=True, verify=2, bulk=1, window=60):
    return RateLimitSettings(
        enabled=enabled,
        verify=RateLimitRule(requests=verify, window_seconds=window),
        bulk=RateLimitRule(requests=bulk, window_seconds=window),
        gc_interval_seconds=300,
    )


class TestInMemoryRateLimiter:
    def test_allows_up_to_limit(self):
        limiter = InMemoryRateLimiter(_settings(verify=2))
        limiter.check("198.51.100.1", "verify")
        limiter.check("198.51.100.1", "verify")
        with pytest.raises(Problem) as exc_info:
            limiter.check("198.51.100.1", "verify")
        problem = exc_info.value
        assert problem.status == 429
        assert problem.error_type == RATE_LIMITED
        assert int(problem.extra_headers["Retry-After"]) >= 1

    def test_keys_are_independent(self):
        limiter = InMemoryRateLimiter(_settings(verify=1))
        limiter.check("198.51.100.1", "verify")
        limiter.check("198.51.100.2", "verify")

    def test_categories_are_independent(self):
        limiter = InMemoryRateLimiter(_settings(verify=1, bulk=1))
        limiter.check("198.51.100.1", "verify")
        limiter.check("198.51.100.1", "bulk")

    def test_disabled(self):
        limiter = InMemoryRateLimiter(_settings(enabled=False, verify=1))
        for _ in range(5):
            limiter.check("198.51.100.1", "verify")

    def test_unknown_category_unlimited(self):
        limiter = InMemoryRateLimiter(_settings(verify=1))
        for _ in range(5):
            limiter.check("198.51.100.1", "statistics")

    def test_window_expiry(self):
        limiter = InMemoryRateLimiter(_settings(verify=1, window=10))
        with patch("certverify.app.rate_limiter.time.monotonic", return_value=1000.0):
            limiter.check("198.51.100.1", "verify")
        with patch("certverify.app.rate_limiter.time.monotonic", return_value=1011.0):
            limiter.check("198.51.100.1", "verify")

    def test_gc_removes_idle_keys(self):
        limiter = InMemoryRateLimiter(_settings(window=10))
        with patch("certverify.app.rate_limiter.time.monotonic", return_value=1000.0):
            limiter.check("198.51.100.1", "verify")
            limiter.check("198.51.100.2", "bulk")
        with patch("certverify.app.rate_limiter.time.monotonic", return_value=2000.0):
            assert limiter.gc() == 2

    def test_exceeded_emits_security_event(self):
        limiter = InMemoryRateLimiter(_settings(verify=1))
        limiter.check("198.51.100.1", "verify")
        with (
            patch("certverify.app.rate_limiter.security_events.rate_limit_exceeded") as event,
            pytest.raises(Problem),
        ):
            limiter.check("198.51.100.1", "verify")
        event.assert_called_once()
        assert event.call_args.args[:2] == ("198.51.100.1", "verify")
