"""Middleware stack for certverify.

WSGI-level:
    :class:`TrustedProxyMiddleware` resolves the real client IP and
    protocol from forwarded headers sent by an allowlisted proxy.

Flask-level (registered via :func:`register_request_hooks`):
    * Request ID generation / passthrough (``X-Request-ID``)
    * Per-client admission limits for the verify and bulk endpoints
    * Security headers
    * Structured access logging and request metrics
"""

from __future__ import annotations

import ipaddress
import logging
import time
from typing import TYPE_CHECKING
from uuid import uuid4

from flask import Flask, g, request

if TYPE_CHECKING:
    from collections.abc import Sequence

log = logging.getLogger(__name__)
access_log = logging.getLogger("certverify.access")


# ---------------------------------------------------------------------------
# WSGI middleware
# ---------------------------------------------------------------------------


class TrustedProxyMiddleware:
    """Rewrite ``REMOTE_ADDR`` and the URL scheme for trusted proxies.

    Connections from addresses outside *trusted_proxies* pass through
    unchanged, so a client cannot spoof its verifier IP by sending its
    own ``X-Forwarded-For``.
    """

    def __init__(
        self,
        app,
        *,
        trusted_proxies: Sequence[str] = (),
        for_header: str = "X-Forwarded-For",
        proto_header: str = "X-Forwarded-Proto",
    ) -> None:
        self.app = app
        self._networks = self._parse_networks(trusted_proxies)
        self._for_key = self._wsgi_header_key(for_header)
        self._proto_key = self._wsgi_header_key(proto_header)

    @staticmethod
    def _wsgi_header_key(header: str) -> str:
        """``X-Forwarded-For`` -> ``HTTP_X_FORWARDED_FOR``."""
        return "HTTP_" + header.upper().replace("-", "_")

    @staticmethod
    def _parse_networks(
        proxies: Sequence[str],
    ) -> list[ipaddress.IPv4Network | ipaddress.IPv6Network]:
        networks = []
        for entry in proxies:
            try:
                networks.append(ipaddress.ip_network(entry, strict=False))
            except ValueError:
                log.warning("Ignoring unparseable trusted proxy: %s", entry)
        return networks

    def _is_trusted(self, addr: str) -> bool:
        try:
            ip = ipaddress.ip_address(addr)
        except ValueError:
            return False
        return any(ip in net for net in self._networks)

    def _extract_client_ip(self, forwarded_for: str) -> str:
        """Walk the forwarded chain right-to-left, return the first untrusted hop."""
        parts = [p.strip() for p in forwarded_for.split(",") if p.strip()]
        for addr in reversed(parts):
            if not self._is_trusted(addr):
                return addr
        return parts[0] if parts else ""

    def __call__(self, environ, start_response):
        remote = environ.get("REMOTE_ADDR", "")

        if self._is_trusted(remote):
            forwarded_for = environ.get(self._for_key, "")
            if forwarded_for:
                client_ip = self._extract_client_ip(forwarded_for)
                if client_ip:
                    environ["REMOTE_ADDR"] = client_ip

            proto = environ.get(self._proto_key, "")
            if proto:
                environ["wsgi.url_scheme"] = proto.strip().lower()

        return self.app(environ, start_response)


# ---------------------------------------------------------------------------
# Flask request lifecycle hooks
# ---------------------------------------------------------------------------


def rate_limit_category(path: str, method: str, base_path: str) -> str | None:
    """Map a request onto a rate-limit rule name, or ``None`` if unlimited.

    Verification endpoints count against ``verify`` (``bulk`` for the
    batch endpoint); statistics and history reads are not limited.
    """
    verify_root = f"{base_path}/verify"
    if path != verify_root and not path.startswith(verify_root + "/"):
        return None
    tail = path[len(verify_root) :].strip("/")
    if method == "POST":
        if tail == "bulk":
            return "bulk"
        return "verify" if tail in ("", "signature") else None
    if method == "GET" and tail and tail.split("/", 1)[0] not in ("statistics", "history"):
        return "verify"
    return None


def register_request_hooks(app: Flask) -> None:
    """Register before/after request hooks for ID tracking, admission
    limits, security headers and access logging.
    """

    @app.before_request
    def _before_request() -> None:
        g.request_id = request.headers.get("X-Request-ID") or uuid4().hex
        g.start_time = time.monotonic()

        rate_limiter = app.extensions.get("rate_limiter")
        settings = app.config.get("CERTVERIFY_SETTINGS")
        if rate_limiter is None or settings is None:
            return
        category = rate_limit_category(request.path, request.method, settings.api.base_path)
        if category:
            rate_limiter.check(request.remote_addr or "unknown", category)

    @app.after_request
    def _after_request(response):
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
        response.headers.setdefault("Cache-Control", "no-store")
        settings = app.config.get("CERTVERIFY_SETTINGS")
        if settings is not None:
            hsts_max_age = settings.security.hsts_max_age_seconds
            if settings.server.external_url.startswith("https://") and hsts_max_age > 0:
                response.headers["Strict-Transport-Security"] = (
                    f"max-age={hsts_max_age}; includeSubDomains"
                )

        request_id = getattr(g, "request_id", None)
        if request_id:
            response.headers["X-Request-ID"] = request_id

        status = response.status_code
        container = app.extensions.get("container")
        if container is not None:
            collector = getattr(container, "metrics_collector", None)
            if collector is not None:
                collector.increment(
                    "certverify_http_requests_total",
                    labels={"method": request.method, "status": str(status)},
                )

        duration_ms = _elapsed_ms()
        level = (
            logging.WARNING
            if 400 <= status < 500
            else logging.ERROR
            if status >= 500
            else logging.INFO
        )
        access_log.log(
            level,
            "%s %s %s %.1fms",
            request.method,
            request.path,
            status,
            duration_ms,
            extra={
                "status": status,
                "duration_ms": round(duration_ms, 1),
                "content_length": response.content_length,
            },
        )

        return response


def _elapsed_ms() -> float:
    start = getattr(g, "start_time", None)
    if start is None:
        return 0.0
    return (time.monotonic() - start) * 1000
