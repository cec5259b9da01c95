"""Prometheus-compatible metrics endpoint.

``GET /metrics`` returns counters in text exposition format.
"""

from __future__ import annotations

from flask import Blueprint, make_response

from certverify.app.context import get_container

metrics_bp = Blueprint("metrics", __name__)


@metrics_bp.route("", methods=["GET"])
def get_metrics():
    """Return metrics in Prometheus text exposition format."""
    collector = get_container().metrics_collector
    response = make_response(collector.export())
    response.headers["Content-Type"] = "text/plain; version=0.0.4; charset=utf-8"
    return response
