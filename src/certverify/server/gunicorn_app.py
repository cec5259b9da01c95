"""Programmatic gunicorn runner for certverify.

Starts gunicorn with settings derived from the certverify config
rather than requiring a separate gunicorn config file.

Usage::

    from certverify.server.gunicorn_app import run_gunicorn

    run_gunicorn(flask_app, settings.server)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from flask import Flask

    from certverify.config.settings import ServerSettings

log = logging.getLogger(__name__)


def gunicorn_options(settings: ServerSettings) -> dict:
    """Translate :class:`ServerSettings` into gunicorn config keys."""
    options = {
        "bind": f"{settings.bind}:{settings.port}",
        "workers": settings.workers,
        "worker_class": settings.worker_class,
        "timeout": settings.timeout,
        "graceful_timeout": settings.graceful_timeout,
        "keepalive": settings.keepalive,
        # Access lines come from certverify.access
        "accesslog": None,
    }
    if settings.max_requests:
        options["max_requests"] = settings.max_requests
    if settings.max_requests_jitter:
        options["max_requests_jitter"] = settings.max_requests_jitter
    return options


def run_gunicorn(app: Flask, settings: ServerSettings) -> None:
    """Start a gunicorn server from certverify :class:`ServerSettings`.

    Raises :class:`RuntimeError` if gunicorn is not installed (it is
    the optional ``server`` extra).
    """
    try:
        from gunicorn.app.base import BaseApplication  # noqa: PLC0415
    except ImportError:
        msg = (
            "gunicorn is not installed.  Install it with:\n"
            "    pip install 'certverify[server]'\n\n"
            "Use --dev for the Flask development server."
        )
        raise RuntimeError(msg) from None

    class _App(BaseApplication):
        def __init__(self, flask_app: Flask, options: dict) -> None:
            self.application = flask_app
            self._options = options
            super().__init__()

        def load_config(self) -> None:
            for key, value in self._options.items():
                self.cfg.set(key, value)

        def load(self) -> Flask:
            return self.application

    log.info(
        "Starting gunicorn on %s:%s (%d workers, %s)",
        settings.bind,
        settings.port,
        settings.workers,
        settings.worker_class,
    )
    _App(app, gunicorn_options(settings)).run()
