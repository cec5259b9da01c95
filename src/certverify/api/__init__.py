"""Verification API layer -- Flask blueprint registration.

Call :func:`register_blueprints` during application startup to mount
the verification routes under ``{api.base_path}/verify``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from flask import Flask

log = logging.getLogger(__name__)


def register_blueprints(app: Flask) -> None:
    """Register the verification blueprint on the Flask application."""
    from certverify.api.verification import verification_bp  # noqa: PLC0415

    settings = app.config["CERTVERIFY_SETTINGS"]
    prefix = f"{settings.api.base_path}/verify"
    app.register_blueprint(verification_bp, url_prefix=prefix)
    log.info("Verification API registered at %s", prefix)
