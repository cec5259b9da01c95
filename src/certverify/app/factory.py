"""Flask application factory for certverify.

Usage::

    from certverify.app import create_app
    from certverify.config import get_config
    from certverify.db import init_database

    settings = get_config().settings
    db  = init_database(settings.database) if settings.database else None
    app = create_app(config=get_config(), database=db)
"""

from __future__ import annotations

import atexit
import logging
from typing import TYPE_CHECKING

from flask import Flask, jsonify

if TYPE_CHECKING:
    from flask.typing import ResponseReturnValue
    from pypgkit import Database

    from certverify.app.context import Container
    from certverify.config.certverify_config import CertVerifyConfig
    from certverify.config.settings import CertVerifySettings

log = logging.getLogger(__name__)


def create_app(
    config: CertVerifyConfig | None = None,
    database: Database | None = None,
    *,
    container: Container | None = None,
) -> Flask:
    """Create and configure the certverify Flask application.

    Parameters
    ----------
    config:
        Loaded :class:`CertVerifyConfig`.  Falls back to
        :func:`get_config` when ``None``.
    database:
        Initialised :class:`Database`.  Only required when the
        directory or audit backend is ``database``; without it such a
        configuration starts with health endpoints only.
    container:
        Pre-built dependency container (tests inject directories and
        stores this way).  Built from *config* when omitted.

    Returns
    -------
    Flask
        Fully configured WSGI application.

    """
    if config is None:
        from certverify.config import get_config  # noqa: PLC0415

        config = get_config()

    settings = config.settings

    app = Flask("certverify")
    app.config["CERTVERIFY_SETTINGS"] = settings
    app.config["CERTVERIFY_CONFIG"] = config
    app.config["MAX_CONTENT_LENGTH"] = settings.security.max_request_body_bytes
    app.json.sort_keys = False

    # -- Rate limiter -------------------------------------------------------
    if settings.security.rate_limits.enabled:
        from certverify.app.rate_limiter import create_rate_limiter  # noqa: PLC0415

        app.extensions["rate_limiter"] = create_rate_limiter(settings.security.rate_limits)

    # -- WSGI middleware (outermost layer) -----------------------------------
    if settings.proxy.enabled:
        from certverify.app.middleware import TrustedProxyMiddleware  # noqa: PLC0415

        app.wsgi_app = TrustedProxyMiddleware(  # type: ignore[method-assign]
            app.wsgi_app,
            trusted_proxies=settings.proxy.trusted_proxies,
            for_header=settings.proxy.forwarded_for_header,
            proto_header=settings.proxy.forwarded_proto_header,
        )
        log.info("Proxy middleware enabled (trusted: %s)", list(settings.proxy.trusted_proxies))

    # -- Error handlers (RFC 7807) ------------------------------------------
    from certverify.app.errors import register_error_handlers  # noqa: PLC0415

    register_error_handlers(app)

    # -- Request lifecycle hooks --------------------------------------------
    from certverify.app.middleware import register_request_hooks  # noqa: PLC0415

    register_request_hooks(app)

    # -- Infrastructure endpoints -------------------------------------------
    _register_health(app)

    # -- Dependency container -----------------------------------------------
    if container is None:
        if database is None and _needs_database(settings):
            log.warning(
                "No database supplied for a database-backed configuration; "
                "verification routes are not registered",
            )
        else:
            from certverify.app.context import Container  # noqa: PLC0415

            container = Container(
                settings,
                database,
                rate_limiter=app.extensions.get("rate_limiter"),
            )

    if container is not None:
        app.extensions["container"] = container

        container.cleanup_worker.start()
        atexit.register(container.shutdown)

        # -- Verification API routes ----------------------------------------
        from certverify.api import register_blueprints  # noqa: PLC0415

        register_blueprints(app)

        # -- Metrics endpoint (optional) ------------------------------------
        if settings.metrics.enabled:
            from certverify.api.metrics import metrics_bp  # noqa: PLC0415

            app.register_blueprint(metrics_bp, url_prefix=settings.metrics.path)
            log.info("Metrics endpoint registered at %s", settings.metrics.path)

    log.info("Flask application created")
    return app


def _needs_database(settings: CertVerifySettings) -> bool:
    return settings.directory.backend == "database" or settings.audit.backend == "database"


# ---------------------------------------------------------------------------
# Infrastructure endpoints
# ---------------------------------------------------------------------------


def _register_health(app: Flask) -> None:
    """Register ``/livez``, ``/healthz``, and ``/readyz`` probes."""
    from certverify import __version__  # noqa: PLC0415

    @app.route("/livez")
    def livez() -> ResponseReturnValue:
        """Return minimal liveness probe."""
        return jsonify({"alive": True, "version": __version__}), 200

    @app.route("/healthz")
    def healthz() -> ResponseReturnValue:
        """Return comprehensive health status."""
        result: dict = {"status": "ok", "version": __version__}
        checks: dict = {}

        container = app.extensions.get("container")
        if container is None:
            result["status"] = "degraded"
            checks["container"] = "not initialized"
        else:
            if container.db is not None:
                try:
                    container.db.fetch_value("SELECT 1")
                    checks["database"] = "connected"
                except Exception:  # noqa: BLE001
                    checks["database"] = "disconnected"
                    result["status"] = "degraded"

                try:
                    pool = getattr(container.db, "_pool", None)
                    if pool is not None and hasattr(pool, "get_stats"):
                        stats = pool.get_stats()
                        result["pool"] = {
                            "size": stats.get("pool_size", 0),
                            "available": stats.get("pool_available", 0),
                            "waiting": stats.get("requests_waiting", 0),
                        }
                except Exception:  # noqa: BLE001
                    log.debug("Failed to retrieve connection pool stats")

            # Worker liveness; a worker with no tasks never starts
            t = getattr(container.cleanup_worker, "_thread", None)
            if t is not None:
                alive = t.is_alive()
                result["workers"] = {"cleanup_worker": "alive" if alive else "dead"}
                if not alive:
                    result["status"] = "degraded"

            result["audit"] = {
                "written": container.audit.write_count,
                "failed": container.audit.failure_count,
            }

        if checks:
            result["checks"] = checks

        code = 200 if result["status"] == "ok" else 503
        return jsonify(result), code

    @app.route("/readyz")
    def readyz() -> ResponseReturnValue:
        """Return readiness probe."""
        container = app.extensions.get("container")
        if container is None:
            return jsonify({"ready": False, "reason": "Container not initialized"}), 503

        if container.db is not None:
            try:
                container.db.fetch_value("SELECT 1")
            except Exception:  # noqa: BLE001
                return jsonify({"ready": False, "reason": "Database not connected"}), 503

        return jsonify({"ready": True}), 200
