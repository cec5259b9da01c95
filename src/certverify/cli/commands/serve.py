"""Serve subcommand -- start the verification server."""

from __future__ import annotations

import logging

from certverify.cli.commands._common import open_database

log = logging.getLogger(__name__)


def run_serve(config, args) -> None:
    """Start gunicorn, or the Flask development server with ``--dev``."""
    from certverify.app import create_app  # noqa: PLC0415

    app = create_app(config=config, database=open_database(config))

    if args.dev:
        log.info("Starting development server (not for production)")
        app.run(
            host=config.settings.server.bind,
            port=config.settings.server.port,
            debug=True,
            use_reloader=False,
        )
    else:
        from certverify.server.gunicorn_app import run_gunicorn  # noqa: PLC0415

        run_gunicorn(app, config.settings.server)
