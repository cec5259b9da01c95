"""WSGI entry point for external servers (gunicorn, uWSGI, etc.).

The config file path is read from the ``CERTVERIFY_CONFIG`` environment
variable.

Example::

    export CERTVERIFY_CONFIG=/etc/certverify/config.yaml
    gunicorn "certverify.server.wsgi:app"
"""

from __future__ import annotations

import os
import sys

_config_path = os.environ.get("CERTVERIFY_CONFIG")
if _config_path is None:
    sys.stderr.write("CERTVERIFY_CONFIG is not set\n")
    sys.exit(1)

# Bootstrap the singleton before anything else imports it.
from certverify.config import CertVerifyConfig  # noqa: E402

_config = CertVerifyConfig(config_file=_config_path)

from certverify.logging import configure_logging  # noqa: E402

configure_logging(_config.settings.logging)

from certverify.cli.commands._common import open_database  # noqa: E402

_db = open_database(_config)

from certverify.app import create_app  # noqa: E402

app = create_app(config=_config, database=_db)
