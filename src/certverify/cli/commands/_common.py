"""Helpers shared by CLI subcommands."""

from __future__ import annotations

import json
import sys
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pypgkit import Database

    from certverify.config.certverify_config import CertVerifyConfig


def open_database(config: CertVerifyConfig) -> Database | None:
    """Initialise the database when the config has a ``database`` section."""
    if config.settings.database is None:
        return None
    from certverify.db import init_database  # noqa: PLC0415

    return init_database(config.settings.database)


def write_json(payload: Any) -> None:  # noqa: ANN401
    sys.stdout.write(json.dumps(payload, indent=2, default=str) + "\n")
