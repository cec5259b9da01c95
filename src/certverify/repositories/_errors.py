"""Map driver connectivity errors onto the domain transport error."""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING

import psycopg

from certverify.core.errors import DirectoryUnavailableError

if TYPE_CHECKING:
    from collections.abc import Iterator


@contextlib.contextmanager
def store_errors(what: str) -> Iterator[None]:
    """Re-raise connection and pool failures as :class:`DirectoryUnavailableError`.

    Only operational errors are translated; SQL errors are programming
    bugs and propagate unchanged.
    """
    try:
        yield
    except (psycopg.OperationalError, psycopg.InterfaceError) as exc:
        msg = f"Database unavailable during {what}: {exc}"
        raise DirectoryUnavailableError(msg) from exc
