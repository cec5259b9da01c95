"""Database subsystem for certverify.

Public API::

    from certverify.db import init_database
"""

from certverify.db.init import init_database, missing_tables

__all__ = [
    "init_database",
    "missing_tables",
]
