"""Logging subsystem for certverify.

Public API::

    from certverify.logging import configure_logging

    configure_logging(settings.logging)
"""

from certverify.logging.setup import configure_logging

__all__ = ["configure_logging"]
