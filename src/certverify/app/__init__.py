"""Flask application package for certverify.

Public API::

    from certverify.app import create_app
"""

from certverify.app.factory import create_app

__all__ = ["create_app"]
