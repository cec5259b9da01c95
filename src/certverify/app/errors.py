"""RFC 7807 Problem Details for the verification API.

Provides :class:`Problem`, an exception that renders itself as an
``application/problem+json`` response, the service's error-type URNs,
and a Flask error-handler registration function that maps domain
exceptions onto them.

Usage::

    raise Problem(VALIDATION, "Request body is not valid JSON", 400)
"""

from __future__ import annotations

import logging
from typing import Any

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from certverify.core.errors import DirectoryUnavailableError, ValidationError

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Error-type URNs
# ---------------------------------------------------------------------------
_P = "urn:certverify:error:"

VALIDATION = _P + "validation"
RATE_LIMITED = _P + "rateLimited"
SERVICE_UNAVAILABLE = _P + "serviceUnavailable"
SERVER_INTERNAL = _P + "serverInternal"

PROBLEM_CONTENT_TYPE = "application/problem+json"

# Seconds a client should wait after a directory outage
DIRECTORY_RETRY_AFTER = 30


# ---------------------------------------------------------------------------
# Problem exception
# ---------------------------------------------------------------------------


class Problem(Exception):  # noqa: N818
    """An RFC 7807 *problem details* object that doubles as an exception.

    Parameters
    ----------
    error_type:
        A URN string (one of the constants above) or ``"about:blank"``
        for generic HTTP errors.
    detail:
        Human-readable explanation of the problem.
    status:
        HTTP status code (default 400).
    title:
        Short summary.
    errors:
        Optional list of ``{"field", "message"}`` dicts.
    headers:
        Extra HTTP headers to include on the response
        (e.g. ``Retry-After``).

    """

    def __init__(
        self,
        error_type: str,
        detail: str,
        status: int = 400,
        *,
        title: str | None = None,
        errors: list[dict[str, Any]] | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.error_type = error_type
        self.detail = detail
        self.status = status
        self.title = title
        self.errors = errors
        self.extra_headers = headers or {}
        super().__init__(detail)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "type": self.error_type,
            "detail": self.detail,
            "status": self.status,
        }
        if self.title is not None:
            body["title"] = self.title
        if self.errors:
            body["errors"] = self.errors
        return body

    def to_response(self):  # noqa: ANN201
        resp = jsonify(self.to_dict())
        resp.status_code = self.status
        resp.headers["Content-Type"] = PROBLEM_CONTENT_TYPE
        resp.headers["Cache-Control"] = "no-store"
        for key, value in self.extra_headers.items():
            resp.headers[key] = value
        return resp


def problem_from_validation(exc: ValidationError) -> Problem:
    return Problem(
        VALIDATION,
        exc.detail,
        400,
        title="Validation failed",
        errors=[e.to_dict() for e in exc.errors],
    )


# ---------------------------------------------------------------------------
# Flask error handler registration
# ---------------------------------------------------------------------------


def register_error_handlers(app: Flask) -> None:
    """Attach handlers that produce RFC 7807 responses for all errors."""

    @app.errorhandler(Problem)
    def _handle_problem(exc: Problem):  # noqa: ANN202
        return exc.to_response()

    @app.errorhandler(ValidationError)
    def _handle_validation(exc: ValidationError):  # noqa: ANN202
        return problem_from_validation(exc).to_response()

    @app.errorhandler(DirectoryUnavailableError)
    def _handle_directory_unavailable(exc: DirectoryUnavailableError):  # noqa: ANN202
        log.error("Directory unavailable: %s", exc.detail)
        problem = Problem(
            SERVICE_UNAVAILABLE,
            "Certificate or university directory is unavailable; verification "
            "could not be completed",
            503,
            headers={"Retry-After": str(DIRECTORY_RETRY_AFTER)},
        )
        return problem.to_response()

    @app.errorhandler(HTTPException)
    def _handle_http_exception(exc: HTTPException):  # noqa: ANN202
        problem = Problem(
            "about:blank",
            exc.description or "An error occurred",
            exc.code or 500,
            title=exc.name,
        )
        return problem.to_response()

    @app.errorhandler(Exception)
    def _handle_unhandled(exc: Exception):  # noqa: ANN202, ARG001
        log.exception("Unhandled exception during request")
        problem = Problem(
            SERVER_INTERNAL,
            "An unexpected internal error occurred",
            500,
        )
        return problem.to_response()
