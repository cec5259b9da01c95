"""Directories backed by the certificate and university registry services.

API contract
------------
Both registries answer ``GET`` requests with a JSON envelope::

    {"success": true, "data": {...}}

**Certificates** (``directory.certificate_service_url``)

- ``GET {base}/api/certificates/{id}``
- ``GET {base}/api/certificates/code/{code}``

**Universities** (``directory.university_service_url``)

- ``GET {base}/api/universities/{id}``
- ``GET {base}/api/universities/{id}/public-key`` answering
  ``{"data": {"publicKey": "...", "universityName": "..."}}``

HTTP 404 means the record does not exist.  Any other non-2xx status,
a connection error, a timeout or an unparseable body raises
:class:`~certverify.core.errors.DirectoryUnavailableError`.
"""

from __future__ import annotations

import contextlib
import http.client
import json
import logging
import ssl
import time
import urllib.error
import urllib.parse
import urllib.request
from http import HTTPStatus
from typing import TYPE_CHECKING, Any

from certverify.core.errors import DirectoryUnavailableError
from certverify.directory.base import CertificateDirectory, UniversityDirectory
from certverify.directory.records import certificate_from_dict, university_from_dict

if TYPE_CHECKING:
    from certverify.config.settings import DirectorySettings
    from certverify.models import Certificate, University

log = logging.getLogger(__name__)


class RegistryClient:
    """Minimal JSON-over-HTTP client for one registry service."""

    def __init__(self, base_url: str, settings: DirectorySettings) -> None:
        self._base_url = base_url.rstrip("/")
        self._settings = settings
        self._ssl_ctx: ssl.SSLContext | None = None

    @property
    def base_url(self) -> str:
        return self._base_url

    def _get_ssl_context(self) -> ssl.SSLContext:
        if self._ssl_ctx is None:
            self._ssl_ctx = ssl.create_default_context()
        return self._ssl_ctx

    def url_for(self, *segments: str) -> str:
        """Join quoted path *segments* onto the base URL."""
        quoted = "/".join(urllib.parse.quote(s, safe="") for s in segments)
        return f"{self._base_url}/{quoted}"

    def _build_request(self, url: str) -> urllib.request.Request:
        req = urllib.request.Request(  # noqa: S310
            url,
            method="GET",
            headers={"Accept": "application/json"},
        )
        if self._settings.auth_value:
            req.add_header(self._settings.auth_header, self._settings.auth_value)
        return req

    def get(self, url: str) -> dict | None:
        """GET *url* with retries; return the envelope's ``data`` or ``None`` on 404."""
        max_retries = self._settings.max_retries
        delay = self._settings.retry_delay_seconds
        last_exc: DirectoryUnavailableError | None = None

        for attempt in range(max_retries + 1):
            try:
                return self._get_once(url)
            except DirectoryUnavailableError as exc:
                if not exc.retryable or attempt == max_retries:
                    raise
                last_exc = exc
                log.warning(
                    "Registry request attempt %d/%d failed: %s",
                    attempt + 1,
                    max_retries + 1,
                    exc.detail,
                )
                time.sleep(delay * (2**attempt))

        raise last_exc  # type: ignore[misc]

    def _get_once(self, url: str) -> dict | None:
        req = self._build_request(url)
        handler = urllib.request.HTTPSHandler(context=self._get_ssl_context())
        opener = urllib.request.build_opener(handler)

        try:
            resp = opener.open(req, timeout=self._settings.timeout_seconds)
        except urllib.error.HTTPError as exc:
            if exc.code == HTTPStatus.NOT_FOUND:
                return None
            body = ""
            with contextlib.suppress(Exception):
                body = exc.read().decode("utf-8", errors="replace")[:500]
            msg = f"Registry returned HTTP {exc.code} for {url}: {body}"
            raise DirectoryUnavailableError(
                msg,
                retryable=exc.code >= HTTPStatus.INTERNAL_SERVER_ERROR,
            ) from exc
        except (urllib.error.URLError, OSError) as exc:
            msg = f"Failed to reach registry at {url}: {exc}"
            raise DirectoryUnavailableError(msg, retryable=True) from exc

        with resp:
            status = resp.status
            if status == HTTPStatus.NOT_FOUND:
                return None
            if not HTTPStatus.OK <= status < HTTPStatus.MULTIPLE_CHOICES:
                msg = f"Registry returned unexpected HTTP {status} for {url}"
                raise DirectoryUnavailableError(
                    msg,
                    retryable=status >= HTTPStatus.INTERNAL_SERVER_ERROR,
                )
            try:
                raw = resp.read()
            except (OSError, http.client.HTTPException) as exc:
                msg = f"Failed to read registry response from {url}: {exc!r}"
                raise DirectoryUnavailableError(msg, retryable=True) from exc
            try:
                payload = json.loads(raw.decode("utf-8"))
            except (json.JSONDecodeError, UnicodeDecodeError) as exc:
                msg = f"Registry returned invalid JSON for {url}: {exc}"
                raise DirectoryUnavailableError(msg, retryable=False) from exc

        return _unwrap(payload, url)


def _unwrap(payload: Any, url: str) -> dict | None:  # noqa: ANN401
    if not isinstance(payload, dict):
        msg = f"Registry response for {url} is not a JSON object"
        raise DirectoryUnavailableError(msg, retryable=False)
    if payload.get("success") is False:
        msg = f"Registry reported failure for {url}: {payload.get('error', 'no detail')}"
        raise DirectoryUnavailableError(msg, retryable=False)
    data = payload.get("data")
    if data is None:
        return None
    if not isinstance(data, dict):
        msg = f"Registry 'data' field for {url} is not an object"
        raise DirectoryUnavailableError(msg, retryable=False)
    return data


def _parse(builder, data: dict, url: str):  # noqa: ANN001, ANN202
    try:
        return builder(data)
    except (KeyError, TypeError, ValueError) as exc:
        msg = f"Registry returned an unusable record for {url}: {exc!r}"
        raise DirectoryUnavailableError(msg, retryable=False) from exc


class HttpCertificateDirectory(CertificateDirectory):
    """Certificate lookups against the certificate registry."""

    def __init__(self, settings: DirectorySettings) -> None:
        self._client = RegistryClient(settings.certificate_service_url, settings)

    def get_by_id(self, certificate_id: str) -> Certificate | None:
        url = self._client.url_for("api", "certificates", certificate_id)
        data = self._client.get(url)
        return None if data is None else _parse(certificate_from_dict, data, url)

    def get_by_code(self, verification_code: str) -> Certificate | None:
        url = self._client.url_for("api", "certificates", "code", verification_code)
        data = self._client.get(url)
        return None if data is None else _parse(certificate_from_dict, data, url)


class HttpUniversityDirectory(UniversityDirectory):
    """University lookups against the university registry."""

    def __init__(self, settings: DirectorySettings) -> None:
        self._client = RegistryClient(settings.university_service_url, settings)

    def get_by_id(self, university_id: str) -> University | None:
        url = self._client.url_for("api", "universities", university_id)
        data = self._client.get(url)
        return None if data is None else _parse(university_from_dict, data, url)

    def get_public_key(self, university_id: str) -> str | None:
        url = self._client.url_for("api", "universities", university_id, "public-key")
        data = self._client.get(url)
        if data is None:
            return None
        return data.get("publicKey") or data.get("public_key") or None
