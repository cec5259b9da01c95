"""certverify configuration loader built on ConfigKit.

Lifecycle::

    # 1. CLI creates the singleton (once, at startup)
    CertVerifyConfig(config_file="/etc/certverify/config.yaml")

    # 2. Any module retrieves it afterwards
    from certverify.config import get_config
    cfg = get_config()
    cfg.settings.verification.max_bulk  # typed access

    # 3. Dynamic access
    cfg.get("directory.timeout_seconds", default=5.0)
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any

from configkit import ConfigKit, ConfigKitMeta

from certverify.config.settings import CertVerifySettings, build_settings

_SCHEMA_PATH = Path(__file__).parent / "schema.json"

_ENV_RE = re.compile(
    r"^\$\{([^}:]+?)(?::-(.*))?\}$",
    re.DOTALL,
)

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level singleton reference
# ---------------------------------------------------------------------------
_instance: CertVerifyConfig | None = None


def get_config() -> CertVerifyConfig:
    """Return the initialised configuration singleton.

    Raises :class:`RuntimeError` if :class:`CertVerifyConfig` has not
    been created yet (i.e. the CLI entry point has not run).
    """
    if _instance is None:
        msg = (
            "Configuration not initialised. "
            "CertVerifyConfig must be created with config_file= before calling get_config()."
        )
        raise RuntimeError(msg)
    return _instance


# ---------------------------------------------------------------------------
# Validation error collector
# ---------------------------------------------------------------------------


class ConfigValidationError(Exception):
    """Raised when cross-field validation finds one or more problems."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        body = "\n".join(f"  - {e}" for e in errors)
        super().__init__(f"Configuration validation failed:\n{body}")


# ---------------------------------------------------------------------------
# Environment variable resolution
# ---------------------------------------------------------------------------


def _resolve_value(value: str, path: str) -> str:
    """Replace ``${VAR}`` or ``${VAR:-default}`` with env var value."""
    match = _ENV_RE.match(value)
    if match is None:
        return value
    var_name = match.group(1)
    fallback = match.group(2)
    resolved = os.environ.get(var_name)
    if resolved is not None:
        return resolved
    if fallback is not None:
        return fallback
    raise ConfigValidationError(
        [
            f"Environment variable '${{{var_name}}}' referenced "
            f"at '{path}' is not set and has no default",
        ],
    )


def _resolve_env_vars(
    data: Any,  # noqa: ANN401
    path: str = "",
) -> None:
    """Walk *data* in-place and resolve ``${VAR}``/``${VAR:-default}`` strings."""
    if isinstance(data, dict):
        for key in data:
            child_path = f"{path}.{key}" if path else key
            if isinstance(data[key], str):
                data[key] = _resolve_value(data[key], child_path)
            elif isinstance(data[key], (dict, list)):
                _resolve_env_vars(data[key], child_path)
    elif isinstance(data, list):
        for idx, item in enumerate(data):
            child_path = f"{path}[{idx}]"
            if isinstance(item, str):
                data[idx] = _resolve_value(item, child_path)
            elif isinstance(item, (dict, list)):
                _resolve_env_vars(item, child_path)


# ---------------------------------------------------------------------------
# Config class
# ---------------------------------------------------------------------------


class CertVerifyConfig(ConfigKit):
    """Central configuration for the verification service.

    Subclasses :class:`configkit.ConfigKit`.  The JSON schema is
    bundled at ``config/schema.json``; users supply only ``config_file``.

    After construction the typed settings tree is available at
    :pyattr:`settings` and the raw dict via :pyattr:`data` /
    :pymeth:`get`.
    """

    def __init__(
        self,
        *,
        config_file: str | Path,
        schema_file: str | Path | None = None,  # noqa: ARG002
    ) -> None:
        """Initialise the configuration singleton.

        Parameters
        ----------
        config_file:
            Path to the YAML/JSON configuration file.
        schema_file:
            Ignored.  Exists only to satisfy the
            :class:`ConfigKitMeta` singleton guard.

        """
        global _instance  # noqa: PLW0603

        super().__init__(
            config_file=config_file,
            schema_file=_SCHEMA_PATH,
        )

        self._settings: CertVerifySettings = build_settings(self.data)
        _instance = self

    # -- lifecycle overrides ------------------------------------------------

    def _load(self) -> None:
        """Load config file then resolve ``${VAR}`` env-var references.

        Runs env-var resolution **before** schema validation so that
        substituted values (e.g. ``${LOG_LEVEL:-INFO}``) are checked
        against enum constraints in the schema.
        """
        super()._load()
        _resolve_env_vars(self._data)  # noqa: SLF001

    # -- typed access -------------------------------------------------------

    @property
    def settings(self) -> CertVerifySettings:
        """Fully-typed, frozen settings tree."""
        return self._settings

    # -- cross-field validation ---------------------------------------------

    def additional_checks(self) -> None:  # noqa: C901, PLR0912
        """Semantic & cross-field validation.

        Called automatically by ConfigKit **after** schema validation
        passes.  Every problem is collected before raising so that an
        operator sees the whole list at once.
        """
        errors: list[str] = []
        warnings: list[str] = []

        server = self.data.get("server") or {}
        proxy = self.data.get("proxy") or {}
        security = self.data.get("security") or {}
        directory = self.data.get("directory") or {}
        verification = self.data.get("verification") or {}
        audit = self.data.get("audit") or {}
        database = self.data.get("database") or {}

        # -- server --
        ext_url = server.get("external_url", "")
        if ext_url.endswith("/"):
            errors.append(
                f"server.external_url must not end with '/' (got '{ext_url}')",
            )

        # -- directory --
        dir_backend = directory.get("backend", "http")
        if dir_backend == "http":
            for key in ("certificate_service_url", "university_service_url"):
                url = directory.get(key, "")
                if not url:
                    errors.append(
                        f"directory.{key} is required when directory.backend is 'http'",
                    )
                elif url.endswith("/"):
                    errors.append(
                        f"directory.{key} must not end with '/' (got '{url}')",
                    )
        elif dir_backend == "memory" and not directory.get("seed_file"):
            warnings.append(
                "directory.backend is 'memory' without directory.seed_file; "
                "every verification will report 'certificate not found'",
            )

        # -- database --
        audit_backend = audit.get("backend", "database")
        if "database" in (dir_backend, audit_backend) and not database:
            errors.append(
                "database section is required when directory.backend or "
                "audit.backend is 'database'",
            )
        min_conn = database.get("min_connections", 2)
        max_conn = database.get("max_connections", 10)
        if min_conn > max_conn:
            errors.append(
                f"database.min_connections ({min_conn}) must be <= "
                f"database.max_connections ({max_conn})",
            )

        # -- verification --
        if verification.get("max_bulk", 100) < 1:
            errors.append("verification.max_bulk must be >= 1")
        if verification.get("bulk_max_workers", 8) < 1:
            errors.append("verification.bulk_max_workers must be >= 1")
        default_limit = verification.get("history_default_limit", 10)
        max_limit = verification.get("history_max_limit", 100)
        if default_limit > max_limit:
            errors.append(
                f"verification.history_default_limit ({default_limit}) must be <= "
                f"verification.history_max_limit ({max_limit})",
            )
        default_days = verification.get("statistics_default_days", 30)
        max_days = verification.get("statistics_max_days", 365)
        if default_days > max_days:
            errors.append(
                f"verification.statistics_default_days ({default_days}) must be <= "
                f"verification.statistics_max_days ({max_days})",
            )

        # -- proxy --
        if proxy.get("enabled") and not proxy.get("trusted_proxies"):
            errors.append(
                "proxy.enabled is true but proxy.trusted_proxies is empty; "
                "configure trusted proxy CIDRs or disable proxy",
            )

        # -- Warnings (logged, not fatal) --
        if audit_backend == "memory":
            warnings.append(
                "audit.backend is 'memory'; verification statistics and "
                "history are per process and lost on restart",
            )
        workers = server.get("workers", 4)
        rate_limits = security.get("rate_limits") or {}
        if rate_limits.get("enabled", True) and workers > 1:
            warnings.append(
                f"rate limits are kept in memory with server.workers={workers}; "
                "each worker process enforces its own budget",
            )
        server_timeout = server.get("timeout", 30)
        dir_timeout = directory.get("timeout_seconds", 5.0)
        if dir_timeout > server_timeout:
            warnings.append(
                f"directory.timeout_seconds ({dir_timeout}) exceeds "
                f"server.timeout ({server_timeout}); workers may be killed "
                "before a directory lookup times out",
            )

        for w in warnings:
            log.warning("Config warning: %s", w)

        if errors:
            raise ConfigValidationError(errors)

    # -- helpers ------------------------------------------------------------

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton -- testing only."""
        global _instance  # noqa: PLW0603
        _instance = None
        ConfigKitMeta.reset()

    def __repr__(self) -> str:
        source = self.data.get("_source", "?")
        return f"<CertVerifyConfig config_file={source}>"
