"""Typed, frozen dataclasses for every configuration section.

This module is the **single source of truth** for default values.
JSON Schema defaults exist only for documentation; these builders
are what the application actually reads.

Access pattern::

    from certverify.config import get_config

    directory = get_config().settings.directory
    print(directory.backend, directory.timeout_seconds)
"""

from __future__ import annotations

from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Server
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ServerSettings:
    """HTTP server configuration (bind address, workers, timeouts)."""

    external_url: str
    bind: str
    port: int
    workers: int
    worker_class: str
    timeout: int
    graceful_timeout: int
    keepalive: int
    max_requests: int
    max_requests_jitter: int


def _build_server(data: dict | None) -> ServerSettings:
    d = data or {}
    return ServerSettings(
        external_url=d.get("external_url", ""),
        bind=d.get("bind", "0.0.0.0"),  # noqa: S104
        port=d.get("port", 8080),
        workers=d.get("workers", 4),
        worker_class=d.get("worker_class", "sync"),
        timeout=d.get("timeout", 30),
        graceful_timeout=d.get("graceful_timeout", 30),
        keepalive=d.get("keepalive", 2),
        max_requests=d.get("max_requests", 0),
        max_requests_jitter=d.get("max_requests_jitter", 0),
    )


# ---------------------------------------------------------------------------
# Proxy
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProxySettings:
    """Reverse proxy configuration (trusted headers, forwarded-for)."""

    enabled: bool
    trusted_proxies: tuple[str, ...]
    forwarded_for_header: str
    forwarded_proto_header: str


def _build_proxy(data: dict | None) -> ProxySettings:
    d = data or {}
    return ProxySettings(
        enabled=d.get("enabled", False),
        trusted_proxies=tuple(d.get("trusted_proxies", [])),
        forwarded_for_header=d.get("forwarded_for_header", "X-Forwarded-For"),
        forwarded_proto_header=d.get("forwarded_proto_header", "X-Forwarded-Proto"),
    )


# ---------------------------------------------------------------------------
# Security
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RateLimitRule:
    """Single rate limit rule with request count and time window."""

    requests: int
    window_seconds: int


@dataclass(frozen=True)
class RateLimitSettings:
    """Request admission limits for the verification endpoints."""

    enabled: bool
    verify: RateLimitRule
    bulk: RateLimitRule
    gc_interval_seconds: int


def _build_rate_limit_rule(
    data: dict | None,
    default_req: int,
    default_win: int,
) -> RateLimitRule:
    d = data or {}
    return RateLimitRule(
        requests=d.get("requests", default_req),
        window_seconds=d.get("window_seconds", default_win),
    )


def _build_rate_limits(data: dict | None) -> RateLimitSettings:
    d = data or {}
    return RateLimitSettings(
        enabled=d.get("enabled", True),
        verify=_build_rate_limit_rule(d.get("verify"), 100, 900),
        bulk=_build_rate_limit_rule(d.get("bulk"), 10, 900),
        gc_interval_seconds=d.get("gc_interval_seconds", 300),
    )


@dataclass(frozen=True)
class SecuritySettings:
    """Request size, transport security and rate limits."""

    max_request_body_bytes: int
    hsts_max_age_seconds: int
    rate_limits: RateLimitSettings


def _build_security(data: dict | None) -> SecuritySettings:
    d = data or {}
    return SecuritySettings(
        max_request_body_bytes=d.get("max_request_body_bytes", 1048576),
        hsts_max_age_seconds=d.get("hsts_max_age_seconds", 63072000),
        rate_limits=_build_rate_limits(d.get("rate_limits")),
    )


# ---------------------------------------------------------------------------
# API
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ApiSettings:
    base_path: str


def _build_api(data: dict | None) -> ApiSettings:
    d = data or {}
    return ApiSettings(base_path=d.get("base_path", "/api").rstrip("/"))


# ---------------------------------------------------------------------------
# Directory (certificate + university lookups)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DirectorySettings:
    """Where certificates and universities are resolved from."""

    backend: str
    certificate_service_url: str
    university_service_url: str
    timeout_seconds: float
    max_retries: int
    retry_delay_seconds: float
    auth_header: str
    auth_value: str | None
    seed_file: str | None


def _build_directory(data: dict | None) -> DirectorySettings:
    d = data or {}
    return DirectorySettings(
        backend=d.get("backend", "http"),
        certificate_service_url=d.get("certificate_service_url", ""),
        university_service_url=d.get("university_service_url", ""),
        timeout_seconds=d.get("timeout_seconds", 5.0),
        max_retries=d.get("max_retries", 0),
        retry_delay_seconds=d.get("retry_delay_seconds", 0.5),
        auth_header=d.get("auth_header", "Authorization"),
        auth_value=d.get("auth_value"),
        seed_file=d.get("seed_file"),
    )


# ---------------------------------------------------------------------------
# Verification
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VerificationSettings:
    """Bounds for bulk, history and statistics requests."""

    max_bulk: int
    bulk_max_workers: int
    history_default_limit: int
    history_max_limit: int
    statistics_default_days: int
    statistics_max_days: int


def _build_verification(data: dict | None) -> VerificationSettings:
    d = data or {}
    return VerificationSettings(
        max_bulk=d.get("max_bulk", 100),
        bulk_max_workers=d.get("bulk_max_workers", 8),
        history_default_limit=d.get("history_default_limit", 10),
        history_max_limit=d.get("history_max_limit", 100),
        statistics_default_days=d.get("statistics_default_days", 30),
        statistics_max_days=d.get("statistics_max_days", 365),
    )


# ---------------------------------------------------------------------------
# Audit (verification log store)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AuditSettings:
    """Verification log backend, write pool and retention."""

    backend: str
    max_workers: int
    retention_enabled: bool
    retention_days: int
    cleanup_interval_seconds: int
    cleanup_loop_interval_seconds: int


def _build_audit(data: dict | None) -> AuditSettings:
    d = data or {}
    return AuditSettings(
        backend=d.get("backend", "database"),
        max_workers=d.get("max_workers", 2),
        retention_enabled=d.get("retention_enabled", True),
        retention_days=d.get("retention_days", 90),
        cleanup_interval_seconds=d.get("cleanup_interval_seconds", 86400),
        cleanup_loop_interval_seconds=d.get("cleanup_loop_interval_seconds", 60),
    )


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AuditLogSettings:
    """Audit log output settings (file, rotation)."""

    enabled: bool
    file: str | None
    max_file_size_bytes: int
    backup_count: int


@dataclass(frozen=True)
class LoggingSettings:
    """Application logging configuration (level, format, audit)."""

    level: str
    format: str
    audit: AuditLogSettings


def _build_logging(data: dict | None) -> LoggingSettings:
    d = data or {}
    a = d.get("audit") or {}
    return LoggingSettings(
        level=d.get("level", "INFO"),
        format=d.get("format", "json"),
        audit=AuditLogSettings(
            enabled=a.get("enabled", True),
            file=a.get("file"),
            max_file_size_bytes=a.get("max_file_size_bytes", 104857600),
            backup_count=a.get("backup_count", 10),
        ),
    )


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseSettings:
    """PostgreSQL connection and pool settings."""

    host: str
    port: int
    database: str
    user: str
    password: str
    sslmode: str
    min_connections: int
    max_connections: int
    connection_timeout: float
    auto_setup: bool


def _build_database(data: dict | None) -> DatabaseSettings | None:
    if not data:
        return None
    d = data
    return DatabaseSettings(
        host=d.get("host", "localhost"),
        port=d.get("port", 5432),
        database=d["database"],
        user=d["user"],
        password=d.get("password", ""),
        sslmode=d.get("sslmode", "prefer"),
        min_connections=d.get("min_connections", 2),
        max_connections=d.get("max_connections", 10),
        connection_timeout=d.get("connection_timeout", 30.0),
        auto_setup=d.get("auto_setup", False),
    )


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MetricsSettings:
    enabled: bool
    path: str


def _build_metrics(data: dict | None) -> MetricsSettings:
    d = data or {}
    return MetricsSettings(
        enabled=d.get("enabled", False),
        path=d.get("path", "/metrics"),
    )


# ---------------------------------------------------------------------------
# Root settings aggregate
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CertVerifySettings:
    server: ServerSettings
    proxy: ProxySettings
    security: SecuritySettings
    api: ApiSettings
    directory: DirectorySettings
    verification: VerificationSettings
    audit: AuditSettings
    logging: LoggingSettings
    database: DatabaseSettings | None
    metrics: MetricsSettings


def build_settings(data: dict) -> CertVerifySettings:
    """Build the full typed settings tree from raw config data.

    Called once during :class:`CertVerifyConfig` initialization after
    schema validation and environment-variable resolution.
    """
    return CertVerifySettings(
        server=_build_server(data.get("server")),
        proxy=_build_proxy(data.get("proxy")),
        security=_build_security(data.get("security")),
        api=_build_api(data.get("api")),
        directory=_build_directory(data.get("directory")),
        verification=_build_verification(data.get("verification")),
        audit=_build_audit(data.get("audit")),
        logging=_build_logging(data.get("logging")),
        database=_build_database(data.get("database")),
        metrics=_build_metrics(data.get("metrics")),
    )
