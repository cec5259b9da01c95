"""Configuration subsystem for certverify.

Public API::

    from certverify.config import get_config, CertVerifyConfig

    # At startup (CLI only):
    CertVerifyConfig(config_file="config.yaml")

    # Everywhere else:
    cfg = get_config()
    limit = cfg.settings.verification.max_bulk   # typed access
    custom = cfg.get("directory.timeout_seconds")  # dynamic dot-path
"""

from certverify.config.certverify_config import (
    CertVerifyConfig,
    ConfigValidationError,
    get_config,
)
from certverify.config.settings import (
    ApiSettings,
    AuditLogSettings,
    AuditSettings,
    CertVerifySettings,
    DatabaseSettings,
    DirectorySettings,
    LoggingSettings,
    MetricsSettings,
    ProxySettings,
    RateLimitRule,
    RateLimitSettings,
    SecuritySettings,
    ServerSettings,
    VerificationSettings,
    build_settings,
)

__all__ = [
    "ApiSettings",
    "AuditLogSettings",
    "AuditSettings",
    "CertVerifyConfig",
    "CertVerifySettings",
    "ConfigValidationError",
    "DatabaseSettings",
    "DirectorySettings",
    "LoggingSettings",
    "MetricsSettings",
    "ProxySettings",
    "RateLimitRule",
    "RateLimitSettings",
    "SecuritySettings",
    "ServerSettings",
    "VerificationSettings",
    "build_settings",
    "get_config",
]
