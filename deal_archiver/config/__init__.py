"""Configuration module for deal-archiver."""

from deal_archiver.config.settings import (
    ArchiveConfig,
    ArchiverConfig,
    DatabaseConfig,
    LoggingConfig,
    SmtpConfig,
    load_config,
)

__all__ = [
    "ArchiverConfig",
    "ArchiveConfig",
    "DatabaseConfig",
    "LoggingConfig",
    "SmtpConfig",
    "load_config",
]
