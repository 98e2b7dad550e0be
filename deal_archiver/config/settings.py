"""Centralized configuration for the deal archiver.

The configuration is built once at startup and passed explicitly into the
store, client, notifier, processor and scheduler constructors. It is loaded
from a YAML file whose layout follows the deployed ``config.yml``::

    production:          # database (``database`` is accepted as an alias)
      driver: mysql      # or postgres
      host: db.internal
      port: 3306
      user: archiver
      password: secret
      name: crm
    archive:
      check_interval: 60
      source_status: ToArchive
      archiving_status: Archiving
      archived_status: Archived
      error_status: ArchiveError
      archive_url: https://archive.internal/run
    smtp:
      server: smtp.internal
      port: 587
      username: robot
      password: secret
      from: robot@example.com
      to: ops@example.com
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional
from urllib.parse import urlparse

import yaml
from psycopg.conninfo import make_conninfo

from deal_archiver.utils.result import ConfigError, Err, Ok, Result

if TYPE_CHECKING:
    from deal_archiver.processor.states import StatusValues

DB_PASSWORD_ENV = "DEAL_ARCHIVER_DB_PASSWORD"
SMTP_PASSWORD_ENV = "DEAL_ARCHIVER_SMTP_PASSWORD"

DEFAULT_CONFIG_PATH = Path("config.yml")

SMTP_AUTH_MECHANISMS = ("LOGIN", "PLAIN", "CRAM-MD5")

# Supported status store drivers and their default ports
DATABASE_PORTS = {"mysql": 3306, "postgres": 5432}


@dataclass
class DatabaseConfig:
    """Connection and table settings for the status store."""

    driver: str = "mysql"
    host: str = "localhost"
    port: int = 3306
    user: str = ""
    password: str = ""
    name: str = ""

    # Record table layout
    table: str = "vtiger_potential"
    id_column: str = "potentialid"
    status_column: str = "archive_status"

    # Pool
    min_pool_size: int = 1
    max_pool_size: int = 10
    timeout: float = 30.0

    @property
    def conninfo(self) -> str:
        """libpq connection string (postgres driver)."""
        params = {
            "host": self.host,
            "port": self.port,
            "dbname": self.name,
            "user": self.user,
            "password": self.password,
            "connect_timeout": max(int(self.timeout), 1),
        }
        return make_conninfo(**{k: v for k, v in params.items() if v != ""})


@dataclass
class ArchiveConfig:
    """Polling, status values and archive endpoint settings."""

    check_interval: int = 60
    source_status: str = "pending"
    archiving_status: str = "archiving"
    archived_status: str = "archived"
    error_status: str = "error"

    archive_url: str = ""
    query_param: str = "deal"
    request_timeout: float = 60.0

    # Ceiling on records processed at once within the whole scheduler
    max_concurrency: int = 16

    def status_values(self) -> "StatusValues":
        """Stored status strings for each record state."""
        from deal_archiver.processor.states import StatusValues

        return StatusValues(
            pending=self.source_status,
            archiving=self.archiving_status,
            archived=self.archived_status,
            errored=self.error_status,
        )


@dataclass
class SmtpConfig:
    """Mail relay settings for operator notifications."""

    server: str = ""
    port: int = 587
    username: str = ""
    password: str = ""
    from_addr: str = ""
    to_addr: str = ""
    auth_mechanism: str = "LOGIN"
    helo_name: str = "localhost"
    timeout: float = 30.0


@dataclass
class LoggingConfig:
    """Logging settings."""

    level: str = "info"
    format: str = "json"


@dataclass
class ArchiverConfig:
    """Complete archiver configuration."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    archive: ArchiveConfig = field(default_factory=ArchiveConfig)
    smtp: SmtpConfig = field(default_factory=SmtpConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> Result["ArchiverConfig", ConfigError]:
        """
        Load configuration from a YAML file.

        Args:
            path: Path to YAML configuration file

        Returns:
            Result with loaded config or error
        """
        path = Path(path)

        if not path.exists():
            return Err(ConfigError(
                field="path",
                message=f"Configuration file not found: {path}",
            ))

        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            return Err(ConfigError(
                field="yaml",
                message=f"Failed to parse YAML: {e}",
            ))
        except OSError as e:
            return Err(ConfigError(
                field="file",
                message=f"Failed to read config file: {e}",
            ))

        if not isinstance(data, dict):
            return Err(ConfigError(
                field="yaml",
                message="Top level of the configuration must be a mapping",
            ))

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Result["ArchiverConfig", ConfigError]:
        """
        Create configuration from a dictionary.

        Args:
            data: Configuration dictionary

        Returns:
            Result with loaded config or error
        """
        try:
            db_data = data.get("production", data.get("database")) or {}
            driver = str(db_data.get("driver", "mysql")).lower()
            database = DatabaseConfig(
                driver=driver,
                host=str(db_data.get("host", "localhost")),
                port=int(db_data.get("port", DATABASE_PORTS.get(driver, 3306))),
                user=str(db_data.get("user", "")),
                password=str(db_data.get("password", "")),
                name=str(db_data.get("name", "")),
                table=str(db_data.get("table", "vtiger_potential")),
                id_column=str(db_data.get("id_column", "potentialid")),
                status_column=str(db_data.get("status_column", "archive_status")),
                min_pool_size=int(db_data.get("min_pool_size", 1)),
                max_pool_size=int(db_data.get("max_pool_size", 10)),
                timeout=float(db_data.get("timeout", 30.0)),
            )

            archive_data = data.get("archive") or {}
            archive = ArchiveConfig(
                check_interval=int(archive_data.get("check_interval", 60)),
                source_status=str(archive_data.get("source_status", "pending")),
                archiving_status=str(archive_data.get("archiving_status", "archiving")),
                archived_status=str(archive_data.get("archived_status", "archived")),
                error_status=str(archive_data.get("error_status", "error")),
                archive_url=str(archive_data.get("archive_url", "")),
                query_param=str(archive_data.get("query_param", "deal")),
                request_timeout=float(archive_data.get("request_timeout", 60.0)),
                max_concurrency=int(archive_data.get("max_concurrency", 16)),
            )

            smtp_data = data.get("smtp") or {}
            smtp = SmtpConfig(
                server=str(smtp_data.get("server", "")),
                port=int(smtp_data.get("port", 587)),
                username=str(smtp_data.get("username", "")),
                password=str(smtp_data.get("password", "")),
                from_addr=str(smtp_data.get("from", "")),
                to_addr=str(smtp_data.get("to", "")),
                auth_mechanism=str(smtp_data.get("auth_mechanism", "LOGIN")).upper(),
                helo_name=str(smtp_data.get("helo_name", "localhost")),
                timeout=float(smtp_data.get("timeout", 30.0)),
            )

            logging_data = data.get("logging") or {}
            logging_config = LoggingConfig(
                level=str(logging_data.get("level", "info")),
                format=str(logging_data.get("format", "json")),
            )

        except (TypeError, ValueError, AttributeError) as e:
            return Err(ConfigError(
                field="unknown",
                message=f"Failed to parse configuration: {e}",
            ))

        return Ok(cls(
            database=database,
            archive=archive,
            smtp=smtp,
            logging=logging_config,
        ))

    def with_env_overrides(self, environ: Optional[dict[str, str]] = None) -> "ArchiverConfig":
        """Return a copy with passwords taken from the environment when set."""
        environ = os.environ if environ is None else environ

        database = self.database
        db_password = environ.get(DB_PASSWORD_ENV)
        if db_password:
            database = replace(database, password=db_password)

        smtp = self.smtp
        smtp_password = environ.get(SMTP_PASSWORD_ENV)
        if smtp_password:
            smtp = replace(smtp, password=smtp_password)

        return replace(self, database=database, smtp=smtp)

    def validate(self) -> Result[None, ConfigError]:
        """
        Validate configuration values.

        Returns:
            Result indicating success or validation error
        """
        if self.archive.check_interval < 1:
            return Err(ConfigError(
                field="archive.check_interval",
                message=f"Must be at least 1, got {self.archive.check_interval}",
            ))

        if self.archive.max_concurrency < 1:
            return Err(ConfigError(
                field="archive.max_concurrency",
                message=f"Must be at least 1, got {self.archive.max_concurrency}",
            ))

        statuses = {
            "source_status": self.archive.source_status,
            "archiving_status": self.archive.archiving_status,
            "archived_status": self.archive.archived_status,
            "error_status": self.archive.error_status,
        }
        for name, value in statuses.items():
            if not value.strip():
                return Err(ConfigError(
                    field=f"archive.{name}",
                    message="Must not be empty",
                ))
        if len(set(statuses.values())) != len(statuses):
            return Err(ConfigError(
                field="archive",
                message="The four status values must be distinct",
            ))

        url = urlparse(self.archive.archive_url)
        if url.scheme not in ("http", "https") or not url.netloc:
            return Err(ConfigError(
                field="archive.archive_url",
                message=f"Must be an http(s) URL, got {self.archive.archive_url!r}",
            ))

        if not self.archive.query_param:
            return Err(ConfigError(
                field="archive.query_param",
                message="Must not be empty",
            ))

        if self.database.driver not in DATABASE_PORTS:
            return Err(ConfigError(
                field="production.driver",
                message=(
                    f"Must be one of {', '.join(DATABASE_PORTS)}, "
                    f"got {self.database.driver!r}"
                ),
            ))

        for name, port in [
            ("production.port", self.database.port),
            ("smtp.port", self.smtp.port),
        ]:
            if not 0 < port < 65536:
                return Err(ConfigError(
                    field=name,
                    message=f"Must be a valid TCP port, got {port}",
                ))

        for name, value in [
            ("archive.request_timeout", self.archive.request_timeout),
            ("production.timeout", self.database.timeout),
            ("smtp.timeout", self.smtp.timeout),
        ]:
            if value <= 0:
                return Err(ConfigError(
                    field=name,
                    message=f"Must be positive, got {value}",
                ))

        if self.database.min_pool_size < 1 or (
            self.database.max_pool_size < self.database.min_pool_size
        ):
            return Err(ConfigError(
                field="production.max_pool_size",
                message=(
                    "Pool sizes must satisfy 1 <= min_pool_size <= max_pool_size, "
                    f"got {self.database.min_pool_size}/{self.database.max_pool_size}"
                ),
            ))

        for name, value in [
            ("smtp.server", self.smtp.server),
            ("smtp.from", self.smtp.from_addr),
            ("smtp.to", self.smtp.to_addr),
        ]:
            if not value:
                return Err(ConfigError(field=name, message="Must not be empty"))

        if self.smtp.auth_mechanism not in SMTP_AUTH_MECHANISMS:
            return Err(ConfigError(
                field="smtp.auth_mechanism",
                message=(
                    f"Must be one of {', '.join(SMTP_AUTH_MECHANISMS)}, "
                    f"got {self.smtp.auth_mechanism!r}"
                ),
            ))

        return Ok(None)


def load_config(path: Optional[Path] = None) -> Result[ArchiverConfig, ConfigError]:
    """
    Load, overlay environment secrets and validate the configuration.

    Args:
        path: YAML file (defaults to ./config.yml)

    Returns:
        Result with loaded config or error
    """
    result = ArchiverConfig.from_yaml(path or DEFAULT_CONFIG_PATH)
    if result.is_err():
        return result

    config = result.unwrap().with_env_overrides()

    validation_result = config.validate()
    if validation_result.is_err():
        return Err(validation_result.unwrap_err())

    return Ok(config)
