"""
Configuration management for the vault server.

All configuration is done via environment variables - no config files.
This module provides typed configuration classes with validation.

Invariants:
    - All settings except DATABASE_URL have sensible defaults
    - A missing DATABASE_URL is a ConfigurationError before any work starts
    - Secrets are never logged or exposed in error messages

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Keep the retention ruleset out of here, it is a constant policy
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from .datasets import DEFAULT_COLLECTION_NAMES
from .errors import ConfigurationError

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got '{raw}'", setting=name)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got '{raw}'", setting=name)


@dataclass(frozen=True)
class StorageConfig:
    """Document store configuration.

    Attributes:
        database_url: Connection string (sqlite:///path/to/db or memory://)
        busy_timeout_ms: SQLite busy timeout in milliseconds
        wal_mode: SQLite WAL journal mode enabled
    """

    database_url: str = ""
    busy_timeout_ms: int = 5000
    wal_mode: bool = True

    @classmethod
    def from_env(cls) -> StorageConfig:
        """Load configuration from environment variables."""
        return cls(
            database_url=os.getenv("DATABASE_URL", ""),
            busy_timeout_ms=_env_int("SQLITE_BUSY_TIMEOUT_MS", 5000),
            wal_mode=_env_bool("SQLITE_WAL_MODE", "true"),
        )


@dataclass(frozen=True)
class BackupConfig:
    """Snapshot capture configuration.

    Attributes:
        collections: Names of the datasets to capture
        max_concurrent: Maximum collections read in parallel
        read_timeout_seconds: Per-collection read timeout (0 = none)
    """

    collections: tuple[str, ...] = DEFAULT_COLLECTION_NAMES
    max_concurrent: int = 4
    read_timeout_seconds: float = 0.0

    @classmethod
    def from_env(cls) -> BackupConfig:
        """Load configuration from environment variables."""
        raw = os.getenv("BACKUP_COLLECTIONS", "")
        names = tuple(n.strip() for n in raw.split(",") if n.strip())
        return cls(
            collections=names or DEFAULT_COLLECTION_NAMES,
            max_concurrent=_env_int("BACKUP_MAX_CONCURRENT", 4),
            read_timeout_seconds=_env_float("BACKUP_READ_TIMEOUT_SECONDS", 0.0),
        )


@dataclass(frozen=True)
class HealthConfig:
    """Health monitor thresholds.

    Attributes:
        window_days: History window for reliability metrics
        stale_after_hours: Age after which the latest snapshot is stale
        schedule_window_hours: Window in which an automated snapshot must start
        min_recent_snapshots: Completed snapshots required among the newest daily set
    """

    window_days: int = 30
    stale_after_hours: int = 26
    schedule_window_hours: int = 48
    min_recent_snapshots: int = 3

    @classmethod
    def from_env(cls) -> HealthConfig:
        """Load configuration from environment variables."""
        return cls(
            window_days=_env_int("HEALTH_WINDOW_DAYS", 30),
            stale_after_hours=_env_int("HEALTH_STALE_AFTER_HOURS", 26),
            schedule_window_hours=_env_int("HEALTH_SCHEDULE_WINDOW_HOURS", 48),
            min_recent_snapshots=_env_int("HEALTH_MIN_RECENT_SNAPSHOTS", 3),
        )


@dataclass(frozen=True)
class RestoreSettings:
    """Restore configuration.

    Attributes:
        confirm_delay_seconds: Blocking pause before a destructive restore
    """

    confirm_delay_seconds: float = 5.0

    @classmethod
    def from_env(cls) -> RestoreSettings:
        """Load configuration from environment variables."""
        return cls(confirm_delay_seconds=_env_float("RESTORE_CONFIRM_SECONDS", 5.0))


@dataclass(frozen=True)
class AccessConfig:
    """Privileged identity allowed to trigger automated backups."""

    admin_identity: str | None = None

    @classmethod
    def from_env(cls) -> AccessConfig:
        """Load configuration from environment variables."""
        return cls(admin_identity=os.getenv("ADMIN_IDENTITY") or None)


@dataclass(frozen=True)
class NotificationConfig:
    """Notification gateway configuration.

    Attributes:
        webhook_url: Endpoint receiving JSON notifications (logging only if unset)
        timeout_seconds: HTTP timeout for webhook delivery
    """

    webhook_url: str | None = None
    timeout_seconds: float = 10.0

    @classmethod
    def from_env(cls) -> NotificationConfig:
        """Load configuration from environment variables."""
        return cls(
            webhook_url=os.getenv("NOTIFY_WEBHOOK_URL") or None,
            timeout_seconds=_env_float("NOTIFY_TIMEOUT_SECONDS", 10.0),
        )


@dataclass(frozen=True)
class S3Config:
    """S3 configuration for exported manual backups.

    Attributes:
        bucket: S3 bucket name
        region: AWS region
        endpoint_url: Custom endpoint URL (for MinIO)
        backup_prefix: Key prefix for exported artifacts
        access_key_id: AWS access key ID (optional, uses AWS credential chain)
        secret_access_key: AWS secret access key (optional)
    """

    bucket: str = ""
    region: str = "us-east-1"
    endpoint_url: str | None = None
    backup_prefix: str = "backups"
    access_key_id: str | None = None
    secret_access_key: str | None = None

    @classmethod
    def from_env(cls) -> S3Config:
        """Load configuration from environment variables."""
        return cls(
            bucket=os.getenv("S3_BUCKET", ""),
            region=os.getenv("S3_REGION", os.getenv("AWS_REGION", "us-east-1")),
            endpoint_url=os.getenv("S3_ENDPOINT"),
            backup_prefix=os.getenv("S3_BACKUP_PREFIX", "backups"),
            access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
            secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )


@dataclass
class VaultConfig:
    """Complete vault configuration.

    Attributes:
        storage: Document store configuration
        backup: Capture configuration
        health: Health thresholds
        restore: Restore configuration
        access: Privileged identity
        notifications: Notification gateway configuration
        s3: Export bucket configuration
        observability: Logging configuration
    """

    storage: StorageConfig = field(default_factory=StorageConfig)
    backup: BackupConfig = field(default_factory=BackupConfig)
    health: HealthConfig = field(default_factory=HealthConfig)
    restore: RestoreSettings = field(default_factory=RestoreSettings)
    access: AccessConfig = field(default_factory=AccessConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    s3: S3Config = field(default_factory=S3Config)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> VaultConfig:
        """Load complete configuration from environment variables.

        Returns:
            VaultConfig with all sections populated from environment.

        Raises:
            ConfigurationError: If required configuration is missing or invalid.
        """
        config = cls(
            storage=StorageConfig.from_env(),
            backup=BackupConfig.from_env(),
            health=HealthConfig.from_env(),
            restore=RestoreSettings.from_env(),
            access=AccessConfig.from_env(),
            notifications=NotificationConfig.from_env(),
            s3=S3Config.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ConfigurationError: If configuration is invalid.
        """
        if not self.storage.database_url:
            raise ConfigurationError(
                "DATABASE_URL is required (sqlite:///path/to/db or memory://)",
                setting="DATABASE_URL",
            )
        if self.backup.max_concurrent < 1:
            raise ConfigurationError(
                "BACKUP_MAX_CONCURRENT must be at least 1", setting="BACKUP_MAX_CONCURRENT"
            )
        if not self.backup.collections:
            raise ConfigurationError(
                "BACKUP_COLLECTIONS must name at least one collection",
                setting="BACKUP_COLLECTIONS",
            )
        if self.restore.confirm_delay_seconds < 0:
            raise ConfigurationError(
                "RESTORE_CONFIRM_SECONDS cannot be negative", setting="RESTORE_CONFIRM_SECONDS"
            )

        if self.access.admin_identity is None:
            logger.warning("ADMIN_IDENTITY is not set, automated backups will be refused")

    def log_config(self) -> None:
        """Log configuration (redacting secrets)."""
        logger.info(
            "Vault configuration loaded",
            extra={
                "database": _redact_url(self.storage.database_url),
                "collections": list(self.backup.collections),
                "max_concurrent": self.backup.max_concurrent,
                "confirm_delay_seconds": self.restore.confirm_delay_seconds,
                "webhook_configured": self.notifications.webhook_url is not None,
                "s3_bucket": self.s3.bucket or None,
                "log_level": self.observability.log_level,
            },
        )


def _redact_url(url: str) -> str:
    """Drop credentials from a connection string."""
    scheme, sep, rest = url.partition("://")
    if not sep or "@" not in rest:
        return url
    return f"{scheme}://***@{rest.split('@', 1)[1]}"
