"""
Configuration management for StreamSite Server.

All configuration is done via environment variables - no config files.
This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - Invalid numeric values fail at load time, not at first use

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Keep env variable names stable, deployments depend on them
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

# backups/ lives next to the directory the server package is installed in
DEFAULT_BACKUP_DIR = str(Path(__file__).resolve().parent.parent / "backups")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass(frozen=True)
class BackupConfig:
    """Snapshot scheduler configuration.

    Attributes:
        enabled: Whether the backup scheduler runs at all
        directory: Directory holding backup_<ms>.json files
        interval_seconds: Interval between backup/restore cycles
        initial_delay_seconds: Delay before the one-shot startup snapshot
        retention_count: Number of most recent snapshots kept on disk
        restore_after_backup: Restore from the newest snapshot at the end of each cycle
    """

    enabled: bool = True
    directory: str = DEFAULT_BACKUP_DIR
    interval_seconds: float = 300.0  # 5 minutes
    initial_delay_seconds: float = 10.0
    retention_count: int = 10
    restore_after_backup: bool = True

    @classmethod
    def from_env(cls) -> BackupConfig:
        """Load configuration from environment variables."""
        return cls(
            enabled=_env_bool("BACKUP_ENABLED", "true"),
            directory=os.getenv("BACKUP_DIR", DEFAULT_BACKUP_DIR),
            interval_seconds=float(os.getenv("BACKUP_INTERVAL_SECONDS", "300")),
            initial_delay_seconds=float(os.getenv("BACKUP_INITIAL_DELAY_SECONDS", "10")),
            retention_count=int(os.getenv("BACKUP_RETENTION_COUNT", "10")),
            restore_after_backup=_env_bool("BACKUP_RESTORE_AFTER_BACKUP", "true"),
        )


@dataclass(frozen=True)
class StorageConfig:
    """State store configuration.

    Attributes:
        seed_data: Load the default channels, themes and welcome announcement
    """

    seed_data: bool = True

    @classmethod
    def from_env(cls) -> StorageConfig:
        """Load configuration from environment variables."""
        return cls(seed_data=_env_bool("STORE_SEED_DATA", "true"))


@dataclass(frozen=True)
class HttpConfig:
    """Public HTTP API configuration.

    Attributes:
        host: Bind host
        port: Bind port
        cors_origins: Origins allowed to call the API from a browser
    """

    host: str = "0.0.0.0"
    port: int = 5000
    cors_origins: tuple[str, ...] = ("*",)

    @classmethod
    def from_env(cls) -> HttpConfig:
        """Load configuration from environment variables."""
        origins = os.getenv("HTTP_CORS_ORIGINS", "*")
        return cls(
            host=os.getenv("HTTP_HOST", "0.0.0.0"),
            port=int(os.getenv("HTTP_PORT", "5000")),
            cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
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
class ServerConfig:
    """Complete server configuration.

    Attributes:
        backup: Backup scheduler configuration
        storage: State store configuration
        http: HTTP API configuration
        observability: Logging configuration
    """

    backup: BackupConfig = field(default_factory=BackupConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> ServerConfig:
        """Load complete configuration from environment variables.

        Returns:
            ServerConfig with all sections populated from environment.

        Raises:
            ValueError: If a setting is malformed or out of range.
        """
        config = cls(
            backup=BackupConfig.from_env(),
            storage=StorageConfig.from_env(),
            http=HttpConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )

        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if self.backup.retention_count < 1:
            raise ValueError("BACKUP_RETENTION_COUNT must be at least 1")
        if self.backup.interval_seconds <= 0:
            raise ValueError("BACKUP_INTERVAL_SECONDS must be positive")
        if self.backup.initial_delay_seconds < 0:
            raise ValueError("BACKUP_INITIAL_DELAY_SECONDS must not be negative")
        if self.observability.log_format not in ("json", "text"):
            raise ValueError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. Must be one of: json, text"
            )

        if self.backup.enabled and not os.path.exists(self.backup.directory):
            logger.warning(
                f"Backup directory does not exist: {self.backup.directory}. "
                "It will be created on first snapshot."
            )

    def log_config(self) -> None:
        """Log configuration."""
        logger.info(
            "Server configuration loaded",
            extra={
                "backup_enabled": self.backup.enabled,
                "backup_dir": self.backup.directory,
                "backup_interval_seconds": self.backup.interval_seconds,
                "backup_retention_count": self.backup.retention_count,
                "restore_after_backup": self.backup.restore_after_backup,
                "seed_data": self.storage.seed_data,
                "http_bind": f"{self.http.host}:{self.http.port}",
                "log_level": self.observability.log_level,
            },
        )
