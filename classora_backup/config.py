"""Configuration management for classora-backup."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


def resolve_database_path(database_url: Optional[str] = None, cwd: Optional[str] = None) -> Path:
    """Resolve the primary SQLite database file from a DATABASE_URL.

    Accepts ``file:`` and ``sqlite:`` URLs; anything else (or nothing) falls
    back to ``prisma/dev.db``. Relative paths resolve against ``cwd``.
    """
    db_path = "prisma/dev.db"
    if database_url:
        if database_url.startswith("file:"):
            db_path = database_url[len("file:"):]
        elif database_url.startswith("sqlite:"):
            db_path = database_url[len("sqlite:"):]

    path = Path(db_path)
    if not path.is_absolute():
        path = Path(cwd or os.getcwd()) / path
    return path


@dataclass(frozen=True)
class StorageConfig:
    """Catalog and artifact storage configuration."""
    kv_backend: str = "json"  # json, redis
    working_dir: str = "./classora_backup_data"
    backup_dir: str = "./backups"
    artifact_extension: str = ".db"
    chunk_size: int = 64 * 1024

    # Redis specific settings
    redis_url: str = "redis://localhost:6379"
    redis_password: Optional[str] = None
    redis_max_connections: int = 50
    redis_connection_timeout: float = 5.0
    redis_socket_timeout: float = 5.0
    redis_health_check_interval: int = 30

    @classmethod
    def from_env(cls) -> 'StorageConfig':
        """Create config from environment variables."""
        return cls(
            kv_backend=os.getenv("STORAGE_KV_BACKEND", "json"),
            working_dir=os.getenv("STORAGE_WORKING_DIR", "./classora_backup_data"),
            backup_dir=os.getenv("BACKUP_DIR", "./backups"),
            artifact_extension=os.getenv("BACKUP_ARTIFACT_EXTENSION", ".db"),
            chunk_size=int(os.getenv("BACKUP_CHUNK_SIZE", str(64 * 1024))),
            redis_url=os.getenv("REDIS_URL", "redis://localhost:6379"),
            redis_password=os.getenv("REDIS_PASSWORD", None),
            redis_max_connections=int(os.getenv("REDIS_MAX_CONNECTIONS", "50")),
            redis_connection_timeout=float(os.getenv("REDIS_CONNECTION_TIMEOUT", "5.0")),
            redis_socket_timeout=float(os.getenv("REDIS_SOCKET_TIMEOUT", "5.0")),
            redis_health_check_interval=int(os.getenv("REDIS_HEALTH_CHECK_INTERVAL", "30")),
        )

    def __post_init__(self):
        """Validate configuration."""
        valid_kv_backends = {"json", "redis"}
        if self.kv_backend not in valid_kv_backends:
            raise ValueError(f"Unknown KV backend: {self.kv_backend}. Available: {valid_kv_backends}")
        if not self.artifact_extension.startswith("."):
            raise ValueError(f"artifact_extension must start with '.', got {self.artifact_extension}")
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")

    def to_kv_config(self) -> dict:
        """Flatten into the dict shape KV storage backends read."""
        return {
            "working_dir": self.working_dir,
            "redis_url": self.redis_url,
            "redis_password": self.redis_password,
            "redis_max_connections": self.redis_max_connections,
            "redis_connection_timeout": self.redis_connection_timeout,
            "redis_socket_timeout": self.redis_socket_timeout,
            "redis_health_check_interval": self.redis_health_check_interval,
        }


@dataclass(frozen=True)
class LifecycleConfig:
    """Timeouts and sweep tuning for the backup lifecycle manager."""
    create_timeout: float = 600.0
    download_timeout: float = 600.0
    pending_grace_period: float = 3600.0  # seconds before a pending record counts as abandoned
    unique_names: bool = False
    default_retention_days: int = 30

    @classmethod
    def from_env(cls) -> 'LifecycleConfig':
        """Create config from environment variables."""
        return cls(
            create_timeout=float(os.getenv("BACKUP_CREATE_TIMEOUT", "600.0")),
            download_timeout=float(os.getenv("BACKUP_DOWNLOAD_TIMEOUT", "600.0")),
            pending_grace_period=float(os.getenv("BACKUP_PENDING_GRACE_PERIOD", "3600.0")),
            unique_names=os.getenv("BACKUP_UNIQUE_NAMES", "false").lower() == "true",
            default_retention_days=int(os.getenv("BACKUP_RETENTION_DAYS", "30")),
        )

    def __post_init__(self):
        """Validate configuration."""
        if self.create_timeout <= 0:
            raise ValueError(f"create_timeout must be positive, got {self.create_timeout}")
        if self.download_timeout <= 0:
            raise ValueError(f"download_timeout must be positive, got {self.download_timeout}")
        if self.pending_grace_period <= 0:
            raise ValueError(f"pending_grace_period must be positive, got {self.pending_grace_period}")
        if self.default_retention_days < 1:
            raise ValueError(f"default_retention_days must be at least 1, got {self.default_retention_days}")


@dataclass(frozen=True)
class SchedulerConfig:
    """Automatic backup scheduler configuration."""
    enabled: bool = True
    interval_seconds: float = 300.0

    @classmethod
    def from_env(cls) -> 'SchedulerConfig':
        """Create config from environment variables."""
        return cls(
            enabled=os.getenv("BACKUP_SCHEDULER_ENABLED", "true").lower() == "true",
            interval_seconds=float(os.getenv("BACKUP_SCHEDULER_INTERVAL", "300.0")),
        )

    def __post_init__(self):
        """Validate configuration."""
        if self.interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {self.interval_seconds}")


@dataclass(frozen=True)
class BackupConfig:
    """Main classora-backup configuration."""
    storage: StorageConfig = field(default_factory=StorageConfig)
    lifecycle: LifecycleConfig = field(default_factory=LifecycleConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    database_path: Path = field(default_factory=resolve_database_path)
    snapshot_mode: str = "sqlite"  # sqlite, file

    @classmethod
    def from_env(cls) -> 'BackupConfig':
        """Create complete config from environment variables."""
        return cls(
            storage=StorageConfig.from_env(),
            lifecycle=LifecycleConfig.from_env(),
            scheduler=SchedulerConfig.from_env(),
            database_path=resolve_database_path(os.getenv("DATABASE_URL")),
            snapshot_mode=os.getenv("BACKUP_SNAPSHOT_MODE", "sqlite"),
        )

    def __post_init__(self):
        """Validate configuration."""
        if self.snapshot_mode not in {"sqlite", "file"}:
            raise ValueError(f"Unknown snapshot mode: {self.snapshot_mode}. Available: {{'sqlite', 'file'}}")
