"""Backup management: catalog, artifacts, lifecycle and retention."""

from .artifacts import ArtifactStore, StoredArtifact
from .catalog import BackupCatalog
from .exceptions import (
    ArtifactMissingError,
    BackupError,
    BackupTimeoutError,
    DuplicateNameError,
    InvalidTransitionError,
    NotFoundError,
    NotReadyError,
    SourceUnavailableError,
    StorageUnavailableError,
    UnauthorizedError,
)
from .manager import SYSTEM_USER, BackupManager
from .models import (
    BackupDownload,
    BackupFrequency,
    BackupKind,
    BackupRecord,
    BackupSettings,
    BackupStatus,
    RetentionReport,
)
from .scheduler import AutoBackupScheduler
from .settings import BackupSettingsStore
from .snapshot import FileSnapshotSource, SnapshotSource, SqliteSnapshotSource

__all__ = [
    "ArtifactStore",
    "StoredArtifact",
    "BackupCatalog",
    "BackupManager",
    "AutoBackupScheduler",
    "BackupSettingsStore",
    "SnapshotSource",
    "FileSnapshotSource",
    "SqliteSnapshotSource",
    "SYSTEM_USER",
    "BackupDownload",
    "BackupFrequency",
    "BackupKind",
    "BackupRecord",
    "BackupSettings",
    "BackupStatus",
    "RetentionReport",
    "BackupError",
    "UnauthorizedError",
    "NotFoundError",
    "NotReadyError",
    "ArtifactMissingError",
    "StorageUnavailableError",
    "SourceUnavailableError",
    "InvalidTransitionError",
    "DuplicateNameError",
    "BackupTimeoutError",
]
