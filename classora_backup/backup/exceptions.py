"""Error taxonomy for backup management.

Every failure carries a distinct ``kind`` so callers can tell "nothing to
download" apart from "storage is in a bad state".
"""

from typing import Optional


class BackupError(Exception):
    """Base exception for backup operations."""

    kind = "backup_error"

    def __init__(self, message: str, backup_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.backup_id = backup_id


class UnauthorizedError(BackupError):
    kind = "unauthorized"


class NotFoundError(BackupError):
    kind = "not_found"

    def __init__(self, backup_id: str):
        super().__init__(f"Backup not found: {backup_id}", backup_id)


class NotReadyError(BackupError):
    kind = "not_ready"

    def __init__(self, backup_id: str, status: str):
        super().__init__(f"Backup {backup_id} is not ready (status: {status})", backup_id)
        self.status = status


class ArtifactMissingError(BackupError):
    """Catalog and artifact store disagree about a backup's bytes."""

    kind = "artifact_missing"

    def __init__(self, location_ref: Optional[str], backup_id: Optional[str] = None):
        super().__init__(f"Backup artifact missing: {location_ref}", backup_id)
        self.location_ref = location_ref


class StorageUnavailableError(BackupError):
    kind = "storage_unavailable"


class SourceUnavailableError(BackupError):
    kind = "source_unavailable"


class InvalidTransitionError(BackupError):
    kind = "invalid_transition"

    def __init__(self, backup_id: str, current: str, requested: str):
        super().__init__(
            f"Backup {backup_id} cannot move from {current} to {requested}", backup_id
        )
        self.current = current
        self.requested = requested


class DuplicateNameError(BackupError):
    kind = "duplicate_name"

    def __init__(self, name: str):
        super().__init__(f"A backup named '{name}' already exists")
        self.name = name


class BackupTimeoutError(BackupError):
    kind = "timeout"

    def __init__(self, operation: str, timeout: float, backup_id: Optional[str] = None):
        super().__init__(f"{operation} exceeded {timeout}s timeout", backup_id)
        self.timeout = timeout
