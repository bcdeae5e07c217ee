"""Data models for backup management."""

from datetime import datetime, timedelta
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .._utils import utc_now


class BackupKind(str, Enum):
    MANUAL = "manual"
    AUTOMATIC = "automatic"


class BackupStatus(str, Enum):
    """Backup status. COMPLETED and FAILED are terminal."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not BackupStatus.PENDING


class BackupFrequency(str, Enum):
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @property
    def period(self) -> timedelta:
        return {
            BackupFrequency.HOURLY: timedelta(hours=1),
            BackupFrequency.DAILY: timedelta(days=1),
            BackupFrequency.WEEKLY: timedelta(weeks=1),
            BackupFrequency.MONTHLY: timedelta(days=30),
        }[self]


class BackupRecord(BaseModel):
    """Catalog entry describing one backup."""

    id: str = Field(..., description="Catalog-assigned identifier")
    name: str
    kind: BackupKind
    status: BackupStatus = BackupStatus.PENDING
    size_bytes: int = Field(default=0, ge=0)
    location_ref: Optional[str] = Field(default=None, description="Artifact store handle")
    description: Optional[str] = None
    created_by: str
    created_at: datetime = Field(default_factory=utc_now)
    completed_at: Optional[datetime] = None
    checksum: Optional[str] = Field(default=None, description="SHA-256 checksum of the artifact")
    error: Optional[str] = None

    @property
    def is_downloadable(self) -> bool:
        return self.status is BackupStatus.COMPLETED and self.location_ref is not None


class BackupSettings(BaseModel):
    """Persisted backup configuration."""

    auto_backup_enabled: bool = True
    frequency: BackupFrequency = BackupFrequency.DAILY
    retention_days: int = Field(default=30, ge=1)
    storage_location: str = "./backups"

    @field_validator("storage_location")
    @classmethod
    def validate_storage_location(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("storage_location must not be empty")
        return v


class RetentionFailure(BaseModel):
    backup_id: str
    error: str
    error_type: str


class RetentionReport(BaseModel):
    """Outcome of one best-effort retention sweep."""

    retention_days: int
    evaluated: int = 0
    deleted: List[str] = Field(default_factory=list)
    expired_pending: List[str] = Field(default_factory=list)
    failures: List[RetentionFailure] = Field(default_factory=list)
    ran_at: datetime = Field(default_factory=utc_now)

    @property
    def ok(self) -> bool:
        return not self.failures


class BackupDownload(BaseModel):
    """A ready-to-stream backup artifact."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    record: BackupRecord
    filename: str
    media_type: str = "application/octet-stream"
    content: Any = Field(..., exclude=True, description="Async iterator of byte chunks")

    def headers(self) -> Dict[str, str]:
        return {"Content-Disposition": f'attachment; filename="{self.filename}"'}

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self.content.__aiter__()
