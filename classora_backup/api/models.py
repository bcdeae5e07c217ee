"""Pydantic models for API requests and responses."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from classora_backup._utils import utc_now
from classora_backup.backup.models import (
    BackupFrequency,
    BackupKind,
    BackupRecord,
    BackupSettings,
)


class CreateBackupRequest(BaseModel):
    kind: BackupKind = BackupKind.MANUAL
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)


class BackupResponse(BaseModel):
    success: bool = True
    message: str
    backup: BackupRecord


class BackupListResponse(BaseModel):
    backups: List[BackupRecord]


class DeleteResponse(BaseModel):
    success: bool = True
    message: str


class SettingsPatch(BaseModel):
    """Partial settings update; unknown keys are rejected."""

    model_config = ConfigDict(extra="forbid")

    auto_backup_enabled: Optional[bool] = None
    frequency: Optional[BackupFrequency] = None
    retention_days: Optional[int] = Field(default=None, ge=1)
    storage_location: Optional[str] = Field(default=None, min_length=1)


class SettingsUpdateRequest(BaseModel):
    settings: SettingsPatch


class SettingsResponse(BaseModel):
    settings: BackupSettings
    last_backup: Optional[datetime] = None
    next_backup: Optional[datetime] = None


class VerifyResponse(BaseModel):
    backup_id: str
    consistent: bool


class OrphanSweepResponse(BaseModel):
    removed: List[str]


class HealthStatus(BaseModel):
    status: str  # "healthy", "unhealthy"
    catalog: bool
    storage: bool
    scheduler: bool
    timestamp: datetime = Field(default_factory=utc_now)
