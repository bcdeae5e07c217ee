"""Backup management API endpoints (administrators only)."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from starlette.status import HTTP_201_CREATED, HTTP_400_BAD_REQUEST

from classora_backup._utils import logger
from classora_backup.backup import (
    AutoBackupScheduler,
    BackupKind,
    BackupManager,
    BackupRecord,
    BackupStatus,
    RetentionReport,
)
from ..dependencies import get_backup_manager, get_scheduler, require_admin
from ..models import (
    BackupListResponse,
    BackupResponse,
    CreateBackupRequest,
    DeleteResponse,
    OrphanSweepResponse,
    SettingsResponse,
    SettingsUpdateRequest,
    VerifyResponse,
)

router = APIRouter(prefix="/backup", tags=["backup"], dependencies=[Depends(require_admin)])


@router.post("", response_model=BackupResponse, status_code=HTTP_201_CREATED)
async def create_backup(
    body: Optional[CreateBackupRequest] = None,
    admin_id: str = Depends(require_admin),
    backup_manager: BackupManager = Depends(get_backup_manager),
) -> BackupResponse:
    """Create a backup of the primary store.

    The body is optional; without one a manual backup with a generated
    name is created.
    """
    body = body or CreateBackupRequest()
    record = await backup_manager.create_backup(
        initiated_by=admin_id,
        kind=body.kind,
        name=body.name,
        description=body.description,
    )
    return BackupResponse(message="Backup created successfully", backup=record)


@router.post("/auto", response_model=BackupResponse, status_code=HTTP_201_CREATED)
async def create_automatic_backup(
    admin_id: str = Depends(require_admin),
    backup_manager: BackupManager = Depends(get_backup_manager),
) -> BackupResponse:
    """Trigger an automatic backup immediately."""
    record = await backup_manager.create_backup(initiated_by=admin_id, kind=BackupKind.AUTOMATIC)
    return BackupResponse(message="Automatic backup created successfully", backup=record)


@router.get("", response_model=BackupListResponse)
async def list_backups(
    kind: Optional[BackupKind] = None,
    status: Optional[BackupStatus] = None,
    backup_manager: BackupManager = Depends(get_backup_manager),
) -> BackupListResponse:
    """List backups, newest first."""
    backups = await backup_manager.list_backups(kind=kind, status=status)
    return BackupListResponse(backups=backups)


@router.get("/settings", response_model=SettingsResponse)
async def get_backup_settings(
    backup_manager: BackupManager = Depends(get_backup_manager),
    scheduler: Optional[AutoBackupScheduler] = Depends(get_scheduler),
) -> SettingsResponse:
    """Current backup settings with last/next backup times."""
    current = await backup_manager.get_settings()
    last = await backup_manager.latest_backup(status=BackupStatus.COMPLETED)
    next_backup = await (scheduler or AutoBackupScheduler(backup_manager)).next_run_at(current)
    return SettingsResponse(
        settings=current,
        last_backup=last.created_at if last else None,
        next_backup=next_backup,
    )


@router.put("/settings", response_model=SettingsResponse)
async def update_backup_settings(
    request: SettingsUpdateRequest,
    backup_manager: BackupManager = Depends(get_backup_manager),
    scheduler: Optional[AutoBackupScheduler] = Depends(get_scheduler),
) -> SettingsResponse:
    """Persist a partial settings update."""
    changes = request.settings.model_dump(exclude_none=True)
    if not changes:
        raise HTTPException(status_code=HTTP_400_BAD_REQUEST, detail="No settings provided")

    await backup_manager.update_settings(changes)
    if "storage_location" in changes:
        logger.info("Backup storage location changed; new artifacts use it after restart")

    return await get_backup_settings(backup_manager, scheduler)


@router.post("/retention", response_model=RetentionReport)
async def run_retention(
    backup_manager: BackupManager = Depends(get_backup_manager),
) -> RetentionReport:
    """Apply the retention policy now."""
    return await backup_manager.run_retention()


@router.post("/maintenance/orphans", response_model=OrphanSweepResponse)
async def sweep_orphans(
    backup_manager: BackupManager = Depends(get_backup_manager),
) -> OrphanSweepResponse:
    """Remove artifacts that no backup record references."""
    removed = await backup_manager.sweep_orphans()
    return OrphanSweepResponse(removed=removed)


@router.get("/{backup_id}", response_model=BackupRecord)
async def get_backup(
    backup_id: str,
    backup_manager: BackupManager = Depends(get_backup_manager),
) -> BackupRecord:
    return await backup_manager.get_backup(backup_id)


@router.get("/{backup_id}/verify", response_model=VerifyResponse)
async def verify_backup(
    backup_id: str,
    backup_manager: BackupManager = Depends(get_backup_manager),
) -> VerifyResponse:
    """Check that the catalog record still matches its artifact."""
    consistent = await backup_manager.verify_backup(backup_id)
    return VerifyResponse(backup_id=backup_id, consistent=consistent)


@router.get("/{backup_id}/download")
async def download_backup(
    backup_id: str,
    backup_manager: BackupManager = Depends(get_backup_manager),
) -> StreamingResponse:
    """Stream the backup artifact as an attachment."""
    download = await backup_manager.download_backup(backup_id)
    return StreamingResponse(
        download.content,
        media_type=download.media_type,
        headers=download.headers(),
    )


@router.delete("/{backup_id}", response_model=DeleteResponse)
async def delete_backup(
    backup_id: str,
    backup_manager: BackupManager = Depends(get_backup_manager),
) -> DeleteResponse:
    """Delete a backup record and its artifact."""
    await backup_manager.delete_backup(backup_id)
    return DeleteResponse(message="Backup deleted successfully")
