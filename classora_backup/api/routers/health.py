"""Health check endpoints."""

import asyncio
from pathlib import Path
from typing import Dict, Optional

from fastapi import APIRouter, Depends, HTTPException

from classora_backup.backup import AutoBackupScheduler, BackupManager
from ..dependencies import get_backup_manager, get_scheduler
from ..models import HealthStatus

router = APIRouter(prefix="/health", tags=["health"])


async def check_catalog(backup_manager: BackupManager) -> bool:
    """Check catalog storage connectivity."""
    try:
        return await backup_manager.catalog.storage.check_health()
    except Exception:
        return False


def _storage_ready(root: Path) -> bool:
    try:
        root.mkdir(parents=True, exist_ok=True)
    except OSError:
        return False
    return root.is_dir()


async def check_storage(backup_manager: BackupManager) -> bool:
    """Check the artifact root is present and writable."""
    return await asyncio.to_thread(_storage_ready, backup_manager.artifacts.root_dir)


@router.get("", response_model=HealthStatus)
async def health_check(
    backup_manager: BackupManager = Depends(get_backup_manager),
    scheduler: Optional[AutoBackupScheduler] = Depends(get_scheduler),
) -> HealthStatus:
    """Health of catalog, artifact storage and scheduler."""
    catalog_ok = await check_catalog(backup_manager)
    storage_ok = await check_storage(backup_manager)
    scheduler_ok = scheduler is not None and scheduler.running

    return HealthStatus(
        status="healthy" if catalog_ok and storage_ok else "unhealthy",
        catalog=catalog_ok,
        storage=storage_ok,
        scheduler=scheduler_ok,
    )


@router.get("/ready")
async def readiness_probe(
    backup_manager: BackupManager = Depends(get_backup_manager),
) -> Dict[str, str]:
    """Kubernetes readiness probe."""
    if not (await check_catalog(backup_manager) and await check_storage(backup_manager)):
        raise HTTPException(status_code=503, detail="Service not ready")
    return {"status": "ready"}


@router.get("/live")
async def liveness_probe() -> Dict[str, str]:
    """Kubernetes liveness probe."""
    return {"status": "alive"}
