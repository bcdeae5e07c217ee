"""Dependency injection for FastAPI."""

from typing import Optional

from fastapi import Request

from classora_backup._utils import logger
from classora_backup.backup import AutoBackupScheduler, BackupManager
from .config import settings
from .exceptions import AdminRequiredError, AuthenticationRequiredError


async def get_backup_manager(request: Request) -> BackupManager:
    """Get BackupManager instance from app state."""
    return request.app.state.backup_manager


async def get_scheduler(request: Request) -> Optional[AutoBackupScheduler]:
    """Get the auto backup scheduler from app state if running."""
    return getattr(request.app.state, "scheduler", None)


async def require_admin(request: Request) -> str:
    """Resolve the calling user and require the administrator capability.

    Returns:
        The administrator's user id
    """
    user_id = request.headers.get(settings.user_id_header)
    if not user_id:
        raise AuthenticationRequiredError()

    authorizer = request.app.state.authorizer
    if not await authorizer.is_admin(user_id):
        logger.warning(f"Non-admin user {user_id} denied access to {request.url.path}")
        raise AdminRequiredError()

    return user_id
