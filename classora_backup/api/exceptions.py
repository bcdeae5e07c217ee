"""Custom exceptions and error mapping for FastAPI application."""

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_401_UNAUTHORIZED,
    HTTP_403_FORBIDDEN,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_410_GONE,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_503_SERVICE_UNAVAILABLE,
    HTTP_504_GATEWAY_TIMEOUT,
)

from classora_backup._utils import logger
from classora_backup.backup.exceptions import BackupError


class BackupAPIError(HTTPException):
    """Base exception for backup API errors."""
    pass


class AuthenticationRequiredError(BackupAPIError):
    def __init__(self):
        super().__init__(HTTP_401_UNAUTHORIZED, "Unauthorized")


class AdminRequiredError(BackupAPIError):
    def __init__(self):
        super().__init__(HTTP_403_FORBIDDEN, "Admin access required")


STATUS_BY_KIND = {
    "unauthorized": HTTP_401_UNAUTHORIZED,
    "not_found": HTTP_404_NOT_FOUND,
    "not_ready": HTTP_409_CONFLICT,
    "invalid_transition": HTTP_409_CONFLICT,
    "duplicate_name": HTTP_409_CONFLICT,
    "artifact_missing": HTTP_410_GONE,
    "storage_unavailable": HTTP_503_SERVICE_UNAVAILABLE,
    "source_unavailable": HTTP_503_SERVICE_UNAVAILABLE,
    "timeout": HTTP_504_GATEWAY_TIMEOUT,
}


async def backup_error_handler(request: Request, exc: BackupError) -> JSONResponse:
    """Render a BackupError with its own status and kind."""
    status_code = STATUS_BY_KIND.get(exc.kind, HTTP_500_INTERNAL_SERVER_ERROR)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed ({exc.kind}): {exc.message}")
    content = {"detail": exc.message, "error": exc.kind}
    if exc.backup_id:
        content["backup_id"] = exc.backup_id
    return JSONResponse(status_code=status_code, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BackupError, backup_error_handler)
