"""FastAPI application for classora-backup."""

import logging
import os
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from classora_backup import __version__
from classora_backup.backup import AutoBackupScheduler, BackupManager
from classora_backup.config import BackupConfig
from .auth import StaticAdminAuthorizer
from .config import settings
from .exceptions import register_exception_handlers
from .routers import backup, health

# App-managed pattern: attach our own handler and don't propagate, so INFO
# logs show regardless of uvicorn's logging config
backup_logger = logging.getLogger("classora-backup")
backup_logger.setLevel(logging.INFO)
backup_logger.propagate = False
backup_logger.handlers.clear()

console_handler = logging.StreamHandler(sys.stdout)
console_handler.setLevel(logging.INFO)
console_handler.setFormatter(logging.Formatter(
    '%(asctime)s - [%(name)s] - %(levelname)s - %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
))
backup_logger.addHandler(console_handler)

if os.getenv("DISABLE_APP_LOGGING", "false").lower() == "true":
    backup_logger.handlers.clear()
    backup_logger.propagate = True  # Fall back to server-managed pattern

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage backup manager and scheduler lifecycle."""
    logger.info("Initializing backup manager...")

    config = BackupConfig.from_env()
    try:
        app.state.backup_manager = await BackupManager.from_config(config)
        logger.info(
            f"Backup manager ready: catalog={config.storage.kv_backend}, "
            f"artifacts={app.state.backup_manager.artifacts.root_dir}, "
            f"source={app.state.backup_manager.snapshot_source.describe()}"
        )
    except Exception as e:
        logger.error(f"Failed to initialize backup manager: {e}")
        raise

    app.state.authorizer = StaticAdminAuthorizer(settings.admin_user_ids)
    if not settings.admin_user_ids:
        logger.warning("No ADMIN_USER_IDS configured - every backup request will be rejected")

    app.state.scheduler = None
    if settings.run_scheduler and config.scheduler.enabled:
        app.state.scheduler = AutoBackupScheduler(
            app.state.backup_manager, config.scheduler.interval_seconds
        )
        app.state.scheduler.start()

    yield

    logger.info("Shutting down backup manager...")
    if app.state.scheduler is not None:
        await app.state.scheduler.stop()
    await app.state.backup_manager.close()


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        lifespan=lifespan,
        docs_url=f"{settings.api_prefix}/docs",
        openapi_url=f"{settings.api_prefix}/openapi.json",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(backup.router, prefix=settings.api_prefix)
    app.include_router(health.router, prefix=settings.api_prefix)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": settings.api_title,
            "version": settings.api_version,
            "package_version": __version__,
            "docs": f"{settings.api_prefix}/docs"
        }

    return app


# Create default app instance
app = create_app()
