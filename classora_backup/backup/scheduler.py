"""Periodic automatic backups and retention."""

import asyncio
from datetime import datetime
from typing import Optional

from .._utils import ensure_utc, logger, utc_now
from .exceptions import BackupError
from .manager import SYSTEM_USER, BackupManager
from .models import BackupKind, BackupRecord, BackupSettings


class AutoBackupScheduler:
    """Wake up every ``interval_seconds`` and apply the persisted settings.

    Each tick creates an automatic backup when one is due for the configured
    frequency, then runs a retention sweep. Errors are logged and the loop
    keeps going.
    """

    def __init__(self, manager: BackupManager, interval_seconds: float = 300.0):
        self.manager = manager
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def next_run_at(
        self,
        settings: Optional[BackupSettings] = None,
        now: Optional[datetime] = None,
    ) -> Optional[datetime]:
        """When the next automatic backup is due, or None if auto backup is off.

        Measured from the latest automatic attempt regardless of its outcome,
        so a failing source is retried once per period rather than every tick.
        """
        settings = settings or await self.manager.get_settings()
        if not settings.auto_backup_enabled:
            return None
        last = await self.manager.latest_backup(kind=BackupKind.AUTOMATIC)
        if last is None:
            return ensure_utc(now or utc_now())
        return ensure_utc(last.created_at) + settings.frequency.period

    async def tick(self, now: Optional[datetime] = None) -> Optional[BackupRecord]:
        now = ensure_utc(now or utc_now())
        settings = await self.manager.get_settings()

        created = None
        due_at = await self.next_run_at(settings, now)
        if due_at is not None and due_at <= now:
            try:
                created = await self.manager.create_backup(
                    initiated_by=SYSTEM_USER, kind=BackupKind.AUTOMATIC
                )
            except BackupError as e:
                logger.error(f"Automatic backup failed ({e.kind}): {e}")

        try:
            await self.manager.run_retention(settings.retention_days, now=now)
        except BackupError as e:
            logger.error(f"Scheduled retention failed ({e.kind}): {e}")

        return created

    async def _run(self) -> None:
        logger.info(f"Auto backup scheduler started (every {self.interval_seconds:.0f}s)")
        while True:
            try:
                await self.tick()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Auto backup scheduler tick failed")
            await asyncio.sleep(self.interval_seconds)

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Auto backup scheduler stopped")
