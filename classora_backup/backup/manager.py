"""Backup lifecycle orchestration.

The manager is the only component that keeps the catalog and the artifact
store consistent with each other. Callers are expected to have been
authorized as administrators already.
"""

import asyncio
import re
from contextlib import asynccontextmanager
from datetime import datetime, timedelta
from typing import Any, AsyncIterator, Dict, List, Optional, Union

from .._utils import ensure_utc, logger, utc_now
from .._storage import StorageFactory
from ..config import BackupConfig, LifecycleConfig
from . import retention
from .artifacts import ArtifactStore, StoredArtifact
from .catalog import BackupCatalog
from .exceptions import (
    ArtifactMissingError,
    BackupTimeoutError,
    InvalidTransitionError,
    NotFoundError,
    NotReadyError,
    StorageUnavailableError,
)
from .models import (
    BackupDownload,
    BackupKind,
    BackupRecord,
    BackupSettings,
    BackupStatus,
    RetentionFailure,
    RetentionReport,
)
from .settings import BackupSettingsStore
from .snapshot import SnapshotSource, create_snapshot_source

SYSTEM_USER = "system"

_DEFAULT_NAME_PREFIX = {
    BackupKind.MANUAL: "backup",
    BackupKind.AUTOMATIC: "auto-backup",
}
_DEFAULT_DESCRIPTION = {
    BackupKind.MANUAL: "Manual backup created by admin",
    BackupKind.AUTOMATIC: "Automatic backup created by system",
}
_UNSAFE_FILENAME_CHARS = re.compile(r"[^\w.\- ]")


def _name_timestamp(moment: datetime) -> str:
    """ISO-8601 with ':' and '.' replaced, e.g. 2024-05-01T12-30-00-123Z."""
    return f"{moment:%Y-%m-%dT%H-%M-%S}-{moment.microsecond // 1000:03d}Z"


class BackupManager:
    """Create, list, download, delete and expire backups.

    Status transitions for one record are serialized by a per-record lock;
    operations on different records never wait on each other.
    """

    def __init__(
        self,
        catalog: BackupCatalog,
        artifacts: ArtifactStore,
        snapshot_source: SnapshotSource,
        settings_store: Optional[BackupSettingsStore] = None,
        config: Optional[LifecycleConfig] = None,
    ):
        self.catalog = catalog
        self.artifacts = artifacts
        self.snapshot_source = snapshot_source
        self.settings_store = settings_store
        self.config = config or LifecycleConfig()
        self._locks: Dict[str, List[Any]] = {}

    @classmethod
    async def from_config(cls, config: BackupConfig) -> "BackupManager":
        """Wire catalog, settings, artifact store and snapshot source from config.

        The artifact root comes from the persisted ``storage_location``
        setting, falling back to ``config.storage.backup_dir``.
        """
        kv_config = config.storage.to_kv_config()
        catalog_storage = StorageFactory.create_kv_storage(
            config.storage.kv_backend, "backups", kv_config
        )
        settings_storage = StorageFactory.create_kv_storage(
            config.storage.kv_backend, "backup_settings", kv_config
        )
        settings_store = BackupSettingsStore(
            settings_storage,
            defaults=BackupSettings(
                retention_days=config.lifecycle.default_retention_days,
                storage_location=config.storage.backup_dir,
            ),
        )
        settings = await settings_store.load()

        artifacts = ArtifactStore(
            settings.storage_location,
            extension=config.storage.artifact_extension,
            chunk_size=config.storage.chunk_size,
        )
        source = create_snapshot_source(
            config.snapshot_mode, config.database_path, chunk_size=config.storage.chunk_size
        )
        return cls(
            BackupCatalog(catalog_storage, unique_names=config.lifecycle.unique_names),
            artifacts,
            source,
            settings_store=settings_store,
            config=config.lifecycle,
        )

    async def close(self) -> None:
        await self.catalog.storage.close()
        if self.settings_store is not None:
            await self.settings_store.storage.close()

    @asynccontextmanager
    async def _record_lock(self, backup_id: str):
        """Serialize status changes on one record.

        Entries are dropped once no task holds or waits on them, so the map
        only ever contains records with work in flight.
        """
        entry = self._locks.setdefault(backup_id, [asyncio.Lock(), 0])
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[backup_id]

    async def create_backup(
        self,
        initiated_by: str,
        kind: Union[BackupKind, str] = BackupKind.MANUAL,
        name: Optional[str] = None,
        description: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> BackupRecord:
        """Snapshot the primary store into a new backup.

        The catalog record exists (PENDING) before any bytes are read, and
        always ends COMPLETED or FAILED. Failed records are kept for audit.

        Args:
            initiated_by: Administrator id, or SYSTEM_USER for scheduled runs
            kind: Manual or automatic
            name: Label; defaults to a timestamped name
            description: Free text; defaults per kind
            timeout: Seconds before the attempt is failed; defaults to config

        Returns:
            The COMPLETED BackupRecord

        Raises:
            SourceUnavailableError, StorageUnavailableError, BackupTimeoutError
        """
        kind = BackupKind(kind)
        timeout = timeout or self.config.create_timeout
        name = name or f"{_DEFAULT_NAME_PREFIX[kind]}-{_name_timestamp(utc_now())}"
        description = description or _DEFAULT_DESCRIPTION[kind]

        record = await self.catalog.insert(name, kind, initiated_by, description)
        logger.info(f"Starting {kind.value} backup {record.id} ({name}) from {self.snapshot_source.describe()}")

        try:
            stored = await asyncio.wait_for(
                self.artifacts.write(self.snapshot_source.stream()), timeout
            )
        except asyncio.TimeoutError:
            await self._mark_failed(record.id, f"Backup creation exceeded {timeout}s timeout")
            raise BackupTimeoutError("Backup creation", timeout, record.id)
        except asyncio.CancelledError:
            await asyncio.shield(self._mark_failed(record.id, "Backup creation cancelled"))
            raise
        except Exception as e:
            await self._mark_failed(record.id, str(e))
            raise

        completed = await self._mark_completed(record.id, stored)
        logger.info(f"Backup complete: {completed.id} ({completed.size_bytes:,} bytes)")
        return completed

    async def _mark_completed(self, backup_id: str, stored: StoredArtifact) -> BackupRecord:
        try:
            async with self._record_lock(backup_id):
                return await self.catalog.update_status(
                    backup_id,
                    BackupStatus.COMPLETED,
                    size_bytes=stored.size_bytes,
                    location_ref=stored.location_ref,
                    checksum=stored.checksum,
                )
        except (NotFoundError, InvalidTransitionError):
            # Record was deleted or expired while we wrote; the bytes have no owner.
            logger.warning(f"Backup {backup_id} finished after its record left PENDING; discarding artifact")
            await self.artifacts.delete(stored.location_ref)
            raise
        except BaseException:
            await asyncio.shield(self.artifacts.delete(stored.location_ref))
            await asyncio.shield(self._mark_failed(backup_id, "Failed recording completed backup"))
            raise

    async def _mark_failed(self, backup_id: str, reason: str) -> None:
        try:
            async with self._record_lock(backup_id):
                await self.catalog.update_status(backup_id, BackupStatus.FAILED, error=reason)
            logger.error(f"Backup {backup_id} failed: {reason}")
        except (NotFoundError, InvalidTransitionError) as e:
            logger.warning(f"Could not mark backup {backup_id} failed: {e}")
        except Exception:
            logger.exception(f"Catalog update failed while marking backup {backup_id} failed")

    async def get_backup(self, backup_id: str) -> BackupRecord:
        return await self.catalog.get(backup_id)

    async def list_backups(
        self,
        kind: Optional[BackupKind] = None,
        status: Optional[BackupStatus] = None,
    ) -> List[BackupRecord]:
        return await self.catalog.list(kind=kind, status=status)

    async def latest_backup(
        self,
        kind: Optional[BackupKind] = None,
        status: Optional[BackupStatus] = None,
    ) -> Optional[BackupRecord]:
        records = await self.catalog.list(kind=kind, status=status)
        return records[0] if records else None

    async def download_backup(self, backup_id: str, timeout: Optional[float] = None) -> BackupDownload:
        """Open a COMPLETED backup for streaming. Never mutates the catalog.

        Raises:
            NotFoundError: no such record
            NotReadyError: record is not COMPLETED
            ArtifactMissingError: catalog says COMPLETED but the bytes are gone
        """
        record = await self.catalog.get(backup_id)
        if not record.is_downloadable:
            raise NotReadyError(backup_id, record.status.value)

        try:
            if not await self.artifacts.exists(record.location_ref):
                raise ArtifactMissingError(record.location_ref, backup_id)
            content = await self.artifacts.read(record.location_ref)
        except ArtifactMissingError:
            logger.error(
                f"CONSISTENCY ALERT: backup {backup_id} is COMPLETED but artifact "
                f"{record.location_ref} is missing"
            )
            raise ArtifactMissingError(record.location_ref, backup_id)

        safe_name = _UNSAFE_FILENAME_CHARS.sub("_", record.name)
        return BackupDownload(
            record=record,
            filename=f"{safe_name}{self.artifacts.extension}",
            content=self._with_deadline(content, timeout or self.config.download_timeout, backup_id),
        )

    async def _with_deadline(
        self, content: AsyncIterator[bytes], timeout: float, backup_id: str
    ) -> AsyncIterator[bytes]:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        try:
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    raise BackupTimeoutError("Backup download", timeout, backup_id)
                try:
                    chunk = await asyncio.wait_for(content.__anext__(), remaining)
                except StopAsyncIteration:
                    break
                except asyncio.TimeoutError:
                    raise BackupTimeoutError("Backup download", timeout, backup_id)
                yield chunk
        finally:
            await content.aclose()

    async def delete_backup(self, backup_id: str) -> BackupRecord:
        """Delete a backup: catalog entry first, then the artifact.

        An interruption between the two steps leaves an orphaned artifact
        (reclaimed by sweep_orphans), never a record pointing at missing bytes.
        """
        async with self._record_lock(backup_id):
            record = await self.catalog.get(backup_id)
            await self.catalog.delete(backup_id)

        if record.location_ref:
            await self.artifacts.delete(record.location_ref)

        logger.info(f"Deleted backup: {backup_id} ({record.name})")
        return record

    async def run_retention(
        self,
        retention_days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> RetentionReport:
        """Best-effort retention sweep.

        Deletes COMPLETED backups older than the window and fails PENDING
        records abandoned beyond the grace period. One bad entry never stops
        the rest; failures are collected in the report.
        """
        if retention_days is None:
            retention_days = (await self.get_settings()).retention_days
        now = ensure_utc(now or utc_now())

        records = await self.catalog.list()
        report = RetentionReport(retention_days=retention_days, evaluated=len(records), ran_at=now)

        for backup_id in sorted(retention.eligible(records, retention_days, now)):
            try:
                await self.delete_backup(backup_id)
                report.deleted.append(backup_id)
            except NotFoundError:
                logger.debug(f"Retention: {backup_id} already deleted")
            except Exception as e:
                logger.warning(f"Retention failed to delete {backup_id}: {e}")
                report.failures.append(RetentionFailure(
                    backup_id=backup_id, error=str(e), error_type=type(e).__name__
                ))

        grace = timedelta(seconds=self.config.pending_grace_period)
        for backup_id in sorted(retention.stale_pending(records, grace, now)):
            try:
                async with self._record_lock(backup_id):
                    await self.catalog.update_status(
                        backup_id,
                        BackupStatus.FAILED,
                        error=f"Abandoned: still pending after {self.config.pending_grace_period:.0f}s",
                    )
                report.expired_pending.append(backup_id)
            except (NotFoundError, InvalidTransitionError):
                logger.debug(f"Retention: {backup_id} left PENDING before it could be expired")
            except Exception as e:
                logger.warning(f"Retention failed to expire pending {backup_id}: {e}")
                report.failures.append(RetentionFailure(
                    backup_id=backup_id, error=str(e), error_type=type(e).__name__
                ))

        logger.info(
            f"Retention ({retention_days}d): deleted {len(report.deleted)}, "
            f"expired {len(report.expired_pending)} pending, {len(report.failures)} failures"
        )
        return report

    async def sweep_orphans(self, now: Optional[datetime] = None) -> List[str]:
        """Remove artifacts that no catalog record references.

        Artifacts younger than the pending grace period are left alone since
        they may belong to a creation that has not recorded completion yet.
        """
        now = ensure_utc(now or utc_now())
        grace = timedelta(seconds=self.config.pending_grace_period)
        referenced = {r.location_ref for r in await self.catalog.list() if r.location_ref}

        removed = []
        for location_ref, modified_at in (await self.artifacts.list_artifacts()).items():
            if location_ref in referenced or now - modified_at <= grace:
                continue
            try:
                await self.artifacts.delete(location_ref)
                removed.append(location_ref)
            except StorageUnavailableError as e:
                logger.warning(f"Orphan sweep could not delete {location_ref}: {e}")

        if removed:
            logger.info(f"Orphan sweep removed {len(removed)} artifacts")
        return removed

    async def verify_backup(self, backup_id: str) -> bool:
        """Check that a COMPLETED record still matches its artifact.

        Returns False (and logs a consistency alert) on size or checksum drift.
        """
        record = await self.catalog.get(backup_id)
        if not record.is_downloadable:
            raise NotReadyError(backup_id, record.status.value)

        try:
            size = await self.artifacts.size(record.location_ref)
            checksum = await self.artifacts.checksum(record.location_ref) if record.checksum else None
        except ArtifactMissingError:
            logger.error(f"CONSISTENCY ALERT: artifact {record.location_ref} of backup {backup_id} is missing")
            raise ArtifactMissingError(record.location_ref, backup_id)

        if size != record.size_bytes:
            logger.error(f"CONSISTENCY ALERT: backup {backup_id} size {size} != recorded {record.size_bytes}")
            return False
        if checksum is not None and checksum != record.checksum:
            logger.error(f"CONSISTENCY ALERT: backup {backup_id} checksum mismatch")
            return False
        return True

    async def get_settings(self) -> BackupSettings:
        if self.settings_store is None:
            return BackupSettings(retention_days=self.config.default_retention_days)
        return await self.settings_store.load()

    async def update_settings(self, changes: Dict[str, Any]) -> BackupSettings:
        if self.settings_store is None:
            raise StorageUnavailableError("No settings store configured")
        return await self.settings_store.update(changes)
