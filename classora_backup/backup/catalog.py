"""Backup catalog: the metadata record set, one entry per backup."""

import asyncio
from typing import List, Optional

from pydantic import ValidationError

from ..base import BaseKVStorage
from .._utils import ensure_utc, generate_id, logger, utc_now
from .exceptions import DuplicateNameError, InvalidTransitionError, NotFoundError
from .models import BackupKind, BackupRecord, BackupStatus


class BackupCatalog:
    """Persist BackupRecords on top of a KV storage namespace.

    The catalog assigns ids and enforces the status state machine
    (PENDING -> COMPLETED | FAILED, both terminal). It does not know
    whether artifact bytes exist.
    """

    def __init__(self, storage: BaseKVStorage, unique_names: bool = False):
        self.storage = storage
        self.unique_names = unique_names
        self._insert_lock = asyncio.Lock()

    @staticmethod
    def _load(data: Optional[dict]) -> Optional[BackupRecord]:
        if data is None:
            return None
        try:
            return BackupRecord.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Skipping unreadable catalog entry: {e}")
            return None

    async def _save(self, record: BackupRecord) -> None:
        await self.storage.upsert({record.id: record.model_dump(mode="json")})

    async def insert(
        self,
        name: str,
        kind: BackupKind,
        created_by: str,
        description: Optional[str] = None,
    ) -> BackupRecord:
        """Create a new PENDING record and return it."""
        async with self._insert_lock:
            if self.unique_names:
                existing = await self.list()
                if any(r.name == name for r in existing):
                    raise DuplicateNameError(name)

            backup_id = generate_id()
            while not await self.storage.filter_keys([backup_id]):
                backup_id = generate_id()

            record = BackupRecord(
                id=backup_id,
                name=name,
                kind=kind,
                status=BackupStatus.PENDING,
                description=description,
                created_by=created_by,
                created_at=utc_now(),
            )
            await self._save(record)

        logger.debug(f"Catalog insert: {record.id} ({record.name})")
        return record

    async def update_status(
        self,
        backup_id: str,
        status: BackupStatus,
        size_bytes: Optional[int] = None,
        location_ref: Optional[str] = None,
        checksum: Optional[str] = None,
        error: Optional[str] = None,
    ) -> BackupRecord:
        """Move a PENDING record to a terminal status.

        Raises:
            NotFoundError: no such record
            InvalidTransitionError: record already terminal, or COMPLETED without a location
        """
        record = await self.get(backup_id)

        if record.status.is_terminal or status is BackupStatus.PENDING:
            raise InvalidTransitionError(backup_id, record.status.value, status.value)
        if status is BackupStatus.COMPLETED and (not location_ref or size_bytes is None):
            raise InvalidTransitionError(backup_id, record.status.value, status.value)

        updates = {"status": status, "completed_at": utc_now()}
        if status is BackupStatus.COMPLETED:
            updates.update(size_bytes=size_bytes, location_ref=location_ref, checksum=checksum)
        else:
            updates.update(error=error)

        updated = record.model_copy(update=updates)
        await self._save(updated)
        logger.debug(f"Catalog status: {backup_id} {record.status.value} -> {status.value}")
        return updated

    async def get(self, backup_id: str) -> BackupRecord:
        record = self._load(await self.storage.get_by_id(backup_id))
        if record is None:
            raise NotFoundError(backup_id)
        return record

    async def list(
        self,
        kind: Optional[BackupKind] = None,
        status: Optional[BackupStatus] = None,
    ) -> List[BackupRecord]:
        """All records, most recent first, optionally filtered."""
        keys = await self.storage.all_keys()
        records = [self._load(data) for data in await self.storage.get_by_ids(keys)]
        records = [
            r for r in records
            if r is not None
            and (kind is None or r.kind is kind)
            and (status is None or r.status is status)
        ]
        records.sort(key=lambda r: ensure_utc(r.created_at), reverse=True)
        return records

    async def delete(self, backup_id: str) -> None:
        if not await self.storage.delete_by_id(backup_id):
            raise NotFoundError(backup_id)
        logger.debug(f"Catalog delete: {backup_id}")
