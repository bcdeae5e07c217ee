"""Test utilities for classora-backup tests."""

import asyncio
from pathlib import Path
from typing import AsyncIterator, List, Optional

from classora_backup._storage.kv_json import JsonKVStorage
from classora_backup.backup import (
    ArtifactStore,
    BackupCatalog,
    BackupManager,
    BackupSettingsStore,
    SnapshotSource,
    SourceUnavailableError,
)
from classora_backup.config import LifecycleConfig


class StaticSnapshotSource(SnapshotSource):
    """Streams fixed chunks, standing in for the primary store."""

    def __init__(self, chunks: Optional[List[bytes]] = None):
        self.chunks = chunks if chunks is not None else [b"SQLite format 3\x00", b"x" * 1000]
        self.calls = 0

    @property
    def payload(self) -> bytes:
        return b"".join(self.chunks)

    async def stream(self) -> AsyncIterator[bytes]:
        self.calls += 1
        for chunk in self.chunks:
            await asyncio.sleep(0)
            yield chunk


class UnavailableSnapshotSource(SnapshotSource):
    """Source whose store cannot be read."""

    async def stream(self) -> AsyncIterator[bytes]:
        raise SourceUnavailableError("database is locked")
        yield b""  # pragma: no cover


class SlowSnapshotSource(SnapshotSource):
    """Source that yields one chunk and then stalls."""

    def __init__(self, delay: float = 10.0):
        self.delay = delay

    async def stream(self) -> AsyncIterator[bytes]:
        yield b"partial"
        await asyncio.sleep(self.delay)
        yield b"never"


def create_test_manager(
    storage_dir: Path,
    backup_dir: Path,
    source: Optional[SnapshotSource] = None,
    **lifecycle_overrides,
) -> BackupManager:
    """Manager over JSON catalog and settings stores in temp directories."""
    global_config = {"working_dir": str(storage_dir)}
    catalog = BackupCatalog(
        JsonKVStorage(namespace="backups", global_config=global_config),
        unique_names=lifecycle_overrides.get("unique_names", False),
    )
    settings_store = BackupSettingsStore(
        JsonKVStorage(namespace="backup_settings", global_config=global_config)
    )
    return BackupManager(
        catalog,
        ArtifactStore(str(backup_dir)),
        source or StaticSnapshotSource(),
        settings_store=settings_store,
        config=LifecycleConfig(**lifecycle_overrides),
    )


async def read_all(content: AsyncIterator[bytes]) -> bytes:
    return b"".join([chunk async for chunk in content])
