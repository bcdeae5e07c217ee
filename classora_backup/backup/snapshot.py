"""Snapshot sources: produce a byte-for-byte copy of the primary store."""

import asyncio
import os
import sqlite3
import tempfile
from pathlib import Path
from typing import AsyncIterator, Optional

from .._utils import logger
from .exceptions import SourceUnavailableError


class SnapshotSource:
    """Produces the current contents of the primary store as a byte stream."""

    def stream(self) -> AsyncIterator[bytes]:
        raise NotImplementedError

    def describe(self) -> str:
        return type(self).__name__


async def _iter_path(path: Path, chunk_size: int) -> AsyncIterator[bytes]:
    fh = await asyncio.to_thread(open, path, "rb")
    try:
        while True:
            chunk = await asyncio.to_thread(fh.read, chunk_size)
            if not chunk:
                break
            yield chunk
    finally:
        fh.close()


class FileSnapshotSource(SnapshotSource):
    """Raw file copy of the database file.

    Only consistent when nothing writes to the database meanwhile; prefer
    SqliteSnapshotSource for a live SQLite store.
    """

    def __init__(self, path: Path, chunk_size: int = 64 * 1024):
        self.path = Path(path)
        self.chunk_size = chunk_size

    def describe(self) -> str:
        return f"file:{self.path}"

    async def stream(self) -> AsyncIterator[bytes]:
        if not self.path.is_file():
            raise SourceUnavailableError(f"Database file not found: {self.path}")
        async for chunk in _iter_path(self.path, self.chunk_size):
            yield chunk


class SqliteSnapshotSource(SnapshotSource):
    """Point-in-time copy through SQLite's online backup API.

    The copy is taken into a scratch file first, which is streamed and then
    removed.
    """

    def __init__(self, path: Path, chunk_size: int = 64 * 1024, scratch_dir: Optional[str] = None):
        self.path = Path(path)
        self.chunk_size = chunk_size
        self.scratch_dir = scratch_dir

    def describe(self) -> str:
        return f"sqlite:{self.path}"

    def _copy_to(self, target: Path) -> None:
        source = sqlite3.connect(f"{self.path.resolve().as_uri()}?mode=ro", uri=True)
        try:
            dest = sqlite3.connect(target)
            try:
                source.backup(dest)
            finally:
                dest.close()
        finally:
            source.close()

    async def stream(self) -> AsyncIterator[bytes]:
        if not self.path.is_file():
            raise SourceUnavailableError(f"Database file not found: {self.path}")

        fd, scratch_name = tempfile.mkstemp(suffix=".snapshot", dir=self.scratch_dir)
        os.close(fd)
        scratch = Path(scratch_name)
        try:
            try:
                await asyncio.to_thread(self._copy_to, scratch)
            except sqlite3.Error as e:
                raise SourceUnavailableError(f"SQLite snapshot of {self.path} failed: {e}") from e
            logger.debug(f"SQLite snapshot taken: {self.path} -> {scratch}")

            async for chunk in _iter_path(scratch, self.chunk_size):
                yield chunk
        finally:
            scratch.unlink(missing_ok=True)


def create_snapshot_source(mode: str, path: Path, chunk_size: int = 64 * 1024) -> SnapshotSource:
    if mode == "sqlite":
        return SqliteSnapshotSource(path, chunk_size=chunk_size)
    if mode == "file":
        return FileSnapshotSource(path, chunk_size=chunk_size)
    raise ValueError(f"Unknown snapshot mode: {mode}")
