"""Filesystem artifact store for backup bytes."""

import asyncio
import hashlib
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator, BinaryIO, Dict, NamedTuple, Optional

from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .._utils import compact_timestamp, compute_checksum, generate_id, logger
from .exceptions import (
    ArtifactMissingError,
    SourceUnavailableError,
    StorageUnavailableError,
)


class StoredArtifact(NamedTuple):
    location_ref: str
    size_bytes: int
    checksum: str


class ArtifactStore:
    """Persist, read and delete backup artifacts under one root directory.

    Knows nothing about catalog metadata. Location refs are plain file names
    of the form ``<timestamp>_<uuid><extension>`` so concurrent writers never
    collide.
    """

    def __init__(self, root_dir: str, extension: str = ".db", chunk_size: int = 64 * 1024):
        self.root_dir = Path(root_dir)
        self.extension = extension
        self.chunk_size = chunk_size

    def allocate_ref(self) -> str:
        return f"{compact_timestamp()}_{generate_id()}{self.extension}"

    def _resolve(self, location_ref: Optional[str]) -> Optional[Path]:
        """Map a ref to a path inside root_dir, or None if it cannot be one of ours."""
        if not location_ref or not isinstance(location_ref, str):
            return None
        if Path(location_ref).name != location_ref or location_ref.startswith("."):
            return None
        return self.root_dir / location_ref

    def _ensure_root(self) -> None:
        self.root_dir.mkdir(parents=True, exist_ok=True)

    async def write(self, stream: AsyncIterator[bytes]) -> StoredArtifact:
        """Persist a snapshot stream at a freshly allocated location.

        Bytes land in a hidden partial file first and are renamed into place
        only after an fsync, so a visible artifact is always complete.

        Raises:
            StorageUnavailableError: target medium cannot be written
            SourceUnavailableError: the snapshot stream cannot be read
        """
        location_ref = self.allocate_ref()
        final_path = self.root_dir / location_ref
        partial_path = self.root_dir / f".{location_ref}.partial"

        try:
            await asyncio.to_thread(self._ensure_root)
            fh: BinaryIO = await asyncio.to_thread(open, partial_path, "wb")
        except OSError as e:
            raise StorageUnavailableError(f"Cannot write to backup storage {self.root_dir}: {e}") from e

        size = 0
        sha256 = hashlib.sha256()
        try:
            try:
                iterator = stream.__aiter__()
                while True:
                    try:
                        chunk = await iterator.__anext__()
                    except StopAsyncIteration:
                        break
                    except OSError as e:
                        raise SourceUnavailableError(f"Snapshot source could not be read: {e}") from e

                    try:
                        await asyncio.to_thread(fh.write, chunk)
                    except OSError as e:
                        raise StorageUnavailableError(f"Failed writing artifact {location_ref}: {e}") from e
                    size += len(chunk)
                    sha256.update(chunk)

                try:
                    await asyncio.to_thread(self._flush, fh)
                except OSError as e:
                    raise StorageUnavailableError(f"Failed flushing artifact {location_ref}: {e}") from e
            finally:
                fh.close()

            try:
                await asyncio.to_thread(os.replace, partial_path, final_path)
            except OSError as e:
                raise StorageUnavailableError(f"Failed finalizing artifact {location_ref}: {e}") from e
        except BaseException:
            partial_path.unlink(missing_ok=True)
            raise
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

        logger.info(f"Artifact written: {location_ref} ({size:,} bytes)")
        return StoredArtifact(location_ref, size, f"sha256:{sha256.hexdigest()}")

    @staticmethod
    def _flush(fh: BinaryIO) -> None:
        fh.flush()
        os.fsync(fh.fileno())

    async def exists(self, location_ref: Optional[str]) -> bool:
        """True if the artifact is present. Never raises."""
        path = self._resolve(location_ref)
        if path is None:
            return False
        try:
            return await asyncio.to_thread(path.is_file)
        except OSError:
            return False

    async def size(self, location_ref: str) -> int:
        path = self._resolve(location_ref)
        if path is None:
            raise ArtifactMissingError(location_ref)
        try:
            stat = await asyncio.to_thread(path.stat)
        except FileNotFoundError as e:
            raise ArtifactMissingError(location_ref) from e
        return stat.st_size

    async def checksum(self, location_ref: str) -> str:
        path = self._resolve(location_ref)
        if path is None:
            raise ArtifactMissingError(location_ref)
        try:
            return await asyncio.to_thread(compute_checksum, path)
        except FileNotFoundError as e:
            raise ArtifactMissingError(location_ref) from e

    async def read(self, location_ref: str) -> AsyncIterator[bytes]:
        """Open the artifact and return an async iterator over its bytes.

        The file handle is opened before returning, so a concurrent delete
        either fails this call with ArtifactMissingError or leaves the
        already-open download intact.
        """
        path = self._resolve(location_ref)
        if path is None:
            raise ArtifactMissingError(location_ref)
        try:
            fh: BinaryIO = await asyncio.to_thread(open, path, "rb")
        except (FileNotFoundError, IsADirectoryError) as e:
            raise ArtifactMissingError(location_ref) from e
        return self._iter_file(fh)

    async def _iter_file(self, fh: BinaryIO) -> AsyncIterator[bytes]:
        try:
            while True:
                chunk = await asyncio.to_thread(fh.read, self.chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            fh.close()

    async def delete(self, location_ref: Optional[str]) -> None:
        """Remove an artifact. Deleting a missing artifact is not an error."""
        path = self._resolve(location_ref)
        if path is None:
            return
        try:
            await self._unlink(path)
        except OSError as e:
            raise StorageUnavailableError(f"Failed deleting artifact {location_ref}: {e}") from e
        logger.info(f"Artifact deleted: {location_ref}")

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
        retry=retry_if_exception_type(OSError),
        reraise=True,
    )
    async def _unlink(self, path: Path) -> None:
        await asyncio.to_thread(path.unlink, missing_ok=True)

    async def list_artifacts(self) -> Dict[str, datetime]:
        """All finished artifacts with their modification time."""
        def _scan() -> Dict[str, datetime]:
            if not self.root_dir.is_dir():
                return {}
            found = {}
            for entry in self.root_dir.iterdir():
                if entry.name.startswith(".") or not entry.is_file():
                    continue
                if entry.suffix != self.extension:
                    continue
                found[entry.name] = datetime.fromtimestamp(entry.stat().st_mtime, tz=timezone.utc)
            return found

        return await asyncio.to_thread(_scan)
