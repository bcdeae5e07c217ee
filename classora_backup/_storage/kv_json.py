"""JSON-file Key-Value storage backend for single-node deployments."""

import asyncio
import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..base import BaseKVStorage
from .._utils import logger
from ..backup.exceptions import StorageUnavailableError


def load_json(file_name: Path) -> Optional[Dict[str, Any]]:
    if not file_name.exists():
        return None
    with open(file_name, encoding="utf-8") as f:
        return json.load(f)


def write_json(json_obj: Dict[str, Any], file_name: Path) -> None:
    """Write atomically: temp file, fsync, rename."""
    tmp_name = file_name.with_name(f".{file_name.name}.tmp")
    try:
        with open(tmp_name, "w", encoding="utf-8") as f:
            json.dump(json_obj, f, indent=2, ensure_ascii=False, default=str)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, file_name)
    except BaseException:
        tmp_name.unlink(missing_ok=True)
        raise


@dataclass
class JsonKVStorage(BaseKVStorage):
    """Whole-namespace JSON file, rewritten on every mutation.

    The in-memory view only changes after the file has been replaced, so
    readers never see a value the disk does not hold.
    """

    _lock: asyncio.Lock = field(init=False, default_factory=asyncio.Lock)

    def __post_init__(self):
        working_dir = Path(self.global_config.get("working_dir", "./classora_backup_data"))
        working_dir.mkdir(parents=True, exist_ok=True)
        self._file_name = working_dir / f"kv_store_{self.namespace}.json"
        self._data: Dict[str, Any] = load_json(self._file_name) or {}
        logger.info(f"Load KV {self.namespace} with {len(self._data)} data")

    async def _commit(self, updated: Dict[str, Any]) -> None:
        try:
            await asyncio.to_thread(write_json, updated, self._file_name)
        except OSError as e:
            logger.error(f"Failed writing KV namespace {self.namespace}: {e}")
            raise StorageUnavailableError(f"Failed writing KV namespace {self.namespace}: {e}") from e
        self._data = updated

    async def all_keys(self) -> List[str]:
        return list(self._data.keys())

    async def get_by_id(self, id: str) -> Optional[Any]:
        return self._data.get(id)

    async def get_by_ids(self, ids: List[str]) -> List[Optional[Any]]:
        return [self._data.get(id) for id in ids]

    async def filter_keys(self, data: List[str]) -> set:
        return {s for s in data if s not in self._data}

    async def upsert(self, data: Dict[str, Any]) -> None:
        if not data:
            return
        async with self._lock:
            await self._commit({**self._data, **data})

    async def delete_by_id(self, id: str) -> bool:
        async with self._lock:
            if id not in self._data:
                return False
            await self._commit({k: v for k, v in self._data.items() if k != id})
        return True
