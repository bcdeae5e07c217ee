"""Abstract storage contracts."""

from dataclasses import dataclass, field
from typing import Dict, Generic, List, Optional, TypeVar

T = TypeVar("T")


@dataclass
class StorageNameSpace:
    namespace: str
    global_config: dict = field(default_factory=dict)


@dataclass
class BaseKVStorage(Generic[T], StorageNameSpace):
    """Key-value namespace used by the catalog and the settings store.

    Writes are all-or-nothing: a failed ``upsert`` or ``delete_by_id`` raises
    StorageUnavailableError and leaves previously stored values readable.
    """

    async def all_keys(self) -> List[str]:
        raise NotImplementedError

    async def get_by_id(self, id: str) -> Optional[T]:
        raise NotImplementedError

    async def get_by_ids(self, ids: List[str]) -> List[Optional[T]]:
        raise NotImplementedError

    async def filter_keys(self, data: List[str]) -> set:
        """Return keys that do not exist in storage."""
        raise NotImplementedError

    async def upsert(self, data: Dict[str, T]) -> None:
        raise NotImplementedError

    async def delete_by_id(self, id: str) -> bool:
        """Remove one key. Returns False when the key was absent."""
        raise NotImplementedError

    async def check_health(self) -> bool:
        return True

    async def close(self) -> None:
        pass
