"""Redis Key-Value storage backend for multi-instance deployments."""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import redis.asyncio as aioredis
from redis.backoff import ExponentialBackoff
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.retry import Retry

from ..base import BaseKVStorage
from .._utils import logger
from ..backup.exceptions import StorageUnavailableError


@dataclass
class RedisKVStorage(BaseKVStorage):
    """One JSON document per key under ``classora_backup:<namespace>:``.

    The connection pool is created on first use, so building the storage
    never touches the network.
    """

    _client: Optional[Any] = field(init=False, default=None)
    _pool: Optional[Any] = field(init=False, default=None)

    def __post_init__(self):
        self._prefix = f"classora_backup:{self.namespace}:"
        self.redis_url = self.global_config.get("redis_url", "redis://localhost:6379")
        self.redis_password = self.global_config.get("redis_password")

    async def _redis(self):
        if self._client is not None:
            return self._client

        self._pool = aioredis.ConnectionPool.from_url(
            self.redis_url,
            password=self.redis_password,
            max_connections=self.global_config.get("redis_max_connections", 50),
            socket_timeout=self.global_config.get("redis_socket_timeout", 5.0),
            socket_connect_timeout=self.global_config.get("redis_connection_timeout", 5.0),
            retry=Retry(
                ExponentialBackoff(cap=10, base=1),
                retries=3,
                supported_errors=(RedisConnectionError, TimeoutError, ConnectionError),
            ),
        )
        client = aioredis.Redis(connection_pool=self._pool, auto_close_connection_pool=False)
        await client.ping()
        logger.info(f"Connected to Redis for namespace: {self.namespace}")
        self._client = client
        return client

    def _key(self, id: str) -> str:
        return self._prefix + id

    def _decode(self, raw: Optional[bytes]) -> Any:
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.error(f"Unreadable value in Redis namespace {self.namespace}: {e}")
            return None

    async def all_keys(self) -> List[str]:
        client = await self._redis()
        keys = []
        async for key in client.scan_iter(match=f"{self._prefix}*", count=1000):
            if isinstance(key, bytes):
                key = key.decode("utf-8")
            keys.append(key[len(self._prefix):])
        return keys

    async def get_by_id(self, id: str) -> Optional[Any]:
        client = await self._redis()
        return self._decode(await client.get(self._key(id)))

    async def get_by_ids(self, ids: List[str]) -> List[Optional[Any]]:
        if not ids:
            return []
        client = await self._redis()
        async with client.pipeline() as pipe:
            for id in ids:
                pipe.get(self._key(id))
            return [self._decode(raw) for raw in await pipe.execute()]

    async def filter_keys(self, data: List[str]) -> set:
        if not data:
            return set()
        client = await self._redis()
        async with client.pipeline() as pipe:
            for key in data:
                pipe.exists(self._key(key))
            found = await pipe.execute()
        return {key for key, exists in zip(data, found) if not exists}

    async def upsert(self, data: Dict[str, Any]) -> None:
        if not data:
            return
        client = await self._redis()
        try:
            async with client.pipeline() as pipe:
                for id, value in data.items():
                    pipe.set(self._key(id), json.dumps(value, default=str).encode("utf-8"))
                await pipe.execute()
        except RedisError as e:
            logger.error(f"Redis write failed in namespace {self.namespace}: {e}")
            raise StorageUnavailableError(f"Failed writing KV namespace {self.namespace}: {e}") from e

    async def delete_by_id(self, id: str) -> bool:
        client = await self._redis()
        try:
            return bool(await client.delete(self._key(id)))
        except RedisError as e:
            logger.error(f"Redis delete failed for {id}: {e}")
            raise StorageUnavailableError(f"Failed deleting {id} from KV namespace {self.namespace}: {e}") from e

    async def check_health(self) -> bool:
        try:
            client = await self._redis()
            return bool(await client.ping())
        except (RedisError, OSError):
            return False

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
        if self._pool is not None:
            await self._pool.disconnect()
        self._client = None
        self._pool = None
