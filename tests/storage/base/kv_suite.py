"""Base test suite for key-value storage implementations."""

import pytest
import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass
class KVStorageContract:
    """Contract that all KV storages must fulfill."""

    supports_batch_ops: bool = True
    supports_health_check: bool = True


class BaseKVStorageTestSuite(ABC):
    """Abstract test suite all KV storage implementations must pass."""

    @pytest.fixture
    @abstractmethod
    async def storage(self) -> Any:
        """Provide storage instance for testing."""
        pass

    @pytest.fixture
    @abstractmethod
    def contract(self) -> KVStorageContract:
        """Define storage capabilities contract."""
        pass

    @pytest.mark.asyncio
    async def test_basic_operations(self, storage):
        """Test basic get/set operations."""
        await storage.upsert({"key1": {"value": "data1", "metadata": "test"}})

        result = await storage.get_by_id("key1")
        assert result is not None
        assert result["value"] == "data1"
        assert result["metadata"] == "test"

        assert await storage.get_by_id("nonexistent") is None

        # Upsert overwrites
        await storage.upsert({"key1": {"value": "updated_data1", "metadata": "updated"}})
        result = await storage.get_by_id("key1")
        assert result["value"] == "updated_data1"
        assert result["metadata"] == "updated"

    @pytest.mark.asyncio
    async def test_batch_operations(self, storage, contract):
        """Test batch operations."""
        if not contract.supports_batch_ops:
            pytest.skip("Storage doesn't support batch operations")

        await storage.upsert({
            f"key_{i}": {"value": f"data_{i}", "index": i}
            for i in range(50)
        })

        keys = [f"key_{i}" for i in range(25)]
        results = await storage.get_by_ids(keys)

        assert len(results) == 25
        for i, result in enumerate(results):
            assert result is not None
            assert result["value"] == f"data_{i}"
            assert result["index"] == i

        # Missing ids come back as None in position
        mixed = await storage.get_by_ids(["key_0", "missing", "key_1"])
        assert mixed[0]["index"] == 0
        assert mixed[1] is None
        assert mixed[2]["index"] == 1

    @pytest.mark.asyncio
    async def test_filter_keys(self, storage):
        """Test filtering for non-existent keys."""
        await storage.upsert({
            "existing1": {"value": "data1"},
            "existing2": {"value": "data2"},
        })

        new_keys = await storage.filter_keys(["existing1", "existing2", "new1", "new2"])

        assert new_keys == {"new1", "new2"}

    @pytest.mark.asyncio
    async def test_all_keys(self, storage):
        """Test listing all keys."""
        assert await storage.all_keys() == []

        await storage.upsert({f"test_key_{i}": {"value": f"data_{i}"} for i in range(10)})

        all_keys = await storage.all_keys()
        assert sorted(all_keys) == sorted(f"test_key_{i}" for i in range(10))

    @pytest.mark.asyncio
    async def test_delete_by_id(self, storage):
        """Deleting reports whether the key was present."""
        await storage.upsert({"doomed": {"value": 1}, "kept": {"value": 2}})

        assert await storage.delete_by_id("doomed") is True
        assert await storage.get_by_id("doomed") is None
        assert await storage.get_by_id("kept") == {"value": 2}

        assert await storage.delete_by_id("doomed") is False
        assert "doomed" not in await storage.all_keys()

    @pytest.mark.asyncio
    async def test_health_check(self, storage, contract):
        if not contract.supports_health_check:
            pytest.skip("Storage doesn't report health")
        assert await storage.check_health() is True

    @pytest.mark.asyncio
    async def test_concurrent_access(self, storage):
        """Test concurrent read/write operations."""
        async def write_task(index):
            await storage.upsert({f"concurrent_{index}": {"value": f"data_{index}", "index": index}})

        async def read_task(index):
            return await storage.get_by_id(f"concurrent_{index}")

        await asyncio.gather(*[write_task(i) for i in range(20)])
        results = await asyncio.gather(*[read_task(i) for i in range(20)])

        for i, result in enumerate(results):
            assert result is not None
            assert result["value"] == f"data_{i}"
            assert result["index"] == i

    @pytest.mark.asyncio
    async def test_backup_record_shape(self, storage):
        """Catalog entries survive a round trip with nested and null fields."""
        record = {
            "id": "3f2a9c",
            "name": "nightly-1",
            "kind": "automatic",
            "status": "completed",
            "size_bytes": 4096,
            "location_ref": "2024-05-01T00-00-00-000000Z_3f2a9c.db",
            "description": None,
            "created_by": "system",
            "created_at": "2024-05-01T00:00:00Z",
            "completed_at": "2024-05-01T00:00:03Z",
            "checksum": "sha256:abc",
            "error": None,
        }

        await storage.upsert({record["id"]: record})

        assert await storage.get_by_id(record["id"]) == record
