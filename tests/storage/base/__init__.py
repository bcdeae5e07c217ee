"""Base test suites for storage types."""

from .kv_suite import BaseKVStorageTestSuite, KVStorageContract
from .fixtures import (
    temp_storage_dir,
    temp_backup_dir,
    mock_global_config,
    sqlite_database,
)

__all__ = [
    "BaseKVStorageTestSuite",
    "KVStorageContract",
    "temp_storage_dir",
    "temp_backup_dir",
    "mock_global_config",
    "sqlite_database",
]
