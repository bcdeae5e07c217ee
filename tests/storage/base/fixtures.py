"""Shared fixtures for storage and backup testing."""

import sqlite3
import pytest
import tempfile
from pathlib import Path


@pytest.fixture
def temp_storage_dir():
    """Temporary directory for KV storage files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_backup_dir():
    """Temporary directory for backup artifacts."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def mock_global_config(temp_storage_dir):
    """Global config dict as produced by StorageConfig.to_kv_config()."""
    return {
        "working_dir": str(temp_storage_dir),
        "redis_url": "redis://localhost:6379",
        "redis_password": None,
        "redis_max_connections": 10,
        "redis_connection_timeout": 5.0,
        "redis_socket_timeout": 5.0,
        "redis_health_check_interval": 30,
    }


@pytest.fixture
def sqlite_database():
    """A small SQLite database standing in for the platform's primary store."""
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "dev.db"
        conn = sqlite3.connect(path)
        try:
            conn.execute("CREATE TABLE users (id INTEGER PRIMARY KEY, email TEXT NOT NULL)")
            conn.executemany(
                "INSERT INTO users (email) VALUES (?)",
                [(f"student{i}@classora.test",) for i in range(100)],
            )
            conn.commit()
        finally:
            conn.close()
        yield path
