"""Shared helpers for classora-backup."""

import hashlib
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger("classora-backup")


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def compact_timestamp(moment: datetime = None) -> str:
    """Filesystem-safe timestamp, e.g. 2024-05-01T12-30-00-123456Z."""
    moment = ensure_utc(moment or utc_now())
    return moment.strftime("%Y-%m-%dT%H-%M-%S-%fZ")


def generate_id() -> str:
    """Generate an opaque, never-reused identifier."""
    return uuid.uuid4().hex


def compute_checksum(file_path: Path) -> str:
    """Compute SHA-256 checksum of file.

    Args:
        file_path: Path to file

    Returns:
        SHA-256 checksum as hex string with 'sha256:' prefix
    """
    sha256 = hashlib.sha256()

    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            sha256.update(chunk)

    return f"sha256:{sha256.hexdigest()}"
