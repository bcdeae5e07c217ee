"""Retention policy evaluation.

Pure functions over catalog records; nothing here touches storage.
"""

from datetime import datetime, timedelta
from typing import Iterable, Optional, Set

from .._utils import ensure_utc, utc_now
from .models import BackupRecord, BackupStatus


def eligible(
    records: Iterable[BackupRecord],
    retention_days: int,
    now: Optional[datetime] = None,
) -> Set[str]:
    """Ids of COMPLETED records older than the retention window.

    PENDING and FAILED records are never eligible; they need operator
    attention rather than silent removal.
    """
    if retention_days < 1:
        raise ValueError(f"retention_days must be at least 1, got {retention_days}")

    now = ensure_utc(now or utc_now())
    window = timedelta(days=retention_days)
    return {
        r.id for r in records
        if r.status is BackupStatus.COMPLETED and now - ensure_utc(r.created_at) > window
    }


def stale_pending(
    records: Iterable[BackupRecord],
    grace_period: timedelta,
    now: Optional[datetime] = None,
) -> Set[str]:
    """Ids of PENDING records older than the grace period (abandoned writers)."""
    now = ensure_utc(now or utc_now())
    return {
        r.id for r in records
        if r.status is BackupStatus.PENDING and now - ensure_utc(r.created_at) > grace_period
    }
