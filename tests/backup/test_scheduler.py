"""Tests for AutoBackupScheduler."""

import asyncio
import pytest
from datetime import timedelta
from unittest.mock import AsyncMock, patch

from classora_backup._utils import utc_now
from classora_backup.backup.manager import SYSTEM_USER
from classora_backup.backup.models import BackupKind, BackupStatus
from classora_backup.backup.scheduler import AutoBackupScheduler
from tests.utils import UnavailableSnapshotSource, create_test_manager


@pytest.fixture
def manager(temp_storage_dir, temp_backup_dir):
    return create_test_manager(temp_storage_dir, temp_backup_dir)


@pytest.mark.asyncio
async def test_first_tick_creates_automatic_backup(manager):
    scheduler = AutoBackupScheduler(manager)

    created = await scheduler.tick()

    assert created is not None
    assert created.kind is BackupKind.AUTOMATIC
    assert created.created_by == SYSTEM_USER
    assert created.status is BackupStatus.COMPLETED


@pytest.mark.asyncio
async def test_first_backup_is_due_at_the_tick_time(manager):
    scheduler = AutoBackupScheduler(manager)
    tick_at = utc_now() - timedelta(minutes=5)

    assert await scheduler.next_run_at(now=tick_at) == tick_at

    created = await scheduler.tick(now=tick_at)
    assert created is not None
    assert [r.id for r in await manager.list_backups(kind=BackupKind.AUTOMATIC)] == [created.id]


@pytest.mark.asyncio
async def test_no_backup_until_period_elapses(manager):
    scheduler = AutoBackupScheduler(manager)
    first = await scheduler.tick()

    assert await scheduler.tick() is None
    assert await scheduler.next_run_at() == first.created_at + timedelta(days=1)

    later = await scheduler.tick(now=utc_now() + timedelta(days=1, minutes=1))
    assert later is not None
    assert len(await manager.list_backups(kind=BackupKind.AUTOMATIC)) == 2


@pytest.mark.asyncio
async def test_manual_backups_do_not_reset_schedule(manager):
    await manager.create_backup("admin-1")
    scheduler = AutoBackupScheduler(manager)

    assert await scheduler.tick() is not None


@pytest.mark.asyncio
async def test_disabled_auto_backup(manager):
    await manager.update_settings({"auto_backup_enabled": False})
    scheduler = AutoBackupScheduler(manager)

    assert await scheduler.next_run_at() is None
    assert await scheduler.tick() is None
    assert await manager.list_backups() == []


@pytest.mark.asyncio
async def test_tick_applies_retention(manager):
    await manager.update_settings({"auto_backup_enabled": False, "retention_days": 5})
    old = await manager.create_backup("admin-1")
    scheduler = AutoBackupScheduler(manager)

    await scheduler.tick(now=utc_now() + timedelta(days=6))

    assert await manager.list_backups() == []
    assert not await manager.artifacts.exists(old.location_ref)


@pytest.mark.asyncio
async def test_failed_backup_is_logged_not_raised(temp_storage_dir, temp_backup_dir):
    manager = create_test_manager(temp_storage_dir, temp_backup_dir, UnavailableSnapshotSource())
    scheduler = AutoBackupScheduler(manager)

    assert await scheduler.tick() is None

    [record] = await manager.list_backups()
    assert record.status is BackupStatus.FAILED
    # A failed attempt still counts toward the frequency
    assert await scheduler.next_run_at() > utc_now()


@pytest.mark.asyncio
async def test_start_and_stop(manager):
    scheduler = AutoBackupScheduler(manager, interval_seconds=0.01)

    with patch.object(scheduler, "tick", AsyncMock(return_value=None)) as mock_tick:
        scheduler.start()
        assert scheduler.running
        await asyncio.sleep(0.05)
        await scheduler.stop()

    assert not scheduler.running
    assert mock_tick.await_count >= 2


@pytest.mark.asyncio
async def test_loop_survives_unexpected_errors(manager):
    scheduler = AutoBackupScheduler(manager, interval_seconds=0.01)

    with patch.object(scheduler, "tick", AsyncMock(side_effect=RuntimeError("boom"))) as mock_tick:
        scheduler.start()
        await asyncio.sleep(0.05)
        assert scheduler.running
        await scheduler.stop()

    assert mock_tick.await_count >= 2
