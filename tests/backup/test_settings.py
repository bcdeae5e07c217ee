"""Tests for persisted backup settings."""

import pytest
from pydantic import ValidationError

from classora_backup._storage.kv_json import JsonKVStorage
from classora_backup.backup.models import BackupFrequency, BackupSettings
from classora_backup.backup.settings import SETTINGS_KEY, BackupSettingsStore


@pytest.fixture
def kv(temp_storage_dir):
    return JsonKVStorage(namespace="backup_settings", global_config={"working_dir": str(temp_storage_dir)})


@pytest.mark.asyncio
async def test_defaults_when_absent(kv):
    settings = await BackupSettingsStore(kv).load()

    assert settings.auto_backup_enabled is True
    assert settings.frequency is BackupFrequency.DAILY
    assert settings.retention_days == 30
    assert settings.storage_location == "./backups"


@pytest.mark.asyncio
async def test_custom_defaults(kv):
    store = BackupSettingsStore(kv, defaults=BackupSettings(retention_days=7, storage_location="/backups"))

    assert (await store.load()).storage_location == "/backups"


@pytest.mark.asyncio
async def test_update_is_partial_and_persisted(kv, temp_storage_dir):
    store = BackupSettingsStore(kv)

    updated = await store.update({"retention_days": 14})

    assert updated.retention_days == 14
    assert updated.frequency is BackupFrequency.DAILY

    reopened = BackupSettingsStore(
        JsonKVStorage(namespace="backup_settings", global_config={"working_dir": str(temp_storage_dir)})
    )
    assert (await reopened.load()).retention_days == 14


@pytest.mark.asyncio
async def test_update_rejects_unknown_keys(kv):
    with pytest.raises(ValueError, match="Unknown backup settings"):
        await BackupSettingsStore(kv).update({"retentionDays": 3})


@pytest.mark.asyncio
@pytest.mark.parametrize("changes", [
    {"retention_days": 0},
    {"frequency": "fortnightly"},
    {"storage_location": "   "},
])
async def test_update_rejects_invalid_values(kv, changes):
    store = BackupSettingsStore(kv)

    with pytest.raises(ValidationError):
        await store.update(changes)

    assert await kv.get_by_id(SETTINGS_KEY) is None


@pytest.mark.asyncio
async def test_corrupt_settings_fall_back_to_defaults(kv):
    await kv.upsert({SETTINGS_KEY: {"retention_days": "forever"}})

    assert (await BackupSettingsStore(kv).load()).retention_days == 30


def test_frequency_periods():
    assert BackupFrequency.HOURLY.period.total_seconds() == 3600
    assert BackupFrequency.DAILY.period.days == 1
    assert BackupFrequency.WEEKLY.period.days == 7
    assert BackupFrequency.MONTHLY.period.days == 30
