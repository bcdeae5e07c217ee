"""Persisted backup settings."""

import asyncio
from typing import Any, Dict, Optional

from pydantic import ValidationError

from ..base import BaseKVStorage
from .._utils import logger
from .models import BackupSettings

SETTINGS_KEY = "current"


class BackupSettingsStore:
    """Load and update the single BackupSettings document.

    Absent configuration reads as the defaults; updates are validated and
    written through before they are acknowledged.
    """

    def __init__(self, storage: BaseKVStorage, defaults: Optional[BackupSettings] = None):
        self.storage = storage
        self.defaults = defaults or BackupSettings()
        self._lock = asyncio.Lock()

    async def load(self) -> BackupSettings:
        data = await self.storage.get_by_id(SETTINGS_KEY)
        if data is None:
            return self.defaults
        try:
            return BackupSettings.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Stored backup settings are invalid, using defaults: {e}")
            return self.defaults

    async def update(self, changes: Dict[str, Any]) -> BackupSettings:
        """Merge changes into the current settings and persist them.

        Raises:
            ValueError: unknown setting names
            pydantic.ValidationError: invalid values
        """
        unknown = set(changes) - set(BackupSettings.model_fields)
        if unknown:
            raise ValueError(f"Unknown backup settings: {sorted(unknown)}")

        async with self._lock:
            current = await self.load()
            updated = BackupSettings.model_validate({**current.model_dump(), **changes})
            await self.storage.upsert({SETTINGS_KEY: updated.model_dump(mode="json")})

        logger.info(f"Backup settings updated: {updated.model_dump(mode='json')}")
        return updated
