"""Append-only activity log with a bounded size."""
import logging
from datetime import datetime
from typing import Any, Dict, List

from pydantic import ValidationError as PydanticValidationError

from ..schemas.common import BaseSchema
from ..storage.base import KeyValueStore
from ..storage.keys import ACTIVITY_LOG_KEY
from .clock import Clock, system_clock
from .exceptions import StorageCorruptionError
from .logging import BusinessLogger

logger = logging.getLogger(__name__)


class ActivityLogEntry(BaseSchema):
    """A single audit record."""

    timestamp: datetime
    action: str
    data: Dict[str, Any] = {}


class ActivityLog:
    """Keeps the most recent ``capacity`` entries, evicting the oldest."""

    def __init__(
        self,
        store: KeyValueStore,
        clock: Clock = system_clock,
        capacity: int = 100,
        key: str = ACTIVITY_LOG_KEY,
    ):
        self._store = store
        self._clock = clock
        self._capacity = capacity
        self._key = key

    @property
    def capacity(self) -> int:
        return self._capacity

    async def _load(self) -> List[Dict[str, Any]]:
        try:
            raw_entries = await self._store.get_json(self._key, [])
        except StorageCorruptionError:
            logger.warning("Activity log was corrupted, starting a new one")
            await self._store.remove(self._key)
            return []
        return raw_entries if isinstance(raw_entries, list) else []

    async def log(self, action: str, data: Dict[str, Any] = None) -> ActivityLogEntry:
        entry = ActivityLogEntry(timestamp=self._clock.now(), action=action, data=data or {})
        BusinessLogger.log_activity(action, entry.data)

        entries = await self._load()
        entries.append(entry.model_dump(mode="json"))
        if len(entries) > self._capacity:
            del entries[: len(entries) - self._capacity]

        await self._store.set_json(self._key, entries)
        return entry

    async def entries(self, limit: int = 50) -> List[ActivityLogEntry]:
        """Return up to ``limit`` entries, most recent first."""
        if limit <= 0:
            return []

        result = []
        for raw in reversed((await self._load())[-limit:]):
            try:
                result.append(ActivityLogEntry.model_validate(raw))
            except PydanticValidationError:
                logger.warning("Skipping malformed activity entry")
        return result

    async def clear(self) -> None:
        await self._store.remove(self._key)
