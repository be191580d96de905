"""User-facing notices and navigation hooks."""
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Protocol

from pydantic import ValidationError as PydanticValidationError

from ..schemas.common import BaseSchema
from ..storage.base import KeyValueStore
from ..storage.keys import NOTICES_KEY
from .clock import Clock, system_clock
from .exceptions import StorageCorruptionError

logger = logging.getLogger(__name__)


class Notice(BaseSchema):
    """A message to show the client."""

    message: str
    level: str = "info"
    created_at: datetime


class Notifier(Protocol):
    async def notify(self, message: str, level: str = "info") -> None:
        ...


class Navigator(Protocol):
    async def navigate(self, target: str, delay: Optional[timedelta] = None) -> None:
        ...


class StoredNotifier:
    """Queues notices in a client's storage until they are drained."""

    def __init__(
        self,
        store: KeyValueStore,
        clock: Clock = system_clock,
        key: str = NOTICES_KEY,
        max_notices: int = 20,
    ):
        self._store = store
        self._clock = clock
        self._key = key
        self._max_notices = max_notices

    async def _load(self) -> List[Dict[str, Any]]:
        try:
            raw = await self._store.get_json(self._key, [])
        except StorageCorruptionError:
            logger.warning("Notice queue was corrupted, discarding it")
            await self._store.remove(self._key)
            return []
        return raw if isinstance(raw, list) else []

    async def notify(self, message: str, level: str = "info") -> None:
        notice = Notice(message=message, level=level, created_at=self._clock.now())
        queued = await self._load()
        queued.append(notice.model_dump(mode="json"))
        await self._store.set_json(self._key, queued[-self._max_notices:])

    async def pending(self) -> List[Notice]:
        notices = []
        for raw in await self._load():
            try:
                notices.append(Notice.model_validate(raw))
            except PydanticValidationError:
                continue
        return notices

    async def drain(self) -> List[Notice]:
        """Return the queued notices and empty the queue."""
        notices = await self.pending()
        await self._store.remove(self._key)
        return notices


class RecordingNavigator:
    """Remembers the last navigation request so the HTTP layer can act on it."""

    def __init__(self):
        self.target: Optional[str] = None
        self.delay: Optional[timedelta] = None

    async def navigate(self, target: str, delay: Optional[timedelta] = None) -> None:
        self.target = target
        self.delay = delay

    @property
    def requested(self) -> bool:
        return self.target is not None
