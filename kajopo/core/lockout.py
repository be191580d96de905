"""Per-email failed login tracking with a time-boxed lock."""
import logging
from datetime import datetime, timedelta
from typing import Optional

from pydantic import ValidationError as PydanticValidationError

from ..schemas.common import BaseSchema
from ..storage.base import KeyValueStore
from .activity import ActivityLog
from .clock import Clock, system_clock
from .exceptions import StorageCorruptionError
from .logging import SecurityLogger

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class LockoutRecord(BaseSchema):
    email: str
    attempts: int = 0
    lock_until: Optional[datetime] = None


class LockoutGuard:
    """Counts failures per email and locks after ``max_attempts``.

    Records are keyed by the normalized email, whether or not an account with
    that email exists. While a lock is active, further failures are ignored.
    """

    def __init__(
        self,
        store: KeyValueStore,
        clock: Clock = system_clock,
        max_attempts: int = 5,
        duration: timedelta = timedelta(minutes=15),
        activity_log: Optional[ActivityLog] = None,
    ):
        self.store = store
        self.clock = clock
        self.max_attempts = max_attempts
        self.duration = duration
        self.activity_log = activity_log

    async def _load(self, email: str) -> Optional[LockoutRecord]:
        key = normalize_email(email)
        try:
            raw = await self.store.get_json(key)
            return LockoutRecord.model_validate(raw) if raw is not None else None
        except (StorageCorruptionError, PydanticValidationError):
            logger.warning("Discarding unreadable lockout record")
            await self.store.remove(key)
            return None

    async def _active_record(self, email: str) -> Optional[LockoutRecord]:
        """Load a record, deleting it if its lock has elapsed."""
        record = await self._load(email)
        if record is None or record.lock_until is None:
            return record
        if record.lock_until <= self.clock.now():
            await self.store.remove(normalize_email(email))
            return None
        return record

    async def is_account_locked(self, email: str) -> bool:
        record = await self._active_record(email)
        return record is not None and record.lock_until is not None

    async def lock_remaining(self, email: str) -> timedelta:
        record = await self._active_record(email)
        if record is None or record.lock_until is None:
            return timedelta(0)
        return record.lock_until - self.clock.now()

    async def get_failed_attempts(self, email: str) -> int:
        record = await self._active_record(email)
        return record.attempts if record else 0

    async def record_failed_attempt(self, email: str) -> LockoutRecord:
        key = normalize_email(email)
        record = await self._active_record(email) or LockoutRecord(email=key)
        if record.lock_until is not None:
            return record

        record.attempts += 1
        if record.attempts >= self.max_attempts:
            record.lock_until = self.clock.now() + self.duration
            SecurityLogger.log_account_locked(key, record.attempts, record.lock_until.isoformat())
            if self.activity_log is not None:
                await self.activity_log.log("account_locked", {
                    "email": key,
                    "attempts": record.attempts,
                    "lock_until": record.lock_until.isoformat(),
                })

        await self.store.set_json(key, record.model_dump(mode="json"))
        return record

    async def clear_failed_attempts(self, email: str) -> None:
        await self.store.remove(normalize_email(email))
