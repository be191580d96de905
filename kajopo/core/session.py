"""Signed session records held in client-scoped storage."""
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from pydantic import ValidationError as PydanticValidationError

from ..config import Settings
from ..schemas.common import BaseSchema
from ..storage.base import KeyValueStore
from ..storage.keys import (
    ADMIN_CURRENT_KEY,
    ADMIN_SESSION_KEY,
    USER_CURRENT_KEY,
    USER_SESSION_KEY,
)
from .activity import ActivityLog
from .clock import Clock, system_clock
from .exceptions import StorageCorruptionError
from .logging import SecurityLogger

logger = logging.getLogger(__name__)

SENSITIVE_ACCOUNT_FIELDS = ("password_hash", "password")


def sanitize_account(account: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of ``account`` without credential material."""
    return {k: v for k, v in account.items() if k not in SENSITIVE_ACCOUNT_FIELDS}


@dataclass(frozen=True)
class SessionScope:
    """Storage keys, lifetimes and login entry point of one session kind."""

    name: str
    session_key: str
    current_user_key: str
    short_ttl: timedelta
    long_ttl: timedelta
    login_path: str
    id_prefix: str


def admin_scope(settings: Settings) -> SessionScope:
    return SessionScope(
        name="admin",
        session_key=ADMIN_SESSION_KEY,
        current_user_key=ADMIN_CURRENT_KEY,
        short_ttl=timedelta(hours=settings.session.admin_short_ttl_hours),
        long_ttl=timedelta(days=settings.session.admin_long_ttl_days),
        login_path=settings.session.admin_login_path,
        id_prefix="admin_",
    )


def user_scope(settings: Settings) -> SessionScope:
    return SessionScope(
        name="user",
        session_key=USER_SESSION_KEY,
        current_user_key=USER_CURRENT_KEY,
        short_ttl=timedelta(hours=settings.session.user_short_ttl_hours),
        long_ttl=timedelta(days=settings.session.user_long_ttl_days),
        login_path=settings.session.user_login_path,
        id_prefix="user_",
    )


class SessionRecord(BaseSchema):
    """Evidence that an account authenticated in this client."""

    account: Dict[str, Any]
    scope: str
    created_at: datetime
    issued_at: datetime
    expires_at: datetime
    session_id: str
    remember_me: bool = False

    def remaining(self, now: datetime) -> timedelta:
        return self.expires_at - now

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now


class SessionSigner:
    """Serializes session records as HS256-signed tokens.

    Expiry is checked against the injected clock, not a token ``exp`` claim.
    """

    def __init__(self, secret_key: str, algorithm: str = "HS256"):
        self.secret_key = secret_key
        self.algorithm = algorithm

    def encode(self, record: SessionRecord) -> str:
        return jwt.encode(record.model_dump(mode="json"), self.secret_key, algorithm=self.algorithm)

    def decode(self, token: str) -> SessionRecord:
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
            return SessionRecord.model_validate(payload)
        except (JWTError, PydanticValidationError) as exc:
            raise StorageCorruptionError("Session record failed verification") from exc


class SessionManager:
    """Creates, reads, extends and clears one scope's session for one client."""

    def __init__(
        self,
        storage: KeyValueStore,
        scope: SessionScope,
        signer: SessionSigner,
        clock: Clock = system_clock,
        activity_log: Optional[ActivityLog] = None,
        default_extension: timedelta = timedelta(hours=2),
    ):
        self.storage = storage
        self.scope = scope
        self.signer = signer
        self.clock = clock
        self.activity_log = activity_log
        self.default_extension = default_extension

    def full_ttl(self, remember_me: bool) -> timedelta:
        return self.scope.long_ttl if remember_me else self.scope.short_ttl

    async def _log(self, action: str, data: Dict[str, Any]) -> None:
        if self.activity_log is not None:
            await self.activity_log.log(action, data)

    async def _store(self, record: SessionRecord) -> None:
        await self.storage.set(self.scope.session_key, self.signer.encode(record))
        await self.storage.set_json(self.scope.current_user_key, record.account)

    async def create_session(self, account: Dict[str, Any], remember_me: bool = False) -> SessionRecord:
        now = self.clock.now()
        record = SessionRecord(
            account=sanitize_account(account),
            scope=self.scope.name,
            created_at=now,
            issued_at=now,
            expires_at=now + self.full_ttl(remember_me),
            session_id=f"{self.scope.id_prefix}{secrets.token_hex(12)}",
            remember_me=remember_me,
        )
        await self._store(record)

        SecurityLogger.log_session_event("session_created", self.scope.name, record.session_id)
        await self._log("session_created", {
            "scope": self.scope.name,
            "account_id": record.account.get("id"),
            "email": record.account.get("email"),
            "remember_me": remember_me,
            "expires_at": record.expires_at.isoformat(),
        })
        return record

    async def peek_session(self) -> Optional[SessionRecord]:
        """Decode the stored record without enforcing expiry.

        A record that cannot be verified is purged.
        """
        token = await self.storage.get(self.scope.session_key)
        if token is None:
            return None
        try:
            return self.signer.decode(token)
        except StorageCorruptionError:
            logger.warning("Discarding unreadable %s session", self.scope.name)
            await self._purge("corrupted")
            return None

    async def get_current_session(self) -> Optional[SessionRecord]:
        record = await self.peek_session()
        if record is None:
            return None
        if record.scope != self.scope.name:
            await self._purge("scope_mismatch")
            return None
        if record.is_expired(self.clock.now()):
            await self._purge("expired", record.session_id)
            return None
        return record

    async def get_current_account(self) -> Optional[Dict[str, Any]]:
        record = await self.get_current_session()
        return record.account if record else None

    async def _purge(self, reason: str, session_id: str = None) -> None:
        await self.storage.remove(self.scope.session_key)
        await self.storage.remove(self.scope.current_user_key)
        SecurityLogger.log_session_event("session_purged", self.scope.name, session_id, reason)

    async def clear_session(self) -> None:
        """Remove the session; safe to call when none exists."""
        token = await self.storage.get(self.scope.session_key)
        await self.storage.remove(self.scope.current_user_key)
        if token is None:
            return

        await self.storage.remove(self.scope.session_key)
        try:
            session_id = self.signer.decode(token).session_id
        except StorageCorruptionError:
            session_id = None

        SecurityLogger.log_session_event("session_cleared", self.scope.name, session_id)
        await self._log("session_cleared", {"scope": self.scope.name, "session_id": session_id})

    async def extend_session(self, extra_time: Optional[timedelta] = None) -> Optional[SessionRecord]:
        """Push expiry forward, never past ``now + full_ttl``.

        Returns ``None`` when there is no live session.
        """
        record = await self.get_current_session()
        if record is None:
            return None

        extra = extra_time if extra_time is not None else self.default_extension
        now = self.clock.now()
        ceiling = now + self.full_ttl(record.remember_me)
        extended = record.model_copy(update={
            "issued_at": now,
            "expires_at": min(record.expires_at + extra, ceiling),
        })
        await self._store(extended)

        SecurityLogger.log_session_event("session_extended", self.scope.name, extended.session_id)
        await self._log("session_extended", {
            "scope": self.scope.name,
            "session_id": extended.session_id,
            "expires_at": extended.expires_at.isoformat(),
        })
        return extended
