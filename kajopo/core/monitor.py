"""Periodic session expiry checks."""
import asyncio
import logging
from datetime import timedelta
from enum import Enum
from typing import Callable, Dict, Iterable, Optional, Tuple

from ..storage.base import KeyValueStore, StorageEvent
from ..storage.keys import CLIENT_NAMESPACE
from .clock import Clock, system_clock
from .logging import SecurityLogger
from .notify import Navigator, Notifier
from .session import SessionManager, SessionScope

logger = logging.getLogger(__name__)

EXPIRY_WARNING_MESSAGE = "Your session will expire in 5 minutes. Extend it to stay signed in."
EXPIRED_MESSAGE = "Your session has expired. Please log in again."


class MonitorStatus(str, Enum):
    NO_SESSION = "no_session"
    ACTIVE = "active"
    WARNING = "warning"
    EXPIRED = "expired"


class SessionMonitor:
    """Warns once inside the warning band and clears the session at expiry.

    The warning is shown at most once per session id and expiry instant; a
    change to the watched session key resets it.
    """

    def __init__(
        self,
        sessions: SessionManager,
        notifier: Optional[Notifier] = None,
        navigator: Optional[Navigator] = None,
        clock: Clock = system_clock,
        warning_band: Tuple[timedelta, timedelta] = (timedelta(minutes=4), timedelta(minutes=5)),
        interval: timedelta = timedelta(seconds=60),
        event_source: Optional[KeyValueStore] = None,
        event_key: Optional[str] = None,
    ):
        self.sessions = sessions
        self.notifier = notifier
        self.navigator = navigator
        self.clock = clock
        self.warning_band = warning_band
        self.interval = interval
        self._event_key = event_key or sessions.scope.session_key
        self._warned: Optional[Tuple[str, str]] = None
        self._task: Optional[asyncio.Task] = None
        source = event_source or sessions.storage
        self._unsubscribe = source.subscribe(self._on_storage_event)

    def _on_storage_event(self, event: StorageEvent) -> None:
        if event.key == self._event_key:
            self._warned = None

    async def _notify(self, message: str, level: str) -> None:
        if self.notifier is not None:
            await self.notifier.notify(message, level)

    async def check(self) -> MonitorStatus:
        record = await self.sessions.peek_session()
        if record is None:
            self._warned = None
            return MonitorStatus.NO_SESSION

        remaining = record.remaining(self.clock.now())
        if remaining <= timedelta(0):
            await self.sessions.clear_session()
            SecurityLogger.log_session_event(
                "session_expired", self.sessions.scope.name, record.session_id, "monitor"
            )
            await self._notify(EXPIRED_MESSAGE, "warning")
            if self.navigator is not None:
                await self.navigator.navigate(self.sessions.scope.login_path)
            self._warned = None
            return MonitorStatus.EXPIRED

        lower, upper = self.warning_band
        marker = (record.session_id, record.expires_at.isoformat())
        if lower < remaining <= upper and self._warned != marker:
            self._warned = marker
            await self._notify(EXPIRY_WARNING_MESSAGE, "warning")
            return MonitorStatus.WARNING
        return MonitorStatus.ACTIVE

    async def _run(self) -> None:
        while True:
            try:
                await self.check()
            except Exception:
                logger.exception("Session check failed for %s scope", self.sessions.scope.name)
            await asyncio.sleep(self.interval.total_seconds())

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    def close(self) -> None:
        self._unsubscribe()


MonitorFactory = Callable[[str, SessionScope], SessionMonitor]


class SessionSweeper:
    """Runs a monitor for every client that holds a session."""

    def __init__(
        self,
        store: KeyValueStore,
        scopes: Iterable[SessionScope],
        monitor_factory: MonitorFactory,
        interval: timedelta = timedelta(seconds=60),
    ):
        self.store = store
        self.scopes = list(scopes)
        self.monitor_factory = monitor_factory
        self.interval = interval
        self.monitors: Dict[Tuple[str, str], SessionMonitor] = {}
        self._task: Optional[asyncio.Task] = None

    async def _live_sessions(self):
        prefix = f"{CLIENT_NAMESPACE}:"
        by_key = {scope.session_key: scope for scope in self.scopes}
        for key in await self.store.keys(prefix):
            client_id, _, local_key = key[len(prefix):].partition(":")
            scope = by_key.get(local_key)
            if client_id and scope is not None:
                yield client_id, scope

    async def sweep(self) -> Dict[Tuple[str, str], MonitorStatus]:
        results = {}
        seen = set()
        async for client_id, scope in self._live_sessions():
            ident = (client_id, scope.name)
            seen.add(ident)
            monitor = self.monitors.get(ident)
            if monitor is None:
                monitor = self.monitors[ident] = self.monitor_factory(client_id, scope)
            results[ident] = await monitor.check()

        for ident in set(self.monitors) - seen:
            self.monitors.pop(ident).close()
        return results

    async def _run(self) -> None:
        while True:
            try:
                await self.sweep()
            except Exception:
                logger.exception("Session sweep failed")
            await asyncio.sleep(self.interval.total_seconds())

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        for monitor in self.monitors.values():
            monitor.close()
        self.monitors.clear()
