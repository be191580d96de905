"""Application dependency container."""
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional

import httpx

from ..backend.base import Backend
from ..backend.gateway import BackendGateway
from ..backend.hosted import HostedBackend
from ..backend.local import LocalBackend
from ..config import Settings
from ..database import close_db, get_engine, get_session_factory, init_db
from ..services.accounts import AccountService
from ..storage.base import KeyValueStore
from ..storage.keys import CLIENT_NAMESPACE, LOCKOUT_NAMESPACE
from ..storage.sql import SQLKeyValueStore
from .activity import ActivityLog
from .auth import AuthFacade
from .clock import Clock, system_clock
from .exceptions import ConfigurationError
from .lockout import LockoutGuard
from .monitor import SessionMonitor, SessionSweeper
from .notify import Navigator, StoredNotifier
from .passwords import PasswordHasher
from .permissions import ADMIN_ROLES, PermissionResolver
from .session import SessionManager, SessionScope, SessionSigner, admin_scope, user_scope

logger = logging.getLogger(__name__)


@dataclass
class ApplicationContainer:
    """Dependency registry shared across the FastAPI application lifecycle.

    Per-client collaborators (session managers, façades, notifiers) are
    built on demand from the shared pieces held here.
    """

    settings: Settings
    store: KeyValueStore
    clock: Clock
    hasher: PasswordHasher
    signer: SessionSigner
    permissions: PermissionResolver
    activity_log: ActivityLog
    lockout: LockoutGuard
    gateway: BackendGateway
    user_scope: SessionScope
    admin_scope: SessionScope
    uses_database: bool = False
    sweeper: Optional[SessionSweeper] = field(default=None)

    def client_store(self, client_id: str) -> KeyValueStore:
        return self.store.namespace(f"{CLIENT_NAMESPACE}:{client_id}")

    def session_manager(self, client_id: str, scope: SessionScope) -> SessionManager:
        return SessionManager(
            self.client_store(client_id),
            scope,
            self.signer,
            clock=self.clock,
            activity_log=self.activity_log,
            default_extension=self.settings.session.default_extension,
        )

    def notifier(self, client_id: str) -> StoredNotifier:
        return StoredNotifier(self.client_store(client_id), clock=self.clock)

    def _facade(
        self,
        client_id: str,
        scope: SessionScope,
        navigator: Optional[Navigator],
        **options,
    ) -> AuthFacade:
        return AuthFacade(
            self.gateway,
            self.session_manager(client_id, scope),
            self.lockout,
            self.permissions,
            self.hasher,
            activity_log=self.activity_log,
            notifier=self.notifier(client_id),
            navigator=navigator,
            unauthorized_delay=self.settings.session.unauthorized_redirect_delay,
            **options,
        )

    def user_auth(self, client_id: str, navigator: Optional[Navigator] = None) -> AuthFacade:
        return self._facade(client_id, self.user_scope, navigator, allow_fallback=True)

    def admin_auth(self, client_id: str, navigator: Optional[Navigator] = None) -> AuthFacade:
        return self._facade(
            client_id,
            self.admin_scope,
            navigator,
            allowed_roles=ADMIN_ROLES,
            allow_fallback=False,
        )

    def monitor(self, client_id: str, scope: SessionScope, navigator: Optional[Navigator] = None) -> SessionMonitor:
        session_settings = self.settings.session
        sessions = self.session_manager(client_id, scope)
        return SessionMonitor(
            sessions,
            notifier=self.notifier(client_id),
            navigator=navigator,
            clock=self.clock,
            warning_band=session_settings.warning_band,
            interval=session_settings.monitor_interval,
            event_source=self.store,
            event_key=f"{CLIENT_NAMESPACE}:{client_id}:{scope.session_key}",
        )

    async def backend(self, allow_fallback: bool = True) -> Backend:
        return await self.gateway.resolve(allow_fallback=allow_fallback)

    async def startup(self) -> None:
        """Create tables, probe the backend, seed data and start the sweeper."""
        if self.uses_database:
            await init_db(get_engine(self.settings.database))

        state = await self.gateway.initialize()
        logger.info("Backend gateway initialized in %s mode", state.value)

        if self.settings.backend.seed_demo_data:
            await self.gateway.local.seed_demo_data()

        admin = self.settings.admin
        if admin.email and admin.password:
            backend = await self.backend(allow_fallback=True)
            await AccountService(backend, clock=self.clock).ensure_default_admin(
                admin.email,
                admin.password,
                self.hasher,
                first_name=admin.first_name,
                last_name=admin.last_name,
            )

        if self.settings.session.monitor_enabled:
            self.sweeper = SessionSweeper(
                self.store,
                [self.user_scope, self.admin_scope],
                lambda client_id, scope: self.monitor(client_id, scope),
                interval=self.settings.session.monitor_interval,
            )
            self.sweeper.start()

    async def shutdown(self) -> None:
        if self.sweeper is not None:
            await self.sweeper.stop()
            self.sweeper = None
        await self.gateway.close()
        if self.uses_database:
            await close_db()


def build_container(
    settings: Settings,
    store: Optional[KeyValueStore] = None,
    clock: Clock = system_clock,
    hasher: Optional[PasswordHasher] = None,
    hosted_transport: Optional[httpx.AsyncBaseTransport] = None,
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
) -> ApplicationContainer:
    """Wire the shared collaborators from settings.

    Without an explicit ``store`` the SQL key-value store is used.
    """
    uses_database = store is None
    if store is None:
        store = SQLKeyValueStore(get_session_factory(settings.database))
    hasher = hasher or PasswordHasher()

    activity_log = ActivityLog(store, clock=clock, capacity=settings.activity.capacity)
    lockout = LockoutGuard(
        store.namespace(LOCKOUT_NAMESPACE),
        clock=clock,
        max_attempts=settings.lockout.max_attempts,
        duration=settings.lockout.duration,
        activity_log=activity_log,
    )

    if settings.backend.url and not settings.backend.anon_key:
        raise ConfigurationError(
            "BACKEND_URL is set but BACKEND_ANON_KEY is missing",
            details={"url": settings.backend.url},
        )

    hosted = None
    if settings.backend.hosted_configured:
        hosted = HostedBackend(
            settings.backend.url,
            settings.backend.anon_key,
            service_key=settings.backend.service_key,
            timeout=settings.backend.timeout_seconds,
            transport=hosted_transport,
        )
    gateway_options = {"sleep": sleep} if sleep is not None else {}
    gateway = BackendGateway(
        LocalBackend(store, hasher, clock=clock),
        hosted=hosted,
        attempts=settings.backend.init_attempts,
        delay=settings.backend.init_delay_seconds,
        **gateway_options,
    )

    return ApplicationContainer(
        settings=settings,
        store=store,
        clock=clock,
        hasher=hasher,
        signer=SessionSigner(settings.session.secret_key, settings.session.algorithm),
        permissions=PermissionResolver(),
        activity_log=activity_log,
        lockout=lockout,
        gateway=gateway,
        user_scope=user_scope(settings),
        admin_scope=admin_scope(settings),
        uses_database=uses_database,
    )
