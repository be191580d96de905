"""Authentication façade: login, registration, logout and access guards."""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Union
from urllib.parse import quote

from ..backend.base import Backend
from ..backend.gateway import BackendGateway
from .activity import ActivityLog
from .exceptions import BackendUnavailableError
from .lockout import LockoutGuard, normalize_email
from .logging import BusinessLogger, SecurityLogger
from .notify import Navigator, Notifier
from .passwords import PasswordHasher
from .permissions import SELF_SERVICE_ROLES, PermissionResolver, Role
from .session import SessionManager, SessionRecord, sanitize_account
from .validation import LOGIN_RULES, REGISTRATION_RULES, validate_fields

logger = logging.getLogger(__name__)

UNAUTHORIZED_MESSAGE = "Unauthorized: You do not have permission to access this resource."
GENERIC_ERROR_MESSAGE = "Something went wrong. Please try again."


class AuthOutcome(str, Enum):
    SUCCESS = "SUCCESS"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    ACCOUNT_LOCKED = "ACCOUNT_LOCKED"
    BACKEND_UNAVAILABLE = "BACKEND_UNAVAILABLE"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    ACCOUNT_EXISTS = "ACCOUNT_EXISTS"
    REGISTRATION_FAILED = "REGISTRATION_FAILED"
    ERROR = "ERROR"


@dataclass
class AuthResult:
    """Uniform result of every façade operation."""

    success: bool
    outcome: AuthOutcome
    message: str
    account: Optional[Dict[str, Any]] = None
    session: Optional[SessionRecord] = None
    errors: Dict[str, List[str]] = field(default_factory=dict)

    @classmethod
    def failure(cls, outcome: AuthOutcome, message: str, **kwargs) -> "AuthResult":
        return cls(success=False, outcome=outcome, message=message, **kwargs)


def _lock_message(remaining: timedelta) -> str:
    minutes = max(1, int(-(-remaining.total_seconds() // 60)))
    unit = "minute" if minutes == 1 else "minutes"
    return f"Account is temporarily locked. Try again in {minutes} {unit}."


class AuthFacade:
    """Orchestrates credentials, lockout, sessions and permissions for one scope.

    Every public coroutine returns a result or a boolean; errors are logged
    and converted, never raised to the caller.
    """

    def __init__(
        self,
        gateway: BackendGateway,
        sessions: SessionManager,
        lockout: LockoutGuard,
        permissions: PermissionResolver,
        hasher: PasswordHasher,
        activity_log: Optional[ActivityLog] = None,
        allowed_roles: Optional[Iterable[str]] = None,
        allow_fallback: bool = True,
        notifier: Optional[Notifier] = None,
        navigator: Optional[Navigator] = None,
        unauthorized_delay: timedelta = timedelta(seconds=3),
        registration_roles: FrozenSet[str] = SELF_SERVICE_ROLES,
    ):
        self.gateway = gateway
        self.sessions = sessions
        self.lockout = lockout
        self.permissions = permissions
        self.hasher = hasher
        self.activity_log = activity_log
        self.allowed_roles = frozenset(allowed_roles) if allowed_roles is not None else None
        self.allow_fallback = allow_fallback
        self.notifier = notifier
        self.navigator = navigator
        self.unauthorized_delay = unauthorized_delay
        self.registration_roles = registration_roles

    @property
    def scope(self) -> str:
        return self.sessions.scope.name

    def _role_allowed(self, account: Dict[str, Any]) -> bool:
        return self.allowed_roles is None or account.get("role") in self.allowed_roles

    async def _log(self, action: str, data: Dict[str, Any]) -> None:
        if self.activity_log is not None:
            await self.activity_log.log(action, data)

    async def _backend(self) -> Backend:
        return await self.gateway.resolve(allow_fallback=self.allow_fallback)

    async def login(self, email: str, password: str, remember_me: bool = False) -> AuthResult:
        try:
            return await self._login(email, password, remember_me)
        except Exception:
            logger.exception("Unexpected error during %s login", self.scope)
            return AuthResult.failure(AuthOutcome.ERROR, GENERIC_ERROR_MESSAGE)

    async def _login(self, email: str, password: str, remember_me: bool) -> AuthResult:
        errors = validate_fields({"email": email, "password": password}, LOGIN_RULES)
        if errors:
            return AuthResult.failure(
                AuthOutcome.VALIDATION_FAILED,
                "Please enter both email and password.",
                errors=errors,
            )

        email = normalize_email(email)
        if await self.lockout.is_account_locked(email):
            SecurityLogger.log_login_attempt(email, False, self.scope, "account_locked")
            remaining = await self.lockout.lock_remaining(email)
            return AuthResult.failure(AuthOutcome.ACCOUNT_LOCKED, _lock_message(remaining))

        try:
            backend = await self._backend()
        except BackendUnavailableError as exc:
            SecurityLogger.log_login_attempt(email, False, self.scope, "backend_unavailable")
            return AuthResult.failure(AuthOutcome.BACKEND_UNAVAILABLE, exc.message)

        result = await backend.table("users").select().eq("email", email).limit(1).execute()
        if not result.ok:
            logger.error("Account lookup failed on %s backend: %s", backend.name, result.error.message)
            return AuthResult.failure(
                AuthOutcome.BACKEND_UNAVAILABLE,
                "Service is temporarily unavailable. Please try again.",
            )

        account = result.first()
        if account is None:
            self.hasher.dummy_verify(password)
            verified = False
        else:
            verified = self.hasher.verify_password(password, account.get("password_hash"))

        if not verified or not self._role_allowed(account):
            record = await self.lockout.record_failed_attempt(email)
            reason = "unknown_account" if account is None else (
                "bad_password" if not verified else "role_not_allowed"
            )
            SecurityLogger.log_login_attempt(email, False, self.scope, reason)
            await self._log("login_failed", {"scope": self.scope, "email": email, "attempts": record.attempts})
            return AuthResult.failure(AuthOutcome.INVALID_CREDENTIALS, "Invalid email or password.")

        await self.lockout.clear_failed_attempts(email)

        now = self.sessions.clock.now().isoformat()
        update = await backend.table("users").update({"last_login": now}).eq("id", account["id"]).execute()
        if not update.ok:
            logger.warning("Could not record last login for %s: %s", account["id"], update.error.message)
        account = dict(account, last_login=now)

        session = await self.sessions.create_session(account, remember_me=remember_me)
        SecurityLogger.log_login_attempt(email, True, self.scope)
        await self._log(f"{self.scope}_login", {
            "account_id": account["id"],
            "email": email,
            "role": account.get("role"),
            "backend": backend.name,
        })
        return AuthResult(
            success=True,
            outcome=AuthOutcome.SUCCESS,
            message="Login successful.",
            account=session.account,
            session=session,
        )

    async def register(self, data: Dict[str, Any], remember_me: bool = False) -> AuthResult:
        try:
            return await self._register(data, remember_me)
        except Exception:
            logger.exception("Unexpected error during registration")
            return AuthResult.failure(AuthOutcome.ERROR, GENERIC_ERROR_MESSAGE)

    async def _register(self, data: Dict[str, Any], remember_me: bool) -> AuthResult:
        errors = validate_fields(data, REGISTRATION_RULES)
        role = data.get("role") or Role.SEEKER.value
        if role not in self.registration_roles:
            errors.setdefault("role", []).append("Please choose a valid account type")
        if errors:
            return AuthResult.failure(
                AuthOutcome.VALIDATION_FAILED,
                "Please correct the highlighted fields.",
                errors=errors,
            )

        email = normalize_email(data["email"])
        try:
            backend = await self._backend()
        except BackendUnavailableError as exc:
            return AuthResult.failure(AuthOutcome.BACKEND_UNAVAILABLE, exc.message)

        existing = await backend.table("users").select("id").eq("email", email).limit(1).execute()
        if not existing.ok:
            logger.error("Uniqueness check failed on %s backend: %s", backend.name, existing.error.message)
            return AuthResult.failure(
                AuthOutcome.BACKEND_UNAVAILABLE,
                "Service is temporarily unavailable. Please try again.",
            )
        if existing.rows():
            return AuthResult.failure(AuthOutcome.ACCOUNT_EXISTS, "User with this email already exists")

        first_name = data["first_name"].strip()
        last_name = data["last_name"].strip()
        signup = await backend.auth.sign_up(
            email,
            data["password"],
            {"first_name": first_name, "last_name": last_name, "role": role},
        )
        if not signup.ok:
            if signup.error.code == "user_already_exists":
                return AuthResult.failure(AuthOutcome.ACCOUNT_EXISTS, "User with this email already exists")
            logger.error("Identity sign up failed on %s backend: %s", backend.name, signup.error.message)
            return AuthResult.failure(
                AuthOutcome.REGISTRATION_FAILED,
                "Registration failed. Please try again.",
            )

        identity = (signup.data or {}).get("user") or {}
        account = {
            "id": identity.get("id") or str(uuid.uuid4()),
            "email": email,
            "password_hash": self.hasher.hash_password(data["password"]),
            "first_name": first_name,
            "last_name": last_name,
            "name": f"{first_name} {last_name}",
            "role": role,
            "is_verified": False,
            "profile_complete": False,
            "phone": data.get("phone"),
            "location": data.get("location"),
            "organization": data.get("organization"),
            "created_at": self.sessions.clock.now().isoformat(),
        }
        inserted = await backend.table("users").insert(account).execute()
        if not inserted.ok:
            logger.error("Account insert failed on %s backend: %s", backend.name, inserted.error.message)
            await self._discard_identity(backend, identity.get("id"))
            return AuthResult.failure(
                AuthOutcome.REGISTRATION_FAILED,
                "Registration failed. Please try again.",
            )
        account = inserted.first() or account

        BusinessLogger.log_account_registered(account["id"], email, role, backend.name)
        await self._log("user_registered", {"account_id": account["id"], "email": email, "role": role})

        session = await self.sessions.create_session(account, remember_me=remember_me)
        return AuthResult(
            success=True,
            outcome=AuthOutcome.SUCCESS,
            message="Registration successful.",
            account=session.account,
            session=session,
        )

    async def _discard_identity(self, backend: Backend, identity_id: Optional[str]) -> None:
        """Remove a signed-up identity whose account row was never written."""
        if not identity_id:
            return
        try:
            removal = await backend.admin.delete_user(identity_id)
        except Exception:
            logger.exception("Discarding identity %s failed", identity_id)
            return
        if not removal.ok:
            logger.warning("Could not discard identity %s: %s", identity_id, removal.error.message)
        else:
            logger.info("Discarded identity %s after a failed account insert", identity_id)

    async def logout(self) -> AuthResult:
        session = None
        try:
            session = await self.sessions.get_current_session()
            backend = await self._backend()
            result = await backend.auth.sign_out()
            if not result.ok:
                logger.warning("Remote sign out failed: %s", result.error.message)
        except Exception:
            logger.exception("Remote sign out failed for %s scope", self.scope)

        try:
            await self.sessions.clear_session()
            if session is not None:
                await self._log(f"{self.scope}_logout", {
                    "account_id": session.account.get("id"),
                    "email": session.account.get("email"),
                })
        except Exception:
            logger.exception("Clearing the %s session failed", self.scope)
            return AuthResult.failure(AuthOutcome.ERROR, GENERIC_ERROR_MESSAGE)

        return AuthResult(success=True, outcome=AuthOutcome.SUCCESS, message="Logged out successfully.")

    async def current_session(self) -> Optional[SessionRecord]:
        try:
            session = await self.sessions.get_current_session()
        except Exception:
            logger.exception("Reading the %s session failed", self.scope)
            return None
        if session is not None and not self._role_allowed(session.account):
            await self.sessions.clear_session()
            return None
        return session

    async def current_account(self) -> Optional[Dict[str, Any]]:
        session = await self.current_session()
        return sanitize_account(session.account) if session else None

    def login_url(self, return_url: str = None) -> str:
        login_path = self.sessions.scope.login_path
        if return_url:
            return f"{login_path}?return={quote(return_url, safe='')}"
        return login_path

    async def _navigate(self, target: str, delay: Optional[timedelta] = None) -> None:
        if self.navigator is None:
            return
        try:
            await self.navigator.navigate(target, delay)
        except Exception:
            logger.exception("Navigation to %s failed", target)

    async def require_auth(self, return_url: str = None) -> bool:
        """True when a live session exists; otherwise redirects to the login page."""
        if await self.current_session() is not None:
            return True
        SecurityLogger.log_unauthorized_access(return_url or "", self.scope, reason="no_session")
        await self._navigate(self.login_url(return_url))
        return False

    async def require_permission(
        self,
        permissions: Union[str, Iterable[str]],
        redirect_url: str = None,
    ) -> bool:
        """True when the session holds the permission (any of, for a list).

        Otherwise posts an unauthorized notice and redirects after a delay.
        """
        if not await self.require_auth():
            return False

        session = await self.current_session()
        if isinstance(permissions, str):
            tokens = [permissions]
            allowed = self.permissions.has_permission(session, permissions)
        else:
            tokens = list(permissions)
            allowed = self.permissions.has_any(session, tokens)
        if allowed:
            return True

        SecurityLogger.log_unauthorized_access(
            redirect_url or "", self.scope, permissions=tokens, reason="missing_permission"
        )
        if self.notifier is not None:
            try:
                await self.notifier.notify(UNAUTHORIZED_MESSAGE, "error")
            except Exception:
                logger.exception("Posting the unauthorized notice failed")
        await self._navigate(redirect_url or self.sessions.scope.login_path, self.unauthorized_delay)
        return False

    async def extend_session(self, extra_time: Optional[timedelta] = None) -> Optional[SessionRecord]:
        try:
            return await self.sessions.extend_session(extra_time)
        except Exception:
            logger.exception("Extending the %s session failed", self.scope)
            return None
