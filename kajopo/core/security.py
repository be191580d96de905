"""Request-scoped dependencies for sessions and permissions."""
import uuid
from typing import Iterable

from fastapi import Depends, Request

from ..backend.base import Backend
from .auth import AuthFacade
from .container import ApplicationContainer
from .exceptions import AuthenticationError, AuthorizationError
from .logging import SecurityLogger
from .notify import RecordingNavigator, StoredNotifier
from .session import SessionRecord


def get_container(request: Request) -> ApplicationContainer:
    return request.app.state.container


def get_client_id(request: Request) -> str:
    client_id = getattr(request.state, "client_id", None)
    if client_id is None:
        client_id = request.state.client_id = uuid.uuid4().hex
    return client_id


def get_navigator() -> RecordingNavigator:
    """One navigator per request; routes inspect it after the guards ran."""
    return RecordingNavigator()


def get_notifier(
    container: ApplicationContainer = Depends(get_container),
    client_id: str = Depends(get_client_id),
) -> StoredNotifier:
    return container.notifier(client_id)


def get_user_auth(
    container: ApplicationContainer = Depends(get_container),
    client_id: str = Depends(get_client_id),
    navigator: RecordingNavigator = Depends(get_navigator),
) -> AuthFacade:
    return container.user_auth(client_id, navigator)


def get_admin_auth(
    container: ApplicationContainer = Depends(get_container),
    client_id: str = Depends(get_client_id),
    navigator: RecordingNavigator = Depends(get_navigator),
) -> AuthFacade:
    return container.admin_auth(client_id, navigator)


async def get_user_backend(container: ApplicationContainer = Depends(get_container)) -> Backend:
    return await container.backend(allow_fallback=True)


async def get_admin_backend(container: ApplicationContainer = Depends(get_container)) -> Backend:
    return await container.backend(allow_fallback=False)


async def get_user_session(auth: AuthFacade = Depends(get_user_auth)) -> SessionRecord:
    """Require a live user session."""
    session = await auth.current_session()
    if session is None:
        raise AuthenticationError("Please log in to continue")
    return session


async def get_admin_session(auth: AuthFacade = Depends(get_admin_auth)) -> SessionRecord:
    """Require a live admin session."""
    session = await auth.current_session()
    if session is None:
        raise AuthenticationError("Please log in as an administrator")
    return session


class PermissionChecker:
    """Dependency that requires any of ``permissions`` in the given scope."""

    def __init__(self, permissions: Iterable[str], scope: str = "admin"):
        self.permissions = list(permissions)
        self.scope = scope

    async def __call__(
        self,
        request: Request,
        container: ApplicationContainer = Depends(get_container),
        client_id: str = Depends(get_client_id),
    ) -> SessionRecord:
        if self.scope == "admin":
            auth = container.admin_auth(client_id)
        else:
            auth = container.user_auth(client_id)

        session = await auth.current_session()
        if session is None:
            raise AuthenticationError("Please log in to continue")

        if not container.permissions.has_any(session, self.permissions):
            SecurityLogger.log_unauthorized_access(
                str(request.url.path),
                self.scope,
                permissions=self.permissions,
                reason="missing_permission",
            )
            raise AuthorizationError(
                "Unauthorized: You do not have permission to access this resource.",
                details={"required": self.permissions},
            )
        return session


# Common permission checkers
manage_users = PermissionChecker(["users"])
manage_opportunities = PermissionChecker(["opportunities"])
manage_applications = PermissionChecker(["applications"])
view_analytics = PermissionChecker(["analytics"])
