"""Role to permission mapping and authorization queries."""
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple


class Role(str, Enum):
    """Account roles."""

    SEEKER = "seeker"
    PROVIDER = "provider"
    ADMIN = "admin"
    MODERATOR = "moderator"
    SUPER_ADMIN = "super_admin"


ADMIN_ROLES = frozenset({Role.ADMIN.value, Role.MODERATOR.value, Role.SUPER_ADMIN.value})
SELF_SERVICE_ROLES = frozenset({Role.SEEKER.value, Role.PROVIDER.value})

ROLE_NAMES: Mapping[str, str] = MappingProxyType({
    Role.SUPER_ADMIN.value: "Super Administrator",
    Role.ADMIN.value: "Administrator",
    Role.MODERATOR.value: "Moderator",
    Role.PROVIDER.value: "Opportunity Provider",
    Role.SEEKER.value: "Opportunity Seeker",
})

DEFAULT_ROLE_PERMISSIONS: Mapping[str, Tuple[str, ...]] = MappingProxyType({
    Role.SUPER_ADMIN.value: (
        "users", "opportunities", "applications", "analytics", "settings", "admin_management",
    ),
    Role.ADMIN.value: ("users", "opportunities", "applications", "analytics"),
    Role.MODERATOR.value: ("opportunities", "applications"),
    Role.PROVIDER.value: ("messaging", "post_opportunities"),
    Role.SEEKER.value: ("messaging", "apply"),
})


def _account_of(session: Any) -> Optional[Dict[str, Any]]:
    if session is None:
        return None
    if isinstance(session, dict):
        return session
    return getattr(session, "account", None)


class PermissionResolver:
    """Answers permission checks for a session (or a bare account dict).

    An account-level ``permissions`` list, when not ``None``, replaces the
    role default. Unknown roles have no permissions. ``has_any([])`` is
    False and ``has_all([])`` is True.
    """

    def __init__(self, role_permissions: Mapping[str, Iterable[str]] = DEFAULT_ROLE_PERMISSIONS):
        self._roles = MappingProxyType({
            role: tuple(tokens) for role, tokens in role_permissions.items()
        })

    @property
    def roles(self) -> Mapping[str, Tuple[str, ...]]:
        return self._roles

    def permissions_for(self, session: Any) -> Tuple[str, ...]:
        account = _account_of(session)
        if not account:
            return ()

        override = account.get("permissions")
        if override is not None:
            return tuple(override)

        return self._roles.get(account.get("role"), ())

    def has_permission(self, session: Any, token: str) -> bool:
        return token in self.permissions_for(session)

    def has_any(self, session: Any, tokens: Iterable[str]) -> bool:
        granted = self.permissions_for(session)
        return any(token in granted for token in tokens)

    def has_all(self, session: Any, tokens: Iterable[str]) -> bool:
        granted = self.permissions_for(session)
        return all(token in granted for token in tokens)

    @staticmethod
    def role_name(role: str) -> str:
        return ROLE_NAMES.get(role, role)
