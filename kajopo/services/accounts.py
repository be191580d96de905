"""Account administration service."""
import logging
import uuid
from typing import Any, Dict, List, Optional

from ..backend.base import Backend
from ..core.activity import ActivityLog
from ..core.clock import Clock, system_clock
from ..core.exceptions import AuthorizationError, NotFoundError, ValidationError
from ..core.lockout import normalize_email
from ..core.logging import BusinessLogger
from ..core.passwords import PasswordHasher
from ..core.permissions import ADMIN_ROLES, Role
from ..core.session import sanitize_account

logger = logging.getLogger(__name__)

USER_SORTS = {
    "name": (lambda u: (u.get("name") or "").lower(), False),
    "email": (lambda u: (u.get("email") or "").lower(), False),
    "role": (lambda u: u.get("role") or "", False),
    "status": (lambda u: bool(u.get("is_verified")), True),
    "joined": (lambda u: u.get("created_at") or "", True),
}


def display_name(account: Dict[str, Any]) -> str:
    if account.get("name"):
        return account["name"]
    parts = [account.get("first_name"), account.get("last_name")]
    return " ".join(p for p in parts if p) or account.get("email", "")


class AccountService:
    """Reads and administers rows of the ``users`` table."""

    def __init__(
        self,
        backend: Backend,
        activity_log: Optional[ActivityLog] = None,
        clock: Clock = system_clock,
    ):
        self.backend = backend
        self.activity_log = activity_log
        self.clock = clock

    async def _log(self, action: str, data: Dict[str, Any]) -> None:
        if self.activity_log is not None:
            await self.activity_log.log(action, data)

    async def _all(self) -> List[Dict[str, Any]]:
        result = await self.backend.table("users").select().order("created_at", ascending=False).execute()
        return result.raise_for_error().rows()

    async def list_users(
        self,
        search: str = None,
        status: str = None,
        role: str = None,
        sort: str = "joined",
    ) -> List[Dict[str, Any]]:
        """Filter by name/email search, verification status and role."""
        users = await self._all()
        if search:
            term = search.strip().lower()
            users = [
                u for u in users
                if term in display_name(u).lower() or term in (u.get("email") or "").lower()
            ]
        if status == "verified":
            users = [u for u in users if u.get("is_verified")]
        elif status == "pending":
            users = [u for u in users if not u.get("is_verified")]
        if role:
            users = [u for u in users if u.get("role") == role]

        key, reverse = USER_SORTS.get(sort, USER_SORTS["joined"])
        users.sort(key=key, reverse=reverse)
        return [sanitize_account(u) for u in users]

    async def get_user(self, user_id: str) -> Dict[str, Any]:
        result = await self.backend.table("users").select().eq("id", user_id).limit(1).execute()
        account = result.raise_for_error().first()
        if account is None:
            raise NotFoundError(f"User {user_id} not found")
        return sanitize_account(account)

    async def find_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        result = await self.backend.table("users").select().eq("email", normalize_email(email)).limit(1).execute()
        return result.raise_for_error().first()

    async def update_role(self, user_id: str, role: str, actor: Dict[str, Any]) -> Dict[str, Any]:
        if role not in {r.value for r in Role}:
            raise ValidationError(f"Unknown role '{role}'")
        is_super_admin = actor.get("role") == Role.SUPER_ADMIN.value
        if role in ADMIN_ROLES and not is_super_admin:
            raise AuthorizationError("Only a super administrator can grant administrative roles")

        target = await self.get_user(user_id)
        if target.get("role") in ADMIN_ROLES and not is_super_admin:
            raise AuthorizationError("Only a super administrator can change an administrator's role")

        result = await self.backend.table("users").update({"role": role}).eq("id", user_id).execute()
        account = result.raise_for_error().first()

        BusinessLogger.log_account_changed(user_id, "role", actor.get("email"), {"role": role})
        await self._log("user_role_changed", {"user_id": user_id, "role": role, "by": actor.get("email")})
        return sanitize_account(account)

    async def confirm_user(self, user_id: str, actor: Dict[str, Any]) -> Dict[str, Any]:
        await self.get_user(user_id)

        confirmation = await self.backend.admin.confirm_email(user_id)
        if not confirmation.ok:
            logger.warning("Identity confirmation failed for %s: %s", user_id, confirmation.error.message)

        result = await self.backend.table("users").update({"is_verified": True}).eq("id", user_id).execute()
        account = result.raise_for_error().first()

        BusinessLogger.log_account_changed(user_id, "confirmed", actor.get("email"))
        await self._log("user_confirmed", {"user_id": user_id, "by": actor.get("email")})
        return sanitize_account(account)

    async def delete_user(self, user_id: str, actor: Dict[str, Any]) -> None:
        """Delete the table row, then the auth identity."""
        if user_id == actor.get("id"):
            raise ValidationError("You cannot delete your own account")
        await self.get_user(user_id)

        result = await self.backend.table("users").delete().eq("id", user_id).execute()
        result.raise_for_error()

        removal = await self.backend.admin.delete_user(user_id)
        if not removal.ok:
            logger.warning("Identity removal failed for %s: %s", user_id, removal.error.message)

        BusinessLogger.log_account_changed(user_id, "deleted", actor.get("email"))
        await self._log("user_deleted", {"user_id": user_id, "by": actor.get("email")})

    async def stats(self) -> Dict[str, int]:
        users = await self._all()
        return {
            "total": len(users),
            "seekers": sum(1 for u in users if u.get("role") == Role.SEEKER.value),
            "providers": sum(1 for u in users if u.get("role") == Role.PROVIDER.value),
            "admins": sum(1 for u in users if u.get("role") in ADMIN_ROLES),
            "confirmed": sum(1 for u in users if u.get("is_verified")),
            "pending": sum(1 for u in users if not u.get("is_verified")),
        }

    async def ensure_default_admin(
        self,
        email: str,
        password: str,
        hasher: PasswordHasher,
        first_name: str = "Platform",
        last_name: str = "Administrator",
    ) -> bool:
        """Create a super administrator unless the email is already taken."""
        email = normalize_email(email)
        if await self.find_by_email(email) is not None:
            return False

        result = await self.backend.table("users").insert({
            "id": str(uuid.uuid4()),
            "email": email,
            "password_hash": hasher.hash_password(password),
            "first_name": first_name,
            "last_name": last_name,
            "name": f"{first_name} {last_name}",
            "role": Role.SUPER_ADMIN.value,
            "is_verified": True,
            "profile_complete": True,
            "created_at": self.clock.now().isoformat(),
        }).execute()
        result.raise_for_error()
        logger.info("Created bootstrap administrator %s", email)
        return True
