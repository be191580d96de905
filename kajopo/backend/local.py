"""Local fallback backend: tables kept as JSON lists in the key-value store."""
import logging
import secrets
import uuid
from datetime import timedelta
from typing import Any, Dict, List, Optional

from ..core.clock import Clock, system_clock
from ..core.exceptions import StorageCorruptionError
from ..core.passwords import PasswordHasher
from ..storage.base import KeyValueStore
from ..storage.keys import AUTH_IDENTITIES_KEY, table_key
from .base import AdminAPI, AuthAPI, Backend, QueryResult, TableQuery

logger = logging.getLogger(__name__)


def _matches(row: Dict[str, Any], filters) -> bool:
    return all(row.get(column) == value for column, value in filters)


def _sort_key(column: str):
    # None sorts first, mixed types compare as strings
    def key(row: Dict[str, Any]):
        value = row.get(column)
        return (value is not None, str(value) if value is not None else "")
    return key


class LocalBackend(Backend):
    """Serves every table operation from the key-value store."""

    name = "local"

    def __init__(
        self,
        store: KeyValueStore,
        hasher: PasswordHasher,
        clock: Clock = system_clock,
    ):
        self.store = store
        self.clock = clock
        self._auth = LocalAuthAPI(self, hasher)
        self._admin = LocalAdminAPI(self)

    @property
    def auth(self) -> "LocalAuthAPI":
        return self._auth

    @property
    def admin(self) -> "LocalAdminAPI":
        return self._admin

    async def ping(self) -> bool:
        return True

    async def load_rows(self, key: str) -> List[Dict[str, Any]]:
        try:
            rows = await self.store.get_json(key, [])
        except StorageCorruptionError:
            logger.warning("Local table %s was corrupted, resetting it", key)
            await self.store.remove(key)
            return []
        return rows if isinstance(rows, list) else []

    async def save_rows(self, key: str, rows: List[Dict[str, Any]]) -> None:
        await self.store.set_json(key, rows)

    async def execute(self, query: TableQuery) -> QueryResult:
        key = table_key(query.table)
        rows = await self.load_rows(key)
        now = self.clock.now().isoformat()

        if query.operation == "insert":
            inserted = []
            for payload in query.payload:
                row = {"id": str(uuid.uuid4()), "created_at": now}
                row.update(payload)
                inserted.append(row)
            await self.save_rows(key, rows + inserted)
            return QueryResult(data=inserted)

        if query.operation == "update":
            updated = []
            for row in rows:
                if _matches(row, query.filters):
                    row.update(query.payload)
                    if "updated_at" not in query.payload:
                        row["updated_at"] = now
                    updated.append(row)
            if updated:
                await self.save_rows(key, rows)
            return QueryResult(data=updated)

        if query.operation == "delete":
            kept = [row for row in rows if not _matches(row, query.filters)]
            deleted = [row for row in rows if _matches(row, query.filters)]
            if deleted:
                await self.save_rows(key, kept)
            return QueryResult(data=deleted)

        selected = [row for row in rows if _matches(row, query.filters)]
        for column, ascending in reversed(query.ordering):
            selected.sort(key=_sort_key(column), reverse=not ascending)
        if query.row_limit is not None:
            selected = selected[: query.row_limit]
        if query.columns and query.columns != "*":
            wanted = [c.strip() for c in query.columns.split(",")]
            selected = [{c: row.get(c) for c in wanted} for row in selected]
        return QueryResult(data=selected)

    async def seed_demo_data(self) -> bool:
        """Populate sample users and opportunities when the users table is absent."""
        if await self.store.get(table_key("users")) is not None:
            return False

        now = self.clock.now()
        stamp = now.isoformat()
        users = [
            {
                "id": "user_1",
                "email": "adebayo@example.com",
                "first_name": "Adebayo",
                "last_name": "Johnson",
                "name": "Adebayo Johnson",
                "role": "seeker",
                "is_verified": True,
                "phone": "+234-801-234-5678",
                "location": "Lagos, Nigeria",
                "profile_complete": True,
                "created_at": stamp,
            },
            {
                "id": "user_2",
                "email": "fatima@ngo.org",
                "first_name": "Fatima",
                "last_name": "Abdullahi",
                "name": "Fatima Abdullahi",
                "role": "provider",
                "is_verified": True,
                "phone": "+234-802-345-6789",
                "location": "Abuja, Nigeria",
                "organization": "Hope Foundation Nigeria",
                "profile_complete": True,
                "created_at": stamp,
            },
        ]
        opportunities = [
            {
                "id": "opp_1",
                "title": "Community Health Grant Program",
                "organization": "Hope Foundation Nigeria",
                "category": "Health",
                "type": "Grants",
                "location": "Lagos, Nigeria",
                "description": (
                    "Apply for funding to support community health initiatives focusing on "
                    "preventive healthcare and wellness education in underserved areas."
                ),
                "requirements": [
                    "Registered NGO or community organization",
                    "Health program experience",
                    "Community engagement plan",
                ],
                "duration": "12 months",
                "commitment": "Grant funding up to ₦2,000,000",
                "deadline": (now + timedelta(days=30)).isoformat(),
                "status": "active",
                "applicants": 0,
                "created_by": "user_2",
                "created_at": stamp,
            },
            {
                "id": "opp_2",
                "title": "Educational Technology Fellowship",
                "organization": "Lagos Youth Development Center",
                "category": "Technology Solutions",
                "type": "Fellowships",
                "location": "Lagos, Nigeria",
                "description": (
                    "Fellowship program for developing innovative technology solutions to "
                    "improve educational access and quality in Nigerian schools."
                ),
                "requirements": [
                    "Bachelor's degree in Technology/Education",
                    "Software development experience",
                    "Passion for educational innovation",
                ],
                "duration": "6 months",
                "commitment": "Full-time fellowship with stipend",
                "deadline": (now + timedelta(days=45)).isoformat(),
                "status": "active",
                "applicants": 3,
                "created_by": "user_2",
                "created_at": stamp,
            },
        ]

        await self.save_rows(table_key("users"), users)
        await self.save_rows(table_key("opportunities"), opportunities)
        for table in ("applications", "messages", "conversations"):
            await self.save_rows(table_key(table), [])
        logger.info("Seeded local backend with demo data")
        return True


class LocalAuthAPI(AuthAPI):
    """Identities stored alongside the local tables."""

    def __init__(self, backend: LocalBackend, hasher: PasswordHasher):
        self.backend = backend
        self.hasher = hasher

    async def _identities(self) -> List[Dict[str, Any]]:
        return await self.backend.load_rows(AUTH_IDENTITIES_KEY)

    @staticmethod
    def _public(identity: Dict[str, Any]) -> Dict[str, Any]:
        return {k: v for k, v in identity.items() if k not in ("password_hash", "access_token")}

    async def _find(self, **criteria) -> Optional[Dict[str, Any]]:
        for identity in await self._identities():
            if all(identity.get(k) == v for k, v in criteria.items()):
                return identity
        return None

    async def sign_up(self, email: str, password: str, metadata: Dict[str, Any] = None) -> QueryResult:
        email = email.strip().lower()
        identities = await self._identities()
        if any(identity["email"] == email for identity in identities):
            return QueryResult.failure("User already registered", code="user_already_exists", status=422)

        identity = {
            "id": str(uuid.uuid4()),
            "email": email,
            "password_hash": self.hasher.hash_password(password),
            "email_confirmed_at": None,
            "user_metadata": metadata or {},
            "created_at": self.backend.clock.now().isoformat(),
        }
        identities.append(identity)
        await self.backend.save_rows(AUTH_IDENTITIES_KEY, identities)
        return QueryResult(data={"user": self._public(identity)})

    async def sign_in_with_password(self, email: str, password: str) -> QueryResult:
        email = email.strip().lower()
        identities = await self._identities()
        for identity in identities:
            if identity["email"] == email and self.hasher.verify_password(password, identity.get("password_hash")):
                identity["access_token"] = secrets.token_urlsafe(24)
                await self.backend.save_rows(AUTH_IDENTITIES_KEY, identities)
                return QueryResult(data={
                    "user": self._public(identity),
                    "access_token": identity["access_token"],
                })
        return QueryResult.failure("Invalid login credentials", code="invalid_credentials", status=400)

    async def sign_out(self, access_token: str = None) -> QueryResult:
        if access_token:
            identities = await self._identities()
            for identity in identities:
                if identity.get("access_token") == access_token:
                    identity.pop("access_token")
                    await self.backend.save_rows(AUTH_IDENTITIES_KEY, identities)
                    break
        return QueryResult(data=None)

    async def get_user(self, access_token: str = None) -> QueryResult:
        identity = await self._find(access_token=access_token) if access_token else None
        if identity is None:
            return QueryResult.failure("No user signed in", code="not_authenticated", status=401)
        return QueryResult(data={"user": self._public(identity)})


class LocalAdminAPI(AdminAPI):

    def __init__(self, backend: LocalBackend):
        self.backend = backend

    async def delete_user(self, user_id: str) -> QueryResult:
        identities = await self.backend.load_rows(AUTH_IDENTITIES_KEY)
        kept = [identity for identity in identities if identity["id"] != user_id]
        if len(kept) == len(identities):
            return QueryResult.failure("User not found", code="user_not_found", status=404)
        await self.backend.save_rows(AUTH_IDENTITIES_KEY, kept)
        return QueryResult(data=None)

    async def confirm_email(self, user_id: str) -> QueryResult:
        identities = await self.backend.load_rows(AUTH_IDENTITIES_KEY)
        for identity in identities:
            if identity["id"] == user_id:
                identity["email_confirmed_at"] = self.backend.clock.now().isoformat()
                await self.backend.save_rows(AUTH_IDENTITIES_KEY, identities)
                return QueryResult(data={"user": LocalAuthAPI._public(identity)})
        return QueryResult.failure("User not found", code="user_not_found", status=404)
