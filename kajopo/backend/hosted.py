"""Hosted backend speaking a Supabase-style REST API over httpx."""
import logging
from typing import Any, Dict, Optional

import httpx

from .base import AdminAPI, AuthAPI, Backend, QueryResult, TableQuery

logger = logging.getLogger(__name__)


def _filter_value(value: Any) -> str:
    if value is None:
        return "is.null"
    if isinstance(value, bool):
        return f"eq.{str(value).lower()}"
    return f"eq.{value}"


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        for field in ("message", "msg", "error_description", "error"):
            if body.get(field):
                return str(body[field])
    return f"HTTP {response.status_code}"


def _error_code(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("error_code"):
        return str(body["error_code"])
    return str(response.status_code)


class HostedBackend(Backend):
    """PostgREST tables under ``/rest/v1`` and GoTrue auth under ``/auth/v1``."""

    name = "hosted"

    def __init__(
        self,
        url: str,
        anon_key: str,
        service_key: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url.rstrip("/")
        self.anon_key = anon_key
        self.service_key = service_key
        self.client = httpx.AsyncClient(
            base_url=self.url,
            headers={
                "apikey": anon_key,
                "Authorization": f"Bearer {anon_key}",
            },
            timeout=timeout,
            transport=transport,
        )
        self._auth = HostedAuthAPI(self)
        self._admin = HostedAdminAPI(self)

    @property
    def auth(self) -> "HostedAuthAPI":
        return self._auth

    @property
    def admin(self) -> "HostedAdminAPI":
        return self._admin

    async def request(
        self,
        method: str,
        path: str,
        params: Any = None,
        json: Any = None,
        headers: Dict[str, str] = None,
    ) -> QueryResult:
        """Send a request and fold transport and HTTP errors into the result."""
        try:
            response = await self.client.request(
                method, path, params=params, json=json, headers=headers
            )
        except httpx.HTTPError as exc:
            logger.warning("Backend request %s %s failed: %s", method, path, exc)
            return QueryResult.failure(str(exc) or exc.__class__.__name__, code="network_error")

        if response.is_error:
            return QueryResult.failure(
                _error_message(response),
                code=_error_code(response),
                status=response.status_code,
            )
        if not response.content:
            return QueryResult(data=None)
        try:
            return QueryResult(data=response.json())
        except ValueError:
            return QueryResult.failure("Malformed response from backend", status=response.status_code)

    async def execute(self, query: TableQuery) -> QueryResult:
        params = [(column, _filter_value(value)) for column, value in query.filters]
        headers = {"Prefer": "return=representation"}
        path = f"/rest/v1/{query.table}"

        if query.operation == "insert":
            return await self.request("POST", path, params=params, json=query.payload, headers=headers)
        if query.operation == "update":
            return await self.request("PATCH", path, params=params, json=query.payload, headers=headers)
        if query.operation == "delete":
            return await self.request("DELETE", path, params=params, headers=headers)

        params.append(("select", query.columns))
        if query.ordering:
            params.append((
                "order",
                ",".join(f"{column}.{'asc' if asc else 'desc'}" for column, asc in query.ordering),
            ))
        if query.row_limit is not None:
            params.append(("limit", str(query.row_limit)))
        return await self.request("GET", path, params=params)

    async def ping(self) -> bool:
        try:
            response = await self.client.get("/auth/v1/health")
        except httpx.HTTPError as exc:
            logger.info("Backend health check failed: %s", exc)
            return False
        return response.status_code < 500

    async def close(self) -> None:
        await self.client.aclose()


class HostedAuthAPI(AuthAPI):

    def __init__(self, backend: HostedBackend):
        self.backend = backend

    async def sign_up(self, email: str, password: str, metadata: Dict[str, Any] = None) -> QueryResult:
        result = await self.backend.request(
            "POST", "/auth/v1/signup",
            json={"email": email, "password": password, "data": metadata or {}},
        )
        if result.ok and isinstance(result.data, dict) and "user" not in result.data:
            result = QueryResult(data={"user": result.data})
        return result

    async def sign_in_with_password(self, email: str, password: str) -> QueryResult:
        return await self.backend.request(
            "POST", "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )

    async def sign_out(self, access_token: str = None) -> QueryResult:
        if not access_token:
            return QueryResult(data=None)
        return await self.backend.request(
            "POST", "/auth/v1/logout",
            headers={"Authorization": f"Bearer {access_token}"},
        )

    async def get_user(self, access_token: str = None) -> QueryResult:
        if not access_token:
            return QueryResult.failure("No user signed in", code="not_authenticated", status=401)
        result = await self.backend.request(
            "GET", "/auth/v1/user",
            headers={"Authorization": f"Bearer {access_token}"},
        )
        if result.ok:
            result = QueryResult(data={"user": result.data})
        return result


class HostedAdminAPI(AdminAPI):
    """Requires the service role key."""

    def __init__(self, backend: HostedBackend):
        self.backend = backend

    def _headers(self) -> Optional[Dict[str, str]]:
        if not self.backend.service_key:
            return None
        return {
            "apikey": self.backend.service_key,
            "Authorization": f"Bearer {self.backend.service_key}",
        }

    async def delete_user(self, user_id: str) -> QueryResult:
        headers = self._headers()
        if headers is None:
            return QueryResult.failure("Service key is not configured", code="not_configured")
        return await self.backend.request("DELETE", f"/auth/v1/admin/users/{user_id}", headers=headers)

    async def confirm_email(self, user_id: str) -> QueryResult:
        headers = self._headers()
        if headers is None:
            return QueryResult.failure("Service key is not configured", code="not_configured")
        return await self.backend.request(
            "PUT", f"/auth/v1/admin/users/{user_id}",
            json={"email_confirm": True},
            headers=headers,
        )
