"""Tests for the local and hosted backends and the gateway that picks one."""
import json

import httpx
import pytest

from kajopo.backend import BackendGateway, GatewayState, HostedBackend, LocalBackend, QueryResult
from kajopo.core.exceptions import BackendUnavailableError, ExternalServiceError
from kajopo.storage.keys import table_key


async def no_sleep(seconds):
    return None


@pytest.fixture
def local(store, hasher, clock):
    return LocalBackend(store, hasher, clock=clock)


def hosted_with(handler, **kwargs):
    return HostedBackend(
        "https://backend.example.com/",
        "anon-key",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


async def test_local_insert_select_update_delete(local, clock):
    inserted = await local.table("opportunities").insert({"title": "Grant", "status": "active"}).execute()
    row = inserted.first()
    assert row["id"]
    assert row["created_at"] == clock.now().isoformat()

    clock.advance(minutes=1)
    updated = await local.table("opportunities").update({"status": "closed"}).eq("id", row["id"]).execute()
    assert updated.first()["status"] == "closed"
    assert updated.first()["updated_at"] == clock.now().isoformat()

    selected = await local.table("opportunities").select("id,status").eq("status", "closed").execute()
    assert selected.rows() == [{"id": row["id"], "status": "closed"}]

    deleted = await local.table("opportunities").delete().eq("id", row["id"]).execute()
    assert len(deleted.rows()) == 1
    assert (await local.table("opportunities").select().execute()).rows() == []


async def test_local_order_and_limit(local):
    for title in ("b", "c", "a"):
        await local.table("opportunities").insert({"title": title}).execute()

    result = await local.table("opportunities").select().order("title", ascending=False).limit(2).execute()

    assert [r["title"] for r in result.rows()] == ["c", "b"]


async def test_local_tables_live_under_prefixed_keys(local, store):
    await local.table("users").insert({"email": "a@example.com"}).execute()
    assert json.loads(await store.get(table_key("users")))[0]["email"] == "a@example.com"


async def test_local_corrupt_table_is_reset(local, store):
    await store.set(table_key("users"), "{nope")
    result = await local.table("users").select().execute()
    assert result.ok and result.rows() == []


async def test_seed_demo_data_only_once(local):
    assert await local.seed_demo_data() is True
    assert await local.seed_demo_data() is False

    users = (await local.table("users").select().execute()).rows()
    assert {u["id"] for u in users} == {"user_1", "user_2"}
    opportunities = (await local.table("opportunities").select().execute()).rows()
    assert {o["id"] for o in opportunities} == {"opp_1", "opp_2"}


async def test_local_auth_identities(local):
    signed_up = await local.auth.sign_up("Bola@Example.com", "password123", {"role": "seeker"})
    assert signed_up.ok
    user = signed_up.data["user"]
    assert user["email"] == "bola@example.com"
    assert "password_hash" not in user

    duplicate = await local.auth.sign_up("bola@example.com", "password123")
    assert duplicate.error.code == "user_already_exists"

    wrong = await local.auth.sign_in_with_password("bola@example.com", "nope")
    assert not wrong.ok

    signed_in = await local.auth.sign_in_with_password("bola@example.com", "password123")
    token = signed_in.data["access_token"]
    assert (await local.auth.get_user(token)).data["user"]["id"] == user["id"]

    await local.auth.sign_out(token)
    assert not (await local.auth.get_user(token)).ok


async def test_local_admin_api(local):
    user = (await local.auth.sign_up("bola@example.com", "password123")).data["user"]

    confirmed = await local.admin.confirm_email(user["id"])
    assert confirmed.data["user"]["email_confirmed_at"] is not None

    assert (await local.admin.delete_user(user["id"])).ok
    assert (await local.admin.delete_user(user["id"])).error.code == "user_not_found"


def test_raise_for_error():
    with pytest.raises(ExternalServiceError):
        QueryResult.failure("boom", code="500").raise_for_error()
    assert QueryResult(data=[{"id": 1}]).raise_for_error().first() == {"id": 1}


async def test_hosted_select_builds_rest_query():
    seen = {}

    def handler(request):
        seen["request"] = request
        return httpx.Response(200, json=[{"id": "1", "email": "a@example.com"}])

    backend = hosted_with(handler)
    result = await backend.table("users").select().eq("email", "a@example.com").order("created_at", ascending=False).limit(1).execute()
    await backend.close()

    request = seen["request"]
    assert request.method == "GET"
    assert request.url.path == "/rest/v1/users"
    assert request.url.params["email"] == "eq.a@example.com"
    assert request.url.params["order"] == "created_at.desc"
    assert request.url.params["limit"] == "1"
    assert request.url.params["select"] == "*"
    assert request.headers["apikey"] == "anon-key"
    assert result.first()["email"] == "a@example.com"


async def test_hosted_insert_asks_for_representation():
    seen = {}

    def handler(request):
        seen["request"] = request
        return httpx.Response(201, json=[json.loads(request.content)])

    backend = hosted_with(handler)
    result = await backend.table("applications").insert({"status": "pending"}).execute()
    await backend.close()

    assert seen["request"].method == "POST"
    assert seen["request"].headers["prefer"] == "return=representation"
    assert result.first() == {"status": "pending"}


async def test_hosted_errors_become_results():
    def handler(request):
        return httpx.Response(422, json={"error_code": "user_already_exists", "msg": "User already registered"})

    backend = hosted_with(handler)
    result = await backend.auth.sign_up("a@example.com", "password123")
    await backend.close()

    assert not result.ok
    assert result.error.code == "user_already_exists"
    assert result.error.message == "User already registered"
    assert result.error.status == 422


async def test_hosted_network_failure_becomes_result():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    backend = hosted_with(handler)
    result = await backend.table("users").select().execute()
    assert result.error.code == "network_error"
    assert await backend.ping() is False
    await backend.close()


async def test_hosted_sign_up_wraps_user():
    def handler(request):
        assert request.url.path == "/auth/v1/signup"
        return httpx.Response(200, json={"id": "u-1", "email": "a@example.com"})

    backend = hosted_with(handler)
    result = await backend.auth.sign_up("a@example.com", "password123", {"role": "seeker"})
    await backend.close()

    assert result.data["user"]["id"] == "u-1"


async def test_hosted_admin_api_needs_service_key():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={})

    without_key = hosted_with(handler)
    assert (await without_key.admin.delete_user("u-1")).error.code == "not_configured"
    await without_key.close()

    with_key = hosted_with(handler, service_key="service-key")
    assert (await with_key.admin.confirm_email("u-1")).ok
    await with_key.close()

    assert len(calls) == 1
    assert calls[0].method == "PUT"
    assert calls[0].url.path == "/auth/v1/admin/users/u-1"
    assert calls[0].headers["authorization"] == "Bearer service-key"
    assert json.loads(calls[0].content) == {"email_confirm": True}


async def test_gateway_without_hosted_uses_local(local):
    gateway = BackendGateway(local)

    assert await gateway.resolve(allow_fallback=False) is local
    assert gateway.state == GatewayState.LOCAL


async def test_gateway_prefers_reachable_hosted(local):
    hosted = hosted_with(lambda request: httpx.Response(200, json={}))
    gateway = BackendGateway(local, hosted, sleep=no_sleep)

    assert await gateway.resolve() is hosted
    assert gateway.mode == "hosted"
    await gateway.close()


async def test_gateway_retries_then_gives_up(local):
    pings = []
    sleeps = []

    def handler(request):
        pings.append(request)
        return httpx.Response(503)

    async def record_sleep(seconds):
        sleeps.append(seconds)

    hosted = hosted_with(handler)
    gateway = BackendGateway(local, hosted, attempts=3, delay=0.5, sleep=record_sleep)

    assert await gateway.initialize() == GatewayState.UNAVAILABLE
    assert len(pings) == 3
    assert sleeps == [0.5, 0.5]

    assert await gateway.resolve(allow_fallback=True) is local
    with pytest.raises(BackendUnavailableError):
        await gateway.resolve(allow_fallback=False)
    assert len(pings) == 3
    await gateway.close()


async def test_gateway_recovers_on_later_attempt(local):
    responses = iter([httpx.Response(503), httpx.Response(200, json={})])
    hosted = hosted_with(lambda request: next(responses))
    gateway = BackendGateway(local, hosted, attempts=3, sleep=no_sleep)

    assert await gateway.initialize() == GatewayState.HOSTED
    await gateway.close()
