"""Tests for the authentication façade."""
from datetime import timedelta

import httpx
import pytest

from kajopo.backend import QueryResult
from kajopo.config.settings import BackendSettings
from kajopo.core.auth import UNAUTHORIZED_MESSAGE, AuthOutcome
from kajopo.core.container import build_container
from kajopo.core.exceptions import ConfigurationError
from kajopo.core.notify import RecordingNavigator

from conftest import ADMIN_EMAIL, ADMIN_PASSWORD


async def no_sleep(seconds):
    return None


@pytest.fixture
def navigator():
    return RecordingNavigator()


@pytest.fixture
def user_auth(started_container, navigator):
    return started_container.user_auth("client-a", navigator)


@pytest.fixture
def admin_auth(started_container, navigator):
    return started_container.admin_auth("client-a", navigator)


async def add_account(container, email, role, password="password123", **extra):
    row = {
        "email": email,
        "password_hash": container.hasher.hash_password(password),
        "first_name": "Test",
        "last_name": role.title(),
        "role": role,
        "is_verified": True,
    }
    row.update(extra)
    result = await container.gateway.local.table("users").insert(row).execute()
    return result.first()


async def test_register_creates_session(user_auth, registration):
    result = await user_auth.register(registration())

    assert result.success
    assert result.outcome == AuthOutcome.SUCCESS
    assert result.account["email"] == "ada@example.com"
    assert result.account["role"] == "seeker"
    assert result.account["is_verified"] is False
    assert "password_hash" not in result.account
    assert (await user_auth.current_account())["email"] == "ada@example.com"


async def test_register_then_login(user_auth, registration):
    await user_auth.register(registration(email="Ada@Example.com"))
    await user_auth.logout()

    result = await user_auth.login("ada@example.com", "password123")

    assert result.success
    assert result.session.scope == "user"
    assert result.account["last_login"] is not None


async def test_register_validates_fields(user_auth, registration):
    result = await user_auth.register(registration(email="not-an-email", password="short", first_name=""))

    assert result.outcome == AuthOutcome.VALIDATION_FAILED
    assert set(result.errors) == {"email", "password", "first_name"}
    assert await user_auth.current_session() is None


async def test_register_rejects_admin_roles(user_auth, registration):
    result = await user_auth.register(registration(role="super_admin"))

    assert result.outcome == AuthOutcome.VALIDATION_FAILED
    assert "role" in result.errors


async def test_duplicate_registration_is_refused(started_container, registration):
    """The second registration for an email fails and creates nothing."""
    first = started_container.user_auth("client-a")
    second = started_container.user_auth("client-b")
    await first.register(registration())

    result = await second.register(registration(email="ADA@example.com", first_name="Other"))

    assert not result.success
    assert result.outcome == AuthOutcome.ACCOUNT_EXISTS
    assert result.message == "User with this email already exists"
    assert await second.current_session() is None
    users = await started_container.gateway.local.table("users").select().eq("email", "ada@example.com").execute()
    assert len(users.rows()) == 1


async def test_login_requires_both_fields(user_auth):
    result = await user_auth.login("", "")
    assert result.outcome == AuthOutcome.VALIDATION_FAILED
    assert set(result.errors) == {"email", "password"}


async def test_wrong_password_is_rejected(user_auth, registration, started_container):
    await user_auth.register(registration())
    await user_auth.logout()

    result = await user_auth.login("ada@example.com", "wrong-password")

    assert result.outcome == AuthOutcome.INVALID_CREDENTIALS
    assert result.message == "Invalid email or password."
    assert await started_container.lockout.get_failed_attempts("ada@example.com") == 1


async def test_unknown_account_is_rejected(user_auth):
    result = await user_auth.login("ghost@example.com", "password123")
    assert result.outcome == AuthOutcome.INVALID_CREDENTIALS


async def test_lockout_rejects_correct_password(started_container, user_auth, clock, registration):
    """Five failures lock the email even for the right password."""
    await user_auth.register(registration())
    await user_auth.logout()

    for _ in range(5):
        result = await user_auth.login("ada@example.com", "wrong-password")
        assert result.outcome == AuthOutcome.INVALID_CREDENTIALS

    locked = await user_auth.login("ada@example.com", "password123")
    assert locked.outcome == AuthOutcome.ACCOUNT_LOCKED
    assert "15 minutes" in locked.message
    assert await user_auth.current_session() is None

    clock.advance(minutes=15)
    unlocked = await user_auth.login("ada@example.com", "password123")
    assert unlocked.success
    assert await started_container.lockout.get_failed_attempts("ada@example.com") == 0


async def test_successful_login_clears_failures(user_auth, started_container, registration):
    await user_auth.register(registration())
    await user_auth.logout()
    await user_auth.login("ada@example.com", "wrong-password")
    await user_auth.login("ada@example.com", "wrong-password")

    await user_auth.login("ada@example.com", "password123")

    assert await started_container.lockout.get_failed_attempts("ada@example.com") == 0


async def test_admin_login_with_bootstrap_account(admin_auth, started_container):
    result = await admin_auth.login(ADMIN_EMAIL, ADMIN_PASSWORD)

    assert result.success
    assert result.session.scope == "admin"
    assert result.account["role"] == "super_admin"
    entries = await started_container.activity_log.entries()
    assert entries[0].action == "admin_login"


async def test_admin_login_rejects_non_admin_roles(admin_auth, started_container):
    await add_account(started_container, "seeker@example.com", "seeker")

    result = await admin_auth.login("seeker@example.com", "password123")

    assert result.outcome == AuthOutcome.INVALID_CREDENTIALS
    assert await admin_auth.current_session() is None
    assert await started_container.lockout.get_failed_attempts("seeker@example.com") == 1


async def test_account_without_password_hash_cannot_log_in(user_auth, started_container):
    await started_container.gateway.local.table("users").insert({
        "email": "legacy@example.com",
        "role": "seeker",
    }).execute()

    result = await user_auth.login("legacy@example.com", "anything-at-all")
    assert result.outcome == AuthOutcome.INVALID_CREDENTIALS


async def test_remember_me_session_lasts_thirty_days(user_auth, registration, clock):
    await user_auth.register(registration())
    await user_auth.logout()

    result = await user_auth.login("ada@example.com", "password123", remember_me=True)

    assert result.session.expires_at - clock.now() == timedelta(days=30)


async def test_short_session_expires(user_auth, registration, clock, navigator):
    """A plain session ends after its short lifetime."""
    await user_auth.register(registration())
    assert await user_auth.require_auth("/dashboard")

    clock.advance(hours=24)

    assert await user_auth.current_session() is None
    assert not await user_auth.require_auth("/dashboard")
    assert navigator.target == "/login?return=%2Fdashboard"
    assert navigator.delay is None


async def test_logout_clears_session(user_auth, registration, started_container):
    await user_auth.register(registration())

    result = await user_auth.logout()

    assert result.success
    assert await user_auth.current_session() is None
    actions = [e.action for e in await started_container.activity_log.entries()]
    assert "user_logout" in actions


async def test_logout_without_session_succeeds(user_auth):
    result = await user_auth.logout()
    assert result.success


async def test_require_permission_posts_notice_and_redirects(started_container, navigator, clock):
    """A moderator is turned away from analytics."""
    await add_account(started_container, "mod@example.com", "moderator")
    auth = started_container.admin_auth("client-a", navigator)
    await auth.login("mod@example.com", "password123")

    allowed = await auth.require_permission("analytics")

    assert allowed is False
    assert navigator.target == "/admin-login"
    assert navigator.delay == timedelta(seconds=3)
    notices = await started_container.notifier("client-a").pending()
    assert [n.message for n in notices] == [UNAUTHORIZED_MESSAGE]
    assert notices[0].level == "error"


async def test_require_permission_with_list_uses_any(started_container, navigator):
    await add_account(started_container, "mod@example.com", "moderator")
    auth = started_container.admin_auth("client-a", navigator)
    await auth.login("mod@example.com", "password123")

    assert await auth.require_permission(["analytics", "applications"])
    assert not await auth.require_permission([])
    assert navigator.delay == timedelta(seconds=3)


async def test_require_permission_custom_redirect(started_container, navigator):
    await add_account(started_container, "mod@example.com", "moderator")
    auth = started_container.admin_auth("client-a", navigator)
    await auth.login("mod@example.com", "password123")

    await auth.require_permission("users", redirect_url="/admin/dashboard")

    assert navigator.target == "/admin/dashboard"


async def test_require_permission_without_session_goes_to_login(admin_auth, navigator):
    assert not await admin_auth.require_permission("analytics")
    assert navigator.target == "/admin-login"
    assert navigator.delay is None


async def test_permission_override_on_account(started_container, navigator):
    await add_account(started_container, "analyst@example.com", "admin", permissions=["analytics"])
    auth = started_container.admin_auth("client-a", navigator)
    await auth.login("analyst@example.com", "password123")

    assert await auth.require_permission("analytics")
    assert not await auth.require_permission("users")


async def test_extend_session_through_facade(user_auth, registration, clock):
    registered = await user_auth.register(registration())
    clock.advance(hours=1)

    extended = await user_auth.extend_session(timedelta(hours=1))

    assert extended.expires_at == registered.session.expires_at + timedelta(hours=1)


async def test_login_url_escapes_return_path(user_auth):
    assert user_auth.login_url() == "/login"
    assert user_auth.login_url("/opportunities?id=1") == "/login?return=%2Fopportunities%3Fid%3D1"


@pytest.fixture
def unreachable_container(settings, store, clock, hasher):
    settings.backend = BackendSettings(url="https://backend.example.com", anon_key="anon", seed_demo_data=False)
    transport = httpx.MockTransport(lambda request: httpx.Response(503))
    return build_container(
        settings, store=store, clock=clock, hasher=hasher, hosted_transport=transport, sleep=no_sleep
    )


async def test_admin_login_fails_when_backend_unreachable(unreachable_container):
    auth = unreachable_container.admin_auth("client-a")

    result = await auth.login(ADMIN_EMAIL, ADMIN_PASSWORD)

    assert result.outcome == AuthOutcome.BACKEND_UNAVAILABLE
    await unreachable_container.shutdown()


async def test_user_flows_fall_back_to_local_backend(unreachable_container, registration):
    auth = unreachable_container.user_auth("client-a")

    result = await auth.register(registration())

    assert result.success
    stored = await unreachable_container.gateway.local.table("users").select().execute()
    assert stored.first()["email"] == "ada@example.com"
    await unreachable_container.shutdown()


async def test_overlong_password_for_unknown_account_counts_as_failure(user_auth, started_container):
    result = await user_auth.login("ghost@example.com", "x" * 80)

    assert result.outcome == AuthOutcome.INVALID_CREDENTIALS
    assert await started_container.lockout.get_failed_attempts("ghost@example.com") == 1


async def test_overlong_password_for_known_account_counts_as_failure(user_auth, registration, started_container):
    await user_auth.register(registration())
    await user_auth.logout()

    result = await user_auth.login("ada@example.com", "password123" + "x" * 80)

    assert result.outcome == AuthOutcome.INVALID_CREDENTIALS
    assert await started_container.lockout.get_failed_attempts("ada@example.com") == 1


async def test_register_rejects_overlong_password(user_auth, registration):
    result = await user_auth.register(registration(password="é" * 40))

    assert result.outcome == AuthOutcome.VALIDATION_FAILED
    assert result.errors == {"password": ["Must be no more than 72 bytes long"]}


async def test_failed_account_insert_discards_identity(started_container, registration, monkeypatch):
    """Registering again works after the account row could not be written."""
    local = started_container.gateway.local
    execute = local.execute
    failures = []

    async def failing_user_insert(query):
        if query.table == "users" and query.operation == "insert" and not failures:
            failures.append(query)
            return QueryResult.failure("write failed", code="500")
        return await execute(query)

    monkeypatch.setattr(local, "execute", failing_user_insert)
    auth = started_container.user_auth("client-a")

    first = await auth.register(registration())
    assert first.outcome == AuthOutcome.REGISTRATION_FAILED
    assert not (await local.auth.sign_in_with_password("ada@example.com", "password123")).ok

    second = await auth.register(registration())
    assert second.success
    assert (await auth.login("ada@example.com", "password123")).success


def test_backend_url_without_key_is_rejected(settings, store, clock, hasher):
    settings.backend = BackendSettings(url="https://backend.example.com", anon_key=None, seed_demo_data=False)

    with pytest.raises(ConfigurationError):
        build_container(settings, store=store, clock=clock, hasher=hasher)
