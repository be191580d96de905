"""Tests for the account, opportunity and messaging services."""
import pytest
import pytest_asyncio

from kajopo.backend import LocalBackend
from kajopo.core.activity import ActivityLog
from kajopo.core.exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from kajopo.core.permissions import PermissionResolver
from kajopo.services.accounts import AccountService, display_name
from kajopo.services.messaging import MessagingService
from kajopo.services.opportunities import OpportunityService


@pytest.fixture
def backend(store, hasher, clock):
    return LocalBackend(store, hasher, clock=clock)


@pytest.fixture
def activity_log(store, clock):
    return ActivityLog(store, clock=clock)


@pytest.fixture
def accounts(backend, activity_log, clock):
    return AccountService(backend, activity_log=activity_log, clock=clock)


@pytest.fixture
def opportunities(backend, activity_log, clock):
    return OpportunityService(backend, PermissionResolver(), activity_log=activity_log, clock=clock)


async def insert_user(backend, clock, email, role, **extra):
    row = {
        "email": email,
        "first_name": email.split("@")[0].title(),
        "last_name": "Test",
        "role": role,
        "is_verified": False,
        "created_at": clock.now().isoformat(),
    }
    row.update(extra)
    clock.advance(seconds=1)
    return (await backend.table("users").insert(row).execute()).first()


def test_display_name():
    assert display_name({"name": "Ngozi A."}) == "Ngozi A."
    assert display_name({"first_name": "Ngozi", "last_name": "Eze"}) == "Ngozi Eze"
    assert display_name({"email": "n@example.com"}) == "n@example.com"


async def test_list_users_filters_and_sorts(accounts, backend, clock):
    await insert_user(backend, clock, "zara@example.com", "seeker", is_verified=True)
    await insert_user(backend, clock, "ade@example.com", "provider", password_hash="secret")
    await insert_user(backend, clock, "mod@example.com", "moderator", is_verified=True)

    newest_first = await accounts.list_users()
    assert [u["email"] for u in newest_first] == ["mod@example.com", "ade@example.com", "zara@example.com"]
    assert all("password_hash" not in u for u in newest_first)

    assert [u["email"] for u in await accounts.list_users(search="ZARA")] == ["zara@example.com"]
    assert [u["email"] for u in await accounts.list_users(status="pending")] == ["ade@example.com"]
    assert [u["email"] for u in await accounts.list_users(role="moderator")] == ["mod@example.com"]
    by_email = await accounts.list_users(sort="email")
    assert [u["email"] for u in by_email] == ["ade@example.com", "mod@example.com", "zara@example.com"]


async def test_get_user_missing(accounts):
    with pytest.raises(NotFoundError):
        await accounts.get_user("nobody")


async def test_update_role(accounts, backend, clock, activity_log):
    target = await insert_user(backend, clock, "ade@example.com", "seeker")
    super_admin = {"id": "root", "email": "root@example.com", "role": "super_admin"}

    updated = await accounts.update_role(target["id"], "moderator", super_admin)

    assert updated["role"] == "moderator"
    assert (await activity_log.entries())[0].action == "user_role_changed"


async def test_update_role_rejects_unknown_role(accounts, backend, clock):
    target = await insert_user(backend, clock, "ade@example.com", "seeker")
    with pytest.raises(ValidationError):
        await accounts.update_role(target["id"], "overlord", {"role": "super_admin"})


async def test_only_super_admin_grants_admin_roles(accounts, backend, clock):
    target = await insert_user(backend, clock, "ade@example.com", "seeker")
    admin = {"id": "a1", "email": "admin@example.com", "role": "admin"}

    with pytest.raises(AuthorizationError):
        await accounts.update_role(target["id"], "admin", admin)
    assert (await accounts.update_role(target["id"], "provider", admin))["role"] == "provider"


async def test_confirm_user(accounts, backend, clock):
    target = await insert_user(backend, clock, "ade@example.com", "seeker")

    confirmed = await accounts.confirm_user(target["id"], {"email": "admin@example.com"})

    assert confirmed["is_verified"] is True


async def test_delete_user(accounts, backend, clock, activity_log):
    target = await insert_user(backend, clock, "ade@example.com", "seeker")
    actor = {"id": "a1", "email": "admin@example.com", "role": "admin"}

    await accounts.delete_user(target["id"], actor)

    with pytest.raises(NotFoundError):
        await accounts.get_user(target["id"])
    assert (await activity_log.entries())[0].action == "user_deleted"


async def test_cannot_delete_self(accounts, backend, clock):
    target = await insert_user(backend, clock, "ade@example.com", "admin")
    with pytest.raises(ValidationError):
        await accounts.delete_user(target["id"], target)


async def test_stats(accounts, backend, clock):
    await insert_user(backend, clock, "a@example.com", "seeker", is_verified=True)
    await insert_user(backend, clock, "b@example.com", "seeker")
    await insert_user(backend, clock, "c@example.com", "provider")
    await insert_user(backend, clock, "d@example.com", "super_admin", is_verified=True)

    assert await accounts.stats() == {
        "total": 4,
        "seekers": 2,
        "providers": 1,
        "admins": 1,
        "confirmed": 2,
        "pending": 2,
    }


async def test_ensure_default_admin_runs_once(accounts, hasher):
    assert await accounts.ensure_default_admin("Root@Kajopo.org", "RootPass123!", hasher) is True
    assert await accounts.ensure_default_admin("root@kajopo.org", "other", hasher) is False

    admin = await accounts.find_by_email("root@kajopo.org")
    assert admin["role"] == "super_admin"
    assert hasher.verify_password("RootPass123!", admin["password_hash"])


@pytest_asyncio.fixture
async def provider(backend, clock):
    return await insert_user(backend, clock, "fatima@ngo.org", "provider", organization="Hope Foundation")


@pytest_asyncio.fixture
async def seeker(backend, clock):
    return await insert_user(backend, clock, "tunde@example.com", "seeker")


async def test_create_opportunity(opportunities, provider):
    created = await opportunities.create_opportunity({"title": "Mentorship", "category": "Education"}, provider)

    assert created["created_by"] == provider["id"]
    assert created["organization"] == "Hope Foundation"
    assert created["status"] == "active"
    assert created["applicants"] == 0


async def test_seekers_cannot_post(opportunities, seeker):
    with pytest.raises(AuthorizationError):
        await opportunities.create_opportunity({"title": "Nope"}, seeker)


async def test_only_owner_or_moderator_manages(opportunities, provider, backend, clock):
    created = await opportunities.create_opportunity({"title": "Mentorship"}, provider)
    other = await insert_user(backend, clock, "other@ngo.org", "provider")
    moderator = await insert_user(backend, clock, "mod@example.com", "moderator")

    with pytest.raises(AuthorizationError):
        await opportunities.update_opportunity(created["id"], {"title": "Taken"}, other)

    updated = await opportunities.update_opportunity(created["id"], {"status": "closed"}, moderator)
    assert updated["status"] == "closed"

    with pytest.raises(ValidationError):
        await opportunities.update_opportunity(created["id"], {"status": "archived"}, provider)

    await opportunities.delete_opportunity(created["id"], provider)
    with pytest.raises(NotFoundError):
        await opportunities.get_opportunity(created["id"])


async def test_list_opportunities_filters(opportunities, provider):
    await opportunities.create_opportunity({"title": "Health Grant", "category": "Health", "type": "Grants"}, provider)
    await opportunities.create_opportunity({"title": "Code Fellowship", "category": "Education", "type": "Fellowships"}, provider)
    closed = await opportunities.create_opportunity({"title": "Old Grant", "category": "Health"}, provider)
    await opportunities.update_opportunity(closed["id"], {"status": "closed"}, provider)

    assert [o["title"] for o in await opportunities.list_opportunities(category="Health")] == ["Health Grant"]
    assert [o["title"] for o in await opportunities.list_opportunities(opportunity_type="Fellowships")] == ["Code Fellowship"]
    assert [o["title"] for o in await opportunities.list_opportunities(search="grant", status=None, sort="alphabetical")] == [
        "Health Grant",
        "Old Grant",
    ]


async def test_apply_once(opportunities, provider, seeker):
    created = await opportunities.create_opportunity({"title": "Mentorship"}, provider)

    application = await opportunities.apply(created["id"], seeker, "I would love to join.")

    assert application["status"] == "pending"
    assert application["applicant_id"] == seeker["id"]
    assert (await opportunities.get_opportunity(created["id"]))["applicants"] == 1
    assert [a["id"] for a in await opportunities.applications_for(seeker["id"])] == [application["id"]]

    with pytest.raises(ConflictError):
        await opportunities.apply(created["id"], seeker)


async def test_providers_cannot_apply(opportunities, provider):
    created = await opportunities.create_opportunity({"title": "Mentorship"}, provider)
    with pytest.raises(AuthorizationError):
        await opportunities.apply(created["id"], provider)


async def test_closed_opportunity_refuses_applications(opportunities, provider, seeker):
    created = await opportunities.create_opportunity({"title": "Mentorship", "status": "closed"}, provider)
    with pytest.raises(ValidationError):
        await opportunities.apply(created["id"], seeker)


async def test_update_application_status(opportunities, provider, seeker, activity_log):
    created = await opportunities.create_opportunity({"title": "Mentorship"}, provider)
    application = await opportunities.apply(created["id"], seeker)
    reviewer = {"email": "mod@example.com", "role": "moderator"}

    accepted = await opportunities.update_application_status(application["id"], "accepted", reviewer)

    assert accepted["status"] == "accepted"
    assert [a["id"] for a in await opportunities.list_applications(status="accepted")] == [application["id"]]
    assert (await activity_log.entries())[0].action == "application_status_changed"

    with pytest.raises(ValidationError):
        await opportunities.update_application_status(application["id"], "maybe", reviewer)
    with pytest.raises(NotFoundError):
        await opportunities.update_application_status("missing", "accepted", reviewer)


async def test_conversations_are_deduplicated(backend, clock, provider, seeker):
    messaging = MessagingService(backend, seeker, clock=clock)

    first = await messaging.create_conversation([provider["id"]])
    again = await messaging.create_conversation([provider["id"], seeker["id"]])

    assert first["id"] == again["id"]
    assert first["title"] == "Fatima Test"
    assert set(first["participants"]) == {seeker["id"], provider["id"]}


async def test_conversation_needs_another_participant(backend, clock, seeker):
    with pytest.raises(ValidationError):
        await MessagingService(backend, seeker, clock=clock).create_conversation([seeker["id"]])


async def test_only_participants_read_a_conversation(backend, clock, provider, seeker):
    conversation = await MessagingService(backend, seeker, clock=clock).create_conversation([provider["id"]])
    outsider = await insert_user(backend, clock, "eve@example.com", "seeker")

    with pytest.raises(AuthorizationError):
        await MessagingService(backend, outsider, clock=clock).messages(conversation["id"])


async def test_send_and_read_messages(backend, clock, provider, seeker):
    from_seeker = MessagingService(backend, seeker, clock=clock)
    from_provider = MessagingService(backend, provider, clock=clock)
    conversation = await from_seeker.create_conversation([provider["id"]])

    sent = await from_seeker.send_message(conversation["id"], "Ẹ káàsán! Is the grant still open?")

    assert sent["sender_name"] == "Tunde Test"
    assert (await from_seeker.get_conversation(conversation["id"]))["last_message"]["content"] == sent["content"]
    assert await from_provider.unread_count() == 1
    assert await from_seeker.unread_count() == 0

    assert await from_provider.mark_read(conversation["id"]) == 1
    assert await from_provider.unread_count(conversation["id"]) == 0
    assert await from_provider.mark_read(conversation["id"]) == 0

    with pytest.raises(ValidationError):
        await from_seeker.send_message(conversation["id"], "   ")


@pytest.mark.parametrize("current_role", ["super_admin", "admin", "moderator"])
async def test_only_super_admin_changes_admin_roles(accounts, backend, clock, current_role):
    target = await insert_user(backend, clock, "lead@example.com", current_role)
    admin = {"id": "a1", "email": "admin@example.com", "role": "admin"}

    with pytest.raises(AuthorizationError):
        await accounts.update_role(target["id"], "seeker", admin)
    assert (await accounts.get_user(target["id"]))["role"] == current_role

    super_admin = {"id": "root", "email": "root@example.com", "role": "super_admin"}
    assert (await accounts.update_role(target["id"], "seeker", super_admin))["role"] == "seeker"
