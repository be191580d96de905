"""Tests for role permissions."""
import pytest

from kajopo.core.permissions import ADMIN_ROLES, DEFAULT_ROLE_PERMISSIONS, PermissionResolver, Role
from kajopo.core.session import SessionRecord


@pytest.fixture
def resolver():
    return PermissionResolver()


def account(role, **extra):
    return dict({"id": "acc", "email": "x@example.com", "role": role}, **extra)


@pytest.mark.parametrize("role,expected", [
    ("super_admin", {"users", "opportunities", "applications", "analytics", "settings", "admin_management"}),
    ("admin", {"users", "opportunities", "applications", "analytics"}),
    ("moderator", {"opportunities", "applications"}),
    ("provider", {"messaging", "post_opportunities"}),
    ("seeker", {"messaging", "apply"}),
])
def test_role_defaults(resolver, role, expected):
    assert set(resolver.permissions_for(account(role))) == expected


def test_unknown_role_has_nothing(resolver):
    assert resolver.permissions_for(account("visitor")) == ()
    assert not resolver.has_permission(account("visitor"), "apply")


def test_no_session_has_nothing(resolver):
    assert resolver.permissions_for(None) == ()
    assert not resolver.has_any(None, ["users"])


def test_override_replaces_role_defaults(resolver):
    custom = account("admin", permissions=["analytics"])
    assert resolver.permissions_for(custom) == ("analytics",)
    assert not resolver.has_permission(custom, "users")


def test_empty_override_removes_everything(resolver):
    assert resolver.permissions_for(account("super_admin", permissions=[])) == ()


def test_empty_token_lists(resolver):
    admin = account("admin")
    assert resolver.has_any(admin, []) is False
    assert resolver.has_all(admin, []) is True


def test_any_and_all(resolver):
    moderator = account("moderator")
    assert resolver.has_any(moderator, ["users", "applications"])
    assert not resolver.has_all(moderator, ["users", "applications"])
    assert resolver.has_all(moderator, ["opportunities", "applications"])


def test_super_admin_holds_every_admin_permission(resolver):
    super_admin = set(resolver.permissions_for(account("super_admin")))
    for role in ADMIN_ROLES:
        assert set(DEFAULT_ROLE_PERMISSIONS[role]) <= super_admin


def test_works_with_session_records(resolver, clock):
    now = clock.now()
    record = SessionRecord(
        account=account("moderator"),
        scope="admin",
        created_at=now,
        issued_at=now,
        expires_at=now,
        session_id="admin_test",
    )
    assert resolver.has_permission(record, "applications")
    assert not resolver.has_permission(record, "users")


def test_custom_role_table():
    resolver = PermissionResolver({"auditor": ["analytics"]})
    assert resolver.has_permission(account("auditor"), "analytics")
    assert resolver.permissions_for(account("admin")) == ()


def test_role_names():
    assert PermissionResolver.role_name(Role.SUPER_ADMIN.value) == "Super Administrator"
    assert PermissionResolver.role_name("visitor") == "visitor"


def test_granting_more_tokens_never_revokes(resolver):
    """Adding tokens to every role keeps every previously granted check true."""
    all_tokens = {token for tokens in DEFAULT_ROLE_PERMISSIONS.values() for token in tokens}
    extra = ["reports", "exports"]
    wider = PermissionResolver({
        role: list(tokens) + extra + sorted(all_tokens - set(tokens))[:2]
        for role, tokens in DEFAULT_ROLE_PERMISSIONS.items()
    })

    for role in DEFAULT_ROLE_PERMISSIONS:
        before = account(role)
        for token in all_tokens | set(extra):
            if resolver.has_permission(before, token):
                assert wider.has_permission(before, token)
        granted = list(resolver.permissions_for(before))
        assert wider.has_all(before, granted)
        if granted:
            assert wider.has_any(before, granted)
        assert set(granted) < set(wider.permissions_for(before))
