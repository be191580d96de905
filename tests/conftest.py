"""Test configuration and fixtures."""
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from kajopo.config.settings import (
    AdminBootstrapSettings,
    BackendSettings,
    Settings,
    SessionSettings,
)
from kajopo.core.clock import Clock
from kajopo.core.container import build_container
from kajopo.core.passwords import PasswordHasher
from kajopo.main import create_app
from kajopo.storage.memory import MemoryKeyValueStore

ADMIN_EMAIL = "admin@kajopo.org"
ADMIN_PASSWORD = "AdminPass123!"


class FakeClock(Clock):
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = None):
        self.current = start or datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return MemoryKeyValueStore()


@pytest.fixture(scope="session")
def hasher():
    """Low-cost bcrypt so the suite stays fast."""
    return PasswordHasher(rounds=4)


@pytest.fixture
def settings():
    return Settings(
        debug=True,
        backend=BackendSettings(url=None, anon_key=None, seed_demo_data=False),
        session=SessionSettings(secret_key="test-secret", monitor_enabled=False),
        admin=AdminBootstrapSettings(email=ADMIN_EMAIL, password=ADMIN_PASSWORD),
    )


@pytest.fixture
def container(settings, store, clock, hasher):
    return build_container(settings, store=store, clock=clock, hasher=hasher)


@pytest_asyncio.fixture
async def started_container(container):
    """Container with the backend probed and the bootstrap admin created."""
    await container.startup()
    yield container
    await container.shutdown()


@pytest.fixture
def client(container):
    """Create test client over an in-memory container."""
    app = create_app(container=container)
    with TestClient(app) as test_client:
        yield test_client


def _registration(email: str = "ada@example.com", role: str = "seeker", **overrides):
    data = {
        "email": email,
        "password": "password123",
        "first_name": "Ada",
        "last_name": "Okafor",
        "role": role,
    }
    data.update(overrides)
    return data


@pytest.fixture
def registration():
    """Factory for valid registration payloads."""
    return _registration
