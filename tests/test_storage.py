"""Tests for the key-value stores."""
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from kajopo.core.exceptions import StorageCorruptionError
from kajopo.database import init_db
from kajopo.storage import MemoryKeyValueStore, SQLKeyValueStore


@pytest_asyncio.fixture(params=["memory", "sql"])
async def any_store(request, tmp_path):
    """Each test runs against the in-memory store and a throwaway SQLite file."""
    if request.param == "memory":
        yield MemoryKeyValueStore()
        return

    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'storage.db'}")
    await init_db(engine)
    yield SQLKeyValueStore(async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False))
    await engine.dispose()


async def test_set_get_remove(any_store):
    await any_store.set("greeting", "ẹ kú àárọ̀")
    assert await any_store.get("greeting") == "ẹ kú àárọ̀"

    await any_store.set("greeting", "hello")
    assert await any_store.get("greeting") == "hello"

    assert await any_store.remove("greeting") is True
    assert await any_store.get("greeting") is None
    assert await any_store.remove("greeting") is False


async def test_keys_by_prefix(any_store):
    for key in ("client:a:x", "client:b:y", "lockout:z", "client_%:odd"):
        await any_store.set(key, "1")

    assert await any_store.keys("client:") == ["client:a:x", "client:b:y"]
    assert len(await any_store.keys()) == 4


async def test_json_helpers(any_store):
    await any_store.set_json("doc", {"roles": ["admin"], "count": 2})
    assert await any_store.get_json("doc") == {"roles": ["admin"], "count": 2}
    assert await any_store.get_json("missing", []) == []

    await any_store.set("doc", "{oops")
    with pytest.raises(StorageCorruptionError):
        await any_store.get_json("doc")


async def test_namespaces_prefix_keys(any_store):
    client = any_store.namespace("client:abc")
    await client.set("kajopo_session", "token")

    assert await any_store.get("client:abc:kajopo_session") == "token"
    assert await client.keys() == ["kajopo_session"]
    assert await any_store.namespace("client:other").get("kajopo_session") is None


async def test_change_events(any_store):
    events = []
    unsubscribe = any_store.subscribe(events.append)
    client = any_store.namespace("client:abc")

    await client.set("kajopo_session", "one")
    await client.set("kajopo_session", "two")
    await client.remove("kajopo_session")
    unsubscribe()
    await client.set("kajopo_session", "three")

    assert [(e.key, e.old_value, e.new_value) for e in events] == [
        ("client:abc:kajopo_session", None, "one"),
        ("client:abc:kajopo_session", "one", "two"),
        ("client:abc:kajopo_session", "two", None),
    ]


async def test_failing_listener_does_not_break_writes(any_store):
    def explode(event):
        raise RuntimeError("listener failure")

    any_store.subscribe(explode)
    await any_store.set("key", "value")
    assert await any_store.get("key") == "value"
