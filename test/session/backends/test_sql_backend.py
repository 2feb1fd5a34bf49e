import pytest
import pytest_asyncio
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine

from session import SessionConfig, SessionManager
from session.backends import SqlSessionStore, create_store
from session.errors import ConfigurationError, SessionNotFound, StoreUnavailable
from session.models import SessionRecord

SESSION_ID = "e" * 64


@pytest_asyncio.fixture
async def sql_store(tmp_path, clock):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'sessions.db'}")
    store = SqlSessionStore(engine, owns_engine=True, clock=clock)
    yield store
    await store.close()


def make_record(clock, session_id=SESSION_ID, ttl_ms=1000, **data):
    return SessionRecord(id=session_id, data=data, created_at=clock.now, expires_at=clock.now + ttl_ms)


@pytest.mark.asyncio
async def test_put_then_get(sql_store, clock):
    record = make_record(clock, userId="123", roles=["admin"])
    await sql_store.put(SESSION_ID, record, 1000)

    assert await sql_store.get(SESSION_ID) == record


@pytest.mark.asyncio
async def test_put_overwrites(sql_store, clock):
    await sql_store.put(SESSION_ID, make_record(clock, v=1), 1000)
    await sql_store.put(SESSION_ID, make_record(clock, v=2), 1000)

    assert (await sql_store.get(SESSION_ID)).data == {"v": 2}


@pytest.mark.asyncio
async def test_get_missing(sql_store):
    assert await sql_store.get(SESSION_ID) is None


@pytest.mark.asyncio
async def test_expired_row_is_absent_and_removed(sql_store, clock):
    await sql_store.put(SESSION_ID, make_record(clock, ttl_ms=500), 500)
    clock.advance(500)

    assert await sql_store.get(SESSION_ID) is None
    assert await sql_store.purge_expired() == 0


@pytest.mark.asyncio
async def test_add_replace_and_tombstone(sql_store, clock):
    record = make_record(clock, v=1)
    assert await sql_store.replace(SESSION_ID, record, 1000) is False
    assert await sql_store.add(SESSION_ID, record, 1000) is True
    assert await sql_store.add(SESSION_ID, record, 1000) is False

    updated = record.model_copy(update={"data": {"v": 2}})
    assert await sql_store.replace(SESSION_ID, updated, 1000) is True
    assert (await sql_store.get(SESSION_ID)).data == {"v": 2}

    assert await sql_store.delete(SESSION_ID) is True
    assert await sql_store.delete(SESSION_ID) is False
    assert await sql_store.get(SESSION_ID) is None
    assert await sql_store.add(SESSION_ID, record, 1000) is False

    clock.advance(1000)
    assert await sql_store.add(SESSION_ID, make_record(clock), 1000) is True


@pytest.mark.asyncio
async def test_add_over_expired_row(sql_store, clock):
    await sql_store.put(SESSION_ID, make_record(clock, ttl_ms=100), 100)
    clock.advance(100)

    assert await sql_store.add(SESSION_ID, make_record(clock, v=3), 1000) is True
    assert (await sql_store.get(SESSION_ID)).data == {"v": 3}


@pytest.mark.asyncio
async def test_replace_does_not_revive_expired_row(sql_store, clock):
    record = make_record(clock, ttl_ms=100)
    await sql_store.put(SESSION_ID, record, 100)
    clock.advance(100)

    assert await sql_store.replace(SESSION_ID, record, 1000) is False
    assert await sql_store.delete(SESSION_ID) is False


@pytest.mark.asyncio
async def test_touch(sql_store, clock):
    await sql_store.put(SESSION_ID, make_record(clock), 1000)
    clock.advance(900)

    assert await sql_store.touch(SESSION_ID, 1000) is True
    clock.advance(900)

    stored = await sql_store.get(SESSION_ID)
    assert stored is not None
    assert stored.expires_at == clock.now - 900 + 1000
    assert await sql_store.touch("f" * 64, 1000) is False


@pytest.mark.asyncio
async def test_purge_and_clear(sql_store, clock):
    await sql_store.put("a" * 64, make_record(clock, session_id="a" * 64, ttl_ms=100), 100)
    await sql_store.put("b" * 64, make_record(clock, session_id="b" * 64, ttl_ms=10_000), 10_000)
    clock.advance(100)

    assert await sql_store.purge_expired() == 1

    await sql_store.delete("b" * 64)
    await sql_store.clear()
    assert await sql_store.add("b" * 64, make_record(clock, session_id="b" * 64), 1000) is True


@pytest.mark.asyncio
async def test_corrupted_row_is_store_unavailable(sql_store, clock):
    await sql_store.put(SESSION_ID, make_record(clock), 1000)
    async with sql_store.engine.begin() as conn:
        await conn.execute(text("UPDATE sessions SET data = '[1, 2]'"))

    with pytest.raises(StoreUnavailable, match="Corrupted"):
        await sql_store.get(SESSION_ID)


@pytest.mark.asyncio
async def test_unreachable_database_is_store_unavailable(tmp_path, clock):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'sessions.db'}")
    store = SqlSessionStore(engine, owns_engine=True, clock=clock)

    with pytest.raises(StoreUnavailable, match="Database error"):
        await store.get(SESSION_ID)
    await store.close()


@pytest.mark.asyncio
async def test_manager_flow_on_database_store(sql_store, clock):
    manager = SessionManager(SessionConfig(secret="s", max_age_ms=1000), store=sql_store)
    session = await manager.create_session({"userId": "123"})
    other = await manager.get_session(session.transport_value)

    await session.update({"theme": "dark"})
    await session.regenerate()
    assert (await manager.get_session(session.transport_value)).data == {"userId": "123", "theme": "dark"}

    with pytest.raises(SessionNotFound):
        await other.update({"theme": "light"})

    await session.destroy()
    assert await manager.get_session(session.transport_value) is None


@pytest.mark.asyncio
async def test_registry_builds_database_store(tmp_path):
    config = SessionConfig(secret="s", store="database", database_url=f"sqlite+aiosqlite:///{tmp_path / 's.db'}")

    store = create_store(config)

    assert isinstance(store, SqlSessionStore)
    assert store.owns_engine
    await store.close()


def test_registry_rejects_bad_database_url():
    with pytest.raises(ConfigurationError, match="database URL"):
        create_store(SessionConfig(secret="s", store="database", database_url="not a url"))
