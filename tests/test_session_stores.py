from datetime import timedelta

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from oauth_portal.core.security import new_session_id, utc_now
from oauth_portal.domain.identity import DiscordUser, GoogleUser
from oauth_portal.infrastructure.sessions import (
    MemorySessionStore,
    RedisSessionStore,
    SessionRecord,
    SessionStoreError,
    build_session_store,
)

from conftest import make_settings


def _record(user=None, *, ttl_seconds: int = 3600) -> SessionRecord:
    now = utc_now()
    return SessionRecord(
        session_id=new_session_id(),
        created_at=now,
        touched_at=now,
        expires_at=now + timedelta(seconds=ttl_seconds),
        user=user,
        login_time=now if user is not None else None,
    )


@pytest.mark.asyncio
async def test_memory_store_round_trips_the_user_variant():
    store = MemorySessionStore()
    record = _record(DiscordUser(id="7", name="nelly", discriminator="1337"))

    await store.save(record)
    loaded = await store.get(record.session_id)

    assert isinstance(loaded.user, DiscordUser)
    assert loaded.user.tag == "nelly#1337"
    assert await store.list_user_sessions("discord:7") == [record.session_id]


@pytest.mark.asyncio
async def test_memory_store_hides_expired_records():
    store = MemorySessionStore()
    record = _record(GoogleUser(id="1", name="Ada"), ttl_seconds=-1)

    await store.save(record)

    assert await store.get(record.session_id) is None
    assert await store.list_user_sessions("google:1") == []


@pytest.mark.asyncio
async def test_unbind_user_leaves_an_anonymous_record():
    store = MemorySessionStore()
    record = _record(GoogleUser(id="1", name="Ada"))
    await store.save(record)

    await store.unbind_user(record.session_id, "google:1")

    loaded = await store.get(record.session_id)
    assert loaded is not None
    assert loaded.user is None
    assert await store.list_user_sessions("google:1") == []


@pytest.mark.asyncio
async def test_destroy_reports_whether_a_record_existed():
    store = MemorySessionStore()
    record = _record(GoogleUser(id="1", name="Ada"))
    await store.save(record)

    assert await store.destroy(record.session_id) is True
    assert await store.destroy(record.session_id) is False
    assert await store.list_user_sessions("google:1") == []


@pytest.mark.asyncio
async def test_destroy_user_sessions_only_touches_that_user():
    store = MemorySessionStore()
    ada = GoogleUser(id="1", name="Ada")
    mine = [_record(ada) for _ in range(3)]
    other = _record(GoogleUser(id="2", name="Grace"))
    anonymous = _record()
    for record in (*mine, other, anonymous):
        await store.save(record)

    assert await store.destroy_user_sessions("google:1") == 3

    for record in mine:
        assert await store.get(record.session_id) is None
    assert await store.get(other.session_id) is not None
    assert await store.get(anonymous.session_id) is not None


@pytest.mark.asyncio
async def test_rebinding_a_session_moves_it_between_indexes():
    store = MemorySessionStore()
    record = _record(GoogleUser(id="1", name="Ada"))
    await store.save(record)

    await store.save(record.model_copy(update={"user": GoogleUser(id="2", name="Grace")}))

    assert await store.list_user_sessions("google:1") == []
    assert await store.list_user_sessions("google:2") == [record.session_id]


class _UnreachableRedis:
    async def get(self, *args, **kwargs):
        raise RedisConnectionError("connection refused")

    async def smembers(self, *args, **kwargs):
        raise RedisConnectionError("connection refused")

    async def ping(self):
        raise RedisConnectionError("connection refused")

    async def aclose(self):
        return None


def _redis_store() -> RedisSessionStore:
    return RedisSessionStore(
        redis_url="redis://localhost:6399/0",
        key_prefix="test:sess:",
        index_ttl_seconds=60,
        client=_UnreachableRedis(),
    )


@pytest.mark.asyncio
async def test_redis_store_maps_connection_errors_to_store_errors():
    store = _redis_store()

    with pytest.raises(SessionStoreError) as read_error:
        await store.get("abc")
    with pytest.raises(SessionStoreError) as unbind_error:
        await store.unbind_user("abc", "google:1")
    with pytest.raises(SessionStoreError) as bulk_error:
        await store.destroy_user_sessions("google:1")
    with pytest.raises(SessionStoreError) as delete_error:
        await store.destroy("abc")

    assert read_error.value.operation == "read"
    assert unbind_error.value.operation == "unbind"
    assert bulk_error.value.operation == "delete"
    assert delete_error.value.operation == "delete"


@pytest.mark.asyncio
async def test_redis_store_ping_reports_unavailable():
    assert await _redis_store().ping() is False


def test_redis_store_key_layout():
    store = _redis_store()

    assert store._session_key("abc") == "test:sess:abc"
    assert store._user_key("google:1") == "test:sess:user:google:1"


def test_store_selection_follows_store_url():
    assert isinstance(build_session_store(make_settings(SESSION_STORE_URL="")), MemorySessionStore)
    assert isinstance(
        build_session_store(make_settings(SESSION_STORE_URL="redis://localhost:6379/1")),
        RedisSessionStore,
    )
