from __future__ import annotations

import logging
from datetime import datetime, timezone

from pydantic import ValidationError
from redis.asyncio import Redis
from redis.exceptions import RedisError

from oauth_portal.infrastructure.sessions.base import SessionStore, SessionStoreError
from oauth_portal.infrastructure.sessions.models import SessionRecord

logger = logging.getLogger(__name__)


class RedisSessionStore(SessionStore):
    """Redis-backed sessions with a per-user set of live session ids."""

    def __init__(
        self,
        *,
        redis_url: str,
        key_prefix: str,
        index_ttl_seconds: int,
        client: Redis | None = None,
    ):
        self.redis_url = redis_url
        self.key_prefix = key_prefix.rstrip(":")
        self.index_ttl_seconds = max(1, int(index_ttl_seconds))
        self._redis = client

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    async def ping(self) -> bool:
        try:
            client = await self._client()
            return bool(await client.ping())
        except (RedisError, OSError):
            return False

    async def get(self, session_id: str) -> SessionRecord | None:
        try:
            client = await self._client()
            raw = await client.get(self._session_key(session_id))
        except (RedisError, OSError) as exc:
            raise SessionStoreError("read", f"Session read failed: {exc}") from exc
        if raw is None:
            return None
        try:
            record = SessionRecord.model_validate_json(raw)
        except ValidationError:
            logger.warning("Discarding unreadable session payload")
            return None
        if record.is_expired(_now()):
            return None
        return record

    async def save(self, record: SessionRecord) -> None:
        ttl = max(1, record.remaining_seconds(_now()))
        try:
            client = await self._client()
            pipe = client.pipeline()
            pipe.set(self._session_key(record.session_id), record.model_dump_json(), ex=ttl)
            if record.user_key:
                index_key = self._user_key(record.user_key)
                pipe.sadd(index_key, record.session_id)
                pipe.expire(index_key, max(ttl, self.index_ttl_seconds))
            await pipe.execute()
        except (RedisError, OSError) as exc:
            raise SessionStoreError("write", f"Session write failed: {exc}") from exc

    async def destroy(self, session_id: str) -> bool:
        session_key = self._session_key(session_id)
        try:
            client = await self._client()
            user_key = _user_key_of(await client.get(session_key))
            pipe = client.pipeline()
            pipe.delete(session_key)
            if user_key:
                pipe.srem(self._user_key(user_key), session_id)
            results = await pipe.execute()
        except (RedisError, OSError) as exc:
            raise SessionStoreError("delete", f"Session delete failed: {exc}") from exc
        return bool(results and results[0])

    async def unbind_user(self, session_id: str, user_key: str) -> None:
        session_key = self._session_key(session_id)
        try:
            client = await self._client()
            raw = await client.get(session_key)
            pipe = client.pipeline(transaction=True)
            anonymous = _anonymous_payload(raw)
            if anonymous is not None:
                pipe.set(session_key, anonymous, keepttl=True)
            elif raw is not None:
                pipe.delete(session_key)
            pipe.srem(self._user_key(user_key), session_id)
            await pipe.execute()
        except (RedisError, OSError) as exc:
            raise SessionStoreError("unbind", f"Session unbind failed: {exc}") from exc

    async def list_user_sessions(self, user_key: str) -> list[str]:
        index_key = self._user_key(user_key)
        try:
            client = await self._client()
            session_ids = sorted(await client.smembers(index_key))
            if not session_ids:
                return []
            pipe = client.pipeline()
            for session_id in session_ids:
                pipe.exists(self._session_key(session_id))
            exists = await pipe.execute()
            stale = [sid for sid, alive in zip(session_ids, exists) if not alive]
            if stale:
                await client.srem(index_key, *stale)
        except (RedisError, OSError) as exc:
            raise SessionStoreError("read", f"Session index read failed: {exc}") from exc
        return [sid for sid, alive in zip(session_ids, exists) if alive]

    async def destroy_user_sessions(self, user_key: str) -> int:
        index_key = self._user_key(user_key)
        try:
            client = await self._client()
            session_ids = await client.smembers(index_key)
            if not session_ids:
                return 0
            pipe = client.pipeline(transaction=True)
            pipe.delete(*(self._session_key(sid) for sid in session_ids))
            pipe.delete(index_key)
            results = await pipe.execute()
        except (RedisError, OSError) as exc:
            raise SessionStoreError("delete", f"Bulk session delete failed: {exc}") from exc
        return int(results[0] or 0)

    def _session_key(self, session_id: str) -> str:
        return f"{self.key_prefix}:{session_id}"

    def _user_key(self, user_key: str) -> str:
        return f"{self.key_prefix}:user:{user_key}"

    async def _client(self) -> Redis:
        if self._redis is None:
            self._redis = Redis.from_url(self.redis_url, decode_responses=True)
        return self._redis


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _anonymous_payload(raw: str | None) -> str | None:
    if raw is None:
        return None
    try:
        return SessionRecord.model_validate_json(raw).anonymous().model_dump_json()
    except ValidationError:
        logger.warning("Discarding unreadable session payload on unbind")
        return None


def _user_key_of(raw: str | None) -> str | None:
    if raw is None:
        return None
    try:
        return SessionRecord.model_validate_json(raw).user_key
    except ValidationError:
        return None
