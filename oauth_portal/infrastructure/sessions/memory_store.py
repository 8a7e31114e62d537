from __future__ import annotations

import asyncio
from collections import defaultdict
from datetime import datetime, timezone

from oauth_portal.infrastructure.sessions.base import SessionStore
from oauth_portal.infrastructure.sessions.models import SessionRecord


class MemorySessionStore(SessionStore):
    """Process-local store used when no ``SESSION_STORE_URL`` is configured.

    Records are kept as serialized JSON so reads never share mutable state with
    callers, mirroring what a networked store returns.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._records: dict[str, str] = {}
        self._user_index: dict[str, set[str]] = defaultdict(set)

    async def get(self, session_id: str) -> SessionRecord | None:
        async with self._lock:
            raw = self._records.get(session_id)
            if raw is None:
                return None
            record = SessionRecord.model_validate_json(raw)
            if record.is_expired(_now()):
                self._drop(session_id, record.user_key)
                return None
            return record

    async def save(self, record: SessionRecord) -> None:
        async with self._lock:
            previous = self._records.get(record.session_id)
            if previous is not None:
                previous_key = SessionRecord.model_validate_json(previous).user_key
                if previous_key and previous_key != record.user_key:
                    self._user_index[previous_key].discard(record.session_id)
            self._records[record.session_id] = record.model_dump_json()
            if record.user_key:
                self._user_index[record.user_key].add(record.session_id)

    async def destroy(self, session_id: str) -> bool:
        async with self._lock:
            raw = self._records.get(session_id)
            if raw is None:
                return False
            self._drop(session_id, SessionRecord.model_validate_json(raw).user_key)
            return True

    async def unbind_user(self, session_id: str, user_key: str) -> None:
        async with self._lock:
            raw = self._records.get(session_id)
            if raw is not None:
                record = SessionRecord.model_validate_json(raw)
                self._records[session_id] = record.anonymous().model_dump_json()
            sessions = self._user_index.get(user_key)
            if sessions is not None:
                sessions.discard(session_id)
                if not sessions:
                    del self._user_index[user_key]

    async def list_user_sessions(self, user_key: str) -> list[str]:
        async with self._lock:
            self._prune_user(user_key)
            return sorted(self._user_index.get(user_key, ()))

    async def destroy_user_sessions(self, user_key: str) -> int:
        async with self._lock:
            self._prune_user(user_key)
            session_ids = self._user_index.pop(user_key, set())
            for session_id in session_ids:
                self._records.pop(session_id, None)
            return len(session_ids)

    def _drop(self, session_id: str, user_key: str | None) -> None:
        self._records.pop(session_id, None)
        if user_key and user_key in self._user_index:
            self._user_index[user_key].discard(session_id)
            if not self._user_index[user_key]:
                del self._user_index[user_key]

    def _prune_user(self, user_key: str) -> None:
        now = _now()
        for session_id in list(self._user_index.get(user_key, ())):
            raw = self._records.get(session_id)
            if raw is None or SessionRecord.model_validate_json(raw).is_expired(now):
                self._drop(session_id, user_key)


def _now() -> datetime:
    return datetime.now(timezone.utc)
