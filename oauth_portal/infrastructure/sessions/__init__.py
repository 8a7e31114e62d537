from oauth_portal.core.config import PortalSettings
from oauth_portal.infrastructure.sessions.base import SessionStore, SessionStoreError
from oauth_portal.infrastructure.sessions.memory_store import MemorySessionStore
from oauth_portal.infrastructure.sessions.models import SessionRecord
from oauth_portal.infrastructure.sessions.redis_store import RedisSessionStore


def build_session_store(settings: PortalSettings) -> SessionStore:
    if settings.SESSION_STORE_URL.strip():
        return RedisSessionStore(
            redis_url=settings.SESSION_STORE_URL.strip(),
            key_prefix=settings.SESSION_KEY_PREFIX,
            index_ttl_seconds=settings.SESSION_MAX_AGE_SECONDS,
        )
    return MemorySessionStore()


__all__ = [
    "MemorySessionStore",
    "RedisSessionStore",
    "SessionRecord",
    "SessionStore",
    "SessionStoreError",
    "build_session_store",
]
