from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from oauth_portal.infrastructure.sessions.models import SessionRecord


class SessionStoreError(RuntimeError):
    """A session store read, write or delete failed."""

    def __init__(self, operation: str, message: str):
        super().__init__(message)
        self.operation = operation


class SessionStore(ABC):
    """Persistence for session records, keyed by the opaque cookie value.

    Authenticated sessions are also indexed by ``user_key`` so that every
    session of one user can be invalidated together.
    """

    @abstractmethod
    async def get(self, session_id: str) -> SessionRecord | None:
        """Return the live record or ``None`` when missing or expired."""

    @abstractmethod
    async def save(self, record: SessionRecord) -> None:
        """Insert or replace ``record``; its TTL follows ``record.expires_at``."""

    @abstractmethod
    async def destroy(self, session_id: str) -> bool:
        """Delete one record. Returns whether a record existed."""

    @abstractmethod
    async def unbind_user(self, session_id: str, user_key: str) -> None:
        """Strip the user from ``session_id`` and drop it from the index of ``user_key``.

        The record itself survives, anonymous, until ``destroy`` removes it.
        """

    @abstractmethod
    async def list_user_sessions(self, user_key: str) -> list[str]:
        """Live session ids currently indexed under ``user_key``."""

    @abstractmethod
    async def destroy_user_sessions(self, user_key: str) -> int:
        """Delete every session indexed under ``user_key``. Returns the count removed."""

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None
