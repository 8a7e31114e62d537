from __future__ import annotations

from datetime import datetime, timedelta

from pydantic import BaseModel

from oauth_portal.domain.identity import AuthenticatedUser


class SessionRecord(BaseModel):
    session_id: str
    created_at: datetime
    expires_at: datetime
    touched_at: datetime
    user: AuthenticatedUser | None = None
    login_time: datetime | None = None
    pending_redirect: str | None = None
    oauth_nonce: str | None = None
    oauth_provider: str | None = None
    user_agent: str | None = None
    ip_address: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    @property
    def user_key(self) -> str | None:
        return self.user.user_key if self.user is not None else None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

    def remaining_seconds(self, now: datetime) -> int:
        return max(0, int((self.expires_at - now).total_seconds()))

    def anonymous(self) -> "SessionRecord":
        return self.model_copy(update={"user": None, "login_time": None})

    def extended(self, now: datetime, max_age_seconds: int) -> "SessionRecord":
        return self.model_copy(
            update={
                "touched_at": now,
                "expires_at": now + timedelta(seconds=max_age_seconds),
            }
        )
