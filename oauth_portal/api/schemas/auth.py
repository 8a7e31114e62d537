from __future__ import annotations

from datetime import datetime

from oauth_portal.api.schemas.common import ApiModel


class UserSummary(ApiModel):
    id: str
    provider: str
    name: str
    email: str | None = None
    avatar: str | None = None


class MeUser(UserSummary):
    authenticated_at: datetime | None = None
    discriminator: str | None = None
    tag: str | None = None


class MeSession(ApiModel):
    id: str
    is_authenticated: bool
    max_age_seconds: int


class MeResponse(ApiModel):
    success: bool = True
    user: MeUser
    session: MeSession


class UserResponseBody(UserSummary):
    email_verified: bool | None = None
    locale: str | None = None
    discriminator: str | None = None
    global_name: str | None = None
    tag: str | None = None


class UserResponse(ApiModel):
    success: bool = True
    user: UserResponseBody


class SessionInfo(ApiModel):
    id: str
    login_time: datetime | None = None
    user_agent: str | None = None
    ip: str | None = None


class ProfilePermissions(ApiModel):
    can_read: bool = True
    can_write: bool = True
    can_delete: bool = False


class Profile(UserResponseBody):
    session_info: SessionInfo
    permissions: ProfilePermissions


class ProfileResponse(ApiModel):
    success: bool = True
    profile: Profile


class DiscordProfileResponse(ApiModel):
    success: bool = True
    id: str
    username: str
    global_name: str | None = None
    discriminator: str | None = None
    tag: str | None = None
    avatar: str | None = None


class LogoutAllResponse(ApiModel):
    success: bool = True
    message: str
    sessions_cleared: int
    timestamp: datetime
