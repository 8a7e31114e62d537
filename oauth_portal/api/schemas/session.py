from __future__ import annotations

from datetime import datetime

from oauth_portal.api.schemas.auth import UserSummary
from oauth_portal.api.schemas.common import ApiModel


class ValidatedSession(ApiModel):
    expires_at: datetime
    max_age_seconds: int


class SessionValidResponse(ApiModel):
    valid: bool = True
    authenticated: bool = True
    user: UserSummary
    session: ValidatedSession
    timestamp: datetime


class SessionInvalidResponse(ApiModel):
    valid: bool = False
    authenticated: bool = False
    message: str = "Session not authenticated"
    timestamp: datetime


class CookiePolicy(ApiModel):
    max_age_seconds: int
    secure: bool
    http_only: bool = True
    same_site: str


class SessionDetails(ApiModel):
    id: str | None = None
    authenticated: bool
    cookie: CookiePolicy
    created_at: datetime | None = None
    expires_at: datetime | None = None


class SessionInfoResponse(ApiModel):
    session: SessionDetails
    timestamp: datetime


class ApiStatus(ApiModel):
    status: str = "operational"
    version: str
    timestamp: datetime


class AuthenticationStatus(ApiModel):
    providers: list[str]
    configured_providers: list[str]
    session_based: bool = True
    middleware_active: bool = True


class StatusResponse(ApiModel):
    success: bool = True
    api: ApiStatus
    authentication: AuthenticationStatus
    endpoints: dict[str, list[str]]
