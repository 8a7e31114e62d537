from __future__ import annotations

from datetime import datetime, timezone

from fastapi import Response

from oauth_portal.core.config import PortalSettings


def set_session_cookie(
    response: Response,
    *,
    settings: PortalSettings,
    session_id: str,
    expires_at: datetime,
) -> None:
    expires_in_seconds = max(
        0,
        int((expires_at - datetime.now(timezone.utc)).total_seconds()),
    )
    max_age = min(settings.SESSION_MAX_AGE_SECONDS, expires_in_seconds)
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=session_id,
        max_age=max_age,
        expires=max_age,
        path="/",
        domain=settings.cookie_domain,
        secure=settings.cookie_secure,
        httponly=True,
        samesite=settings.cookie_samesite,
    )


def clear_session_cookie(
    response: Response,
    *,
    settings: PortalSettings,
) -> None:
    response.delete_cookie(
        key=settings.SESSION_COOKIE_NAME,
        path="/",
        domain=settings.cookie_domain,
        secure=settings.cookie_secure,
        httponly=True,
        samesite=settings.cookie_samesite,
    )
