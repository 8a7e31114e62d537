from __future__ import annotations

from datetime import datetime, timedelta, timezone
from secrets import token_urlsafe
from typing import Any
from urllib.parse import urlsplit

import jwt

from oauth_portal.core.config import PortalSettings


class SignedTokenError(ValueError):
    """Raised when a signed token is expired, tampered with or of the wrong type."""


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def random_token(length: int = 32) -> str:
    return token_urlsafe(length)


def new_session_id() -> str:
    return token_urlsafe(32)


def create_signed_token(
    *,
    settings: PortalSettings,
    token_type: str,
    claims: dict[str, Any],
    ttl_seconds: int,
) -> tuple[str, datetime]:
    issued_at = utc_now()
    expires_at = issued_at + timedelta(seconds=ttl_seconds)
    payload = {
        **claims,
        "type": token_type,
        "iat": int(issued_at.timestamp()),
        "exp": int(expires_at.timestamp()),
    }
    token = jwt.encode(
        payload,
        settings.SESSION_SECRET,
        algorithm=settings.OAUTH_STATE_ALGORITHM,
    )
    return token, expires_at


def decode_signed_token(
    *,
    settings: PortalSettings,
    token: str,
    expected_type: str,
) -> dict[str, Any]:
    try:
        payload = jwt.decode(
            token,
            settings.SESSION_SECRET,
            algorithms=[settings.OAUTH_STATE_ALGORITHM],
            leeway=settings.OAUTH_STATE_LEEWAY_SECONDS,
        )
    except jwt.ExpiredSignatureError as exc:
        raise SignedTokenError("state_expired") from exc
    except jwt.PyJWTError as exc:
        raise SignedTokenError("state_invalid") from exc

    if payload.get("type") != expected_type:
        raise SignedTokenError("state_type_invalid")
    return payload


def sanitize_redirect_target(raw: str | None, default: str = "/") -> str:
    """Return ``raw`` only when it is a same-origin absolute path."""
    if not raw:
        return default
    candidate = raw.strip()
    if not candidate.startswith("/") or candidate.startswith("//"):
        return default
    if "\\" in candidate or any(ord(char) < 0x20 for char in candidate):
        return default
    parts = urlsplit(candidate)
    if parts.scheme or parts.netloc:
        return default
    return candidate
