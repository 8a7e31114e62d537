from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from oauth_portal.domain.identity import DiscordUser, GoogleUser
from oauth_portal.infrastructure.sessions.models import SessionRecord


@dataclass(frozen=True)
class LoginRedirect:
    authorize_url: str
    session: SessionRecord


@dataclass(frozen=True)
class LoginSucceeded:
    user: GoogleUser | DiscordUser
    session: SessionRecord
    redirect_to: str


@dataclass(frozen=True)
class LoginFailed:
    provider: str
    error_code: str
    reason: str
    redirect_to: str


LoginResult = Union[LoginSucceeded, LoginFailed]


@dataclass(frozen=True)
class LogoutOutcome:
    was_authenticated: bool
