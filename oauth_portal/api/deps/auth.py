from __future__ import annotations

from collections.abc import Awaitable, Callable

from fastapi import Depends, Request

from oauth_portal.application.services.auth_service import AuthService
from oauth_portal.core.config import PortalSettings
from oauth_portal.core.errors import ApiException
from oauth_portal.domain.identity import DiscordUser, GoogleUser
from oauth_portal.infrastructure.oauth import OAuthProviderClient
from oauth_portal.infrastructure.sessions import SessionRecord, SessionStore


def get_app_settings(request: Request) -> PortalSettings:
    return request.app.state.settings


def get_session_store(request: Request) -> SessionStore:
    return request.app.state.session_store


def get_oauth_clients(request: Request) -> dict[str, OAuthProviderClient]:
    return request.app.state.oauth_clients


def get_auth_service(
    settings: PortalSettings = Depends(get_app_settings),
    store: SessionStore = Depends(get_session_store),
    oauth_clients: dict[str, OAuthProviderClient] = Depends(get_oauth_clients),
) -> AuthService:
    return AuthService(settings=settings, store=store, oauth_clients=oauth_clients)


async def load_session(
    request: Request,
    *,
    settings: PortalSettings,
    store: SessionStore,
) -> SessionRecord | None:
    session_id = request.cookies.get(settings.SESSION_COOKIE_NAME)
    record = await store.get(session_id) if session_id else None
    request.state.session = record
    return record


async def get_session_record(
    request: Request,
    settings: PortalSettings = Depends(get_app_settings),
    store: SessionStore = Depends(get_session_store),
) -> SessionRecord | None:
    return await load_session(request, settings=settings, store=store)


async def get_optional_user(
    request: Request,
    session: SessionRecord | None = Depends(get_session_record),
) -> GoogleUser | DiscordUser | None:
    user = session.user if session is not None else None
    request.state.user = user
    request.state.is_authenticated = user is not None
    return user


async def get_current_session(
    request: Request,
    session: SessionRecord | None = Depends(get_session_record),
    service: AuthService = Depends(get_auth_service),
) -> SessionRecord:
    if session is None or session.user is None:
        raise ApiException(
            status_code=401,
            error_code="AUTH_REQUIRED",
            message="Please log in to access this resource",
        )
    session = await service.touch(session)
    request.state.session = session
    request.state.user = session.user
    request.state.is_authenticated = True
    return session


async def get_current_user(
    session: SessionRecord = Depends(get_current_session),
) -> GoogleUser | DiscordUser:
    return session.user


def require_provider(
    provider: str,
) -> Callable[..., Awaitable[GoogleUser | DiscordUser]]:
    async def _dependency(
        user: GoogleUser | DiscordUser = Depends(get_current_user),
    ) -> GoogleUser | DiscordUser:
        if user.provider != provider:
            raise ApiException(
                status_code=403,
                error_code="PROVIDER_MISMATCH",
                message=f"This resource requires {provider} authentication",
                details={"required": provider, "current": user.provider},
            )
        return user

    return _dependency
