from __future__ import annotations

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse

from oauth_portal.api.cookies import clear_session_cookie
from oauth_portal.api.deps.auth import (
    get_app_settings,
    get_auth_service,
    get_current_session,
    get_oauth_clients,
    get_optional_user,
    get_session_record,
    require_provider,
)
from oauth_portal.api.schemas.auth import (
    DiscordProfileResponse,
    LogoutAllResponse,
    MeResponse,
    MeSession,
    MeUser,
    Profile,
    ProfilePermissions,
    ProfileResponse,
    SessionInfo,
    UserResponse,
    UserResponseBody,
    UserSummary,
)
from oauth_portal.api.schemas.common import OperationResponse
from oauth_portal.api.schemas.session import (
    ApiStatus,
    AuthenticationStatus,
    CookiePolicy,
    SessionDetails,
    SessionInfoResponse,
    SessionInvalidResponse,
    SessionValidResponse,
    StatusResponse,
    ValidatedSession,
)
from oauth_portal.application.services.auth_service import AuthService
from oauth_portal.core.config import SUPPORTED_PROVIDERS, PortalSettings
from oauth_portal.core.errors import ApiException
from oauth_portal.core.security import utc_now
from oauth_portal.domain.identity import DiscordUser, GoogleUser
from oauth_portal.infrastructure.oauth import OAuthProviderClient
from oauth_portal.infrastructure.sessions import SessionRecord, SessionStoreError

router = APIRouter()


def _user_summary(user: GoogleUser | DiscordUser) -> UserSummary:
    return UserSummary(
        id=user.id,
        provider=user.provider,
        name=user.name,
        email=user.email,
        avatar=user.avatar,
    )


def _user_body(user: GoogleUser | DiscordUser) -> dict:
    body = _user_summary(user).model_dump()
    if isinstance(user, GoogleUser):
        body.update(email_verified=user.email_verified, locale=user.locale)
    else:
        body.update(
            discriminator=user.discriminator,
            global_name=user.global_name,
            tag=user.tag,
        )
    return body


@router.get("/me", response_model=MeResponse, response_model_exclude_none=True)
async def me(
    session: SessionRecord = Depends(get_current_session),
    settings: PortalSettings = Depends(get_app_settings),
):
    user = session.user
    me_user = MeUser(
        **_user_summary(user).model_dump(),
        authenticated_at=session.login_time,
    )
    if isinstance(user, DiscordUser) and user.tag:
        me_user.discriminator = user.discriminator
        me_user.tag = user.tag
    return MeResponse(
        user=me_user,
        session=MeSession(
            id=session.session_id,
            is_authenticated=True,
            max_age_seconds=min(
                settings.SESSION_MAX_AGE_SECONDS,
                session.remaining_seconds(utc_now()),
            ),
        ),
    )


@router.get("/user", response_model=UserResponse, response_model_exclude_none=True)
async def current_user(session: SessionRecord = Depends(get_current_session)):
    return UserResponse(user=UserResponseBody(**_user_body(session.user)))


@router.get("/profile", response_model=ProfileResponse, response_model_exclude_none=True)
async def profile(
    request: Request,
    session: SessionRecord = Depends(get_current_session),
):
    return ProfileResponse(
        profile=Profile(
            **_user_body(session.user),
            session_info=SessionInfo(
                id=session.session_id,
                login_time=session.login_time,
                user_agent=request.headers.get("user-agent"),
                ip=session.ip_address,
            ),
            permissions=ProfilePermissions(),
        )
    )


@router.get("/discord/profile", response_model=DiscordProfileResponse)
async def discord_profile(user: DiscordUser = Depends(require_provider("discord"))):
    return DiscordProfileResponse(
        id=user.id,
        username=user.name,
        global_name=user.global_name,
        discriminator=user.discriminator,
        tag=user.tag,
        avatar=user.avatar,
    )


@router.get(
    "/session/validate",
    response_model=SessionValidResponse,
    responses={401: {"model": SessionInvalidResponse}},
)
async def validate_session(
    session: SessionRecord | None = Depends(get_session_record),
):
    now = utc_now()
    if session is None or session.user is None:
        body = SessionInvalidResponse(timestamp=now)
        return JSONResponse(
            status_code=401,
            content=body.model_dump(mode="json", by_alias=True),
        )
    return SessionValidResponse(
        user=_user_summary(session.user),
        session=ValidatedSession(
            expires_at=session.expires_at,
            max_age_seconds=session.remaining_seconds(now),
        ),
        timestamp=now,
    )


@router.get("/session/info", response_model=SessionInfoResponse)
async def session_info(
    _: GoogleUser | DiscordUser | None = Depends(get_optional_user),
    session: SessionRecord | None = Depends(get_session_record),
    settings: PortalSettings = Depends(get_app_settings),
):
    return SessionInfoResponse(
        session=SessionDetails(
            id=session.session_id if session is not None else None,
            authenticated=session is not None and session.is_authenticated,
            cookie=CookiePolicy(
                max_age_seconds=settings.SESSION_MAX_AGE_SECONDS,
                secure=settings.cookie_secure,
                same_site=settings.cookie_samesite,
            ),
            created_at=session.created_at if session is not None else None,
            expires_at=session.expires_at if session is not None else None,
        ),
        timestamp=utc_now(),
    )


@router.post("/logout", response_model=OperationResponse, response_model_exclude_none=True)
async def logout(
    request: Request,
    response: Response,
    session: SessionRecord = Depends(get_current_session),
    service: AuthService = Depends(get_auth_service),
):
    request.state.user = None
    try:
        await service.logout(session)
    except SessionStoreError as exc:
        raise ApiException(
            status_code=500,
            error_code="LOGOUT_FAILED",
            message="Unable to logout",
        ) from exc
    clear_session_cookie(response, settings=service.settings)
    return OperationResponse(
        success=True,
        message="Logged out successfully",
        timestamp=utc_now(),
    )


@router.post("/logout/all", response_model=LogoutAllResponse)
async def logout_all(
    request: Request,
    response: Response,
    session: SessionRecord = Depends(get_current_session),
    service: AuthService = Depends(get_auth_service),
):
    request.state.user = None
    try:
        cleared = await service.logout_all(session)
    except SessionStoreError as exc:
        raise ApiException(
            status_code=500,
            error_code="LOGOUT_ALL_FAILED",
            message="Unable to logout from all sessions",
        ) from exc
    clear_session_cookie(response, settings=service.settings)
    return LogoutAllResponse(
        message="Logged out from all sessions successfully",
        sessions_cleared=cleared,
        timestamp=utc_now(),
    )


@router.get("/status", response_model=StatusResponse)
async def api_status(
    settings: PortalSettings = Depends(get_app_settings),
    oauth_clients: dict[str, OAuthProviderClient] = Depends(get_oauth_clients),
):
    return StatusResponse(
        api=ApiStatus(version=settings.PORTAL_APP_VERSION, timestamp=utc_now()),
        authentication=AuthenticationStatus(
            providers=list(SUPPORTED_PROVIDERS),
            configured_providers=[
                name
                for name in SUPPORTED_PROVIDERS
                if name in oauth_clients and oauth_clients[name].configured
            ],
        ),
        endpoints={
            "auth": [f"/auth/{name}" for name in SUPPORTED_PROVIDERS] + ["/auth/logout"],
            "api": [
                "/api/me",
                "/api/user",
                "/api/profile",
                "/api/session/validate",
                "/api/session/info",
                "/api/logout",
                "/api/logout/all",
            ],
            "system": ["/health", "/api/status", "/metrics"],
        },
    )
