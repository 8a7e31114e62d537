from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, Request, Response
from fastapi.responses import RedirectResponse

from oauth_portal.api.cookies import clear_session_cookie, set_session_cookie
from oauth_portal.api.deps.auth import (
    get_app_settings,
    get_auth_service,
    get_session_record,
    get_session_store,
    load_session,
)
from oauth_portal.api.schemas.common import OperationResponse
from oauth_portal.application.dto.auth import LoginSucceeded
from oauth_portal.application.services.auth_service import AuthService
from oauth_portal.core.config import PortalSettings
from oauth_portal.core.errors import ApiException
from oauth_portal.core.observability import client_identity
from oauth_portal.core.security import utc_now
from oauth_portal.infrastructure.sessions import SessionRecord, SessionStore, SessionStoreError

logger = logging.getLogger(__name__)

router = APIRouter()


# Logout routes are registered before /{provider} so "logout" is never a provider.
@router.get("/logout")
async def browser_logout(
    request: Request,
    settings: PortalSettings = Depends(get_app_settings),
    store: SessionStore = Depends(get_session_store),
    service: AuthService = Depends(get_auth_service),
):
    try:
        session = await load_session(request, settings=settings, store=store)
        request.state.user = None
        outcome = await service.logout(session)
    except SessionStoreError as exc:
        logger.error("Browser logout failed: %s", exc)
        return RedirectResponse(
            service.frontend_target("/", {"error": "logout_failed"}),
            status_code=302,
        )

    message = "logged_out" if outcome.was_authenticated else "already_logged_out"
    response = RedirectResponse(
        service.frontend_target("/", {"message": message}),
        status_code=302,
    )
    clear_session_cookie(response, settings=settings)
    return response


@router.post("/logout", response_model=OperationResponse, response_model_exclude_none=True)
async def api_logout(
    request: Request,
    response: Response,
    session: SessionRecord | None = Depends(get_session_record),
    service: AuthService = Depends(get_auth_service),
):
    request.state.user = None
    try:
        outcome = await service.logout(session)
    except SessionStoreError as exc:
        raise ApiException(
            status_code=500,
            error_code="LOGOUT_FAILED",
            message="Unable to logout",
        ) from exc

    message = "Logged out successfully" if outcome.was_authenticated else "Already logged out"
    clear_session_cookie(response, settings=service.settings)
    return OperationResponse(success=True, message=message, timestamp=utc_now())


@router.get("/{provider}")
async def begin_login(
    provider: str,
    redirect: str | None = Query(default=None, max_length=2048),
    session: SessionRecord | None = Depends(get_session_record),
    service: AuthService = Depends(get_auth_service),
):
    login = await service.begin_login(
        provider=provider.lower(),
        redirect=redirect,
        session=session,
    )
    response = RedirectResponse(login.authorize_url, status_code=302)
    set_session_cookie(
        response,
        settings=service.settings,
        session_id=login.session.session_id,
        expires_at=login.session.expires_at,
    )
    return response


@router.get("/{provider}/callback")
async def login_callback(
    provider: str,
    request: Request,
    code: str | None = Query(default=None, max_length=4096),
    state: str | None = Query(default=None, max_length=4096),
    error: str | None = Query(default=None, max_length=256),
    session: SessionRecord | None = Depends(get_session_record),
    service: AuthService = Depends(get_auth_service),
):
    result = await service.complete_login(
        provider=provider.lower(),
        code=code,
        state=state,
        error=error,
        session=session,
        user_agent=request.headers.get("user-agent"),
        ip_address=client_identity(request),
    )
    response = RedirectResponse(result.redirect_to, status_code=302)
    if isinstance(result, LoginSucceeded):
        set_session_cookie(
            response,
            settings=service.settings,
            session_id=result.session.session_id,
            expires_at=result.session.expires_at,
        )
    return response

