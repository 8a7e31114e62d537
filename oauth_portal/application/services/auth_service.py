from __future__ import annotations

import logging
from datetime import timedelta
from hmac import compare_digest
from urllib.parse import urlencode

from oauth_portal.application.dto.auth import (
    LoginFailed,
    LoginRedirect,
    LoginResult,
    LoginSucceeded,
    LogoutOutcome,
)
from oauth_portal.core.config import SUPPORTED_PROVIDERS, PortalSettings
from oauth_portal.core.errors import ApiException
from oauth_portal.core.metrics import metrics_registry
from oauth_portal.core.security import (
    SignedTokenError,
    create_signed_token,
    decode_signed_token,
    new_session_id,
    random_token,
    sanitize_redirect_target,
    utc_now,
)
from oauth_portal.infrastructure.oauth import OAuthProviderClient, OAuthProviderError
from oauth_portal.infrastructure.sessions import SessionRecord, SessionStore, SessionStoreError

logger = logging.getLogger(__name__)

OAUTH_STATE_TOKEN_TYPE = "oauth_state"


class AuthService:
    """Session lifecycle around the provider redirect/callback exchange."""

    def __init__(
        self,
        *,
        settings: PortalSettings,
        store: SessionStore,
        oauth_clients: dict[str, OAuthProviderClient],
    ):
        self.settings = settings
        self.store = store
        self.oauth_clients = oauth_clients

    def _oauth_client(self, provider: str) -> OAuthProviderClient:
        client = self.oauth_clients.get(provider)
        if provider not in SUPPORTED_PROVIDERS or client is None:
            raise ApiException(
                status_code=404,
                error_code="PROVIDER_NOT_FOUND",
                message=f"Unknown authentication provider: {provider}",
            )
        if not client.configured:
            raise ApiException(
                status_code=500,
                error_code="OAUTH_CONFIG_MISSING",
                message=f"{provider} OAuth credentials are not configured",
            )
        return client

    def _ensure_state_secret(self) -> None:
        if not self.settings.SESSION_SECRET:
            raise ApiException(
                status_code=500,
                error_code="SESSION_SECRET_MISSING",
                message="SESSION_SECRET is required for authentication",
            )

    def frontend_target(self, path: str, params: dict[str, str] | None = None) -> str:
        target = f"{self.settings.frontend_url}{path}"
        if params:
            target = f"{target}?{urlencode(params)}"
        return target

    async def begin_login(
        self,
        *,
        provider: str,
        redirect: str | None,
        session: SessionRecord | None,
    ) -> LoginRedirect:
        client = self._oauth_client(provider)
        self._ensure_state_secret()

        now = utc_now()
        handshake_expiry = now + timedelta(seconds=self.settings.OAUTH_STATE_TTL_SECONDS)
        nonce = random_token(16)
        pending = {
            "pending_redirect": sanitize_redirect_target(redirect),
            "oauth_nonce": nonce,
            "oauth_provider": provider,
        }
        if session is None:
            record = SessionRecord(
                session_id=new_session_id(),
                created_at=now,
                touched_at=now,
                expires_at=handshake_expiry,
                **pending,
            )
        else:
            # The handshake must outlive the state token it is paired with.
            record = session.model_copy(
                update={
                    **pending,
                    "expires_at": max(session.expires_at, handshake_expiry),
                }
            )
        await self.store.save(record)

        state_token, _ = create_signed_token(
            settings=self.settings,
            token_type=OAUTH_STATE_TOKEN_TYPE,
            claims={"nonce": nonce, "provider": provider},
            ttl_seconds=self.settings.OAUTH_STATE_TTL_SECONDS,
        )
        metrics_registry.record_auth_event(event="login", provider=provider, outcome="started")
        logger.info(
            "Login started provider=%s redirect=%s", provider, record.pending_redirect
        )
        return LoginRedirect(
            authorize_url=client.build_authorize_url(state_token),
            session=record,
        )

    async def complete_login(
        self,
        *,
        provider: str,
        code: str | None,
        state: str | None,
        error: str | None,
        session: SessionRecord | None,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> LoginResult:
        client = self._oauth_client(provider)
        self._ensure_state_secret()

        if error:
            return await self._login_failed(provider, "provider_denied", session)
        if not code or not state:
            return await self._login_failed(provider, "missing_code", session)

        try:
            state_payload = decode_signed_token(
                settings=self.settings,
                token=state,
                expected_type=OAUTH_STATE_TOKEN_TYPE,
            )
        except SignedTokenError as exc:
            return await self._login_failed(provider, str(exc), session)

        if state_payload.get("provider") != provider:
            return await self._login_failed(provider, "provider_mismatch", session)
        if (
            session is None
            or not session.oauth_nonce
            or session.oauth_provider != provider
            or not compare_digest(str(state_payload.get("nonce", "")), session.oauth_nonce)
        ):
            return await self._login_failed(provider, "state_mismatch", session)

        try:
            user = await client.authenticate(code)
        except OAuthProviderError as exc:
            logger.warning("Provider exchange failed provider=%s: %s", provider, exc)
            return await self._login_failed(provider, exc.reason, session)

        now = utc_now()
        established = SessionRecord(
            session_id=new_session_id(),
            created_at=now,
            touched_at=now,
            expires_at=now + timedelta(seconds=self.settings.SESSION_MAX_AGE_SECONDS),
            user=user,
            login_time=now,
            user_agent=user_agent,
            ip_address=ip_address,
        )
        await self.store.save(established)
        # Retiring the pre-login session consumes its pending redirect.
        await self.store.destroy(session.session_id)

        metrics_registry.record_auth_event(event="login", provider=provider, outcome="success")
        logger.info("Login succeeded provider=%s user=%s", provider, user.id)
        return LoginSucceeded(
            user=user,
            session=established,
            redirect_to=self.frontend_target(session.pending_redirect or "/"),
        )

    async def _login_failed(
        self,
        provider: str,
        reason: str,
        session: SessionRecord | None,
    ) -> LoginFailed:
        if session is not None and session.oauth_nonce:
            try:
                await self.store.save(
                    session.model_copy(update={"oauth_nonce": None, "oauth_provider": None})
                )
            except SessionStoreError as exc:
                logger.warning("Could not clear OAuth nonce after failed login: %s", exc)
        error_code = f"{provider}_auth_failed"
        metrics_registry.record_auth_event(event="login", provider=provider, outcome="failure")
        logger.warning("Login failed provider=%s reason=%s", provider, reason)
        return LoginFailed(
            provider=provider,
            error_code=error_code,
            reason=reason,
            redirect_to=self.frontend_target("/", {"error": error_code}),
        )

    async def touch(self, session: SessionRecord) -> SessionRecord:
        """Extend an authenticated session when its last touch is old enough."""
        touch_after = self.settings.SESSION_TOUCH_AFTER_SECONDS
        if touch_after <= 0:
            return session
        now = utc_now()
        if (now - session.touched_at).total_seconds() < touch_after:
            return session
        refreshed = session.extended(now, self.settings.SESSION_MAX_AGE_SECONDS)
        await self.store.save(refreshed)
        return refreshed

    async def logout(self, session: SessionRecord | None) -> LogoutOutcome:
        """Terminate the current session.

        The identity binding is removed first; a failure there propagates as
        ``SessionStoreError`` and nothing is destroyed. A failure destroying the
        record afterwards is only logged, the caller is no longer identified.
        """
        if session is None or session.user is None:
            return LogoutOutcome(was_authenticated=False)

        user = session.user
        await self.store.unbind_user(session.session_id, user.user_key)

        destroyed = False
        try:
            destroyed = await self.store.destroy(session.session_id)
        except SessionStoreError as exc:
            metrics_registry.record_store_failure(operation=exc.operation)
            logger.warning(
                "Session record not destroyed after logout user=%s provider=%s: %s",
                user.id,
                user.provider,
                exc,
            )

        metrics_registry.record_auth_event(event="logout", provider=user.provider, outcome="success")
        logger.info(
            "User logged out user=%s provider=%s destroyed=%s",
            user.id,
            user.provider,
            destroyed,
        )
        return LogoutOutcome(was_authenticated=True)

    async def logout_all(self, session: SessionRecord) -> int:
        if session.user is None:
            return 0
        user = session.user
        cleared = await self.store.destroy_user_sessions(user.user_key)
        # The current session may have dropped out of the index; it still goes.
        if await self.store.destroy(session.session_id):
            cleared += 1
        metrics_registry.record_auth_event(
            event="logout_all", provider=user.provider, outcome="success"
        )
        logger.info(
            "User logged out of all sessions user=%s provider=%s cleared=%s",
            user.id,
            user.provider,
            cleared,
        )
        return cleared
