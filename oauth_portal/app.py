import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from oauth_portal.api.router import api_router
from oauth_portal.core.config import SUPPORTED_PROVIDERS, PortalSettings, get_settings
from oauth_portal.core.errors import register_exception_handlers
from oauth_portal.core.logging import configure_logging
from oauth_portal.core.observability import AccessLogMetricsMiddleware
from oauth_portal.core.request_context import RequestContextMiddleware
from oauth_portal.infrastructure.oauth import OAuthProviderClient, build_oauth_clients
from oauth_portal.infrastructure.sessions import SessionStore, build_session_store

logger = logging.getLogger(__name__)


def create_app(
    settings: PortalSettings | None = None,
    *,
    session_store: SessionStore | None = None,
    oauth_clients: dict[str, OAuthProviderClient] | None = None,
) -> FastAPI:
    """FastAPI app factory."""
    settings = settings or get_settings()
    configure_logging(settings.PORTAL_LOG_LEVEL, settings.PORTAL_LOG_FORMAT)

    store = session_store if session_store is not None else build_session_store(settings)
    clients = oauth_clients if oauth_clients is not None else build_oauth_clients(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if not settings.SESSION_SECRET:
            logger.warning("SESSION_SECRET is not set; logins will be rejected")
        for provider in SUPPORTED_PROVIDERS:
            client = clients.get(provider)
            if client is None or not client.configured:
                logger.warning("OAuth provider %s is not configured", provider)
        logger.info(
            "Starting %s env=%s store=%s",
            settings.PORTAL_APP_NAME,
            settings.PORTAL_ENV,
            store.__class__.__name__,
        )
        try:
            yield
        finally:
            await store.close()

    app = FastAPI(
        title=settings.PORTAL_APP_NAME,
        version=settings.PORTAL_APP_VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.session_store = store
    app.state.oauth_clients = clients

    app.add_middleware(AccessLogMetricsMiddleware, settings=settings)
    app.add_middleware(RequestContextMiddleware)
    if settings.PORTAL_CORS_ENABLED:
        # Register CORS last so it wraps the full stack and can short-circuit preflight.
        app.add_middleware(
            CORSMiddleware,
            allow_origins=settings.cors_allow_origins,
            allow_credentials=True,
            allow_methods=settings.cors_allow_methods,
            allow_headers=settings.cors_allow_headers,
            expose_headers=settings.cors_expose_headers,
            max_age=settings.PORTAL_CORS_MAX_AGE_SECONDS,
        )
    app.include_router(api_router)
    register_exception_handlers(app)

    return app
