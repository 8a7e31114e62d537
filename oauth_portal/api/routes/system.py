from datetime import datetime, timezone
from time import monotonic

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from oauth_portal.api.deps.auth import get_app_settings, get_session_store
from oauth_portal.api.schemas.common import HealthResponse
from oauth_portal.core.config import PortalSettings
from oauth_portal.core.metrics import metrics_registry
from oauth_portal.infrastructure.sessions import SessionStore

router = APIRouter()

_STARTED_AT = monotonic()


@router.get("/health", response_model=HealthResponse)
async def health(
    settings: PortalSettings = Depends(get_app_settings),
    store: SessionStore = Depends(get_session_store),
) -> HealthResponse:
    return HealthResponse(
        status="ok",
        service=settings.PORTAL_APP_NAME,
        environment=settings.PORTAL_ENV,
        version=settings.PORTAL_APP_VERSION,
        timestamp=datetime.now(timezone.utc),
        uptime_seconds=round(monotonic() - _STARTED_AT, 3),
        session_store="ok" if await store.ping() else "unavailable",
    )


@router.get("/metrics", response_class=PlainTextResponse)
async def prometheus_metrics(settings: PortalSettings = Depends(get_app_settings)):
    if not settings.PORTAL_ENABLE_METRICS:
        return PlainTextResponse("metrics disabled\n", status_code=503)
    return PlainTextResponse(
        metrics_registry.render_prometheus(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )
