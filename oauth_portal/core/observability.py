from __future__ import annotations

import logging
from time import perf_counter

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from oauth_portal.core.config import PortalSettings, get_settings
from oauth_portal.core.metrics import metrics_registry

logger = logging.getLogger(__name__)


class AccessLogMetricsMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, settings: PortalSettings | None = None):
        super().__init__(app)
        self.settings = settings or get_settings()

    async def dispatch(self, request: Request, call_next):
        started = perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            route_path = route_path_for(request)
            duration_seconds = max(0.0, perf_counter() - started)
            if self.settings.PORTAL_ENABLE_METRICS:
                metrics_registry.record_http_request(
                    method=request.method,
                    route_path=route_path,
                    status_code=status_code,
                    duration_seconds=duration_seconds,
                )
            if self.settings.PORTAL_ENABLE_ACCESS_LOG:
                logger.info(
                    "http_request method=%s path=%s route=%s status=%s duration_ms=%.2f ip=%s",
                    request.method,
                    request.url.path,
                    route_path,
                    status_code,
                    duration_seconds * 1000.0,
                    client_identity(request),
                )


def client_identity(request: Request) -> str:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def route_path_for(request: Request) -> str:
    # Templated path keeps metric label cardinality bounded.
    route = request.scope.get("route")
    route_path = getattr(route, "path", None)
    if isinstance(route_path, str) and route_path:
        return route_path
    return "unmatched"
