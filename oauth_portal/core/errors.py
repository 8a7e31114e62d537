import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from oauth_portal.core.metrics import metrics_registry
from oauth_portal.core.request_context import request_id_ctx
from oauth_portal.infrastructure.sessions.base import SessionStoreError

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    error_code: str
    message: str
    request_id: str
    details: dict[str, Any] | None = None


class ApiException(Exception):
    def __init__(
        self,
        *,
        status_code: int,
        error_code: str,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.message = message
        self.details = details


def _request_id(request: Request) -> str:
    # The catch-all handler runs outside the request-context middleware.
    return getattr(request.state, "request_id", None) or request_id_ctx.get()


def _error_payload(
    request: Request,
    *,
    error_code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return ErrorResponse(
        error_code=error_code,
        message=message,
        details=details,
        request_id=_request_id(request),
    ).model_dump()


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ApiException)
    async def handle_api_exception(request: Request, exc: ApiException):
        payload = _error_payload(
            request,
            error_code=exc.error_code,
            message=exc.message,
            details=exc.details,
        )
        return JSONResponse(status_code=exc.status_code, content=payload)

    @app.exception_handler(SessionStoreError)
    async def handle_session_store_error(request: Request, exc: SessionStoreError):
        logger.error("Session store %s failed: %s", exc.operation, exc)
        metrics_registry.record_store_failure(operation=exc.operation)
        payload = _error_payload(
            request,
            error_code="SESSION_STORE_FAILURE",
            message="Session store is unavailable",
        )
        return JSONResponse(status_code=500, content=payload)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        payload = _error_payload(
            request,
            error_code="VALIDATION_FAILED",
            message="Request validation failed",
            details={"errors": _jsonable_errors(exc.errors())},
        )
        return JSONResponse(status_code=422, content=payload)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            payload = _error_payload(
                request,
                error_code="NOT_FOUND",
                message=f"Route {request.method} {request.url.path} not found",
            )
        else:
            payload = _error_payload(
                request,
                error_code=f"HTTP_{exc.status_code}",
                message=str(exc.detail),
            )
        return JSONResponse(
            status_code=exc.status_code,
            content=payload,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_exception(request: Request, exc: Exception):
        logger.exception("Unhandled portal exception: %s", exc.__class__.__name__)
        payload = _error_payload(
            request,
            error_code="INTERNAL_SERVER_ERROR",
            message="Unexpected server error",
        )
        return JSONResponse(status_code=500, content=payload)


def _jsonable_errors(errors) -> list[dict[str, Any]]:
    cleaned: list[dict[str, Any]] = []
    for error in errors:
        cleaned.append(
            {
                "loc": [str(part) for part in error.get("loc", ())],
                "msg": str(error.get("msg", "")),
                "type": str(error.get("type", "")),
            }
        )
    return cleaned
