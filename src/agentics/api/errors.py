"""
agentics.api.errors - HTTP Error Envelope
===========================================

Every error response has the same body:

    {"error": {"type": "NotFoundError", "code": "NOT_FOUND", "message": "run not found"}}

Status mapping:
    ValidationError (and malformed requests)  → 400
    AuthError                                 → 401
    MaintenanceAuthError                      → 403
    NotFoundError (unknown OR foreign run)    → 404
    BudgetExceeded                            → 409
    UpstreamAgentError                        → 502
    StoreError                                → 503
    anything else                             → 500
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from agentics.core.exceptions import (
    AgenticsError,
    AuthError,
    BudgetExceeded,
    MaintenanceAuthError,
    NotFoundError,
    StoreError,
    UpstreamAgentError,
    ValidationError,
)

logger = structlog.get_logger()


STATUS_BY_ERROR: dict[type[AgenticsError], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    AuthError: status.HTTP_401_UNAUTHORIZED,
    MaintenanceAuthError: status.HTTP_403_FORBIDDEN,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    BudgetExceeded: status.HTTP_409_CONFLICT,
    UpstreamAgentError: status.HTTP_502_BAD_GATEWAY,
    StoreError: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def status_for(exc: AgenticsError) -> int:
    for error_type, status_code in STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_body(error_type: str, code: str, message: str) -> dict[str, Any]:
    return {"error": {"type": error_type, "code": code, "message": message}}


def setup_exception_handlers(app: FastAPI) -> None:
    """Register the envelope-rendering exception handlers on ``app``."""

    @app.exception_handler(AgenticsError)
    async def agentics_error_handler(request: Request, exc: AgenticsError) -> JSONResponse:
        status_code = status_for(exc)
        log = logger.warning if status_code < 500 else logger.error
        log(
            "request_failed",
            path=request.url.path,
            status_code=status_code,
            error_code=exc.error_code,
        )
        return JSONResponse(
            status_code=status_code,
            content=error_body(exc.__class__.__name__, exc.error_code, exc.message),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        logger.warning("request_invalid", path=request.url.path, errors=len(exc.errors()))
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_body("ValidationError", "VALIDATION_ERROR", "invalid request"),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body("HTTPException", f"HTTP_{exc.status_code}", str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "request_crashed",
            path=request.url.path,
            error_type=type(exc).__name__,
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body("InternalError", "INTERNAL_ERROR", "internal error"),
        )
