"""API middleware: request logging and error handling.

Starlette middleware is a stack (last added, first executed).  In
``main.create_app`` the logging middleware is added after the error
middleware, so it wraps it and sees the final status code:

    Client → RequestLogging → ErrorHandling → route handler
"""

from __future__ import annotations

import time

import structlog
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from cardshow_scout.api.schemas import ErrorResponse
from cardshow_scout.utils.errors import CardShowScoutError, StorageError
from cardshow_scout.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every HTTP request with method, path, status code, and duration."""

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        start = time.perf_counter()
        response: Response | None = None

        try:
            response = await call_next(request)
            return response
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            status_code = response.status_code if response else 500
            _logger.info(
                "http_request",
                method=request.method,
                path=str(request.url.path),
                status=status_code,
                duration_ms=duration_ms,
            )


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Convert ``CardShowScoutError`` subclasses into JSON error bodies.

    A :class:`StorageError` maps to 503 (the database is unreachable);
    any other application error maps to 500.  Stack traces stay in the
    server log.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except CardShowScoutError as exc:
            _logger.error(
                "application_error",
                error_type=type(exc).__name__,
                message=exc.message,
                provider=exc.provider_name,
                path=str(request.url.path),
            )
            body = ErrorResponse(error=type(exc).__name__, detail=exc.message)
            status_code = 503 if isinstance(exc, StorageError) else 500
            return JSONResponse(status_code=status_code, content=body.model_dump())
