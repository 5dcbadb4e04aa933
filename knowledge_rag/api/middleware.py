"""API middleware: CORS, request logging, and error handling.

Middleware is a stack; in ``main.py`` ErrorHandlingMiddleware is added
first and RequestLoggingMiddleware second, so the logger is outermost and
sees the final status code after errors have been converted.
"""

from __future__ import annotations

import time

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from knowledge_rag.api.schemas import ERROR_CODES, UNKNOWN_ERROR, ApiResponse
from knowledge_rag.utils.errors import KnowledgeBaseError
from knowledge_rag.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Add CORS middleware; all origins are allowed unless *allowed_origins* is given."""
    origins = allowed_origins or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


# ---------------------------------------------------------------------------
# Request Logging
# ---------------------------------------------------------------------------


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


# ---------------------------------------------------------------------------
# Error Handling
# ---------------------------------------------------------------------------


def error_response(exc: KnowledgeBaseError) -> JSONResponse:
    """Build the enveloped JSON error for *exc*, walking up its class hierarchy."""
    status, code = UNKNOWN_ERROR
    for cls in type(exc).__mro__:
        if cls.__name__ in ERROR_CODES:
            status, code = ERROR_CODES[cls.__name__]
            break
    body = ApiResponse(code=code, info=exc.message, data=None)
    return JSONResponse(status_code=status, content=body.model_dump())


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Convert ``KnowledgeBaseError`` subclasses into enveloped JSON errors.

    Stack traces stay in the server log; the client only sees the error
    code and message.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except KnowledgeBaseError as exc:
            _logger.error(
                "application_error",
                error_type=type(exc).__name__,
                message=exc.message,
                provider=exc.provider_name,
                path=str(request.url.path),
            )
            return error_response(exc)
