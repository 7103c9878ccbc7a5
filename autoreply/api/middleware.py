"""API middleware: CORS, request logging, and error handling.

Starlette runs middleware last-added-first, so ``main.create_app`` adds
:class:`ErrorHandlingMiddleware` before :class:`RequestLoggingMiddleware`;
the logger then sees the final status code, including structured errors.
"""

from __future__ import annotations

import time

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from autoreply.api.schemas import ErrorResponse
from autoreply.utils.errors import (
    AutoReplyError,
    DeliveryError,
    EmbeddingUnavailableError,
    GenerationUnavailableError,
    IngestionError,
    InvalidConfigurationError,
    MalformedEventError,
    ResourceNotFoundError,
)
from autoreply.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

# First match wins; anything else is a 500.
_STATUS_BY_ERROR: tuple[tuple[type[AutoReplyError], int], ...] = (
    (ResourceNotFoundError, 404),
    (InvalidConfigurationError, 400),
    (MalformedEventError, 400),
    (IngestionError, 422),
    (EmbeddingUnavailableError, 503),
    (GenerationUnavailableError, 503),
    (DeliveryError, 502),
)


def status_for(exc: AutoReplyError) -> int:
    """Return the HTTP status code for an application error."""
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 500


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Add CORS middleware; all origins are allowed unless a list is given."""
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
            _logger.info(
                "http_request",
                method=request.method,
                path=str(request.url.path),
                status=response.status_code if response else 500,
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )


# ---------------------------------------------------------------------------
# Error Handling
# ---------------------------------------------------------------------------


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Turn ``AutoReplyError`` subclasses into JSON :class:`ErrorResponse` bodies.

    Only the error class name and message reach the client; provider
    details stay in the server log.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except AutoReplyError as exc:
            status_code = status_for(exc)
            log = _logger.warning if status_code < 500 else _logger.error
            log(
                "application_error",
                error_type=type(exc).__name__,
                message=exc.message,
                provider=exc.provider_name,
                path=str(request.url.path),
                status=status_code,
            )
            body = ErrorResponse(error=type(exc).__name__, detail=exc.message)
            return JSONResponse(status_code=status_code, content=body.model_dump())
