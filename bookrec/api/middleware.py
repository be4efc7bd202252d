"""API middleware: CORS, request logging and error handling.

Starlette middleware is a stack (last added runs first).  ``create_app``
adds ``ErrorHandlingMiddleware`` before ``RequestLoggingMiddleware``, so the
request log records the final status even when an error was converted to
a JSON body.

``BookRecError`` subclasses map to HTTP statuses:

    ValidationError            400
    NotFoundError              404
    RecommendationUnavailable  503 (retryable)
    UpstreamTimeout            504
    ProviderUnavailableError   502
    anything else              500
"""

from __future__ import annotations

import time

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from bookrec.api.schemas import ErrorResponse
from bookrec.utils.errors import (
    BookRecError,
    NotFoundError,
    ProviderUnavailableError,
    RecommendationUnavailable,
    UpstreamTimeout,
    ValidationError,
)
from bookrec.utils.logging import get_logger

# Middleware execution order.  Starlette wraps each added middleware around
# the ones added before it, so the last one added sees the request first:
#
#   create_app():
#     add_middleware(ErrorHandlingMiddleware)    # innermost, next to routes
#     add_middleware(RequestLoggingMiddleware)   # wraps error handling
#     configure_cors(app)                        # outermost
#
#   Request:   client -> CORS -> RequestLogging -> ErrorHandling -> route
#   Response:  client <- CORS <- RequestLogging <- ErrorHandling <- route
#
# RequestLogging therefore logs the status the client actually receives,
# including the 4xx/5xx that ErrorHandling produced from a BookRecError.
# Pydantic request-validation failures never reach the middleware: FastAPI
# raises them before the route body runs, and _request_validation_handler
# turns them into the same ErrorResponse shape.

_logger: structlog.BoundLogger = get_logger(__name__)

_STATUS_BY_ERROR: list[tuple[type[BookRecError], int]] = [
    (ValidationError, 400),
    (NotFoundError, 404),
    (RecommendationUnavailable, 503),
    (UpstreamTimeout, 504),
    (ProviderUnavailableError, 502),
]


def status_for(exc: BookRecError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Add CORS middleware; all origins unless *allowed_origins* is given."""
    # The API is read by browser front ends on other origins.  Without CORS
    # headers the browser blocks those responses even though the server
    # answered.  Deployments behind a gateway pass an explicit origin list.
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

        # An exception escaping call_next leaves response unset; it is logged
        # as 500, which is what the server error handler will send.
        try:
            response = await call_next(request)
            return response
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            _logger.info(
                "http_request",
                method=request.method,
                path=str(request.url.path),
                status=response.status_code if response else 500,
                duration_ms=duration_ms,
            )


# ---------------------------------------------------------------------------
# Error Handling
# ---------------------------------------------------------------------------


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Convert ``BookRecError`` subclasses into ``ErrorResponse`` JSON.

    Details go to the server log; the client gets the error class name and
    message only.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        # Only the application hierarchy is translated here.  Anything else
        # propagates to Starlette's ServerErrorMiddleware, which logs the
        # traceback and answers 500.
        try:
            return await call_next(request)
        except BookRecError as exc:
            status = status_for(exc)
            log = _logger.warning if status < 500 else _logger.error
            log(
                "application_error",
                error_type=type(exc).__name__,
                message=exc.message,
                provider=exc.provider_name,
                path=str(request.url.path),
                status=status,
            )
            body = ErrorResponse(error=type(exc).__name__, detail=exc.message, retryable=exc.retryable)
            return JSONResponse(status_code=status, content=body.model_dump())


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed request bodies and params as 400 ``ValidationError``."""
    messages = [f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg', '')}" for err in exc.errors()]
    _logger.warning("request_validation_failed", path=str(request.url.path), errors=messages[:5])
    body = ErrorResponse(error="ValidationError", detail="; ".join(messages))
    return JSONResponse(status_code=400, content=body.model_dump())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
