"""Error types and the REST error boundary.

Every handled failure is an ``ApiError`` subclass carrying its HTTP status.
The handlers registered by :func:`register_error_handlers` turn them into
``{"error": ..., "details": ...}`` JSON bodies; anything else is logged
with its traceback and reduced to a generic 500.
"""
import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import get_config

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Base class for errors that map onto an HTTP status code."""

    status_code: int = 500

    def __init__(self, message: str, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(ApiError):
    """Malformed or missing input."""
    status_code = 400


class AuthenticationError(ApiError):
    """Missing, invalid or expired credential."""
    status_code = 401


class NotFoundError(ApiError):
    """Resource absent, or hidden from the caller."""
    status_code = 404


class ConflictError(ApiError):
    """Unique value already taken."""
    status_code = 409


async def _api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("[API] %s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info(
            "[API] %s %s -> %d %s",
            request.method, request.url.path, exc.status_code, exc.message,
        )
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


async def _request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    details = [
        f"{'.'.join(str(part) for part in err.get('loc', ())[1:])}: {err.get('msg')}"
        for err in exc.errors()
    ]
    return JSONResponse({"error": "Validation Error", "details": details}, status_code=400)


async def _http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    if exc.status_code == 404:
        return JSONResponse(
            {
                "error": "Not Found",
                "details": f"The requested resource {request.url.path} was not found",
            },
            status_code=404,
        )
    return JSONResponse({"error": str(exc.detail)}, status_code=exc.status_code)


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("[API] Unhandled error on %s %s", request.method, request.url.path)
    debug = get_config().server.debug
    return JSONResponse(
        {
            "error": "Internal Server Error",
            "message": str(exc) if debug else "Something went wrong on the server",
        },
        status_code=500,
    )


def register_error_handlers(app: FastAPI) -> None:
    """Install the error boundary on *app*."""
    app.add_exception_handler(ApiError, _api_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
