"""Translate typed service errors and unexpected failures into JSON error responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from uplus.core.config import settings
from uplus.services.errors import AuthenticationError, ServiceError

logger = logging.getLogger(__name__)


def _error_response(status_code: int, message: str, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": message}, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """Install handlers so every endpoint answers errors with {"detail": message}."""

    @app.exception_handler(ServiceError)
    async def handle_service_error(request: Request, exc: ServiceError) -> JSONResponse:
        log_fn = logger.error if exc.status_code >= 500 else logger.info
        log_fn(
            "Request failed: method=%s path=%s status=%s error=%s message=%s",
            request.method,
            request.url.path,
            exc.status_code,
            type(exc).__name__,
            exc.message,
        )
        headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
        return _error_response(exc.status_code, exc.message, headers)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "Unhandled error: method=%s path=%s", request.method, request.url.path
        )
        # Underlying message only leaves the process in debug mode.
        message = f"Internal server error: {exc}" if settings.DEBUG else "Internal server error"
        return _error_response(500, message)
