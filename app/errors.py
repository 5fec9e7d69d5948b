"""Typed application errors and their HTTP rendering.

Services raise these; the handlers registered by ``register_error_handlers``
turn them into ``{"success": false, "error": "..."}`` responses.

Usage:
    # In service layer
    raise NotFoundError("Conversation not found")

    # In app factory
    register_error_handlers(app)
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from app.config import settings

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Base exception for all application errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AppError):
    """Malformed request. Maps to HTTP 400."""

    status_code = status.HTTP_400_BAD_REQUEST


class UnauthorizedError(AppError):
    """Missing or invalid bearer credential. Maps to HTTP 401."""

    status_code = status.HTTP_401_UNAUTHORIZED

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class ForbiddenError(AppError):
    """Feature gated behind payment. Maps to HTTP 403."""

    status_code = status.HTTP_403_FORBIDDEN

    def __init__(self, message: str = "Forbidden") -> None:
        super().__init__(message)


class NotFoundError(AppError):
    """Resource absent or not owned by the caller. Maps to HTTP 404."""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, message: str = "Not Found") -> None:
        super().__init__(message)


class UpstreamError(AppError):
    """Store, LLM or payment-provider call failed. Maps to HTTP 500."""


class ConfigurationError(AppError):
    """Server-side configuration is missing or inconsistent. Maps to HTTP 500."""


def _error_body(message: str) -> dict:
    return {"success": False, "error": message}


def _public_message(exc: Exception, fallback: str) -> str:
    if settings.is_production:
        return fallback
    return f"{fallback}: {type(exc).__name__}: {exc}"


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
        message = "Internal server error" if settings.is_production else exc.message
    else:
        message = exc.message
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content=_error_body(message), headers=headers)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        messages.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body(", ".join(messages) or "Invalid request body"),
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(_public_message(exc, "Internal server error")),
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
