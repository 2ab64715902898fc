"""Global error handling to prevent information disclosure."""

import logging
from typing import Any

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from lifecycle_api.config import get_settings
from lifecycle_api.exceptions import (
    ConflictError,
    LifecycleAPIError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def _get_cors_headers(request: Request) -> dict[str, str]:
    """Get CORS headers for error responses.

    Exception handlers run before the CORS middleware can add headers, so
    allowed origins get them here.
    """
    origin = request.headers.get("origin")
    if origin and origin in get_settings().cors_origins_list:
        return {
            "Access-Control-Allow-Origin": origin,
            "Access-Control-Allow-Credentials": "true",
        }
    return {}


# Safe error messages that can be shown to users
SAFE_ERROR_MESSAGES = {
    400: "Invalid request",
    404: "Resource not found",
    405: "Method not allowed",
    409: "Conflict with existing resource",
    422: "Invalid input data",
    500: "Internal server error",
    502: "Service unavailable",
    503: "Service temporarily unavailable",
}


def sanitize_error_detail(detail: Any, status_code: int) -> str:
    """Sanitize error detail to prevent information disclosure.

    Args:
        detail: Original error detail
        status_code: HTTP status code

    Returns:
        Safe error message
    """
    if isinstance(detail, list):
        # Validation errors: keep field names, drop type details
        safe_errors = []
        for error in detail:
            if isinstance(error, dict):
                loc = error.get("loc", [])
                msg = error.get("msg", "Invalid value")
                field = loc[-1] if loc else "field"
                if isinstance(field, str) and not field.startswith("_"):
                    safe_errors.append(f"{field}: {msg}")
        if safe_errors:
            return "; ".join(safe_errors[:3])

    return SAFE_ERROR_MESSAGES.get(status_code, "Request failed")


def _status_for(exc: LifecycleAPIError) -> int:
    if isinstance(exc, NotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, ConflictError):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, ValidationError):
        return status.HTTP_400_BAD_REQUEST
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def lifecycle_exception_handler(request: Request, exc: LifecycleAPIError) -> JSONResponse:
    """Map service-layer errors to HTTP responses.

    Their messages are written for users; anything unmapped becomes a 500
    with a generic message.
    """
    status_code = _status_for(exc)
    cors_headers = _get_cors_headers(request)

    if status_code == status.HTTP_500_INTERNAL_SERVER_ERROR:
        logger.error("Unmapped service error for %s: %s", request.url.path, exc.message)
        detail = SAFE_ERROR_MESSAGES[500]
    else:
        detail = exc.message

    return JSONResponse(
        status_code=status_code,
        content={"detail": detail},
        headers=cors_headers,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions with sanitized messages."""
    cors_headers = _get_cors_headers(request)

    if get_settings().debug:
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=cors_headers,
        )

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": sanitize_error_detail(exc.detail, exc.status_code)},
        headers=cors_headers,
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle request validation exceptions with sanitized messages."""
    cors_headers = _get_cors_headers(request)
    logger.warning("Validation error for %s: %s", request.url.path, exc.errors())

    if get_settings().debug:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={"detail": exc.errors()},
            headers=cors_headers,
        )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": sanitize_error_detail(exc.errors(), status.HTTP_422_UNPROCESSABLE_ENTITY)},
        headers=cors_headers,
    )


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Handle database exceptions without leaking database details."""
    cors_headers = _get_cors_headers(request)
    logger.error("Database error for %s: %s", request.url.path, exc, exc_info=True)

    if isinstance(exc, IntegrityError):
        message = str(exc).lower()
        if "unique" in message or "duplicate" in message:
            return JSONResponse(
                status_code=status.HTTP_409_CONFLICT,
                content={"detail": "Resource already exists"},
                headers=cors_headers,
            )
        if "foreign key" in message:
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content={"detail": "Referenced resource not found"},
                headers=cors_headers,
            )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Database error occurred"},
        headers=cors_headers,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions without leaking information."""
    cors_headers = _get_cors_headers(request)
    logger.error("Unhandled exception for %s: %s", request.url.path, exc, exc_info=True)

    if get_settings().debug:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": str(exc), "type": type(exc).__name__},
            headers=cors_headers,
        )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": SAFE_ERROR_MESSAGES[500]},
        headers=cors_headers,
    )
