"""Exception handlers for FastAPI.

Every error leaves the API as a flat JSON body::

    {"error": "...", "errorCode": "...", <details>, "correlation_id": "..."}

Entitlement denials put their tier, usage and limit data next to
``errorCode`` so clients can render an upgrade prompt directly.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from genealogy_buddy.core.exceptions import (
    ErrorCode,
    GenealogyBuddyException,
    get_http_status_for_exception,
)
from genealogy_buddy.core.logging import get_correlation_id, get_logger

if TYPE_CHECKING:
    from fastapi import FastAPI

logger = get_logger(__name__)


def create_error_response(
    error_code: str,
    message: str,
    details: dict[str, Any] | None = None,
    correlation_id: str | None = None,
) -> dict[str, Any]:
    """Create a flat error response body.

    Args:
        error_code: Machine-readable error code.
        message: Human-readable error message.
        details: Additional fields merged into the body.
        correlation_id: Request correlation ID.
    """
    response: dict[str, Any] = {
        "error": message,
        "errorCode": error_code,
    }
    if details:
        response.update(details)
    if correlation_id:
        response["correlation_id"] = correlation_id
    return response


async def genealogy_buddy_exception_handler(
    request: Request,
    exc: GenealogyBuddyException,
) -> JSONResponse:
    """Handle GenealogyBuddyException and subclasses."""
    correlation_id = get_correlation_id()

    log = logger.error if exc.http_status.value >= 500 else logger.warning
    log(
        "genealogy_buddy_exception",
        error_code=exc.error_code.value,
        error_message=exc.message,
        http_status=exc.http_status.value,
        path=request.url.path,
        details=exc.details,
    )

    body = exc.to_dict()
    if correlation_id:
        body["correlation_id"] = correlation_id

    return JSONResponse(
        status_code=exc.http_status.value,
        content=body,
        headers=exc.headers or None,
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Handle FastAPI request validation errors."""
    correlation_id = get_correlation_id()

    errors = []
    for error in exc.errors():
        field_path = " -> ".join(str(loc) for loc in error["loc"])
        errors.append(
            {
                "field": field_path,
                "message": error["msg"],
                "type": error["type"],
            }
        )

    logger.warning(
        "validation_error",
        path=request.url.path,
        error_count=len(errors),
        errors=errors[:5],
    )

    return JSONResponse(
        status_code=400,
        content=create_error_response(
            error_code=ErrorCode.VALIDATION_ERROR.value,
            message="Request validation failed",
            details={"validationErrors": errors},
            correlation_id=correlation_id,
        ),
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """Map plain HTTP exceptions (404, 405, ...) onto the error format."""
    correlation_id = get_correlation_id()

    status_to_error_code = {
        400: ErrorCode.VALIDATION_ERROR,
        401: ErrorCode.UNAUTHENTICATED,
        403: ErrorCode.PERMISSION_DENIED,
        404: ErrorCode.RESOURCE_NOT_FOUND,
        405: ErrorCode.VALIDATION_ERROR,
        413: ErrorCode.PAYLOAD_TOO_LARGE,
        415: ErrorCode.UNSUPPORTED_MEDIA_TYPE,
        429: ErrorCode.RATE_LIMITED,
        500: ErrorCode.INTERNAL_ERROR,
        502: ErrorCode.UPSTREAM_FAILURE,
        503: ErrorCode.STORAGE_FAILURE,
        504: ErrorCode.UPSTREAM_FAILURE,
    }
    error_code = status_to_error_code.get(exc.status_code, ErrorCode.UNKNOWN_ERROR)

    logger.warning(
        "http_exception",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(
            error_code=error_code.value,
            message=str(exc.detail) if exc.detail else "An error occurred",
            correlation_id=correlation_id,
        ),
        headers=getattr(exc, "headers", None),
    )


async def generic_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle unexpected exceptions without leaking internals."""
    correlation_id = get_correlation_id()
    http_status = get_http_status_for_exception(exc)

    logger.exception(
        "unhandled_exception",
        error_type=type(exc).__name__,
        error_message=str(exc),
        path=request.url.path,
    )

    return JSONResponse(
        status_code=http_status.value,
        content=create_error_response(
            error_code=ErrorCode.INTERNAL_ERROR.value,
            message="An unexpected error occurred. Please try again later.",
            correlation_id=correlation_id,
        ),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application."""
    app.add_exception_handler(GenealogyBuddyException, genealogy_buddy_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, generic_exception_handler)
