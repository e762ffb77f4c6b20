"""Custom exceptions for Genealogy Buddy.

Every error the API can return derives from ``GenealogyBuddyException`` and
carries a machine-readable ``ErrorCode``, an HTTP status and optional
structured details. Entitlement denials carry enough data (tier, usage,
limit) for a client to render an upgrade prompt without a second round trip.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from http import HTTPStatus
from typing import Any


class ErrorCode(str, Enum):
    """Machine-readable error codes for API responses."""

    # General
    INTERNAL_ERROR = "INTERNAL_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"

    # Identity
    UNAUTHENTICATED = "UNAUTHENTICATED"
    TOKEN_INVALID = "TOKEN_INVALID"
    PERMISSION_DENIED = "PERMISSION_DENIED"

    # Entitlements
    FEATURE_UNAVAILABLE = "FEATURE_UNAVAILABLE"
    LIMIT_EXCEEDED = "LIMIT_EXCEEDED"
    RATE_LIMITED = "RATE_LIMITED"

    # Input
    VALIDATION_ERROR = "VALIDATION_ERROR"
    PAYLOAD_TOO_LARGE = "PAYLOAD_TOO_LARGE"
    UNSUPPORTED_MEDIA_TYPE = "UNSUPPORTED_MEDIA_TYPE"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"

    # Dependencies
    UPSTREAM_FAILURE = "UPSTREAM_FAILURE"
    STORAGE_FAILURE = "STORAGE_FAILURE"


class GenealogyBuddyException(Exception):
    """Base exception for all Genealogy Buddy errors.

    Attributes:
        message: Human-readable error message (logged).
        error_code: Machine-readable error code.
        http_status: HTTP status code for API responses.
        details: Additional structured context, merged into the response body.
        user_message: Message shown to end users (may differ from message).
    """

    message: str = "An unexpected error occurred"
    error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR
    http_status: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR
    user_message: str | None = None

    def __init__(
        self,
        message: str | None = None,
        *,
        error_code: ErrorCode | None = None,
        http_status: HTTPStatus | None = None,
        details: dict[str, Any] | None = None,
        user_message: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.message = message or self.__class__.message
        self.error_code = error_code or self.__class__.error_code
        self.http_status = http_status or self.__class__.http_status
        self.details = details or {}
        self.user_message = user_message or self.__class__.user_message or self.message
        self.headers = headers or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to the flat API error body."""
        body: dict[str, Any] = {
            "error": self.user_message,
            "errorCode": self.error_code.value,
        }
        body.update(self.details)
        return body

    def __str__(self) -> str:
        return f"[{self.error_code.value}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code.value}, "
            f"http_status={self.http_status.value}, "
            f"details={self.details!r}"
            f")"
        )


# ============================================================================
# Identity Exceptions
# ============================================================================


class AuthenticationError(GenealogyBuddyException):
    """No authenticated session for a route that requires one."""

    message = "Authentication required"
    error_code = ErrorCode.UNAUTHENTICATED
    http_status = HTTPStatus.UNAUTHORIZED
    user_message = "Please sign in to use this tool."


class InvalidTokenError(AuthenticationError):
    """Bearer token could not be verified."""

    message = "Invalid or expired token"
    error_code = ErrorCode.TOKEN_INVALID
    user_message = "Your session has expired. Please sign in again."


class AuthorizationError(GenealogyBuddyException):
    """Authenticated but not allowed."""

    message = "Permission denied"
    error_code = ErrorCode.PERMISSION_DENIED
    http_status = HTTPStatus.FORBIDDEN


# ============================================================================
# Entitlement Exceptions
# ============================================================================


class EntitlementDeniedError(GenealogyBuddyException):
    """An access decision denied the request.

    Carries the decision data so the client can render an upgrade prompt.
    """

    upgrade_message = "Upgrade your plan for higher monthly limits."

    def __init__(
        self,
        message: str | None = None,
        *,
        tier: str | None = None,
        feature: str | None = None,
        current_usage: int | None = None,
        limit: int | None = None,
        reset_at: datetime | None = None,
        upgrade_message: str | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {}) or {}
        if tier is not None:
            details["tier"] = tier
        if feature is not None:
            details["feature"] = feature
        if current_usage is not None:
            details["currentUsage"] = current_usage
        if limit is not None:
            details["limit"] = limit
        if reset_at is not None:
            details["resetAt"] = reset_at.isoformat()
        details["upgradeMessage"] = upgrade_message or self.upgrade_message

        self.tier = tier
        self.feature = feature
        self.current_usage = current_usage
        self.limit = limit
        super().__init__(message, details=details, **kwargs)


class SignInRequiredError(EntitlementDeniedError):
    """Tool is limited to signed-in users."""

    message = "Authentication required for this tool"
    error_code = ErrorCode.UNAUTHENTICATED
    http_status = HTTPStatus.UNAUTHORIZED
    user_message = "Please sign in to use this tool."
    upgrade_message = "Sign up for free to use this tool."


class FeatureUnavailableError(EntitlementDeniedError):
    """The subscription tier does not include the feature at all."""

    message = "Feature not included in the current plan"
    error_code = ErrorCode.FEATURE_UNAVAILABLE
    http_status = HTTPStatus.PAYMENT_REQUIRED
    user_message = "This tool is not included in your current plan."
    upgrade_message = "Upgrade your plan to unlock this tool."


class LimitExceededError(EntitlementDeniedError):
    """Monthly quota for the feature is exhausted."""

    message = "Monthly usage limit reached"
    error_code = ErrorCode.LIMIT_EXCEEDED
    http_status = HTTPStatus.TOO_MANY_REQUESTS
    user_message = "You have reached your monthly limit for this tool."


class AccessCheckFailedError(EntitlementDeniedError):
    """The access check itself could not be completed; access is denied."""

    message = "Access check failed"
    error_code = ErrorCode.UNKNOWN_ERROR
    http_status = HTTPStatus.SERVICE_UNAVAILABLE
    user_message = "We could not verify your plan right now. Please try again shortly."
    upgrade_message = "Please try again in a few minutes."


class RateLimitError(GenealogyBuddyException):
    """Too many tool requests in the current window."""

    message = "Rate limit exceeded"
    error_code = ErrorCode.RATE_LIMITED
    http_status = HTTPStatus.TOO_MANY_REQUESTS
    user_message = "You have made too many requests. Please wait before trying again."

    def __init__(
        self,
        message: str | None = None,
        *,
        retry_after: int | None = None,
        limit: int | None = None,
        window_seconds: int | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {}) or {}
        headers = kwargs.pop("headers", {}) or {}
        if retry_after:
            details["retryAfterSeconds"] = retry_after
            headers["Retry-After"] = str(retry_after)
        if limit:
            details["limit"] = limit
        if window_seconds:
            details["windowSeconds"] = window_seconds
        self.retry_after = retry_after
        super().__init__(message, details=details, headers=headers, **kwargs)


# ============================================================================
# Input Exceptions
# ============================================================================


class ValidationError(GenealogyBuddyException):
    """Request input failed validation."""

    message = "Validation error"
    error_code = ErrorCode.VALIDATION_ERROR
    http_status = HTTPStatus.BAD_REQUEST

    def __init__(
        self,
        message: str | None = None,
        *,
        field: str | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {}) or {}
        if field:
            details["field"] = field
        super().__init__(message, details=details, **kwargs)


class PayloadTooLargeError(ValidationError):
    """Uploaded file exceeds the size limit."""

    message = "File too large"
    error_code = ErrorCode.PAYLOAD_TOO_LARGE
    http_status = HTTPStatus.REQUEST_ENTITY_TOO_LARGE


class UnsupportedMediaTypeError(ValidationError):
    """Uploaded file type is not accepted."""

    message = "Unsupported file type"
    error_code = ErrorCode.UNSUPPORTED_MEDIA_TYPE
    http_status = HTTPStatus.UNSUPPORTED_MEDIA_TYPE


class NotFoundError(GenealogyBuddyException):
    """Resource not found."""

    message = "Resource not found"
    error_code = ErrorCode.RESOURCE_NOT_FOUND
    http_status = HTTPStatus.NOT_FOUND
    user_message = "The requested item was not found."


# ============================================================================
# Dependency Exceptions
# ============================================================================


class UpstreamFailureError(GenealogyBuddyException):
    """The external AI provider failed."""

    message = "AI provider request failed"
    error_code = ErrorCode.UPSTREAM_FAILURE
    http_status = HTTPStatus.BAD_GATEWAY
    user_message = "The analysis service is temporarily unavailable. Please try again."

    def __init__(
        self,
        message: str | None = None,
        *,
        source: str = "ai_provider",
        status_code: int | None = None,
        **kwargs: Any,
    ) -> None:
        self.source = source
        self.api_status_code = status_code
        super().__init__(message, **kwargs)


class UpstreamTimeoutError(UpstreamFailureError):
    """The external AI provider did not answer within the request timeout."""

    message = "AI provider request timed out"
    http_status = HTTPStatus.GATEWAY_TIMEOUT
    user_message = "The analysis took too long. Please try again."


class StorageError(GenealogyBuddyException):
    """The data store is unavailable or a query failed."""

    message = "Data store unavailable"
    error_code = ErrorCode.STORAGE_FAILURE
    http_status = HTTPStatus.SERVICE_UNAVAILABLE
    user_message = "A storage error occurred. Please try again later."


def get_http_status_for_exception(exc: Exception) -> HTTPStatus:
    """Get the appropriate HTTP status code for an exception."""
    if isinstance(exc, GenealogyBuddyException):
        return exc.http_status

    exception_status_map: dict[type, HTTPStatus] = {
        ValueError: HTTPStatus.BAD_REQUEST,
        TypeError: HTTPStatus.BAD_REQUEST,
        PermissionError: HTTPStatus.FORBIDDEN,
        TimeoutError: HTTPStatus.GATEWAY_TIMEOUT,
    }

    for exc_type, status in exception_status_map.items():
        if isinstance(exc, exc_type):
            return status

    return HTTPStatus.INTERNAL_SERVER_ERROR
