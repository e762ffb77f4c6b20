"""Tests for the exception hierarchy and error bodies."""

from datetime import UTC, datetime

from genealogy_buddy.api.middleware.exception_handler import create_error_response
from genealogy_buddy.core.exceptions import (
    AccessCheckFailedError,
    ErrorCode,
    FeatureUnavailableError,
    GenealogyBuddyException,
    LimitExceededError,
    RateLimitError,
    SignInRequiredError,
    UpstreamFailureError,
    UpstreamTimeoutError,
    get_http_status_for_exception,
)


class TestEntitlementErrors:
    """Tests for denial exceptions."""

    def test_limit_exceeded_body(self) -> None:
        exc = LimitExceededError(
            tier="FREE",
            feature="documents",
            current_usage=2,
            limit=2,
            reset_at=datetime(2026, 4, 1, tzinfo=UTC),
        )

        body = exc.to_dict()

        assert exc.http_status == 429
        assert body["errorCode"] == "LIMIT_EXCEEDED"
        assert body["currentUsage"] == 2
        assert body["limit"] == 2
        assert body["resetAt"] == "2026-04-01T00:00:00+00:00"
        assert body["upgradeMessage"] == LimitExceededError.upgrade_message

    def test_status_codes(self) -> None:
        assert SignInRequiredError().http_status == 401
        assert FeatureUnavailableError().http_status == 402
        assert AccessCheckFailedError().http_status == 503
        assert AccessCheckFailedError().error_code == ErrorCode.UNKNOWN_ERROR

    def test_sign_in_has_its_own_upgrade_message(self) -> None:
        body = SignInRequiredError().to_dict()
        assert body["upgradeMessage"] == "Sign up for free to use this tool."


class TestOtherErrors:
    """Tests for non-entitlement exceptions."""

    def test_rate_limit_sets_retry_after(self) -> None:
        exc = RateLimitError(retry_after=120, limit=50, window_seconds=3600)
        assert exc.headers == {"Retry-After": "120"}
        assert exc.details["retryAfterSeconds"] == 120

    def test_upstream_timeout_is_upstream_failure(self) -> None:
        exc = UpstreamTimeoutError()
        assert isinstance(exc, UpstreamFailureError)
        assert exc.http_status == 504
        assert exc.error_code == ErrorCode.UPSTREAM_FAILURE

    def test_user_message_falls_back_to_message(self) -> None:
        exc = GenealogyBuddyException("Something broke")
        assert exc.to_dict()["error"] == "Something broke"

    def test_http_status_for_unknown_exception(self) -> None:
        assert get_http_status_for_exception(RuntimeError("x")) == 500


def test_create_error_response_is_flat() -> None:
    body = create_error_response(
        "LIMIT_EXCEEDED", "Limit reached", {"limit": 2}, correlation_id="abc"
    )
    assert body == {
        "error": "Limit reached",
        "errorCode": "LIMIT_EXCEEDED",
        "limit": 2,
        "correlation_id": "abc",
    }
