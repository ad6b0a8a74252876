"""Tests for the typed exception hierarchy: categories, codes and data."""

from datetime import datetime, timezone

import pytest

from couponbook_kernel import exceptions as exc


@pytest.mark.parametrize(
    "error,category,code",
    [
        (exc.UnbalancedEntryError(100, 90), exc.PostingError, "UNBALANCED_ENTRY"),
        (exc.UnsupportedEventTypeError("bogus"), exc.PostingError, "UNSUPPORTED_EVENT_TYPE"),
        (exc.InvalidPayloadError("refund_processed", "refund_id", "is required"),
         exc.PostingError, "INVALID_PAYLOAD"),
        (exc.AccountNotFoundError("9999"), exc.AccountError, "ACCOUNT_NOT_FOUND"),
        (exc.RuleNotFoundError("r-1"), exc.TargetingError, "RULE_NOT_FOUND"),
        (exc.InvalidRuleError(["Rule name is required"]), exc.TargetingError, "INVALID_RULE"),
        (exc.RuleInactiveError("r-1"), exc.TargetingError, "RULE_INACTIVE"),
        (exc.DuplicateGrantError("u1", "c1"), exc.GrantError, "DUPLICATE_GRANT"),
        (exc.GrantLimitReachedError("r-1", 10), exc.GrantError, "GRANT_LIMIT_REACHED"),
        (exc.UserNotEligibleError("u1", "r-1"), exc.GrantError, "USER_NOT_ELIGIBLE"),
        (exc.RateLimitExceededError("1.2.3.4", 5, datetime(2025, 1, 15, tzinfo=timezone.utc)),
         exc.RateLimitError, "RATE_LIMIT_EXCEEDED"),
    ],
)
def test_category_and_code(error, category, code):
    assert isinstance(error, category)
    assert isinstance(error, exc.CouponBookError)
    assert error.code == code


def test_unbalanced_message_carries_totals():
    error = exc.UnbalancedEntryError(100, 90)
    assert (error.debits, error.credits) == (100, 90)
    assert "100" in str(error) and "90" in str(error)


def test_invalid_payload_message():
    error = exc.InvalidPayloadError("refund_processed", "refund_id", "is required")
    assert str(error) == "Invalid payload for refund_processed: refund_id is required"


def test_rate_limit_message_includes_reset():
    reset_at = datetime(2025, 1, 15, 12, 5, tzinfo=timezone.utc)
    error = exc.RateLimitExceededError("1.2.3.4", 5, reset_at)
    assert error.reset_at == reset_at
    assert reset_at.isoformat() in str(error)
