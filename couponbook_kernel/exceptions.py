"""
Typed Exception Hierarchy for the Coupon Book Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (route handlers, jobs, admin tools) must react to failures by type,
not by parsing messages. Every exception here:
  1. Has a TYPED class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes (totals, ids, reset times)

Expected bad input is NOT an exception in the pure engines:
  - Targeting matches degrade to False (fail closed)
  - Rule validation returns a list of strings
  - Journal validation returns a JournalValidation result
Exceptions are raised at the persistence and orchestration boundary, where
an invalid result must stop the write.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    CouponBookError (base)
    |
    +-- PostingError
    |   +-- UnbalancedEntryError
    |   +-- UnsupportedEventTypeError
    |   +-- InvalidPayloadError
    |
    +-- AccountError
    |   +-- AccountNotFoundError
    |
    +-- TargetingError
    |   +-- RuleNotFoundError
    |   +-- InvalidRuleError
    |   +-- RuleInactiveError
    |
    +-- GrantError
    |   +-- DuplicateGrantError
    |   +-- GrantLimitReachedError
    |   +-- UserNotEligibleError
    |
    +-- RateLimitError
        +-- RateLimitExceededError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category   | Code                     | When Raised
-----------|--------------------------|------------------------------------------
Posting    | UNBALANCED_ENTRY         | Debits != Credits, or a side is empty
           | UNSUPPORTED_EVENT_TYPE   | No payload builder for the event type
           | INVALID_PAYLOAD          | Required payload field missing/invalid
-----------|--------------------------|------------------------------------------
Account    | ACCOUNT_NOT_FOUND        | Account code not in the chart of accounts
-----------|--------------------------|------------------------------------------
Targeting  | RULE_NOT_FOUND           | Targeting rule id does not exist
           | INVALID_RULE             | Rule failed structural validation
           | RULE_INACTIVE            | Grant attempted from an inactive rule
-----------|--------------------------|------------------------------------------
Grant      | DUPLICATE_GRANT          | User already holds the coupon
           | GRANT_LIMIT_REACHED      | Rule reached max_grants
           | USER_NOT_ELIGIBLE        | User does not match the rule
-----------|--------------------------|------------------------------------------
Rate limit | RATE_LIMIT_EXCEEDED      | Identifier exhausted its window budget

===============================================================================
HANDLING PATTERNS
===============================================================================

    try:
        service.record_event("purchase_successful", payload)
    except UnbalancedEntryError as e:
        return {"error": e.code, "debits": e.debits, "credits": e.credits}
    except PostingError as e:
        return {"error": e.code, "message": str(e)}
"""


class CouponBookError(Exception):
    """
    Base exception for all coupon book errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "COUPON_BOOK_ERROR"


# Posting-related exceptions


class PostingError(CouponBookError):
    """Base exception for journal posting errors."""

    code: str = "POSTING_ERROR"


class UnbalancedEntryError(PostingError):
    """Journal entry debits do not equal credits (or a side is empty)."""

    code: str = "UNBALANCED_ENTRY"

    def __init__(self, debits: int, credits: int, detail: str | None = None):
        self.debits = debits
        self.credits = credits
        self.detail = detail
        super().__init__(
            detail or f"Unbalanced entry: debits={debits}, credits={credits}"
        )


class UnsupportedEventTypeError(PostingError):
    """No accounting event builder is registered for the event type."""

    code: str = "UNSUPPORTED_EVENT_TYPE"

    def __init__(self, event_type: str, supported: tuple[str, ...] = ()):
        self.event_type = event_type
        self.supported = supported
        super().__init__(f"Unsupported event type: {event_type}")


class InvalidPayloadError(PostingError):
    """An accounting event payload is missing or has an invalid field."""

    code: str = "INVALID_PAYLOAD"

    def __init__(self, event_type: str, field: str, reason: str):
        self.event_type = event_type
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid payload for {event_type}: {field} {reason}")


# Account-related exceptions


class AccountError(CouponBookError):
    """Base exception for account-related errors."""

    code: str = "ACCOUNT_ERROR"


class AccountNotFoundError(AccountError):
    """Account code is not present in the chart of accounts."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_code: str):
        self.account_code = account_code
        super().__init__(f"Account not found: {account_code}")


# Targeting-related exceptions


class TargetingError(CouponBookError):
    """Base exception for targeting rule errors."""

    code: str = "TARGETING_ERROR"


class RuleNotFoundError(TargetingError):
    """Targeting rule with given ID was not found."""

    code: str = "RULE_NOT_FOUND"

    def __init__(self, rule_id: str):
        self.rule_id = rule_id
        super().__init__(f"Targeting rule not found: {rule_id}")


class InvalidRuleError(TargetingError):
    """Targeting rule failed structural validation."""

    code: str = "INVALID_RULE"

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("Invalid targeting rule: " + "; ".join(self.errors))


class RuleInactiveError(TargetingError):
    """Grant attempted from a rule that is switched off."""

    code: str = "RULE_INACTIVE"

    def __init__(self, rule_id: str):
        self.rule_id = rule_id
        super().__init__(f"Targeting rule is not active: {rule_id}")


# Grant-related exceptions


class GrantError(CouponBookError):
    """Base exception for coupon grant errors."""

    code: str = "GRANT_ERROR"


class DuplicateGrantError(GrantError):
    """User already holds a grant for this coupon."""

    code: str = "DUPLICATE_GRANT"

    def __init__(self, user_id: str, coupon_id: str):
        self.user_id = user_id
        self.coupon_id = coupon_id
        super().__init__(f"User {user_id} already has coupon {coupon_id}")


class GrantLimitReachedError(GrantError):
    """Targeting rule has reached its maximum number of grants."""

    code: str = "GRANT_LIMIT_REACHED"

    def __init__(self, rule_id: str, max_grants: int):
        self.rule_id = rule_id
        self.max_grants = max_grants
        super().__init__(
            f"Maximum grants ({max_grants}) reached for rule {rule_id}"
        )


class UserNotEligibleError(GrantError):
    """User does not match the rule the coupon is granted from."""

    code: str = "USER_NOT_ELIGIBLE"

    def __init__(self, user_id: str, rule_id: str):
        self.user_id = user_id
        self.rule_id = rule_id
        super().__init__(f"User {user_id} does not match targeting rule {rule_id}")


# Rate limit exceptions


class RateLimitError(CouponBookError):
    """Base exception for rate limiting errors."""

    code: str = "RATE_LIMIT_ERROR"


class RateLimitExceededError(RateLimitError):
    """Identifier exhausted its request budget for the current window."""

    code: str = "RATE_LIMIT_EXCEEDED"

    def __init__(self, identifier: str, limit: int, reset_at):
        self.identifier = identifier
        self.limit = limit
        self.reset_at = reset_at
        super().__init__(
            f"Rate limit exceeded for {identifier}: {limit} requests, "
            f"resets at {reset_at.isoformat()}"
        )
