"""
couponbook_services -- Package init and public API.

Responsibility:
    Stateful orchestration services that compose the pure calculation
    engines (couponbook_engines/) with database sessions, configuration
    and in-process state such as rate limit windows.

Architecture position:
    Services -- stateful orchestration over engines + kernel + config.

    Dependency direction (enforced by tests/architecture/test_kernel_boundary.py):
        couponbook_services/ -> couponbook_engines/  (allowed)
        couponbook_services/ -> couponbook_kernel/   (allowed)
        couponbook_engines/  -> couponbook_services/ (FORBIDDEN)
        couponbook_kernel/   -> couponbook_services/ (FORBIDDEN)

Audit relevance:
    This package is the canonical import surface for callers (route
    handlers, scheduled jobs, admin tools).
"""

from couponbook_services.accounting_service import (
    STANDARD_BUILDERS,
    AccountingEventService,
    EventBuilder,
    RecordedEvent,
)
from couponbook_services.payout_service import AccruedPayout, IssuedPayout, PayoutService
from couponbook_services.rate_limit import (
    InMemoryRateLimitStore,
    RateLimiter,
    RateLimitResult,
    RateLimitStore,
    RateLimitWindow,
)
from couponbook_services.targeting_service import TargetingService

__all__ = [
    "STANDARD_BUILDERS",
    "AccountingEventService",
    "AccruedPayout",
    "EventBuilder",
    "InMemoryRateLimitStore",
    "IssuedPayout",
    "PayoutService",
    "RateLimitResult",
    "RateLimitStore",
    "RateLimitWindow",
    "RateLimiter",
    "RecordedEvent",
    "TargetingService",
]
