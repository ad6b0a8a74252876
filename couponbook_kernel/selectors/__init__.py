"""Read-only selectors returning domain DTOs."""

from couponbook_kernel.selectors.base import BaseSelector
from couponbook_kernel.selectors.journal_selector import JournalSelector
from couponbook_kernel.selectors.targeting_selector import (
    CouponGrantDTO,
    TargetingRuleRecord,
    TargetingSelector,
)

__all__ = [
    "BaseSelector",
    "CouponGrantDTO",
    "JournalSelector",
    "TargetingRuleRecord",
    "TargetingSelector",
]
