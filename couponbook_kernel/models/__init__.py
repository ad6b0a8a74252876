"""ORM models for the coupon book kernel."""

from couponbook_kernel.models.account import Account
from couponbook_kernel.models.journal import JournalEntry, JournalLine
from couponbook_kernel.models.targeting import CouponGrant, CouponTargetingRule

__all__ = [
    "Account",
    "JournalEntry",
    "JournalLine",
    "CouponGrant",
    "CouponTargetingRule",
]
