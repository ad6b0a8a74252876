"""
Kernel Invariants Contract.

These invariants are structural law. No configuration value, rate limit
setting, or caller flag may override them.

This module exists solely to declare these invariants explicitly. The
enforcement is distributed across the targeting engine, the ledger engine,
JournalWriter, and CouponGrantService.
"""

from enum import Enum, unique


@unique
class KernelInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel.

    Each value names one structural guarantee that the kernel provides
    unconditionally.
    """

    DOUBLE_ENTRY_BALANCE = "double_entry_balance"
    """Debits must equal credits in every journal entry, with at least one
    line on each side. Enforced by validate_journal_entry and refused by
    JournalWriter before anything is written."""

    ATOMIC_JOURNAL_WRITE = "atomic_journal_write"
    """A journal header and its lines are written together or not at all.
    Enforced by JournalWriter with a savepoint around the write."""

    FAIL_CLOSED_MATCHING = "fail_closed_matching"
    """Absent fields, unparseable values and type mismatches never match a
    targeting condition. Enforced by the targeting engine."""

    GRANT_UNIQUENESS = "grant_uniqueness"
    """A user holds at most one grant per coupon. Enforced by
    CouponGrantService and a unique constraint on coupon_grants."""

    GRANT_LIMIT = "grant_limit"
    """A targeting rule never issues more than max_grants grants. Enforced
    by CouponGrantService."""


# All invariants as a frozenset for programmatic checks.
ALL_KERNEL_INVARIANTS: frozenset[KernelInvariant] = frozenset(KernelInvariant)

# The kernel package may not import from these packages.
# This is enforced by tests/architecture/test_kernel_boundary.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "couponbook_engines",
    "couponbook_services",
    "couponbook_config",
)
