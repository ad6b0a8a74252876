"""
School payout calculation - pure functions, no I/O.

A school earns a share ("points rate") of the gross sales its students
generate.  A platform fee is withheld from that share; the net payout
never goes below zero.

Usage:
    from couponbook_engines.payouts import calculate_school_payout

    result = calculate_school_payout(gross_sales_cents=10_001)
    result.gross_payout_cents   # 5001 (half-up)
    result.net_payout_cents     # 5001
"""

from __future__ import annotations

import random
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any

from couponbook_kernel.domain.clock import Clock, SystemClock
from couponbook_kernel.domain.codes import encode_base36, random_code

DEFAULT_POINTS_RATE = Decimal("0.5")


class PaymentMethod(str, Enum):
    BANK_TRANSFER = "bank_transfer"
    CHECK = "check"
    DIGITAL_WALLET = "digital_wallet"


class PayoutStatus(str, Enum):
    PENDING = "pending"
    PROCESSED = "processed"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class PayoutCalculation:
    """Result of calculate_school_payout, all in cents."""

    gross_payout_cents: int
    fee_cents: int
    net_payout_cents: int


@dataclass(frozen=True)
class PayoutValidation:
    valid: bool
    errors: tuple[str, ...] = ()

    def __bool__(self) -> bool:
        return self.valid


def calculate_school_payout(
    gross_sales_cents: int,
    points_rate: Decimal | float | str = DEFAULT_POINTS_RATE,
    fee_cents: int = 0,
) -> PayoutCalculation:
    """
    Compute a school's payout from its gross sales.

    Args:
        gross_sales_cents: Gross sales attributed to the school.
        points_rate: Share of gross sales owed to the school (0.5 = 50%).
        fee_cents: Platform fee withheld from the share.

    Returns:
        PayoutCalculation with the gross share rounded half-up to a whole
        cent and the net payout floored at zero.

    Raises:
        ValueError: If points_rate is negative.
    """
    rate = Decimal(str(points_rate))
    if rate < 0:
        raise ValueError(f"Points rate cannot be negative, got {rate}")

    gross_payout = int(
        (Decimal(gross_sales_cents) * rate).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    )
    return PayoutCalculation(
        gross_payout_cents=gross_payout,
        fee_cents=fee_cents,
        net_payout_cents=max(0, gross_payout - fee_cents),
    )


def generate_payout_reference(
    clock: Clock | None = None,
    rng: random.Random | None = None,
) -> str:
    """Reference number of the form ``PAY-<base36 millis>-<6 chars>``."""
    now = (clock or SystemClock()).now_utc()
    millis = int(now.timestamp() * 1000)
    return f"PAY-{encode_base36(millis)}-{random_code(6, rng)}"


def generate_receipt_number(
    school_id: str,
    clock: Clock | None = None,
    rng: random.Random | None = None,
) -> str:
    """Receipt number of the form ``RCP-<school id[:8]>-<YYYYMMDD>-<4 chars>``."""
    today = (clock or SystemClock()).now_utc().strftime("%Y%m%d")
    return f"RCP-{school_id[:8]}-{today}-{random_code(4, rng)}"


def validate_payout_data(payout: Mapping[str, Any]) -> PayoutValidation:
    """Check that a payout record has everything needed to be issued."""
    errors: list[str] = []

    if not payout.get("school_id"):
        errors.append("School ID is required")

    amount = payout.get("amount_cents")
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        errors.append("Payout amount must be greater than 0")

    if not payout.get("payout_date"):
        errors.append("Payout date is required")

    if not payout.get("payment_method"):
        errors.append("Payment method is required")

    if not payout.get("reference_number"):
        errors.append("Reference number is required")

    if not payout.get("period_start") or not payout.get("period_end"):
        errors.append("Period start and end dates are required")

    return PayoutValidation(valid=not errors, errors=tuple(errors))
