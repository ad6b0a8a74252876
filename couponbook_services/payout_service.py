"""
couponbook_services.payout_service -- School payouts through the ledger.

Responsibility:
    Computes a school's payout for a sales period with the payouts
    engine, accrues it as a payable, and issues it as cash once the
    payout record passes validation.  Both steps are journal entries
    written through AccountingEventService.

Architecture position:
    Services -- orchestration over engines + AccountingEventService.
    The points rate and default fee come from ``CouponBookConfig.payout``.

Failure modes:
    - InvalidPayloadError: the payout record fails validate_payout_data
      (every message attached), or the period is reversed.
    - UnbalancedEntryError / AccountNotFoundError: from the journal writer.
"""

from __future__ import annotations

import random
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from couponbook_config.schema import PayoutSettings
from couponbook_engines.ledger import generate_payout_accrual_event, generate_payout_event
from couponbook_engines.payouts import (
    PaymentMethod,
    PayoutCalculation,
    calculate_school_payout,
    generate_payout_reference,
    generate_receipt_number,
    validate_payout_data,
)
from couponbook_kernel.domain.accounting import AccountingEventType
from couponbook_kernel.domain.clock import Clock, SystemClock
from couponbook_kernel.exceptions import InvalidPayloadError
from couponbook_kernel.logging_config import get_logger
from couponbook_services.accounting_service import AccountingEventService, RecordedEvent

logger = get_logger("orchestration.payouts")


@dataclass(frozen=True)
class AccruedPayout:
    """A payout recognized as owed to a school.

    ``entry_id`` is None when the net payout is zero and nothing was
    journaled.
    """

    reference_number: str
    school_id: str
    period_start: date
    period_end: date
    calculation: PayoutCalculation
    entry_id: UUID | None

    @property
    def amount_cents(self) -> int:
        return self.calculation.net_payout_cents


@dataclass(frozen=True)
class IssuedPayout:
    reference_number: str
    receipt_number: str
    school_id: str
    amount_cents: int
    payment_method: PaymentMethod
    recorded: RecordedEvent


class PayoutService:
    """Accrue and issue school payouts.

    Usage:
        config = get_active_config()
        with session_scope() as session:
            payouts = PayoutService(session, payout_settings=config.payout)
            accrued = payouts.accrue(
                "school-1", 120_000, date(2024, 1, 1), date(2024, 1, 31)
            )
            payouts.issue({
                "school_id": "school-1",
                "amount_cents": accrued.amount_cents,
                "reference_number": accrued.reference_number,
                "payout_date": date(2024, 2, 5),
                "payment_method": "bank_transfer",
                "period_start": accrued.period_start,
                "period_end": accrued.period_end,
            })
    """

    def __init__(
        self,
        session: Session,
        payout_settings: PayoutSettings | None = None,
        clock: Clock | None = None,
        rng: random.Random | None = None,
        accounting: AccountingEventService | None = None,
    ) -> None:
        self._settings = payout_settings or PayoutSettings()
        self._clock = clock or SystemClock()
        self._rng = rng
        self._accounting = accounting or AccountingEventService(session, clock=self._clock)

    def calculate(self, gross_sales_cents: int, fee_cents: int | None = None) -> PayoutCalculation:
        """Payout for ``gross_sales_cents`` at the configured points rate."""
        if fee_cents is None:
            fee_cents = self._settings.default_fee_cents
        return calculate_school_payout(
            gross_sales_cents, points_rate=self._settings.points_rate, fee_cents=fee_cents
        )

    def accrue(
        self,
        school_id: str,
        gross_sales_cents: int,
        period_start: date,
        period_end: date,
        fee_cents: int | None = None,
        created_by: str = "system",
    ) -> AccruedPayout:
        """Recognize the school's share of a period's sales as payable.

        Raises:
            InvalidPayloadError: If period_end is before period_start.
        """
        event_type = AccountingEventType.PAYOUT_ACCRUED.value
        if not school_id:
            raise InvalidPayloadError(event_type, "school_id", "is required")
        if period_end < period_start:
            raise InvalidPayloadError(event_type, "period_end", "must not be before period_start")

        calculation = self.calculate(gross_sales_cents, fee_cents)
        reference = generate_payout_reference(self._clock, self._rng)

        entry_id = None
        if calculation.net_payout_cents > 0:
            event = generate_payout_accrual_event(
                reference,
                calculation.net_payout_cents,
                school_id,
                created_by,
                clock=self._clock,
            )
            entry_id = self._accounting.record(event).entry_id

        logger.info(
            "payout_accrued",
            extra={
                "school_id": school_id,
                "reference_number": reference,
                "gross_sales_cents": gross_sales_cents,
                "net_payout_cents": calculation.net_payout_cents,
                "journaled": entry_id is not None,
            },
        )
        return AccruedPayout(
            reference_number=reference,
            school_id=school_id,
            period_start=period_start,
            period_end=period_end,
            calculation=calculation,
            entry_id=entry_id,
        )

    def issue(self, payout: Mapping[str, Any], created_by: str = "system") -> IssuedPayout:
        """Pay an accrued payout in cash.

        ``payout`` carries school_id, amount_cents, payout_date,
        payment_method, reference_number, period_start and period_end.

        Raises:
            InvalidPayloadError: With every validation message joined.
        """
        event_type = AccountingEventType.PAYOUT_ISSUED.value
        validation = validate_payout_data(payout)
        if not validation:
            logger.warning(
                "payout_refused",
                extra={
                    "school_id": payout.get("school_id"),
                    "errors": list(validation.errors),
                },
            )
            raise InvalidPayloadError(event_type, "payout", "; ".join(validation.errors))

        try:
            method = PaymentMethod(payout["payment_method"])
        except ValueError:
            raise InvalidPayloadError(
                event_type, "payment_method", f"is not supported: {payout['payment_method']}"
            ) from None

        school_id = payout["school_id"]
        reference = payout["reference_number"]
        event = generate_payout_event(
            reference, payout["amount_cents"], school_id, created_by, clock=self._clock
        )
        recorded = self._accounting.record(event)
        receipt = generate_receipt_number(school_id, self._clock, self._rng)

        logger.info(
            "payout_issued",
            extra={
                "school_id": school_id,
                "reference_number": reference,
                "receipt_number": receipt,
                "amount_cents": payout["amount_cents"],
                "payment_method": method.value,
            },
        )
        return IssuedPayout(
            reference_number=reference,
            receipt_number=receipt,
            school_id=school_id,
            amount_cents=payout["amount_cents"],
            payment_method=method,
            recorded=recorded,
        )
