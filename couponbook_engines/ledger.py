"""
couponbook_engines.ledger -- Double-entry event construction, validation and reporting.

Responsibility:
    Build balanced journal entries for each money-moving business event
    (purchase, refund, discount, payout), provide the authoritative
    debit/credit gate (``validate_journal_entry``) that every entry must
    pass before it is persisted, and derive financial statements from
    accounting events.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import couponbook_kernel/domain types.  Time is read from an
    injected Clock, never from ``datetime.now()``.

Invariants enforced:
    - Balance: every generate_* function emits lines whose debit total
      equals its credit total, with at least one line on each side.
    - The gate never coerces numbers to balance; an unbalanced entry is
      reported with both totals and must be refused by the caller.
    - Integer cents only.

Failure modes:
    - validate_journal_entry never raises for malformed lines; it returns
      an invalid JournalValidation.
    - generate_* raise ValueError when the inputs would require a negative
      line (e.g. a discount larger than the gross amount).

Line construction:

    purchase   Dr Cash            gross - discount - fee
               Dr Stripe Fees     fee
               Dr Discounts       discount        (omitted when 0)
               Cr Sales           gross

    refund     Dr Refunds         refund
               Cr Cash            refund
               Dr Cash            fee refund      (when > 0)
               Cr Stripe Fees     fee refund      (when > 0)

    discount   Dr Discounts / Cr Sales
    accrual    Dr Partner Payouts / Cr Payouts Payable
    payout     Dr Payouts Payable / Cr Cash
"""

from __future__ import annotations

import csv
import io
from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any

from couponbook_engines.tracer import traced_engine
from couponbook_kernel.domain.accounting import (
    AccountCode,
    AccountingEvent,
    AccountingEventType,
    BalanceSheet,
    CashMovements,
    FinancialStatement,
    IncomeStatement,
    JournalLineSpec,
    JournalValidation,
    LineSide,
    PeriodOption,
    SalesMetrics,
)
from couponbook_kernel.domain.clock import Clock, SystemClock

DEBIT = LineSide.DEBIT
CREDIT = LineSide.CREDIT


# =============================================================================
# Validation gate
# =============================================================================


@traced_engine("ledger", "1.0", fingerprint_fields=("lines",))
def validate_journal_entry(
    lines: Iterable[JournalLineSpec | Mapping[str, Any]],
) -> JournalValidation:
    """Validate that debits equal credits in a journal entry.

    Args:
        lines: JournalLineSpec objects or plain mappings with
            ``account_code``, ``amount_cents`` and ``side`` keys.

    Returns:
        JournalValidation.  ``valid`` is True iff the debit and credit
        totals are equal and there is at least one debit and one credit
        line.  On failure ``error`` names both totals.
    """
    total_debits = 0
    total_credits = 0
    debit_lines = 0
    credit_lines = 0

    for index, raw in enumerate(lines):
        parsed = _side_and_amount(raw)
        if parsed is None:
            return JournalValidation(
                valid=False,
                total_debits_cents=total_debits,
                total_credits_cents=total_credits,
                error=(
                    f"Invalid journal line at index {index} "
                    f"(debits={total_debits}, credits={total_credits})"
                ),
            )
        side, amount = parsed
        if side == DEBIT:
            total_debits += amount
            debit_lines += 1
        else:
            total_credits += amount
            credit_lines += 1

    if total_debits != total_credits:
        return JournalValidation(
            valid=False,
            total_debits_cents=total_debits,
            total_credits_cents=total_credits,
            error=f"Debits ({total_debits}) do not equal credits ({total_credits})",
        )

    if debit_lines == 0 or credit_lines == 0:
        return JournalValidation(
            valid=False,
            total_debits_cents=total_debits,
            total_credits_cents=total_credits,
            error=(
                "Entry must have at least one debit and one credit line "
                f"(debits={total_debits}, credits={total_credits})"
            ),
        )

    return JournalValidation(
        valid=True,
        total_debits_cents=total_debits,
        total_credits_cents=total_credits,
    )


def _side_and_amount(raw: JournalLineSpec | Mapping[str, Any]) -> tuple[LineSide, int] | None:
    if isinstance(raw, JournalLineSpec):
        return raw.side, raw.amount_cents
    if not isinstance(raw, Mapping):
        return None
    try:
        side = LineSide(raw.get("side"))
    except ValueError:
        return None
    amount = raw.get("amount_cents")
    if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
        return None
    return side, amount


# =============================================================================
# Event generators
# =============================================================================


def _now(clock: Clock | None) -> datetime:
    return (clock or SystemClock()).now_utc()


def _line(code: AccountCode, side: LineSide, amount_cents: int) -> JournalLineSpec:
    return JournalLineSpec(account_code=code, amount_cents=amount_cents, side=side)


def generate_purchase_event(
    purchase_id: str,
    gross_amount_cents: int,
    stripe_fee_cents: int,
    discount_cents: int,
    created_by: str,
    *,
    clock: Clock | None = None,
) -> AccountingEvent:
    """Journal entry for a successful coupon book purchase.

    Gross revenue is recognized in Sales; the cash actually deposited is
    gross less the discount and the processor fee.

    Raises:
        ValueError: If discount plus fee exceeds the gross amount.
    """
    cash_cents = gross_amount_cents - discount_cents - stripe_fee_cents
    if cash_cents < 0:
        raise ValueError(
            f"Discount ({discount_cents}) plus fee ({stripe_fee_cents}) exceeds "
            f"gross amount ({gross_amount_cents}) for purchase {purchase_id}"
        )

    lines = [
        _line(AccountCode.CASH, DEBIT, cash_cents),
        _line(AccountCode.STRIPE_FEES, DEBIT, stripe_fee_cents),
    ]
    if discount_cents > 0:
        lines.append(_line(AccountCode.DISCOUNTS, DEBIT, discount_cents))
    lines.append(_line(AccountCode.SALES, CREDIT, gross_amount_cents))

    return AccountingEvent(
        type=AccountingEventType.PURCHASE_SUCCESSFUL,
        occurred_at=_now(clock),
        description=f"Coupon book purchase {purchase_id}",
        source_id=purchase_id,
        created_by=created_by,
        lines=tuple(lines),
    )


def generate_refund_event(
    refund_id: str,
    refund_amount_cents: int,
    stripe_fee_refund_cents: int,
    created_by: str,
    *,
    clock: Clock | None = None,
) -> AccountingEvent:
    """Journal entry for a processed refund.

    A refunded processor fee reverses the purchase fee line: cash comes
    back and fee expense is reduced.
    """
    lines = [
        _line(AccountCode.REFUNDS, DEBIT, refund_amount_cents),
        _line(AccountCode.CASH, CREDIT, refund_amount_cents),
    ]
    if stripe_fee_refund_cents > 0:
        lines.append(_line(AccountCode.CASH, DEBIT, stripe_fee_refund_cents))
        lines.append(_line(AccountCode.STRIPE_FEES, CREDIT, stripe_fee_refund_cents))

    return AccountingEvent(
        type=AccountingEventType.REFUND_PROCESSED,
        occurred_at=_now(clock),
        description=f"Refund processed {refund_id}",
        source_id=refund_id,
        created_by=created_by,
        lines=tuple(lines),
    )


def generate_discount_event(
    discount_id: str,
    discount_amount_cents: int,
    created_by: str,
    *,
    clock: Clock | None = None,
) -> AccountingEvent:
    """Journal entry for a discount applied outside a purchase."""
    return AccountingEvent(
        type=AccountingEventType.DISCOUNT_APPLIED,
        occurred_at=_now(clock),
        description=f"Discount applied {discount_id}",
        source_id=discount_id,
        created_by=created_by,
        lines=(
            _line(AccountCode.DISCOUNTS, DEBIT, discount_amount_cents),
            _line(AccountCode.SALES, CREDIT, discount_amount_cents),
        ),
    )


def generate_payout_accrual_event(
    payout_id: str,
    payout_amount_cents: int,
    school_id: str,
    created_by: str,
    *,
    clock: Clock | None = None,
) -> AccountingEvent:
    """Journal entry recognizing a school's share as owed but unpaid."""
    return AccountingEvent(
        type=AccountingEventType.PAYOUT_ACCRUED,
        occurred_at=_now(clock),
        description=f"School payout {payout_id} accrued for school {school_id}",
        source_id=payout_id,
        created_by=created_by,
        lines=(
            _line(AccountCode.PARTNER_PAYOUTS, DEBIT, payout_amount_cents),
            _line(AccountCode.PAYOUTS_PAYABLE, CREDIT, payout_amount_cents),
        ),
        metadata={"school_id": school_id},
    )


def generate_payout_event(
    payout_id: str,
    payout_amount_cents: int,
    school_id: str,
    created_by: str,
    *,
    clock: Clock | None = None,
) -> AccountingEvent:
    """Journal entry for cash paid out to a school, settling the payable."""
    return AccountingEvent(
        type=AccountingEventType.PAYOUT_ISSUED,
        occurred_at=_now(clock),
        description=f"School payout {payout_id} to school {school_id}",
        source_id=payout_id,
        created_by=created_by,
        lines=(
            _line(AccountCode.PAYOUTS_PAYABLE, DEBIT, payout_amount_cents),
            _line(AccountCode.CASH, CREDIT, payout_amount_cents),
        ),
        metadata={"school_id": school_id},
    )


# =============================================================================
# Reporting
# =============================================================================


def calculate_net_sales(metrics: SalesMetrics) -> int:
    """Net sales: gross less refunds, discounts, fees and partner payouts."""
    return (
        metrics.gross_sales_cents
        - metrics.refunds_cents
        - metrics.discounts_cents
        - metrics.stripe_fees_cents
        - metrics.partner_payouts_cents
    )


class _Balances:
    """Debit and credit totals per account code."""

    def __init__(self) -> None:
        self.debits: dict[str, int] = defaultdict(int)
        self.credits: dict[str, int] = defaultdict(int)

    def add(self, event: AccountingEvent) -> None:
        for line in event.lines:
            if line.side == DEBIT:
                self.debits[line.account_code] += line.amount_cents
            else:
                self.credits[line.account_code] += line.amount_cents

    def debit_balance(self, code: AccountCode) -> int:
        return self.debits[code.value] - self.credits[code.value]

    def credit_balance(self, code: AccountCode) -> int:
        return self.credits[code.value] - self.debits[code.value]


@traced_engine("ledger", "1.0", fingerprint_fields=("start_date", "end_date"))
def calculate_financial_statement(
    start_date: date,
    end_date: date,
    events: Iterable[AccountingEvent],
) -> FinancialStatement:
    """Build the financial statement for ``[start_date, end_date]``.

    The income statement and cash movements cover events inside the
    period.  The balance sheet is cumulative through ``end_date``; the
    beginning cash balance comes from events before ``start_date``.
    """
    before = _Balances()
    period = _Balances()
    for event in events:
        day = event.occurred_at.date()
        if day < start_date:
            before.add(event)
        elif day <= end_date:
            period.add(event)

    gross_sales = period.credit_balance(AccountCode.SALES)
    discounts = period.debit_balance(AccountCode.DISCOUNTS)
    stripe_fees = period.debit_balance(AccountCode.STRIPE_FEES)
    partner_payouts = period.debit_balance(AccountCode.PARTNER_PAYOUTS)
    refunds = period.debit_balance(AccountCode.REFUNDS)

    revenue = gross_sales - discounts
    expenses = stripe_fees + partner_payouts + refunds

    beginning_cash = before.debit_balance(AccountCode.CASH)
    inflows = period.debits[AccountCode.CASH.value]
    outflows = period.credits[AccountCode.CASH.value]
    ending_cash = beginning_cash + inflows - outflows

    receivables = before.debit_balance(AccountCode.ACCOUNTS_RECEIVABLE) + period.debit_balance(
        AccountCode.ACCOUNTS_RECEIVABLE
    )
    payouts_payable = before.credit_balance(AccountCode.PAYOUTS_PAYABLE) + period.credit_balance(
        AccountCode.PAYOUTS_PAYABLE
    )
    deferred = before.credit_balance(AccountCode.DEFERRED_REVENUE) + period.credit_balance(
        AccountCode.DEFERRED_REVENUE
    )
    assets = ending_cash + receivables
    liabilities = payouts_payable + deferred

    return FinancialStatement(
        start_date=start_date,
        end_date=end_date,
        income_statement=IncomeStatement(
            revenue=revenue,
            expenses=expenses,
            net_income=revenue - expenses,
            gross_sales=gross_sales,
            discounts=discounts,
            stripe_fees=stripe_fees,
            partner_payouts=partner_payouts,
            refunds=refunds,
        ),
        balance_sheet=BalanceSheet(
            assets=assets,
            liabilities=liabilities,
            equity=assets - liabilities,
            cash=ending_cash,
            payouts_payable=payouts_payable,
        ),
        cash_movements=CashMovements(
            beginning_balance=beginning_cash,
            ending_balance=ending_cash,
            net_change=inflows - outflows,
            inflows=inflows,
            outflows=outflows,
        ),
    )


def format_currency(amount_cents: int) -> str:
    """Format cents as US dollars, e.g. 123456 -> "$1,234.56"."""
    amount = (Decimal(amount_cents) / 100).quantize(Decimal("0.01"))
    sign = "-" if amount < 0 else ""
    return f"{sign}${abs(amount):,.2f}"


def get_period_options(clock: Clock | None = None) -> list[PeriodOption]:
    """Standard reporting periods relative to the clock's current time."""
    now = (clock or SystemClock()).now_utc()
    current_month = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    last_month_end = current_month - timedelta(days=1)
    last_month = last_month_end.replace(day=1)
    return [
        PeriodOption("This Month", current_month, now),
        PeriodOption("Last Month", last_month, last_month_end),
        PeriodOption("Last 30 Days", now - timedelta(days=30), now),
        PeriodOption("Last 90 Days", now - timedelta(days=90), now),
    ]


def export_to_csv(rows: Sequence[Mapping[str, Any]]) -> str:
    """Render rows as CSV text with a header row; every cell is quoted.

    Columns come from the first row.  An empty input yields "".
    """
    if not rows:
        return ""
    headers = list(rows[0].keys())
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(headers)
    for row in rows:
        writer.writerow([row.get(h, "") for h in headers])
    return buffer.getvalue()
