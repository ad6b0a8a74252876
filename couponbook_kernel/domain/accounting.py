"""
Accounting -- Immutable domain types for the double-entry ledger.

Responsibility:
    Declares the closed chart of accounts, journal line shapes,
    accounting events (one business event = one journal entry), the
    validation result, and the financial statement DTOs produced by the
    ledger engine.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Consumed by couponbook_engines.ledger (construction, validation,
    reporting) and couponbook_kernel.services.journal_writer (persistence).

Invariants enforced:
    - Line amounts are integer cents and never negative; the side carries
      direction.
    - Account codes come from a closed vocabulary (AccountCode).  Nothing
      in the kernel invents codes.

Failure modes:
    - ValueError / TypeError on JournalLineSpec with a negative or
      non-integer amount.  These are programmer errors, not bad input.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from types import MappingProxyType
from typing import Any


class AccountType(str, Enum):
    """Types of accounts in the chart of accounts."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    REVENUE = "revenue"
    EXPENSE = "expense"


class NormalBalance(str, Enum):
    """Normal balance side for an account."""

    DEBIT = "debit"
    CREDIT = "credit"


class LineSide(str, Enum):
    """Which side of the entry a line is on."""

    DEBIT = "debit"
    CREDIT = "credit"


class AccountCode(str, Enum):
    """Closed chart of accounts codes."""

    CASH = "1000"
    ACCOUNTS_RECEIVABLE = "1100"
    DEFERRED_REVENUE = "2000"
    PAYOUTS_PAYABLE = "2100"
    SALES = "4000"
    DISCOUNTS = "4100"
    STRIPE_FEES = "5000"
    PARTNER_PAYOUTS = "5100"
    REFUNDS = "5200"


@dataclass(frozen=True)
class AccountDefinition:
    """One chart-of-accounts entry."""

    code: AccountCode
    name: str
    account_type: AccountType
    normal_balance: NormalBalance
    is_active: bool = True


CHART_OF_ACCOUNTS: tuple[AccountDefinition, ...] = (
    # Assets
    AccountDefinition(AccountCode.CASH, "Cash - Stripe Balance", AccountType.ASSET, NormalBalance.DEBIT),
    AccountDefinition(AccountCode.ACCOUNTS_RECEIVABLE, "Accounts Receivable", AccountType.ASSET, NormalBalance.DEBIT),
    # Liabilities
    AccountDefinition(AccountCode.DEFERRED_REVENUE, "Deferred Revenue", AccountType.LIABILITY, NormalBalance.CREDIT),
    AccountDefinition(AccountCode.PAYOUTS_PAYABLE, "Payouts Payable - Schools", AccountType.LIABILITY, NormalBalance.CREDIT),
    # Revenue (discounts are contra-revenue, so debit-normal)
    AccountDefinition(AccountCode.SALES, "Coupon Book Sales", AccountType.REVENUE, NormalBalance.CREDIT),
    AccountDefinition(AccountCode.DISCOUNTS, "Discounts (Contra-Revenue)", AccountType.REVENUE, NormalBalance.DEBIT),
    # Expenses
    AccountDefinition(AccountCode.STRIPE_FEES, "Stripe Fees", AccountType.EXPENSE, NormalBalance.DEBIT),
    AccountDefinition(AccountCode.PARTNER_PAYOUTS, "Partner Payouts (COGS)", AccountType.EXPENSE, NormalBalance.DEBIT),
    AccountDefinition(AccountCode.REFUNDS, "Refunds", AccountType.EXPENSE, NormalBalance.DEBIT),
)

ACCOUNTS_BY_CODE: Mapping[str, AccountDefinition] = MappingProxyType(
    {a.code.value: a for a in CHART_OF_ACCOUNTS}
)


class AccountingEventType(str, Enum):
    """Business events that produce journal entries."""

    PURCHASE_SUCCESSFUL = "purchase_successful"
    REFUND_PROCESSED = "refund_processed"
    DISCOUNT_APPLIED = "discount_applied"
    PAYOUT_ISSUED = "payout_issued"
    PAYOUT_ACCRUED = "payout_accrued"
    STRIPE_FEE_CHARGED = "stripe_fee_charged"
    ADJUSTMENT_MADE = "adjustment_made"


@dataclass(frozen=True)
class JournalLineSpec:
    """
    One side of a journal line before it is persisted.

    Contract:
        account_code is a chart-of-accounts code string ("1000"...),
        amount_cents a non-negative int, side a LineSide.

    Guarantees:
        - AccountCode members are normalized to their plain string code.
        - String sides are normalized to LineSide.
    """

    account_code: str
    amount_cents: int
    side: LineSide

    def __post_init__(self) -> None:
        if isinstance(self.account_code, AccountCode):
            object.__setattr__(self, "account_code", self.account_code.value)
        if not isinstance(self.side, LineSide):
            object.__setattr__(self, "side", LineSide(self.side))
        if isinstance(self.amount_cents, bool) or not isinstance(self.amount_cents, int):
            raise TypeError(
                f"amount_cents must be int, got {type(self.amount_cents).__name__}"
            )
        if self.amount_cents < 0:
            raise ValueError(f"Line amount must be non-negative, got {self.amount_cents}")

    @property
    def is_debit(self) -> bool:
        return self.side == LineSide.DEBIT

    def to_dict(self) -> dict[str, Any]:
        return {
            "account_code": self.account_code,
            "amount_cents": self.amount_cents,
            "side": self.side.value,
        }


@dataclass(frozen=True)
class AccountingEvent:
    """
    One business event expressed as a proposed journal entry.

    Contract:
        Produced by the ledger engine's generate_* functions.  Does NOT
        guarantee balance by itself; validate_journal_entry is the gate.
    """

    type: AccountingEventType
    occurred_at: datetime
    description: str
    source_id: str | None
    created_by: str
    lines: tuple[JournalLineSpec, ...]
    metadata: Mapping[str, Any] = field(default_factory=dict, compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.lines, tuple):
            object.__setattr__(self, "lines", tuple(self.lines))
        object.__setattr__(self, "metadata", MappingProxyType(dict(self.metadata)))

    @property
    def total_debits_cents(self) -> int:
        return sum(line.amount_cents for line in self.lines if line.side == LineSide.DEBIT)

    @property
    def total_credits_cents(self) -> int:
        return sum(line.amount_cents for line in self.lines if line.side == LineSide.CREDIT)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "occurred_at": self.occurred_at.isoformat(),
            "description": self.description,
            "source_id": self.source_id,
            "created_by": self.created_by,
            "lines": [line.to_dict() for line in self.lines],
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class JournalValidation:
    """
    Result of validate_journal_entry.

    error is set only when valid is False and always names both totals.
    """

    valid: bool
    total_debits_cents: int = 0
    total_credits_cents: int = 0
    error: str | None = None

    def __bool__(self) -> bool:
        return self.valid


# ---------------------------------------------------------------------------
# Reporting DTOs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SalesMetrics:
    """Components of net sales, all in cents."""

    gross_sales_cents: int = 0
    refunds_cents: int = 0
    discounts_cents: int = 0
    stripe_fees_cents: int = 0
    partner_payouts_cents: int = 0


@dataclass(frozen=True)
class IncomeStatement:
    revenue: int
    expenses: int
    net_income: int
    gross_sales: int
    discounts: int
    stripe_fees: int
    partner_payouts: int
    refunds: int


@dataclass(frozen=True)
class BalanceSheet:
    assets: int
    liabilities: int
    equity: int
    cash: int
    payouts_payable: int


@dataclass(frozen=True)
class CashMovements:
    beginning_balance: int
    ending_balance: int
    net_change: int
    inflows: int
    outflows: int


@dataclass(frozen=True)
class FinancialStatement:
    """Income statement, balance sheet and cash movements for a period."""

    start_date: date
    end_date: date
    income_statement: IncomeStatement
    balance_sheet: BalanceSheet
    cash_movements: CashMovements


@dataclass(frozen=True)
class PeriodOption:
    """A named reporting period offered to operators."""

    label: str
    start: datetime
    end: datetime
