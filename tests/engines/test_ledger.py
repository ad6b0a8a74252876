"""
Tests for the ledger engine.

Covers:
- The debit/credit validation gate
- Line construction for every event generator
- Financial statements over a period
- Reporting helpers (net sales, currency, periods, CSV)
"""

from datetime import date, datetime, timezone

import pytest

from couponbook_engines.ledger import (
    calculate_financial_statement,
    calculate_net_sales,
    export_to_csv,
    format_currency,
    generate_discount_event,
    generate_payout_accrual_event,
    generate_payout_event,
    generate_purchase_event,
    generate_refund_event,
    get_period_options,
    validate_journal_entry,
)
from couponbook_kernel.domain.accounting import (
    AccountCode,
    AccountingEventType,
    JournalLineSpec,
    LineSide,
    SalesMetrics,
)
from couponbook_kernel.domain.clock import DeterministicClock


def _lines(event) -> list[tuple[str, str, int]]:
    return [(line.account_code, line.side.value, line.amount_cents) for line in event.lines]


class TestValidateJournalEntry:

    def test_purchase_example_balances(self):
        lines = [
            {"account_code": "1000", "amount_cents": 4500, "side": "debit"},
            {"account_code": "4000", "amount_cents": 5000, "side": "credit"},
            {"account_code": "5000", "amount_cents": 150, "side": "debit"},
            {"account_code": "4100", "amount_cents": 350, "side": "debit"},
        ]
        result = validate_journal_entry(lines)
        assert result.valid is True
        assert result.total_debits_cents == 5000
        assert result.total_credits_cents == 5000
        assert result.error is None

    def test_unequal_totals_named_in_error(self):
        lines = [
            JournalLineSpec("1000", 100, LineSide.DEBIT),
            JournalLineSpec("4000", 90, LineSide.CREDIT),
        ]
        result = validate_journal_entry(lines)
        assert result.valid is False
        assert result.error == "Debits (100) do not equal credits (90)"
        assert not result

    def test_empty_entry_invalid(self):
        result = validate_journal_entry([])
        assert result.valid is False
        assert result.error == (
            "Entry must have at least one debit and one credit line (debits=0, credits=0)"
        )

    def test_zero_amount_lines_need_both_sides(self):
        result = validate_journal_entry([JournalLineSpec("1000", 0, LineSide.DEBIT)])
        assert result.valid is False
        assert "at least one debit and one credit" in result.error

    def test_zero_amount_pair_is_valid(self):
        lines = [
            JournalLineSpec("1000", 0, LineSide.DEBIT),
            JournalLineSpec("4000", 0, LineSide.CREDIT),
        ]
        assert validate_journal_entry(lines).valid is True

    @pytest.mark.parametrize(
        "bad_line",
        [
            {"account_code": "1000", "amount_cents": 100, "side": "sideways"},
            {"account_code": "1000", "amount_cents": "100", "side": "debit"},
            {"account_code": "1000", "amount_cents": 1.5, "side": "debit"},
            {"account_code": "1000", "amount_cents": -100, "side": "debit"},
            {"account_code": "1000", "side": "debit"},
            "not a line",
        ],
    )
    def test_malformed_lines_are_invalid_not_errors(self, bad_line):
        lines = [{"account_code": "4000", "amount_cents": 100, "side": "credit"}, bad_line]
        result = validate_journal_entry(lines)
        assert result.valid is False
        assert result.error == "Invalid journal line at index 1 (debits=0, credits=100)"

    def test_accepts_generator_input(self):
        lines = (
            JournalLineSpec(code, 10, side)
            for code, side in (("1000", LineSide.DEBIT), ("4000", LineSide.CREDIT))
        )
        assert validate_journal_entry(lines).valid is True


class TestEventGenerators:

    def setup_method(self):
        self.clock = DeterministicClock(datetime(2025, 1, 15, 12, tzinfo=timezone.utc))

    def test_purchase_lines(self):
        event = generate_purchase_event("p-1", 5000, 150, 350, "admin", clock=self.clock)
        assert event.type is AccountingEventType.PURCHASE_SUCCESSFUL
        assert event.source_id == "p-1"
        assert event.created_by == "admin"
        assert event.occurred_at == self.clock.now_utc()
        assert _lines(event) == [
            ("1000", "debit", 4500),
            ("5000", "debit", 150),
            ("4100", "debit", 350),
            ("4000", "credit", 5000),
        ]
        assert validate_journal_entry(event.lines).valid is True

    def test_purchase_positional_example_validates(self):
        event = generate_purchase_event("p", 5000, 150, 500, "admin")
        result = validate_journal_entry(event.lines)
        assert result.valid is True
        assert result.total_debits_cents == 5000

    def test_purchase_without_discount_omits_line(self):
        event = generate_purchase_event("p-2", 2000, 88, 0, "system", clock=self.clock)
        assert AccountCode.DISCOUNTS.value not in {l.account_code for l in event.lines}
        assert validate_journal_entry(event.lines).valid is True

    def test_purchase_rejects_discount_plus_fee_over_gross(self):
        with pytest.raises(ValueError, match="exceeds gross amount"):
            generate_purchase_event("p-3", 1000, 200, 900, "system", clock=self.clock)

    def test_refund_without_fee(self):
        event = generate_refund_event("r-1", 2500, 0, "admin", clock=self.clock)
        assert _lines(event) == [("5200", "debit", 2500), ("1000", "credit", 2500)]

    def test_refund_with_fee_reverses_fee_line(self):
        event = generate_refund_event("r-2", 2500, 75, "admin", clock=self.clock)
        assert _lines(event) == [
            ("5200", "debit", 2500),
            ("1000", "credit", 2500),
            ("1000", "debit", 75),
            ("5000", "credit", 75),
        ]
        assert validate_journal_entry(event.lines).valid is True

    def test_discount(self):
        event = generate_discount_event("d-1", 300, "admin", clock=self.clock)
        assert _lines(event) == [("4100", "debit", 300), ("4000", "credit", 300)]

    def test_payout_accrual_and_issue(self):
        accrual = generate_payout_accrual_event("PAY-1", 1200, "school-1", "admin", clock=self.clock)
        issued = generate_payout_event("PAY-1", 1200, "school-1", "admin", clock=self.clock)
        assert _lines(accrual) == [("5100", "debit", 1200), ("2100", "credit", 1200)]
        assert _lines(issued) == [("2100", "debit", 1200), ("1000", "credit", 1200)]
        assert issued.metadata["school_id"] == "school-1"
        assert accrual.type is AccountingEventType.PAYOUT_ACCRUED

    def test_metadata_is_read_only(self):
        event = generate_payout_event("PAY-2", 10, "school-1", "admin", clock=self.clock)
        with pytest.raises(TypeError):
            event.metadata["school_id"] = "other"


class TestFinancialStatement:

    def _at(self, day: int):
        return DeterministicClock(datetime(2025, 1, day, 10, tzinfo=timezone.utc))

    def test_period_statement(self):
        events = [
            generate_purchase_event("p-1", 5000, 150, 350, "a", clock=self._at(3)),
            generate_refund_event("r-1", 1000, 0, "a", clock=self._at(5)),
            generate_payout_accrual_event("PAY-1", 2000, "s-1", "a", clock=self._at(20)),
            generate_payout_event("PAY-1", 2000, "s-1", "a", clock=self._at(25)),
        ]
        stmt = calculate_financial_statement(date(2025, 1, 1), date(2025, 1, 31), events)

        income = stmt.income_statement
        assert income.gross_sales == 5000
        assert income.discounts == 350
        assert income.revenue == 4650
        assert income.stripe_fees == 150
        assert income.partner_payouts == 2000
        assert income.refunds == 1000
        assert income.expenses == 3150
        assert income.net_income == 1500

        cash = stmt.cash_movements
        assert cash.beginning_balance == 0
        assert cash.inflows == 4500
        assert cash.outflows == 3000
        assert cash.ending_balance == 1500
        assert cash.net_change == 1500

        sheet = stmt.balance_sheet
        assert sheet.cash == 1500
        assert sheet.payouts_payable == 0
        assert sheet.assets == 1500
        assert sheet.equity == 1500

    def test_prior_activity_sets_beginning_cash(self):
        events = [
            generate_purchase_event("p-0", 3000, 100, 0, "a", clock=self._at(2)),
            generate_payout_accrual_event("PAY-0", 1000, "s-1", "a", clock=self._at(4)),
            generate_purchase_event("p-1", 1000, 30, 0, "a", clock=self._at(20)),
        ]
        stmt = calculate_financial_statement(date(2025, 1, 10), date(2025, 1, 31), events)
        assert stmt.cash_movements.beginning_balance == 2900
        assert stmt.cash_movements.ending_balance == 2900 + 970
        assert stmt.income_statement.gross_sales == 1000
        # payable accrued before the period is still owed at its end
        assert stmt.balance_sheet.payouts_payable == 1000
        assert stmt.balance_sheet.liabilities == 1000
        assert stmt.balance_sheet.equity == 3870 - 1000

    def test_events_after_period_ignored(self):
        events = [generate_purchase_event("p-9", 9000, 0, 0, "a", clock=self._at(31))]
        stmt = calculate_financial_statement(date(2025, 1, 1), date(2025, 1, 30), events)
        assert stmt.income_statement.gross_sales == 0
        assert stmt.balance_sheet.cash == 0


class TestReportingHelpers:

    def test_net_sales(self):
        metrics = SalesMetrics(
            gross_sales_cents=10_000,
            refunds_cents=500,
            discounts_cents=300,
            stripe_fees_cents=290,
            partner_payouts_cents=4000,
        )
        assert calculate_net_sales(metrics) == 4910

    @pytest.mark.parametrize(
        "cents, text",
        [(0, "$0.00"), (5, "$0.05"), (123456, "$1,234.56"), (-1234, "-$12.34"), (100000000, "$1,000,000.00")],
    )
    def test_format_currency(self, cents, text):
        assert format_currency(cents) == text

    def test_period_options(self):
        clock = DeterministicClock(datetime(2025, 3, 15, 8, tzinfo=timezone.utc))
        options = {o.label: o for o in get_period_options(clock)}
        assert list(options) == ["This Month", "Last Month", "Last 30 Days", "Last 90 Days"]
        assert options["This Month"].start == datetime(2025, 3, 1, tzinfo=timezone.utc)
        assert options["Last Month"].start == datetime(2025, 2, 1, tzinfo=timezone.utc)
        assert options["Last Month"].end.date() == date(2025, 2, 28)
        assert options["Last 30 Days"].start.date() == date(2025, 2, 13)

    def test_export_to_csv(self):
        rows = [
            {"date": "2025-01-15", "account": "Cash", "amount": 4500},
            {"date": "2025-01-15", "account": 'Fees "Stripe"', "amount": 150},
        ]
        assert export_to_csv(rows) == (
            '"date","account","amount"\n'
            '"2025-01-15","Cash","4500"\n'
            '"2025-01-15","Fees ""Stripe""","150"\n'
        )

    def test_export_empty(self):
        assert export_to_csv([]) == ""
