"""
Tests for AccountingEventService.

Covers:
- Event recording through the builder registry
- Payload validation and unsupported event types
- Financial statements and CSV exports over persisted entries
"""

from datetime import date, datetime, timezone

import pytest

from couponbook_kernel.domain.accounting import AccountingEventType, LineSide
from couponbook_kernel.exceptions import InvalidPayloadError, UnsupportedEventTypeError
from couponbook_kernel.selectors.journal_selector import JournalSelector
from couponbook_services.accounting_service import AccountingEventService

PURCHASE = {
    "purchase_id": "p-1",
    "gross_amount_cents": 5000,
    "stripe_fee_cents": 150,
    "discount_cents": 350,
}


@pytest.fixture
def service(session, clock):
    return AccountingEventService(session, clock=clock)


def _at(year, month, day):
    return datetime(year, month, day, 12, tzinfo=timezone.utc)


class TestRecordEvent:

    def test_purchase(self, service, session, clock):
        recorded = service.record_event("purchase_successful", PURCHASE, created_by="admin")

        stored = JournalSelector(session).get_event(recorded.entry_id)
        assert stored.type is AccountingEventType.PURCHASE_SUCCESSFUL
        assert stored.source_id == "p-1"
        assert stored.created_by == "admin"
        assert stored.occurred_at == clock.now_utc()
        assert [(l.account_code, l.side, l.amount_cents) for l in stored.lines] == [
            ("1000", LineSide.DEBIT, 4500),
            ("5000", LineSide.DEBIT, 150),
            ("4100", LineSide.DEBIT, 350),
            ("4000", LineSide.CREDIT, 5000),
        ]

    def test_discount_optional(self, service):
        payload = {k: v for k, v in PURCHASE.items() if k != "discount_cents"}
        recorded = service.record_event(AccountingEventType.PURCHASE_SUCCESSFUL, payload)
        assert [l.account_code for l in recorded.event.lines] == ["1000", "5000", "4000"]

    def test_each_registered_type(self, service, session):
        service.record_event("refund_processed", {"refund_id": "r-1", "refund_amount_cents": 1000})
        service.record_event("discount_applied", {"discount_id": "d-1", "discount_amount_cents": 200})
        service.record_event(
            "payout_accrued",
            {"payout_id": "PAY-1", "school_id": "school-mb", "payout_amount_cents": 700},
        )
        service.record_event(
            "payout_issued",
            {"payout_id": "PAY-1", "school_id": "school-mb", "payout_amount_cents": 700},
        )
        assert JournalSelector(session).count_entries() == 4
        issued = JournalSelector(session).get_events_by_source(
            AccountingEventType.PAYOUT_ISSUED, "PAY-1"
        )
        assert issued[0].metadata["school_id"] == "school-mb"

    def test_logged_with_entry_id(self, service, captured_logs):
        recorded = service.record_event("purchase_successful", PURCHASE, created_by="admin")
        records = [r for r in captured_logs() if r["message"] == "accounting_event_recorded"]
        assert len(records) == 1
        assert records[0]["entry_id"] == str(recorded.entry_id)
        assert records[0]["actor_id"] == "admin"
        assert records[0]["amount_cents"] == 5000


class TestRefusals:

    @pytest.mark.parametrize("event_type", ["bogus", "stripe_fee_charged"])
    def test_unsupported_type(self, service, session, event_type):
        with pytest.raises(UnsupportedEventTypeError) as exc_info:
            service.record_event(event_type, PURCHASE)
        assert exc_info.value.event_type == event_type
        assert "purchase_successful" in exc_info.value.supported
        assert JournalSelector(session).count_entries() == 0

    def test_missing_field(self, service):
        with pytest.raises(InvalidPayloadError) as exc_info:
            service.record_event("purchase_successful", {"purchase_id": "p-1"})
        assert exc_info.value.field == "gross_amount_cents"
        assert str(exc_info.value) == (
            "Invalid payload for purchase_successful: gross_amount_cents is required"
        )

    @pytest.mark.parametrize(
        "field,value,reason",
        [
            ("gross_amount_cents", -1, "must not be negative"),
            ("gross_amount_cents", 50.0, "must be an integer number of cents"),
            ("stripe_fee_cents", True, "must be an integer number of cents"),
            ("discount_cents", "350", "must be an integer number of cents"),
            ("purchase_id", "  ", "must be a non-empty string"),
        ],
    )
    def test_malformed_field(self, service, field, value, reason):
        with pytest.raises(InvalidPayloadError) as exc_info:
            service.record_event("purchase_successful", {**PURCHASE, field: value})
        assert exc_info.value.field == field
        assert exc_info.value.reason == reason

    def test_payload_must_be_mapping(self, service):
        with pytest.raises(InvalidPayloadError) as exc_info:
            service.record_event("refund_processed", ["r-1", 100])
        assert exc_info.value.field == "payload"

    def test_inconsistent_amounts(self, service, session):
        with pytest.raises(InvalidPayloadError) as exc_info:
            service.record_event(
                "purchase_successful",
                {**PURCHASE, "stripe_fee_cents": 4000, "discount_cents": 1500},
            )
        assert exc_info.value.field == "amounts"
        assert "exceeds gross amount (5000)" in exc_info.value.reason
        assert JournalSelector(session).count_entries() == 0


class TestReporting:

    @pytest.fixture
    def january(self, service, clock):
        clock.set_time(_at(2024, 12, 20))
        service.record_event(
            "purchase_successful",
            {"purchase_id": "p-0", "gross_amount_cents": 2000, "stripe_fee_cents": 60},
        )
        clock.set_time(_at(2025, 1, 10))
        service.record_event("purchase_successful", PURCHASE)
        clock.set_time(_at(2025, 1, 12))
        service.record_event(
            "refund_processed",
            {"refund_id": "r-1", "refund_amount_cents": 1000, "stripe_fee_refund_cents": 30},
        )
        clock.set_time(_at(2025, 1, 14))
        service.record_event(
            "payout_accrued",
            {"payout_id": "PAY-1", "school_id": "school-mb", "payout_amount_cents": 2000},
        )
        clock.set_time(_at(2025, 1, 20))
        service.record_event(
            "payout_issued",
            {"payout_id": "PAY-1", "school_id": "school-mb", "payout_amount_cents": 1500},
        )
        clock.set_time(_at(2025, 2, 2))
        service.record_event(
            "purchase_successful",
            {"purchase_id": "p-2", "gross_amount_cents": 9000, "stripe_fee_cents": 270},
        )
        return service

    def test_income_statement(self, january):
        income = january.financial_statement(date(2025, 1, 1), date(2025, 1, 31)).income_statement
        assert income.gross_sales == 5000
        assert income.discounts == 350
        assert income.revenue == 4650
        assert income.stripe_fees == 120
        assert income.refunds == 1000
        assert income.partner_payouts == 2000
        assert income.expenses == 3120
        assert income.net_income == 1530

    def test_cash_movements_use_prior_balance(self, january):
        cash = january.financial_statement(date(2025, 1, 1), date(2025, 1, 31)).cash_movements
        assert cash.beginning_balance == 1940
        assert cash.inflows == 4530
        assert cash.outflows == 2500
        assert cash.net_change == 2030
        assert cash.ending_balance == 3970

    def test_balance_sheet_is_cumulative(self, january):
        sheet = january.financial_statement(date(2025, 1, 1), date(2025, 1, 31)).balance_sheet
        assert sheet.cash == 3970
        assert sheet.payouts_payable == 500
        assert sheet.assets == 3970
        assert sheet.liabilities == 500
        assert sheet.equity == 3470

    def test_csv_export_limited_to_period(self, january):
        text = january.export_entries_csv(date(2025, 1, 10), date(2025, 1, 10))
        rows = text.splitlines()
        assert rows[0] == (
            '"date","event_type","source_id","description","account_code",'
            '"account_name","debit_cents","credit_cents"'
        )
        assert len(rows) == 5
        assert rows[1] == (
            '"2025-01-10","purchase_successful","p-1","Coupon book purchase p-1",'
            '"1000","Cash - Stripe Balance","4500","0"'
        )

    def test_csv_export_empty_period(self, january):
        assert january.export_entries_csv(date(2024, 6, 1), date(2024, 6, 30)) == ""
