"""
Hypothesis property tests for the ledger engine.

Properties:
- validate_journal_entry is valid iff debits == credits and both sides
  have at least one line
- Every generator output for non-negative, consistent amounts balances
- Statement identity: period net income equals the change in equity when
  all activity falls inside the period
"""

from datetime import date, datetime, timezone

from hypothesis import given
from hypothesis import strategies as st

from couponbook_engines.ledger import (
    calculate_financial_statement,
    generate_discount_event,
    generate_payout_accrual_event,
    generate_payout_event,
    generate_purchase_event,
    generate_refund_event,
    validate_journal_entry,
)
from couponbook_kernel.domain.accounting import JournalLineSpec, LineSide
from couponbook_kernel.domain.clock import DeterministicClock

_cents = st.integers(min_value=0, max_value=10**9)

_lines = st.lists(
    st.builds(
        JournalLineSpec,
        account_code=st.sampled_from(["1000", "2100", "4000", "4100", "5000"]),
        amount_cents=_cents,
        side=st.sampled_from(list(LineSide)),
    ),
    max_size=8,
)

_CLOCK = DeterministicClock(datetime(2025, 1, 15, 12, tzinfo=timezone.utc))


class TestLedgerProperties:

    @given(lines=_lines)
    def test_valid_iff_balanced_with_both_sides(self, lines):
        debits = sum(l.amount_cents for l in lines if l.side is LineSide.DEBIT)
        credits = sum(l.amount_cents for l in lines if l.side is LineSide.CREDIT)
        has_both = any(l.is_debit for l in lines) and any(not l.is_debit for l in lines)

        result = validate_journal_entry(lines)

        assert result.valid is (debits == credits and has_both)
        assert result.total_debits_cents == debits
        assert result.total_credits_cents == credits
        if not result.valid:
            assert str(debits) in result.error and str(credits) in result.error

    @given(data=st.data(), gross=_cents)
    def test_purchase_balances(self, data, gross):
        fee = data.draw(st.integers(min_value=0, max_value=gross))
        discount = data.draw(st.integers(min_value=0, max_value=gross - fee))
        event = generate_purchase_event("p", gross, fee, discount, "fuzz", clock=_CLOCK)
        result = validate_journal_entry(event.lines)
        assert result.valid
        assert result.total_credits_cents == gross

    @given(amount=_cents, fee=_cents)
    def test_refund_balances(self, amount, fee):
        event = generate_refund_event("r", amount, fee, "fuzz", clock=_CLOCK)
        assert validate_journal_entry(event.lines).valid

    @given(amount=_cents)
    def test_simple_events_balance(self, amount):
        for event in (
            generate_discount_event("d", amount, "fuzz", clock=_CLOCK),
            generate_payout_accrual_event("a", amount, "s", "fuzz", clock=_CLOCK),
            generate_payout_event("a", amount, "s", "fuzz", clock=_CLOCK),
        ):
            assert validate_journal_entry(event.lines).valid

    @given(
        purchases=st.lists(
            st.tuples(
                st.integers(min_value=100, max_value=100_000),
                st.integers(min_value=0, max_value=50),
                st.integers(min_value=0, max_value=50),
            ),
            max_size=6,
        ),
        refund=st.integers(min_value=0, max_value=1000),
        accrued=st.integers(min_value=0, max_value=1000),
    )
    def test_net_income_equals_equity(self, purchases, refund, accrued):
        events = [
            generate_purchase_event(f"p{i}", g, f, d, "fuzz", clock=_CLOCK)
            for i, (g, f, d) in enumerate(purchases)
        ]
        events.append(generate_refund_event("r", refund, 0, "fuzz", clock=_CLOCK))
        events.append(generate_payout_accrual_event("a", accrued, "s", "fuzz", clock=_CLOCK))

        stmt = calculate_financial_statement(date(2025, 1, 1), date(2025, 1, 31), events)
        assert stmt.income_statement.net_income == stmt.balance_sheet.equity
