"""
Module: couponbook_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the canonical import surface for
    higher layers (couponbook_services, kernel services).

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import couponbook_kernel.domain and
    couponbook_kernel.logging_config (and sibling engine modules).
    MUST NOT import couponbook_services or couponbook_config.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()``.  Time comes from an
      injected Clock, randomness from an injected ``random.Random``.
    - Integer cents for every ledger amount.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Rule matching, rule validation, journal validation and statement
    generation are traced via ``@traced_engine`` and emit
    COUPONBOOK_ENGINE_TRACE log records.

Usage:
    from couponbook_engines.targeting import matches_rule, validate_rule
    from couponbook_engines.ledger import validate_journal_entry
    from couponbook_engines.payouts import calculate_school_payout
"""

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
from couponbook_engines.payouts import (
    PayoutCalculation,
    PayoutValidation,
    calculate_school_payout,
    generate_payout_reference,
    generate_receipt_number,
    validate_payout_data,
)
from couponbook_engines.referrals import generate_referral_code, is_valid_referral_code
from couponbook_engines.targeting import (
    get_matching_user_count,
    get_matching_users,
    is_valid_condition,
    match_report,
    matches_condition,
    matches_rule,
    parse_targeting_rule,
    summarize_rule,
    validate_rule,
)
from couponbook_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    # Ledger
    "calculate_financial_statement",
    "calculate_net_sales",
    "export_to_csv",
    "format_currency",
    "generate_discount_event",
    "generate_payout_accrual_event",
    "generate_payout_event",
    "generate_purchase_event",
    "generate_refund_event",
    "get_period_options",
    "validate_journal_entry",
    # Payouts
    "PayoutCalculation",
    "PayoutValidation",
    "calculate_school_payout",
    "generate_payout_reference",
    "generate_receipt_number",
    "validate_payout_data",
    # Referrals
    "generate_referral_code",
    "is_valid_referral_code",
    # Targeting
    "get_matching_user_count",
    "get_matching_users",
    "is_valid_condition",
    "match_report",
    "matches_condition",
    "matches_rule",
    "parse_targeting_rule",
    "summarize_rule",
    "validate_rule",
    # Tracing
    "compute_input_fingerprint",
    "traced_engine",
]
