"""
couponbook_services.accounting_service -- Record business events in the ledger.

Responsibility:
    Accepts an event type and a raw payload, validates the payload, builds
    the balanced AccountingEvent with the ledger engine, and persists it
    through the kernel JournalWriter.  Also produces financial statements
    and CSV exports from persisted entries.

Architecture position:
    Services -- stateful orchestration over engines + kernel.

Invariants enforced:
    - No central if/elif on event_type: each event type is registered as an
      EventBuilder; adding a type means registering a builder.
    - An unbalanced event is never persisted (JournalWriter refuses it).
    - Header and lines are written atomically (JournalWriter savepoint).
    - The caller owns the transaction; this service only flushes.

Failure modes:
    - UnsupportedEventTypeError: no builder for the event type.
    - InvalidPayloadError: a required field is missing or has the wrong
      type, or the amounts are inconsistent (discount + fee > gross).
    - UnbalancedEntryError / AccountNotFoundError: from JournalWriter.

Audit relevance:
    accounting_event_recorded is logged for every persisted event, with
    the entry id bound into the log context.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from couponbook_engines.ledger import (
    calculate_financial_statement,
    export_to_csv,
    generate_discount_event,
    generate_payout_accrual_event,
    generate_payout_event,
    generate_purchase_event,
    generate_refund_event,
    validate_journal_entry,
)
from couponbook_kernel.domain.accounting import (
    ACCOUNTS_BY_CODE,
    AccountingEvent,
    AccountingEventType,
    FinancialStatement,
)
from couponbook_kernel.domain.clock import Clock, SystemClock
from couponbook_kernel.exceptions import InvalidPayloadError, UnsupportedEventTypeError
from couponbook_kernel.logging_config import LogContext, get_logger
from couponbook_kernel.selectors.journal_selector import JournalSelector
from couponbook_kernel.services.journal_writer import JournalWriter

logger = get_logger("orchestration.accounting")


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


BuildFn = Callable[[Mapping[str, Any], str, Clock], AccountingEvent]


@dataclass(frozen=True)
class EventBuilder:
    """
    A registered payload-to-event translation.

    Contract:
        ``id_fields`` must be non-empty strings, ``cents_fields`` and
        ``optional_cents_fields`` non-negative ints (optional ones default
        to 0).  ``build`` receives a payload that has passed those checks.
    """

    event_type: AccountingEventType
    build: BuildFn
    id_fields: tuple[str, ...] = ()
    cents_fields: tuple[str, ...] = ()
    optional_cents_fields: tuple[str, ...] = ()

    def check(self, payload: Mapping[str, Any]) -> None:
        """Raise InvalidPayloadError for the first bad field."""
        name = self.event_type.value
        for field in self.id_fields:
            value = payload.get(field)
            if value is None:
                raise InvalidPayloadError(name, field, "is required")
            if not isinstance(value, str) or not value.strip():
                raise InvalidPayloadError(name, field, "must be a non-empty string")
        for field in self.cents_fields:
            if field not in payload or payload[field] is None:
                raise InvalidPayloadError(name, field, "is required")
            _check_cents(name, field, payload[field])
        for field in self.optional_cents_fields:
            if payload.get(field) is not None:
                _check_cents(name, field, payload[field])


def _check_cents(event_type: str, field: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidPayloadError(event_type, field, "must be an integer number of cents")
    if value < 0:
        raise InvalidPayloadError(event_type, field, "must not be negative")


def _build_purchase(p: Mapping[str, Any], created_by: str, clock: Clock) -> AccountingEvent:
    return generate_purchase_event(
        p["purchase_id"],
        p["gross_amount_cents"],
        p["stripe_fee_cents"],
        p.get("discount_cents") or 0,
        created_by,
        clock=clock,
    )


def _build_refund(p: Mapping[str, Any], created_by: str, clock: Clock) -> AccountingEvent:
    return generate_refund_event(
        p["refund_id"],
        p["refund_amount_cents"],
        p.get("stripe_fee_refund_cents") or 0,
        created_by,
        clock=clock,
    )


def _build_discount(p: Mapping[str, Any], created_by: str, clock: Clock) -> AccountingEvent:
    return generate_discount_event(
        p["discount_id"], p["discount_amount_cents"], created_by, clock=clock
    )


def _build_payout_accrual(p: Mapping[str, Any], created_by: str, clock: Clock) -> AccountingEvent:
    return generate_payout_accrual_event(
        p["payout_id"], p["payout_amount_cents"], p["school_id"], created_by, clock=clock
    )


def _build_payout(p: Mapping[str, Any], created_by: str, clock: Clock) -> AccountingEvent:
    return generate_payout_event(
        p["payout_id"], p["payout_amount_cents"], p["school_id"], created_by, clock=clock
    )


STANDARD_BUILDERS: tuple[EventBuilder, ...] = (
    EventBuilder(
        AccountingEventType.PURCHASE_SUCCESSFUL,
        _build_purchase,
        id_fields=("purchase_id",),
        cents_fields=("gross_amount_cents", "stripe_fee_cents"),
        optional_cents_fields=("discount_cents",),
    ),
    EventBuilder(
        AccountingEventType.REFUND_PROCESSED,
        _build_refund,
        id_fields=("refund_id",),
        cents_fields=("refund_amount_cents",),
        optional_cents_fields=("stripe_fee_refund_cents",),
    ),
    EventBuilder(
        AccountingEventType.DISCOUNT_APPLIED,
        _build_discount,
        id_fields=("discount_id",),
        cents_fields=("discount_amount_cents",),
    ),
    EventBuilder(
        AccountingEventType.PAYOUT_ACCRUED,
        _build_payout_accrual,
        id_fields=("payout_id", "school_id"),
        cents_fields=("payout_amount_cents",),
    ),
    EventBuilder(
        AccountingEventType.PAYOUT_ISSUED,
        _build_payout,
        id_fields=("payout_id", "school_id"),
        cents_fields=("payout_amount_cents",),
    ),
)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RecordedEvent:
    entry_id: UUID
    event: AccountingEvent


class AccountingEventService:
    """Record accounting events and report on them.

    Contract:
        Works inside the caller's session and transaction.  Builders are
        looked up by event type; ``register`` replaces an existing one.

    Usage:
        with session_scope() as session:
            service = AccountingEventService(session)
            service.record_event(
                "purchase_successful",
                {"purchase_id": "p-1", "gross_amount_cents": 5000,
                 "stripe_fee_cents": 150, "discount_cents": 350},
                created_by="admin",
            )
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        builders: tuple[EventBuilder, ...] = STANDARD_BUILDERS,
    ) -> None:
        self._session = session
        self._clock = clock or SystemClock()
        self._writer = JournalWriter(session, validate_journal_entry)
        self._selector = JournalSelector(session)
        self._registry: dict[AccountingEventType, EventBuilder] = {}
        for builder in builders:
            self.register(builder)

    def register(self, builder: EventBuilder) -> None:
        self._registry[builder.event_type] = builder

    @property
    def supported_event_types(self) -> tuple[str, ...]:
        return tuple(t.value for t in self._registry)

    def record_event(
        self,
        event_type: str | AccountingEventType,
        payload: Mapping[str, Any],
        created_by: str = "system",
    ) -> RecordedEvent:
        """Validate, build and persist one accounting event.

        Raises:
            UnsupportedEventTypeError: If no builder handles event_type.
            InvalidPayloadError: If the payload is missing or malformed.
            UnbalancedEntryError: If the built entry does not balance.
        """
        builder = self._lookup(event_type)
        if not isinstance(payload, Mapping):
            raise InvalidPayloadError(builder.event_type.value, "payload", "must be a mapping")
        builder.check(payload)

        try:
            event = builder.build(payload, created_by, self._clock)
        except ValueError as exc:
            raise InvalidPayloadError(builder.event_type.value, "amounts", str(exc)) from exc

        return self.record(event)

    def record(self, event: AccountingEvent) -> RecordedEvent:
        """Persist an already-built event through the journal writer."""
        with LogContext.bind(actor_id=event.created_by):
            entry = self._writer.write(event)
            with LogContext.bind(entry_id=str(entry.id)):
                logger.info(
                    "accounting_event_recorded",
                    extra={
                        "event_type": event.type.value,
                        "source_id": event.source_id,
                        "amount_cents": event.total_debits_cents,
                    },
                )
        return RecordedEvent(entry_id=entry.id, event=event)

    def _lookup(self, event_type: str | AccountingEventType) -> EventBuilder:
        try:
            key = AccountingEventType(event_type)
        except ValueError:
            key = None
        builder = self._registry.get(key) if key is not None else None
        if builder is None:
            raise UnsupportedEventTypeError(str(event_type), self.supported_event_types)
        return builder

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def financial_statement(self, start_date: date, end_date: date) -> FinancialStatement:
        """Statement for ``[start_date, end_date]`` from persisted entries."""
        events = self._selector.get_events_through(end_date)
        return calculate_financial_statement(start_date, end_date, events)

    def export_entries_csv(self, start_date: date, end_date: date) -> str:
        """One CSV row per journal line for entries in the period."""
        rows: list[dict[str, Any]] = []
        for event in self._selector.get_events_through(end_date):
            if event.occurred_at.date() < start_date:
                continue
            for line in event.lines:
                account = ACCOUNTS_BY_CODE.get(line.account_code)
                rows.append(
                    {
                        "date": event.occurred_at.date().isoformat(),
                        "event_type": event.type.value,
                        "source_id": event.source_id or "",
                        "description": event.description,
                        "account_code": line.account_code,
                        "account_name": account.name if account else "",
                        "debit_cents": line.amount_cents if line.is_debit else 0,
                        "credit_cents": 0 if line.is_debit else line.amount_cents,
                    }
                )
        return export_to_csv(rows)
