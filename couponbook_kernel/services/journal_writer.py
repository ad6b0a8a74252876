"""
JournalWriter -- atomic journal posting service.

Responsibility:
    Turns an AccountingEvent (lines expressed as chart-of-accounts codes)
    into persisted JournalEntry and JournalLine rows.  Runs the balance
    gate, resolves account codes, and writes header plus lines as one
    unit.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by couponbook_services.accounting_service; delegates the balance
    check to the pure ledger validator it is constructed with and code
    resolution to ChartOfAccountsService.

Invariants enforced:
    - Balance: debits == credits with both sides non-empty, checked before
      any row is added.  An unbalanced event is refused with
      UnbalancedEntryError and nothing is written.
    - Atomicity: the header and its lines are written inside a savepoint.
      If adding or flushing lines fails, the savepoint is rolled back and
      no header is left behind.  The caller's outer transaction is not
      touched.

Failure modes:
    - UnbalancedEntryError: debits != credits, or a side is empty.
    - AccountNotFoundError: a line references a code with no active account.
    - SQLAlchemyError: database failure while writing.  Any exception
      raised while the header or lines are added rolls the savepoint back
      and propagates unchanged.

Audit relevance:
    balance_validated, journal_entry_written and journal_write_rolled_back
    are logged with structured fields.

Non-goals:
    - Does NOT commit (caller's responsibility).
    - Does NOT build events (that is couponbook_engines.ledger).
"""

from collections.abc import Callable, Iterable, Mapping
from typing import Any
from uuid import uuid4

from sqlalchemy.orm import Session

from couponbook_kernel.domain.accounting import (
    AccountingEvent,
    JournalLineSpec,
    JournalValidation,
)
from couponbook_kernel.exceptions import UnbalancedEntryError
from couponbook_kernel.logging_config import LogContext, get_logger
from couponbook_kernel.models.journal import JournalEntry, JournalLine
from couponbook_kernel.services.base import BaseService
from couponbook_kernel.services.chart_service import ChartOfAccountsService

logger = get_logger("services.journal_writer")

EntryValidator = Callable[[Iterable[JournalLineSpec | Mapping[str, Any]]], JournalValidation]


class JournalWriter(BaseService[JournalEntry]):
    """
    Persists validated accounting events.

    Contract:
        ``write(event)`` either returns a flushed JournalEntry whose lines
        balance, or raises and leaves the session as it was before the
        call.

    Guarantees:
        - No header is persisted without its lines.
        - Lines keep the order of ``event.lines`` (line_seq).
    """

    def __init__(self, session: Session, validator: EntryValidator):
        super().__init__(session)
        self._validate = validator
        self._chart = ChartOfAccountsService(session)

    def write(self, event: AccountingEvent) -> JournalEntry:
        """Validate and persist one accounting event.

        Raises:
            UnbalancedEntryError: If the event's lines do not balance.
            AccountNotFoundError: If an account code is unknown or inactive.
        """
        validation = self._validate(event.lines)
        logger.info(
            "balance_validated",
            extra={
                "event_type": event.type.value,
                "source_id": event.source_id,
                "total_debits_cents": validation.total_debits_cents,
                "total_credits_cents": validation.total_credits_cents,
                "balanced": validation.valid,
            },
        )
        if not validation.valid:
            logger.warning(
                "unbalanced_entry_refused",
                extra={"event_type": event.type.value, "error": validation.error},
            )
            raise UnbalancedEntryError(
                validation.total_debits_cents,
                validation.total_credits_cents,
                detail=validation.error,
            )

        accounts = self._chart.resolve_codes({line.account_code for line in event.lines})

        entry_id = uuid4()
        savepoint = self.session.begin_nested()
        try:
            entry = JournalEntry(
                id=entry_id,
                event_type=event.type.value,
                source_id=event.source_id,
                occurred_at=event.occurred_at,
                description=event.description,
                total_debits_cents=validation.total_debits_cents,
                total_credits_cents=validation.total_credits_cents,
                entry_metadata=dict(event.metadata) or None,
                created_by=event.created_by,
            )
            self.session.add(entry)
            self.session.flush()

            self._add_lines(entry, event, accounts)
            self.session.flush()
        except Exception:
            savepoint.rollback()
            logger.error(
                "journal_write_rolled_back",
                extra={"entry_id": str(entry_id), "event_type": event.type.value},
                exc_info=True,
            )
            raise
        savepoint.commit()

        with LogContext.bind(entry_id=str(entry_id)):
            logger.info(
                "journal_entry_written",
                extra={
                    "event_type": event.type.value,
                    "source_id": event.source_id,
                    "line_count": len(event.lines),
                    "total_debits_cents": validation.total_debits_cents,
                },
            )
        return entry

    def _add_lines(self, entry: JournalEntry, event: AccountingEvent, accounts) -> None:
        for seq, line in enumerate(event.lines):
            self.session.add(
                JournalLine(
                    journal_entry_id=entry.id,
                    account_id=accounts[line.account_code].id,
                    side=line.side.value,
                    amount_cents=line.amount_cents,
                    line_seq=seq,
                    created_by=event.created_by,
                )
            )
