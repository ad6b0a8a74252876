"""
Module: couponbook_kernel.selectors.journal_selector
Responsibility: Read-only query access to journal entries and their lines,
    rebuilt as AccountingEvent domain objects so the ledger engine can
    report on persisted data.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Read-only.
    - Lines are returned in line_seq order.
    - Timestamps read back without a zone (SQLite) are treated as UTC.

Failure modes:
    - Returns None or an empty list when nothing matches; never raises on
      absence of data.
"""

from datetime import date, datetime, time, timedelta, timezone
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from couponbook_kernel.domain.accounting import (
    AccountingEvent,
    AccountingEventType,
    JournalLineSpec,
    LineSide,
)
from couponbook_kernel.models.journal import JournalEntry, JournalLine
from couponbook_kernel.selectors.base import BaseSelector


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class JournalSelector(BaseSelector[JournalEntry]):
    """
    Selector for journal entry queries.

    Guarantees:
        - Lines are eager-loaded (selectinload) together with their account
          to avoid N+1 queries.
        - Multi-entry results are ordered by occurred_at.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    def _to_event(self, entry: JournalEntry) -> AccountingEvent:
        lines = tuple(
            JournalLineSpec(
                account_code=line.account.code,
                amount_cents=line.amount_cents,
                side=LineSide(line.side),
            )
            for line in sorted(entry.lines, key=lambda x: x.line_seq)
        )
        return AccountingEvent(
            type=AccountingEventType(entry.event_type),
            occurred_at=_as_utc(entry.occurred_at),
            description=entry.description,
            source_id=entry.source_id,
            created_by=entry.created_by,
            lines=lines,
            metadata=entry.entry_metadata or {},
        )

    def _query(self):
        return select(JournalEntry).options(
            selectinload(JournalEntry.lines).selectinload(JournalLine.account)
        )

    def get_event(self, entry_id: UUID) -> AccountingEvent | None:
        """Get one entry by id."""
        entry = self.session.execute(
            self._query().where(JournalEntry.id == entry_id)
        ).scalar_one_or_none()
        if entry is None:
            return None
        return self._to_event(entry)

    def get_events_by_source(
        self, event_type: AccountingEventType, source_id: str
    ) -> list[AccountingEvent]:
        """Entries recorded for a given business record."""
        entries = self.session.execute(
            self._query()
            .where(JournalEntry.event_type == event_type.value)
            .where(JournalEntry.source_id == source_id)
            .order_by(JournalEntry.occurred_at)
        ).scalars().all()
        return [self._to_event(e) for e in entries]

    def get_events_through(self, end_date: date) -> list[AccountingEvent]:
        """All entries that occurred on or before ``end_date`` (UTC)."""
        cutoff = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=timezone.utc)
        entries = self.session.execute(
            self._query()
            .where(JournalEntry.occurred_at < cutoff)
            .order_by(JournalEntry.occurred_at)
        ).scalars().all()
        return [self._to_event(e) for e in entries]

    def count_entries(self) -> int:
        return self.session.execute(
            select(func.count()).select_from(JournalEntry)
        ).scalar_one()
