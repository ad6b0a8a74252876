"""
Module: couponbook_kernel.models.journal
Responsibility: ORM persistence for journal entries and journal lines -- the
    single source of financial truth in this system.
Architecture position: Kernel > Models.  May import from db/base.py only.
    MUST NOT import from services/, selectors/, domain/, or outer layers.

Invariants enforced:
    - Balance: total_debits_cents == total_credits_cents on every header.
      Checked by JournalWriter before any row is added; is_balanced re-checks
      on the read side.
    - Amounts are non-negative integer cents; side carries direction.

Failure modes:
    - UnbalancedEntryError (raised by JournalWriter) before insert.

Audit relevance:
    JournalEntry and JournalLine rows are the authoritative financial record.
    Every statement and export derives from these rows.
"""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from couponbook_kernel.db.base import TrackedBase, UUIDString

if TYPE_CHECKING:
    from couponbook_kernel.models.account import Account


class JournalEntry(TrackedBase):
    """
    Journal entry header: one row per recorded business event.

    Contract:
        Written only by JournalWriter, together with its lines, inside a
        single savepoint.  A header without lines never survives a flush.

    Guarantees:
        - total_debits_cents == total_credits_cents.
        - event_type is an AccountingEventType value.
    """

    __tablename__ = "journal_entries"

    __table_args__ = (
        Index("idx_journal_source", "event_type", "source_id"),
        Index("idx_journal_occurred_at", "occurred_at"),
    )

    event_type: Mapped[str] = mapped_column(String(50), nullable=False)

    # Business identifier of the source record (purchase id, refund id ...)
    source_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    description: Mapped[str] = mapped_column(String(500), nullable=False)

    total_debits_cents: Mapped[int] = mapped_column(nullable=False)

    total_credits_cents: Mapped[int] = mapped_column(nullable=False)

    entry_metadata: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    lines: Mapped[list["JournalLine"]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="JournalLine.line_seq",
    )

    def __repr__(self) -> str:
        return f"<JournalEntry {self.id} {self.event_type}>"

    @property
    def is_balanced(self) -> bool:
        debits = sum(line.amount_cents for line in self.lines if line.side == "debit")
        credits = sum(line.amount_cents for line in self.lines if line.side == "credit")
        return debits == credits


class JournalLine(TrackedBase):
    """
    Individual debit or credit line within a journal entry.

    Guarantees:
        - amount_cents >= 0; the side column determines direction.
        - line_seq preserves the order lines were generated in.
    """

    __tablename__ = "journal_lines"

    __table_args__ = (
        Index("idx_line_entry", "journal_entry_id"),
        Index("idx_line_account", "account_id"),
    )

    journal_entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("journal_entries.id"),
        nullable=False,
    )

    account_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("accounts.id"),
        nullable=False,
    )

    side: Mapped[str] = mapped_column(String(10), nullable=False)

    amount_cents: Mapped[int] = mapped_column(nullable=False)

    line_seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    entry: Mapped["JournalEntry"] = relationship(back_populates="lines")

    account: Mapped["Account"] = relationship(back_populates="journal_lines")

    def __repr__(self) -> str:
        return f"<JournalLine {self.side} {self.amount_cents}>"

    @property
    def is_debit(self) -> bool:
        return self.side == "debit"
