"""
Module: couponbook_kernel.db.base
Responsibility: Declarative base for the coupon book tables (chart of
    accounts, journal, targeting rules, coupon grants).
Architecture position: Kernel > DB.  Every model module imports from here;
    this module imports nothing from the rest of the kernel.

Invariants enforced:
    - Row ids are uuid4 values stored as 36-character strings, so the same
      schema runs on PostgreSQL and SQLite.
    - ``int`` columns are BigInteger.  Money is always integer cents.
    - Timestamps are timezone-aware columns.
    - TrackedBase rows record who created them and who touched them last.

Audit relevance:
    created_by / updated_by hold an admin identifier or "system".  They are
    free text, not foreign keys.
"""

from datetime import datetime
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """uuid.UUID in Python, String(36) in the database."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    """Declarative base: uuid4 primary key plus the column type map."""

    type_annotation_map: ClassVar[dict] = {
        datetime: DateTime(timezone=True),
        UUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Abstract base for rows an admin or a job creates and later changes.

    created_at/updated_at are filled by the database; created_by defaults
    to "system".  Services call ``touch(actor)`` when they modify a row.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    created_by: Mapped[str] = mapped_column(String(100), nullable=False, default="system")

    updated_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def touch(self, actor: str) -> None:
        """Record ``actor`` as the last writer of this row."""
        self.updated_by = actor
