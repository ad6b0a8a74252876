"""
Module: couponbook_kernel.models.account
Responsibility: ORM persistence for the chart of accounts -- the target of
    every journal line.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - code is unique (uq_account_code).  The set of codes is closed and
      seeded from couponbook_kernel.domain.accounting.CHART_OF_ACCOUNTS by
      ChartOfAccountsService.

Failure modes:
    - AccountNotFoundError (raised by JournalWriter) when a posting
      references a code with no row here.
"""

from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from couponbook_kernel.db.base import TrackedBase

if TYPE_CHECKING:
    from couponbook_kernel.models.journal import JournalLine


class Account(TrackedBase):
    """
    Chart of accounts entry.

    Contract:
        account_type and normal_balance hold the string values of the
        domain AccountType / NormalBalance enums.
    """

    __tablename__ = "accounts"

    __table_args__ = (
        UniqueConstraint("code", name="uq_account_code"),
        Index("idx_account_type", "account_type"),
    )

    # Human-readable code, e.g. "1000"
    code: Mapped[str] = mapped_column(String(20), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    account_type: Mapped[str] = mapped_column(String(20), nullable=False)

    normal_balance: Mapped[str] = mapped_column(String(10), nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    journal_lines: Mapped[list["JournalLine"]] = relationship(back_populates="account")

    def __repr__(self) -> str:
        return f"<Account {self.code}: {self.name}>"

    @property
    def is_debit_normal(self) -> bool:
        return self.normal_balance == "debit"
