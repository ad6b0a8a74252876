"""
ChartOfAccountsService -- seeds and resolves the closed chart of accounts.

Responsibility:
    Ensures every account in
    ``couponbook_kernel.domain.accounting.CHART_OF_ACCOUNTS`` exists as an
    ``Account`` row, and resolves account codes to rows for posting.

Architecture position:
    Kernel > Services.  Flushes only; the caller commits.

Invariants enforced:
    - seed() is idempotent: existing codes are left untouched, missing
      codes are inserted.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from couponbook_kernel.domain.accounting import CHART_OF_ACCOUNTS
from couponbook_kernel.exceptions import AccountNotFoundError
from couponbook_kernel.logging_config import get_logger
from couponbook_kernel.models.account import Account
from couponbook_kernel.services.base import BaseService

logger = get_logger("services.chart")


class ChartOfAccountsService(BaseService[Account]):
    """Seed and look up chart-of-accounts rows."""

    def __init__(self, session: Session):
        super().__init__(session)

    def seed(self, created_by: str = "system") -> list[Account]:
        """Insert any chart accounts that are missing.

        Returns:
            The newly created Account rows (empty when already seeded).
        """
        existing = set(self.session.execute(select(Account.code)).scalars().all())
        created: list[Account] = []
        for definition in CHART_OF_ACCOUNTS:
            if definition.code.value in existing:
                continue
            account = Account(
                code=definition.code.value,
                name=definition.name,
                account_type=definition.account_type.value,
                normal_balance=definition.normal_balance.value,
                is_active=definition.is_active,
                created_by=created_by,
            )
            self.session.add(account)
            created.append(account)

        self.session.flush()
        logger.info(
            "chart_of_accounts_seeded",
            extra={"created": len(created), "existing": len(existing)},
        )
        return created

    def resolve_codes(self, codes: set[str]) -> dict[str, Account]:
        """Map each code to its active Account row.

        Raises:
            AccountNotFoundError: For the first code (sorted) with no active row.
        """
        rows = self.session.execute(
            select(Account)
            .where(Account.code.in_(codes))
            .where(Account.is_active.is_(True))
        ).scalars().all()
        by_code = {row.code: row for row in rows}
        for code in sorted(codes):
            if code not in by_code:
                raise AccountNotFoundError(code)
        return by_code
