"""
CouponGrantService -- issues coupons to users who match a saved rule.

Responsibility:
    Loads a CouponTargetingRule, checks the user against it, enforces one
    grant per (user, coupon) and the rule's max_grants, and creates the
    CouponGrant together with the rule's grant counter in one flush.

Architecture position:
    Kernel > Services -- imperative shell.
    The kernel does not import the targeting engine; the rule matcher is
    injected by the caller (couponbook_services.targeting_service).

Invariants enforced:
    - Grant uniqueness: at most one grant per (user_id, coupon_id).  The
      service checks first; a concurrent insert hitting
      uq_grant_user_coupon is rolled back to a savepoint and reported as
      ALREADY_GRANTED.
    - Grant limit: current_grants < max_grants before a grant is made; the
      rule row is read FOR UPDATE so concurrent grants serialize on
      PostgreSQL.

Failure modes:
    - RuleNotFoundError: rule id does not exist.
    - Expected refusals (inactive rule, user not matching, duplicate,
      limit reached) are returned as GrantOutcome, not raised.
      ``GrantOutcome.raise_if_refused()`` converts them to exceptions.

Audit relevance:
    coupon_granted and grant_refused are logged with rule_id bound in the
    log context.
"""

import random
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from couponbook_kernel.domain.clock import Clock, SystemClock
from couponbook_kernel.domain.codes import random_code
from couponbook_kernel.domain.targeting import (
    GrantType,
    RunFrequency,
    TargetingRule,
    UserProfile,
)
from couponbook_kernel.exceptions import (
    DuplicateGrantError,
    GrantLimitReachedError,
    RuleInactiveError,
    RuleNotFoundError,
    UserNotEligibleError,
)
from couponbook_kernel.logging_config import LogContext, get_logger
from couponbook_kernel.models.targeting import CouponGrant, CouponTargetingRule
from couponbook_kernel.selectors.targeting_selector import (
    CouponGrantDTO,
    TargetingSelector,
    grant_to_dto,
    rule_from_row,
)
from couponbook_kernel.services.base import BaseService

logger = get_logger("services.grant")

RuleMatcher = Callable[[UserProfile, TargetingRule], bool]

DEFAULT_EXPIRY_DAYS = 30
DEFAULT_REDEMPTION_CODE_LENGTH = 8

_RUN_INTERVALS: dict[RunFrequency, timedelta | None] = {
    RunFrequency.ONCE: None,
    RunFrequency.DAILY: timedelta(days=1),
    RunFrequency.WEEKLY: timedelta(days=7),
    RunFrequency.MONTHLY: timedelta(days=30),
}


class GrantRefusal(str, Enum):
    """Why a grant was not made."""

    RULE_INACTIVE = "rule_inactive"
    NOT_ELIGIBLE = "not_eligible"
    ALREADY_GRANTED = "already_granted"
    LIMIT_REACHED = "limit_reached"


@dataclass(frozen=True)
class GrantOutcome:
    """
    Result of a grant attempt.

    Contract:
        granted is True iff reason is None and grant holds the new grant.
        For ALREADY_GRANTED, grant holds the existing grant when known.
    """

    granted: bool
    rule_id: str
    user_id: str
    coupon_id: str
    reason: GrantRefusal | None = None
    grant: CouponGrantDTO | None = None
    max_grants: int | None = None

    def raise_if_refused(self) -> "GrantOutcome":
        """Return self when granted; otherwise raise the matching error."""
        match self.reason:
            case None:
                return self
            case GrantRefusal.RULE_INACTIVE:
                raise RuleInactiveError(self.rule_id)
            case GrantRefusal.NOT_ELIGIBLE:
                raise UserNotEligibleError(self.user_id, self.rule_id)
            case GrantRefusal.ALREADY_GRANTED:
                raise DuplicateGrantError(self.user_id, self.coupon_id)
            case GrantRefusal.LIMIT_REACHED:
                raise GrantLimitReachedError(self.rule_id, self.max_grants or 0)


@dataclass(frozen=True)
class GrantPreview:
    """Who a saved rule would reach right now."""

    rule_id: str
    matching_users: tuple[UserProfile, ...]
    count: int
    total_users: int


@dataclass(frozen=True)
class RuleRunSummary:
    """Result of running a rule over a user population."""

    rule_id: str
    outcomes: tuple[GrantOutcome, ...]
    last_run: datetime
    next_run: datetime | None

    @property
    def granted_count(self) -> int:
        return sum(1 for o in self.outcomes if o.granted)


class CouponGrantService(BaseService[CouponGrant]):
    """
    Grants coupons from saved targeting rules.

    Contract:
        Flushes only.  ``matcher`` decides eligibility; ``clock`` and
        ``rng`` control timestamps and redemption codes.
    """

    def __init__(
        self,
        session: Session,
        matcher: RuleMatcher,
        clock: Clock | None = None,
        rng: random.Random | None = None,
        expiry_days: int = DEFAULT_EXPIRY_DAYS,
        redemption_code_length: int = DEFAULT_REDEMPTION_CODE_LENGTH,
    ):
        super().__init__(session)
        self._matches = matcher
        self._clock = clock or SystemClock()
        self._rng = rng
        self._expiry_days = expiry_days
        self._code_length = redemption_code_length
        self._selector = TargetingSelector(session)

    # ------------------------------------------------------------------
    # Grants
    # ------------------------------------------------------------------

    def grant(
        self,
        rule_id: UUID,
        user: UserProfile,
        created_by: str = "system",
    ) -> GrantOutcome:
        """Grant the rule's coupon to ``user`` if every check passes.

        Raises:
            RuleNotFoundError: If no rule has ``rule_id``.
        """
        row = self._load_rule_for_update(rule_id)
        with LogContext.bind(rule_id=str(rule_id), actor_id=created_by):
            return self._grant(row, rule_from_row(row), user, created_by)

    def _grant(
        self,
        row: CouponTargetingRule,
        rule: TargetingRule,
        user: UserProfile,
        created_by: str,
    ) -> GrantOutcome:
        if not row.active:
            return self._refuse(row, user, GrantRefusal.RULE_INACTIVE)

        if not self._matches(user, rule):
            return self._refuse(row, user, GrantRefusal.NOT_ELIGIBLE)

        existing = self._selector.get_grant(user.user_id, row.coupon_id)
        if existing is not None:
            return self._refuse(row, user, GrantRefusal.ALREADY_GRANTED, existing)

        if not row.has_capacity:
            return self._refuse(row, user, GrantRefusal.LIMIT_REACHED)

        now = self._clock.now_utc()
        grant = CouponGrant(
            coupon_id=row.coupon_id,
            user_id=user.user_id,
            grant_type=GrantType.TARGETED.value,
            targeting_rule_id=row.id,
            granted_at=now,
            expires_at=now + timedelta(days=self._expiry_days),
            used=False,
            redemption_code=random_code(self._code_length, self._rng),
            created_by=created_by,
        )

        savepoint = self.session.begin_nested()
        try:
            self.session.add(grant)
            row.current_grants += 1
            row.touch(created_by)
            self.session.flush()
        except IntegrityError:
            savepoint.rollback()
            existing = self._selector.get_grant(user.user_id, row.coupon_id)
            if existing is None:
                raise
            logger.warning(
                "concurrent_grant_conflict",
                extra={"user_id": user.user_id, "coupon_id": row.coupon_id},
            )
            return self._refuse(row, user, GrantRefusal.ALREADY_GRANTED, existing)
        savepoint.commit()

        logger.info(
            "coupon_granted",
            extra={
                "user_id": user.user_id,
                "coupon_id": row.coupon_id,
                "grant_id": str(grant.id),
                "expires_at": grant.expires_at,
                "current_grants": row.current_grants,
            },
        )
        return GrantOutcome(
            granted=True,
            rule_id=str(row.id),
            user_id=user.user_id,
            coupon_id=row.coupon_id,
            grant=grant_to_dto(grant),
            max_grants=row.max_grants,
        )

    def _refuse(
        self,
        row: CouponTargetingRule,
        user: UserProfile,
        reason: GrantRefusal,
        existing: CouponGrantDTO | None = None,
    ) -> GrantOutcome:
        logger.info(
            "grant_refused",
            extra={
                "user_id": user.user_id,
                "coupon_id": row.coupon_id,
                "reason": reason.value,
            },
        )
        return GrantOutcome(
            granted=False,
            rule_id=str(row.id),
            user_id=user.user_id,
            coupon_id=row.coupon_id,
            reason=reason,
            grant=existing,
            max_grants=row.max_grants,
        )

    # ------------------------------------------------------------------
    # Previews and scheduled runs
    # ------------------------------------------------------------------

    def preview(self, rule_id: UUID, users: Sequence[UserProfile]) -> GrantPreview:
        """Users a saved rule matches, without granting anything.

        Raises:
            RuleNotFoundError: If no rule has ``rule_id``.
        """
        record = self._selector.get_rule(rule_id)
        if record is None:
            raise RuleNotFoundError(str(rule_id))
        matching = tuple(u for u in users if self._matches(u, record.rule))
        return GrantPreview(
            rule_id=str(rule_id),
            matching_users=matching,
            count=len(matching),
            total_users=len(users),
        )

    def run_rule(
        self,
        rule_id: UUID,
        users: Sequence[UserProfile],
        created_by: str = "system",
    ) -> RuleRunSummary:
        """Attempt a grant for every user and record the run.

        Sets last_run to now and next_run from the rule's run_frequency
        (None for ``once``).
        """
        row = self._load_rule_for_update(rule_id)
        rule = rule_from_row(row)
        with LogContext.bind(rule_id=str(rule_id), actor_id=created_by):
            outcomes = tuple(self._grant(row, rule, user, created_by) for user in users)

            now = self._clock.now_utc()
            interval = _RUN_INTERVALS[RunFrequency(row.run_frequency)]
            row.last_run = now
            row.next_run = now + interval if interval is not None else None
            self.session.flush()

            summary = RuleRunSummary(
                rule_id=str(rule_id),
                outcomes=outcomes,
                last_run=now,
                next_run=row.next_run,
            )
            logger.info(
                "targeting_rule_run",
                extra={
                    "users": len(users),
                    "granted": summary.granted_count,
                    "next_run": row.next_run,
                },
            )
        return summary

    def _load_rule_for_update(self, rule_id: UUID) -> CouponTargetingRule:
        row = self.session.execute(
            select(CouponTargetingRule)
            .where(CouponTargetingRule.id == rule_id)
            .with_for_update()
        ).scalar_one_or_none()
        if row is None:
            raise RuleNotFoundError(str(rule_id))
        return row
