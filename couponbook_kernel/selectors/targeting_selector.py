"""
Module: couponbook_kernel.selectors.targeting_selector
Responsibility: Read-only access to saved targeting rules and coupon grants.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Read-only.  Returns TargetingRuleRecord / CouponGrantDTO, never ORM rows.
"""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from couponbook_kernel.domain.targeting import GrantType, RunFrequency, TargetingRule
from couponbook_kernel.models.targeting import CouponGrant, CouponTargetingRule
from couponbook_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class TargetingRuleRecord:
    """A saved rule together with its coupon binding and grant counters."""

    rule: TargetingRule
    coupon_id: str
    max_grants: int | None
    current_grants: int
    auto_run: bool
    run_frequency: RunFrequency
    last_run: datetime | None
    next_run: datetime | None

    @property
    def has_capacity(self) -> bool:
        return self.max_grants is None or self.current_grants < self.max_grants


@dataclass(frozen=True)
class CouponGrantDTO:
    id: UUID
    coupon_id: str
    user_id: str
    grant_type: GrantType
    targeting_rule_id: UUID | None
    granted_at: datetime
    expires_at: datetime | None
    used: bool
    used_at: datetime | None
    redemption_code: str | None


def rule_from_row(row: CouponTargetingRule) -> TargetingRule:
    """Rebuild the domain rule from its persisted row."""
    return TargetingRule.from_dict(
        {
            "id": str(row.id),
            "name": row.name,
            "description": row.description,
            "conditions": row.conditions,
            "active": row.active,
            "created_at": row.created_at.isoformat() if row.created_at else None,
            "updated_at": row.updated_at.isoformat() if row.updated_at else None,
        }
    )


def grant_to_dto(grant: CouponGrant) -> CouponGrantDTO:
    return CouponGrantDTO(
        id=grant.id,
        coupon_id=grant.coupon_id,
        user_id=grant.user_id,
        grant_type=GrantType(grant.grant_type),
        targeting_rule_id=grant.targeting_rule_id,
        granted_at=grant.granted_at,
        expires_at=grant.expires_at,
        used=grant.used,
        used_at=grant.used_at,
        redemption_code=grant.redemption_code,
    )


class TargetingSelector(BaseSelector[CouponTargetingRule]):
    """Selector for targeting rules and grants."""

    def __init__(self, session: Session):
        super().__init__(session)

    def get_rule(self, rule_id: UUID) -> TargetingRuleRecord | None:
        row = self.session.get(CouponTargetingRule, rule_id)
        if row is None:
            return None
        return TargetingRuleRecord(
            rule=rule_from_row(row),
            coupon_id=row.coupon_id,
            max_grants=row.max_grants,
            current_grants=row.current_grants,
            auto_run=row.auto_run,
            run_frequency=RunFrequency(row.run_frequency),
            last_run=row.last_run,
            next_run=row.next_run,
        )

    def list_active_rules(self) -> list[TargetingRule]:
        rows = self.session.execute(
            select(CouponTargetingRule)
            .where(CouponTargetingRule.active.is_(True))
            .order_by(CouponTargetingRule.name)
        ).scalars().all()
        return [rule_from_row(r) for r in rows]

    def get_grant(self, user_id: str, coupon_id: str) -> CouponGrantDTO | None:
        grant = self.session.execute(
            select(CouponGrant)
            .where(CouponGrant.user_id == user_id)
            .where(CouponGrant.coupon_id == coupon_id)
        ).scalar_one_or_none()
        if grant is None:
            return None
        return grant_to_dto(grant)

    def count_grants_for_rule(self, rule_id: UUID) -> int:
        return self.session.execute(
            select(func.count())
            .select_from(CouponGrant)
            .where(CouponGrant.targeting_rule_id == rule_id)
        ).scalar_one()
