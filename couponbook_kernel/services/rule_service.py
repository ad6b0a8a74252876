"""
TargetingRuleService -- persists targeting rules.

Saves rules that have already passed structural validation (the caller
runs the targeting engine's validate_rule first) and toggles their
active flag.  Flushes only.
"""

from uuid import UUID

from sqlalchemy.orm import Session

from couponbook_kernel.domain.targeting import RunFrequency, TargetingRule
from couponbook_kernel.exceptions import RuleNotFoundError
from couponbook_kernel.logging_config import get_logger
from couponbook_kernel.models.targeting import CouponTargetingRule
from couponbook_kernel.services.base import BaseService

logger = get_logger("services.rules")


class TargetingRuleService(BaseService[CouponTargetingRule]):
    """Create and update CouponTargetingRule rows."""

    def __init__(self, session: Session):
        super().__init__(session)

    def save(
        self,
        rule: TargetingRule,
        coupon_id: str,
        max_grants: int | None = None,
        auto_run: bool = False,
        run_frequency: RunFrequency = RunFrequency.ONCE,
        created_by: str = "system",
    ) -> CouponTargetingRule:
        row = CouponTargetingRule(
            name=rule.name,
            description=rule.description,
            conditions=rule.conditions.to_dict() if rule.conditions is not None else None,
            active=rule.active,
            coupon_id=coupon_id,
            max_grants=max_grants,
            current_grants=0,
            auto_run=auto_run,
            run_frequency=RunFrequency(run_frequency).value,
            created_by=created_by,
        )
        self.session.add(row)
        self.session.flush()
        logger.info(
            "targeting_rule_saved",
            extra={
                "rule_id": str(row.id),
                "coupon_id": coupon_id,
                "max_grants": max_grants,
                "run_frequency": row.run_frequency,
            },
        )
        return row

    def set_active(self, rule_id: UUID, active: bool, updated_by: str = "system") -> None:
        row = self.session.get(CouponTargetingRule, rule_id)
        if row is None:
            raise RuleNotFoundError(str(rule_id))
        row.active = active
        row.touch(updated_by)
        self.session.flush()
        logger.info("targeting_rule_toggled", extra={"rule_id": str(rule_id), "active": active})
