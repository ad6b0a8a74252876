"""
couponbook_services.targeting_service -- Targeting rules and coupon grants.

Responsibility:
    Validates and saves targeting rules, previews who a rule (saved or
    ad hoc) reaches, and grants coupons through the kernel
    CouponGrantService with the pure targeting engine as matcher.

Architecture position:
    Services -- orchestration over engines + kernel + config.
    Grant parameters (expiry, redemption code length) come from
    ``CouponBookConfig.grant``.

Failure modes:
    - InvalidRuleError: rule fails validate_rule (all messages attached).
    - RuleNotFoundError: unknown rule id.
    - Grant refusals are returned as GrantOutcome; ``grant_or_raise``
      converts them to typed GrantError / TargetingError exceptions.
"""

from __future__ import annotations

import random
from collections.abc import Mapping, Sequence
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from couponbook_config.schema import GrantSettings
from couponbook_engines.targeting import (
    match_report,
    matches_rule,
    parse_targeting_rule,
    summarize_rule,
    validate_rule,
)
from couponbook_kernel.domain.clock import Clock, SystemClock
from couponbook_kernel.domain.targeting import RunFrequency, TargetingRule, UserProfile
from couponbook_kernel.exceptions import InvalidRuleError, RuleNotFoundError
from couponbook_kernel.logging_config import LogContext, get_logger
from couponbook_kernel.selectors.targeting_selector import (
    TargetingRuleRecord,
    TargetingSelector,
)
from couponbook_kernel.services.grant_service import (
    CouponGrantService,
    GrantOutcome,
    GrantPreview,
    RuleRunSummary,
)
from couponbook_kernel.services.rule_service import TargetingRuleService

logger = get_logger("orchestration.targeting")


class TargetingService:
    """Targeting rules and coupon grants for one session.

    Usage:
        config = get_active_config()
        with session_scope() as session:
            service = TargetingService(session, grant_settings=config.grant)
            rule_id = service.create_rule(
                {"name": "Mountain Brook", "conditions": {"all": [
                    {"field": "zip_code", "operator": "in",
                     "value": ["35223", "35213"]}]}},
                coupon_id="coupon-1",
            )
            service.grant(rule_id, user).raise_if_refused()
    """

    def __init__(
        self,
        session: Session,
        grant_settings: GrantSettings | None = None,
        clock: Clock | None = None,
        rng: random.Random | None = None,
    ) -> None:
        settings = grant_settings or GrantSettings()
        self._clock = clock or SystemClock()
        self._rules = TargetingRuleService(session)
        self._selector = TargetingSelector(session)
        self._grants = CouponGrantService(
            session,
            matcher=matches_rule,
            clock=self._clock,
            rng=rng,
            expiry_days=settings.expiry_days,
            redemption_code_length=settings.redemption_code_length,
        )

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def create_rule(
        self,
        rule: TargetingRule | Mapping[str, Any],
        coupon_id: str,
        max_grants: int | None = None,
        auto_run: bool = False,
        run_frequency: RunFrequency | str = RunFrequency.ONCE,
        created_by: str = "system",
    ) -> UUID:
        """Validate and save a rule bound to ``coupon_id``.

        Raises:
            InvalidRuleError: With every validation message.
        """
        if not isinstance(rule, TargetingRule):
            rule = TargetingRule.from_dict(rule)
        self._require_valid(rule)

        row = self._rules.save(
            rule,
            coupon_id=coupon_id,
            max_grants=max_grants,
            auto_run=auto_run,
            run_frequency=RunFrequency(run_frequency),
            created_by=created_by,
        )
        logger.info(
            "targeting_rule_created",
            extra={"rule_id": str(row.id), "condition_counts": dict(summarize_rule(rule))},
        )
        return row.id

    def get_rule(self, rule_id: UUID) -> TargetingRuleRecord:
        record = self._selector.get_rule(rule_id)
        if record is None:
            raise RuleNotFoundError(str(rule_id))
        return record

    def deactivate_rule(self, rule_id: UUID, updated_by: str = "system") -> None:
        self._rules.set_active(rule_id, False, updated_by=updated_by)

    def activate_rule(self, rule_id: UUID, updated_by: str = "system") -> None:
        self._rules.set_active(rule_id, True, updated_by=updated_by)

    def _require_valid(self, rule: TargetingRule) -> None:
        result = validate_rule(rule)
        if not result.valid:
            logger.warning("targeting_rule_invalid", extra={"errors": list(result.errors)})
            raise InvalidRuleError(list(result.errors))

    # ------------------------------------------------------------------
    # Previews
    # ------------------------------------------------------------------

    def preview(self, rule_id: UUID, users: Sequence[UserProfile]) -> GrantPreview:
        """Users a saved rule currently matches."""
        return self._grants.preview(rule_id, users)

    def preview_conditions(
        self,
        conditions: Mapping[str, Any],
        users: Sequence[UserProfile],
    ) -> Mapping[str, Any]:
        """Users an unsaved conditions object would match.

        Returns:
            ``{"matching_users": [...], "count": n, "total_users": m}``.

        Raises:
            InvalidRuleError: If the conditions do not form a valid rule.
        """
        rule = parse_targeting_rule(conditions, clock=self._clock)
        self._require_valid(rule)
        return match_report(rule, users)

    # ------------------------------------------------------------------
    # Grants
    # ------------------------------------------------------------------

    def grant(
        self, rule_id: UUID, user: UserProfile, created_by: str = "system"
    ) -> GrantOutcome:
        with LogContext.bind(actor_id=created_by):
            return self._grants.grant(rule_id, user, created_by=created_by)

    def grant_or_raise(
        self, rule_id: UUID, user: UserProfile, created_by: str = "system"
    ) -> GrantOutcome:
        return self.grant(rule_id, user, created_by=created_by).raise_if_refused()

    def run_rule(
        self, rule_id: UUID, users: Sequence[UserProfile], created_by: str = "system"
    ) -> RuleRunSummary:
        return self._grants.run_rule(rule_id, users, created_by=created_by)
