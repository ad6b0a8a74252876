"""Kernel services: flush-only writers over the caller's session."""

from couponbook_kernel.services.base import BaseService
from couponbook_kernel.services.chart_service import ChartOfAccountsService
from couponbook_kernel.services.grant_service import (
    CouponGrantService,
    GrantOutcome,
    GrantPreview,
    GrantRefusal,
    RuleRunSummary,
)
from couponbook_kernel.services.journal_writer import JournalWriter
from couponbook_kernel.services.rule_service import TargetingRuleService

__all__ = [
    "BaseService",
    "ChartOfAccountsService",
    "CouponGrantService",
    "GrantOutcome",
    "GrantPreview",
    "GrantRefusal",
    "JournalWriter",
    "RuleRunSummary",
    "TargetingRuleService",
]
