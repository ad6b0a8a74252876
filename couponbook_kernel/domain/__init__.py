"""
Pure domain layer.

This module contains pure data transfer objects with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Time (except the injectable Clock)
- I/O

All domain objects are immutable and deterministic.
"""

from couponbook_kernel.domain.accounting import (
    ACCOUNTS_BY_CODE,
    CHART_OF_ACCOUNTS,
    AccountCode,
    AccountDefinition,
    AccountingEvent,
    AccountingEventType,
    AccountType,
    BalanceSheet,
    CashMovements,
    FinancialStatement,
    IncomeStatement,
    JournalLineSpec,
    JournalValidation,
    LineSide,
    NormalBalance,
    PeriodOption,
    SalesMetrics,
)
from couponbook_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from couponbook_kernel.domain.targeting import (
    ConditionGroups,
    GrantType,
    RuleValidation,
    RunFrequency,
    TargetingCondition,
    TargetingField,
    TargetingOperator,
    TargetingRule,
    UserProfile,
    ValueKind,
)

__all__ = [
    # Accounting
    "ACCOUNTS_BY_CODE",
    "CHART_OF_ACCOUNTS",
    "AccountCode",
    "AccountDefinition",
    "AccountingEvent",
    "AccountingEventType",
    "AccountType",
    "BalanceSheet",
    "CashMovements",
    "FinancialStatement",
    "IncomeStatement",
    "JournalLineSpec",
    "JournalValidation",
    "LineSide",
    "NormalBalance",
    "PeriodOption",
    "SalesMetrics",
    # Clock
    "Clock",
    "DeterministicClock",
    "SystemClock",
    # Targeting
    "ConditionGroups",
    "GrantType",
    "RuleValidation",
    "RunFrequency",
    "TargetingCondition",
    "TargetingField",
    "TargetingOperator",
    "TargetingRule",
    "UserProfile",
    "ValueKind",
]
