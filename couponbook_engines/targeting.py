"""
couponbook_engines.targeting -- Pure rule-based user targeting engine.

Responsibility:
    Decide whether a user profile satisfies a targeting rule, filter a
    collection of profiles by a rule, and structurally validate rules
    before an administrator saves them.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import couponbook_kernel/domain types.

Invariants enforced:
    - Fail closed: an absent or falsy profile value, an unrecognized field
      or operator, a value of the wrong shape, or an unparseable ordering
      comparison never matches.  No input makes these functions raise.
    - Group semantics: ``all`` = every condition matches, ``any`` = at
      least one matches, ``none`` = no condition matches.  Absent or empty
      groups impose no constraint, and the rule result is the AND of the
      three groups.  A rule with no conditions therefore matches everyone.
    - Determinism: identical inputs always produce identical outputs.

Failure modes:
    - None for rule/condition/profile content.  Passing None instead of a
      UserProfile or TargetingRule is a programmer error and raises
      AttributeError.

Ordering comparisons:
    Without an explicit ``value_kind``, a string profile value containing
    ``-`` or ``/`` is first tried as a date (ISO 8601, ``MM/DD/YYYY`` or
    ``YYYY/MM/DD``); when both sides parse, they compare as dates.
    Otherwise both sides are parsed as decimal numbers; if either fails
    the comparison is False.  A condition's ``value_kind`` replaces this
    inference with exactly one interpretation.
"""

from __future__ import annotations

import operator as op
from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from couponbook_engines.tracer import traced_engine
from couponbook_kernel.domain.clock import Clock, SystemClock
from couponbook_kernel.domain.targeting import (
    GROUP_NAMES,
    ConditionGroups,
    RuleValidation,
    TargetingCondition,
    TargetingField,
    TargetingOperator,
    TargetingRule,
    UserProfile,
    ValueKind,
)

_Ordering = Callable[[Any, Any], bool]

_DATE_FORMATS: tuple[str, ...] = ("%m/%d/%Y", "%Y/%m/%d", "%m/%d/%Y %H:%M:%S")


# =============================================================================
# Rule evaluation
# =============================================================================


def matches_rule(user: UserProfile, rule: TargetingRule) -> bool:
    """Check if a user matches a targeting rule.

    Args:
        user: Profile to evaluate.
        rule: Rule whose condition groups are evaluated.

    Returns:
        True when the ``all``, ``any`` and ``none`` groups are all
        satisfied (absent or empty groups are satisfied).
    """
    conditions = rule.conditions
    if conditions is None:
        return True

    if conditions.all_of:
        if not all(matches_condition(user, c) for c in conditions.all_of):
            return False

    if conditions.any_of:
        if not any(matches_condition(user, c) for c in conditions.any_of):
            return False

    if conditions.none_of:
        if any(matches_condition(user, c) for c in conditions.none_of):
            return False

    return True


def matches_condition(user: UserProfile, condition: TargetingCondition) -> bool:
    """Check if a user matches a single condition.

    An absent or falsy profile value fails regardless of operator.
    """
    user_value = user.value_for(condition.field)
    if not user_value:
        return False

    value = condition.value
    kind = condition.value_kind

    match condition.operator:
        case TargetingOperator.EQUALS:
            return user_value == value
        case TargetingOperator.IN:
            return _is_list(value) and user_value in value
        case TargetingOperator.NOT_IN:
            return _is_list(value) and user_value not in value
        case TargetingOperator.CONTAINS:
            return _both_str(user_value, value) and value in user_value
        case TargetingOperator.STARTS_WITH:
            return _both_str(user_value, value) and user_value.startswith(value)
        case TargetingOperator.ENDS_WITH:
            return _both_str(user_value, value) and user_value.endswith(value)
        case TargetingOperator.GREATER_THAN:
            return _compare(user_value, value, op.gt, kind)
        case TargetingOperator.LESS_THAN:
            return _compare(user_value, value, op.lt, kind)
        case TargetingOperator.BETWEEN:
            if not _is_list(value) or len(value) != 2:
                return False
            lo, hi = value
            return _compare(user_value, lo, op.ge, kind) and _compare(
                user_value, hi, op.le, kind
            )
        case _:
            return False


@traced_engine("targeting", "1.0", fingerprint_fields=("rule",))
def get_matching_users(
    rule: TargetingRule, users: Iterable[UserProfile]
) -> list[UserProfile]:
    """Return the users matching ``rule``, preserving input order."""
    return [user for user in users if matches_rule(user, rule)]


def get_matching_user_count(rule: TargetingRule, users: Iterable[UserProfile]) -> int:
    """Number of users in ``users`` matching ``rule``."""
    return len(get_matching_users(rule, users))


# =============================================================================
# Rule construction and validation
# =============================================================================


def parse_targeting_rule(
    conditions: Mapping[str, Any] | ConditionGroups,
    clock: Clock | None = None,
) -> TargetingRule:
    """Wrap a raw conditions object into an unsaved, active rule."""
    now = (clock or SystemClock()).now_utc().isoformat()
    groups = (
        conditions
        if isinstance(conditions, ConditionGroups)
        else ConditionGroups.from_dict(conditions)
    )
    return TargetingRule(
        id="",
        name="Generated Rule",
        conditions=groups,
        active=True,
        created_at=now,
        updated_at=now,
    )


@traced_engine("targeting", "1.0", fingerprint_fields=("rule",))
def validate_rule(rule: TargetingRule) -> RuleValidation:
    """Structurally validate a rule.

    Checks the rule name, presence of a conditions object with at least
    one group, and that every condition uses a recognized field and
    operator and has a value.  Operator/value shape compatibility is not
    checked.
    """
    errors: list[str] = []

    if not rule.name:
        errors.append("Rule name is required")

    if rule.conditions is None:
        errors.append("Conditions are required")
    else:
        groups = list(rule.conditions.groups())
        if all(conds is None for _, conds in groups):
            errors.append("At least one condition type (all, any, none) is required")

        for group_name, conds in groups:
            for index, condition in enumerate(conds or ()):
                if not is_valid_condition(condition):
                    errors.append(
                        f"Invalid condition at index {index} in '{group_name}'"
                    )

    return RuleValidation(valid=not errors, errors=tuple(errors))


def is_valid_condition(condition: TargetingCondition) -> bool:
    """True when field and operator are recognized and a value is present."""
    return (
        isinstance(condition.field, TargetingField)
        and isinstance(condition.operator, TargetingOperator)
        and condition.value is not None
    )


# =============================================================================
# Comparison helpers
# =============================================================================


def _is_list(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def _both_str(a: Any, b: Any) -> bool:
    return isinstance(a, str) and isinstance(b, str)


def _compare(user_value: Any, target: Any, ordering: _Ordering, kind: ValueKind | None) -> bool:
    """Ordered comparison ``ordering(user_value, target)`` that fails closed."""
    match kind:
        case ValueKind.DATE:
            return _compare_dates(user_value, target, ordering) is True
        case ValueKind.NUMBER:
            return _compare_numbers(user_value, target, ordering)
        case ValueKind.TEXT:
            return _both_str(user_value, target) and ordering(user_value, target)
        case _:
            if _looks_like_date(user_value):
                as_dates = _compare_dates(user_value, target, ordering)
                if as_dates is not None:
                    return as_dates
            return _compare_numbers(user_value, target, ordering)


def _looks_like_date(value: Any) -> bool:
    if isinstance(value, (date, datetime)):
        return True
    return isinstance(value, str) and ("-" in value or "/" in value)


def _compare_dates(user_value: Any, target: Any, ordering: _Ordering) -> bool | None:
    """Compare as dates; None when either side does not parse."""
    left = parse_date_value(user_value)
    right = parse_date_value(target)
    if left is None or right is None:
        return None
    return ordering(left, right)


def _compare_numbers(user_value: Any, target: Any, ordering: _Ordering) -> bool:
    left = parse_number_value(user_value)
    right = parse_number_value(target)
    if left is None or right is None:
        return False
    return ordering(left, right)


def parse_date_value(value: Any) -> datetime | None:
    """Parse a date-like value into an aware datetime, or None.

    Naive values are taken to be UTC so that aware and naive inputs
    remain comparable.  Aware values keep their own offset; converting
    them could step outside the datetime range at either end.
    """
    parsed: datetime | None = None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            for fmt in _DATE_FORMATS:
                try:
                    parsed = datetime.strptime(text, fmt)
                    break
                except ValueError:
                    continue
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_number_value(value: Any) -> Decimal | None:
    """Parse a numeric value into a finite Decimal, or None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, (int, float)):
        number = Decimal(str(value))
    elif isinstance(value, str):
        try:
            number = Decimal(value.strip())
        except InvalidOperation:
            return None
    else:
        return None
    if not number.is_finite():
        return None
    return number


def summarize_rule(rule: TargetingRule) -> Mapping[str, int]:
    """Count conditions per group, for previews and logs."""
    if rule.conditions is None:
        return {name: 0 for name in GROUP_NAMES}
    return {name: len(conds or ()) for name, conds in rule.conditions.groups()}


def match_report(
    rule: TargetingRule, users: Sequence[UserProfile]
) -> Mapping[str, Any]:
    """Matching users, their count and the population size for a rule."""
    matching = get_matching_users(rule, users)
    return {
        "matching_users": matching,
        "count": len(matching),
        "total_users": len(users),
    }
