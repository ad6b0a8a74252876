"""
Targeting -- Immutable domain types for rule-based coupon targeting.

Responsibility:
    Defines the closed vocabularies (fields, operators, value kinds), the
    condition and rule value objects, and the user profile record that the
    targeting engine evaluates.  Rules and conditions round-trip through
    plain JSON-serializable mappings so they can be stored and exchanged
    by callers.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Consumed by couponbook_engines.targeting (evaluation) and
    couponbook_kernel.services.grant_service (persistence boundary).

Invariants enforced:
    - Field lookup is an explicit mapping over the closed TargetingField
      enum (UserProfile.value_for); there is no dynamic attribute access.
    - Conditions are frozen; list values are frozen to tuples.

Failure modes:
    - None on construction from mappings.  Unknown field or operator names
      are preserved as raw strings so that rule validation can report them
      and matching can fail closed.  Entries of the wrong shape (a
      condition that is not a mapping, a group that is not a list) become
      conditions with an empty field and operator for the same reason.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any


class TargetingField(str, Enum):
    """User profile fields a condition may reference."""

    ZIP_CODE = "zip_code"
    SCHOOL_ID = "school_id"
    GRADE = "grade"
    REFERRER_CODE = "referrer_code"
    SIGNUP_DATE = "signup_date"
    LAST_ACTIVITY = "last_activity"


class TargetingOperator(str, Enum):
    """Comparison operators available to a condition."""

    EQUALS = "equals"
    IN = "in"
    NOT_IN = "not_in"
    CONTAINS = "contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    BETWEEN = "between"


class ValueKind(str, Enum):
    """
    Explicit interpretation for ordering operators.

    When a condition carries a value_kind, greater_than / less_than /
    between compare only under that interpretation.  Without one, the
    engine infers dates from the shape of the user's value.
    """

    DATE = "date"
    NUMBER = "number"
    TEXT = "text"


class GrantType(str, Enum):
    """How a user came to hold a coupon."""

    PURCHASED = "purchased"
    GIFTED = "gifted"
    TARGETED = "targeted"


class RunFrequency(str, Enum):
    """Schedule for automatically re-running a targeting rule."""

    ONCE = "once"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


GROUP_NAMES: tuple[str, ...] = ("all", "any", "none")


def _coerce_enum(enum_cls: type[Enum], raw: Any) -> Any:
    """Return the enum member for raw, or raw unchanged if it is not one."""
    if isinstance(raw, enum_cls):
        return raw
    try:
        return enum_cls(raw)
    except ValueError:
        return raw


def _freeze(value: Any) -> Any:
    if isinstance(value, list):
        return tuple(_freeze(v) for v in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, tuple):
        return [_thaw(v) for v in value]
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return value


@dataclass(frozen=True)
class TargetingCondition:
    """
    One atomic field/operator/value test.

    Contract:
        field and operator are TargetingField / TargetingOperator members
        when recognized, otherwise the raw string supplied by the caller.
        value is None when the caller did not supply one.

    Guarantees:
        - Immutable; list values are stored as tuples.

    Non-goals:
        - Does NOT check that value has the right shape for the operator
          (e.g. a 2-tuple for between).  The engine fails closed instead.
    """

    field: TargetingField | str
    operator: TargetingOperator | str
    value: Any = None
    value_kind: ValueKind | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "field", _coerce_enum(TargetingField, self.field))
        object.__setattr__(
            self, "operator", _coerce_enum(TargetingOperator, self.operator)
        )
        object.__setattr__(self, "value", _freeze(self.value))
        if self.value_kind is not None:
            object.__setattr__(
                self, "value_kind", _coerce_enum(ValueKind, self.value_kind)
            )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TargetingCondition:
        if not isinstance(data, Mapping):
            # kept as an invalid condition so validation reports its index
            return cls(field="", operator="")
        return cls(
            field=data.get("field", ""),
            operator=data.get("operator", ""),
            value=data.get("value"),
            value_kind=data.get("value_kind"),
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "field": getattr(self.field, "value", self.field),
            "operator": getattr(self.operator, "value", self.operator),
            "value": _thaw(self.value),
        }
        if self.value_kind is not None:
            out["value_kind"] = getattr(self.value_kind, "value", self.value_kind)
        return out


@dataclass(frozen=True)
class ConditionGroups:
    """
    The three logical buckets of a rule.

    Each group is None when absent, or a tuple of conditions (possibly
    empty).  Absent and empty groups impose no constraint.
    """

    all_of: tuple[TargetingCondition, ...] | None = None
    any_of: tuple[TargetingCondition, ...] | None = None
    none_of: tuple[TargetingCondition, ...] | None = None

    def __post_init__(self) -> None:
        for attr in ("all_of", "any_of", "none_of"):
            group = getattr(self, attr)
            if group is not None and not isinstance(group, tuple):
                object.__setattr__(self, attr, tuple(group))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ConditionGroups:
        """Build groups from a mapping.

        Input that is not a mapping, or a group that is not a list, is kept
        as a single invalid condition so validation can report it.
        """
        if not isinstance(data, Mapping):
            return cls(all_of=(TargetingCondition(field="", operator=""),))

        def parse(name: str) -> tuple[TargetingCondition, ...] | None:
            raw = data.get(name)
            if raw is None:
                return None
            if not isinstance(raw, (list, tuple)):
                return (TargetingCondition(field="", operator=""),)
            return tuple(
                c if isinstance(c, TargetingCondition) else TargetingCondition.from_dict(c)
                for c in raw
            )

        return cls(all_of=parse("all"), any_of=parse("any"), none_of=parse("none"))

    def groups(self) -> Iterator[tuple[str, tuple[TargetingCondition, ...] | None]]:
        """Yield (json_name, conditions) for all three groups in order."""
        yield "all", self.all_of
        yield "any", self.any_of
        yield "none", self.none_of

    @property
    def is_empty(self) -> bool:
        """True when no group holds a condition."""
        return not (self.all_of or self.any_of or self.none_of)

    def to_dict(self) -> dict[str, Any]:
        return {
            name: [c.to_dict() for c in conditions]
            for name, conditions in self.groups()
            if conditions is not None
        }


@dataclass(frozen=True)
class TargetingRule:
    """
    A named, reusable boolean expression over user-profile fields.

    Contract:
        The engine treats a rule as read-only input.  conditions is None
        when the caller supplied no conditions object at all.
    """

    id: str
    name: str
    conditions: ConditionGroups | None
    active: bool = True
    created_at: str | None = None
    updated_at: str | None = None
    description: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TargetingRule:
        raw_conditions = data.get("conditions")
        if raw_conditions is None:
            conditions = None
        elif isinstance(raw_conditions, ConditionGroups):
            conditions = raw_conditions
        else:
            conditions = ConditionGroups.from_dict(raw_conditions)
        return cls(
            id=str(data.get("id", "")),
            name=data.get("name", ""),
            conditions=conditions,
            active=bool(data.get("active", True)),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
            description=data.get("description"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "conditions": self.conditions.to_dict() if self.conditions else None,
            "active": self.active,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@dataclass(frozen=True)
class RuleValidation:
    """Result of structural rule validation."""

    valid: bool
    errors: tuple[str, ...] = ()

    def __bool__(self) -> bool:
        return self.valid


@dataclass(frozen=True)
class UserProfile:
    """
    Targeting data for one user, supplied by the caller per evaluation.

    Dates are usually ISO strings as stored; date/datetime objects are
    also accepted.
    """

    id: str
    user_id: str
    email: str
    signup_date: str | date
    last_activity: str | date
    zip_code: str | None = None
    school_id: str | None = None
    grade: str | None = None
    referrer_code: str | None = None
    name: str | None = None
    preferences: Mapping[str, Any] | None = field(default=None, compare=False)

    def value_for(self, target: TargetingField | str) -> Any:
        """
        Look up the profile value a condition field refers to.

        Returns None for unrecognized fields, so conditions on them fail.
        """
        match target:
            case TargetingField.ZIP_CODE:
                return self.zip_code
            case TargetingField.SCHOOL_ID:
                return self.school_id
            case TargetingField.GRADE:
                return self.grade
            case TargetingField.REFERRER_CODE:
                return self.referrer_code
            case TargetingField.SIGNUP_DATE:
                return self.signup_date
            case TargetingField.LAST_ACTIVITY:
                return self.last_activity
            case _:
                return None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> UserProfile:
        return cls(
            id=str(data.get("id", "")),
            user_id=str(data.get("user_id", "")),
            email=data.get("email", ""),
            signup_date=data.get("signup_date", ""),
            last_activity=data.get("last_activity", ""),
            zip_code=data.get("zip_code"),
            school_id=data.get("school_id"),
            grade=data.get("grade"),
            referrer_code=data.get("referrer_code"),
            name=data.get("name"),
            preferences=data.get("preferences"),
        )
