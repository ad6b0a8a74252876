"""
Hypothesis property tests for the targeting engine.

Properties:
- Matching never raises, whatever the condition content, offset
  timestamps at the ends of the datetime range included
- Empty groups match every user
- equals matches iff the field is present and equal
- in / not_in are complementary for present fields and non-empty lists
- between is inclusive at both ends
- matches_rule is idempotent
- Adding a none-condition can only shrink the matched set
"""

from datetime import datetime, timedelta, timezone

from hypothesis import given, settings
from hypothesis import strategies as st

from couponbook_engines.targeting import matches_condition, matches_rule
from couponbook_kernel.domain.targeting import (
    TargetingCondition,
    TargetingField,
    TargetingOperator,
    TargetingRule,
    UserProfile,
)

_text = st.text(alphabet="0123456789ABC-/", min_size=0, max_size=10)
_optional_text = st.one_of(st.none(), _text)

_offsets = st.integers(min_value=-23 * 60, max_value=23 * 60).map(
    lambda minutes: timezone(timedelta(minutes=minutes))
)
_timestamps = st.one_of(
    st.datetimes(timezones=_offsets).map(datetime.isoformat),
    st.sampled_from(["9999-12-31T23:00:00-05:00", "0001-01-01T00:00:00+05:00"]),
)
_date_like = st.one_of(_text, _timestamps)

_any_value = st.one_of(
    st.none(),
    st.booleans(),
    st.integers(min_value=-10**6, max_value=10**6),
    st.floats(allow_nan=True, allow_infinity=True),
    _date_like,
    st.lists(_date_like, max_size=4),
    st.lists(st.integers(), max_size=3),
)

_field_names = st.one_of(
    st.sampled_from([f.value for f in TargetingField]), st.text(max_size=8)
)
_operator_names = st.one_of(
    st.sampled_from([o.value for o in TargetingOperator]), st.text(max_size=8)
)


@st.composite
def users(draw) -> UserProfile:
    return UserProfile(
        id="p",
        user_id=draw(st.text(min_size=1, max_size=6)),
        email="x@example.com",
        signup_date=draw(_date_like),
        last_activity=draw(_date_like),
        zip_code=draw(_optional_text),
        school_id=draw(_optional_text),
        grade=draw(_optional_text),
        referrer_code=draw(_optional_text),
    )


@st.composite
def conditions(draw) -> TargetingCondition:
    return TargetingCondition.from_dict(
        {
            "field": draw(_field_names),
            "operator": draw(_operator_names),
            "value": draw(_any_value),
            "value_kind": draw(st.sampled_from([None, "date", "number", "text", "bogus"])),
        }
    )


def _rule(**groups) -> TargetingRule:
    return TargetingRule.from_dict({"id": "r", "name": "Fuzz", "conditions": groups})


class TestTargetingProperties:

    @settings(max_examples=300)
    @given(user=users(), condition=conditions())
    def test_matching_never_raises(self, user, condition):
        assert matches_condition(user, condition) in (True, False)

    @given(user=users(), group=st.sampled_from(["all", "any", "none"]))
    def test_empty_group_matches_everyone(self, user, group):
        assert matches_rule(user, _rule(**{group: []})) is True

    @given(user=users(), value=_text)
    def test_equals_iff_present_and_equal(self, user, value):
        cond = TargetingCondition(TargetingField.ZIP_CODE, TargetingOperator.EQUALS, value)
        expected = bool(user.zip_code) and user.zip_code == value
        assert matches_condition(user, cond) is expected

    @given(user=users(), values=st.lists(_text, min_size=1, max_size=5))
    def test_in_not_in_complementary(self, user, values):
        inside = matches_condition(
            user, TargetingCondition(TargetingField.GRADE, TargetingOperator.IN, values)
        )
        outside = matches_condition(
            user, TargetingCondition(TargetingField.GRADE, TargetingOperator.NOT_IN, values)
        )
        if user.grade:
            assert inside != outside
        else:
            assert inside is False and outside is False

    @given(
        grade=st.integers(min_value=1, max_value=12),
        lo=st.integers(min_value=1, max_value=12),
        hi=st.integers(min_value=1, max_value=12),
    )
    def test_between_inclusive(self, grade, lo, hi):
        user = UserProfile(
            id="p", user_id="u", email="e", signup_date="", last_activity="", grade=str(grade)
        )
        cond = TargetingCondition(TargetingField.GRADE, TargetingOperator.BETWEEN, [lo, hi])
        assert matches_condition(user, cond) is (lo <= grade <= hi)

    @given(user=users(), conds=st.lists(conditions(), max_size=3))
    def test_idempotent(self, user, conds):
        rule = _rule(all=[c.to_dict() for c in conds])
        assert matches_rule(user, rule) == matches_rule(user, rule)

    @given(
        population=st.lists(users(), max_size=8),
        base=st.lists(conditions(), max_size=2),
        extra=conditions(),
    )
    def test_none_condition_only_narrows(self, population, base, extra):
        broad = _rule(all=[c.to_dict() for c in base])
        narrow = _rule(all=[c.to_dict() for c in base], none=[extra.to_dict()])
        for user in population:
            if matches_rule(user, narrow):
                assert matches_rule(user, broad)
