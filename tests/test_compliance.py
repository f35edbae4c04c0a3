"""
Pre-flight eligibility rules.
"""

from datetime import date, datetime, timezone

import pytest

from contest_entry.compliance import calculate_age, check_compliance
from contest_entry.errors import ComplianceError, ErrorCode
from contest_entry.models import Contest, Profile

NOW = datetime(2026, 6, 15, 12, 0)


def make_contest(**kwargs) -> Contest:
    return Contest(id=kwargs.pop("id", "c1"), url=kwargs.pop("url", "https://example.com/win"), **kwargs)


def make_profile(**kwargs) -> Profile:
    address = kwargs.pop("address", {"state": "CA", "country": "US"})
    return Profile(id="p1", first_name="Ada", last_name="Lovelace", email="ada@example.com",
                   address=address, **kwargs)


def assert_rejected(contest, profile, code):
    with pytest.raises(ComplianceError) as info:
        check_compliance(contest, profile, NOW)
    assert info.value.code == code
    assert info.value.contest_id == contest.id
    return info.value


def test_calculate_age_counts_birthday():
    assert calculate_age(date(2000, 6, 15), date(2026, 6, 15)) == 26
    assert calculate_age(date(2000, 6, 16), date(2026, 6, 15)) == 25


def test_eligible_profile_passes():
    check_compliance(
        make_contest(age_requirement=18, geo_restrictions=["US", "exclude:NY"],
                     end_date=datetime(2026, 12, 31), legitimacy_score=0.9),
        make_profile(date_of_birth="1990-01-01"),
        NOW,
    )


def test_underage_profile_rejected():
    error = assert_rejected(make_contest(age_requirement=21), make_profile(date_of_birth="2010-03-04"),
                            ErrorCode.AGE_REQUIREMENT_NOT_MET)
    assert error.rule == "age-requirement"


def test_missing_birth_date_skips_age_rule():
    check_compliance(make_contest(age_requirement=21), make_profile(), NOW)


def test_country_not_allowed():
    assert_rejected(make_contest(geo_restrictions=["CA", "GB"]), make_profile(), ErrorCode.GEO_RESTRICTION)


def test_excluded_state():
    error = assert_rejected(
        make_contest(geo_restrictions=["US", "exclude:ca"]),
        make_profile(),
        ErrorCode.GEO_STATE_EXCLUDED,
    )
    assert error.rule == "geo-state"


def test_excluded_country():
    assert_rejected(make_contest(geo_restrictions=["exclude:US"]), make_profile(), ErrorCode.GEO_RESTRICTION)


def test_unknown_prefix_ignored():
    check_compliance(make_contest(geo_restrictions=["region:west"]), make_profile(), NOW)


def test_expired_contest():
    assert_rejected(make_contest(end_date=datetime(2026, 1, 1)), make_profile(), ErrorCode.CONTEST_EXPIRED)


def test_timezone_aware_end_date():
    future = datetime(2026, 6, 15, 13, 0, tzinfo=timezone.utc)
    check_compliance(make_contest(end_date=future), make_profile(), NOW)


def test_low_legitimacy():
    assert_rejected(make_contest(legitimacy_score=0.1), make_profile(), ErrorCode.LOW_LEGITIMACY)


def test_rules_checked_in_order():
    contest = make_contest(age_requirement=18, end_date=datetime(2020, 1, 1), legitimacy_score=0.0)
    assert_rejected(contest, make_profile(date_of_birth="2015-01-01"), ErrorCode.AGE_REQUIREMENT_NOT_MET)
