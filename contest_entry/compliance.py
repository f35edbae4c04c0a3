"""
Pre-flight eligibility checks.

Pure functions over (contest, profile, now): no page, no storage. Run
before any browser resource is acquired so known-bad targets cost nothing.
"""

from datetime import date, datetime, timezone
from typing import Optional

from contest_entry.config import MIN_LEGITIMACY_SCORE
from contest_entry.errors import ComplianceError, ErrorCode
from contest_entry.models import Contest, Profile
from contest_entry.utils.helpers import utc_now

EXCLUDE_PREFIX = "exclude:"


def calculate_age(dob: date, today: Optional[date] = None) -> int:
    """Whole years between dob and today."""
    today = today or utc_now().date()
    age = today.year - dob.year
    if (today.month, today.day) < (dob.month, dob.day):
        age -= 1
    return age


def _as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def check_compliance(contest: Contest, profile: Profile, now: Optional[datetime] = None):
    """
    Raise ComplianceError if the profile may not enter the contest.

    Rules, in order: minimum age, allowed countries, excluded states or
    countries (`exclude:<code>` entries), contest expiry, and minimum
    legitimacy score. Restrictions with any other `prefix:` are ignored.

    Args:
        contest: Contest to enter
        profile: Profile entering
        now: Current naive-UTC time (defaults to the wall clock)
    """
    now = _as_naive_utc(now) if now else utc_now()

    if contest.age_requirement is not None and profile.date_of_birth is not None:
        age = calculate_age(profile.date_of_birth, now.date())
        if age < contest.age_requirement:
            raise ComplianceError(
                f"Profile age {age} does not meet minimum age requirement of {contest.age_requirement}",
                ErrorCode.AGE_REQUIREMENT_NOT_MET, "age-requirement", contest.id,
            )

    if contest.geo_restrictions:
        country = profile.country.strip().upper()
        state = profile.state.strip().lower()

        allowed = [r.strip().upper() for r in contest.geo_restrictions if ":" not in r]
        if allowed and country not in allowed:
            raise ComplianceError(
                f'Profile country "{country}" not in allowed list: {", ".join(allowed)}',
                ErrorCode.GEO_RESTRICTION, "geo-country", contest.id,
            )

        excluded = [
            r[len(EXCLUDE_PREFIX):].strip().lower()
            for r in contest.geo_restrictions if r.lower().startswith(EXCLUDE_PREFIX)
        ]
        if state and state in excluded:
            raise ComplianceError(
                f'Profile state "{profile.state}" is excluded from this contest',
                ErrorCode.GEO_STATE_EXCLUDED, "geo-state", contest.id,
            )
        if country and country.lower() in excluded:
            raise ComplianceError(
                f'Profile country "{country}" is excluded from this contest',
                ErrorCode.GEO_RESTRICTION, "geo-country", contest.id,
            )

    if contest.end_date is not None and _as_naive_utc(contest.end_date) < now:
        raise ComplianceError("Contest has expired", ErrorCode.CONTEST_EXPIRED, "expiration", contest.id)

    if contest.legitimacy_score < MIN_LEGITIMACY_SCORE:
        raise ComplianceError(
            f"Contest legitimacy score ({contest.legitimacy_score:.2f}) is below minimum threshold",
            ErrorCode.LOW_LEGITIMACY, "legitimacy", contest.id,
        )
