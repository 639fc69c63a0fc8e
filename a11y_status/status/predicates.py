"""Certification predicates and the state classification.

All functions are pure functions of a StatusRecord (or plain timestamps) and
an explicit ``now``, so UI notices, reminders and the refresh policy agree on
the same answers.
"""

from datetime import datetime, timedelta

from dateutil.relativedelta import relativedelta

from a11y_status.status.models import CertificationState, StatusRecord, ensure_aware


# Month component of the time left below which a certification expires "soon"
EXPIRING_SOON_MONTHS = 1

# Days after first appearance during which not being certified is tolerated
DEFAULT_GRACE_PERIOD_DAYS = 30

MINUTE_IN_SECONDS = 60
HOUR_IN_SECONDS = 60 * MINUTE_IN_SECONDS
DAY_IN_SECONDS = 24 * HOUR_IN_SECONDS
WEEK_IN_SECONDS = 7 * DAY_IN_SECONDS
MONTH_IN_SECONDS = 30 * DAY_IN_SECONDS
YEAR_IN_SECONDS = 365 * DAY_IN_SECONDS


def month_difference(expire_date: datetime, now: datetime) -> int:
    """Month component of the calendar difference from ``now`` to ``expire_date``.

    Whole years are not counted: an expiration one year and five days away
    has a month component of 0, just like one five days away. ``now`` is
    converted to the expiration's timezone first so the arithmetic runs on
    the source's wall clock. The value is zero or negative once expired.

    Args:
        expire_date: Expiration instant.
        now: Current instant.

    Returns:
        Signed month component, between -11 and 11.
    """
    expire_date = ensure_aware(expire_date)
    now = ensure_aware(now).astimezone(expire_date.tzinfo)
    return relativedelta(expire_date, now).months


def expires_within_one_month(record: StatusRecord, now: datetime) -> bool:
    """Whether a certified record's month difference to expiration is below one.

    Only the month component counts, so an expiration 12 months and a few
    days away is "soon" too. Records with no known expiration count as
    expiring soon. Uncertified records are never "expiring".
    """
    if not record.is_certified:
        return False
    if record.expire_date is None:
        return True
    return month_difference(record.expire_date, now) < EXPIRING_SOON_MONTHS


def classify(record: StatusRecord, now: datetime) -> CertificationState:
    """Classify a record into its certification state at ``now``.

    Args:
        record: Status record.
        now: Instant to classify at.

    Returns:
        The CertificationState, chosen in priority order.
    """
    if not record.is_certified:
        if record.was_certified:
            return CertificationState.UNCERTIFIED_EXPIRED
        return CertificationState.UNCERTIFIED_NEVER

    if expires_within_one_month(record, now):
        return CertificationState.CERTIFIED_EXPIRING_SOON

    return CertificationState.CERTIFIED_OK


def is_fresh(record: StatusRecord | None, now: datetime) -> bool:
    """Whether a cached record can be used without refetching.

    Only a record classified as certified and not expiring soon is fresh;
    anything else is refreshed lazily before use.
    """
    if record is None:
        return False
    return classify(record, now) == CertificationState.CERTIFIED_OK


def time_to_expiration(record: StatusRecord, now: datetime) -> timedelta | None:
    """Signed time until expiration (negative once expired)."""
    if record.expire_date is None:
        return None
    return record.expire_date - ensure_aware(now)


def _plural(count: int, singular: str, plural: str) -> str:
    return f"{count} {singular if count == 1 else plural}"


def human_time_diff(start: datetime, end: datetime) -> str:
    """Describe the distance between two instants, e.g. "5 mins" or "2 days".

    Mirrors the WordPress ``human_time_diff`` rounding so messages read the
    same as the notices users already know.

    Args:
        start: One instant.
        end: The other instant (order does not matter).

    Returns:
        Human readable distance.
    """
    diff = abs((ensure_aware(end) - ensure_aware(start)).total_seconds())

    if diff < MINUTE_IN_SECONDS:
        return _plural(max(1, int(diff)), "second", "seconds")
    if diff < HOUR_IN_SECONDS:
        return _plural(max(1, round(diff / MINUTE_IN_SECONDS)), "min", "mins")
    if diff < DAY_IN_SECONDS:
        return _plural(max(1, round(diff / HOUR_IN_SECONDS)), "hour", "hours")
    if diff < WEEK_IN_SECONDS:
        return _plural(max(1, round(diff / DAY_IN_SECONDS)), "day", "days")
    if diff < MONTH_IN_SECONDS:
        return _plural(max(1, round(diff / WEEK_IN_SECONDS)), "week", "weeks")
    if diff < YEAR_IN_SECONDS:
        return _plural(max(1, round(diff / MONTH_IN_SECONDS)), "month", "months")
    return _plural(max(1, round(diff / YEAR_IN_SECONDS)), "year", "years")


def grace_period_end(
    registered_at: datetime,
    days: int = DEFAULT_GRACE_PERIOD_DAYS,
) -> datetime:
    """When the grace period that starts at ``registered_at`` ends."""
    return ensure_aware(registered_at) + timedelta(days=days)


def grace_period_remaining(
    registered_at: datetime,
    now: datetime,
    days: int = DEFAULT_GRACE_PERIOD_DAYS,
) -> int:
    """Whole days left in the grace period, 0 once it has elapsed.

    Args:
        registered_at: When the identity first appeared (e.g. registration).
        now: Current instant.
        days: Length of the grace period in days.

    Returns:
        Remaining whole days.
    """
    end = grace_period_end(registered_at, days)
    now = ensure_aware(now)
    if now > end:
        return 0
    return (end - now).days


def in_grace_period(
    registered_at: datetime,
    now: datetime,
    days: int = DEFAULT_GRACE_PERIOD_DAYS,
) -> bool:
    """Whether ``now`` still falls inside the grace period."""
    return ensure_aware(now) < grace_period_end(registered_at, days)
