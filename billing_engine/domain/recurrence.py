"""Next-occurrence arithmetic for recurring obligations and schedule-exact workers"""

from datetime import date, datetime, timedelta

from billing_engine.domain.models import Frequency
from billing_engine.utils.date_utils import add_months, clamp_day


def next_monthly_occurrence(current: date, preferred_day: int) -> date:
    """
    Occurrence in the month after `current`, on `preferred_day`.

    The preferred day is clamped to the length of the target month:
        next_monthly_occurrence(2025-01-31, 31) -> 2025-02-28
    """
    following = add_months(current.replace(day=1), 1)
    return following.replace(day=clamp_day(preferred_day, following.year, following.month))


def next_occurrence(current: date, frequency: Frequency | str, preferred_day: int | None = None) -> date:
    """Single step of a recurrence"""
    frequency = Frequency(frequency)
    if frequency is Frequency.WEEKLY:
        return current + timedelta(days=7)
    if frequency is Frequency.BIWEEKLY:
        return current + timedelta(days=14)
    if frequency is Frequency.YEARLY:
        return add_months(current, 12)
    return next_monthly_occurrence(current, preferred_day or current.day)


def advance_past(
    current: date,
    today: date,
    frequency: Frequency | str = Frequency.MONTHLY,
    preferred_day: int | None = None,
) -> date:
    """
    First occurrence strictly after `today`.

    Steps at least once, then keeps stepping while the result is still in the
    past: a backlog of missed occurrences is skipped, not replayed.
    """
    upcoming = next_occurrence(current, frequency, preferred_day)
    while upcoming <= today:
        upcoming = next_occurrence(upcoming, frequency, preferred_day)
    return upcoming


def next_weekly_instant(now: datetime, weekday: int, hour: int) -> datetime:
    """
    Next `weekday` at `hour`:00 strictly after `now` (same tzinfo as `now`).

    weekday follows datetime.weekday(): Monday=0 ... Sunday=6.
    """
    target = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    target += timedelta(days=(weekday - now.weekday()) % 7)
    if target <= now:
        target += timedelta(days=7)
    return target
