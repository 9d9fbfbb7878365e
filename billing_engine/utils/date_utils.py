"""Date manipulation utilities and the fixed-offset local clock"""

import calendar
from datetime import date, datetime, timedelta, timezone

from dateutil.relativedelta import relativedelta

from billing_engine.config import settings

LOCAL_TZ = timezone(timedelta(hours=settings.local_utc_offset_hours))


def utc_now() -> datetime:
    """Current instant, timezone-aware UTC"""
    return datetime.now(timezone.utc)


def to_local(moment: datetime) -> datetime:
    """
    Express an instant in the fixed local offset.

    Naive datetimes are treated as UTC. No timezone database is consulted:
    local = utc + offset, all year round.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(LOCAL_TZ)


def local_today(moment: datetime | None = None) -> date:
    """Calendar date in the local offset for `moment` (default: now)"""
    return to_local(moment or utc_now()).date()


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def month_start(day: date) -> date:
    """First calendar day of the month containing `day`"""
    return day.replace(day=1)


def add_months(day: date, months: int) -> date:
    """Calendar month arithmetic, clamping to month end (Jan 31 + 1 = Feb 28)"""
    return day + relativedelta(months=months)


def clamp_day(day: int, year: int, month: int) -> int:
    """Clamp a day-of-month into [1, days_in_month]"""
    return min(max(day, 1), days_in_month(year, month))


def is_last_day_of_month(day: date) -> bool:
    return (day + timedelta(days=1)).month != day.month
