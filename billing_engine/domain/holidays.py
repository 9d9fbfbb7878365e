"""Brazilian national holiday calendar and business-day adjustment"""

from datetime import date, timedelta
from functools import lru_cache
from typing import Dict, FrozenSet

FIXED_HOLIDAYS = {
    (1, 1): "Confraternização Universal",
    (4, 21): "Tiradentes",
    (5, 1): "Dia do Trabalho",
    (9, 7): "Independência do Brasil",
    (10, 12): "Nossa Senhora Aparecida",
    (11, 2): "Finados",
    (11, 15): "Proclamação da República",
    (12, 25): "Natal",
}

# Offsets in days from Easter Sunday
MOVEABLE_HOLIDAYS = {
    -48: "Carnaval (segunda-feira)",
    -47: "Carnaval (terça-feira)",
    -2: "Sexta-feira Santa",
    60: "Corpus Christi",
}


def easter_sunday(year: int) -> date:
    """
    Gregorian Easter Sunday using the Meeus/Jones/Butcher algorithm.

    Integer arithmetic only; the result is always a Sunday.
    """
    a = year % 19
    b, c = divmod(year, 100)
    d, e = divmod(b, 4)
    f = (b + 8) // 25
    g = (b - f + 1) // 3
    h = (19 * a + b - d - g + 15) % 30
    i, k = divmod(c, 4)
    l = (32 + 2 * e + 2 * i - h - k) % 7
    m = (a + 11 * h + 22 * l) // 451
    month, day = divmod(h + l - 7 * m + 114, 31)
    return date(year, month, day + 1)


@lru_cache(maxsize=64)
def holiday_names(year: int) -> Dict[date, str]:
    """
    National holidays of `year` mapped to their names.

    When a moveable holiday lands on a fixed one (Good Friday on Tiradentes
    in 2000) both names are kept: "Tiradentes / Sexta-feira Santa".
    """
    easter = easter_sunday(year)
    names = {date(year, month, day): name for (month, day), name in FIXED_HOLIDAYS.items()}
    for offset, name in MOVEABLE_HOLIDAYS.items():
        day = easter + timedelta(days=offset)
        names[day] = f"{names[day]} / {name}" if day in names else name
    return names


@lru_cache(maxsize=64)
def national_holidays(year: int) -> FrozenSet[date]:
    """Dates of the 8 fixed plus 4 Easter-derived national holidays of `year`"""
    return frozenset(holiday_names(year))


def is_holiday(day: date) -> bool:
    return day in national_holidays(day.year)


def is_business_day(day: date) -> bool:
    """Weekday that is not a national holiday"""
    return day.weekday() < 5 and not is_holiday(day)


def next_business_day(day: date) -> date:
    """
    Move `day` forward until it is a business day.

    Already-business days are returned unchanged. Holidays are looked up
    for the year of each candidate, so Dec 31 -> Jan 1 rollovers are handled.

    Example:
        2025-01-01 (New Year, Wednesday) -> 2025-01-02
    """
    while not is_business_day(day):
        day += timedelta(days=1)
    return day
