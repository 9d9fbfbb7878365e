"""Unit tests for the national holiday calendar and business-day adjustment"""

import pytest
from datetime import date, timedelta
from billing_engine.domain.holidays import (
    easter_sunday,
    holiday_names,
    is_business_day,
    is_holiday,
    national_holidays,
    next_business_day,
)


@pytest.mark.parametrize(
    "year, expected",
    [
        (2024, date(2024, 3, 31)),
        (2025, date(2025, 4, 20)),
        (2026, date(2026, 4, 5)),
        (2000, date(2000, 4, 23)),
        (2038, date(2038, 4, 25)),
    ],
)
def test_easter_sunday_known_dates(year, expected):
    assert easter_sunday(year) == expected


def test_easter_always_sunday_and_twelve_holidays():
    """Every year names 12 holidays anchored on a Sunday Easter"""
    for year in range(1900, 2200):
        easter = easter_sunday(year)
        assert easter.weekday() == 6
        holidays = national_holidays(year)
        names = [part for name in holiday_names(year).values() for part in name.split(" / ")]
        assert len(names) == 12
        assert len(set(names)) == 12
        for offset in (-48, -47, -2, 60):
            assert easter + timedelta(days=offset) in holidays


def test_moveable_holidays_2025():
    holidays = national_holidays(2025)
    assert len(holidays) == 12
    assert date(2025, 3, 3) in holidays  # Carnival Monday
    assert date(2025, 3, 4) in holidays  # Carnival Tuesday
    assert date(2025, 4, 18) in holidays  # Good Friday
    assert date(2025, 6, 19) in holidays  # Corpus Christi


@pytest.mark.parametrize("month, day", [(1, 1), (4, 21), (5, 1), (9, 7), (10, 12), (11, 2), (11, 15), (12, 25)])
def test_fixed_holidays(month, day):
    assert is_holiday(date(2026, month, day))


def test_holiday_names():
    names = holiday_names(2025)
    assert names[date(2025, 12, 25)] == "Natal"
    assert names[date(2025, 6, 19)] == "Corpus Christi"


def test_holiday_names_keep_both_on_collision():
    """Good Friday 2000 fell on Tiradentes"""
    names = holiday_names(2000)

    assert names[date(2000, 4, 21)] == "Tiradentes / Sexta-feira Santa"
    assert len(national_holidays(2000)) == 11
    assert not is_business_day(date(2000, 4, 21))


def test_is_business_day():
    assert is_business_day(date(2026, 2, 18))  # Wednesday
    assert not is_business_day(date(2026, 2, 14))  # Saturday
    assert not is_business_day(date(2026, 2, 15))  # Sunday
    assert not is_business_day(date(2026, 4, 21))  # Tiradentes


def test_next_business_day_new_year():
    """2025-01-01 is a Wednesday holiday"""
    assert next_business_day(date(2025, 1, 1)) == date(2025, 1, 2)


def test_next_business_day_already_business_day():
    day = date(2026, 2, 18)
    assert next_business_day(day) == day
    assert next_business_day(next_business_day(day)) == day


def test_next_business_day_weekend():
    assert next_business_day(date(2026, 2, 21)) == date(2026, 2, 23)
    assert next_business_day(date(2026, 2, 22)) == date(2026, 2, 23)


def test_next_business_day_skips_holiday_and_weekend():
    # Christmas 2026 is a Friday
    assert next_business_day(date(2026, 12, 25)) == date(2026, 12, 28)
    # Carnival 2025: Saturday -> Sunday -> Monday/Tuesday holidays -> Wednesday
    assert next_business_day(date(2025, 3, 1)) == date(2025, 3, 5)


def test_next_business_day_crosses_year():
    # 2022-12-31 Saturday, 2023-01-01 Sunday and New Year
    assert next_business_day(date(2022, 12, 31)) == date(2023, 1, 2)
