"""
Company holiday calendar.

Default holidays are the Danish public holidays, with Easter computed by the
Meeus/Jones/Butcher algorithm and the movable feasts derived from it. Store
Bededag (abolished 2024) and Grundlovsdag are not defaults; companies add
them as custom holidays when they observe them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from functools import lru_cache
from typing import List, Optional, Tuple

from .models import HolidayConfig


@dataclass(frozen=True)
class Holiday:
    day: date
    name: str
    code: Optional[str] = None


DEFAULT_HOLIDAY_CODES = (
    "NEW_YEARS_DAY",
    "MAUNDY_THURSDAY",
    "GOOD_FRIDAY",
    "EASTER_SUNDAY",
    "EASTER_MONDAY",
    "ASCENSION_DAY",
    "WHIT_SUNDAY",
    "WHIT_MONDAY",
    "CHRISTMAS_EVE",
    "CHRISTMAS_DAY",
    "SECOND_CHRISTMAS_DAY",
)


def easter_sunday(year: int) -> date:
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
def default_holidays(year: int) -> Tuple[Holiday, ...]:
    easter = easter_sunday(year)
    return (
        Holiday(date(year, 1, 1), "New Year's Day", "NEW_YEARS_DAY"),
        Holiday(easter - timedelta(days=3), "Maundy Thursday", "MAUNDY_THURSDAY"),
        Holiday(easter - timedelta(days=2), "Good Friday", "GOOD_FRIDAY"),
        Holiday(easter, "Easter Sunday", "EASTER_SUNDAY"),
        Holiday(easter + timedelta(days=1), "Easter Monday", "EASTER_MONDAY"),
        Holiday(easter + timedelta(days=39), "Ascension Day", "ASCENSION_DAY"),
        Holiday(easter + timedelta(days=49), "Whit Sunday", "WHIT_SUNDAY"),
        Holiday(easter + timedelta(days=50), "Whit Monday", "WHIT_MONDAY"),
        Holiday(date(year, 12, 24), "Christmas Eve", "CHRISTMAS_EVE"),
        Holiday(date(year, 12, 25), "Christmas Day", "CHRISTMAS_DAY"),
        Holiday(date(year, 12, 26), "2nd Christmas Day", "SECOND_CHRISTMAS_DAY"),
    )


def holiday_name(value: date, config: Optional[HolidayConfig] = None) -> Optional[str]:
    config = config or HolidayConfig()
    for holiday in default_holidays(value.year):
        if holiday.day == value and holiday.code not in config.disabled_codes:
            return holiday.name
    for custom in config.custom:
        if custom.matches(value):
            return custom.name
    return None


def is_company_holiday(value: date, config: Optional[HolidayConfig] = None) -> bool:
    return holiday_name(value, config) is not None


def holidays_in_range(
    start: date, end: date, config: Optional[HolidayConfig] = None
) -> List[Holiday]:
    """Enabled default and custom holidays within [start, end], sorted by date."""
    config = config or HolidayConfig()
    results: List[Holiday] = []
    years = range(start.year, end.year + 1)
    for year in years:
        for holiday in default_holidays(year):
            if holiday.code in config.disabled_codes:
                continue
            if start <= holiday.day <= end:
                results.append(holiday)
    for custom in config.custom:
        candidate_years = [custom.year] if custom.year is not None else list(years)
        for year in candidate_years:
            try:
                day = date(year, custom.month, custom.day)
            except ValueError:
                # Feb 29 outside leap years
                continue
            if start <= day <= end:
                results.append(Holiday(day, custom.name))
    results.sort(key=lambda h: h.day)
    return results
