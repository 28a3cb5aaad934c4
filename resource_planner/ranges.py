from __future__ import annotations

from datetime import date, timedelta
from typing import Iterator, Optional

from dateutil import parser as dateparser
from dateutil.relativedelta import relativedelta

from .errors import ValidationError
from .holidays import is_company_holiday
from .models import HolidayConfig, ViewMode

ISO_FMT = "%Y-%m-%d"


def parse_iso_date(value: object, field_name: str = "date") -> date:
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("missing_field", f"{field_name} is required")
    try:
        return dateparser.isoparse(value.strip()).date()
    except (ValueError, TypeError) as exc:
        raise ValidationError("invalid_date", f"invalid date in '{field_name}': {value}") from exc


def format_iso_date(value: date) -> str:
    return value.strftime(ISO_FMT)


def validate_range(start: date, end: date) -> None:
    if start > end:
        raise ValidationError(
            "invalid_range", f"start {format_iso_date(start)} is after end {format_iso_date(end)}"
        )


def overlaps(a_start: date, a_end: date, b_start: date, b_end: date) -> bool:
    return a_start <= b_end and b_start <= a_end


def iter_days(start: date, end: date) -> Iterator[date]:
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def is_weekend(value: date) -> bool:
    return value.weekday() >= 5


def is_working_day(value: date, holidays: Optional[HolidayConfig] = None) -> bool:
    """Weekday that is not a holiday. ``holidays=None`` ignores holidays."""
    if is_weekend(value):
        return False
    if holidays is not None and is_company_holiday(value, holidays):
        return False
    return True


def working_days(start: date, end: date, holidays: Optional[HolidayConfig] = None) -> int:
    return sum(1 for day in iter_days(start, end) if is_working_day(day, holidays))


def week_start(value: date) -> date:
    return value - timedelta(days=value.weekday())


def month_start(value: date) -> date:
    return value.replace(day=1)


def snap(value: date, view_mode: ViewMode) -> date:
    if view_mode is ViewMode.DAY:
        return value
    if view_mode is ViewMode.WEEK:
        return week_start(value)
    if view_mode is ViewMode.MONTH:
        return month_start(value)
    raise ValueError(f"unsupported view mode {view_mode!r}")


def add_units(value: date, units: int, view_mode: ViewMode) -> date:
    if view_mode is ViewMode.DAY:
        return value + timedelta(days=units)
    if view_mode is ViewMode.WEEK:
        return value + timedelta(weeks=units)
    if view_mode is ViewMode.MONTH:
        return value + relativedelta(months=units)
    raise ValueError(f"unsupported view mode {view_mode!r}")


def unit_end(value: date, view_mode: ViewMode) -> date:
    """Last day of the bucket that starts at ``snap(value)``."""
    return add_units(snap(value, view_mode), 1, view_mode) - timedelta(days=1)
