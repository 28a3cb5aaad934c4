from __future__ import annotations

import math
from datetime import date
from typing import Iterable, Optional, Tuple

from .holidays import is_company_holiday
from .models import Employee, HolidayConfig, Vacation
from .ranges import is_weekend, iter_days

FRIDAY = 4


def _round_half(value: float) -> float:
    # Half-up to the nearest 0.5; round() would use banker's rounding.
    return math.floor(value * 2 + 0.5) / 2


def weekly_split(weekly_target: float) -> Tuple[float, float]:
    """Return (monday_to_thursday, friday) hours for a weekly target.

    Mon-Thu get the weekly target / 5 rounded to the nearest half hour and
    Friday takes the remainder, so the five days sum to the weekly target.
    For very small targets the Mon-Thu share is capped so that Friday never
    goes negative.
    """
    if weekly_target <= 0:
        return 0.0, 0.0
    mon_thu = _round_half(weekly_target / 5)
    mon_thu = min(mon_thu, math.floor(weekly_target / 4 * 2) / 2)
    friday = weekly_target - 4 * mon_thu
    return mon_thu, friday


def daily_target(
    day: date, weekly_target: Optional[float], holidays: Optional[HolidayConfig] = None
) -> float:
    if not weekly_target or is_weekend(day) or is_company_holiday(day, holidays):
        return 0.0
    mon_thu, friday = weekly_split(weekly_target)
    return friday if day.weekday() == FRIDAY else mon_thu


def effective_weekly_capacity(employee: Employee) -> Optional[float]:
    """Weekly target hours, or None when the employee has no fixed target."""
    if not employee.has_fixed_target:
        return None
    return float(employee.weekly_target or 0.0)


def employee_daily_capacity(
    employee: Employee, day: date, holidays: Optional[HolidayConfig] = None
) -> Optional[float]:
    weekly = effective_weekly_capacity(employee)
    if weekly is None:
        return None
    return daily_target(day, weekly, holidays)


def on_vacation(employee_id: str, day: date, vacations: Iterable[Vacation]) -> bool:
    return any(v.employee_id == employee_id and v.start <= day <= v.end for v in vacations)


def available_hours(
    employee: Employee,
    day: date,
    holidays: Optional[HolidayConfig] = None,
    vacations: Iterable[Vacation] = (),
) -> Optional[float]:
    capacity = employee_daily_capacity(employee, day, holidays)
    if capacity is None:
        return None
    if on_vacation(employee.id, day, vacations):
        return 0.0
    return capacity


def capacity_over(
    employee: Employee,
    start: date,
    end: date,
    holidays: Optional[HolidayConfig] = None,
    vacations: Iterable[Vacation] = (),
) -> Optional[float]:
    if effective_weekly_capacity(employee) is None:
        return None
    vacations = tuple(vacations)
    return sum(available_hours(employee, day, holidays, vacations) or 0.0 for day in iter_days(start, end))
