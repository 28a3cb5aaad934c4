from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence

import pandas as pd

from .models import Allocation, TimeEntry
from .ranges import format_iso_date, working_days


@dataclass(frozen=True)
class Rollover:
    allocation_id: str
    logged: float
    remaining: float
    remaining_working_days: int
    adjusted_per_day: float
    flat_per_day: float


def logged_hours(allocation: Allocation, time_entries: Iterable[TimeEntry]) -> float:
    return sum(
        entry.hours
        for entry in time_entries
        if entry.employee_id == allocation.employee_id
        and entry.project_id == allocation.project_id
        and allocation.start <= entry.day <= allocation.end
    )


def flat_per_day(allocation: Allocation) -> float:
    """Rate assumed when the allocation was authored."""
    if allocation.hours_per_day is not None:
        return allocation.hours_per_day
    total_days = working_days(allocation.start, allocation.end)
    if total_days <= 0:
        return float(allocation.total_hours or 0.0)
    return float(allocation.total_hours or 0.0) / total_days


def compute_rollover(
    allocation: Allocation, time_entries: Iterable[TimeEntry], today: date
) -> Rollover:
    """Spread the unlogged part of a total-hours budget over the working days left.

    Weekends are skipped; holidays are not, matching how the budget was
    originally divided.
    """
    if allocation.total_hours is None:
        raise ValueError(f"allocation {allocation.id} is not in total-hours mode")
    logged = logged_hours(allocation, time_entries)
    remaining = max(0.0, allocation.total_hours - logged)
    first_day = max(today, allocation.start)
    remaining_days = working_days(first_day, allocation.end) if first_day <= allocation.end else 0
    adjusted = remaining / remaining_days if remaining_days > 0 else 0.0
    return Rollover(
        allocation_id=allocation.id,
        logged=logged,
        remaining=remaining,
        remaining_working_days=remaining_days,
        adjusted_per_day=adjusted,
        flat_per_day=flat_per_day(allocation),
    )


def effective_hours_on(
    allocation: Allocation,
    day: date,
    today: date,
    time_entries: Sequence[TimeEntry] = (),
    cache: Optional[Dict[str, Rollover]] = None,
) -> float:
    """Hours the allocation contributes on ``day`` (0 outside its range)."""
    if not allocation.start <= day <= allocation.end:
        return 0.0
    if allocation.hours_per_day is not None:
        return allocation.hours_per_day
    if day < today:
        return flat_per_day(allocation)
    if cache is not None and allocation.id in cache:
        rollover = cache[allocation.id]
    else:
        rollover = compute_rollover(allocation, time_entries, today)
        if cache is not None:
            cache[allocation.id] = rollover
    return rollover.adjusted_per_day


def rollover_frame(
    allocations: Iterable[Allocation], time_entries: Sequence[TimeEntry], today: date
) -> pd.DataFrame:
    rows: List[Dict[str, object]] = []
    for allocation in allocations:
        if allocation.total_hours is None:
            continue
        rollover = compute_rollover(allocation, time_entries, today)
        rows.append(
            {
                "allocation_id": allocation.id,
                "employee_id": allocation.employee_id,
                "project_id": allocation.project_id,
                "start": format_iso_date(allocation.start),
                "end": format_iso_date(allocation.end),
                "total_hours": allocation.total_hours,
                "logged": round(rollover.logged, 2),
                "remaining": round(rollover.remaining, 2),
                "remaining_working_days": rollover.remaining_working_days,
                "flat_per_day": round(rollover.flat_per_day, 2),
                "adjusted_per_day": round(rollover.adjusted_per_day, 2),
            }
        )
    return pd.DataFrame(
        rows,
        columns=[
            "allocation_id",
            "employee_id",
            "project_id",
            "start",
            "end",
            "total_hours",
            "logged",
            "remaining",
            "remaining_working_days",
            "flat_per_day",
            "adjusted_per_day",
        ],
    )
