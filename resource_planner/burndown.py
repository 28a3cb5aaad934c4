from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd

from .capacity import capacity_over
from .models import HolidayConfig, Project, TimeEntry
from .ranges import format_iso_date, is_working_day, iter_days, validate_range, week_start
from .rollover import Rollover, effective_hours_on
from .store import AllocationStore


@dataclass(frozen=True)
class BurndownPoint:
    week_start: date
    planned_cumulative: float
    actual_cumulative: float


@dataclass(frozen=True)
class BurndownSeries:
    project_id: str
    budget_hours: float
    points: Tuple[BurndownPoint, ...]

    @property
    def over_budget(self) -> bool:
        """Latest actual point above the latest planned point."""
        if not self.points:
            return False
        last = self.points[-1]
        return last.actual_cumulative > last.planned_cumulative


def _weekly_actuals(project_id: str, time_entries: Sequence[TimeEntry]) -> Dict[date, float]:
    rows = [
        {"week_start": week_start(entry.day), "hours": entry.hours}
        for entry in time_entries
        if entry.project_id == project_id
    ]
    if not rows:
        return {}
    df = pd.DataFrame(rows)
    grouped = df.groupby("week_start")["hours"].sum()
    return {key: float(value) for key, value in grouped.items()}


def build_burndown(project: Project, time_entries: Sequence[TimeEntry]) -> Optional[BurndownSeries]:
    """Weekly planned-vs-actual cumulative hours, or None without a budget and dates.

    Planned hours follow a straight line reaching the budget after
    ``ceil(project days / 7)`` weeks and stay capped at the budget after that.
    """
    if not project.budget_hours or project.start is None or project.end is None:
        return None
    budget = float(project.budget_hours)
    total_weeks = max(1, math.ceil((project.end - project.start).days / 7))
    planned_per_week = budget / total_weeks
    actuals = _weekly_actuals(project.id, time_entries)

    points: List[BurndownPoint] = []
    actual_cumulative = 0.0
    current = week_start(project.start)
    idx = 0
    while current <= project.end:
        actual_cumulative += actuals.get(current, 0.0)
        points.append(
            BurndownPoint(
                week_start=current,
                planned_cumulative=min(planned_per_week * (idx + 1), budget),
                actual_cumulative=actual_cumulative,
            )
        )
        current += timedelta(weeks=1)
        idx += 1
    return BurndownSeries(project_id=project.id, budget_hours=budget, points=tuple(points))


def burndown_frame(series: BurndownSeries) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "project_id": series.project_id,
                "week_start": format_iso_date(point.week_start),
                "planned_cumulative": round(point.planned_cumulative, 2),
                "actual_cumulative": round(point.actual_cumulative, 2),
            }
            for point in series.points
        ],
        columns=["project_id", "week_start", "planned_cumulative", "actual_cumulative"],
    )


def calculate_utilization(actual_hours: float, target_hours: float) -> float:
    if target_hours == 0:
        return 0.0
    return actual_hours / target_hours * 100


def utilization_frame(
    store: AllocationStore,
    start: date,
    end: date,
    holidays: Optional[HolidayConfig] = None,
    time_entries: Sequence[TimeEntry] = (),
    today: Optional[date] = None,
) -> pd.DataFrame:
    """Allocated, logged and capacity hours per employee for [start, end]."""
    validate_range(start, end)
    holidays = holidays if holidays is not None else HolidayConfig()
    today = today or date.today()
    rollovers: Dict[str, Rollover] = {}
    rows = []
    for employee in store.employees():
        allocations = store.allocations(employee_id=employee.id, start=start, end=end)
        allocated = sum(
            effective_hours_on(allocation, day, today, time_entries, rollovers)
            for day in iter_days(start, end)
            if is_working_day(day, holidays)
            for allocation in allocations
        )
        logged = sum(
            entry.hours
            for entry in time_entries
            if entry.employee_id == employee.id and start <= entry.day <= end
        )
        capacity = capacity_over(employee, start, end, holidays, store.vacations(employee.id))
        rows.append(
            {
                "employee_id": employee.id,
                "name": employee.name,
                "capacity_hours": None if capacity is None else round(capacity, 2),
                "allocated_hours": round(allocated, 2),
                "logged_hours": round(logged, 2),
                "allocated_pct": None if capacity is None else round(calculate_utilization(allocated, capacity), 1),
                "logged_pct": None if capacity is None else round(calculate_utilization(logged, capacity), 1),
            }
        )
    return pd.DataFrame(
        rows,
        columns=[
            "employee_id",
            "name",
            "capacity_hours",
            "allocated_hours",
            "logged_hours",
            "allocated_pct",
            "logged_pct",
        ],
    )
