from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

import pandas as pd

from .capacity import employee_daily_capacity
from .models import HolidayConfig, TimeEntry
from .ranges import format_iso_date, is_working_day, iter_days, validate_range
from .rollover import Rollover, effective_hours_on
from .store import AllocationStore

EPSILON = 1e-9
# Conflicts above 120% of capacity are flagged as high severity.
DEFAULT_HIGH_SEVERITY_THRESHOLD = 1.2


@dataclass(frozen=True)
class Contribution:
    allocation_id: str
    project_id: str
    hours: float


@dataclass(frozen=True)
class Conflict:
    employee_id: str
    day: date
    contributions: Tuple[Contribution, ...]
    total_hours: float
    daily_capacity: float

    @property
    def project_ids(self) -> Tuple[str, ...]:
        return tuple(sorted({c.project_id for c in self.contributions}))

    @property
    def severity(self) -> Optional[float]:
        """Load as a multiple of capacity; None when there is no capacity to divide by."""
        if self.daily_capacity <= 0:
            return None
        return self.total_hours / self.daily_capacity


@dataclass(frozen=True)
class ConflictGroup:
    employee_id: str
    project_ids: Tuple[str, ...]
    start: date
    end: date
    days: Tuple[date, ...]
    total_hours: float
    daily_capacity: float
    severity: Optional[float]
    is_high: bool

    @property
    def day_count(self) -> int:
        return len(self.days)


def detect_conflicts(
    store: AllocationStore,
    start: date,
    end: date,
    holidays: Optional[HolidayConfig] = None,
    today: Optional[date] = None,
    time_entries: Sequence[TimeEntry] = (),
) -> List[Conflict]:
    """Per employee and working day, flag combined allocations above capacity.

    Employees without a fixed weekly target have no bounded capacity and are
    never in conflict.
    """
    validate_range(start, end)
    holidays = holidays if holidays is not None else HolidayConfig()
    today = today or date.today()
    rollovers: Dict[str, Rollover] = {}
    conflicts: List[Conflict] = []
    for employee in store.employees():
        allocations = store.allocations(employee_id=employee.id, start=start, end=end)
        if not allocations:
            continue
        for day in iter_days(start, end):
            if not is_working_day(day, holidays):
                continue
            capacity = employee_daily_capacity(employee, day, holidays)
            if capacity is None:
                break
            contributions = tuple(
                Contribution(
                    allocation_id=allocation.id,
                    project_id=allocation.project_id,
                    hours=effective_hours_on(allocation, day, today, time_entries, rollovers),
                )
                for allocation in allocations
                if allocation.start <= day <= allocation.end
            )
            if not contributions:
                continue
            total = sum(c.hours for c in contributions)
            if total - capacity <= EPSILON:
                continue
            conflicts.append(
                Conflict(
                    employee_id=employee.id,
                    day=day,
                    contributions=contributions,
                    total_hours=total,
                    daily_capacity=capacity,
                )
            )
    return conflicts


def next_working_day(day: date, holidays: Optional[HolidayConfig] = None) -> date:
    candidate = day + timedelta(days=1)
    while not is_working_day(candidate, holidays):
        candidate += timedelta(days=1)
    return candidate


def _severity_rank(conflict: Conflict) -> float:
    # zero-capacity days outrank any finite overload
    return float("inf") if conflict.severity is None else conflict.severity


def group_conflicts(
    conflicts: Sequence[Conflict],
    high_threshold: float = DEFAULT_HIGH_SEVERITY_THRESHOLD,
    holidays: Optional[HolidayConfig] = None,
) -> List[ConflictGroup]:
    """Merge consecutive working days with the same employee and project set."""
    holidays = holidays if holidays is not None else HolidayConfig()
    ordered = sorted(conflicts, key=lambda c: (c.employee_id, c.project_ids, c.day))
    runs: List[List[Conflict]] = []
    for conflict in ordered:
        if runs:
            last = runs[-1][-1]
            if (
                last.employee_id == conflict.employee_id
                and last.project_ids == conflict.project_ids
                and next_working_day(last.day, holidays) == conflict.day
            ):
                runs[-1].append(conflict)
                continue
        runs.append([conflict])

    groups: List[ConflictGroup] = []
    for run in runs:
        worst = max(run, key=_severity_rank)
        groups.append(
            ConflictGroup(
                employee_id=run[0].employee_id,
                project_ids=run[0].project_ids,
                start=run[0].day,
                end=run[-1].day,
                days=tuple(c.day for c in run),
                total_hours=worst.total_hours,
                daily_capacity=worst.daily_capacity,
                severity=worst.severity,
                is_high=worst.severity is None or worst.severity > high_threshold,
            )
        )
    groups.sort(key=lambda g: (g.start, g.employee_id, g.project_ids))
    return groups


def conflicts_frame(conflicts: Sequence[Conflict]) -> pd.DataFrame:
    rows = []
    for conflict in conflicts:
        for contribution in conflict.contributions:
            rows.append(
                {
                    "employee_id": conflict.employee_id,
                    "date": format_iso_date(conflict.day),
                    "project_id": contribution.project_id,
                    "allocation_id": contribution.allocation_id,
                    "hours": round(contribution.hours, 2),
                    "total_hours": round(conflict.total_hours, 2),
                    "daily_capacity": round(conflict.daily_capacity, 2),
                    "severity": None if conflict.severity is None else round(conflict.severity, 3),
                }
            )
    return pd.DataFrame(
        rows,
        columns=[
            "employee_id",
            "date",
            "project_id",
            "allocation_id",
            "hours",
            "total_hours",
            "daily_capacity",
            "severity",
        ],
    )
