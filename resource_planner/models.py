from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import FrozenSet, Iterator, Optional, Tuple

from .errors import ValidationError

MAX_HOURS_PER_DAY = 24.0
HEX_COLOR = re.compile(r"^#[0-9a-fA-F]{6}$")


class ViewMode(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


class EmploymentType(str, Enum):
    EMPLOYEE = "employee"
    HOURLY = "hourly"
    FREELANCER = "freelancer"


class AllocationStatus(str, Enum):
    TENTATIVE = "tentative"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"


class ActivityStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    NEEDS_REVIEW = "needs_review"
    COMPLETE = "complete"


class MilestoneType(str, Enum):
    PHASE = "phase"
    CUSTOM = "custom"


class DeadlineIcon(str, Enum):
    FLAG = "flag"
    HANDSHAKE = "handshake"
    ROCKET = "rocket"
    EYE = "eye"
    CALENDAR = "calendar"


class VacationCategory(str, Enum):
    VACATION = "vacation"
    SICK = "sick"
    PERSONAL = "personal"


def _check_color(value: Optional[str], field_name: str) -> None:
    if value is not None and not HEX_COLOR.match(value):
        raise ValidationError("invalid_color", f"{field_name} must be a #rrggbb color, got {value!r}")


def _check_range(start: date, end: date) -> None:
    if start > end:
        raise ValidationError(
            "invalid_range", f"start {start.isoformat()} is after end {end.isoformat()}"
        )


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar-day range."""

    start: date
    end: date

    def __post_init__(self) -> None:
        _check_range(self.start, self.end)

    def __contains__(self, day: object) -> bool:
        return isinstance(day, date) and self.start <= day <= self.end

    def days(self) -> Iterator[date]:
        current = self.start
        while current <= self.end:
            yield current
            current += timedelta(days=1)

    @property
    def duration_days(self) -> int:
        return (self.end - self.start).days

    def shifted(self, delta_days: int) -> "DateRange":
        offset = timedelta(days=delta_days)
        return DateRange(self.start + offset, self.end + offset)


@dataclass(frozen=True)
class Employee:
    id: str
    name: str
    weekly_target: Optional[float]
    employment_type: EmploymentType = EmploymentType.EMPLOYEE

    def __post_init__(self) -> None:
        if self.weekly_target is not None and self.weekly_target < 0:
            raise ValidationError("invalid_weekly_target", f"weekly target for {self.id} must be >= 0")

    @property
    def has_fixed_target(self) -> bool:
        if self.employment_type in (EmploymentType.HOURLY, EmploymentType.FREELANCER):
            return False
        return self.weekly_target is not None


@dataclass(frozen=True)
class CompanyPhase:
    id: str
    name: str
    color: str
    sort_order: int = 0


@dataclass(frozen=True)
class Project:
    id: str
    name: str
    color: str = "#888888"
    client: Optional[str] = None
    budget_hours: Optional[float] = None
    start: Optional[date] = None
    end: Optional[date] = None
    archived: bool = False
    locked: bool = False
    current_phase_id: Optional[str] = None

    def __post_init__(self) -> None:
        if self.start is not None and self.end is not None:
            _check_range(self.start, self.end)
        if self.budget_hours is not None and self.budget_hours < 0:
            raise ValidationError("invalid_budget", f"budget for {self.id} must be >= 0")

    @property
    def accepts_new_work(self) -> bool:
        return not (self.archived or self.locked)


@dataclass(frozen=True)
class Allocation:
    """Planned assignment of an employee to a project.

    Exactly one of ``hours_per_day`` and ``total_hours`` is set. A total-hours
    allocation gets its daily rate from the rollover calculation.
    """

    id: str
    employee_id: str
    project_id: str
    start: date
    end: date
    hours_per_day: Optional[float] = None
    total_hours: Optional[float] = None
    status: AllocationStatus = AllocationStatus.CONFIRMED
    notes: Optional[str] = None

    def __post_init__(self) -> None:
        _check_range(self.start, self.end)
        if (self.hours_per_day is None) == (self.total_hours is None):
            raise ValidationError(
                "conflicting_hour_mode", "exactly one of hours_per_day and total_hours must be set"
            )
        if self.hours_per_day is not None and not (0 < self.hours_per_day <= MAX_HOURS_PER_DAY):
            raise ValidationError("invalid_hours", f"hours_per_day must be in (0, {MAX_HOURS_PER_DAY:g}]")
        if self.total_hours is not None and self.total_hours <= 0:
            raise ValidationError("invalid_hours", "total_hours must be positive")
        if self.notes is not None and len(self.notes) > 500:
            raise ValidationError("notes_too_long", "notes must be at most 500 characters")

    @property
    def is_total_mode(self) -> bool:
        return self.total_hours is not None

    @property
    def range(self) -> DateRange:
        return DateRange(self.start, self.end)


@dataclass(frozen=True)
class Vacation:
    id: str
    employee_id: str
    start: date
    end: date
    category: VacationCategory = VacationCategory.VACATION

    def __post_init__(self) -> None:
        _check_range(self.start, self.end)


@dataclass(frozen=True)
class Activity:
    id: str
    project_id: str
    name: str
    start: date
    end: date
    status: ActivityStatus = ActivityStatus.NOT_STARTED
    phase_id: Optional[str] = None
    category_name: Optional[str] = None
    assigned_employee_id: Optional[str] = None
    color: Optional[str] = None
    note: Optional[str] = None
    sort_order: int = 0

    def __post_init__(self) -> None:
        _check_range(self.start, self.end)
        if not self.name or len(self.name) > 200:
            raise ValidationError("invalid_name", "activity name must be 1-200 characters")
        if self.phase_id is not None and self.category_name is not None:
            raise ValidationError(
                "conflicting_category", "an activity belongs to a phase or a free-text category, not both"
            )
        _check_color(self.color, "color")


@dataclass(frozen=True)
class Milestone:
    """Project deadline. Start and end of its range are both ``due_date``."""

    id: str
    project_id: str
    title: str
    due_date: date
    type: MilestoneType = MilestoneType.CUSTOM
    phase_id: Optional[str] = None
    icon: Optional[DeadlineIcon] = None
    color: Optional[str] = None
    description: Optional[str] = None
    completed: bool = False
    completed_at: Optional[datetime] = None
    sort_order: int = 0

    def __post_init__(self) -> None:
        if not self.title or len(self.title) > 200:
            raise ValidationError("invalid_title", "milestone title must be 1-200 characters")
        if self.type is MilestoneType.PHASE:
            if self.phase_id is None:
                raise ValidationError("missing_phase", "phase deadlines require a phase_id")
            if self.icon is not None or self.color is not None or self.description is not None:
                raise ValidationError(
                    "conflicting_fields", "phase deadlines take icon, color and description from the phase"
                )
        elif self.type is MilestoneType.CUSTOM:
            if self.phase_id is not None:
                raise ValidationError("conflicting_fields", "custom deadlines cannot reference a phase")
            _check_color(self.color, "color")
            if self.description is not None and len(self.description) > 1000:
                raise ValidationError("description_too_long", "description must be at most 1000 characters")
        else:  # pragma: no cover - closed enum
            raise ValidationError("invalid_type", f"unknown milestone type {self.type!r}")

    @property
    def range(self) -> DateRange:
        return DateRange(self.due_date, self.due_date)


@dataclass(frozen=True)
class TimeEntry:
    employee_id: str
    project_id: str
    day: date
    hours: float


@dataclass(frozen=True)
class CustomHoliday:
    name: str
    month: int
    day: int
    year: Optional[int] = None  # None = recurring every year

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12 or not 1 <= self.day <= 31:
            raise ValidationError("invalid_holiday", f"invalid month/day for holiday {self.name!r}")

    def matches(self, value: date) -> bool:
        if self.year is not None and self.year != value.year:
            return False
        return self.month == value.month and self.day == value.day


@dataclass(frozen=True)
class HolidayConfig:
    disabled_codes: FrozenSet[str] = frozenset()
    custom: Tuple[CustomHoliday, ...] = ()


@dataclass(frozen=True)
class PlannerConfig:
    logging_level: str = "INFO"
    high_severity_threshold: float = 1.2
    drag_commit_threshold_px: float = 5.0
    default_view_mode: ViewMode = ViewMode.WEEK
    reference_date: Optional[date] = None
    window_start: Optional[date] = None
    window_end: Optional[date] = None
    holidays: HolidayConfig = field(default_factory=HolidayConfig)

    def today(self) -> date:
        return self.reference_date or date.today()
