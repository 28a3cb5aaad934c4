from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Type, TypeVar

import pandas as pd
from dateutil import parser as dateparser

from .models import (
    Activity,
    ActivityStatus,
    Allocation,
    AllocationStatus,
    CompanyPhase,
    CustomHoliday,
    DeadlineIcon,
    Employee,
    EmploymentType,
    HolidayConfig,
    Milestone,
    MilestoneType,
    PlannerConfig,
    Project,
    TimeEntry,
    Vacation,
    VacationCategory,
    ViewMode,
)
from .ranges import format_iso_date, parse_iso_date
from .store import AllocationStore

E = TypeVar("E", bound=Enum)

_TIME_ENTRY_REQUIRED_COLUMNS = {"employee_id", "project_id", "date", "hours"}

# Attribute names whose JSON key is not the plain camelCase form.
_JSON_KEYS = {
    "employee_id": "userId",
    "assigned_employee_id": "assignedUserId",
    "start": "startDate",
    "end": "endDate",
}


def json_key(attribute: str) -> str:
    if attribute in _JSON_KEYS:
        return _JSON_KEYS[attribute]
    head, *rest = attribute.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _json_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, date):
        return format_iso_date(value)
    if isinstance(value, frozenset):
        return sorted(_json_value(item) for item in value)
    if isinstance(value, (list, tuple)):
        return [_json_value(item) for item in value]
    if dataclasses.is_dataclass(value):
        return entity_to_dict(value)
    return value


def entity_to_dict(entity: Any) -> Dict[str, Any]:
    """Render a model dataclass as a JSON object with camelCase keys and ISO dates."""
    if not dataclasses.is_dataclass(entity):
        raise TypeError(f"expected a model dataclass, got {type(entity).__name__}")
    return {json_key(f.name): _json_value(getattr(entity, f.name)) for f in dataclasses.fields(entity)}


# ----------------------------------------------------------------------
# JSON object -> model field parsing


def _is_missing(value: object) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def _lookup(data: Mapping[str, Any], attribute: str) -> Any:
    key = json_key(attribute)
    if key in data:
        return data[key]
    return data.get(attribute)


def _require(data: Mapping[str, Any], attribute: str, source: str) -> Any:
    value = _lookup(data, attribute)
    if _is_missing(value):
        raise ValueError(f"{source} missing required field '{json_key(attribute)}'")
    return value


def _optional_str(value: object, field_name: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"'{field_name}' must be a string")
    return value


def _optional_number(value: object, field_name: str) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{field_name}' must be a number")
    return float(value)


def _optional_date(value: object, field_name: str) -> Optional[date]:
    if _is_missing(value):
        return None
    return parse_iso_date(value, field_name)


def _parse_bool(value: object, field_name: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "t", "1", "yes", "y"}:
            return True
        if lowered in {"false", "f", "0", "no", "n"}:
            return False
    raise ValueError(f"cannot interpret boolean value '{value}' for '{field_name}'")


def parse_enum(enum_type: Type[E], value: object, field_name: str) -> E:
    try:
        return enum_type(value)
    except ValueError as exc:
        allowed = ", ".join(member.value for member in enum_type)
        raise ValueError(f"'{field_name}' must be one of: {allowed}") from exc


def employee_from_dict(data: Mapping[str, Any]) -> Employee:
    return Employee(
        id=str(_require(data, "id", "employee")),
        name=str(_require(data, "name", "employee")),
        weekly_target=_optional_number(_lookup(data, "weekly_target"), "weeklyTarget"),
        employment_type=parse_enum(
            EmploymentType, _lookup(data, "employment_type") or "employee", "employmentType"
        ),
    )


def project_from_dict(data: Mapping[str, Any]) -> Project:
    return Project(
        id=str(_require(data, "id", "project")),
        name=str(_require(data, "name", "project")),
        color=_optional_str(_lookup(data, "color"), "color") or "#888888",
        client=_optional_str(_lookup(data, "client"), "client"),
        budget_hours=_optional_number(_lookup(data, "budget_hours"), "budgetHours"),
        start=_optional_date(_lookup(data, "start"), "startDate"),
        end=_optional_date(_lookup(data, "end"), "endDate"),
        archived=_parse_bool(_lookup(data, "archived") or False, "archived"),
        locked=_parse_bool(_lookup(data, "locked") or False, "locked"),
        current_phase_id=_optional_str(_lookup(data, "current_phase_id"), "currentPhaseId"),
    )


def phase_from_dict(data: Mapping[str, Any]) -> CompanyPhase:
    return CompanyPhase(
        id=str(_require(data, "id", "phase")),
        name=str(_require(data, "name", "phase")),
        color=str(_require(data, "color", "phase")),
        sort_order=int(_lookup(data, "sort_order") or 0),
    )


def allocation_from_dict(data: Mapping[str, Any]) -> Allocation:
    return Allocation(
        id=str(_require(data, "id", "allocation")),
        employee_id=str(_require(data, "employee_id", "allocation")),
        project_id=str(_require(data, "project_id", "allocation")),
        start=parse_iso_date(_lookup(data, "start"), "startDate"),
        end=parse_iso_date(_lookup(data, "end"), "endDate"),
        hours_per_day=_optional_number(_lookup(data, "hours_per_day"), "hoursPerDay"),
        total_hours=_optional_number(_lookup(data, "total_hours"), "totalHours"),
        status=parse_enum(AllocationStatus, _lookup(data, "status") or "confirmed", "status"),
        notes=_optional_str(_lookup(data, "notes"), "notes"),
    )


def vacation_from_dict(data: Mapping[str, Any]) -> Vacation:
    return Vacation(
        id=str(_require(data, "id", "vacation")),
        employee_id=str(_require(data, "employee_id", "vacation")),
        start=parse_iso_date(_lookup(data, "start"), "startDate"),
        end=parse_iso_date(_lookup(data, "end"), "endDate"),
        category=parse_enum(VacationCategory, _lookup(data, "category") or "vacation", "category"),
    )


def activity_from_dict(data: Mapping[str, Any]) -> Activity:
    return Activity(
        id=str(_require(data, "id", "activity")),
        project_id=str(_require(data, "project_id", "activity")),
        name=str(_require(data, "name", "activity")),
        start=parse_iso_date(_lookup(data, "start"), "startDate"),
        end=parse_iso_date(_lookup(data, "end"), "endDate"),
        status=parse_enum(ActivityStatus, _lookup(data, "status") or "not_started", "status"),
        phase_id=_optional_str(_lookup(data, "phase_id"), "phaseId"),
        category_name=_optional_str(_lookup(data, "category_name"), "categoryName"),
        assigned_employee_id=_optional_str(_lookup(data, "assigned_employee_id"), "assignedUserId"),
        color=_optional_str(_lookup(data, "color"), "color"),
        note=_optional_str(_lookup(data, "note"), "note"),
        sort_order=int(_lookup(data, "sort_order") or 0),
    )


def milestone_from_dict(data: Mapping[str, Any]) -> Milestone:
    icon = _lookup(data, "icon")
    completed_at = _lookup(data, "completed_at")
    return Milestone(
        id=str(_require(data, "id", "milestone")),
        project_id=str(_require(data, "project_id", "milestone")),
        title=str(_require(data, "title", "milestone")),
        due_date=parse_iso_date(_lookup(data, "due_date"), "dueDate"),
        type=parse_enum(MilestoneType, _lookup(data, "type") or "custom", "type"),
        phase_id=_optional_str(_lookup(data, "phase_id"), "phaseId"),
        icon=None if icon is None else parse_enum(DeadlineIcon, icon, "icon"),
        color=_optional_str(_lookup(data, "color"), "color"),
        description=_optional_str(_lookup(data, "description"), "description"),
        completed=_parse_bool(_lookup(data, "completed") or False, "completed"),
        completed_at=None if _is_missing(completed_at) else dateparser.isoparse(str(completed_at)),
        sort_order=int(_lookup(data, "sort_order") or 0),
    )


def time_entry_from_dict(data: Mapping[str, Any]) -> TimeEntry:
    hours = _optional_number(_require(data, "hours", "time entry"), "hours")
    if hours is None or hours < 0:
        raise ValueError("time entry hours must be >= 0")
    return TimeEntry(
        employee_id=str(_require(data, "employee_id", "time entry")),
        project_id=str(_require(data, "project_id", "time entry")),
        day=parse_iso_date(data.get("date", data.get("day")), "date"),
        hours=hours,
    )


def holiday_config_from_dict(data: Optional[Mapping[str, Any]]) -> HolidayConfig:
    if data is None:
        return HolidayConfig()
    if not isinstance(data, Mapping):
        raise ValueError("holidays must be an object")
    disabled = data.get("disabled_codes", data.get("disabledCodes", []))
    if not isinstance(disabled, list):
        raise ValueError("holidays.disabled_codes must be an array")
    custom_raw = data.get("custom", [])
    if not isinstance(custom_raw, list):
        raise ValueError("holidays.custom must be an array")
    custom: List[CustomHoliday] = []
    for entry in custom_raw:
        if not isinstance(entry, Mapping):
            raise ValueError("custom holidays must be objects")
        try:
            custom.append(
                CustomHoliday(
                    name=str(entry["name"]),
                    month=int(entry["month"]),
                    day=int(entry["day"]),
                    year=None if entry.get("year") is None else int(entry["year"]),
                )
            )
        except (KeyError, TypeError) as exc:
            raise ValueError("custom holidays need name, month and day") from exc
    return HolidayConfig(disabled_codes=frozenset(str(code) for code in disabled), custom=tuple(custom))


# ----------------------------------------------------------------------
# Files


@dataclass(frozen=True)
class Snapshot:
    employees: Tuple[Employee, ...] = ()
    projects: Tuple[Project, ...] = ()
    phases: Tuple[CompanyPhase, ...] = ()
    allocations: Tuple[Allocation, ...] = ()
    vacations: Tuple[Vacation, ...] = ()
    activities: Tuple[Activity, ...] = ()
    milestones: Tuple[Milestone, ...] = ()
    time_entries: Tuple[TimeEntry, ...] = ()
    holidays: Optional[HolidayConfig] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_store(self, **kwargs: Any) -> AllocationStore:
        return AllocationStore(
            employees=self.employees,
            projects=self.projects,
            phases=self.phases,
            allocations=self.allocations,
            vacations=self.vacations,
            activities=self.activities,
            milestones=self.milestones,
            **kwargs,
        )


_SNAPSHOT_SECTIONS = (
    ("employees", employee_from_dict),
    ("projects", project_from_dict),
    ("phases", phase_from_dict),
    ("allocations", allocation_from_dict),
    ("vacations", vacation_from_dict),
    ("activities", activity_from_dict),
    ("milestones", milestone_from_dict),
    ("timeEntries", time_entry_from_dict),
)


def snapshot_from_dict(data: Mapping[str, Any]) -> Snapshot:
    if not isinstance(data, Mapping):
        raise ValueError("snapshot must be a JSON object")
    sections: Dict[str, Tuple[Any, ...]] = {}
    for key, parse in _SNAPSHOT_SECTIONS:
        raw = data.get(key, [])
        if not isinstance(raw, list):
            raise ValueError(f"snapshot '{key}' must be an array")
        items = []
        for idx, entry in enumerate(raw):
            if not isinstance(entry, Mapping):
                raise ValueError(f"snapshot '{key}' entries must be objects")
            try:
                items.append(parse(entry))
            except ValueError as exc:
                raise ValueError(f"{key}[{idx}]: {exc}") from exc
        sections[key] = tuple(items)
    _check_references(sections)
    holidays = holiday_config_from_dict(data["holidays"]) if "holidays" in data else None
    known = {key for key, _ in _SNAPSHOT_SECTIONS} | {"holidays"}
    return Snapshot(
        employees=sections["employees"],
        projects=sections["projects"],
        phases=sections["phases"],
        allocations=sections["allocations"],
        vacations=sections["vacations"],
        activities=sections["activities"],
        milestones=sections["milestones"],
        time_entries=sections["timeEntries"],
        holidays=holidays,
        extra={key: value for key, value in data.items() if key not in known},
    )


def _check_references(sections: Mapping[str, Iterable[Any]]) -> None:
    employee_ids = {e.id for e in sections["employees"]}
    project_ids = {p.id for p in sections["projects"]}
    for allocation in sections["allocations"]:
        if allocation.employee_id not in employee_ids:
            raise ValueError(f"allocation {allocation.id} references unknown employee {allocation.employee_id}")
        if allocation.project_id not in project_ids:
            raise ValueError(f"allocation {allocation.id} references unknown project {allocation.project_id}")
    for key in ("activities", "milestones"):
        for entity in sections[key]:
            if entity.project_id not in project_ids:
                raise ValueError(f"{key} entry {entity.id} references unknown project {entity.project_id}")


def load_snapshot(path: str | Path) -> Snapshot:
    try:
        data = json.loads(Path(path).read_text())
    except json.JSONDecodeError as exc:
        raise ValueError(f"snapshot is not valid JSON: {exc}") from exc
    return snapshot_from_dict(data)


def load_time_entries(path: str | Path) -> List[TimeEntry]:
    df = pd.read_csv(path)
    missing = [col for col in sorted(_TIME_ENTRY_REQUIRED_COLUMNS) if col not in df.columns]
    if missing:
        raise ValueError(f"time entries file missing required columns: {', '.join(missing)}")
    if df.empty:
        return []
    try:
        df["hours"] = pd.to_numeric(df["hours"])
    except ValueError as exc:
        raise ValueError("invalid numeric value in column 'hours'") from exc
    if (df["hours"] < 0).any():
        raise ValueError("column 'hours' contains negative values")
    entries = []
    for row in df.itertuples(index=False):
        entries.append(
            TimeEntry(
                employee_id=str(row.employee_id),
                project_id=str(row.project_id),
                day=parse_iso_date(str(row.date), "date"),
                hours=float(row.hours),
            )
        )
    return entries


def _config_date(data: Mapping[str, Any], key: str) -> Optional[date]:
    raw = data.get(key)
    if raw is None:
        return None
    try:
        return dateparser.isoparse(raw).date()
    except (ValueError, TypeError) as exc:
        raise ValueError(f"{key} must be null or an ISO date string") from exc


def load_config(path: str | Path) -> PlannerConfig:
    data = json.loads(Path(path).read_text())
    if not isinstance(data, dict):
        raise ValueError("config must be a JSON object")
    return config_from_dict(data)


def config_from_dict(data: Mapping[str, Any]) -> PlannerConfig:
    logging_level = data.get("logging_level", "INFO")
    if not isinstance(logging_level, str):
        raise ValueError("logging_level must be a string")

    threshold = data.get("high_severity_threshold", 1.2)
    if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
        raise ValueError("high_severity_threshold must be a number")
    threshold = float(threshold)
    if threshold <= 1:
        raise ValueError("high_severity_threshold must be greater than 1")

    drag_threshold = data.get("drag_commit_threshold_px", 5)
    if isinstance(drag_threshold, bool) or not isinstance(drag_threshold, (int, float)):
        raise ValueError("drag_commit_threshold_px must be a number")
    drag_threshold = float(drag_threshold)
    if drag_threshold < 0:
        raise ValueError("drag_commit_threshold_px must be >= 0")

    view_mode = parse_enum(ViewMode, data.get("default_view_mode", "week"), "default_view_mode")

    reference_date = _config_date(data, "reference_date")
    window_start = _config_date(data, "window_start")
    window_end = _config_date(data, "window_end")
    if window_start is not None and window_end is not None and window_end < window_start:
        raise ValueError("window_end must not be earlier than window_start")

    return PlannerConfig(
        logging_level=logging_level,
        high_severity_threshold=threshold,
        drag_commit_threshold_px=drag_threshold,
        default_view_mode=view_mode,
        reference_date=reference_date,
        window_start=window_start,
        window_end=window_end,
        holidays=holiday_config_from_dict(data.get("holidays")),
    )


def ensure_directory(path: str | Path) -> Path:
    target = Path(path)
    target.mkdir(parents=True, exist_ok=True)
    return target


def write_csv(df: pd.DataFrame, path: str | Path) -> None:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
