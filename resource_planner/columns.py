from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Sequence

from .models import ViewMode
from .ranges import add_units, format_iso_date, snap, unit_end, validate_range


@dataclass(frozen=True)
class TimelineColumn:
    key: str
    label: str
    start: date
    end: date
    contains_today: bool

    def __contains__(self, day: object) -> bool:
        return isinstance(day, date) and self.start <= day <= self.end


@dataclass(frozen=True)
class GroupHeader:
    label: str
    span: int
    start: date


def _column_label(start: date, view_mode: ViewMode) -> str:
    if view_mode is ViewMode.DAY:
        return str(start.day)
    if view_mode is ViewMode.WEEK:
        return f"W{start.isocalendar()[1]}"
    return start.strftime("%b")


def _column_key(start: date, view_mode: ViewMode) -> str:
    if view_mode is ViewMode.DAY:
        return format_iso_date(start)
    if view_mode is ViewMode.WEEK:
        iso_year, iso_week, _ = start.isocalendar()
        return f"{iso_year}-W{iso_week:02d}"
    return start.strftime("%Y-%m")


def build_columns(
    start: date, end: date, view_mode: ViewMode, today: Optional[date] = None
) -> List[TimelineColumn]:
    """Contiguous display buckets covering [start, end].

    The first bucket is the one containing ``start`` and the last the one
    containing ``end``, so week and month columns may reach past the range.
    """
    validate_range(start, end)
    columns: List[TimelineColumn] = []
    current = snap(start, view_mode)
    while current <= end:
        bucket_end = unit_end(current, view_mode)
        columns.append(
            TimelineColumn(
                key=_column_key(current, view_mode),
                label=_column_label(current, view_mode),
                start=current,
                end=bucket_end,
                contains_today=today is not None and current <= today <= bucket_end,
            )
        )
        current = add_units(current, 1, view_mode)
    return columns


def group_headers(columns: Sequence[TimelineColumn], view_mode: ViewMode) -> List[GroupHeader]:
    """Run-length encode the parent period of each column.

    Day and week columns group into months, month columns into years. A week
    column belongs to the month its first day falls in.
    """
    groups: List[GroupHeader] = []
    for column in columns:
        if view_mode is ViewMode.MONTH:
            parent = column.start.replace(month=1, day=1)
            label = str(column.start.year)
        else:
            parent = column.start.replace(day=1)
            label = column.start.strftime("%B")
        if groups and groups[-1].start == parent:
            last = groups[-1]
            groups[-1] = GroupHeader(last.label, last.span + 1, last.start)
        else:
            groups.append(GroupHeader(label, 1, parent))
    return groups


def column_index(columns: Sequence[TimelineColumn], day: date) -> Optional[int]:
    for idx, column in enumerate(columns):
        if day in column:
            return idx
    return None


def unit_width(total_width_px: float, columns: Sequence[TimelineColumn]) -> float:
    """Pixel width of one column for a grid of ``total_width_px``; 0 when empty."""
    if not columns or total_width_px <= 0:
        return 0.0
    return total_width_px / len(columns)
