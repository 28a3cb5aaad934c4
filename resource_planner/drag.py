"""
Pointer-drag to date-range conversion for timeline bars and markers.

The engine never measures layout itself: the caller passes the pixel width of
one timeline column when a drag starts, taken from the same column list the
grid was rendered from.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Optional, Tuple

from .models import PlannerConfig, ViewMode
from .ranges import add_units, snap

DEFAULT_COMMIT_THRESHOLD_PX = 5.0


class DragKind(str, Enum):
    MOVE = "move"
    RESIZE_START = "resize-start"
    RESIZE_END = "resize-end"
    MILESTONE = "milestone"


class DragTarget(str, Enum):
    ALLOCATION = "allocation"
    PROJECT = "project"
    ACTIVITY = "activity"
    MILESTONE = "milestone"


@dataclass(frozen=True)
class DragState:
    kind: DragKind
    target: DragTarget
    entity_id: str
    project_id: Optional[str]
    start_x: float
    original_start: date
    original_end: date
    column_width: float


@dataclass(frozen=True)
class DragCommit:
    kind: DragKind
    target: DragTarget
    entity_id: str
    project_id: Optional[str]
    new_start: date
    new_end: date

    @property
    def new_date(self) -> date:
        return self.new_start


def unit_offset(pixel_delta: float, column_width: float) -> Optional[int]:
    if column_width <= 0 or not math.isfinite(column_width) or not math.isfinite(pixel_delta):
        return None
    # Half-up, so +0.5 and -0.5 columns behave like the rendered grid.
    return int(math.floor(pixel_delta / column_width + 0.5))


def candidate_range(
    kind: DragKind,
    original_start: date,
    original_end: date,
    offset: int,
    view_mode: ViewMode,
) -> Optional[Tuple[date, date]]:
    """New (start, end) for a drag of ``offset`` columns, or None if invalid."""
    try:
        if kind is DragKind.MOVE:
            new_start = snap(add_units(original_start, offset, view_mode), view_mode)
            duration = (original_end - original_start).days
            return new_start, new_start + timedelta(days=duration)
        if kind is DragKind.RESIZE_START:
            new_start = snap(add_units(original_start, offset, view_mode), view_mode)
            if new_start >= original_end:
                return None
            return new_start, original_end
        if kind is DragKind.RESIZE_END:
            new_end = snap(add_units(original_end, offset, view_mode), view_mode)
            if new_end <= original_start:
                return None
            return original_start, new_end
        if kind is DragKind.MILESTONE:
            new_date = snap(add_units(original_start, offset, view_mode), view_mode)
            return new_date, new_date
    except (OverflowError, ValueError):
        return None
    raise ValueError(f"unsupported drag kind {kind!r}")


class DragEngine:
    """Idle -> dragging -> (commit | discard) -> idle."""

    def __init__(
        self,
        view_mode: ViewMode = ViewMode.DAY,
        threshold_px: float = DEFAULT_COMMIT_THRESHOLD_PX,
    ) -> None:
        self.view_mode = view_mode
        self.threshold_px = threshold_px
        self._state: Optional[DragState] = None

    @classmethod
    def from_config(cls, config: PlannerConfig) -> DragEngine:
        return cls(config.default_view_mode, config.drag_commit_threshold_px)

    @property
    def state(self) -> Optional[DragState]:
        return self._state

    @property
    def is_dragging(self) -> bool:
        return self._state is not None

    def start(
        self,
        kind: DragKind,
        target: DragTarget,
        entity_id: str,
        pointer_x: float,
        original_start: date,
        original_end: date,
        column_width: float,
        project_id: Optional[str] = None,
    ) -> DragState:
        if (kind is DragKind.MILESTONE) != (target is DragTarget.MILESTONE):
            raise ValueError(f"drag kind {kind.value} does not apply to a {target.value}")
        if kind is DragKind.MILESTONE:
            original_end = original_start
        self._state = DragState(
            kind=kind,
            target=target,
            entity_id=entity_id,
            project_id=project_id,
            start_x=pointer_x,
            original_start=original_start,
            original_end=original_end,
            column_width=column_width,
        )
        return self._state

    def preview(self, pointer_x: float) -> Optional[Tuple[date, date]]:
        state = self._state
        if state is None:
            return None
        offset = unit_offset(pointer_x - state.start_x, state.column_width)
        if offset is None:
            return None
        return candidate_range(state.kind, state.original_start, state.original_end, offset, self.view_mode)

    def release(self, pointer_x: float) -> Optional[DragCommit]:
        state = self._state
        self._state = None
        if state is None:
            return None
        if abs(pointer_x - state.start_x) <= self.threshold_px:
            return None
        offset = unit_offset(pointer_x - state.start_x, state.column_width)
        if offset is None:
            return None
        dates = candidate_range(state.kind, state.original_start, state.original_end, offset, self.view_mode)
        if dates is None or dates == (state.original_start, state.original_end):
            return None
        return DragCommit(
            kind=state.kind,
            target=state.target,
            entity_id=state.entity_id,
            project_id=state.project_id,
            new_start=dates[0],
            new_end=dates[1],
        )

    def cancel(self) -> None:
        self._state = None
