"""
In-memory planner state for the visible window.

Every mutation is applied locally first and returned as a ``Mutation``: an
ordered list of entity diffs with before/after values. Sending it to the
persistence collaborator is a separate step (``commit``); a failed commit
leaves the local change in place and keeps the mutation around so the caller
can ``revert`` it.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .drag import DragCommit, DragTarget
from .errors import LockedProjectError, NotFoundError, PersistenceError, ValidationError
from .models import (
    Activity,
    ActivityStatus,
    Allocation,
    AllocationStatus,
    CompanyPhase,
    DeadlineIcon,
    Employee,
    Milestone,
    MilestoneType,
    Project,
    Vacation,
)
from .ranges import is_working_day, overlaps, validate_range, working_days

if TYPE_CHECKING:
    from .gateway import PersistenceGateway

logger = logging.getLogger(__name__)

MAX_BULK_OFFSET_DAYS = 365
MAX_BULK_IDS = 200


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


UNSET = _Unset()


class EntityKind(str, Enum):
    EMPLOYEE = "employee"
    PROJECT = "project"
    PHASE = "phase"
    ALLOCATION = "allocation"
    VACATION = "vacation"
    ACTIVITY = "activity"
    MILESTONE = "milestone"


class CommitState(str, Enum):
    PENDING = "pending"
    COMMITTED = "committed"
    FAILED = "failed"
    REVERTED = "reverted"


@dataclass(frozen=True)
class EntityChange:
    kind: EntityKind
    entity_id: str
    before: Optional[object]
    after: Optional[object]


@dataclass
class Mutation:
    id: str
    operation: str
    changes: Tuple[EntityChange, ...]
    state: CommitState = CommitState.PENDING
    error: Optional[str] = None

    def created(self, kind: Optional[EntityKind] = None) -> List[object]:
        return [
            c.after for c in self.changes
            if c.before is None and c.after is not None and (kind is None or c.kind is kind)
        ]


@dataclass(frozen=True)
class CommitResult:
    mutation_id: str
    ok: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class StoreSnapshot:
    tables: Dict[EntityKind, Dict[str, Any]] = field(default_factory=dict)


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AllocationStore:
    def __init__(
        self,
        employees: Iterable[Employee] = (),
        projects: Iterable[Project] = (),
        phases: Iterable[CompanyPhase] = (),
        allocations: Iterable[Allocation] = (),
        vacations: Iterable[Vacation] = (),
        activities: Iterable[Activity] = (),
        milestones: Iterable[Milestone] = (),
        *,
        id_factory: Callable[[], str] = _new_id,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._tables: Dict[EntityKind, Dict[str, Any]] = {kind: {} for kind in EntityKind}
        for kind, items in (
            (EntityKind.EMPLOYEE, employees),
            (EntityKind.PROJECT, projects),
            (EntityKind.PHASE, phases),
            (EntityKind.ALLOCATION, allocations),
            (EntityKind.VACATION, vacations),
            (EntityKind.ACTIVITY, activities),
            (EntityKind.MILESTONE, milestones),
        ):
            for item in items:
                self._tables[kind][item.id] = item
        self._id_factory = id_factory
        self._clock = clock
        self._mutations: Dict[str, Mutation] = {}

    # ------------------------------------------------------------------
    # Lookups

    def _get(self, kind: EntityKind, entity_id: str) -> Any:
        try:
            return self._tables[kind][entity_id]
        except KeyError:
            raise NotFoundError(kind.value, entity_id) from None

    def employee(self, employee_id: str) -> Employee:
        return self._get(EntityKind.EMPLOYEE, employee_id)

    def project(self, project_id: str) -> Project:
        return self._get(EntityKind.PROJECT, project_id)

    def phase(self, phase_id: str) -> CompanyPhase:
        return self._get(EntityKind.PHASE, phase_id)

    def allocation(self, allocation_id: str) -> Allocation:
        return self._get(EntityKind.ALLOCATION, allocation_id)

    def activity(self, activity_id: str) -> Activity:
        return self._get(EntityKind.ACTIVITY, activity_id)

    def milestone(self, milestone_id: str) -> Milestone:
        return self._get(EntityKind.MILESTONE, milestone_id)

    def employees(self) -> List[Employee]:
        return sorted(self._tables[EntityKind.EMPLOYEE].values(), key=lambda e: e.id)

    def projects(self) -> List[Project]:
        return sorted(self._tables[EntityKind.PROJECT].values(), key=lambda p: p.id)

    def phases(self) -> List[CompanyPhase]:
        return sorted(
            self._tables[EntityKind.PHASE].values(), key=lambda p: (p.sort_order, p.id)
        )

    def vacations(self, employee_id: Optional[str] = None) -> List[Vacation]:
        items: List[Vacation] = list(self._tables[EntityKind.VACATION].values())
        if employee_id is not None:
            items = [v for v in items if v.employee_id == employee_id]
        return sorted(items, key=lambda v: (v.start, v.id))

    def allocations(
        self,
        employee_id: Optional[str] = None,
        project_id: Optional[str] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[Allocation]:
        items: List[Allocation] = list(self._tables[EntityKind.ALLOCATION].values())
        if employee_id is not None:
            items = [a for a in items if a.employee_id == employee_id]
        if project_id is not None:
            items = [a for a in items if a.project_id == project_id]
        if start is not None and end is not None:
            items = [a for a in items if overlaps(a.start, a.end, start, end)]
        return sorted(items, key=lambda a: (a.start, a.id))

    def activities(self, project_id: Optional[str] = None) -> List[Activity]:
        items: List[Activity] = list(self._tables[EntityKind.ACTIVITY].values())
        if project_id is not None:
            items = [a for a in items if a.project_id == project_id]
        return sorted(items, key=lambda a: (a.project_id, a.sort_order, a.start, a.id))

    def milestones(self, project_id: Optional[str] = None) -> List[Milestone]:
        items: List[Milestone] = list(self._tables[EntityKind.MILESTONE].values())
        if project_id is not None:
            items = [m for m in items if m.project_id == project_id]
        return sorted(items, key=lambda m: (m.project_id, m.due_date, m.sort_order, m.id))

    # ------------------------------------------------------------------
    # Local apply / commit / revert

    def _write(self, kind: EntityKind, entity_id: str, value: Optional[object]) -> None:
        table = self._tables[kind]
        if value is None:
            table.pop(entity_id, None)
        else:
            table[entity_id] = value

    def _apply(self, operation: str, changes: Sequence[EntityChange]) -> Mutation:
        for change in changes:
            self._write(change.kind, change.entity_id, change.after)
        mutation = Mutation(id=self._id_factory(), operation=operation, changes=tuple(changes))
        self._mutations[mutation.id] = mutation
        logger.debug("applied %s (%d changes)", operation, len(changes))
        return mutation

    def reapply(self, mutation: Mutation) -> None:
        for change in mutation.changes:
            self._write(change.kind, change.entity_id, change.after)

    def commit(self, mutation: Mutation, gateway: "PersistenceGateway") -> CommitResult:
        try:
            gateway.commit(mutation)
        except PersistenceError as exc:
            mutation.state = CommitState.FAILED
            mutation.error = str(exc)
            logger.warning("commit of %s %s failed: %s", mutation.operation, mutation.id, exc)
            return CommitResult(mutation.id, ok=False, error=str(exc))
        mutation.state = CommitState.COMMITTED
        mutation.error = None
        logger.info("committed %s %s", mutation.operation, mutation.id)
        return CommitResult(mutation.id, ok=True)

    def revert(self, mutation: Mutation) -> None:
        """Restore the values ``mutation`` overwrote.

        Only local changes can be undone: a mutation the collaborator already
        accepted stays in place.
        """
        if mutation.state not in (CommitState.PENDING, CommitState.FAILED):
            raise ValidationError(
                "not_revertible", f"mutation {mutation.id} is {mutation.state.value} and cannot be reverted"
            )
        for change in reversed(mutation.changes):
            self._write(change.kind, change.entity_id, change.before)
        mutation.state = CommitState.REVERTED
        logger.info("reverted %s %s", mutation.operation, mutation.id)

    def mutation(self, mutation_id: str) -> Mutation:
        try:
            return self._mutations[mutation_id]
        except KeyError:
            raise NotFoundError("mutation", mutation_id) from None

    def failed_mutations(self) -> List[Mutation]:
        return [m for m in self._mutations.values() if m.state is CommitState.FAILED]

    def snapshot(self) -> StoreSnapshot:
        return StoreSnapshot({kind: dict(table) for kind, table in self._tables.items()})

    def restore(self, snapshot: StoreSnapshot) -> None:
        self._tables = {kind: dict(snapshot.tables.get(kind, {})) for kind in EntityKind}

    # ------------------------------------------------------------------
    # Allocations

    def _require_open_project(self, project_id: str) -> Project:
        project = self.project(project_id)
        if not project.accepts_new_work:
            raise LockedProjectError(project_id)
        return project

    def create_allocation(
        self,
        employee_id: str,
        project_id: str,
        start: date,
        end: date,
        *,
        hours_per_day: Optional[float] = None,
        total_hours: Optional[float] = None,
        status: AllocationStatus = AllocationStatus.CONFIRMED,
        notes: Optional[str] = None,
    ) -> Mutation:
        validate_range(start, end)
        self.employee(employee_id)
        self._require_open_project(project_id)
        allocation = Allocation(
            id=self._id_factory(),
            employee_id=employee_id,
            project_id=project_id,
            start=start,
            end=end,
            hours_per_day=hours_per_day,
            total_hours=total_hours,
            status=AllocationStatus(status),
            notes=notes,
        )
        change = EntityChange(EntityKind.ALLOCATION, allocation.id, None, allocation)
        return self._apply("create_allocation", [change])

    def update_allocation(
        self,
        allocation_id: str,
        *,
        start: Optional[date] = None,
        end: Optional[date] = None,
        hours_per_day: Optional[float] = None,
        total_hours: Optional[float] = None,
        status: Optional[AllocationStatus] = None,
        notes: object = UNSET,
        edit_date: Optional[date] = None,
    ) -> Mutation:
        """Partial update. Setting one hour mode clears the other.

        With ``edit_date`` only that day changes: a multi-day allocation is
        split into before / edited-day / after segments.
        """
        existing = self.allocation(allocation_id)
        if hours_per_day is not None and total_hours is not None:
            raise ValidationError(
                "conflicting_hour_mode", "set either hours_per_day or total_hours, not both"
            )
        if edit_date is not None:
            if start is not None or end is not None:
                raise ValidationError(
                    "conflicting_edit", "a single-day edit cannot also change the allocation range"
                )
            return self._update_single_day(existing, edit_date, hours_per_day, total_hours, status, notes)

        changes: Dict[str, object] = {}
        if start is not None:
            changes["start"] = start
        if end is not None:
            changes["end"] = end
        validate_range(changes.get("start", existing.start), changes.get("end", existing.end))
        if hours_per_day is not None:
            changes["hours_per_day"] = hours_per_day
            changes["total_hours"] = None
        elif total_hours is not None:
            changes["total_hours"] = total_hours
            changes["hours_per_day"] = None
        if status is not None:
            changes["status"] = AllocationStatus(status)
        if notes is not UNSET:
            changes["notes"] = notes
        updated = replace(existing, **changes)
        change = EntityChange(EntityKind.ALLOCATION, existing.id, existing, updated)
        return self._apply("update_allocation", [change])

    def _update_single_day(
        self,
        existing: Allocation,
        edit_date: date,
        hours_per_day: Optional[float],
        total_hours: Optional[float],
        status: Optional[AllocationStatus],
        notes: object,
    ) -> Mutation:
        if not existing.start <= edit_date <= existing.end:
            raise ValidationError("edit_date_out_of_range", "edit date is outside the allocation range")
        base_rate = self._flat_rate(existing)
        if total_hours is not None:
            day_hours: Dict[str, Optional[float]] = {"hours_per_day": None, "total_hours": total_hours}
        else:
            day_hours = {"hours_per_day": hours_per_day or base_rate, "total_hours": None}
        edited_fields: Dict[str, object] = dict(day_hours)
        if status is not None:
            edited_fields["status"] = AllocationStatus(status)
        if notes is not UNSET:
            edited_fields["notes"] = notes

        if existing.start == existing.end:
            updated = replace(existing, **edited_fields)
            change = EntityChange(EntityKind.ALLOCATION, existing.id, existing, updated)
            return self._apply("update_allocation", [change])

        # Segments around the edited day keep the flat rate in per-day mode.
        segments: List[Allocation] = []
        if edit_date > existing.start:
            segments.append(
                replace(
                    existing,
                    end=edit_date - timedelta(days=1),
                    hours_per_day=base_rate,
                    total_hours=None,
                )
            )
        segments.append(replace(existing, start=edit_date, end=edit_date, **edited_fields))
        if edit_date < existing.end:
            segments.append(
                replace(
                    existing,
                    start=edit_date + timedelta(days=1),
                    hours_per_day=base_rate,
                    total_hours=None,
                )
            )
        return self._apply("update_allocation", self._split_changes(existing, segments))

    def _flat_rate(self, allocation: Allocation) -> float:
        if allocation.hours_per_day is not None:
            return allocation.hours_per_day
        weight = working_days(allocation.start, allocation.end)
        total = float(allocation.total_hours or 0.0)
        return total / weight if weight else total

    def _split_changes(self, existing: Allocation, segments: Sequence[Allocation]) -> List[EntityChange]:
        """First segment keeps the original id, the rest get new ids."""
        changes: List[EntityChange] = []
        for idx, segment in enumerate(segments):
            if idx == 0:
                changes.append(EntityChange(EntityKind.ALLOCATION, existing.id, existing, replace(segment, id=existing.id)))
            else:
                created = replace(segment, id=self._id_factory())
                changes.append(EntityChange(EntityKind.ALLOCATION, created.id, None, created))
        if not segments:
            changes.append(EntityChange(EntityKind.ALLOCATION, existing.id, existing, None))
        return changes

    def delete_allocation(
        self, allocation_id: str, day: Optional[date] = None, redistribute: bool = False
    ) -> Mutation:
        """Delete an allocation, or one day of it.

        Removing an edge day shrinks the range, an interior day splits it in
        two. With ``redistribute`` the removed day's hours are spread over the
        remaining working days in proportion to each segment's working days.
        """
        existing = self.allocation(allocation_id)
        if day is None or existing.start == existing.end:
            if day is not None and day != existing.start:
                raise ValidationError("date_out_of_range", "date is outside the allocation range")
            change = EntityChange(EntityKind.ALLOCATION, existing.id, existing, None)
            return self._apply("delete_allocation", [change])
        if not existing.start <= day <= existing.end:
            raise ValidationError("date_out_of_range", "date is outside the allocation range")

        bounds: List[Tuple[date, date]] = []
        if day > existing.start:
            bounds.append((existing.start, day - timedelta(days=1)))
        if day < existing.end:
            bounds.append((day + timedelta(days=1), existing.end))
        weights = [working_days(s, e) for s, e in bounds]
        remaining_weight = sum(weights)
        if redistribute and remaining_weight == 0:
            raise ValidationError(
                "nothing_to_redistribute", "no working days remain to take the removed hours"
            )

        segments: List[Allocation] = []
        if existing.hours_per_day is not None:
            rate = existing.hours_per_day
            if redistribute and is_working_day(day):
                rate += existing.hours_per_day / remaining_weight
            segments = [replace(existing, start=s, end=e, hours_per_day=rate) for s, e in bounds]
        else:
            total = float(existing.total_hours or 0.0)
            original_weight = working_days(existing.start, existing.end)
            denominator = remaining_weight if redistribute else original_weight
            for (s, e), weight in zip(bounds, weights):
                if weight == 0 or denominator == 0:
                    # No working days: the segment carries no hours.
                    continue
                segments.append(replace(existing, start=s, end=e, total_hours=total * weight / denominator))
        return self._apply("delete_allocation", self._split_changes(existing, segments))

    def bulk_move(self, allocation_ids: Sequence[str], offset_days: int) -> Mutation:
        """Shift every allocation by ``offset_days``; all or nothing."""
        ids = self._check_bulk_ids(allocation_ids)
        if not isinstance(offset_days, int) or offset_days == 0:
            raise ValidationError("invalid_offset", "offset_days is required and non-zero")
        if abs(offset_days) > MAX_BULK_OFFSET_DAYS:
            raise ValidationError("invalid_offset", f"offset_days must be within ±{MAX_BULK_OFFSET_DAYS}")
        existing = [self.allocation(allocation_id) for allocation_id in ids]
        changes: List[EntityChange] = []
        delta = timedelta(days=offset_days)
        for allocation in existing:
            try:
                moved = replace(allocation, start=allocation.start + delta, end=allocation.end + delta)
            except OverflowError as exc:
                raise ValidationError("invalid_range", f"allocation {allocation.id} moves out of range") from exc
            changes.append(EntityChange(EntityKind.ALLOCATION, allocation.id, allocation, moved))
        return self._apply("bulk_move", changes)

    def bulk_delete(self, allocation_ids: Sequence[str]) -> Mutation:
        ids = self._check_bulk_ids(allocation_ids)
        existing = [self.allocation(allocation_id) for allocation_id in ids]
        changes = [EntityChange(EntityKind.ALLOCATION, a.id, a, None) for a in existing]
        return self._apply("bulk_delete", changes)

    def bulk_update_status(self, allocation_ids: Sequence[str], status: AllocationStatus) -> Mutation:
        ids = self._check_bulk_ids(allocation_ids)
        status = AllocationStatus(status)
        existing = [self.allocation(allocation_id) for allocation_id in ids]
        changes = [EntityChange(EntityKind.ALLOCATION, a.id, a, replace(a, status=status)) for a in existing]
        return self._apply("bulk_update_status", changes)

    def _check_bulk_ids(self, allocation_ids: Sequence[str]) -> List[str]:
        ids = list(dict.fromkeys(allocation_ids))
        if not ids:
            raise ValidationError("missing_ids", "at least one allocation id is required")
        if len(ids) > MAX_BULK_IDS:
            raise ValidationError("too_many_ids", f"at most {MAX_BULK_IDS} allocations per bulk action")
        return ids

    # ------------------------------------------------------------------
    # Project bars

    def set_project_range(self, project_id: str, start: date, end: date) -> Mutation:
        validate_range(start, end)
        existing = self.project(project_id)
        updated = replace(existing, start=start, end=end)
        change = EntityChange(EntityKind.PROJECT, existing.id, existing, updated)
        return self._apply("set_project_range", [change])

    # ------------------------------------------------------------------
    # Activities

    def _check_activity_refs(self, phase_id: Optional[str], assigned_employee_id: Optional[str]) -> None:
        if phase_id is not None:
            self.phase(phase_id)
        if assigned_employee_id is not None:
            self.employee(assigned_employee_id)

    def create_activity(
        self,
        project_id: str,
        name: str,
        start: date,
        end: date,
        *,
        status: ActivityStatus = ActivityStatus.NOT_STARTED,
        phase_id: Optional[str] = None,
        category_name: Optional[str] = None,
        assigned_employee_id: Optional[str] = None,
        color: Optional[str] = None,
        note: Optional[str] = None,
    ) -> Mutation:
        validate_range(start, end)
        self._require_open_project(project_id)
        self._check_activity_refs(phase_id, assigned_employee_id)
        sort_order = len(self.activities(project_id))
        activity = Activity(
            id=self._id_factory(),
            project_id=project_id,
            name=name,
            start=start,
            end=end,
            status=ActivityStatus(status),
            phase_id=phase_id,
            category_name=category_name,
            assigned_employee_id=assigned_employee_id,
            color=color,
            note=note,
            sort_order=sort_order,
        )
        return self._apply("create_activity", [EntityChange(EntityKind.ACTIVITY, activity.id, None, activity)])

    def update_activity(self, activity_id: str, **fields: object) -> Mutation:
        existing = self.activity(activity_id)
        allowed = {
            "name", "start", "end", "status", "phase_id", "category_name",
            "assigned_employee_id", "color", "note", "sort_order",
        }
        unknown = set(fields) - allowed
        if unknown:
            raise ValidationError("unknown_field", f"unknown activity fields: {', '.join(sorted(unknown))}")
        if "status" in fields:
            fields["status"] = ActivityStatus(fields["status"])
        # Picking a phase clears the free-text category and vice versa.
        if fields.get("phase_id") is not None and "category_name" not in fields:
            fields["category_name"] = None
        if fields.get("category_name") is not None and "phase_id" not in fields:
            fields["phase_id"] = None
        validate_range(fields.get("start", existing.start), fields.get("end", existing.end))
        self._check_activity_refs(
            fields.get("phase_id", existing.phase_id),
            fields.get("assigned_employee_id", existing.assigned_employee_id),
        )
        updated = replace(existing, **fields)
        return self._apply("update_activity", [EntityChange(EntityKind.ACTIVITY, existing.id, existing, updated)])

    def delete_activity(self, activity_id: str) -> Mutation:
        existing = self.activity(activity_id)
        return self._apply("delete_activity", [EntityChange(EntityKind.ACTIVITY, existing.id, existing, None)])

    # ------------------------------------------------------------------
    # Milestones

    def _check_phase_deadline(self, milestone: Milestone) -> None:
        if milestone.type is not MilestoneType.PHASE:
            return
        self.phase(milestone.phase_id)
        for other in self.milestones(milestone.project_id):
            if other.id != milestone.id and other.type is MilestoneType.PHASE and other.phase_id == milestone.phase_id:
                raise ValidationError(
                    "duplicate_phase_deadline",
                    f"project {milestone.project_id} already has a deadline for phase {milestone.phase_id}",
                )

    def create_milestone(
        self,
        project_id: str,
        title: str,
        due_date: date,
        *,
        type: MilestoneType = MilestoneType.CUSTOM,
        phase_id: Optional[str] = None,
        icon: Optional[DeadlineIcon] = None,
        color: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Mutation:
        self.project(project_id)
        milestone = Milestone(
            id=self._id_factory(),
            project_id=project_id,
            title=title,
            due_date=due_date,
            type=MilestoneType(type),
            phase_id=phase_id,
            icon=DeadlineIcon(icon) if icon is not None else None,
            color=color,
            description=description,
            sort_order=len(self.milestones(project_id)),
        )
        self._check_phase_deadline(milestone)
        return self._apply("create_milestone", [EntityChange(EntityKind.MILESTONE, milestone.id, None, milestone)])

    def update_milestone(self, milestone_id: str, **fields: object) -> Mutation:
        existing = self.milestone(milestone_id)
        allowed = {
            "title", "due_date", "completed", "type", "phase_id", "icon", "color", "description", "sort_order",
        }
        unknown = set(fields) - allowed
        if unknown:
            raise ValidationError("unknown_field", f"unknown milestone fields: {', '.join(sorted(unknown))}")
        if "type" in fields:
            fields["type"] = MilestoneType(fields["type"])
            if fields["type"] is MilestoneType.CUSTOM:
                fields.setdefault("phase_id", None)
            else:
                fields.setdefault("icon", None)
                fields.setdefault("color", None)
                fields.setdefault("description", None)
        if fields.get("icon") is not None:
            fields["icon"] = DeadlineIcon(fields["icon"])
        if "completed" in fields:
            completed = bool(fields["completed"])
            fields["completed"] = completed
            if completed and not existing.completed:
                fields["completed_at"] = self._clock()
            elif not completed:
                fields["completed_at"] = None
        updated = replace(existing, **fields)
        self._check_phase_deadline(updated)
        return self._apply("update_milestone", [EntityChange(EntityKind.MILESTONE, existing.id, existing, updated)])

    def delete_milestone(self, milestone_id: str) -> Mutation:
        existing = self.milestone(milestone_id)
        return self._apply("delete_milestone", [EntityChange(EntityKind.MILESTONE, existing.id, existing, None)])

    # ------------------------------------------------------------------
    # Drag commits

    def apply_drag(self, commit: DragCommit) -> Mutation:
        if commit.target is DragTarget.ALLOCATION:
            return self.update_allocation(commit.entity_id, start=commit.new_start, end=commit.new_end)
        if commit.target is DragTarget.PROJECT:
            return self.set_project_range(commit.entity_id, commit.new_start, commit.new_end)
        if commit.target is DragTarget.ACTIVITY:
            return self.update_activity(commit.entity_id, start=commit.new_start, end=commit.new_end)
        if commit.target is DragTarget.MILESTONE:
            return self.update_milestone(commit.entity_id, due_date=commit.new_date)
        raise ValueError(f"unsupported drag target {commit.target!r}")
