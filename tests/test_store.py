import itertools
from datetime import date, datetime, timezone

import pytest

from resource_planner.drag import DragCommit, DragKind, DragTarget
from resource_planner.errors import LockedProjectError, NotFoundError, ValidationError
from resource_planner.gateway import InMemoryGateway
from resource_planner.models import (
    Activity,
    Allocation,
    AllocationStatus,
    CompanyPhase,
    Employee,
    Milestone,
    MilestoneType,
    Project,
)
from resource_planner.store import AllocationStore, CommitState, EntityKind

MONDAY = date(2024, 6, 3)
WEDNESDAY = date(2024, 6, 5)
FRIDAY = date(2024, 6, 7)
CLOCK = datetime(2024, 6, 5, 12, 0, tzinfo=timezone.utc)


def _store(*allocations, **kwargs):
    counter = itertools.count(1)
    return AllocationStore(
        employees=[Employee("e1", "Ada", 37)],
        projects=[
            Project("p1", "Alpha", start=MONDAY, end=FRIDAY),
            Project("locked", "Done", locked=True),
        ],
        phases=[CompanyPhase("ph1", "Design", "#3366ff"), CompanyPhase("ph2", "Build", "#33aa55")],
        allocations=allocations,
        id_factory=lambda: f"new{next(counter)}",
        clock=lambda: CLOCK,
        **kwargs,
    )


def _fixed(allocation_id="a1", start=MONDAY, end=FRIDAY, hours=4.0):
    return Allocation(allocation_id, "e1", "p1", start, end, hours_per_day=hours)


def _ranges(store):
    return [(a.start, a.end, a.hours_per_day, a.total_hours) for a in store.allocations()]


def test_create_allocation():
    store = _store()
    mutation = store.create_allocation("e1", "p1", MONDAY, FRIDAY, hours_per_day=6)
    (created,) = mutation.created(EntityKind.ALLOCATION)
    assert store.allocation(created.id).hours_per_day == 6
    assert mutation.state is CommitState.PENDING


def test_create_rejects_inverted_range_without_changing_state():
    store = _store()
    with pytest.raises(ValidationError) as exc:
        store.create_allocation("e1", "p1", FRIDAY, MONDAY, hours_per_day=6)
    assert exc.value.reason == "invalid_range"
    assert store.allocations() == []


def test_create_rejects_both_hour_modes():
    store = _store()
    with pytest.raises(ValidationError) as exc:
        store.create_allocation("e1", "p1", MONDAY, FRIDAY, hours_per_day=6, total_hours=20)
    assert exc.value.reason == "conflicting_hour_mode"


def test_create_rejects_locked_project_and_unknown_employee():
    store = _store()
    with pytest.raises(LockedProjectError):
        store.create_allocation("e1", "locked", MONDAY, FRIDAY, hours_per_day=6)
    with pytest.raises(NotFoundError):
        store.create_allocation("nobody", "p1", MONDAY, FRIDAY, hours_per_day=6)


def test_switching_hour_mode_clears_the_other():
    store = _store(_fixed())
    store.update_allocation("a1", total_hours=20)
    allocation = store.allocation("a1")
    assert allocation.total_hours == 20
    assert allocation.hours_per_day is None


def test_update_producing_inverted_range_is_rejected():
    store = _store(_fixed())
    with pytest.raises(ValidationError):
        store.update_allocation("a1", start=date(2024, 6, 10))
    assert store.allocation("a1") == _fixed()


def test_edit_date_splits_into_three_segments():
    store = _store(_fixed())
    store.update_allocation("a1", hours_per_day=6, edit_date=WEDNESDAY)
    assert _ranges(store) == [
        (MONDAY, date(2024, 6, 4), 4.0, None),
        (WEDNESDAY, WEDNESDAY, 6, None),
        (date(2024, 6, 6), FRIDAY, 4.0, None),
    ]
    assert store.allocation("a1").end == date(2024, 6, 4)


def test_edit_date_on_total_hours_allocation_uses_flat_rate_around_it():
    store = _store(Allocation("a1", "e1", "p1", MONDAY, FRIDAY, total_hours=20))
    store.update_allocation("a1", status=AllocationStatus.TENTATIVE, edit_date=MONDAY)
    first, rest = store.allocations()
    assert (first.start, first.end, first.hours_per_day, first.status) == (
        MONDAY,
        MONDAY,
        4.0,
        AllocationStatus.TENTATIVE,
    )
    assert (rest.start, rest.hours_per_day, rest.status) == (date(2024, 6, 4), 4.0, AllocationStatus.CONFIRMED)


def test_delete_interior_day_splits():
    store = _store(_fixed())
    store.delete_allocation("a1", day=WEDNESDAY)
    assert _ranges(store) == [
        (MONDAY, date(2024, 6, 4), 4.0, None),
        (date(2024, 6, 6), FRIDAY, 4.0, None),
    ]


def test_delete_edge_day_shrinks():
    store = _store(_fixed())
    store.delete_allocation("a1", day=MONDAY)
    assert _ranges(store) == [(date(2024, 6, 4), FRIDAY, 4.0, None)]


def test_delete_with_redistribution_raises_daily_rate():
    store = _store(_fixed())
    store.delete_allocation("a1", day=WEDNESDAY, redistribute=True)
    assert [a.hours_per_day for a in store.allocations()] == [5.0, 5.0]


def test_delete_day_from_total_hours_allocation():
    end = date(2024, 6, 14)
    kept = _store(Allocation("a1", "e1", "p1", MONDAY, end, total_hours=40))
    kept.delete_allocation("a1", day=FRIDAY)
    assert [a.total_hours for a in kept.allocations()] == [16, 20]

    spread = _store(Allocation("a1", "e1", "p1", MONDAY, end, total_hours=40))
    spread.delete_allocation("a1", day=FRIDAY, redistribute=True)
    totals = [a.total_hours for a in spread.allocations()]
    assert totals == pytest.approx([40 * 4 / 9, 40 * 5 / 9])
    assert sum(totals) == pytest.approx(40)


def test_delete_day_outside_range_is_rejected():
    store = _store(_fixed())
    with pytest.raises(ValidationError) as exc:
        store.delete_allocation("a1", day=date(2024, 6, 10))
    assert exc.value.reason == "date_out_of_range"


def test_delete_only_day_removes_allocation():
    store = _store(_fixed(start=MONDAY, end=MONDAY))
    store.delete_allocation("a1", day=MONDAY)
    assert store.allocations() == []


def test_bulk_move_is_all_or_nothing():
    store = _store(_fixed("a1"), _fixed("a2", hours=2))
    with pytest.raises(NotFoundError):
        store.bulk_move(["a1", "missing"], 7)
    assert store.allocation("a1").start == MONDAY

    store.bulk_move(["a1", "a2", "a1"], 7)
    assert [a.start for a in store.allocations()] == [date(2024, 6, 10)] * 2


@pytest.mark.parametrize("offset", [0, 366, -400])
def test_bulk_move_rejects_bad_offsets(offset):
    store = _store(_fixed())
    with pytest.raises(ValidationError) as exc:
        store.bulk_move(["a1"], offset)
    assert exc.value.reason == "invalid_offset"


def test_bulk_limits_and_status_update():
    store = _store(_fixed("a1"), _fixed("a2"))
    with pytest.raises(ValidationError):
        store.bulk_delete([])
    with pytest.raises(ValidationError) as exc:
        store.bulk_update_status([f"x{i}" for i in range(201)], AllocationStatus.COMPLETED)
    assert exc.value.reason == "too_many_ids"
    store.bulk_update_status(["a1", "a2"], AllocationStatus.COMPLETED)
    assert {a.status for a in store.allocations()} == {AllocationStatus.COMPLETED}
    store.bulk_delete(["a1", "a2"])
    assert store.allocations() == []


def test_failed_commit_keeps_local_change_until_reverted():
    store = _store(_fixed())
    mutation = store.update_allocation("a1", hours_per_day=6)
    result = store.commit(mutation, InMemoryGateway(fail_with="server unreachable"))
    assert not result.ok
    assert result.error == "server unreachable"
    assert mutation.state is CommitState.FAILED
    assert store.failed_mutations() == [mutation]
    assert store.allocation("a1").hours_per_day == 6

    store.revert(mutation)
    assert store.allocation("a1").hours_per_day == 4
    assert mutation.state is CommitState.REVERTED
    with pytest.raises(ValueError):
        store.revert(mutation)


def test_successful_commit():
    store = _store()
    gateway = InMemoryGateway()
    mutation = store.create_allocation("e1", "p1", MONDAY, FRIDAY, hours_per_day=6)
    assert store.commit(mutation, gateway).ok
    assert mutation.state is CommitState.COMMITTED
    assert len(gateway.payloads) == 1


def test_snapshot_and_restore():
    store = _store(_fixed())
    snapshot = store.snapshot()
    store.delete_allocation("a1")
    store.restore(snapshot)
    assert store.allocation("a1") == _fixed()


def test_apply_drag_dispatches_on_target():
    store = _store(
        _fixed(),
        milestones=[Milestone("m1", "p1", "Launch", FRIDAY)],
        activities=[Activity("x1", "p1", "Design", MONDAY, WEDNESDAY)],
    )
    store.apply_drag(DragCommit(DragKind.MOVE, DragTarget.ALLOCATION, "a1", "p1", date(2024, 6, 10), date(2024, 6, 14)))
    store.apply_drag(DragCommit(DragKind.RESIZE_END, DragTarget.PROJECT, "p1", "p1", MONDAY, date(2024, 6, 21)))
    store.apply_drag(DragCommit(DragKind.RESIZE_START, DragTarget.ACTIVITY, "x1", "p1", date(2024, 6, 4), WEDNESDAY))
    store.apply_drag(DragCommit(DragKind.MILESTONE, DragTarget.MILESTONE, "m1", "p1", WEDNESDAY, WEDNESDAY))
    assert store.allocation("a1").start == date(2024, 6, 10)
    assert store.project("p1").end == date(2024, 6, 21)
    assert store.activity("x1").start == date(2024, 6, 4)
    assert store.milestone("m1").due_date == WEDNESDAY


def test_activity_phase_replaces_category():
    store = _store()
    mutation = store.create_activity("p1", "Sketches", MONDAY, WEDNESDAY, category_name="Misc")
    (activity,) = mutation.created()
    store.update_activity(activity.id, phase_id="ph1")
    updated = store.activity(activity.id)
    assert (updated.phase_id, updated.category_name) == ("ph1", None)
    with pytest.raises(ValidationError):
        store.update_activity(activity.id, colour="#ffffff")
    with pytest.raises(LockedProjectError):
        store.create_activity("locked", "Late", MONDAY, WEDNESDAY)


def test_one_phase_deadline_per_phase_per_project():
    store = _store()
    store.create_milestone("p1", "Design done", WEDNESDAY, type=MilestoneType.PHASE, phase_id="ph1")
    with pytest.raises(ValidationError) as exc:
        store.create_milestone("p1", "Design again", FRIDAY, type=MilestoneType.PHASE, phase_id="ph1")
    assert exc.value.reason == "duplicate_phase_deadline"
    store.create_milestone("p1", "Build done", FRIDAY, type=MilestoneType.PHASE, phase_id="ph2")


def test_completing_milestone_stamps_time():
    store = _store()
    (milestone,) = store.create_milestone("p1", "Launch", FRIDAY).created()
    store.update_milestone(milestone.id, completed=True)
    assert store.milestone(milestone.id).completed_at == CLOCK
    store.update_milestone(milestone.id, completed=False)
    assert store.milestone(milestone.id).completed_at is None


def test_switching_milestone_to_phase_drops_custom_look():
    store = _store()
    (milestone,) = store.create_milestone("p1", "Launch", FRIDAY, color="#ff0000").created()
    store.update_milestone(milestone.id, type=MilestoneType.PHASE, phase_id="ph1")
    updated = store.milestone(milestone.id)
    assert (updated.type, updated.color, updated.phase_id) == (MilestoneType.PHASE, None, "ph1")


def test_committed_mutation_cannot_be_reverted():
    store = _store(_fixed())
    mutation = store.update_allocation("a1", hours_per_day=6)
    assert store.commit(mutation, InMemoryGateway()).ok

    with pytest.raises(ValidationError) as excinfo:
        store.revert(mutation)
    assert excinfo.value.reason == "not_revertible"
    assert store.allocation("a1").hours_per_day == 6
    assert mutation.state is CommitState.COMMITTED


def test_pending_mutation_can_be_reverted():
    store = _store(_fixed())
    mutation = store.update_allocation("a1", hours_per_day=6)
    store.revert(mutation)
    assert store.allocation("a1").hours_per_day == 4


def test_edit_date_with_range_change_is_rejected():
    store = _store(_fixed())
    with pytest.raises(ValidationError) as excinfo:
        store.update_allocation("a1", hours_per_day=6, edit_date=WEDNESDAY, end=date(2024, 6, 14))
    assert excinfo.value.reason == "conflicting_edit"
    assert _ranges(store) == [(MONDAY, FRIDAY, 4.0, None)]


def test_set_project_range_leaves_children_in_place():
    store = _store(
        milestones=[Milestone("m1", "p1", "Launch", FRIDAY)],
        activities=[Activity("x1", "p1", "Design", MONDAY, WEDNESDAY)],
    )
    mutation = store.set_project_range("p1", date(2024, 6, 10), date(2024, 6, 21))
    assert [c.kind for c in mutation.changes] == [EntityKind.PROJECT]
    project = store.project("p1")
    assert (project.start, project.end) == (date(2024, 6, 10), date(2024, 6, 21))
    assert (store.activity("x1").start, store.activity("x1").end) == (MONDAY, WEDNESDAY)
    assert store.milestone("m1").due_date == FRIDAY
    with pytest.raises(ValidationError):
        store.set_project_range("p1", date(2024, 6, 21), date(2024, 6, 10))
