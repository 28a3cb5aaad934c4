from datetime import date

import pytest

from resource_planner.conflicts import conflicts_frame, detect_conflicts, group_conflicts
from resource_planner.models import Allocation, Employee, EmploymentType, Project
from resource_planner.store import AllocationStore

MONDAY = date(2024, 6, 3)
TUESDAY = date(2024, 6, 4)
FRIDAY = date(2024, 6, 7)
NEXT_MONDAY = date(2024, 6, 10)
TODAY = date(2024, 6, 1)


def _store(*allocations, employee=None):
    return AllocationStore(
        employees=[employee or Employee("e1", "Ada", 37)],
        projects=[Project("p1", "Alpha"), Project("p2", "Beta"), Project("p3", "Gamma")],
        allocations=allocations,
    )


def _alloc(allocation_id, project_id, start, end, hours):
    return Allocation(allocation_id, "e1", project_id, start, end, hours_per_day=hours)


def test_two_allocations_over_capacity_on_a_tuesday():
    store = _store(_alloc("a", "p1", TUESDAY, TUESDAY, 5), _alloc("b", "p2", TUESDAY, TUESDAY, 4))
    conflicts = detect_conflicts(store, MONDAY, FRIDAY, today=TODAY)
    assert len(conflicts) == 1
    conflict = conflicts[0]
    assert conflict.day == TUESDAY
    assert conflict.total_hours == 9
    assert conflict.daily_capacity == 7.5
    assert conflict.severity == pytest.approx(1.2)
    assert conflict.project_ids == ("p1", "p2")

    groups = group_conflicts(conflicts)
    assert len(groups) == 1
    assert not groups[0].is_high


def test_exactly_at_capacity_is_not_a_conflict():
    store = _store(_alloc("a", "p1", MONDAY, MONDAY, 5), _alloc("b", "p2", MONDAY, MONDAY, 2.5))
    assert detect_conflicts(store, MONDAY, FRIDAY, today=TODAY) == []


def test_single_allocation_over_capacity_is_a_conflict():
    store = _store(_alloc("a", "p1", MONDAY, MONDAY, 8))
    conflicts = detect_conflicts(store, MONDAY, MONDAY, today=TODAY)
    assert [c.total_hours for c in conflicts] == [8]


def test_weekends_and_holidays_are_never_conflicts():
    christmas = date(2024, 12, 25)
    store = _store(_alloc("a", "p1", date(2024, 12, 21), christmas, 8))
    conflicts = detect_conflicts(store, date(2024, 12, 21), christmas, today=TODAY)
    assert [c.day for c in conflicts] == [date(2024, 12, 23)]


def test_hourly_staff_are_skipped():
    hourly = Employee("e1", "Hourly", 20, EmploymentType.HOURLY)
    store = _store(_alloc("a", "p1", MONDAY, FRIDAY, 12), employee=hourly)
    assert detect_conflicts(store, MONDAY, FRIDAY, today=TODAY) == []


def test_runs_continue_across_the_weekend():
    store = _store(_alloc("a", "p1", FRIDAY, NEXT_MONDAY, 5), _alloc("b", "p2", FRIDAY, NEXT_MONDAY, 4))
    conflicts = detect_conflicts(store, MONDAY, NEXT_MONDAY, today=TODAY)
    assert [c.day for c in conflicts] == [FRIDAY, NEXT_MONDAY]

    groups = group_conflicts(conflicts)
    assert len(groups) == 1
    group = groups[0]
    assert (group.start, group.end, group.day_count) == (FRIDAY, NEXT_MONDAY, 2)
    # Friday capacity is 7h, so the worst day is 9 / 7
    assert group.severity == pytest.approx(9 / 7)
    assert group.is_high


def test_different_project_sets_are_separate_groups():
    store = _store(
        _alloc("a", "p1", MONDAY, TUESDAY, 5),
        _alloc("b", "p2", MONDAY, MONDAY, 4),
        _alloc("c", "p3", TUESDAY, TUESDAY, 4),
    )
    groups = group_conflicts(detect_conflicts(store, MONDAY, FRIDAY, today=TODAY))
    assert [g.project_ids for g in groups] == [("p1", "p2"), ("p1", "p3")]


def test_gap_day_splits_a_run():
    store = _store(
        _alloc("a", "p1", MONDAY, date(2024, 6, 5), 5),
        _alloc("b", "p2", MONDAY, MONDAY, 4),
        _alloc("c", "p2", date(2024, 6, 5), date(2024, 6, 5), 4),
    )
    groups = group_conflicts(detect_conflicts(store, MONDAY, FRIDAY, today=TODAY))
    assert [(g.start, g.end) for g in groups] == [(MONDAY, MONDAY), (date(2024, 6, 5), date(2024, 6, 5))]


def test_threshold_is_configurable():
    store = _store(_alloc("a", "p1", TUESDAY, TUESDAY, 5), _alloc("b", "p2", TUESDAY, TUESDAY, 4))
    groups = group_conflicts(detect_conflicts(store, MONDAY, FRIDAY, today=TODAY), high_threshold=1.1)
    assert groups[0].is_high


def test_total_hours_allocation_contributes_rollover_rate():
    store = _store(
        Allocation("a", "e1", "p1", MONDAY, FRIDAY, total_hours=30),
        _alloc("b", "p2", MONDAY, FRIDAY, 2),
    )
    conflicts = detect_conflicts(store, MONDAY, FRIDAY, today=TODAY)
    # 6h/day + 2h/day: over 7.5 Mon-Thu and over 7 on Friday
    assert [c.total_hours for c in conflicts] == [8, 8, 8, 8, 8]


def test_conflicts_frame_has_one_row_per_contribution():
    store = _store(_alloc("a", "p1", TUESDAY, TUESDAY, 5), _alloc("b", "p2", TUESDAY, TUESDAY, 4))
    df = conflicts_frame(detect_conflicts(store, MONDAY, FRIDAY, today=TODAY))
    assert len(df) == 2
    assert set(df["allocation_id"]) == {"a", "b"}
    assert df.iloc[0]["severity"] == 1.2


def test_zero_target_employee_has_no_severity_and_is_high():
    store = _store(_alloc("a", "p1", MONDAY, MONDAY, 2), employee=Employee("e1", "Ada", 0))
    (conflict,) = detect_conflicts(store, MONDAY, MONDAY, today=TODAY)
    assert conflict.daily_capacity == 0
    assert conflict.severity is None

    (group,) = group_conflicts([conflict])
    assert group.severity is None
    assert group.is_high
    assert conflicts_frame([conflict]).iloc[0]["severity"] is None
