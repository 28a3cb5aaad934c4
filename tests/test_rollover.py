from datetime import date, timedelta

import pytest

from resource_planner.models import Allocation, TimeEntry
from resource_planner.ranges import is_working_day, iter_days
from resource_planner.rollover import (
    compute_rollover,
    effective_hours_on,
    flat_per_day,
    logged_hours,
    rollover_frame,
)

START = date(2024, 6, 3)
END = date(2024, 6, 14)  # ten working days


def _total_allocation(total=40.0):
    return Allocation("a1", "e1", "p1", START, END, total_hours=total)


def _entries(hours_by_day):
    return [TimeEntry("e1", "p1", day, hours) for day, hours in hours_by_day.items()]


def test_rollover_scenario_spreads_remaining_hours():
    entries = _entries({START + timedelta(days=offset): 4.0 for offset in range(4)})
    today = date(2024, 6, 7)  # day 5 of 10
    rollover = compute_rollover(_total_allocation(), entries, today)
    assert rollover.logged == 16
    assert rollover.remaining == 24
    assert rollover.remaining_working_days == 6
    assert rollover.adjusted_per_day == 4
    assert rollover.flat_per_day == 4


def test_rollover_conserves_total():
    entries = _entries({START: 7.5, START + timedelta(days=1): 2.0, START + timedelta(days=2): 3.25})
    today = date(2024, 6, 6)
    allocation = _total_allocation(37)
    rollover = compute_rollover(allocation, entries, today)
    future = sum(
        effective_hours_on(allocation, day, today, entries)
        for day in iter_days(today, END)
        if is_working_day(day)
    )
    assert rollover.logged + future == pytest.approx(37)
    assert rollover.adjusted_per_day >= 0


def test_overlogged_allocation_has_zero_remaining():
    entries = _entries({START: 30.0, START + timedelta(days=1): 20.0})
    rollover = compute_rollover(_total_allocation(40), entries, date(2024, 6, 5))
    assert rollover.remaining == 0
    assert rollover.adjusted_per_day == 0


def test_finished_allocation_has_no_remaining_days():
    rollover = compute_rollover(_total_allocation(), [], date(2024, 7, 1))
    assert rollover.remaining_working_days == 0
    assert rollover.adjusted_per_day == 0


def test_logged_hours_only_counts_matching_entries_in_range():
    entries = [
        TimeEntry("e1", "p1", START, 3.0),
        TimeEntry("e1", "p2", START, 5.0),
        TimeEntry("e2", "p1", START, 5.0),
        TimeEntry("e1", "p1", START - timedelta(days=1), 5.0),
    ]
    assert logged_hours(_total_allocation(), entries) == 3.0


def test_effective_hours_uses_flat_rate_for_past_days():
    entries = _entries({START: 10.0})
    allocation = _total_allocation(40)
    today = date(2024, 6, 10)
    assert effective_hours_on(allocation, START, today, entries) == flat_per_day(allocation) == 4
    # 30h left over 5 working days from today
    assert effective_hours_on(allocation, today, today, entries) == 6
    assert effective_hours_on(allocation, END + timedelta(days=1), today, entries) == 0


def test_fixed_rate_allocation_is_not_rolled_over():
    allocation = Allocation("a2", "e1", "p1", START, END, hours_per_day=3)
    assert effective_hours_on(allocation, START, date(2024, 6, 10)) == 3
    with pytest.raises(ValueError):
        compute_rollover(allocation, [], START)


def test_rollover_frame_skips_fixed_rate_allocations():
    allocations = [_total_allocation(), Allocation("a2", "e1", "p1", START, END, hours_per_day=3)]
    df = rollover_frame(allocations, [], START)
    assert list(df["allocation_id"]) == ["a1"]
    assert df.iloc[0]["adjusted_per_day"] == 4
