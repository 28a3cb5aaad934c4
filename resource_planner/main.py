from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from datetime import date, timedelta
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import pandas as pd

from .burndown import build_burndown, burndown_frame, utilization_frame
from .conflicts import ConflictGroup, conflicts_frame, detect_conflicts, group_conflicts
from .io_utils import ensure_directory, load_config, load_snapshot, load_time_entries, write_csv
from .models import HolidayConfig, PlannerConfig
from .ranges import format_iso_date, parse_iso_date
from .rollover import rollover_frame
from .store import AllocationStore

logger = logging.getLogger(__name__)

# Window used when neither the arguments nor the config give one.
DEFAULT_WINDOW_DAYS = 28


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Resource planner report tool: conflicts, rollover, burndown and utilization."
    )
    parser.add_argument("--snapshot", required=True, help="Path to the planner JSON snapshot")
    parser.add_argument("--config", help="Path to configuration JSON file")
    parser.add_argument("--time-entries", help="CSV of logged time (adds to the snapshot's entries)")
    parser.add_argument(
        "--outdir",
        default="out",
        help="Output directory for generated CSV files (default: ./out)",
    )
    parser.add_argument("--start", help="First day of the report window (YYYY-MM-DD)")
    parser.add_argument("--end", help="Last day of the report window (YYYY-MM-DD)")
    parser.add_argument("--today", help="Override today's date for rollover (YYYY-MM-DD)")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Compute and print a summary without writing output files",
    )
    return parser.parse_args(argv)


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(levelname)s %(message)s")


def _resolve_window(args: argparse.Namespace, cfg: PlannerConfig, today: date) -> Tuple[date, date]:
    start = parse_iso_date(args.start, "--start") if args.start else cfg.window_start or today
    if args.end:
        end = parse_iso_date(args.end, "--end")
    elif cfg.window_end is not None:
        end = cfg.window_end
    else:
        end = start + timedelta(days=DEFAULT_WINDOW_DAYS - 1)
    if end < start:
        raise ValueError(f"report window ends ({end}) before it starts ({start})")
    return start, end


def _project_names(store: AllocationStore, project_ids: Sequence[str]) -> str:
    names = []
    for project_id in project_ids:
        try:
            names.append(store.project(project_id).name)
        except KeyError:
            names.append(project_id)
    return ", ".join(names)


def _describe_group(store: AllocationStore, group: ConflictGroup) -> str:
    employee = store.employee(group.employee_id)
    if group.start == group.end:
        span = format_iso_date(group.start)
    else:
        span = f"{format_iso_date(group.start)} → {format_iso_date(group.end)}"
    return (
        f"{employee.name}: {span} ({group.day_count} day{'s' if group.day_count != 1 else ''}), "
        f"{group.total_hours:g}h of {group.daily_capacity:g}h on {_project_names(store, group.project_ids)}"
    )


def _format_severity(group: ConflictGroup) -> str:
    return "no capacity" if group.severity is None else f"{group.severity:.2f}"


def _print_dry_run_summary(
    store: AllocationStore, groups: List[ConflictGroup], rollover_df: pd.DataFrame, window: Tuple[date, date]
) -> None:
    print(f"Window: {format_iso_date(window[0])} → {format_iso_date(window[1])}")
    if not groups:
        print("Conflicts: none")
    else:
        print("Conflicts:")
        for group in groups:
            marker = "!!" if group.is_high else "-"
            print(f"{marker} {_describe_group(store, group)} (severity {_format_severity(group)})")
    if rollover_df.empty:
        print("\nTotal-hours allocations: none")
    else:
        print("\nTotal-hours allocations:")
        for row in rollover_df.itertuples(index=False):
            print(
                f"- {row.allocation_id}: {row.logged:g}h logged, {row.remaining:g}h left over "
                f"{row.remaining_working_days} day(s) → {row.adjusted_per_day:g}h/day"
            )


def _write_conflicts_markdown(store: AllocationStore, groups: List[ConflictGroup], outdir: Path) -> Path:
    path = outdir / "conflicts.md"
    lines: List[str] = ["# Scheduling Conflicts", ""]
    if not groups:
        lines.append("No employee is allocated above capacity.")
    else:
        for group in groups:
            employee = store.employee(group.employee_id)
            severity_label = "high" if group.is_high else "normal"
            lines.append(f"- **{employee.name}**: {format_iso_date(group.start)} – {format_iso_date(group.end)}")
            lines.append(f"  - Projects: {_project_names(store, group.project_ids)}")
            lines.append(f"  - Hours: {group.total_hours:g} of {group.daily_capacity:g} per day")
            lines.append(f"  - Severity: {_format_severity(group)} ({severity_label})")
            lines.append("")
    path.write_text("\n".join(lines).strip() + "\n")
    return path


def run(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)
    try:
        snapshot = load_snapshot(args.snapshot)
        cfg = load_config(args.config) if args.config else PlannerConfig()
        if args.today:
            cfg = replace(cfg, reference_date=parse_iso_date(args.today, "--today"))
        time_entries = list(snapshot.time_entries)
        if args.time_entries:
            time_entries.extend(load_time_entries(args.time_entries))
        today = cfg.today()
        window = _resolve_window(args, cfg, today)
    except (ValueError, OSError) as exc:
        print(str(exc), file=sys.stderr)
        return 2

    _configure_logging(cfg.logging_level)
    holidays: HolidayConfig = snapshot.holidays if snapshot.holidays is not None else cfg.holidays
    store = snapshot.to_store()
    start, end = window

    conflicts = detect_conflicts(store, start, end, holidays, today, time_entries)
    groups = group_conflicts(conflicts, cfg.high_severity_threshold, holidays)
    rollover_df = rollover_frame(store.allocations(start=start, end=end), time_entries, today)
    logger.info("found %d conflicting day(s) in %d group(s)", len(conflicts), len(groups))

    if args.dry_run:
        _print_dry_run_summary(store, groups, rollover_df, window)
        return 0

    burndown_frames = []
    for project in store.projects():
        series = build_burndown(project, time_entries)
        if series is None:
            logger.debug("no burndown for %s: budget or dates missing", project.id)
            continue
        burndown_frames.append(burndown_frame(series))
    burndown_df = (
        pd.concat(burndown_frames, ignore_index=True)
        if burndown_frames
        else pd.DataFrame(columns=["project_id", "week_start", "planned_cumulative", "actual_cumulative"])
    )

    outdir_path = ensure_directory(args.outdir)
    outputs = {
        "conflicts.csv": conflicts_frame(conflicts),
        "rollover.csv": rollover_df,
        "burndown.csv": burndown_df,
        "utilization.csv": utilization_frame(store, start, end, holidays, time_entries, today),
    }
    for name, df in outputs.items():
        write_csv(df, outdir_path / name)
        print(f"Wrote {outdir_path / name}")
    markdown_path = _write_conflicts_markdown(store, groups, outdir_path)
    print(f"Wrote {markdown_path}")
    return 0


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
