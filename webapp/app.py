from __future__ import annotations

import os
import threading
from datetime import date
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from flask import Flask, jsonify, request

from resource_planner.burndown import build_burndown
from resource_planner.columns import build_columns, group_headers
from resource_planner.conflicts import detect_conflicts, group_conflicts
from resource_planner.errors import NotFoundError, ValidationError
from resource_planner.gateway import InMemoryGateway, PersistenceGateway
from resource_planner.holidays import holidays_in_range
from resource_planner.io_utils import entity_to_dict, load_config, load_snapshot, parse_enum
from resource_planner.models import (
    ActivityStatus,
    AllocationStatus,
    DeadlineIcon,
    MilestoneType,
    PlannerConfig,
    TimeEntry,
    ViewMode,
)
from resource_planner.ranges import parse_iso_date
from resource_planner.rollover import compute_rollover
from resource_planner.store import UNSET, AllocationStore, Mutation

# camelCase request keys -> store keyword arguments
_ACTIVITY_FIELDS = {
    "name": "name",
    "startDate": "start",
    "endDate": "end",
    "status": "status",
    "phaseId": "phase_id",
    "categoryName": "category_name",
    "assignedUserId": "assigned_employee_id",
    "color": "color",
    "note": "note",
    "sortOrder": "sort_order",
}
_MILESTONE_FIELDS = {
    "title": "title",
    "dueDate": "due_date",
    "completed": "completed",
    "type": "type",
    "phaseId": "phase_id",
    "icon": "icon",
    "color": "color",
    "description": "description",
    "sortOrder": "sort_order",
}
_BULK_ACTIONS = ("move", "delete", "updateStatus")


def _body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("invalid_body", "request body must be a JSON object")
    return data


def _required_str(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("missing_field", f"{key} is required")
    return value


def _optional_number(data: Mapping[str, Any], key: str) -> Optional[float]:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError("invalid_field", f"{key} must be a number")
    return float(value)


def _optional_date(data: Mapping[str, Any], key: str) -> Optional[date]:
    value = data.get(key)
    if value is None:
        return None
    return parse_iso_date(value, key)


def _query_window(today: date, cfg: PlannerConfig) -> Tuple[date, date]:
    start = _optional_date(request.args, "start") or cfg.window_start or today
    end = _optional_date(request.args, "end") or cfg.window_end
    if end is None:
        raise ValidationError("missing_field", "end is required")
    if start > end:
        raise ValidationError("invalid_range", "start is after end")
    return start, end


def _query_flag(name: str) -> bool:
    return request.args.get(name, "").strip().lower() in {"1", "true", "yes"}


def _translate_fields(data: Mapping[str, Any], mapping: Mapping[str, str]) -> Dict[str, Any]:
    unknown = sorted(set(data) - set(mapping))
    if unknown:
        raise ValidationError("unknown_field", f"unknown fields: {', '.join(unknown)}")
    fields = {mapping[key]: value for key, value in data.items()}
    for name in ("start", "end", "due_date"):
        if name in fields:
            fields[name] = parse_iso_date(fields[name], name)
    return fields


def _mutation_to_dict(mutation: Mutation) -> Dict[str, Any]:
    return {
        "id": mutation.id,
        "operation": mutation.operation,
        "state": mutation.state.value,
        "error": mutation.error,
        "changes": [
            {
                "entity": change.kind.value,
                "id": change.entity_id,
                "before": None if change.before is None else entity_to_dict(change.before),
                "after": None if change.after is None else entity_to_dict(change.after),
            }
            for change in mutation.changes
        ],
    }


def _resolve_snapshot_path() -> Optional[Path]:
    env_value = os.getenv("PLANNER_SNAPSHOT")
    if env_value:
        return Path(env_value).expanduser().resolve()
    return None


def create_app(
    store: Optional[AllocationStore] = None,
    gateway: Optional[PersistenceGateway] = None,
    config: Optional[PlannerConfig] = None,
    time_entries: Optional[List[TimeEntry]] = None,
) -> Flask:
    app = Flask(__name__)
    if config is None:
        config_path = os.getenv("PLANNER_CONFIG")
        config = load_config(config_path) if config_path else PlannerConfig()
    holidays = config.holidays
    if store is None:
        snapshot_path = _resolve_snapshot_path()
        if snapshot_path is not None:
            snapshot = load_snapshot(snapshot_path)
            store = snapshot.to_store()
            time_entries = list(snapshot.time_entries) if time_entries is None else time_entries
            if snapshot.holidays is not None:
                holidays = snapshot.holidays
        else:
            store = AllocationStore()
    gateway = gateway or InMemoryGateway()
    entries: List[TimeEntry] = list(time_entries or [])
    lock = threading.Lock()
    app.config["PLANNER_STORE"] = store
    app.config["PLANNER_GATEWAY"] = gateway
    app.config["PLANNER_CONFIG"] = config

    @app.errorhandler(ValidationError)
    def _validation_error(exc: ValidationError):
        return jsonify({"error": str(exc), "reason": exc.reason}), 400

    @app.errorhandler(NotFoundError)
    def _not_found(exc: NotFoundError):
        return jsonify({"error": str(exc), "reason": "not_found"}), 404

    @app.errorhandler(ValueError)
    def _bad_request(exc: ValueError):
        return jsonify({"error": str(exc), "reason": "invalid_request"}), 400

    def _apply(operation: Callable[[], Mutation], status: int = 200):
        """Apply locally, then commit; a failed commit keeps the local change."""
        with lock:
            mutation = operation()
            result = store.commit(mutation, gateway)
        payload = _mutation_to_dict(mutation)
        if not result.ok:
            return (
                jsonify(
                    {
                        "error": result.error,
                        "reason": "persistence_failed",
                        "mutationId": mutation.id,
                        "mutation": payload,
                    }
                ),
                502,
            )
        return jsonify({"mutation": payload}), status

    # ------------------------------------------------------------------
    # Allocations

    @app.get("/api/allocations")
    def list_allocations():
        start = _optional_date(request.args, "start")
        end = _optional_date(request.args, "end")
        with lock:
            allocations = store.allocations(
                employee_id=request.args.get("userId"),
                project_id=request.args.get("projectId"),
                start=start,
                end=end,
            )
        return jsonify({"allocations": [entity_to_dict(a) for a in allocations]})

    @app.post("/api/allocations")
    def create_allocation():
        data = _body()
        user_id = _required_str(data, "userId")
        project_id = _required_str(data, "projectId")
        start = parse_iso_date(data.get("startDate"), "startDate")
        end = parse_iso_date(data.get("endDate"), "endDate")
        hours_per_day = _optional_number(data, "hoursPerDay")
        total_hours = _optional_number(data, "totalHours")
        status = parse_enum(AllocationStatus, data.get("status", "confirmed"), "status")
        return _apply(
            lambda: store.create_allocation(
                user_id,
                project_id,
                start,
                end,
                hours_per_day=hours_per_day,
                total_hours=total_hours,
                status=status,
                notes=data.get("notes"),
            ),
            status=201,
        )

    @app.put("/api/allocations/<allocation_id>")
    def update_allocation(allocation_id: str):
        data = _body()
        kwargs: Dict[str, Any] = {
            "start": _optional_date(data, "startDate"),
            "end": _optional_date(data, "endDate"),
            "hours_per_day": _optional_number(data, "hoursPerDay"),
            "total_hours": _optional_number(data, "totalHours"),
            "edit_date": _optional_date(data, "editDate"),
            "notes": data["notes"] if "notes" in data else UNSET,
        }
        if data.get("status") is not None:
            kwargs["status"] = parse_enum(AllocationStatus, data["status"], "status")
        return _apply(lambda: store.update_allocation(allocation_id, **kwargs))

    @app.delete("/api/allocations/<allocation_id>")
    def delete_allocation(allocation_id: str):
        day = _optional_date(request.args, "date")
        redistribute = _query_flag("redistribute")
        return _apply(lambda: store.delete_allocation(allocation_id, day=day, redistribute=redistribute))

    @app.post("/api/allocations/bulk")
    def bulk_allocations():
        data = _body()
        action = data.get("action")
        if action not in _BULK_ACTIONS:
            raise ValidationError("invalid_action", f"action must be one of: {', '.join(_BULK_ACTIONS)}")
        ids = data.get("ids")
        if not isinstance(ids, list) or not all(isinstance(item, str) for item in ids):
            raise ValidationError("missing_ids", "ids must be an array of allocation ids")
        if action == "move":
            offset = data.get("offsetDays")
            if isinstance(offset, bool) or not isinstance(offset, int):
                raise ValidationError("invalid_offset", "offsetDays must be an integer")
            return _apply(lambda: store.bulk_move(ids, offset))
        if action == "delete":
            return _apply(lambda: store.bulk_delete(ids))
        status = parse_enum(AllocationStatus, data.get("status"), "status")
        return _apply(lambda: store.bulk_update_status(ids, status))

    # ------------------------------------------------------------------
    # Project bars, activities and milestones

    @app.put("/api/projects/<project_id>/range")
    def set_project_range(project_id: str):
        data = _body()
        start = parse_iso_date(data.get("startDate"), "startDate")
        end = parse_iso_date(data.get("endDate"), "endDate")
        return _apply(lambda: store.set_project_range(project_id, start, end))

    @app.post("/api/activities")
    def create_activity():
        data = _body()
        project_id = _required_str(data, "projectId")
        name = _required_str(data, "name")
        start = parse_iso_date(data.get("startDate"), "startDate")
        end = parse_iso_date(data.get("endDate"), "endDate")
        status = parse_enum(ActivityStatus, data.get("status", "not_started"), "status")
        return _apply(
            lambda: store.create_activity(
                project_id,
                name,
                start,
                end,
                status=status,
                phase_id=data.get("phaseId"),
                category_name=data.get("categoryName"),
                assigned_employee_id=data.get("assignedUserId"),
                color=data.get("color"),
                note=data.get("note"),
            ),
            status=201,
        )

    @app.put("/api/activities/<activity_id>")
    def update_activity(activity_id: str):
        fields = _translate_fields(_body(), _ACTIVITY_FIELDS)
        if "status" in fields:
            fields["status"] = parse_enum(ActivityStatus, fields["status"], "status")
        return _apply(lambda: store.update_activity(activity_id, **fields))

    @app.delete("/api/activities/<activity_id>")
    def delete_activity(activity_id: str):
        return _apply(lambda: store.delete_activity(activity_id))

    @app.post("/api/milestones")
    def create_milestone():
        data = _body()
        project_id = _required_str(data, "projectId")
        title = _required_str(data, "title")
        due_date = parse_iso_date(data.get("dueDate"), "dueDate")
        milestone_type = parse_enum(MilestoneType, data.get("type", "custom"), "type")
        icon = data.get("icon")
        return _apply(
            lambda: store.create_milestone(
                project_id,
                title,
                due_date,
                type=milestone_type,
                phase_id=data.get("phaseId"),
                icon=None if icon is None else parse_enum(DeadlineIcon, icon, "icon"),
                color=data.get("color"),
                description=data.get("description"),
            ),
            status=201,
        )

    @app.put("/api/milestones/<milestone_id>")
    def update_milestone(milestone_id: str):
        fields = _translate_fields(_body(), _MILESTONE_FIELDS)
        if "type" in fields:
            fields["type"] = parse_enum(MilestoneType, fields["type"], "type")
        if fields.get("icon") is not None:
            fields["icon"] = parse_enum(DeadlineIcon, fields["icon"], "icon")
        return _apply(lambda: store.update_milestone(milestone_id, **fields))

    @app.delete("/api/milestones/<milestone_id>")
    def delete_milestone(milestone_id: str):
        return _apply(lambda: store.delete_milestone(milestone_id))

    @app.post("/api/mutations/<mutation_id>/revert")
    def revert_mutation(mutation_id: str):
        with lock:
            mutation = store.mutation(mutation_id)
            store.revert(mutation)
        return jsonify({"mutation": _mutation_to_dict(mutation)})

    # ------------------------------------------------------------------
    # Derived views

    @app.get("/api/conflicts")
    def conflicts():
        today = config.today()
        start, end = _query_window(today, config)
        with lock:
            found = detect_conflicts(store, start, end, holidays, today, entries)
        groups = group_conflicts(found, config.high_severity_threshold, holidays)
        return jsonify({"conflicts": [entity_to_dict(group) for group in groups]})

    @app.get("/api/columns")
    def columns():
        today = config.today()
        start, end = _query_window(today, config)
        view_mode = parse_enum(ViewMode, request.args.get("view", config.default_view_mode.value), "view")
        built = build_columns(start, end, view_mode, today)
        return jsonify(
            {
                "viewMode": view_mode.value,
                "columns": [entity_to_dict(column) for column in built],
                "groups": [entity_to_dict(header) for header in group_headers(built, view_mode)],
            }
        )

    @app.get("/api/holidays")
    def holidays_view():
        today = config.today()
        start, end = _query_window(today, config)
        return jsonify({"holidays": [entity_to_dict(h) for h in holidays_in_range(start, end, holidays)]})

    @app.get("/api/burndown/<project_id>")
    def burndown(project_id: str):
        with lock:
            project = store.project(project_id)
        series = build_burndown(project, entries)
        if series is None:
            return jsonify({"burndown": None})
        payload = entity_to_dict(series)
        payload["overBudget"] = series.over_budget
        return jsonify({"burndown": payload})

    @app.get("/api/rollover")
    def rollover():
        today = _optional_date(request.args, "today") or config.today()
        with lock:
            allocations = [a for a in store.allocations() if a.is_total_mode]
        return jsonify({"rollover": [entity_to_dict(compute_rollover(a, entries, today)) for a in allocations]})

    return app


if __name__ == "__main__":
    create_app().run(debug=True)
