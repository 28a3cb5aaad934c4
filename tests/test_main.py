import json

import pandas as pd

from resource_planner.main import run


def _write_inputs(tmp_path):
    snapshot = {
        "employees": [{"id": "e1", "name": "Ada", "weeklyTarget": 37}],
        "projects": [
            {"id": "p1", "name": "Alpha", "budgetHours": 40, "startDate": "2024-06-03", "endDate": "2024-06-14"},
            {"id": "p2", "name": "Beta"},
        ],
        "allocations": [
            {"id": "a1", "userId": "e1", "projectId": "p1", "startDate": "2024-06-03",
             "endDate": "2024-06-14", "totalHours": 40},
            {"id": "a2", "userId": "e1", "projectId": "p2", "startDate": "2024-06-04",
             "endDate": "2024-06-04", "hoursPerDay": 6},
        ],
        "timeEntries": [{"userId": "e1", "projectId": "p1", "date": "2024-06-03", "hours": 4}],
    }
    snapshot_path = tmp_path / "snapshot.json"
    snapshot_path.write_text(json.dumps(snapshot))
    config_path = tmp_path / "config.json"
    config_path.write_text(json.dumps({"logging_level": "WARNING", "reference_date": "2024-06-04"}))
    return snapshot_path, config_path


def test_run_writes_reports(tmp_path):
    snapshot_path, config_path = _write_inputs(tmp_path)
    outdir = tmp_path / "out"
    code = run([
        "--snapshot", str(snapshot_path),
        "--config", str(config_path),
        "--start", "2024-06-03",
        "--end", "2024-06-14",
        "--outdir", str(outdir),
    ])
    assert code == 0
    for name in ("conflicts.csv", "rollover.csv", "burndown.csv", "utilization.csv", "conflicts.md"):
        assert (outdir / name).exists()
    conflicts = pd.read_csv(outdir / "conflicts.csv")
    assert set(conflicts["date"]) == {"2024-06-04"}
    rollover = pd.read_csv(outdir / "rollover.csv")
    # 36h left over the nine working days from 2024-06-04
    assert rollover.iloc[0]["adjusted_per_day"] == 4
    assert "Ada" in (outdir / "conflicts.md").read_text()


def test_dry_run_prints_summary(tmp_path, capsys):
    snapshot_path, config_path = _write_inputs(tmp_path)
    code = run([
        "--snapshot", str(snapshot_path),
        "--config", str(config_path),
        "--start", "2024-06-03",
        "--end", "2024-06-07",
        "--outdir", str(tmp_path / "out"),
        "--dry-run",
    ])
    assert code == 0
    out = capsys.readouterr().out
    assert "Conflicts:" in out
    assert "Ada" in out
    assert not (tmp_path / "out").exists()


def test_bad_input_exits_with_2(tmp_path, capsys):
    snapshot_path, _ = _write_inputs(tmp_path)
    assert run(["--snapshot", str(snapshot_path), "--start", "2024-06-10", "--end", "2024-06-01"]) == 2
    assert run(["--snapshot", str(tmp_path / "missing.json")]) == 2
    assert "before it starts" in capsys.readouterr().err
