import csv
from pathlib import Path

import pytest
import yaml

from cohort_provisioner.models import RunResult, UnitFailure, UnitOutcome, UnitState
from cohort_provisioner.reporting import build_report, print_summary, save_report


@pytest.fixture
def result():
    return RunResult(
        created=1,
        skipped=1,
        errors=[UnitFailure(name="OOP - bob", kind="ProvisionError", message="name taken")],
        outcomes=[
            UnitOutcome(
                name="OOP - alice",
                state=UnitState.DONE,
                project_id=101,
                added=["alice"],
                warnings=["invite status 'error'"],
            ),
            UnitOutcome(name="OOP - bob", state=UnitState.FAILED, error="name taken"),
            UnitOutcome(name="OOP - carol", state=UnitState.SKIPPED),
        ],
    )


def test_build_report(result):
    report = build_report(result)

    assert report[0] == {
        "name": "OOP - alice",
        "state": "done",
        "project_id": 101,
        "added": ["alice"],
        "invited": [],
        "warnings": ["invite status 'error'"],
        "error": None,
    }
    assert [r["state"] for r in report] == ["done", "failed", "skipped"]


def test_save_report_yaml(tmp_path, result):
    path = tmp_path / "report.yaml"

    save_report(result, path)

    data = yaml.safe_load(path.read_text())
    assert [entry["name"] for entry in data] == ["OOP - alice", "OOP - bob", "OOP - carol"]
    assert data[1]["error"] == "name taken"


def test_save_report_csv(tmp_path, result):
    path = tmp_path / "report.csv"

    save_report(result, path)

    with open(path, newline="", encoding="utf-8") as f:
        rows = list(csv.DictReader(f))
    assert rows[0]["Project ID"] == "101"
    assert rows[0]["Added Members"] == "alice"
    assert rows[2]["State"] == "skipped"
    assert rows[2]["Project ID"] == ""


def test_save_report_unsupported_extension(result):
    with pytest.raises(ValueError):
        save_report(result, Path("report.json"))


def test_print_summary(capsys, result):
    print_summary(result)

    out = capsys.readouterr().out
    assert "Created 1 projects successfully, skipped 1." in out
    assert "Warning for OOP - alice" in out
    assert "1 unit(s) failed:" in out
    assert "OOP - bob: [ProvisionError] name taken" in out


def test_print_summary_dry_run(capsys):
    preview = UnitOutcome(name="OOP - alice", state=UnitState.DRY_RUN_PREVIEWED, added=["alice"], invited=["bob"])
    result = RunResult(dry_run=True, created=1, skipped=2, outcomes=[preview], previews=[preview])

    print_summary(result)

    out = capsys.readouterr().out
    assert "Dry run: would have created 1 project(s)." in out
    assert "OOP - alice (add: alice; invite: bob)" in out
    assert "Skipped 2 unit(s)" in out
    assert "Created" not in out
