"""Run summaries, dry-run previews and report files in YAML and CSV formats."""

from __future__ import annotations

import csv
from pathlib import Path

import yaml

from cohort_provisioner.models import RunResult, UnitOutcome
from cohort_provisioner.types import UnitReport


def _unit_report(outcome: UnitOutcome) -> UnitReport:
    return UnitReport(
        name=outcome.name,
        state=str(outcome.state),
        project_id=outcome.project_id,
        added=sorted(outcome.added),
        invited=sorted(outcome.invited),
        warnings=list(outcome.warnings),
        error=outcome.error,
    )


def build_report(result: RunResult) -> list[UnitReport]:
    """Flatten the outcomes of a run into report rows."""
    return [_unit_report(o) for o in result.outcomes]


def format_preview(outcome: UnitOutcome) -> str:
    """Render one dry-run preview line with its membership split and warnings."""
    line = f"  {outcome.name}"
    members = []
    if outcome.added:
        members.append(f"add: {', '.join(outcome.added)}")
    if outcome.invited:
        members.append(f"invite: {', '.join(outcome.invited)}")
    if members:
        line += f" ({'; '.join(members)})"
    for warning in outcome.warnings:
        line += f"\n    warning: {warning}"
    return line


def print_dry_run_preview(result: RunResult) -> None:
    """Print the number of projects a dry run would create and list them."""
    print(f"Dry run: would have created {len(result.previews)} project(s).")
    for outcome in result.previews:
        print(format_preview(outcome))


def print_summary(result: RunResult) -> None:
    """Print the counters of a run followed by every unit error."""
    if result.dry_run:
        print_dry_run_preview(result)
        print(f"Skipped {result.skipped} unit(s) that already have a project.")
    else:
        print(f"Created {result.created} projects successfully, skipped {result.skipped}.")

    for outcome in result.outcomes:
        if outcome.error is None and outcome.warnings and not result.dry_run:
            print(f"Warning for {outcome.name}: {'; '.join(outcome.warnings)}")

    if result.errors:
        print(f"{len(result.errors)} unit(s) failed:")
        for failure in result.errors:
            print(f"  {failure.name}: [{failure.kind}] {failure.message}")


def _save_report_as_yaml(report: list[UnitReport], report_path: Path) -> None:
    """Save run report to YAML file.

    Args:
        report: Run report entries.
        report_path: Path to save the report.

    Raises:
        OSError: If report cannot be written.
    """
    with open(report_path, "w") as f:
        yaml.safe_dump(report, f, default_flow_style=False, sort_keys=False)
    print(f"Wrote run report to {report_path} (YAML format)")


def _save_report_as_csv(report: list[UnitReport], report_path: Path) -> None:
    """Save run report to CSV file.

    Args:
        report: Run report entries.
        report_path: Path to save the report.

    Raises:
        OSError: If report cannot be written.
    """
    with open(report_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)

        writer.writerow(
            [
                "Project Name",
                "State",
                "Project ID",
                "Added Members",
                "Invited Members",
                "Warnings",
                "Error",
            ]
        )

        for entry in report:
            writer.writerow(
                [
                    entry["name"],
                    entry["state"],
                    "" if entry["project_id"] is None else entry["project_id"],
                    ", ".join(entry["added"]),
                    ", ".join(entry["invited"]),
                    "; ".join(entry["warnings"]),
                    entry["error"] or "",
                ]
            )

    print(f"Wrote run report to {report_path} (CSV format)")


def save_report(result: RunResult, report_path: Path) -> None:
    """Save run report to file (YAML or CSV based on extension).

    Args:
        result: Outcome of a provisioning run.
        report_path: Path to save the report.

    Raises:
        OSError: If report cannot be written.
        ValueError: If file extension is not supported.
    """
    suffix = report_path.suffix.lower()
    report = build_report(result)

    if suffix in [".yaml", ".yml"]:
        _save_report_as_yaml(report, report_path)
    elif suffix == ".csv":
        _save_report_as_csv(report, report_path)
    else:
        raise ValueError(f"Unsupported report file extension: {suffix}. Supported formats: .yaml, .yml, .csv")
