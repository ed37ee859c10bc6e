"""Project provisioning for a sequence of units."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

import gitlab
import structlog
from tqdm import tqdm

from cohort_provisioner.errors import MembershipLookupError, UnitError
from cohort_provisioner.gitlab_queries import create_project_from_template
from cohort_provisioner.membership import grant_membership, resolve_members
from cohort_provisioner.models import (
    ExistingProjectNames,
    Group,
    GroupUnit,
    IndividualUnit,
    MembershipPartition,
    ProvisionUnit,
    RunResult,
    Student,
    UnitFailure,
    UnitOutcome,
    UnitState,
)

logger = structlog.get_logger()


def destination_name(unit: ProvisionUnit, prefix: str | None = None) -> str:
    """Name of the project a unit maps onto: ``"{prefix} - {identifier}"`` or the bare identifier."""
    if prefix:
        return f"{prefix} - {unit.identifier}"
    return unit.identifier


def individual_units(students: Iterable[Student]) -> list[ProvisionUnit]:
    """One unit per student, in roster order."""
    return [IndividualUnit(student=s) for s in students]


def group_units(groups: Iterable[Group]) -> list[ProvisionUnit]:
    """One unit per group, in export order."""
    return [GroupUnit(group=g) for g in groups]


def _record_partition(outcome: UnitOutcome, partition: MembershipPartition) -> None:
    outcome.added = [r.student.netid for r in partition.resolved]
    outcome.invited = [s.netid for s in partition.unresolved]


def _preview_unit(gl: gitlab.Gitlab, unit: ProvisionUnit, outcome: UnitOutcome) -> None:
    """Annotate a dry-run preview with the membership split, using read-only lookups."""
    outcome.state = UnitState.DRY_RUN_PREVIEWED
    try:
        partition = resolve_members(gl, unit.members)
    except MembershipLookupError as e:
        logger.warning("dry_run_lookup_failed", unit=outcome.name, error=str(e))
        outcome.warnings.append(f"account lookup failed: {e}")
        return
    _record_partition(outcome, partition)


def _provision_unit(
    gl: gitlab.Gitlab,
    unit: ProvisionUnit,
    outcome: UnitOutcome,
    namespace_id: int,
    template_url: str,
    access_level: int,
) -> None:
    """Create the project of one unit and grant its members access.

    Raises:
        UnitError: If creation, lookup or granting fails. ``outcome.state``
            tells how far the unit got.
    """
    outcome.project_id = create_project_from_template(gl, namespace_id, outcome.name, template_url)
    outcome.state = UnitState.CREATED
    logger.info("project_created", unit=outcome.name, project_id=outcome.project_id)

    try:
        partition = resolve_members(gl, unit.members)
        _record_partition(outcome, partition)
        outcome.state = UnitState.MEMBERS_RESOLVED

        outcome.warnings.extend(grant_membership(gl, outcome.project_id, partition, access_level))
        outcome.state = UnitState.MEMBERS_GRANTED
    except UnitError:
        outcome.state = UnitState.MEMBERSHIP_ERROR
        raise


def provision_units(
    gl: gitlab.Gitlab,
    units: Sequence[ProvisionUnit],
    existing: ExistingProjectNames,
    namespace_id: int,
    template_url: str,
    access_level: int,
    prefix: str | None = None,
    dry_run: bool = False,
) -> RunResult:
    """Provision one project per unit, skipping units that already have one.

    Units are processed strictly one after another. An error in one unit is
    recorded and the run continues with the next unit.

    Args:
        gl: GitLab client.
        units: Units in roster order.
        existing: Snapshot of project names already in the namespace.
        namespace_id: Destination group id.
        template_url: Template repository URL to import from.
        access_level: Access level granted to members.
        prefix: Optional project name prefix.
        dry_run: Record what would be created instead of creating it.

    Returns:
        Counters, per-unit outcomes, errors and (in dry-run) previews.
    """
    result = RunResult(dry_run=dry_run)
    claimed: set[str] = set()

    for unit in tqdm(units, desc="Provisioning projects", unit="project"):
        name = destination_name(unit, prefix)
        outcome = UnitOutcome(name=name)
        result.outcomes.append(outcome)

        if name in existing or name in claimed:
            outcome.state = UnitState.SKIPPED
            result.skipped += 1
            logger.debug("unit_skipped", unit=name)
            continue
        claimed.add(name)

        if dry_run:
            _preview_unit(gl, unit, outcome)
            result.previews.append(outcome)
            result.created += 1
            continue

        try:
            _provision_unit(gl, unit, outcome, namespace_id, template_url, access_level)
        except UnitError as e:
            outcome.error = str(e)
            outcome.state = UnitState.FAILED
            result.errors.append(UnitFailure(name=name, kind=type(e).__name__, message=str(e)))
            logger.error("unit_failed", unit=name, error_kind=type(e).__name__, error=str(e))
            continue

        outcome.state = UnitState.DONE
        result.created += 1

    return result
