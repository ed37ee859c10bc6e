"""High-level workflow orchestration for the CLI commands."""

from __future__ import annotations

from pathlib import Path

import gitlab
import structlog
from tqdm import tqdm

from cohort_provisioner.brightspace import get_groups, get_students, load_groups_csv
from cohort_provisioner.configs import (
    BrightspaceConfig,
    GitlabConfig,
    ProjectCreationConfig,
    authenticate_template_url,
)
from cohort_provisioner.csv_utils import write_students_csv
from cohort_provisioner.errors import ConfigurationError
from cohort_provisioner.gitlab_queries import (
    get_client,
    get_existing_project_names,
    list_projects,
    unfork_project,
    unprotect_branch,
)
from cohort_provisioner.models import ProvisionUnit, RunResult
from cohort_provisioner.provisioner import group_units, individual_units, provision_units
from cohort_provisioner.reporting import print_summary, save_report

logger = structlog.get_logger()


def _gitlab_client(config: GitlabConfig) -> gitlab.Gitlab:
    return get_client(config.host, config.token)


def print_projects(gitlab_config: GitlabConfig, group_id: int) -> int:
    """Print every project of a group with its SSH clone URL.

    Returns:
        Number of projects listed.
    """
    projects = list_projects(_gitlab_client(gitlab_config), group_id)
    for project in projects:
        name = project["name"].replace(" ", "-").lower()
        print(f"{name} {project['ssh_url_to_repo']}")
    return len(projects)


def unprotect_branches(gitlab_config: GitlabConfig, group_id: int, branch: str, dry_run: bool = False) -> int:
    """Unprotect ``branch`` on every project of a group.

    Returns:
        Number of projects on which the branch was protected.
    """
    gl = _gitlab_client(gitlab_config)
    n = 0
    for project in tqdm(list_projects(gl, group_id), desc="Unprotecting", unit="project"):
        if unprotect_branch(gl, project, branch, dry_run):
            n += 1
    print(f"Unprotected {branch} on {n} projects successfully")
    return n


def unfork_projects(gitlab_config: GitlabConfig, group_id: int, dry_run: bool = False) -> int:
    """Remove fork relations from every project of a group.

    Returns:
        Number of projects that were forks.
    """
    gl = _gitlab_client(gitlab_config)
    n = 0
    for project in tqdm(list_projects(gl, group_id), desc="Unforking", unit="project"):
        if unfork_project(gl, project, dry_run):
            n += 1
    print(f"Removed fork relation from {n} projects")
    return n


def export_classlist(
    brightspace_config: BrightspaceConfig,
    course_id: int,
    output_file: Path,
    gitbull: bool = False,
) -> int:
    """Write the student roster of a course to CSV.

    Returns:
        Number of students written.
    """
    students = get_students(brightspace_config.base_url, brightspace_config.cookie, course_id)
    count = write_students_csv(output_file, students, gitbull=gitbull)
    print(f"Wrote {count} students to {output_file}")
    return count


def _run_provisioning(
    gitlab_config: GitlabConfig,
    project_config: ProjectCreationConfig,
    units: list[ProvisionUnit],
    dry_run: bool,
) -> RunResult:
    gl = _gitlab_client(gitlab_config)
    template_url = authenticate_template_url(
        project_config.template,
        gitlab_config.host,
        gitlab_config.user,
        gitlab_config.token,
    )
    existing = get_existing_project_names(gl, project_config.gitlab_group_id)

    result = provision_units(
        gl,
        units,
        existing,
        namespace_id=project_config.gitlab_group_id,
        template_url=template_url,
        access_level=project_config.access_level,
        prefix=project_config.prefix,
        dry_run=dry_run,
    )
    logger.info(
        "provisioning_finished",
        created=result.created,
        skipped=result.skipped,
        failed=len(result.errors),
        dry_run=dry_run,
    )

    print_summary(result)
    if project_config.report_path:
        save_report(result, project_config.report_path)
    return result


def create_individual_repos(
    gitlab_config: GitlabConfig,
    brightspace_config: BrightspaceConfig,
    project_config: ProjectCreationConfig,
    course_id: int,
    dry_run: bool = False,
) -> RunResult:
    """Create one project per student of a course.

    Raises:
        RosterError: If the classlist cannot be turned into a roster.
        requests.RequestException: If the classlist cannot be fetched.
        gitlab.exceptions.GitlabError: If the existing projects cannot be listed.
    """
    students = get_students(brightspace_config.base_url, brightspace_config.cookie, course_id)
    print(f"Loaded {len(students)} student(s) from course {course_id}")

    return _run_provisioning(
        gitlab_config,
        project_config,
        individual_units(students),
        dry_run,
    )


def create_group_repos(
    gitlab_config: GitlabConfig,
    brightspace_config: BrightspaceConfig,
    project_config: ProjectCreationConfig,
    course_id: int,
    category_id: int | None = None,
    groups_csv: Path | None = None,
    dry_run: bool = False,
) -> RunResult:
    """Create one project per group, named after the group.

    Groups come from the group export of ``category_id`` or from a downloaded
    export file ``groups_csv``; members are validated against the classlist
    of ``course_id``.

    Raises:
        RosterError: If a group member is not on the classlist.
        requests.RequestException: If Brightspace cannot be reached.
        gitlab.exceptions.GitlabError: If the existing projects cannot be listed.
    """
    if category_id is None and groups_csv is None:
        raise ConfigurationError("either a group category id or a groups CSV file is required")

    students = get_students(brightspace_config.base_url, brightspace_config.cookie, course_id)

    if groups_csv is not None:
        groups = load_groups_csv(groups_csv, students)
    else:
        groups = get_groups(brightspace_config.group_export_url, brightspace_config.session_id, category_id, students)
    print(f"Loaded {len(groups)} group(s) with {sum(len(g.members) for g in groups.values())} member(s)")

    return _run_provisioning(
        gitlab_config,
        project_config,
        group_units(groups.values()),
        dry_run,
    )
