"""Command-line interface for cohort provisioning."""

from __future__ import annotations

import functools
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click
import gitlab
import requests
from dotenv import load_dotenv

from cohort_provisioner import workflow
from cohort_provisioner.configs import (
    DEFAULT_BRIGHTSPACE_URL,
    DEFAULT_GITLAB_HOST,
    DEFAULT_GROUP_EXPORT_URL,
    BrightspaceConfig,
    GitlabConfig,
    ProjectCreationConfig,
    build_config,
    load_config,
)
from cohort_provisioner.errors import ProvisionerError
from cohort_provisioner.logging import configure_logging

# Failures of global preconditions that end the process with a non-zero exit code
FATAL_ERRORS = (
    ProvisionerError,
    gitlab.exceptions.GitlabError,
    requests.RequestException,
    OSError,
)


def gitlab_options(f: Callable[..., Any]) -> Callable[..., Any]:
    """GitLab host and credential options, backed by environment variables."""
    f = click.option(
        "--token",
        "gitlab_token",
        envvar="GITLAB_TOKEN",
        default="",
        show_envvar=True,
        help="GitLab API token.",
    )(f)
    f = click.option(
        "--user",
        "gitlab_user",
        envvar="GITLAB_USER",
        default="",
        show_envvar=True,
        help="GitLab API user (owner of the token).",
    )(f)
    f = click.option(
        "--host",
        "gitlab_host",
        envvar="GITLAB_HOST",
        default=DEFAULT_GITLAB_HOST,
        hidden=True,
    )(f)
    return f


def brightspace_options(f: Callable[..., Any]) -> Callable[..., Any]:
    """Brightspace location and session cookie options."""
    f = click.option(
        "--group-export-url",
        "brightspace_group_export_url",
        default=DEFAULT_GROUP_EXPORT_URL,
        hidden=True,
    )(f)
    f = click.option(
        "--session-id",
        "brightspace_session_id",
        envvar="BRIGHTSPACE_SESSIONID",
        default="",
        help="Cookie of the Brightspace group export (LTI) session.",
    )(f)
    f = click.option(
        "--cookie",
        "brightspace_cookie",
        envvar="BRIGHTSPACE_COOKIE",
        default="",
        help="Brightspace session cookie.",
    )(f)
    f = click.option(
        "--brightspace-url",
        "brightspace_base_url",
        envvar="BRIGHTSPACE_URL",
        default=DEFAULT_BRIGHTSPACE_URL,
        hidden=True,
    )(f)
    return f


def project_options(f: Callable[..., Any]) -> Callable[..., Any]:
    """Destination group, template, access level and report options of the provisioning commands."""
    f = click.option(
        "--report",
        "report_path",
        type=click.Path(dir_okay=False, path_type=Path),
        help="Write a per-project report (.yaml, .yml or .csv).",
    )(f)
    f = click.option(
        "-a",
        "--access-level",
        type=click.IntRange(min=0),
        default=30,
        show_default=True,
        help="Access level of added users: 10 guest, 20 reporter, 30 developer, 40 maintainer, 50 owner.",
    )(f)
    f = click.option(
        "-t",
        "--template",
        required=True,
        help="Template repository URL to initialize the projects with.",
    )(f)
    f = click.option(
        "-g",
        "--group-id",
        "gitlab_group_id",
        type=int,
        required=True,
        help="GitLab group id under which to create the projects.",
    )(f)
    return f


def _gitlab_config(options: dict[str, Any]) -> GitlabConfig:
    return build_config(
        GitlabConfig,
        host=options["gitlab_host"],
        user=options["gitlab_user"],
        token=options["gitlab_token"],
    )


def _brightspace_config(options: dict[str, Any]) -> BrightspaceConfig:
    return build_config(
        BrightspaceConfig,
        base_url=options["brightspace_base_url"],
        cookie=options["brightspace_cookie"],
        session_id=options["brightspace_session_id"],
        group_export_url=options["brightspace_group_export_url"],
    )


def _project_config(options: dict[str, Any]) -> ProjectCreationConfig:
    return build_config(
        ProjectCreationConfig,
        gitlab_group_id=options["gitlab_group_id"],
        template=options["template"],
        access_level=options["access_level"],
        prefix=options.get("prefix"),
        report_path=options.get("report_path"),
    )


def fatal_errors_as_click_exceptions(f: Callable[..., Any]) -> Callable[..., Any]:
    """Report global failures as a one-line error and a non-zero exit code."""

    @functools.wraps(f)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return f(*args, **kwargs)
        except FATAL_ERRORS as e:
            raise click.ClickException(str(e)) from e

    return wrapper


@click.group()
@click.option("--dry-run", is_flag=True, help="Print what changes would be applied instead of applying them.")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML file with default option values.",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
@fatal_errors_as_click_exceptions
def main(ctx: click.Context, dry_run: bool, config_path: Path | None, verbose: bool) -> None:
    """Bulk-provision GitLab projects for course cohorts."""
    load_dotenv()
    configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["dry_run"] = dry_run

    if config_path is not None:
        ctx.default_map = load_config(config_path).as_default_map(list(main.commands))


@main.command()
@click.argument("group_id", type=int)
@gitlab_options
@fatal_errors_as_click_exceptions
def projects(group_id: int, **options: Any) -> None:
    """List all projects in a group with their SSH clone URL."""
    workflow.print_projects(_gitlab_config(options), group_id)


@main.command()
@click.argument("group_id", type=int)
@click.argument("branch", default="main")
@gitlab_options
@click.pass_context
@fatal_errors_as_click_exceptions
def unprotect(ctx: click.Context, group_id: int, branch: str, **options: Any) -> None:
    """Unprotect BRANCH on all projects within a group."""
    workflow.unprotect_branches(_gitlab_config(options), group_id, branch, ctx.obj["dry_run"])


@main.command()
@click.argument("group_id", type=int)
@gitlab_options
@click.pass_context
@fatal_errors_as_click_exceptions
def unfork(ctx: click.Context, group_id: int, **options: Any) -> None:
    """Remove the fork relation from all projects within a group."""
    workflow.unfork_projects(_gitlab_config(options), group_id, ctx.obj["dry_run"])


@main.command("create-individual-repos")
@click.option("--ou", "course_id", type=int, required=True, help="Brightspace org unit id of the course.")
@click.option("-p", "--prefix", help="Prefix to add to all created projects.")
@project_options
@brightspace_options
@gitlab_options
@click.pass_context
@fatal_errors_as_click_exceptions
def create_individual_repos(ctx: click.Context, course_id: int, **options: Any) -> None:
    """Create a project for every student on a Brightspace classlist."""
    gitlab_config = _gitlab_config(options)
    brightspace_config = _brightspace_config(options)
    project_config = _project_config(options)

    workflow.create_individual_repos(
        gitlab_config,
        brightspace_config,
        project_config,
        course_id,
        dry_run=ctx.obj["dry_run"],
    )


@main.command("create-group-repos")
@click.option("--ou", "course_id", type=int, required=True, help="Brightspace org unit id of the course.")
@click.option("-c", "--category", "category_id", type=int, help="Brightspace group category id.")
@click.option(
    "--groups-csv",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Use a downloaded group export instead of fetching it.",
)
@project_options
@brightspace_options
@gitlab_options
@click.pass_context
@fatal_errors_as_click_exceptions
def create_group_repos(
    ctx: click.Context,
    course_id: int,
    category_id: int | None,
    groups_csv: Path | None,
    **options: Any,
) -> None:
    """Create a project for every Brightspace group, named after the group."""
    gitlab_config = _gitlab_config(options)
    brightspace_config = _brightspace_config(options)
    project_config = _project_config(options)

    workflow.create_group_repos(
        gitlab_config,
        brightspace_config,
        project_config,
        course_id,
        category_id=category_id,
        groups_csv=groups_csv,
        dry_run=ctx.obj["dry_run"],
    )


@main.command("classlist-csv")
@click.argument("course_id", type=int)
@click.option(
    "-f",
    "--file",
    "output_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default="classlist.csv",
    show_default=True,
)
@click.option("--gitbull", is_flag=True, help="Output a gitbull compatible format [netid, email, netid].")
@brightspace_options
@fatal_errors_as_click_exceptions
def classlist_csv(course_id: int, output_file: Path, gitbull: bool, **options: Any) -> None:
    """Write all students of a course to a CSV file."""
    workflow.export_classlist(_brightspace_config(options), course_id, output_file, gitbull)


if __name__ == "__main__":
    main()
