"""GitLab API query utilities for projects, users and memberships."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

import gitlab
import requests
import structlog

from cohort_provisioner.errors import MembershipGrantError, MembershipLookupError, ProvisionError
from cohort_provisioner.models import ExistingProjectNames
from cohort_provisioner.types import InviteResponse, ProjectInfo

logger = structlog.get_logger()

# Errors raised by python-gitlab, or by requests underneath it
GITLAB_CALL_ERRORS = (gitlab.exceptions.GitlabError, requests.RequestException)

HTTP_NOT_MODIFIED = 304


def get_client(host: str, token: str) -> gitlab.Gitlab:
    """Create a GitLab client for ``host`` (bare hostname or full URL)."""
    url = host if "://" in host else f"https://{host}"
    return gitlab.Gitlab(url, private_token=token)


def list_projects(gl: gitlab.Gitlab, group_id: int) -> list[ProjectInfo]:
    """List every non-archived project in a group, across all pages.

    Args:
        gl: GitLab client.
        group_id: Namespace (group) id.

    Returns:
        Id, name and SSH clone URL of each project.

    Raises:
        gitlab.exceptions.GitlabListError: If the listing fails.
    """
    group = gl.groups.get(group_id, lazy=True)
    projects = group.projects.list(archived=False, get_all=True)
    return [ProjectInfo(id=p.id, name=p.name, ssh_url_to_repo=p.ssh_url_to_repo) for p in projects]


def get_existing_project_names(gl: gitlab.Gitlab, group_id: int) -> ExistingProjectNames:
    """Snapshot the names of the projects already present in a group.

    Args:
        gl: GitLab client.
        group_id: Destination namespace id.

    Returns:
        Exact, case-sensitive set of project names.
    """
    names = frozenset(p["name"] for p in list_projects(gl, group_id))
    logger.info("existing_projects_indexed", group_id=group_id, count=len(names))
    return names


def create_project_from_template(
    gl: gitlab.Gitlab,
    namespace_id: int,
    name: str,
    template_url: str,
) -> int:
    """Create a private project imported from a template repository.

    Args:
        gl: GitLab client.
        namespace_id: Parent group id.
        name: Project name.
        template_url: Clone URL of the template (may embed credentials).

    Returns:
        The id of the new project.

    Raises:
        ProvisionError: If GitLab rejects the request.
    """
    try:
        project = gl.projects.create(
            {
                "name": name,
                "namespace_id": namespace_id,
                "import_url": template_url,
                "visibility": "private",
                "emails_disabled": True,
            }
        )
    except GITLAB_CALL_ERRORS as e:
        raise ProvisionError(f"failed creating project '{name}': {e}") from e
    return project.id


def find_account(gl: gitlab.Gitlab, *, username: str | None = None, search: str | None = None) -> int | None:
    """Find a GitLab account by exact username or by free-text search.

    Args:
        gl: GitLab client.
        username: Exact username to match.
        search: Free-text query, e.g. an email address.

    Returns:
        Id of the first matching account, or None.

    Raises:
        MembershipLookupError: If the query fails.
        ValueError: If neither or both of ``username`` and ``search`` are given.
    """
    if (username is None) == (search is None):
        raise ValueError("exactly one of username or search is required")

    query = {"username": username} if username is not None else {"search": search}
    try:
        users = gl.users.list(get_all=False, **query)
    except GITLAB_CALL_ERRORS as e:
        raise MembershipLookupError(f"user query {query} failed: {e}") from e
    return users[0].id if users else None


def add_members(gl: gitlab.Gitlab, project_id: int, account_ids: Sequence[int], access_level: int) -> None:
    """Add existing accounts to a project in one call.

    Raises:
        MembershipGrantError: If the request fails.
    """
    if not account_ids:
        return
    try:
        gl.http_post(
            f"/projects/{project_id}/members",
            post_data={
                "user_id": ",".join(str(i) for i in account_ids),
                "access_level": access_level,
            },
        )
    except GITLAB_CALL_ERRORS as e:
        raise MembershipGrantError(f"adding members to project {project_id} failed: {e}") from e


def invite_by_email(
    gl: gitlab.Gitlab,
    project_id: int,
    emails: Sequence[str],
    access_level: int,
) -> InviteResponse:
    """Invite people to a project by email in one call.

    See https://docs.gitlab.com/ee/api/invitations.html

    Args:
        gl: GitLab client.
        project_id: Target project.
        emails: Addresses to invite.
        access_level: Numeric access level.

    Returns:
        The response envelope. Its ``status`` is not checked here.

    Raises:
        MembershipGrantError: If the request fails at the HTTP level or the
            body is not an envelope.
    """
    try:
        body = gl.http_post(
            f"/projects/{project_id}/invitations",
            post_data={"email": ",".join(emails), "access_level": access_level},
        )
    except GITLAB_CALL_ERRORS as e:
        raise MembershipGrantError(f"inviting to project {project_id} failed: {e}") from e

    if not isinstance(body, dict) or "status" not in body:
        raise MembershipGrantError(f"invite server error for project {project_id}: {body!r}")

    # Request-level errors carry a plain string instead of a per-email mapping
    message = body.get("message") or {}
    if not isinstance(message, Mapping):
        message = {"error": str(message)}
    return InviteResponse(status=str(body["status"]), message=dict(message))


def unprotect_branch(gl: gitlab.Gitlab, project: ProjectInfo, branch: str, dry_run: bool = False) -> bool:
    """Unprotect ``branch`` on a project if it is protected.

    Returns:
        True if the branch was protected (and, outside dry-run, is now unprotected).
    """
    api_project = gl.projects.get(project["id"], lazy=True)
    protected = api_project.protectedbranches.list(get_all=True)
    if not any(b.name == branch for b in protected):
        return False

    if dry_run:
        print(f"Dry Run: unprotected {branch} on {project['name']}")
    else:
        api_project.protectedbranches.delete(branch)
    return True


def unfork_project(gl: gitlab.Gitlab, project: ProjectInfo, dry_run: bool = False) -> bool:
    """Remove the fork relation of a project.

    Returns:
        False if the project was not a fork, True otherwise.
    """
    if dry_run:
        print(f"Dry Run: unforking project {project['name']}")
        return True

    api_project = gl.projects.get(project["id"], lazy=True)
    try:
        api_project.delete_fork_relation()
    except gitlab.exceptions.GitlabDeleteError as e:
        if e.response_code == HTTP_NOT_MODIFIED:
            return False
        raise
    return True
