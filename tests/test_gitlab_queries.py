from unittest.mock import MagicMock

import gitlab
import pytest
import requests

from cohort_provisioner import gitlab_queries
from cohort_provisioner.errors import MembershipGrantError, MembershipLookupError, ProvisionError


def _named(name, **attrs):
    mock = MagicMock(**attrs)
    mock.name = name
    return mock


def _project(id, name):
    return _named(name, id=id, ssh_url_to_repo=f"git@gitlab:{name}.git")


def test_get_client_adds_scheme():
    gl = gitlab_queries.get_client("gitlab.example.org", "secret")
    assert gl.url == "https://gitlab.example.org"
    assert gl.private_token == "secret"


def test_get_client_keeps_full_url():
    gl = gitlab_queries.get_client("http://localhost:8080", "secret")
    assert gl.url == "http://localhost:8080"


def test_list_projects_fetches_all_non_archived_pages(gl):
    group = gl.groups.get.return_value
    group.projects.list.return_value = [_project(1, "OOP - alice"), _project(2, "OOP - bob")]

    projects = gitlab_queries.list_projects(gl, 55)

    gl.groups.get.assert_called_once_with(55, lazy=True)
    group.projects.list.assert_called_once_with(archived=False, get_all=True)
    assert projects == [
        {"id": 1, "name": "OOP - alice", "ssh_url_to_repo": "git@gitlab:OOP - alice.git"},
        {"id": 2, "name": "OOP - bob", "ssh_url_to_repo": "git@gitlab:OOP - bob.git"},
    ]


def test_get_existing_project_names_is_exact_frozenset(gl):
    gl.groups.get.return_value.projects.list.return_value = [_project(1, "Team A"), _project(2, "team a")]

    names = gitlab_queries.get_existing_project_names(gl, 55)

    assert names == frozenset({"Team A", "team a"})
    assert isinstance(names, frozenset)


def test_create_project_from_template(gl):
    project_id = gitlab_queries.create_project_from_template(gl, 55, "OOP - alice", "https://gitlab/t.git")

    assert project_id == 101
    gl.projects.create.assert_called_once_with(
        {
            "name": "OOP - alice",
            "namespace_id": 55,
            "import_url": "https://gitlab/t.git",
            "visibility": "private",
            "emails_disabled": True,
        }
    )


def test_create_project_from_template_failure(gl):
    gl.projects.create.side_effect = gitlab.exceptions.GitlabCreateError("name taken", response_code=400)

    with pytest.raises(ProvisionError) as err:
        gitlab_queries.create_project_from_template(gl, 55, "OOP - alice", "https://gitlab/t.git")
    assert "OOP - alice" in str(err.value)


def test_find_account_by_username_takes_first_match(gl):
    gl.users.list.return_value = [MagicMock(id=7), MagicMock(id=8)]

    assert gitlab_queries.find_account(gl, username="alice") == 7
    gl.users.list.assert_called_once_with(get_all=False, username="alice")


def test_find_account_by_search(gl):
    gl.users.list.return_value = []

    assert gitlab_queries.find_account(gl, search="alice@student.tudelft.nl") is None
    gl.users.list.assert_called_once_with(get_all=False, search="alice@student.tudelft.nl")


def test_find_account_requires_exactly_one_query(gl):
    with pytest.raises(ValueError):
        gitlab_queries.find_account(gl)
    with pytest.raises(ValueError):
        gitlab_queries.find_account(gl, username="a", search="b")


@pytest.mark.parametrize(
    "error",
    [gitlab.exceptions.GitlabListError("boom", response_code=500), requests.ConnectionError("down")],
)
def test_find_account_failure(gl, error):
    gl.users.list.side_effect = error

    with pytest.raises(MembershipLookupError):
        gitlab_queries.find_account(gl, username="alice")


def test_add_members_batches_ids(gl):
    gitlab_queries.add_members(gl, 101, [7, 8], 30)

    gl.http_post.assert_called_once_with(
        "/projects/101/members",
        post_data={"user_id": "7,8", "access_level": 30},
    )


def test_add_members_empty_is_noop(gl):
    gitlab_queries.add_members(gl, 101, [], 30)
    gl.http_post.assert_not_called()


def test_add_members_failure(gl):
    gl.http_post.side_effect = gitlab.exceptions.GitlabHttpError("forbidden", response_code=403)

    with pytest.raises(MembershipGrantError):
        gitlab_queries.add_members(gl, 101, [7], 30)


def test_invite_by_email_joins_emails(gl):
    envelope = gitlab_queries.invite_by_email(gl, 101, ["a@x", "b@x"], 30)

    gl.http_post.assert_called_once_with(
        "/projects/101/invitations",
        post_data={"email": "a@x,b@x", "access_level": 30},
    )
    assert envelope == {"status": "success", "message": {}}


def test_invite_by_email_returns_error_envelope(gl):
    gl.http_post.return_value = {"status": "error", "message": {"a@x": "Already invited"}}

    envelope = gitlab_queries.invite_by_email(gl, 101, ["a@x"], 30)

    assert envelope == {"status": "error", "message": {"a@x": "Already invited"}}


def test_invite_by_email_wraps_string_message(gl):
    gl.http_post.return_value = {"status": "error", "message": "Invites cannot be blank"}

    envelope = gitlab_queries.invite_by_email(gl, 101, ["a@x"], 30)

    assert envelope == {"status": "error", "message": {"error": "Invites cannot be blank"}}


def test_invite_by_email_without_message(gl):
    gl.http_post.return_value = {"status": "success"}

    assert gitlab_queries.invite_by_email(gl, 101, ["a@x"], 30) == {"status": "success", "message": {}}


def test_invite_by_email_http_failure(gl):
    gl.http_post.side_effect = gitlab.exceptions.GitlabHttpError("server error", response_code=500)

    with pytest.raises(MembershipGrantError):
        gitlab_queries.invite_by_email(gl, 101, ["a@x"], 30)


def test_invite_by_email_unexpected_body(gl):
    gl.http_post.return_value = MagicMock(spec=requests.Response)

    with pytest.raises(MembershipGrantError):
        gitlab_queries.invite_by_email(gl, 101, ["a@x"], 30)


def test_unprotect_branch(gl):
    api_project = gl.projects.get.return_value
    api_project.protectedbranches.list.return_value = [_named("main")]

    assert gitlab_queries.unprotect_branch(gl, {"id": 3, "name": "p", "ssh_url_to_repo": ""}, "main")
    api_project.protectedbranches.delete.assert_called_once_with("main")


def test_unprotect_branch_not_protected(gl):
    api_project = gl.projects.get.return_value
    api_project.protectedbranches.list.return_value = [_named("develop")]

    assert not gitlab_queries.unprotect_branch(gl, {"id": 3, "name": "p", "ssh_url_to_repo": ""}, "main")
    api_project.protectedbranches.delete.assert_not_called()


def test_unprotect_branch_dry_run(gl):
    api_project = gl.projects.get.return_value
    api_project.protectedbranches.list.return_value = [_named("main")]

    assert gitlab_queries.unprotect_branch(gl, {"id": 3, "name": "p", "ssh_url_to_repo": ""}, "main", dry_run=True)
    api_project.protectedbranches.delete.assert_not_called()


def test_unfork_project_not_a_fork(gl):
    gl.projects.get.return_value.delete_fork_relation.side_effect = gitlab.exceptions.GitlabDeleteError(
        "not modified", response_code=304
    )

    assert not gitlab_queries.unfork_project(gl, {"id": 3, "name": "p", "ssh_url_to_repo": ""})


def test_unfork_project_other_errors_propagate(gl):
    gl.projects.get.return_value.delete_fork_relation.side_effect = gitlab.exceptions.GitlabDeleteError(
        "forbidden", response_code=403
    )

    with pytest.raises(gitlab.exceptions.GitlabDeleteError):
        gitlab_queries.unfork_project(gl, {"id": 3, "name": "p", "ssh_url_to_repo": ""})


def test_unfork_project_dry_run(gl):
    assert gitlab_queries.unfork_project(gl, {"id": 3, "name": "p", "ssh_url_to_repo": ""}, dry_run=True)
    gl.projects.get.assert_not_called()
