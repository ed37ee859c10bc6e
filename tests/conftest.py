import itertools
from unittest.mock import MagicMock

import pytest
import structlog

from cohort_provisioner.models import Group, Student


def make_student(netid, number=None, email=None):
    return Student(netid=netid, student_number=number, email=email or f"{netid}@student.tudelft.nl")


def make_entry(netid, role_id=110, org_defined_id="4000001", email=None, username=None):
    return {
        "Identifier": netid,
        "ProfileIdentifier": f"p-{netid}",
        "DisplayName": netid.title(),
        "Username": username if username is not None else f"{netid}@tudelft.nl",
        "OrgDefinedId": org_defined_id,
        "Email": email if email is not None else f"{netid}@student.tudelft.nl",
        "FirstName": netid.title(),
        "LastName": "Doe",
        "RoleId": role_id,
        "LastAccessed": None,
        "IsOnline": False,
        "ClasslistRoleDisplayName": "Student" if role_id == 110 else "Instructor",
    }


@pytest.fixture
def alice():
    return make_student("alice", 4000001)


@pytest.fixture
def bob():
    return make_student("bob", 4000002)


@pytest.fixture
def carol():
    return make_student("carol", 4000003)


@pytest.fixture
def students(alice, bob, carol):
    return [alice, bob, carol]


@pytest.fixture
def groups(alice, bob, carol):
    return [
        Group(name="Team A", members=frozenset({alice, bob})),
        Group(name="Team B", members=frozenset({carol})),
    ]


@pytest.fixture
def gl():
    """GitLab client mock: no known accounts, every call succeeds."""
    client = MagicMock()
    project_ids = itertools.count(101)
    client.projects.create.side_effect = lambda data: MagicMock(id=next(project_ids))
    client.users.list.return_value = []
    client.http_post.return_value = {"status": "success", "message": {}}
    return client


@pytest.fixture
def set_accounts(gl):
    """Register GitLab accounts findable by exact username or by search term."""

    def _set(usernames=None, searches=None):
        usernames = usernames or {}
        searches = searches or {}

        def users_list(get_all=False, username=None, search=None):
            if username is not None and username in usernames:
                return [MagicMock(id=usernames[username])]
            if search is not None and search in searches:
                return [MagicMock(id=searches[search])]
            return []

        gl.users.list.side_effect = users_list

    return _set


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    structlog.reset_defaults()
