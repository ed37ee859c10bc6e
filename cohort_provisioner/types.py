"""Type definitions for raw upstream payloads and report rows."""

from __future__ import annotations

from typing import NotRequired, TypedDict


class ClasslistEntry(TypedDict):
    """Brightspace ``Enrollment.ClasslistUser`` record.

    See https://docs.valence.desire2learn.com/res/enroll.html#Enrollment.ClasslistUser
    """

    Identifier: str
    ProfileIdentifier: str
    DisplayName: str
    Username: str | None
    OrgDefinedId: str | None
    Email: str | None
    FirstName: NotRequired[str | None]
    LastName: NotRequired[str | None]
    RoleId: int | None
    LastAccessed: NotRequired[str | None]
    IsOnline: NotRequired[bool]
    ClasslistRoleDisplayName: NotRequired[str]


class ProjectInfo(TypedDict):
    """The project fields used from GitLab listings."""

    id: int
    name: str
    ssh_url_to_repo: str


class InviteResponse(TypedDict):
    """Envelope returned by the GitLab invitations endpoint."""

    status: str
    message: dict[str, str]


class UnitReport(TypedDict):
    """Type definition for run report entries."""

    name: str
    state: str
    project_id: int | None
    added: list[str]
    invited: list[str]
    warnings: list[str]
    error: str | None
