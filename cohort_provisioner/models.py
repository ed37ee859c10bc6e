"""Domain models for rosters, provisioning units and run results."""

from __future__ import annotations

from enum import StrEnum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class Student(BaseModel):
    """A student on the roster.

    Attributes:
        netid: Institutional login, unique within a run.
        student_number: Numeric student number; employees have none.
        email: Contact address used for invitations.
    """

    model_config = ConfigDict(frozen=True)

    netid: str
    student_number: int | None = None
    email: str


class Group(BaseModel):
    """A named set of students sharing one project."""

    model_config = ConfigDict(frozen=True)

    name: str
    members: frozenset[Student] = Field(default_factory=frozenset)

    def sorted_members(self) -> tuple[Student, ...]:
        return tuple(sorted(self.members, key=lambda s: s.netid))


class IndividualUnit(BaseModel):
    """A single student mapped onto one project."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["individual"] = "individual"
    student: Student

    @property
    def identifier(self) -> str:
        return self.student.netid

    @property
    def members(self) -> tuple[Student, ...]:
        return (self.student,)


class GroupUnit(BaseModel):
    """A group mapped onto one project."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["group"] = "group"
    group: Group

    @property
    def identifier(self) -> str:
        return self.group.name

    @property
    def members(self) -> tuple[Student, ...]:
        return self.group.sorted_members()


ProvisionUnit = IndividualUnit | GroupUnit

ExistingProjectNames = frozenset[str]


class ResolvedAccount(BaseModel):
    """A student matched to an existing GitLab account."""

    model_config = ConfigDict(frozen=True)

    account_id: int
    student: Student


class PendingInvite(BaseModel):
    """A student without a GitLab account, to be invited by email."""

    model_config = ConfigDict(frozen=True)

    student: Student


MembershipOutcome = ResolvedAccount | PendingInvite


class MembershipPartition(BaseModel):
    """Members of one unit split by how they will be granted access."""

    model_config = ConfigDict(frozen=True)

    resolved: tuple[ResolvedAccount, ...] = ()
    unresolved: tuple[Student, ...] = ()

    @property
    def account_ids(self) -> list[int]:
        return [r.account_id for r in self.resolved]

    @property
    def emails(self) -> list[str]:
        return [s.email for s in self.unresolved]


class UnitState(StrEnum):
    PENDING = "pending"
    SKIPPED = "skipped"
    DRY_RUN_PREVIEWED = "dry_run_previewed"
    CREATED = "created"
    MEMBERS_RESOLVED = "members_resolved"
    MEMBERS_GRANTED = "members_granted"
    MEMBERSHIP_ERROR = "membership_error"
    DONE = "done"
    FAILED = "failed"


TERMINAL_STATES = frozenset({UnitState.SKIPPED, UnitState.DRY_RUN_PREVIEWED, UnitState.DONE, UnitState.FAILED})


class UnitOutcome(BaseModel):
    """Everything that happened to one unit during a run."""

    name: str
    state: UnitState = UnitState.PENDING
    project_id: int | None = None
    added: list[str] = Field(default_factory=list)
    invited: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    error: str | None = None


class UnitFailure(BaseModel):
    """A unit-fatal error recorded during a run."""

    name: str
    kind: str
    message: str


class RunResult(BaseModel):
    """Aggregate outcome of a provisioning run.

    ``created + skipped + len(errors)`` always equals the number of units. In
    dry-run mode ``created`` counts the units that would have been created.
    """

    dry_run: bool = False
    created: int = 0
    skipped: int = 0
    errors: list[UnitFailure] = Field(default_factory=list)
    outcomes: list[UnitOutcome] = Field(default_factory=list)
    previews: list[UnitOutcome] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return self.created + self.skipped + len(self.errors)
