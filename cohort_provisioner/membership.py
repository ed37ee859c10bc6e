"""Membership resolution and granting for provisioned projects.

Every member of a unit is either matched to an existing GitLab account (and
added by id) or invited by email. Resolution is all-or-nothing per unit: if
any lookup fails no grant call is made for that unit.
"""

from __future__ import annotations

from collections.abc import Iterable

import gitlab
import structlog

from cohort_provisioner.gitlab_queries import add_members, find_account, invite_by_email
from cohort_provisioner.models import (
    MembershipOutcome,
    MembershipPartition,
    PendingInvite,
    ResolvedAccount,
    Student,
)

logger = structlog.get_logger()

INVITE_SUCCESS = "success"


def resolve_student(gl: gitlab.Gitlab, student: Student) -> MembershipOutcome:
    """Match a student to a GitLab account.

    The exact username (netid) is tried first, then a search on the email
    address.

    Raises:
        MembershipLookupError: If a lookup fails.
    """
    account_id = find_account(gl, username=student.netid)
    if account_id is None:
        account_id = find_account(gl, search=student.email)
    if account_id is None:
        return PendingInvite(student=student)
    return ResolvedAccount(account_id=account_id, student=student)


def resolve_members(gl: gitlab.Gitlab, students: Iterable[Student]) -> MembershipPartition:
    """Partition students into resolved accounts and pending invitations.

    Each distinct student appears exactly once in the result, in input order.

    Raises:
        MembershipLookupError: If any lookup fails; nothing is returned then.
    """
    resolved: list[ResolvedAccount] = []
    unresolved: list[Student] = []
    seen: set[str] = set()

    for student in students:
        if student.netid in seen:
            continue
        seen.add(student.netid)

        match resolve_student(gl, student):
            case ResolvedAccount() as account:
                resolved.append(account)
            case PendingInvite(student=pending):
                unresolved.append(pending)

    return MembershipPartition(resolved=tuple(resolved), unresolved=tuple(unresolved))


def grant_membership(
    gl: gitlab.Gitlab,
    project_id: int,
    partition: MembershipPartition,
    access_level: int,
) -> list[str]:
    """Add resolved accounts and invite the rest by email.

    Args:
        gl: GitLab client.
        project_id: The freshly provisioned project.
        partition: Output of ``resolve_members``.
        access_level: Numeric access level for both calls.

    Returns:
        Warnings for invitations GitLab accepted but reported as not successful.

    Raises:
        MembershipGrantError: If either call fails at the HTTP level.
    """
    warnings: list[str] = []

    add_members(gl, project_id, partition.account_ids, access_level)

    if partition.unresolved:
        envelope = invite_by_email(gl, project_id, partition.emails, access_level)
        # GitLab reports partial invite failures with HTTP success and status "error"
        if envelope["status"] != INVITE_SUCCESS:
            logger.warning(
                "invite_by_email_not_successful",
                project_id=project_id,
                status=envelope["status"],
                message=envelope["message"],
            )
            details = ", ".join(f"{k}: {v}" for k, v in envelope["message"].items())
            warnings.append(f"invite status '{envelope['status']}'" + (f" ({details})" if details else ""))

    return warnings
