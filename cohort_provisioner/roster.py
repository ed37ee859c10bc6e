"""Roster resolution from Brightspace classlists and group exports."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

from cohort_provisioner.errors import MalformedIdentifier, MissingField, StudentNotFound
from cohort_provisioner.models import Group, Student
from cohort_provisioner.types import ClasslistEntry

INSTITUTION_DOMAIN_SUFFIX = "@tudelft.nl"

# Brightspace role id of the "Student" classlist role
STUDENT_ROLE_ID = 110


def strip_domain_suffix(username: str, suffix: str = INSTITUTION_DOMAIN_SUFFIX) -> str:
    """Derive a netid from a Brightspace username.

    Args:
        username: Username such as ``jdoe@tudelft.nl``.
        suffix: Institutional domain suffix to strip.

    Returns:
        The netid, e.g. ``jdoe``.

    Raises:
        MalformedIdentifier: If the suffix is absent or nothing remains after stripping.
    """
    if not username.endswith(suffix):
        raise MalformedIdentifier(username, suffix)
    netid = username.removesuffix(suffix)
    if not netid:
        raise MalformedIdentifier(username, suffix)
    return netid


def _parse_student_number(org_defined_id: str) -> int | None:
    try:
        return int(org_defined_id)
    except ValueError:
        return None


def student_from_classlist_entry(entry: Mapping[str, object]) -> Student:
    """Convert one classlist record into a Student.

    Args:
        entry: Raw ``ClasslistUser`` record.

    Returns:
        The canonical Student.

    Raises:
        MissingField: If username, email or org defined id is absent.
        MalformedIdentifier: If the username lacks the domain suffix.
    """
    record = str(entry.get("DisplayName") or entry.get("Identifier") or "")

    email = entry.get("Email")
    if not email:
        raise MissingField("email", record)
    org_defined_id = entry.get("OrgDefinedId")
    if org_defined_id is None:
        raise MissingField("student nr.", record)
    username = entry.get("Username")
    if not username:
        raise MissingField("netid", record)

    return Student(
        netid=strip_domain_suffix(str(username)),
        student_number=_parse_student_number(str(org_defined_id)),
        email=str(email),
    )


def is_student(entry: Mapping[str, object]) -> bool:
    """Whether a classlist record is enrolled with the student role."""
    return entry.get("RoleId") == STUDENT_ROLE_ID


def students_from_classlist(entries: Iterable[ClasslistEntry]) -> list[Student]:
    """Build the student roster from a classlist.

    Non-student enrollments are dropped. When the same netid appears twice the
    first record wins.

    Args:
        entries: Raw classlist records.

    Returns:
        Students in classlist order.

    Raises:
        RosterError: If any student record is invalid.
    """
    students: list[Student] = []
    seen: set[str] = set()
    for entry in entries:
        if not is_student(entry):
            continue
        student = student_from_classlist_entry(entry)
        if student.netid in seen:
            continue
        seen.add(student.netid)
        students.append(student)
    return students


class _StudentLookup:
    """Index of a classlist by netid, email and student number."""

    def __init__(self, students: Iterable[Student]) -> None:
        self.by_netid: dict[str, Student] = {}
        self.by_email: dict[str, Student] = {}
        self.by_number: dict[str, Student] = {}
        for s in students:
            self.by_netid.setdefault(s.netid, s)
            self.by_email.setdefault(s.email.lower(), s)
            if s.student_number is not None:
                self.by_number.setdefault(str(s.student_number), s)

    def find(self, identity: str) -> Student | None:
        identity = identity.strip()
        netid = identity.removesuffix(INSTITUTION_DOMAIN_SUFFIX)
        if netid in self.by_netid:
            return self.by_netid[netid]
        if identity.lower() in self.by_email:
            return self.by_email[identity.lower()]
        return self.by_number.get(identity)


def groups_from_export_rows(
    rows: Iterable[tuple[str, str]],
    students: Sequence[Student],
) -> dict[str, Group]:
    """Aggregate group export rows into groups.

    Args:
        rows: ``(group name, student identity)`` pairs. The identity may be a
            username (with or without domain suffix), an email address or a
            student number.
        students: Full classlist used to validate every identity.

    Returns:
        Mapping from trimmed group name to Group, ordered by first appearance.

    Raises:
        StudentNotFound: If an identity matches no classlist student.
    """
    lookup = _StudentLookup(students)
    members: dict[str, set[Student]] = {}

    for raw_name, identity in rows:
        name = raw_name.strip()
        if not name:
            continue
        student = lookup.find(identity)
        if student is None:
            raise StudentNotFound(identity, name)
        members.setdefault(name, set()).add(student)

    return {name: Group(name=name, members=frozenset(m)) for name, m in members.items()}
