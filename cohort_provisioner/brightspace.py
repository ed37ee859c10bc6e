"""Brightspace classlist and group export retrieval."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import requests
import structlog

from cohort_provisioner.csv_utils import csv_to_pairs, text_to_pairs
from cohort_provisioner.errors import RosterSourceError
from cohort_provisioner.models import Group, Student
from cohort_provisioner.roster import groups_from_export_rows, students_from_classlist
from cohort_provisioner.types import ClasslistEntry

logger = structlog.get_logger()

LE_API_VERSION = "1.72"
DEFAULT_TIMEOUT_SECONDS = 30

# Column names of the group export CSV
GROUP_NAME_COLUMN = "Group Name"
GROUP_MEMBER_COLUMN = "Username"


def _session(cookie: str) -> requests.Session:
    session = requests.Session()
    if cookie:
        session.headers["Cookie"] = cookie
    return session


def classlist_url(base_url: str, course_id: int) -> str:
    """URL of the first page of a course's classlist in the Brightspace LE API."""
    return f"{base_url.rstrip('/')}/d2l/api/le/{LE_API_VERSION}/{course_id}/classlist/paged/"


def get_classlist(
    base_url: str,
    cookie: str,
    course_id: int,
    timeout: int = DEFAULT_TIMEOUT_SECONDS,
) -> list[ClasslistEntry]:
    """Fetch every classlist entry of a course, following all pages.

    Args:
        base_url: Brightspace root URL.
        cookie: Cookie header of an authenticated Brightspace session.
        course_id: The course's org unit id ("ou").
        timeout: Request timeout in seconds.

    Returns:
        Raw classlist records of all enrollments.

    Raises:
        requests.RequestException: For HTTP/network errors.
        RosterSourceError: If the response is not a classlist page.
    """
    session = _session(cookie)
    url: str | None = classlist_url(base_url, course_id)
    entries: list[ClasslistEntry] = []

    while url:
        response = session.get(url, timeout=timeout)
        response.raise_for_status()

        content_type = response.headers.get("content-type", "")
        if "json" not in content_type.lower():
            raise RosterSourceError("Received non-JSON classlist response - check the Brightspace cookie")

        page = response.json()
        if not isinstance(page, dict) or "Objects" not in page:
            raise RosterSourceError(f"Unexpected classlist response from {url}")

        entries.extend(page["Objects"])
        url = page.get("Next")

    logger.debug("classlist_fetched", course_id=course_id, entries=len(entries))
    return entries


def get_students(base_url: str, cookie: str, course_id: int) -> list[Student]:
    """Fetch the student roster of a course.

    Args:
        base_url: Brightspace root URL.
        cookie: Cookie header of an authenticated Brightspace session.
        course_id: The course's org unit id.

    Returns:
        Students enrolled with the student role.

    Raises:
        requests.RequestException: For HTTP/network errors.
        RosterError: If a student record is invalid.
    """
    return students_from_classlist(get_classlist(base_url, cookie, course_id))


def get_group_export(
    export_url: str,
    session_id: str,
    category_id: int,
    timeout: int = DEFAULT_TIMEOUT_SECONDS,
) -> str:
    """Download the CSV export of a group category.

    Args:
        export_url: URL template containing ``{category_id}``.
        session_id: Cookie header of the group export tool session.
        category_id: Brightspace group category id.
        timeout: Request timeout in seconds.

    Returns:
        The CSV export as text.

    Raises:
        requests.RequestException: For HTTP/network errors.
        RosterSourceError: If an HTML page is returned instead of CSV.
    """
    response = _session(session_id).get(export_url.format(category_id=category_id), timeout=timeout)
    response.raise_for_status()

    content_type = response.headers.get("content-type", "")
    if "text/html" in content_type.lower():
        raise RosterSourceError("Received HTML response - check the group export session id")

    return response.text


def get_groups(
    export_url: str,
    session_id: str,
    category_id: int,
    students: Sequence[Student],
) -> dict[str, Group]:
    """Fetch a group category and validate its members against the classlist.

    Args:
        export_url: URL template of the group export containing ``{category_id}``.
        session_id: Cookie header of the group export tool session.
        category_id: Brightspace group category id.
        students: Full classlist of the course.

    Returns:
        Mapping from group name to Group.

    Raises:
        requests.RequestException: For HTTP/network errors.
        RosterSourceError: If the export lacks the group name or member column.
        StudentNotFound: If a group member is not on the classlist.
    """
    text = get_group_export(export_url, session_id, category_id)
    try:
        rows = text_to_pairs(text, GROUP_NAME_COLUMN, GROUP_MEMBER_COLUMN)
    except KeyError as e:
        raise RosterSourceError(f"Unexpected group export for category {category_id}: {e.args[0]}") from e
    return groups_from_export_rows(rows, students)


def load_groups_csv(csv_file: Path, students: Sequence[Student]) -> dict[str, Group]:
    """Read a previously downloaded group export and validate it against the classlist.

    Raises:
        FileNotFoundError: If ``csv_file`` does not exist.
        RosterSourceError: If the file lacks the group name or member column.
        StudentNotFound: If a group member is not on the classlist.
    """
    try:
        rows = csv_to_pairs(csv_file, GROUP_NAME_COLUMN, GROUP_MEMBER_COLUMN)
    except KeyError as e:
        raise RosterSourceError(f"Unexpected group export in {csv_file}: {e.args[0]}") from e
    return groups_from_export_rows(rows, students)
