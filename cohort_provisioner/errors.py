"""Exception hierarchy for cohort provisioning.

Global errors (configuration, roster construction) abort a run before any
project is touched. Unit errors are collected per unit and never stop the run.
"""

from __future__ import annotations


class ProvisionerError(Exception):
    """Base class for all provisioning errors."""


class ConfigurationError(ProvisionerError):
    """Invalid or missing configuration."""


class RosterError(ProvisionerError):
    """The roster could not be built from upstream data."""


class RosterSourceError(RosterError):
    """Brightspace returned something other than a classlist or group export."""


class MissingField(RosterError):
    """A classlist record lacks a required field."""

    def __init__(self, field: str, record: str = "") -> None:
        self.field = field
        self.record = record
        suffix = f" ({record})" if record else ""
        super().__init__(f"student missing {field}{suffix}")


class MalformedIdentifier(RosterError):
    """A username does not carry the institutional domain suffix."""

    def __init__(self, username: str, suffix: str) -> None:
        self.username = username
        super().__init__(f"failed to strip {suffix} from username '{username}'")


class StudentNotFound(RosterError):
    """A group export row names a student absent from the classlist."""

    def __init__(self, identity: str, group: str) -> None:
        self.identity = identity
        self.group = group
        super().__init__(f"student '{identity}' of group '{group}' not found in classlist")


class UnitError(ProvisionerError):
    """Base class for errors that are fatal to a single unit only."""


class ProvisionError(UnitError):
    """Creating a project from the template failed."""


class MembershipLookupError(UnitError):
    """Looking up a platform account failed."""


class MembershipGrantError(UnitError):
    """Adding members or sending invitations failed at the HTTP level."""
