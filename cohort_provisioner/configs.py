"""Configuration models for cohort provisioning."""

from __future__ import annotations

from pathlib import Path
from typing import Any, TypeVar

import gitlab
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from cohort_provisioner.errors import ConfigurationError

DEFAULT_GITLAB_HOST: str = "gitlab.ewi.tudelft.nl"
DEFAULT_BRIGHTSPACE_URL: str = "https://brightspace.tudelft.nl"
DEFAULT_GROUP_EXPORT_URL: str = "https://group-impexp.lti.tudelft.nl/export/{category_id}"

# Admin has no named constant in python-gitlab
ADMIN_ACCESS = 60
ACCESS_LEVELS: tuple[int, ...] = (
    gitlab.const.NO_ACCESS,
    gitlab.const.GUEST_ACCESS,
    gitlab.const.REPORTER_ACCESS,
    gitlab.const.DEVELOPER_ACCESS,
    gitlab.const.MAINTAINER_ACCESS,
    gitlab.const.OWNER_ACCESS,
    ADMIN_ACCESS,
)

REPORT_SUFFIXES = (".yaml", ".yml", ".csv")


def normalize_access_level(access: int) -> int:
    """Round an integer down to the nearest GitLab access level (0, 10, ... 60)."""
    return max((level for level in ACCESS_LEVELS if level <= access), default=gitlab.const.NO_ACCESS)


class GitlabConfig(BaseModel):
    """GitLab host and API credentials.

    Attributes:
        host: Hostname (or URL) of the GitLab instance.
        user: Owner of the token, used to authenticate template imports.
        token: Personal access token.
    """

    host: str = DEFAULT_GITLAB_HOST
    user: str
    token: str

    @field_validator("user", "token")
    @classmethod
    def require_non_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v


class BrightspaceConfig(BaseModel):
    """Brightspace location and session credentials.

    Attributes:
        base_url: Brightspace root URL.
        cookie: Cookie header of a logged-in Brightspace session.
        session_id: Cookie header of the group export tool session.
        group_export_url: Group export URL template containing ``{category_id}``.
    """

    base_url: str = DEFAULT_BRIGHTSPACE_URL
    cookie: str = ""
    session_id: str = ""
    group_export_url: str = DEFAULT_GROUP_EXPORT_URL

    @field_validator("group_export_url")
    @classmethod
    def require_category_placeholder(cls, v: str) -> str:
        if "{category_id}" not in v:
            raise ValueError("must contain '{category_id}'")
        return v


class ProjectCreationConfig(BaseModel):
    """Where and how student projects are created.

    Attributes:
        gitlab_group_id: GitLab group under which projects are created.
        template: Template repository URL to initialise projects with.
        access_level: Access level granted to students, normalised to a GitLab level.
        prefix: Optional prefix of individual project names.
        report_path: Optional path of a YAML/CSV run report.
    """

    gitlab_group_id: int
    template: str
    access_level: int = gitlab.const.DEVELOPER_ACCESS
    prefix: str | None = None
    report_path: Path | None = None

    @field_validator("access_level")
    @classmethod
    def convert_access_level(cls, v: int) -> int:
        """Normalise the access level."""
        return normalize_access_level(v)

    @field_validator("prefix")
    @classmethod
    def drop_blank_prefix(cls, v: str | None) -> str | None:
        return v if v and v.strip() else None

    @field_validator("report_path", mode="before")
    @classmethod
    def convert_report_path_to_path(cls, v: Any) -> Path | None:
        """Convert report_path to Path object and check its format."""
        if v is None:
            return None
        path = Path(v) if not isinstance(v, Path) else v
        if path.suffix.lower() not in REPORT_SUFFIXES:
            raise ValueError(f"unsupported report format '{path.suffix}', use one of {', '.join(REPORT_SUFFIXES)}")
        return path


def authenticate_template_url(template: str, host: str, user: str, token: str) -> str:
    """Insert ``user:token@`` into a template URL on our own GitLab host.

    Templates hosted elsewhere are returned unchanged.

    Raises:
        ConfigurationError: If a template on ``host`` is not an absolute URL.
    """
    bare_host = host.split("://", 1)[-1].rstrip("/")
    if bare_host not in template:
        return template
    if "://" not in template:
        raise ConfigurationError(f"invalid template url: {template}")
    proto, rest = template.split("://", 1)
    return f"{proto}://{user}:{token}@{rest}"


T = TypeVar("T", bound=BaseModel)


def build_config(model: type[T], **values: Any) -> T:
    """Validate values into a config model.

    Raises:
        ConfigurationError: If validation fails.
    """
    try:
        return model.model_validate(values)
    except ValidationError as e:
        raise ConfigurationError(f"invalid {model.__name__}: {e}") from e


class FileConfig(BaseModel):
    """Defaults loaded from a YAML file; any option may be omitted."""

    model_config = ConfigDict(extra="forbid")

    gitlab: dict[str, Any] = Field(default_factory=dict)
    brightspace: dict[str, Any] = Field(default_factory=dict)
    project: dict[str, Any] = Field(default_factory=dict)

    def as_default_map(self, commands: list[str]) -> dict[str, dict[str, Any]]:
        """Flatten the sections into a click ``default_map`` shared by every command."""
        defaults: dict[str, Any] = {}
        defaults.update({f"gitlab_{k}": v for k, v in self.gitlab.items()})
        defaults.update({f"brightspace_{k}": v for k, v in self.brightspace.items()})
        defaults.update(self.project)
        return {command: dict(defaults) for command in commands}


def load_config(path: Path) -> FileConfig:
    """Load YAML configuration defaults.

    Args:
        path: Path to YAML config.

    Returns:
        Parsed FileConfig.

    Raises:
        ConfigurationError: If the file is missing, malformed or has unknown sections.
    """
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")

    try:
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Malformed configuration file {path}: {e}") from e

    try:
        return FileConfig.model_validate(yaml_data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration file {path}: {e}") from e
