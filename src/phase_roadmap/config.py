"""Configuration management for Phase Roadmap."""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

import tomli_w

from phase_roadmap.fields import STORY_POINTS_FIELDS, FieldMapping
from phase_roadmap.models import WorkloadConfig
from phase_roadmap.transformer import SizeThresholds

DEFAULT_TOOLKIT_URL = "https://ai-design-workflow.thi-s-ent-account.workers.dev/api/phases"

CF_ENV_VARS = {
    "cf_access_token": "JIRA_CF_ACCESS_TOKEN",
    "cf_access_client_id": "JIRA_CF_ACCESS_CLIENT_ID",
    "cf_access_client_secret": "JIRA_CF_ACCESS_CLIENT_SECRET",
}


@dataclass
class JiraConnection:
    """Credentials and scope for one Jira instance."""

    domain: str
    email: str
    api_token: str
    project_key: str | None = None
    assignee: str | None = None
    cf_access_client_id: str | None = None
    cf_access_client_secret: str | None = None
    cf_access_token: str | None = None

    @property
    def base_url(self) -> str:
        domain = self.domain.rstrip("/")
        if not domain.startswith(("http://", "https://")):
            domain = f"https://{domain}"
        return domain

    def with_env_fallback(self) -> "JiraConnection":
        """Fill missing CF Access credentials from the environment."""
        values = {
            attr: getattr(self, attr) or os.environ.get(env_var) or None
            for attr, env_var in CF_ENV_VARS.items()
        }
        return JiraConnection(
            domain=self.domain,
            email=self.email,
            api_token=self.api_token,
            project_key=self.project_key,
            assignee=self.assignee,
            **values,
        )

    def validate(self) -> list[str]:
        """Validate connection values. Returns list of error messages."""
        errors: list[str] = []

        if not self.domain:
            errors.append("JIRA domain is required")
        else:
            parsed = urlparse(self.base_url)
            if parsed.scheme not in ("http", "https"):
                errors.append("JIRA URL must start with http:// or https://")
            if not parsed.netloc:
                errors.append("JIRA URL must include a domain")

        has_cf_access = self.cf_access_token or (
            self.cf_access_client_id and self.cf_access_client_secret
        )
        if not has_cf_access:
            if not self.email:
                errors.append("JIRA email is required")
            elif "@" not in self.email:
                errors.append("JIRA email must be a valid email address")
            if not self.api_token:
                errors.append("JIRA API token is required")

        return errors


@dataclass
class Config:
    """Configuration for the Jira connection and roadmap calculations."""

    jira: JiraConnection
    workload: WorkloadConfig = field(default_factory=WorkloadConfig)
    fields: FieldMapping = field(default_factory=FieldMapping)
    sizing: SizeThresholds = field(default_factory=SizeThresholds)
    toolkit_url: str = DEFAULT_TOOLKIT_URL

    def validate(self) -> list[str]:
        """Validate configuration values. Returns list of error messages."""
        errors = self.jira.validate() + self.workload.validate()
        if not self.fields.story_points:
            errors.append("At least one story points field is required")
        return errors


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    return Path.home() / ".phase-roadmap"


def get_config_path() -> Path:
    """Get the configuration file path."""
    return get_config_dir() / "config.toml"


def config_exists() -> bool:
    """Check if configuration file exists."""
    return get_config_path().exists()


def config_from_dict(data: dict) -> Config:
    """Build a Config from parsed TOML data."""
    jira_section = data.get("jira", {})
    workload_section = data.get("workload", {})
    fields_section = data.get("fields", {})
    sizing_section = data.get("sizing", {})
    toolkit_section = data.get("toolkit", {})

    defaults = WorkloadConfig()
    tshirt_fields = fields_section.get("tshirt_size")
    if isinstance(tshirt_fields, str):
        tshirt_fields = [tshirt_fields]

    return Config(
        jira=JiraConnection(
            domain=jira_section.get("url", ""),
            email=jira_section.get("email", ""),
            api_token=jira_section.get("api_token", ""),
            project_key=jira_section.get("project"),
            assignee=jira_section.get("assignee"),
            cf_access_client_id=jira_section.get("cf_access_client_id"),
            cf_access_client_secret=jira_section.get("cf_access_client_secret"),
            cf_access_token=jira_section.get("cf_access_token"),
        ),
        workload=WorkloadConfig(
            story_point_to_hours=workload_section.get(
                "story_point_to_hours", defaults.story_point_to_hours
            ),
            working_hours_per_day=workload_section.get(
                "working_hours_per_day", defaults.working_hours_per_day
            ),
            total_available_hours=workload_section.get(
                "total_available_hours", defaults.total_available_hours
            ),
        ),
        fields=FieldMapping(
            story_points=tuple(fields_section.get("story_points", STORY_POINTS_FIELDS)),
            tshirt_size=tuple(tshirt_fields) if tshirt_fields else None,
        ),
        sizing=SizeThresholds(**sizing_section),
        toolkit_url=toolkit_section.get("url", DEFAULT_TOOLKIT_URL),
    )


def load_config() -> Config:
    """Load configuration from TOML file.

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config is invalid
    """
    config_path = get_config_path()

    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration not found at {config_path}. "
            "Create ~/.phase-roadmap/config.toml to set up."
        )

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    try:
        config = config_from_dict(data)
    except TypeError as e:
        raise ValueError(f"Invalid configuration: {e}") from e

    errors = config.validate()
    if errors:
        raise ValueError(f"Invalid configuration: {'; '.join(errors)}")

    return config


def save_config(config: Config) -> None:
    """Save configuration to TOML file."""
    config_dir = get_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)

    config_path = get_config_path()

    jira = config.jira
    jira_data: dict[str, str] = {
        "url": jira.domain,
        "email": jira.email,
        "api_token": jira.api_token,
    }
    optional = {
        "project": jira.project_key,
        "assignee": jira.assignee,
        "cf_access_client_id": jira.cf_access_client_id,
        "cf_access_client_secret": jira.cf_access_client_secret,
        "cf_access_token": jira.cf_access_token,
    }
    jira_data.update({key: value for key, value in optional.items() if value})

    data: dict = {
        "jira": jira_data,
        "workload": {
            "story_point_to_hours": config.workload.story_point_to_hours,
            "working_hours_per_day": config.workload.working_hours_per_day,
            "total_available_hours": config.workload.total_available_hours,
        },
        "fields": {"story_points": list(config.fields.story_points)},
        "sizing": {
            "small_points": config.sizing.small_points,
            "small_stories": config.sizing.small_stories,
            "medium_points": config.sizing.medium_points,
            "medium_stories": config.sizing.medium_stories,
        },
    }

    if config.fields.tshirt_size:
        data["fields"]["tshirt_size"] = list(config.fields.tshirt_size)
    if config.toolkit_url != DEFAULT_TOOLKIT_URL:
        data["toolkit"] = {"url": config.toolkit_url}

    with open(config_path, "wb") as f:
        tomli_w.dump(data, f)
