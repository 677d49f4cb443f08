"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from .domain.exceptions import InvalidTimezone
from .domain.wall_clock import validate_timezone

MINUTES_PER_DAY = 24 * 60


class DefaultsConfig(BaseModel):
    """Default settings for availability searches."""
    duration_minutes: int = 30
    step_minutes: int = 15
    lookahead_days: int = 14
    fetch_timeout_seconds: float = 30.0

    @field_validator("duration_minutes", "lookahead_days", "fetch_timeout_seconds")
    @classmethod
    def validate_positive(cls, value):
        """Ensure durations and ranges are positive."""
        if value <= 0:
            raise ValueError("value must be greater than zero")
        return value

    @field_validator("step_minutes")
    @classmethod
    def validate_step(cls, value: int) -> int:
        """Candidate grid must tile a day evenly."""
        if value <= 0 or MINUTES_PER_DAY % value:
            raise ValueError(f"step_minutes must divide {MINUTES_PER_DAY}, got {value}")
        return value


class Owner(BaseModel):
    """Person whose availability can be booked."""
    id: str
    name: str = ""
    email: str = ""  # Graph mailbox; the signed-in user when empty
    def display_name(self) -> str:
        """Get display name."""
        return self.name or self.id


class AppConfig(BaseModel):
    """Application configuration."""
    client_id: str = ""
    tenant_id: str = ""
    timezone: str = "UTC"
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)
    schedule_file: Path = Path("schedules.yaml")
    mock_events_file: Optional[Path] = None
    owners: List[Owner] = Field(default_factory=list)

    @field_validator("timezone")
    @classmethod
    def validate_display_timezone(cls, value: str) -> str:
        """Reject unknown zones instead of defaulting to UTC."""
        try:
            return validate_timezone(value)
        except InvalidTimezone as exc:
            raise ValueError(str(exc)) from exc

    @field_validator("owners")
    @classmethod
    def validate_owners(cls, value: List[Owner]) -> List[Owner]:
        """Ensure owner ids and emails are unique."""
        seen_ids: set[str] = set()
        seen_emails: set[str] = set()
        for owner in value:
            id_key = owner.id.lower()
            email_key = owner.email.lower()
            if id_key in seen_ids:
                raise ValueError(f"Duplicate owner id detected: {owner.id}")
            if email_key and email_key in seen_emails:
                raise ValueError(f"Duplicate owner email detected: {owner.email}")
            seen_ids.add(id_key)
            if email_key:
                seen_emails.add(email_key)
        return value

    @property
    def has_graph_credentials(self) -> bool:
        return bool(self.client_id and self.tenant_id)

    def get_authority_url(self) -> str:
        """Get the formatted authority URL."""
        return f"https://login.microsoftonline.com/{self.tenant_id}"

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Relative ``schedule_file`` and ``mock_events_file`` paths are resolved
        against the directory containing the config file.

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        config = cls(**data)
        return config.relative_to(config_path.parent)

    def relative_to(self, base: Path) -> "AppConfig":
        """Return a copy with relative file paths anchored at ``base``."""
        updates = {}
        if not self.schedule_file.is_absolute():
            updates["schedule_file"] = base / self.schedule_file
        if self.mock_events_file is not None and not self.mock_events_file.is_absolute():
            updates["mock_events_file"] = base / self.mock_events_file
        return self.model_copy(update=updates)

    def find_owner(self, identifier: str) -> Owner | None:
        """Find an owner by id, name or email (case-insensitive)."""
        key = identifier.lower()
        for owner in self.owners:
            if key in (owner.id.lower(), owner.name.lower(), owner.email.lower()):
                return owner
        return None

    def resolve_owner(self, identifier: str) -> Owner:
        """
        Resolve an owner identifier to a configured owner.

        Unknown identifiers are accepted as bare owner ids so schedules can be
        managed before the owner is added to the config.
        """
        if not identifier.strip():
            raise ValueError("Owner identifier must not be empty.")
        owner = self.find_owner(identifier)
        if owner:
            return owner
        return Owner(id=identifier)


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
