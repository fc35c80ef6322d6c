"""
Configuration management using Pydantic models loaded from YAML.
"""

import os
from datetime import time
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.models import OpeningHours

SUPABASE_KEY_ENV = "SALONBOOK_SUPABASE_KEY"
RESEND_API_KEY_ENV = "SALONBOOK_RESEND_API_KEY"


class DefaultsConfig(BaseModel):
    """Default booking settings."""
    duration_minutes: int = 30
    open_hour: int = 9
    close_hour: int = 20
    slot_step_minutes: int = 30

    @field_validator("duration_minutes", "slot_step_minutes")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        """Ensure durations are positive."""
        if value <= 0:
            raise ValueError("durations must be greater than zero")
        return value

    @field_validator("open_hour", "close_hour")
    @classmethod
    def validate_hour(cls, v: int) -> int:
        """Validate hour is between 0 and 23."""
        if not 0 <= v <= 23:
            raise ValueError(f"Hour must be between 0 and 23, got {v}")
        return v

    @model_validator(mode="after")
    def validate_hours_order(self) -> "DefaultsConfig":
        """Ensure the salon opens before it closes."""
        if self.close_hour <= self.open_hour:
            raise ValueError("close_hour must be later than open_hour")
        return self

    def get_open_time(self) -> time:
        return time(hour=self.open_hour, minute=0)

    def get_close_time(self) -> time:
        return time(hour=self.close_hour, minute=0)


class EmailConfig(BaseModel):
    """Booking confirmation email settings."""
    resend_api_key: str = ""
    sender: str = "bookings@example.com"
    salon_name: str = "Our Salon"

    @property
    def enabled(self) -> bool:
        return bool(self.resend_api_key)


class AppConfig(BaseModel):
    """Application configuration."""
    supabase_url: str = ""
    supabase_key: str = ""
    salon_id: str = ""
    timezone: str = "Europe/Berlin"
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)
    closed_days: List[int] = Field(default_factory=lambda: [6])  # Sunday
    email: EmailConfig = Field(default_factory=EmailConfig)

    @field_validator("closed_days")
    @classmethod
    def validate_closed_days(cls, value: List[int]) -> List[int]:
        """Ensure weekdays are in valid range and deduplicated."""
        invalid_days = [day for day in value if day not in range(7)]
        if invalid_days:
            raise ValueError(f"closed_days must be between 0 and 6, got {invalid_days}")
        # Preserve order while removing duplicates
        seen: set[int] = set()
        deduped: List[int] = []
        for day in value:
            if day not in seen:
                deduped.append(day)
                seen.add(day)
        return deduped

    @field_validator("supabase_url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        if value and not value.startswith(("http://", "https://")):
            raise ValueError(f"supabase_url must be an http(s) URL, got {value!r}")
        return value.rstrip("/")

    def require_backend(self) -> None:
        """
        Ensure the Supabase settings needed for live mode are present.

        Raises:
            ValueError: If the URL, key or salon id is missing
        """
        missing = [
            name for name in ("supabase_url", "supabase_key", "salon_id")
            if not getattr(self, name)
        ]
        if missing:
            raise ValueError(
                f"Missing configuration: {', '.join(missing)}. "
                "Set them in config.yaml or use --mock."
            )

    def opening_hours(self) -> OpeningHours:
        return OpeningHours(
            start_time=self.defaults.get_open_time(),
            end_time=self.defaults.get_close_time(),
            closed_weekdays=self.closed_days,
            timezone=self.timezone,
        )

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Secrets can be supplied through the SALONBOOK_SUPABASE_KEY and
        SALONBOOK_RESEND_API_KEY environment variables instead of the file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

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

        supabase_key = os.environ.get(SUPABASE_KEY_ENV)
        if supabase_key:
            data["supabase_key"] = supabase_key

        resend_key = os.environ.get(RESEND_API_KEY_ENV)
        if resend_key:
            data.setdefault("email", {})
            data["email"]["resend_api_key"] = resend_key

        return cls(**data)


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of salonbook/)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path


def load_config(config_file: Optional[Path] = None, mock: bool = False) -> AppConfig:
    """
    Load the config file, falling back to defaults in mock mode.

    A missing file is only an error outside of mock mode.
    """
    config_path = config_file or get_default_config_path()
    if mock and not config_path.exists():
        return AppConfig()
    return AppConfig.load_from_yaml(config_path)
