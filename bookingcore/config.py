"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.models import AppointmentStatus
from .domain.timezones import is_valid_timezone
from .services.scheduling import SchedulingSettings


def _check_timezone(value: Optional[str]) -> Optional[str]:
    if value is not None and not is_valid_timezone(value):
        raise ValueError(f"Unknown IANA timezone: {value!r}")
    return value


class BookingDefaults(BaseModel):
    """Default settings for new bookings."""
    duration_minutes: int = 60
    party_size: int = 1

    @field_validator("duration_minutes", "party_size")
    @classmethod
    def validate_positive(cls, value: int) -> int:
        """Ensure durations and party sizes are positive."""
        if value <= 0:
            raise ValueError(f"Value must be greater than zero, got {value}")
        return value


class CacheConfig(BaseModel):
    """TTL settings for the read-side cache, in seconds."""
    default_ttl_seconds: float = 300.0
    utilization_ttl_seconds: float = 120.0

    @field_validator("default_ttl_seconds", "utilization_ttl_seconds")
    @classmethod
    def validate_ttl(cls, value: float) -> float:
        if value <= 0:
            raise ValueError(f"TTL must be greater than zero, got {value}")
        return value


class UtilizationConfig(BaseModel):
    """Which bookings count toward capacity and how percentages are banded."""
    excluded_statuses: List[AppointmentStatus] = Field(
        default_factory=lambda: [AppointmentStatus.CANCELLED]
    )
    medium_threshold: float = 60.0
    high_threshold: float = 80.0

    @model_validator(mode="after")
    def validate_threshold_order(self) -> "UtilizationConfig":
        """Ensure bands are ordered."""
        if not 0 <= self.medium_threshold < self.high_threshold:
            raise ValueError("Expected 0 <= medium_threshold < high_threshold")
        return self


class BusinessProfile(BaseModel):
    """A bookable business."""
    id: str
    name: str = ""
    capacity: int = 0  # units per day, 0 = unknown
    timezone: Optional[str] = None

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: Optional[str]) -> Optional[str]:
        return _check_timezone(value)

    def display_name(self) -> str:
        """Get display name."""
        return self.name or self.id


class AppConfig(BaseModel):
    """Application configuration."""
    default_timezone: Optional[str] = None
    defaults: BookingDefaults = Field(default_factory=BookingDefaults)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    utilization: UtilizationConfig = Field(default_factory=UtilizationConfig)
    businesses: List[BusinessProfile] = Field(default_factory=list)
    appointments_file: Path = Path("appointments.json")

    @field_validator("default_timezone")
    @classmethod
    def validate_default_timezone(cls, value: Optional[str]) -> Optional[str]:
        return _check_timezone(value)

    @field_validator("businesses")
    @classmethod
    def validate_businesses(cls, value: List[BusinessProfile]) -> List[BusinessProfile]:
        """Ensure business ids are unique."""
        seen: set[str] = set()
        for business in value:
            if business.id in seen:
                raise ValueError(f"Duplicate business id detected: {business.id}")
            seen.add(business.id)
        return value

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

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

        config = cls(**data)
        # Relative data paths are resolved next to the config file
        if not config.appointments_file.is_absolute():
            config.appointments_file = config_path.parent / config.appointments_file
        return config

    def find_business(self, business_id: str) -> BusinessProfile | None:
        """Find a business by its id."""
        for business in self.businesses:
            if business.id == business_id:
                return business
        return None

    def capacities(self) -> Dict[str, int]:
        return {business.id: business.capacity for business in self.businesses}

    def timezones(self) -> Dict[str, str]:
        return {
            business.id: business.timezone
            for business in self.businesses
            if business.timezone
        }

    def scheduling_settings(self) -> SchedulingSettings:
        """Build the scheduling service settings from this config."""
        return SchedulingSettings(
            default_timezone=self.default_timezone,
            default_duration_minutes=self.defaults.duration_minutes,
            utilization_ttl_seconds=self.cache.utilization_ttl_seconds,
            excluded_statuses=tuple(self.utilization.excluded_statuses),
        )


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
