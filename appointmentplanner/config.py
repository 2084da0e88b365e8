"""
Configuration management using Pydantic models loaded from YAML.
"""

import os
import re
from enum import Enum
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from .domain.conflict_detector import ConflictPolicy
from .domain.models import COLOR_PALETTE, DEFAULT_TIMEZONE, UNKNOWN_COLOR
from .domain.time_grid import BucketPolicy, TimeGrid

_COLOR_TOKEN = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")

CONFIG_ENV_VAR = "APPOINTMENTPLANNER_CONFIG"


class StorageBackend(str, Enum):
    MEMORY = "memory"
    JSON = "json"
    HTTP = "http"


class GridConfig(BaseModel):
    """Calendar grid settings."""
    start_hour: int = 7
    end_hour: int = 20
    slot_minutes: int = 30
    default_duration_minutes: int = 60

    @field_validator("start_hour", "end_hour")
    @classmethod
    def validate_hour(cls, v: int) -> int:
        """Validate hour is between 0 and 23."""
        if not 0 <= v <= 23:
            raise ValueError(f"Hour must be between 0 and 23, got {v}")
        return v

    @field_validator("slot_minutes")
    @classmethod
    def validate_slot_minutes(cls, value: int) -> int:
        """Slots must tile an hour exactly."""
        if value <= 0 or 60 % value != 0:
            raise ValueError(f"slot_minutes must divide 60, got {value}")
        return value

    @field_validator("default_duration_minutes")
    @classmethod
    def validate_duration(cls, value: int) -> int:
        """Ensure the default meeting duration is positive."""
        if value <= 0:
            raise ValueError("default_duration_minutes must be greater than zero")
        return value

    @model_validator(mode="after")
    def validate_hours_order(self) -> "GridConfig":
        """Ensure the grid opens before it closes."""
        if self.end_hour <= self.start_hour:
            raise ValueError("end_hour must be later than start_hour")
        return self


class StorageConfig(BaseModel):
    """Where appointments and participants live."""
    backend: StorageBackend = StorageBackend.JSON
    path: Path = Path("appointments.json")
    api_url: Optional[str] = None
    timeout_seconds: float = 30

    @model_validator(mode="after")
    def validate_http_settings(self) -> "StorageConfig":
        """The HTTP backend needs somewhere to talk to."""
        if self.backend is StorageBackend.HTTP and not self.api_url:
            raise ValueError("storage.api_url is required for the http backend")
        return self


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = DEFAULT_TIMEZONE
    grid: GridConfig = Field(default_factory=GridConfig)
    conflict_policy: ConflictPolicy = ConflictPolicy.BLOCK
    bucket_policy: BucketPolicy = BucketPolicy.START_TIME
    palette: List[str] = Field(default_factory=lambda: list(COLOR_PALETTE))
    unknown_color: str = UNKNOWN_COLOR
    storage: StorageConfig = Field(default_factory=StorageConfig)

    @field_validator("palette")
    @classmethod
    def validate_palette(cls, value: List[str]) -> List[str]:
        """Ensure the palette is non-empty, valid and deduplicated."""
        if not value:
            raise ValueError("palette must contain at least one color")
        invalid = [color for color in value if not _COLOR_TOKEN.match(color)]
        if invalid:
            raise ValueError(f"palette entries must be #rgb or #rrggbb tokens, got {invalid}")
        # Preserve order while removing duplicates
        seen: set[str] = set()
        deduped: List[str] = []
        for color in value:
            key = color.lower()
            if key not in seen:
                deduped.append(color)
                seen.add(key)
        return deduped

    @field_validator("unknown_color")
    @classmethod
    def validate_unknown_color(cls, value: str) -> str:
        if not _COLOR_TOKEN.match(value):
            raise ValueError(f"unknown_color must be a #rgb or #rrggbb token, got {value}")
        return value

    def build_grid(self) -> TimeGrid:
        """Create the time grid described by this configuration."""
        return TimeGrid(
            start_hour=self.grid.start_hour,
            end_hour=self.grid.end_hour,
            slot_minutes=self.grid.slot_minutes,
            policy=self.bucket_policy,
        )

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

        return cls(**data)


def get_default_config_path() -> Path:
    """
    Locate config.yaml.

    Order: the $APPOINTMENTPLANNER_CONFIG override, the working directory,
    then the project checkout. Falls back to the working-directory path
    even when it does not exist.
    """
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override)

    candidates = [Path.cwd() / "config.yaml", Path(__file__).resolve().parent.parent / "config.yaml"]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return candidates[0]
