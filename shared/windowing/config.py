"""
Configuration settings for windowed alert consolidation.
"""

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class WindowSettings(BaseSettings):
    """Settings for alert consolidation windows."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="ALERT_WINDOW_",
        case_sensitive=False,
    )

    # Window bounds
    consolidation_window_seconds: float = Field(
        default=300.0,
        gt=0.0,
        description="Nominal window span; also the default sweep interval",
    )

    max_consolidated_alerts: int = Field(
        default=50,
        ge=1,
        description="A window holding this many alerts stops accepting more",
    )

    min_alerts_to_consolidate: int = Field(
        default=3,
        ge=1,
        description="Smaller groups pass through unchanged",
    )

    max_consolidation_age_seconds: float = Field(
        default=3600.0,
        gt=0.0,
        description="Windows this old are expired",
    )

    # Grouping key
    group_by_equipment: bool = Field(default=True, description="Key on equipment name")
    group_by_event_type: bool = Field(default=True, description="Key on event type")
    group_by_equipment_group: bool = Field(default=True, description="Key on equipment groups")
    group_by_rule: bool = Field(default=True, description="Key on rule id")
    group_by_severity: bool = Field(default=True, description="Key on severity")

    # Diagnostics
    history_max_entries: int = Field(
        default=1000,
        ge=1,
        description="History is trimmed once it grows past this size",
    )

    history_trim_to: int = Field(
        default=500,
        ge=1,
        description="Number of most recent history entries kept after a trim",
    )

    sample_message_length: int = Field(
        default=50,
        ge=1,
        description="Characters of the example message quoted in summaries",
    )

    @model_validator(mode="after")
    def check_history_bounds(self) -> "WindowSettings":
        """Ensure trimming actually shrinks the history."""
        if self.history_trim_to > self.history_max_entries:
            raise ValueError("history_trim_to must not exceed history_max_entries")
        return self


@lru_cache
def get_window_settings() -> WindowSettings:
    """
    Get cached window settings instance.

    Returns:
        WindowSettings: Cached settings instance
    """
    return WindowSettings()
