"""
Configuration settings for interval consolidation.

Defines the gap tolerance, merge strategy and overlap (conflict) policy used
to merge continuous telemetry events into episodes.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

MergeStrategy = Literal["extend", "replace", "skip"]
ConflictResolution = Literal["latest", "earliest", "longest", "merge"]


class ConsolidationSettings(BaseSettings):
    """Settings for interval consolidation."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="CONSOLIDATION_",
        case_sensitive=False,
    )

    enabled: bool = Field(
        default=True,
        description="Whether episodes are consolidated at all",
    )

    # Gap tolerance
    max_gap_minutes: float = Field(
        default=15.0,
        gt=0.0,
        description="Largest gap between two events that still chains them together",
    )

    min_duration_minutes: float = Field(
        default=1.0,
        ge=0.0,
        description="Episodes shorter than this are reported as short in quality analysis",
    )

    # Overlap handling
    allow_overlap: bool = Field(
        default=False,
        description="Chain overlapping events regardless of conflict_resolution",
    )

    conflict_resolution: ConflictResolution = Field(
        default="latest",
        description="Overlap policy: 'latest', 'earliest', 'longest' or 'merge'. "
        "Only 'merge' chains overlapping events",
    )

    # End time resolution
    merge_strategy: MergeStrategy = Field(
        default="extend",
        description="'extend' ends an episode at the latest member end; "
        "'replace' and 'skip' end it at the last member's end",
    )

    # Quality analysis
    ideal_group_size: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Group size that scores best in quality analysis",
    )


@lru_cache
def get_consolidation_settings() -> ConsolidationSettings:
    """
    Get cached consolidation settings instance.

    Returns:
        ConsolidationSettings: Cached settings instance
    """
    return ConsolidationSettings()
