"""
Configuration settings for the refresh worker.

Defines the refresh cadence, the window sweep cadence and which pipeline
stages run in each cycle.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RefreshWorkerSettings(BaseSettings):
    """Settings for the refresh worker."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="REFRESH_WORKER_",
        case_sensitive=False,
    )

    # Worker identification
    worker_name: str = Field(
        default="refresh-worker",
        description="Name of the worker instance",
    )

    # Scheduling
    refresh_interval_seconds: float = Field(
        default=60.0,
        ge=1.0,
        le=3600.0,
        description="Seconds between refresh cycles",
    )

    sweep_interval_seconds: float = Field(
        default=300.0,
        ge=1.0,
        le=3600.0,
        description="Seconds between window expiry sweeps",
    )

    # Pipeline stages
    enable_consolidation: bool = Field(
        default=True,
        description="Consolidate events into episodes before rule evaluation",
    )

    enable_deduplication: bool = Field(
        default=True,
        description="Drop alerts the sink already holds",
    )

    enable_window_consolidation: bool = Field(
        default=True,
        description="Collapse alert bursts into windowed summaries",
    )

    # Processing limits
    max_equipment_per_cycle: int = Field(
        default=500,
        ge=1,
        le=10000,
        description="Maximum equipment processed in one cycle",
    )


@lru_cache
def get_refresh_worker_settings() -> RefreshWorkerSettings:
    """
    Get cached refresh worker settings instance.

    Returns:
        RefreshWorkerSettings: Cached settings instance
    """
    return RefreshWorkerSettings()
