"""
Configuration settings for alert generation and deduplication.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DeduplicationStrategy = Literal["hash", "id", "time_window", "smart"]


class AlertFactorySettings(BaseSettings):
    """Settings for building alerts from rule matches."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="ALERT_FACTORY_",
        case_sensitive=False,
    )

    # Message generation
    enable_templating: bool = Field(
        default=True,
        description="Substitute placeholders in message templates",
    )

    enable_group_specific_messages: bool = Field(
        default=True,
        description="Prefer the template registered for the equipment's primary group",
    )

    default_template: str = Field(
        default="{equipment} - {event} for {duration}",
        min_length=1,
        description="Template used when neither group nor rule provides one",
    )

    strip_unknown_placeholders: bool = Field(
        default=False,
        description="Remove placeholders that have no value instead of leaving them intact",
    )

    # Enrichment
    enable_contextual_info: bool = Field(
        default=True,
        description="Add recent status and apontamento context to alerts",
    )

    context_sample_size: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Number of most recent records used for context",
    )

    enable_severity_scaling: bool = Field(
        default=False,
        description="Raise or lower severity one step based on episode context",
    )


class DeduplicationSettings(BaseSettings):
    """Settings for alert deduplication."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="ALERT_DEDUP_",
        case_sensitive=False,
    )

    strategy: DeduplicationStrategy = Field(
        default="hash",
        description="Duplicate detection: 'hash', 'id', 'time_window' or 'smart'",
    )

    window_minutes: float = Field(
        default=60.0,
        gt=0.0,
        description="Same equipment and rule within this span count as duplicates "
        "(time_window and smart strategies)",
    )

    enable_caching: bool = Field(
        default=True,
        description="Remember duplicate hashes across calls",
    )

    max_cache_size: int = Field(
        default=10000,
        ge=1,
        description="Maximum remembered duplicate hashes (oldest evicted first)",
    )


@lru_cache
def get_alert_factory_settings() -> AlertFactorySettings:
    """
    Get cached alert factory settings instance.

    Returns:
        AlertFactorySettings: Cached settings instance
    """
    return AlertFactorySettings()


@lru_cache
def get_deduplication_settings() -> DeduplicationSettings:
    """
    Get cached deduplication settings instance.

    Returns:
        DeduplicationSettings: Cached settings instance
    """
    return DeduplicationSettings()
