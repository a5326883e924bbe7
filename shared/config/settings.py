"""
Application settings using Pydantic Settings.
"""

from collections.abc import Mapping
from functools import lru_cache
from typing import Any, TypeVar

from pydantic import Field
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.exceptions import ConfigurationError

SettingsT = TypeVar("SettingsT", bound=BaseSettings)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: str = Field(
        "development", description="Environment: development, staging, production"
    )
    log_level: str = Field("INFO", description="Logging level")
    json_logs: bool = Field(True, description="Render logs as JSON")

    # Service Configuration
    service_name: str = Field("equipalert", description="Service name")


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance loaded from environment
    """
    return Settings()


def merge_settings(current: SettingsT, changes: Mapping[str, Any]) -> SettingsT:
    """
    Validate a partial update against existing settings.

    The current instance is never modified, so a rejected update leaves the
    previous configuration in effect.

    Args:
        current: Settings currently in use
        changes: Field overrides

    Returns:
        New validated settings instance

    Raises:
        ConfigurationError: If a key is unknown or the merged values are invalid
    """
    settings_cls = type(current)
    unknown = sorted(set(changes) - set(settings_cls.model_fields))
    if unknown:
        raise ConfigurationError(
            f"Unknown configuration keys: {', '.join(unknown)}",
            key=unknown[0],
        )

    try:
        return settings_cls.model_validate({**current.model_dump(), **changes})
    except PydanticValidationError as e:
        errors = [
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
        ]
        raise ConfigurationError(
            f"Invalid configuration: {'; '.join(errors)}",
            errors=errors,
        ) from e
