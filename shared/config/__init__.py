"""
Configuration management.
"""

from shared.config.logging import (
    bind_cycle_context,
    clear_cycle_context,
    get_logger,
    setup_logging,
    setup_logging_from_settings,
)
from shared.config.settings import Settings, get_settings, merge_settings

__all__ = [
    "Settings",
    "get_settings",
    "merge_settings",
    "get_logger",
    "setup_logging",
    "setup_logging_from_settings",
    "bind_cycle_context",
    "clear_cycle_context",
]
