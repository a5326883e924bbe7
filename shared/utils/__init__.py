"""
Common utility functions.
"""

from shared.utils.datetime_utils import (
    ensure_utc,
    format_duration,
    format_time_range,
    get_utc_now,
    minutes_between,
    parse_timestamp,
    to_epoch_ms,
)
from shared.utils.hashing import fnv1a_64, stable_hash

__all__ = [
    "get_utc_now",
    "ensure_utc",
    "parse_timestamp",
    "to_epoch_ms",
    "minutes_between",
    "format_duration",
    "format_time_range",
    "fnv1a_64",
    "stable_hash",
]
