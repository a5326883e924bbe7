"""
Datetime utility functions.

Telemetry feeds deliver timestamps in several shapes (ISO 8601, Brazilian
day-first formats, Unix seconds or milliseconds). Everything is normalized to
timezone-aware UTC datetimes; naive values are assumed to already be UTC.
"""

import math
import re
from datetime import UTC, datetime, timedelta

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

_UNIX_SECONDS = re.compile(r"^\d{10}$")
_UNIX_MILLIS = re.compile(r"^\d{13}$")

# Tried in order after ISO 8601
COMMON_FORMATS = (
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M",
    "%d/%m/%Y",
    "%d-%m-%Y %H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d",
)

# Numbers above this are treated as epoch milliseconds
_MILLIS_THRESHOLD = 100_000_000_000


def get_utc_now() -> datetime:
    """
    Get current UTC datetime with timezone info.

    Returns:
        Current UTC datetime
    """
    return datetime.now(UTC)


def ensure_utc(dt: datetime) -> datetime:
    """
    Ensure datetime has UTC timezone.

    Args:
        dt: Datetime to convert

    Returns:
        Datetime with UTC timezone
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    elif dt.tzinfo != UTC:
        return dt.astimezone(UTC)
    return dt


def from_epoch(value: float) -> datetime:
    """
    Convert a Unix timestamp in seconds or milliseconds to a UTC datetime.

    Args:
        value: Epoch value; magnitudes above 1e11 are read as milliseconds

    Returns:
        UTC datetime
    """
    if abs(value) >= _MILLIS_THRESHOLD:
        return EPOCH + timedelta(milliseconds=value)
    return EPOCH + timedelta(seconds=value)


def parse_timestamp(value: object) -> datetime | None:
    """
    Parse a timestamp from any supported representation.

    Args:
        value: datetime, epoch number or string

    Returns:
        UTC datetime, or None when the value cannot be parsed
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, datetime):
        return ensure_utc(value)

    if isinstance(value, int | float):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        try:
            return from_epoch(value)
        except (OverflowError, ValueError):
            return None

    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    if _UNIX_SECONDS.match(text):
        return EPOCH + timedelta(seconds=int(text))
    if _UNIX_MILLIS.match(text):
        return EPOCH + timedelta(milliseconds=int(text))

    try:
        return ensure_utc(datetime.fromisoformat(text))
    except ValueError:
        pass

    for fmt in COMMON_FORMATS:
        try:
            return ensure_utc(datetime.strptime(text, fmt))
        except ValueError:
            continue

    return None


def to_epoch_ms(dt: datetime) -> int:
    """
    Convert datetime to integer Unix milliseconds.

    Args:
        dt: Datetime (naive values are read as UTC)

    Returns:
        Milliseconds since the Unix epoch
    """
    return (ensure_utc(dt) - EPOCH) // timedelta(milliseconds=1)


def minutes_between(start: datetime, end: datetime) -> float:
    """
    Get the signed number of minutes from start to end.

    Args:
        start: Start datetime
        end: End datetime

    Returns:
        Minutes (negative when end precedes start)
    """
    return (end - start).total_seconds() / 60


def format_duration(minutes: object) -> str:
    """
    Format a duration in minutes for alert messages.

    Args:
        minutes: Duration in minutes

    Returns:
        Formatted string such as "1h 5min" or "45min"; "0min" for invalid input
    """
    if isinstance(minutes, bool) or not isinstance(minutes, int | float):
        return "0min"
    if not math.isfinite(minutes) or minutes < 0:
        return "0min"

    hours, mins = divmod(round(minutes), 60)
    if hours > 0:
        return f"{hours}h {mins}min"
    return f"{mins}min"


def format_time_range(start: datetime | None, end: datetime | None) -> str:
    """
    Format a time range as "HH:MM to HH:MM".

    Args:
        start: Range start
        end: Range end

    Returns:
        Formatted range, or empty string when either bound is missing
    """
    if start is None or end is None:
        return ""
    return f"{start.strftime('%H:%M')} to {end.strftime('%H:%M')}"
