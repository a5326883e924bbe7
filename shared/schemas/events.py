"""
Telemetry event schemas.

Raw events come from the acquisition collaborator, normalized events are the
uniform input of interval consolidation, and consolidated episodes are its
output.
"""

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import Field, model_validator

from shared.schemas.base import FrozenSchema


class EventKind(StrEnum):
    """Kinds of equipment telemetry events."""

    STATUS = "status"
    APONTAMENTO = "apontamento"


class RawEvent(FrozenSchema):
    """Event record as delivered by the acquisition layer."""

    source: str = Field("unknown", description="Feed the record came from")
    kind: EventKind = Field(..., description="Event kind")
    start_raw: Any = Field(None, description="Unparsed start timestamp")
    end_raw: Any = Field(None, description="Unparsed end timestamp")
    identifier_raw: Any = Field(None, description="Unparsed identifier (status or category)")
    payload: dict[str, Any] = Field(default_factory=dict, description="Original record")


class NormalizedEvent(FrozenSchema):
    """Event with parsed timestamps and a uniform shape."""

    id: str = Field(..., description="Batch-local event id")
    start_time: datetime = Field(..., description="Event start (UTC)")
    end_time: datetime = Field(..., description="Event end (UTC)")
    identifier: str | None = Field(None, description="Status or delay category")
    duration_minutes: float = Field(..., description="End minus start, in minutes")
    kind: EventKind = Field(..., description="Event kind")
    original_payload: dict[str, Any] = Field(default_factory=dict, description="Source record")

    @model_validator(mode="after")
    def check_interval(self) -> "NormalizedEvent":
        """Reject intervals that end before they start."""
        if self.end_time < self.start_time:
            raise ValueError("end_time must not precede start_time")
        return self


class ConsolidationEfficiency(FrozenSchema):
    """How much a consolidated episode compressed its members."""

    original_duration: float = Field(..., description="Sum of member durations (minutes)")
    consolidated_duration: float = Field(..., description="Episode duration (minutes)")
    gaps_eliminated: float = Field(..., description="Sum of positive gaps bridged (minutes)")
    compression_ratio: float = Field(..., description="original_duration / consolidated_duration")


class ConsolidatedEpisode(FrozenSchema):
    """One or more same-identifier events merged into a single time span."""

    id: str = Field(..., description="Deterministic episode id")
    start_time: datetime = Field(..., description="Episode start (UTC)")
    end_time: datetime = Field(..., description="Episode end (UTC)")
    identifier: str | None = Field(None, description="Shared identifier of all members")
    duration_minutes: float = Field(..., description="Episode duration in minutes")
    kind: EventKind = Field(..., description="Event kind")
    consolidated: bool = Field(False, description="Whether more than one event was merged")
    record_count: int = Field(1, ge=1, description="Number of member events")
    source_events: list[NormalizedEvent] = Field(default_factory=list, description="Members")
    efficiency: ConsolidationEfficiency = Field(..., description="Compression figures")
    conflicts_resolved: int = Field(0, ge=0, description="Members overlapping their predecessor")
    strategy: str = Field("extend", description="Merge strategy used for the end time")
    attributes: dict[str, Any] = Field(
        default_factory=dict, description="Kind-specific fields carried from the first member"
    )
