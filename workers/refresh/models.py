"""
Data models for the refresh worker.

Defines the input of one refresh cycle and its processing result.
"""

from datetime import datetime
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field

from shared.utils.datetime_utils import get_utc_now


class EquipmentBatch(BaseModel):
    """Records of one equipment delivered for a refresh cycle."""

    equipment: str = Field(..., min_length=1, description="Equipment name")
    groups: list[str] = Field(default_factory=list, description="Resolved group tags")
    status: list[dict[str, Any]] = Field(default_factory=list, description="Status records")
    apontamentos: list[dict[str, Any]] = Field(
        default_factory=list, description="Time-tracking records"
    )


class RefreshRequest(BaseModel):
    """Request to run one refresh cycle."""

    cycle_id: str = Field(default_factory=lambda: uuid4().hex, description="Cycle identifier")
    equipment: list[EquipmentBatch] = Field(
        default_factory=list, description="Equipment to process"
    )
    requested_at: datetime = Field(
        default_factory=get_utc_now,
        description="When the cycle was requested",
    )


class RefreshResult(BaseModel):
    """Result of one refresh cycle."""

    cycle_id: str = Field(..., description="Cycle identifier")
    equipment_processed: int = Field(default=0, description="Equipment processed")
    equipment_failed: int = Field(default=0, description="Equipment skipped after an error")
    events_received: int = Field(default=0, description="Raw records received")
    episodes_produced: int = Field(default=0, description="Episodes given to rule evaluation")
    alerts_generated: int = Field(default=0, description="Alerts built from rule matches")
    duplicates_dropped: int = Field(default=0, description="Alerts dropped as duplicates")
    alerts_emitted: int = Field(default=0, description="Alerts handed to the sink")
    success: bool = Field(default=False, description="Whether the cycle completed")
    errors: list[str] = Field(default_factory=list, description="Per-equipment error messages")
    error: str | None = Field(None, description="Error message if the cycle failed")
    processed_at: datetime = Field(
        default_factory=get_utc_now,
        description="When processing completed",
    )
