"""
Alert schemas.
"""

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import Field, field_validator

from shared.schemas.base import BaseSchema
from shared.utils.datetime_utils import get_utc_now


class Severity(StrEnum):
    """Alert severity, ordered from least to most severe."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


SEVERITY_ORDER: tuple[str, ...] = tuple(s.value for s in Severity)


def parse_severity(value: Any, default: Severity = Severity.MEDIUM) -> Severity:
    """
    Parse a severity name case-insensitively.

    Args:
        value: Severity name or enum member
        default: Returned when value is empty or unknown

    Returns:
        Severity member
    """
    if isinstance(value, Severity):
        return value
    if isinstance(value, str):
        try:
            return Severity(value.strip().lower())
        except ValueError:
            return default
    return default


def severity_rank(value: Any) -> int:
    """
    Get the ordinal of a severity (low=1 .. critical=4).

    Args:
        value: Severity name or enum member

    Returns:
        Ordinal, or 0 for unknown values
    """
    if isinstance(value, str) and value.strip().lower() in SEVERITY_ORDER:
        return SEVERITY_ORDER.index(value.strip().lower()) + 1
    return 0


def _coerce_severity(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().lower()
    return value


class RuleMatch(BaseSchema):
    """A rule that matched one equipment episode."""

    rule_id: str = Field(..., description="Rule identifier")
    name: str = Field("", description="Rule display name")
    severity: Severity = Field(Severity.MEDIUM, description="Severity configured on the rule")
    message: str | None = Field(None, description="Rule message template")
    conditions: dict[str, Any] = Field(default_factory=dict, description="Matched conditions")
    type: str = Field("simple", description="Rule type")

    @field_validator("severity", mode="before")
    @classmethod
    def normalize_severity(cls, value: Any) -> Any:
        """Accept severity names in any case."""
        return _coerce_severity(value)


class EquipmentContext(BaseSchema):
    """Already-aggregated data about one equipment."""

    groups: list[str] = Field(default_factory=list, description="Resolved group tags")
    status: list[dict[str, Any]] = Field(default_factory=list, description="Status records")
    apontamentos: list[dict[str, Any]] = Field(
        default_factory=list, description="Time-tracking records"
    )


class Alert(BaseSchema):
    """Alert raised for one rule match, or a summary of a burst of them."""

    id: str = Field(..., description="Per-emission alert id")
    unique_id: str = Field(..., description="Content-derived identity used for deduplication")
    equipment: str = Field(..., description="Equipment name")
    equipment_groups: list[str] = Field(default_factory=list, description="Equipment groups")
    rule_id: str | None = Field(None, description="Rule identifier")
    rule_name: str | None = Field(None, description="Rule display name")
    rule_type: str = Field("simple", description="Rule type")
    severity: Severity = Field(Severity.MEDIUM, description="Alert severity")
    message: str = Field("", description="Rendered message")
    event_type: str = Field("unknown", description="Kind of the triggering episode")
    event_identifier: str | None = Field(None, description="Identifier of the triggering episode")
    timestamp: datetime = Field(default_factory=get_utc_now, description="Emission time")

    consolidated: bool = Field(False, description="Episode merged several events, or summary")
    consolidated_count: int = Field(1, ge=1, description="Alerts represented by this alert")
    first_occurrence: datetime | None = Field(None, description="Earliest member timestamp")
    last_occurrence: datetime | None = Field(None, description="Latest member timestamp")
    criticality_score: int = Field(0, ge=0, le=10, description="0-10 criticality heuristic")

    duration_minutes: float = Field(0.0, description="Episode duration in minutes")
    duration: str = Field("0min", description="Formatted episode duration")
    start_time: datetime | None = Field(None, description="Episode start")
    end_time: datetime | None = Field(None, description="Episode end")
    time_range: str = Field("", description="Formatted episode time range")
    record_count: int = Field(1, ge=1, description="Events merged into the episode")

    severity_scaled: bool = Field(False, description="Severity changed by auto-scaling")
    original_severity: Severity | None = Field(None, description="Severity before scaling")

    recent_statuses: list[str] | None = Field(None, description="Latest status samples")
    utilization_rate: int | None = Field(None, description="Percent of recent samples 'on'")
    recent_event_categories: list[str] | None = Field(
        None, description="Distinct recent apontamento categories"
    )
    event_frequency: int | None = Field(
        None, description="Percent of recent apontamentos matching this identifier"
    )

    error: bool = Field(False, description="Built by the fallback path")
    metadata: dict[str, Any] = Field(default_factory=dict, description="Generation metadata")

    @field_validator("severity", "original_severity", mode="before")
    @classmethod
    def normalize_severity(cls, value: Any) -> Any:
        """Accept severity names in any case."""
        return _coerce_severity(value)
