"""
Pydantic schemas for EquipAlert.
"""

from shared.schemas.alerts import (
    SEVERITY_ORDER,
    Alert,
    EquipmentContext,
    RuleMatch,
    Severity,
    parse_severity,
    severity_rank,
)
from shared.schemas.base import BaseSchema, FrozenSchema
from shared.schemas.events import (
    ConsolidatedEpisode,
    ConsolidationEfficiency,
    EventKind,
    NormalizedEvent,
    RawEvent,
)

__all__ = [
    # Base
    "BaseSchema",
    "FrozenSchema",
    # Events
    "EventKind",
    "RawEvent",
    "NormalizedEvent",
    "ConsolidationEfficiency",
    "ConsolidatedEpisode",
    # Alerts
    "Severity",
    "SEVERITY_ORDER",
    "parse_severity",
    "severity_rank",
    "RuleMatch",
    "EquipmentContext",
    "Alert",
]
