"""
Interval consolidation of telemetry events.

Merges continuous chains of same-identifier events into episodes using a
configurable gap tolerance, merge strategy and overlap policy.
"""

from shared.consolidation.config import ConsolidationSettings, get_consolidation_settings
from shared.consolidation.engine import (
    ConsolidationQuality,
    ConsolidationStats,
    IntervalConsolidator,
)

__all__ = [
    "ConsolidationQuality",
    "ConsolidationSettings",
    "ConsolidationStats",
    "IntervalConsolidator",
    "get_consolidation_settings",
]
