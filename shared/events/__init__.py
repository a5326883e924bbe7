"""
Telemetry event ingestion.

Parses the record shapes produced by the status and apontamento feeds into
uniform normalized events.
"""

from shared.events.normalizer import FIELD_MAP, EventNormalizer, to_raw_event

__all__ = [
    "EventNormalizer",
    "FIELD_MAP",
    "to_raw_event",
]
