"""
Event normalization.

Turns the heterogeneous record shapes delivered by the telemetry feeds into
uniform NormalizedEvent values. Records whose timestamps cannot be parsed are
dropped with a warning; a malformed record never aborts the batch.
"""

from collections.abc import Iterable, Mapping
from typing import Any

from shared.config.logging import get_logger
from shared.exceptions import NormalizationError
from shared.observability import metrics
from shared.schemas.events import EventKind, NormalizedEvent, RawEvent
from shared.utils.datetime_utils import minutes_between, parse_timestamp, to_epoch_ms

logger = get_logger(__name__)

# Source field names per kind, first non-empty value wins
FIELD_MAP: dict[EventKind, dict[str, tuple[str, ...]]] = {
    EventKind.STATUS: {
        "start": ("start",),
        "end": ("end",),
        "identifier": ("status", "status_title"),
    },
    EventKind.APONTAMENTO: {
        "start": ("Data Inicial",),
        "end": ("Data Final",),
        "identifier": ("Categoria Demora", "categoria"),
    },
}

EventRecord = RawEvent | NormalizedEvent | Mapping[str, Any]


def _first_present(record: Mapping[str, Any], names: tuple[str, ...]) -> Any:
    for name in names:
        value = record.get(name)
        if value not in (None, ""):
            return value
    return None


def to_raw_event(
    record: Mapping[str, Any],
    kind: EventKind | str,
    source: str = "unknown",
) -> RawEvent:
    """
    Build a RawEvent from a record in one of the feed shapes.

    Args:
        record: Source record
        kind: Event kind, selects which field names are read
        source: Feed the record came from

    Returns:
        RawEvent wrapping the record
    """
    event_kind = EventKind(kind)
    fields = FIELD_MAP[event_kind]
    return RawEvent(
        source=source,
        kind=event_kind,
        start_raw=_first_present(record, fields["start"]),
        end_raw=_first_present(record, fields["end"]),
        identifier_raw=_first_present(record, fields["identifier"]),
        payload=dict(record),
    )


class EventNormalizer:
    """Normalizes raw telemetry records into NormalizedEvent values."""

    def __init__(self, source: str = "unknown"):
        """
        Initialize normalizer.

        Args:
            source: Default source name for records given as plain mappings
        """
        self.source = source
        self.normalized_count = 0
        self.dropped_count = 0

    def normalize_one(
        self,
        record: EventRecord,
        kind: EventKind | str,
        index: int = 0,
    ) -> NormalizedEvent | None:
        """
        Normalize a single record.

        Args:
            record: RawEvent, NormalizedEvent or feed mapping
            kind: Event kind
            index: Position of the record in its batch, part of the event id

        Returns:
            NormalizedEvent, or None when a timestamp is missing or unparseable

        Raises:
            NormalizationError: If the record is not a supported shape
        """
        if isinstance(record, NormalizedEvent):
            return record

        event_kind = EventKind(kind)

        if isinstance(record, RawEvent):
            raw = record
        elif isinstance(record, Mapping):
            raw = to_raw_event(record, event_kind, source=self.source)
        else:
            raise NormalizationError(
                f"Unsupported record type: {type(record).__name__}",
                index=index,
                kind=event_kind.value,
            )

        start_time = parse_timestamp(raw.start_raw)
        end_time = parse_timestamp(raw.end_raw)

        if start_time is None or end_time is None:
            logger.warning(
                "event_invalid_timestamps",
                index=index,
                kind=event_kind.value,
                start=str(raw.start_raw),
                end=str(raw.end_raw),
            )
            return None

        if end_time < start_time:
            logger.warning(
                "event_negative_interval",
                index=index,
                kind=event_kind.value,
                start=start_time.isoformat(),
                end=end_time.isoformat(),
            )
            return None

        identifier = raw.identifier_raw
        return NormalizedEvent(
            id=f"{event_kind.value}_{index}_{to_epoch_ms(start_time)}",
            start_time=start_time,
            end_time=end_time,
            identifier=None if identifier is None else str(identifier),
            duration_minutes=minutes_between(start_time, end_time),
            kind=event_kind,
            original_payload=raw.payload,
        )

    def normalize(
        self,
        records: Iterable[EventRecord],
        kind: EventKind | str,
    ) -> list[NormalizedEvent]:
        """
        Normalize a batch of records, dropping malformed ones.

        Args:
            records: Records to normalize
            kind: Event kind shared by the batch

        Returns:
            Normalized events in input order
        """
        event_kind = EventKind(kind)
        normalized: list[NormalizedEvent] = []

        for index, record in enumerate(records):
            try:
                event = self.normalize_one(record, event_kind, index)
            except Exception as e:
                logger.warning(
                    "event_normalization_failed",
                    index=index,
                    kind=event_kind.value,
                    error=str(e),
                )
                event = None

            if event is None:
                self.dropped_count += 1
                metrics.events_dropped_total.labels(kind=event_kind.value).inc()
                continue

            normalized.append(event)
            self.normalized_count += 1
            metrics.events_normalized_total.labels(kind=event_kind.value).inc()

        return normalized
