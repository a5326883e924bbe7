"""
Interval consolidation engine.

Merges chains of continuous or near-continuous telemetry events that share an
identifier into single episodes, tolerating small gaps and, depending on the
conflict policy, overlapping members.
"""

import time
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import asdict, dataclass
from typing import Any

from shared.config.logging import get_logger
from shared.config.settings import merge_settings
from shared.consolidation.config import ConsolidationSettings, get_consolidation_settings
from shared.events.normalizer import EventNormalizer
from shared.exceptions import ConsolidationError, NormalizationError
from shared.observability import metrics
from shared.schemas.events import (
    ConsolidatedEpisode,
    ConsolidationEfficiency,
    EventKind,
    NormalizedEvent,
    RawEvent,
)
from shared.utils.datetime_utils import minutes_between
from shared.utils.hashing import stable_hash

logger = get_logger(__name__)

EventInput = NormalizedEvent | ConsolidatedEpisode | RawEvent | Mapping[str, Any]

# Keys accepted for each kind in an equipment's event mapping
KIND_KEYS: dict[EventKind, tuple[str, ...]] = {
    EventKind.STATUS: ("status",),
    EventKind.APONTAMENTO: ("apontamento", "apontamentos"),
}


@dataclass
class ConsolidationQuality:
    """Quality analysis of one consolidation pass."""

    reduction_ratio: float
    average_group_size: float
    consolidated_count: int
    single_event_count: int
    short_episode_count: int
    total_original_duration: float
    total_consolidated_duration: float
    quality_score: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ConsolidationStats:
    """Running counters of an IntervalConsolidator."""

    passes: int = 0
    total_processed: int = 0
    total_consolidated: int = 0
    average_reduction: float = 0.0
    processing_time: float = 0.0
    failures: int = 0

    def record(self, original_count: int, episode_count: int, elapsed: float) -> None:
        reduction = (
            (original_count - episode_count) / original_count * 100 if original_count else 0.0
        )
        self.passes += 1
        self.total_processed += original_count
        self.total_consolidated += episode_count
        self.processing_time += elapsed
        self.average_reduction += (reduction - self.average_reduction) / self.passes


class IntervalConsolidator:
    """
    Engine for consolidating telemetry events into episodes.

    Events are sorted by start time and scanned once. An event joins the
    current group when it has the same identifier as the group's last member
    and starts no later than max_gap_minutes after that member ends. Overlaps
    only chain when allow_overlap is set or conflict_resolution is "merge".
    """

    def __init__(
        self,
        settings: ConsolidationSettings | None = None,
        normalizer: EventNormalizer | None = None,
    ):
        """
        Initialize interval consolidator.

        Args:
            settings: Consolidation settings (optional)
            normalizer: Normalizer for raw records (optional)
        """
        self.settings = settings or get_consolidation_settings()
        self.normalizer = normalizer or EventNormalizer()
        self.stats = ConsolidationStats()
        logger.info(
            "interval_consolidator_initialized",
            max_gap_minutes=self.settings.max_gap_minutes,
            merge_strategy=self.settings.merge_strategy,
            conflict_resolution=self.settings.conflict_resolution,
        )

    def consolidate(
        self,
        events: Sequence[EventInput],
        kind: EventKind | str = EventKind.STATUS,
    ) -> list[ConsolidatedEpisode] | list[EventInput]:
        """
        Consolidate the events of one equipment and kind.

        Args:
            events: Normalized events, episodes from an earlier pass or raw records
            kind: Event kind

        Returns:
            Episodes in ascending start order, or the original events if
            consolidation failed unexpectedly
        """
        if not events:
            return []

        started = time.perf_counter()
        kind_label = str(kind)

        try:
            event_kind = self._event_kind(kind)
            if not self.settings.enabled:
                return list(events)

            normalized, episodes_by_id = self._prepare(events, event_kind)
            groups = self._group_continuous_events(self._sort_events(normalized))
            episodes = [self._build_episode(group, event_kind, episodes_by_id) for group in groups]

        except Exception as e:
            self.stats.failures += 1
            metrics.consolidation_failures_total.labels(kind=kind_label).inc()
            logger.exception(
                "consolidation_failed",
                kind=kind_label,
                event_count=len(events),
                error=str(e),
            )
            return list(events)

        elapsed = time.perf_counter() - started
        self.stats.record(len(events), len(episodes), elapsed)
        for episode in episodes:
            metrics.episodes_produced_total.labels(
                kind=event_kind.value,
                consolidated=str(episode.consolidated).lower(),
            ).inc()

        logger.debug(
            "consolidation_complete",
            kind=event_kind.value,
            original_count=len(events),
            episode_count=len(episodes),
            duration_ms=round(elapsed * 1000, 3),
        )
        return episodes

    def consolidate_equipment(
        self,
        equipment_events: Mapping[str, Sequence[EventInput]],
    ) -> dict[str, list[Any]]:
        """
        Consolidate every event kind of one equipment independently.

        Args:
            equipment_events: Events keyed by kind ("status", "apontamento")

        Returns:
            Consolidation result per kind
        """
        result: dict[str, list[Any]] = {}
        for event_kind, keys in KIND_KEYS.items():
            events: Sequence[EventInput] = []
            for key in keys:
                if equipment_events.get(key):
                    events = equipment_events[key]
                    break
            result[event_kind.value] = self.consolidate(events, event_kind)
        return result

    def analyze_quality(
        self,
        original: Sequence[EventInput],
        episodes: Sequence[Any],
    ) -> ConsolidationQuality:
        """
        Score how well a consolidation pass compressed its input.

        Args:
            original: Events given to consolidate()
            episodes: What consolidate() returned

        Returns:
            ConsolidationQuality with a 0-100 score
        """
        original_count = len(original)
        episode_count = len(episodes)

        consolidated_count = sum(1 for e in episodes if getattr(e, "consolidated", False))
        quality = ConsolidationQuality(
            reduction_ratio=(
                (original_count - episode_count) / original_count if original_count else 0.0
            ),
            average_group_size=original_count / episode_count if episode_count else 0.0,
            consolidated_count=consolidated_count,
            single_event_count=episode_count - consolidated_count,
            short_episode_count=sum(
                1
                for e in episodes
                if getattr(e, "duration_minutes", 0.0) < self.settings.min_duration_minutes
            ),
            total_original_duration=sum(self._event_duration(e) for e in original),
            total_consolidated_duration=sum(
                getattr(e, "duration_minutes", 0.0) for e in episodes
            ),
        )
        quality.quality_score = self._quality_score(quality)
        return quality

    def update_settings(self, **changes: Any) -> ConsolidationSettings:
        """
        Apply a validated settings update.

        Args:
            **changes: Field overrides

        Returns:
            The settings now in effect

        Raises:
            ConfigurationError: If the update is invalid; the previous
                settings stay in effect
        """
        self.settings = merge_settings(self.settings, changes)
        logger.info("consolidation_settings_updated", changes=sorted(changes))
        return self.settings

    def get_metrics(self) -> dict[str, Any]:
        """Get running consolidation counters."""
        return {
            **asdict(self.stats),
            "max_gap_minutes": self.settings.max_gap_minutes,
            "merge_strategy": self.settings.merge_strategy,
        }

    def reset_metrics(self) -> None:
        self.stats = ConsolidationStats()

    def _prepare(
        self,
        events: Iterable[EventInput],
        kind: EventKind,
    ) -> tuple[list[NormalizedEvent], dict[str, ConsolidatedEpisode]]:
        """
        Normalize mixed input, standing episodes in for their own span.

        Args:
            events: Input events
            kind: Event kind

        Returns:
            Tuple of (normalized events, episodes keyed by stand-in id)
        """
        records: list[Any] = []
        episodes_by_id: dict[str, ConsolidatedEpisode] = {}

        for event in events:
            if isinstance(event, ConsolidatedEpisode):
                episodes_by_id[event.id] = event
                records.append(
                    NormalizedEvent(
                        id=event.id,
                        start_time=event.start_time,
                        end_time=event.end_time,
                        identifier=event.identifier,
                        duration_minutes=event.duration_minutes,
                        kind=event.kind,
                    )
                )
            else:
                records.append(event)

        return self.normalizer.normalize(records, kind), episodes_by_id

    def _event_kind(self, kind: EventKind | str) -> EventKind:
        try:
            return EventKind(kind)
        except ValueError as e:
            raise ConsolidationError(f"Unknown event kind: {kind}", kind=str(kind)) from e

    def _sort_events(self, events: list[NormalizedEvent]) -> list[NormalizedEvent]:
        # sorted() is stable, so equal starts keep input order
        return sorted(events, key=lambda e: e.start_time)

    def _group_continuous_events(
        self,
        events: list[NormalizedEvent],
    ) -> list[list[NormalizedEvent]]:
        """
        Split sorted events into chains of mergeable neighbours.

        Args:
            events: Events sorted by start time

        Returns:
            Groups in order; every event belongs to exactly one group
        """
        if not events:
            return []

        groups: list[list[NormalizedEvent]] = []
        current = [events[0]]

        for event in events[1:]:
            if self._should_merge(current[-1], event):
                current.append(event)
            else:
                groups.append(current)
                current = [event]

        groups.append(current)
        return groups

    def _should_merge(self, last: NormalizedEvent, following: NormalizedEvent) -> bool:
        """
        Decide whether an event continues the chain ending in last.

        Args:
            last: Last member of the current group
            following: Next event in start order

        Returns:
            True if the event joins the group
        """
        if last.identifier != following.identifier:
            return False

        gap_minutes = minutes_between(last.end_time, following.start_time)
        if gap_minutes > self.settings.max_gap_minutes:
            return False

        if gap_minutes < 0 and not self.settings.allow_overlap:
            return self.settings.conflict_resolution == "merge"

        return True

    def _resolve_end(self, group: list[NormalizedEvent]):
        if self.settings.merge_strategy == "extend":
            return max(e.end_time for e in group)
        # "replace" and "skip" both end at the last member
        return group[-1].end_time

    def _build_episode(
        self,
        group: list[NormalizedEvent],
        kind: EventKind,
        episodes_by_id: Mapping[str, ConsolidatedEpisode],
    ) -> ConsolidatedEpisode:
        """
        Create the episode for one group.

        Args:
            group: Group members in start order
            kind: Event kind
            episodes_by_id: Episodes given as input, keyed by stand-in id

        Returns:
            ConsolidatedEpisode spanning the group
        """
        first = group[0]
        if len(group) == 1 and first.id in episodes_by_id:
            return episodes_by_id[first.id]

        source_events: list[NormalizedEvent] = []
        record_count = 0
        carried_conflicts = 0
        for member in group:
            episode = episodes_by_id.get(member.id)
            if episode is None:
                source_events.append(member)
                record_count += 1
            else:
                source_events.extend(episode.source_events or [member])
                record_count += episode.record_count
                carried_conflicts += episode.conflicts_resolved

        start_time = first.start_time
        end_time = self._resolve_end(group)
        duration = minutes_between(start_time, end_time)
        original_duration = sum(e.duration_minutes for e in source_events)

        first_episode = episodes_by_id.get(first.id)
        if first_episode is not None:
            attributes = dict(first_episode.attributes)
        else:
            attributes = self._episode_attributes(first, kind)

        return ConsolidatedEpisode(
            id=f"{kind.value}_episode_{stable_hash(*(e.id for e in source_events))}",
            start_time=start_time,
            end_time=end_time,
            identifier=first.identifier,
            duration_minutes=duration,
            kind=kind,
            consolidated=len(group) > 1,
            record_count=record_count,
            source_events=source_events,
            efficiency=ConsolidationEfficiency(
                original_duration=original_duration,
                consolidated_duration=duration,
                gaps_eliminated=self._total_gaps(group),
                compression_ratio=original_duration / duration if duration > 0 else 1.0,
            ),
            conflicts_resolved=self._count_conflicts(group) + carried_conflicts,
            strategy=self.settings.merge_strategy,
            attributes=attributes,
        )

    def _total_gaps(self, group: list[NormalizedEvent]) -> float:
        total = 0.0
        for previous, current in zip(group, group[1:]):
            gap = minutes_between(previous.end_time, current.start_time)
            if gap > 0:
                total += gap
        return total

    def _count_conflicts(self, group: list[NormalizedEvent]) -> int:
        """Count members that start before the previous member ends."""
        return sum(
            1 for previous, current in zip(group, group[1:])
            if current.start_time < previous.end_time
        )

    def _episode_attributes(self, event: NormalizedEvent, kind: EventKind) -> dict[str, Any]:
        payload = event.original_payload
        if kind == EventKind.STATUS:
            return {
                "status": event.identifier,
                "vacancy_name": payload.get("vacancy_name"),
                "vacancy_code": payload.get("vacancy_code"),
            }
        return {
            "categoria": event.identifier,
            "vaga": payload.get("Vaga") or payload.get("vaga"),
            "placa": payload.get("Placa") or payload.get("placa"),
        }

    def _event_duration(self, event: EventInput) -> float:
        """
        Duration of one input event in minutes, 0 if it cannot be read.

        Args:
            event: Input event of any supported shape

        Returns:
            Duration in minutes
        """
        duration = getattr(event, "duration_minutes", None)
        if duration is not None:
            return duration

        if isinstance(event, RawEvent):
            kind = event.kind
        elif isinstance(event, Mapping) and "Data Inicial" in event:
            kind = EventKind.APONTAMENTO
        else:
            kind = EventKind.STATUS

        try:
            normalized = self.normalizer.normalize_one(event, kind)
        except NormalizationError:
            return 0.0
        return normalized.duration_minutes if normalized else 0.0

    def _quality_score(self, quality: ConsolidationQuality) -> int:
        """
        Calculate a 0-100 quality score.

        Reduction earns up to 40 points, average group size close to the
        ideal up to 30, and preserved duration up to 30.

        Args:
            quality: Analysis figures

        Returns:
            Rounded score
        """
        score = min(quality.reduction_ratio * 100, 40.0)

        score += max(
            0.0,
            30 - abs(quality.average_group_size - self.settings.ideal_group_size) * 5,
        )

        if quality.total_original_duration > 0:
            preservation = min(
                quality.total_consolidated_duration / quality.total_original_duration, 1.0
            )
        else:
            preservation = 1.0
        score += preservation * 30

        return round(score)

    def close(self) -> None:
        """Log final counters."""
        logger.info("interval_consolidator_closed", **asdict(self.stats))

    def __enter__(self) -> "IntervalConsolidator":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
