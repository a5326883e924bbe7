"""
Windowed alert consolidation.

Collapses bursts of similar alerts into one summary alert per active window.
A window grows as later batches deliver more alerts for the same group key
and is replaced by a fresh one once it is too old or full.
"""

import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from shared.config.logging import get_logger
from shared.config.settings import merge_settings
from shared.exceptions import ValidationError, WindowConsolidationError
from shared.observability import metrics
from shared.schemas.alerts import Alert, severity_rank
from shared.utils.datetime_utils import format_duration, format_time_range, minutes_between
from shared.utils.hashing import stable_hash
from shared.windowing.config import WindowSettings, get_window_settings
from shared.windowing.store import ActiveWindow, WindowStore

logger = get_logger(__name__)

SMALL_BURST_MAX = 5
MEDIUM_BURST_MAX = 20


def burst_type(count: int) -> str:
    if count <= SMALL_BURST_MAX:
        return "SMALL_BURST"
    if count <= MEDIUM_BURST_MAX:
        return "MEDIUM_BURST"
    return "LARGE_BURST"


def _from_epoch_seconds(value: float) -> datetime:
    return datetime.fromtimestamp(value, UTC)


@dataclass
class WindowStats:
    """Running counters of an AlertWindowConsolidator."""

    batches: int = 0
    total_consolidations: int = 0
    total_alerts_consolidated: int = 0
    passed_through: int = 0
    failures: int = 0
    processing_time_ms: float = 0.0

    @property
    def average_consolidation_size(self) -> float:
        if not self.total_consolidations:
            return 0.0
        return self.total_alerts_consolidated / self.total_consolidations


class AlertWindowConsolidator:
    """
    Consolidator that merges similar alerts into windowed summaries.

    Alerts are partitioned by a composite group key. Groups smaller than
    min_alerts_to_consolidate pass through unchanged; larger groups extend
    the valid window for their key, or open a new one, and are replaced by a
    single summary regenerated from every alert the window holds.
    """

    def __init__(
        self,
        settings: WindowSettings | None = None,
        store: WindowStore | None = None,
    ):
        """
        Initialize window consolidator.

        Args:
            settings: Window settings (optional, defaults to the store's)
            store: Window store (optional, one is created if omitted)
        """
        if settings is None:
            settings = store.settings if store is not None else get_window_settings()
        self.settings = settings
        self.store = store or WindowStore(settings)
        self.store.settings = settings
        self.stats = WindowStats()
        logger.info(
            "window_consolidator_initialized",
            min_alerts_to_consolidate=settings.min_alerts_to_consolidate,
            max_consolidated_alerts=settings.max_consolidated_alerts,
            max_consolidation_age_seconds=settings.max_consolidation_age_seconds,
        )

    def process(self, alerts: Sequence[Alert]) -> list[Alert]:
        """
        Consolidate one batch of freshly generated alerts.

        Args:
            alerts: Alerts of the batch

        Returns:
            Pass-through alerts and one summary per touched window, in order
            of first appearance of each group; the input unchanged if
            consolidation failed unexpectedly
        """
        if not self._is_well_formed(alerts):
            logger.warning(
                "window_input_invalid",
                type=type(alerts).__name__,
                count=len(alerts) if isinstance(alerts, Sequence) else None,
            )
            return []

        started = time.perf_counter()
        try:
            batch = [
                alert if isinstance(alert, Alert) else Alert.model_validate(alert)
                for alert in alerts
            ]
            with self.store.lock:
                now = time.time()
                self.store.sweep(now)

                output: list[Alert] = []
                for group_key, group in self.group_alerts(batch).items():
                    output.extend(self._process_group(group_key, group, now))

                self.store.sweep(now)

        except Exception as e:
            self.stats.failures += 1
            metrics.window_consolidation_failures_total.inc()
            logger.exception(
                "window_consolidation_failed",
                alert_count=len(alerts),
                error=str(e),
            )
            return list(alerts)

        elapsed_ms = (time.perf_counter() - started) * 1000
        self.stats.batches += 1
        self.stats.processing_time_ms += elapsed_ms

        logger.info(
            "window_consolidation_complete",
            original_alerts=len(alerts),
            processed_alerts=len(output),
            reduction=len(alerts) - len(output),
            duration_ms=round(elapsed_ms, 3),
        )
        return output

    def group_key(self, alert: Alert) -> str:
        """
        Build the composite group key of an alert.

        Args:
            alert: Alert

        Returns:
            "|"-joined key parts, or "default" if none apply
        """
        parts = []
        if self.settings.group_by_equipment and alert.equipment:
            parts.append(f"eq:{alert.equipment}")
        if self.settings.group_by_event_type and alert.event_type:
            parts.append(f"et:{alert.event_type}")
        if self.settings.group_by_equipment_group and alert.equipment_groups:
            parts.append(f"eg:{','.join(alert.equipment_groups)}")
        if self.settings.group_by_rule and alert.rule_id:
            parts.append(f"r:{alert.rule_id}")
        if self.settings.group_by_severity and alert.severity:
            parts.append(f"s:{alert.severity}")
        return "|".join(parts) or "default"

    def group_alerts(self, alerts: Sequence[Alert]) -> dict[str, list[Alert]]:
        groups: dict[str, list[Alert]] = {}
        for alert in alerts:
            groups.setdefault(self.group_key(alert), []).append(alert)
        return groups

    def force_consolidation(self, alerts: Sequence[Alert], group_key: str | None = None) -> Alert:
        """
        Summarize alerts without registering a window.

        Args:
            alerts: Alerts to summarize
            group_key: Key recorded in the summary metadata (optional)

        Returns:
            Summary alert

        Raises:
            ValidationError: If alerts is empty
        """
        if not alerts:
            raise ValidationError("Cannot force consolidation of an empty alert list", field="alerts")

        now = time.time()
        now_ms = int(now * 1000)
        window = ActiveWindow(
            id=f"forced_cons_{now_ms}",
            group_key=group_key or f"forced_{now_ms}",
            created_at=now,
            last_updated=now,
            alerts=list(alerts),
        )
        summary = self.summarize(window, forced=True)

        logger.info(
            "forced_consolidation_created",
            group_key=window.group_key,
            alert_count=window.count,
        )
        return summary

    def summarize(self, window: ActiveWindow, forced: bool = False) -> Alert:
        """
        Generate the summary alert of a window.

        Args:
            window: Window with at least one alert
            forced: Whether the window was built by force_consolidation

        Returns:
            Summary alert whose uniqueId is stable for the window's lifetime

        Raises:
            WindowConsolidationError: If the window holds no alerts
        """
        if not window.alerts:
            raise WindowConsolidationError(
                "Cannot summarize an empty window", group_key=window.group_key
            )

        alerts = window.alerts
        first = alerts[0]

        timestamps = [a.timestamp for a in alerts]
        first_occurrence = min(timestamps)
        last_occurrence = max(timestamps)
        starts = [a.start_time for a in alerts if a.start_time is not None]
        ends = [a.end_time for a in alerts if a.end_time is not None]
        start_time = min(starts) if starts else None
        end_time = max(ends) if ends else None
        span_minutes = minutes_between(first_occurrence, last_occurrence)

        return Alert(
            id=window.id,
            unique_id=stable_hash("consolidated", window.group_key, int(window.created_at * 1000)),
            equipment=first.equipment,
            equipment_groups=list(first.equipment_groups),
            rule_id=first.rule_id,
            rule_name=first.rule_name,
            rule_type=first.rule_type,
            severity=max(alerts, key=lambda a: severity_rank(a.severity)).severity,
            message=self._summary_message(window),
            event_type=first.event_type,
            event_identifier=first.event_identifier,
            timestamp=_from_epoch_seconds(window.last_updated),
            consolidated=True,
            consolidated_count=window.count,
            first_occurrence=first_occurrence,
            last_occurrence=last_occurrence,
            criticality_score=max(a.criticality_score for a in alerts),
            duration_minutes=span_minutes,
            duration=format_duration(span_minutes),
            start_time=start_time,
            end_time=end_time,
            time_range=format_time_range(start_time, end_time),
            record_count=sum(a.record_count for a in alerts),
            metadata={
                "consolidation": {
                    "groupKey": window.group_key,
                    "windowId": window.id,
                    "alertCount": window.count,
                    "timeSpanSeconds": (last_occurrence - first_occurrence).total_seconds(),
                    "consolidationType": burst_type(window.count),
                    "forced": forced,
                },
                "originalAlerts": [
                    {
                        "id": a.id,
                        "uniqueId": a.unique_id,
                        "timestamp": a.timestamp.isoformat(),
                        "message": a.message,
                    }
                    for a in alerts
                ],
            },
        )

    def get_stats(self) -> dict[str, Any]:
        """Get consolidation counters, active window count and recent history."""
        return {
            "batches": self.stats.batches,
            "total_consolidations": self.stats.total_consolidations,
            "total_alerts_consolidated": self.stats.total_alerts_consolidated,
            "average_consolidation_size": self.stats.average_consolidation_size,
            "passed_through": self.stats.passed_through,
            "failures": self.stats.failures,
            "processing_time_ms": self.stats.processing_time_ms,
            "active_windows": len(self.store),
            "recent_history": self.store.recent_history(10),
            "consolidation_window_seconds": self.settings.consolidation_window_seconds,
            "min_alerts_to_consolidate": self.settings.min_alerts_to_consolidate,
            "max_consolidated_alerts": self.settings.max_consolidated_alerts,
        }

    def reset(self) -> int:
        """
        Drop all active windows and history.

        Returns:
            Number of windows dropped
        """
        return self.store.reset()

    def update_settings(self, **changes: Any) -> WindowSettings:
        """
        Apply a validated settings update.

        Args:
            **changes: Field overrides

        Returns:
            The settings now in effect

        Raises:
            ConfigurationError: If the update is invalid
        """
        settings = merge_settings(self.settings, changes)
        with self.store.lock:
            self.settings = settings
            self.store.settings = settings
        logger.info("window_settings_updated", changes=sorted(changes))
        return settings

    def _process_group(self, group_key: str, alerts: list[Alert], now: float) -> list[Alert]:
        """
        Consolidate one group of the batch.

        Args:
            group_key: Group key
            alerts: Alerts of the group, in arrival order
            now: Batch time in epoch seconds

        Returns:
            The alerts unchanged, or the window summary
        """
        if len(alerts) < self.settings.min_alerts_to_consolidate:
            self.stats.passed_through += len(alerts)
            return list(alerts)

        window = self.store.get(group_key)
        if window is not None and self.store.is_valid(window, now):
            previous_count = window.count
            self.store.extend(window, alerts, now)
            self.stats.total_alerts_consolidated += window.count - previous_count
        else:
            window = self.store.open(group_key, alerts, now)
            self.stats.total_consolidations += 1
            self.stats.total_alerts_consolidated += window.count

        return [self.summarize(window)]

    def _summary_message(self, window: ActiveWindow) -> str:
        first = window.alerts[0]
        minutes = round((window.last_updated - window.created_at) / 60)
        message = (
            f"[CONSOLIDATED] {window.count} similar alerts for {first.equipment} "
            f"({first.event_type}) in {minutes} minutes"
        )

        if first.message:
            limit = self.settings.sample_message_length
            sample = first.message if len(first.message) <= limit else first.message[:limit] + "..."
            message += f'. Example: "{sample}"'

        return message

    def _is_well_formed(self, alerts: Any) -> bool:
        if not isinstance(alerts, Sequence) or isinstance(alerts, str | bytes):
            return False
        if not alerts:
            return False
        return all(isinstance(alert, Alert | Mapping) for alert in alerts)
