"""
Alert deduplication.

Drops freshly built alerts that duplicate an alert already persisted or an
earlier alert of the same batch.
"""

from collections import OrderedDict
from collections.abc import Iterable, Sequence
from dataclasses import asdict, dataclass, field
from datetime import datetime

from shared.alerts.config import DeduplicationSettings, get_deduplication_settings
from shared.config.logging import get_logger
from shared.config.settings import merge_settings
from shared.observability import metrics
from shared.schemas.alerts import Alert
from shared.utils.hashing import stable_hash

logger = get_logger(__name__)


def alert_content_hash(alert: Alert) -> str:
    """
    Hash the fields that make two alerts the same notification.

    Args:
        alert: Alert to hash

    Returns:
        16-character hex digest
    """
    return stable_hash(
        alert.equipment,
        alert.rule_id,
        alert.event_identifier or alert.event_type,
        alert.start_time or alert.timestamp,
        alert.end_time or alert.timestamp,
        alert.consolidated,
        alert.severity,
    )


@dataclass
class AlertIndex:
    """Lookup tables over a set of alerts."""

    by_hash: set[str] = field(default_factory=set)
    by_unique_id: set[str] = field(default_factory=set)
    by_equipment_rule: dict[tuple[str, str | None], list[datetime]] = field(default_factory=dict)

    def add(self, alert: Alert) -> None:
        self.by_hash.add(alert_content_hash(alert))
        if alert.unique_id:
            self.by_unique_id.add(alert.unique_id)
        # A window summary stands in for its members
        for member in alert.metadata.get("originalAlerts", ()):
            if isinstance(member, dict) and member.get("uniqueId"):
                self.by_unique_id.add(member["uniqueId"])
        self.by_equipment_rule.setdefault((alert.equipment, alert.rule_id), []).append(
            alert.timestamp
        )


@dataclass
class DeduplicationStats:
    """Running counters of an AlertDeduplicator."""

    total_processed: int = 0
    duplicates_found: int = 0
    unique_alerts: int = 0
    cache_hits: int = 0
    cache_misses: int = 0
    errors: int = 0


class AlertDeduplicator:
    """
    Removes duplicate alerts.

    Strategies:
        hash: same content hash (equipment, rule, identifier, span,
            consolidated flag, severity)
        id: same uniqueId
        time_window: same equipment and rule within window_minutes
        smart: hash, then id, then time window
    """

    def __init__(self, settings: DeduplicationSettings | None = None):
        """
        Initialize deduplicator.

        Args:
            settings: Deduplication settings (optional)
        """
        self.settings = settings or get_deduplication_settings()
        self.stats = DeduplicationStats()
        self._hash_cache: OrderedDict[str, None] = OrderedDict()
        logger.info(
            "alert_deduplicator_initialized",
            strategy=self.settings.strategy,
            window_minutes=self.settings.window_minutes,
        )

    def deduplicate(
        self,
        new_alerts: Sequence[Alert],
        existing_alerts: Iterable[Alert] = (),
    ) -> list[Alert]:
        """
        Remove duplicates from a batch of new alerts.

        Args:
            new_alerts: Freshly built alerts
            existing_alerts: Alerts already persisted

        Returns:
            New alerts that are not duplicates, in input order
        """
        if not isinstance(new_alerts, Sequence) or isinstance(new_alerts, str | bytes):
            logger.warning("deduplication_invalid_input", type=type(new_alerts).__name__)
            return []

        self.stats.total_processed += len(new_alerts)

        existing = AlertIndex()
        for alert in existing_alerts:
            existing.add(alert)
        processed = AlertIndex()

        unique: list[Alert] = []
        duplicates = 0
        for alert in new_alerts:
            try:
                is_duplicate = self.is_duplicate(alert, existing, processed)
            except Exception as e:
                # Keep the alert rather than lose it
                self.stats.errors += 1
                logger.error(
                    "duplicate_check_failed",
                    alert_id=getattr(alert, "id", None),
                    error=str(e),
                )
                unique.append(alert)
                continue

            if is_duplicate:
                duplicates += 1
                logger.debug(
                    "duplicate_alert_dropped",
                    alert_id=alert.id,
                    equipment=alert.equipment,
                    rule_id=alert.rule_id,
                )
                continue

            unique.append(alert)
            processed.add(alert)

        self.stats.duplicates_found += duplicates
        self.stats.unique_alerts += len(unique)
        if duplicates:
            metrics.alert_duplicates_suppressed_total.labels(
                strategy=self.settings.strategy
            ).inc(duplicates)

        logger.info(
            "deduplication_complete",
            processed=len(new_alerts),
            unique=len(unique),
            duplicates=duplicates,
        )
        return unique

    def is_duplicate(self, alert: Alert, existing: AlertIndex, processed: AlertIndex) -> bool:
        """
        Check one alert against both indexes using the configured strategy.

        Args:
            alert: Alert to check
            existing: Index of persisted alerts
            processed: Index of alerts already kept from this batch

        Returns:
            True if the alert is a duplicate
        """
        strategy = self.settings.strategy
        if strategy == "id":
            return self._is_duplicate_by_id(alert, existing, processed)
        if strategy == "time_window":
            return self._is_duplicate_by_time_window(alert, existing, processed)
        if strategy == "smart":
            return (
                self._is_duplicate_by_hash(alert, existing, processed)
                or self._is_duplicate_by_id(alert, existing, processed)
                or self._is_duplicate_by_time_window(alert, existing, processed)
            )
        return self._is_duplicate_by_hash(alert, existing, processed)

    def _is_duplicate_by_hash(
        self, alert: Alert, existing: AlertIndex, processed: AlertIndex
    ) -> bool:
        content_hash = alert_content_hash(alert)

        if self.settings.enable_caching and content_hash in self._hash_cache:
            self.stats.cache_hits += 1
            return True
        self.stats.cache_misses += 1

        is_duplicate = content_hash in existing.by_hash or content_hash in processed.by_hash
        self._remember(content_hash)
        return is_duplicate

    def _is_duplicate_by_id(self, alert: Alert, existing: AlertIndex, processed: AlertIndex) -> bool:
        if not alert.unique_id:
            return False
        return alert.unique_id in existing.by_unique_id or alert.unique_id in processed.by_unique_id

    def _is_duplicate_by_time_window(
        self, alert: Alert, existing: AlertIndex, processed: AlertIndex
    ) -> bool:
        """
        Check for an alert of the same equipment and rule close in time.

        Args:
            alert: Alert to check
            existing: Index of persisted alerts
            processed: Index of alerts already kept from this batch

        Returns:
            True if a candidate lies within window_minutes
        """
        key = (alert.equipment, alert.rule_id)
        window_seconds = self.settings.window_minutes * 60
        candidates = existing.by_equipment_rule.get(key, []) + processed.by_equipment_rule.get(
            key, []
        )
        return any(
            abs((alert.timestamp - timestamp).total_seconds()) <= window_seconds
            for timestamp in candidates
        )

    def _remember(self, content_hash: str) -> None:
        if not self.settings.enable_caching:
            return
        self._hash_cache[content_hash] = None
        self._hash_cache.move_to_end(content_hash)
        while len(self._hash_cache) > self.settings.max_cache_size:
            self._hash_cache.popitem(last=False)

    def update_settings(self, **changes) -> DeduplicationSettings:
        """
        Apply a validated settings update.

        Args:
            **changes: Field overrides

        Returns:
            The settings now in effect

        Raises:
            ConfigurationError: If the update is invalid
        """
        previous_strategy = self.settings.strategy
        self.settings = merge_settings(self.settings, changes)
        if self.settings.strategy != previous_strategy:
            self.clear_cache()
        logger.info("deduplication_settings_updated", changes=sorted(changes))
        return self.settings

    def clear_cache(self) -> None:
        self._hash_cache.clear()
        logger.debug("deduplication_cache_cleared")

    def get_stats(self) -> dict:
        """Get deduplication counters and rates."""
        lookups = self.stats.cache_hits + self.stats.cache_misses
        processed = self.stats.total_processed
        return {
            **asdict(self.stats),
            "cache_hit_rate": self.stats.cache_hits / lookups * 100 if lookups else 0.0,
            "deduplication_rate": (
                self.stats.duplicates_found / processed * 100 if processed else 0.0
            ),
            "cache_size": len(self._hash_cache),
            "strategy": self.settings.strategy,
        }
