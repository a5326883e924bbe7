"""
Refresh worker processor.

Runs one refresh cycle: normalize and consolidate events per equipment,
evaluate rules on the episodes, build alerts, drop duplicates, consolidate
alert bursts and hand the final alerts to the sink.
"""

import logging
import time
from collections.abc import Sequence
from typing import Any, Protocol

from shared.alerts import AlertDeduplicator, AlertFactory
from shared.config.logging import bind_cycle_context, clear_cycle_context
from shared.consolidation import IntervalConsolidator
from shared.observability import metrics
from shared.schemas.alerts import Alert, EquipmentContext, RuleMatch
from shared.schemas.events import EventKind
from shared.windowing import AlertWindowConsolidator
from workers.refresh.config import RefreshWorkerSettings, get_refresh_worker_settings
from workers.refresh.models import EquipmentBatch, RefreshRequest, RefreshResult

logger = logging.getLogger(__name__)


class RuleEvaluator(Protocol):
    """Matches rules against one episode of one equipment."""

    def evaluate(
        self,
        equipment: str,
        episode: Any,
        context: EquipmentContext,
    ) -> Sequence[RuleMatch]: ...


class AlertSink(Protocol):
    """Persistence collaborator for final alerts."""

    async def existing_alerts(self) -> Sequence[Alert]: ...

    async def publish(self, alerts: Sequence[Alert]) -> None: ...


class InMemoryAlertSink:
    """
    Alert sink keyed by uniqueId; a later alert replaces an earlier one.

    Meant for tests and examples: it keeps every alert for the life of the
    process and returns all of them to each cycle's deduplication.
    """

    def __init__(self):
        self.alerts: dict[str, Alert] = {}

    async def existing_alerts(self) -> list[Alert]:
        return list(self.alerts.values())

    async def publish(self, alerts: Sequence[Alert]) -> None:
        for alert in alerts:
            self.alerts[alert.unique_id] = alert


class RefreshProcessor:
    """
    Processor for refresh cycles.

    Coordinates consolidation, alert generation, deduplication and window
    consolidation. A failure on one equipment never blocks the others.
    """

    def __init__(
        self,
        consolidator: IntervalConsolidator,
        alert_factory: AlertFactory,
        deduplicator: AlertDeduplicator,
        window_consolidator: AlertWindowConsolidator,
        rule_evaluator: RuleEvaluator,
        alert_sink: AlertSink,
        settings: RefreshWorkerSettings | None = None,
    ):
        """
        Initialize refresh processor.

        Args:
            consolidator: Interval consolidator
            alert_factory: Alert factory
            deduplicator: Alert deduplicator
            window_consolidator: Windowed alert consolidator
            rule_evaluator: Rule evaluation collaborator
            alert_sink: Persistence collaborator
            settings: Worker settings (optional)
        """
        self.consolidator = consolidator
        self.alert_factory = alert_factory
        self.deduplicator = deduplicator
        self.window_consolidator = window_consolidator
        self.rule_evaluator = rule_evaluator
        self.alert_sink = alert_sink
        self.settings = settings or get_refresh_worker_settings()

    async def process_request(self, request: RefreshRequest) -> RefreshResult:
        """
        Process one refresh cycle.

        Args:
            request: Equipment records for the cycle

        Returns:
            RefreshResult with processing details
        """
        started = time.perf_counter()
        bind_cycle_context(request.cycle_id)
        result = RefreshResult(cycle_id=request.cycle_id)

        batches = request.equipment[: self.settings.max_equipment_per_cycle]
        if len(batches) < len(request.equipment):
            logger.warning(
                f"Cycle {request.cycle_id}: processing {len(batches)} of "
                f"{len(request.equipment)} equipment"
            )

        try:
            # Step 1: Episodes and alerts per equipment
            alerts: list[Alert] = []
            for batch in batches:
                try:
                    alerts.extend(self._process_equipment(batch, result))
                    result.equipment_processed += 1
                except Exception as e:
                    logger.exception(f"Failed to process equipment {batch.equipment}: {e}")
                    result.equipment_failed += 1
                    result.errors.append(f"{batch.equipment}: {e}")

            result.alerts_generated = len(alerts)

            # Step 2: Drop alerts the sink already holds
            if self.settings.enable_deduplication and alerts:
                existing = await self.alert_sink.existing_alerts()
                unique = self.deduplicator.deduplicate(alerts, existing)
                result.duplicates_dropped = len(alerts) - len(unique)
                alerts = unique

            # Step 3: Collapse bursts
            if self.settings.enable_window_consolidation and alerts:
                alerts = self.window_consolidator.process(alerts)

            # Step 4: Hand over
            if alerts:
                await self.alert_sink.publish(alerts)
            result.alerts_emitted = len(alerts)
            result.success = True

            logger.info(
                f"Cycle {request.cycle_id} complete: "
                f"{result.equipment_processed} equipment, "
                f"{result.alerts_generated} alerts generated, "
                f"{result.alerts_emitted} emitted"
            )

        except Exception as e:
            logger.exception(f"Cycle {request.cycle_id} failed: {e}")
            result.success = False
            result.error = str(e)

        finally:
            metrics.refresh_cycle_duration_seconds.observe(time.perf_counter() - started)
            clear_cycle_context()

        return result

    def _process_equipment(self, batch: EquipmentBatch, result: RefreshResult) -> list[Alert]:
        """
        Build the alerts of one equipment.

        Args:
            batch: Equipment records
            result: Cycle result, counters updated in place

        Returns:
            Alerts for every rule match on every episode
        """
        context = EquipmentContext(
            groups=batch.groups,
            status=batch.status,
            apontamentos=batch.apontamentos,
        )

        alerts: list[Alert] = []
        for kind, records in (
            (EventKind.STATUS, batch.status),
            (EventKind.APONTAMENTO, batch.apontamentos),
        ):
            if not records:
                continue

            result.events_received += len(records)
            if self.settings.enable_consolidation:
                episodes = self.consolidator.consolidate(records, kind)
            else:
                episodes = self.consolidator.normalizer.normalize(records, kind)
            result.episodes_produced += len(episodes)

            for episode in episodes:
                for match in self.rule_evaluator.evaluate(batch.equipment, episode, context):
                    alerts.append(
                        self.alert_factory.build(match, batch.equipment, episode, context)
                    )

        return alerts
