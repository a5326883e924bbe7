"""
Refresh worker.

Background worker that runs a refresh cycle on a fixed interval and keeps
the alert window store swept between cycles.
"""

import asyncio
import contextlib
import logging
from collections.abc import Sequence
from typing import Protocol

from shared.alerts import (
    AlertDeduplicator,
    AlertFactory,
    AlertFactorySettings,
    DeduplicationSettings,
)
from shared.config import get_settings, setup_logging_from_settings
from shared.consolidation import ConsolidationSettings, IntervalConsolidator
from shared.windowing import AlertWindowConsolidator, SweepScheduler, WindowSettings, WindowStore
from workers.refresh.config import RefreshWorkerSettings, get_refresh_worker_settings
from workers.refresh.models import EquipmentBatch, RefreshRequest, RefreshResult
from workers.refresh.processor import AlertSink, RefreshProcessor, RuleEvaluator

logger = logging.getLogger(__name__)


class EquipmentSource(Protocol):
    """Acquisition collaborator delivering the records of one cycle."""

    async def fetch(self) -> Sequence[EquipmentBatch]: ...


class RefreshWorker:
    """
    Worker for periodic refresh cycles.

    Owns one pipeline: a processor, the window store its consolidator writes
    to and the scheduler that sweeps that store.
    """

    def __init__(
        self,
        equipment_source: EquipmentSource,
        rule_evaluator: RuleEvaluator,
        alert_sink: AlertSink,
        worker_settings: RefreshWorkerSettings | None = None,
        consolidation_settings: ConsolidationSettings | None = None,
        alert_factory_settings: AlertFactorySettings | None = None,
        deduplication_settings: DeduplicationSettings | None = None,
        window_settings: WindowSettings | None = None,
    ):
        """
        Initialize refresh worker.

        Args:
            equipment_source: Source of equipment records
            rule_evaluator: Rule evaluation collaborator
            alert_sink: Persistence collaborator
            worker_settings: Worker configuration
            consolidation_settings: Interval consolidation settings
            alert_factory_settings: Alert factory settings
            deduplication_settings: Deduplication settings
            window_settings: Alert window settings
        """
        self.worker_settings = worker_settings or get_refresh_worker_settings()
        self.equipment_source = equipment_source

        # Pipeline state owned by this worker
        self.consolidator = IntervalConsolidator(settings=consolidation_settings)
        self.store = WindowStore(settings=window_settings)
        self.window_consolidator = AlertWindowConsolidator(store=self.store)
        self.scheduler = SweepScheduler(
            self.store,
            interval_seconds=self.worker_settings.sweep_interval_seconds,
        )

        self.processor = RefreshProcessor(
            consolidator=self.consolidator,
            alert_factory=AlertFactory(settings=alert_factory_settings),
            deduplicator=AlertDeduplicator(settings=deduplication_settings),
            window_consolidator=self.window_consolidator,
            rule_evaluator=rule_evaluator,
            alert_sink=alert_sink,
            settings=self.worker_settings,
        )

        self._is_running = False
        self._loop_task: asyncio.Task | None = None

    async def start(self) -> None:
        """Start the sweep scheduler and the refresh loop."""
        if self._is_running:
            return

        logger.info(
            f"Starting {self.worker_settings.worker_name} "
            f"(refresh every {self.worker_settings.refresh_interval_seconds}s)"
        )

        self._is_running = True
        await self.scheduler.start()
        self._loop_task = asyncio.create_task(self._run_loop(), name="refresh-loop")

        logger.info(f"{self.worker_settings.worker_name} started successfully")

    async def stop(self) -> None:
        """Stop the refresh loop and the sweep scheduler."""
        logger.info(f"Stopping {self.worker_settings.worker_name}")

        self._is_running = False

        task, self._loop_task = self._loop_task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        await self.scheduler.stop()
        self.consolidator.close()

        logger.info(f"{self.worker_settings.worker_name} stopped")

    async def run_cycle(self, request: RefreshRequest | None = None) -> RefreshResult:
        """
        Run one refresh cycle.

        Args:
            request: Cycle input (optional, fetched from the equipment source
                when omitted)

        Returns:
            RefreshResult of the cycle
        """
        if request is None:
            batches = await self.equipment_source.fetch()
            request = RefreshRequest(equipment=list(batches))

        logger.info(
            f"Running refresh cycle {request.cycle_id} for {len(request.equipment)} equipment"
        )
        return await self.processor.process_request(request)

    async def _run_loop(self) -> None:
        while self._is_running:
            try:
                result = await self.run_cycle()
                if not result.success:
                    logger.error(f"Refresh cycle {result.cycle_id} failed: {result.error}")
            except Exception as e:
                # A failed fetch skips this cycle only
                logger.exception(f"Error running refresh cycle: {e}")

            await asyncio.sleep(self.worker_settings.refresh_interval_seconds)

    @property
    def is_running(self) -> bool:
        """Check if worker is currently running."""
        return self._is_running


async def main(
    equipment_source: EquipmentSource,
    rule_evaluator: RuleEvaluator,
    alert_sink: AlertSink,
) -> None:
    """
    Run a refresh worker until interrupted.

    Args:
        equipment_source: Source of equipment records
        rule_evaluator: Rule evaluation collaborator
        alert_sink: Persistence collaborator
    """
    setup_logging_from_settings(get_settings())

    worker = RefreshWorker(
        equipment_source=equipment_source,
        rule_evaluator=rule_evaluator,
        alert_sink=alert_sink,
    )

    try:
        await worker.start()

        # Keep worker running
        while worker.is_running:
            await asyncio.sleep(1)

    except KeyboardInterrupt:
        logger.info("Received shutdown signal")
    finally:
        await worker.stop()
