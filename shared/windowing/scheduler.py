"""
Periodic window expiry sweep.
"""

import asyncio
import contextlib

from shared.config.logging import get_logger
from shared.windowing.store import WindowStore

logger = get_logger(__name__)


class SweepScheduler:
    """
    Cancellable, restartable task that expires stale windows.

    The sweep runs under the store lock, so it never interleaves with a
    batch being processed against the same store.
    """

    def __init__(self, store: WindowStore, interval_seconds: float | None = None):
        """
        Initialize sweep scheduler.

        Args:
            store: Window store to sweep
            interval_seconds: Seconds between sweeps (defaults to the
                consolidation window)
        """
        self.store = store
        self.interval_seconds = interval_seconds or store.settings.consolidation_window_seconds
        self.sweeps = 0
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        """Check if the sweep task is active."""
        return self._task is not None and not self._task.done()

    def run_once(self, now: float | None = None) -> list[str]:
        """
        Sweep the store immediately.

        Args:
            now: Current time in epoch seconds (optional)

        Returns:
            Group keys of the expired windows
        """
        with self.store.lock:
            expired = self.store.sweep(now)
        self.sweeps += 1
        return expired

    async def start(self) -> None:
        """Start sweeping in the background. No-op if already running."""
        if self.is_running:
            return

        self._task = asyncio.create_task(self._run(), name="window-sweep")
        logger.info("sweep_scheduler_started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        """Cancel the sweep task and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return

        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("sweep_scheduler_stopped", sweeps=self.sweeps)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                expired = self.run_once()
            except Exception as e:
                # Keep the schedule alive; the next tick retries
                logger.exception("window_sweep_failed", error=str(e))
                continue
            if expired:
                logger.info("window_sweep_complete", expired=len(expired))
