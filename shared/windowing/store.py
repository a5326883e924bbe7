"""
Active window storage.

WindowStore exclusively owns the consolidation windows of one pipeline and a
bounded history of window openings. Every mutation happens under a reentrant
lock that batch processing and the periodic sweep share.
"""

import threading
import time
from dataclasses import asdict, dataclass, field
from typing import Any

from shared.config.logging import get_logger
from shared.observability import metrics
from shared.schemas.alerts import Alert
from shared.windowing.config import WindowSettings, get_window_settings

logger = get_logger(__name__)


@dataclass
class ActiveWindow:
    """Live accumulation of alerts sharing a group key."""

    id: str
    group_key: str
    created_at: float
    last_updated: float
    alerts: list[Alert] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.alerts)

    def age(self, now: float) -> float:
        """Seconds since the window was opened."""
        return now - self.created_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "groupKey": self.group_key,
            "alerts": [alert.to_dict() for alert in self.alerts],
            "createdAt": self.created_at,
            "lastUpdated": self.last_updated,
            "count": self.count,
        }


@dataclass
class HistoryEntry:
    """Diagnostic record of one window opening."""

    group_key: str
    timestamp: float
    alert_count: int


class WindowStore:
    """
    Owner of active windows and window history.

    Windows are keyed by group key. A window is valid while younger than
    max_consolidation_age_seconds and holding fewer than
    max_consolidated_alerts alerts.
    """

    def __init__(self, settings: WindowSettings | None = None):
        """
        Initialize window store.

        Args:
            settings: Window settings (optional)
        """
        self.settings = settings or get_window_settings()
        self.lock = threading.RLock()
        self._windows: dict[str, ActiveWindow] = {}
        self._history: list[HistoryEntry] = []

    def get(self, group_key: str) -> ActiveWindow | None:
        with self.lock:
            return self._windows.get(group_key)

    def is_valid(self, window: ActiveWindow, now: float | None = None) -> bool:
        """
        Check whether a window may still accept alerts.

        Args:
            window: Window to check
            now: Current time in epoch seconds (defaults to time.time())

        Returns:
            True if the window is neither too old nor full
        """
        now = time.time() if now is None else now
        return (
            window.age(now) < self.settings.max_consolidation_age_seconds
            and window.count < self.settings.max_consolidated_alerts
        )

    def open(self, group_key: str, alerts: list[Alert], now: float | None = None) -> ActiveWindow:
        """
        Open a fresh window, sealing any window already held for the key.

        Args:
            group_key: Group key
            alerts: Alerts the window starts with
            now: Current time in epoch seconds (defaults to time.time())

        Returns:
            The new window
        """
        now = time.time() if now is None else now

        with self.lock:
            stale = self._windows.get(group_key)
            if stale is not None:
                metrics.alert_windows_total.labels(action="sealed").inc()
                logger.debug(
                    "window_sealed",
                    group_key=group_key,
                    window_id=stale.id,
                    count=stale.count,
                    age_seconds=round(stale.age(now), 3),
                )

            window = ActiveWindow(
                id=f"cons_{group_key}_{int(now * 1000)}",
                group_key=group_key,
                created_at=now,
                last_updated=now,
                alerts=list(alerts),
            )
            self._windows[group_key] = window
            self._history.append(
                HistoryEntry(group_key=group_key, timestamp=now, alert_count=len(alerts))
            )
            self._trim_history()

            metrics.alert_windows_total.labels(action="created").inc()
            metrics.alert_windows_active.set(len(self._windows))

        logger.info(
            "window_opened",
            group_key=group_key,
            window_id=window.id,
            alert_count=len(alerts),
        )
        return window

    def extend(
        self,
        window: ActiveWindow,
        alerts: list[Alert],
        now: float | None = None,
    ) -> ActiveWindow:
        """
        Append alerts to a window in arrival order.

        Alerts whose uniqueId the window already holds are skipped, so
        re-ingesting the same telemetry never inflates the count. The
        max_consolidated_alerts bound is checked only by is_valid before a
        batch is added, so one batch may push count past it; the window is
        then replaced on the next batch.

        Args:
            window: Window to extend
            alerts: New alerts
            now: Current time in epoch seconds (defaults to time.time())

        Returns:
            The extended window
        """
        now = time.time() if now is None else now

        with self.lock:
            seen = {a.unique_id for a in window.alerts if a.unique_id}
            for alert in alerts:
                if alert.unique_id and alert.unique_id in seen:
                    continue
                if alert.unique_id:
                    seen.add(alert.unique_id)
                window.alerts.append(alert)
            window.last_updated = now
            metrics.alert_windows_total.labels(action="extended").inc()

        logger.debug(
            "window_extended",
            group_key=window.group_key,
            new_alerts=len(alerts),
            count=window.count,
        )
        return window

    def sweep(self, now: float | None = None) -> list[str]:
        """
        Remove expired windows and trim history.

        Args:
            now: Current time in epoch seconds (defaults to time.time())

        Returns:
            Group keys of the removed windows
        """
        now = time.time() if now is None else now
        max_age = self.settings.max_consolidation_age_seconds

        with self.lock:
            expired = [key for key, window in self._windows.items() if window.age(now) >= max_age]
            for key in expired:
                del self._windows[key]
            self._trim_history()

            if expired:
                metrics.alert_windows_total.labels(action="expired").inc(len(expired))
            metrics.alert_windows_active.set(len(self._windows))

        if expired:
            logger.debug("windows_expired", group_keys=expired, remaining=len(self._windows))
        return expired

    def reset(self) -> int:
        """
        Drop all windows and history.

        Returns:
            Number of windows dropped
        """
        with self.lock:
            count = len(self._windows)
            self._windows.clear()
            self._history.clear()
            metrics.alert_windows_active.set(0)

        logger.info("windows_reset", cleared=count)
        return count

    @property
    def history(self) -> list[HistoryEntry]:
        with self.lock:
            return list(self._history)

    def keys(self) -> list[str]:
        with self.lock:
            return list(self._windows)

    def snapshot(self) -> list[dict[str, Any]]:
        """Serializable copy of all active windows."""
        with self.lock:
            return [window.to_dict() for window in self._windows.values()]

    def recent_history(self, limit: int = 10) -> list[dict[str, Any]]:
        with self.lock:
            return [asdict(entry) for entry in self._history[-limit:]]

    def _trim_history(self) -> None:
        if len(self._history) > self.settings.history_max_entries:
            self._history = self._history[-self.settings.history_trim_to :]

    def __len__(self) -> int:
        with self.lock:
            return len(self._windows)

    def __contains__(self, group_key: object) -> bool:
        with self.lock:
            return group_key in self._windows
