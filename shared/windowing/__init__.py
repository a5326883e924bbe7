"""
Windowed alert consolidation.

Collapses bursts of similar alerts into summaries held in time-bounded
windows, with a periodic sweep that expires stale windows.
"""

from shared.windowing.config import WindowSettings, get_window_settings
from shared.windowing.consolidator import AlertWindowConsolidator, burst_type
from shared.windowing.scheduler import SweepScheduler
from shared.windowing.store import ActiveWindow, HistoryEntry, WindowStore

__all__ = [
    "ActiveWindow",
    "AlertWindowConsolidator",
    "HistoryEntry",
    "SweepScheduler",
    "WindowSettings",
    "WindowStore",
    "burst_type",
    "get_window_settings",
]
