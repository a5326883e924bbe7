"""
Prometheus metrics configuration and utilities.

Provides standardized metrics for event normalization, interval
consolidation, alert generation and windowed alert consolidation.
"""

from prometheus_client import REGISTRY as DEFAULT_REGISTRY
from prometheus_client import Counter, Gauge, Histogram, generate_latest

# Event Metrics
events_normalized_total = Counter(
    "equipalert_events_normalized_total",
    "Total raw events normalized",
    ["kind"],
)

events_dropped_total = Counter(
    "equipalert_events_dropped_total",
    "Total raw events dropped as malformed",
    ["kind"],
)


# Consolidation Metrics
episodes_produced_total = Counter(
    "equipalert_episodes_produced_total",
    "Total episodes produced by interval consolidation",
    ["kind", "consolidated"],
)

consolidation_failures_total = Counter(
    "equipalert_consolidation_failures_total",
    "Consolidation passes that fell back to the original events",
    ["kind"],
)


# Alert Metrics
alerts_generated_total = Counter(
    "equipalert_alerts_generated_total",
    "Total alerts built from rule matches",
    ["severity"],
)

alert_fallbacks_total = Counter(
    "equipalert_alert_fallbacks_total",
    "Alerts replaced by the fallback alert after a generation error",
)

alert_duplicates_suppressed_total = Counter(
    "equipalert_alert_duplicates_suppressed_total",
    "Alerts dropped as duplicates",
    ["strategy"],
)


# Window Metrics
alert_windows_total = Counter(
    "equipalert_alert_windows_total",
    "Consolidation window lifecycle events",
    ["action"],
)

alert_windows_active = Gauge(
    "equipalert_alert_windows_active",
    "Number of active consolidation windows",
)

window_consolidation_failures_total = Counter(
    "equipalert_window_consolidation_failures_total",
    "Window consolidation batches that passed alerts through unchanged",
)


# Refresh Metrics
refresh_cycle_duration_seconds = Histogram(
    "equipalert_refresh_cycle_duration_seconds",
    "Refresh cycle latency",
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)


def get_metrics() -> bytes:
    """
    Get current metrics in Prometheus format.

    Returns:
        Metrics in Prometheus text format
    """
    return generate_latest(DEFAULT_REGISTRY)
