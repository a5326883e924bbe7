"""
Tests for Prometheus metrics.
"""

from shared.events.normalizer import EventNormalizer
from shared.observability import metrics


class TestMetrics:
    """Tests for metric export."""

    def test_exposition_contains_pipeline_metrics(self):
        """Test all pipeline metrics are exported."""
        output = metrics.get_metrics().decode()

        assert "equipalert_events_normalized_total" in output
        assert "equipalert_alert_windows_active" in output
        assert "equipalert_refresh_cycle_duration_seconds" in output

    def test_normalizer_counts_dropped_events(self):
        """Test dropped records increment the labelled counter."""
        counter = metrics.events_dropped_total.labels(kind="apontamento")
        before = counter._value.get()

        EventNormalizer().normalize([{"Data Inicial": "never"}], "apontamento")

        assert counter._value.get() == before + 1
