"""
Tests for settings helpers.
"""

import pytest
import structlog

from shared.config.logging import bind_cycle_context, clear_cycle_context
from shared.config.settings import Settings, merge_settings
from shared.exceptions import ConfigurationError
from shared.windowing.config import WindowSettings
from workers.refresh.config import RefreshWorkerSettings


class TestMergeSettings:
    """Tests for merge_settings."""

    def test_valid_update(self):
        """Test a valid update returns a new instance."""
        current = WindowSettings()

        updated = merge_settings(current, {"min_alerts_to_consolidate": 5})

        assert updated.min_alerts_to_consolidate == 5
        assert current.min_alerts_to_consolidate == 3
        assert updated.max_consolidated_alerts == current.max_consolidated_alerts

    def test_unknown_key(self):
        """Test unknown keys are rejected."""
        with pytest.raises(ConfigurationError) as exc_info:
            merge_settings(WindowSettings(), {"window_size": 10})

        assert exc_info.value.error_code == "CONFIGURATION_ERROR"
        assert exc_info.value.details["key"] == "window_size"

    def test_invalid_value(self):
        """Test constraint violations are reported per field."""
        with pytest.raises(ConfigurationError) as exc_info:
            merge_settings(WindowSettings(), {"max_consolidated_alerts": 0})

        assert any("max_consolidated_alerts" in e for e in exc_info.value.details["errors"])

    def test_app_settings_defaults(self):
        """Test application defaults."""
        settings = Settings()

        assert settings.service_name == "equipalert"
        assert settings.log_level == "INFO"

    def test_pipeline_switches_live_on_the_worker(self):
        """Test stage toggles are worker settings, not application settings."""
        with pytest.raises(ConfigurationError) as exc_info:
            merge_settings(Settings(), {"enable_window_consolidation": False})

        assert exc_info.value.details["key"] == "enable_window_consolidation"
        assert "enable_window_consolidation" in RefreshWorkerSettings.model_fields


class TestCycleContext:
    """Tests for refresh cycle log context."""

    def test_bind_and_clear(self):
        """Test cycle ids are bound to the logging context."""
        bind_cycle_context("cycle-1", equipment_count=3)

        assert structlog.contextvars.get_contextvars() == {
            "cycle_id": "cycle-1",
            "equipment_count": 3,
        }

        clear_cycle_context()
        assert structlog.contextvars.get_contextvars() == {}
