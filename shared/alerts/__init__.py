"""
Alert generation and deduplication.

Builds alerts from rule matches on consolidated episodes and removes
duplicates before windowed consolidation.
"""

from shared.alerts.config import (
    AlertFactorySettings,
    DeduplicationSettings,
    get_alert_factory_settings,
    get_deduplication_settings,
)
from shared.alerts.deduplicator import AlertDeduplicator, alert_content_hash
from shared.alerts.factory import (
    DEFAULT_GROUP_TEMPLATES,
    AlertFactory,
    format_equipment_name,
    generate_unique_id,
    render_template,
)

__all__ = [
    "AlertDeduplicator",
    "AlertFactory",
    "AlertFactorySettings",
    "DEFAULT_GROUP_TEMPLATES",
    "DeduplicationSettings",
    "alert_content_hash",
    "format_equipment_name",
    "generate_unique_id",
    "get_alert_factory_settings",
    "get_deduplication_settings",
    "render_template",
]
