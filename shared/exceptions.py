"""
Custom exceptions for EquipAlert.
"""

from typing import Any


class EquipAlertError(Exception):
    """Base exception for all EquipAlert errors."""

    def __init__(self, message: str, error_code: str | None = None, details: dict | None = None):
        """
        Initialize exception.

        Args:
            message: Error message
            error_code: Optional error code
            details: Optional error details
        """
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(message)


# Validation Errors


class ValidationError(EquipAlertError):
    """Validation errors."""

    def __init__(self, message: str, field: str | None = None, value: Any = None):
        """
        Initialize exception.

        Args:
            message: Error message
            field: Field name
            value: Field value
        """
        details = {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, error_code="VALIDATION_ERROR", details=details)


class NormalizationError(ValidationError):
    """Raw event could not be turned into a normalized event."""

    def __init__(self, message: str, index: int | None = None, kind: str | None = None):
        """
        Initialize exception.

        Args:
            message: Error message
            index: Position of the record in its batch
            kind: Event kind being normalized
        """
        super().__init__(message, field="record", value=index)
        self.error_code = "NORMALIZATION_ERROR"
        if kind:
            self.details["kind"] = kind


# Configuration Errors


class ConfigurationError(EquipAlertError):
    """Configuration errors."""

    def __init__(self, message: str, key: str | None = None, errors: list[str] | None = None):
        """
        Initialize exception.

        Args:
            message: Error message
            key: Configuration key
            errors: Individual validation messages
        """
        details: dict[str, Any] = {"key": key} if key else {}
        if errors:
            details["errors"] = errors
        super().__init__(message, error_code="CONFIGURATION_ERROR", details=details)


# Processing Errors


class ConsolidationError(EquipAlertError):
    """Interval consolidation errors."""

    def __init__(self, message: str, kind: str | None = None):
        """Initialize exception."""
        details = {"kind": kind} if kind else {}
        super().__init__(message, error_code="CONSOLIDATION_ERROR", details=details)


class AlertGenerationError(EquipAlertError):
    """Alert assembly errors."""

    def __init__(self, message: str, equipment: str | None = None, rule_id: str | None = None):
        """
        Initialize exception.

        Args:
            message: Error message
            equipment: Equipment the alert was built for
            rule_id: Rule that matched
        """
        details = {}
        if equipment:
            details["equipment"] = equipment
        if rule_id:
            details["rule_id"] = rule_id
        super().__init__(message, error_code="ALERT_GENERATION_ERROR", details=details)


class WindowConsolidationError(EquipAlertError):
    """Alert window consolidation errors."""

    def __init__(self, message: str, group_key: str | None = None):
        """Initialize exception."""
        details = {"group_key": group_key} if group_key else {}
        super().__init__(message, error_code="WINDOW_CONSOLIDATION_ERROR", details=details)
