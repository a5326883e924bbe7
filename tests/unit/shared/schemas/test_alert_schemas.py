"""
Tests for alert schemas.
"""

import pytest
from pydantic import ValidationError

from shared.schemas.alerts import (
    Alert,
    EquipmentContext,
    RuleMatch,
    Severity,
    parse_severity,
    severity_rank,
)


class TestSeverityHelpers:
    """Tests for severity parsing and ranking."""

    def test_rank_order(self):
        """Test ordinals low=1 through critical=4."""
        assert [severity_rank(s) for s in ("low", "medium", "high", "critical")] == [1, 2, 3, 4]

    def test_rank_is_case_insensitive(self):
        """Test upper-case names rank like lower-case ones."""
        assert severity_rank("HIGH") == 3

    def test_rank_unknown(self):
        """Test unknown values rank zero."""
        assert severity_rank("urgent") == 0
        assert severity_rank(None) == 0

    def test_parse_severity(self):
        """Test parsing with a default."""
        assert parse_severity("Critical") == Severity.CRITICAL
        assert parse_severity("nope") == Severity.MEDIUM
        assert parse_severity(None, default=Severity.LOW) == Severity.LOW


class TestRuleMatch:
    """Tests for RuleMatch."""

    def test_accepts_camel_case(self):
        """Test construction from the collaborator's JSON shape."""
        match = RuleMatch.model_validate(
            {"ruleId": "r1", "name": "Long stop", "severity": "HIGH", "conditions": {"a": 1}}
        )
        assert match.rule_id == "r1"
        assert match.severity == "high"
        assert match.type == "simple"

    def test_rejects_unknown_severity(self):
        """Test invalid severities fail validation."""
        with pytest.raises(ValidationError):
            RuleMatch(rule_id="r1", severity="urgent")


class TestEquipmentContext:
    """Tests for EquipmentContext."""

    def test_defaults(self):
        """Test empty context."""
        context = EquipmentContext()
        assert context.groups == []
        assert context.status == []
        assert context.apontamentos == []


class TestAlert:
    """Tests for Alert."""

    def test_defaults(self):
        """Test defaults of a minimal alert."""
        alert = Alert(id="a1", unique_id="u1", equipment="EQ-1")

        assert alert.severity == "medium"
        assert alert.consolidated is False
        assert alert.consolidated_count == 1
        assert alert.criticality_score == 0
        assert alert.duration == "0min"
        assert alert.timestamp.tzinfo is not None

    def test_criticality_bounds(self):
        """Test criticality must stay within 0-10."""
        with pytest.raises(ValidationError):
            Alert(id="a1", unique_id="u1", equipment="EQ-1", criticality_score=11)

    def test_camel_case_dump(self):
        """Test the persisted JSON shape."""
        data = Alert(id="a1", unique_id="u1", equipment="EQ-1", rule_id="r1").to_dict()

        assert data["uniqueId"] == "u1"
        assert data["ruleId"] == "r1"
        assert data["consolidatedCount"] == 1
        assert "criticalityScore" in data
        assert "equipmentGroups" in data
