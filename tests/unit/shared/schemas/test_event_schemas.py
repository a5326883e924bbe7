"""
Tests for telemetry event schemas.
"""

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from shared.schemas.events import (
    ConsolidatedEpisode,
    ConsolidationEfficiency,
    EventKind,
    NormalizedEvent,
    RawEvent,
)


def make_event(**overrides):
    data = {
        "id": "status_0_0",
        "start_time": datetime(2024, 1, 15, 0, 0, tzinfo=UTC),
        "end_time": datetime(2024, 1, 15, 0, 10, tzinfo=UTC),
        "identifier": "on",
        "duration_minutes": 10.0,
        "kind": EventKind.STATUS,
    }
    data.update(overrides)
    return NormalizedEvent(**data)


class TestRawEvent:
    """Tests for RawEvent."""

    def test_defaults(self):
        """Test default source and payload."""
        raw = RawEvent(kind="apontamento")
        assert raw.source == "unknown"
        assert raw.kind == "apontamento"
        assert raw.payload == {}

    def test_rejects_unknown_kind(self):
        """Test that only status and apontamento are accepted."""
        with pytest.raises(ValidationError):
            RawEvent(kind="gps")


class TestNormalizedEvent:
    """Tests for NormalizedEvent."""

    def test_valid_event(self):
        """Test construction of a valid event."""
        event = make_event()
        assert event.duration_minutes == 10.0
        assert event.kind == "status"

    def test_rejects_negative_interval(self):
        """Test that end before start is rejected."""
        with pytest.raises(ValidationError):
            make_event(end_time=datetime(2024, 1, 14, 23, 59, tzinfo=UTC))

    def test_zero_length_interval_allowed(self):
        """Test that end equal to start is accepted."""
        start = datetime(2024, 1, 15, tzinfo=UTC)
        event = make_event(start_time=start, end_time=start, duration_minutes=0.0)
        assert event.duration_minutes == 0.0

    def test_camel_case_dump(self):
        """Test the persisted JSON shape."""
        data = make_event().to_dict()
        assert set(data) == {
            "id",
            "startTime",
            "endTime",
            "identifier",
            "durationMinutes",
            "kind",
            "originalPayload",
        }


class TestConsolidatedEpisode:
    """Tests for ConsolidatedEpisode."""

    def test_camel_case_dump(self):
        """Test the persisted JSON shape."""
        event = make_event()
        episode = ConsolidatedEpisode(
            id="status_episode_x",
            start_time=event.start_time,
            end_time=event.end_time,
            identifier="on",
            duration_minutes=10.0,
            kind="status",
            record_count=1,
            source_events=[event],
            efficiency=ConsolidationEfficiency(
                original_duration=10.0,
                consolidated_duration=10.0,
                gaps_eliminated=0.0,
                compression_ratio=1.0,
            ),
        )

        data = episode.to_dict()

        assert data["recordCount"] == 1
        assert data["consolidated"] is False
        assert data["conflictsResolved"] == 0
        assert data["efficiency"] == {
            "originalDuration": 10.0,
            "consolidatedDuration": 10.0,
            "gapsEliminated": 0.0,
            "compressionRatio": 1.0,
        }
        assert data["sourceEvents"][0]["id"] == "status_0_0"

    def test_is_immutable(self):
        """Test that episodes cannot be mutated."""
        episode = ConsolidatedEpisode(
            id="x",
            start_time=datetime(2024, 1, 15, tzinfo=UTC),
            end_time=datetime(2024, 1, 15, tzinfo=UTC),
            duration_minutes=0.0,
            kind="status",
            efficiency=ConsolidationEfficiency(
                original_duration=0.0,
                consolidated_duration=0.0,
                gaps_eliminated=0.0,
                compression_ratio=1.0,
            ),
        )
        with pytest.raises(ValidationError):
            episode.record_count = 3
