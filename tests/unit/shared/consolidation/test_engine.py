"""
Unit tests for the interval consolidation engine.

Tests gap tolerance, overlap policies, end time strategies, idempotence,
fail-open behaviour and quality analysis.
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest

from shared.consolidation.config import ConsolidationSettings
from shared.consolidation.engine import ConsolidationQuality, IntervalConsolidator
from shared.exceptions import ConfigurationError
from shared.schemas.events import ConsolidatedEpisode, EventKind

BASE = datetime(2024, 1, 15, 0, 0, tzinfo=UTC)


def at(minutes):
    return BASE + timedelta(minutes=minutes)


def status(start, end, value="on", **extra):
    """Build a status feed record from minute offsets."""
    return {
        "start": at(start).isoformat(),
        "end": at(end).isoformat(),
        "status": value,
        **extra,
    }


def apontamento(start, end, category="Manutenção", **extra):
    """Build a time-tracking feed record from minute offsets."""
    return {
        "Data Inicial": at(start).strftime("%d/%m/%Y %H:%M"),
        "Data Final": at(end).strftime("%d/%m/%Y %H:%M"),
        "Categoria Demora": category,
        **extra,
    }


@pytest.fixture
def default_settings():
    """Create default consolidation settings."""
    return ConsolidationSettings()


@pytest.fixture
def consolidator(default_settings):
    """Create consolidator with default settings."""
    return IntervalConsolidator(settings=default_settings)


class TestConsolidatorInitialization:
    """Tests for consolidator initialization."""

    def test_init_with_default_settings(self):
        """Test initialization with default settings."""
        consolidator = IntervalConsolidator()

        assert consolidator.settings.max_gap_minutes == 15.0
        assert consolidator.settings.merge_strategy == "extend"
        assert consolidator.settings.conflict_resolution == "latest"

    def test_init_with_custom_settings(self):
        """Test initialization with custom settings."""
        settings = ConsolidationSettings(max_gap_minutes=5, merge_strategy="replace")
        consolidator = IntervalConsolidator(settings=settings)

        assert consolidator.settings.max_gap_minutes == 5
        assert consolidator.settings.merge_strategy == "replace"

    def test_context_manager(self):
        """Test using consolidator as context manager."""
        with IntervalConsolidator() as consolidator:
            assert consolidator.consolidate([]) == []


class TestGapTolerance:
    """Tests for chaining events across gaps."""

    def test_merges_events_within_gap(self, consolidator):
        """Test two events 2 minutes apart become one episode."""
        episodes = consolidator.consolidate([status(0, 10), status(12, 20)])

        assert len(episodes) == 1
        episode = episodes[0]
        assert episode.start_time == at(0)
        assert episode.end_time == at(20)
        assert episode.duration_minutes == 20.0
        assert episode.record_count == 2
        assert episode.consolidated is True
        assert episode.identifier == "on"

    def test_splits_events_beyond_gap(self, consolidator):
        """Test two events 20 minutes apart stay separate."""
        episodes = consolidator.consolidate([status(0, 10), status(30, 38)])

        assert len(episodes) == 2
        assert [e.duration_minutes for e in episodes] == [10.0, 8.0]
        assert all(e.record_count == 1 for e in episodes)
        assert all(e.consolidated is False for e in episodes)

    def test_gap_equal_to_limit_merges(self, consolidator):
        """Test a gap of exactly max_gap_minutes still chains."""
        episodes = consolidator.consolidate([status(0, 10), status(25, 30)])
        assert len(episodes) == 1

    def test_gap_just_above_limit_splits(self, consolidator):
        """Test a gap one minute over the limit splits."""
        episodes = consolidator.consolidate([status(0, 10), status(26, 30)])
        assert len(episodes) == 2

    def test_identifier_change_splits(self, consolidator):
        """Test adjacent events with different identifiers stay separate."""
        episodes = consolidator.consolidate([status(0, 10, "on"), status(10, 20, "off")])

        assert [e.identifier for e in episodes] == ["on", "off"]

    def test_chain_of_events(self, consolidator):
        """Test several events chain through their last member."""
        records = [status(0, 10), status(20, 30), status(40, 50), status(60, 70)]

        episodes = consolidator.consolidate(records)

        assert len(episodes) == 1
        assert episodes[0].record_count == 4
        assert episodes[0].efficiency.gaps_eliminated == 30.0

    def test_sorts_unordered_input(self, consolidator):
        """Test output is in ascending start order."""
        records = [status(100, 110, "b"), status(0, 10, "a"), status(50, 60, "c")]

        episodes = consolidator.consolidate(records)

        assert [e.identifier for e in episodes] == ["a", "c", "b"]

    def test_efficiency(self, consolidator):
        """Test efficiency figures of a merged episode."""
        episode = consolidator.consolidate([status(0, 10), status(12, 20)])[0]

        assert episode.efficiency.original_duration == 18.0
        assert episode.efficiency.consolidated_duration == 20.0
        assert episode.efficiency.gaps_eliminated == 2.0
        assert episode.efficiency.compression_ratio == pytest.approx(0.9)

    def test_zero_duration_compression(self, consolidator):
        """Test zero-length episodes report a compression ratio of 1."""
        episode = consolidator.consolidate([status(5, 5)])[0]
        assert episode.efficiency.compression_ratio == 1.0


class TestOverlapPolicy:
    """Tests for overlapping events."""

    def test_latest_keeps_overlaps_apart(self, consolidator):
        """Test the default policy does not chain overlapping events."""
        episodes = consolidator.consolidate([status(0, 10), status(5, 15)])

        assert len(episodes) == 2
        assert all(e.conflicts_resolved == 0 for e in episodes)

    @pytest.mark.parametrize("policy", ["earliest", "longest"])
    def test_other_policies_keep_overlaps_apart(self, policy):
        """Test earliest and longest behave like latest."""
        consolidator = IntervalConsolidator(
            settings=ConsolidationSettings(conflict_resolution=policy)
        )
        assert len(consolidator.consolidate([status(0, 10), status(5, 15)])) == 2

    def test_merge_policy_chains_overlaps(self):
        """Test conflict_resolution=merge chains overlapping events."""
        consolidator = IntervalConsolidator(
            settings=ConsolidationSettings(conflict_resolution="merge")
        )

        episodes = consolidator.consolidate([status(0, 10), status(5, 15)])

        assert len(episodes) == 1
        assert episodes[0].end_time == at(15)
        assert episodes[0].conflicts_resolved == 1

    def test_allow_overlap_chains_overlaps(self):
        """Test allow_overlap chains regardless of the policy."""
        consolidator = IntervalConsolidator(settings=ConsolidationSettings(allow_overlap=True))

        episodes = consolidator.consolidate([status(0, 10), status(5, 15)])

        assert len(episodes) == 1
        assert episodes[0].conflicts_resolved == 1


class TestMergeStrategy:
    """Tests for resolving the end of an episode."""

    def test_extend_uses_latest_end(self):
        """Test extend ends at the latest member end."""
        consolidator = IntervalConsolidator(
            settings=ConsolidationSettings(conflict_resolution="merge")
        )

        episode = consolidator.consolidate([status(0, 30), status(10, 20)])[0]

        assert episode.end_time == at(30)
        assert episode.duration_minutes == 30.0
        assert episode.strategy == "extend"

    @pytest.mark.parametrize("strategy", ["replace", "skip"])
    def test_replace_uses_last_member_end(self, strategy):
        """Test replace and skip end at the last member's end."""
        consolidator = IntervalConsolidator(
            settings=ConsolidationSettings(conflict_resolution="merge", merge_strategy=strategy)
        )

        episode = consolidator.consolidate([status(0, 30), status(10, 20)])[0]

        assert episode.end_time == at(20)
        assert episode.duration_minutes == 20.0
        assert episode.strategy == strategy


class TestEpisodeIdentity:
    """Tests for deterministic ids and idempotence."""

    def test_ids_are_deterministic(self, consolidator):
        """Test the same input produces the same episode ids."""
        records = [status(0, 10), status(12, 20), status(60, 70, "off")]

        first = consolidator.consolidate(records)
        second = consolidator.consolidate(records)

        assert [e.id for e in first] == [e.id for e in second]
        assert all(e.id.startswith("status_episode_") for e in first)
        assert first[0].id != first[1].id

    def test_consolidating_output_is_identity(self, consolidator):
        """Test consolidating episodes again changes nothing."""
        episodes = consolidator.consolidate([status(0, 10), status(12, 20), status(60, 70)])

        again = consolidator.consolidate(episodes)

        assert again == episodes

    def test_overlap_merge_can_grow_on_second_pass(self):
        """Test a second pass may merge further when overlaps are allowed."""
        consolidator = IntervalConsolidator(settings=ConsolidationSettings(allow_overlap=True))
        records = [status(0, 100), status(10, 20), status(40, 50)]

        episodes = consolidator.consolidate(records)
        again = consolidator.consolidate(episodes)

        spans = [(e.start_time, e.end_time) for e in episodes]
        assert spans == [(at(0), at(100)), (at(40), at(50))]
        assert [(e.start_time, e.end_time) for e in again] == [(at(0), at(100))]

    def test_episode_extends_with_new_event(self, consolidator):
        """Test an episode from an earlier pass absorbs a following event."""
        episode = consolidator.consolidate([status(0, 10), status(12, 20)])[0]

        merged = consolidator.consolidate([episode, status(25, 30)])

        assert len(merged) == 1
        assert merged[0].record_count == 3
        assert len(merged[0].source_events) == 3
        assert merged[0].end_time == at(30)
        assert merged[0].id != episode.id


class TestEpisodeAttributes:
    """Tests for kind-specific attributes."""

    def test_status_attributes(self, consolidator):
        """Test status episodes carry vacancy fields of the first member."""
        records = [
            status(0, 10, vacancy_name="Pátio 3", vacancy_code="P3"),
            status(12, 20, vacancy_name="Other", vacancy_code="X"),
        ]

        episode = consolidator.consolidate(records)[0]

        assert episode.attributes == {
            "status": "on",
            "vacancy_name": "Pátio 3",
            "vacancy_code": "P3",
        }

    def test_apontamento_episode(self, consolidator):
        """Test consolidating time-tracking records."""
        records = [
            apontamento(0, 30, Vaga="V-1", Placa="ABC1D23"),
            apontamento(35, 60),
        ]

        episodes = consolidator.consolidate(records, EventKind.APONTAMENTO)

        assert len(episodes) == 1
        assert episodes[0].kind == "apontamento"
        assert episodes[0].id.startswith("apontamento_episode_")
        assert episodes[0].attributes == {
            "categoria": "Manutenção",
            "vaga": "V-1",
            "placa": "ABC1D23",
        }


class TestFailOpen:
    """Tests for error handling."""

    def test_empty_input(self, consolidator):
        """Test empty input returns an empty list."""
        assert consolidator.consolidate([]) == []

    def test_all_malformed_records(self, consolidator):
        """Test input with no valid records yields no episodes."""
        assert consolidator.consolidate([{"start": "x", "end": "y"}]) == []

    def test_malformed_records_are_skipped(self, consolidator):
        """Test malformed records do not break their neighbours."""
        records = [status(0, 10), {"start": None, "end": None}, status(12, 20)]

        episodes = consolidator.consolidate(records)

        assert len(episodes) == 1
        assert episodes[0].record_count == 2

    def test_unexpected_error_returns_input(self, consolidator):
        """Test an internal failure returns the original events."""
        records = [status(0, 10), status(12, 20)]

        with patch.object(
            consolidator, "_group_continuous_events", side_effect=RuntimeError("boom")
        ):
            result = consolidator.consolidate(records)

        assert result == records
        assert consolidator.stats.failures == 1

    def test_unknown_kind_returns_input(self, consolidator):
        """Test an unsupported kind fails open."""
        records = [status(0, 10)]
        assert consolidator.consolidate(records, "gps") == records

    def test_disabled_returns_input(self):
        """Test disabling consolidation passes events through."""
        consolidator = IntervalConsolidator(settings=ConsolidationSettings(enabled=False))
        records = [status(0, 10), status(12, 20)]

        assert consolidator.consolidate(records) == records


class TestConsolidateEquipment:
    """Tests for per-equipment consolidation."""

    def test_kinds_are_consolidated_independently(self, consolidator):
        """Test status and apontamento events are never mixed."""
        result = consolidator.consolidate_equipment(
            {
                "status": [status(0, 10), status(12, 20)],
                "apontamentos": [apontamento(0, 30)],
            }
        )

        assert set(result) == {"status", "apontamento"}
        assert len(result["status"]) == 1
        assert result["status"][0].record_count == 2
        assert len(result["apontamento"]) == 1
        assert isinstance(result["apontamento"][0], ConsolidatedEpisode)

    def test_missing_kind(self, consolidator):
        """Test a missing kind yields an empty list."""
        result = consolidator.consolidate_equipment({"status": [status(0, 10)]})
        assert result["apontamento"] == []


class TestQualityAnalysis:
    """Tests for quality analysis."""

    def test_analyze_quality(self, consolidator):
        """Test figures and score of a two-into-one pass."""
        records = [status(0, 10), status(12, 20)]
        episodes = consolidator.consolidate(records)

        quality = consolidator.analyze_quality(records, episodes)

        assert isinstance(quality, ConsolidationQuality)
        assert quality.reduction_ratio == 0.5
        assert quality.average_group_size == 2.0
        assert quality.consolidated_count == 1
        assert quality.single_event_count == 0
        assert quality.short_episode_count == 0
        assert quality.total_original_duration == 18.0
        assert quality.total_consolidated_duration == 20.0
        # 40 for reduction, 15 for group size, 30 for preserved duration
        assert quality.quality_score == 85

    def test_short_episodes(self, consolidator):
        """Test episodes under min_duration_minutes are counted."""
        records = [status(0, 0.5), status(60, 70)]
        episodes = consolidator.consolidate(records)

        quality = consolidator.analyze_quality(records, episodes)

        assert quality.short_episode_count == 1

    def test_empty_analysis(self, consolidator):
        """Test analysis of an empty pass."""
        quality = consolidator.analyze_quality([], [])

        assert quality.reduction_ratio == 0.0
        assert quality.average_group_size == 0.0
        assert quality.to_dict()["quality_score"] == 35


class TestSettingsAndMetrics:
    """Tests for runtime reconfiguration and counters."""

    def test_update_settings(self, consolidator):
        """Test a valid update takes effect."""
        consolidator.update_settings(max_gap_minutes=1)

        assert consolidator.settings.max_gap_minutes == 1
        assert len(consolidator.consolidate([status(0, 10), status(12, 20)])) == 2

    def test_invalid_update_keeps_previous_settings(self, consolidator):
        """Test an invalid update is rejected."""
        with pytest.raises(ConfigurationError):
            consolidator.update_settings(max_gap_minutes=-1)

        assert consolidator.settings.max_gap_minutes == 15.0

    def test_unknown_key_rejected(self, consolidator):
        """Test unknown configuration keys are rejected."""
        with pytest.raises(ConfigurationError) as exc_info:
            consolidator.update_settings(similarity_threshold=0.9)

        assert exc_info.value.details["key"] == "similarity_threshold"

    def test_metrics(self, consolidator):
        """Test running counters after one pass."""
        consolidator.consolidate([status(0, 10), status(12, 20)])

        result = consolidator.get_metrics()

        assert result["passes"] == 1
        assert result["total_processed"] == 2
        assert result["total_consolidated"] == 1
        assert result["average_reduction"] == 50.0
        assert result["max_gap_minutes"] == 15.0

    def test_reset_metrics(self, consolidator):
        """Test counters reset."""
        consolidator.consolidate([status(0, 10)])
        consolidator.reset_metrics()

        assert consolidator.get_metrics()["passes"] == 0
