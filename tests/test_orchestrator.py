"""Tests for DeduplicationOrchestrator: bulk processing, lifecycle and state."""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest

from event_merge.errors import ConfigurationError, NotInitializedError
from event_merge.matching.config import DedupConfig, WeightConfig
from event_merge.models import EventRecord, ProcessingError, ProcessingMode
from event_merge.orchestrator import DeduplicationOrchestrator, _order_for_mode


def _pair_ids(result) -> list[tuple[str, str]]:
    return [(pair.event_id_a, pair.event_id_b) for pair in result.duplicate_pairs]


# ===========================================================================
# process_events
# ===========================================================================

class TestProcessEvents:
    async def test_batch_finds_duplicate_pair(
        self, orchestrator, jazz_event, jazz_duplicate, rock_event
    ) -> None:
        result = await orchestrator.process_events([jazz_event, jazz_duplicate, rock_event])
        assert result.processed_count == 3
        assert result.duplicates_found == 1
        assert _pair_ids(result) == [("event-1", "event-2")]
        assert result.clusters == [{"event-1", "event-2"}]
        assert result.errors == []
        assert result.stats.mode is ProcessingMode.BATCH
        assert result.stats.total_events == 3

    @pytest.mark.parametrize("mode", ["batch", "realtime", "incremental", "full_scan"])
    async def test_all_modes_agree(
        self, orchestrator, mode, jazz_event, jazz_duplicate, rock_event
    ) -> None:
        result = await orchestrator.process_events([jazz_event, rock_event, jazz_duplicate], mode)
        assert _pair_ids(result) == [("event-1", "event-2")]
        assert result.stats.mode.value == mode

    async def test_realtime_compares_with_earlier_events_only(
        self, orchestrator, jazz_event, jazz_duplicate
    ) -> None:
        result = await orchestrator.process_events([jazz_event, jazz_duplicate], "realtime")
        assert result.stats.comparisons == 1

    async def test_full_scan_compares_each_pair_once(
        self, orchestrator, jazz_event, jazz_duplicate, rock_event
    ) -> None:
        result = await orchestrator.process_events(
            [jazz_event, jazz_duplicate, rock_event], ProcessingMode.FULL_SCAN
        )
        assert result.stats.comparisons == 3

    async def test_unknown_mode(self, orchestrator, jazz_event) -> None:
        with pytest.raises(ValueError):
            await orchestrator.process_events([jazz_event], "nightly")

    async def test_event_without_id_recorded(
        self, orchestrator, jazz_event, jazz_duplicate
    ) -> None:
        events = [jazz_event, {"title": "Jazz Concert at Blue Note"}, jazz_duplicate, None]
        result = await orchestrator.process_events(events)
        assert result.processed_count == 2
        assert result.duplicates_found == 1
        assert result.errors == [
            ProcessingError(1, None, "event has no id"),
            ProcessingError(3, None, "event has no id"),
        ]

    async def test_repeated_id_recorded(self, orchestrator, jazz_event) -> None:
        result = await orchestrator.process_events([jazz_event, dict(jazz_event)])
        assert result.processed_count == 1
        assert result.errors == [ProcessingError(1, "event-1", "event id appears more than once")]

    async def test_failing_item_does_not_abort(
        self, orchestrator, monkeypatch, jazz_event, jazz_duplicate, rock_event
    ) -> None:
        find_matches = orchestrator.matcher.find_matches

        def flaky(candidate, pool, bounded=True):
            if candidate.id == "event-4":
                raise RuntimeError("scorer exploded")
            return find_matches(candidate, pool, bounded=bounded)

        monkeypatch.setattr(orchestrator.matcher, "find_matches", flaky)
        result = await orchestrator.process_events([jazz_event, jazz_duplicate, rock_event])
        assert result.processed_count == 2
        assert result.duplicates_found == 1
        assert result.errors == [ProcessingError(2, "event-4", "RuntimeError: scorer exploded")]

    async def test_batches(self, orchestrator, jazz_event, jazz_duplicate, rock_event) -> None:
        orchestrator.update_configuration({"performance": {"batch_size": 2}})
        result = await orchestrator.process_events([jazz_event, jazz_duplicate, rock_event])
        assert result.stats.batches == 2
        assert result.duplicates_found == 1

    async def test_parallel_matches_sequential(self, jazz_event, jazz_duplicate, rock_event) -> None:
        events = [jazz_event, jazz_duplicate, rock_event, dict(jazz_duplicate, id="event-3")]

        parallel = DeduplicationOrchestrator()
        parallel.update_configuration({"performance": {"max_workers": 2}})
        sequential = DeduplicationOrchestrator()
        sequential.update_configuration({"performance": {"parallel_processing": False}})

        a = await parallel.process_events(events)
        b = await sequential.process_events(events)
        assert a.duplicate_pairs == b.duplicate_pairs
        assert a.clusters == b.clusters == [{"event-1", "event-2", "event-3"}]

    async def test_empty_input(self, orchestrator) -> None:
        result = await orchestrator.process_events([])
        assert result.processed_count == 0
        assert result.duplicate_pairs == []
        assert result.stats.batches == 0

    async def test_run_recorded_in_metrics(self, orchestrator, jazz_event, jazz_duplicate) -> None:
        await orchestrator.process_events([jazz_event, jazz_duplicate])
        metrics = orchestrator.get_performance_metrics()
        assert metrics["runs"] == 1
        assert metrics["total_events_processed"] == 2
        assert metrics["recent_runs"][0]["mode"] == "batch"
        assert metrics["cache"]["fingerprints"] == 2


class TestIncrementalOrder:
    def test_upcoming_events_first(self) -> None:
        now = datetime(2024, 6, 1, tzinfo=timezone.utc)
        records = [
            (0, EventRecord(id="later", start_time=now + timedelta(days=30))),
            (1, EventRecord(id="undated")),
            (2, EventRecord(id="soon", start_time=now + timedelta(days=2))),
            (3, EventRecord(id="past", start_time=now - timedelta(days=2))),
            (4, EventRecord(id="tomorrow", start_time=now + timedelta(days=1))),
        ]
        ordered = _order_for_mode(records, ProcessingMode.INCREMENTAL, now=now)
        assert [record.id for _, record in ordered] == ["soon", "tomorrow", "later", "undated", "past"]

    def test_other_modes_keep_order(self) -> None:
        records = [(0, EventRecord(id="a")), (1, EventRecord(id="b"))]
        assert _order_for_mode(records, ProcessingMode.REALTIME) == records


# ===========================================================================
# Lifecycle
# ===========================================================================

class TestLifecycle:
    def test_initialize_idempotent(self) -> None:
        orch = DeduplicationOrchestrator()
        orch.initialize()
        orch.initialize()
        assert orch.is_initialized

    def test_execute_requires_initialize(self, jazz_event, jazz_duplicate) -> None:
        orch = DeduplicationOrchestrator()
        decision = orch.create_merge_decision(jazz_event, [jazz_duplicate])
        with pytest.raises(NotInitializedError):
            orch.execute_merge(decision)
        assert orch.tracker.get_all() == []

    def test_zero_weights_fail_initialize(self) -> None:
        zero = WeightConfig(title=0, venue=0, location=0, date=0, semantic=0)
        orch = DeduplicationOrchestrator(DedupConfig(weights=zero))
        with pytest.raises(ConfigurationError):
            orch.initialize()
        orch.cleanup()
        assert not orch.is_initialized

    def test_cleanup_idempotent_and_keeps_history(self, jazz_event, jazz_duplicate) -> None:
        orch = DeduplicationOrchestrator()
        orch.initialize()
        assert orch.merge_events(jazz_event, [jazz_duplicate]).success
        orch.cleanup()
        orch.cleanup()
        assert not orch.is_initialized
        assert orch.matcher.get_cache_stats()["size"] == 0
        assert orch.resolver.get_resolution_stats()["total_resolutions"] == 0
        assert len(orch.get_event_history("event-2")) == 1

    def test_cleanup_before_initialize(self) -> None:
        DeduplicationOrchestrator().cleanup()


# ===========================================================================
# Merging through the orchestrator
# ===========================================================================

class TestMerging:
    def test_merge_events(self, orchestrator, jazz_event, enhanced_duplicate) -> None:
        result = orchestrator.merge_events(jazz_event, [enhanced_duplicate], merged_by="ops")
        assert result.success
        assert result.merged_event.id == "event-1"
        assert result.merged_event.image_url == "https://example.com/jazz.jpg"
        [entry] = orchestrator.get_event_history("event-5")
        assert entry.merged_by == "ops"

    def test_repeated_merges_into_one_primary(
        self, orchestrator, jazz_event, jazz_duplicate, enhanced_duplicate
    ) -> None:
        duplicates = [
            jazz_duplicate,
            enhanced_duplicate,
            dict(jazz_duplicate, id="event-6", source="yelp"),
        ]
        for duplicate in duplicates:
            assert orchestrator.merge_events(jazz_event, [duplicate]).success

        history = orchestrator.get_event_history("event-1")
        assert len(history) == len(duplicates)
        assert [entry.duplicate_event_ids for entry in history] == [
            frozenset({"event-2"}),
            frozenset({"event-5"}),
            frozenset({"event-6"}),
        ]
        stamps = [entry.merged_at for entry in history]
        assert stamps == sorted(stamps)
        assert orchestrator.merger.tracker is orchestrator.tracker

    def test_history_entries_are_frozen(self, orchestrator, jazz_event, jazz_duplicate) -> None:
        orchestrator.merge_events(jazz_event, [jazz_duplicate])
        [entry] = orchestrator.get_event_history("event-1")
        tags = next(r for r in entry.field_resolutions if r.field == "tags").chosen_value
        with pytest.raises(AttributeError):
            tags.add("forged")

        [again] = orchestrator.get_event_history("event-1")
        assert "forged" not in next(
            r for r in again.field_resolutions if r.field == "tags"
        ).chosen_value

    def test_rejected_merge_leaves_no_history(self, orchestrator, jazz_event, jazz_duplicate) -> None:
        result = orchestrator.merge_events(dict(jazz_event, title="  "), [jazz_duplicate])
        assert not result.success
        assert orchestrator.get_event_history("event-1") == []

    def test_resolve_conflicts(self, orchestrator, jazz_event, jazz_duplicate) -> None:
        resolved = orchestrator.resolve_conflicts([jazz_event, jazz_duplicate], ["tags", "source"])
        assert resolved["source"] == "primary"
        assert "nightlife" in resolved["tags"]


# ===========================================================================
# Configuration
# ===========================================================================

class TestConfiguration:
    def test_update_reaches_components(self, orchestrator) -> None:
        orchestrator.update_configuration(
            {"thresholds": {"overall": 0.9}, "conflicts": {"enrichable_fields": ["title"]}}
        )
        assert orchestrator.get_configuration().thresholds.overall == 0.9
        assert orchestrator.matcher.config.thresholds.overall == 0.9
        assert orchestrator.resolver.config.enrichable_fields == ["title"]

    def test_invalid_update_changes_nothing(self, orchestrator) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            orchestrator.update_configuration(
                {"thresholds": {"overall": 1.5}, "performance": {"batch_size": 0}}
            )
        assert len(exc_info.value.errors) == 2
        assert orchestrator.get_configuration().thresholds.overall == 0.80
        assert orchestrator.get_configuration().performance.batch_size == 100

    def test_get_configuration_is_a_copy(self, orchestrator) -> None:
        orchestrator.get_configuration().thresholds.overall = 0.1
        assert orchestrator.get_configuration().thresholds.overall == 0.80


# ===========================================================================
# Health and reports
# ===========================================================================

class TestHealth:
    def test_healthy(self, orchestrator) -> None:
        health = orchestrator.health_check()
        assert health["status"] == "healthy"
        assert set(health["components"]) == {
            "orchestrator",
            "configuration",
            "fuzzy_matcher",
            "conflict_resolver",
            "history_tracker",
        }
        assert health["recommendations"] == []

    def test_not_initialized(self) -> None:
        health = DeduplicationOrchestrator().health_check()
        assert health["status"] == "error"
        assert health["components"]["orchestrator"]["status"] == "error"
        assert health["recommendations"]

    def test_contested_fields_warn(self, orchestrator, jazz_event, jazz_duplicate) -> None:
        orchestrator.update_configuration({"health": {"max_contested_rate": 0.0}})
        orchestrator.resolve_conflicts([jazz_event, jazz_duplicate], ["tags"])
        health = orchestrator.health_check()
        assert health["status"] == "warning"
        assert health["components"]["conflict_resolver"]["status"] == "warning"

    def test_report(self, orchestrator, jazz_event, jazz_duplicate) -> None:
        orchestrator.merge_events(jazz_event, [jazz_duplicate])
        report = orchestrator.generate_report()
        assert report["summary"]["total_merges"] == 1
        assert report["health"] == "healthy"
        assert "performance" in report


# ===========================================================================
# Export / import
# ===========================================================================

class TestExportImport:
    def test_export_document(self, orchestrator, jazz_event, jazz_duplicate) -> None:
        orchestrator.merge_events(jazz_event, [jazz_duplicate])
        document = orchestrator.export_data()
        assert set(document) == {"mergeHistory", "configuration", "performance"}
        assert len(document["mergeHistory"]) == 1
        assert document["configuration"]["thresholds"]["overall"] == 0.80
        json.dumps(document)

    def test_round_trip(self, orchestrator, jazz_event, jazz_duplicate) -> None:
        orchestrator.update_configuration({"thresholds": {"overall": 0.7}})
        orchestrator.merge_events(jazz_event, [jazz_duplicate])
        document = json.dumps(orchestrator.export_data())

        target = DeduplicationOrchestrator()
        result = target.import_data(document)
        assert result.success
        assert result.imported_history == 1
        assert result.configuration_applied
        assert target.get_configuration().thresholds.overall == 0.7
        assert target.matcher.config.thresholds.overall == 0.7
        assert len(target.get_event_history("event-2")) == 1

    def test_invalid_document_changes_nothing(self, orchestrator, jazz_event, jazz_duplicate) -> None:
        source = DeduplicationOrchestrator()
        source.initialize()
        source.merge_events(jazz_event, [jazz_duplicate])
        document = source.export_data()
        document["configuration"]["thresholds"]["overall"] = 3

        result = orchestrator.import_data(document)
        assert result.success is False
        assert result.errors[0].startswith("configuration.thresholds.overall:")
        assert orchestrator.tracker.get_all() == []
        assert orchestrator.get_configuration().thresholds.overall == 0.80

    def test_not_json(self, orchestrator) -> None:
        result = orchestrator.import_data("{not json")
        assert result.success is False
        assert result.errors[0].startswith("document: invalid JSON")

    def test_history_only(self, orchestrator) -> None:
        result = orchestrator.import_data({"mergeHistory": []})
        assert result.success
        assert result.configuration_applied is False
