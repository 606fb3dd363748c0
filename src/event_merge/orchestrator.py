"""Orchestrator bridging matching, conflict resolution, merging and history.

``DeduplicationOrchestrator`` is the single entry point callers use.  It
owns one ``FuzzyMatcher``, one ``ConflictResolver``, one
``MergeHistoryTracker`` and the ``EventMerger`` that ties the last two
together, and keeps their configuration in sync.
"""

from __future__ import annotations

import asyncio
import time
from collections import deque
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog
from pydantic_core import to_jsonable_python

from event_merge.clustering import cluster_duplicates
from event_merge.errors import ConfigurationError, NotInitializedError
from event_merge.export.service import ImportResult, build_export_document, parse_import_document
from event_merge.history import MergeHistoryTracker
from event_merge.matching.config import DedupConfig, apply_overrides
from event_merge.matching.matcher import FuzzyMatcher
from event_merge.matching.scorers import SemanticScorer
from event_merge.merging import ConflictResolver, EventMerger
from event_merge.models import (
    BatchResult,
    DuplicateCheckResult,
    DuplicateMatch,
    DuplicatePair,
    EventRecord,
    MergeDecision,
    MergeHistoryEntry,
    MergeResult,
    MergeStrategy,
    ProcessingError,
    ProcessingMode,
    ProcessingStats,
)

logger = structlog.get_logger()

# Incremental mode handles events starting within this window first
UPCOMING_WINDOW = timedelta(days=7)

_PERFORMANCE_HISTORY = 100


@dataclass
class _Outcome:
    """Result of comparing one input event against its pool."""

    index: int
    record: EventRecord
    matches: list[DuplicateMatch]
    compared: int
    error: str | None = None


class DeduplicationOrchestrator:
    """Single API over duplicate detection, merging and the audit trail.

    Args:
        config: Engine configuration; defaults are used when omitted.
        semantic_scorer: Optional replacement for the keyword-overlap
            description scorer.
    """

    def __init__(
        self,
        config: DedupConfig | None = None,
        semantic_scorer: SemanticScorer | None = None,
    ) -> None:
        self._config = config if config is not None else DedupConfig()
        self.matcher = FuzzyMatcher(self._config, semantic_scorer)
        self.resolver = ConflictResolver(self._config.conflicts)
        self.tracker = MergeHistoryTracker()
        self.merger = EventMerger(self.resolver, self.tracker, self._config.conflicts)
        self._initialized = False
        self._initialized_at: datetime | None = None
        self._runs: deque[ProcessingStats] = deque(maxlen=_PERFORMANCE_HISTORY)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def initialize(self) -> None:
        """Check the configuration and mark the orchestrator ready.

        Calling it again is a no-op.

        Raises:
            ConfigurationError: If no similarity weight is positive.
        """
        if self._initialized:
            return
        if self._config.weights.total() <= 0:
            raise ConfigurationError(["weights: at least one similarity weight must be positive"])
        self._initialized = True
        self._initialized_at = datetime.now(timezone.utc)
        logger.info(
            "orchestrator_initialized",
            overall_threshold=self._config.thresholds.overall,
            batch_size=self._config.performance.batch_size,
        )

    def cleanup(self) -> None:
        """Release caches and statistics; safe to call at any time.

        The merge history is kept: it is the audit trail.
        """
        for step in (self.matcher.clear_cache, self.resolver.clear_stats):
            try:
                step()
            except Exception as e:
                logger.warning("cleanup_step_failed", step=step.__name__, error=str(e), exc_info=True)
        self._runs.clear()
        was_initialized = self._initialized
        self._initialized = False
        self._initialized_at = None
        if was_initialized:
            logger.info("orchestrator_cleaned_up")

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise NotInitializedError("call initialize() before executing merges")

    # ------------------------------------------------------------------
    # Single-event operations
    # ------------------------------------------------------------------

    def check_for_duplicates(self, candidate: Any, pool: Iterable[Any]) -> DuplicateCheckResult:
        return self.matcher.check_for_duplicates(candidate, pool)

    def create_merge_decision(
        self,
        primary: Any,
        duplicates: Sequence[Any],
        strategy: MergeStrategy | str = MergeStrategy.ENHANCE_PRIMARY,
        manual_selections: Mapping[str, str] | None = None,
    ) -> MergeDecision:
        return self.merger.create_merge_decision(primary, duplicates, strategy, manual_selections)

    def execute_merge(self, decision: MergeDecision, merged_by: str = "system") -> MergeResult:
        """Apply *decision*; see ``EventMerger.execute_merge``.

        Raises:
            NotInitializedError: If ``initialize()`` has not been called.
        """
        self._require_initialized()
        return self.merger.execute_merge(decision, merged_by=merged_by)

    def merge_events(
        self,
        primary: Any,
        duplicates: Sequence[Any],
        strategy: MergeStrategy | str = MergeStrategy.ENHANCE_PRIMARY,
        merged_by: str = "system",
        manual_selections: Mapping[str, str] | None = None,
    ) -> MergeResult:
        """Create a decision and execute it in one step."""
        decision = self.create_merge_decision(primary, duplicates, strategy, manual_selections)
        return self.execute_merge(decision, merged_by=merged_by)

    def resolve_conflicts(
        self, events: Sequence[Any], fields: Iterable[str], primary_id: str | None = None
    ) -> dict[str, Any]:
        return self.resolver.resolve_conflicts(events, fields, primary_id)

    def get_event_history(self, event_id: str) -> list[MergeHistoryEntry]:
        return self.tracker.get_event_history(event_id)

    # ------------------------------------------------------------------
    # Bulk processing
    # ------------------------------------------------------------------

    async def process_events(
        self,
        events: Sequence[Any],
        mode: ProcessingMode | str = ProcessingMode.BATCH,
    ) -> BatchResult:
        """Find duplicates among *events*.

        Modes:
            - ``batch``: each event against every other, bounded by
              ``max_candidates``.
            - ``realtime``: each event against the events before it, as if
              they arrived one by one.
            - ``incremental``: like ``realtime``, but events starting within
              the next week are handled first.
            - ``full_scan``: every pair exactly once, with no candidate bound.

        One failing item is recorded in ``errors`` and never aborts the run.

        Raises:
            ValueError: If *mode* is not a known processing mode.
        """
        mode = ProcessingMode(mode)
        log = logger.bind(mode=mode.value)
        started = time.perf_counter()
        performance = self._config.performance

        records, errors = _prepare(events)
        ordered = _order_for_mode(records, mode)
        log.info("processing_started", total_events=len(events), valid_events=len(ordered))

        pool = [record for _, record in ordered]
        best_scores: dict[tuple[str, str], float] = {}
        processed = 0
        comparisons = 0
        batches = 0

        for start in range(0, len(ordered), performance.batch_size):
            batch = ordered[start : start + performance.batch_size]
            batches += 1
            outcomes = await self._run_batch(batch, start, pool, mode)

            for outcome in outcomes:
                if outcome.error is not None:
                    errors.append(ProcessingError(outcome.index, outcome.record.id, outcome.error))
                    continue
                processed += 1
                comparisons += outcome.compared
                for match in outcome.matches:
                    key = tuple(sorted((outcome.record.id, match.event_id)))
                    if match.score.overall > best_scores.get(key, -1.0):
                        best_scores[key] = match.score.overall

            log.debug(
                "batch_processed",
                batch=batches,
                size=len(batch),
                duplicate_pairs=len(best_scores),
            )

        pairs = sorted(
            (DuplicatePair(a, b, score) for (a, b), score in best_scores.items()),
            key=lambda pair: (-pair.score, pair.event_id_a, pair.event_id_b),
        )
        clustering = cluster_duplicates(pairs, (record.id for record in pool))

        elapsed = time.perf_counter() - started
        stats = ProcessingStats(
            mode=mode,
            total_events=len(events),
            batches=batches,
            comparisons=comparisons,
            processing_time_ms=elapsed * 1000,
            events_per_second=len(events) / elapsed if elapsed > 0 else 0.0,
        )
        self._runs.append(stats)
        errors.sort(key=lambda error: error.index)

        log.info(
            "processing_complete",
            processed=processed,
            duplicates_found=len(pairs),
            clusters=clustering.cluster_count,
            errors=len(errors),
            processing_time_ms=round(stats.processing_time_ms, 2),
        )
        return BatchResult(
            processed_count=processed,
            duplicates_found=len(pairs),
            duplicate_pairs=pairs,
            clusters=clustering.clusters,
            errors=errors,
            stats=stats,
        )

    async def _run_batch(
        self,
        batch: list[tuple[int, EventRecord]],
        offset: int,
        pool: list[EventRecord],
        mode: ProcessingMode,
    ) -> list[_Outcome]:
        """Compare each event of *batch* against its pool, preserving batch order."""
        jobs = [
            (index, record, _pool_for(pool, offset + position, mode), mode is not ProcessingMode.FULL_SCAN)
            for position, (index, record) in enumerate(batch)
        ]

        if not self._config.performance.parallel_processing:
            return [self._detect(*job) for job in jobs]

        semaphore = asyncio.Semaphore(self._config.performance.max_workers)

        async def detect_one(job: tuple[int, EventRecord, list[EventRecord], bool]) -> _Outcome:
            async with semaphore:
                return await asyncio.to_thread(self._detect, *job)

        return list(await asyncio.gather(*(detect_one(job) for job in jobs)))

    def _detect(
        self, index: int, record: EventRecord, pool: list[EventRecord], bounded: bool
    ) -> _Outcome:
        try:
            matches, compared = self.matcher.find_matches(record, pool, bounded=bounded)
        except Exception as e:
            logger.error(
                "event_processing_failed",
                event_id=record.id,
                index=index,
                error=str(e),
                exc_info=True,
            )
            return _Outcome(index, record, [], 0, error=f"{type(e).__name__}: {e}")
        return _Outcome(index, record, matches, compared)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def get_configuration(self) -> DedupConfig:
        return self._config.model_copy(deep=True)

    def update_configuration(self, overrides: Mapping[str, Any]) -> DedupConfig:
        """Deep-merge *overrides* onto the live configuration.

        Raises:
            ConfigurationError: If the result is invalid.  Nothing changes.
        """
        updated = apply_overrides(self._config, dict(overrides))
        self._apply_config(updated)
        logger.info("config_updated", sections=sorted(overrides))
        return updated.model_copy(deep=True)

    def _apply_config(self, config: DedupConfig) -> None:
        self._config = config
        self.matcher.update_config(config)
        self.merger.update_config(config.conflicts)

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    def get_performance_metrics(self) -> dict[str, Any]:
        runs = list(self._runs)
        total_events = sum(run.total_events for run in runs)
        total_seconds = sum(run.processing_time_ms for run in runs) / 1000
        return {
            "cache": self.matcher.get_cache_stats(),
            "resolution": self.resolver.get_resolution_stats(),
            "runs": len(runs),
            "total_events_processed": total_events,
            "average_events_per_second": total_events / total_seconds if total_seconds > 0 else 0.0,
            "recent_runs": to_jsonable_python(runs[-10:]),
        }

    def health_check(self) -> dict[str, Any]:
        """Report component status and what to do about problems.

        ``status`` is ``error`` if any component errors, ``warning`` if any
        warns, ``healthy`` otherwise.
        """
        health = self._config.health
        components: dict[str, dict[str, Any]] = {}
        recommendations: list[str] = []

        if self._initialized:
            components["orchestrator"] = {"status": "healthy"}
        else:
            components["orchestrator"] = {"status": "error", "message": "not initialized"}
            recommendations.append("Call initialize() before executing merges.")

        if self._config.weights.total() <= 0:
            components["configuration"] = {"status": "error", "message": "all weights are zero"}
            recommendations.append("Give at least one similarity weight a positive value.")
        else:
            components["configuration"] = {"status": "healthy"}

        cache = self.matcher.get_cache_stats()
        matcher_status = "healthy"
        if cache["size"] > health.max_cache_entries:
            matcher_status = "warning"
            recommendations.append("Matcher cache is large; call cleanup() or clear the cache.")
        components["fuzzy_matcher"] = {"status": matcher_status, **cache}

        resolution = self.resolver.get_resolution_stats()
        resolver_status = "healthy"
        if resolution["total_resolutions"] and resolution["contested_rate"] > health.max_contested_rate:
            resolver_status = "warning"
            recommendations.append(
                "Many fields conflict between duplicates; review the conflict policy "
                "or route these merges to manual review."
            )
        components["conflict_resolver"] = {"status": resolver_status, **resolution}

        history = self.tracker.get_statistics()
        history_status = "healthy"
        if history["total_merges"] >= 5 and history["average_confidence"] < health.min_average_confidence:
            history_status = "warning"
            recommendations.append("Average merge confidence is low; review matching thresholds.")
        components["history_tracker"] = {
            "status": history_status,
            "total_merges": history["total_merges"],
            "average_confidence": history["average_confidence"],
        }

        statuses = {component["status"] for component in components.values()}
        if "error" in statuses:
            status = "error"
        elif "warning" in statuses:
            status = "warning"
        else:
            status = "healthy"

        return {
            "status": status,
            "components": components,
            "recommendations": recommendations,
            "checked_at": datetime.now(timezone.utc).isoformat(),
        }

    def generate_report(self) -> dict[str, Any]:
        """Audit report of the merge history plus current engine state."""
        report = self.tracker.generate_audit_report(
            min_average_confidence=self._config.health.min_average_confidence
        )
        report["performance"] = self.get_performance_metrics()
        report["health"] = self.health_check()["status"]
        return report

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------

    def export_data(self) -> dict[str, Any]:
        return build_export_document(
            history=self.tracker.export_history(),
            configuration=self._config,
            performance=self.get_performance_metrics(),
        )

    def import_data(self, data: Any) -> ImportResult:
        """Load an export document.

        The whole document is validated before anything is applied; if any
        part is invalid, nothing changes and the errors are returned.
        """
        parsed, errors = parse_import_document(data, self._config)
        if errors:
            logger.warning("import_rejected", errors=errors)
            return ImportResult(success=False, errors=errors)

        if parsed.configuration is not None:
            self._apply_config(parsed.configuration)
        imported, _ = self.tracker.import_history(parsed.history)
        logger.info(
            "import_applied",
            imported_history=imported,
            configuration_applied=parsed.configuration is not None,
        )
        return ImportResult(
            success=True,
            imported_history=imported,
            configuration_applied=parsed.configuration is not None,
        )


def _prepare(events: Sequence[Any]) -> tuple[list[tuple[int, EventRecord]], list[ProcessingError]]:
    """Coerce inputs to records, rejecting those without a usable id."""
    records: list[tuple[int, EventRecord]] = []
    errors: list[ProcessingError] = []
    seen: set[str] = set()
    for index, raw in enumerate(events):
        record = EventRecord.from_raw(raw)
        if not record.id:
            errors.append(ProcessingError(index, None, "event has no id"))
        elif record.id in seen:
            errors.append(ProcessingError(index, record.id, "event id appears more than once"))
        else:
            seen.add(record.id)
            records.append((index, record))
    return records, errors


def _order_for_mode(
    records: list[tuple[int, EventRecord]], mode: ProcessingMode, now: datetime | None = None
) -> list[tuple[int, EventRecord]]:
    if mode is not ProcessingMode.INCREMENTAL:
        return records
    now = now or datetime.now(timezone.utc)

    def is_upcoming(item: tuple[int, EventRecord]) -> bool:
        start = item[1].start_time
        return start is not None and now <= start <= now + UPCOMING_WINDOW

    # Stable: input order is kept inside each group
    return sorted(records, key=lambda item: not is_upcoming(item))


def _pool_for(pool: list[EventRecord], position: int, mode: ProcessingMode) -> list[EventRecord]:
    if mode is ProcessingMode.BATCH:
        return pool
    if mode is ProcessingMode.FULL_SCAN:
        return pool[position + 1 :]
    # realtime / incremental: only events that arrived earlier
    return pool[:position]
