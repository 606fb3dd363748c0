"""Merge decisions: creation, validation and execution.

``create_merge_decision`` is pure: it resolves every mergeable field and
returns an immutable ``MergeDecision``.  ``execute_merge`` validates the
decision and, only when it is valid, builds the merged record and appends
exactly one history entry.  A rejected decision changes nothing.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable, Mapping, Sequence
from datetime import datetime, timezone
from typing import Any

import structlog

from event_merge.history.tracker import MergeHistoryTracker
from event_merge.matching.config import ConflictConfig
from event_merge.merging.conflict_resolver import ConflictResolver
from event_merge.merging.quality import completeness_score, quality_score, value_size
from event_merge.models.event import EventRecord
from event_merge.models.merge import (
    FieldResolution,
    MergeDecision,
    MergeResult,
    MergeStrategy,
)

logger = structlog.get_logger()

# Identity and bookkeeping fields are never taken from a duplicate
MERGE_FIELDS: tuple[str, ...] = tuple(
    name for name in EventRecord.model_fields if name not in ("id", "created_at", "updated_at")
)

# Base confidence of a decision, by strategy
_STRATEGY_CONFIDENCE: dict[MergeStrategy, float] = {
    MergeStrategy.ENHANCE_PRIMARY: 0.9,
    MergeStrategy.QUALITY_BASED: 0.85,
    MergeStrategy.MANUAL: 0.95,
}

# Fields that weigh more when judging how settled a decision is
_IMPORTANT_FIELDS = frozenset({"title", "start_time", "venue_name", "description"})


class EventMerger:
    """Build and apply merge decisions."""

    def __init__(
        self,
        resolver: ConflictResolver | None = None,
        tracker: MergeHistoryTracker | None = None,
        config: ConflictConfig | None = None,
    ) -> None:
        self._config = config if config is not None else ConflictConfig()
        self.resolver = resolver if resolver is not None else ConflictResolver(self._config)
        # An empty tracker is falsy (it has __len__), so test against None
        self.tracker = tracker if tracker is not None else MergeHistoryTracker()

    def update_config(self, config: ConflictConfig) -> None:
        self._config = config
        self.resolver.update_config(config)

    # ------------------------------------------------------------------
    # Decision creation
    # ------------------------------------------------------------------

    def create_merge_decision(
        self,
        primary: EventRecord | Mapping[str, Any],
        duplicates: Sequence[EventRecord | Mapping[str, Any]],
        strategy: MergeStrategy | str = MergeStrategy.ENHANCE_PRIMARY,
        manual_selections: Mapping[str, str] | None = None,
    ) -> MergeDecision:
        """Propose merging *duplicates* into *primary*.

        Args:
            primary: The event whose identity survives the merge.
            duplicates: Events to fold into the primary.
            strategy: How field values are chosen.
            manual_selections: For ``manual``, field name -> id of the event
                whose value that field should take.

        Returns:
            An immutable decision.  It is not validated here; see
            :meth:`validate_merge_decision`.

        Raises:
            ValueError: If *strategy* is unknown, or a manual selection
                names a field or event that is not part of the merge.
        """
        strategy = MergeStrategy(strategy)
        primary_record = EventRecord.from_raw(primary).model_copy(deep=True)
        duplicate_records = [EventRecord.from_raw(d) for d in duplicates]

        handler = _STRATEGY_HANDLERS[strategy]
        resolutions = handler(self, primary_record, duplicate_records, dict(manual_selections or {}))
        resolved = tuple(r for r in resolutions if r.rule not in ("absent", "unknown_field"))

        everyone = [primary_record, *duplicate_records]
        return MergeDecision(
            decision_id=uuid.uuid4().hex,
            primary_event_id=primary_record.id,
            duplicate_event_ids=frozenset(d.id for d in duplicate_records),
            strategy=strategy,
            field_resolutions=resolved,
            confidence=_decision_confidence(strategy, resolved),
            reasons=_decision_reasons(primary_record, resolved),
            primary_event=primary_record,
            sources={r.id: r.source or "unknown" for r in everyone if r.id},
        )

    def _enhance_primary(
        self,
        primary: EventRecord,
        duplicates: list[EventRecord],
        selections: dict[str, str],
    ) -> list[FieldResolution]:
        return self.resolver.resolve_fields(
            [primary, *duplicates], MERGE_FIELDS, primary_id=primary.id
        )

    def _quality_based(
        self,
        primary: EventRecord,
        duplicates: list[EventRecord],
        selections: dict[str, str],
    ) -> list[FieldResolution]:
        candidates = [primary, *duplicates]
        # max() keeps the earliest candidate on ties, so the primary wins those
        preferred = max(candidates, key=lambda event: quality_score(event, self._config))
        ordered = [preferred, *(c for c in candidates if c is not preferred)]
        return self.resolver.resolve_fields(
            ordered, MERGE_FIELDS, primary_id=preferred.id, prefer_primary=True
        )

    def _manual(
        self,
        primary: EventRecord,
        duplicates: list[EventRecord],
        selections: dict[str, str],
    ) -> list[FieldResolution]:
        by_id = {event.id: event for event in (primary, *duplicates)}
        for field, event_id in selections.items():
            if field not in MERGE_FIELDS:
                raise ValueError(f"manual selection names unknown field {field!r}")
            if event_id not in by_id:
                raise ValueError(f"manual selection for {field!r} names unknown event {event_id!r}")

        resolutions = []
        for field in MERGE_FIELDS:
            if field in selections:
                source = by_id[selections[field]]
                rule = "manual"
            else:
                source = primary
                rule = "primary"
            value = getattr(source, field)
            if value_size(value) == 0:
                resolutions.append(FieldResolution(field, None, None, "absent"))
            else:
                resolutions.append(FieldResolution(field, value, source.id, rule))
        return resolutions

    # ------------------------------------------------------------------
    # Validation and execution
    # ------------------------------------------------------------------

    def validate_merge_decision(self, decision: MergeDecision) -> list[str]:
        """Return every reason *decision* cannot be applied; empty when valid."""
        errors = []
        if not decision.primary_event_id:
            errors.append("primary event has no id")
        if not (decision.primary_event.title or "").strip():
            errors.append("primary event must have a non-empty title")
        if not decision.duplicate_event_ids:
            errors.append("at least one duplicate event is required")
        if "" in decision.duplicate_event_ids:
            errors.append("every duplicate event must have an id")
        if decision.primary_event_id and decision.primary_event_id in decision.duplicate_event_ids:
            errors.append(
                f"duplicate event ids must not include the primary event id "
                f"{decision.primary_event_id!r}"
            )
        if self.tracker.was_applied(decision.decision_id):
            errors.append(f"decision {decision.decision_id} has already been applied")
        return errors

    def build_merged_event(self, decision: MergeDecision) -> EventRecord:
        """Apply the decision's resolutions on top of the primary snapshot.

        The result always carries the primary's id.
        """
        updates: dict[str, Any] = {
            resolution.field: resolution.chosen_value
            for resolution in decision.field_resolutions
        }
        updates["id"] = decision.primary_event_id
        updates["updated_at"] = datetime.now(timezone.utc)
        return decision.primary_event.model_copy(update=updates, deep=True)

    def execute_merge(self, decision: MergeDecision, merged_by: str = "system") -> MergeResult:
        """Validate and apply *decision*.

        All or nothing: on validation failure no history entry is written
        and ``success`` is ``False``.
        """
        log = logger.bind(decision_id=decision.decision_id, primary_event_id=decision.primary_event_id)

        errors = self.validate_merge_decision(decision)
        if errors:
            log.info("merge_rejected", errors=errors)
            return MergeResult(success=False, errors=errors)

        merged = self.build_merged_event(decision)
        improvement = completeness_score(merged) - completeness_score(decision.primary_event)
        entry = self.tracker.record_merge(
            decision, merged_by=merged_by, quality_improvement=round(improvement, 4)
        )
        log.info(
            "merge_applied",
            history_id=entry.history_id,
            duplicate_count=len(decision.duplicate_event_ids),
            strategy=decision.strategy.value,
            merged_by=merged_by,
        )
        return MergeResult(success=True, merged_event=merged, history_id=entry.history_id)


_StrategyHandler = Callable[
    [EventMerger, EventRecord, list[EventRecord], dict[str, str]], list[FieldResolution]
]

_STRATEGY_HANDLERS: dict[MergeStrategy, _StrategyHandler] = {
    MergeStrategy.ENHANCE_PRIMARY: EventMerger._enhance_primary,
    MergeStrategy.QUALITY_BASED: EventMerger._quality_based,
    MergeStrategy.MANUAL: EventMerger._manual,
}

_unhandled = set(MergeStrategy) - set(_STRATEGY_HANDLERS)
if _unhandled:
    raise RuntimeError(f"merge strategies without a handler: {sorted(s.value for s in _unhandled)}")


def _decision_confidence(strategy: MergeStrategy, resolutions: Sequence[FieldResolution]) -> float:
    """Strategy base confidence, lowered by fields decided on weak tiebreaks."""
    base = _STRATEGY_CONFIDENCE[strategy]
    if not resolutions:
        return base

    def settled(resolution: FieldResolution) -> float:
        return 0.5 if resolution.rule == "input_order" else 1.0

    overall = sum(settled(r) for r in resolutions) / len(resolutions)
    important = [r for r in resolutions if r.field in _IMPORTANT_FIELDS]
    important_score = sum(settled(r) for r in important) / len(important) if important else 1.0
    return round(base * (0.6 * overall + 0.4 * important_score), 4)


def _decision_reasons(
    primary: EventRecord, resolutions: Sequence[FieldResolution]
) -> tuple[str, ...]:
    reasons = []
    for resolution in resolutions:
        if resolution.source_event_id not in (None, primary.id):
            reasons.append(f"{resolution.field} taken from {resolution.source_event_id}")
        elif resolution.rule in ("union", "sum"):
            reasons.append(f"{resolution.field} combined from all events")
    return tuple(reasons)
