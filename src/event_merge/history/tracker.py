"""Append-only audit log of applied merges.

Entries are immutable and kept ordered by ``merged_at``.  The tracker
answers per-event history queries, aggregates statistics for reports and
round-trips its content through JSON-ready dicts.
"""

from __future__ import annotations

import bisect
import uuid
from collections import Counter, defaultdict
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_core import to_jsonable_python

from event_merge.matching.config import format_validation_errors
from event_merge.models.merge import (
    FieldResolution,
    MergeDecision,
    MergeHistoryEntry,
    MergeStrategy,
)

logger = structlog.get_logger()


def _merged_at(entry: MergeHistoryEntry) -> datetime:
    return entry.merged_at


class ResolutionRecord(BaseModel):
    """Serialized form of a ``FieldResolution``."""

    model_config = ConfigDict(extra="ignore")

    field: str = Field(min_length=1)
    chosen_value: Any = None
    source_event_id: str | None = None
    rule: str = "imported"


class HistoryRecord(BaseModel):
    """Serialized form of a ``MergeHistoryEntry``, used to validate imports."""

    model_config = ConfigDict(extra="ignore")

    history_id: str = Field(min_length=1)
    decision_id: str = ""
    primary_event_id: str = Field(min_length=1)
    duplicate_event_ids: list[str] = Field(min_length=1)
    field_resolutions: list[ResolutionRecord] = []
    merged_by: str = "system"
    merged_at: datetime
    strategy: MergeStrategy
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    quality_improvement: float = 0.0
    sources: dict[str, str] = {}

    @field_validator("merged_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)

    def to_entry(self) -> MergeHistoryEntry:
        return MergeHistoryEntry(
            history_id=self.history_id,
            decision_id=self.decision_id,
            primary_event_id=self.primary_event_id,
            duplicate_event_ids=frozenset(self.duplicate_event_ids),
            field_resolutions=tuple(
                FieldResolution(r.field, r.chosen_value, r.source_event_id, r.rule)
                for r in self.field_resolutions
            ),
            merged_by=self.merged_by,
            merged_at=self.merged_at,
            strategy=self.strategy,
            confidence=self.confidence,
            quality_improvement=self.quality_improvement,
            sources=tuple(sorted(self.sources.items())),
        )


def entry_to_dict(entry: MergeHistoryEntry) -> dict[str, Any]:
    """JSON-ready representation of *entry*."""
    return {
        "history_id": entry.history_id,
        "decision_id": entry.decision_id,
        "primary_event_id": entry.primary_event_id,
        "duplicate_event_ids": sorted(entry.duplicate_event_ids),
        "field_resolutions": [
            {
                "field": r.field,
                "chosen_value": to_jsonable_python(_sorted_if_set(r.chosen_value)),
                "source_event_id": r.source_event_id,
                "rule": r.rule,
            }
            for r in entry.field_resolutions
        ],
        "merged_by": entry.merged_by,
        "merged_at": entry.merged_at.isoformat(),
        "strategy": entry.strategy.value,
        "confidence": entry.confidence,
        "quality_improvement": entry.quality_improvement,
        "sources": dict(entry.sources),
    }


def parse_history_records(
    records: Iterable[Any],
) -> tuple[list[MergeHistoryEntry], list[str]]:
    """Validate serialized entries.

    Returns:
        The valid entries, and one ``"record N: field: message"`` string per
        problem found in the invalid ones.
    """
    entries: list[MergeHistoryEntry] = []
    errors: list[str] = []
    for position, raw in enumerate(records):
        try:
            record = HistoryRecord.model_validate(raw)
        except ValidationError as exc:
            errors.extend(
                f"record {position}: {message}" for message in format_validation_errors(exc)
            )
            continue
        if record.primary_event_id in record.duplicate_event_ids:
            errors.append(
                f"record {position}: duplicate_event_ids: must not contain the primary event id"
            )
            continue
        entries.append(record.to_entry())
    return entries, errors


class MergeHistoryTracker:
    """In-memory, append-only merge history."""

    def __init__(self) -> None:
        self._entries: list[MergeHistoryEntry] = []
        self._by_id: dict[str, MergeHistoryEntry] = {}
        self._by_event: dict[str, list[MergeHistoryEntry]] = defaultdict(list)
        self._applied_decisions: set[str] = set()

    def __len__(self) -> int:
        return len(self._entries)

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record_merge(
        self,
        decision: MergeDecision,
        merged_by: str = "system",
        quality_improvement: float = 0.0,
    ) -> MergeHistoryEntry:
        """Append an entry for an applied *decision* and return it.

        ``merged_at`` never goes backwards: if the clock reads earlier than
        the newest entry, the newest entry's timestamp is reused.
        """
        merged_at = datetime.now(timezone.utc)
        if self._entries and merged_at < self._entries[-1].merged_at:
            merged_at = self._entries[-1].merged_at

        entry = MergeHistoryEntry(
            history_id=f"merge_{uuid.uuid4().hex}",
            decision_id=decision.decision_id,
            primary_event_id=decision.primary_event_id,
            duplicate_event_ids=decision.duplicate_event_ids,
            field_resolutions=decision.field_resolutions,
            merged_by=merged_by,
            merged_at=merged_at,
            strategy=decision.strategy,
            confidence=decision.confidence,
            quality_improvement=quality_improvement,
            sources=tuple(sorted(decision.sources.items())),
        )
        self._insert(entry)
        logger.info(
            "merge_recorded",
            history_id=entry.history_id,
            primary_event_id=entry.primary_event_id,
            duplicate_count=len(entry.duplicate_event_ids),
            strategy=entry.strategy.value,
        )
        return entry

    def _insert(self, entry: MergeHistoryEntry) -> None:
        bisect.insort_right(self._entries, entry, key=_merged_at)
        self._by_id[entry.history_id] = entry
        for event_id in (entry.primary_event_id, *sorted(entry.duplicate_event_ids)):
            bisect.insort_right(self._by_event[event_id], entry, key=_merged_at)
        if entry.decision_id:
            self._applied_decisions.add(entry.decision_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def was_applied(self, decision_id: str) -> bool:
        return decision_id in self._applied_decisions

    def get_entry(self, history_id: str) -> MergeHistoryEntry | None:
        return self._by_id.get(history_id)

    def get_event_history(self, event_id: str) -> list[MergeHistoryEntry]:
        """Entries where *event_id* was the primary or a duplicate, oldest first."""
        return list(self._by_event.get(event_id, ()))

    def get_all(self) -> list[MergeHistoryEntry]:
        return list(self._entries)

    def filter_history(
        self,
        primary_event_id: str | None = None,
        strategy: MergeStrategy | str | None = None,
        merged_by: str | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        min_confidence: float | None = None,
    ) -> list[MergeHistoryEntry]:
        """Entries matching every given criterion, oldest first."""
        if strategy is not None:
            strategy = MergeStrategy(strategy)
        return [
            entry
            for entry in self._entries
            if (primary_event_id is None or entry.primary_event_id == primary_event_id)
            and (strategy is None or entry.strategy is strategy)
            and (merged_by is None or entry.merged_by == merged_by)
            and (since is None or entry.merged_at >= since)
            and (until is None or entry.merged_at <= until)
            and (min_confidence is None or entry.confidence >= min_confidence)
        ]

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def get_statistics(self, now: datetime | None = None) -> dict[str, Any]:
        """Aggregate totals over the whole history."""
        now = now or datetime.now(timezone.utc)
        entries = self._entries
        total = len(entries)

        duplicates_by_source: Counter[str] = Counter()
        for entry in entries:
            sources = dict(entry.sources)
            for event_id in entry.duplicate_event_ids:
                duplicates_by_source[sources.get(event_id) or "unknown"] += 1

        return {
            "total_merges": total,
            "total_events_merged": sum(len(e.duplicate_event_ids) for e in entries),
            "by_strategy": dict(Counter(e.strategy.value for e in entries)),
            "duplicates_by_source": dict(duplicates_by_source.most_common()),
            "by_actor": dict(Counter(e.merged_by for e in entries).most_common()),
            "average_confidence": sum(e.confidence for e in entries) / total if total else 0.0,
            "average_quality_improvement": (
                sum(e.quality_improvement for e in entries) / total if total else 0.0
            ),
            "recent_activity": sum(1 for e in entries if e.merged_at >= now - timedelta(hours=24)),
        }

    def generate_audit_report(
        self,
        days: int = 30,
        min_average_confidence: float = 0.6,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """Summary, per-day trend over the last *days* days and recommendations."""
        now = now or datetime.now(timezone.utc)
        stats = self.get_statistics(now)
        window_start = now - timedelta(days=days)

        merges_per_day: Counter[str] = Counter()
        events_per_day: Counter[str] = Counter()
        for entry in self._entries:
            if entry.merged_at < window_start:
                continue
            day = entry.merged_at.date().isoformat()
            merges_per_day[day] += 1
            events_per_day[day] += len(entry.duplicate_event_ids)

        daily_trend = [
            {"date": day, "merges": merges_per_day[day], "events_merged": events_per_day[day]}
            for day in sorted(merges_per_day)
        ]

        return {
            "generated_at": now.isoformat(),
            "period_days": days,
            "summary": stats,
            "daily_trend": daily_trend,
            "recommendations": _recommendations(stats, min_average_confidence),
        }

    # ------------------------------------------------------------------
    # Export / import
    # ------------------------------------------------------------------

    def export_history(self) -> list[dict[str, Any]]:
        return [entry_to_dict(entry) for entry in self._entries]

    def import_history(self, records: Iterable[Any]) -> tuple[int, list[str]]:
        """Add serialized entries to the log.

        Invalid records are reported and skipped; entries whose history id
        is already known are skipped silently.

        Returns:
            Number of entries added, and the validation errors.
        """
        entries, errors = parse_history_records(records)
        imported = 0
        for entry in entries:
            if entry.history_id in self._by_id:
                continue
            self._insert(entry)
            imported += 1
        logger.info("history_imported", imported=imported, rejected_errors=len(errors))
        return imported, errors


def _recommendations(stats: dict[str, Any], min_average_confidence: float) -> list[str]:
    total = stats["total_merges"]
    if total == 0:
        return ["No merges recorded yet; run duplicate detection to populate the audit trail."]

    recommendations = []
    if stats["average_confidence"] < min_average_confidence:
        recommendations.append(
            "Average merge confidence is low; review the matching thresholds and weights."
        )
    manual = stats["by_strategy"].get(MergeStrategy.MANUAL.value, 0)
    if manual / total > 0.3:
        recommendations.append(
            "Many merges are manual; tune the automatic strategies to reduce review load."
        )
    if stats["average_quality_improvement"] <= 0:
        recommendations.append(
            "Merges are not improving record completeness; check the enrichable field list."
        )
    by_source = stats["duplicates_by_source"]
    if by_source:
        source, count = next(iter(by_source.items()))
        if count / stats["total_events_merged"] > 0.5:
            recommendations.append(
                f"Most duplicates come from '{source}'; consider matching it at ingestion time."
            )
    return recommendations


def _sorted_if_set(value: Any) -> Any:
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    return value
