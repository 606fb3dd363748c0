"""Field-level conflict resolution between duplicate records.

For each field the resolver picks one value out of several events and
records where it came from.  The policy, per field:

1. Critical fields (``conflicts.primary_fields`` and any field not named
   elsewhere) take the primary event's value when it has one.
2. Set-like fields take the union of every input; additive fields are
   summed.
3. Everything else, and critical fields the primary lacks, takes the most
   complete value.  Ties go to the most recently updated event, then to
   the primary, then to input order.

Resolution never raises; a field absent on every input, or unknown to
``EventRecord``, resolves to ``None``.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from typing import Any

import structlog

from event_merge.matching.config import ConflictConfig
from event_merge.merging.quality import value_size
from event_merge.models.event import EventRecord
from event_merge.models.merge import FieldResolution

logger = structlog.get_logger()

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class ConflictResolver:
    """Resolve field values across a group of duplicate events."""

    def __init__(self, config: ConflictConfig | None = None) -> None:
        self._config = config if config is not None else ConflictConfig()
        self._rule_counts: Counter[str] = Counter()
        self._contested = 0

    @property
    def config(self) -> ConflictConfig:
        return self._config

    def update_config(self, config: ConflictConfig) -> None:
        self._config = config

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def resolve_conflicts(
        self,
        events: Sequence[Any],
        fields: Iterable[str],
        primary_id: str | None = None,
    ) -> dict[str, Any]:
        """Return the chosen value of each field in *fields*.

        Args:
            events: Records or raw mappings describing the same event.
            fields: Field names to resolve.
            primary_id: Id of the event to prefer for critical fields.
                When omitted, the first event from a primary source is used,
                or else the first event.
        """
        return {
            resolution.field: resolution.chosen_value
            for resolution in self.resolve_fields(events, fields, primary_id)
        }

    def resolve_field(
        self, field: str, events: Sequence[Any], primary_id: str | None = None
    ) -> FieldResolution:
        return self.resolve_fields(events, [field], primary_id)[0]

    def resolve_fields(
        self,
        events: Sequence[Any],
        fields: Iterable[str],
        primary_id: str | None = None,
        prefer_primary: bool = False,
    ) -> list[FieldResolution]:
        """Resolve several fields at once and return full resolutions.

        With *prefer_primary*, the primary's value wins for every field it
        has, not only for critical ones.
        """
        records = [EventRecord.from_raw(event) for event in events]
        primary_index = self._primary_index(records, primary_id)
        return [
            self._resolve(field, records, primary_index, prefer_primary) for field in fields
        ]

    def get_resolution_stats(self) -> dict[str, Any]:
        total = sum(self._rule_counts.values())
        return {
            "total_resolutions": total,
            "contested": self._contested,
            "contested_rate": self._contested / total if total else 0.0,
            "by_rule": dict(self._rule_counts),
        }

    def clear_stats(self) -> None:
        self._rule_counts.clear()
        self._contested = 0

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _primary_index(self, records: list[EventRecord], primary_id: str | None) -> int | None:
        if not records:
            return None
        if primary_id is not None:
            for index, record in enumerate(records):
                if record.id == primary_id:
                    return index
        primary_sources = {source.lower() for source in self._config.primary_sources}
        for index, record in enumerate(records):
            if (record.source or "").lower() in primary_sources:
                return index
        return 0

    def _resolve(
        self,
        field: str,
        records: list[EventRecord],
        primary_index: int | None,
        prefer_primary: bool,
    ) -> FieldResolution:
        if field not in EventRecord.model_fields:
            logger.debug("unknown_field_resolved_to_none", field=field)
            return self._record(FieldResolution(field, None, None, "unknown_field"), False)

        present = [
            (index, record, getattr(record, field))
            for index, record in enumerate(records)
            if value_size(getattr(record, field)) > 0
        ]
        if not present:
            return self._record(FieldResolution(field, None, None, "absent"), False)

        contested = len({_comparable(value) for _, _, value in present}) > 1
        single_source = present[0][1].id if len(present) == 1 else None
        config = self._config

        if field in config.set_fields:
            union: set[Any] = set()
            for _, _, value in present:
                union.update(value)
            return self._record(FieldResolution(field, union, single_source, "union"), contested)

        if field in config.additive_fields:
            total = sum(value for _, _, value in present if isinstance(value, (int, float)))
            return self._record(FieldResolution(field, total, single_source, "sum"), contested)

        critical = prefer_primary or field not in config.enrichable_fields
        if critical and primary_index is not None:
            for index, record, value in present:
                if index == primary_index:
                    return self._record(FieldResolution(field, value, record.id, "primary"), contested)

        index, record, value = max(
            present, key=lambda item: self._rank(item, primary_index)
        )
        rule = self._tie_rule(present, index, primary_index)
        return self._record(FieldResolution(field, value, record.id, rule), contested)

    @staticmethod
    def _rank(
        item: tuple[int, EventRecord, Any], primary_index: int | None
    ) -> tuple[int, datetime, datetime, bool, int]:
        index, record, value = item
        return (
            value_size(value),
            record.updated_at or _EPOCH,
            record.created_at or _EPOCH,
            index == primary_index,
            -index,
        )

    def _tie_rule(
        self,
        present: list[tuple[int, EventRecord, Any]],
        winner: int,
        primary_index: int | None,
    ) -> str:
        """Name the criterion that actually decided the winner."""
        ranks = {item[0]: self._rank(item, primary_index) for item in present}
        best = ranks[winner]
        rivals = [rank for index, rank in ranks.items() if index != winner]
        if all(rank[0] < best[0] for rank in rivals):
            return "completeness"
        tied = [rank for rank in rivals if rank[0] == best[0]]
        if all(rank[1:3] < best[1:3] for rank in tied):
            return "recency"
        if winner == primary_index:
            return "primary"
        return "input_order"

    def _record(self, resolution: FieldResolution, contested: bool) -> FieldResolution:
        self._rule_counts[resolution.rule] += 1
        if contested:
            self._contested += 1
        return resolution


def _comparable(value: Any) -> Any:
    if isinstance(value, (set, frozenset)):
        return frozenset(value)
    if isinstance(value, list):
        return tuple(value)
    return value
