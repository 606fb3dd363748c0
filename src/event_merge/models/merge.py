"""Merge decisions, their outcomes and the audit entries they leave."""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any

from event_merge.models.event import EventRecord


class MergeStrategy(str, enum.Enum):
    ENHANCE_PRIMARY = "enhance_primary"
    QUALITY_BASED = "quality_based"
    MANUAL = "manual"


@dataclass(frozen=True)
class FieldResolution:
    """The value chosen for one field and where it came from.

    ``source_event_id`` is ``None`` when the value combines several inputs
    (set union, sums) or when no input had a value.
    """

    field: str
    chosen_value: Any
    source_event_id: str | None
    rule: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "chosen_value", freeze_value(self.chosen_value))


@dataclass(frozen=True)
class MergeDecision:
    """A proposed merge of one or more duplicates into a primary event.

    Decisions are immutable.  ``primary_event`` is a frozen snapshot of the
    primary as it looked when the decision was created.
    """

    decision_id: str
    primary_event_id: str
    duplicate_event_ids: frozenset[str]
    strategy: MergeStrategy
    field_resolutions: tuple[FieldResolution, ...]
    confidence: float
    reasons: tuple[str, ...]
    primary_event: EventRecord
    sources: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "duplicate_event_ids", frozenset(self.duplicate_event_ids))
        object.__setattr__(self, "field_resolutions", tuple(self.field_resolutions))
        object.__setattr__(self, "reasons", tuple(self.reasons))
        object.__setattr__(self, "sources", MappingProxyType(dict(self.sources)))

    def resolution_for(self, field_name: str) -> FieldResolution | None:
        for resolution in self.field_resolutions:
            if resolution.field == field_name:
                return resolution
        return None


@dataclass
class MergeResult:
    """Outcome of executing a decision.

    On success ``merged_event.id`` always equals the decision's primary id.
    """

    success: bool
    merged_event: EventRecord | None = None
    history_id: str | None = None
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class MergeHistoryEntry:
    """Immutable audit record of one applied merge."""

    history_id: str
    decision_id: str
    primary_event_id: str
    duplicate_event_ids: frozenset[str]
    field_resolutions: tuple[FieldResolution, ...]
    merged_by: str
    merged_at: datetime
    strategy: MergeStrategy
    confidence: float
    quality_improvement: float = 0.0
    sources: tuple[tuple[str, str], ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "duplicate_event_ids", frozenset(self.duplicate_event_ids))
        object.__setattr__(self, "field_resolutions", tuple(self.field_resolutions))
        object.__setattr__(self, "sources", tuple(tuple(pair) for pair in self.sources))

    def involves(self, event_id: str) -> bool:
        return event_id == self.primary_event_id or event_id in self.duplicate_event_ids


def freeze_value(value: Any) -> Any:
    """Immutable equivalent of a resolved field value."""
    if isinstance(value, (set, frozenset)):
        return frozenset(value)
    if isinstance(value, (list, tuple)):
        return tuple(freeze_value(item) for item in value)
    return value
