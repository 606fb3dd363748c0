"""Conflict resolution and merge execution."""

from .conflict_resolver import ConflictResolver
from .event_merger import MERGE_FIELDS, EventMerger
from .quality import completeness_score, quality_score

__all__ = ["ConflictResolver", "EventMerger", "MERGE_FIELDS", "completeness_score", "quality_score"]
