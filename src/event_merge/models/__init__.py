from event_merge.models.event import EventRecord
from event_merge.models.matching import (
    DuplicateCheckResult,
    DuplicateMatch,
    Fingerprint,
    SimilarityScore,
)
from event_merge.models.merge import (
    FieldResolution,
    MergeDecision,
    MergeHistoryEntry,
    MergeResult,
    MergeStrategy,
)
from event_merge.models.processing import (
    BatchResult,
    DuplicatePair,
    ProcessingError,
    ProcessingMode,
    ProcessingStats,
)

__all__ = [
    "BatchResult",
    "DuplicateCheckResult",
    "DuplicateMatch",
    "DuplicatePair",
    "EventRecord",
    "FieldResolution",
    "Fingerprint",
    "MergeDecision",
    "MergeHistoryEntry",
    "MergeResult",
    "MergeStrategy",
    "ProcessingError",
    "ProcessingMode",
    "ProcessingStats",
    "SimilarityScore",
]
