"""Results of bulk processing runs."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field


class ProcessingMode(str, enum.Enum):
    BATCH = "batch"
    REALTIME = "realtime"
    INCREMENTAL = "incremental"
    FULL_SCAN = "full_scan"


@dataclass(frozen=True)
class DuplicatePair:
    """Two events judged duplicates; ids are stored in sorted order."""

    event_id_a: str
    event_id_b: str
    score: float


@dataclass(frozen=True)
class ProcessingError:
    """One input item that could not be processed."""

    index: int
    event_id: str | None
    error: str


@dataclass
class ProcessingStats:
    mode: ProcessingMode
    total_events: int = 0
    batches: int = 0
    comparisons: int = 0
    processing_time_ms: float = 0.0
    events_per_second: float = 0.0


@dataclass
class BatchResult:
    """Accumulated outcome of ``process_events``.

    Attributes:
        processed_count: Items that were compared without error.
        duplicates_found: Distinct unordered duplicate pairs.
        duplicate_pairs: Those pairs, highest score first.
        clusters: Groups of mutually connected duplicates, largest first.
        errors: Items that failed; the rest of the run still completed.
    """

    processed_count: int = 0
    duplicates_found: int = 0
    duplicate_pairs: list[DuplicatePair] = field(default_factory=list)
    clusters: list[set[str]] = field(default_factory=list)
    errors: list[ProcessingError] = field(default_factory=list)
    stats: ProcessingStats = field(default_factory=lambda: ProcessingStats(ProcessingMode.BATCH))
