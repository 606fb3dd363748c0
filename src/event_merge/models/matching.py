"""Value objects produced by fingerprinting and similarity scoring."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class Fingerprint:
    """Normalised matching key of one event.

    A pure function of the event's matching fields; two records with the
    same matching fields produce equal fingerprints.
    """

    event_id: str
    title_normalized: str = ""
    title_tokens: tuple[str, ...] = ()
    venue_normalized: str = ""
    coordinates: tuple[float, float] | None = None
    location_key: str = ""
    date_key: str = ""
    time_window: str = "unknown"
    keywords: frozenset[str] = frozenset()
    category: str = ""
    source: str = ""


@dataclass(frozen=True)
class SimilarityScore:
    """Per-field similarity of two events plus the weighted overall score.

    ``semantic`` is ``None`` when neither event carries enough text to
    compare; the overall score then ignores it.
    """

    title: float
    venue: float
    location: float
    date: float
    semantic: float | None
    overall: float

    def signals(self) -> dict[str, float | None]:
        return {
            "title": self.title,
            "venue": self.venue,
            "location": self.location,
            "date": self.date,
            "semantic": self.semantic,
        }


@dataclass(frozen=True)
class DuplicateMatch:
    """One pool event that scored at or above the overall threshold."""

    event_id: str
    score: SimilarityScore
    reasons: list[str] = field(default_factory=list)
    risk_factors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class DuplicateCheckResult:
    """Outcome of comparing one candidate against a pool."""

    is_duplicate: bool
    matches: list[DuplicateMatch] = field(default_factory=list)
    confidence: float = 0.0
    threshold: float = 0.0
    candidates_compared: int = 0
    processing_time_ms: float = 0.0
