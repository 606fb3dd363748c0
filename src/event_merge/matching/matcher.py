"""FuzzyMatcher: fingerprints, pairwise similarity and duplicate detection.

A matcher owns its configuration and its caches.  Several independently
configured matchers can coexist; nothing here is module-global.
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Mapping
from typing import Any

import structlog

from event_merge.matching.combiner import combined_score
from event_merge.matching.config import DedupConfig, apply_overrides
from event_merge.matching.fingerprint import generate_fingerprint
from event_merge.matching.scorers import (
    SemanticScorer,
    date_score,
    keyword_overlap_score,
    location_score,
    title_score,
    venue_score,
)
from event_merge.models.event import EventRecord
from event_merge.models.matching import (
    DuplicateCheckResult,
    DuplicateMatch,
    Fingerprint,
    SimilarityScore,
)

logger = structlog.get_logger()

# Config sections whose change alters similarity scores
_SCORE_SECTIONS = ("weights", "location", "strings")


class FuzzyMatcher:
    """Compare events and find likely duplicates.

    Args:
        config: Matching configuration; defaults are used when omitted.
        semantic_scorer: Callable scoring the descriptions of two
            fingerprints.  Defaults to keyword overlap.
    """

    def __init__(
        self,
        config: DedupConfig | None = None,
        semantic_scorer: SemanticScorer | None = None,
    ) -> None:
        self._config = config if config is not None else DedupConfig()
        self._semantic_scorer = semantic_scorer or keyword_overlap_score
        self._fingerprints: dict[str, Fingerprint] = {}
        self._similarities: dict[tuple[str, str], SimilarityScore] = {}
        self._hits = 0
        self._misses = 0

    @property
    def config(self) -> DedupConfig:
        return self._config

    # ------------------------------------------------------------------
    # Fingerprints and similarity
    # ------------------------------------------------------------------

    def generate_fingerprint(self, event: EventRecord | Mapping[str, Any] | Any) -> Fingerprint:
        """Fingerprint *event*, served from the cache when its id was seen before.

        Never raises: malformed input yields a near-empty fingerprint.
        """
        record = EventRecord.from_raw(event)
        caching = self._config.performance.enable_caching and bool(record.id)

        if caching:
            cached = self._fingerprints.get(record.id)
            if cached is not None:
                self._hits += 1
                return cached
            self._misses += 1

        fingerprint = generate_fingerprint(record, self._config.location)
        if caching:
            self._fingerprints[record.id] = fingerprint
        return fingerprint

    def calculate_similarity(self, fp_a: Fingerprint, fp_b: Fingerprint) -> SimilarityScore:
        """Score two fingerprints field by field.

        Symmetric in its arguments; a fingerprint compared with itself
        scores 1.0 on every field it has data for.
        """
        key = None
        if self._config.performance.enable_caching and fp_a.event_id and fp_b.event_id:
            key = _pair_key(fp_a.event_id, fp_b.event_id)
            cached = self._similarities.get(key)
            if cached is not None:
                self._hits += 1
                return cached
            self._misses += 1

        config = self._config
        signals: dict[str, float | None] = {
            "title": title_score(fp_a, fp_b, config.strings),
            "venue": venue_score(fp_a, fp_b, config.strings),
            "location": location_score(fp_a, fp_b, config.location),
            "date": date_score(fp_a, fp_b),
            "semantic": self._semantic_scorer(fp_a, fp_b),
        }
        score = SimilarityScore(
            title=signals["title"],
            venue=signals["venue"],
            location=signals["location"],
            date=signals["date"],
            semantic=signals["semantic"],
            overall=combined_score(signals, config.weights),
        )

        if key is not None:
            self._similarities[key] = score
        return score

    # ------------------------------------------------------------------
    # Duplicate detection
    # ------------------------------------------------------------------

    def select_candidates(
        self, fingerprint: Fingerprint, pool: Iterable[Any], limit: int | None = None
    ) -> list[tuple[Fingerprint, EventRecord]]:
        """Choose which pool entries to compare against *fingerprint*.

        Entries sharing the candidate's id are skipped.  When *limit* is
        set, entries on the candidate's date come first, then the rest,
        each group in input order.
        """
        same_day: list[tuple[Fingerprint, EventRecord]] = []
        other: list[tuple[Fingerprint, EventRecord]] = []
        for raw in pool:
            record = EventRecord.from_raw(raw)
            if fingerprint.event_id and record.id == fingerprint.event_id:
                continue
            pool_fp = self.generate_fingerprint(record)
            if fingerprint.date_key and pool_fp.date_key == fingerprint.date_key:
                same_day.append((pool_fp, record))
            else:
                other.append((pool_fp, record))

        selected = same_day + other
        if limit is not None:
            selected = selected[:limit]
        return selected

    def find_matches(
        self,
        candidate: EventRecord | Mapping[str, Any] | Any,
        pool: Iterable[Any],
        bounded: bool = True,
    ) -> tuple[list[DuplicateMatch], int]:
        """Compare *candidate* with *pool* and keep matches above the overall threshold.

        Args:
            candidate: Event to check.
            pool: Existing events.
            bounded: Cap the comparisons at ``performance.max_candidates``.

        Returns:
            Matches sorted by descending overall score, and the number of
            pool entries compared.
        """
        fingerprint = self.generate_fingerprint(candidate)
        if not _has_signal(fingerprint):
            return [], 0

        limit = self._config.performance.max_candidates if bounded else None
        selected = self.select_candidates(fingerprint, pool, limit)
        threshold = self._config.thresholds.overall

        matches = []
        for pool_fp, record in selected:
            score = self.calculate_similarity(fingerprint, pool_fp)
            if score.overall >= threshold:
                matches.append(
                    DuplicateMatch(
                        event_id=record.id,
                        score=score,
                        reasons=self._reasons(score),
                        risk_factors=_risk_factors(fingerprint, pool_fp, score),
                    )
                )

        # Stable sort keeps input order among equal scores
        matches.sort(key=lambda match: match.score.overall, reverse=True)
        return matches, len(selected)

    def check_for_duplicates(
        self, candidate: EventRecord | Mapping[str, Any] | Any, pool: Iterable[Any]
    ) -> DuplicateCheckResult:
        """Decide whether *candidate* duplicates anything in *pool*.

        Never raises for malformed input; such a candidate simply has no
        matches.
        """
        started = time.perf_counter()
        matches, compared = self.find_matches(candidate, pool)
        confidence = matches[0].score.overall if matches else 0.0
        threshold = self._config.thresholds.overall

        result = DuplicateCheckResult(
            is_duplicate=bool(matches) and confidence >= threshold,
            matches=matches,
            confidence=confidence,
            threshold=threshold,
            candidates_compared=compared,
            processing_time_ms=(time.perf_counter() - started) * 1000,
        )
        logger.debug(
            "duplicate_check_complete",
            is_duplicate=result.is_duplicate,
            match_count=len(matches),
            compared=compared,
            confidence=round(confidence, 4),
        )
        return result

    def _reasons(self, score: SimilarityScore) -> list[str]:
        thresholds = self._config.thresholds
        reasons = []
        if score.title >= thresholds.title:
            reasons.append(f"title similarity {score.title:.2f}")
        if score.venue >= thresholds.venue:
            reasons.append("same venue")
        if score.date >= thresholds.date:
            reasons.append("same date")
        if score.location >= thresholds.location:
            reasons.append("nearby location")
        if score.semantic is not None and score.semantic >= thresholds.semantic:
            reasons.append("similar description")
        return reasons

    # ------------------------------------------------------------------
    # Configuration and caches
    # ------------------------------------------------------------------

    def get_config(self) -> DedupConfig:
        """Return a copy of the active configuration."""
        return self._config.model_copy(deep=True)

    def update_config(self, overrides: DedupConfig | Mapping[str, Any]) -> DedupConfig:
        """Deep-merge *overrides* onto the active configuration.

        A full ``DedupConfig`` replaces the active one.  Cached similarity
        scores are dropped when a section they depend on changed, cached
        fingerprints when the coordinate precision changed.

        Raises:
            ConfigurationError: If the merged configuration is invalid.
        """
        previous = self._config
        if isinstance(overrides, DedupConfig):
            updated = overrides
        else:
            updated = apply_overrides(previous, dict(overrides))

        self._config = updated
        if any(getattr(previous, name) != getattr(updated, name) for name in _SCORE_SECTIONS):
            self._similarities.clear()
        if previous.location.coordinate_precision != updated.location.coordinate_precision:
            self._fingerprints.clear()
        return updated

    def clear_cache(self) -> None:
        self._fingerprints.clear()
        self._similarities.clear()
        self._hits = 0
        self._misses = 0
        logger.debug("matcher_cache_cleared")

    def get_cache_stats(self) -> dict[str, Any]:
        lookups = self._hits + self._misses
        return {
            "fingerprints": len(self._fingerprints),
            "similarities": len(self._similarities),
            "size": len(self._fingerprints) + len(self._similarities),
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": self._hits / lookups if lookups else 0.0,
        }


def _pair_key(id_a: str, id_b: str) -> tuple[str, str]:
    return (id_a, id_b) if id_a <= id_b else (id_b, id_a)


def _has_signal(fingerprint: Fingerprint) -> bool:
    """Whether a fingerprint carries anything worth comparing."""
    return bool(
        fingerprint.title_normalized
        or fingerprint.venue_normalized
        or fingerprint.coordinates
        or fingerprint.date_key
        or fingerprint.keywords
    )


def _risk_factors(fp_a: Fingerprint, fp_b: Fingerprint, score: SimilarityScore) -> list[str]:
    """Signals that argue against a match even though it scored high."""
    risks = []
    if (
        fp_a.date_key == fp_b.date_key
        and "unknown" not in (fp_a.time_window, fp_b.time_window)
        and fp_a.time_window != fp_b.time_window
    ):
        risks.append("different time of day")
    if fp_a.category and fp_b.category and fp_a.category != fp_b.category:
        risks.append("different category")
    if fp_a.venue_normalized and fp_b.venue_normalized and score.venue < 0.5:
        risks.append("different venue names")
    return risks
