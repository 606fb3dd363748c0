"""Similarity scorers -- pure functions operating on fingerprints."""

from event_merge.matching.scorers.date_scorer import date_score
from event_merge.matching.scorers.location_scorer import haversine_km, location_score
from event_merge.matching.scorers.semantic_scorer import SemanticScorer, keyword_overlap_score
from event_merge.matching.scorers.title_scorer import blended_ratio, title_score
from event_merge.matching.scorers.venue_scorer import venue_score

__all__ = [
    "blended_ratio",
    "date_score",
    "haversine_km",
    "keyword_overlap_score",
    "location_score",
    "SemanticScorer",
    "title_score",
    "venue_score",
]
