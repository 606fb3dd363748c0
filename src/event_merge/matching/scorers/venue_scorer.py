"""Venue similarity scorer.

Venue names are compared after generic words ("the", "club", "hall", ...)
have been removed, so ``"Blue Note Jazz Club"`` and ``"The Blue Note"``
differ only in what actually identifies the place.
"""

from __future__ import annotations

from event_merge.matching.config import StringConfig
from event_merge.matching.scorers.title_scorer import blended_ratio
from event_merge.models.matching import Fingerprint


def _contains(longer: str, shorter: str) -> bool:
    """Whole-word containment of *shorter* in *longer*."""
    return f" {shorter} " in f" {longer} "


def venue_score(
    fp_a: Fingerprint, fp_b: Fingerprint, config: StringConfig | None = None
) -> float:
    """Compute venue similarity between two fingerprints.

    Returns a float in [0, 1]:
    - 0.0 if either venue is missing
    - at least ``config.containment_floor`` when one name contains the other
    - the blended title measure otherwise
    """
    if config is None:
        config = StringConfig()

    venue_a = fp_a.venue_normalized
    venue_b = fp_b.venue_normalized
    if not venue_a or not venue_b:
        return 0.0

    score = blended_ratio(venue_a, venue_b, config)
    if _contains(venue_a, venue_b) or _contains(venue_b, venue_a):
        return max(score, config.containment_floor)
    return score
