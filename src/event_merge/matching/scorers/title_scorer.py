"""Title similarity scorer using RapidFuzz.

Uses ``token_sort_ratio`` as the primary signal and blends in
``token_set_ratio`` only when the primary score falls in an ambiguous
range.  Titles are compared in normalised form, so case, accents and
punctuation never matter.
"""

from __future__ import annotations

from rapidfuzz import fuzz

from event_merge.matching.config import StringConfig
from event_merge.models.matching import Fingerprint


def blended_ratio(text_a: str, text_b: str, config: StringConfig) -> float:
    """Blend ``token_sort_ratio`` with ``token_set_ratio`` in the ambiguous band.

    Both inputs must already be normalised and non-empty.
    """
    if text_a == text_b:
        return 1.0

    primary = fuzz.token_sort_ratio(text_a, text_b) / 100.0

    # Only blend with token_set_ratio in the ambiguous range
    if config.blend_lower <= primary <= config.blend_upper:
        secondary = fuzz.token_set_ratio(text_a, text_b) / 100.0
        return config.primary_weight * primary + config.secondary_weight * secondary

    return primary


def title_score(
    fp_a: Fingerprint, fp_b: Fingerprint, config: StringConfig | None = None
) -> float:
    """Compute title similarity between two fingerprints.

    Returns a float in [0, 1]:
    - 0.0 if either title is missing or empty
    - 1.0 for identical normalised titles
    - Blended token_sort_ratio / token_set_ratio otherwise
    """
    if config is None:
        config = StringConfig()

    if not fp_a.title_normalized or not fp_b.title_normalized:
        return 0.0

    return blended_ratio(fp_a.title_normalized, fp_b.title_normalized, config)
