"""Description similarity via keyword overlap.

This is the default semantic scorer.  Any callable with the same
signature can replace it on a ``FuzzyMatcher``, for example one backed by
text embeddings.
"""

from __future__ import annotations

from collections.abc import Callable

from event_merge.models.matching import Fingerprint

SemanticScorer = Callable[[Fingerprint, Fingerprint], "float | None"]


def keyword_overlap_score(fp_a: Fingerprint, fp_b: Fingerprint) -> float | None:
    """Jaccard overlap of the two descriptions' keyword sets.

    Returns ``None`` when neither event has keywords, so the signal is left
    out of the overall score instead of counting as a mismatch.  One-sided
    keywords score 0.0.
    """
    if not fp_a.keywords and not fp_b.keywords:
        return None
    union = fp_a.keywords | fp_b.keywords
    return len(fp_a.keywords & fp_b.keywords) / len(union)
