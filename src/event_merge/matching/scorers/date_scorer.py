"""Date scorer: same calendar date or not."""

from __future__ import annotations

from event_merge.models.matching import Fingerprint


def date_score(fp_a: Fingerprint, fp_b: Fingerprint) -> float:
    """Return 1.0 when both events start on the same calendar date, else 0.0.

    A missing date on either side scores 0.0.
    """
    if not fp_a.date_key or not fp_b.date_key:
        return 0.0
    return 1.0 if fp_a.date_key == fp_b.date_key else 0.0
