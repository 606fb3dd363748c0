"""Score combiner.

Combines the per-field similarity signals into a single weighted score.
"""

from __future__ import annotations

from event_merge.matching.config import WeightConfig


def combined_score(
    signals: dict[str, float | None], weights: WeightConfig | None = None
) -> float:
    """Compute a weighted average of the available signal scores.

    Signals that are ``None`` are left out and the remaining weights are
    renormalised so they always sum to 1.0, even if the configured weights
    do not.  Signals are summed in a fixed order, so the result does not
    depend on argument order.

    Returns a float in [0, 1]; 0.0 when no weighted signal is available.
    """
    if weights is None:
        weights = WeightConfig()

    total_weight = 0.0
    weighted = 0.0
    for name in ("title", "venue", "location", "date", "semantic"):
        value = signals.get(name)
        if value is None:
            continue
        weight = getattr(weights, name)
        total_weight += weight
        weighted += weight * value

    if total_weight == 0:
        return 0.0

    return min(1.0, max(0.0, weighted / total_weight))
