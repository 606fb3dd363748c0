"""Geographic distance scorer using the Haversine formula.

Returns a score in [0, 1] that decays linearly with distance and reaches
zero at the configured radius.  Missing coordinates score 0.
"""

from __future__ import annotations

import math

from event_merge.matching.config import LocationConfig
from event_merge.models.matching import Fingerprint


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute the great-circle distance between two points in kilometres."""
    R = 6371.0  # Earth radius in km
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(dlon / 2) ** 2
    )
    return R * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def location_score(
    fp_a: Fingerprint, fp_b: Fingerprint, config: LocationConfig | None = None
) -> float:
    """Compute geographic proximity score between two fingerprints.

    Returns a float in [0, 1]:
    - 0.0 if either fingerprint has no coordinates
    - ``max(0.0, 1.0 - distance / radius_km)`` otherwise
    """
    if config is None:
        config = LocationConfig()

    if fp_a.coordinates is None or fp_b.coordinates is None:
        return 0.0

    if fp_a.coordinates == fp_b.coordinates:
        return 1.0

    dist = haversine_km(*fp_a.coordinates, *fp_b.coordinates)
    return max(0.0, 1.0 - dist / config.radius_km)
