"""Fingerprint generation.

A fingerprint holds the normalised parts of an event that the scorers
compare.  Generation is total: a record with no usable fields produces a
near-empty fingerprint that simply scores low against everything.
"""

from __future__ import annotations

import math
from datetime import datetime, timezone

from event_merge.matching.config import LocationConfig
from event_merge.matching.normalizer import (
    extract_keywords,
    normalize_text,
    normalize_venue,
    tokenize,
)
from event_merge.models.event import EventRecord
from event_merge.models.matching import Fingerprint


def is_valid_coordinate(latitude: float | None, longitude: float | None) -> bool:
    """Check that a lat/lng pair is present, finite and on the globe."""
    if latitude is None or longitude is None:
        return False
    if not (math.isfinite(latitude) and math.isfinite(longitude)):
        return False
    return -90.0 <= latitude <= 90.0 and -180.0 <= longitude <= 180.0


def time_window(start: datetime | None) -> str:
    """Coarse part of the day an event starts in, read in UTC."""
    if start is None:
        return "unknown"
    hour = start.astimezone(timezone.utc).hour
    if hour < 6:
        return "late-night"
    if hour < 12:
        return "morning"
    if hour < 17:
        return "afternoon"
    if hour < 21:
        return "evening"
    return "night"


def _utc_date(start: datetime | None) -> str:
    if start is None:
        return ""
    return start.astimezone(timezone.utc).date().isoformat()


def generate_fingerprint(
    event: EventRecord, config: LocationConfig | None = None
) -> Fingerprint:
    """Build the fingerprint of *event*.

    Coordinates are rounded to ``config.coordinate_precision`` decimals;
    invalid coordinates are treated as missing.  ``date_key`` is the UTC
    calendar date of ``start_time``, so one instant reported with different
    offsets gets one key.
    """
    if config is None:
        config = LocationConfig()

    coordinates = None
    location_key = ""
    if is_valid_coordinate(event.latitude, event.longitude):
        coordinates = (
            round(event.latitude, config.coordinate_precision),
            round(event.longitude, config.coordinate_precision),
        )
        location_key = f"{event.latitude:.3f},{event.longitude:.3f}"

    return Fingerprint(
        event_id=event.id,
        title_normalized=normalize_text(event.title),
        title_tokens=tuple(tokenize(event.title)),
        venue_normalized=normalize_venue(event.venue_name),
        coordinates=coordinates,
        location_key=location_key,
        date_key=_utc_date(event.start_time),
        time_window=time_window(event.start_time),
        keywords=extract_keywords(event.description),
        category=normalize_text(event.category),
        source=(event.source or "").lower(),
    )
