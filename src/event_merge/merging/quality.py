"""Completeness and quality scoring of event records.

Both scores are pure functions in [0, 1].  Completeness measures how many
useful fields a record fills; quality adds the trust placed in its source
and the presence of rich content, and is what the ``quality_based`` merge
strategy ranks candidates by.
"""

from __future__ import annotations

from typing import Any

from event_merge.matching.config import ConflictConfig
from event_merge.models.event import EventRecord

# Relative importance of each field for completeness
COMPLETENESS_WEIGHTS: dict[str, int] = {
    "title": 10,
    "description": 8,
    "venue_name": 9,
    "start_time": 10,
    "end_time": 6,
    "price_min": 7,
    "price_max": 7,
    "website_url": 5,
    "ticket_url": 8,
    "image_url": 4,
    "category": 6,
    "tags": 3,
    "latitude": 7,
    "longitude": 7,
}

# A description this long counts as fully detailed
_FULL_DESCRIPTION_LENGTH = 500


def value_size(value: Any) -> int:
    """How much content a field value carries; 0 means absent.

    Strings count stripped characters, collections their items, and any
    other non-null value (numbers, booleans, dates) counts as 1.
    """
    if value is None:
        return 0
    if isinstance(value, str):
        return len(value.strip())
    if isinstance(value, (set, frozenset, list, tuple, dict)):
        return len(value)
    return 1


def completeness_score(event: EventRecord) -> float:
    """Weighted share of the important fields *event* fills."""
    total = sum(COMPLETENESS_WEIGHTS.values())
    filled = sum(
        weight
        for field, weight in COMPLETENESS_WEIGHTS.items()
        if value_size(getattr(event, field)) > 0
    )
    return filled / total


def quality_score(event: EventRecord, config: ConflictConfig | None = None) -> float:
    """Score how much *event* should be trusted as the source of merged data.

    Components:
        - 0.2 if an image is present
        - up to 0.3 for description length
        - 0.3 x the trust of the event's source
        - 0.2 x completeness
    """
    if config is None:
        config = ConflictConfig()

    description_length = value_size(event.description)
    score = 0.2 if value_size(event.image_url) else 0.0
    score += 0.3 * min(description_length / _FULL_DESCRIPTION_LENGTH, 1.0)
    score += 0.3 * config.trust_for(event.source)
    score += 0.2 * completeness_score(event)
    return score
