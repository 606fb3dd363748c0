"""The event record every component operates on."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

logger = structlog.get_logger()

# Keys some sources use instead of ``start_time``
_START_TIME_ALIASES = ("date", "event_date", "start_date")
_VENUE_FIELDS = ("venue_name", "latitude", "longitude", "city_name")


def _input_keys(field: str) -> tuple[str, ...]:
    """Input keys that may have produced the value of *field*."""
    if field == "start_time":
        return (field, *_START_TIME_ALIASES)
    if field in _VENUE_FIELDS:
        return (field, "venue")
    return (field,)


class EventRecord(BaseModel):
    """One source's view of a real-world event.

    Every field is optional.  Records are immutable values: they are
    compared and merged into new records but never changed in place, and
    never stored by this package.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: str = ""
    title: str | None = None
    description: str | None = None
    venue_name: str | None = None
    city_name: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    category: str | None = None
    subcategory: str | None = None
    price_min: float | None = None
    price_max: float | None = None
    price_currency: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    website_url: str | None = None
    ticket_url: str | None = None
    image_url: str | None = None
    video_url: str | None = None
    source: str | None = None
    external_id: str | None = None
    tags: frozenset[str] = frozenset()
    is_featured: bool | None = None
    is_free: bool | None = None
    status: str | None = None
    view_count: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @model_validator(mode="before")
    @classmethod
    def _flatten_source_shapes(cls, data: Any) -> Any:
        """Accept ``date`` aliases and a nested ``venue`` object."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if data.get("start_time") is None:
            for alias in _START_TIME_ALIASES:
                if data.get(alias) is not None:
                    data["start_time"] = data[alias]
                    break
        venue = data.get("venue")
        if isinstance(venue, dict):
            data.setdefault("venue_name", venue.get("name"))
            data.setdefault("latitude", venue.get("latitude"))
            data.setdefault("longitude", venue.get("longitude"))
            data.setdefault("city_name", venue.get("city"))
        return data

    @field_validator("id", mode="before")
    @classmethod
    def _default_id(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("id", "external_id", mode="before")
    @classmethod
    def _stringify_ids(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("tags", mode="before")
    @classmethod
    def _coerce_tags(cls, value: Any) -> Any:
        if value is None:
            return frozenset()
        if isinstance(value, str):
            return frozenset({value})
        return value

    @field_validator("start_time", "end_time", "created_at", "updated_at")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @classmethod
    def from_raw(cls, data: Any) -> EventRecord:
        """Build a record from an arbitrary mapping without ever raising.

        Fields that fail validation fall back to their defaults; everything
        else is kept.  Anything that is not a mapping yields an empty record.
        """
        if isinstance(data, EventRecord):
            return data
        if not isinstance(data, Mapping):
            logger.debug("event_not_a_mapping", received=type(data).__name__)
            return cls()

        payload = {key: value for key, value in data.items() if isinstance(key, str)}
        # Each failed pass removes at least one key, so this terminates
        while True:
            try:
                return cls.model_validate(payload)
            except ValidationError as exc:
                invalid = {
                    key
                    for error in exc.errors()
                    if error["loc"]
                    for key in _input_keys(str(error["loc"][0]))
                    if key in payload
                }
                if not invalid:
                    logger.debug("event_unusable", error_count=exc.error_count())
                    return cls()
                logger.debug(
                    "event_fields_dropped",
                    event_id=str(payload.get("id", "")),
                    fields=sorted(str(key) for key in invalid),
                )
                for key in invalid:
                    payload.pop(key)

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None
