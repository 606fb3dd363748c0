"""Matching and merging configuration with sensible defaults.

All parameters can be overridden via ``config/dedup.yaml`` or at runtime
through :func:`apply_overrides`.  If the file does not exist, defaults are
used.  Every section forbids unknown keys so a misspelled option is
reported instead of silently ignored.
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from event_merge.errors import ConfigurationError


class _Section(BaseModel):
    model_config = ConfigDict(extra="forbid")


class ThresholdConfig(_Section):
    """Per-field thresholds; ``overall`` decides duplicate status."""

    title: float = Field(0.85, ge=0.0, le=1.0)
    venue: float = Field(0.80, ge=0.0, le=1.0)
    location: float = Field(0.75, ge=0.0, le=1.0)
    date: float = Field(0.90, ge=0.0, le=1.0)
    semantic: float = Field(0.75, ge=0.0, le=1.0)
    overall: float = Field(0.80, ge=0.0, le=1.0)


class WeightConfig(_Section):
    """Relative weights of the five similarity signals."""

    title: float = Field(0.35, ge=0.0)
    venue: float = Field(0.25, ge=0.0)
    location: float = Field(0.20, ge=0.0)
    date: float = Field(0.15, ge=0.0)
    semantic: float = Field(0.05, ge=0.0)

    @model_validator(mode="after")
    def warn_if_weights_dont_sum(self) -> "WeightConfig":
        """Log a warning if weights do not sum to approximately 1.0."""
        total = self.total()
        if abs(total - 1.0) > 0.01:
            structlog.get_logger().warning(
                "similarity_weights_sum_mismatch",
                total=round(total, 4),
                expected=1.0,
            )
        return self

    def total(self) -> float:
        return self.title + self.venue + self.location + self.date + self.semantic


class PerformanceConfig(_Section):
    """Batching, candidate bounds and caching."""

    batch_size: int = Field(100, ge=1)
    max_candidates: int = Field(50, ge=1)
    enable_caching: bool = True
    parallel_processing: bool = True
    max_workers: int = Field(4, ge=1, le=64)


class LocationConfig(_Section):
    """Geographic distance scoring."""

    radius_km: float = Field(5.0, gt=0.0)
    coordinate_precision: int = Field(5, ge=0, le=8)


class StringConfig(_Section):
    """Fuzzy string comparison for titles and venues."""

    primary_weight: float = Field(0.7, ge=0.0, le=1.0)
    secondary_weight: float = Field(0.3, ge=0.0, le=1.0)
    blend_lower: float = Field(0.40, ge=0.0, le=1.0)
    blend_upper: float = Field(0.80, ge=0.0, le=1.0)
    containment_floor: float = Field(0.85, ge=0.0, le=1.0)


class ConflictConfig(_Section):
    """Field-level conflict resolution policy."""

    primary_fields: list[str] = [
        "title",
        "start_time",
        "venue_name",
        "category",
        "status",
        "source",
        "external_id",
        "is_featured",
    ]
    enrichable_fields: list[str] = [
        "description",
        "image_url",
        "video_url",
        "end_time",
        "website_url",
        "ticket_url",
        "subcategory",
        "price_currency",
    ]
    set_fields: list[str] = ["tags"]
    additive_fields: list[str] = ["view_count"]
    primary_sources: list[str] = ["primary", "manual"]
    source_trust: dict[str, float] = {
        "manual": 0.98,
        "primary": 0.95,
        "google_places": 0.92,
        "eventbrite": 0.88,
        "ticketmaster": 0.85,
        "foursquare": 0.85,
        "yelp": 0.80,
        "meetup": 0.78,
        "facebook": 0.72,
    }
    default_trust: float = Field(0.5, ge=0.0, le=1.0)

    def trust_for(self, source: str | None) -> float:
        return self.source_trust.get((source or "").lower(), self.default_trust)


class HealthConfig(_Section):
    """Thresholds at which the health check starts warning."""

    max_cache_entries: int = Field(50_000, ge=1)
    max_contested_rate: float = Field(0.30, ge=0.0, le=1.0)
    min_average_confidence: float = Field(0.60, ge=0.0, le=1.0)


class DedupConfig(_Section):
    """Top-level configuration combining all sections."""

    thresholds: ThresholdConfig = ThresholdConfig()
    weights: WeightConfig = WeightConfig()
    performance: PerformanceConfig = PerformanceConfig()
    location: LocationConfig = LocationConfig()
    strings: StringConfig = StringConfig()
    conflicts: ConflictConfig = ConflictConfig()
    health: HealthConfig = HealthConfig()


def deep_merge(base: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge *updates* into a copy of *base*.

    Nested dicts are merged key by key; any other value replaces the base
    value.  Neither argument is modified.
    """
    result = copy.deepcopy(base)
    for key, value in updates.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def format_validation_errors(exc: ValidationError, prefix: str = "") -> list[str]:
    """Turn a pydantic ``ValidationError`` into ``"section.key: message"`` strings."""
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"])
        if prefix:
            location = f"{prefix}.{location}" if location else prefix
        messages.append(f"{location or '<root>'}: {error['msg']}")
    return messages


def apply_overrides(config: DedupConfig, overrides: dict[str, Any]) -> DedupConfig:
    """Return a new config with *overrides* deep-merged onto *config*.

    The input config is never modified.

    Raises:
        ConfigurationError: If *overrides* is not a mapping or the merged
            result fails validation.  The error lists every invalid field.
    """
    if not isinstance(overrides, dict):
        raise ConfigurationError([f"<root>: expected a mapping, got {type(overrides).__name__}"])

    merged = deep_merge(config.model_dump(), overrides)
    try:
        return DedupConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigurationError(format_validation_errors(exc)) from exc


def load_dedup_config(path: Path) -> DedupConfig:
    """Load configuration from a YAML file.

    If the file does not exist, returns a ``DedupConfig`` with all default
    values.  Partial overrides are supported -- only the keys present in the
    YAML file override defaults.

    Raises:
        ConfigurationError: If the file content is invalid.
    """
    if not path.exists():
        return DedupConfig()

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    return apply_overrides(DedupConfig(), data)
