"""Pydantic request and response schemas for the Event Merge API."""

from __future__ import annotations

import datetime as dt
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from event_merge.models import EventRecord, MergeStrategy


class SimilarityScoreSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    title: float
    venue: float
    location: float
    date: float
    semantic: float | None = None
    overall: float


class DuplicateMatchSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    event_id: str
    score: SimilarityScoreSchema
    reasons: list[str] = []
    risk_factors: list[str] = []


class DuplicateCheckRequest(BaseModel):
    candidate: dict[str, Any]
    pool: list[dict[str, Any]] = []


class DuplicateCheckResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    is_duplicate: bool
    matches: list[DuplicateMatchSchema] = []
    confidence: float
    threshold: float
    candidates_compared: int
    processing_time_ms: float


class MergeRequest(BaseModel):
    primary: dict[str, Any]
    duplicates: list[dict[str, Any]] = []
    strategy: MergeStrategy = MergeStrategy.ENHANCE_PRIMARY
    merged_by: str = Field("api", min_length=1)
    manual_selections: dict[str, str] | None = None


class FieldResolutionSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    field: str
    chosen_value: Any = None
    source_event_id: str | None = None
    rule: str


class MergeResponse(BaseModel):
    success: bool
    decision_id: str
    confidence: float
    merged_event: EventRecord | None = None
    history_id: str | None = None
    errors: list[str] = []


class HistoryEntrySchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    history_id: str
    decision_id: str
    primary_event_id: str
    duplicate_event_ids: list[str]
    field_resolutions: list[FieldResolutionSchema] = []
    merged_by: str
    merged_at: dt.datetime
    strategy: MergeStrategy
    confidence: float
    quality_improvement: float = 0.0

    @field_validator("duplicate_event_ids", mode="before")
    @classmethod
    def _sorted_ids(cls, value: Any) -> Any:
        if isinstance(value, (set, frozenset)):
            return sorted(value)
        return value


class ImportResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    success: bool
    imported_history: int
    configuration_applied: bool
    errors: list[str] = []
