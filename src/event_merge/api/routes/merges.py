"""Merge execution and merge history endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException

from event_merge.api.deps import get_orchestrator
from event_merge.api.schemas import HistoryEntrySchema, MergeRequest, MergeResponse
from event_merge.errors import NotInitializedError
from event_merge.orchestrator import DeduplicationOrchestrator

logger = structlog.get_logger()

router = APIRouter(prefix="/api/merges", tags=["merges"])


@router.post("", response_model=MergeResponse)
async def create_merge(
    body: MergeRequest,
    orchestrator: DeduplicationOrchestrator = Depends(get_orchestrator),
) -> MergeResponse:
    """Build a merge decision and execute it.

    A decision that fails validation is returned with ``success=false`` and
    its errors; nothing is recorded in that case.
    """
    try:
        decision = orchestrator.create_merge_decision(
            body.primary, body.duplicates, body.strategy, body.manual_selections
        )
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e

    try:
        result = orchestrator.execute_merge(decision, merged_by=body.merged_by)
    except NotInitializedError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e

    return MergeResponse(
        success=result.success,
        decision_id=decision.decision_id,
        confidence=decision.confidence,
        merged_event=result.merged_event,
        history_id=result.history_id,
        errors=result.errors,
    )


@router.get("/history/{event_id}", response_model=list[HistoryEntrySchema])
async def event_history(
    event_id: str,
    orchestrator: DeduplicationOrchestrator = Depends(get_orchestrator),
) -> list[HistoryEntrySchema]:
    """Merges the event took part in, oldest first."""
    return [
        HistoryEntrySchema.model_validate(entry)
        for entry in orchestrator.get_event_history(event_id)
    ]


@router.get("/stats")
async def merge_stats(
    orchestrator: DeduplicationOrchestrator = Depends(get_orchestrator),
) -> dict:
    """Aggregate merge statistics."""
    return orchestrator.tracker.get_statistics()


@router.get("/report")
async def merge_report(
    orchestrator: DeduplicationOrchestrator = Depends(get_orchestrator),
) -> dict:
    """Audit report with daily trend and recommendations."""
    return orchestrator.generate_report()
