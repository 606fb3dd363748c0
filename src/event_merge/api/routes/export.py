"""Export and import of merge history and configuration."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException

from event_merge.api.deps import get_orchestrator
from event_merge.api.schemas import ImportResponse
from event_merge.orchestrator import DeduplicationOrchestrator

router = APIRouter(prefix="/api", tags=["export"])


@router.get("/export")
async def export_state(
    orchestrator: DeduplicationOrchestrator = Depends(get_orchestrator),
) -> dict:
    """Export merge history, configuration and performance metrics."""
    return orchestrator.export_data()


@router.post("/import", response_model=ImportResponse)
async def import_state(
    body: dict[str, Any] = Body(...),
    orchestrator: DeduplicationOrchestrator = Depends(get_orchestrator),
) -> ImportResponse:
    """Import a previously exported document.

    The document is validated as a whole; if any part is invalid nothing is
    applied and the field-level errors are returned with status 422.
    """
    result = orchestrator.import_data(body)
    if not result.success:
        raise HTTPException(status_code=422, detail=result.errors)
    return ImportResponse.model_validate(result)
