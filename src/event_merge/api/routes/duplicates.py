"""Duplicate detection endpoint."""

from fastapi import APIRouter, Depends

from event_merge.api.deps import get_orchestrator
from event_merge.api.schemas import DuplicateCheckRequest, DuplicateCheckResponse
from event_merge.orchestrator import DeduplicationOrchestrator

router = APIRouter(prefix="/api/duplicates", tags=["duplicates"])


@router.post("/check", response_model=DuplicateCheckResponse)
async def check_duplicates(
    body: DuplicateCheckRequest,
    orchestrator: DeduplicationOrchestrator = Depends(get_orchestrator),
) -> DuplicateCheckResponse:
    """Compare a candidate event against a pool of existing events."""
    result = orchestrator.check_for_duplicates(body.candidate, body.pool)
    return DuplicateCheckResponse.model_validate(result)
