"""Health check endpoints."""

from fastapi import APIRouter, Depends

from event_merge.api.deps import get_orchestrator
from event_merge.orchestrator import DeduplicationOrchestrator

router = APIRouter()


@router.get("/health")
async def health() -> dict:
    """Liveness check."""
    return {"status": "ok"}


@router.get("/health/engine")
async def engine_health(
    orchestrator: DeduplicationOrchestrator = Depends(get_orchestrator),
) -> dict:
    """Component-level status of the merge engine."""
    return orchestrator.health_check()
