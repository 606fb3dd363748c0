"""REST API endpoints for runtime matching configuration."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Body, Depends, HTTPException

from event_merge.api.deps import get_orchestrator
from event_merge.errors import ConfigurationError
from event_merge.matching.config import DedupConfig
from event_merge.orchestrator import DeduplicationOrchestrator

logger = structlog.get_logger()

router = APIRouter(prefix="/api/config", tags=["config"])


@router.get("", response_model=DedupConfig)
async def get_config(
    orchestrator: DeduplicationOrchestrator = Depends(get_orchestrator),
) -> DedupConfig:
    """Return the live configuration."""
    return orchestrator.get_configuration()


@router.patch("", response_model=DedupConfig)
async def patch_config(
    body: dict[str, Any] = Body(...),
    orchestrator: DeduplicationOrchestrator = Depends(get_orchestrator),
) -> DedupConfig:
    """Apply a partial update to the live configuration.

    Only the keys present in the body change; nested sections are merged
    key by key.  An invalid update is rejected with one error per field and
    leaves the configuration untouched.
    """
    try:
        return orchestrator.update_configuration(body)
    except ConfigurationError as e:
        logger.info("config_update_rejected", errors=e.errors)
        raise HTTPException(status_code=422, detail=e.errors) from e
