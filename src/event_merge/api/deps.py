"""FastAPI dependency injection for the shared orchestrator."""

from functools import lru_cache

from event_merge.config.settings import get_settings
from event_merge.matching.config import load_dedup_config
from event_merge.orchestrator import DeduplicationOrchestrator


@lru_cache
def get_orchestrator() -> DeduplicationOrchestrator:
    """Build the process-wide orchestrator from the configured YAML file."""
    settings = get_settings()
    orchestrator = DeduplicationOrchestrator(load_dedup_config(settings.config_path))
    orchestrator.initialize()
    return orchestrator
