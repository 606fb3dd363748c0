"""FastAPI application for the Event Merge API."""

from fastapi import FastAPI

from event_merge.api.routes.config import router as config_router
from event_merge.api.routes.duplicates import router as duplicates_router
from event_merge.api.routes.export import router as export_router
from event_merge.api.routes.health import router as health_router
from event_merge.api.routes.merges import router as merges_router

app = FastAPI(title="Event Merge API", version="0.1.0")

app.include_router(health_router)
app.include_router(config_router)
app.include_router(duplicates_router)
app.include_router(merges_router)
app.include_router(export_router)
