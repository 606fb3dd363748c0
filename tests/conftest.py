"""Shared test fixtures."""

import pytest
from httpx import ASGITransport, AsyncClient

from event_merge.api.app import app
from event_merge.api.deps import get_orchestrator
from event_merge.orchestrator import DeduplicationOrchestrator


def make_event(**overrides) -> dict:
    """A complete jazz-concert event; keyword arguments replace fields."""
    event = {
        "id": "event-1",
        "title": "Jazz Concert at Blue Note",
        "description": "An evening of smooth jazz featuring local artists and special guests.",
        "venue_name": "Blue Note Jazz Club",
        "city_name": "New York",
        "start_time": "2024-01-15T20:00:00Z",
        "end_time": "2024-01-15T23:00:00Z",
        "category": "music",
        "price_min": 25.0,
        "price_max": 50.0,
        "latitude": 40.7128,
        "longitude": -74.0060,
        "source": "primary",
        "external_id": "bn-001",
        "tags": ["jazz", "live music", "evening"],
        "created_at": "2024-01-01T10:00:00Z",
        "updated_at": "2024-01-01T10:00:00Z",
    }
    event.update(overrides)
    return event


@pytest.fixture
def jazz_event() -> dict:
    return make_event()


@pytest.fixture
def jazz_duplicate() -> dict:
    """Same concert as ``jazz_event`` reported by another source."""
    return make_event(
        id="event-2",
        source="eventbrite",
        external_id="eb-778",
        tags=["jazz", "concert", "nightlife"],
        updated_at="2024-01-02T10:00:00Z",
    )


@pytest.fixture
def rock_event() -> dict:
    return make_event(
        id="event-4",
        title="Rock Concert at Madison Square Garden",
        description="Heavy guitars and a stadium crowd for the annual rock showcase.",
        venue_name="Madison Square Garden",
        start_time="2024-01-20T19:00:00Z",
        end_time="2024-01-20T23:30:00Z",
        latitude=40.7505,
        longitude=-73.9934,
        source="ticketmaster",
        external_id="tm-42",
        tags=["rock"],
    )


@pytest.fixture
def enhanced_duplicate() -> dict:
    """The jazz concert with a longer description and an image."""
    return make_event(
        id="event-5",
        source="eventbrite",
        description=(
            "An evening of smooth jazz featuring local artists and special guests. "
            "Doors open at 7pm, the first set starts at 8pm, and the kitchen serves "
            "a full dinner menu throughout the night."
        ),
        image_url="https://example.com/jazz.jpg",
        ticket_url="https://example.com/tickets/jazz",
        tags=["jazz", "dinner"],
    )


@pytest.fixture
def orchestrator() -> DeduplicationOrchestrator:
    """An initialized orchestrator that runs sequentially."""
    orch = DeduplicationOrchestrator()
    orch.update_configuration({"performance": {"parallel_processing": False}})
    orch.initialize()
    yield orch
    orch.cleanup()


@pytest.fixture
async def api_client(orchestrator):
    """Async HTTP client bound to the app with a fresh orchestrator."""
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
