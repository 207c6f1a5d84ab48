"""
Shared fixtures: every test gets its own isolated service container
"""

import pytest

from app.core.config import Settings
from app.services.container import build_services

OWNER = "owner@example.com"


@pytest.fixture
def services():
    """Fresh in-memory services without persistence"""
    return build_services(Settings(RATING_RATE_LIMIT=1000, PERSIST_EVENTS=False))


@pytest.fixture
def event(services):
    """Event in the created state, owned by OWNER"""
    return services.events.create_event("Autumn Tasting", OWNER, number_of_items=10)


@pytest.fixture
def started_event(services, event):
    """Started event with three registered raters"""
    for email in ("alice@example.com", "bob@example.com", "carol@example.com"):
        services.events.register_user(event.id, email)
    return services.state_machine.transition(event.id, OWNER, "started", "created")


def register_and_rate(services, event_id, email, ratings):
    """Register ``email`` and submit ``{item_id: rating}``"""
    services.events.register_user(event_id, email)
    for item_id, rating in ratings.items():
        services.ratings.submit_rating(event_id, email, item_id, rating)
