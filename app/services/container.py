"""
Wiring of the event store and the services built on it
"""

import logging
from dataclasses import dataclass
from typing import Optional

from app.core.config import Settings, settings
from app.services.dashboard_service import DashboardService
from app.services.event_service import EventService
from app.services.event_store import EventStore
from app.services.item_service import ItemService
from app.services.rate_limiter import RateLimiter
from app.services.rating_service import RatingService
from app.services.repositories import SnapshotWriter
from app.services.session_service import SessionRegistry
from app.services.similarity_service import SimilarityEngine
from app.services.state_machine import StateMachine

logger = logging.getLogger(__name__)


@dataclass
class Services:
    store: EventStore
    sessions: SessionRegistry
    rate_limiter: RateLimiter
    pin_limiter: RateLimiter
    events: EventService
    state_machine: StateMachine
    ratings: RatingService
    items: ItemService
    similarity: SimilarityEngine
    dashboard: DashboardService


def build_services(config: Settings = settings, snapshot_writer: Optional[SnapshotWriter] = None) -> Services:
    store = EventStore()
    sessions = SessionRegistry()
    rate_limiter = RateLimiter(
        limit=config.RATING_RATE_LIMIT,
        window_seconds=config.RATING_RATE_WINDOW_SECONDS,
    )
    pin_limiter = RateLimiter(
        limit=config.PIN_ATTEMPT_LIMIT,
        window_seconds=config.PIN_ATTEMPT_WINDOW_SECONDS,
    )

    # Deleting an event invalidates everything scoped to it
    store.on_delete(sessions.revoke_event)
    store.on_delete(rate_limiter.reset)
    store.on_delete(pin_limiter.reset)
    if snapshot_writer is not None:
        store.on_commit(snapshot_writer.save)
        store.on_delete(snapshot_writer.delete)

    return Services(
        store=store,
        sessions=sessions,
        rate_limiter=rate_limiter,
        pin_limiter=pin_limiter,
        events=EventService(
            store,
            pin_limiter=pin_limiter,
            name_max_length=config.EVENT_NAME_MAX_LENGTH,
            display_name_max_length=config.DISPLAY_NAME_MAX_LENGTH,
            default_number_of_items=config.DEFAULT_NUMBER_OF_ITEMS,
            default_max_rating=config.DEFAULT_MAX_RATING,
        ),
        state_machine=StateMachine(store),
        ratings=RatingService(store, rate_limiter, note_max_length=config.NOTE_MAX_LENGTH),
        items=ItemService(store),
        similarity=SimilarityEngine(
            store,
            min_ratings=config.MIN_SIMILARITY_RATINGS,
            limit=config.SIMILAR_USERS_LIMIT,
            min_common_items=config.MIN_SIMILARITY_COMMON_ITEMS,
        ),
        dashboard=DashboardService(store),
    )


_services: Optional[Services] = None


def init_services(config: Settings = settings, snapshot_writer: Optional[SnapshotWriter] = None) -> Services:
    global _services
    _services = build_services(config, snapshot_writer)
    return _services


def get_services() -> Services:
    """FastAPI dependency; builds an unpersisted container on first use"""
    global _services
    if _services is None:
        _services = build_services()
    return _services
