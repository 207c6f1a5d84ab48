"""
Tests for event creation, membership and administration
"""

from concurrent.futures import ThreadPoolExecutor

import pytest

from app.core.exceptions import (
    AccessDenied,
    ConflictError,
    InvalidStateError,
    NotFoundError,
    RateLimitError,
    ValidationError,
)
from app.models.records import EventState
from app.services.event_service import generate_event_id, generate_pin

from tests.conftest import OWNER


def test_generated_identifiers():
    event_id = generate_event_id()
    assert len(event_id) == 8 and event_id.isalnum()
    pin = generate_pin()
    assert len(pin) == 6 and 100000 <= int(pin) <= 999999


def test_create_event_defaults(services):
    record = services.events.create_event("  Spring Cellar  ", "Owner@Example.com")

    assert record.name == "Spring Cellar"
    assert record.owner == OWNER
    assert record.state == EventState.CREATED
    assert record.administrators == frozenset({OWNER})
    assert record.users[OWNER].is_administrator
    assert record.item_configuration.number_of_items == 20
    assert record.rating_configuration.max_rating == 4
    assert record.version == 1
    assert services.store.exists(record.id)


@pytest.mark.parametrize("kwargs", [
    {"name": "", "owner_email": OWNER},
    {"name": "x" * 101, "owner_email": OWNER},
    {"name": "Event", "owner_email": "not-an-email"},
    {"name": "Event", "owner_email": OWNER, "number_of_items": 0},
    {"name": "Event", "owner_email": OWNER, "number_of_items": 101},
    {"name": "Event", "owner_email": OWNER, "max_rating": 5},
    {"name": "Event", "owner_email": OWNER, "max_rating": 1},
])
def test_create_event_validation(services, kwargs):
    with pytest.raises(ValidationError):
        services.events.create_event(**kwargs)
    assert len(services.store) == 0


def test_join_event_with_pin(services, event):
    user = services.events.join_event(event.id, event.pin, "Guest@Example.com ")
    assert user.email == "guest@example.com"
    assert "guest@example.com" in services.store.get(event.id).users


def test_join_event_wrong_pin(services, event):
    wrong = "000000" if event.pin != "000000" else "111111"
    with pytest.raises(AccessDenied) as exc_info:
        services.events.join_event(event.id, wrong, "guest@example.com")
    assert exc_info.value.error_code == "INVALID_PIN"


def test_register_user_is_idempotent(services, event):
    first = services.events.register_user(event.id, "guest@example.com")
    version = services.store.get(event.id).version
    second = services.events.register_user(event.id, "GUEST@example.com")

    assert first == second
    assert services.store.get(event.id).version == version


def test_profile_and_bookmarks(services, event):
    services.events.register_user(event.id, "guest@example.com")
    user = services.events.update_profile(event.id, "guest@example.com", "  Gus ")
    assert user.name == "Gus"

    assert services.events.save_bookmarks(event.id, "guest@example.com", [5, 2, 5]) == [2, 5]
    assert services.events.get_user_profile(event.id, "guest@example.com").bookmarks == frozenset({2, 5})

    with pytest.raises(ValidationError):
        services.events.save_bookmarks(event.id, "guest@example.com", [11])
    with pytest.raises(ValidationError):
        services.events.save_bookmarks(event.id, "guest@example.com", "1,2")
    with pytest.raises(NotFoundError):
        services.events.update_profile(event.id, "stranger@example.com", "Nobody")


def test_add_and_remove_administrator(services, event):
    admins = services.events.add_administrator(event.id, OWNER, "co@example.com")
    assert admins == ["co@example.com", OWNER]

    with pytest.raises(ConflictError) as exc_info:
        services.events.add_administrator(event.id, OWNER, "CO@example.com")
    assert exc_info.value.error_code == "ALREADY_EXISTS"

    assert services.events.remove_administrator(event.id, "co@example.com", "co@example.com") == [OWNER]
    assert services.events.list_administrators(event.id, OWNER) == [OWNER]


def test_add_administrator_flags_registered_user(services, event):
    services.events.register_user(event.id, "guest@example.com")
    services.events.add_administrator(event.id, OWNER, "guest@example.com")
    assert services.store.get(event.id).users["guest@example.com"].is_administrator


def test_concurrent_duplicate_administrator_adds(services, event):
    """Exactly one of two racing adds of the same email succeeds"""

    def add(_):
        try:
            services.events.add_administrator(event.id, OWNER, "co@example.com")
            return "ok"
        except ConflictError as e:
            return e.error_code

    with ThreadPoolExecutor(max_workers=2) as pool:
        results = sorted(pool.map(add, range(2)))

    assert results == ["ALREADY_EXISTS", "ok"]
    assert services.events.list_administrators(event.id, OWNER) == ["co@example.com", OWNER]


def test_owner_cannot_be_removed(services, event):
    services.events.add_administrator(event.id, OWNER, "co@example.com")
    with pytest.raises(AccessDenied) as exc_info:
        services.events.remove_administrator(event.id, "co@example.com", OWNER)
    assert exc_info.value.error_code == "OWNER_PROTECTED"


def test_non_admin_cannot_manage_administrators(services, event):
    services.events.register_user(event.id, "guest@example.com")
    with pytest.raises(AccessDenied):
        services.events.add_administrator(event.id, "guest@example.com", "guest@example.com")
    with pytest.raises(AccessDenied):
        services.events.list_administrators(event.id, "guest@example.com")


def test_remove_unknown_administrator(services, event):
    with pytest.raises(NotFoundError):
        services.events.remove_administrator(event.id, OWNER, "ghost@example.com")


def test_concurrent_pin_regeneration(services, event):
    """Every racing regeneration succeeds; the stored PIN is one of those issued"""
    services.events.add_administrator(event.id, OWNER, "co@example.com")
    admins = [OWNER, "co@example.com"]

    with ThreadPoolExecutor(max_workers=2) as pool:
        updated = list(pool.map(lambda a: services.events.regenerate_pin(event.id, a), admins))

    final = services.store.get(event.id)
    assert final.pin in {r.pin for r in updated}
    assert final.version == max(r.version for r in updated)


def test_regenerate_pin_requires_admin(services, event):
    services.events.register_user(event.id, "guest@example.com")
    with pytest.raises(AccessDenied):
        services.events.regenerate_pin(event.id, "guest@example.com")


def test_item_configuration_accepts_comma_string(services, event):
    result = services.events.update_item_configuration(event.id, OWNER, excluded_item_ids="3, 07,9")

    assert result.configuration.excluded_item_ids == frozenset({3, 7, 9})
    assert result.warning is None
    assert services.store.get(event.id).item_configuration.available_item_ids() == [1, 2, 4, 5, 6, 8, 10]


def test_item_configuration_shrink_drops_exclusions_with_warning(services, event):
    services.events.update_item_configuration(event.id, OWNER, excluded_item_ids=[2, 8, 9])
    result = services.events.update_item_configuration(event.id, OWNER, number_of_items=5)

    assert result.configuration.number_of_items == 5
    assert result.configuration.excluded_item_ids == frozenset({2})
    assert "8, 9" in result.warning


@pytest.mark.parametrize("kwargs", [
    {"excluded_item_ids": "1,2,3,4,5,6,7,8,9,10"},
    {"excluded_item_ids": [11]},
    {"excluded_item_ids": "1,abc"},
    {"number_of_items": 0},
])
def test_item_configuration_rejects(services, event, kwargs):
    with pytest.raises(ValidationError):
        services.events.update_item_configuration(event.id, OWNER, **kwargs)
    assert services.store.get(event.id).item_configuration.number_of_items == 10


def test_unchanged_item_configuration_is_a_no_op(services, event):
    version = services.store.get(event.id).version
    services.events.update_item_configuration(event.id, OWNER, number_of_items=10)
    assert services.store.get(event.id).version == version


def test_rating_configuration_only_before_start(services, event):
    assert services.events.update_rating_configuration(event.id, OWNER, 3).max_rating == 3

    services.state_machine.transition(event.id, OWNER, "started", "created")
    with pytest.raises(InvalidStateError):
        services.events.update_rating_configuration(event.id, OWNER, 4)


def test_delete_event_owner_only(services, event):
    services.events.add_administrator(event.id, OWNER, "co@example.com")
    with pytest.raises(AccessDenied) as exc_info:
        services.events.delete_event(event.id, "co@example.com")
    assert exc_info.value.error_code == "OWNER_REQUIRED"
    assert services.store.exists(event.id)


def test_delete_event_revokes_scoped_state(services, event):
    session = services.sessions.issue(event.id, OWNER)
    services.rate_limiter.check(event.id, OWNER)

    services.events.delete_event(event.id, OWNER)

    assert not services.store.exists(event.id)
    assert event.id not in services.store.locks
    with pytest.raises(AccessDenied) as exc_info:
        services.sessions.resolve(session.token, event.id)
    assert exc_info.value.error_code == "INVALID_TOKEN"
    assert services.rate_limiter.remaining(event.id, OWNER) == services.rate_limiter.limit
    with pytest.raises(NotFoundError):
        services.events.get_event(event.id)


def test_list_events_in_creation_order(services):
    first = services.events.create_event("First", OWNER)
    second = services.events.create_event("Second", OWNER)
    assert [e.id for e in services.events.list_events()] == [first.id, second.id]


def test_failed_pin_attempts_are_limited_per_client(services, event):
    wrong = "000000" if event.pin != "000000" else "111111"
    limit = services.pin_limiter.limit

    for _ in range(limit):
        with pytest.raises(AccessDenied):
            services.events.join_event(event.id, wrong, "guest@example.com", client="10.0.0.1")

    # Even the right PIN is refused once the client has used up its attempts
    with pytest.raises(RateLimitError):
        services.events.join_event(event.id, event.pin, "guest@example.com", client="10.0.0.1")

    # Other clients are unaffected
    assert services.events.join_event(event.id, event.pin, "guest@example.com", client="10.0.0.2").email == "guest@example.com"


def test_successful_joins_do_not_use_up_attempts(services, event):
    for n in range(services.pin_limiter.limit + 2):
        services.events.join_event(event.id, event.pin, f"guest{n}@example.com", client="10.0.0.1")
    assert services.pin_limiter.remaining(event.id, "10.0.0.1") == services.pin_limiter.limit


def test_rating_levels_default_to_the_preset_for_the_scale(services, event):
    labels = [level.label for level in services.store.get(event.id).rating_configuration.ratings]
    assert labels == ["What is this crap?", "Meh...", "Not bad...", "Give me more..."]

    config = services.events.update_rating_configuration(event.id, OWNER, 2)
    assert [(r.value, r.label, r.color) for r in config.ratings] == [(1, "Poor", "#FF3B30"), (2, "Good", "#28A745")]


def test_custom_rating_levels(services, event):
    config = services.events.update_rating_configuration(
        event.id,
        OWNER,
        max_rating=3,
        ratings=[
            {"value": 1, "label": " Flat ", "color": "#f00"},
            {"value": 2, "label": "Fine", "color": "rgb(255, 204, 0)"},
            {"value": 3, "label": "Lively", "color": "hsl(120, 100%, 50%)"},
        ],
    )

    assert [(r.label, r.color) for r in config.ratings] == [
        ("Flat", "#FF0000"), ("Fine", "#FFCC00"), ("Lively", "#00FF00")
    ]
    # Labels survive an unrelated update
    services.events.update_rating_configuration(event.id, OWNER)
    assert services.store.get(event.id).rating_configuration == config


@pytest.mark.parametrize("ratings", [
    [{"value": 1, "label": "Low", "color": "#FF0000"}],
    [{"value": 2, "label": "Low", "color": "#FF0000"}, {"value": 1, "label": "High", "color": "#00FF00"}],
    [{"value": 1, "label": "", "color": "#FF0000"}, {"value": 2, "label": "High", "color": "#00FF00"}],
    [{"value": 1, "label": "x" * 51, "color": "#FF0000"}, {"value": 2, "label": "High", "color": "#00FF00"}],
    [{"value": 1, "label": "Low", "color": "red"}, {"value": 2, "label": "High", "color": "#00FF00"}],
    [{"value": 1, "label": "Low", "color": "rgb(300, 0, 0)"}, {"value": 2, "label": "High", "color": "#00FF00"}],
])
def test_invalid_rating_levels(services, event, ratings):
    with pytest.raises(ValidationError):
        services.events.update_rating_configuration(event.id, OWNER, max_rating=2, ratings=ratings)
    assert services.store.get(event.id).rating_configuration.max_rating == 4


def test_rating_configuration_expected_updated_at(services, event):
    seen = services.store.get(event.id).updated_at
    services.events.update_rating_configuration(event.id, OWNER, 3, expected_updated_at=seen)

    # A second editor still holding the old timestamp is refused
    with pytest.raises(ConflictError) as exc_info:
        services.events.update_rating_configuration(event.id, OWNER, 2, expected_updated_at=seen)
    assert exc_info.value.details["current_updated_at"] == services.store.get(event.id).updated_at.isoformat()
    assert services.store.get(event.id).rating_configuration.max_rating == 3
