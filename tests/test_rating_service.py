"""
Tests for rating writes, listings and bulk deletions
"""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from app.core.exceptions import AccessDenied, NotFoundError, NotStartedError, ValidationError

from tests.conftest import OWNER


def test_submit_rating(services, started_event):
    saved = services.ratings.submit_rating(started_event.id, "Alice@Example.com ", 3, 4, "  Fruity, long finish ")

    assert saved.email == "alice@example.com"
    assert saved.item_id == 3
    assert saved.rating == 4
    assert saved.note == "Fruity, long finish"
    assert services.store.get(started_event.id).ratings[("alice@example.com", 3)] == saved


@pytest.mark.parametrize("item_id,rating,note", [
    (0, 3, ""),        # below range
    (11, 3, ""),       # above numberOfItems
    ("2", 3, ""),      # not an integer
    (2, 0, ""),        # rating below scale
    (2, 5, ""),        # rating above maxRating
    (2, True, ""),     # bool is not a rating
    (2, 3, "x" * 501), # oversize note
])
def test_invalid_submissions_are_rejected(services, started_event, item_id, rating, note):
    with pytest.raises(ValidationError):
        services.ratings.submit_rating(started_event.id, "alice@example.com", item_id, rating, note)
    assert services.store.get(started_event.id).ratings == {}


def test_note_of_exactly_max_length_is_accepted(services, started_event):
    saved = services.ratings.submit_rating(started_event.id, "alice@example.com", 1, 2, "n" * 500)
    assert len(saved.note) == 500


def test_excluded_item_is_rejected(services, event):
    services.events.update_item_configuration(event.id, OWNER, excluded_item_ids=[4])
    services.events.register_user(event.id, "alice@example.com")
    services.state_machine.transition(event.id, OWNER, "started", "created")

    with pytest.raises(ValidationError, match="excluded"):
        services.ratings.submit_rating(event.id, "alice@example.com", 4, 3)


def test_rating_requires_started_state(services, event):
    services.events.register_user(event.id, "alice@example.com")
    with pytest.raises(NotStartedError):
        services.ratings.submit_rating(event.id, "alice@example.com", 1, 3)

    services.state_machine.transition(event.id, OWNER, "started", "created")
    services.ratings.submit_rating(event.id, "alice@example.com", 1, 3)
    services.state_machine.transition(event.id, OWNER, "paused", "started")

    with pytest.raises(NotStartedError):
        services.ratings.delete_rating(event.id, "alice@example.com", 1)


def test_unregistered_user_cannot_rate(services, started_event):
    with pytest.raises(NotFoundError):
        services.ratings.submit_rating(started_event.id, "stranger@example.com", 1, 3)


def test_resubmission_replaces(services, started_event):
    """Same (email, item) keeps a single record holding the latest value"""
    for value in (1, 2, 4, 3):
        services.ratings.submit_rating(started_event.id, "alice@example.com", 5, value, f"take {value}")

    ratings = services.ratings.list_ratings(started_event.id, "alice@example.com")
    assert len(ratings) == 1
    assert ratings[0].rating == 3
    assert ratings[0].note == "take 3"


def test_concurrent_submissions_from_many_users_are_all_kept(services, started_event):
    """N simultaneous raters of one item produce N records"""
    emails = [f"rater{n}@example.com" for n in range(40)]
    for email in emails:
        services.events.register_user(started_event.id, email)
    barrier = threading.Barrier(len(emails))

    def submit(n):
        barrier.wait()
        services.ratings.submit_rating(started_event.id, emails[n], 7, (n % 4) + 1)

    with ThreadPoolExecutor(max_workers=len(emails)) as pool:
        list(pool.map(submit, range(len(emails))))

    record = services.store.get(started_event.id)
    item_ratings = [r for r in record.ratings.values() if r.item_id == 7]
    assert len(item_ratings) == len(emails)
    assert {r.email for r in item_ratings} == set(emails)


def test_concurrent_resubmissions_from_one_user_keep_one_record(services, started_event):
    with ThreadPoolExecutor(max_workers=10) as pool:
        list(pool.map(
            lambda n: services.ratings.submit_rating(started_event.id, "bob@example.com", 2, (n % 4) + 1),
            range(10),
        ))

    record = services.store.get(started_event.id)
    assert [k for k in record.ratings if k[0] == "bob@example.com"] == [("bob@example.com", 2)]


def test_delete_rating(services, started_event):
    services.ratings.submit_rating(started_event.id, "alice@example.com", 1, 3)
    removed = services.ratings.delete_rating(started_event.id, "alice@example.com", 1)

    assert removed.rating == 3
    assert services.ratings.list_ratings(started_event.id, "alice@example.com") == []
    with pytest.raises(NotFoundError):
        services.ratings.delete_rating(started_event.id, "alice@example.com", 1)


def test_list_ratings_scope(services, started_event):
    """Users see their own ratings, administrators see everyone's"""
    services.ratings.submit_rating(started_event.id, "alice@example.com", 1, 3)
    services.ratings.submit_rating(started_event.id, "bob@example.com", 1, 2)
    services.ratings.submit_rating(started_event.id, "bob@example.com", 2, 4)

    own = services.ratings.list_ratings(started_event.id, "bob@example.com")
    everyone = services.ratings.list_ratings(started_event.id, OWNER)

    assert [(r.email, r.item_id) for r in own] == [("bob@example.com", 1), ("bob@example.com", 2)]
    assert len(everyone) == 3


def test_delete_all_ratings_keeps_items_and_configuration(services, event):
    services.events.update_item_configuration(event.id, OWNER, excluded_item_ids="2, 03")
    services.items.register_item(event.id, OWNER, "Barolo 2016", price="45.50")
    services.events.register_user(event.id, "alice@example.com")
    services.state_machine.transition(event.id, OWNER, "started", "created")
    services.ratings.submit_rating(event.id, "alice@example.com", 1, 4)
    before = services.store.get(event.id)

    count = services.ratings.delete_all_ratings(event.id, OWNER)

    after = services.store.get(event.id)
    assert count == 1
    assert after.ratings == {}
    assert after.items == before.items
    assert after.item_configuration == before.item_configuration
    assert after.users == before.users


def test_delete_all_ratings_requires_administrator(services, started_event):
    with pytest.raises(AccessDenied):
        services.ratings.delete_all_ratings(started_event.id, "alice@example.com")


def test_delete_user_cascades_ratings(services, started_event):
    services.ratings.submit_rating(started_event.id, "alice@example.com", 1, 3)
    services.ratings.submit_rating(started_event.id, "alice@example.com", 2, 3)
    services.ratings.submit_rating(started_event.id, "bob@example.com", 1, 1)

    removed = services.ratings.delete_user(started_event.id, OWNER, "ALICE@example.com")

    record = services.store.get(started_event.id)
    assert removed == 2
    assert "alice@example.com" not in record.users
    assert list(record.ratings) == [("bob@example.com", 1)]


def test_delete_user_protects_owner_and_last_administrator(services, started_event):
    services.events.add_administrator(started_event.id, OWNER, "alice@example.com")

    # Owner is protected whoever asks
    for caller in (OWNER, "alice@example.com"):
        with pytest.raises(AccessDenied) as exc_info:
            services.ratings.delete_user(started_event.id, caller, OWNER)
        assert exc_info.value.error_code == "OWNER_PROTECTED"

    # A non-owner administrator can be removed, and loses admin rights
    services.ratings.delete_user(started_event.id, OWNER, "alice@example.com")
    assert services.store.get(started_event.id).administrators == frozenset({OWNER})


def test_delete_unknown_user(services, started_event):
    with pytest.raises(NotFoundError):
        services.ratings.delete_user(started_event.id, OWNER, "nobody@example.com")


def test_delete_all_non_admin_users_keeps_administrators(services, started_event):
    services.events.add_administrator(started_event.id, OWNER, "carol@example.com")
    for email in ("alice@example.com", "bob@example.com", "carol@example.com", OWNER):
        services.ratings.submit_rating(started_event.id, email, 1, 2)

    removed = services.ratings.delete_all_non_admin_users(started_event.id, OWNER)

    record = services.store.get(started_event.id)
    assert removed == ["alice@example.com", "bob@example.com"]
    assert set(record.users) == {OWNER, "carol@example.com"}
    assert {r.email for r in record.ratings.values()} == {OWNER, "carol@example.com"}
    assert record.users[OWNER].is_administrator


@pytest.mark.parametrize("item_id", ["1", 1.0, True, None])
def test_delete_rating_rejects_non_integer_item_id(services, started_event, item_id):
    services.ratings.submit_rating(started_event.id, "alice@example.com", 1, 3)

    with pytest.raises(ValidationError):
        services.ratings.delete_rating(started_event.id, "alice@example.com", item_id)
    assert len(services.store.get(started_event.id).ratings) == 1


def test_removed_users_lose_their_rate_windows(services, started_event):
    for email in ("alice@example.com", "bob@example.com"):
        services.ratings.submit_rating(started_event.id, email, 1, 3)
    limit = services.rate_limiter.limit

    services.ratings.delete_user(started_event.id, OWNER, "alice@example.com")
    services.ratings.delete_all_non_admin_users(started_event.id, OWNER)

    for email in ("alice@example.com", "bob@example.com"):
        assert services.rate_limiter.remaining(started_event.id, email) == limit
