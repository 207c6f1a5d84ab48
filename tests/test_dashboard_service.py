"""
Tests for dashboard statistics
"""

import pytest

from app.services.dashboard_service import weighted_average

from tests.conftest import OWNER


def test_weighted_average():
    # C = floor(0.4 * 10) = 4
    assert weighted_average(3.0, 10, 2, 8) == pytest.approx((4 * 3.0 + 8) / 6)
    assert weighted_average(3.0, 10, 0, 0) == 3.0
    # Too few users for a prior
    assert weighted_average(3.0, 2, 2, 8) is None
    assert weighted_average(None, 10, 0, 0) is None


def test_dashboard_of_empty_event(services, event):
    dashboard = services.dashboard.get_dashboard(event.id)

    assert dashboard["statistics"] == {
        "total_users": 1,
        "total_items": 10,
        "total_ratings": 0,
        "average_ratings_per_item": 0.0,
    }
    assert dashboard["global_average"] is None
    assert all(s["average_rating"] is None for s in dashboard["item_summaries"])


def test_dashboard_aggregates(services, started_event):
    services.ratings.submit_rating(started_event.id, "alice@example.com", 1, 4)
    services.ratings.submit_rating(started_event.id, "bob@example.com", 1, 4)
    services.ratings.submit_rating(started_event.id, "carol@example.com", 2, 1)

    dashboard = services.dashboard.get_dashboard(started_event.id)
    summaries = {s["item_id"]: s for s in dashboard["item_summaries"]}

    # owner plus three raters; C = floor(0.4 * 4) = 1
    assert dashboard["statistics"]["total_users"] == 4
    assert dashboard["statistics"]["total_ratings"] == 3
    assert dashboard["statistics"]["average_ratings_per_item"] == 0.3
    assert dashboard["global_average"] == 3.0

    assert summaries[1]["number_of_raters"] == 2
    assert summaries[1]["average_rating"] == 4.0
    assert summaries[1]["weighted_average"] == 3.67
    assert summaries[1]["rating_progression"] == 50.0
    assert summaries[1]["rating_distribution"] == {1: 0, 2: 0, 3: 0, 4: 2}

    assert summaries[2]["weighted_average"] == 2.0
    assert summaries[3]["average_rating"] is None
    assert summaries[3]["weighted_average"] == 3.0


def test_dashboard_skips_excluded_items(services, event):
    services.events.update_item_configuration(event.id, OWNER, excluded_item_ids=[1, 2])
    dashboard = services.dashboard.get_dashboard(event.id)

    assert dashboard["statistics"]["total_items"] == 8
    assert [s["item_id"] for s in dashboard["item_summaries"]] == list(range(3, 11))
