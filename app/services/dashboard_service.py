"""
Dashboard statistics aggregated from an event snapshot
"""

import math
from typing import Dict, List, Optional

from app.models.records import EventRecord
from app.services.event_store import EventStore

# C in the Bayesian average is this share of the registered users
PRIOR_WEIGHT_SHARE = 0.4


def weighted_average(
    global_average: Optional[float],
    total_users: int,
    number_of_raters: int,
    sum_of_ratings: int,
) -> Optional[float]:
    """Bayesian average (C * global_avg + sum) / (C + n), C = floor(0.4 * users)"""
    prior_weight = math.floor(total_users * PRIOR_WEIGHT_SHARE)
    if prior_weight == 0 or global_average is None:
        return None
    if number_of_raters == 0:
        return global_average
    return (prior_weight * global_average + sum_of_ratings) / (prior_weight + number_of_raters)


def _round(value: Optional[float]) -> Optional[float]:
    return None if value is None else round(value, 2)


class DashboardService:
    """Read-only; works on whatever snapshot is current"""

    def __init__(self, store: EventStore):
        self.store = store

    def get_dashboard(self, event_id: str) -> Dict:
        record = self.store.get(event_id)
        statistics = self.calculate_statistics(record)
        global_average = self.calculate_global_average(record)
        return {
            "statistics": statistics,
            "global_average": _round(global_average),
            "item_summaries": self.calculate_item_summaries(record, global_average, statistics["total_users"]),
        }

    def calculate_statistics(self, record: EventRecord) -> Dict:
        total_items = len(record.item_configuration.available_item_ids())
        total_ratings = len(record.ratings)
        average = total_ratings / total_items if total_items else 0.0
        return {
            "total_users": len(record.users),
            "total_items": total_items,
            "total_ratings": total_ratings,
            "average_ratings_per_item": round(average, 2),
        }

    def calculate_global_average(self, record: EventRecord) -> Optional[float]:
        if not record.ratings:
            return None
        return sum(r.rating for r in record.ratings.values()) / len(record.ratings)

    def calculate_item_summaries(self, record: EventRecord, global_average: Optional[float], total_users: int) -> List[Dict]:
        by_item: Dict[int, List[int]] = {}
        for rating in record.ratings.values():
            by_item.setdefault(rating.item_id, []).append(rating.rating)

        max_rating = record.rating_configuration.max_rating
        summaries = []
        for item_id in record.item_configuration.available_item_ids():
            values = by_item.get(item_id, [])
            raters = len(values)  # one rating per (user, item)
            summaries.append({
                "item_id": item_id,
                "number_of_raters": raters,
                "average_rating": _round(sum(values) / raters) if raters else None,
                "weighted_average": _round(weighted_average(global_average, total_users, raters, sum(values))),
                "rating_progression": round(raters / total_users * 100, 2) if total_users else 0.0,
                "rating_distribution": {v: values.count(v) for v in range(1, max_rating + 1)},
            })
        return summaries
