"""
Taste-similarity ranking between users of one event.

Scores are computed over the items both users rated, and only for pairs that
share at least three of them:

* When the target's ratings on the common items vary, the score is the Pearson
  correlation coefficient. If the candidate's ratings on those items are all
  identical the correlation is undefined and the candidate is left out.
* When the target rated every common item the same, correlation says nothing
  (the target expresses no ordering), so the score falls back to rating
  agreement: ``1 - 2 * MAE / (max_rating - 1)``, which also lies in [-1, 1]
  and is 1.0 for identical ratings.

Nothing is cached; every call reads a fresh snapshot of the event.
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from app.core.exceptions import InsufficientDataError
from app.models.records import EventRecord, EventState
from app.services.event_store import EventStore
from app.utils.validators import normalize_email

logger = logging.getLogger(__name__)

MIN_RATINGS = 3
MIN_COMMON_ITEMS = 3
DEFAULT_LIMIT = 5


@dataclass(frozen=True)
class CommonItem:
    item_id: int
    user_rating: int
    similar_user_rating: int


@dataclass(frozen=True)
class SimilarUser:
    email: str
    display_name: Optional[str]
    similarity_score: float
    common_item_count: int
    common_items: Tuple[CommonItem, ...]


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values)


def has_variance(values: Sequence[float]) -> bool:
    return len(values) > 1 and any(v != values[0] for v in values)


def pearson_correlation(xs: Sequence[float], ys: Sequence[float]) -> Optional[float]:
    """Pearson r, or None when undefined (fewer than two points or zero variance)"""
    if len(xs) != len(ys) or len(xs) < 2:
        return None
    x_mean = _mean(xs)
    y_mean = _mean(ys)
    numerator = sum((x - x_mean) * (y - y_mean) for x, y in zip(xs, ys))
    sum_sq_x = sum((x - x_mean) ** 2 for x in xs)
    sum_sq_y = sum((y - y_mean) ** 2 for y in ys)
    denominator = math.sqrt(sum_sq_x * sum_sq_y)
    if denominator == 0 or not math.isfinite(denominator):
        return None
    r = numerator / denominator
    if not math.isfinite(r):
        return None
    return max(-1.0, min(1.0, r))


def agreement_score(xs: Sequence[float], ys: Sequence[float], max_rating: int) -> Optional[float]:
    """Mean absolute error mapped onto [-1, 1]; 1.0 means identical ratings"""
    if not xs or len(xs) != len(ys) or max_rating < 2:
        return None
    mae = _mean([abs(x - y) for x, y in zip(xs, ys)])
    return max(-1.0, min(1.0, 1.0 - 2.0 * mae / (max_rating - 1)))


def similarity_score(target: Sequence[float], candidate: Sequence[float], max_rating: int) -> Optional[float]:
    """Score for one candidate, or None when the pair has no defined similarity"""
    if not has_variance(target):
        return agreement_score(target, candidate, max_rating)
    return pearson_correlation(target, candidate)


class SimilarityEngine:
    """Ranks the users whose ratings agree most with a target user"""

    def __init__(
        self,
        store: EventStore,
        min_ratings: int = MIN_RATINGS,
        limit: int = DEFAULT_LIMIT,
        min_common_items: int = MIN_COMMON_ITEMS,
    ):
        self.store = store
        self.min_ratings = min_ratings
        self.min_common_items = min_common_items
        self.limit = limit

    def find_similar_users(self, event_id: str, target_email: str) -> List[SimilarUser]:
        target_email = normalize_email(target_email)
        record = self.store.get(event_id)

        if record.state != EventState.STARTED:
            raise InsufficientDataError(
                "Similar users are only available while the event is started",
                details={"current_state": record.state.value},
            )

        by_user = record.ratings_by_user()
        target_ratings = by_user.pop(target_email, {})
        if len(target_ratings) < self.min_ratings:
            raise InsufficientDataError(
                f"Rate at least {self.min_ratings} items to find similar users",
                details={"ratings": len(target_ratings), "required": self.min_ratings},
            )

        candidates = self._score_candidates(record, target_ratings, by_user)
        candidates.sort(key=lambda c: (-c.similarity_score, -c.common_item_count, c.email))
        result = candidates[: self.limit]
        logger.info(f"Similar users calculated for event {event_id}, user {target_email}: {len(result)} found")
        return result

    def _score_candidates(
        self,
        record: EventRecord,
        target_ratings: Dict[int, int],
        others: Dict[str, Dict[int, int]],
    ) -> List[SimilarUser]:
        max_rating = record.rating_configuration.max_rating
        candidates: List[SimilarUser] = []
        for email, ratings in others.items():
            common_ids = sorted(target_ratings.keys() & ratings.keys())
            # Fewer shared items cannot show agreement in ordering
            if len(common_ids) < self.min_common_items:
                continue

            xs = [target_ratings[i] for i in common_ids]
            ys = [ratings[i] for i in common_ids]
            score = similarity_score(xs, ys, max_rating)
            if score is None:
                logger.debug(f"Similarity undefined between {email} and target in event {record.id}; excluded")
                continue

            user = record.users.get(email)
            candidates.append(
                SimilarUser(
                    email=email,
                    display_name=user.name if user else None,
                    similarity_score=round(score, 6),
                    common_item_count=len(common_ids),
                    common_items=tuple(CommonItem(i, target_ratings[i], ratings[i]) for i in common_ids),
                )
            )
        return candidates
