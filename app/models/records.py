"""
In-memory event aggregate.

Records are immutable once published to the store: a mutation builds a new
EventRecord (with fresh collection objects for whatever changed) and swaps it in
while holding the event's lock. Readers that fetched a record keep a consistent
snapshot no matter what writers do afterwards.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple


class EventState(str, Enum):
    CREATED = "created"
    STARTED = "started"
    PAUSED = "paused"
    COMPLETED = "completed"


RatingKey = Tuple[str, int]


@dataclass(frozen=True)
class ItemConfiguration:
    number_of_items: int = 20
    excluded_item_ids: FrozenSet[int] = frozenset()

    def available_item_ids(self) -> List[int]:
        return [i for i in range(1, self.number_of_items + 1) if i not in self.excluded_item_ids]

    def is_available(self, item_id: int) -> bool:
        return 1 <= item_id <= self.number_of_items and item_id not in self.excluded_item_ids


@dataclass(frozen=True)
class RatingLevel:
    value: int
    label: str
    color: str


# Labels and colours for rating values 1..maxRating
DEFAULT_RATING_PRESETS: Dict[int, Tuple[RatingLevel, ...]] = {
    2: (
        RatingLevel(1, "Poor", "#FF3B30"),
        RatingLevel(2, "Good", "#28A745"),
    ),
    3: (
        RatingLevel(1, "Poor", "#FF3B30"),
        RatingLevel(2, "Average", "#FFCC00"),
        RatingLevel(3, "Good", "#34C759"),
    ),
    4: (
        RatingLevel(1, "What is this crap?", "#FF3B30"),
        RatingLevel(2, "Meh...", "#FFCC00"),
        RatingLevel(3, "Not bad...", "#34C759"),
        RatingLevel(4, "Give me more...", "#28A745"),
    ),
}


@dataclass(frozen=True)
class RatingConfiguration:
    max_rating: int = 4
    ratings: Tuple[RatingLevel, ...] = ()

    def __post_init__(self):
        # No levels given: use the preset for this scale
        if not self.ratings:
            object.__setattr__(self, "ratings", DEFAULT_RATING_PRESETS.get(self.max_rating, ()))


@dataclass(frozen=True)
class UserRecord:
    email: str
    registered_at: datetime
    name: Optional[str] = None
    bookmarks: FrozenSet[int] = frozenset()
    is_administrator: bool = False


@dataclass(frozen=True)
class RatingRecord:
    email: str
    item_id: int
    rating: int
    note: str
    timestamp: datetime

    @property
    def key(self) -> RatingKey:
        return (self.email, self.item_id)


@dataclass(frozen=True)
class ItemRecord:
    """A registered item; ``item_id`` is the number assigned while paused"""

    id: str
    name: str
    owner_email: str
    registered_at: datetime
    price: Optional[float] = None
    description: str = ""
    item_id: Optional[int] = None


@dataclass(frozen=True)
class EventRecord:
    id: str
    name: str
    pin: str
    owner: str
    created_at: datetime
    updated_at: datetime
    pin_generated_at: datetime
    state: EventState = EventState.CREATED
    administrators: FrozenSet[str] = frozenset()
    item_configuration: ItemConfiguration = field(default_factory=ItemConfiguration)
    rating_configuration: RatingConfiguration = field(default_factory=RatingConfiguration)
    items: Dict[str, ItemRecord] = field(default_factory=dict)
    users: Dict[str, UserRecord] = field(default_factory=dict)
    ratings: Dict[RatingKey, RatingRecord] = field(default_factory=dict)
    version: int = 1

    def is_administrator(self, email: str) -> bool:
        return email in self.administrators

    def is_owner(self, email: str) -> bool:
        return email == self.owner

    def ratings_for(self, email: str) -> List[RatingRecord]:
        return sorted(
            (r for r in self.ratings.values() if r.email == email),
            key=lambda r: r.item_id,
        )

    def ratings_by_user(self) -> Dict[str, Dict[int, int]]:
        """email -> {item_id: rating}"""
        grouped: Dict[str, Dict[int, int]] = {}
        for rating in self.ratings.values():
            grouped.setdefault(rating.email, {})[rating.item_id] = rating.rating
        return grouped

    def with_user(self, user: UserRecord) -> "EventRecord":
        users = dict(self.users)
        users[user.email] = user
        return replace(self, users=users)

    def without_users(self, emails: FrozenSet[str]) -> "EventRecord":
        """Drop users and cascade their ratings"""
        users = {e: u for e, u in self.users.items() if e not in emails}
        ratings = {k: r for k, r in self.ratings.items() if r.email not in emails}
        return replace(self, users=users, ratings=ratings)
