"""
Database models and in-memory event records
"""

from .event import Event
from .records import (
    EventRecord,
    EventState,
    ItemConfiguration,
    ItemRecord,
    RatingConfiguration,
    RatingLevel,
    RatingRecord,
    UserRecord,
)

__all__ = [
    "Event",
    "EventRecord",
    "EventState",
    "ItemConfiguration",
    "ItemRecord",
    "RatingConfiguration",
    "RatingLevel",
    "RatingRecord",
    "UserRecord",
]
