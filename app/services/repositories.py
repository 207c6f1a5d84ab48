"""
Snapshot persistence of event records through SQLAlchemy.
"""

from __future__ import annotations

import json
import logging
import threading
from collections import OrderedDict
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from app.models import Event
from app.services.event_lock import EventLockRegistry
from app.models.records import (
    EventRecord,
    EventState,
    ItemConfiguration,
    ItemRecord,
    RatingConfiguration,
    RatingLevel,
    RatingRecord,
    UserRecord,
)

logger = logging.getLogger(__name__)

# Deleted event ids remembered by SnapshotWriter
DELETED_HISTORY = 1024


def _dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def record_to_payload(record: EventRecord) -> Dict[str, Any]:
    return {
        "id": record.id,
        "name": record.name,
        "pin": record.pin,
        "owner": record.owner,
        "state": record.state.value,
        "version": record.version,
        "created_at": record.created_at.isoformat(),
        "updated_at": record.updated_at.isoformat(),
        "pin_generated_at": record.pin_generated_at.isoformat(),
        "administrators": sorted(record.administrators),
        "item_configuration": {
            "number_of_items": record.item_configuration.number_of_items,
            "excluded_item_ids": sorted(record.item_configuration.excluded_item_ids),
        },
        "rating_configuration": {
            "max_rating": record.rating_configuration.max_rating,
            "ratings": [
                {"value": level.value, "label": level.label, "color": level.color}
                for level in record.rating_configuration.ratings
            ],
        },
        "items": [
            {
                "id": i.id,
                "name": i.name,
                "owner_email": i.owner_email,
                "registered_at": i.registered_at.isoformat(),
                "price": i.price,
                "description": i.description,
                "item_id": i.item_id,
            }
            for i in record.items.values()
        ],
        "users": [
            {
                "email": u.email,
                "name": u.name,
                "registered_at": u.registered_at.isoformat(),
                "bookmarks": sorted(u.bookmarks),
                "is_administrator": u.is_administrator,
            }
            for u in record.users.values()
        ],
        "ratings": [
            {
                "email": r.email,
                "item_id": r.item_id,
                "rating": r.rating,
                "note": r.note,
                "timestamp": r.timestamp.isoformat(),
            }
            for r in record.ratings.values()
        ],
    }


def record_from_payload(data: Dict[str, Any]) -> EventRecord:
    items = {
        i["id"]: ItemRecord(
            id=i["id"],
            name=i["name"],
            owner_email=i["owner_email"],
            registered_at=_dt(i["registered_at"]),
            price=i.get("price"),
            description=i.get("description", ""),
            item_id=i.get("item_id"),
        )
        for i in data.get("items", [])
    }
    users = {
        u["email"]: UserRecord(
            email=u["email"],
            registered_at=_dt(u["registered_at"]),
            name=u.get("name"),
            bookmarks=frozenset(u.get("bookmarks", [])),
            is_administrator=bool(u.get("is_administrator")),
        )
        for u in data.get("users", [])
    }
    ratings = {}
    for r in data.get("ratings", []):
        rating = RatingRecord(
            email=r["email"],
            item_id=r["item_id"],
            rating=r["rating"],
            note=r.get("note", ""),
            timestamp=_dt(r["timestamp"]),
        )
        ratings[rating.key] = rating

    item_config = data.get("item_configuration", {})
    rating_config = data.get("rating_configuration", {})
    return EventRecord(
        id=data["id"],
        name=data["name"],
        pin=data["pin"],
        owner=data["owner"],
        created_at=_dt(data["created_at"]),
        updated_at=_dt(data["updated_at"]),
        pin_generated_at=_dt(data["pin_generated_at"]),
        state=EventState(data["state"]),
        administrators=frozenset(data["administrators"]),
        item_configuration=ItemConfiguration(
            number_of_items=item_config.get("number_of_items", 20),
            excluded_item_ids=frozenset(item_config.get("excluded_item_ids", [])),
        ),
        rating_configuration=RatingConfiguration(
            max_rating=rating_config.get("max_rating", 4),
            ratings=tuple(RatingLevel(**level) for level in rating_config.get("ratings", [])),
        ),
        items=items,
        users=users,
        ratings=ratings,
        version=data.get("version", 1),
    )


# -------- Event repository --------

class EventRepo:
    @staticmethod
    def get_sql(db: Session, event_id: str) -> Optional[Event]:
        return db.query(Event).filter(Event.id == event_id).first()

    @staticmethod
    def save_sql(db: Session, record: EventRecord) -> bool:
        """Upsert the snapshot unless a newer version is already stored"""
        row = EventRepo.get_sql(db, record.id)
        if row is not None and row.version >= record.version:
            return False
        if row is None:
            row = Event(id=record.id, created_at=record.created_at)
            db.add(row)
        row.name = record.name
        row.owner_email = record.owner
        row.state = record.state.value
        row.version = record.version
        row.payload = json.dumps(record_to_payload(record))
        row.updated_at = record.updated_at
        db.commit()
        return True

    @staticmethod
    def delete_sql(db: Session, event_id: str) -> bool:
        deleted = db.query(Event).filter(Event.id == event_id).delete()
        db.commit()
        return deleted > 0

    @staticmethod
    def load_all_sql(db: Session) -> List[EventRecord]:
        return [record_from_payload(json.loads(row.payload)) for row in db.query(Event).all()]


class SnapshotWriter:
    """Store listener that writes committed records to the database.

    Runs after the event lock is released. Failures are logged; the in-memory
    commit stands regardless.
    """

    def __init__(self, session_factory: Callable[[], Session], deleted_history: int = DELETED_HISTORY):
        self.session_factory = session_factory
        # Orders concurrent snapshot writes of one event; separate from the store locks
        self._locks = EventLockRegistry()
        # Recently deleted ids, oldest first; a save racing a deletion must not resurrect the row
        self._deleted: OrderedDict[str, None] = OrderedDict()
        self._deleted_history = deleted_history
        self._guard = threading.Lock()

    def _is_deleted(self, event_id: str) -> bool:
        with self._guard:
            return event_id in self._deleted

    def _mark_deleted(self, event_id: str) -> None:
        with self._guard:
            self._deleted[event_id] = None
            self._deleted.move_to_end(event_id)
            while len(self._deleted) > self._deleted_history:
                self._deleted.popitem(last=False)

    def save(self, record: EventRecord) -> None:
        db = self.session_factory()
        try:
            with self._locks.hold(record.id):
                if not self._is_deleted(record.id):
                    EventRepo.save_sql(db, record)
        except Exception as e:
            db.rollback()
            logger.exception(f"Failed to persist snapshot of event {record.id} (version {record.version}): {e}")
        finally:
            db.close()

    def delete(self, event_id: str) -> None:
        db = self.session_factory()
        try:
            with self._locks.hold(event_id):
                self._mark_deleted(event_id)
                EventRepo.delete_sql(db, event_id)
            self._locks.discard(event_id)
        except Exception as e:
            db.rollback()
            logger.exception(f"Failed to delete snapshot of event {event_id}: {e}")
        finally:
            db.close()
