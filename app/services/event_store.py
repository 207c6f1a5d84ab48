"""
Per-event concurrent data store.

Holds one immutable EventRecord per event id. Mutations run under that event's
lock and publish a replacement record; reads return the currently published
record without locking, which is always a complete snapshot.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple, TypeVar

from app.core.exceptions import ConflictError, NotFoundError
from app.models.records import EventRecord
from app.services.event_lock import EventLockRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")

Mutation = Callable[[EventRecord], Tuple[EventRecord, T]]
CommitListener = Callable[[EventRecord], None]
DeleteListener = Callable[[str], None]


class EventStore:
    """Lock-guarded aggregate per event id"""

    def __init__(self, locks: Optional[EventLockRegistry] = None):
        self.locks = locks or EventLockRegistry()
        self._events: Dict[str, EventRecord] = {}
        self._commit_listeners: List[CommitListener] = []
        self._delete_listeners: List[DeleteListener] = []

    # -------- listeners --------

    def on_commit(self, listener: CommitListener) -> None:
        self._commit_listeners.append(listener)

    def on_delete(self, listener: DeleteListener) -> None:
        self._delete_listeners.append(listener)

    # -------- reads (lock-free snapshots) --------

    def get(self, event_id: str) -> EventRecord:
        record = self._events.get(event_id)
        if record is None:
            raise NotFoundError(f"Event not found: {event_id}")
        return record

    def exists(self, event_id: str) -> bool:
        return event_id in self._events

    def list_events(self) -> List[EventRecord]:
        # dict.copy() is a single C-level operation, never a torn iteration
        return list(self._events.copy().values())

    # -------- writes --------

    def create(self, record: EventRecord) -> EventRecord:
        with self.locks.hold(record.id):
            if record.id in self._events:
                raise ConflictError(f"Event already exists: {record.id}", error_code="ALREADY_EXISTS")
            self._events[record.id] = record
        self._notify_commit(record)
        return record

    def load(self, record: EventRecord) -> None:
        """Install a record restored from persistence, without notifying listeners"""
        with self.locks.hold(record.id):
            self._events[record.id] = record

    def mutate(self, event_id: str, mutation: Mutation) -> T:
        """Apply ``mutation`` inside the event's critical section.

        ``mutation`` receives the current record and returns ``(new_record, result)``.
        Returning the same record object means nothing changed. Any exception
        raised by ``mutation`` leaves the published record untouched.
        """
        def apply() -> Tuple[Optional[EventRecord], T]:
            current = self.get(event_id)
            updated, result = mutation(current)
            if updated is current:
                return None, result
            updated = replace(updated, version=current.version + 1, updated_at=datetime.utcnow())
            self._events[event_id] = updated
            return updated, result

        committed, result = self.locks.with_lock(event_id, apply)
        if committed is not None:
            self._notify_commit(committed)
        return result

    def delete(self, event_id: str) -> EventRecord:
        with self.locks.hold(event_id):
            record = self._events.pop(event_id, None)
        if record is None:
            raise NotFoundError(f"Event not found: {event_id}")
        self.locks.discard(event_id)
        for listener in self._delete_listeners:
            listener(event_id)
        return record

    def _notify_commit(self, record: EventRecord) -> None:
        for listener in self._commit_listeners:
            listener(record)

    def __len__(self) -> int:
        return len(self._events)
