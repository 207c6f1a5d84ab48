"""
Per-event serialization of mutating operations.

One lock per event id, created lazily and reused for the life of the event.
There is never a lock spanning several events, and callers never hold two
event locks at once, so unrelated events run fully in parallel.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class EventLockRegistry:
    """Hands out the exclusive lock for an event id"""

    def __init__(self):
        self._locks: Dict[str, threading.Lock] = {}
        # Guards the dict only; never held while an event lock is held.
        self._guard = threading.Lock()

    def get_lock(self, event_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(event_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[event_id] = lock
            return lock

    @contextmanager
    def hold(self, event_id: str) -> Iterator[None]:
        with self.get_lock(event_id):
            yield

    def with_lock(self, event_id: str, fn: Callable[..., T], *args, **kwargs) -> T:
        """Run ``fn`` with exclusive access to the event; errors propagate"""
        with self.hold(event_id):
            return fn(*args, **kwargs)

    def discard(self, event_id: str) -> None:
        """Forget the lock of a deleted event"""
        with self._guard:
            if self._locks.pop(event_id, None) is not None:
                logger.debug(f"Released lock for deleted event {event_id}")

    def __contains__(self, event_id: str) -> bool:
        with self._guard:
            return event_id in self._locks

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
