"""
Sliding-window rate limiting keyed by (event id, caller).

Used for rating writes per user email and for failed PIN attempts per client.
"""

import logging
import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, Optional, Tuple

from app.core.exceptions import RateLimitError

logger = logging.getLogger(__name__)


class _Window:
    __slots__ = ("hits", "lock")

    def __init__(self):
        self.hits: Deque[float] = deque()
        self.lock = threading.Lock()


class RateLimiter:
    """Allows at most ``limit`` writes per ``window_seconds`` for each user of each event.

    Every (event, user) pair has its own window and its own lock, so one user's
    burst never throttles anyone else. Only the calls beyond the limit are
    refused; they are not recorded, so they do not extend the penalty.
    """

    def __init__(self, limit: int = 20, window_seconds: float = 1.0, clock: Callable[[], float] = time.monotonic):
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: Dict[Tuple[str, str], _Window] = {}
        self._guard = threading.Lock()

    def _window(self, event_id: str, email: str) -> _Window:
        key = (event_id, email)
        with self._guard:
            window = self._windows.get(key)
            if window is None:
                window = _Window()
                self._windows[key] = window
            return window

    def _try_acquire(self, event_id: str, email: str, record: bool = True) -> Tuple[bool, float]:
        window = self._window(event_id, email)
        now = self._clock()
        with window.lock:
            # Evict hits that fell out of the window
            while window.hits and now - window.hits[0] >= self.window_seconds:
                window.hits.popleft()

            if len(window.hits) >= self.limit:
                retry_after = self.window_seconds - (now - window.hits[0])
                return False, max(retry_after, 0.0)

            if record:
                window.hits.append(now)
            return True, 0.0

    def allow(self, event_id: str, email: str) -> bool:
        allowed, _ = self._try_acquire(event_id, email)
        return allowed

    def check(self, event_id: str, email: str, record: bool = True, message: Optional[str] = None) -> None:
        """Record a hit or raise RateLimitError.

        With ``record=False`` the window is only inspected; callers that count
        failures rather than calls record them later with ``allow``.
        """
        allowed, retry_after = self._try_acquire(event_id, email, record)
        if not allowed:
            logger.warning(f"Rate limit exceeded for {email} in event {event_id}")
            if message is not None:
                raise RateLimitError(message, retry_after=round(retry_after, 3))
            raise RateLimitError(retry_after=round(retry_after, 3))

    def remaining(self, event_id: str, email: str) -> int:
        window = self._window(event_id, email)
        now = self._clock()
        with window.lock:
            live = sum(1 for hit in window.hits if now - hit < self.window_seconds)
        return max(self.limit - live, 0)

    def reset(self, event_id: str, email: Optional[str] = None) -> None:
        """Drop the windows of one user, or of every user of the event"""
        with self._guard:
            if email is not None:
                self._windows.pop((event_id, email), None)
                return
            for key in [k for k in self._windows if k[0] == event_id]:
                del self._windows[key]
