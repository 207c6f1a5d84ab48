"""
Event-scoped capability tokens
"""

import logging
import secrets
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Dict

from app.core.exceptions import AccessDenied

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Session:
    token: str
    event_id: str
    email: str
    issued_at: datetime


class SessionRegistry:
    """Issues bearer tokens bound to exactly one (event, email)"""

    def __init__(self):
        self._sessions: Dict[str, Session] = {}
        self._guard = threading.Lock()

    def issue(self, event_id: str, email: str) -> Session:
        session = Session(
            token=secrets.token_urlsafe(32),
            event_id=event_id,
            email=email,
            issued_at=datetime.utcnow(),
        )
        with self._guard:
            self._sessions[session.token] = session
        return session

    def resolve(self, token: str, event_id: str) -> Session:
        """Return the session, refusing tokens issued for any other event"""
        with self._guard:
            session = self._sessions.get(token)
        if session is None:
            raise AccessDenied("Invalid or expired token", error_code="INVALID_TOKEN")
        if session.event_id != event_id:
            logger.warning(f"Token for event {session.event_id} presented against event {event_id}")
            raise AccessDenied("Token is not valid for this event", error_code="EVENT_ACCESS_DENIED")
        return session

    def revoke_event(self, event_id: str) -> int:
        with self._guard:
            doomed = [t for t, s in self._sessions.items() if s.event_id == event_id]
            for token in doomed:
                del self._sessions[token]
        if doomed:
            logger.info(f"Revoked {len(doomed)} sessions for event {event_id}")
        return len(doomed)

    def revoke_user(self, event_id: str, email: str) -> int:
        with self._guard:
            doomed = [t for t, s in self._sessions.items() if s.event_id == event_id and s.email == email]
            for token in doomed:
                del self._sessions[token]
        return len(doomed)
