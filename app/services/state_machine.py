"""
Event lifecycle with optimistic-concurrency transitions
"""

import logging
from dataclasses import replace
from typing import Dict, FrozenSet, Iterable, List, Union

from app.core.exceptions import (
    AccessDenied,
    ConflictError,
    InvalidStateError,
    InvalidTransitionError,
    ValidationError,
)
from app.models.records import EventRecord, EventState
from app.services.event_store import EventStore
from app.utils.validators import normalize_email

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[EventState, FrozenSet[EventState]] = {
    EventState.CREATED: frozenset({EventState.STARTED}),
    EventState.STARTED: frozenset({EventState.PAUSED, EventState.COMPLETED}),
    EventState.PAUSED: frozenset({EventState.STARTED, EventState.COMPLETED}),
    EventState.COMPLETED: frozenset({EventState.STARTED}),
}


def parse_state(value: Union[str, EventState]) -> EventState:
    try:
        return EventState(value)
    except ValueError:
        valid = ", ".join(s.value for s in EventState)
        raise ValidationError(f"Invalid state: {value}. Valid states are: {valid}")


def can_transition(from_state: EventState, to_state: EventState) -> bool:
    return to_state in ALLOWED_TRANSITIONS.get(from_state, frozenset())


def valid_targets(state: EventState) -> List[EventState]:
    return sorted(ALLOWED_TRANSITIONS.get(state, frozenset()), key=lambda s: list(EventState).index(s))


def require_state(record: EventRecord, allowed: Iterable[EventState], error_cls=InvalidStateError, action: str = "This operation") -> None:
    """Raise ``error_cls`` unless the event is in one of ``allowed``"""
    allowed = tuple(allowed)
    if record.state not in allowed:
        names = ", ".join(f'"{s.value}"' for s in allowed)
        raise error_cls(
            f'{action} is not allowed when event is in "{record.state.value}" state. Allowed in: {names}.',
            details={"current_state": record.state.value},
        )


class StateMachine:
    """Compare-and-set state transitions executed inside the event lock"""

    def __init__(self, store: EventStore):
        self.store = store

    def transition(
        self,
        event_id: str,
        admin_email: str,
        to_state: Union[str, EventState],
        expected_state: Union[str, EventState],
    ) -> EventRecord:
        admin_email = normalize_email(admin_email)
        target = parse_state(to_state)
        expected = parse_state(expected_state)

        def apply(record: EventRecord):
            if not record.is_administrator(admin_email):
                raise AccessDenied("Only administrators can change event state")

            # The comparison and the write share one critical section
            if record.state != expected:
                logger.warning(
                    f"Optimistic locking conflict for event {event_id}: expected={expected.value}, actual={record.state.value}"
                )
                raise ConflictError(
                    f"Event state has changed. Current state: {record.state.value}. Please refresh and try again.",
                    details={"current_state": record.state.value},
                )

            if not can_transition(expected, target):
                logger.warning(f"Invalid state transition attempted for event {event_id}: {expected.value} -> {target.value}")
                raise InvalidTransitionError(f"Invalid transition from {expected.value} to {target.value}")

            updated = replace(record, state=target)
            return updated, updated

        updated = self.store.mutate(event_id, apply)
        logger.info(f"Event state transitioned: {event_id} from {expected.value} to {target.value} by {admin_email}")
        return updated
