"""
Rating storage: upserts and deletions over one event's ratings, run under the event lock
"""

import logging
from dataclasses import replace
from datetime import datetime
from typing import List, Optional

from app.core.exceptions import AccessDenied, NotFoundError, NotStartedError, ValidationError
from app.models.records import EventRecord, EventState, RatingRecord
from app.services.event_store import EventStore
from app.services.rate_limiter import RateLimiter
from app.services.state_machine import require_state
from app.utils.validators import normalize_email, require_int

logger = logging.getLogger(__name__)


def require_administrator(record: EventRecord, email: str, action: str = "perform this action") -> None:
    if not record.is_administrator(email):
        raise AccessDenied(f"Unauthorized: Only administrators can {action}")


def check_removable(record: EventRecord, email: str) -> None:
    """The owner and the last administrator can never be removed"""
    if record.is_owner(email):
        raise AccessDenied(
            "Cannot delete owner: The original administrator cannot be removed",
            error_code="OWNER_PROTECTED",
        )
    if record.is_administrator(email) and len(record.administrators) <= 1:
        raise AccessDenied(
            "Cannot delete last administrator: At least one administrator must remain",
            error_code="LAST_ADMINISTRATOR",
        )


class RatingService:
    """Handles rating writes, listing and the bulk deletions"""

    def __init__(self, store: EventStore, rate_limiter: RateLimiter, note_max_length: int = 500):
        self.store = store
        self.rate_limiter = rate_limiter
        self.note_max_length = note_max_length

    def _validate(self, record: EventRecord, item_id, rating, note: Optional[str]) -> str:
        item_id = require_int(item_id, "Item ID")
        config = record.item_configuration
        if item_id < 1 or item_id > config.number_of_items:
            raise ValidationError(f"Invalid item ID. Must be between 1 and {config.number_of_items}")
        if item_id in config.excluded_item_ids:
            raise ValidationError(f"Item {item_id} is excluded from this event")

        rating = require_int(rating, "Rating")
        max_rating = record.rating_configuration.max_rating
        if rating < 1 or rating > max_rating:
            raise ValidationError(f"Rating must be between 1 and {max_rating}")

        if note is not None and not isinstance(note, str):
            raise ValidationError("Note must be a string")
        note = (note or "").strip()
        if len(note) > self.note_max_length:
            raise ValidationError(f"Note must not exceed {self.note_max_length} characters")
        return note

    def submit_rating(self, event_id: str, email: str, item_id: int, rating: int, note: Optional[str] = None) -> RatingRecord:
        """Create or replace the (email, item_id) rating"""
        email = normalize_email(email)
        self.rate_limiter.check(event_id, email)

        def apply(record: EventRecord):
            require_state(record, [EventState.STARTED], NotStartedError, "Rating")
            if email not in record.users:
                raise NotFoundError(f"User not registered for this event: {email}")
            clean_note = self._validate(record, item_id, rating, note)

            new_rating = RatingRecord(
                email=email,
                item_id=item_id,
                rating=rating,
                note=clean_note,
                timestamp=datetime.utcnow(),
            )
            ratings = dict(record.ratings)
            ratings[new_rating.key] = new_rating
            return replace(record, ratings=ratings), new_rating

        saved = self.store.mutate(event_id, apply)
        logger.info(f"Rating submitted for event {event_id}, item {item_id}, email {email}")
        return saved

    def delete_rating(self, event_id: str, email: str, item_id: int) -> RatingRecord:
        email = normalize_email(email)
        item_id = require_int(item_id, "Item ID")
        self.rate_limiter.check(event_id, email)

        def apply(record: EventRecord):
            require_state(record, [EventState.STARTED], NotStartedError, "Rating")
            key = (email, item_id)
            if key not in record.ratings:
                raise NotFoundError(f"Rating not found for item {item_id}")
            ratings = dict(record.ratings)
            removed = ratings.pop(key)
            return replace(record, ratings=ratings), removed

        removed = self.store.mutate(event_id, apply)
        logger.info(f"Rating deleted for event {event_id}, item {item_id}, email {email}")
        return removed

    def list_ratings(self, event_id: str, email: str) -> List[RatingRecord]:
        """Own ratings for a regular user, every rating for an administrator"""
        email = normalize_email(email)
        record = self.store.get(event_id)
        if record.is_administrator(email):
            return sorted(record.ratings.values(), key=lambda r: (r.email, r.item_id))
        return record.ratings_for(email)

    def delete_all_ratings(self, event_id: str, admin_email: str) -> int:
        """Clear the ratings; items and configuration are left as they are"""
        admin_email = normalize_email(admin_email)

        def apply(record: EventRecord):
            require_administrator(record, admin_email, "delete ratings")
            return replace(record, ratings={}), len(record.ratings)

        count = self.store.mutate(event_id, apply)
        logger.info(f"All ratings deleted for event {event_id} by {admin_email}: {count} removed")
        return count

    def delete_user(self, event_id: str, admin_email: str, email: str) -> int:
        """Remove a user and every rating they own; returns the number of ratings removed"""
        admin_email = normalize_email(admin_email)
        email = normalize_email(email)

        def apply(record: EventRecord):
            require_administrator(record, admin_email, "delete users")
            check_removable(record, email)
            if email not in record.users:
                raise NotFoundError(f"User not found: {email}")
            removed = sum(1 for r in record.ratings.values() if r.email == email)
            updated = record.without_users(frozenset({email}))
            if record.is_administrator(email):
                updated = replace(updated, administrators=record.administrators - {email})
            return updated, removed

        removed = self.store.mutate(event_id, apply)
        self.rate_limiter.reset(event_id, email)
        logger.info(f"User {email} deleted from event {event_id} by {admin_email} ({removed} ratings removed)")
        return removed

    def delete_all_non_admin_users(self, event_id: str, admin_email: str) -> List[str]:
        """Remove every non-administrator and their ratings; returns the removed emails"""
        admin_email = normalize_email(admin_email)

        def apply(record: EventRecord):
            require_administrator(record, admin_email, "delete users")
            doomed = frozenset(
                email for email, user in record.users.items()
                if not user.is_administrator and not record.is_administrator(email)
            )
            if not doomed:
                return record, []
            return record.without_users(doomed), sorted(doomed)

        removed = self.store.mutate(event_id, apply)
        for email in removed:
            self.rate_limiter.reset(event_id, email)
        logger.info(f"Non-administrator users deleted from event {event_id} by {admin_email}: {len(removed)} removed")
        return removed
