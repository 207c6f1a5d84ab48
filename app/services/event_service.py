"""
Event lifecycle, membership and administration
"""

import logging
import secrets
import string
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Iterable, List, Mapping, Optional, Tuple, Union

from app.core.exceptions import AccessDenied, ConflictError, NotFoundError, ValidationError
from app.models.records import (
    DEFAULT_RATING_PRESETS,
    EventRecord,
    EventState,
    ItemConfiguration,
    RatingConfiguration,
    RatingLevel,
    UserRecord,
)
from app.services.event_store import EventStore
from app.services.rate_limiter import RateLimiter
from app.services.rating_service import check_removable, require_administrator
from app.services.state_machine import require_state
from app.utils.validators import (
    normalize_color,
    normalize_email,
    parse_item_ids,
    require_int,
    validate_email_address,
    validate_text,
)

logger = logging.getLogger(__name__)

EVENT_ID_ALPHABET = string.ascii_letters + string.digits
EVENT_ID_LENGTH = 8
MAX_NUMBER_OF_ITEMS = 100
MIN_MAX_RATING = 2
MAX_MAX_RATING = 4
RATING_LABEL_MAX_LENGTH = 50


def generate_event_id() -> str:
    return "".join(secrets.choice(EVENT_ID_ALPHABET) for _ in range(EVENT_ID_LENGTH))


def generate_pin() -> str:
    """Random 6-digit PIN (100000-999999)"""
    return str(secrets.randbelow(900000) + 100000)


@dataclass(frozen=True)
class ItemConfigurationUpdate:
    configuration: ItemConfiguration
    warning: Optional[str] = None


class EventService:
    """Service for event administration"""

    def __init__(
        self,
        store: EventStore,
        name_max_length: int = 100,
        display_name_max_length: int = 50,
        default_number_of_items: int = 20,
        default_max_rating: int = 4,
        pin_limiter: Optional[RateLimiter] = None,
    ):
        self.store = store
        self.pin_limiter = pin_limiter
        self.name_max_length = name_max_length
        self.display_name_max_length = display_name_max_length
        self.default_number_of_items = default_number_of_items
        self.default_max_rating = default_max_rating

    # -------- events --------

    def create_event(
        self,
        name: str,
        owner_email: str,
        number_of_items: Optional[int] = None,
        max_rating: Optional[int] = None,
    ) -> EventRecord:
        name = validate_text(name, "Event name", self.name_max_length, min_length=1)
        owner = validate_email_address(owner_email)
        number_of_items = self._validate_number_of_items(
            self.default_number_of_items if number_of_items is None else number_of_items
        )
        max_rating = self._validate_max_rating(self.default_max_rating if max_rating is None else max_rating)

        now = datetime.utcnow()
        for attempt in range(3):
            record = EventRecord(
                id=generate_event_id(),
                name=name,
                pin=generate_pin(),
                owner=owner,
                created_at=now,
                updated_at=now,
                pin_generated_at=now,
                administrators=frozenset({owner}),
                item_configuration=ItemConfiguration(number_of_items=number_of_items),
                rating_configuration=RatingConfiguration(max_rating=max_rating),
                users={owner: UserRecord(email=owner, registered_at=now, is_administrator=True)},
            )
            try:
                self.store.create(record)
            except ConflictError:
                logger.warning(f"Event ID collision detected: {record.id}, retrying...")
                continue
            logger.info(f"Event created: {record.id} by {owner}")
            return record

        raise ConflictError("Failed to generate unique event ID after maximum retries")

    def get_event(self, event_id: str) -> EventRecord:
        return self.store.get(event_id)

    def list_events(self) -> List[EventRecord]:
        return sorted(self.store.list_events(), key=lambda e: e.created_at)

    def delete_event(self, event_id: str, requester_email: str) -> EventRecord:
        """Owner-only; destroys the event and everything scoped to it"""
        requester = normalize_email(requester_email)
        record = self.store.get(event_id)
        if not record.is_owner(requester):
            raise AccessDenied("Only the event owner can delete the event", error_code="OWNER_REQUIRED")
        return self.force_delete_event(event_id)

    def force_delete_event(self, event_id: str) -> EventRecord:
        record = self.store.delete(event_id)
        logger.info(f"Event deleted: {event_id} ({record.name}), was active: {record.state == EventState.STARTED}")
        return record

    # -------- users --------

    def join_event(self, event_id: str, pin: str, email: str, client: Optional[str] = None) -> UserRecord:
        """Verify the event PIN, then register the user.

        Failed attempts are counted per ``client`` (the caller's IP address, or
        the email when no address is known); once the limit is reached every
        attempt from that client is refused until the window slides.
        """
        record = self.store.get(event_id)
        client = client or normalize_email(email)
        if self.pin_limiter is not None:
            self.pin_limiter.check(
                event_id,
                client,
                record=False,
                message="Too many PIN attempts. Please try again later.",
            )

        if not isinstance(pin, str) or not secrets.compare_digest(pin.strip().encode(), record.pin.encode()):
            if self.pin_limiter is not None:
                self.pin_limiter.allow(event_id, client)
            logger.warning(f"Invalid PIN attempt for event {event_id} from {client}")
            raise AccessDenied("Invalid PIN", error_code="INVALID_PIN")
        return self.register_user(event_id, email)

    def register_user(self, event_id: str, email: str) -> UserRecord:
        """Idempotent; an already registered user is returned unchanged"""
        email = validate_email_address(email)

        def apply(record: EventRecord):
            existing = record.users.get(email)
            if existing is not None:
                return record, existing
            user = UserRecord(
                email=email,
                registered_at=datetime.utcnow(),
                is_administrator=record.is_administrator(email),
            )
            return record.with_user(user), user

        user = self.store.mutate(event_id, apply)
        logger.info(f"User registered for event {event_id}: {email}")
        return user

    def get_user_profile(self, event_id: str, email: str) -> UserRecord:
        email = normalize_email(email)
        user = self.store.get(event_id).users.get(email)
        if user is None:
            raise NotFoundError(f"User not found: {email}")
        return user

    def update_profile(self, event_id: str, email: str, name: Optional[str]) -> UserRecord:
        email = normalize_email(email)
        name = validate_text(name, "Name", self.display_name_max_length) or None

        def apply(record: EventRecord):
            user = record.users.get(email)
            if user is None:
                raise NotFoundError(f"User not found: {email}")
            updated = replace(user, name=name)
            return record.with_user(updated), updated

        return self.store.mutate(event_id, apply)

    def save_bookmarks(self, event_id: str, email: str, item_ids: Iterable[int]) -> List[int]:
        email = normalize_email(email)
        if isinstance(item_ids, str) or not isinstance(item_ids, Iterable):
            raise ValidationError("Bookmarks must be a list of item IDs")
        bookmarks = [require_int(i, "Bookmark item ID") for i in item_ids]
        if any(i < 1 for i in bookmarks):
            raise ValidationError("All bookmark item IDs must be positive integers")

        def apply(record: EventRecord):
            user = record.users.get(email)
            if user is None:
                raise NotFoundError(f"User not found: {email}")
            limit = record.item_configuration.number_of_items
            out_of_range = sorted(i for i in bookmarks if i > limit)
            if out_of_range:
                raise ValidationError(f"Invalid bookmark item IDs: {out_of_range}. Must be between 1 and {limit}")
            updated = replace(user, bookmarks=frozenset(bookmarks))
            return record.with_user(updated), sorted(updated.bookmarks)

        return self.store.mutate(event_id, apply)

    # -------- administrators --------

    def list_administrators(self, event_id: str, requester_email: str) -> List[str]:
        record = self.store.get(event_id)
        require_administrator(record, normalize_email(requester_email), "view administrators")
        return sorted(record.administrators)

    def add_administrator(self, event_id: str, requester_email: str, email: str) -> List[str]:
        requester = normalize_email(requester_email)
        email = validate_email_address(email)

        def apply(record: EventRecord):
            require_administrator(record, requester, "add administrators")
            if record.is_administrator(email):
                raise ConflictError(
                    f"Administrator with email {email} already exists for this event.",
                    error_code="ALREADY_EXISTS",
                )
            updated = replace(record, administrators=record.administrators | {email})
            user = record.users.get(email)
            if user is not None:
                updated = updated.with_user(replace(user, is_administrator=True))
            return updated, sorted(updated.administrators)

        admins = self.store.mutate(event_id, apply)
        logger.info(f"Administrator {email} added to event {event_id} by {requester}")
        return admins

    def remove_administrator(self, event_id: str, requester_email: str, email: str) -> List[str]:
        requester = normalize_email(requester_email)
        email = normalize_email(email)

        def apply(record: EventRecord):
            require_administrator(record, requester, "delete administrators")
            if not record.is_administrator(email):
                raise NotFoundError(f"Administrator with email {email} not found for this event.")
            check_removable(record, email)
            updated = replace(record, administrators=record.administrators - {email})
            user = record.users.get(email)
            if user is not None:
                updated = updated.with_user(replace(user, is_administrator=False))
            return updated, sorted(updated.administrators)

        admins = self.store.mutate(event_id, apply)
        logger.info(f"Administrator {email} removed from event {event_id} by {requester}")
        return admins

    # -------- PIN --------

    def regenerate_pin(self, event_id: str, admin_email: str) -> EventRecord:
        """Concurrent regenerations all succeed; the last write wins"""
        admin_email = normalize_email(admin_email)

        def apply(record: EventRecord):
            require_administrator(record, admin_email, "regenerate PINs")
            updated = replace(record, pin=generate_pin(), pin_generated_at=datetime.utcnow())
            return updated, updated

        updated = self.store.mutate(event_id, apply)
        logger.info(f"PIN regenerated for event: {event_id} by {admin_email}")
        return updated

    # -------- configuration --------

    def _validate_number_of_items(self, value) -> int:
        value = require_int(value, "Number of items")
        if value < 1 or value > MAX_NUMBER_OF_ITEMS:
            raise ValidationError(f"Number of items must be an integer between 1 and {MAX_NUMBER_OF_ITEMS}")
        return value

    def _validate_max_rating(self, value) -> int:
        value = require_int(value, "maxRating")
        if value < MIN_MAX_RATING or value > MAX_MAX_RATING:
            raise ValidationError(f"maxRating must be an integer between {MIN_MAX_RATING} and {MAX_MAX_RATING}")
        return value

    def update_item_configuration(
        self,
        event_id: str,
        admin_email: str,
        number_of_items: Optional[int] = None,
        excluded_item_ids: Union[str, Iterable[int], None] = None,
    ) -> ItemConfigurationUpdate:
        admin_email = normalize_email(admin_email)
        if number_of_items is not None:
            number_of_items = self._validate_number_of_items(number_of_items)
        requested_exclusions = None if excluded_item_ids is None else parse_item_ids(excluded_item_ids)

        def apply(record: EventRecord):
            require_administrator(record, admin_email, "update item configuration")
            current = record.item_configuration
            total = current.number_of_items if number_of_items is None else number_of_items

            warning = None
            if requested_exclusions is not None:
                invalid = sorted({i for i in requested_exclusions if i < 1 or i > total})
                if invalid:
                    raise ValidationError(
                        f"Invalid item IDs: {', '.join(map(str, invalid))}. Must be between 1 and {total}"
                    )
                excluded = frozenset(requested_exclusions)
            else:
                excluded = current.excluded_item_ids
                dropped = sorted(i for i in excluded if i > total)
                if dropped:
                    excluded = frozenset(i for i in excluded if i <= total)
                    warning = (
                        f"Item IDs {', '.join(map(str, dropped))} were removed because they are "
                        f"outside the valid range (1-{total})"
                    )

            if len(excluded) >= total:
                raise ValidationError("At least one item must be available. Cannot exclude all item IDs")

            config = ItemConfiguration(number_of_items=total, excluded_item_ids=excluded)
            if config == current:
                return record, ItemConfigurationUpdate(config, warning)
            return replace(record, item_configuration=config), ItemConfigurationUpdate(config, warning)

        result = self.store.mutate(event_id, apply)
        logger.info(
            f"Item configuration updated for event {event_id} by {admin_email}: "
            f"{result.configuration.number_of_items} items, excluded {sorted(result.configuration.excluded_item_ids)}"
        )
        return result

    def _validate_rating_levels(self, levels, max_rating: int) -> Tuple[RatingLevel, ...]:
        if isinstance(levels, (str, bytes)) or not isinstance(levels, Iterable):
            raise ValidationError("Ratings must be a list of {value, label, color} entries")
        levels = list(levels)
        if len(levels) != max_rating:
            raise ValidationError(f"Ratings must contain exactly {max_rating} entries (one per value 1-{max_rating})")

        validated = []
        for index, level in enumerate(levels):
            if not isinstance(level, Mapping):
                raise ValidationError(f"Rating at index {index} must be an object")
            if level.get("value") != index + 1:
                raise ValidationError(f"Rating at index {index} must have value {index + 1}")
            label = validate_text(level.get("label"), f"Rating {index + 1} label", RATING_LABEL_MAX_LENGTH, min_length=1)
            validated.append(RatingLevel(value=index + 1, label=label, color=normalize_color(level.get("color"))))
        return tuple(validated)

    def update_rating_configuration(
        self,
        event_id: str,
        admin_email: str,
        max_rating: Optional[int] = None,
        ratings: Optional[Iterable[Mapping]] = None,
        expected_updated_at: Optional[datetime] = None,
    ) -> RatingConfiguration:
        """Change the rating scale and its labels and colours, only while ``created``.

        A new ``max_rating`` without ``ratings`` resets the levels to the preset
        for that scale. ``expected_updated_at``, when given, must match the
        event's current ``updated_at`` or the update fails with a conflict.
        """
        admin_email = normalize_email(admin_email)
        if max_rating is not None:
            max_rating = self._validate_max_rating(max_rating)

        def apply(record: EventRecord):
            require_administrator(record, admin_email, "update rating configuration")
            require_state(record, [EventState.CREATED], action="Changing the rating configuration")
            if expected_updated_at is not None and expected_updated_at != record.updated_at:
                logger.warning(
                    f"Rating configuration conflict for event {event_id}: expected {expected_updated_at}, "
                    f"actual {record.updated_at}"
                )
                raise ConflictError(
                    "Event was modified by another administrator. Reload and try again.",
                    details={"current_updated_at": record.updated_at.isoformat()},
                )

            current = record.rating_configuration
            scale = current.max_rating if max_rating is None else max_rating
            if ratings is not None:
                levels = self._validate_rating_levels(ratings, scale)
            elif scale != current.max_rating:
                levels = DEFAULT_RATING_PRESETS[scale]
            else:
                levels = current.ratings

            config = RatingConfiguration(max_rating=scale, ratings=levels)
            if config == current:
                return record, config
            return replace(record, rating_configuration=config), config

        config = self.store.mutate(event_id, apply)
        logger.info(f"Rating configuration updated for event {event_id} by {admin_email}: maxRating={config.max_rating}")
        return config
