"""
Item registration, id assignment and details
"""

import logging
import secrets
import string
from dataclasses import replace
from datetime import datetime
from typing import List, Optional

from app.core.exceptions import AccessDenied, ConflictError, InvalidStateError, NotFoundError, ValidationError
from app.models.records import EventRecord, EventState, ItemRecord
from app.services.event_store import EventStore
from app.services.rating_service import require_administrator
from app.services.state_machine import require_state
from app.utils.validators import normalize_email, require_int, validate_text

logger = logging.getLogger(__name__)

REGISTRATION_ID_ALPHABET = string.ascii_letters + string.digits
REGISTRATION_ID_LENGTH = 12
NAME_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 1000

REGISTRATION_STATES = (EventState.CREATED, EventState.STARTED)


def generate_registration_id() -> str:
    return "".join(secrets.choice(REGISTRATION_ID_ALPHABET) for _ in range(REGISTRATION_ID_LENGTH))


def parse_price(price) -> Optional[float]:
    if price is None or price == "":
        return None
    if isinstance(price, bool):
        raise ValidationError(f"Invalid price type: {type(price).__name__}")
    try:
        value = float(str(price).strip().lstrip("$").replace(",", ""))
    except ValueError:
        raise ValidationError(f"Invalid price format: {price}")
    if value < 0:
        raise ValidationError("Price cannot be negative")
    return round(value, 2)


class ItemService:
    """Service for registered item operations"""

    def __init__(self, store: EventStore):
        self.store = store

    def register_item(
        self,
        event_id: str,
        owner_email: str,
        name: str,
        price=None,
        description: Optional[str] = None,
    ) -> ItemRecord:
        owner_email = normalize_email(owner_email)
        name = validate_text(name, "Item name", NAME_MAX_LENGTH, min_length=1)
        description = validate_text(description, "Description", DESCRIPTION_MAX_LENGTH)
        price = parse_price(price)

        def apply(record: EventRecord):
            require_state(record, REGISTRATION_STATES, action="Item registration")
            if owner_email not in record.users:
                raise NotFoundError(f"User not registered for this event: {owner_email}")
            registration_id = generate_registration_id()
            while registration_id in record.items:
                logger.warning(f"Item ID collision detected: {registration_id}, retrying...")
                registration_id = generate_registration_id()
            item = ItemRecord(
                id=registration_id,
                name=name,
                owner_email=owner_email,
                registered_at=datetime.utcnow(),
                price=price,
                description=description,
            )
            items = dict(record.items)
            items[item.id] = item
            return replace(record, items=items), item

        item = self.store.mutate(event_id, apply)
        logger.info(f"Item registered for event: {event_id}, id: {item.id}, owner: {owner_email}")
        return item

    def list_items(self, event_id: str, email: str) -> List[ItemRecord]:
        """Every item for administrators, otherwise only the caller's own"""
        email = normalize_email(email)
        record = self.store.get(event_id)
        items = record.items.values()
        if not record.is_administrator(email):
            items = [i for i in items if i.owner_email == email]
        return sorted(items, key=lambda i: i.registered_at)

    def assign_item_id(self, event_id: str, admin_email: str, registration_id: str, item_id: Optional[int]) -> ItemRecord:
        """Assign the numeric item id a registered item is rated under; None clears it"""
        admin_email = normalize_email(admin_email)
        if item_id is not None:
            item_id = require_int(item_id, "Item ID")

        def apply(record: EventRecord):
            require_state(record, [EventState.PAUSED], action="Item ID assignment")
            require_administrator(record, admin_email, "assign item IDs")
            item = record.items.get(registration_id)
            if item is None:
                raise NotFoundError(f"Item not found: {registration_id}")

            if item_id is not None:
                config = record.item_configuration
                if not config.is_available(item_id):
                    raise ValidationError(
                        f"Item ID {item_id} is not available. Must be between 1 and "
                        f"{config.number_of_items} and not excluded"
                    )
                taken = {i.item_id for i in record.items.values() if i.id != registration_id}
                if item_id in taken:
                    raise ConflictError(f"Item ID {item_id} is already assigned to another item", error_code="ALREADY_EXISTS")

            updated = replace(item, item_id=item_id)
            items = dict(record.items)
            items[updated.id] = updated
            return replace(record, items=items), updated

        updated = self.store.mutate(event_id, apply)
        logger.info(f"Item ID for {registration_id} in event {event_id} set to {item_id} by {admin_email}")
        return updated

    def get_item_details(self, event_id: str, item_id: int, email: str) -> ItemRecord:
        email = normalize_email(email)
        record = self.store.get(event_id)
        if not record.is_administrator(email) and record.state != EventState.COMPLETED:
            raise InvalidStateError(
                f'Item details are only available when event is in "completed" state. Current state: "{record.state.value}"',
                error_code="ITEM_DETAILS_UNAVAILABLE",
            )
        for item in record.items.values():
            if item.item_id == item_id:
                return item
        raise NotFoundError(f"Item with ID {item_id} not found")

    def delete_item(self, event_id: str, email: str, registration_id: str) -> ItemRecord:
        email = normalize_email(email)

        def apply(record: EventRecord):
            require_state(record, REGISTRATION_STATES, action="Item deletion")
            item = record.items.get(registration_id)
            if item is None:
                raise NotFoundError(f"Item not found: {registration_id}")
            if item.owner_email != email:
                raise AccessDenied("Only the item owner can delete this item")
            items = dict(record.items)
            del items[registration_id]
            return replace(record, items=items), item

        item = self.store.mutate(event_id, apply)
        logger.info(f"Item {registration_id} deleted from event {event_id} by {email}")
        return item
