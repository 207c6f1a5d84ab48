"""
Event-related Pydantic schemas
"""

from datetime import datetime
from typing import List, Optional, Union
from pydantic import BaseModel, EmailStr

from app.models.records import EventRecord, UserRecord

class EventCreate(BaseModel):
    """Schema for creating an event"""
    name: str
    owner_email: EmailStr
    number_of_items: Optional[int] = None
    max_rating: Optional[int] = None

class JoinRequest(BaseModel):
    """Join an event with its PIN"""
    pin: str
    email: EmailStr

class StateTransitionRequest(BaseModel):
    """State change guarded by the state the caller last saw"""
    to_state: str
    expected_state: str

class AdministratorRequest(BaseModel):
    email: EmailStr

class ItemConfigurationRequest(BaseModel):
    number_of_items: Optional[int] = None
    excluded_item_ids: Optional[Union[List[int], str]] = None

class RatingLevelSchema(BaseModel):
    """Label and colour shown for one rating value"""
    value: int
    label: str
    color: str

class RatingConfigurationRequest(BaseModel):
    """Rating scale update; expected_updated_at guards against concurrent edits"""
    max_rating: Optional[int] = None
    ratings: Optional[List[RatingLevelSchema]] = None
    expected_updated_at: Optional[datetime] = None

class ProfileUpdate(BaseModel):
    name: Optional[str] = None

class BookmarksRequest(BaseModel):
    item_ids: List[int]

class ItemConfigurationResponse(BaseModel):
    number_of_items: int
    excluded_item_ids: List[int]
    available_item_ids: List[int]

class EventResponse(BaseModel):
    """Event view; PIN and administrators are only filled in for administrators"""
    id: str
    name: str
    state: str
    owner: str
    created_at: datetime
    updated_at: datetime
    item_configuration: ItemConfigurationResponse
    max_rating: int
    ratings: List[RatingLevelSchema]
    pin: Optional[str] = None
    administrators: Optional[List[str]] = None

    @classmethod
    def from_record(cls, record: EventRecord, include_admin_fields: bool = False) -> "EventResponse":
        config = record.item_configuration
        return cls(
            id=record.id,
            name=record.name,
            state=record.state.value,
            owner=record.owner,
            created_at=record.created_at,
            updated_at=record.updated_at,
            item_configuration=ItemConfigurationResponse(
                number_of_items=config.number_of_items,
                excluded_item_ids=sorted(config.excluded_item_ids),
                available_item_ids=config.available_item_ids(),
            ),
            max_rating=record.rating_configuration.max_rating,
            ratings=[
                RatingLevelSchema(value=level.value, label=level.label, color=level.color)
                for level in record.rating_configuration.ratings
            ],
            pin=record.pin if include_admin_fields else None,
            administrators=sorted(record.administrators) if include_admin_fields else None,
        )

class UserResponse(BaseModel):
    email: str
    name: Optional[str] = None
    registered_at: datetime
    bookmarks: List[int]
    is_administrator: bool

    @classmethod
    def from_record(cls, user: UserRecord) -> "UserResponse":
        return cls(
            email=user.email,
            name=user.name,
            registered_at=user.registered_at,
            bookmarks=sorted(user.bookmarks),
            is_administrator=user.is_administrator,
        )
