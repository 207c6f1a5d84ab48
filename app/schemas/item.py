"""
Item-related Pydantic schemas
"""

from datetime import datetime
from typing import Optional, Union
from pydantic import BaseModel

from app.models.records import ItemRecord

class ItemRegister(BaseModel):
    """Schema for registering an item"""
    name: str
    price: Optional[Union[float, str]] = None
    description: Optional[str] = None

class ItemAssign(BaseModel):
    """Assign (or clear with null) the numeric item id"""
    item_id: Optional[int] = None

class ItemResponse(BaseModel):
    id: str
    name: str
    owner_email: str
    registered_at: datetime
    price: Optional[float] = None
    description: str
    item_id: Optional[int] = None

    @classmethod
    def from_record(cls, item: ItemRecord) -> "ItemResponse":
        return cls(
            id=item.id,
            name=item.name,
            owner_email=item.owner_email,
            registered_at=item.registered_at,
            price=item.price,
            description=item.description,
            item_id=item.item_id,
        )
