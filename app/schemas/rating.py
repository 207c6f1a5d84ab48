"""
Rating-related Pydantic schemas
"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel

from app.models.records import RatingRecord
from app.services.similarity_service import SimilarUser

class RatingSubmit(BaseModel):
    """Schema for submitting a rating"""
    item_id: int
    rating: int
    note: Optional[str] = None

class RatingResponse(BaseModel):
    email: str
    item_id: int
    rating: int
    note: str
    timestamp: datetime

    @classmethod
    def from_record(cls, rating: RatingRecord) -> "RatingResponse":
        return cls(
            email=rating.email,
            item_id=rating.item_id,
            rating=rating.rating,
            note=rating.note,
            timestamp=rating.timestamp,
        )

class CommonItemResponse(BaseModel):
    item_id: int
    user_rating: int
    similar_user_rating: int

class SimilarUserResponse(BaseModel):
    email: str
    display_name: Optional[str] = None
    similarity_score: float
    common_item_count: int
    common_items: List[CommonItemResponse]

    @classmethod
    def from_result(cls, user: SimilarUser) -> "SimilarUserResponse":
        return cls(
            email=user.email,
            display_name=user.display_name,
            similarity_score=user.similarity_score,
            common_item_count=user.common_item_count,
            common_items=[
                CommonItemResponse(
                    item_id=c.item_id,
                    user_rating=c.user_rating,
                    similar_user_rating=c.similar_user_rating,
                )
                for c in user.common_items
            ],
        )
