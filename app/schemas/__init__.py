"""
Pydantic schemas package
"""

from .common import *
from .event import *
from .item import *
from .rating import *

__all__ = [
    "StandardResponse",
    "ErrorResponse",
    "HealthResponse",
    "EventCreate",
    "EventResponse",
    "JoinRequest",
    "StateTransitionRequest",
    "AdministratorRequest",
    "ItemConfigurationRequest",
    "RatingConfigurationRequest",
    "RatingLevelSchema",
    "ProfileUpdate",
    "BookmarksRequest",
    "UserResponse",
    "ItemRegister",
    "ItemAssign",
    "ItemResponse",
    "RatingSubmit",
    "RatingResponse",
    "SimilarUserResponse",
]
