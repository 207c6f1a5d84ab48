"""
Response envelopes shared by every route
"""

from typing import Any, Optional
from pydantic import BaseModel

class StandardResponse(BaseModel):
    """Standard API response"""
    success: bool
    message: str
    data: Optional[Any] = None

class ErrorResponse(BaseModel):
    """Domain error: stable error_code plus optional details (current_state, retry_after)"""
    success: bool = False
    message: str
    error_code: Optional[str] = None
    details: Optional[Any] = None

class HealthResponse(BaseModel):
    status: str
    events: int
