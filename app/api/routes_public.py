"""
Public API routes - no authentication required
"""

from fastapi import APIRouter, Depends

from app.schemas.common import HealthResponse
from app.services.container import Services, get_services

router = APIRouter()

@router.get("/health", response_model=HealthResponse)
def health_check(services: Services = Depends(get_services)):
    """Health check endpoint; reports how many events are live"""
    return HealthResponse(status="ok", events=len(services.store))
