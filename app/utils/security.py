"""
Security utilities and authentication
"""

import secrets
from dataclasses import dataclass
from typing import Optional
from fastapi import HTTPException, Depends, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.core.config import settings
from app.core.exceptions import AccessDenied
from app.models.records import EventRecord
from app.services.container import Services, get_services
from app.services.session_service import Session

security = HTTPBearer()

@dataclass(frozen=True)
class Caller:
    """Authenticated caller of an event-scoped endpoint"""
    session: Session
    record: EventRecord

    @property
    def email(self) -> str:
        return self.session.email

    @property
    def is_administrator(self) -> bool:
        return self.record.is_administrator(self.session.email)

    @property
    def is_owner(self) -> bool:
        return self.record.is_owner(self.session.email)

def verify_root_token(credentials: HTTPAuthorizationCredentials = Depends(security)):
    """Verify system-wide root token"""
    if not secrets.compare_digest(credentials.credentials, settings.ROOT_TOKEN):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid root token"
        )
    return credentials.credentials

def get_caller(
    event_id: str,
    credentials: HTTPAuthorizationCredentials = Depends(security),
    services: Services = Depends(get_services),
) -> Caller:
    """Resolve the bearer token against the event in the path"""
    session = services.sessions.resolve(credentials.credentials, event_id)
    record = services.store.get(event_id)
    return Caller(session=session, record=record)

def require_admin(caller: Caller = Depends(get_caller)) -> Caller:
    """Caller must be an administrator of this event"""
    if not caller.is_administrator:
        raise AccessDenied("Unauthorized: Only administrators can perform this action")
    return caller

def get_client_ip(request: Request) -> Optional[str]:
    """Extract client IP from request"""
    # Check for forwarded IP first (for reverse proxy setups)
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    return request.client.host if request.client else None
