"""
Event snapshot model
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime

from app.core.db import Base

class Event(Base):
    __tablename__ = "events"
    
    id = Column(String(16), primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    owner_email = Column(String(255), nullable=False)
    state = Column(String(20), nullable=False)
    version = Column(Integer, nullable=False, default=1)
    payload = Column(Text, nullable=False)  # JSON-serialized EventRecord
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
