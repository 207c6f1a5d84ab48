"""
Configuration settings for the application
"""

import os
from typing import List
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    """Application settings"""
    
    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./event_ratings.db")
    PERSIST_EVENTS: bool = os.getenv("PERSIST_EVENTS", "true").lower() in ("1", "true", "yes")
    
    # Security
    ROOT_TOKEN: str = os.getenv("ROOT_TOKEN", "root_token_123")
    
    # CORS
    ALLOW_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://localhost:8000",
    ]
    
    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    
    # Rate limiting (rating writes per user and event)
    RATING_RATE_LIMIT: int = 20
    RATING_RATE_WINDOW_SECONDS: float = 1.0
    
    # Failed PIN attempts per client and event
    PIN_ATTEMPT_LIMIT: int = 5
    PIN_ATTEMPT_WINDOW_SECONDS: float = 900.0
    
    # Events
    EVENT_NAME_MAX_LENGTH: int = 100
    DISPLAY_NAME_MAX_LENGTH: int = 50
    DEFAULT_NUMBER_OF_ITEMS: int = 20
    DEFAULT_MAX_RATING: int = 4
    NOTE_MAX_LENGTH: int = 500
    
    # Similar users
    MIN_SIMILARITY_RATINGS: int = 3
    SIMILAR_USERS_LIMIT: int = 5
    MIN_SIMILARITY_COMMON_ITEMS: int = 3
    
    class Config:
        env_file = ".env"

settings = Settings()
