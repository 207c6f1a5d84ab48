"""
Event Rating Service - FastAPI Backend
Main application entry point
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from app.core.config import settings
from app.core.db import engine, Base, SessionLocal
from app.core.exceptions import EventStoreError
from app.api import routes_events, routes_items, routes_public, routes_ratings, routes_system
from app.services.container import init_services
from app.services.repositories import EventRepo, SnapshotWriter
from app.utils.responses import event_store_error_response

# Configure logging
logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management"""
    if settings.PERSIST_EVENTS:
        Base.metadata.create_all(bind=engine)
        services = init_services(settings, SnapshotWriter(SessionLocal))
        db = SessionLocal()
        try:
            for record in EventRepo.load_all_sql(db):
                services.store.load(record)
        finally:
            db.close()
        logger.info(f"Loaded {len(services.store)} events from the database")
    else:
        init_services(settings)
        logger.info("Event persistence disabled; running in memory")
    yield
    logger.info("Application shutdown")

# Create FastAPI application
app = FastAPI(
    title="Event Rating Service",
    description="Multi-tenant event rating backend with taste-similarity ranking",
    version="1.0.0",
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(EventStoreError)
async def handle_event_store_error(request: Request, exc: EventStoreError):
    return event_store_error_response(exc)

# Include routers
app.include_router(routes_public.router, tags=["public"])
app.include_router(routes_events.router, prefix="/api", tags=["events"])
app.include_router(routes_ratings.router, prefix="/api", tags=["ratings"])
app.include_router(routes_items.router, prefix="/api", tags=["items"])
app.include_router(routes_system.router, prefix="/api/system", tags=["system"])

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="127.0.0.1",
        port=8000,
        reload=True
    )
