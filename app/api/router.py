"""API router aggregation."""

from fastapi import APIRouter

from app.api.query import router as query_router
from app.api.query_events import router as query_events_router
from app.api.health import router as health_router

api_router = APIRouter()

# Include all routers
api_router.include_router(query_router)
api_router.include_router(query_events_router)
api_router.include_router(health_router)
