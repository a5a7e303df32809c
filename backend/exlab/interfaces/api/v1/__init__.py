"""
ExLab - API v1 Router
Aggregates all API endpoints
"""

from fastapi import APIRouter

from exlab.interfaces.api.v1.events import router as events_router
from exlab.interfaces.api.v1.exercises import router as exercises_router
from exlab.interfaces.api.v1.health import router as health_router
from exlab.interfaces.api.v1.labs import router as labs_router

api_router = APIRouter()

# Health check endpoints
api_router.include_router(
    health_router,
    prefix="/health",
    tags=["Health"],
)

# Exercise catalog endpoints
api_router.include_router(
    exercises_router,
    prefix="/exercises",
    tags=["Exercises"],
)

# Lab lifecycle endpoints
api_router.include_router(
    labs_router,
    prefix="/labs",
    tags=["Labs"],
)

# Event configuration endpoints
api_router.include_router(
    events_router,
    prefix="/event",
    tags=["Event"],
)
