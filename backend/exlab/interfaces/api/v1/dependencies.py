"""Shared request dependencies."""

from fastapi import Request

from exlab.core.errors import EventNotFoundError
from exlab.domain.events.store import EventConfigStore
from exlab.domain.exercises.registry import ExerciseRegistry
from exlab.infrastructure.orchestrator.services.lab_manager import LabManager


async def get_registry(request: Request) -> ExerciseRegistry:
    """Get exercise registry from app state."""
    return request.app.state.registry


async def get_lab_manager(request: Request) -> LabManager:
    """Get lab manager from app state."""
    return request.app.state.lab_manager


async def get_event_store(request: Request) -> EventConfigStore:
    """Get event store from app state."""
    store = getattr(request.app.state, "event_store", None)
    if store is None:
        raise EventNotFoundError("No event configured")
    return store
