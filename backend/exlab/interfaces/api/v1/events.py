"""
ExLab - Event Endpoints

- GET /event - Current event configuration
- PUT /event/capacity - Change how many labs the event admits
- POST /event/finish - Mark the event as finished
"""

from datetime import datetime, timezone
from typing import List, Optional

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from exlab.domain.events.store import EventConfig, EventConfigStore
from exlab.interfaces.api.v1.dependencies import get_event_store

logger = structlog.get_logger(__name__)
router = APIRouter()


class EventResponse(BaseModel):
    name: str
    tag: str
    capacity: int
    available: int
    exercises: List[str]
    started_at: Optional[datetime] = None
    finish_expected: Optional[datetime] = None
    finished_at: Optional[datetime] = None


class CapacityRequest(BaseModel):
    capacity: int = Field(..., ge=1, description="Maximum number of labs")


def _response(conf: EventConfig) -> EventResponse:
    return EventResponse(
        name=conf.name,
        tag=conf.tag,
        capacity=conf.capacity,
        available=conf.available,
        exercises=list(conf.exercises),
        started_at=conf.started_at,
        finish_expected=conf.finish_expected,
        finished_at=conf.finished_at,
    )


@router.get("", response_model=EventResponse, summary="Get Event")
async def get_event(
    store: EventConfigStore = Depends(get_event_store),
) -> EventResponse:
    return _response(store.read())


@router.put("/capacity", response_model=EventResponse, summary="Set Event Capacity")
async def set_capacity(
    body: CapacityRequest,
    store: EventConfigStore = Depends(get_event_store),
) -> EventResponse:
    logger.info("Setting event capacity", capacity=body.capacity)
    store.set_capacity(body.capacity)
    return _response(store.read())


@router.post("/finish", response_model=EventResponse, summary="Finish Event")
async def finish_event(
    store: EventConfigStore = Depends(get_event_store),
) -> EventResponse:
    store.finish(datetime.now(timezone.utc))
    return _response(store.read())
