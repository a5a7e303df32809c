"""
ExLab - Lab Lifecycle Endpoints

- POST /labs - Create and start a lab for a set of exercise tags
- GET /labs/{lab_id} - Lab state, addresses and DNS records
- POST /labs/{lab_id}/start|stop|restart - Lifecycle of all exercises
- POST /labs/{lab_id}/exercises - Add exercises to a running lab
- POST /labs/{lab_id}/exercises/{tag}/reset - Rebuild one exercise
- DELETE /labs/{lab_id} - Close the lab
"""

from typing import Any, Dict, List

import structlog
from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from exlab.infrastructure.orchestrator.services.lab_manager import LabManager
from exlab.interfaces.api.v1.dependencies import get_lab_manager

logger = structlog.get_logger(__name__)
router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================

class TagsRequest(BaseModel):
    """Exercise tags to instantiate."""
    tags: List[str] = Field(..., description="Exercise tags, in lab order")


class LabResponse(BaseModel):
    """Lab description."""
    id: str
    network: str
    dns_ip: str | None = None
    exercises: List[Dict[str, Any]]
    dns_records: List[str]


class LabListResponse(BaseModel):
    labs: List[LabResponse]
    total: int


class CloseResponse(BaseModel):
    success: bool
    message: str


# ============================================================================
# API Endpoints
# ============================================================================

@router.post(
    "",
    response_model=LabResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Lab",
)
async def create_lab(
    body: TagsRequest,
    manager: LabManager = Depends(get_lab_manager),
) -> LabResponse:
    logger.info("Creating lab", tags=body.tags)
    lab = await manager.create_lab(body.tags)
    return LabResponse(**lab.describe())


@router.get("", response_model=LabListResponse, summary="List Labs")
async def list_labs(
    manager: LabManager = Depends(get_lab_manager),
) -> LabListResponse:
    labs = [LabResponse(**lab.describe()) for lab in manager.list()]
    return LabListResponse(labs=labs, total=len(labs))


@router.get("/{lab_id}", response_model=LabResponse, summary="Get Lab")
async def get_lab(
    lab_id: str,
    manager: LabManager = Depends(get_lab_manager),
) -> LabResponse:
    return LabResponse(**manager.get(lab_id).describe())


@router.post("/{lab_id}/start", response_model=LabResponse, summary="Start Lab")
async def start_lab(
    lab_id: str,
    manager: LabManager = Depends(get_lab_manager),
) -> LabResponse:
    lab = manager.get(lab_id)
    async with manager.lock(lab_id):
        await lab.start()
    return LabResponse(**lab.describe())


@router.post("/{lab_id}/stop", response_model=LabResponse, summary="Stop Lab")
async def stop_lab(
    lab_id: str,
    manager: LabManager = Depends(get_lab_manager),
) -> LabResponse:
    lab = manager.get(lab_id)
    async with manager.lock(lab_id):
        await lab.stop()
    return LabResponse(**lab.describe())


@router.post("/{lab_id}/restart", response_model=LabResponse, summary="Restart Lab")
async def restart_lab(
    lab_id: str,
    manager: LabManager = Depends(get_lab_manager),
) -> LabResponse:
    lab = manager.get(lab_id)
    async with manager.lock(lab_id):
        await lab.restart()
    return LabResponse(**lab.describe())


@router.post("/{lab_id}/exercises", response_model=LabResponse, summary="Add Exercises")
async def add_exercises(
    lab_id: str,
    body: TagsRequest,
    manager: LabManager = Depends(get_lab_manager),
) -> LabResponse:
    lab = manager.get(lab_id)
    exercises = manager.registry.get_by_tags(body.tags)
    async with manager.lock(lab_id):
        await lab.add_exercises(exercises)
    return LabResponse(**lab.describe())


@router.post(
    "/{lab_id}/exercises/{tag}/reset",
    response_model=LabResponse,
    summary="Reset Exercise",
)
async def reset_exercise(
    lab_id: str,
    tag: str,
    manager: LabManager = Depends(get_lab_manager),
) -> LabResponse:
    lab = manager.get(lab_id)
    logger.info("Resetting exercise", lab_id=lab_id, tag=tag)
    async with manager.lock(lab_id):
        await lab.reset_exercise(tag)
    return LabResponse(**lab.describe())


@router.delete("/{lab_id}", response_model=CloseResponse, summary="Close Lab")
async def close_lab(
    lab_id: str,
    manager: LabManager = Depends(get_lab_manager),
) -> CloseResponse:
    manager.get(lab_id)
    async with manager.lock(lab_id):
        await manager.close_lab(lab_id)
    return CloseResponse(success=True, message=f"Lab {lab_id} closed")
