"""
ExLab - Health Check Endpoints
"""

from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from exlab.domain.exercises.registry import ExerciseRegistry
from exlab.infrastructure.orchestrator.services.lab_manager import LabManager
from exlab.interfaces.api.v1.dependencies import get_lab_manager, get_registry

router = APIRouter()


class HealthStatus(BaseModel):
    """Health check response model."""
    status: str
    timestamp: str
    version: str
    checks: Dict[str, Any]


@router.get(
    "",
    response_model=HealthStatus,
    summary="Health Check",
)
async def health_check(
    request: Request,
    registry: ExerciseRegistry = Depends(get_registry),
    manager: LabManager = Depends(get_lab_manager),
) -> HealthStatus:
    return HealthStatus(
        status="healthy",
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=request.app.state.settings.app_version,
        checks={
            "exercises": len(registry),
            "labs": len(manager.list()),
        },
    )
